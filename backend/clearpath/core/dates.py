from datetime import date


def add_years(start: date, years: int) -> date:
    """Shift a date by whole years; Feb 29 falls back to Feb 28."""
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        return start.replace(year=start.year + years, day=28)


def long_date(value: date) -> str:
    """Court style date, e.g. ``February 15, 2015``."""
    return f"{value:%B} {value.day}, {value.year}"
