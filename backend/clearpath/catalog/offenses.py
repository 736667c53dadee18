import re
from typing import Iterable, Iterator, List, Optional, Tuple

from clearpath.schemas.jurisdiction import OffenseDefinition


def _keyword_pattern(keywords: Iterable[str]) -> Optional[re.Pattern]:
    """Keywords must begin at a word start; "gun" matches "guns", not "begun"."""
    alternatives = [re.escape(keyword.strip().lower()) for keyword in keywords if keyword and keyword.strip()]
    if not alternatives:
        return None
    return re.compile(r"(?<!\w)(?:" + "|".join(alternatives) + ")")


class OffenseCatalog:
    """Read-only lookup over a jurisdiction's offense definitions.

    Order matters: keyword matching returns the first definition whose
    keyword appears in the offense text, so specific entries precede
    generic ones in the source data.
    """

    def __init__(self, offenses: Iterable[OffenseDefinition]) -> None:
        self._offenses: List[OffenseDefinition] = list(offenses)
        self._by_name = {offense.name.lower(): offense for offense in self._offenses}
        self._patterns: List[Tuple[OffenseDefinition, Optional[re.Pattern]]] = [
            (offense, _keyword_pattern(offense.keywords)) for offense in self._offenses
        ]

    def __len__(self) -> int:
        return len(self._offenses)

    def __iter__(self) -> Iterator[OffenseDefinition]:
        return iter(self._offenses)

    def find(self, offense_text: Optional[str]) -> Optional[OffenseDefinition]:
        """Exact name match first, then keyword containment. None when unmatched."""
        if not offense_text or not offense_text.strip():
            return None
        needle = offense_text.strip().lower()

        exact = self._by_name.get(needle)
        if exact is not None:
            return exact

        for offense, pattern in self._patterns:
            if pattern is not None and pattern.search(needle):
                return offense
        return None

    def get(self, offense_id: str) -> Optional[OffenseDefinition]:
        for offense in self._offenses:
            if offense.id == offense_id:
                return offense
        return None
