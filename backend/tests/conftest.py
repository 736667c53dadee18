import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest


REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_ROOT = REPO_ROOT / "backend"

if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from clearpath.catalog.jurisdictions import JurisdictionRegistry  # noqa: E402
from clearpath.core.config import PACKAGE_DATA_PATH, Settings, build_data_paths  # noqa: E402
from clearpath.templating.registry import TemplateRegistry  # noqa: E402

TODAY = date(2025, 6, 1)
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Controllable ``now`` for cache and document timestamps."""

    def __init__(self, start: datetime = NOW) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture(scope="session")
def data_paths():
    return build_data_paths(PACKAGE_DATA_PATH)


@pytest.fixture(scope="session")
def jurisdictions(data_paths) -> JurisdictionRegistry:
    return JurisdictionRegistry.load(data_paths.jurisdictions)


@pytest.fixture(scope="session")
def template_registry(data_paths) -> TemplateRegistry:
    return TemplateRegistry.load(data_paths.templates)


@pytest.fixture()
def settings() -> Settings:
    return Settings().model_copy(
        update={
            "cache_salt": "test-salt",
            "cache_ttl_minutes": 30,
            "cache_max_size": 100,
            "cache_bucket_minutes": 5,
            "max_field_length": 1000,
            "event_log_capacity": 50,
        }
    )


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()
