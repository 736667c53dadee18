import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List

from pydantic import ValidationError

from clearpath.catalog.offenses import OffenseCatalog
from clearpath.schemas.jurisdiction import JurisdictionRules

logger = logging.getLogger(__name__)


class UnknownJurisdictionError(KeyError):
    """Raised when no rules are loaded for a jurisdiction id."""


class JurisdictionRegistry:
    """Jurisdiction rules and offense catalogs, keyed by lower-case id."""

    def __init__(self, rules: Iterable[JurisdictionRules] = ()) -> None:
        self._rules: Dict[str, JurisdictionRules] = {}
        self._catalogs: Dict[str, OffenseCatalog] = {}
        for item in rules:
            self.add(item)

    @classmethod
    def load(cls, path: Path) -> "JurisdictionRegistry":
        """Load every ``*.json`` rule file under ``path``."""
        registry = cls()
        if not path.exists():
            logger.warning("Jurisdiction rules path missing", extra={"path": str(path)})
            return registry

        for rule_path in sorted(path.glob("*.json")):
            try:
                payload = json.loads(rule_path.read_text(encoding="utf-8"))
                registry.add(JurisdictionRules.model_validate(payload))
            except (json.JSONDecodeError, ValidationError) as exc:
                raise ValueError(f"Invalid jurisdiction rules in {rule_path}") from exc
        logger.info("Loaded jurisdiction rules", extra={"jurisdictions": registry.ids()})
        return registry

    def add(self, rules: JurisdictionRules) -> None:
        key = rules.id.lower()
        self._rules[key] = rules
        self._catalogs[key] = OffenseCatalog(rules.offenses)

    def ids(self) -> List[str]:
        return sorted(self._rules)

    def __contains__(self, jurisdiction_id: object) -> bool:
        return isinstance(jurisdiction_id, str) and jurisdiction_id.lower() in self._rules

    def get(self, jurisdiction_id: str) -> JurisdictionRules:
        try:
            return self._rules[(jurisdiction_id or "").lower()]
        except KeyError as exc:
            raise UnknownJurisdictionError(jurisdiction_id) from exc

    def catalog(self, jurisdiction_id: str) -> OffenseCatalog:
        try:
            return self._catalogs[(jurisdiction_id or "").lower()]
        except KeyError as exc:
            raise UnknownJurisdictionError(jurisdiction_id) from exc
