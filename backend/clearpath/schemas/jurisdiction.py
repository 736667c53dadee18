from datetime import date
from typing import Dict, FrozenSet, List, Literal, Optional

from pydantic import Field

from clearpath.schemas.base import FrozenCamelModel
from clearpath.schemas.eligibility import Resource

OffenseSeverity = Literal["misdemeanor", "felony", "infraction"]


class OffenseDefinition(FrozenCamelModel):
    id: str
    name: str
    keywords: List[str] = Field(default_factory=list)
    severity: OffenseSeverity
    excluded_from: FrozenSet[str] = Field(default_factory=frozenset)
    category: Optional[str] = None
    statute_numbers: List[str] = Field(default_factory=list)

    def is_excluded_from(self, relief_type: str) -> bool:
        return relief_type in self.excluded_from


class DecriminalizedOffense(FrozenCamelModel):
    offense_id: str
    cutoff_date: date
    description: str
    timeline: str


class WaitingPeriods(FrozenCamelModel):
    """Years that must elapse after sentence completion."""

    automatic_sealing_misdemeanor: int = 10
    motion_sealing_misdemeanor: int = 5
    motion_sealing_fta_felony: int = 8


class SealingTimelines(FrozenCamelModel):
    """When automatic sealing takes effect, as announced by the jurisdiction."""

    non_conviction: str = "Within 90 days of case termination"
    misdemeanor_conviction: str = "Timeline set by court implementation schedule"


class ProcessingRules(FrozenCamelModel):
    """Day adjustments for the court processing estimate."""

    base_days: int = 60
    floor_days: int = 30
    conviction: int = 30
    actual_innocence: int = 60
    open_cases: int = 30
    trafficking: int = -30
    spread_below: int = 15
    spread_above: int = 30


class DocumentFee(FrozenCamelModel):
    amount: float
    description: str
    waiver_available: bool = False


class JurisdictionResources(FrozenCamelModel):
    court_records: Resource
    court_forms: Resource
    attorney_directory: Resource
    legal_aid: Resource


class JurisdictionRules(FrozenCamelModel):
    """Relief policy for one jurisdiction, loaded from JSON."""

    id: str
    name: str
    court_name: str
    fee_payable_to: str
    service_parties: List[str] = Field(default_factory=list)
    offenses: List[OffenseDefinition]
    decriminalized: List[DecriminalizedOffense] = Field(default_factory=list)
    waiting_periods: WaitingPeriods = Field(default_factory=WaitingPeriods)
    sealing_timelines: SealingTimelines = Field(default_factory=SealingTimelines)
    youth_age_threshold: int = 24
    relief_fees: Dict[str, float] = Field(default_factory=dict)
    document_fees: Dict[str, DocumentFee] = Field(default_factory=dict)
    document_copies: Dict[str, int] = Field(default_factory=dict)
    document_instructions: Dict[str, List[str]] = Field(default_factory=dict)
    processing: ProcessingRules = Field(default_factory=ProcessingRules)
    resources: JurisdictionResources

    def relief_fee(self, relief_type: str, default: float = 0) -> float:
        return self.relief_fees.get(relief_type, default)

    def decriminalization_for(self, offense_id: str) -> Optional[DecriminalizedOffense]:
        for entry in self.decriminalized:
            if entry.offense_id == offense_id:
                return entry
        return None


class JurisdictionSummary(FrozenCamelModel):
    id: str
    name: str
    court_name: str
    offense_count: int
