from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from clearpath.schemas.base import CamelModel, FrozenCamelModel

Severity = Literal["error", "warning", "info"]


class ValidationIssue(FrozenCamelModel):
    field: str
    message: str
    code: str
    severity: Severity = "error"


class ValidationResult(CamelModel):
    is_valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    notices: List[ValidationIssue] = Field(default_factory=list, description="Coded non-blocking findings")
    suggestions: List[str] = Field(default_factory=list)


class ReliefOption(FrozenCamelModel):
    eligible: bool
    relief_type: str
    name: str
    description: str
    reasons: List[str] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    issues: List[ValidationIssue] = Field(default_factory=list)
    timeline: Optional[str] = None
    estimated_eligibility_date: Optional[date] = None
    difficulty: Optional[Literal["low", "medium", "high"]] = None
    success_likelihood: Optional[Literal["high", "medium", "low", "low_without_new_evidence"]] = None
    filing_fee: Optional[float] = None
    attorney_recommended: bool = False


class Resource(FrozenCamelModel):
    title: str
    url: str
    type: Literal["form", "guide", "attorney_directory", "legal_aid", "court_info"]
    description: Optional[str] = None


class NextStep(FrozenCamelModel):
    id: str
    title: str
    description: str
    priority: Literal["high", "medium", "low"]
    timeframe: str
    resources: List[Resource] = Field(default_factory=list)


class EligibilityResult(FrozenCamelModel):
    best_option: Optional[ReliefOption] = None
    all_options: List[ReliefOption] = Field(default_factory=list)
    reasoning: List[str] = Field(default_factory=list)
    next_steps: List[NextStep] = Field(default_factory=list)
    estimated_timeline: str = ""
    required_documents: List[str] = Field(default_factory=list)

    @property
    def eligible_options(self) -> List[ReliefOption]:
        return [option for option in self.all_options if option.eligible]

    def option(self, relief_type: str) -> Optional[ReliefOption]:
        for candidate in self.all_options:
            if candidate.relief_type == relief_type:
                return candidate
        return None


class EligibilityRequest(CamelModel):
    """Raw assessment payload; the engine tolerates partial or malformed cases."""

    user_case: Dict[str, Any] = Field(default_factory=dict)
    additional_factors: Dict[str, Any] = Field(default_factory=dict)
