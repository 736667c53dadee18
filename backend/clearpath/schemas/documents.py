from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from clearpath.schemas.base import CamelModel, FrozenCamelModel
from clearpath.schemas.case import AdditionalFactors, PersonalInfo, UserCase
from clearpath.schemas.eligibility import ValidationIssue

DocumentStatus = Literal[
    "draft",
    "generated",
    "review_required",
    "attorney_approved",
    "ready_to_file",
    "filed",
    "rejected",
]


class DocumentField(FrozenCamelModel):
    id: str
    name: str
    type: Literal["text", "date", "number", "boolean", "select", "textarea"] = "text"
    required: bool = True
    max_length: Optional[int] = None
    description: Optional[str] = None


class DocumentTemplate(FrozenCamelModel):
    id: str
    name: str
    document_type: str
    jurisdiction: str
    required_fields: List[DocumentField] = Field(default_factory=list)
    template: str
    version: str = "1.0.0"


class TemplateContext(CamelModel):
    """Data a template may draw from. Only whitelisted paths ever resolve."""

    user_case: Optional[UserCase] = None
    additional_factors: Optional[AdditionalFactors] = None
    personal_info: Optional[PersonalInfo] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    current_date: Optional[date] = None
    court_name: Optional[str] = None


class DocumentMetadata(CamelModel):
    jurisdiction: str
    case_id: str
    court_name: Optional[str] = None
    attorney_review_required: bool = False
    attorney_reviewed: bool = False
    filing_fee: float = 0
    required_copies: int = 2
    special_instructions: List[str] = Field(default_factory=list)


class GeneratedDocument(CamelModel):
    id: str
    template_id: str
    document_type: str
    title: str
    content: str
    html_content: str
    metadata: DocumentMetadata
    status: DocumentStatus = "generated"
    created_at: datetime


class GenerationRequest(CamelModel):
    template_id: str = ""
    user_case: Optional[UserCase] = None
    additional_factors: AdditionalFactors = Field(default_factory=AdditionalFactors)
    personal_info: Optional[PersonalInfo] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)


class GenerationResult(CamelModel):
    success: bool
    document: Optional[GeneratedDocument] = None
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class FilingFee(FrozenCamelModel):
    document_type: str
    amount: float
    description: str
    payable_to: str
    waiver_available: bool = False


class ProcessingEstimate(FrozenCamelModel):
    min_days: int
    max_days: int

    @property
    def midpoint(self) -> float:
        return (self.min_days + self.max_days) / 2

    def label(self) -> str:
        return f"{self.min_days}-{self.max_days} days"


class DocumentPackage(FrozenCamelModel):
    id: str
    case_id: str
    package_type: Literal["expungement", "sealing", "actual_innocence"]
    documents: List[GeneratedDocument]
    filing_instructions: List[str]
    required_fees: List[FilingFee]
    total_fees: float
    estimated_processing_time: str
    processing_estimate: ProcessingEstimate
    created_at: datetime


class PackageRequest(CamelModel):
    user_case: UserCase
    additional_factors: AdditionalFactors = Field(default_factory=AdditionalFactors)
    personal_info: PersonalInfo
    run_eligibility: bool = True


class PackageResult(CamelModel):
    success: bool
    package: Optional[DocumentPackage] = None
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class TemplateSummary(FrozenCamelModel):
    id: str
    name: str
    document_type: str
    jurisdiction: str
    version: str


class PreviewResponse(CamelModel):
    template_id: str
    preview: str
