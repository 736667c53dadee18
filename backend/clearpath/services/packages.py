import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from clearpath.catalog.jurisdictions import JurisdictionRegistry
from clearpath.schemas.case import AdditionalFactors, PersonalInfo, UserCase
from clearpath.schemas.documents import (
    DocumentPackage,
    FilingFee,
    GeneratedDocument,
    GenerationRequest,
    PackageResult,
    ProcessingEstimate,
)
from clearpath.schemas.eligibility import EligibilityResult, ValidationIssue
from clearpath.schemas.jurisdiction import JurisdictionRules
from clearpath.services.eligibility import MOTION_SEALING
from clearpath.services.validation import LegalDataValidator
from clearpath.templating.processor import SecureTemplateProcessor
from clearpath.templating.registry import TemplateRegistry

logger = logging.getLogger(__name__)

ACTUAL_INNOCENCE_DOCUMENTS = (
    "petition_actual_innocence",
    "affidavit_actual_innocence",
    "memorandum_actual_innocence",
)
SEALING_DOCUMENTS = ("petition_sealing",)
EXPUNGEMENT_DOCUMENTS = ("petition_expungement", "affidavit_expungement")
COMMON_DOCUMENTS = ("certificate_of_service", "proposed_order")
DEFAULT_COPIES = 2

ATTORNEY_NAME_PLACEHOLDER = "[ATTORNEY NAME]"
BAR_NUMBER_PLACEHOLDER = "[BAR NUMBER]"


def package_type_for(factors: AdditionalFactors, eligibility: Optional[EligibilityResult]) -> str:
    if factors.seeking_actual_innocence:
        return "actual_innocence"
    if eligibility is not None and eligibility.best_option is not None:
        if eligibility.best_option.relief_type == MOTION_SEALING:
            return "sealing"
    return "expungement"


def required_document_types(
    user_case: UserCase,
    factors: AdditionalFactors,
    eligibility: Optional[EligibilityResult] = None,
) -> List[str]:
    """Document types to file, in filing order."""
    package_type = package_type_for(factors, eligibility)
    if package_type == "actual_innocence":
        documents = list(ACTUAL_INNOCENCE_DOCUMENTS)
    elif package_type == "sealing":
        documents = list(SEALING_DOCUMENTS)
    else:
        documents = list(EXPUNGEMENT_DOCUMENTS)

    documents.extend(COMMON_DOCUMENTS)
    if user_case.is_conviction:
        documents.append("certificate_completion")
        if user_case.sentence is not None and user_case.sentence.probation:
            documents.append("probation_completion_certificate")
    if factors.is_trafficking_victim:
        documents.append("trafficking_victim_affidavit")
    return documents


def estimate_processing(
    user_case: UserCase,
    factors: AdditionalFactors,
    rules: JurisdictionRules,
) -> ProcessingEstimate:
    processing = rules.processing
    days = processing.base_days
    if user_case.is_conviction:
        days += processing.conviction
    if factors.seeking_actual_innocence:
        days += processing.actual_innocence
    if factors.has_open_cases:
        days += processing.open_cases
    if factors.is_trafficking_victim:
        days += processing.trafficking

    return ProcessingEstimate(
        min_days=max(days - processing.spread_below, processing.floor_days),
        max_days=max(days + processing.spread_above, processing.floor_days),
    )


def filing_fees(documents: List[GeneratedDocument], rules: JurisdictionRules) -> List[FilingFee]:
    fees: Dict[str, FilingFee] = {}
    for document in documents:
        schedule = rules.document_fees.get(document.document_type)
        if schedule is None or document.document_type in fees:
            continue
        fees[document.document_type] = FilingFee(
            document_type=document.document_type,
            amount=schedule.amount,
            description=schedule.description,
            payable_to=rules.fee_payable_to,
            waiver_available=schedule.waiver_available,
        )
    return list(fees.values())


def _format_amount(amount: float) -> str:
    return f"{amount:,.0f}" if float(amount).is_integer() else f"{amount:,.2f}"


class DocumentPackageAssembler:
    """Builds the full filing package for a case, all documents or none."""

    def __init__(
        self,
        processor: SecureTemplateProcessor,
        registry: TemplateRegistry,
        jurisdictions: JurisdictionRegistry,
        validator: LegalDataValidator,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.processor = processor
        self.registry = registry
        self.jurisdictions = jurisdictions
        self.validator = validator
        self._now = now

    def generate_package(
        self,
        user_case: UserCase,
        factors: Optional[AdditionalFactors],
        personal_info: Optional[PersonalInfo],
        eligibility: Optional[EligibilityResult] = None,
    ) -> PackageResult:
        factors = factors or AdditionalFactors()
        try:
            validation = self.validator.validate_complete(user_case, factors, personal_info)
            if not validation.is_valid:
                return PackageResult(success=False, errors=validation.errors, warnings=validation.warnings)

            rules = self.jurisdictions.get(user_case.jurisdiction)
            documents: List[GeneratedDocument] = []
            warnings: List[str] = list(validation.warnings)

            for document_type in required_document_types(user_case, factors, eligibility):
                template = self.registry.find_by_document_type(rules.id, document_type)
                if template is None:
                    logger.warning(
                        "No template for document type",
                        extra={"document_type": document_type, "jurisdiction": rules.id},
                    )
                    return PackageResult(
                        success=False,
                        errors=[
                            ValidationIssue(
                                field="documentType",
                                message=f"Template not found for document type: {document_type}",
                                code="TEMPLATE_NOT_FOUND",
                            )
                        ],
                        warnings=warnings,
                    )

                result = self.processor.generate_document(
                    GenerationRequest(
                        template_id=template.id,
                        user_case=user_case,
                        additional_factors=factors,
                        personal_info=personal_info,
                        custom_fields=self._custom_fields(rules, personal_info),
                    )
                )
                warnings.extend(warning for warning in result.warnings if warning not in warnings)
                if not result.success or result.document is None:
                    return PackageResult(success=False, errors=result.errors, warnings=warnings)
                documents.append(self._with_filing_metadata(result.document, rules))

            estimate = estimate_processing(user_case, factors, rules)
            fees = filing_fees(documents, rules)
            total = sum(fee.amount for fee in fees)
            package = DocumentPackage(
                id=uuid4().hex,
                case_id=user_case.id,
                package_type=package_type_for(factors, eligibility),
                documents=documents,
                filing_instructions=self._filing_instructions(user_case, factors, rules, documents, fees, estimate),
                required_fees=fees,
                total_fees=total,
                estimated_processing_time=estimate.label(),
                processing_estimate=estimate,
                created_at=self._now(),
            )
        except Exception:
            logger.exception("Document package generation failed", extra={"case_id": user_case.id})
            return PackageResult(
                success=False,
                errors=[
                    ValidationIssue(
                        field="general",
                        message="Document package generation failed",
                        code="PACKAGE_GENERATION_ERROR",
                    )
                ],
            )

        logger.info(
            "Document package generated",
            extra={
                "case_id": user_case.id,
                "package_type": package.package_type,
                "document_count": len(documents),
                "total_fees": total,
            },
        )
        return PackageResult(success=True, package=package, warnings=warnings)

    def _custom_fields(self, rules: JurisdictionRules, personal_info: Optional[PersonalInfo]) -> Dict[str, object]:
        attorney_name = personal_info.attorney_name if personal_info is not None else None
        bar_number = personal_info.attorney_bar_number if personal_info is not None else None
        return {
            "courtName": rules.court_name,
            "filingDate": self._now().date(),
            "attorneyName": attorney_name or ATTORNEY_NAME_PLACEHOLDER,
            "attorneyBarNumber": bar_number or BAR_NUMBER_PLACEHOLDER,
        }

    @staticmethod
    def _with_filing_metadata(document: GeneratedDocument, rules: JurisdictionRules) -> GeneratedDocument:
        schedule = rules.document_fees.get(document.document_type)
        metadata = document.metadata.model_copy(
            update={
                "court_name": rules.court_name,
                "filing_fee": schedule.amount if schedule is not None else 0,
                "required_copies": rules.document_copies.get(document.document_type, DEFAULT_COPIES),
                "special_instructions": list(rules.document_instructions.get(document.document_type, [])),
            }
        )
        return document.model_copy(update={"metadata": metadata})

    @staticmethod
    def _filing_instructions(
        user_case: UserCase,
        factors: AdditionalFactors,
        rules: JurisdictionRules,
        documents: List[GeneratedDocument],
        fees: List[FilingFee],
        estimate: ProcessingEstimate,
    ) -> List[str]:
        instructions = [
            f"File all documents with the {rules.court_name}",
            "Submit original plus required copies as specified for each document",
        ]

        total = sum(fee.amount for fee in fees)
        if total > 0:
            instructions.append(
                f"Pay filing fees totaling ${_format_amount(total)} (money order or cashier's check)"
            )
            if any(fee.waiver_available for fee in fees):
                instructions.append("Fee waivers may be available for qualifying individuals")

        if any(document.document_type == "certificate_of_service" for document in documents):
            if rules.service_parties:
                instructions.append(f"Serve copies on the {' and the '.join(rules.service_parties)}")
            instructions.append("File proof of service with the court")

        instructions.append(f"Allow {estimate.label()} for court processing")
        instructions.append("Check court records online or call for status updates")

        if user_case.is_conviction:
            instructions.append("Ensure all sentence requirements are completed before filing")
        if user_case.is_trafficking_related or factors.is_trafficking_victim:
            instructions.append("Trafficking-related cases may qualify for expedited processing")
        return instructions
