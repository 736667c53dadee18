import logging
import re
from datetime import date
from typing import Callable, List, Optional

from clearpath.catalog.jurisdictions import JurisdictionRegistry
from clearpath.schemas.case import AdditionalFactors, PersonalInfo, UserCase
from clearpath.schemas.eligibility import ValidationIssue, ValidationResult

logger = logging.getLogger(__name__)

EARLIEST_DATE = date(1900, 1, 1)
MAX_AGE = 150
OFFENSE_MIN_LENGTH = 3
OFFENSE_MAX_LENGTH = 500
NAME_MAX_LENGTH = 50
ADDITIONAL_INFO_MAX_LENGTH = 2000

PHONE_RE = re.compile(r"^\+?1?[\s\-.]?\(?[0-9]{3}\)?[\s\-.]?[0-9]{3}[\s\-.]?[0-9]{4}$")
SSN_RE = re.compile(r"^\d{3}-?\d{2}-?\d{4}$")
ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class _Collector:
    def __init__(self) -> None:
        self.errors: List[ValidationIssue] = []
        self.warnings: List[str] = []
        self.notices: List[ValidationIssue] = []
        self.suggestions: List[str] = []

    def error(self, field: str, message: str, code: str = "VALIDATION_ERROR") -> None:
        self.errors.append(ValidationIssue(field=field, message=message, code=code, severity="error"))

    def warn(self, field: str, message: str, code: str) -> None:
        self.warnings.append(message)
        self.notices.append(ValidationIssue(field=field, message=message, code=code, severity="warning"))

    def result(self) -> ValidationResult:
        return ValidationResult(
            is_valid=not self.errors,
            errors=self.errors,
            warnings=self.warnings,
            notices=self.notices,
            suggestions=self.suggestions,
        )


class LegalDataValidator:
    """Checks user-entered data before any court document is produced."""

    def __init__(self, jurisdictions: JurisdictionRegistry, today: Callable[[], date] = date.today) -> None:
        self.jurisdictions = jurisdictions
        self.today = today

    def validate_case(self, user_case: Optional[UserCase]) -> ValidationResult:
        collector = _Collector()
        if user_case is None:
            collector.error("userCase", "User case data is required", "REQUIRED_FIELD")
            return collector.result()
        self._check_case(user_case, collector)
        return collector.result()

    def validate_factors(self, factors: Optional[AdditionalFactors]) -> ValidationResult:
        collector = _Collector()
        if factors is not None:
            self._check_factors(factors, collector)
        return collector.result()

    def validate_personal_info(self, personal_info: Optional[PersonalInfo]) -> ValidationResult:
        collector = _Collector()
        if personal_info is None:
            collector.error("personalInfo", "Personal information is required", "REQUIRED_FIELD")
            return collector.result()
        self._check_personal_info(personal_info, collector)
        return collector.result()

    def validate_complete(
        self,
        user_case: Optional[UserCase],
        factors: Optional[AdditionalFactors],
        personal_info: Optional[PersonalInfo],
    ) -> ValidationResult:
        """Run every check and merge the findings.

        Personal information is checked only when supplied; templates that
        need it report their own missing fields at generation time.
        """
        collector = _Collector()
        partials = [self.validate_case(user_case), self.validate_factors(factors)]
        if personal_info is not None:
            partials.append(self.validate_personal_info(personal_info))
        for partial in partials:
            collector.errors.extend(partial.errors)
            collector.warnings.extend(partial.warnings)
            collector.notices.extend(partial.notices)
            collector.suggestions.extend(partial.suggestions)

        result = collector.result()
        if not result.is_valid:
            logger.info(
                "Legal data validation failed",
                extra={"error_codes": sorted({issue.code for issue in result.errors})},
            )
        return result

    def _check_case(self, case: UserCase, collector: _Collector) -> None:
        today = self.today()

        if not case.id:
            collector.error("userCase.id", "Case ID required", "REQUIRED_FIELD")

        offense = case.offense.strip()
        if not offense:
            collector.error("userCase.offense", "Offense description required", "REQUIRED_FIELD")
        elif len(offense) < OFFENSE_MIN_LENGTH:
            collector.error("userCase.offense", "Offense description too short")
        elif len(offense) > OFFENSE_MAX_LENGTH:
            collector.error("userCase.offense", "Offense description too long")
        if "<" in offense or ">" in offense:
            collector.error("userCase.offense", "Invalid characters in offense", "INVALID_FORMAT")

        if case.offense_date is None:
            collector.error("userCase.offenseDate", "Offense date required", "REQUIRED_FIELD")
        else:
            self._check_date("userCase.offenseDate", case.offense_date, today, collector)

        if case.outcome is None:
            collector.error("userCase.outcome", "Case outcome required", "REQUIRED_FIELD")

        if case.age_at_offense is None:
            collector.error("userCase.ageAtOffense", "Age at offense required", "REQUIRED_FIELD")
        elif not 0 <= case.age_at_offense <= MAX_AGE:
            collector.error("userCase.ageAtOffense", "Age at offense out of range")

        if case.jurisdiction not in self.jurisdictions:
            collector.error("userCase.jurisdiction", "Unsupported jurisdiction", "UNSUPPORTED_JURISDICTION")

        if case.completion_date is not None:
            self._check_date("userCase.completionDate", case.completion_date, today, collector)
            if case.offense_date is not None and case.completion_date < case.offense_date:
                collector.error(
                    "userCase.completionDate",
                    "Completion date cannot precede the offense date",
                    "INVALID_DATE_ORDER",
                )

        sentence = case.sentence
        if sentence is not None and sentence.completion_date is not None:
            self._check_date("userCase.sentence.completionDate", sentence.completion_date, today, collector)
            if case.completion_date is not None and case.completion_date < sentence.completion_date:
                collector.error(
                    "userCase.completionDate",
                    "Case completion date cannot precede sentence completion",
                    "INVALID_DATE_ORDER",
                )

        if case.is_conviction:
            if sentence is None:
                collector.warn("userCase.sentence", "Sentence details are missing for a conviction", "MISSING_SENTENCE")
                collector.suggestions.append("Add sentence details so waiting periods can be checked")
            elif not sentence.all_completed:
                collector.warn(
                    "userCase.sentence", "Sentence requirements are not yet completed", "SENTENCE_INCOMPLETE"
                )
                collector.suggestions.append(
                    "Relief with a waiting period is available only after the sentence is completed"
                )

    def _check_factors(self, factors: AdditionalFactors, collector: _Collector) -> None:
        if factors.additional_info and len(factors.additional_info) > ADDITIONAL_INFO_MAX_LENGTH:
            collector.error("additionalFactors.additionalInfo", "Additional information too long")
        if factors.has_open_cases:
            collector.warnings.append("Open cases may delay or prevent relief")

    def _check_personal_info(self, info: PersonalInfo, collector: _Collector) -> None:
        for field, value in (("firstName", info.first_name), ("lastName", info.last_name)):
            if not value.strip():
                collector.error(f"personalInfo.{field}", f"{field} required", "REQUIRED_FIELD")
            elif len(value) > NAME_MAX_LENGTH:
                collector.error(f"personalInfo.{field}", f"{field} too long")
        if info.middle_name and len(info.middle_name) > NAME_MAX_LENGTH:
            collector.error("personalInfo.middleName", "middleName too long")

        if info.date_of_birth is None:
            collector.error("personalInfo.dateOfBirth", "Date of birth required", "REQUIRED_FIELD")
        else:
            self._check_date("personalInfo.dateOfBirth", info.date_of_birth, self.today(), collector)
        if info.ssn is not None and not SSN_RE.match(info.ssn):
            collector.error("personalInfo.ssn", "Invalid SSN format", "INVALID_FORMAT")
        if info.phone is not None and not PHONE_RE.match(info.phone):
            collector.error("personalInfo.phone", "Invalid phone number format", "INVALID_FORMAT")
        if info.email is not None and (len(info.email) > 254 or not EMAIL_RE.match(info.email)):
            collector.error("personalInfo.email", "Invalid email format", "INVALID_FORMAT")

        address = info.address
        if address is not None:
            if not address.street or not address.city:
                collector.error("personalInfo.address", "Street and city required", "REQUIRED_FIELD")
            if address.state and len(address.state) != 2:
                collector.error("personalInfo.address.state", "State must be 2 characters", "INVALID_FORMAT")
            if address.zip_code and not ZIP_RE.match(address.zip_code):
                collector.error("personalInfo.address.zipCode", "Invalid ZIP code format", "INVALID_FORMAT")

    @staticmethod
    def _check_date(field: str, value: date, today: date, collector: _Collector) -> None:
        if value > today:
            collector.error(field, "Date cannot be in the future", "FUTURE_DATE")
        elif value < EARLIEST_DATE:
            collector.error(field, "Date too far in the past")
