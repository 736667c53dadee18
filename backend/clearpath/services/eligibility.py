import logging
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from clearpath.catalog.jurisdictions import JurisdictionRegistry, UnknownJurisdictionError
from clearpath.catalog.offenses import OffenseCatalog
from clearpath.core.dates import add_years, long_date
from clearpath.schemas.case import AdditionalFactors, UserCase
from clearpath.schemas.eligibility import (
    EligibilityResult,
    NextStep,
    ReliefOption,
    Resource,
    ValidationIssue,
)
from clearpath.schemas.jurisdiction import JurisdictionRules, OffenseDefinition

logger = logging.getLogger(__name__)

AUTOMATIC_EXPUNGEMENT = "automatic_expungement"
AUTOMATIC_SEALING = "automatic_sealing"
MOTION_EXPUNGEMENT = "motion_expungement"
MOTION_SEALING = "motion_sealing"
YOUTH_REHABILITATION_ACT = "youth_rehabilitation_act"
TRAFFICKING_SURVIVORS = "trafficking_survivors"

RELIEF_PRIORITY: Dict[str, int] = {
    AUTOMATIC_EXPUNGEMENT: 1,
    AUTOMATIC_SEALING: 2,
    TRAFFICKING_SURVIVORS: 3,
    MOTION_EXPUNGEMENT: 3,
    MOTION_SEALING: 4,
    YOUTH_REHABILITATION_ACT: 5,
}
UNRANKED_PRIORITY = 10

CaseInput = Union[UserCase, Mapping[str, Any], None]
FactorsInput = Union[AdditionalFactors, Mapping[str, Any], None]


def _issue(code: str, message: str, field: str = "userCase", severity: str = "error") -> ValidationIssue:
    return ValidationIssue(field=field, message=message, code=code, severity=severity)


def _draft(relief_type: str, name: str, description: str, **values: Any) -> Dict[str, Any]:
    draft: Dict[str, Any] = {
        "eligible": False,
        "relief_type": relief_type,
        "name": name,
        "description": description,
        "reasons": [],
        "requirements": [],
        "issues": [],
    }
    draft.update(values)
    return draft


def select_best_option(options: List[ReliefOption]) -> Optional[ReliefOption]:
    """Highest-priority eligible option; ties keep list order."""
    eligible = [option for option in options if option.eligible]
    if not eligible:
        return None
    ranked = sorted(eligible, key=lambda option: RELIEF_PRIORITY.get(option.relief_type, UNRANKED_PRIORITY))
    return ranked[0]


class EligibilityEngine:
    """Evaluates a case against a jurisdiction's relief rules.

    ``assess`` never raises: malformed input, unknown jurisdictions and
    internal failures all produce an explanatory result instead.
    """

    def __init__(self, jurisdictions: JurisdictionRegistry, today: Callable[[], date] = date.today) -> None:
        self.jurisdictions = jurisdictions
        self.today = today

    def assess(self, user_case: CaseInput, additional_factors: FactorsInput = None) -> EligibilityResult:
        notes: List[str] = []
        try:
            case = self._coerce_case(user_case)
        except ValidationError as exc:
            return self._degraded(
                [f"Case field '{_error_location(error)}' is invalid: {error['msg']}" for error in exc.errors()],
                case_id=_raw_case_id(user_case),
            )
        except (TypeError, ValueError):
            return self._degraded(["Case details could not be read"])

        factors = self._coerce_factors(additional_factors, notes)

        try:
            rules = self.jurisdictions.get(case.jurisdiction)
            catalog = self.jurisdictions.catalog(case.jurisdiction)
        except UnknownJurisdictionError:
            return self._degraded(
                [f"Jurisdiction '{case.jurisdiction}' is not supported; relief rules could not be applied"],
                case_id=case.id,
            )

        try:
            result = self._evaluate(case, factors, rules, catalog, notes)
        except Exception:
            logger.exception("Eligibility evaluation failed", extra={"case_id": case.id})
            return self._degraded(["An internal error prevented a full assessment of this case"], case_id=case.id)

        logger.info(
            "Eligibility assessed",
            extra={
                "case_id": case.id,
                "jurisdiction": rules.id,
                "eligible_count": len(result.eligible_options),
                "best_relief_type": result.best_option.relief_type if result.best_option else None,
            },
        )
        return result

    def _evaluate(
        self,
        case: UserCase,
        factors: AdditionalFactors,
        rules: JurisdictionRules,
        catalog: OffenseCatalog,
        notes: List[str],
    ) -> EligibilityResult:
        offense = catalog.find(case.offense)

        options: List[ReliefOption] = [
            self._automatic_expungement(case, offense, rules),
            self._automatic_sealing(case, offense, rules),
            self._motion_expungement(factors, rules),
            self._motion_sealing(case, offense, rules),
        ]
        options.extend(self._special_programs(case, factors, rules))

        best = select_best_option(options)
        eligible = [option for option in options if option.eligible]
        return EligibilityResult(
            best_option=best,
            all_options=options,
            reasoning=self._reasoning(case, offense, rules, eligible, notes),
            next_steps=self._next_steps(best, rules.resources.model_dump()),
            estimated_timeline=(best.timeline or "Timeline varies by case") if best else "No immediate timeline available",
            required_documents=self._required_documents(best),
        )

    def _automatic_expungement(
        self, case: UserCase, offense: Optional[OffenseDefinition], rules: JurisdictionRules
    ) -> ReliefOption:
        draft = _draft(
            AUTOMATIC_EXPUNGEMENT,
            "Automatic Expungement",
            "Automatic removal of eligible records without filing required",
        )
        decriminalized = rules.decriminalization_for(offense.id) if offense else None

        if decriminalized is not None and case.offense_date is None:
            draft["reasons"].append("Offense date is required to check the decriminalization cutoff")
            draft["issues"].append(
                _issue("MISSING_OFFENSE_DATE", "Offense date missing", field="userCase.offenseDate")
            )
        elif decriminalized is not None and case.offense_date < decriminalized.cutoff_date:
            draft.update(
                eligible=True,
                timeline=decriminalized.timeline,
                requirements=["No action required - automatic process"],
                filing_fee=rules.relief_fee(AUTOMATIC_EXPUNGEMENT),
                difficulty="low",
                success_likelihood="high",
            )
            draft["reasons"].append(
                f"{decriminalized.description} before decriminalization date "
                f"({long_date(decriminalized.cutoff_date)})"
            )
            return ReliefOption(**draft)
        elif decriminalized is not None:
            draft["reasons"].append(
                f"Offense occurred on or after the decriminalization date ({long_date(decriminalized.cutoff_date)})"
            )
            draft["issues"].append(
                _issue(
                    "OFFENSE_AFTER_CUTOFF",
                    "Offense date is not before the decriminalization cutoff",
                    field="userCase.offenseDate",
                )
            )

        draft["reasons"].append("Does not qualify for automatic expungement")
        return ReliefOption(**draft)

    def _automatic_sealing(
        self, case: UserCase, offense: Optional[OffenseDefinition], rules: JurisdictionRules
    ) -> ReliefOption:
        draft = _draft(
            AUTOMATIC_SEALING,
            "Automatic Sealing",
            "Automatic sealing of eligible records without filing required",
        )
        automatic = dict(
            requirements=["No action required - automatic process"],
            filing_fee=rules.relief_fee(AUTOMATIC_SEALING),
            difficulty="low",
            success_likelihood="high",
        )

        if offense is not None and offense.is_excluded_from(AUTOMATIC_SEALING):
            draft["reasons"].append("Offense type is excluded from automatic sealing")
            draft["issues"].append(_excluded_issue(offense, "automatic sealing"))
            return ReliefOption(**draft)

        if case.outcome is None:
            draft["reasons"].append("Case outcome is required to determine sealing eligibility")
            draft["issues"].append(_issue("MISSING_OUTCOME", "Case outcome missing", field="userCase.outcome"))
            return ReliefOption(**draft)

        if not case.is_conviction:
            draft.update(eligible=True, timeline=rules.sealing_timelines.non_conviction, **automatic)
            draft["reasons"].append("Non-conviction record qualifies for automatic sealing")
            return ReliefOption(**draft)

        years = rules.waiting_periods.automatic_sealing_misdemeanor
        severity = offense.severity if offense else None
        if severity == "misdemeanor":
            if self._waiting_period_met(case, years, draft):
                draft.update(
                    eligible=True, timeline=rules.sealing_timelines.misdemeanor_conviction, **automatic
                )
                draft["reasons"].append(f"Misdemeanor conviction with {years}-year waiting period completed")
        elif severity == "felony":
            draft["reasons"].append("Felony convictions not eligible for automatic sealing")
            draft["issues"].append(
                _issue("INELIGIBLE_SEVERITY", "Felony convictions are excluded", field="userCase.offense")
            )
        elif severity == "infraction":
            draft["reasons"].append("Only misdemeanor convictions qualify for automatic sealing")
            draft["issues"].append(
                _issue("INELIGIBLE_SEVERITY", "Infraction convictions are not covered", field="userCase.offense")
            )
        else:
            draft["reasons"].append("Unable to determine offense severity")
            draft["issues"].append(_unknown_offense_issue())
        return ReliefOption(**draft)

    def _motion_expungement(self, factors: AdditionalFactors, rules: JurisdictionRules) -> ReliefOption:
        draft = _draft(
            MOTION_EXPUNGEMENT,
            "Motion for Expungement (Actual Innocence)",
            "Court-ordered expungement based on actual innocence",
            eligible=True,
            reasons=["Available if you can prove actual innocence"],
            requirements=[
                "Prove by preponderance of evidence that offense did not occur OR was committed by someone else",
                f"File motion with {rules.court_name}",
                "No waiting period required",
            ],
            timeline="Court must decide within 180 days",
            difficulty="high",
            success_likelihood="low_without_new_evidence",
            filing_fee=rules.relief_fee(MOTION_EXPUNGEMENT, 50),
            attorney_recommended=True,
        )
        if factors.seeking_actual_innocence:
            draft["reasons"].append("You indicated belief in actual innocence - this may be a viable option")
            draft["success_likelihood"] = "medium"
        return ReliefOption(**draft)

    def _motion_sealing(
        self, case: UserCase, offense: Optional[OffenseDefinition], rules: JurisdictionRules
    ) -> ReliefOption:
        draft = _draft(
            MOTION_SEALING,
            "Motion for Sealing (Interests of Justice)",
            "Court-ordered sealing based on interests of justice standard",
            timeline="Court typically decides within 6 months",
            filing_fee=rules.relief_fee(MOTION_SEALING, 50),
            attorney_recommended=True,
        )
        filing = f"File motion with {rules.court_name}"

        if offense is not None and offense.is_excluded_from(MOTION_SEALING):
            draft["reasons"].append("Offense type excluded from all sealing relief")
            draft["issues"].append(_excluded_issue(offense, "all sealing relief"))
            return ReliefOption(**draft)

        if case.outcome is None:
            draft["reasons"].append("Case outcome is required to determine sealing eligibility")
            draft["issues"].append(_issue("MISSING_OUTCOME", "Case outcome missing", field="userCase.outcome"))
            return ReliefOption(**draft)

        if not case.is_conviction:
            if offense is not None and offense.is_excluded_from(AUTOMATIC_SEALING):
                draft.update(
                    eligible=True,
                    requirements=[
                        "Prove sealing serves interests of justice",
                        filing,
                        "No waiting period for non-convictions",
                    ],
                    difficulty="medium",
                    success_likelihood="high",
                )
                draft["reasons"].append(
                    "Non-conviction record can be sealed by motion even for excluded offense types"
                )
            else:
                draft["reasons"].append("Non-conviction record qualifies for automatic sealing; no motion is needed")
                draft["issues"].append(
                    _issue(
                        "AUTOMATIC_RELIEF_AVAILABLE",
                        "Automatic sealing covers this record",
                        field="userCase.outcome",
                        severity="info",
                    )
                )
            return ReliefOption(**draft)

        severity = offense.severity if offense else None
        periods = rules.waiting_periods
        if severity in ("misdemeanor", "infraction"):
            years = periods.motion_sealing_misdemeanor
            if self._waiting_period_met(case, years, draft):
                draft.update(
                    eligible=True,
                    requirements=[
                        "Prove sealing serves interests of justice",
                        "Demonstrate rehabilitation and community benefit",
                        "Show minimal public safety risk",
                        filing,
                    ],
                    difficulty="medium",
                    success_likelihood="medium",
                )
                draft["reasons"].append(f"Misdemeanor conviction with {years}-year waiting period completed")
        elif severity == "felony" and offense.category == "failure_to_appear":
            years = periods.motion_sealing_fta_felony
            if self._waiting_period_met(case, years, draft):
                draft.update(
                    eligible=True,
                    requirements=[
                        "Prove sealing serves interests of justice",
                        "Limited to failure-to-appear felonies only",
                        filing,
                    ],
                    difficulty="medium",
                    success_likelihood="medium",
                )
                draft["reasons"].append(f"Failure to appear felony with {years}-year waiting period completed")
        elif severity == "felony":
            draft["reasons"].append("Felony convictions not eligible for sealing (except failure to appear)")
            draft["issues"].append(
                _issue("INELIGIBLE_SEVERITY", "Felony convictions are excluded", field="userCase.offense")
            )
        else:
            draft["reasons"].append("Unable to determine offense severity")
            draft["issues"].append(_unknown_offense_issue())
        return ReliefOption(**draft)

    def _special_programs(
        self, case: UserCase, factors: AdditionalFactors, rules: JurisdictionRules
    ) -> List[ReliefOption]:
        programs: List[ReliefOption] = []

        if case.age_at_offense is not None and case.age_at_offense <= rules.youth_age_threshold:
            programs.append(
                ReliefOption(
                    eligible=True,
                    relief_type=YOUTH_REHABILITATION_ACT,
                    name="Youth Rehabilitation Act",
                    description=f"Special consideration for offenses committed under age {rules.youth_age_threshold + 1}",
                    reasons=[
                        f"You were {case.age_at_offense} years old at time of offense, qualifying for YRA consideration"
                    ],
                    requirements=[
                        "File motion citing Youth Rehabilitation Act",
                        "Demonstrate rehabilitation and community benefit",
                        "Show no subsequent serious offenses",
                    ],
                    timeline="6-12 months for court decision",
                    difficulty="medium",
                    success_likelihood="high",
                    filing_fee=rules.relief_fee(YOUTH_REHABILITATION_ACT, 50),
                    attorney_recommended=True,
                )
            )

        if factors.is_trafficking_victim:
            programs.append(
                ReliefOption(
                    eligible=True,
                    relief_type=TRAFFICKING_SURVIVORS,
                    name="Human Trafficking Survivors Relief",
                    description="Special relief for victims of human trafficking",
                    reasons=["You indicated being a victim of human trafficking"],
                    requirements=[
                        "Provide evidence of trafficking victimization",
                        "Show connection between offense and trafficking situation",
                        "File specialized motion with supporting documentation",
                    ],
                    timeline="3-6 months for expedited processing",
                    difficulty="medium",
                    success_likelihood="high",
                    filing_fee=0,
                    attorney_recommended=True,
                )
            )
        return programs

    def _waiting_period_met(self, case: UserCase, years: int, draft: Dict[str, Any]) -> bool:
        """Check sentence completion and the waiting period, recording why not."""
        if case.sentence is not None and not case.sentence.all_completed:
            draft["reasons"].append("All sentence requirements must be completed first")
            draft["issues"].append(
                _issue("SENTENCE_INCOMPLETE", "Sentence not completed", field="userCase.sentence.allCompleted")
            )
            return False

        completion = case.effective_completion_date()
        if completion is None:
            draft["reasons"].append(f"Sentence completion date is needed to start the {years}-year waiting period")
            draft["issues"].append(
                _issue("MISSING_COMPLETION_DATE", "Completion date missing", field="userCase.completionDate")
            )
            return False

        eligible_on = add_years(completion, years)
        if eligible_on <= self.today():
            return True

        draft["reasons"].append(f"{years}-year waiting period not yet completed")
        draft["issues"].append(
            _issue(
                "WAITING_PERIOD_NOT_MET",
                f"Eligible on or after {eligible_on.isoformat()}",
                field="userCase.completionDate",
            )
        )
        draft["estimated_eligibility_date"] = eligible_on
        return False

    def _reasoning(
        self,
        case: UserCase,
        offense: Optional[OffenseDefinition],
        rules: JurisdictionRules,
        eligible: List[ReliefOption],
        notes: List[str],
    ) -> List[str]:
        reasoning = [f"Analyzed case: {case.offense or 'unspecified offense'}"]
        reasoning.append(
            f"Offense date: {case.offense_date.isoformat()}" if case.offense_date else "Offense date: not provided"
        )
        reasoning.append(f"Case outcome: {case.outcome or 'not provided'}")
        if offense is not None:
            reasoning.append(f"Matched offense: {offense.name} ({offense.severity})")
        else:
            reasoning.append("Offense not found in catalog; treating severity as unknown")
        if case.age_at_offense is not None and case.age_at_offense <= rules.youth_age_threshold:
            reasoning.append(
                f"Age at offense ({case.age_at_offense}) qualifies for Youth Rehabilitation Act consideration"
            )
        reasoning.extend(notes)
        if eligible:
            reasoning.append(f"Found {len(eligible)} potential relief option(s)")
        else:
            reasoning.append("No immediate relief options available, but circumstances may change")
        return reasoning

    def _next_steps(self, best: Optional[ReliefOption], resources: Dict[str, Any]) -> List[NextStep]:
        steps: List[NextStep] = []

        def resource(key: str) -> List[Resource]:
            return [Resource(**resources[key])] if key in resources else []

        if best is None:
            steps.append(
                NextStep(
                    id="wait_or_consult",
                    title="Consider Future Options",
                    description="While no immediate relief is available, circumstances may change over time.",
                    priority="medium",
                    timeframe="Ongoing",
                    resources=resource("legal_aid"),
                )
            )
        elif best.relief_type.startswith("automatic"):
            steps.append(
                NextStep(
                    id="monitor_automatic",
                    title="Monitor Automatic Processing",
                    description="Your case appears eligible for automatic processing. Monitor your record periodically.",
                    priority="high",
                    timeframe=best.timeline or "Within 1-2 years",
                    resources=resource("court_records"),
                )
            )
        else:
            steps.append(
                NextStep(
                    id="file_motion",
                    title="File Court Motion",
                    description=f"Prepare and file a {best.name} with the court.",
                    priority="high",
                    timeframe="Next 30-60 days",
                    resources=resource("court_forms"),
                )
            )

        if best is not None and best.attorney_recommended:
            steps.append(
                NextStep(
                    id="consult_attorney",
                    title="Consult with Attorney",
                    description="Consider consulting with an attorney experienced in criminal record relief.",
                    priority="high",
                    timeframe="Before filing",
                    resources=resource("attorney_directory"),
                )
            )

        steps.append(
            NextStep(
                id="gather_documents",
                title="Gather Required Documents",
                description="Collect all necessary documentation for your case.",
                priority="medium",
                timeframe="Before filing",
            )
        )
        return steps

    @staticmethod
    def _required_documents(best: Optional[ReliefOption]) -> List[str]:
        if best is None:
            return []
        documents = [
            "Certified copy of criminal record",
            "Proof of sentence completion",
            "Court case documents",
        ]
        if "motion" in best.relief_type:
            documents.extend(["Motion filing forms", "Supporting affidavits"])
        return documents

    def _degraded(self, reasons: List[str], case_id: str = "") -> EligibilityResult:
        logger.warning("Eligibility assessment degraded", extra={"case_id": case_id, "reasons": reasons})
        return EligibilityResult(
            best_option=None,
            all_options=[],
            reasoning=[*reasons, "No relief options could be evaluated; review the case details and try again"],
            next_steps=[
                NextStep(
                    id="review_case_details",
                    title="Review Case Details",
                    description="Check the offense, dates, outcome and jurisdiction entered for this case.",
                    priority="high",
                    timeframe="Now",
                ),
                NextStep(
                    id="consult_attorney",
                    title="Consult with Attorney",
                    description="An attorney or legal aid provider can review your record directly.",
                    priority="medium",
                    timeframe="Before filing",
                ),
            ],
            estimated_timeline="No immediate timeline available",
            required_documents=[],
        )

    @staticmethod
    def _coerce_case(user_case: CaseInput) -> UserCase:
        if isinstance(user_case, UserCase):
            return user_case
        return UserCase.model_validate(dict(user_case or {}))

    @staticmethod
    def _coerce_factors(additional_factors: FactorsInput, notes: List[str]) -> AdditionalFactors:
        if isinstance(additional_factors, AdditionalFactors):
            return additional_factors
        try:
            return AdditionalFactors.model_validate(dict(additional_factors or {}))
        except (TypeError, ValueError):
            notes.append("Additional factors could not be read; defaults were assumed")
            return AdditionalFactors()


def _excluded_issue(offense: OffenseDefinition, scope: str) -> ValidationIssue:
    return _issue("EXCLUDED_OFFENSE", f"{offense.name} is excluded from {scope}", field="userCase.offense")


def _unknown_offense_issue() -> ValidationIssue:
    return _issue(
        "UNKNOWN_OFFENSE",
        "Offense could not be matched to a known severity",
        field="userCase.offense",
        severity="warning",
    )


def _error_location(error: Mapping[str, Any]) -> str:
    return ".".join(str(part) for part in error.get("loc", ())) or "userCase"


def _raw_case_id(user_case: CaseInput) -> str:
    if isinstance(user_case, Mapping):
        return str(user_case.get("id", ""))
    return ""
