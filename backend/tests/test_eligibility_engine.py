from datetime import date

import pytest

from clearpath.catalog.jurisdictions import JurisdictionRegistry
from clearpath.core.dates import add_years, long_date
from clearpath.schemas.case import AdditionalFactors, Sentence, UserCase
from clearpath.schemas.eligibility import ReliefOption
from clearpath.schemas.jurisdiction import SealingTimelines
from clearpath.services.eligibility import RELIEF_PRIORITY, EligibilityEngine, select_best_option

from conftest import TODAY


@pytest.fixture()
def engine(jurisdictions) -> EligibilityEngine:
    return EligibilityEngine(jurisdictions, today=lambda: TODAY)


def make_case(**overrides) -> UserCase:
    values = dict(
        id="case-1",
        offense="Simple Assault",
        offense_date=date(2012, 3, 1),
        outcome="convicted",
        age_at_offense=30,
        jurisdiction="dc",
        sentence=Sentence(probation=12, all_completed=True, completion_date=date(2014, 5, 1)),
        completion_date=date(2014, 5, 1),
    )
    values.update(overrides)
    return UserCase(**values)


def codes(option: ReliefOption):
    return [issue.code for issue in option.issues]


def test_marijuana_before_cutoff_is_automatically_expunged(engine):
    case = make_case(offense="Possession of marijuana", offense_date=date(2014, 6, 1))
    result = engine.assess(case, AdditionalFactors())

    assert result.best_option is not None
    assert result.best_option.relief_type == "automatic_expungement"
    assert result.best_option.filing_fee == 0
    assert result.estimated_timeline == "Should be completed by January 1, 2026"
    assert result.next_steps[0].id == "monitor_automatic"


def test_marijuana_after_cutoff_is_not_expunged(engine):
    case = make_case(offense="Possession of marijuana", offense_date=date(2016, 1, 10))
    result = engine.assess(case)

    option = result.option("automatic_expungement")
    assert option is not None
    assert option.eligible is False
    assert "OFFENSE_AFTER_CUTOFF" in codes(option)
    assert result.best_option.relief_type != "automatic_expungement"


def test_misdemeanor_completed_eleven_years_ago_is_sealed_automatically(engine):
    case = make_case(completion_date=date(2014, 5, 1))
    result = engine.assess(case)

    option = result.option("automatic_sealing")
    assert option.eligible is True
    assert "Misdemeanor conviction with 10-year waiting period completed" in option.reasons
    assert result.best_option.relief_type == "automatic_sealing"


def test_recent_misdemeanor_reports_waiting_period(engine):
    completed = date(2022, 5, 1)
    case = make_case(
        sentence=Sentence(all_completed=True, completion_date=completed),
        completion_date=completed,
    )
    result = engine.assess(case)

    option = result.option("automatic_sealing")
    assert option.eligible is False
    assert "WAITING_PERIOD_NOT_MET" in codes(option)
    assert option.estimated_eligibility_date == add_years(completed, 10)

    motion = result.option("motion_sealing")
    assert motion.eligible is False
    assert motion.estimated_eligibility_date == date(2027, 5, 1)


def test_waiting_period_boundary_is_inclusive(jurisdictions):
    completed = date(2015, 6, 1)
    engine = EligibilityEngine(jurisdictions, today=lambda: date(2025, 6, 1))
    case = make_case(sentence=Sentence(all_completed=True, completion_date=completed), completion_date=completed)
    assert engine.assess(case).option("automatic_sealing").eligible is True

    engine = EligibilityEngine(jurisdictions, today=lambda: date(2025, 5, 31))
    assert engine.assess(case).option("automatic_sealing").eligible is False


def test_excluded_offense_has_no_sealing_but_motion_expungement(engine):
    case = make_case(offense="Murder in the First Degree")
    result = engine.assess(case)

    sealing = [option for option in result.all_options if "sealing" in option.relief_type]
    assert sealing
    assert not any(option.eligible for option in sealing)
    assert all("EXCLUDED_OFFENSE" in codes(option) for option in sealing)
    assert result.option("motion_expungement").eligible is True
    assert result.best_option.relief_type == "motion_expungement"


def test_incomplete_sentence_blocks_time_gated_relief(engine):
    case = make_case(sentence=Sentence(probation=24, all_completed=False))
    result = engine.assess(case)

    for relief_type in ("automatic_sealing", "motion_sealing"):
        option = result.option(relief_type)
        assert option.eligible is False
        assert "SENTENCE_INCOMPLETE" in codes(option)


def test_missing_completion_date_is_reported(engine):
    case = make_case(sentence=None, completion_date=None)
    option = engine.assess(case).option("automatic_sealing")
    assert option.eligible is False
    assert "MISSING_COMPLETION_DATE" in codes(option)


def test_non_conviction_is_sealed_automatically(engine):
    case = make_case(offense="Theft", outcome="dismissed", sentence=None, completion_date=None)
    result = engine.assess(case)

    assert result.option("automatic_sealing").eligible is True
    motion = result.option("motion_sealing")
    assert motion.eligible is False
    assert "AUTOMATIC_RELIEF_AVAILABLE" in codes(motion)
    assert result.best_option.relief_type == "automatic_sealing"


def test_non_conviction_for_fta_can_be_sealed_by_motion(engine):
    case = make_case(offense="Failure to appear", outcome="nolle_prosequi", sentence=None, completion_date=None)
    result = engine.assess(case)

    assert result.option("automatic_sealing").eligible is False
    assert result.option("motion_sealing").eligible is True


def test_felony_conviction_is_not_sealed_except_failure_to_appear(engine):
    burglary = engine.assess(make_case(offense="Burglary"))
    assert "INELIGIBLE_SEVERITY" in codes(burglary.option("automatic_sealing"))
    assert burglary.option("motion_sealing").eligible is False

    fta = engine.assess(make_case(offense="Felony failure to appear", completion_date=date(2016, 1, 1)))
    assert fta.option("automatic_sealing").eligible is False
    assert fta.option("motion_sealing").eligible is True


def test_infraction_conviction_uses_motion_sealing(engine):
    case = make_case(offense="Public urination", completion_date=date(2019, 1, 1))
    result = engine.assess(case)

    assert "INELIGIBLE_SEVERITY" in codes(result.option("automatic_sealing"))
    assert result.option("motion_sealing").eligible is True


def test_unknown_offense_is_flagged(engine):
    result = engine.assess(make_case(offense="Jaywalking"))
    option = result.option("automatic_sealing")
    assert option.eligible is False
    assert "UNKNOWN_OFFENSE" in codes(option)
    assert "Offense not found in catalog; treating severity as unknown" in result.reasoning


def test_youth_rehabilitation_act_offered_for_young_offenders(engine):
    result = engine.assess(make_case(age_at_offense=19))
    option = result.option("youth_rehabilitation_act")
    assert option is not None
    assert option.eligible is True
    assert "You were 19 years old at time of offense, qualifying for YRA consideration" in option.reasons

    assert engine.assess(make_case(age_at_offense=25)).option("youth_rehabilitation_act") is None


def test_trafficking_survivors_option_and_priority_tie(engine):
    case = make_case(offense="Burglary")
    result = engine.assess(case, AdditionalFactors(is_trafficking_victim=True))

    trafficking = result.option("trafficking_survivors")
    assert trafficking.eligible is True
    assert trafficking.filing_fee == 0
    assert result.best_option.relief_type == "motion_expungement"


def test_actual_innocence_improves_motion_expungement_likelihood(engine):
    result = engine.assess(make_case(offense="Burglary"), {"seekingActualInnocence": True})
    option = result.option("motion_expungement")
    assert option.success_likelihood == "medium"
    assert "Motion filing forms" in result.required_documents


def test_best_option_is_highest_priority_eligible(engine):
    result = engine.assess(make_case(age_at_offense=20))
    eligible = result.eligible_options
    assert result.best_option in eligible
    best_rank = RELIEF_PRIORITY[result.best_option.relief_type]
    assert all(best_rank <= RELIEF_PRIORITY[option.relief_type] for option in eligible)
    assert result.next_steps[-1].id == "gather_documents"


def test_all_category_options_always_present(engine):
    result = engine.assess(make_case())
    relief_types = [option.relief_type for option in result.all_options]
    assert relief_types[:4] == [
        "automatic_expungement",
        "automatic_sealing",
        "motion_expungement",
        "motion_sealing",
    ]


def test_unknown_jurisdiction_degrades(engine):
    result = engine.assess(make_case(jurisdiction="zz"))
    assert result.best_option is None
    assert result.all_options == []
    assert "not supported" in result.reasoning[0]
    assert result.estimated_timeline == "No immediate timeline available"


def test_malformed_payload_degrades_without_raising(engine):
    result = engine.assess({"id": "bad-1", "offenseDate": "not-a-date", "outcome": "convicted"})
    assert result.best_option is None
    assert any("offenseDate" in line for line in result.reasoning)
    assert [step.id for step in result.next_steps] == ["review_case_details", "consult_attorney"]


def test_non_mapping_payload_degrades(engine):
    result = engine.assess(["not", "a", "case"])
    assert result.best_option is None
    assert result.reasoning[0] == "Case details could not be read"


def test_unreadable_factors_fall_back_to_defaults(engine):
    result = engine.assess(make_case(), {"additionalInfo": "x" * 3000})
    assert "Additional factors could not be read; defaults were assumed" in result.reasoning
    assert result.best_option is not None


def test_select_best_option_keeps_list_order_on_ties():
    first = ReliefOption(eligible=True, relief_type="motion_expungement", name="a", description="a")
    second = ReliefOption(eligible=True, relief_type="trafficking_survivors", name="b", description="b")
    ineligible = ReliefOption(eligible=False, relief_type="automatic_expungement", name="c", description="c")
    assert select_best_option([first, second, ineligible]) is first
    assert select_best_option([second, first]) is second
    assert select_best_option([ineligible]) is None


def test_date_helpers():
    assert add_years(date(2016, 2, 29), 10) == date(2026, 2, 28)
    assert add_years(date(2014, 5, 1), 10) == date(2024, 5, 1)
    assert long_date(date(2015, 2, 15)) == "February 15, 2015"


def test_theft_described_as_knowing_is_not_classified_as_dui(engine):
    completed = date(2013, 4, 1)
    case = make_case(
        offense="Shoplifting (knowing concealment)",
        sentence=Sentence(all_completed=True, completion_date=completed),
        completion_date=completed,
    )
    option = engine.assess(case).option("automatic_sealing")
    assert option.eligible is True
    assert "Offense type is excluded from automatic sealing" not in option.reasons


def test_sealing_timelines_come_from_jurisdiction_rules(jurisdictions):
    assert engine_timeline(EligibilityEngine(jurisdictions, today=lambda: TODAY)) == (
        "Within 90 days of case termination",
        "Should be completed by January 1, 2027",
    )

    custom = jurisdictions.get("dc").model_copy(
        update={
            "sealing_timelines": SealingTimelines(non_conviction="Within 30 days", misdemeanor_conviction="By 2030")
        }
    )
    engine = EligibilityEngine(JurisdictionRegistry([custom]), today=lambda: TODAY)
    assert engine_timeline(engine) == ("Within 30 days", "By 2030")


def engine_timeline(engine: EligibilityEngine):
    dismissed = make_case(offense="Theft", outcome="dismissed", sentence=None, completion_date=None)
    convicted = make_case(offense="Theft")
    return (
        engine.assess(dismissed).option("automatic_sealing").timeline,
        engine.assess(convicted).option("automatic_sealing").timeline,
    )
