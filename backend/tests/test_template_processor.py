from datetime import date

import pytest

from clearpath.schemas.case import AdditionalFactors, Address, PersonalInfo, Sentence, UserCase
from clearpath.schemas.documents import DocumentField, DocumentTemplate, GenerationRequest, TemplateContext
from clearpath.templating.processor import SecureTemplateProcessor
from clearpath.templating.registry import TemplateNotFoundError, TemplateRegistry
from clearpath.templating.security import ValueSanitizer


class CountingSanitizer(ValueSanitizer):
    def __init__(self, max_field_length: int = 1000) -> None:
        super().__init__(max_field_length)
        self.calls = 0

    def sanitize(self, value: str) -> str:
        self.calls += 1
        return super().sanitize(value)


class ExplodingSanitizer(ValueSanitizer):
    def sanitize(self, value: str) -> str:
        raise RuntimeError("sanitizer failure")


def make_template(body: str, template_id: str = "t1", **overrides) -> DocumentTemplate:
    values = dict(
        id=template_id,
        name="Test Petition",
        document_type="petition_expungement",
        jurisdiction="dc",
        required_fields=[
            DocumentField(id="firstName", name="First Name"),
            DocumentField(id="attorneyName", name="Attorney", required=False),
        ],
        template=body,
    )
    values.update(overrides)
    return DocumentTemplate(**values)


def make_case(**overrides) -> UserCase:
    values = dict(
        id="case-42",
        offense="Simple Assault",
        offense_date=date(2014, 1, 15),
        outcome="dismissed",
        age_at_offense=30,
        jurisdiction="dc",
    )
    values.update(overrides)
    return UserCase(**values)


def make_context(**overrides) -> TemplateContext:
    values = dict(
        user_case=make_case(),
        additional_factors=AdditionalFactors(),
        personal_info=PersonalInfo(
            first_name="Jane",
            last_name="Doe",
            date_of_birth=date(1990, 3, 4),
            ssn="123-45-6789",
            address=Address(street="1 Main St", city="Washington", state="DC", zip_code="20001"),
        ),
        current_date=date(2025, 6, 1),
    )
    values.update(overrides)
    return TemplateContext(**values)


@pytest.fixture()
def processor(settings, clock):
    return SecureTemplateProcessor(TemplateRegistry(), settings, now=clock)


def test_renders_whitelisted_values(processor):
    template = make_template(
        "{{firstName}} {{lastName}} born {{dateOfBirth}} of {{address}} on {{userCase.offenseDate}} ({{jurisdiction}})"
    )
    assert processor.render(template, make_context()) == (
        "Jane Doe born March 4, 1990 of 1 Main St, Washington, DC 20001 on January 15, 2014 (DC)"
    )


def test_unlisted_variable_is_blocked_and_recorded(processor):
    rendered = processor.render(make_template("secret={{process.env.SECRET}}"), make_context())
    assert rendered == "secret=[BLOCKED_VARIABLE]"

    (event,) = processor.security_events.events()
    assert event.kind == "blocked_variable"
    assert event.path == "process.env.SECRET"
    assert event.template_id == "t1"


def test_dangerous_variable_is_blocked_by_pattern(processor):
    rendered = processor.render(make_template("{{eval(1)}}|{{ssn}}"), make_context())
    assert rendered == "[BLOCKED_PATTERN]|[BLOCKED_VARIABLE]"
    assert [event.kind for event in processor.security_events.events()] == ["blocked_pattern", "blocked_variable"]


def test_whitelisted_variable_without_value_is_left_verbatim(processor):
    rendered = processor.render(make_template("[{{middleName}}] {{userCase.completionDate}}"), make_context())
    assert rendered == "[{{middleName}}] {{userCase.completionDate}}"


def test_conditional_sections(processor):
    template = make_template("{{#if userCase.outcome === 'convicted'}}convicted of{{else}}charged with{{/if}}")
    assert processor.render(template, make_context()) == "charged with"

    convicted = make_context(user_case=make_case(outcome="convicted"))
    assert processor.render(template, convicted) == "convicted of"

    missing = make_context(user_case=make_case(outcome=None))
    assert processor.render(template, missing) == "charged with"


def test_negated_and_boolean_conditions(processor):
    template = make_template(
        "{{#if additionalFactors.isTraffickingVictim === true}}T{{/if}}"
        "{{#if userCase.outcome !== 'convicted'}}N{{/if}}"
        "{{#if middleName != 'x'}}M{{/if}}"
        "{{#if secret.value == 'x'}}S{{else}}s{{/if}}"
    )
    context = make_context(additional_factors=AdditionalFactors(is_trafficking_victim=True))
    assert processor.render(template, context) == "TNs"


def test_boolean_literal_does_not_match_string_value(processor):
    template = make_template("{{#if caseNumber == true}}yes{{else}}no{{/if}}")
    context = make_context(custom_fields={"caseNumber": "true"})
    assert processor.render(template, context) == "no"


def test_nested_sentence_condition(processor):
    template = make_template(
        "{{#if userCase.outcome === 'convicted'}}"
        "{{#if userCase.sentence.allCompleted === true}}done{{else}}pending{{/if}}"
        "{{/if}}"
    )
    completed = make_case(outcome="convicted", sentence=Sentence(all_completed=True))
    assert processor.render(template, make_context(user_case=completed)) == "done"
    pending = make_case(outcome="convicted", sentence=Sentence(all_completed=False))
    assert processor.render(template, make_context(user_case=pending)) == "pending"


def test_values_are_sanitized(settings, clock):
    processor = SecureTemplateProcessor(TemplateRegistry(), settings.model_copy(update={"max_field_length": 12}), now=clock)
    template = make_template("{{userCase.offense}}")

    tagged = make_context(user_case=make_case(offense="<b>Theft</b>"))
    assert processor.render(template, tagged) == "Theft"

    script = make_context(user_case=make_case(offense="javascript:alert(1)"))
    assert processor.render(template, script) == "[BLOCKED]ale...[TRUNCATED]"

    long_value = make_context(user_case=make_case(offense="A" * 20))
    assert processor.render(template, long_value) == "A" * 12 + "...[TRUNCATED]"


def test_system_fields_override_custom_fields(processor):
    template = make_template("{{currentDate}} {{firstName}} {{filingDate}}")
    context = make_context(custom_fields={"currentDate": "forged", "firstName": "Mallory", "filingDate": "soon"})
    assert processor.render(template, context) == "June 1, 2025 Jane soon"


def test_cache_hit_is_identical_and_skips_sanitizer(settings, clock):
    sanitizer = CountingSanitizer()
    processor = SecureTemplateProcessor(TemplateRegistry(), settings, sanitizer=sanitizer, now=clock)
    template = make_template("{{firstName}} {{lastName}}")
    context = make_context()

    first = processor.render(template, context)
    calls = sanitizer.calls
    assert calls == 2

    second = processor.render(template, context)
    assert second == first
    assert sanitizer.calls == calls

    processor.render(template, make_context(custom_fields={"caseNumber": "2014-CF-1"}))
    assert sanitizer.calls == calls + 2


def test_cache_entries_expire(settings, clock):
    sanitizer = CountingSanitizer()
    processor = SecureTemplateProcessor(TemplateRegistry(), settings, sanitizer=sanitizer, now=clock)
    template = make_template("{{firstName}}")

    processor.render(template, make_context())
    clock.advance(minutes=31)
    processor.render(template, make_context())
    assert sanitizer.calls == 2


def test_validate_template(processor):
    assert processor.validate(make_template("Hello {{firstName}}")).is_valid

    unsafe = processor.validate(make_template("<script>alert(1)</script>"))
    assert not unsafe.is_valid
    assert unsafe.errors[0].code == "SECURITY_VIOLATION"

    incomplete = processor.validate(make_template("body", name=""))
    assert [issue.code for issue in incomplete.errors] == ["INVALID_TEMPLATE"]

    unbalanced = processor.validate(make_template("{{#if a == 'b'}}open"))
    assert unbalanced.is_valid
    assert "Template has unbalanced conditional blocks" in unbalanced.warnings

    complex_template = processor.validate(make_template("x" * 10_001))
    assert "Template is complex and may have slower generation times" in complex_template.warnings


def build_processor(settings, clock, *templates, sanitizer=None):
    return SecureTemplateProcessor(TemplateRegistry(templates), settings, sanitizer=sanitizer, now=clock)


def make_request(**overrides) -> GenerationRequest:
    values = dict(
        template_id="t1",
        user_case=make_case(),
        additional_factors=AdditionalFactors(),
        personal_info=PersonalInfo(first_name="Jane", last_name="Doe"),
        custom_fields={"courtName": "Superior Court of the District of Columbia"},
    )
    values.update(overrides)
    return GenerationRequest(**values)


def test_generate_document(settings, clock):
    processor = build_processor(settings, clock, make_template("Petitioner {{firstName}} <{{courtName}}>"))
    result = processor.generate_document(make_request())

    assert result.success
    document = result.document
    assert document.title == "Test Petition - Simple Assault - 2014"
    assert document.content == "Petitioner Jane <Superior Court of the District of Columbia>"
    assert "&lt;Superior Court of the District of Columbia&gt;" in document.html_content
    assert document.status == "generated"
    assert document.metadata.case_id == "case-42"
    assert document.metadata.court_name == "Superior Court of the District of Columbia"
    assert result.warnings == []
    assert processor.audit_log[-1].document_id == document.id


def test_conviction_petition_requires_attorney_review(settings, clock):
    processor = build_processor(settings, clock, make_template("body"))
    result = processor.generate_document(make_request(user_case=make_case(outcome="convicted", age_at_offense=16)))

    assert result.document.status == "review_required"
    assert result.document.metadata.attorney_review_required is True
    assert result.warnings == [
        "This document requires attorney review before filing",
        "Special juvenile procedures may apply",
    ]


def test_felony_offense_requires_attorney_review(settings, clock):
    processor = build_processor(settings, clock, make_template("body", document_type="proposed_order"))
    result = processor.generate_document(make_request(user_case=make_case(offense="Felony theft")))
    assert result.document.status == "review_required"


def test_generate_document_request_validation(settings, clock):
    processor = build_processor(settings, clock, make_template("body"))
    result = processor.generate_document(GenerationRequest(template_id="", user_case=None))
    assert not result.success
    assert [issue.code for issue in result.errors] == ["MISSING_TEMPLATE_ID", "MISSING_USER_CASE"]
    assert result.document is None

    hostile = processor.generate_document(make_request(custom_fields={"caseNumber": "<script>x</script>"}))
    assert [issue.code for issue in hostile.errors] == ["INVALID_INPUT"]
    assert hostile.errors[0].field == "caseNumber"


def test_generate_document_unknown_template(settings, clock):
    processor = build_processor(settings, clock)
    result = processor.generate_document(make_request(template_id="missing"))
    assert [issue.code for issue in result.errors] == ["TEMPLATE_NOT_FOUND"]


def test_internal_failure_returns_no_partial_output(settings, clock):
    processor = build_processor(settings, clock, make_template("{{firstName}}"), sanitizer=ExplodingSanitizer())
    result = processor.generate_document(make_request())
    assert not result.success
    assert result.document is None
    assert [issue.code for issue in result.errors] == ["DOCUMENT_GENERATION_ERROR"]


def test_preview_truncates_long_content(settings, clock):
    processor = build_processor(settings, clock, make_template("x" * 600), make_template("short", template_id="t2"))
    preview = processor.preview(make_request())
    assert preview == "x" * 500 + "..."
    assert processor.preview(make_request(template_id="t2")) == "short"

    with pytest.raises(TemplateNotFoundError):
        processor.preview(make_request(template_id="missing"))


def test_required_fields(settings, clock):
    processor = build_processor(settings, clock, make_template("body"))
    assert [field.id for field in processor.required_fields("t1")] == ["firstName"]
    with pytest.raises(TemplateNotFoundError):
        processor.required_fields("missing")


def test_security_event_log_is_bounded(settings, clock):
    processor = SecureTemplateProcessor(
        TemplateRegistry(), settings.model_copy(update={"event_log_capacity": 3}), now=clock
    )
    processor.render(make_template("{{a1}}{{a2}}{{a3}}{{a4}}{{a5}}"), make_context())
    assert [event.path for event in processor.security_events.events()] == ["a3", "a4", "a5"]


def test_missing_required_field_blocks_generation(settings, clock):
    template = make_template(
        "{{firstName}} born {{dateOfBirth}}",
        required_fields=[
            DocumentField(id="firstName", name="First Name"),
            DocumentField(id="dateOfBirth", name="Date of Birth", type="date"),
            DocumentField(id="attorneyName", name="Attorney", required=False),
        ],
    )
    processor = build_processor(settings, clock, template)

    result = processor.generate_document(make_request())
    assert not result.success
    assert result.document is None
    assert [(issue.field, issue.code) for issue in result.errors] == [("dateOfBirth", "MISSING_REQUIRED_FIELD")]
    assert len(processor.audit_log) == 0

    blank = processor.generate_document(
        make_request(personal_info=PersonalInfo(first_name=" ", last_name="Doe", date_of_birth=date(1990, 3, 4)))
    )
    assert [issue.field for issue in blank.errors] == ["firstName"]

    complete = processor.generate_document(
        make_request(personal_info=PersonalInfo(first_name="Jane", last_name="Doe", date_of_birth=date(1990, 3, 4)))
    )
    assert complete.success
    assert complete.document.content == "Jane born March 4, 1990"
