import html
import logging
from collections import deque
from datetime import date, datetime, timedelta, timezone
from hashlib import sha256
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from pydantic import BaseModel, Field

from clearpath.core.config import Settings
from clearpath.core.dates import long_date
from clearpath.schemas.case import Address
from clearpath.schemas.documents import (
    DocumentField,
    DocumentMetadata,
    DocumentTemplate,
    GeneratedDocument,
    GenerationRequest,
    GenerationResult,
    TemplateContext,
)
from clearpath.schemas.eligibility import ValidationIssue, ValidationResult
from clearpath.templating.cache import GenerationCache, make_cache_key, time_bucket
from clearpath.templating.parser import Condition, Conditional, Node, Text, Variable, is_balanced, parse
from clearpath.templating.registry import TemplateNotFoundError, TemplateRegistry
from clearpath.templating.security import (
    ALLOWED_VARIABLES,
    BLOCKED_PATTERN,
    BLOCKED_VARIABLE,
    SecurityEventLog,
    ValueSanitizer,
    contains_blocked_pattern,
    contains_template_injection,
)

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 500
MAX_TEMPLATE_LENGTH = 10_000
MAX_TEMPLATE_FIELDS = 50
JUVENILE_AGE = 18
REVIEWED_PETITION_TYPES = frozenset(("petition_expungement", "petition_sealing"))
ADDRESS_KEYS = frozenset(("street", "city", "state", "zipCode"))

_MISSING = object()

HTML_DOCUMENT = """<!DOCTYPE html>
<html>
  <head>
    <title>{title}</title>
    <style>
      body {{ font-family: 'Times New Roman', serif; line-height: 1.6; margin: 40px; }}
      .header {{ text-align: center; margin-bottom: 30px; }}
      .content {{ white-space: pre-wrap; }}
    </style>
  </head>
  <body>
    <div class="header"><h1>{title}</h1></div>
    <div class="content">{content}</div>
  </body>
</html>
"""


class AuditEntry(BaseModel):
    action: str
    document_id: str
    template_id: str
    timestamp: datetime
    details: Dict[str, Any] = Field(default_factory=dict)


def _error(field: str, message: str, code: str) -> ValidationIssue:
    return ValidationIssue(field=field, message=message, code=code, severity="error")


def _resolve(namespace: Mapping[str, Any], path: str) -> Any:
    current: Any = namespace
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return _MISSING
        current = current[key]
    return _MISSING if current is None else current


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _display_text(value: Any) -> str:
    if isinstance(value, datetime):
        return long_date(value.date())
    if isinstance(value, date):
        return long_date(value)
    if isinstance(value, Mapping):
        if set(value) <= ADDRESS_KEYS:
            return Address.model_validate(value).one_line()
        return ", ".join(_display_text(item) for item in value.values() if item not in (None, ""))
    return _scalar_text(value)


class SecureTemplateProcessor:
    """Renders document templates with whitelisted variables and sanitized values."""

    def __init__(
        self,
        registry: TemplateRegistry,
        settings: Settings,
        sanitizer: Optional[ValueSanitizer] = None,
        cache: Optional[GenerationCache] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.registry = registry
        self.settings = settings
        self._now = now
        self.sanitizer = sanitizer or ValueSanitizer(max_field_length=settings.max_field_length)
        self.cache = cache or GenerationCache(
            max_size=settings.cache_max_size,
            ttl=timedelta(minutes=settings.cache_ttl_minutes),
            now=now,
        )
        self.security_events = SecurityEventLog(capacity=settings.event_log_capacity, now=now)
        self.audit_log: Deque[AuditEntry] = deque(maxlen=settings.event_log_capacity)

    def render(self, template: DocumentTemplate, context: TemplateContext) -> str:
        content, _ = self._render(template, context)
        return content

    def _render(self, template: DocumentTemplate, context: TemplateContext) -> Tuple[str, bool]:
        key = self._cache_key(template, context)
        cached = self.cache.get(key)
        if cached is not None:
            return cached, True

        namespace = self._namespace(context)
        parts: List[str] = []
        self._render_nodes(parse(template.template), namespace, template.id, parts)
        content = "".join(parts)
        self.cache.put(key, content)
        return content, False

    def _cache_key(self, template: DocumentTemplate, context: TemplateContext) -> str:
        context_digest = sha256(context.model_dump_json(by_alias=True).encode("utf-8")).hexdigest()
        case_id = context.user_case.id if context.user_case is not None else ""
        return make_cache_key(
            self.settings.cache_salt,
            {
                "templateId": template.id,
                "version": template.version,
                "caseId": case_id,
                "customFields": context.custom_fields,
                "context": context_digest,
                "bucket": time_bucket(self._now(), self.settings.cache_bucket_minutes),
            },
        )

    def _namespace(self, context: TemplateContext) -> Dict[str, Any]:
        namespace: Dict[str, Any] = dict(context.custom_fields)
        if context.personal_info is not None:
            namespace.update(
                context.personal_info.model_dump(by_alias=True, exclude_none=True, exclude={"ssn"})
            )

        current_date = context.current_date or self._now().date()
        namespace["currentDate"] = current_date
        namespace.setdefault("filingDate", current_date)
        if context.court_name:
            namespace["courtName"] = context.court_name
        if context.user_case is not None:
            namespace["userCase"] = context.user_case.model_dump(by_alias=True)
            namespace["jurisdiction"] = context.user_case.jurisdiction.upper()
        if context.additional_factors is not None:
            namespace["additionalFactors"] = context.additional_factors.model_dump(by_alias=True)
        return namespace

    def _render_nodes(
        self,
        nodes: Sequence[Node],
        namespace: Mapping[str, Any],
        template_id: str,
        parts: List[str],
    ) -> None:
        for node in nodes:
            if isinstance(node, Text):
                parts.append(node.text)
            elif isinstance(node, Variable):
                parts.append(self._render_variable(node, namespace, template_id))
            elif isinstance(node, Conditional):
                branch = node.body if self._evaluate(node.condition, namespace) else node.orelse
                self._render_nodes(branch, namespace, template_id, parts)

    def _render_variable(self, node: Variable, namespace: Mapping[str, Any], template_id: str) -> str:
        if contains_blocked_pattern(node.path):
            self.security_events.record("blocked_pattern", node.path, template_id)
            return BLOCKED_PATTERN
        if node.path not in ALLOWED_VARIABLES:
            self.security_events.record("blocked_variable", node.path, template_id)
            return BLOCKED_VARIABLE

        value = _resolve(namespace, node.path)
        if value is _MISSING:
            return node.raw
        return self.sanitizer.sanitize(_display_text(value))

    @staticmethod
    def _evaluate(condition: Optional[Condition], namespace: Mapping[str, Any]) -> bool:
        if condition is None or condition.path not in ALLOWED_VARIABLES:
            return False
        actual = _resolve(namespace, condition.path)
        if actual is _MISSING:
            return False

        if isinstance(condition.literal, bool):
            matches = isinstance(actual, bool) and actual is condition.literal
        else:
            matches = _scalar_text(actual) == condition.literal
        return matches if condition.operator in ("==", "===") else not matches

    def validate(self, template: DocumentTemplate) -> ValidationResult:
        errors: List[ValidationIssue] = []
        warnings: List[str] = []

        if not template.id or not template.name or not template.template:
            errors.append(_error("template", "Template missing required fields", "INVALID_TEMPLATE"))
        if contains_template_injection(template.template):
            errors.append(_error("template", "Template contains potentially unsafe content", "SECURITY_VIOLATION"))
        if not is_balanced(template.template):
            warnings.append("Template has unbalanced conditional blocks")
        if len(template.template) > MAX_TEMPLATE_LENGTH or len(template.required_fields) > MAX_TEMPLATE_FIELDS:
            warnings.append("Template is complex and may have slower generation times")

        return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

    def required_fields(self, template_id: str) -> List[DocumentField]:
        return [field for field in self.registry.get(template_id).required_fields if field.required]

    def generate_document(self, request: GenerationRequest) -> GenerationResult:
        try:
            errors = self._validate_request(request)
            if errors:
                return GenerationResult(success=False, errors=errors)

            try:
                template = self.registry.get(request.template_id)
            except TemplateNotFoundError:
                return GenerationResult(
                    success=False,
                    errors=[_error("templateId", "Template not found", "TEMPLATE_NOT_FOUND")],
                )

            context = self._context(request)
            missing = self._missing_required_fields(template, context)
            if missing:
                return GenerationResult(success=False, errors=missing)

            content, cached = self._render(template, context)
            return self._build_document(template, request, context, content, cached)
        except Exception:
            logger.exception("Document generation failed", extra={"template_id": request.template_id})
            return GenerationResult(
                success=False,
                errors=[
                    _error(
                        "general",
                        "Document generation failed due to an internal error",
                        "DOCUMENT_GENERATION_ERROR",
                    )
                ],
            )

    def preview(self, request: GenerationRequest) -> str:
        template = self.registry.get(request.template_id)
        content = self.render(template, self._context(request))
        return content[:PREVIEW_LENGTH] + ("..." if len(content) > PREVIEW_LENGTH else "")

    def requires_attorney_review(self, template: DocumentTemplate, request: GenerationRequest) -> bool:
        user_case = request.user_case
        if user_case is None:
            return False
        if template.document_type in REVIEWED_PETITION_TYPES and user_case.is_conviction:
            return True
        return "felony" in user_case.offense.lower()

    def clear(self) -> None:
        self.cache.clear()
        self.audit_log.clear()

    def _validate_request(self, request: GenerationRequest) -> List[ValidationIssue]:
        errors: List[ValidationIssue] = []
        if not request.template_id:
            errors.append(_error("templateId", "Template ID is required", "MISSING_TEMPLATE_ID"))
        if request.user_case is None or not request.user_case.id:
            errors.append(_error("userCase", "Valid user case is required", "MISSING_USER_CASE"))

        for key, value in request.custom_fields.items():
            if isinstance(value, str) and contains_blocked_pattern(value):
                self.security_events.record("invalid_input", key, request.template_id or None)
                errors.append(
                    _error(key, "Field contains invalid or potentially malicious content", "INVALID_INPUT")
                )
        return errors

    def _missing_required_fields(
        self, template: DocumentTemplate, context: TemplateContext
    ) -> List[ValidationIssue]:
        namespace = self._namespace(context)
        errors: List[ValidationIssue] = []
        for field in template.required_fields:
            if not field.required:
                continue
            value = _resolve(namespace, field.id)
            if value is _MISSING or (isinstance(value, str) and not value.strip()):
                errors.append(_error(field.id, f"{field.name} is required", "MISSING_REQUIRED_FIELD"))
        return errors

    def _context(self, request: GenerationRequest) -> TemplateContext:
        court_name = request.custom_fields.get("courtName")
        return TemplateContext(
            user_case=request.user_case,
            additional_factors=request.additional_factors,
            personal_info=request.personal_info,
            custom_fields=request.custom_fields,
            current_date=self._now().date(),
            court_name=str(court_name) if court_name else None,
        )

    def _build_document(
        self,
        template: DocumentTemplate,
        request: GenerationRequest,
        context: TemplateContext,
        content: str,
        cached: bool,
    ) -> GenerationResult:
        user_case = request.user_case
        review_required = self.requires_attorney_review(template, request)
        created_at = self._now()

        title = f"{template.name} - {user_case.offense}"
        if user_case.offense_date is not None:
            title = f"{title} - {user_case.offense_date.year}"

        document = GeneratedDocument(
            id=uuid4().hex,
            template_id=template.id,
            document_type=template.document_type,
            title=title,
            content=content,
            html_content=HTML_DOCUMENT.format(title=html.escape(template.name), content=html.escape(content)),
            metadata=DocumentMetadata(
                jurisdiction=user_case.jurisdiction,
                case_id=user_case.id,
                court_name=context.court_name,
                attorney_review_required=review_required,
            ),
            status="review_required" if review_required else "generated",
            created_at=created_at,
        )

        warnings: List[str] = []
        if review_required:
            warnings.append("This document requires attorney review before filing")
        if user_case.age_at_offense is not None and user_case.age_at_offense < JUVENILE_AGE:
            warnings.append("Special juvenile procedures may apply")

        self.audit_log.append(
            AuditEntry(
                action="created",
                document_id=document.id,
                template_id=template.id,
                timestamp=created_at,
                details={"jurisdiction": user_case.jurisdiction, "cached": cached},
            )
        )
        logger.info(
            "Document generated",
            extra={
                "template_id": template.id,
                "case_id": user_case.id,
                "status": document.status,
                "cached": cached,
            },
        )
        return GenerationResult(success=True, document=document, warnings=warnings)
