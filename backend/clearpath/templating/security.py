import logging
import re
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, List, Literal, Optional, Tuple

from pydantic import BaseModel

logger = logging.getLogger(__name__)

BLOCKED_VARIABLE = "[BLOCKED_VARIABLE]"
BLOCKED_PATTERN = "[BLOCKED_PATTERN]"
BLOCKED_VALUE = "[BLOCKED]"
TRUNCATION_MARKER = "...[TRUNCATED]"

# The closed set of paths a template may read. Anything else is blocked.
ALLOWED_VARIABLES = frozenset(
    (
        "userCase.id",
        "userCase.offense",
        "userCase.offenseDate",
        "userCase.outcome",
        "userCase.ageAtOffense",
        "userCase.jurisdiction",
        "userCase.completionDate",
        "userCase.statuteNumber",
        "userCase.court",
        "userCase.isTraffickingRelated",
        "userCase.sentence.jailTime",
        "userCase.sentence.probation",
        "userCase.sentence.fines",
        "userCase.sentence.communityService",
        "userCase.sentence.allCompleted",
        "userCase.sentence.completionDate",
        "firstName",
        "lastName",
        "middleName",
        "dateOfBirth",
        "address",
        "address.street",
        "address.city",
        "address.state",
        "address.zipCode",
        "phone",
        "email",
        "additionalFactors.hasOpenCases",
        "additionalFactors.isTraffickingVictim",
        "additionalFactors.seekingActualInnocence",
        "additionalFactors.additionalInfo",
        "currentDate",
        "filingDate",
        "jurisdiction",
        "courtName",
        "attorneyName",
        "attorneyBarNumber",
        "documentTitle",
        "caseNumber",
        "filingFee",
    )
)

BLOCKED_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"<\s*script", re.IGNORECASE),
    re.compile(r"<\s*/\s*script\s*>", re.IGNORECASE),
    re.compile(r"eval\(", re.IGNORECASE),
    re.compile(r"function\(", re.IGNORECASE),
    re.compile(r"=>"),
    re.compile(r"\$\{"),
    re.compile(r"`"),
)

TEMPLATE_INJECTION_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"eval\(", re.IGNORECASE),
    re.compile(r"function\(", re.IGNORECASE),
    re.compile(r"new Function", re.IGNORECASE),
)

TAG_RE = re.compile(r"<[^>]*>")
DISALLOWED_CHARS_RE = re.compile(r"[^\w\s\-.,!?()'\"/@#&:;§$\[\]]")
EXTRA_STRIP_RES = (
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"data:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
)


def contains_blocked_pattern(text: str) -> bool:
    return any(pattern.search(text) for pattern in BLOCKED_PATTERNS)


def contains_template_injection(text: str) -> bool:
    return any(pattern.search(text) for pattern in TEMPLATE_INJECTION_PATTERNS)


class ValueSanitizer:
    """Cleans a resolved value before it is written into a document."""

    def __init__(self, max_field_length: int = 1000) -> None:
        self.max_field_length = max_field_length

    def sanitize(self, value: str) -> str:
        sanitized = value
        for pattern in BLOCKED_PATTERNS:
            sanitized = pattern.sub(BLOCKED_VALUE, sanitized)

        sanitized = TAG_RE.sub("", sanitized).replace("<", "").replace(">", "")
        for pattern in EXTRA_STRIP_RES:
            sanitized = pattern.sub("", sanitized)
        sanitized = DISALLOWED_CHARS_RE.sub("", sanitized).strip()

        if len(sanitized) > self.max_field_length:
            sanitized = sanitized[: self.max_field_length] + TRUNCATION_MARKER
        return sanitized


class SecurityEvent(BaseModel):
    kind: Literal["blocked_variable", "blocked_pattern", "invalid_input"]
    path: str
    template_id: Optional[str] = None
    timestamp: datetime


class SecurityEventLog:
    """Fixed-capacity record of template security events."""

    def __init__(self, capacity: int = 500, now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)) -> None:
        self._events: Deque[SecurityEvent] = deque(maxlen=capacity)
        self._now = now

    def record(self, kind: str, path: str, template_id: Optional[str] = None) -> SecurityEvent:
        event = SecurityEvent(kind=kind, path=path[:200], template_id=template_id, timestamp=self._now())
        self._events.append(event)
        logger.warning(
            "Template security event",
            extra={"event_kind": kind, "path": event.path, "template_id": template_id},
        )
        return event

    def events(self) -> List[SecurityEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def clear(self) -> None:
        self._events.clear()
