"""Structured logging for the engine.

Events are snake_case names with keyword context. Production renders JSON
lines; development renders colored console output. Collected client text
never reaches a log line: the redactor masks it by key name and scrubs
contact details out of any remaining string.
"""

import logging
import re
import sys
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

REDACTED = "[REDACTED]"

# Keys whose values are always masked, compared case-insensitively
SENSITIVE_KEYS: frozenset[str] = frozenset({
    # credentials
    "password",
    "secret",
    "token",
    "api_key",
    "authorization",
    "credentials",
    # client identity
    "email",
    "phone",
    "client_name",
    # free text collected during a session
    "raw_value",
    "field_value",
    "session_notes",
    "detailed_events",
    "negative_cognition",
    "positive_cognition",
    "selected_issue",
})

_STRING_SCRUBBERS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), "[EMAIL]"),
    (re.compile(r"\+?[\d\s\-\(\)]{10,}"), "[PHONE]"),
)


class PIIRedactor:
    """structlog processor masking sensitive keys and contact details.

    Must run before processors that add their own string values (such as
    the timestamp) so those are not mistaken for phone numbers.
    """

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, self._scrub_mapping(event_dict))

    def _scrub_mapping(self, data: dict[str, Any]) -> dict[str, Any]:
        return {
            key: REDACTED if key.lower() in SENSITIVE_KEYS else self._scrub(value)
            for key, value in data.items()
        }

    def _scrub(self, value: Any) -> Any:
        if isinstance(value, str):
            for pattern, replacement in _STRING_SCRUBBERS:
                value = pattern.sub(replacement, value)
            return value
        if isinstance(value, dict):
            return self._scrub_mapping(value)
        if isinstance(value, list):
            return [self._scrub(item) for item in value]
        return value


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    redact_pii: bool = True,
) -> None:
    """Configure structlog for the process.

    Args:
        level: Minimum level name; unknown names fall back to INFO
        format: "json" for production, "console" for development
        redact_pii: Mask client text and contact details
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
    ]
    if redact_pii:
        processors.append(PIIRedactor())
    processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors.append(
        structlog.processors.JSONRenderer()
        if format == "json"
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    min_level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger for a module, usually called with ``__name__``."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
