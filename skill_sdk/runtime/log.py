# =============================================================================
# Context Logging
# =============================================================================
# Loggers are bound to one invocation's identifiers and carried on the
# context. Nothing is stored in process-wide state, so concurrent
# invocations in one process cannot overwrite each other's logger.
# =============================================================================

import logging
import os
import re
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple, Union

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


_SEVERITY_LEVELS = {
    Severity.DEBUG: logging.DEBUG,
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


# =============================================================================
# REDACTION
# =============================================================================
# Applied in order; more specific patterns first.
DEFAULT_REDACTION_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\b[A-F0-9]{64}\b"), "[ATOMIST_API_KEY]"),
    (re.compile(r"[1-9][0-9]+-[0-9a-zA-Z]{40}"), "[TWITTER_ACCESS_TOKEN]"),
    (re.compile(r"EAACEdEose0cBA[0-9A-Za-z]+"), "[FACEBOOK_ACCESS_TOKEN]"),
    (re.compile(r"AIza[0-9A-Za-z\-_]{35}"), "[GOOGLE_API_KEY]"),
    (re.compile(r"[0-9]+-[0-9A-Za-z_]{32}\.apps\.googleusercontent\.com"), "[GOOGLE_OAUTH_ID]"),
    (re.compile(r"sk_live_[0-9a-zA-Z]{24}"), "[STRIPE_REGULAR_API_KEY]"),
    (re.compile(r"rk_live_[0-9a-zA-Z]{24}"), "[STRIPE_RESTRICTED_API_KEY]"),
    (re.compile(r"sq0atp-[0-9A-Za-z\-_]{22}"), "[SQUARE_OAUTH_TOKEN]"),
    (re.compile(r"sq0csp-[0-9A-Za-z\-_]{43}"), "[SQUARE_OAUTH_SECRET]"),
    (re.compile(r"SK[0-9a-fA-F]{32}"), "[TWILLIO_API_KEY]"),
    (re.compile(r"key-[0-9a-zA-Z]{32}"), "[MAILGUN_KEY]"),
    (re.compile(r"[0-9a-f]{32}-us[0-9]{1,2}"), "[MAILCHIMP_API_KEY]"),
    (re.compile(r"\bAK[0-9A-Z]{18}\b"), "[AMAZON_ACCESS_KEY]"),
    (re.compile(r"\bAKIA[0-9A-Z]{16}\b"), "[AMAZON_ACCESS_KEY]"),
    (re.compile(r"\b(https?://)(?:v1\.)?[a-f0-9]{40}((?::x-oauth-basic)?@)"), r"\1[GITHUB_TOKEN]\2"),
    (re.compile(r"\b((?:ht|f|sm)tps?://)[^:/?#\[\]@\"<>{}|\\^`\s]+:[^:/?#\[\]@\"<>{}|\\^`\s]+@"),
     r"\1[USER]:[PASSWORD]@"),
]

_SECRET_KEY_PATTERN = re.compile(r"token|password|jwt|url|secret|authorization|key|cert|pass|user", re.IGNORECASE)


def redact(message: Any) -> Any:
    """Remove sensitive values from a log message."""
    if not isinstance(message, str):
        return message
    for pattern, replacement in DEFAULT_REDACTION_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


def hide_string(value: Any) -> Any:
    """Mask all but the first and last character of a string."""
    if not value:
        return value
    if isinstance(value, str):
        if len(value) <= 2:
            return value
        return value[0] + "*" * (len(value) - 2) + value[-1]
    if isinstance(value, list):
        return [hide_string(v) for v in value]
    return value


def replacer(obj: Any) -> Any:
    """Recursively mask secret-looking entries of a payload before logging it."""
    if isinstance(obj, dict):
        masked = {}
        for key, value in obj.items():
            if key == "secrets" and isinstance(value, list):
                masked[key] = [
                    {"uri": s.get("uri"), "value": hide_string(s.get("value"))}
                    for s in value if isinstance(s, dict)
                ]
            elif isinstance(key, str) and _SECRET_KEY_PATTERN.search(key) and isinstance(value, (str, list)):
                masked[key] = hide_string(value)
            else:
                masked[key] = replacer(value)
        return masked
    if isinstance(obj, list):
        return [replacer(v) for v in obj]
    return obj


# =============================================================================
# CONTEXT LOGGER
# =============================================================================

def configured_level() -> int:
    """Log level from SKILL_LOG_LEVEL (default DEBUG)."""
    name = os.environ.get("SKILL_LOG_LEVEL", "DEBUG").upper()
    if name == "WARN":
        name = "WARNING"
    return getattr(logging, name, logging.DEBUG)


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter carrying invocation identifiers and redacting output."""

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any], level: int = logging.DEBUG):
        super().__init__(logger, extra)
        self.level = level

    def process(self, msg, kwargs):
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        prefix = f"[{extra.get('correlation_id', '-')}] " if extra.get("correlation_id") else ""
        return f"{prefix}{redact(str(msg))}", kwargs

    def isEnabledFor(self, level):
        return level >= self.level and self.logger.isEnabledFor(level)


def init_logging(
    identifiers: Dict[str, Any],
    on_complete: Callable[[Callable[[], None]], None],
    name: str = "skill_sdk.invocation",
) -> "ContextLogger":
    """
    Create the logger for one invocation and register its teardown.

    Args:
        identifiers: correlation_id, workspace_id, execution_id, skill_id
        on_complete: the context's teardown registry
        name: underlying logger name
    """
    bound = ContextLogger(logging.getLogger(name), dict(identifiers), configured_level())

    def _close():
        bound.debug("Closing invocation logger")
        for handler in bound.logger.handlers:
            handler.flush()

    on_complete(_close)
    return bound


# =============================================================================
# AUDIT LOG
# =============================================================================

def log_url(workspace_id: str, correlation_id: str) -> str:
    host = "services" if "staging" in os.environ.get("GRAPHQL_ENDPOINT", "") else "com"
    return f"https://go.atomist.{host}/log/{workspace_id}/{correlation_id}"


class AuditLog:
    """
    Execution trace of one invocation.

    Lines are written through the context logger at the mapped level and kept
    in order so callers (and tests) can inspect what happened.
    """

    def __init__(self, context_logger: logging.LoggerAdapter, workspace_id: str = "", correlation_id: str = ""):
        self._logger = context_logger
        self.workspace_id = workspace_id
        self.correlation_id = correlation_id
        self.entries: List[Tuple[Severity, str]] = []
        self.closed = False

    @property
    def url(self) -> str:
        return log_url(self.workspace_id, self.correlation_id)

    def log(self, msg: Union[str, List[str]], severity: Severity = Severity.INFO) -> None:
        messages = msg if isinstance(msg, list) else [msg]
        level = _SEVERITY_LEVELS.get(Severity(severity), logging.INFO)
        for m in messages:
            text = redact(m)
            self.entries.append((Severity(severity), text))
            self._logger.log(level, text)

    def messages(self, severity: Severity = None) -> List[str]:
        return [m for s, m in self.entries if severity is None or s == severity]

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._logger.debug(f"Audit log closed with {len(self.entries)} entries: {self.url}")
