# =============================================================================
# Handler Status
# =============================================================================
# Every invocation publishes exactly one status. code 0 means success,
# anything else failure; visibility "hidden" suppresses user-facing display
# without changing what the code means.
# =============================================================================

from dataclasses import dataclass
from typing import Any, Dict, Optional

HIDDEN = "hidden"


@dataclass
class HandlerStatus:
    """
    Result of a handler invocation.

    Usage:
        return success("Pushed 2 commits").hidden()
        return failure("Missing configuration").abort()
    """
    code: int = 0
    reason: Optional[str] = None
    visibility: Optional[str] = None
    aborted: bool = False

    @property
    def ok(self) -> bool:
        return not self.code

    def hidden(self) -> "HandlerStatus":
        self.visibility = HIDDEN
        return self

    def abort(self) -> "HandlerStatus":
        """Mark this status so a step run stops after the current step."""
        self.aborted = True
        return self

    def to_dict(self) -> Dict[str, Any]:
        result = {"code": self.code}
        if self.reason is not None:
            result["reason"] = self.reason
        if self.visibility is not None:
            result["visibility"] = self.visibility
        return result

    @classmethod
    def coerce(cls, value: Any) -> Optional["HandlerStatus"]:
        """Accept a HandlerStatus, a status dict or None."""
        if value is None or isinstance(value, HandlerStatus):
            return value
        if isinstance(value, dict):
            return cls(
                code=value.get("code") or 0,
                reason=value.get("reason"),
                visibility=value.get("visibility"),
                aborted=bool(value.get("aborted") or value.get("_abort")),
            )
        raise TypeError(f"Cannot convert {type(value).__name__} to HandlerStatus")


def success(reason: str = None) -> HandlerStatus:
    return HandlerStatus(code=0, reason=reason)


def failure(reason: str = None) -> HandlerStatus:
    return HandlerStatus(code=1, reason=reason)


def prepare_status(result: Any, ctx: Any) -> Dict[str, Any]:
    """
    Normalise a handler result (or raised error) into a publishable status.

    Args:
        result: HandlerStatus, status dict, None or an Exception
        ctx: the invocation context; its skill names the generated reason
    """
    skill = ctx.skill
    if isinstance(result, BaseException):
        return {"code": 1, "reason": f"Error invoking {skill.namespace}/{skill.name}"}

    status = HandlerStatus.coerce(result) or HandlerStatus()
    verb = "Successfully" if status.ok else "Unsuccessfully"
    return {
        "visibility": status.visibility,
        "code": status.code or 0,
        "reason": status.reason or f"{verb} invoked {skill.namespace}/{skill.name}",
    }
