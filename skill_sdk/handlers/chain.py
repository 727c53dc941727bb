# =============================================================================
# Handler Chains
# =============================================================================
# chain() folds an ordered list of partial handlers over an accumulator.
# Each partial handler is called as handler(ctx, state) with a read-only
# view of everything accumulated so far, and returns one of:
#
#   None               continue
#   dict with "code"   stop; treated as a status
#   other dict         merge into the accumulator, continue
#   HandlerStatus      stop; the chain's result is this status
#   Link(state, status) merge, then stop if status is set
#
# Keys are added or overwritten, never removed. The accumulator after the
# last handler that ran is available as ctx.chain.
#
# Usage:
#   on_push = chain(
#       guard(when_parameter("enabled")),
#       lambda ctx, state: {"sha": ctx.data["commit"]["sha"]},
#       lambda ctx, state: success(f"Checked {state['sha']}"),
#   )
# =============================================================================

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from skill_sdk.handlers.status import HandlerStatus, success

ChainedHandler = Callable[[Any, Mapping[str, Any]], Any]
When = Callable[[Any], Optional[HandlerStatus]]


@dataclass
class Link:
    """State updates plus an optional short-circuit status."""
    state: Dict[str, Any] = field(default_factory=dict)
    status: Optional[HandlerStatus] = None


def _split(result: Any) -> Tuple[Dict[str, Any], Optional[HandlerStatus]]:
    if result is None:
        return {}, None
    if isinstance(result, Link):
        return dict(result.state or {}), result.status
    if isinstance(result, HandlerStatus):
        return {}, result
    if isinstance(result, dict):
        # status dict
        if "code" in result:
            return {}, HandlerStatus.coerce(result)
        return result, None
    raise TypeError(f"Chained handler returned unsupported {type(result).__name__}")


def chain(*handlers: ChainedHandler) -> Callable[[Any], Optional[HandlerStatus]]:
    """Compose partial handlers into one handler that stops at the first status."""
    def chained(ctx):
        state: Dict[str, Any] = {}
        ctx.chain = MappingProxyType({})
        for handler in handlers:
            updates, status = _split(handler(ctx, MappingProxyType(dict(state))))
            state.update(updates)
            ctx.chain = MappingProxyType(dict(state))
            if status is not None:
                return status
        return None

    return chained


# =============================================================================
# GUARDS
# =============================================================================

def when_all(*whens: When) -> When:
    """First guard that returns a status wins."""
    def when(ctx):
        for w in whens:
            result = w(ctx)
            if result:
                return result
        return None
    return when


def when_parameter(name: str, message: str = None) -> When:
    """Stop with a hidden success unless configuration parameter name is True."""
    def when(ctx):
        configuration = ctx.configuration
        parameters = getattr(configuration, "parameters", None) or {}
        if parameters.get(name) is not True:
            return success(message or f"Configuration parameter _{name}_ not enabled").hidden()
        return None
    return when


def guard(when: When) -> ChainedHandler:
    """Use a guard as the first link of a chain."""
    def link(ctx, state):
        return when(ctx)
    return link
