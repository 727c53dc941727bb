# =============================================================================
# Step Runner
# =============================================================================
# Runs named steps in order with a shared params dict. Each step goes
# Pending -> Skipped, or Pending -> Running -> Completed | Failed. The first
# failure (nonzero code or raised error) ends the run with that status; a
# status marked abort() ends it early whatever its code.
#
# Listeners observe every transition. A listener that raises is logged and
# ignored; it cannot stop a run.
# =============================================================================

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

from skill_sdk.handlers.status import HandlerStatus
from skill_sdk.runtime.log import Severity

logger = logging.getLogger(__name__)


@dataclass
class Step:
    """
    A named unit of work.

    Attributes:
        name: shown in audit lines
        run: fn(ctx, params) returning None or a status
        run_when: optional fn(ctx, params) deciding whether to run
    """
    name: str
    run: Callable[[Any, Dict[str, Any]], Any]
    run_when: Optional[Callable[[Any, Dict[str, Any]], bool]] = None


class StepListener:
    """Observer of step transitions; override what you need."""

    def starting(self, ctx: Any, step: Step, params: Dict[str, Any]) -> None:
        pass

    def skipped(self, ctx: Any, step: Step, params: Dict[str, Any]) -> None:
        pass

    def completed(self, ctx: Any, step: Step, params: Dict[str, Any], result: Optional[HandlerStatus]) -> None:
        pass

    def failed(self, ctx: Any, step: Step, params: Dict[str, Any], error: Any) -> None:
        pass

    def done(self, ctx: Any, params: Dict[str, Any], result: Optional[HandlerStatus]) -> None:
        pass


def _notify(listeners: Sequence[StepListener], event: str, *args: Any) -> None:
    for listener in listeners:
        try:
            getattr(listener, event)(*args)
        except Exception as e:
            logger.warning(f"Step listener {type(listener).__name__}.{event} failed: {e}")


def run_steps(ctx: Any, steps: Sequence[Step], listeners: Sequence[StepListener] = ()) -> Optional[HandlerStatus]:
    """
    Run steps in order until one fails or aborts.

    Returns:
        The failing or aborting step's status, otherwise None
    """
    params: Dict[str, Any] = {}
    outcome: Optional[HandlerStatus] = None

    for step in steps:
        try:
            if step.run_when is not None and not step.run_when(ctx, params):
                ctx.audit.log(f"Skipping step '{step.name}'")
                _notify(listeners, "skipped", ctx, step, params)
                continue

            ctx.audit.log(f"Running step '{step.name}'")
            _notify(listeners, "starting", ctx, step, params)
            result = HandlerStatus.coerce(step.run(ctx, params))
        except Exception as e:
            ctx.audit.log(f"Step '{step.name}' errored with: {e}", Severity.ERROR)
            logger.warning(f"Step '{step.name}' errored with: {e}", exc_info=e)
            _notify(listeners, "failed", ctx, step, params, e)
            outcome = HandlerStatus(code=1, reason=f"Step '{step.name}' errored")
            break

        if result is not None and result.code:
            ctx.audit.log(f"Step '{step.name}' errored with: {result.reason}", Severity.ERROR)
            _notify(listeners, "failed", ctx, step, params, result)
            outcome = result
            break

        if result is not None and result.reason:
            ctx.audit.log(f"Completed step '{step.name}' with: {result.reason}")
        else:
            ctx.audit.log(f"Completed step '{step.name}'")
        _notify(listeners, "completed", ctx, step, params, result)

        if result is not None and result.aborted:
            outcome = result
            break

    _notify(listeners, "done", ctx, params, outcome)
    return outcome
