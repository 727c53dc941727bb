# =============================================================================
# skill_sdk - Event-driven Skill Handlers
# =============================================================================
# USAGE:
#   from skill_sdk import event_handler, success
#
#   @event_handler("on_push")
#   def on_push(ctx):
#       ctx.audit.log(f"Received {len(ctx.data)} rows")
#       return success("Done")
#
#   # Lambda handler: skill_sdk.app.entry_point.lambda_handler
# =============================================================================

from skill_sdk.runtime.payload import Payload, PayloadKind, UnclassifiablePayload
from skill_sdk.handlers.status import HandlerStatus, failure, success
from skill_sdk.handlers.chain import Link, chain, guard, when_all, when_parameter
from skill_sdk.handlers.steps import Step, StepListener, run_steps
from skill_sdk.handlers.mapping import MappingEventHandler, map_subscription
from skill_sdk.handlers.prompt import CommandListenerExecutionInterruptError, NeedsMoreInput
from skill_sdk.runtime.context import CommandContext, EventContext, WebhookContext, create_context
from skill_sdk.runtime.dispatch import (
    REGISTRY,
    HandlerNotFound,
    command_handler,
    dispatch_payload,
    event_handler,
    process_command,
    process_event,
    process_webhook,
    webhook_handler,
)

__version__ = "0.1.0"

__all__ = [
    "Payload",
    "PayloadKind",
    "UnclassifiablePayload",
    "HandlerStatus",
    "success",
    "failure",
    "Link",
    "chain",
    "guard",
    "when_all",
    "when_parameter",
    "Step",
    "StepListener",
    "run_steps",
    "MappingEventHandler",
    "map_subscription",
    "CommandListenerExecutionInterruptError",
    "NeedsMoreInput",
    "CommandContext",
    "EventContext",
    "WebhookContext",
    "create_context",
    "REGISTRY",
    "HandlerNotFound",
    "command_handler",
    "event_handler",
    "webhook_handler",
    "process_command",
    "process_event",
    "process_webhook",
    "dispatch_payload",
]
