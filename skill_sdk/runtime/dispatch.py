# =============================================================================
# Dispatcher
# =============================================================================
# Build context -> resolve handler -> run it -> normalise the outcome into a
# status -> publish -> close. Handler errors never escape; only a failure to
# build the context propagates, since there is no channel to publish on yet.
# =============================================================================

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from skill_sdk.handlers.mapping import wrap_event_handler
from skill_sdk.handlers.prompt import CommandListenerExecutionInterruptError, NeedsMoreInput
from skill_sdk.handlers.status import HandlerStatus, prepare_status, success
from skill_sdk.runtime.context import AnyContext, ContextFactory, create_context
from skill_sdk.runtime.log import Severity
from skill_sdk.runtime.payload import Payload, PayloadKind

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]
HandlerLoader = Callable[[str], Handler]


class HandlerKind(str, Enum):
    COMMAND = "command"
    EVENT = "event"
    WEBHOOK = "webhook"


class HandlerNotFound(LookupError):
    """Raised by a loader when no handler is registered under a name."""

    def __init__(self, name: str, kind: Union[HandlerKind, str]):
        kind = HandlerKind(kind).value
        super().__init__(f"No {kind} handler registered for '{name}'")
        self.name = name
        self.kind = kind


# =============================================================================
# HANDLER REGISTRY
# =============================================================================

class HandlerRegistry:
    """
    Name -> handler table for one handler kind.

    Usage:
        @REGISTRY.events.register("on_push")
        def on_push(ctx):
            ...
    """

    def __init__(self, kind: HandlerKind):
        self.kind = HandlerKind(kind)
        self._handlers: Dict[str, Handler] = {}
        self._descriptions: Dict[str, str] = {}

    def register(self, name: str = None, description: str = None):
        """Decorator registering a handler under name (defaults to the function name)."""
        def decorator(func: Handler) -> Handler:
            self.register_handler(name or func.__name__, func, description)
            return func
        return decorator

    def register_handler(self, name: str, handler: Handler, description: str = None) -> None:
        desc = description
        if not desc and handler.__doc__:
            desc = handler.__doc__.strip().split("\n")[0].strip()
        if not desc:
            desc = f"Handle {name} {self.kind.value}"
        self._handlers[name] = handler
        self._descriptions[name] = desc

    def get(self, name: str) -> Optional[Handler]:
        return self._handlers.get(name)

    def exists(self, name: str) -> bool:
        return name in self._handlers

    def list(self) -> Dict[str, str]:
        """List registered handlers with descriptions."""
        return dict(self._descriptions)

    def clear(self) -> None:
        self._handlers.clear()
        self._descriptions.clear()


class Registry:
    """Handler tables for all kinds."""

    def __init__(self):
        self.commands = HandlerRegistry(HandlerKind.COMMAND)
        self.events = HandlerRegistry(HandlerKind.EVENT)
        self.webhooks = HandlerRegistry(HandlerKind.WEBHOOK)

    def for_kind(self, kind: Union[HandlerKind, str]) -> HandlerRegistry:
        kind = HandlerKind(kind)
        if kind == HandlerKind.COMMAND:
            return self.commands
        if kind == HandlerKind.EVENT:
            return self.events
        return self.webhooks


REGISTRY = Registry()


def command_handler(name: str = None, description: str = None):
    return REGISTRY.commands.register(name, description)


def event_handler(name: str = None, description: str = None):
    return REGISTRY.events.register(name, description)


def webhook_handler(name: str = None, description: str = None):
    return REGISTRY.webhooks.register(name, description)


# =============================================================================
# LOADERS
# =============================================================================

def _loader(lookup: Callable[[str], Optional[Handler]], kind: Union[HandlerKind, str]) -> HandlerLoader:
    kind = HandlerKind(kind)

    def load(name: str) -> Handler:
        handler = lookup(name)
        if handler is None:
            raise HandlerNotFound(name, kind)
        if kind == HandlerKind.EVENT:
            return wrap_event_handler(handler)
        return handler

    return load


def registry_loader(kind: Union[HandlerKind, str], registry: Registry = None) -> HandlerLoader:
    """Loader resolving names against a registry (the module default if omitted)."""
    table = (registry or REGISTRY).for_kind(kind)
    return _loader(table.get, kind)


def mapping_loader(table: Dict[str, Handler], kind: Union[HandlerKind, str]) -> HandlerLoader:
    """Loader resolving names against a plain dict."""
    return _loader(table.get, kind)


# =============================================================================
# OUTCOME
# =============================================================================

class OutcomeKind(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NEEDS_INPUT = "needs_input"


@dataclass
class Outcome:
    """Result of running a handler."""
    kind: OutcomeKind
    status: Optional[HandlerStatus] = None
    error: Optional[BaseException] = None
    prompt: Optional[NeedsMoreInput] = None

    @classmethod
    def success(cls, status: Optional[HandlerStatus] = None) -> "Outcome":
        return cls(OutcomeKind.SUCCESS, status=status)

    @classmethod
    def failure(cls, error: BaseException) -> "Outcome":
        return cls(OutcomeKind.FAILURE, error=error)

    @classmethod
    def needs_input(cls, prompt: NeedsMoreInput) -> "Outcome":
        return cls(OutcomeKind.NEEDS_INPUT, prompt=prompt)


def execute_handler(ctx: AnyContext, loader: HandlerLoader) -> Outcome:
    """Resolve and run the handler for ctx.name."""
    try:
        handler = loader(ctx.name)
        result = handler(ctx)
    except CommandListenerExecutionInterruptError as e:
        return Outcome.needs_input(e.needs)
    except Exception as e:
        return Outcome.failure(e)

    if isinstance(result, NeedsMoreInput):
        return Outcome.needs_input(result)
    if result is None or isinstance(result, (HandlerStatus, dict)):
        return Outcome.success(HandlerStatus.coerce(result))
    ctx.log.warning(f"Ignoring unsupported handler result of type {type(result).__name__}")
    return Outcome.success()


def _status_for(ctx: AnyContext, outcome: Outcome, prompts_allowed: bool) -> Dict[str, Any]:
    if outcome.kind == OutcomeKind.SUCCESS:
        return prepare_status(outcome.status or success(), ctx)

    if outcome.kind == OutcomeKind.NEEDS_INPUT:
        if prompts_allowed:
            ctx.log.debug(f"Handler '{ctx.name}' is waiting for parameters: {outcome.prompt.missing}")
            return prepare_status(success(), ctx)
        error = CommandListenerExecutionInterruptError("Parameter prompts are only supported for commands")
    else:
        error = outcome.error

    ctx.log.error(f"Error invoking handler '{ctx.name}': {error}", exc_info=error)
    ctx.audit.log(f"Error occurred: {error}", Severity.ERROR)
    return prepare_status(error, ctx)


# =============================================================================
# DISPATCH FUNCTIONS
# =============================================================================

def _process(
    payload: Union[Payload, Dict[str, Any]],
    event_id: str,
    loader: HandlerLoader,
    factory: ContextFactory,
    prompts_allowed: bool,
) -> Dict[str, Any]:
    try:
        ctx = factory(payload, event_id)
    except Exception as e:
        logger.exception(f"Failed to create context for event {event_id}: {e}")
        raise

    try:
        ctx.log.debug(f"Invoking {ctx.skill.qualified_name} handler '{ctx.name}'")
        status = _status_for(ctx, execute_handler(ctx, loader), prompts_allowed)
        try:
            ctx.message.publish(status)
        except Exception as e:
            ctx.log.error(f"Failed to publish status: {e}", exc_info=e)
        return status
    finally:
        ctx.close()


def process_command(payload, event_id: str, loader: HandlerLoader = None,
                    factory: ContextFactory = create_context) -> Dict[str, Any]:
    """Run a command handler and publish its status."""
    return _process(payload, event_id, loader or registry_loader(HandlerKind.COMMAND), factory, True)


def process_event(payload, event_id: str, loader: HandlerLoader = None,
                  factory: ContextFactory = create_context) -> Dict[str, Any]:
    """Run an event or subscription handler and publish its status."""
    return _process(payload, event_id, loader or registry_loader(HandlerKind.EVENT), factory, False)


def process_webhook(payload, event_id: str, loader: HandlerLoader = None,
                    factory: ContextFactory = create_context) -> Dict[str, Any]:
    """Run a webhook handler and publish its status."""
    return _process(payload, event_id, loader or registry_loader(HandlerKind.WEBHOOK), factory, False)


_ROUTES = {
    PayloadKind.COMMAND: (HandlerKind.COMMAND, process_command),
    PayloadKind.SUBSCRIPTION: (HandlerKind.EVENT, process_event),
    PayloadKind.EVENT: (HandlerKind.EVENT, process_event),
    PayloadKind.WEBHOOK: (HandlerKind.WEBHOOK, process_webhook),
}


def dispatch_payload(
    payload: Union[Payload, Dict[str, Any]],
    event_id: str,
    loaders: Dict[HandlerKind, HandlerLoader] = None,
    factory: ContextFactory = create_context,
) -> Dict[str, Any]:
    """
    Route a payload to the processor for its kind.

    Raises:
        UnclassifiablePayload: if a dict payload matches no known kind
    """
    if not isinstance(payload, Payload):
        payload = Payload.from_dict(payload)
    handler_kind, process = _ROUTES[payload.kind]
    loader = (loaders or {}).get(handler_kind)
    return process(payload, event_id, loader=loader, factory=factory)
