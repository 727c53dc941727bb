# =============================================================================
# Execution Context
# =============================================================================
# One context per invocation: identity, capability handles, the triggering
# payload and a teardown registry. Callbacks registered with on_complete run
# in LIFO order when close() is called; a failing callback is logged and the
# remaining ones still run.
# =============================================================================

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from skill_sdk.handlers.mapping import map_subscription
from skill_sdk.handlers.prompt import ParameterPrompt, extract_parameters, merge_parameters
from skill_sdk.runtime.deps import Deps, create_deps
from skill_sdk.runtime.log import AuditLog, ContextLogger, init_logging
from skill_sdk.runtime.payload import Payload, PayloadKind, Skill

logger = logging.getLogger(__name__)

Callback = Callable[[], Any]


@dataclass
class Contextual:
    """
    Fields shared by every invocation context.

    Capability handles (graphql, datalog, http, storage, ...) are created on
    first access through the context's Deps.
    """
    name: str
    workspace_id: str
    correlation_id: str
    execution_id: str
    skill: Skill
    trigger: Payload
    deps: Deps
    configuration: Any = None
    log: Optional[ContextLogger] = None
    audit: Optional[AuditLog] = None
    chain: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    _callbacks: List[Callback] = field(default_factory=list, repr=False)

    # ==========================================================================
    # Capabilities
    # ==========================================================================

    @property
    def credential(self):
        return self.deps.credential

    @property
    def graphql(self):
        return self.deps.graphql

    @property
    def datalog(self):
        return self.deps.datalog

    @property
    def http(self):
        return self.deps.http

    @property
    def message(self):
        return self.deps.message

    @property
    def project(self):
        return self.deps.project

    @property
    def storage(self):
        return self.deps.storage

    # ==========================================================================
    # Teardown
    # ==========================================================================

    def on_complete(self, callback: Callback) -> None:
        """Register a callback to run when the context closes."""
        self._callbacks.append(callback)

    def close(self) -> None:
        """Run registered callbacks, last registered first. Safe to call twice."""
        while self._callbacks:
            callback = self._callbacks.pop()
            try:
                callback()
            except Exception as e:
                logger.exception(f"Error in on_complete callback {getattr(callback, '__name__', callback)}: {e}")


@dataclass
class EventContext(Contextual):
    data: Any = None


@dataclass
class CommandContext(Contextual):
    parameters: Optional[ParameterPrompt] = None


@dataclass
class WebhookContext(Contextual):
    headers: Dict[str, Any] = field(default_factory=dict)
    body: Optional[str] = None
    json: Any = None
    url: Optional[str] = None


AnyContext = Union[EventContext, CommandContext, WebhookContext]
ContextFactory = Callable[[Union[Payload, Dict[str, Any]], str], AnyContext]


# =============================================================================
# FACTORY
# =============================================================================

def _parse_json(body: Any) -> Any:
    if isinstance(body, (dict, list)):
        return body
    if not isinstance(body, (str, bytes)) or not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


def _merge_raw_message(payload: Payload) -> None:
    raw_message = payload.get("raw_message")
    if raw_message:
        payload.raw["parameters"] = merge_parameters(payload.get("parameters"), extract_parameters(raw_message))


def create_context(
    payload: Union[Payload, Dict[str, Any]],
    event_id: str,
    deps_factory: Callable[[Payload], Deps] = create_deps,
) -> AnyContext:
    """
    Build the context for one invocation.

    Args:
        payload: a classified Payload or a decoded payload dict
        event_id: invocation id, exposed as execution_id
        deps_factory: builds the capability container

    Raises:
        UnclassifiablePayload: if a dict payload matches no known kind
    """
    if not isinstance(payload, Payload):
        payload = Payload.from_dict(payload)

    deps = deps_factory(payload)
    shared = dict(
        name=payload.name,
        workspace_id=payload.workspace_id,
        correlation_id=payload.correlation_id,
        execution_id=event_id,
        skill=payload.skill,
        trigger=payload,
        deps=deps,
        configuration=payload.configuration,
    )

    if payload.kind == PayloadKind.COMMAND:
        _merge_raw_message(payload)
        ctx = CommandContext(**shared)
        ctx.parameters = ParameterPrompt(deps.message, payload)
    elif payload.kind == PayloadKind.SUBSCRIPTION:
        result = payload.raw["subscription"].get("result") or []
        ctx = EventContext(**shared, data=[map_subscription(row) for row in result])
    elif payload.kind == PayloadKind.WEBHOOK:
        webhook = payload.raw["webhook"]
        body = webhook.get("body")
        ctx = WebhookContext(
            **shared,
            headers=webhook.get("headers") or {},
            body=body,
            json=_parse_json(body),
            url=webhook.get("url"),
        )
    else:
        ctx = EventContext(**shared, data=payload.raw.get("data"))

    ctx.log = init_logging(
        {
            "correlation_id": ctx.correlation_id,
            "workspace_id": ctx.workspace_id,
            "execution_id": ctx.execution_id,
            "skill_id": ctx.skill.id,
        },
        ctx.on_complete,
    )
    ctx.audit = AuditLog(ctx.log, ctx.workspace_id, ctx.correlation_id)
    ctx.on_complete(ctx.audit.close)
    ctx.on_complete(deps.close)
    return ctx
