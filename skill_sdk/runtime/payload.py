# =============================================================================
# Payload - Classified Incoming Message
# =============================================================================
# Every decoded message is one of four kinds: command, subscription, webhook
# or event. Classification happens exactly once, here; the rest of the SDK
# reads Payload.kind instead of probing the raw dict.
# =============================================================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

API_KEY_SECRET_URI = "atomist://api-key"


class PayloadKind(str, Enum):
    """Kinds of incoming payloads."""
    COMMAND = "command"
    SUBSCRIPTION = "subscription"
    WEBHOOK = "webhook"
    EVENT = "event"


class UnclassifiablePayload(ValueError):
    """Raised when a payload matches none of the known kinds."""

    def __init__(self, payload: Any):
        keys = sorted(payload.keys()) if isinstance(payload, dict) else type(payload).__name__
        super().__init__(f"Unable to classify payload with keys: {keys}")
        self.payload = payload


# =============================================================================
# PREDICATES
# =============================================================================

def is_command_incoming(payload: Any) -> bool:
    return isinstance(payload, dict) and bool(payload.get("command"))


def is_subscription_incoming(payload: Any) -> bool:
    return isinstance(payload, dict) and bool(payload.get("subscription"))


def is_webhook_incoming(payload: Any) -> bool:
    return isinstance(payload, dict) and bool(payload.get("webhook"))


def is_event_incoming(payload: Any) -> bool:
    return isinstance(payload, dict) and bool(payload.get("data"))


# Subscription and webhook payloads may carry a `data` field too, so they are
# checked before the generic event predicate.
_PREDICATES = (
    (PayloadKind.COMMAND, is_command_incoming),
    (PayloadKind.SUBSCRIPTION, is_subscription_incoming),
    (PayloadKind.WEBHOOK, is_webhook_incoming),
    (PayloadKind.EVENT, is_event_incoming),
)


def detect_payload_kind(payload: Any) -> PayloadKind:
    """
    Detect the kind of a decoded payload.

    Raises:
        UnclassifiablePayload: if no predicate matches
    """
    for kind, predicate in _PREDICATES:
        if predicate(payload):
            return kind
    raise UnclassifiablePayload(payload)


# =============================================================================
# SKILL & CONFIGURATION
# =============================================================================

@dataclass
class Configuration:
    """A named parameterization of a skill within one workspace."""
    name: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    resource_providers: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    url: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Configuration":
        parameters = raw.get("parameters") or {}
        if isinstance(parameters, list):
            parameters = {p.get("name"): p.get("value") for p in parameters if isinstance(p, dict)}

        providers = raw.get("resourceProviders") or {}
        if isinstance(providers, list):
            providers = {
                p.get("name"): {
                    "typeName": p.get("typeName"),
                    "selectedResourceProviders": p.get("selectedResourceProviders", []),
                }
                for p in providers if isinstance(p, dict)
            }

        return cls(
            name=raw.get("name", ""),
            parameters=dict(parameters),
            resource_providers=dict(providers),
            url=raw.get("url"),
        )


@dataclass
class Skill:
    """Skill descriptor carried on every payload."""
    id: str = ""
    name: str = ""
    namespace: str = ""
    version: str = ""
    configurations: List[Configuration] = field(default_factory=list)

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "Skill":
        raw = raw or {}
        configuration = raw.get("configuration")
        if isinstance(configuration, dict) and "instances" in configuration:
            instances = configuration.get("instances") or []
        elif isinstance(configuration, list):
            instances = configuration
        elif isinstance(configuration, dict):
            instances = [configuration]
        else:
            instances = []

        return cls(
            id=raw.get("id", ""),
            name=raw.get("name", ""),
            namespace=raw.get("namespace", ""),
            version=raw.get("version", ""),
            configurations=[Configuration.from_dict(i) for i in instances if isinstance(i, dict)],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "namespace": self.namespace,
            "version": self.version,
        }


# =============================================================================
# PAYLOAD
# =============================================================================

@dataclass
class Payload:
    """
    Classified incoming payload.

    Attributes:
        kind: Which of the four payload shapes this is
        raw: The decoded payload dict, unmodified apart from merged parameters
        skill: Parsed skill descriptor
    """
    kind: PayloadKind
    raw: Dict[str, Any]
    skill: Skill = field(default_factory=Skill)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Payload":
        """Classify a decoded payload dict."""
        kind = detect_payload_kind(raw)
        return cls(kind=kind, raw=raw, skill=Skill.from_dict(raw.get("skill")))

    @property
    def is_command(self) -> bool:
        return self.kind == PayloadKind.COMMAND

    @property
    def is_event(self) -> bool:
        return self.kind in (PayloadKind.EVENT, PayloadKind.SUBSCRIPTION)

    @property
    def is_webhook(self) -> bool:
        return self.kind == PayloadKind.WEBHOOK

    @property
    def name(self) -> str:
        """Logical handler name."""
        if self.kind == PayloadKind.COMMAND:
            return self.raw.get("command", "")
        if self.kind == PayloadKind.SUBSCRIPTION:
            return self.raw["subscription"].get("name", "")
        if self.kind == PayloadKind.WEBHOOK:
            return self.raw["webhook"].get("parameter_name", "")
        return (self.raw.get("extensions") or {}).get("operationName", "")

    @property
    def correlation_id(self) -> str:
        if self.kind == PayloadKind.EVENT:
            return (self.raw.get("extensions") or {}).get("correlation_id", "")
        return self.raw.get("correlation_id", "")

    @property
    def workspace_id(self) -> str:
        if self.kind == PayloadKind.COMMAND:
            return (self.raw.get("team") or {}).get("id", "")
        if self.kind == PayloadKind.EVENT:
            return (self.raw.get("extensions") or {}).get("team_id", "")
        return self.raw.get("team_id", "")

    @property
    def team(self) -> Dict[str, Any]:
        if self.kind == PayloadKind.COMMAND:
            return self.raw.get("team") or {"id": self.workspace_id}
        if self.kind == PayloadKind.EVENT:
            extensions = self.raw.get("extensions") or {}
            return {"id": extensions.get("team_id"), "name": extensions.get("team_name")}
        return {"id": self.workspace_id}

    @property
    def secrets(self) -> List[Dict[str, Any]]:
        return self.raw.get("secrets") or []

    @property
    def api_key(self) -> Optional[str]:
        """API key secret; None when the payload carries no key."""
        for secret in self.secrets:
            if secret.get("uri") == API_KEY_SECRET_URI:
                return secret.get("value")
        return None

    @property
    def configuration(self):
        """
        Active configuration(s).

        Commands get the full list; other kinds get the first instance or None.
        """
        if self.kind == PayloadKind.COMMAND:
            return list(self.skill.configurations)
        return self.skill.configurations[0] if self.skill.configurations else None

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)
