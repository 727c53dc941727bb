# =============================================================================
# Runtime Package - Payloads, Contexts and Dispatch
# =============================================================================
# Decode transport envelopes, classify payloads, build per-invocation
# contexts and dispatch them to registered handlers.
#
# context and dispatch are imported from their modules directly; the
# capability clients they build on import from this package.
# =============================================================================

from skill_sdk.runtime.payload import Payload, PayloadKind, UnclassifiablePayload, detect_payload_kind
from skill_sdk.runtime.parse_event import parse_records, resolve_payload, set_payload_resolvers

__all__ = [
    "Payload",
    "PayloadKind",
    "UnclassifiablePayload",
    "detect_payload_kind",
    "parse_records",
    "resolve_payload",
    "set_payload_resolvers",
]
