# =============================================================================
# Subscription Mapping & Event Fan-out
# =============================================================================
# Datalog subscription rows arrive as lists of entity maps with namespaced
# keys ("git.commit/sha"). map_subscription turns one row into a plain dict
# keyed by camel-cased local names:
#
#   [{"schema/entity-type": "git/commit", "git.commit/sha": "123"}]
#     -> {"commit": {"sha": "123"}}
# =============================================================================

import copy
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from skill_sdk.handlers.status import HIDDEN, HandlerStatus, prepare_status

logger = logging.getLogger(__name__)

ENTITY_TYPE_KEY = "schema/entity-type"
UNKNOWN_ENTITY = "unknownEntity"

_WORD_SPLIT = re.compile(r"[^0-9A-Za-z]+")


def camel_case(value: str) -> str:
    words = [w for w in _WORD_SPLIT.split(value) if w]
    if not words:
        return ""
    first, rest = words[0], words[1:]
    return first[0].lower() + first[1:] + "".join(w[0].upper() + w[1:] for w in rest)


def name_from_key(value: str, to_camel_case: bool = True) -> str:
    name = value.split("/", 1)[1] if "/" in value else value
    return camel_case(name) if to_camel_case else name


def _map_value(value: Any) -> Any:
    if isinstance(value, list):
        return [_map_value(v) for v in value]
    if isinstance(value, dict):
        # enum references
        if set(value.keys()) == {"db/id", "db/ident"}:
            return name_from_key(value["db/ident"], False)
        return {name_from_key(k): _map_value(v) for k, v in value.items()}
    return value


def map_subscription(result: Any) -> Optional[Dict[str, Any]]:
    """
    Map one Datalog result row to a dict keyed by entity name.

    Repeated entity types collect into a list.
    """
    if result is None:
        return None

    rows = result if isinstance(result, list) else [result]
    mapped: Dict[str, Any] = {}
    for entity in rows:
        if not isinstance(entity, dict):
            continue
        key = name_from_key(entity.get(ENTITY_TYPE_KEY) or UNKNOWN_ENTITY)
        if key == UNKNOWN_ENTITY:
            logger.debug(f"Unknown entity detected: {entity}")
        value = {name_from_key(k): _map_value(v) for k, v in entity.items() if k != ENTITY_TYPE_KEY}

        existing = mapped.get(key)
        if isinstance(existing, list):
            existing.append(value)
        elif existing is not None:
            mapped[key] = [existing, value]
        else:
            mapped[key] = value
    return mapped


# =============================================================================
# EVENT HANDLER WRAPPING
# =============================================================================

class MappingEventHandler:
    """
    Event handler that transforms ctx.data before handling it.

    Usage:
        class OnPush(MappingEventHandler):
            def map(self, data):
                return [row["commit"] for row in data]

            def handle(self, ctx):
                ...
    """

    def map(self, data: Any) -> Any:
        return data

    def handle(self, ctx: Any) -> Any:
        raise NotImplementedError


def _with_data(ctx: Any, data: Any) -> Any:
    clone = copy.copy(ctx)
    clone.data = data
    return clone


def _combine(results: List[Dict[str, Any]]) -> Dict[str, Any]:
    visible = [r for r in results if r.get("visibility") != HIDDEN]
    code = 0
    for r in results:
        if r.get("code"):
            code = r["code"]
    reasons = [r.get("reason") for r in (visible or results) if r.get("reason")]
    return {
        "code": code,
        "reason": ", ".join(reasons),
        "visibility": None if visible else HIDDEN,
    }


def wrap_event_handler(handler: Any) -> Callable[[Any], Any]:
    """
    Adapt an event handler to ctx.data shapes.

    A MappingEventHandler gets its mapped data. When ctx.data is a list the
    handler runs once per element; per-element errors become failure
    statuses and the results are folded into one status.
    """
    def wrapped(ctx):
        if isinstance(handler, MappingEventHandler):
            return handler.handle(_with_data(ctx, handler.map(ctx.data)))

        if not isinstance(getattr(ctx, "data", None), list):
            return handler(ctx)

        results = []
        for event in ctx.data:
            try:
                result = handler(_with_data(ctx, event))
            except Exception as e:
                logger.exception(f"Error occurred handling event: {e}")
                results.append(prepare_status(e, ctx))
                continue
            if result:
                status = HandlerStatus.coerce(result)
                results.append({"code": status.code, "reason": status.reason, "visibility": status.visibility})
        return _combine(results)

    wrapped.__name__ = getattr(handler, "__name__", type(handler).__name__)
    wrapped.__wrapped__ = handler
    return wrapped
