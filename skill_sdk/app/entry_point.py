# =============================================================================
# Skill Entry Point
# =============================================================================
# Lambda entry for skill invocations delivered as a bare transport envelope
# or as SNS/SQS records carrying envelopes.
#
# Each envelope is resolved, classified and dispatched independently; a
# failing record is counted and logged, never fatal to the batch.
# =============================================================================

import logging
import os
from typing import Any, Dict

from skill_sdk.runtime.dispatch import dispatch_payload
from skill_sdk.runtime.log import configured_level
from skill_sdk.runtime.parse_event import parse_records, resolve_payload
from skill_sdk.runtime.payload import Payload

logger = logging.getLogger(__name__)
logging.getLogger("skill_sdk").setLevel(configured_level())


def entry_point(event: Dict[str, Any], context: Any = None, loaders: Dict = None) -> Dict[str, Any]:
    """
    Skill invocation entry point.

    Args:
        event: transport envelope or SNS/SQS event with Records[]
        context: Lambda context
        loaders: optional per-kind handler loaders (defaults to the registry)

    Returns:
        Processing summary
    """
    logger.info(f"ENTRY_POINT event keys: {list((event or {}).keys())}")

    records = parse_records(event)
    if not records:
        return {
            "statusCode": 200,
            "processed": 0,
            "message": "No records to process",
        }

    results = {
        "processed": 0,
        "failed": 0,
        "errors": 0,
        "statuses": [],
    }

    for envelope, event_id in records:
        try:
            payload = Payload.from_dict(resolve_payload(envelope))
            status = dispatch_payload(payload, event_id, loaders=loaders)
            results["processed"] += 1
            results["statuses"].append(status)
            if status.get("code"):
                results["failed"] += 1
        except Exception as e:
            logger.exception(f"Error processing event {event_id}: {e}")
            results["errors"] += 1

    return {
        "statusCode": 200,
        "function": os.environ.get("AWS_LAMBDA_FUNCTION_NAME", ""),
        **results,
    }


# Lambda handler alias
lambda_handler = entry_point
