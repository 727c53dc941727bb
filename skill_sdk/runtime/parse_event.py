# =============================================================================
# Event Parser - Decode and Resolve Transport Envelopes
# =============================================================================
# Transport envelopes carry the payload as base64 JSON in `data`. Large
# payloads are offloaded to storage and replaced by a `message_uri` pointer
# which is followed here before classification.
# Supports: single envelopes, SQS records, SNS records, SNS wrapped in SQS
# =============================================================================

import base64
import binascii
import json
import logging
import os
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

MAX_MESSAGE_URI_HOPS = 5


class MalformedEnvelope(ValueError):
    """Raised when an envelope's data cannot be decoded."""


class UnsupportedMessageUri(ValueError):
    """Raised when a message_uri cannot be followed."""


# =============================================================================
# DECODING
# =============================================================================

def decode_envelope(envelope: Dict[str, Any]) -> Dict[str, Any]:
    """Decode the base64 JSON body of a transport envelope."""
    data = (envelope or {}).get("data")
    if not data:
        raise MalformedEnvelope("Envelope has no data")
    try:
        decoded = base64.b64decode(data).decode("utf-8")
        payload = json.loads(decoded)
    except (binascii.Error, TypeError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedEnvelope(f"Envelope data is not base64 encoded JSON: {e}") from e
    if not isinstance(payload, dict):
        raise MalformedEnvelope(f"Envelope data decoded to {type(payload).__name__}, expected object")
    return payload


def encode_envelope(payload: Dict[str, Any], attributes: Dict[str, str] = None) -> Dict[str, Any]:
    """Build a transport envelope for a payload."""
    data = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
    envelope = {"data": data}
    if attributes:
        envelope["attributes"] = attributes
    return envelope


# =============================================================================
# MESSAGE_URI RESOLVERS
# =============================================================================

class PayloadResolver:
    """Follows one kind of message_uri pointer."""

    def supports(self, uri: str) -> bool:
        raise NotImplementedError

    def resolve(self, uri: str) -> Dict[str, Any]:
        """Return the transport envelope the uri points to."""
        raise NotImplementedError


class S3PayloadResolver(PayloadResolver):
    """Resolve s3://bucket/key pointers."""

    def __init__(self, delete_after: bool = False, region: str = None):
        self.delete_after = delete_after
        self.region = region or os.environ.get("AWS_REGION", "us-east-1")
        self._s3 = None

    @property
    def s3(self):
        if self._s3 is None:
            self._s3 = boto3.client("s3", region_name=self.region)
        return self._s3

    def supports(self, uri: str) -> bool:
        return isinstance(uri, str) and uri.startswith("s3://")

    def resolve(self, uri: str) -> Dict[str, Any]:
        parsed = urlparse(uri)
        bucket, key = parsed.netloc, parsed.path.lstrip("/")
        try:
            response = self.s3.get_object(Bucket=bucket, Key=key)
            body = response["Body"].read()
        except ClientError as e:
            raise UnsupportedMessageUri(f"Failed to fetch message_uri {uri}: {e}") from e

        if self.delete_after:
            try:
                self.s3.delete_object(Bucket=bucket, Key=key)
            except ClientError as e:
                logger.warning(f"Failed to delete resolved payload {uri}: {e}")

        return {"data": base64.b64encode(body).decode("ascii")}


_RESOLVERS: List[PayloadResolver] = [S3PayloadResolver(delete_after=True)]


def set_payload_resolvers(*resolvers: PayloadResolver) -> None:
    """Replace the registered message_uri resolvers."""
    _RESOLVERS[:] = list(resolvers)


def get_payload_resolvers() -> List[PayloadResolver]:
    return list(_RESOLVERS)


def resolve_payload(
    envelope: Dict[str, Any],
    resolvers: Sequence[PayloadResolver] = None,
    max_hops: int = MAX_MESSAGE_URI_HOPS,
) -> Dict[str, Any]:
    """
    Decode an envelope, following message_uri pointers.

    A pointer may point at another pointer; at most max_hops are followed.

    Raises:
        MalformedEnvelope: if any envelope cannot be decoded
        UnsupportedMessageUri: if no resolver supports a uri or the hop limit is hit
    """
    if resolvers is None:
        resolvers = _RESOLVERS

    payload = decode_envelope(envelope)
    hops = 0
    while payload.get("message_uri"):
        uri = payload["message_uri"]
        if hops >= max_hops:
            raise UnsupportedMessageUri(f"Exceeded {max_hops} message_uri hops at {uri}")
        resolver = next((r for r in resolvers if r.supports(uri)), None)
        if resolver is None:
            raise UnsupportedMessageUri(f"Unsupported message_uri provided: {uri}")
        logger.debug(f"Resolving message_uri {uri}")
        payload = decode_envelope(resolver.resolve(uri))
        hops += 1
    return payload


# =============================================================================
# RECORD PARSING
# =============================================================================

def _json_or_none(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def _envelope_from_sqs_record(record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    body = _json_or_none(record.get("body"))
    if body is None:
        return None
    # SNS notification delivered through SQS
    if body.get("Type") == "Notification":
        return _json_or_none(body.get("Message"))
    return body


def parse_records(event: Dict[str, Any]) -> List[Tuple[Dict[str, Any], str]]:
    """
    Extract transport envelopes from a Lambda event.

    Returns:
        List of (envelope, event_id) tuples. A bare envelope yields one entry.
    """
    if not event:
        return []

    if "data" in event:
        event_id = event.get("eventId") or (event.get("attributes") or {}).get("eventId") or str(uuid.uuid4())
        return [(event, event_id)]

    envelopes = []
    for i, record in enumerate(event.get("Records", [])):
        if not isinstance(record, dict):
            continue
        if "Sns" in record:
            sns = record.get("Sns", {})
            envelope = _json_or_none(sns.get("Message"))
            event_id = sns.get("MessageId") or str(uuid.uuid4())
        else:
            envelope = _envelope_from_sqs_record(record)
            event_id = record.get("messageId") or str(uuid.uuid4())

        if not envelope or "data" not in envelope:
            logger.warning(f"Skipping record {i}: no transport envelope found")
            continue
        envelopes.append((envelope, event_id))

    return envelopes
