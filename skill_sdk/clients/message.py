# =============================================================================
# Message Clients
# =============================================================================
# Build HandlerResponse messages (chat messages, continuation prompts and the
# final invocation status) and publish them to the response topic via SNS.
#
# Send failures are logged, never raised: a handler that fails to post a
# chat message must still reach status publishing.
# =============================================================================

import copy
import json
import logging
import os
import time
from typing import Any, Dict, List, Optional, Union

import boto3
from botocore.exceptions import ClientError

from skill_sdk.runtime.log import replacer
from skill_sdk.runtime.payload import Payload, PayloadKind

logger = logging.getLogger(__name__)

CONTINUATION_MIME_TYPE = "application/x-atomist-continuation+json"


class MessageMimeTypes:
    SLACK_JSON = "application/x-atomist-slack+json"
    SLACK_FILE_JSON = "application/x-atomist-slack-file+json"
    PLAIN_TEXT = "text/plain"
    APPLICATION_JSON = "application/json"
    DELETE = "application/x-atomist-delete"


def _to_list(value: Union[str, List[str], None]) -> List[str]:
    if not value:
        return []
    return value if isinstance(value, list) else [value]


# =============================================================================
# TOPIC PUBLISHER
# =============================================================================

class TopicPublisher:
    """Publishes JSON messages to the skill's response topic."""

    def __init__(self, topic_arn: str = None, region: str = None, sns_client: Any = None):
        self.topic_arn = topic_arn if topic_arn is not None else os.environ.get("SKILL_TOPIC_ARN", "")
        self.region = region or os.environ.get("AWS_REGION", "us-east-1")
        self._sns = sns_client
        self.sent: List[Dict[str, Any]] = []

    @property
    def sns(self):
        if self._sns is None:
            self._sns = boto3.client("sns", region_name=self.region)
        return self._sns

    def publish_message(self, message: Dict[str, Any]) -> None:
        logger.debug(f"Sending message: {json.dumps(replacer(message), default=str)}")
        self.sent.append(message)
        if not self.topic_arn:
            return
        try:
            self.sns.publish(TopicArn=self.topic_arn, Message=json.dumps(message, default=str))
        except ClientError as e:
            logger.error(f"Error occurred sending message: {e}")


# =============================================================================
# MESSAGE CLIENTS
# =============================================================================

def is_slack_message(msg: Any) -> bool:
    return isinstance(msg, dict) and bool(msg.get("text") or msg.get("attachments") or msg.get("blocks")) \
        and not msg.get("content")


def is_file_message(msg: Any) -> bool:
    return isinstance(msg, dict) and bool(msg.get("content"))


class MessageClient:
    """
    Sends messages on behalf of one invocation.

    Subclasses decide how the final status envelope is shaped.
    """

    def __init__(self, payload: Payload, publisher: TopicPublisher):
        self.payload = payload
        self.publisher = publisher

    @property
    def source(self) -> Optional[Dict[str, Any]]:
        return self.payload.get("source")

    def _base_response(self) -> Dict[str, Any]:
        response = {
            "api_version": "1",
            "correlation_id": self.payload.correlation_id,
            "team": self.payload.team,
            "skill": self.payload.skill.to_dict(),
        }
        if self.payload.kind == PayloadKind.COMMAND:
            response["command"] = self.payload.name
        else:
            response["event"] = self.payload.name
        return response

    def _thread_ts(self, options: Dict[str, Any]) -> Optional[str]:
        thread = options.get("thread")
        if thread is True and self.source:
            return ((self.source.get("slack") or {}).get("message") or {}).get("ts")
        if isinstance(thread, str):
            return thread
        return None

    def _destinations(self, users: List[str], channels: List[str], thread_ts: Optional[str]) -> List[Dict[str, Any]]:
        team_id = ((self.source or {}).get("slack") or {}).get("team", {}).get("id")
        destinations = []
        for user in users:
            destinations.append({
                "user_agent": "slack",
                "slack": {"team": {"id": team_id}, "user": {"name": user}, "thread_ts": thread_ts},
            })
        for channel in channels:
            destinations.append({
                "user_agent": "slack",
                "slack": {"team": {"id": team_id}, "channel": {"name": channel}, "thread_ts": thread_ts},
            })
        if not destinations and self.source:
            destination = copy.deepcopy(self.source)
            if destination.get("slack"):
                destination["slack"].pop("user", None)
                if thread_ts:
                    destination["slack"]["thread_ts"] = thread_ts
            destinations.append(destination)
        return destinations

    def send(self, msg: Any, users: Union[str, List[str]] = None, channels: Union[str, List[str]] = None,
             **options: Any) -> Dict[str, Any]:
        """Send a message to users and/or channels (defaults to the triggering source)."""
        if isinstance(msg, dict) and msg.get("content_type") == CONTINUATION_MIME_TYPE:
            self.publisher.publish_message(msg)
            return msg

        thread_ts = self._thread_ts(options)
        ts = options.get("ts") or (int(time.time() * 1000) if options.get("id") else None)
        post = options.get("post")

        response = self._base_response()
        response.update({
            "source": self.source,
            "destinations": self._destinations(_to_list(users), _to_list(channels), thread_ts),
            "id": options.get("id"),
            "timestamp": ts,
            "ttl": options.get("ttl") if ts else None,
            "post_mode": post if post in ("update_only", "always") else "ttl",
        })

        if is_slack_message(msg):
            response["content_type"] = MessageMimeTypes.SLACK_JSON
            response["body"] = json.dumps(msg)
        elif is_file_message(msg):
            response["content_type"] = MessageMimeTypes.SLACK_FILE_JSON
            response["body"] = json.dumps({
                "content": msg.get("content"),
                "filename": msg.get("fileName"),
                "filetype": msg.get("fileType"),
                "title": msg.get("title"),
                "initial_comment": msg.get("comment"),
            })
        elif isinstance(msg, str):
            response["content_type"] = MessageMimeTypes.PLAIN_TEXT
            response["body"] = msg
        elif options.get("delete"):
            response["content_type"] = MessageMimeTypes.DELETE
            response["body"] = None
        elif msg is not None:
            response["content_type"] = MessageMimeTypes.APPLICATION_JSON
            response["body"] = json.dumps(msg, default=str)

        self.publisher.publish_message(response)
        return response

    def delete(self, id: str, users: Union[str, List[str]] = None, channels: Union[str, List[str]] = None,
               thread: Union[str, bool] = None) -> Dict[str, Any]:
        """Delete a previously sent message by id."""
        return self.send(None, users, channels, id=id, thread=thread, delete=True)

    def publish(self, status: Dict[str, Any]) -> Dict[str, Any]:
        """Publish the invocation's final status."""
        response = self._base_response()
        response["status"] = status
        self.publisher.publish_message(response)
        return response


class CommandMessageClient(MessageClient):
    """Message client for command invocations; can respond in place."""

    def respond(self, msg: Any, **options: Any) -> Dict[str, Any]:
        return self.send(msg, **options)

    def publish(self, status: Dict[str, Any]) -> Dict[str, Any]:
        source = copy.deepcopy(self.source)
        if source and source.get("slack"):
            source["slack"].pop("user", None)
        response = self._base_response()
        response.update({
            "source": self.source,
            "destinations": [source] if source else [],
            "status": status,
        })
        self.publisher.publish_message(response)
        return response


class EventMessageClient(MessageClient):
    """Message client for event, subscription and webhook invocations."""


def create_message_client(payload: Payload, publisher: TopicPublisher) -> MessageClient:
    if payload.kind == PayloadKind.COMMAND:
        return CommandMessageClient(payload, publisher)
    return EventMessageClient(payload, publisher)
