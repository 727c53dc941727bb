"""
Sample payloads for each incoming kind.

Each function returns a fresh dict so tests can mutate freely.
"""
import base64
import json
from typing import Any, Dict, List

API_KEY = "key-0123456789"


def _secrets() -> List[Dict[str, Any]]:
    return [{"uri": "atomist://api-key", "value": API_KEY}]


def _skill(configuration: Any = None) -> Dict[str, Any]:
    return {
        "id": "skill-id",
        "name": "test-skill",
        "namespace": "atomist",
        "version": "1.0.0",
        "configuration": configuration if configuration is not None else {
            "name": "default",
            "parameters": [{"name": "enabled", "value": True}],
            "resourceProviders": [
                {"name": "github", "typeName": "GitHubAppResourceProvider",
                 "selectedResourceProviders": [{"id": "gh-1"}]},
            ],
        },
    }


def command_payload() -> Dict[str, Any]:
    return {
        "command": "create_issue",
        "correlation_id": "corr-cmd",
        "team": {"id": "T123", "name": "test-team"},
        "source": {
            "user_agent": "slack",
            "slack": {
                "team": {"id": "TS1"},
                "channel": {"id": "C1", "name": "general"},
                "user": {"id": "U1", "name": "jane"},
                "message": {"ts": "1600000000.000100"},
            },
        },
        "parameters": [{"name": "repo", "value": "skill-sdk"}],
        "raw_message": "create issue --title=Test",
        "secrets": _secrets(),
        "skill": _skill({"instances": [
            {"name": "default", "parameters": [{"name": "enabled", "value": True}]},
            {"name": "other", "parameters": []},
        ]}),
    }


def event_payload() -> Dict[str, Any]:
    return {
        "data": {"Push": [{"branch": "main", "after": {"sha": "abc"}}]},
        "extensions": {
            "team_id": "T123",
            "team_name": "test-team",
            "operationName": "on_push",
            "correlation_id": "corr-evt",
        },
        "secrets": _secrets(),
        "skill": _skill(),
    }


def subscription_payload() -> Dict[str, Any]:
    return {
        "subscription": {
            "name": "on_commit",
            "tx": 13194139534312,
            "result": [[{"schema/entity-type": "git/commit", "git.commit/sha": "123456"}]],
        },
        "correlation_id": "corr-sub",
        "team_id": "T123",
        "secrets": _secrets(),
        "skill": _skill(),
    }


def webhook_payload() -> Dict[str, Any]:
    return {
        "webhook": {
            "parameter_name": "on_webhook",
            "body": '{"username":"xyz","password":"zyx"}',
            "headers": {"content-type": "application/json"},
            "url": "https://webhook.atomist.com/atomist/teams/T123/skill/test",
        },
        "correlation_id": "corr-wh",
        "team_id": "T123",
        "secrets": _secrets(),
        "skill": _skill(),
    }


def envelope(payload: Dict[str, Any], event_id: str = None) -> Dict[str, Any]:
    """Wrap a payload in a base64 transport envelope."""
    env = {"data": base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")}
    if event_id:
        env["eventId"] = event_id
    return env
