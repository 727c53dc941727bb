# =============================================================================
# Parameter Prompting
# =============================================================================
# Command handlers ask for missing parameters by sending a continuation
# message and pausing. Pausing is an explicit outcome, not an error: the
# dispatcher publishes a success status for it on the command path.
#
# Usage:
#   params = ctx.parameters.prompt({
#       "title": {"description": "Issue title"},
#       "labels": {"required": False},
#   })
# =============================================================================

import copy
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Union

from skill_sdk.clients.message import CONTINUATION_MIME_TYPE

# --name=value, --name='quoted value' or --name="quoted value"
_PARAMETER_PATTERN = re.compile(r"(?:^|\s)--([a-zA-Z0-9._\-]+)=(?:'([^']*)'|\"([^\"]*)\"|(\S*))")


class ParameterStyle(str, Enum):
    """Where parameter questions are asked."""
    DIALOG = "dialog"
    THREADED = "threaded"
    UNTHREADED = "unthreaded"
    DIALOG_ACTION = "dialog_action"


@dataclass
class NeedsMoreInput:
    """
    Handler outcome meaning: waiting for the user to supply parameters.

    Attributes:
        message: the continuation message that was sent
        missing: names of required parameters still missing
    """
    message: Dict[str, Any] = field(default_factory=dict)
    missing: List[str] = field(default_factory=list)


class CommandListenerExecutionInterruptError(Exception):
    """Raised by a prompt to pause the command handler."""

    def __init__(self, message: str = "Prompting for parameters", needs: NeedsMoreInput = None):
        super().__init__(message)
        self.needs = needs or NeedsMoreInput()


def extract_parameters(text: str) -> List[Dict[str, str]]:
    """
    Parse --name=value pairs out of a free-text command line.

    When a name repeats the last value wins; results keep the order in which
    names first appear.
    """
    args: Dict[str, str] = {}
    for match in _PARAMETER_PATTERN.finditer((text or "").strip()):
        name = match.group(1)
        if not name:
            continue
        value = next((g for g in match.groups()[1:] if g is not None), "")
        args[name] = value
    return [{"name": name, "value": value} for name, value in args.items()]


def merge_parameters(parameters: List[Dict[str, Any]], extracted: List[Dict[str, str]]) -> List[Dict[str, Any]]:
    """Append extracted parameters whose names are not already present."""
    merged = list(parameters or [])
    existing = {p.get("name") for p in merged}
    for arg in extracted:
        if arg["name"] not in existing:
            merged.append(arg)
            existing.add(arg["name"])
    return merged


class ParameterPrompt:
    """Collects command parameters, prompting for the missing ones."""

    def __init__(self, message_client: Any, payload: Any):
        self.message_client = message_client
        self.payload = payload

    @property
    def values(self) -> Dict[str, Any]:
        return {p.get("name"): p.get("value") for p in self.payload.get("parameters") or []}

    def prompt(
        self,
        parameters: Dict[str, Dict[str, Any]],
        thread: Union[bool, str] = None,
        parameter_style: ParameterStyle = None,
        auto_submit: bool = None,
    ) -> Dict[str, Any]:
        """
        Return the requested parameter values.

        Raises:
            CommandListenerExecutionInterruptError: if a required parameter is
                missing; a continuation message has been sent by then
        """
        existing = self.payload.get("parameters") or []
        collected = {}
        unanswered = copy.deepcopy(parameters)
        missing = []
        for name, spec in parameters.items():
            match = next((p for p in existing if p.get("name") == name), None)
            if match is None:
                # required defaults to True
                if (spec or {}).get("required", True):
                    missing.append(name)
            else:
                collected[name] = match.get("value")
                unanswered.pop(name, None)

        if not missing:
            return collected

        message = self._continuation(unanswered, thread, parameter_style, auto_submit)
        self.message_client.respond(message)
        raise CommandListenerExecutionInterruptError(
            "Prompting for parameters", NeedsMoreInput(message=message, missing=missing)
        )

    __call__ = prompt

    def _continuation(self, unanswered: Dict[str, Dict[str, Any]], thread, parameter_style, auto_submit):
        source = self.payload.get("source")
        thread_ts = None
        if thread is True and source:
            thread_ts = ((source.get("slack") or {}).get("message") or {}).get("ts")
        elif isinstance(thread, str):
            thread_ts = thread

        destination = copy.deepcopy(source) or {}
        destination.setdefault("slack", {})["thread_ts"] = thread_ts

        specs = []
        for name, spec in unanswered.items():
            spec = dict(spec or {})
            pattern = spec.get("pattern")
            spec.update({
                "name": name,
                "required": spec.get("required", True),
                "pattern": getattr(pattern, "pattern", pattern),
            })
            specs.append(spec)

        return {
            "api_version": "1",
            "correlation_id": self.payload.correlation_id,
            "team": self.payload.team,
            "command": self.payload.name,
            "source": source,
            "destinations": [destination],
            "parameters": self.payload.get("parameters") or [],
            "auto_submit": auto_submit or None,
            "question": ParameterStyle(parameter_style).value if parameter_style else None,
            "parameter_specs": specs,
            "content_type": CONTINUATION_MIME_TYPE,
        }
