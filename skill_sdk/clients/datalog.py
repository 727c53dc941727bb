# =============================================================================
# Datalog Client
# =============================================================================
# Queries the workspace's Datalog endpoint and transacts new facts.
#
# Queries are retried with exponential backoff on connection failures
# (DNS hiccups in particular); any other error aborts immediately.
# Transactions are published as facts_ingestion messages on the response
# topic.
#
# Usage:
#   rows = ctx.datalog.query(
#       "[:find (pull ?c [*]) :in $ ?sha :where [?c :git.commit/sha ?sha]]",
#       {"sha": "123456"},
#   )
# =============================================================================

import json
import logging
import re
from typing import Any, Dict, List, Optional, Union

import requests

from skill_sdk.clients.retry import AbortRetry, retry
from skill_sdk.handlers.mapping import map_subscription

logger = logging.getLogger(__name__)

QUERY_MODES = ("map", "obj", "raw")


def resolve_parameters(query: str, parameters: Dict[str, Any] = None) -> str:
    """Substitute ?name tokens in a query; strings are quoted and escaped."""
    for key, value in (parameters or {}).items():
        replacement = json.dumps(value, ensure_ascii=False)
        query = re.sub(rf"\?{re.escape(key)}\b", lambda _: replacement, query)
    return query


def _kebab_case(value: str) -> str:
    value = re.sub(r"([a-z0-9])([A-Z])", r"\1-\2", value)
    return re.sub(r"[\s_]+", "-", value).lower()


def entity(entity_type: str, attributes: Dict[str, Any], name: str = None) -> Dict[str, Any]:
    """
    Build a transactable entity.

    Unqualified attribute names are prefixed with the entity type:
    entity("git/commit", {"sha": "123"}) -> {"git.commit/sha": "123", ...}
    """
    result: Dict[str, Any] = {"schema/entity-type": f":{entity_type}"}
    if name:
        result["schema/entity"] = name
    prefix = entity_type.replace("/", ".")
    for attribute, value in attributes.items():
        key = attribute if "/" in attribute else f"{prefix}/{_kebab_case(attribute)}"
        result[key] = value
    return result


class DatalogClient:
    """
    Datalog client bound to one workspace.

    Args:
        api_key: workspace API key
        url: endpoint base; the workspace id is appended
        publisher: TopicPublisher used by transact
    """

    def __init__(self, api_key: Optional[str], url: str, workspace_id: str, correlation_id: str,
                 skill: Any, publisher: Any = None, timeout: int = 60, retries: int = 5):
        self.api_key = api_key
        self.url = f"{url.rstrip('/')}/team/{workspace_id}"
        self.workspace_id = workspace_id
        self.correlation_id = correlation_id
        self.skill = skill
        self.publisher = publisher
        self.timeout = timeout
        self.retries = retries

    def _body(self, query: str, parameters: Dict[str, Any], tx: Optional[int],
              configuration_name: Optional[str], rules: Optional[str]) -> Dict[str, Any]:
        body: Dict[str, Any] = {"query": resolve_parameters(query, parameters)}
        if tx:
            body["tx-range"] = {"start": tx}
        if configuration_name:
            body["skill-ref"] = {
                "name": self.skill.name,
                "namespace": self.skill.namespace,
                "configuration-name": configuration_name,
            }
        if rules:
            body["rules"] = rules
        return body

    def _post(self, body: Dict[str, Any]) -> requests.Response:
        try:
            response = requests.post(
                self.url,
                json=body,
                headers={
                    "Authorization": f"bearer {self.api_key}",
                    "Accept": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.ConnectionError as e:
            logger.warning(f"Retrying Datalog operation due to connection failure: {e}")
            raise
        except requests.RequestException as e:
            raise AbortRetry(e)
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise AbortRetry(e)
        return response

    def query(
        self,
        query: str,
        parameters: Dict[str, Any] = None,
        tx: int = None,
        configuration_name: str = None,
        mode: str = "map",
        rules: str = None,
    ) -> Union[List[Any], str]:
        """
        Run a Datalog query.

        Args:
            mode: "map" maps each result row like a subscription result,
                "obj" returns the first result unmapped, "raw" returns the
                response text
            tx: only consider transactions starting at this id
        """
        if mode not in QUERY_MODES:
            raise ValueError(f"Unsupported query mode: {mode}")

        body = self._body(query, parameters, tx, configuration_name, rules)
        response = retry(lambda: self._post(body), retries=self.retries, retry_on=(requests.ConnectionError,))

        if mode == "raw":
            return response.text

        parsed = response.json()
        if mode == "obj":
            first = parsed[0] if isinstance(parsed, list) and parsed else parsed
            return first if isinstance(first, list) else [first]
        if tx:
            rows = (parsed[0] if isinstance(parsed, list) else parsed).get("result") or []
        else:
            rows = parsed if isinstance(parsed, list) else [parsed]
        return [map_subscription(row) for row in rows]

    def transact(self, entities: Union[Dict[str, Any], List[Dict[str, Any]]]) -> Dict[str, Any]:
        """Publish entities for ingestion."""
        message = {
            "api_version": "1",
            "correlation_id": self.correlation_id,
            "team": {"id": self.workspace_id},
            "type": "facts_ingestion",
            "entities": json.dumps(entities if isinstance(entities, list) else [entities], default=str),
        }
        if self.publisher is None:
            logger.debug("No publisher configured, dropping facts_ingestion message")
        else:
            self.publisher.publish_message(message)
        return message
