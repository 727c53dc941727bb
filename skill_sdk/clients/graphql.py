# =============================================================================
# GraphQL Client
# =============================================================================
# Workspace scoped GraphQL client authenticated with the payload's API key.
#
# Usage:
#   result = ctx.graphql.query("query ChatTeam { ChatTeam { id } }")
#   team_id = result["ChatTeam"][0]["id"]
# =============================================================================

import json
import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class GraphQLError(Exception):
    """Raised when the GraphQL endpoint returns errors."""

    def __init__(self, errors: Any):
        super().__init__(json.dumps(errors, indent=2, default=str))
        self.errors = errors


class GraphQLClient:
    """
    GraphQL client for one workspace.

    No connection is made until the first query.
    """

    def __init__(self, api_key: Optional[str], url: str, timeout: int = 60):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        response = requests.post(self.url, json=body, headers=self._headers(), timeout=self.timeout)
        response.raise_for_status()
        result = response.json()
        if result.get("errors"):
            raise GraphQLError(result["errors"])
        return result.get("data") or {}

    def query(self, query: str, variables: Dict[str, Any] = None) -> Dict[str, Any]:
        """Run a GraphQL query and return its data."""
        return self._post({"query": query, "variables": variables or {}})

    def mutate(self, mutation: str, variables: Dict[str, Any] = None) -> Dict[str, Any]:
        """Run a GraphQL mutation and return its data."""
        return self._post({"query": mutation, "variables": variables or {}})
