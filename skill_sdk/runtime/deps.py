# =============================================================================
# Dependency Container
# =============================================================================
# One Deps per invocation context. Every client is created on first access,
# so building a context performs no network I/O and no boto3 client setup.
# =============================================================================

import os
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Dict, Optional

from skill_sdk.clients.credential import CredentialProvider
from skill_sdk.clients.datalog import DatalogClient
from skill_sdk.clients.graphql import GraphQLClient
from skill_sdk.clients.http import HttpClient
from skill_sdk.clients.message import TopicPublisher, create_message_client
from skill_sdk.clients.project import ProjectLoader
from skill_sdk.clients.storage import StorageProvider, bucket_name
from skill_sdk.runtime.payload import Payload, Skill

DEFAULT_GRAPHQL_ENDPOINT = "https://automation.atomist.com/graphql"
DEFAULT_DATALOG_ENDPOINT = "https://api.atomist.com/datalog"


@dataclass
class Deps:
    """
    Capability container for one invocation.

    Usage:
        deps = create_deps(payload)
        deps.graphql.query("query ChatTeam { ChatTeam { id } }")
    """
    payload: Payload
    region: str = field(default_factory=lambda: os.environ.get("AWS_REGION", "us-east-1"))

    @property
    def api_key(self) -> Optional[str]:
        return self.payload.api_key

    @property
    def workspace_id(self) -> str:
        return self.payload.workspace_id

    @property
    def correlation_id(self) -> str:
        return self.payload.correlation_id

    @property
    def skill(self) -> Skill:
        return self.payload.skill

    # ==========================================================================
    # Capability Clients (lazy-loaded)
    # ==========================================================================
    # TopicPublisher and StorageProvider create their boto3 clients on first
    # publish/store, not here.

    @cached_property
    def publisher(self) -> TopicPublisher:
        return TopicPublisher(topic_arn=self.config["SKILL_TOPIC_ARN"], region=self.region)

    @cached_property
    def graphql(self) -> GraphQLClient:
        return GraphQLClient(self.api_key, self.config["GRAPHQL_ENDPOINT"], self.config["SKILL_HTTP_TIMEOUT"])

    @cached_property
    def datalog(self) -> DatalogClient:
        return DatalogClient(
            self.api_key,
            self.config["DATALOG_ENDPOINT"],
            self.workspace_id,
            self.correlation_id,
            self.skill,
            publisher=self.publisher,
            timeout=self.config["SKILL_HTTP_TIMEOUT"],
        )

    @cached_property
    def http(self) -> HttpClient:
        return HttpClient(timeout=self.config["SKILL_HTTP_TIMEOUT"])

    @cached_property
    def storage(self) -> StorageProvider:
        return StorageProvider(self.config["SKILL_STORAGE"], self.region)

    @cached_property
    def credential(self) -> CredentialProvider:
        return CredentialProvider(self.graphql, self.payload)

    @cached_property
    def message(self):
        return create_message_client(self.payload, self.publisher)

    @cached_property
    def project(self) -> ProjectLoader:
        return ProjectLoader()

    # ==========================================================================
    # Configuration
    # ==========================================================================

    @cached_property
    def config(self) -> Dict[str, Any]:
        """Environment configuration."""
        return {
            "AWS_REGION": self.region,
            "SKILL_TOPIC_ARN": os.environ.get("SKILL_TOPIC_ARN", ""),
            "SKILL_STORAGE": bucket_name(self.workspace_id),
            "GRAPHQL_ENDPOINT": os.environ.get("GRAPHQL_ENDPOINT", DEFAULT_GRAPHQL_ENDPOINT),
            "DATALOG_ENDPOINT": os.environ.get("DATALOG_ENDPOINT", DEFAULT_DATALOG_ENDPOINT),
            "SKILL_LOG_LEVEL": os.environ.get("SKILL_LOG_LEVEL", "DEBUG"),
            "SKILL_HTTP_TIMEOUT": int(os.environ.get("SKILL_HTTP_TIMEOUT", "60")),
        }

    def close(self) -> None:
        """Release clients that hold connections."""
        if "http" in self.__dict__:
            self.http.close()


def create_deps(payload: Payload, region: str = None) -> Deps:
    """Create a new Deps instance for a payload."""
    return Deps(payload=payload, region=region or os.environ.get("AWS_REGION", "us-east-1"))
