# =============================================================================
# Credential Provider
# =============================================================================
# Handlers resolve credentials through resolver functions that get the
# GraphQL client and the triggering payload:
#
#   def github_token(graphql, payload):
#       ...
#   token = ctx.credential.resolve(github_token)
# =============================================================================

from typing import Any, Callable, Optional, TypeVar

T = TypeVar("T")

CredentialResolver = Callable[[Any, Any], Optional[T]]


class CredentialProvider:
    """Resolves credentials for one invocation."""

    def __init__(self, graphql: Any, payload: Any):
        self.graphql = graphql
        self.payload = payload

    def resolve(self, resolver: CredentialResolver) -> Optional[T]:
        return resolver(self.graphql, self.payload)
