# =============================================================================
# Capability Clients
# =============================================================================
# GraphQL, Datalog, HTTP, messaging, storage, credentials and projects.
# Every client is created per invocation by skill_sdk.runtime.deps.Deps.
# =============================================================================
