# =============================================================================
# Handler Building Blocks
# =============================================================================
# Status builders, chains, step runs, subscription mapping and parameter
# prompts used inside skill handlers.
# =============================================================================

from skill_sdk.handlers.status import HandlerStatus, failure, prepare_status, success

__all__ = [
    "HandlerStatus",
    "success",
    "failure",
    "prepare_status",
]
