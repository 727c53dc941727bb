# =============================================================================
# Application Entry Points
# =============================================================================
# Thin transport adapters that parse events and call the dispatcher.
# =============================================================================

from skill_sdk.app.entry_point import entry_point, lambda_handler

__all__ = [
    "entry_point",
    "lambda_handler",
]
