"""Error classes for the state service store.

This module provides:
- StateServiceError: Base exception class for all state service errors
- InvalidArgumentError: Malformed state update payloads
- KeyConflictError: Disagreeing cache key sources
- HookFailureError: A definition hook raised while being invoked
"""


class StateServiceError(Exception):
    """Base exception for all state service errors."""

    pass


class InvalidArgumentError(StateServiceError, TypeError):
    """Raised when a state update payload is absent or not a mapping."""

    pass


class KeyConflictError(StateServiceError, ValueError):
    """Raised when an explicit cache key and a definition unique key disagree."""

    def __init__(self, cache_key: str, unique_key: str) -> None:
        """Initialise with both disagreeing keys.

        Args:
            cache_key: Key requested explicitly by the caller
            unique_key: Key derived by the definition from props

        """
        self.cache_key = cache_key
        self.unique_key = unique_key
        super().__init__(
            f"Explicit cache key '{cache_key}' does not match "
            f"definition unique key '{unique_key}'"
        )


class HookFailureError(StateServiceError):
    """Raised when a definition-supplied hook raises.

    The original exception is always chained as ``__cause__``.
    """

    def __init__(self, definition_name: str, hook_name: str) -> None:
        """Initialise with the failing hook location.

        Args:
            definition_name: Name of the service definition
            hook_name: Name of the hook that raised

        """
        self.definition_name = definition_name
        self.hook_name = hook_name
        super().__init__(f"Hook '{hook_name}' of '{definition_name}' failed")
