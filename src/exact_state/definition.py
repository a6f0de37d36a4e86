"""Service definitions: the behaviour bundle a factory is built from.

A definition supplies optional hooks. Hooks that need the instance being
built or notified receive it as an explicit ``service`` argument. Any other
public method on a definition is a behaviour method, invoked through
``ServiceInstance.call()`` with the instance as its first argument.

Definitions do not have to subclass ServiceDefinition: any object works,
and hooks it lacks are treated as no-ops.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from exact_state.errors import HookFailureError

if TYPE_CHECKING:
    from exact_state.instance import ServiceInstance

logger = logging.getLogger(__name__)

HOOK_NAMES = frozenset(
    {
        "get_default_props",
        "get_initial_state",
        "get_unique_key",
        "map_props",
        "on_first_mount",
        "on_first_render",
        "on_last_unmount",
    }
)


class ServiceDefinition:
    """Base class for service definitions with no-op hooks.

    Example:
        ```python
        class CounterDefinition(ServiceDefinition):
            def get_default_props(self):
                return {"step": 1}

            def get_initial_state(self, service):
                return {"count": 0}

            def increment(self, service):
                count = service.get_state(["count"])["count"]
                service.set_state({"count": count + service.props["step"]})

        counter = create_factory(CounterDefinition())
        ```

    """

    def get_default_props(self) -> Mapping[str, Any]:
        """Props merged underneath caller props for every new instance."""
        return {}

    def get_initial_state(self, service: ServiceInstance) -> Mapping[str, Any]:
        """Initial state of a new instance. ``service.props`` is already set."""
        return {}

    def get_unique_key(self, props: Mapping[str, Any]) -> str | None:
        """Derive a cache key from merged props. None keeps instances private."""
        return None

    def map_props(self, props: Mapping[str, Any]) -> Mapping[str, Any]:
        """Map component props to service props."""
        return props

    def on_first_mount(self, service: ServiceInstance) -> None:
        """Called once, when the first subscriber is about to mount."""
        pass

    def on_first_render(self, service: ServiceInstance) -> None:
        """Called once, after the first subscriber has rendered."""
        pass

    def on_last_unmount(self, service: ServiceInstance) -> None:
        """Called once, when the last subscriber unmounts."""
        pass


def definition_name(definition: object) -> str:
    """Human-readable name of a definition for logs and errors."""
    return getattr(definition, "name", None) or type(definition).__name__


def invoke_hook(definition: object, hook_name: str, *args: Any) -> Any:
    """Invoke a definition hook, wrapping failures in HookFailureError.

    Args:
        definition: Definition object to look the hook up on
        hook_name: Attribute name of the hook
        *args: Arguments passed to the hook

    Returns:
        The hook's return value, or None if the definition lacks the hook

    Raises:
        HookFailureError: If the hook raises

    """
    hook = getattr(definition, hook_name, None)
    if not callable(hook):
        return None

    try:
        return hook(*args)
    except Exception as e:
        name = definition_name(definition)
        logger.warning("Hook '%s' of '%s' failed: %s", hook_name, name, e)
        raise HookFailureError(name, hook_name) from e
