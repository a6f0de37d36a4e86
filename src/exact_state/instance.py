"""Service instances: shared state with per-key subscriber fan-out."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from exact_state.definition import HOOK_NAMES, definition_name, invoke_hook
from exact_state.errors import InvalidArgumentError
from exact_state.protocols import Component

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriberRecord:
    """Subscription of one component to one service instance.

    Attributes:
        component: The subscribed component
        keys: State keys forwarded to the component, fixed at registration

    """

    component: Component
    keys: frozenset[str]


class ServiceInstance:
    """Mutable state shared by every component subscribed to it.

    State is only changed through set_state(), which merges the update and
    then synchronously notifies each subscriber with the subset of the update
    it tracks. Subscribers tracking none of the changed keys are not called.

    Subscriptions are kept in a table owned by the instance and keyed by
    component identity; components themselves are never modified.
    """

    def __init__(
        self,
        definition: object,
        props: Mapping[str, Any],
        unique_key: str | None = None,
    ) -> None:
        """Initialise the instance and compute its initial state.

        Args:
            definition: Definition supplying hooks and behaviour methods
            props: Merged default and caller props
            unique_key: Namespaced cache key, or None for a private instance

        Raises:
            HookFailureError: If get_initial_state raises
            InvalidArgumentError: If get_initial_state returns a non-mapping

        """
        self._definition = definition
        self._props: Mapping[str, Any] = MappingProxyType(dict(props))
        self._unique_key = unique_key
        self._state: dict[str, Any] = {}
        self._subscribers: dict[int, SubscriberRecord] = {}
        self._pending: deque[dict[str, Any]] = deque()
        self._notifying = False
        self._first_mount_fired = False
        self._first_render_fired = False
        self._last_unmount_fired = False

        initial_state = invoke_hook(definition, "get_initial_state", self)
        if initial_state is not None:
            if not isinstance(initial_state, Mapping):
                raise InvalidArgumentError(
                    f"get_initial_state() of '{self.name}' must return a mapping, "
                    f"got {type(initial_state).__name__}"
                )
            self._state.update(initial_state)

    def __repr__(self) -> str:
        return (
            f"<ServiceInstance {self.name} key={self._unique_key!r} "
            f"subscribers={self.subscriber_count}>"
        )

    @property
    def name(self) -> str:
        """Name of the definition this instance was built from."""
        return definition_name(self._definition)

    @property
    def definition(self) -> object:
        return self._definition

    @property
    def props(self) -> Mapping[str, Any]:
        """Read-only props fixed at construction."""
        return self._props

    @property
    def unique_key(self) -> str | None:
        """Namespaced key this instance is cached under, if any."""
        return self._unique_key

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def register_component(
        self, component: Component, keys: Iterable[str] | None = None
    ) -> ServiceInstance:
        """Subscribe a component to a set of state keys.

        Registering an already subscribed component replaces its key set
        without counting it twice.

        Args:
            component: Component to notify on updates
            keys: Keys to track. None tracks every current state key.

        Returns:
            This instance, for chaining

        Raises:
            InvalidArgumentError: If keys is a bare string

        """
        if isinstance(keys, str):
            raise InvalidArgumentError(
                "keys must be a sequence of key names, not a string"
            )
        tracked = frozenset(self._state if keys is None else keys)
        self._subscribers[id(component)] = SubscriberRecord(component, tracked)
        logger.debug(
            "Registered component on '%s' tracking %s (%d subscriber(s))",
            self.name,
            sorted(tracked),
            self.subscriber_count,
        )
        return self

    def deregister_component(self, component: Component) -> None:
        """Unsubscribe a component.

        No-op if the component is not subscribed.
        """
        if self._subscribers.pop(id(component), None) is not None:
            logger.debug(
                "Deregistered component from '%s' (%d subscriber(s) left)",
                self.name,
                self.subscriber_count,
            )

    def is_subscribed(self, component: Component) -> bool:
        return id(component) in self._subscribers

    def tracked_keys(self, component: Component) -> frozenset[str]:
        """Keys a subscribed component tracks.

        Raises:
            KeyError: If the component is not subscribed

        """
        return self._subscribers[id(component)].keys

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def get_state(self, keys: Iterable[str] | None = None) -> dict[str, Any]:
        """Return a copy of the state, optionally restricted to keys.

        Keys that are not present in the state are left out.
        """
        if keys is None:
            return dict(self._state)
        return {key: self._state[key] for key in keys if key in self._state}

    def set_state(self, partial: Mapping[str, Any]) -> None:
        """Merge partial into the state and notify interested subscribers.

        An update made from inside a subscriber callback is merged at once
        but delivered only after the current update has reached every
        subscriber, so all subscribers see updates in the order they were made.

        Args:
            partial: Keys and values to merge, later keys overwrite

        Raises:
            InvalidArgumentError: If partial is None or not a mapping

        """
        if not isinstance(partial, Mapping):
            raise InvalidArgumentError(
                f"set_state() requires a mapping, got {type(partial).__name__}"
            )

        update = dict(partial)
        self._state.update(update)
        self._pending.append(update)

        if self._notifying:
            return

        self._notifying = True
        try:
            while self._pending:
                self._fan_out(self._pending.popleft())
        finally:
            self._notifying = False
            self._pending.clear()

    def _fan_out(self, update: dict[str, Any]) -> None:
        # Snapshot so subscribers may deregister from inside their callback
        for record in list(self._subscribers.values()):
            # Components deregistered by an earlier callback are skipped
            current = self._subscribers.get(id(record.component))
            if current is None or current.component is not record.component:
                continue
            filtered = {key: value for key, value in update.items() if key in current.keys}
            if filtered:
                current.component.set_state(filtered)

    # -------------------------------------------------------------------------
    # Behaviour delegation
    # -------------------------------------------------------------------------

    def call(self, method_name: str, *args: Any, **kwargs: Any) -> Any:
        """Invoke a behaviour method of the definition on this instance.

        The definition method receives this instance as its first argument.

        Raises:
            AttributeError: If the definition has no such behaviour method

        """
        method: Callable[..., Any] | None = getattr(self._definition, method_name, None)
        if method_name.startswith("_") or method_name in HOOK_NAMES or not callable(method):
            raise AttributeError(
                f"'{self.name}' has no behaviour method '{method_name}'"
            )
        return method(self, *args, **kwargs)

    # -------------------------------------------------------------------------
    # Lifecycle notifications (each fires at most once per instance)
    # -------------------------------------------------------------------------

    def notify_first_mount(self) -> bool:
        """Fire on_first_mount unless it already fired.

        Returns:
            True if the hook fired on this call

        Raises:
            HookFailureError: If the hook raises

        """
        if self._first_mount_fired:
            return False
        self._first_mount_fired = True
        invoke_hook(self._definition, "on_first_mount", self)
        return True

    def notify_first_render(self) -> bool:
        """Fire on_first_render unless it already fired."""
        if self._first_render_fired:
            return False
        self._first_render_fired = True
        invoke_hook(self._definition, "on_first_render", self)
        return True

    def notify_last_unmount(self) -> bool:
        """Fire on_last_unmount unless it already fired."""
        if self._last_unmount_fired:
            return False
        self._last_unmount_fired = True
        invoke_hook(self._definition, "on_last_unmount", self)
        return True
