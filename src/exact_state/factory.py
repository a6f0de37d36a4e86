"""Service factories: create or reuse service instances for one definition."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any
from uuid import uuid4

from exact_state.configuration import ServiceMixinOptions, StateServiceConfiguration
from exact_state.definition import definition_name, invoke_hook
from exact_state.errors import InvalidArgumentError, KeyConflictError
from exact_state.instance import ServiceInstance
from exact_state.mixin import ServiceMixin
from exact_state.store import KeyedStore, get_default_store

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "::"


class ServiceFactory:
    """Creates service instances for one definition.

    Instances requested with a cache key (explicit, or derived by the
    definition's get_unique_key) are stored in a keyed store and shared with
    every later request for the same key. Stored keys are namespaced with
    the factory id so equal keys from different factories never collide.

    Example:
        ```python
        todos = ServiceFactory(TodoDefinition())

        # Private instance
        service = todos.create({"owner": "ana"})

        # Shared instance
        shared = todos.create({"owner": "ana"}, cache_key="sidebar")
        assert todos.create(cache_key="sidebar") is shared
        ```

    """

    def __init__(
        self,
        definition: object,
        *,
        store: KeyedStore | None = None,
        config: StateServiceConfiguration | None = None,
    ) -> None:
        """Initialise factory and capture the definition's default props.

        Args:
            definition: Definition supplying hooks and behaviour methods
            store: Store for shared instances. None uses the process-wide store.
            config: Explicit configuration. None reads it from the environment.

        Raises:
            HookFailureError: If get_default_props raises
            InvalidArgumentError: If get_default_props returns a non-mapping

        """
        self._definition = definition
        self._store = store
        self._config = config or StateServiceConfiguration.from_properties({})
        self._factory_id = f"{self._config.factory_id_prefix}-{uuid4().hex}"

        default_props = invoke_hook(definition, "get_default_props")
        if default_props is not None and not isinstance(default_props, Mapping):
            raise InvalidArgumentError(
                f"get_default_props() of '{definition_name(definition)}' must "
                f"return a mapping, got {type(default_props).__name__}"
            )
        self._default_props: dict[str, Any] = dict(default_props or {})

        logger.debug(
            "Created factory %s for '%s' (eviction: %s)",
            self._factory_id,
            definition_name(definition),
            self._config.eviction,
        )

    @property
    def factory_id(self) -> str:
        return self._factory_id

    @property
    def definition(self) -> object:
        return self._definition

    @property
    def config(self) -> StateServiceConfiguration:
        return self._config

    @property
    def store(self) -> KeyedStore:
        """Store used for shared instances."""
        return self._store if self._store is not None else get_default_store()

    @property
    def default_props(self) -> dict[str, Any]:
        return dict(self._default_props)

    def namespaced_key(self, key: str) -> str:
        """Scope a cache key to this factory."""
        return f"{self._factory_id}{KEY_SEPARATOR}{key}"

    def create(
        self,
        props: Mapping[str, Any] | None = None,
        cache_key: str | None = None,
    ) -> ServiceInstance:
        """Return the shared instance for the resolved key, or build a new one.

        On a cache hit the given props are ignored: a shared instance keeps
        the props it was built with.

        Args:
            props: Caller props, merged over the definition's defaults
            cache_key: Explicit key to share the instance under

        Returns:
            Cached or newly created service instance

        Raises:
            KeyConflictError: If cache_key disagrees with get_unique_key
            HookFailureError: If a definition hook raises

        """
        merged = {**self._default_props, **(props or {})}
        key = self._resolve_key(merged, cache_key)

        if key is not None:
            cached = self.store.get(key)
            if cached is not None:
                logger.debug("Reusing cached service instance '%s'", key)
                return cached

        instance = ServiceInstance(self._definition, merged, unique_key=key)
        logger.debug(
            "Created service instance of '%s' (key: %s)", instance.name, key
        )

        if key is not None:
            self.store.set(key, instance)

        return instance

    def release(self, instance: ServiceInstance) -> bool:
        """Evict a cached instance that no longer has subscribers.

        Only applies under the ``ref_counted`` eviction policy, and only if
        the store still maps the instance's key to this very instance.

        Returns:
            True if the instance was evicted

        """
        key = instance.unique_key
        if (
            self._config.eviction != "ref_counted"
            or key is None
            or instance.subscriber_count > 0
            or self.store.get(key) is not instance
        ):
            return False

        self.store.delete(key)
        return True

    def mixin(
        self,
        options: ServiceMixinOptions | Mapping[str, Any] | Sequence[str] | None = None,
    ) -> ServiceMixin:
        """Build the mixin that binds host components to this factory.

        Args:
            options: Mixin options. A plain sequence of strings is shorthand
                for ``{"keys": sequence}``.

        Returns:
            Mixin descriptor, to be bound once per component instance

        """
        if options is None:
            options = ServiceMixinOptions()
        elif isinstance(options, Mapping):
            options = ServiceMixinOptions.from_properties(options)
        elif not isinstance(options, ServiceMixinOptions):
            options = ServiceMixinOptions(keys=options)
        return ServiceMixin(self, options)

    def _resolve_key(
        self, props: Mapping[str, Any], cache_key: str | None
    ) -> str | None:
        """Work out the namespaced store key from both key sources."""
        unique_key = invoke_hook(self._definition, "get_unique_key", props)

        # Empty keys mean "no key", as with None
        cache_key = cache_key or None
        unique_key = unique_key or None

        if cache_key is not None and unique_key is not None and cache_key != unique_key:
            raise KeyConflictError(cache_key, unique_key)

        key = cache_key if cache_key is not None else unique_key
        return self.namespaced_key(str(key)) if key is not None else None


def create_factory(
    definition: object,
    *,
    store: KeyedStore | None = None,
    config: StateServiceConfiguration | None = None,
) -> ServiceFactory:
    """Create a factory for a definition.

    Args:
        definition: Definition supplying hooks and behaviour methods
        store: Optional store, defaults to the process-wide store
        config: Optional configuration, defaults to the environment

    Returns:
        New ServiceFactory

    """
    return ServiceFactory(definition, store=store, config=config)
