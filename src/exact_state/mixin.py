"""Mixins binding host component lifecycles to service instances.

A ServiceMixin is a stateless descriptor for one (factory, options) pair.
Each host component binds it once, getting a ServiceSubscription that holds
the service for that component only:

    subscription = counter_mixin.bind(component)
    component.state = subscription.get_initial_state(component.props)
    subscription.component_will_mount()
    subscription.component_did_mount()
    ...
    subscription.component_will_unmount()
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableMapping
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

from exact_state.configuration import ServiceMixinOptions
from exact_state.definition import definition_name, invoke_hook
from exact_state.errors import HookFailureError, InvalidArgumentError, StateServiceError
from exact_state.instance import ServiceInstance
from exact_state.protocols import Component

if TYPE_CHECKING:
    from exact_state.factory import ServiceFactory

logger = logging.getLogger(__name__)


class SubscriptionPhase(Enum):
    """Lifecycle phase of one component's subscription."""

    UNINITIALISED = auto()
    MOUNTED = auto()
    UNMOUNTED = auto()


class ServiceMixin:
    """Glue between a service factory and host components."""

    def __init__(self, factory: ServiceFactory, options: ServiceMixinOptions) -> None:
        self._factory = factory
        self._options = options

    @property
    def factory(self) -> ServiceFactory:
        return self._factory

    @property
    def options(self) -> ServiceMixinOptions:
        return self._options

    def bind(self, component: Component) -> ServiceSubscription:
        """Create the per-component subscription for a host component."""
        return ServiceSubscription(self, component)


class ServiceSubscription:
    """One component's attachment to a service instance.

    Phases move UNINITIALISED -> MOUNTED -> UNMOUNTED. The service is only
    registered once it has been created successfully, so a failed
    get_initial_state() leaves nothing behind.
    """

    def __init__(self, mixin: ServiceMixin, component: Component) -> None:
        self._mixin = mixin
        self._component = component
        self._service: ServiceInstance | None = None
        self._phase = SubscriptionPhase.UNINITIALISED

    @property
    def phase(self) -> SubscriptionPhase:
        return self._phase

    @property
    def component(self) -> Component:
        return self._component

    @property
    def service(self) -> ServiceInstance:
        """The service this component is subscribed to.

        Raises:
            StateServiceError: If get_initial_state() has not succeeded yet

        """
        if self._service is None:
            raise StateServiceError("Subscription has not been initialised")
        return self._service

    def get_initial_state(
        self, props: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        """Create or reuse the service and subscribe the component.

        Args:
            props: Component props. None reads the component's ``props``
                attribute, falling back to no props.

        Returns:
            Initial local state for the component

        Raises:
            StateServiceError: If the subscription was already initialised
            KeyConflictError: If the cache key sources disagree
            HookFailureError: If a definition hook or the map_props option raises

        """
        if self._phase is not SubscriptionPhase.UNINITIALISED:
            raise StateServiceError(
                f"Subscription is already {self._phase.name.lower()}"
            )

        options = self._mixin.options
        factory = self._mixin.factory

        if props is None:
            props = getattr(self._component, "props", None) or {}

        if options.map_props is not None:
            try:
                props = options.map_props(props)
            except Exception as e:
                name = definition_name(factory.definition)
                logger.warning("Mixin map_props for '%s' failed: %s", name, e)
                raise HookFailureError(name, "map_props") from e
        else:
            mapped = invoke_hook(factory.definition, "map_props", props)
            if mapped is not None:
                props = mapped

        refs = self._service_refs() if options.ref is not None else None

        service = factory.create(props, cache_key=options.cache_key)
        service.register_component(self._component, options.keys)
        self._service = service
        self._phase = SubscriptionPhase.MOUNTED

        if refs is not None and options.ref is not None:
            refs[options.ref] = service

        return service.get_state(options.keys)

    def component_will_mount(self) -> None:
        """Fire the service's first-mount hook if no subscriber has yet."""
        self._require_mounted().notify_first_mount()

    def component_did_mount(self) -> None:
        """Fire the service's first-render hook if no subscriber has yet."""
        self._require_mounted().notify_first_render()

    def component_will_unmount(self) -> None:
        """Unsubscribe the component, firing the last-unmount hook if due.

        Deregistration, ref removal and eviction always happen, even when
        the last-unmount hook raises. Calling this again is a no-op.
        """
        if self._phase is SubscriptionPhase.UNMOUNTED:
            return
        service = self._require_mounted()
        component = self._component

        try:
            if service.subscriber_count == 1 and service.is_subscribed(component):
                service.notify_last_unmount()
        finally:
            service.deregister_component(component)
            self._phase = SubscriptionPhase.UNMOUNTED

            ref = self._mixin.options.ref
            if ref is not None:
                refs = self._service_refs()
                if refs is not None and refs.get(ref) is service:
                    del refs[ref]

            if self._mixin.factory.release(service):
                logger.debug("Evicted '%s' after its last subscriber", service.unique_key)

    def _require_mounted(self) -> ServiceInstance:
        if self._phase is not SubscriptionPhase.MOUNTED or self._service is None:
            raise StateServiceError(
                f"Lifecycle notification on {self._phase.name.lower()} subscription"
            )
        return self._service

    def _service_refs(self) -> MutableMapping[str, ServiceInstance] | None:
        refs = getattr(self._component, "service_refs", None)
        if refs is None:
            return None
        if not isinstance(refs, MutableMapping):
            raise InvalidArgumentError(
                "Component 'service_refs' must be a mutable mapping, "
                f"got {type(refs).__name__}"
            )
        return refs
