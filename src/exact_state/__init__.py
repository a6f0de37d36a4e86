"""Shared, subscribable state services for UI components.

Services hold state, fan updates out to the components subscribed to the
changed keys, and can be shared across a component tree by cache key.
"""

__version__ = "0.1.0"

from exact_state.configuration import (
    BaseServiceConfiguration,
    EvictionPolicy,
    ServiceMixinOptions,
    StateServiceConfiguration,
)
from exact_state.definition import ServiceDefinition
from exact_state.errors import (
    HookFailureError,
    InvalidArgumentError,
    KeyConflictError,
    StateServiceError,
)
from exact_state.factory import ServiceFactory, create_factory
from exact_state.instance import ServiceInstance, SubscriberRecord
from exact_state.mixin import ServiceMixin, ServiceSubscription, SubscriptionPhase
from exact_state.protocols import Component
from exact_state.render import load_props, prepare_render, serialize_props
from exact_state.store import (
    InMemoryKeyedStore,
    KeyedStore,
    get_default_store,
    get_locals,
    reset,
    set_locals,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Component",
    "ServiceDefinition",
    "ServiceFactory",
    "ServiceInstance",
    "ServiceMixin",
    "ServiceSubscription",
    "SubscriberRecord",
    "SubscriptionPhase",
    "create_factory",
    # Store
    "InMemoryKeyedStore",
    "KeyedStore",
    "get_default_store",
    "get_locals",
    "reset",
    "set_locals",
    # Render pipeline
    "load_props",
    "prepare_render",
    "serialize_props",
    # Configuration
    "BaseServiceConfiguration",
    "EvictionPolicy",
    "ServiceMixinOptions",
    "StateServiceConfiguration",
    # Errors
    "HookFailureError",
    "InvalidArgumentError",
    "KeyConflictError",
    "StateServiceError",
]
