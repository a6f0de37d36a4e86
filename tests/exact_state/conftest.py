"""Shared test fixtures for state service tests."""

from collections.abc import Mapping
from typing import Any

import pytest

from exact_state import (
    InMemoryKeyedStore,
    ServiceDefinition,
    ServiceFactory,
    ServiceInstance,
    StateServiceConfiguration,
)


class CounterDefinition(ServiceDefinition):
    """Counter service that records every lifecycle hook call."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def get_default_props(self) -> Mapping[str, Any]:
        return {"step": 1}

    def get_initial_state(self, service: ServiceInstance) -> Mapping[str, Any]:
        return {"count": 0, "label": f"step {service.props['step']}"}

    def increment(self, service: ServiceInstance) -> int:
        count = service.get_state(["count"])["count"] + service.props["step"]
        service.set_state({"count": count})
        return count

    def on_first_mount(self, service: ServiceInstance) -> None:
        self.calls.append("first_mount")

    def on_first_render(self, service: ServiceInstance) -> None:
        self.calls.append("first_render")

    def on_last_unmount(self, service: ServiceInstance) -> None:
        self.calls.append("last_unmount")


@pytest.fixture
def store() -> InMemoryKeyedStore:
    return InMemoryKeyedStore()


@pytest.fixture
def counter_definition() -> CounterDefinition:
    return CounterDefinition()


@pytest.fixture
def counter_factory(
    counter_definition: CounterDefinition, store: InMemoryKeyedStore
) -> ServiceFactory:
    """Counter factory with its own store and ref-counted eviction."""
    return ServiceFactory(
        counter_definition,
        store=store,
        config=StateServiceConfiguration(eviction="ref_counted"),
    )
