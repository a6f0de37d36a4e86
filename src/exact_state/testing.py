"""Testing utilities for code built on the state service store.

This module provides a fake host component and contract tests shared by
every KeyedStore implementation.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from exact_state.instance import ServiceInstance
from exact_state.store import KeyedStore


class RecordingComponent:
    """Minimal host component that records every state update it receives.

    Attributes:
        props: Props handed to mixins that are not given explicit props
        state: Accumulated local state
        updates: Every partial passed to set_state(), in order
        service_refs: Services exposed through mixin ``ref`` options

    """

    def __init__(self, props: Mapping[str, Any] | None = None) -> None:
        self.props: dict[str, Any] = dict(props or {})
        self.state: dict[str, Any] = {}
        self.updates: list[dict[str, Any]] = []
        self.service_refs: dict[str, ServiceInstance] = {}

    def set_state(self, partial: Mapping[str, Any]) -> None:
        self.updates.append(dict(partial))
        self.state.update(partial)


class KeyedStoreContractTests:
    """Abstract contract tests that all KeyedStore implementations must pass.

    Required Fixtures:
        store: Empty KeyedStore instance to test
        instance: Any ServiceInstance to store

    Usage Pattern:
        class TestMyStore(KeyedStoreContractTests):
            @pytest.fixture
            def store(self) -> KeyedStore:
                return MyStore()

    """

    @pytest.fixture
    def store(self) -> KeyedStore:
        """Provide an empty KeyedStore instance to test.

        Raises:
            NotImplementedError: If subclass doesn't override this fixture

        """
        raise NotImplementedError(
            "Subclass must provide 'store' fixture with an empty KeyedStore"
        )

    @pytest.fixture
    def instance(self) -> ServiceInstance:
        return ServiceInstance(object(), {})

    def test_get_returns_none_for_missing_key(self, store: KeyedStore) -> None:
        assert store.get("missing") is None

    def test_set_then_get_returns_same_instance(
        self, store: KeyedStore, instance: ServiceInstance
    ) -> None:
        store.set("key", instance)

        assert store.get("key") is instance
        assert "key" in store

    def test_set_replaces_existing_entry(
        self, store: KeyedStore, instance: ServiceInstance
    ) -> None:
        replacement = ServiceInstance(object(), {})

        store.set("key", instance)
        store.set("key", replacement)

        assert store.get("key") is replacement
        assert len(store) == 1

    def test_delete_removes_entry(
        self, store: KeyedStore, instance: ServiceInstance
    ) -> None:
        store.set("key", instance)

        store.delete("key")

        assert store.get("key") is None
        assert "key" not in store

    def test_delete_missing_key_is_noop(self, store: KeyedStore) -> None:
        store.delete("missing")
        store.delete("missing")

        assert len(store) == 0

    def test_clear_drops_every_entry(
        self, store: KeyedStore, instance: ServiceInstance
    ) -> None:
        store.set("a", instance)
        store.set("b", instance)

        store.clear()

        assert store.keys() == []
        assert store.get("a") is None

    def test_clear_on_empty_store_does_not_raise(self, store: KeyedStore) -> None:
        store.clear()
        store.clear()

        assert len(store) == 0
