"""Tests for ServiceInstance state, subscriptions and fan-out."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from exact_state import (
    HookFailureError,
    InvalidArgumentError,
    ServiceDefinition,
    ServiceInstance,
)
from exact_state.testing import RecordingComponent


class ProfileDefinition(ServiceDefinition):
    def get_initial_state(self, service: ServiceInstance) -> Mapping[str, Any]:
        return {"name": service.props.get("name", ""), "age": 0, "city": None}


@pytest.fixture
def service() -> ServiceInstance:
    return ServiceInstance(ProfileDefinition(), {"name": "ana"})


class TestServiceInstanceState:
    """Test state reads and merges."""

    def test_initial_state_can_read_props(self, service: ServiceInstance) -> None:
        assert service.get_state() == {"name": "ana", "age": 0, "city": None}

    def test_props_are_read_only(self, service: ServiceInstance) -> None:
        with pytest.raises(TypeError):
            service.props["name"] = "bo"  # type: ignore[index]

    def test_get_state_restricts_to_requested_keys(self, service: ServiceInstance) -> None:
        assert service.get_state(["age", "missing"]) == {"age": 0}

    def test_get_state_returns_a_copy(self, service: ServiceInstance) -> None:
        snapshot = service.get_state()
        snapshot["age"] = 99

        assert service.get_state(["age"]) == {"age": 0}

    def test_set_state_accumulates_merges_with_later_keys_winning(
        self, service: ServiceInstance
    ) -> None:
        updates = [{"age": 1}, {"city": "Porto", "age": 2}, {"name": "bo"}]
        expected = service.get_state()

        for update in updates:
            service.set_state(update)
            expected.update(update)
            assert service.get_state() == expected

    def test_set_state_can_add_new_keys(self, service: ServiceInstance) -> None:
        service.set_state({"email": "ana@example.com"})

        assert service.get_state(["email"]) == {"email": "ana@example.com"}

    @pytest.mark.parametrize("payload", [None, ["age", 1], "age=1", 3])
    def test_set_state_rejects_non_mapping(
        self, service: ServiceInstance, payload: Any
    ) -> None:
        with pytest.raises(InvalidArgumentError):
            service.set_state(payload)

        assert service.get_state(["age"]) == {"age": 0}

    def test_missing_hooks_give_empty_state(self) -> None:
        service = ServiceInstance(object(), {"a": 1})

        assert service.get_state() == {}
        assert service.props == {"a": 1}

    def test_initial_state_hook_failure_is_wrapped(self) -> None:
        class Broken(ServiceDefinition):
            def get_initial_state(self, service: ServiceInstance) -> Mapping[str, Any]:
                raise RuntimeError("boom")

        with pytest.raises(HookFailureError) as exc_info:
            ServiceInstance(Broken(), {})

        assert exc_info.value.hook_name == "get_initial_state"
        assert exc_info.value.definition_name == "Broken"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_initial_state_must_be_a_mapping(self) -> None:
        class ListState(ServiceDefinition):
            def get_initial_state(self, service: ServiceInstance) -> Any:
                return [1, 2]

        with pytest.raises(InvalidArgumentError):
            ServiceInstance(ListState(), {})


class TestServiceInstanceSubscriptions:
    """Test registration bookkeeping."""

    def test_register_defaults_to_all_current_state_keys(
        self, service: ServiceInstance
    ) -> None:
        component = RecordingComponent()

        service.register_component(component)

        assert service.tracked_keys(component) == {"name", "age", "city"}
        assert service.subscriber_count == 1

    def test_register_twice_replaces_keys_without_double_counting(
        self, service: ServiceInstance
    ) -> None:
        component = RecordingComponent()

        service.register_component(component, ["age"])
        service.register_component(component, ["city"])

        assert service.subscriber_count == 1
        assert service.tracked_keys(component) == {"city"}

    def test_register_does_not_modify_component(self, service: ServiceInstance) -> None:
        component = RecordingComponent()
        before = dict(vars(component))

        service.register_component(component)

        assert vars(component) == before

    def test_deregister_twice_is_noop(self, service: ServiceInstance) -> None:
        component = RecordingComponent()
        service.register_component(component)

        service.deregister_component(component)
        service.deregister_component(component)

        assert service.subscriber_count == 0
        assert not service.is_subscribed(component)

    def test_register_rejects_bare_string_keys(self, service: ServiceInstance) -> None:
        """Test a single string is not split into character keys."""
        component = RecordingComponent()

        with pytest.raises(InvalidArgumentError):
            service.register_component(component, "age")

        assert not service.is_subscribed(component)

    def test_deregister_unknown_component_is_noop(self, service: ServiceInstance) -> None:
        service.register_component(RecordingComponent())

        service.deregister_component(RecordingComponent())

        assert service.subscriber_count == 1

    def test_tracked_keys_raises_for_unknown_component(
        self, service: ServiceInstance
    ) -> None:
        with pytest.raises(KeyError):
            service.tracked_keys(RecordingComponent())


class TestServiceInstanceFanOut:
    """Test selective update fan-out to subscribers."""

    def test_subscriber_receives_only_tracked_keys(self, service: ServiceInstance) -> None:
        component = RecordingComponent()
        service.register_component(component, ["age"])

        service.set_state({"age": 3, "city": "Lisbon"})

        assert component.updates == [{"age": 3}]

    def test_subscriber_not_called_for_untracked_update(
        self, service: ServiceInstance
    ) -> None:
        component = RecordingComponent()
        service.register_component(component, ["age"])

        service.set_state({"city": "Lisbon"})

        assert component.updates == []

    def test_each_subscriber_gets_its_own_subset(self, service: ServiceInstance) -> None:
        ages = RecordingComponent()
        cities = RecordingComponent()
        everything = RecordingComponent()
        service.register_component(ages, ["age"])
        service.register_component(cities, ["city"])
        service.register_component(everything)

        service.set_state({"age": 5, "city": "Braga"})

        assert ages.updates == [{"age": 5}]
        assert cities.updates == [{"city": "Braga"}]
        assert everything.updates == [{"age": 5, "city": "Braga"}]

    def test_default_key_set_is_fixed_at_registration(
        self, service: ServiceInstance
    ) -> None:
        """Test keys added after registration are not forwarded."""
        component = RecordingComponent()
        service.register_component(component)

        service.set_state({"email": "ana@example.com"})

        assert component.updates == []

    def test_deregistered_component_is_not_notified(
        self, service: ServiceInstance
    ) -> None:
        component = RecordingComponent()
        service.register_component(component)
        service.deregister_component(component)

        service.set_state({"age": 1})

        assert component.updates == []

    def test_state_is_fully_merged_before_first_notification(
        self, service: ServiceInstance
    ) -> None:
        observed: list[dict[str, Any]] = []

        class Observer:
            def set_state(self, partial: Mapping[str, Any]) -> None:
                observed.append(service.get_state())

        service.register_component(Observer(), ["age"])

        service.set_state({"age": 7, "city": "Faro"})

        assert observed == [{"name": "ana", "age": 7, "city": "Faro"}]

    def test_subscriber_may_deregister_during_notification(
        self, service: ServiceInstance
    ) -> None:
        later = RecordingComponent()

        class Leaver:
            def set_state(self, partial: Mapping[str, Any]) -> None:
                service.deregister_component(self)

        service.register_component(Leaver(), ["age"])
        service.register_component(later, ["age"])

        service.set_state({"age": 2})

        assert service.subscriber_count == 1
        assert later.updates == [{"age": 2}]

    def test_component_deregistered_by_earlier_callback_is_not_notified(
        self, service: ServiceInstance
    ) -> None:
        """Test a parent unmounting a child mid-update stops the child's update."""
        child = RecordingComponent()

        class Parent:
            def set_state(self, partial: Mapping[str, Any]) -> None:
                service.deregister_component(child)

        service.register_component(Parent(), ["age"])
        service.register_component(child, ["age"])

        service.set_state({"age": 4})

        assert child.updates == []
        assert not service.is_subscribed(child)

    def test_nested_update_is_delivered_after_outer_update(
        self, service: ServiceInstance
    ) -> None:
        """Test every subscriber ends on the latest value after a nested update."""
        later = RecordingComponent()

        class Clamp:
            def set_state(self, partial: Mapping[str, Any]) -> None:
                if partial["age"] > 1:
                    service.set_state({"age": 1})

        service.register_component(Clamp(), ["age"])
        service.register_component(later, ["age"])

        service.set_state({"age": 5})

        assert service.get_state(["age"]) == {"age": 1}
        assert later.updates == [{"age": 5}, {"age": 1}]
        assert later.state == {"age": 1}

    def test_failing_subscriber_does_not_block_later_updates(
        self, service: ServiceInstance
    ) -> None:
        component = RecordingComponent()

        class Failing:
            def set_state(self, partial: Mapping[str, Any]) -> None:
                raise RuntimeError("render failed")

        failing = Failing()
        service.register_component(failing, ["age"])
        service.register_component(component, ["age"])

        with pytest.raises(RuntimeError):
            service.set_state({"age": 1})
        service.deregister_component(failing)
        service.set_state({"age": 2})

        assert component.updates == [{"age": 2}]


class TestServiceInstanceBehaviour:
    """Test delegation to definition behaviour methods and lifecycle guards."""

    def test_call_passes_instance_to_behaviour_method(self) -> None:
        class Greeter(ServiceDefinition):
            def greet(self, service: ServiceInstance, greeting: str) -> str:
                return f"{greeting}, {service.props['name']}"

        service = ServiceInstance(Greeter(), {"name": "ana"})

        assert service.call("greet", "hello") == "hello, ana"

    def test_call_rejects_hooks_and_unknown_methods(
        self, service: ServiceInstance
    ) -> None:
        with pytest.raises(AttributeError):
            service.call("on_first_mount")
        with pytest.raises(AttributeError):
            service.call("missing")
        with pytest.raises(AttributeError):
            service.call("__init__")

    def test_lifecycle_notifications_fire_at_most_once(self) -> None:
        calls: list[str] = []

        class Tracked(ServiceDefinition):
            def on_first_mount(self, service: ServiceInstance) -> None:
                calls.append("mount")

            def on_last_unmount(self, service: ServiceInstance) -> None:
                calls.append("unmount")

        service = ServiceInstance(Tracked(), {})

        assert service.notify_first_mount() is True
        assert service.notify_first_mount() is False
        assert service.notify_first_render() is True
        assert service.notify_last_unmount() is True
        assert service.notify_last_unmount() is False
        assert calls == ["mount", "unmount"]

    def test_failing_lifecycle_hook_raises_hook_failure(self) -> None:
        class Broken(ServiceDefinition):
            def on_first_render(self, service: ServiceInstance) -> None:
                raise ValueError("render failed")

        service = ServiceInstance(Broken(), {})

        with pytest.raises(HookFailureError, match="on_first_render"):
            service.notify_first_render()
