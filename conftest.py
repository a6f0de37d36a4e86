"""Workspace-level pytest configuration and fixtures."""

import pytest

from exact_state.store import get_default_store, get_locals, set_locals


@pytest.fixture(autouse=True, scope="function")
def isolate_default_store():
    """Automatically preserve and restore the process-wide store for each test.

    The default store and the render locals are module-level mutable state
    shared by every factory that is not given its own store. Tests that
    populate or clear them would otherwise leak into each other.
    """
    store = get_default_store()
    saved_state = store.snapshot_state()
    saved_locals = get_locals()

    yield

    store.restore_state(saved_state)
    set_locals(saved_locals)
