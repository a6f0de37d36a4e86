"""Helpers for the server render pipeline and client bootstrap.

Before each server render the pipeline resets the store so cached
instances from one request never leak into the next, then hands the
remaining render options to the root component as props. Those props are
also published as render locals, readable by any service through
get_locals(). The same props are serialised for the client bootstrap,
which loads them back as locals before mounting the tree again.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Mapping
from typing import Any

from exact_state.errors import InvalidArgumentError
from exact_state.store import KeyedStore, reset, set_locals

logger = logging.getLogger(__name__)

# Render options owned by the web framework, never passed to components
RESERVED_RENDER_KEYS = ("settings", "_locals", "cache")


def prepare_render(
    options: Mapping[str, Any], store: KeyedStore | None = None
) -> dict[str, Any]:
    """Reset the store, build the root props and publish them as locals.

    Args:
        options: Render options from the web framework
        store: Store to reset. None resets the process-wide store.

    Returns:
        Deep copy of options without the reserved framework keys

    """
    if store is None:
        reset()
    else:
        store.clear()

    props = {
        key: copy.deepcopy(value)
        for key, value in options.items()
        if key not in RESERVED_RENDER_KEYS
    }
    set_locals(props)
    logger.debug("Prepared render props with keys %s", sorted(props))
    return props


def serialize_props(props: Mapping[str, Any]) -> str:
    """Serialise root props for the client bootstrap.

    Raises:
        InvalidArgumentError: If props contain values JSON cannot represent

    """
    try:
        return json.dumps(dict(props), separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"Render props are not JSON serialisable: {e}") from e


def load_props(payload: str) -> dict[str, Any]:
    """Load a serialised props payload on the client and publish it as locals.

    Raises:
        InvalidArgumentError: If payload is not a JSON object

    """
    try:
        props = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"Props payload is not valid JSON: {e}") from e
    if not isinstance(props, dict):
        raise InvalidArgumentError(
            f"Props payload must be a JSON object, got {type(props).__name__}"
        )
    set_locals(props)
    return props
