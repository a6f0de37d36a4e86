"""Configuration classes for state services.

Configuration objects are immutable pydantic models. They can be created
directly with typed fields or from a properties dictionary, in which case
environment variables fill in anything the properties leave out.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from typing import Any, Literal, Self

from typing_extensions import override

from pydantic import BaseModel, ConfigDict, Field, field_validator

EvictionPolicy = Literal["ref_counted", "reset_only"]


class BaseServiceConfiguration(BaseModel):
    """Base class for state service configurations.

    Features:
        - Pydantic validation for type safety
        - Immutable by default (frozen) for configuration integrity
        - from_properties() factory method for dictionary-based creation
        - Strict validation (no extra fields allowed)

    """

    model_config = ConfigDict(
        # Immutable - configuration cannot be modified after creation
        frozen=True,
        # Strict - extra fields not in the model are rejected
        extra="forbid",
        validate_assignment=True,
    )

    @classmethod
    def from_properties(cls, properties: Mapping[str, Any]) -> Self:
        """Create configuration from properties dictionary with validation.

        Args:
            properties: Dictionary containing configuration properties

        Returns:
            Validated configuration instance

        Raises:
            ValidationError: If properties are invalid or missing required fields

        """
        return cls.model_validate(dict(properties))


class StateServiceConfiguration(BaseServiceConfiguration):
    """Deployment-level settings for service factories.

    Attributes:
        eviction: What happens to a cached instance when its last subscriber
            unmounts. ``ref_counted`` deletes the cache entry, ``reset_only``
            keeps it until the store is cleared (server rendering).
        factory_id_prefix: Prefix for generated factory ids

    Example:
        ```python
        # Client side, default policy
        config = StateServiceConfiguration()

        # Server side, entries live until the pre-render reset
        config = StateServiceConfiguration(eviction="reset_only")

        # Zero-config (reads STATE_SERVICE_EVICTION)
        config = StateServiceConfiguration.from_properties({})
        ```

    """

    eviction: EvictionPolicy = Field(
        default="ref_counted",
        description="Cache eviction policy: 'ref_counted' or 'reset_only'",
    )
    factory_id_prefix: str = Field(default="factory", min_length=1)

    @field_validator("eviction", mode="before")
    @classmethod
    def normalise_eviction(cls, v: Any) -> Any:
        """Accept eviction policy names in any case and with dashes."""
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v

    @classmethod
    @override
    def from_properties(cls, properties: Mapping[str, Any]) -> Self:
        """Create configuration from properties with environment fallback.

        Environment variables used:
        - STATE_SERVICE_EVICTION: Eviction policy (default: "ref_counted")

        Args:
            properties: Configuration properties dictionary

        Returns:
            Validated configuration instance

        Raises:
            ValidationError: If configuration is invalid

        """
        config_data = dict(properties)

        if "eviction" not in config_data:
            config_data["eviction"] = os.getenv("STATE_SERVICE_EVICTION", "ref_counted")

        return cls.model_validate(config_data)


class ServiceMixinOptions(BaseServiceConfiguration):
    """Options for binding components to a service through a mixin.

    Attributes:
        keys: State keys the component tracks. None tracks every state key
            present at registration time.
        ref: Name under which the service is exposed in the component's
            ``service_refs`` mapping
        cache_key: Explicit key to share the instance across components
        map_props: Transforms component props before they reach the factory

    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )

    keys: tuple[str, ...] | None = None
    ref: str | None = None
    cache_key: str | None = None
    map_props: Callable[[Mapping[str, Any]], Mapping[str, Any]] | None = None

    @field_validator("keys", mode="before")
    @classmethod
    def normalise_keys(cls, v: Any) -> Any:
        """Turn any non-string sequence of key names into a tuple."""
        if v is None or isinstance(v, tuple):
            return v
        if isinstance(v, str):
            raise ValueError("keys must be a sequence of key names, not a string")
        return tuple(v)
