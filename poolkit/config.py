"""
Pool configuration for poolkit.

This module provides the pydantic models that describe a pool: the immutable
connection parameters handed to the factory, and the pool settings that bound
and shape the acquire/release algorithm. Configurations can be built in code,
from environment variables, or from a JSON/YAML file.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator

from .utils.logging import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "POOLKIT_"


class ConnectionParams(BaseModel):
    """Parameters a factory uses to open a handle. Never mutated."""

    model_config = ConfigDict(frozen=True)

    endpoint: str = Field(..., min_length=1, description="Address of the underlying resource")
    principal: str = Field(..., description="Identity to authenticate as")
    credential: SecretStr = Field(..., description="Secret for the principal")


class PoolConfig(BaseModel):
    """Configuration for a handle pool."""

    name: str = Field("default", description="Name of the pool, used in logs")

    # Connection settings
    endpoint: str = Field(..., min_length=1, description="Address of the underlying resource")
    principal: str = Field(..., description="Identity to authenticate as")
    credential: SecretStr = Field(..., description="Secret for the principal")

    # Pool size settings
    min_size: int = Field(0, ge=0, description="Handles created eagerly at construction")
    max_size: int = Field(10, ge=0, description="Maximum number of handles in the pool")

    # Acquire settings
    acquire_timeout: Optional[float] = Field(
        30.0, gt=0, description="Seconds to wait on an exhausted pool; None waits indefinitely"
    )
    acquire_blocks_on_exhaustion: bool = Field(
        True, description="Wait for a release instead of failing when the pool is exhausted"
    )

    # Validation settings
    validation_timeout: float = Field(5.0, gt=0, description="Budget for a single validity check in seconds")
    validate_on_release: bool = Field(False, description="Whether to validate handles when they are released")
    release_sample_rate: float = Field(
        1.0, ge=0.0, le=1.0, description="Fraction of releases validated when validate_on_release is set"
    )

    @model_validator(mode="after")
    def validate_sizes(self) -> "PoolConfig":
        """Validate that max_size is not below min_size."""
        if self.max_size < self.min_size:
            raise ValueError(f"max_size ({self.max_size}) must be greater than or equal to min_size ({self.min_size})")
        return self

    def connection_params(self) -> ConnectionParams:
        """Build the immutable connection parameters for the factory."""
        return ConnectionParams(
            endpoint=self.endpoint,
            principal=self.principal,
            credential=self.credential,
        )

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, environ: Optional[Mapping[str, str]] = None, **overrides) -> "PoolConfig":
        """Load a configuration from environment variables.

        ``POOLKIT_MAX_SIZE=20`` sets ``max_size``; names are matched without
        regard to case. Keyword arguments override the environment.

        Args:
            prefix: The prefix for environment variables
            environ: The mapping to read instead of ``os.environ``
            **overrides: Values that take precedence over the environment

        Returns:
            The configuration
        """
        environ = os.environ if environ is None else environ
        fields = set(cls.model_fields)
        values: Dict[str, Any] = {}

        for key, value in environ.items():
            if not key.upper().startswith(prefix.upper()):
                continue
            field = key[len(prefix):].lower()
            if field in fields:
                values[field] = _parse_env_value(value)

        values.update(overrides)
        logger.debug(f"Loaded pool settings from environment: {sorted(values)}")
        return cls.model_validate(values)

    @classmethod
    def from_file(cls, path: Union[str, Path], **overrides) -> "PoolConfig":
        """Load a configuration from a JSON or YAML file.

        Args:
            path: The path to the configuration file
            **overrides: Values that take precedence over the file

        Returns:
            The configuration

        Raises:
            ValueError: If the file format is not supported
        """
        path = Path(path)
        suffix = path.suffix.lower()

        with open(path, "r", encoding="utf-8") as f:
            if suffix == ".json":
                data = json.load(f)
            elif suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                raise ValueError(f"Unsupported configuration file format: {path.suffix}")

        data = dict(data or {})
        data.update(overrides)
        return cls.model_validate(data)


def _parse_env_value(value: str) -> Optional[str]:
    """Map the spellings of "unset" to None; pydantic coerces the rest."""
    if value.strip().lower() in ("", "none", "null"):
        return None
    return value
