"""Global configuration for schemac.

This module provides centralized configuration management with support for
environment variables and sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class SchemacConfig(BaseSettings):
    """schemac configuration settings.

    Values can be overridden via environment variables with SCHEMAC_ prefix.
    Example: SCHEMAC_DEFAULT_KV_TTL=600 overrides default_kv_ttl.
    """

    # Storage columns
    tenant_column: str = Field(
        default="host",
        description="Tenant isolation column appended to every table",
    )
    soft_delete_column: str = Field(
        default="deleted_at",
        description="Soft-delete column appended when no SoftDelete field exists",
    )
    created_at_column: str = Field(
        default="created_at",
        description="Creation timestamp column",
    )
    updated_at_column: str = Field(
        default="updated_at",
        description="Update timestamp column",
    )

    # Runtime generation
    default_kv_ttl: int = Field(
        default=3600,
        ge=1,
        le=604800,
        description="Default TTL (seconds) for generated KV setters",
    )
    elm_module_prefix: str = Field(
        default="Generated",
        description="Module prefix of generated Elm modules",
    )

    # Source reading
    source_extension: str = Field(
        default=".elm",
        description="Extension of model source files",
    )
    max_alias_depth: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Maximum nesting when expanding plain type aliases",
    )

    # Diagnostics
    strict: bool = Field(
        default=False,
        description="Treat warnings as failures in the CLI",
    )

    model_config = {
        "env_prefix": "SCHEMAC_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_config() -> SchemacConfig:
    """Get cached configuration instance.

    Returns:
        SchemacConfig singleton instance.
    """
    return SchemacConfig()


def reload_config() -> SchemacConfig:
    """Reload configuration (clears cache).

    Returns:
        Fresh SchemacConfig instance.
    """
    get_config.cache_clear()
    return get_config()
