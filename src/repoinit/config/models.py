"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, repoinit.toml only contains
overrides. A fresh repository needs no config file at all.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from repoinit.domain.errors import InvalidPathError
from repoinit.domain.paths import normalize_path
from repoinit.domain.principals import DEFAULT_SYSTEM_USERS_PATH, DEFAULT_USERS_PATH


class RepositoryConfig(BaseModel):
    """[repository] section."""

    model_config = {"frozen": True}

    name: str = "repository"
    lock_timeout: float = Field(default=5.0, gt=0)


class PrincipalsConfig(BaseModel):
    """[principals] section."""

    model_config = {"frozen": True}

    users_path: str = DEFAULT_USERS_PATH
    system_users_path: str = DEFAULT_SYSTEM_USERS_PATH

    @field_validator("users_path", "system_users_path")
    @classmethod
    def _absolute(cls, value: str) -> str:
        try:
            return normalize_path(value)
        except InvalidPathError as exc:
            raise ValueError(exc.message) from exc


class NodesConfig(BaseModel):
    """[nodes] section."""

    model_config = {"frozen": True}

    default_node_type: str = "nt:unstructured"


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    enabled: bool = True


class RepoinitConfig(BaseModel):
    """Root config model — all sections of repoinit.toml."""

    model_config = {"frozen": True}

    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    principals: PrincipalsConfig = Field(default_factory=PrincipalsConfig)
    nodes: NodesConfig = Field(default_factory=NodesConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
