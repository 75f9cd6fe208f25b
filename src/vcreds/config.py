"""Configuration schema and loader for ``.vcredsrc``.

The config file is loaded once at startup into an immutable ``AuthConfig``
that is passed explicitly to every component.  Nothing downstream reads the
config file or the process environment on its own.

String values may reference process environment variables as ``${NAME}``.
They are expanded before validation, except under ``env.vars``: those are
template values that the environment materializer expands later against
the process environment, the operator profile and the secrets it read.
"""

from __future__ import annotations

import logging
import pathlib
import re
from collections.abc import Mapping
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from vcreds.environment.materializer import substitute
from vcreds.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = ".vcredsrc"

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _scalar_text(name: Any, value: Any) -> str:
    """Render a YAML scalar the way a shell script expects to compare it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValueError(f"env.vars.{name} must be a scalar, not {type(value).__name__}")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class SSHAuthConfig(_Frozen):
    """SSH agent challenge-response login (``auth/<path>``)."""

    mount_path: str = Field(default="ssh", alias="path")
    role: str


class JWTAuthConfig(_Frozen):
    """JWT login (``auth/<path>``)."""

    mount_path: str = Field(default="jwt", alias="path")
    jwt: str | None = None
    role: str

    @field_validator("jwt")
    @classmethod
    def blank_is_absent(cls, value: str | None) -> str | None:
        return value or None


class EnvTemplate(_Frozen):
    """Declarative description of the environment handed to a child process.

    Attributes:
        static_map:   Variable name -> value template using ``${NAME}``.
        secret_paths: KV v2 paths read in order; later paths win on collision.
        mount_path:   KV v2 mount the secret paths live under.
    """

    static_map: dict[str, str] = Field(default_factory=dict, alias="vars")
    secret_paths: tuple[str, ...] = ()
    mount_path: str = Field(default="secret", alias="mount")

    @field_validator("static_map", mode="before")
    @classmethod
    def stringify_scalars(cls, value: Any) -> Any:
        # YAML turns ``PORT: 8080`` into an int and ``DEBUG: true`` into a bool.
        if isinstance(value, dict):
            return {key: _scalar_text(key, val) for key, val in value.items()}
        return value

    @field_validator("static_map")
    @classmethod
    def names_are_shell_safe(cls, value: dict[str, str]) -> dict[str, str]:
        bad = sorted(name for name in value if not _ENV_NAME_RE.match(name))
        if bad:
            raise ValueError(f"not valid environment variable names: {bad}")
        return value


class AuthConfig(_Frozen):
    """Everything the engine needs to authenticate and build an environment."""

    service_addr: str = Field(alias="vault_addr")
    static_token: str | None = Field(default=None, alias="VAULT_TOKEN")
    ssh_auth: SSHAuthConfig | None = None
    jwt_auth: JWTAuthConfig | None = None
    env: EnvTemplate = Field(default_factory=EnvTemplate)

    @field_validator("service_addr")
    @classmethod
    def addr_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("vault_addr must not be empty")
        return value.strip()

    @field_validator("static_token")
    @classmethod
    def blank_is_absent(cls, value: str | None) -> str | None:
        return value or None


def _expand(node: Any, environ: Mapping[str, str], path: tuple[str, ...] = ()) -> Any:
    """Recursively expand ``${NAME}`` in string values, skipping ``env.vars``."""
    if path == ("env", "vars"):
        return node
    if isinstance(node, dict):
        return {key: _expand(value, environ, path + (str(key),)) for key, value in node.items()}
    if isinstance(node, list):
        return [_expand(item, environ, path) for item in node]
    if isinstance(node, str):
        return substitute(node, environ)
    return node


def parse_config(raw: str, environ: Mapping[str, str]) -> AuthConfig:
    """Parse and validate a YAML config document."""
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config is not valid YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping with at least a 'vault_addr' key")

    try:
        return AuthConfig.model_validate(_expand(data, environ))
    except ValidationError as exc:
        raise ConfigError(f"Invalid config: {exc}") from exc


def load_config(
    path: str | pathlib.Path | None,
    environ: Mapping[str, str],
) -> AuthConfig:
    """Load ``AuthConfig`` from *path* (default ``.vcredsrc`` in the cwd).

    Raises ``ConfigError`` if the file is missing or malformed.
    """
    config_path = pathlib.Path(path if path is not None else DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    logger.debug("Loading config from %s", config_path)
    with open(config_path) as fh:
        return parse_config(fh.read(), environ)
