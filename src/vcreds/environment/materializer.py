"""Expand an environment template into the variables handed to a child process.

Pattern: Chained Namespaces
----------------------------
A template value such as ``"${USER}@${team}"`` is resolved against three
namespaces, highest priority first:

  1. the process environment the CLI was started with,
  2. the operator's profile (entity and alias metadata, ``env_`` stripped),
  3. the key/value pairs read from the configured KV secret paths.

The first namespace that defines a name wins.  A name defined nowhere
expands to the empty string; not every operator has every profile field
set, so a missing value is never an error.

Secret paths are only read when the template lists some.  Without them the
materializer is a pure function of its inputs.
"""

from __future__ import annotations

import logging
import re
from collections import ChainMap
from collections.abc import Mapping
from typing import TYPE_CHECKING

from vcreds.auth.session import Session
from vcreds.vault.client import VaultServiceClient

if TYPE_CHECKING:
    from vcreds.config import EnvTemplate

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\$\{([^}]*)\}")


def substitute(template: str, *namespaces: Mapping[str, str]) -> str:
    """Replace every ``${name}`` in *template* using the first namespace holding *name*."""
    lookup = ChainMap(*namespaces)

    def _replace(match: re.Match[str]) -> str:
        value = lookup.get(match.group(1).strip())
        return "" if value is None else str(value)

    return _PLACEHOLDER_RE.sub(_replace, template)


class EnvironmentMaterializer:
    """Builds the final environment map for a session and profile."""

    def __init__(self, client: VaultServiceClient, environ: Mapping[str, str]) -> None:
        self._client = client
        self._environ = environ

    def materialize(
        self,
        session: Session,
        profile: Mapping[str, str],
        template: EnvTemplate,
    ) -> dict[str, str]:
        environment: dict[str, str] = {
            "VAULT_ADDR": session.service_addr,
            "VAULT_TOKEN": session.token,
        }

        secrets = self._read_secrets(session, template)

        for name, value in template.static_map.items():
            environment[name] = substitute(value, self._environ, profile, secrets)

        logger.info(
            "Materialized %d variable(s) from %d secret path(s)",
            len(environment),
            len(template.secret_paths),
        )
        return environment

    def _read_secrets(self, session: Session, template: EnvTemplate) -> dict[str, str]:
        secrets: dict[str, str] = {}
        if not template.secret_paths:
            return secrets

        token_client = self._client.with_token(session.token)
        for path in template.secret_paths:
            values = token_client.read_secret(template.mount_path, path)
            logger.debug("Read %d key(s) from %s/%s", len(values), template.mount_path, path)
            secrets.update(values)
        return secrets
