"""Thin Vault HTTP client used by every component that talks to the service.

Pattern: Error Translation at the Boundary
-------------------------------------------
hvac signals HTTP failures with ``hvac.exceptions.VaultError`` subclasses and
transport failures surface as ``requests`` exceptions.  Neither leaks past
this module: each call translates them into the error kind its callers care
about (``LoginRejected``, ``InvalidToken``, ``UnknownEntity``, ...), keeping
the service diagnostic in the message.

Login endpoints are called on an anonymous client: the token is an empty
string rather than ``None`` so hvac never picks up ``VAULT_TOKEN`` or
``~/.vault-token`` on its own.  ``with_token`` returns the client bound to
the session token for everything else.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import hvac
import hvac.exceptions
import requests

from vcreds.errors import (
    InvalidToken,
    LoginRejected,
    SecretReadFailed,
    ServiceUnavailable,
    UnknownEntity,
    UpdateRejected,
)

logger = logging.getLogger(__name__)


def _data(response: Any) -> dict[str, Any]:
    """Return the ``data`` block of a Vault JSON response (``{}`` if absent)."""
    if isinstance(response, dict) and isinstance(response.get("data"), dict):
        return response["data"]
    return {}


class VaultServiceClient:
    """Vault endpoints needed for login, identity and KV reads."""

    def __init__(self, service_addr: str, token: str = "", verify: bool | str = True) -> None:
        self._service_addr = service_addr
        self._verify = verify
        self._client = hvac.Client(url=service_addr, token=token, verify=verify)

    @property
    def service_addr(self) -> str:
        return self._service_addr

    def with_token(self, token: str) -> VaultServiceClient:
        """Return a client for the same server authenticated with *token*."""
        return VaultServiceClient(self._service_addr, token=token, verify=self._verify)

    # -- auth ------------------------------------------------------------------

    def request_nonce(self, mount_path: str) -> str:
        """``GET /v1/auth/<mount>/nonce`` and return the nonce string."""
        try:
            response = self._client.adapter.get(f"/v1/auth/{mount_path}/nonce")
        except hvac.exceptions.VaultError as exc:
            raise LoginRejected(f"Nonce request to auth/{mount_path} failed: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise ServiceUnavailable(f"Vault unreachable at {self._service_addr}: {exc}") from exc

        nonce = _data(response).get("nonce")
        if not nonce:
            raise LoginRejected(f"auth/{mount_path}/nonce returned no nonce")
        return nonce

    def login(self, mount_path: str, payload: dict[str, Any]) -> str:
        """``POST /v1/auth/<mount>/login`` and return the client token.

        Raises ``LoginRejected`` on any non-200 answer or when the response
        carries no ``auth.client_token``.
        """
        try:
            response = self._client.adapter.post(f"/v1/auth/{mount_path}/login", json=payload)
        except hvac.exceptions.VaultError as exc:
            raise LoginRejected(f"Could not login to vault (auth/{mount_path}): {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise ServiceUnavailable(f"Vault unreachable at {self._service_addr}: {exc}") from exc

        if not isinstance(response, dict):
            status = getattr(response, "status_code", "unknown")
            raise LoginRejected(
                f"Could not login to vault (auth/{mount_path}): unexpected status {status}"
            )

        token = (response.get("auth") or {}).get("client_token")
        if not token:
            raise LoginRejected(f"auth/{mount_path}/login response carried no client token")
        return token

    # -- identity --------------------------------------------------------------

    def lookup_self(self) -> dict[str, Any]:
        """Return the ``data`` block of ``auth/token/lookup-self``."""
        try:
            response = self._client.auth.token.lookup_self()
        except hvac.exceptions.VaultError as exc:
            raise InvalidToken(f"Token lookup failed: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise ServiceUnavailable(f"Vault unreachable at {self._service_addr}: {exc}") from exc
        return _data(response)

    def read_entity(self, entity_id: str) -> dict[str, Any]:
        """Return the ``data`` block of ``identity/entity/id/<id>``."""
        try:
            response = self._client.secrets.identity.read_entity(entity_id=entity_id)
        except hvac.exceptions.VaultError as exc:
            raise UnknownEntity(f"Could not read entity {entity_id}: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise ServiceUnavailable(f"Vault unreachable at {self._service_addr}: {exc}") from exc

        data = _data(response)
        if not data:
            raise UnknownEntity(f"Entity {entity_id} returned an empty document")
        return data

    def update_entity_metadata(self, entity_id: str, metadata: dict[str, str]) -> None:
        """Replace the entity's metadata map.  Vault must answer 204."""
        try:
            response = self._client.secrets.identity.update_entity(
                entity_id=entity_id,
                metadata=metadata,
            )
        except hvac.exceptions.VaultError as exc:
            raise UpdateRejected(f"Metadata update for entity {entity_id} failed: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise ServiceUnavailable(f"Vault unreachable at {self._service_addr}: {exc}") from exc

        status = getattr(response, "status_code", None)
        if status != 204:
            raise UpdateRejected(
                f"Metadata update for entity {entity_id} answered {status or 'with a body'}, "
                "expected 204"
            )

    # -- secrets ---------------------------------------------------------------

    def read_secret(self, mount_path: str, path: str) -> dict[str, str]:
        """Read a KV v2 secret (``<mount>/data/<path>``) and return its key/values."""
        try:
            response = self._client.secrets.kv.v2.read_secret_version(
                path=path,
                mount_point=mount_path,
                raise_on_deleted_version=True,
            )
        except hvac.exceptions.VaultError as exc:
            raise SecretReadFailed(f"Could not read secret {mount_path}/{path}: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise ServiceUnavailable(f"Vault unreachable at {self._service_addr}: {exc}") from exc

        values = _data(response).get("data") or {}
        # Non-string values are handed on as JSON a child process can parse.
        return {
            str(key): value if isinstance(value, str) else json.dumps(value)
            for key, value in values.items()
        }
