"""Shared fixtures and fakes for tests.

No test talks to a real Vault server or SSH agent.  ``FakeVaultClient``
stands in for ``VaultServiceClient`` and ``FakeAgentTransport`` for
``SSHAgentTransport``; both record every call so tests can count round
trips.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from typing import Any

import pytest

from vcreds.auth.session import Session
from vcreds.auth.ssh_agent import AgentIdentity
from vcreds.config import AuthConfig
from vcreds.errors import (
    AttemptFailed,
    InvalidToken,
    LoginRejected,
    SecretReadFailed,
    UnknownEntity,
    UpdateRejected,
)


def make_identity(name: str, key_type: str = "ssh-ed25519") -> AgentIdentity:
    return AgentIdentity(
        key_type=key_type,
        public_key_blob=f"blob-{name}".encode(),
        fingerprint=f"fp-{name}",
        comment=f"{name}@laptop",
    )


class FakeAgentTransport:
    """Agent holding *identities*; signing with a name in *refuse* fails."""

    def __init__(self, identities: list[AgentIdentity], refuse: tuple[str, ...] = ()) -> None:
        self._identities = identities
        self._refuse = refuse
        self.signed: list[tuple[str, bytes]] = []
        self.closed = False

    def list_identities(self) -> list[AgentIdentity]:
        return list(self._identities)

    def sign(self, identity: AgentIdentity, data: bytes) -> bytes:
        if identity.fingerprint in self._refuse:
            raise AttemptFailed(f"agent refused {identity.fingerprint}")
        self.signed.append((identity.fingerprint, data))
        return b"sig-" + identity.fingerprint.encode()

    def close(self) -> None:
        self.closed = True

    def opener(self):
        """Return an ``agent_opener`` for ``CredentialResolver``."""

        @contextlib.contextmanager
        def _open(socket_path: str) -> Iterator[FakeAgentTransport]:
            self.socket_path = socket_path
            try:
                yield self
            finally:
                self.close()

        return _open


class FakeVaultClient:
    """In-memory Vault: one entity, a KV store and a table of accepted keys.

    Attributes:
        accepted:  public_key string (or JWT) -> token returned by login.
        tokens:    token -> entity id, consulted by ``lookup_self``.
    """

    def __init__(self) -> None:
        self.service_addr = "https://vault.test"
        self.accepted: dict[str, str] = {}
        self.tokens: dict[str, str] = {}
        self.entities: dict[str, dict[str, Any]] = {}
        self.secrets: dict[tuple[str, str], dict[str, str]] = {}
        self.nonce_requests: list[str] = []
        self.logins: list[tuple[str, dict[str, Any]]] = []
        self.updates: list[tuple[str, dict[str, str]]] = []
        self.secret_reads: list[tuple[str, str]] = []
        self.bound_token: str | None = None
        self.reject_updates = False
        self._nonce_counter = 0

    def with_token(self, token: str) -> FakeVaultClient:
        self.bound_token = token
        return self

    def request_nonce(self, mount_path: str) -> str:
        self._nonce_counter += 1
        self.nonce_requests.append(mount_path)
        return f"nonce-{self._nonce_counter}"

    def login(self, mount_path: str, payload: dict[str, Any]) -> str:
        self.logins.append((mount_path, payload))
        credential = payload.get("public_key") or payload.get("jwt")
        token = self.accepted.get(credential)
        if token is None:
            raise LoginRejected(f"Could not login to vault: {credential} rejected")
        return token

    def lookup_self(self) -> dict[str, Any]:
        entity_id = self.tokens.get(self.bound_token)
        if entity_id is None:
            raise InvalidToken("permission denied")
        return {"entity_id": entity_id, "policies": ["default"]}

    def read_entity(self, entity_id: str) -> dict[str, Any]:
        if entity_id not in self.entities:
            raise UnknownEntity(f"no entity {entity_id}")
        return self.entities[entity_id]

    def update_entity_metadata(self, entity_id: str, metadata: dict[str, str]) -> None:
        if self.reject_updates:
            raise UpdateRejected("permission denied")
        self.updates.append((entity_id, dict(metadata)))
        self.entities[entity_id]["metadata"] = dict(metadata)

    def read_secret(self, mount_path: str, path: str) -> dict[str, str]:
        self.secret_reads.append((mount_path, path))
        if (mount_path, path) not in self.secrets:
            raise SecretReadFailed(f"Could not read secret {mount_path}/{path}")
        return dict(self.secrets[(mount_path, path)])


@pytest.fixture
def vault() -> FakeVaultClient:
    client = FakeVaultClient()
    client.tokens["s.alice"] = "ent-alice"
    client.entities["ent-alice"] = {
        "id": "ent-alice",
        "name": "alice",
        "metadata": {"env_TEAM": "platform", "owner": "alice"},
        "aliases": [
            {"mount_type": "ssh", "custom_metadata": {"env_SHELL_THEME": "dark", "env_TEAM": "ops"}},
            {"mount_type": "jwt", "custom_metadata": None},
        ],
    }
    return client


@pytest.fixture
def alice_session() -> Session:
    return Session(token="s.alice", service_addr="https://vault.test", auth_method="ssh")


@pytest.fixture
def ssh_config() -> AuthConfig:
    return AuthConfig.model_validate(
        {"vault_addr": "https://vault.test", "ssh_auth": {"path": "ssh", "role": "ops"}}
    )
