"""Access to the local SSH agent: list identities, sign challenges.

The agent is reached through the unix socket named by ``SSH_AUTH_SOCK``.
The caller passes the socket path in explicitly; this module never reads the
process environment.  paramiko speaks the agent protocol; we connect the
socket ourselves so that an unreachable agent is reported as
``AgentUnreachable`` instead of silently yielding no keys.

The connection is a scoped resource: ``open_agent`` is a context manager and
the socket is closed when the block exits, whether login succeeded or not.
"""

from __future__ import annotations

import base64
import contextlib
import dataclasses
import logging
import socket
from collections.abc import Iterator

from paramiko.agent import AgentKey, AgentSSH
from paramiko.ssh_exception import SSHException

from vcreds.errors import AgentUnreachable, AttemptFailed

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class AgentIdentity:
    """A public key held by the agent.

    Attributes:
        key_type:        SSH key type, e.g. ``ssh-ed25519``.
        public_key_blob: Public key in SSH wire format.
        fingerprint:     Hex MD5 fingerprint of the blob.
        comment:         Comment the key was added with (often a file path).
    """

    key_type: str
    public_key_blob: bytes
    fingerprint: str
    comment: str

    @property
    def public_key(self) -> str:
        """OpenSSH ``authorized_keys`` form: ``"<type> <base64 blob>"``."""
        return f"{self.key_type} {base64.b64encode(self.public_key_blob).decode('ascii')}"


class _SocketAgent(AgentSSH):
    """paramiko agent client bound to an already connected socket."""

    def __init__(self, conn: socket.socket) -> None:
        super().__init__()
        self._connect(conn)

    def close(self) -> None:
        self._close()


class SSHAgentTransport:
    """Lists the agent's identities and signs data with them."""

    def __init__(self, agent: AgentSSH) -> None:
        self._agent = agent
        self._keys: dict[str, AgentKey] = {}

    def list_identities(self) -> list[AgentIdentity]:
        """Return the agent's identities in the order the agent reports them."""
        identities: list[AgentIdentity] = []
        for key in self._agent.get_keys():
            identity = AgentIdentity(
                key_type=key.get_name(),
                public_key_blob=key.asbytes(),
                fingerprint=key.get_fingerprint().hex(),
                comment=getattr(key, "comment", "") or "",
            )
            self._keys[identity.fingerprint] = key
            identities.append(identity)
        logger.debug("SSH agent offers %d identit(ies)", len(identities))
        return identities

    def sign(self, identity: AgentIdentity, data: bytes) -> bytes:
        """Sign *data* with *identity* and return the SSH signature blob.

        Raises ``AttemptFailed`` if the agent refuses or the key is unknown.
        """
        key = self._keys.get(identity.fingerprint)
        if key is None:
            raise AttemptFailed(f"Identity {identity.fingerprint} was not listed by this agent")
        try:
            return bytes(key.sign_ssh_data(data))
        except (SSHException, OSError) as exc:
            raise AttemptFailed(f"Agent refused to sign with {identity.comment}: {exc}") from exc

    def close(self) -> None:
        self._agent.close()


@contextlib.contextmanager
def open_agent(socket_path: str) -> Iterator[SSHAgentTransport]:
    """Connect to the agent at *socket_path* for the duration of the block."""
    conn = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        conn.connect(socket_path)
        transport = SSHAgentTransport(_SocketAgent(conn))
    except (OSError, SSHException) as exc:
        conn.close()
        raise AgentUnreachable(f"Cannot reach SSH agent at {socket_path}: {exc}") from exc

    try:
        yield transport
    finally:
        transport.close()
        logger.debug("Closed SSH agent connection %s", socket_path)
