"""SSH agent challenge-response login against Vault's ``ssh`` auth method.

Pattern: First Key Wins
------------------------
The agent may hold several keys and only some of them are registered with
the Vault role.  Each key is tried in the order the agent lists them, one
at a time:

  START -> NONCE_REQUESTED -> CHALLENGE_SIGNED -> LOGIN_SUBMITTED -> SUCCEEDED | FAILED

  1. Ask Vault for a fresh nonce (``auth/<mount>/nonce``).
  2. Have the agent sign the nonce bytes with the key.
  3. Submit ``public_key``, ``role``, the base64 nonce and the base64
     signature to ``auth/<mount>/login``.

A rejected key is expected noise when probing several keys: it is logged at
debug level and the next key is tried.  As soon as one key yields a token
the remaining keys are skipped without any further network call.  Nonces
are single use; every key gets its own and a failed key is never retried.

Keys are tried strictly in sequence.  The agent serialises signing on its
single connection and only the first accepted key matters, so there is
nothing to gain from overlapping attempts.
"""

from __future__ import annotations

import base64
import enum
import logging

from vcreds.auth.ssh_agent import AgentIdentity, SSHAgentTransport
from vcreds.errors import AttemptFailed, LoginRejected, NoIdentityAccepted, ServiceUnavailable
from vcreds.vault.client import VaultServiceClient

logger = logging.getLogger(__name__)


class LoginState(enum.Enum):
    START = "start"
    NONCE_REQUESTED = "nonce_requested"
    CHALLENGE_SIGNED = "challenge_signed"
    LOGIN_SUBMITTED = "login_submitted"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ChallengeResponseAuthenticator:
    """Logs in with the first agent identity Vault accepts for *role*."""

    def __init__(self, client: VaultServiceClient, mount_path: str, role: str) -> None:
        self._client = client
        self._mount_path = mount_path
        self._role = role
        self.state = LoginState.START

    def authenticate(self, transport: SSHAgentTransport) -> str:
        """Return a Vault token, or raise ``NoIdentityAccepted``."""
        self.state = LoginState.START
        identities = transport.list_identities()

        token: str | None = None
        for identity in identities:
            if token is not None:
                logger.debug("ssh: skipping %s, already logged in", identity.comment)
                continue
            try:
                token = self._attempt(transport, identity)
            except AttemptFailed as exc:
                logger.debug("ssh: invalid challenge for public key %s: %s", identity.comment, exc)

        if token is None:
            self.state = LoginState.FAILED
            raise NoIdentityAccepted(
                f"Could not login to vault: none of the {len(identities)} agent "
                f"identit(ies) was accepted for role '{self._role}' on auth/{self._mount_path}"
            )

        self.state = LoginState.SUCCEEDED
        return token

    def _attempt(self, transport: SSHAgentTransport, identity: AgentIdentity) -> str:
        try:
            nonce = self._client.request_nonce(self._mount_path)
            self.state = LoginState.NONCE_REQUESTED

            nonce_bytes = nonce.encode("utf-8")
            signature = transport.sign(identity, nonce_bytes)
            self.state = LoginState.CHALLENGE_SIGNED

            payload = {
                "public_key": identity.public_key,
                "role": self._role,
                "nonce": base64.b64encode(nonce_bytes).decode("ascii"),
                "signature": base64.b64encode(signature).decode("ascii"),
            }
            self.state = LoginState.LOGIN_SUBMITTED
            token = self._client.login(self._mount_path, payload)
        except (LoginRejected, ServiceUnavailable) as exc:
            raise AttemptFailed(str(exc)) from exc

        logger.info(
            "ssh: logged in with %s key %s (%s)",
            identity.key_type,
            identity.fingerprint,
            identity.comment,
        )
        return token
