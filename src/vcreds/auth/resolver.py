"""Choose a credential method and turn it into a ``Session``.

Precedence, first match wins:

  1. a token handed in by the caller (``--token``),
  2. the static ``VAULT_TOKEN`` from the config file,
  3. SSH agent challenge-response, if ``ssh_auth`` is configured and an agent
     socket is available,
  4. JWT login, if ``jwt_auth`` is configured with a JWT.

Once a method is chosen its errors propagate unchanged.  A configured SSH
method that fails does not fall back to JWT: the config names the method
the operator wants, this is not an automatic retry chain.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractContextManager

from vcreds.auth.challenge import ChallengeResponseAuthenticator
from vcreds.auth.session import Session
from vcreds.auth.ssh_agent import SSHAgentTransport, open_agent
from vcreds.config import AuthConfig
from vcreds.errors import NoCredentialMethod
from vcreds.vault.client import VaultServiceClient

logger = logging.getLogger(__name__)

AgentOpener = Callable[[str], AbstractContextManager[SSHAgentTransport]]


class CredentialResolver:
    """Produces a ``Session`` from an ``AuthConfig``."""

    def __init__(
        self,
        config: AuthConfig,
        client: VaultServiceClient,
        agent_socket: str | None = None,
        agent_opener: AgentOpener = open_agent,
    ) -> None:
        self._config = config
        self._client = client
        self._agent_socket = agent_socket
        self._agent_opener = agent_opener

    def resolve(self, token: str | None = None) -> Session:
        """Return a Session, or raise ``NoCredentialMethod``."""
        addr = self._config.service_addr

        if token:
            logger.debug("Using token supplied by the caller")
            return Session(token=token, service_addr=addr, auth_method="token")

        if self._config.static_token:
            logger.debug("Using static token from config")
            return Session(token=self._config.static_token, service_addr=addr, auth_method="token")

        ssh_auth = self._config.ssh_auth
        if ssh_auth is not None and self._agent_socket:
            authenticator = ChallengeResponseAuthenticator(
                self._client, mount_path=ssh_auth.mount_path, role=ssh_auth.role
            )
            with self._agent_opener(self._agent_socket) as transport:
                ssh_token = authenticator.authenticate(transport)
            return self._session(ssh_token, "ssh")

        jwt_auth = self._config.jwt_auth
        if jwt_auth is not None and jwt_auth.jwt:
            jwt_token = self._client.login(
                jwt_auth.mount_path, {"jwt": jwt_auth.jwt, "role": jwt_auth.role}
            )
            return self._session(jwt_token, "jwt")

        raise NoCredentialMethod(
            "No credential method available: set VAULT_TOKEN, configure ssh_auth "
            "with a running SSH agent, or configure jwt_auth with a JWT"
        )

    def _session(self, token: str, method: str) -> Session:
        session = Session(token=token, service_addr=self._config.service_addr, auth_method=method)
        logger.info("Logged in to %s via %s (token %s)", session.service_addr, method, session.redacted_token)
        return session
