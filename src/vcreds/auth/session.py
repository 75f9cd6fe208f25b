"""Session value produced by a successful credential resolution.

A single ``Session`` is created once per process, after the operator has been
authenticated against Vault, and is handed to every component that talks to
Vault on the operator's behalf (profile lookup, metadata updates, secret
reads).  Components never read tokens from the ambient environment; if they
do not receive a Session they cannot act for the operator.

The session is immutable.  Re-authenticating produces a new Session rather
than mutating the token of an existing one.
"""

from __future__ import annotations

import dataclasses

from vcreds.environment.publish import redact


@dataclasses.dataclass(frozen=True)
class Session:
    """Immutable handle on an authenticated Vault token.

    Attributes:
        token:        Vault client token for this process.
        service_addr: Base URL of the Vault server that issued the token.
        auth_method:  Which credential method produced the token
                      (``"token"``, ``"ssh"`` or ``"jwt"``).
    """

    token: str
    service_addr: str
    auth_method: str = "token"

    @property
    def redacted_token(self) -> str:
        return redact(self.token)

    def __str__(self) -> str:
        return (
            f"Session(addr={self.service_addr}, method={self.auth_method}, "
            f"token={self.redacted_token})"
        )
