"""Error kinds raised by the credential and environment engine.

Two families are kept apart on purpose:

  - ``VcredsError`` and its subclasses propagate to the caller.  The CLI
    reports them and exits non-zero; nothing retries.
  - ``AttemptFailed`` is local to a single identity inside the SSH agent
    login loop.  It is logged and the loop moves on to the next key.  It
    does not derive from ``VcredsError`` so a stray one cannot be mistaken
    for a fatal condition (or swallowed as one).
"""

from __future__ import annotations


class VcredsError(Exception):
    """Base class for every error that terminates a command."""


class ConfigError(VcredsError):
    """Raised when the config document is missing, unparsable or malformed."""


class NoCredentialMethod(VcredsError):
    """Raised when no token, usable SSH agent or JWT is configured."""


class AgentUnreachable(VcredsError):
    """Raised when the SSH agent socket is configured but cannot be opened."""


class NoIdentityAccepted(VcredsError):
    """Raised when every identity offered by the agent was rejected."""


class LoginRejected(VcredsError):
    """Raised when a login endpoint refuses the submitted credentials."""


class ServiceUnavailable(VcredsError):
    """Raised when Vault cannot be reached at all."""


class InvalidToken(VcredsError):
    """Raised when ``lookup-self`` refuses the session token."""


class UnknownEntity(VcredsError):
    """Raised when the entity bound to the token cannot be read."""


class UpdateRejected(VcredsError):
    """Raised when Vault does not accept an entity metadata update."""


class SecretReadFailed(VcredsError):
    """Raised when a KV secret path cannot be read."""


class AttemptFailed(Exception):
    """A single agent identity could not be used to log in.

    Only ever raised and caught inside the challenge-response loop.
    """
