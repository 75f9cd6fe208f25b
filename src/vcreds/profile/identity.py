"""Resolve a session token into the operator's flattened profile.

Pattern: Metadata as Profile
-----------------------------
Operator attributes live in Vault itself, as identity metadata whose keys
start with ``env_``.  They can be set on the entity (by the operator, see
``vcreds.profile.mutator``) or on any of the entity's aliases (usually by
the auth method or an administrator).

The profile is built in two passes:

  1. every alias, in the order Vault returns them, contributes its
     ``custom_metadata``;
  2. the entity's own ``metadata`` is applied last and overwrites any key
     an alias set.

So entity metadata always wins over alias metadata.  Keys are stored as
``env_<UPPER>`` and read back lower-cased with the prefix stripped.  The round
trip is lossy for mixed-case names: ``set("Foo")`` reads back as ``foo``.

Nothing is cached.  The entity is re-read on every call so a metadata
update made a moment ago is always visible.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from vcreds.auth.session import Session
from vcreds.errors import InvalidToken
from vcreds.vault.client import VaultServiceClient

logger = logging.getLogger(__name__)

PROFILE_PREFIX = "env_"


def metadata_key(key: str) -> str:
    """Return the metadata key a profile field *key* is written under."""
    return PROFILE_PREFIX + key.upper()


def profile_key(key: str) -> str | None:
    """Return the profile field stored under metadata *key*, or ``None`` if unprefixed."""
    if key[: len(PROFILE_PREFIX)].lower() != PROFILE_PREFIX:
        return None
    return key[len(PROFILE_PREFIX):].lower()


@dataclasses.dataclass(frozen=True)
class Identity:
    """An entity document as returned by ``identity/entity/id/<id>``.

    Attributes:
        entity_id: Vault entity ID.
        metadata:  Entity-level metadata.
        aliases:   ``custom_metadata`` of each alias, in Vault's order.
    """

    entity_id: str
    metadata: Mapping[str, str]
    aliases: tuple[Mapping[str, str], ...]

    @classmethod
    def from_entity(cls, entity_id: str, data: Mapping[str, Any]) -> Identity:
        aliases = tuple(
            dict(alias.get("custom_metadata") or {}) for alias in data.get("aliases") or ()
        )
        return cls(
            entity_id=entity_id,
            metadata=dict(data.get("metadata") or {}),
            aliases=aliases,
        )


@dataclasses.dataclass(frozen=True)
class ResolvedIdentity:
    entity_id: str
    identity: Identity
    profile: dict[str, str]


def _merge(profile: dict[str, str], metadata: Iterable[tuple[str, str]]) -> None:
    for key, value in metadata:
        name = profile_key(key)
        if name is not None:
            profile[name] = value


def derive_profile(identity: Identity) -> dict[str, str]:
    """Flatten *identity* into a profile; entity metadata overrides aliases."""
    profile: dict[str, str] = {}
    for alias_metadata in identity.aliases:
        _merge(profile, alias_metadata.items())
    _merge(profile, identity.metadata.items())
    return profile


class IdentityProfileResolver:
    """Looks up the entity behind a session token and derives its profile."""

    def __init__(self, client: VaultServiceClient) -> None:
        self._client = client

    def resolve(self, session: Session) -> ResolvedIdentity:
        token_client = self._client.with_token(session.token)

        token_info = token_client.lookup_self()
        entity_id = token_info.get("entity_id")
        if not entity_id:
            raise InvalidToken("Token is not bound to an identity entity")

        identity = Identity.from_entity(entity_id, token_client.read_entity(entity_id))
        profile = derive_profile(identity)
        logger.debug(
            "Resolved entity %s: %d alias(es), profile keys=%s",
            entity_id,
            len(identity.aliases),
            sorted(profile),
        )
        return ResolvedIdentity(entity_id=entity_id, identity=identity, profile=profile)
