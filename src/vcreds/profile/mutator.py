"""Write profile fields back onto the operator's own entity.

The whole entity metadata map is read, modified and written back with a
single update.  There is no compare-and-swap: two sessions updating the
same entity concurrently can lose one of the writes (last writer wins).
"""

from __future__ import annotations

import logging

from vcreds.auth.session import Session
from vcreds.profile.identity import IdentityProfileResolver, metadata_key
from vcreds.vault.client import VaultServiceClient

logger = logging.getLogger(__name__)


class MetadataMutator:
    """``set`` / ``unset`` profile fields for the session's entity."""

    def __init__(self, client: VaultServiceClient) -> None:
        self._client = client
        self._resolver = IdentityProfileResolver(client)

    def set(self, session: Session, key: str, value: str | None) -> None:
        """Store *value* under *key*; ``None`` removes the field."""
        resolved = self._resolver.resolve(session)
        metadata = dict(resolved.identity.metadata)

        name = metadata_key(key)
        if value is None:
            metadata.pop(name, None)
        else:
            metadata[name] = value

        self._client.with_token(session.token).update_entity_metadata(resolved.entity_id, metadata)
        logger.info(
            "%s %s on entity %s",
            "Removed" if value is None else "Set",
            name,
            resolved.entity_id,
        )

    def unset(self, session: Session, key: str) -> None:
        self.set(session, key, None)
