"""Tests for the Session data class."""

from __future__ import annotations

import dataclasses

import pytest

from vcreds.auth.session import Session


class TestSession:
    def test_immutable(self, alice_session: Session) -> None:
        assert dataclasses.is_dataclass(alice_session)
        # frozen=True means setattr should raise.
        with pytest.raises(AttributeError):
            alice_session.token = "s.stolen"  # type: ignore[misc]

    def test_replace_yields_new_session(self, alice_session: Session) -> None:
        renewed = dataclasses.replace(alice_session, token="s.renewed")

        assert renewed.token == "s.renewed"
        assert alice_session.token == "s.alice"

    def test_str_redacts_token(self) -> None:
        session = Session(token="hvs.CAESIsupersecret", service_addr="https://vault.test")
        text = str(session)

        assert "https://vault.test" in text
        assert "hvs.****" in text
        assert "supersecret" not in text

    def test_default_method_is_token(self) -> None:
        assert Session(token="t", service_addr="a").auth_method == "token"
