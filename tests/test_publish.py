"""Tests for shell export rendering."""

from __future__ import annotations

import shlex

import pytest

from vcreds.environment.publish import redact, render_exports


class TestRedact:
    def test_short_values_fully_masked(self) -> None:
        assert redact("abc") == "****"
        assert redact("") == "****"

    def test_long_values_keep_prefix(self) -> None:
        assert redact("hvs.CAESIJ0123456789") == "hvs.****"


class TestRenderExports:
    def test_values_are_shell_quoted(self) -> None:
        out = render_exports({"PASSWORD": "it's $secret; rm -rf /"})

        first = out.splitlines()[0]
        assert first == "export PASSWORD=" + shlex.quote("it's $secret; rm -rf /")
        assert shlex.split(first)[1] == "PASSWORD=it's $secret; rm -rf /"

    def test_sorted_keys_and_trailing_echo(self) -> None:
        lines = render_exports({"B": "2", "A": "1"}).splitlines()

        assert lines[0].startswith("export A=")
        assert lines[1].startswith("export B=")
        assert lines[2].startswith("echo ")
        assert lines[2].endswith(">&2")

    def test_confirmation_redacts_values(self) -> None:
        out = render_exports(
            {"VAULT_ADDR": "https://vault.example", "VAULT_TOKEN": "hvs.verysecrettoken"},
            reveal=("VAULT_ADDR",),
        )
        confirmation = out.splitlines()[-1]

        assert "VAULT_ADDR=https://vault.example" in confirmation
        assert "hvs.verysecrettoken" not in confirmation
        assert "VAULT_TOKEN=hvs.****" in confirmation

    def test_invalid_name_rejected(self) -> None:
        with pytest.raises(ValueError, match="Not a valid"):
            render_exports({"BAD-NAME": "x"})

    def test_confirmation_hides_every_character_of_other_secrets(self) -> None:
        out = render_exports({"DB_PASSWORD": "hunter2hunter2", "VAULT_TOKEN": "hvs.verysecrettoken"})
        confirmation = out.splitlines()[-1]

        assert "DB_PASSWORD=****" in confirmation
        assert "hunt" not in confirmation
        assert "VAULT_TOKEN=hvs.****" in confirmation
