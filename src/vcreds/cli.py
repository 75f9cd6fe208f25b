"""Command handlers behind the ``vcreds`` console script.

Pattern: Eval-Safe Output
--------------------------
``login`` and ``env`` are meant to be used as ``eval "$(vcreds env)"``, so
stdout carries nothing but shell statements.  Diagnostics go to stderr
through a rich console, and logging goes to stderr as well.

Every handler receives an explicit ``CommandContext`` built once by
``vcreds.main``: the loaded config, the process environment snapshot and
the Vault client.  Handlers return the process exit code.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import subprocess
import sys
from collections.abc import Mapping, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from vcreds.auth.resolver import CredentialResolver
from vcreds.auth.session import Session
from vcreds.config import AuthConfig
from vcreds.environment.materializer import EnvironmentMaterializer
from vcreds.environment.publish import render_exports
from vcreds.profile.identity import IdentityProfileResolver
from vcreds.profile.mutator import MetadataMutator
from vcreds.vault.client import VaultServiceClient

logger = logging.getLogger(__name__)
console = Console()
err_console = Console(stderr=True)


@dataclasses.dataclass
class CommandContext:
    config: AuthConfig
    environ: Mapping[str, str]
    client: VaultServiceClient
    token: str | None = None
    _session: Session | None = dataclasses.field(default=None, repr=False)

    def session(self) -> Session:
        """Log in on first use; later calls reuse the same session."""
        if self._session is None:
            resolver = CredentialResolver(
                self.config,
                self.client,
                agent_socket=self.environ.get("SSH_AUTH_SOCK"),
            )
            self._session = resolver.resolve(token=self.token)
        return self._session


def _materialize(ctx: CommandContext) -> dict[str, str]:
    session = ctx.session()
    resolved = IdentityProfileResolver(ctx.client).resolve(session)
    materializer = EnvironmentMaterializer(ctx.client, ctx.environ)
    return materializer.materialize(session, resolved.profile, ctx.config.env)


def cmd_login(ctx: CommandContext) -> int:
    session = ctx.session()
    sys.stdout.write(
        render_exports(
            {"VAULT_ADDR": session.service_addr, "VAULT_TOKEN": session.token},
            reveal=("VAULT_ADDR",),
        )
    )
    return 0


def cmd_env(ctx: CommandContext) -> int:
    sys.stdout.write(render_exports(_materialize(ctx), reveal=("VAULT_ADDR",)))
    return 0


def cmd_run(ctx: CommandContext, command: Sequence[str]) -> int:
    """Run *command* with the materialized environment and return its exit status."""
    if not command:
        err_console.print("[red]Nothing to run.[/red]  Usage: vcreds run -- COMMAND ARGS...")
        return 2

    env = {**ctx.environ, **_materialize(ctx)}
    logger.debug("Spawning %s", command[0])
    try:
        completed = subprocess.run(list(command), env=env, check=False)
    except FileNotFoundError:
        err_console.print(f"[red]Command not found:[/red] {escape(command[0])}")
        return 127
    return completed.returncode


def cmd_show(ctx: CommandContext, as_json: bool = False) -> int:
    resolved = IdentityProfileResolver(ctx.client).resolve(ctx.session())

    if as_json:
        sys.stdout.write(json.dumps(resolved.profile, indent=2, sort_keys=True) + "\n")
        return 0

    table = Table(title=f"Profile of entity {resolved.entity_id}")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="bold")
    for key in sorted(resolved.profile):
        table.add_row(escape(key), escape(resolved.profile[key]))
    if not resolved.profile:
        table.add_row("(none)", "")
    console.print(table)
    return 0


def cmd_set(ctx: CommandContext, key: str, value: str) -> int:
    MetadataMutator(ctx.client).set(ctx.session(), key, value)
    err_console.print(f"[green]Set[/green] [bold]{escape(key.lower())}[/bold]")
    return 0


def cmd_unset(ctx: CommandContext, key: str) -> int:
    MetadataMutator(ctx.client).unset(ctx.session(), key)
    err_console.print(f"[green]Removed[/green] [bold]{escape(key.lower())}[/bold]")
    return 0
