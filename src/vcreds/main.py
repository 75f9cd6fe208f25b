"""CLI entry point: parse arguments, load config, dispatch to a command."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Mapping, Sequence

from rich.console import Console
from rich.markup import escape

from vcreds.cli import (
    CommandContext,
    cmd_env,
    cmd_login,
    cmd_run,
    cmd_set,
    cmd_show,
    cmd_unset,
)
from vcreds.config import DEFAULT_CONFIG_PATH, load_config
from vcreds.errors import VcredsError
from vcreds.vault.client import VaultServiceClient

logger = logging.getLogger(__name__)
err_console = Console(stderr=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vcreds",
        description="Log in to Vault and build an operator environment from your identity",
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="Use this Vault token instead of logging in",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("login", help="Log in and print VAULT_ADDR/VAULT_TOKEN exports")
    commands.add_parser("env", help="Print exports for the materialized environment")

    run = commands.add_parser("run", help="Run a command with the materialized environment")
    run.add_argument("argv", nargs=argparse.REMAINDER, help="Command to run (after --)")

    show = commands.add_parser("show", help="Show your profile")
    show.add_argument("--json", action="store_true", help="Print the profile as JSON")

    set_ = commands.add_parser("set", help="Set a profile field")
    set_.add_argument("key")
    set_.add_argument("value")

    unset = commands.add_parser("unset", help="Remove a profile field")
    unset.add_argument("key")

    return parser


def dispatch(args: argparse.Namespace, environ: Mapping[str, str]) -> int:
    config = load_config(args.config, environ)
    ctx = CommandContext(
        config=config,
        environ=environ,
        client=VaultServiceClient(config.service_addr),
        token=args.token,
    )

    if args.command == "login":
        return cmd_login(ctx)
    if args.command == "env":
        return cmd_env(ctx)
    if args.command == "run":
        argv = list(args.argv)
        if argv and argv[0] == "--":
            argv = argv[1:]
        return cmd_run(ctx, argv)
    if args.command == "show":
        return cmd_show(ctx, as_json=args.json)
    if args.command == "set":
        return cmd_set(ctx, args.key, args.value)
    if args.command == "unset":
        return cmd_unset(ctx, args.key)
    raise AssertionError(f"unhandled command {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        code = dispatch(args, dict(os.environ))
    except VcredsError as exc:
        err_console.print(f"[red]vcreds {args.command} failed:[/red] {escape(str(exc))}")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
