"""Render environments as shell statements for ``eval "$(vcreds ...)"``.

Every value is quoted with ``shlex.quote`` so that secrets containing
spaces, quotes or ``$`` survive the round trip through the caller's shell.
The trailing confirmation line is echoed to stderr and never contains a
full secret value.
"""

from __future__ import annotations

import re
import shlex
from collections.abc import Iterable, Mapping

_VISIBLE_CHARS = 4
_MASK = "****"

# Keep a short prefix (``hvs.``) in the confirmation line.
_PREFIX_SHOWN = frozenset({"VAULT_TOKEN"})
_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def redact(value: str) -> str:
    """Return *value* with everything past a short prefix masked."""
    if len(value) <= _VISIBLE_CHARS * 2:
        return _MASK
    return value[:_VISIBLE_CHARS] + _MASK


def render_exports(
    environment: Mapping[str, str],
    reveal: Iterable[str] = (),
) -> str:
    """Return ``export`` statements for *environment* plus a confirmation line.

    Keys are emitted in sorted order.  Names listed in *reveal* are shown in
    clear in the confirmation line.  ``VAULT_TOKEN`` keeps its short prefix
    and every other value is masked completely.
    """
    shown = set(reveal)
    lines: list[str] = []
    summary: list[str] = []
    for key in sorted(environment):
        if not _ENV_NAME_RE.match(key):
            raise ValueError(f"Not a valid environment variable name: {key!r}")
        value = environment[key]
        lines.append(f"export {key}={shlex.quote(value)}")
        if key in shown:
            shown_value = value
        elif key in _PREFIX_SHOWN:
            shown_value = redact(value)
        else:
            shown_value = _MASK
        summary.append(f"{key}={shown_value}")

    confirmation = f"vcreds: exported {len(lines)} variable(s)"
    if summary:
        confirmation += ": " + ", ".join(summary)
    lines.append(f"echo {shlex.quote(confirmation)} >&2")
    return "\n".join(lines) + "\n"
