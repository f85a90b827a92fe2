"""Normalisation of shell commands sent through SSM Run Command.

AWS-RunShellScript takes a ``commands`` parameter that must be a list of
strings. Callers hand us a single string, a list, or a JSON array encoded as
a string; this module turns all of those into the list SSM expects.
"""

import json
import logging
from collections.abc import Sequence
from typing import Any, Final

logger: Final = logging.getLogger(__name__)


def normalize_commands(commands: str | Sequence[Any] | None) -> list[str]:
    """Normalise commands into the list format SSM expects.

    Blank entries are dropped; everything else is kept verbatim apart from
    surrounding whitespace.

    Args:
        commands: A single command string, a JSON array string, or a sequence
            of commands.

    Returns:
        List of command strings, possibly empty.

    Example:
        >>> normalize_commands('["uname -a", "whoami"]')
        ['uname -a', 'whoami']
        >>> normalize_commands("command -v aws")
        ['command -v aws']
    """
    if not commands:
        return []

    if isinstance(commands, str):
        return _clean(_parse_string(commands))

    return _clean(str(cmd) for cmd in commands if cmd is not None)


def _parse_string(command: str) -> list[str]:
    """Expand a JSON-array string, or wrap a plain command."""
    stripped = command.strip()

    if stripped.startswith("[") and stripped.endswith("]"):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            logger.debug("Command looks like a JSON array but is not valid JSON")
        else:
            if isinstance(parsed, list):
                logger.debug(f"Parsed JSON array into {len(parsed)} command(s)")
                return [str(item) for item in parsed if item is not None]

    return [stripped]


def _clean(commands: Any) -> list[str]:
    return [cmd.strip() for cmd in commands if cmd and cmd.strip()]
