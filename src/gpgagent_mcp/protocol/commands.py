"""Command names and request line builders.

A request is a single line: the command name followed by zero or more
percent-escaped arguments, each preceded by one space::

    OPTION ttyname /dev/pts/4\\n
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from .errors import AssuanError, ErrorKind
from .escaping import escape

# Bytes that may never appear in a command name
_FORBIDDEN_NAME_BYTES = frozenset(b" \r\n")


class Command(str, Enum):
    """Command names used by this package."""

    OPTION = "OPTION"
    BYE = "BYE"
    NOP = "NOP"
    RESET = "RESET"
    GETINFO = "GETINFO"
    GET_PASSPHRASE = "GET_PASSPHRASE"
    CLEAR_PASSPHRASE = "CLEAR_PASSPHRASE"
    UPDATESTARTUPTTY = "UPDATESTARTUPTTY"


def _to_bytes(value: str | bytes, encoding: str = "utf-8") -> bytes:
    if isinstance(value, Command):
        value = value.value
    if isinstance(value, str):
        return value.encode(encoding)
    return bytes(value)


def validate_name(name: str | bytes) -> bytes:
    """Return ``name`` as bytes, rejecting names that would corrupt the line.

    Raises:
        AssuanError: ``INVALID_COMMAND`` if the name is empty, not ASCII,
            or contains a space, CR or LF.
    """
    try:
        raw = _to_bytes(name, "ascii")
    except UnicodeEncodeError:
        raise AssuanError(
            ErrorKind.INVALID_COMMAND, f"Command name must be ASCII: {name!r}"
        ) from None
    if not raw:
        raise AssuanError(ErrorKind.INVALID_COMMAND, "Empty command name")
    if any(b in _FORBIDDEN_NAME_BYTES for b in raw):
        raise AssuanError(
            ErrorKind.INVALID_COMMAND,
            f"Command name contains a space or line break: {name!r}",
        )
    return raw


def build_command(
    name: str | bytes, args: Iterable[str | bytes] = ()
) -> bytes:
    """Build one request line, including the trailing line feed.

    Args:
        name: Command name, sent verbatim after validation.
        args: Arguments; ``str`` values are UTF-8 encoded, then every
            argument is percent-escaped.

    Raises:
        TypeError: If ``args`` is a single string instead of a sequence.
    """
    if isinstance(args, (str, bytes, bytearray)):
        raise TypeError(
            f"args must be a sequence of arguments, not {type(args).__name__}"
        )
    parts = [validate_name(name)]
    parts.extend(escape(_to_bytes(arg)) for arg in args)
    return b" ".join(parts) + b"\n"


def build_option(name: str | bytes, value: str | bytes) -> bytes:
    """Build an ``OPTION name value`` request."""
    return build_command(Command.OPTION, [name, value])


def build_bye() -> bytes:
    """Build the ``BYE`` request sent on teardown."""
    return build_command(Command.BYE)
