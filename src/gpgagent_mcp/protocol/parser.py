"""Response line classification and the per-call read loop."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .errors import AssuanError, ErrorKind

logger = logging.getLogger(__name__)


class LineKind(Enum):
    """Kinds of response lines."""

    OK = "OK"
    ERR = "ERR"
    DATA = "D"
    STATUS = "S"
    COMMENT = "#"
    INQUIRE = "INQUIRE"

    @property
    def terminal(self) -> bool:
        return self in (LineKind.OK, LineKind.ERR)


# Checked in order; the first matching prefix wins
_PREFIXES: tuple[tuple[bytes, LineKind], ...] = (
    (b"OK", LineKind.OK),
    (b"ERR ", LineKind.ERR),
    (b"D ", LineKind.DATA),
    (b"S ", LineKind.STATUS),
    (b"#", LineKind.COMMENT),
    (b"INQUIRE", LineKind.INQUIRE),
)


@dataclass(frozen=True)
class ResponseLine:
    """One classified response line."""

    kind: LineKind
    payload: bytes = b""

    def __repr__(self) -> str:
        if self.kind is LineKind.DATA:
            return f"ResponseLine(kind=DATA, payload=<{len(self.payload)} bytes>)"
        return f"ResponseLine(kind={self.kind.name}, payload={self.payload!r})"


@dataclass(frozen=True)
class CallResult:
    """Outcome of a successful call.

    ``message`` is the text after ``OK``; ``data`` is every ``D`` payload
    received before it, concatenated in arrival order and left escaped.
    """

    message: bytes = b""
    data: bytes = b""


def parse_line(raw: bytes) -> ResponseLine:
    """Classify a single response line.

    Exactly one trailing line feed is removed; the payload is the rest of
    the line after the tag, unmodified.

    Raises:
        AssuanError: ``PROTOCOL`` if the line has no known prefix.
    """
    line = raw[:-1] if raw.endswith(b"\n") else raw
    for prefix, kind in _PREFIXES:
        if line.startswith(prefix):
            return ResponseLine(kind=kind, payload=line[len(prefix):])
    raise AssuanError(ErrorKind.PROTOCOL, "Unsupported Assuan response")


def read_response(readline: Callable[[], bytes]) -> CallResult:
    """Read lines until ``OK`` or ``ERR`` and return the call's result.

    Args:
        readline: Returns the next raw line. Errors it raises propagate
            unchanged.

    Raises:
        AssuanError: ``REMOTE`` for an ``ERR`` line, ``PROTOCOL`` for an
            ``INQUIRE`` or unrecognised line.
    """
    data = bytearray()
    while True:
        raw = readline()
        # Data and OK lines may carry secrets; only their size is logged
        if raw.startswith(b"D "):
            logger.debug("< D [%d bytes]", len(raw.rstrip(b"\n")) - 2)
        elif raw.startswith(b"OK"):
            logger.debug("< OK [%d bytes]", len(raw.rstrip(b"\n")) - 2)
        else:
            logger.debug("< %s", raw.rstrip(b"\n").decode("utf-8", "replace"))

        line = parse_line(raw)
        if line.kind.terminal:
            if line.kind is LineKind.OK:
                return CallResult(message=line.payload, data=bytes(data))
            raise AssuanError(ErrorKind.REMOTE, line.payload)
        if line.kind is LineKind.DATA:
            data += line.payload
        elif line.kind is LineKind.INQUIRE:
            raise AssuanError(
                ErrorKind.PROTOCOL, "Received unsupported INQUIRE message"
            )
        # Status and comment lines do not affect the result
