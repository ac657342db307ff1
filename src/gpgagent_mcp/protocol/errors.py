"""Error type shared by every layer of the Assuan client."""

from __future__ import annotations

import re
from enum import Enum

# gpg-error codes: 7-bit source in bits 24-30, error number in the low 16 bits
_ERROR_CODE_RE = re.compile(rb"^(\d+)(?: |$)")


class ErrorKind(str, Enum):
    """Failure categories."""

    TRANSPORT = "transport"
    HANDSHAKE = "handshake"
    PROTOCOL = "protocol"
    REMOTE = "remote"
    INVALID_COMMAND = "invalid_command"


class AssuanError(Exception):
    """A failed Assuan call, tagged with its :class:`ErrorKind`.

    ``REMOTE`` errors carry the peer's ``ERR`` text verbatim in
    :attr:`message` and leave the session usable. ``INVALID_COMMAND`` is
    raised before anything is written. Every other kind ends the session.
    """

    def __init__(self, kind: ErrorKind, message: str | bytes) -> None:
        if isinstance(message, bytes):
            self.raw = message
            message = message.decode("utf-8", errors="replace")
        else:
            self.raw = message.encode("utf-8")
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"

    def __repr__(self) -> str:
        return f"AssuanError(kind={self.kind.name}, message={self.message!r})"

    @property
    def recoverable(self) -> bool:
        """True when the session can still be used after this error."""
        return self.kind in (ErrorKind.REMOTE, ErrorKind.INVALID_COMMAND)

    @property
    def error_code(self) -> int | None:
        """Numeric gpg-error code leading a remote message, if any."""
        if self.kind is not ErrorKind.REMOTE:
            return None
        match = _ERROR_CODE_RE.match(self.raw)
        if match is None:
            return None
        return int(match.group(1))

    @property
    def error_source(self) -> int | None:
        code = self.error_code
        return None if code is None else (code >> 24) & 0x7F

    @property
    def error_number(self) -> int | None:
        code = self.error_code
        return None if code is None else code & 0xFFFF
