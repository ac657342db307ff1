"""Synchronous Assuan client session.

The server speaks first: a session is only usable once its greeting, a
single ``OK`` line, has been read. After that every call is one request line
followed by response lines up to ``OK`` or ``ERR``. Calls are strictly
sequential; share a client between threads only behind your own lock.

Usage::

    with AssuanClient.connect(path) as client:
        client.option("ttyname", "/dev/pts/4")
        result = client.exec("GETINFO", ["version"])
        print(result.data)

See https://www.gnupg.org/documentation/manuals/assuan/ for the protocol.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Iterable
from enum import Enum
from os import PathLike

from .protocol.commands import build_bye, build_command, build_option
from .protocol.errors import AssuanError, ErrorKind
from .protocol.parser import CallResult, read_response
from .transport.channel import Channel

logger = logging.getLogger(__name__)


class SessionState(Enum):
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


class AssuanClient:
    """Owns a :class:`Channel` and runs calls over it."""

    def __init__(self, channel: Channel) -> None:
        """Take ownership of ``channel`` and wait for the server greeting.

        Raises:
            AssuanError: ``HANDSHAKE`` if the greeting is anything other
                than a bare ``OK`` line. The channel is closed first.
        """
        self._channel = channel
        try:
            greeting = read_response(channel.readline)
        except AssuanError as e:
            channel.close()
            raise AssuanError(
                ErrorKind.HANDSHAKE, f"Server greeting failed ({e})"
            ) from e
        if greeting.data:
            channel.close()
            raise AssuanError(
                ErrorKind.HANDSHAKE, "Server greeting carried unexpected data"
            )

        self._state = SessionState.READY
        self.greeting = greeting.message
        logger.debug("Session ready on %s", channel.description)

    @classmethod
    def from_process(cls, process: subprocess.Popen) -> AssuanClient:
        """Talk to a child process over its piped stdin/stdout."""
        return cls(Channel.from_process(process))

    @classmethod
    def connect(cls, path: str | PathLike[str]) -> AssuanClient:
        """Connect to a server listening on a Unix domain socket."""
        return cls(Channel.connect(path))

    def __enter__(self) -> AssuanClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def state(self) -> SessionState:
        return self._state

    def exec(
        self, name: str | bytes, args: Iterable[str | bytes] = ()
    ) -> CallResult:
        """Send a command and wait for its result.

        Args:
            name: Command name; must not contain spaces or line breaks.
            args: Arguments, percent-escaped on the wire.

        Raises:
            AssuanError: ``REMOTE`` if the server answered ``ERR`` (the
                session stays usable); ``INVALID_COMMAND`` for a bad name
                (nothing is sent); ``TRANSPORT`` or ``PROTOCOL`` otherwise,
                after which the session refuses further calls.
        """
        self._check_usable()
        line = build_command(name, args)
        return self._call(line)

    def option(self, name: str | bytes, value: str | bytes) -> None:
        """Set a server option (``OPTION name value``)."""
        self._check_usable()
        self._call(build_option(name, value))

    def close(self) -> None:
        """Say ``BYE`` if possible and release the channel.

        Never raises; problems during teardown are only logged.
        """
        if self._state is SessionState.CLOSED:
            return
        if self._state is SessionState.READY:
            try:
                self._call(build_bye())
            except AssuanError as e:
                logger.debug("Ignoring error during BYE: %s", e)
        self._state = SessionState.CLOSED
        self._channel.close()

    def _check_usable(self) -> None:
        if self._state is SessionState.CLOSED:
            raise AssuanError(ErrorKind.TRANSPORT, "Session is closed")
        if self._state is SessionState.FAILED:
            raise AssuanError(
                ErrorKind.PROTOCOL, "Session is unusable after an earlier failure"
            )

    def _call(self, line: bytes) -> CallResult:
        logger.debug("> %s", line.rstrip(b"\n").decode("utf-8", "replace"))
        try:
            self._channel.write_line(line)
            return read_response(self._channel.readline)
        except AssuanError as e:
            if not e.recoverable:
                self._state = SessionState.FAILED
            raise
