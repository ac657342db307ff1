"""Duplex byte channel to an Assuan server.

The read side is line buffered; the write side is flushed after every
request. A channel is built from one of:

- a child process started with piped stdin/stdout (``from_process``),
- an arbitrary reader/writer pair (``from_streams``),
- one connected socket split into two file handles (``from_socket``),
- a Unix domain socket path (``connect``).

Usage::

    channel = Channel.connect("/run/user/1000/gnupg/S.gpg-agent")
    channel.write_line(b"NOP\\n")
    line = channel.readline()
    channel.close()
"""

from __future__ import annotations

import logging
import socket
import subprocess
from collections.abc import Callable, Iterable
from os import PathLike
from typing import BinaryIO

from ..protocol.errors import AssuanError, ErrorKind

logger = logging.getLogger(__name__)


class Channel:
    """Reader and writer for one logical connection."""

    def __init__(
        self,
        reader: BinaryIO,
        writer: BinaryIO,
        *,
        closers: Iterable[Callable[[], object]] = (),
        description: str = "",
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._closers = list(closers)
        self._closed = False
        self.description = description or "streams"

    @classmethod
    def from_process(cls, process: subprocess.Popen) -> Channel:
        """Adopt a child's stdout (read side) and stdin (write side).

        The child must have been started with ``stdin=PIPE`` and
        ``stdout=PIPE``. Waiting on or killing the child is left to the caller.

        Raises:
            AssuanError: ``TRANSPORT`` if either pipe is missing.
        """
        if process.stdin is None or process.stdout is None:
            raise AssuanError(ErrorKind.TRANSPORT, "Failed to set up stdin/stdout")
        return cls(
            process.stdout,
            process.stdin,
            description=f"process {process.pid}",
        )

    @classmethod
    def from_streams(cls, reader: BinaryIO, writer: BinaryIO) -> Channel:
        """Use an independent reader and writer."""
        return cls(reader, writer)

    @classmethod
    def from_socket(cls, sock: socket.socket) -> Channel:
        """Split a connected socket into separate read and write handles.

        The socket itself is closed together with the channel.
        """
        reader = sock.makefile("rb")
        writer = sock.makefile("wb")
        try:
            peer = sock.getpeername()
        except OSError:
            peer = ""
        return cls(
            reader,
            writer,
            closers=[sock.close],
            description=f"socket {peer}" if peer else "socket",
        )

    @classmethod
    def connect(cls, path: str | PathLike[str]) -> Channel:
        """Connect to a Unix domain socket.

        Raises:
            AssuanError: ``TRANSPORT`` if the connection cannot be made.
        """
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(str(path))
        except OSError as e:
            sock.close()
            raise AssuanError(
                ErrorKind.TRANSPORT, f"Could not connect to {path}: {e}"
            ) from e
        logger.info("Connected to %s", path)
        return cls.from_socket(sock)

    @property
    def closed(self) -> bool:
        return self._closed

    def readline(self) -> bytes:
        """Read one line, including its line feed.

        Raises:
            AssuanError: ``TRANSPORT`` on a read error, end of stream, or
                a closed channel.
        """
        if self._closed:
            raise AssuanError(ErrorKind.TRANSPORT, "Channel is closed")
        try:
            line = self._reader.readline()
        except (OSError, ValueError) as e:
            raise AssuanError(ErrorKind.TRANSPORT, f"Read failed: {e}") from e
        if not line:
            raise AssuanError(ErrorKind.TRANSPORT, "Connection closed by peer")
        return line

    def write_line(self, line: bytes) -> None:
        """Write a complete request line and flush it.

        Raises:
            AssuanError: ``TRANSPORT`` on a write error or a closed channel.
        """
        if self._closed:
            raise AssuanError(ErrorKind.TRANSPORT, "Channel is closed")
        try:
            self._writer.write(line)
            self._writer.flush()
        except (OSError, ValueError) as e:
            raise AssuanError(ErrorKind.TRANSPORT, f"Write failed: {e}") from e

    def close(self) -> None:
        """Close both handles and anything else the channel owns."""
        if self._closed:
            return
        self._closed = True
        for close in (self._writer.close, self._reader.close, *self._closers):
            try:
                close()
            except (OSError, ValueError) as e:
                logger.warning("Error closing %s: %s", self.description, e)
        logger.debug("Closed %s", self.description)
