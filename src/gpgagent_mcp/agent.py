"""High-level access to a running gpg-agent.

Wraps :class:`AssuanClient` with the agent commands this package uses.
Protocol-level failures surface as :class:`AssuanError`; the agent-specific
problems below get their own exceptions.

See https://www.gnupg.org/documentation/manuals/gnupg/Agent-Protocol.html
"""

from __future__ import annotations

import binascii
import logging
import os
from os import PathLike

from .client import AssuanClient
from .protocol.commands import Command
from .protocol.errors import AssuanError
from .transport.discovery import standard_socket_paths

logger = logging.getLogger(__name__)

# Placeholder the agent reads as "argument not given"
NOT_GIVEN = "X"


class GpgAgentError(Exception):
    """Base class for agent facade errors."""


class AgentNotFoundError(GpgAgentError):
    def __init__(self, tried: list[str] | None = None) -> None:
        self.tried = tried or []
        super().__init__("Unable to find the gpg-agent socket")


class InvalidPassphraseError(GpgAgentError):
    def __init__(self) -> None:
        super().__init__("Agent returned an invalid passphrase")


class GpgAgent:
    """A session with gpg-agent."""

    def __init__(self, client: AssuanClient) -> None:
        self.client = client

    @classmethod
    def from_standard_paths(cls, **kwargs) -> GpgAgent:
        """Connect to the first standard socket path that accepts.

        Keyword arguments are passed to
        :func:`~gpgagent_mcp.transport.discovery.standard_socket_paths`.

        Raises:
            AgentNotFoundError: If no candidate path works.
        """
        tried: list[str] = []
        for path in standard_socket_paths(**kwargs):
            tried.append(str(path))
            try:
                return cls.from_path(path)
            except AssuanError as e:
                logger.debug("No agent at %s: %s", path, e)
        raise AgentNotFoundError(tried)

    @classmethod
    def from_path(cls, path: str | PathLike[str]) -> GpgAgent:
        return cls(AssuanClient.connect(path))

    def __enter__(self) -> GpgAgent:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def option(self, name: str, value: str) -> None:
        self.client.option(name, value)

    def update_startup_tty(self) -> None:
        """Make the agent use this session's tty and display for pinentry."""
        self.client.exec(Command.UPDATESTARTUPTTY)

    def get_version(self) -> str:
        result = self.client.exec(Command.GETINFO, ["version"])
        return result.data.decode("utf-8", errors="replace")

    def get_passphrase(
        self,
        cache_id: str,
        error_message: str = "",
        prompt: str = "",
        description: str = "",
    ) -> bytes:
        """Ask the agent for a passphrase, prompting the user if not cached.

        Args:
            cache_id: Key the agent caches the passphrase under.
            error_message: Shown when re-asking after a failure.
            prompt: Label next to the entry field.
            description: Longer explanation shown in the dialog.

        Returns:
            The passphrase bytes.

        Raises:
            InvalidPassphraseError: If the agent's answer is not valid hex.
            AssuanError: ``REMOTE`` if the user cancelled or the agent
                refused.
        """
        args = [cache_id] + [
            value or NOT_GIVEN for value in (error_message, prompt, description)
        ]
        result = self.client.exec(Command.GET_PASSPHRASE, args)
        # Hex comes in the OK line by default, in data lines with --data
        encoded = result.data or result.message.strip()
        try:
            return binascii.unhexlify(encoded)
        except (binascii.Error, ValueError):
            raise InvalidPassphraseError() from None

    def clear_passphrase(self, cache_id: str) -> None:
        """Remove ``cache_id`` from the agent's passphrase cache."""
        self.client.exec(Command.CLEAR_PASSPHRASE, [cache_id])

    def setopt_ttyname(self) -> None:
        """Point the agent at the terminal on stdin, if there is one.

        Same as ``option("ttyname", os.ttyname(0))``; does nothing when stdin
        is not a terminal.
        """
        try:
            name = os.ttyname(0)
        except (OSError, AttributeError):
            logger.debug("stdin is not a terminal; ttyname not set")
            return
        self.option("ttyname", name)
