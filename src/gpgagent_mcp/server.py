"""MCP server entry point for gpg-agent.

Exposes agent housekeeping as tools via the Model Context Protocol using
the official Python MCP SDK with stdio transport. Passphrases are never
returned through a tool.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from mcp.server.fastmcp import FastMCP

from .agent import AgentNotFoundError, GpgAgent
from .protocol.commands import Command
from .protocol.errors import AssuanError, ErrorKind

logger = logging.getLogger(__name__)

# Overrides socket discovery when set
SOCKET_ENV_VAR = "GPGAGENT_MCP_SOCKET"

# Commands that return or store secrets; send_command refuses them
SECRET_COMMANDS = frozenset({
    Command.GET_PASSPHRASE.value,
    "PRESET_PASSPHRASE",
    "EXPORT_KEY",
})

mcp = FastMCP(
    "gpgagent",
    instructions="Tools for talking to a local gpg-agent over the Assuan protocol",
)

# Global connection state
_agent: GpgAgent | None = None


def _get_agent() -> GpgAgent:
    """Get the active agent session, raising if not connected."""
    if _agent is None:
        raise RuntimeError(
            "Not connected to gpg-agent. Use the 'connect' tool first."
        )
    return _agent


def _error_result(error: AssuanError) -> dict[str, Any]:
    """Report a protocol error, dropping the session if it is now unusable."""
    global _agent
    if not error.recoverable and _agent is not None:
        _agent.close()
        _agent = None
    return {
        "error": error.message,
        "kind": error.kind.value,
        "recoverable": error.recoverable,
    }


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(socket_path: str | None = None) -> dict[str, Any]:
    """Connect to the gpg-agent socket.

    Args:
        socket_path: Explicit socket path. Defaults to $GPGAGENT_MCP_SOCKET,
            then the standard locations ($GNUPGHOME, /run/user/<uid>/gnupg,
            ~/.gnupg).
    """
    global _agent
    if _agent is not None:
        return {"connected": True, "message": "Already connected"}

    path = socket_path or os.environ.get(SOCKET_ENV_VAR)
    try:
        if path:
            _agent = GpgAgent.from_path(path)
        else:
            _agent = GpgAgent.from_standard_paths()
    except AgentNotFoundError as e:
        return {"error": str(e), "tried": e.tried}
    except AssuanError as e:
        return _error_result(e)

    return {
        "connected": True,
        "greeting": _agent.client.greeting.decode("utf-8", errors="replace").strip(),
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the session with gpg-agent."""
    global _agent
    if _agent is None:
        return {"disconnected": True}
    _agent.close()
    _agent = None
    return {"disconnected": True}


# ─── AGENT TOOLS ──────────────────────────────────────────────────────

@mcp.tool()
def get_agent_info() -> dict[str, Any]:
    """Retrieve the agent's version (GETINFO version)."""
    agent = _get_agent()
    try:
        return {"version": agent.get_version()}
    except AssuanError as e:
        return _error_result(e)


@mcp.tool()
def set_option(name: str, value: str) -> dict[str, Any]:
    """Set a session option, e.g. ttyname, ttytype, display, lc-ctype.

    Args:
        name: Option name.
        value: Option value.
    """
    agent = _get_agent()
    try:
        agent.option(name, value)
    except AssuanError as e:
        return _error_result(e)
    return {"success": True, "option": name}


@mcp.tool()
def update_startup_tty() -> dict[str, Any]:
    """Make pinentry appear on the tty and display of this session."""
    agent = _get_agent()
    try:
        agent.update_startup_tty()
    except AssuanError as e:
        return _error_result(e)
    return {"success": True}


@mcp.tool()
def clear_passphrase(cache_id: str) -> dict[str, Any]:
    """Forget a cached passphrase.

    Args:
        cache_id: The cache key the passphrase was stored under.
    """
    agent = _get_agent()
    try:
        agent.clear_passphrase(cache_id)
    except AssuanError as e:
        return _error_result(e)
    return {"success": True, "cache_id": cache_id}


@mcp.tool()
def send_command(command: str, args: list[str] | None = None) -> dict[str, Any]:
    """Send a raw Assuan command and return the OK message and data.

    Commands in SECRET_COMMANDS are refused without being sent.

    Args:
        command: Command name, e.g. GETINFO or NOP.
        args: Arguments; spaces and line breaks are escaped automatically.
    """
    agent = _get_agent()
    if command.strip().upper() in SECRET_COMMANDS:
        return {
            "error": f"{command} is not available through this tool",
            "kind": ErrorKind.INVALID_COMMAND.value,
            "recoverable": True,
        }
    try:
        result = agent.client.exec(command, args or [])
    except AssuanError as e:
        return _error_result(e)
    return {
        "message": result.message.decode("utf-8", errors="replace"),
        "data": result.data.decode("utf-8", errors="replace"),
    }


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
