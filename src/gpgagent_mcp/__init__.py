"""Assuan protocol client for gpg-agent, with an MCP tool server."""

from .agent import AgentNotFoundError, GpgAgent, GpgAgentError, InvalidPassphraseError
from .client import AssuanClient, SessionState
from .protocol import AssuanError, CallResult, ErrorKind
from .transport import Channel
