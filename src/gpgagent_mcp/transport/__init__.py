"""Transport layer: byte channels and agent socket discovery."""

from .channel import Channel
from .discovery import find_agent_socket, standard_socket_paths
