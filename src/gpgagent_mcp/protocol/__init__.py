"""Protocol layer: argument escaping, request lines and response parsing."""

from .errors import AssuanError, ErrorKind
from .escaping import escape, unescape
from .commands import Command, build_command, build_option
from .parser import CallResult, LineKind, ResponseLine, parse_line, read_response
