"""Percent escaping for Assuan command arguments.

Bytes that would break line framing or argument splitting are written as
``%`` followed by two hex digits::

    b"a b\\n" -> b"a%20b%0A"

Only CR, LF, ``%`` and space are escaped; everything else is sent as is.
"""

from __future__ import annotations

ESCAPED_BYTES = frozenset(b"\r\n% ")
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")


def escape(data: bytes) -> bytes:
    """Escape ``data`` for use as a single command argument."""
    out = bytearray()
    for byte in data:
        if byte in ESCAPED_BYTES:
            out += b"%%%02X" % byte
        else:
            out.append(byte)
    return bytes(out)


def unescape(data: bytes) -> bytes:
    """Reverse :func:`escape`.

    Hex digits may be upper or lower case.

    Raises:
        ValueError: If a ``%`` is not followed by two hex digits.
    """
    out = bytearray()
    i = 0
    while i < len(data):
        byte = data[i]
        if byte != 0x25:  # '%'
            out.append(byte)
            i += 1
            continue
        digits = data[i + 1 : i + 3]
        if len(digits) != 2:
            raise ValueError(f"Truncated escape sequence at offset {i}")
        if not all(d in _HEX_DIGITS for d in digits):
            raise ValueError(
                f"Invalid escape sequence {data[i:i + 3]!r} at offset {i}"
            )
        out.append(int(digits, 16))
        i += 3
    return bytes(out)
