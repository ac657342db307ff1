"""Locate the gpg-agent socket in its standard places."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

SOCKET_NAME = "S.gpg-agent"
RUN_DIR = Path("/run/user")
GNUPG_DIR = ".gnupg"


def standard_socket_paths(
    uid: int | None = None,
    home: str | os.PathLike[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[Path]:
    """Return candidate agent socket paths, most specific first.

    Order: ``$GNUPGHOME/S.gpg-agent``, ``/run/user/<uid>/gnupg/S.gpg-agent``,
    ``~/.gnupg/S.gpg-agent``.

    Args:
        uid: User id; defaults to the current user.
        home: Home directory; defaults to ``Path.home()``.
        environ: Environment to read ``GNUPGHOME`` from; defaults to
            ``os.environ``.
    """
    env = os.environ if environ is None else environ
    paths: list[Path] = []

    gnupg_home = env.get("GNUPGHOME")
    if gnupg_home:
        paths.append(Path(gnupg_home).expanduser() / SOCKET_NAME)

    if uid is None and hasattr(os, "getuid"):
        uid = os.getuid()
    if uid is not None:
        paths.append(RUN_DIR / str(uid) / "gnupg" / SOCKET_NAME)

    home_dir = Path(home) if home is not None else Path.home()
    paths.append(home_dir / GNUPG_DIR / SOCKET_NAME)
    return paths


def find_agent_socket(**kwargs) -> Path | None:
    """Return the first existing path from :func:`standard_socket_paths`."""
    for path in standard_socket_paths(**kwargs):
        if path.exists():
            return path
    return None
