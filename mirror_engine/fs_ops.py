"""
Filesystem write primitives used by the mirror walker.

All writes go to a temporary sibling first and are then moved into place with
``os.replace``, so an interrupted run never leaves a half-written artifact under
its final name and a re-run overwrites identically.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

_TEMP_PREFIX = ".drivetan-"
_TEMP_SUFFIX = ".tmp"


def write_bytes_atomic(path: Path, payload: bytes) -> None:
    """
    Atomically write bytes to ``path``.

    Raises
    ------
    OSError
        If the temporary file cannot be written or moved into place.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=_TEMP_PREFIX, suffix=_TEMP_SUFFIX)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        _discard(tmp_name)
        raise


def copy_file_atomic(source_path: Path, destination_path: Path) -> None:
    """
    Copy file bytes from ``source_path`` to ``destination_path``.

    Only contents are copied; permission bits and times are left to the caller.

    Raises
    ------
    OSError
        If the source cannot be read or the destination cannot be written.
    """
    fd, tmp_name = tempfile.mkstemp(
        dir=destination_path.parent, prefix=_TEMP_PREFIX, suffix=_TEMP_SUFFIX
    )
    os.close(fd)
    try:
        shutil.copyfile(source_path, tmp_name)
        os.replace(tmp_name, destination_path)
    except BaseException:
        _discard(tmp_name)
        raise


def apply_times(path: Path, *, accessed: float, modified: float) -> None:
    """Set access and modification times (seconds since epoch) on ``path``."""
    os.utime(path, (accessed, modified))


def _discard(tmp_name: str) -> None:
    try:
        os.unlink(tmp_name)
    except FileNotFoundError:
        pass
