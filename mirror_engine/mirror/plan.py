"""
Per-entry action planning for mirror runs.

The planner is a pure decision function. It never touches the filesystem and
never fails; exclusion has already been decided by the pattern matcher before
an entry reaches it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath


class EntryKind(str, Enum):
    """Kinds of source entries the walker hands to the planner."""

    FILE = "file"
    DIRECTORY = "directory"


class MirrorAction(str, Enum):
    """
    Actions a source entry can resolve to.

    Notes
    -----
    ``SKIP`` is produced by the walker from the pattern matcher. ``plan_entry``
    only ever returns the other three.
    """

    DESCEND = "descend"
    COPY_THROUGH = "copy_through"
    WRITE_META = "write_meta"
    SKIP = "skip"


@dataclass(frozen=True, slots=True)
class SourceEntry:
    """
    Snapshot of a source entry taken when it is visited.

    Attributes
    ----------
    relative_path:
        Path relative to the source root.
    absolute_path:
        Path used to read the entry.
    kind:
        File or directory.
    size_bytes:
        Size for files; zero for directories.
    accessed_time:
        Last access time, seconds since epoch.
    modified_time:
        Last modification time, seconds since epoch.
    """

    relative_path: PurePosixPath
    absolute_path: Path
    kind: EntryKind
    size_bytes: int = 0
    accessed_time: float = 0.0
    modified_time: float = 0.0

    @property
    def name(self) -> str:
        return self.relative_path.name

    @property
    def is_directory(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


def plan_entry(entry: SourceEntry, threshold_bytes: int) -> MirrorAction:
    """
    Decide what to do with a non-excluded entry.

    Parameters
    ----------
    entry:
        Entry being visited.
    threshold_bytes:
        Largest size copied verbatim. A file of exactly this size is copied.

    Returns
    -------
    MirrorAction
        ``DESCEND`` for directories, ``COPY_THROUGH`` or ``WRITE_META`` for files.
    """
    if entry.kind is EntryKind.DIRECTORY:
        return MirrorAction.DESCEND
    if entry.kind is EntryKind.FILE:
        if entry.size_bytes <= threshold_bytes:
            return MirrorAction.COPY_THROUGH
        return MirrorAction.WRITE_META
    raise ValueError(f"Unhandled entry kind: {entry.kind!r}")
