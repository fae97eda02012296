"""
Source tree traversal for drivetan mirror runs.

This module walks a source tree depth-first and builds the destination mirror:
small files are copied verbatim, larger files are replaced by meta files, and
excluded paths are left out entirely.

Policy
------
- Visit order is deterministic: entries are sorted by name within each
  directory and directories are descended into when visited.
- Excluded directories are never descended into.
- Symlinks are never followed; they are reported and left out.
- Per-entry failures are recorded as warnings and never stop the run.
- Only failures that make continuation meaningless raise (see errors module).
- Re-running with the same inputs overwrites artifacts identically.
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Callable, Union

from mirror_engine.config import MirrorConfig
from mirror_engine.errors import ConfigurationError, DestinationWriteError, TraversalError
from mirror_engine.fs_ops import apply_times, copy_file_atomic
from mirror_engine.meta_codec import encode_meta, meta_file_name, write_meta_file
from mirror_engine.mirror.plan import EntryKind, MirrorAction, SourceEntry, plan_entry
from mirror_engine.patterns import PatternMatcher, build_matcher, relative_path_text

logger = logging.getLogger(__name__)

_ROOT = PurePosixPath()


class WarningKind(str, Enum):
    """Categories of non-fatal, per-entry problems."""

    COPY_FAILED = "copy_failed"
    META_WRITE_FAILED = "meta_write_failed"
    NAME_COLLISION = "name_collision"
    UNREADABLE_ENTRY = "unreadable_entry"
    SKIPPED_SYMLINK = "skipped_symlink"
    UNSUPPORTED_ENTRY = "unsupported_entry"
    TIMES_NOT_PRESERVED = "times_not_preserved"


@dataclass(frozen=True, slots=True)
class EntryWarning:
    """
    A non-fatal problem with a single source entry.

    Attributes
    ----------
    relative_path:
        Source-relative path of the entry.
    kind:
        Problem category.
    message:
        Human-readable detail, safe to print.
    """

    relative_path: PurePosixPath
    kind: WarningKind
    message: str


@dataclass(slots=True)
class MirrorResult:
    """
    Outcome of a mirror run.

    Attributes
    ----------
    processed:
        Source-relative paths of files copied or stubbed, in visit order.
    warnings:
        Non-fatal problems, in the order they were encountered.
    skipped:
        Paths excluded by the pattern matcher. A skipped directory is listed
        once; its descendants are never visited.
    """

    processed: list[PurePosixPath] = field(default_factory=list)
    warnings: list[EntryWarning] = field(default_factory=list)
    skipped: list[PurePosixPath] = field(default_factory=list)


ProcessedCallback = Callable[[PurePosixPath], None]
WarningCallback = Callable[[EntryWarning], None]


@dataclass(frozen=True, slots=True)
class _Skipped:
    relative_path: PurePosixPath


# A visited child resolves to one of these before any action is taken.
_Visit = Union[SourceEntry, EntryWarning, _Skipped]


@dataclass(slots=True)
class _DirectoryFrame:
    """A directory whose children are still being processed."""

    visits: list[_Visit]
    destination_dir: Path
    reserved_names: set[str]
    claimed_meta_names: set[str] = field(default_factory=set)
    position: int = 0


class TreeWalker:
    """
    Build a destination mirror from a source tree.

    Parameters
    ----------
    config:
        Run configuration. Validated when the run starts.
    matcher:
        Exclusion matcher. Built from ``config.exclusion_patterns`` if omitted.
    on_processed:
        Called with each processed path as soon as its artifact is written.
    on_warning:
        Called with each warning as soon as it is recorded.
    """

    def __init__(
        self,
        config: MirrorConfig,
        matcher: PatternMatcher | None = None,
        *,
        on_processed: ProcessedCallback | None = None,
        on_warning: WarningCallback | None = None,
    ) -> None:
        self._config = config
        self._matcher = matcher
        self._on_processed = on_processed
        self._on_warning = on_warning
        self._result = MirrorResult()

    def run(self) -> MirrorResult:
        """
        Walk the whole source tree.

        Directories are processed from an explicit stack of open directories,
        so tree depth is not bounded by the interpreter's recursion limit. The
        visit order is the same as a recursive depth-first walk.

        Returns
        -------
        MirrorResult
            Processed paths, warnings and skipped paths.

        Raises
        ------
        ConfigurationError
            If the configuration is invalid, the source root is not a usable
            directory, or the destination root is unusable.
        TraversalError
            If the destination root cannot be created or the source root
            cannot be listed.
        DestinationWriteError
            If a destination sub-directory cannot be created.
        """
        self._config.validate()
        matcher = self._matcher if self._matcher is not None else build_matcher(self._config.exclusion_patterns)
        self._result = MirrorResult()

        source_root, destination_root = self._prepare_roots()
        logger.info("mirroring %s -> %s", source_root, destination_root)

        try:
            children = self._list_directory(source_root)
        except OSError as exc:
            raise TraversalError(f"could not list source root {source_root}: {exc}") from exc

        stack = [self._open_frame(_ROOT, children, destination_root, matcher)]
        while stack:
            frame = stack[-1]
            if frame.position >= len(frame.visits):
                stack.pop()
                continue
            visit = frame.visits[frame.position]
            frame.position += 1

            if isinstance(visit, _Skipped):
                self._result.skipped.append(visit.relative_path)
            elif isinstance(visit, EntryWarning):
                self._record_warning(visit)
            else:
                child_frame = self._handle_entry(visit, frame, matcher)
                if child_frame is not None:
                    stack.append(child_frame)

        return self._result

    def _prepare_roots(self) -> tuple[Path, Path]:
        source = self._config.source_root
        destination = self._config.destination_root

        if not source.exists():
            raise ConfigurationError(f"source path {source} does not exist or cannot be accessed")
        if not source.is_dir():
            raise ConfigurationError(f"source path {source} is not a directory")
        source_root = source.resolve()

        if destination.exists() and not destination.is_dir():
            raise ConfigurationError(f"destination path {destination} exists and is not a directory")
        destination_root = destination.resolve()

        if destination_root == source_root or source_root in destination_root.parents:
            raise ConfigurationError(
                f"destination {destination_root} is inside source {source_root}; the mirror would copy itself"
            )

        try:
            destination_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise TraversalError(f"creating destination directory {destination_root} failed: {exc}") from exc

        return source_root, destination_root

    def _list_directory(self, directory: Path) -> list[os.DirEntry[str]]:
        with os.scandir(directory) as iterator:
            return sorted(iterator, key=lambda item: item.name)

    def _open_frame(
        self,
        parent_relative: PurePosixPath,
        children: list[os.DirEntry[str]],
        destination_dir: Path,
        matcher: PatternMatcher,
    ) -> _DirectoryFrame:
        visits = [self._visit(parent_relative / child.name, child, matcher) for child in children]

        # Every non-excluded sibling name, including entries that produce no
        # artifact, so a meta file never stands in for a real source entry.
        reserved_names = {
            visit.relative_path.name for visit in visits if isinstance(visit, (SourceEntry, EntryWarning))
        }
        return _DirectoryFrame(visits=visits, destination_dir=destination_dir, reserved_names=reserved_names)

    def _visit(self, relative_path: PurePosixPath, child: os.DirEntry[str], matcher: PatternMatcher) -> _Visit:
        try:
            is_directory = child.is_dir(follow_symlinks=False)
            if matcher.should_skip(relative_path, is_directory):
                return _Skipped(relative_path)

            if child.is_symlink():
                return EntryWarning(relative_path, WarningKind.SKIPPED_SYMLINK, "symlink not followed")

            stat_result = child.stat(follow_symlinks=False)
        except OSError as exc:
            return EntryWarning(relative_path, WarningKind.UNREADABLE_ENTRY, f"could not stat entry: {exc}")

        if stat.S_ISDIR(stat_result.st_mode):
            kind = EntryKind.DIRECTORY
        elif stat.S_ISREG(stat_result.st_mode):
            kind = EntryKind.FILE
        else:
            return EntryWarning(
                relative_path,
                WarningKind.UNSUPPORTED_ENTRY,
                "not a regular file or directory",
            )

        return SourceEntry(
            relative_path=relative_path,
            absolute_path=Path(child.path),
            kind=kind,
            size_bytes=int(stat_result.st_size) if kind is EntryKind.FILE else 0,
            accessed_time=float(stat_result.st_atime),
            modified_time=float(stat_result.st_mtime),
        )

    def _handle_entry(
        self,
        entry: SourceEntry,
        frame: _DirectoryFrame,
        matcher: PatternMatcher,
    ) -> _DirectoryFrame | None:
        action = plan_entry(entry, self._config.max_size_bytes)
        logger.debug("%s: %s", action.value, relative_path_text(entry.relative_path))

        if action is MirrorAction.DESCEND:
            return self._descend(entry, frame.destination_dir, matcher)
        if action is MirrorAction.COPY_THROUGH:
            self._copy_through(entry, frame.destination_dir)
        elif action is MirrorAction.WRITE_META:
            self._write_meta(entry, frame)
        else:
            raise ValueError(f"Unhandled mirror action: {action!r}")
        return None

    def _descend(self, entry: SourceEntry, destination_dir: Path, matcher: PatternMatcher) -> _DirectoryFrame | None:
        target = destination_dir / entry.name
        try:
            target.mkdir(exist_ok=True)
        except OSError as exc:
            raise DestinationWriteError(f"creating destination directory {target} failed: {exc}") from exc

        try:
            children = self._list_directory(entry.absolute_path)
        except OSError as exc:
            self._warn(entry.relative_path, WarningKind.UNREADABLE_ENTRY, f"could not read directory: {exc}")
            return None
        return self._open_frame(entry.relative_path, children, target, matcher)

    def _copy_through(self, entry: SourceEntry, destination_dir: Path) -> None:
        target = destination_dir / entry.name
        try:
            copy_file_atomic(entry.absolute_path, target)
        except OSError as exc:
            self._warn(entry.relative_path, WarningKind.COPY_FAILED, f"copy to {target} failed: {exc}")
            return
        self._finish(entry, target)

    def _write_meta(self, entry: SourceEntry, frame: _DirectoryFrame) -> None:
        name = meta_file_name(entry.name, self._config.meta_suffix)
        if name in frame.reserved_names or name in frame.claimed_meta_names:
            self._warn(
                entry.relative_path,
                WarningKind.NAME_COLLISION,
                f"meta file name {name!r} collides with an existing entry; not written",
            )
            return
        frame.claimed_meta_names.add(name)

        target = frame.destination_dir / name
        payload = encode_meta(self._config.magic, entry.relative_path, entry.size_bytes)
        try:
            write_meta_file(target, payload)
        except OSError as exc:
            self._warn(entry.relative_path, WarningKind.META_WRITE_FAILED, f"writing {target} failed: {exc}")
            return
        self._finish(entry, target)

    def _finish(self, entry: SourceEntry, target: Path) -> None:
        self._result.processed.append(entry.relative_path)
        if self._on_processed is not None:
            self._on_processed(entry.relative_path)

        if not self._config.preserve_times:
            return
        # The artifact already exists, so a failure here does not undo success.
        try:
            apply_times(target, accessed=entry.accessed_time, modified=entry.modified_time)
        except OSError as exc:
            self._warn(entry.relative_path, WarningKind.TIMES_NOT_PRESERVED, f"could not set times on {target}: {exc}")

    def _warn(self, relative_path: PurePosixPath, kind: WarningKind, message: str) -> None:
        self._record_warning(EntryWarning(relative_path, kind, message))

    def _record_warning(self, warning: EntryWarning) -> None:
        self._result.warnings.append(warning)
        logger.warning("%s: %s: %s", warning.kind.value, relative_path_text(warning.relative_path), warning.message)
        if self._on_warning is not None:
            self._on_warning(warning)


def run_mirror(
    config: MirrorConfig,
    *,
    matcher: PatternMatcher | None = None,
    on_processed: ProcessedCallback | None = None,
    on_warning: WarningCallback | None = None,
) -> MirrorResult:
    """
    Run a complete mirror for ``config``.

    This is a convenience wrapper around ``TreeWalker``.
    """
    walker = TreeWalker(config, matcher, on_processed=on_processed, on_warning=on_warning)
    return walker.run()
