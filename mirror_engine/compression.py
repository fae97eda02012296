"""
Single-file archives of a finished mirror.

A mirror is a directory tree of small files. Packing it into one ``.tar.zst``
or ``.zip`` makes the record of a drive easy to move or keep next to others.

Notes
-----
- Archives are derived artifacts; the mirror directory stays the source of truth.
- Entries are added in sorted order and rooted at the mirror directory's name,
  so extraction recreates a folder of the same name.
- Empty directories are kept, since the tree shape is part of what is remembered.
"""

from __future__ import annotations

import logging
import tarfile
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator

import zstandard as zstd

from mirror_engine.errors import ArchiveError

logger = logging.getLogger(__name__)


class ArchiveFormat(str, Enum):
    """Supported archive formats."""

    TAR_ZST = "tar.zst"
    ZIP = "zip"


@dataclass(frozen=True, slots=True)
class ArchiveResult:
    """
    Result of archiving a mirror.

    Attributes
    ----------
    format:
        Format actually used.
    archive_path:
        Path to the created archive.
    entry_count:
        Number of files and directories stored.
    """

    format: ArchiveFormat
    archive_path: Path
    entry_count: int


def archive_mirror(
    *,
    mirror_root: Path,
    output_path: Path,
    format: ArchiveFormat,
    overwrite: bool = False,
) -> ArchiveResult:
    """
    Pack a mirror directory into a single archive file.

    Parameters
    ----------
    mirror_root:
        Destination root of a completed mirror run.
    output_path:
        Archive file to create. Must not be inside ``mirror_root``.
    format:
        Archive format.
    overwrite:
        Replace an existing archive at ``output_path``.

    Returns
    -------
    ArchiveResult
        Details of the created archive.

    Raises
    ------
    ArchiveError
        If inputs are invalid or the archive cannot be written.
    """
    mirror_root = mirror_root.resolve()
    if not mirror_root.is_dir():
        raise ArchiveError(f"mirror root must be an existing directory: {mirror_root}")

    output_path = output_path.resolve()
    if mirror_root in output_path.parents:
        raise ArchiveError(f"archive {output_path} must not be written inside the mirror {mirror_root}")
    if output_path.exists():
        if not overwrite:
            raise ArchiveError(f"refusing to overwrite existing archive: {output_path}")
        if not output_path.is_file():
            raise ArchiveError(f"archive path exists and is not a file: {output_path}")

    members = list(_iter_members(mirror_root))
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if format is ArchiveFormat.ZIP:
            _write_zip(mirror_root=mirror_root, members=members, output_path=output_path)
        elif format is ArchiveFormat.TAR_ZST:
            _write_tar_zst(mirror_root=mirror_root, members=members, output_path=output_path)
        else:
            raise ArchiveError(f"unsupported archive format: {format!r}")
    except OSError as exc:
        raise ArchiveError(f"writing archive {output_path} failed: {exc}") from exc

    logger.info("archived %d entries from %s to %s", len(members), mirror_root, output_path)
    return ArchiveResult(format=format, archive_path=output_path, entry_count=len(members))


def extract_archive(*, archive_path: Path, destination_dir: Path) -> Path:
    """
    Extract a mirror archive into ``destination_dir``.

    Returns
    -------
    pathlib.Path
        The directory the archive was extracted into.

    Raises
    ------
    ArchiveError
        If the archive type is unsupported or extraction fails.
    """
    archive_path = archive_path.resolve()
    destination_dir = destination_dir.resolve()

    lower = archive_path.name.lower()
    try:
        destination_dir.mkdir(parents=True, exist_ok=True)
        if lower.endswith(".zip"):
            with zipfile.ZipFile(archive_path, "r") as zf:
                zf.extractall(destination_dir)
        elif lower.endswith(".tar.zst"):
            _extract_tar_zst(archive_path=archive_path, destination_dir=destination_dir)
        else:
            raise ArchiveError(f"unsupported archive type: {archive_path}")
    except (OSError, zipfile.BadZipFile, tarfile.TarError, zstd.ZstdError) as exc:
        raise ArchiveError(f"extracting {archive_path} failed: {exc}") from exc
    return destination_dir


def format_for_path(path: Path) -> ArchiveFormat:
    """
    Infer the archive format from a file name.

    Raises
    ------
    ArchiveError
        If the extension is not recognized.
    """
    lower = path.name.lower()
    if lower.endswith(".tar.zst"):
        return ArchiveFormat.TAR_ZST
    if lower.endswith(".zip"):
        return ArchiveFormat.ZIP
    raise ArchiveError(f"cannot infer archive format from {path.name!r}; use .tar.zst or .zip")


def _iter_members(mirror_root: Path) -> Iterator[Path]:
    for path in sorted(mirror_root.rglob("*")):
        if path.is_dir() or path.is_file():
            yield path


def _arcname(mirror_root: Path, path: Path) -> str:
    return (Path(mirror_root.name) / path.relative_to(mirror_root)).as_posix()


def _write_zip(*, mirror_root: Path, members: list[Path], output_path: Path) -> None:
    with zipfile.ZipFile(output_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in members:
            zf.write(path, _arcname(mirror_root, path))


def _write_tar_zst(*, mirror_root: Path, members: list[Path], output_path: Path) -> None:
    with output_path.open("wb") as raw:
        cctx = zstd.ZstdCompressor()
        with cctx.stream_writer(raw) as zst_stream:
            with tarfile.open(fileobj=zst_stream, mode="w|") as tf:
                for path in members:
                    tf.add(path, arcname=_arcname(mirror_root, path), recursive=False)


def _extract_tar_zst(*, archive_path: Path, destination_dir: Path) -> None:
    with archive_path.open("rb") as raw:
        dctx = zstd.ZstdDecompressor()
        with dctx.stream_reader(raw) as reader:
            with tarfile.open(fileobj=reader, mode="r|") as tf:
                if hasattr(tarfile, "data_filter"):
                    tf.extractall(destination_dir, filter="data")
                else:
                    tf.extractall(destination_dir)  # noqa: S202
