"""
Meta-file format for stubbed files.

A meta file replaces a file that is too large to copy. It is a short UTF-8 text
document that lets a person (or a later tool) know the original existed:

    DRIVETAN
    path: "sub/b.bin"
    size: 10000000
    human_size: 9.54 MiB

Layout
------
- Line 1 is exactly the configured magic marker.
- ``path`` is a JSON string, so separators, whitespace, quotes and line breaks
  in file names survive a round trip. Bytes that are not valid UTF-8 (possible
  in POSIX file names) are carried with ``surrogateescape``.
- ``size`` is the original size in bytes, decimal.
- ``human_size`` is informational and ignored when decoding.
- Lines end with ``\\n``.

Encoding and decoding are pure; writing the file is done by the walker.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from mirror_engine.errors import FormatMismatchError, MetaDecodeError
from mirror_engine.fs_ops import write_bytes_atomic
from mirror_engine.patterns import relative_path_text

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"

_PATH_KEY = "path"
_SIZE_KEY = "size"
_HUMAN_SIZE_KEY = "human_size"

_KIB = 1024
_MIB = 1024 * 1024
_GIB = 1024 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class MetaRecord:
    """
    Decoded contents of a meta file.

    Attributes
    ----------
    magic:
        Marker found on the first line.
    relative_path:
        Original path relative to the source root.
    size_bytes:
        Original file size in bytes.
    """

    magic: str
    relative_path: PurePosixPath
    size_bytes: int


def meta_file_name(original_name: str, suffix: str) -> str:
    """Return the meta file name for an original file name."""
    return original_name + suffix


def human_size(size_bytes: int) -> str:
    """
    Render a byte count the way meta files display it.

    Returns
    -------
    str
        ``"N B"`` below one KiB, otherwise KiB, MiB or GiB with two decimals.
    """
    if size_bytes < _KIB:
        return f"{size_bytes} B"
    if size_bytes < _MIB:
        return f"{size_bytes / _KIB:.2f} KiB"
    if size_bytes < _GIB:
        return f"{size_bytes / _MIB:.2f} MiB"
    return f"{size_bytes / _GIB:.2f} GiB"


def encode_meta(magic: str, relative_path: PurePosixPath | str, size_bytes: int) -> bytes:
    """
    Encode a meta file payload.

    Parameters
    ----------
    magic:
        Marker for the first line. Must be non-empty and single-line.
    relative_path:
        Original source-relative path.
    size_bytes:
        Original size in bytes.

    Returns
    -------
    bytes
        Complete meta file contents.

    Raises
    ------
    ValueError
        If the magic is unusable, the path is empty or the size is negative.
    """
    if not magic or "\n" in magic or "\r" in magic:
        raise ValueError(f"magic must be a non-empty single line, got {magic!r}")
    if size_bytes < 0:
        raise ValueError(f"size must be non-negative, got {size_bytes}")

    path_text = relative_path_text(relative_path)
    if not path_text:
        raise ValueError("relative path must name an entry below the source root")
    lines = [
        magic,
        f"{_PATH_KEY}: {json.dumps(path_text, ensure_ascii=False)}",
        f"{_SIZE_KEY}: {size_bytes}",
        f"{_HUMAN_SIZE_KEY}: {human_size(size_bytes)}",
    ]
    return ("\n".join(lines) + "\n").encode(_ENCODING, _ERRORS)


def decode_meta(magic: str, payload: bytes) -> MetaRecord:
    """
    Decode a meta file payload produced by ``encode_meta``.

    Parameters
    ----------
    magic:
        Marker the payload is expected to start with.
    payload:
        Raw meta file bytes.

    Returns
    -------
    MetaRecord
        The decoded record.

    Raises
    ------
    FormatMismatchError
        If the leading bytes are not the magic marker followed by a line break.
    MetaDecodeError
        If the marker matches but the fields are missing or malformed.
    """
    header = magic.encode(_ENCODING, _ERRORS) + b"\n"
    if not payload.startswith(header):
        raise FormatMismatchError(f"payload does not start with magic {magic!r}")

    body = payload[len(header):].decode(_ENCODING, _ERRORS)
    fields: dict[str, str] = {}
    for line_number, line in enumerate(body.split("\n"), start=2):
        if not line:
            continue
        key, sep, value = line.partition(": ")
        if not sep:
            raise MetaDecodeError(f"line {line_number}: expected 'key: value', got {line!r}")
        if key in fields:
            raise MetaDecodeError(f"line {line_number}: duplicate field {key!r}")
        fields[key] = value

    for required in (_PATH_KEY, _SIZE_KEY):
        if required not in fields:
            raise MetaDecodeError(f"missing field {required!r}")

    try:
        path_text = json.loads(fields[_PATH_KEY])
    except json.JSONDecodeError as exc:
        raise MetaDecodeError(f"malformed path field: {exc}") from exc
    if not isinstance(path_text, str) or not path_text:
        raise MetaDecodeError("path field must be a non-empty string")

    size_text = fields[_SIZE_KEY]
    if not size_text.isascii() or not size_text.isdigit():
        raise MetaDecodeError(f"size field must be a non-negative integer, got {size_text!r}")

    return MetaRecord(magic=magic, relative_path=PurePosixPath(path_text), size_bytes=int(size_text))


def write_meta_file(path: Path, payload: bytes) -> None:
    """
    Write an encoded meta payload to ``path``.

    The file is replaced atomically, so a reader never sees a partial meta file.

    Raises
    ------
    OSError
        If the file cannot be written.
    """
    write_bytes_atomic(path, payload)
