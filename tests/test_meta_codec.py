from __future__ import annotations

from pathlib import Path, PurePosixPath

import pytest

from mirror_engine.errors import FormatMismatchError, MetaDecodeError, MetaFormatError
from mirror_engine.meta_codec import (
    MetaRecord,
    decode_meta,
    encode_meta,
    human_size,
    meta_file_name,
    write_meta_file,
)


def test_encode_layout_is_stable() -> None:
    payload = encode_meta("DRIVETAN", PurePosixPath("sub/b.bin"), 10_000_000)
    assert payload == (
        b"DRIVETAN\n"
        b'path: "sub/b.bin"\n'
        b"size: 10000000\n"
        b"human_size: 9.54 MiB\n"
    )


def test_decode_inverts_encode() -> None:
    payload = encode_meta("DRIVETAN", "sub/b.bin", 10_000_000)
    assert decode_meta("DRIVETAN", payload) == MetaRecord(
        magic="DRIVETAN",
        relative_path=PurePosixPath("sub/b.bin"),
        size_bytes=10_000_000,
    )


@pytest.mark.parametrize(
    "path_text",
    [
        "with space/and\ttab.txt",
        'quote"d/back\\slash',
        "line\nbreak: size: 1",
        "unicodé/日本語.mkv",
        "latin1-\udce9.bin",
    ],
)
def test_awkward_paths_survive_decode(path_text: str) -> None:
    payload = encode_meta("MAGIC", path_text, 7)
    record = decode_meta("MAGIC", payload)
    assert str(record.relative_path) == path_text
    assert record.size_bytes == 7


def test_decode_rejects_wrong_magic() -> None:
    payload = encode_meta("DRIVETAN", "a.bin", 5)
    with pytest.raises(FormatMismatchError):
        decode_meta("OTHER", payload)


def test_decode_rejects_magic_prefix_without_line_break() -> None:
    payload = encode_meta("DRIVETANX", "a.bin", 5)
    with pytest.raises(FormatMismatchError):
        decode_meta("DRIVETAN", payload)


def test_decode_rejects_arbitrary_file() -> None:
    with pytest.raises(FormatMismatchError):
        decode_meta("DRIVETAN", b"\x89PNG\r\n\x1a\n")


@pytest.mark.parametrize(
    "body",
    [
        b"size: 5\n",
        b'path: "a.bin"\n',
        b'path: "a.bin"\nsize: -5\n',
        b'path: "a.bin"\nsize: five\n',
        b"path: a.bin\nsize: 5\n",
        b'path: ""\nsize: 5\n',
        b'path: "a.bin"\npath: "b.bin"\nsize: 5\n',
        b'path: "a.bin"\nsize 5\n',
    ],
)
def test_decode_rejects_malformed_fields(body: bytes) -> None:
    with pytest.raises(MetaDecodeError):
        decode_meta("DRIVETAN", b"DRIVETAN\n" + body)


def test_format_errors_share_a_base() -> None:
    assert issubclass(FormatMismatchError, MetaFormatError)
    assert issubclass(MetaDecodeError, MetaFormatError)


def test_encode_rejects_bad_inputs() -> None:
    with pytest.raises(ValueError):
        encode_meta("", "a", 1)
    with pytest.raises(ValueError):
        encode_meta("A\nB", "a", 1)
    with pytest.raises(ValueError):
        encode_meta("A", "a", -1)


@pytest.mark.parametrize("path", ["", PurePosixPath(), "."])
def test_encode_rejects_root_path(path: PurePosixPath | str) -> None:
    with pytest.raises(ValueError):
        encode_meta("DRIVETAN", path, 1)


def test_write_meta_file_replaces_existing(tmp_path: Path) -> None:
    target = tmp_path / "movie.mkv.drivetan.txt"
    target.write_bytes(b"stale")
    payload = encode_meta("DRIVETAN", "films/movie.mkv", 4096)

    write_meta_file(target, payload)

    assert target.read_bytes() == payload
    assert sorted(p.name for p in tmp_path.iterdir()) == ["movie.mkv.drivetan.txt"]


@pytest.mark.parametrize(
    ("size", "expected"),
    [
        (0, "0 B"),
        (1023, "1023 B"),
        (1024, "1.00 KiB"),
        (1536, "1.50 KiB"),
        (1024 * 1024, "1.00 MiB"),
        (10_000_000, "9.54 MiB"),
        (1024**3, "1.00 GiB"),
        (5 * 1024**4, "5120.00 GiB"),
    ],
)
def test_human_size(size: int, expected: str) -> None:
    assert human_size(size) == expected


def test_meta_file_name_appends_suffix() -> None:
    assert meta_file_name("report.csv", ".drivetan.txt") == "report.csv.drivetan.txt"
