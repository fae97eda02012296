"""
Command-line interface for drivetan.

Notes
-----
The CLI is intentionally thin. It parses arguments, resolves a MirrorConfig and
delegates to engine modules.

Output channels
---------------
- stdout: one processed source-relative path per line, written as soon as the
  file is handled. This is the machine-readable result.
- stderr: per-entry warnings (via logging), fatal errors and the summary line.

Exit codes
----------
- 0: run completed (warnings do not change this).
- 1: the run was aborted (traversal or archive failure).
- 2: invalid configuration.
"""

from __future__ import annotations

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path, PurePosixPath

from mirror_engine.compression import ArchiveFormat, archive_mirror, format_for_path
from mirror_engine.config import DEFAULT_MAGIC, DEFAULT_MAX_SIZE_BYTES, DEFAULT_META_SUFFIX, MirrorConfig
from mirror_engine.errors import ConfigurationError, DrivetanError
from mirror_engine.mirror.render import render_summary
from mirror_engine.mirror.walk import run_mirror
from mirror_engine.patterns import build_matcher, read_skip_file, relative_path_text

_LOG_FORMAT = "%(levelname)s: %(message)s"


def _package_version() -> str:
    try:
        return version("drivetan")
    except PackageNotFoundError:
        return "0+unknown"


def build_parser() -> argparse.ArgumentParser:
    """
    Build and return the argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured parser.
    """
    parser = argparse.ArgumentParser(
        prog="drivetan",
        description=(
            "Generate a meta directory structure to remember files on unplugged drives. "
            "Standard output lists properly processed files separated by newlines."
        ),
    )
    parser.add_argument("source", type=Path, help="Source directory (e.g. a mounted drive)")
    parser.add_argument("destination", type=Path, help="Destination directory for the mirror")
    parser.add_argument(
        "-m",
        "--max-size",
        type=int,
        default=DEFAULT_MAX_SIZE_BYTES,
        metavar="SIZE_IN_BYTES",
        help="Max size in bytes to copy a file unchanged (default: %(default)s).",
    )
    parser.add_argument(
        "-e",
        "--extension",
        default=DEFAULT_META_SUFFIX,
        metavar="EXTENSION",
        help="Extension for meta files (default: %(default)s).",
    )
    parser.add_argument(
        "--magic",
        default=DEFAULT_MAGIC,
        metavar="MAGIC",
        help="Magic at the start of a meta file (default: %(default)s).",
    )
    parser.add_argument(
        "--skip-file",
        type=Path,
        default=None,
        metavar="PATH",
        help=(
            "Skip files/directories matching regexes in the provided file, separated by "
            "newlines (e.g. \"\\.git\"). Directories do not have trailing slashes."
        ),
    )
    parser.add_argument(
        "--no-preserve-times",
        action="store_true",
        help="Do not copy source access/modification times onto written files.",
    )

    archive_group = parser.add_argument_group("archive")
    archive_group.add_argument(
        "--archive",
        type=Path,
        default=None,
        metavar="PATH",
        help="After the run, pack the mirror into a single .tar.zst or .zip file.",
    )
    archive_group.add_argument(
        "--archive-format",
        choices=[fmt.value for fmt in ArchiveFormat],
        default=None,
        help="Archive format. Inferred from the --archive file name if omitted.",
    )
    archive_group.add_argument(
        "--overwrite-archive",
        action="store_true",
        help="Allow replacing an existing archive file.",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log more detail to stderr (-v: info, -vv: debug).",
    )
    verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log errors; suppress warnings and the summary line.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")
    return parser


def _configure_logging(*, verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr, force=True)


def _print_processed(path: PurePosixPath) -> None:
    text = relative_path_text(path)
    try:
        print(text, flush=True)
    except UnicodeEncodeError:
        # Non-UTF-8 file names carry surrogate escapes that stdout may refuse.
        print(text.encode("utf-8", "surrogateescape").decode("utf-8", "replace"), flush=True)


def _print_error(message: str) -> None:
    print(f"ERROR: {message}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point.

    Parameters
    ----------
    argv:
        Optional argument vector. If None, argparse uses sys.argv.

    Returns
    -------
    int
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(verbose=args.verbose, quiet=args.quiet)

    try:
        patterns = read_skip_file(args.skip_file) if args.skip_file is not None else ()
        config = MirrorConfig(
            source_root=args.source,
            destination_root=args.destination,
            max_size_bytes=args.max_size,
            meta_suffix=args.extension,
            magic=args.magic,
            exclusion_patterns=patterns,
            preserve_times=not args.no_preserve_times,
        )
        config.validate()
        matcher = build_matcher(config.exclusion_patterns)

        archive_format: ArchiveFormat | None = None
        if args.archive is not None:
            if args.archive_format is not None:
                archive_format = ArchiveFormat(args.archive_format)
            else:
                archive_format = format_for_path(args.archive)
        elif args.archive_format is not None or args.overwrite_archive:
            raise ConfigurationError("--archive-format/--overwrite-archive require --archive")
    except DrivetanError as exc:
        # Includes ArchiveError from archive format inference.
        _print_error(str(exc))
        return 2

    try:
        result = run_mirror(config, matcher=matcher, on_processed=_print_processed)
    except ConfigurationError as exc:
        _print_error(str(exc))
        return 2
    except DrivetanError as exc:
        _print_error(str(exc))
        return 1

    if not args.quiet:
        print(render_summary(result), file=sys.stderr)

    if args.archive is not None and archive_format is not None:
        try:
            archived = archive_mirror(
                mirror_root=config.destination_root,
                output_path=args.archive,
                format=archive_format,
                overwrite=args.overwrite_archive,
            )
        except DrivetanError as exc:
            _print_error(str(exc))
            return 1
        if not args.quiet:
            print(f"archive written: {archived.archive_path}", file=sys.stderr)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
