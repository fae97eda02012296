"""
Exclusion rules for mirror traversal.

Patterns are user-authored regular expressions read from a skip file, one per
line. They are compiled once at startup and matched against source-relative
paths.

Invariants
----------
- Paths are matched in '/'-separated form regardless of host platform.
- Matching uses ``re.search`` semantics: a pattern matches if it matches
  anywhere in the path. Use ``^`` / ``$`` to anchor explicitly.
- Matching is case-sensitive.
- Directory paths carry no trailing separator, so ``^build$`` matches the
  top-level ``build`` directory and everything beneath it is never visited.
- The source root itself (empty relative path) is never skipped.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Protocol, Sequence

from mirror_engine.errors import ConfigurationError

logger = logging.getLogger(__name__)


class PatternMatcher(Protocol):
    """Decides whether a source-relative path is excluded from the mirror."""

    def should_skip(self, relative_path: PurePosixPath, is_directory: bool) -> bool:
        """
        Return True if the entry must be skipped.

        Parameters
        ----------
        relative_path:
            Path relative to the source root, '/'-separated.
        is_directory:
            True when the path denotes a directory. A skipped directory is
            never descended into.
        """
        ...


@dataclass(frozen=True, slots=True)
class NeverSkipMatcher:
    """Matcher used when no exclusion rules are configured."""

    def should_skip(self, relative_path: PurePosixPath, is_directory: bool) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class RegexPatternMatcher:
    """
    Matcher backed by an ordered set of compiled regular expressions.

    Attributes
    ----------
    rules:
        Compiled patterns in the order they were authored.
    """

    rules: tuple[re.Pattern[str], ...]

    @classmethod
    def from_patterns(cls, patterns: Sequence[str]) -> RegexPatternMatcher:
        """
        Compile pattern source text into a matcher.

        Parameters
        ----------
        patterns:
            Regular expressions in authoring order.

        Returns
        -------
        RegexPatternMatcher
            Matcher holding every compiled pattern.

        Raises
        ------
        ConfigurationError
            If any pattern is not a valid regular expression. Reported once,
            for the first offending pattern.
        """
        compiled: list[re.Pattern[str]] = []
        for index, pattern in enumerate(patterns, start=1):
            try:
                compiled.append(re.compile(pattern))
            except re.error as exc:
                raise ConfigurationError(f"invalid skip pattern #{index} {pattern!r}: {exc}") from exc
        return cls(rules=tuple(compiled))

    @property
    def patterns(self) -> tuple[str, ...]:
        return tuple(rule.pattern for rule in self.rules)

    def should_skip(self, relative_path: PurePosixPath, is_directory: bool) -> bool:
        text = relative_path_text(relative_path)
        if not text:
            return False
        for rule in self.rules:
            if rule.search(text):
                logger.debug(
                    "skip %s %s (pattern %r)",
                    "directory" if is_directory else "file",
                    text,
                    rule.pattern,
                )
                return True
        return False


def relative_path_text(relative_path: PurePosixPath | str) -> str:
    """
    Render a relative path in the canonical '/'-separated form used for matching.

    The source root is rendered as an empty string rather than ``"."``.
    """
    text = str(relative_path)
    return "" if text == "." else text


def parse_skip_patterns(lines: Iterable[str]) -> tuple[str, ...]:
    """
    Extract patterns from skip-file lines.

    Line terminators (including the ``\\r`` of CRLF files) are removed and
    blank lines are dropped. Other whitespace is part of the pattern.
    """
    out: list[str] = []
    for raw in lines:
        line = raw.rstrip("\n").rstrip("\r")
        if not line.strip():
            continue
        out.append(line)
    return tuple(out)


def read_skip_file(path: Path) -> tuple[str, ...]:
    """
    Read exclusion patterns from a newline-separated text file.

    Parameters
    ----------
    path:
        Skip file location.

    Returns
    -------
    tuple[str, ...]
        Patterns in file order.

    Raises
    ------
    ConfigurationError
        If the file cannot be read or decoded.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"could not read skip file {path}: {exc}") from exc
    patterns = parse_skip_patterns(text.split("\n"))
    logger.info("loaded %d skip pattern(s) from %s", len(patterns), path)
    return patterns


def build_matcher(patterns: Sequence[str]) -> PatternMatcher:
    """Return the matcher appropriate for the configured patterns."""
    if not patterns:
        return NeverSkipMatcher()
    return RegexPatternMatcher.from_patterns(patterns)
