"""
Run configuration for a drivetan mirror.

The configuration is resolved once (normally by the CLI) and passed explicitly
into the engine. Engine modules never read arguments or environment state on
their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from mirror_engine.errors import ConfigurationError

DEFAULT_MAX_SIZE_BYTES = 0
DEFAULT_META_SUFFIX = ".drivetan.txt"
DEFAULT_MAGIC = "DRIVETAN"


@dataclass(frozen=True, slots=True)
class MirrorConfig:
    """
    Immutable configuration for a single mirror run.

    Attributes
    ----------
    source_root:
        Root of the tree being remembered (typically a removable drive).
    destination_root:
        Root of the mirror to build. Created if missing.
    max_size_bytes:
        Largest file size copied verbatim. Larger files are replaced by a meta file.
        Zero means every non-empty file is stubbed.
    meta_suffix:
        Suffix appended to the original file name to name its meta file.
    magic:
        Marker written on the first line of every meta file.
    exclusion_patterns:
        Regular expressions (source text) matched against source-relative paths.
    preserve_times:
        Apply the source access/modification times to written artifacts.
    """

    source_root: Path
    destination_root: Path
    max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES
    meta_suffix: str = DEFAULT_META_SUFFIX
    magic: str = DEFAULT_MAGIC
    exclusion_patterns: tuple[str, ...] = ()
    preserve_times: bool = True

    def validate(self) -> None:
        """
        Check value-level invariants that do not require filesystem access.

        Raises
        ------
        ConfigurationError
            If any field holds a value the engine cannot honor.
        """
        if self.max_size_bytes < 0:
            raise ConfigurationError(f"max size must be non-negative, got {self.max_size_bytes}")
        if not self.meta_suffix:
            raise ConfigurationError("meta file extension must not be empty")
        if "/" in self.meta_suffix or "\\" in self.meta_suffix:
            raise ConfigurationError(f"meta file extension must not contain a path separator: {self.meta_suffix!r}")
        if not self.magic:
            raise ConfigurationError("magic must not be empty")
        if "\n" in self.magic or "\r" in self.magic:
            raise ConfigurationError("magic must be a single line")
