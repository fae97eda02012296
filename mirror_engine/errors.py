"""
Domain exceptions for drivetan.

Notes
-----
Engine code avoids raising generic exceptions. Every expected failure mode maps
to a domain exception with a clear meaning. Per-entry problems during a mirror
run are not exceptions at all; they are recorded as EntryWarning values.
"""

from __future__ import annotations


class DrivetanError(RuntimeError):
    """Base exception for all drivetan domain failures."""


class ConfigurationError(DrivetanError):
    """Raised before traversal when the run configuration is unusable."""


class TraversalError(DrivetanError):
    """Raised when a mirror run cannot meaningfully continue."""


class DestinationWriteError(TraversalError):
    """Raised when a destination directory required by later entries cannot be created."""


class MetaFormatError(DrivetanError):
    """Base class for meta-file decoding failures."""


class FormatMismatchError(MetaFormatError):
    """Raised when a meta payload does not start with the expected magic marker."""


class MetaDecodeError(MetaFormatError):
    """Raised when a meta payload carries the magic but its fields are malformed."""


class ArchiveError(DrivetanError):
    """Raised when a mirror archive cannot be created or extracted."""
