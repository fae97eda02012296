"""
Rendering for mirror run output.

This module renders a MirrorResult to deterministic, human-readable text.
"""

from __future__ import annotations

from mirror_engine.mirror.walk import MirrorResult, WarningKind


def render_summary(result: MirrorResult) -> str:
    """
    Render the end-of-run summary line.

    Returns
    -------
    str
        ``processed: N, warnings: N, skipped: N``, followed by per-kind warning
        counts when any warning was recorded.
    """
    line = (
        f"processed: {len(result.processed)}, "
        f"warnings: {len(result.warnings)}, "
        f"skipped: {len(result.skipped)}"
    )
    counts = _count_warnings(result)
    if not counts:
        return line
    details = ", ".join(f"{kind.value}={counts[kind]}" for kind in WarningKind if kind in counts)
    return f"{line} ({details})"


def _count_warnings(result: MirrorResult) -> dict[WarningKind, int]:
    counts: dict[WarningKind, int] = {}
    for warning in result.warnings:
        counts[warning.kind] = counts.get(warning.kind, 0) + 1
    return counts
