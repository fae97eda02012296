"""
CLI smoke tests.

These tests validate that the CLI entrypoint is wired and that help and version
output do not crash.
"""

from __future__ import annotations

import pytest

from drivetan.cli import main


def _run_exiting(argv: list[str]) -> None:
    """Run the CLI expecting argparse to exit cleanly with code 0."""
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 0


def test_cli_help(capsys: pytest.CaptureFixture[str]) -> None:
    _run_exiting(["--help"])
    out = capsys.readouterr().out.lower()
    assert "usage:" in out
    assert "drivetan" in out
    for option in ("--max-size", "--extension", "--magic", "--skip-file"):
        assert option in out


def test_cli_version(capsys: pytest.CaptureFixture[str]) -> None:
    _run_exiting(["--version"])
    assert capsys.readouterr().out.startswith("drivetan ")


def test_cli_requires_source_and_destination(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2
    assert "usage:" in capsys.readouterr().err.lower()
