"""Tests for the flux-release `decide` command."""

import pytest

from . import run_command

TESTDATA = "tests/testdata/podinfo.yaml"


@pytest.mark.parametrize(
    ("args", "expected"),
    [
        (
            ["--revision", "6.5.4", "--release-revision", "5"],
            {"podinfo": "upgrade", "metallb": "upgrade"},
        ),
        (
            ["--revision", "6.5.4", "--release-revision", "4"],
            {"podinfo": "upgrade,rollback", "metallb": "upgrade"},
        ),
        (
            ["--revision", "6.5.4"],
            {"podinfo": "install", "metallb": "install"},
        ),
    ],
    ids=["retry", "rollback", "install"],
)
def test_decide(args: list[str], expected: dict[str, str]) -> None:
    """Test deciding actions for HelmReleases."""
    result = run_command(
        ["decide", "--path", TESTDATA, "--values-checksum", "abc123"] + args
    )
    lines = [line.split() for line in result.splitlines()]
    assert lines[0] == ["NAMESPACE", "NAME", "ACTIONS"]
    assert {line[1]: line[2] for line in lines[1:]} == expected


def test_decide_default_checksum() -> None:
    """Test that the checksum of spec.values is used by default."""
    result = run_command(
        ["decide", "--path", TESTDATA, "--revision", "6.5.4", "--release-revision", "5"]
    )
    lines = [line.split() for line in result.splitlines()]
    assert lines[1] == ["podinfo", "podinfo", "upgrade"]
