"""Tests for the flux-release `status` command."""

import pathlib

import pytest
import yaml

from . import run_command

TESTDATA = "tests/testdata/podinfo.yaml"


def test_status_table() -> None:
    """Test printing the status of HelmReleases as a table."""
    result = run_command(["status", "--path", TESTDATA])
    lines = [line.split() for line in result.splitlines()]
    assert lines == [
        ["NAMESPACE", "NAME", "READY", "APPLIED", "ATTEMPTED", "RELEASE", "FAILURES"],
        ["podinfo", "podinfo", "False", "6.5.3", "6.5.4", "5", "1"],
        ["metallb", "metallb", "Unknown", "-", "-", "0", "0"],
    ]


def test_status_yaml() -> None:
    """Test printing the status of HelmReleases as yaml."""
    result = run_command(["status", "--path", TESTDATA, "-o", "yaml"])
    docs = list(yaml.safe_load_all(result))
    assert [doc["name"] for doc in docs] == ["podinfo", "metallb"]
    podinfo_status = docs[0]["status"]
    assert podinfo_status["lastAppliedRevision"] == "6.5.3"
    assert podinfo_status["failures"] == 1
    assert [c["type"] for c in podinfo_status["conditions"]] == ["Ready", "Upgraded"]
    assert docs[1]["status"] == {}


def test_status_no_releases(tmp_path: pathlib.Path) -> None:
    """Test a file without any HelmReleases."""
    path = tmp_path / "empty.yaml"
    path.write_text("apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: cm\n")
    result = run_command(["status", "--path", str(path)])
    assert result == "no HelmReleases found\n"


def test_status_invalid_release(
    tmp_path: pathlib.Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """Test a HelmRelease that fails to parse."""
    path = tmp_path / "invalid.yaml"
    path.write_text(
        yaml.dump(
            {
                "apiVersion": "helm.toolkit.fluxcd.io/v2",
                "kind": "HelmRelease",
                "metadata": {"name": "app", "namespace": "default"},
                "spec": {"interval": "5m"},
            }
        )
    )
    with pytest.raises(SystemExit) as exc_info:
        run_command(["status", "--path", str(path)])
    assert exc_info.value.code == 1
    assert "missing spec.chart" in capsys.readouterr().err
