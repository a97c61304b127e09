# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The helm-precommit contributors
"""Tests for helm command execution."""

import hashlib
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from helm_precommit.appset import GitChart, RepositoryChart
from helm_precommit.helm import (
    RenderError,
    RenderOutcome,
    get_helm_version,
    render_custom,
    render_upstream,
    repo_alias,
    require_tools,
)

CERT_MANAGER = RepositoryChart(
    name="cert-manager",
    repo_url="https://charts.jetstack.io",
    target_revision="1.18.2",
)


def make_chart(tmp_path: Path, chart: str) -> Path:
    chart_dir = tmp_path / "foo"
    chart_dir.mkdir()
    (chart_dir / "Chart.yaml").write_text(chart)
    return chart_dir


def commands(mock_run: MagicMock) -> list[list[str]]:
    return [call[0][0] for call in mock_run.call_args_list]


def ok(stdout: str = "") -> MagicMock:
    return MagicMock(returncode=0, stdout=stdout, stderr="")


# ---------------------------------------------------------------------------
# Tool checks
# ---------------------------------------------------------------------------


@patch("helm_precommit.helm.shutil.which")
def test_require_tools_reports_all_missing(mock_which: MagicMock) -> None:
    mock_which.return_value = None
    with pytest.raises(RuntimeError, match="Missing required dependencies: helm yq"):
        require_tools("helm", "yq")


@patch("helm_precommit.helm.subprocess.run")
@patch("helm_precommit.helm.shutil.which")
def test_require_tools_checks_helm_runs(mock_which: MagicMock, mock_run: MagicMock) -> None:
    mock_which.return_value = "/usr/local/bin/helm"
    mock_run.return_value = ok("v3.15.2+g1a500d5\n")

    require_tools("helm")

    assert commands(mock_run) == [["helm", "version", "--short"]]


@patch("helm_precommit.helm.subprocess.run")
@patch("helm_precommit.helm.shutil.which")
def test_require_tools_broken_helm(mock_which: MagicMock, mock_run: MagicMock) -> None:
    mock_which.return_value = "/usr/local/bin/helm"
    mock_run.side_effect = subprocess.CalledProcessError(
        1, ["helm", "version", "--short"], output="", stderr="exec format error"
    )

    with pytest.raises(RenderError, match="helm version failed") as excinfo:
        require_tools("helm")
    assert "exec format error" in excinfo.value.diagnostics


@patch("helm_precommit.helm.subprocess.run")
@patch("helm_precommit.helm.shutil.which")
def test_require_tools_without_helm_does_not_run_it(
    mock_which: MagicMock, mock_run: MagicMock
) -> None:
    mock_which.return_value = "/usr/bin/git"

    require_tools("git")

    mock_run.assert_not_called()


@patch("helm_precommit.helm.subprocess.run")
def test_get_helm_version(mock_run: MagicMock) -> None:
    mock_run.return_value = ok("v3.15.2+g1a500d5\n")
    assert get_helm_version() == "v3.15.2+g1a500d5"


@patch("helm_precommit.helm.subprocess.run")
def test_get_helm_version_not_installed(mock_run: MagicMock) -> None:
    mock_run.side_effect = FileNotFoundError("helm")
    with pytest.raises(RuntimeError, match="helm is not installed"):
        get_helm_version()


# ---------------------------------------------------------------------------
# Custom charts
# ---------------------------------------------------------------------------


@patch("helm_precommit.helm.subprocess.run")
def test_render_custom_without_dependencies(mock_run: MagicMock, tmp_path: Path) -> None:
    """Charts without dependencies are rendered without a dependency build."""
    mock_run.return_value = ok("kind: ConfigMap\n")
    chart_dir = make_chart(tmp_path, "name: foo\ndependencies: []\n")

    assert render_custom(chart_dir) == "kind: ConfigMap\n"
    assert commands(mock_run) == [["helm", "template", "test-release", str(chart_dir)]]


@patch("helm_precommit.helm.subprocess.run")
def test_render_custom_builds_dependencies_first(mock_run: MagicMock, tmp_path: Path) -> None:
    mock_run.return_value = ok()
    chart_dir = make_chart(
        tmp_path,
        "name: foo\ndependencies:\n  - name: redis\n    repository: https://charts.example.com\n",
    )

    render_custom(chart_dir)

    assert commands(mock_run) == [
        ["helm", "dependency", "build", str(chart_dir)],
        ["helm", "template", "test-release", str(chart_dir)],
    ]


@patch("helm_precommit.helm.subprocess.run")
def test_render_custom_dependency_build_failure(mock_run: MagicMock, tmp_path: Path) -> None:
    """A failed dependency build stops before helm template runs."""
    mock_run.side_effect = subprocess.CalledProcessError(
        1, ["helm"], output="", stderr="Error: no repository definition for redis"
    )
    chart_dir = make_chart(tmp_path, "name: foo\ndependencies:\n  - name: redis\n")

    with pytest.raises(RenderError, match="helm dependency build") as excinfo:
        render_custom(chart_dir)

    assert "no repository definition" in excinfo.value.diagnostics
    assert mock_run.call_count == 1


@patch("helm_precommit.helm.subprocess.run")
def test_render_custom_template_failure(mock_run: MagicMock, tmp_path: Path) -> None:
    mock_run.side_effect = subprocess.CalledProcessError(
        1, ["helm"], output="", stderr="Error: template: foo/templates/cm.yaml:3: bad"
    )
    chart_dir = make_chart(tmp_path, "name: foo\n")

    with pytest.raises(RenderError) as excinfo:
        render_custom(chart_dir)

    assert "Command: helm template test-release" in str(excinfo.value)
    assert "cm.yaml:3" in excinfo.value.diagnostics


@patch("helm_precommit.helm.subprocess.run")
def test_render_custom_timeout(mock_run: MagicMock, tmp_path: Path) -> None:
    mock_run.side_effect = subprocess.TimeoutExpired(["helm"], 60)
    chart_dir = make_chart(tmp_path, "name: foo\n")

    with pytest.raises(RenderError, match="timed out"):
        render_custom(chart_dir)


@patch("helm_precommit.helm.subprocess.run")
@patch("helm_precommit.helm.dependency_count")
def test_render_custom_unreadable_chart_file(
    mock_count: MagicMock, mock_run: MagicMock, tmp_path: Path
) -> None:
    mock_count.side_effect = PermissionError(13, "Permission denied")
    chart_dir = make_chart(tmp_path, "name: foo\n")

    with pytest.raises(RenderError, match="Cannot read dependencies of foo") as excinfo:
        render_custom(chart_dir)

    assert "Permission denied" in excinfo.value.diagnostics
    mock_run.assert_not_called()


# ---------------------------------------------------------------------------
# Upstream charts
# ---------------------------------------------------------------------------


def test_repo_alias_is_stable_and_url_specific() -> None:
    alias = repo_alias("https://charts.jetstack.io", "cert-manager")

    assert alias == repo_alias("https://charts.jetstack.io", "cert-manager")
    assert alias != repo_alias("https://charts.example.com", "cert-manager")
    assert alias.startswith("precommit-cert-manager-")
    assert len(alias.rsplit("-", 1)[1]) == 8


@patch("helm_precommit.helm.hashlib.md5", wraps=hashlib.md5)
def test_repo_alias_hash_is_not_for_security(mock_md5: MagicMock) -> None:
    repo_alias("https://charts.jetstack.io", "cert-manager")

    mock_md5.assert_called_once_with(b"https://charts.jetstack.io", usedforsecurity=False)


@patch("helm_precommit.helm.subprocess.run")
def test_render_upstream_registers_and_releases_repo(mock_run: MagicMock, tmp_path: Path) -> None:
    mock_run.return_value = ok()
    values = tmp_path / "values.yaml"
    alias = repo_alias(CERT_MANAGER.repo_url, CERT_MANAGER.name)

    assert render_upstream(CERT_MANAGER, values) is RenderOutcome.RENDERED

    assert commands(mock_run) == [
        ["helm", "repo", "add", alias, "https://charts.jetstack.io"],
        [
            "helm",
            "template",
            "test-release",
            f"{alias}/cert-manager",
            "--version",
            "1.18.2",
            "-f",
            str(values),
        ],
        ["helm", "repo", "remove", alias],
    ]


@patch("helm_precommit.helm.subprocess.run")
def test_render_upstream_updates_existing_repo(mock_run: MagicMock, tmp_path: Path) -> None:
    """When 'repo add' fails the alias is refreshed with 'repo update'."""

    def run(cmd: list[str], **kwargs: object) -> MagicMock:
        if cmd[:3] == ["helm", "repo", "add"]:
            return MagicMock(returncode=1, stdout="", stderr="already exists")
        return ok()

    mock_run.side_effect = run
    alias = repo_alias(CERT_MANAGER.repo_url, CERT_MANAGER.name)

    render_upstream(CERT_MANAGER, tmp_path / "values.yaml")

    assert ["helm", "repo", "update", alias] in commands(mock_run)


@patch("helm_precommit.helm.subprocess.run")
def test_render_upstream_releases_repo_on_failure(mock_run: MagicMock, tmp_path: Path) -> None:
    def run(cmd: list[str], **kwargs: object) -> MagicMock:
        if cmd[1] == "template":
            raise subprocess.CalledProcessError(1, cmd, output="", stderr="values don't meet the specifications")
        return ok()

    mock_run.side_effect = run
    alias = repo_alias(CERT_MANAGER.repo_url, CERT_MANAGER.name)

    with pytest.raises(RenderError) as excinfo:
        render_upstream(CERT_MANAGER, tmp_path / "values.yaml")

    assert "don't meet the specifications" in excinfo.value.diagnostics
    assert commands(mock_run)[-1] == ["helm", "repo", "remove", alias]


@patch("helm_precommit.helm.subprocess.run")
def test_render_upstream_ignores_remove_failure(mock_run: MagicMock, tmp_path: Path) -> None:
    def run(cmd: list[str], **kwargs: object) -> MagicMock:
        if cmd[:3] == ["helm", "repo", "remove"]:
            raise subprocess.TimeoutExpired(cmd, 120)
        return ok()

    mock_run.side_effect = run

    assert render_upstream(CERT_MANAGER, tmp_path / "values.yaml") is RenderOutcome.RENDERED


@patch("helm_precommit.helm.subprocess.run")
def test_render_upstream_oci_is_not_registered(mock_run: MagicMock, tmp_path: Path) -> None:
    mock_run.return_value = ok()
    coords = RepositoryChart(
        name="gateway-helm",
        repo_url="oci://docker.io/envoyproxy",
        target_revision="1.3.3",
    )

    render_upstream(coords, tmp_path / "values.yaml")

    (cmd,) = commands(mock_run)
    assert cmd[:4] == ["helm", "template", "test-release", "oci://docker.io/envoyproxy/gateway-helm"]
    assert "--repo" not in cmd


@patch("helm_precommit.helm.subprocess.run")
def test_render_upstream_skips_git_chart(mock_run: MagicMock, tmp_path: Path) -> None:
    coords = GitChart(
        path="charts/foo",
        repo_url="https://github.com/example/charts.git",
        target_revision="main",
    )

    assert render_upstream(coords, tmp_path / "values.yaml") is RenderOutcome.SKIPPED
    mock_run.assert_not_called()
