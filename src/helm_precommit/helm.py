# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The helm-precommit contributors
"""Helm command execution for rendering charts."""

import hashlib
import logging
import shutil
import subprocess
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path

from helm_precommit.appset import ChartCoordinates, is_git_chart
from helm_precommit.charts import dependency_count

logger = logging.getLogger(__name__)

RELEASE_NAME = "test-release"
TEMPLATE_TIMEOUT = 60
NETWORK_TIMEOUT = 120
VERSION_TIMEOUT = 5


class RenderError(RuntimeError):
    """helm reported a failure; diagnostics holds its captured output."""

    def __init__(self, message: str, diagnostics: str = "") -> None:
        super().__init__(message)
        self.diagnostics = diagnostics


class RenderOutcome(Enum):
    RENDERED = "rendered"
    SKIPPED = "skipped"


def get_helm_version() -> str:
    """Return the short version string of the helm binary on PATH."""
    return _run(["helm", "version", "--short"], "helm version", VERSION_TIMEOUT).strip()


def require_tools(*names: str) -> None:
    """
    Check that external tools are on PATH.

    When helm is required it must also run, so a broken binary is reported
    before any chart is rendered.

    Raises:
        RuntimeError: Naming every missing tool, or if helm does not run
    """
    missing = [name for name in names if shutil.which(name) is None]
    if missing:
        raise RuntimeError(
            f"Missing required dependencies: {' '.join(missing)}. "
            "Please install the missing dependencies and try again."
        )
    if "helm" in names:
        logger.debug(f"Using helm {get_helm_version()}")


def _combined_output(stdout: str | None, stderr: str | None) -> str:
    return "\n".join(part.strip() for part in (stdout, stderr) if part and part.strip())


def _run(cmd: list[str], what: str, timeout: int) -> str:
    """Run a helm command, raising RenderError with its output on failure."""
    logger.debug(f"Executing: {' '.join(cmd)}")
    cmd_str = " ".join(cmd)
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
        )
        return result.stdout
    except subprocess.CalledProcessError as e:
        raise RenderError(
            f"{what} failed:\n  Command: {cmd_str}",
            _combined_output(e.stdout, e.stderr),
        ) from e
    except subprocess.TimeoutExpired as e:
        raise RenderError(f"{what} timed out:\n  Command: {cmd_str}") from e
    except FileNotFoundError as e:
        raise RenderError(f"{what} failed: helm is not installed") from e


def build_dependencies(chart_dir: Path) -> None:
    """
    Run helm dependency build for a chart.

    Raises:
        RenderError: If the build fails
    """
    logger.info(f"Building dependencies for {chart_dir.name}...")
    _run(
        ["helm", "dependency", "build", str(chart_dir)],
        f"helm dependency build for {chart_dir.name}",
        NETWORK_TIMEOUT,
    )


def render_custom(chart_dir: Path) -> str:
    """
    Render a local chart, building its dependencies first if it declares any.

    Args:
        chart_dir: Directory containing Chart.yaml

    Returns:
        Rendered manifests

    Raises:
        RenderError: If the dependency build or helm template fails
    """
    try:
        dependencies = dependency_count(chart_dir)
    except (OSError, ValueError) as e:
        raise RenderError(f"Cannot read dependencies of {chart_dir.name}", str(e)) from e

    if dependencies:
        build_dependencies(chart_dir)

    return _run(
        ["helm", "template", RELEASE_NAME, str(chart_dir)],
        f"helm template for {chart_dir.name}",
        TEMPLATE_TIMEOUT,
    )


def repo_alias(repo_url: str, chart_name: str) -> str:
    """Derive a stable local repository alias from the repository URL."""
    digest = hashlib.md5(repo_url.encode(), usedforsecurity=False).hexdigest()[:8]
    return f"precommit-{chart_name}-{digest}"


def _best_effort(cmd: list[str]) -> bool:
    logger.debug(f"Executing: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=NETWORK_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"Ignoring failure of {' '.join(cmd)}: {e}")
        return False
    return result.returncode == 0


@contextmanager
def helm_repository(alias: str, repo_url: str) -> Iterator[str]:
    """
    Register a helm repository for the duration of the block.

    If 'helm repo add' fails, the alias most likely exists already and is
    refreshed with 'helm repo update' instead. The alias is removed on exit
    whatever happened inside the block. Failures of update and remove are
    ignored.

    OCI registries are addressed directly and are not registered.

    Yields:
        The chart reference prefix to use with helm template
    """
    if repo_url.startswith("oci://"):
        yield repo_url.rstrip("/")
        return

    if not _best_effort(["helm", "repo", "add", alias, repo_url]):
        _best_effort(["helm", "repo", "update", alias])
    try:
        yield alias
    finally:
        _best_effort(["helm", "repo", "remove", alias])


def render_upstream(coords: ChartCoordinates, values_file: Path) -> RenderOutcome:
    """
    Render an upstream chart with a local values overlay.

    Git-backed charts are skipped without calling helm.

    Args:
        coords: Chart coordinates resolved from the ApplicationSet
        values_file: Values overlay to apply

    Returns:
        RENDERED on success, SKIPPED for git-backed charts

    Raises:
        RenderError: If helm template fails
    """
    if is_git_chart(coords):
        return RenderOutcome.SKIPPED

    alias = repo_alias(coords.repo_url, coords.name)
    with helm_repository(alias, coords.repo_url) as prefix:
        _run(
            [
                "helm",
                "template",
                RELEASE_NAME,
                f"{prefix}/{coords.name}",
                "--version",
                coords.target_revision,
                "-f",
                str(values_file),
            ],
            f"helm template for {coords.name}",
            TEMPLATE_TIMEOUT,
        )
    return RenderOutcome.RENDERED
