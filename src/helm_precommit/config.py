# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The helm-precommit contributors
"""Discovery root configuration for the validation hooks."""

from dataclasses import dataclass
from pathlib import Path

DEFAULT_CHART_DIRS = "argocd"
DEFAULT_APPSET_DIR = "argo-cd/appsets"


@dataclass
class ValidationConfig:
    """Where to look for charts and ApplicationSets."""

    repo_root: Path
    chart_dirs: list[Path]
    appset_dir: Path


def find_repo_root(start: Path) -> Path:
    """
    Find the repository root by walking up to the first directory with .git.

    Args:
        start: Directory to start searching from

    Returns:
        The repository root

    Raises:
        FileNotFoundError: If no enclosing directory contains .git
    """
    current = start.resolve()
    for directory in (current, *current.parents):
        if (directory / ".git").exists():
            return directory
    raise FileNotFoundError(
        f"Could not find repository root (no .git directory found above {start})"
    )


def parse_chart_dirs(value: str) -> list[str]:
    """Split a comma-separated list of chart roots, dropping blanks."""
    return [part.strip() for part in value.split(",") if part.strip()]


def make_config(
    repo_root: Path,
    chart_dirs: str = DEFAULT_CHART_DIRS,
    appset_dir: str = DEFAULT_APPSET_DIR,
) -> ValidationConfig:
    """
    Build a configuration with roots resolved against the repository root.

    Absolute paths are kept as given.

    Raises:
        ValueError: If no chart directory is configured
    """
    roots = parse_chart_dirs(chart_dirs)
    if not roots:
        raise ValueError("No chart directories configured")

    return ValidationConfig(
        repo_root=repo_root,
        chart_dirs=[repo_root / root for root in roots],
        appset_dir=repo_root / appset_dir,
    )
