# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The helm-precommit contributors
"""Chart directory discovery and classification."""

from enum import Enum
from pathlib import Path

import yaml

CHART_FILE = "Chart.yaml"
VALUES_FILE = "values.yaml"


class ChartKind(Enum):
    """What a chart directory contains."""

    CUSTOM = "custom"
    VALUES_ONLY = "values-only"
    UNRECOGNIZED = "unrecognized"


def classify(directory: Path) -> ChartKind:
    """
    Classify a chart directory by the marker files it contains.

    A directory with its own Chart.yaml is a custom chart. A directory with
    only a values.yaml overlays an upstream chart referenced from an
    ApplicationSet. Anything else is unrecognized.

    Args:
        directory: Directory to inspect

    Returns:
        The chart kind
    """
    if (directory / CHART_FILE).is_file():
        return ChartKind.CUSTOM
    if (directory / VALUES_FILE).is_file():
        return ChartKind.VALUES_ONLY
    return ChartKind.UNRECOGNIZED


def list_chart_directories(root: Path) -> list[Path]:
    """
    List the direct child directories of a chart root.

    Args:
        root: Chart root directory

    Returns:
        Child directories sorted by name

    Raises:
        FileNotFoundError: If root is not a directory
    """
    if not root.is_dir():
        raise FileNotFoundError(f"Chart directory not found: {root}")
    return sorted(p for p in root.iterdir() if p.is_dir())


def find_chart_directories(root: Path, max_depth: int = 2) -> list[Path]:
    """
    Find directories holding a Chart.yaml or values.yaml below a chart root.

    Marker files are searched at most max_depth levels deep, counting files
    directly inside root as depth 1. With the default this finds root itself
    and its direct children.

    Args:
        root: Chart root directory
        max_depth: Deepest level at which marker files are considered

    Returns:
        Matching directories, de-duplicated and sorted

    Raises:
        FileNotFoundError: If root is not a directory
    """
    if not root.is_dir():
        raise FileNotFoundError(f"Chart directory not found: {root}")

    found: set[Path] = set()
    level = [root]
    for _ in range(max_depth):
        next_level: list[Path] = []
        for directory in level:
            if (directory / CHART_FILE).is_file() or (directory / VALUES_FILE).is_file():
                found.add(directory)
            next_level.extend(p for p in directory.iterdir() if p.is_dir())
        level = next_level
    return sorted(found)


def dependency_count(chart_dir: Path) -> int:
    """
    Count the dependencies declared in a chart's Chart.yaml.

    Args:
        chart_dir: Custom chart directory

    Returns:
        Number of entries under 'dependencies'; 0 when absent or null

    Raises:
        FileNotFoundError: If the chart has no Chart.yaml
        ValueError: If Chart.yaml is not valid YAML
    """
    chart_file = chart_dir / CHART_FILE
    if not chart_file.is_file():
        raise FileNotFoundError(f"{CHART_FILE} not found in {chart_dir}")

    try:
        with open(chart_file) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {chart_file}: {e}") from e

    if not isinstance(data, dict):
        return 0
    dependencies = data.get("dependencies")
    if not isinstance(dependencies, list):
        return 0
    return len(dependencies)
