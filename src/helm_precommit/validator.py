# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The helm-precommit contributors
"""Validation orchestration across charts and ApplicationSets."""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from helm_precommit.appset import (
    AppSetSchemaError,
    AppSetSyntaxError,
    ExtractionError,
    extract_coordinates,
    find_appset_file,
    find_appset_files,
    is_git_chart,
    validate_appset_syntax,
)
from helm_precommit.charts import (
    VALUES_FILE,
    ChartKind,
    classify,
    find_chart_directories,
    list_chart_directories,
)
from helm_precommit.config import ValidationConfig
from helm_precommit.helm import RenderError, RenderOutcome, render_custom, render_upstream

logger = logging.getLogger(__name__)

SKIP_NO_APPSET = "no ApplicationSet found"
SKIP_GIT_CHART = "git-based chart"
SKIP_UNKNOWN = "unknown chart type"


class Outcome(Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ValidationResult:
    """Outcome of validating one chart directory or ApplicationSet."""

    name: str
    outcome: Outcome
    reason: str = ""
    diagnostics: str = ""


class Category(Enum):
    CHARTS = "Charts"
    CUSTOM_CHARTS = "Custom charts"
    VALUES_ONLY_CHARTS = "Values-only charts"
    APPSETS = "ApplicationSets"


@dataclass
class CategorySummary:
    passed: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.passed + self.failed + self.skipped

    def record(self, result: ValidationResult) -> None:
        if result.outcome is Outcome.PASSED:
            self.passed += 1
        elif result.outcome is Outcome.FAILED:
            self.failed += 1
        else:
            self.skipped += 1


@dataclass
class RunSummary:
    """Counts per category for one run; results are recorded in order."""

    categories: dict[Category, CategorySummary] = field(default_factory=dict)
    results: list[ValidationResult] = field(default_factory=list)

    def category(self, category: Category) -> CategorySummary:
        return self.categories.setdefault(category, CategorySummary())

    def record(self, category: Category, result: ValidationResult) -> None:
        self.category(category).record(result)
        self.results.append(result)

    @property
    def failed(self) -> int:
        return sum(c.failed for c in self.categories.values())

    @property
    def success(self) -> bool:
        return self.failed == 0


def _log_diagnostics(diagnostics: str) -> None:
    for line in diagnostics.splitlines():
        logger.error(f"  {line}")


def _failed(name: str, error: RenderError, label: str) -> ValidationResult:
    logger.error(f"✗ {name}: {label} validation failed")
    logger.debug(str(error))
    _log_diagnostics(error.diagnostics)
    return ValidationResult(name, Outcome.FAILED, str(error), error.diagnostics)


def _skipped(name: str, reason: str) -> ValidationResult:
    logger.warning(f"{name}: Skipping validation ({reason})")
    return ValidationResult(name, Outcome.SKIPPED, reason)


def validate_custom_chart(chart_dir: Path) -> ValidationResult:
    """
    Validate a chart that ships its own Chart.yaml by rendering it.

    Args:
        chart_dir: Custom chart directory

    Returns:
        PASSED if helm template succeeds, FAILED otherwise
    """
    name = chart_dir.name
    logger.info(f"Validating custom chart: {name}")
    try:
        render_custom(chart_dir)
    except RenderError as e:
        return _failed(name, e, "Custom chart")

    logger.info(f"✓ {name}: Custom chart validation passed")
    return ValidationResult(name, Outcome.PASSED)


def validate_values_only_chart(chart_dir: Path, appset_dir: Path) -> ValidationResult:
    """
    Validate a values overlay against the upstream chart its ApplicationSet names.

    Missing ApplicationSets, unresolvable coordinates and git-backed charts
    are skipped rather than failed: they say nothing about the values file.

    Args:
        chart_dir: Values-only chart directory
        appset_dir: ApplicationSet root directory

    Returns:
        The validation result
    """
    name = chart_dir.name
    appset_file = find_appset_file(name, appset_dir)
    if appset_file is None:
        return _skipped(name, SKIP_NO_APPSET)

    try:
        coords = extract_coordinates(appset_file)
    except ExtractionError as e:
        logger.debug(str(e))
        return _skipped(name, e.reason)

    if is_git_chart(coords):
        return _skipped(name, SKIP_GIT_CHART)

    logger.info(f"Validating values-only chart: {name}")
    logger.debug(f"Chart: {coords.name}")
    logger.debug(f"Repo: {coords.repo_url}")
    logger.debug(f"Version: {coords.target_revision}")

    try:
        outcome = render_upstream(coords, chart_dir / VALUES_FILE)
    except RenderError as e:
        return _failed(name, e, "Values-only chart")

    if outcome is RenderOutcome.SKIPPED:
        return _skipped(name, SKIP_GIT_CHART)

    logger.info(f"✓ {name}: Values-only chart validation passed")
    return ValidationResult(name, Outcome.PASSED)


def validate_chart_directory(chart_dir: Path, appset_dir: Path) -> ValidationResult:
    """Validate a chart directory according to its kind."""
    kind = classify(chart_dir)
    if kind is ChartKind.CUSTOM:
        return validate_custom_chart(chart_dir)
    if kind is ChartKind.VALUES_ONLY:
        return validate_values_only_chart(chart_dir, appset_dir)
    return _skipped(chart_dir.name, SKIP_UNKNOWN)


def validate_appset(appset_file: Path) -> ValidationResult:
    """
    Check an ApplicationSet manifest's YAML syntax and kind.

    Args:
        appset_file: Path to the manifest

    Returns:
        PASSED or FAILED with the reason
    """
    name = appset_file.stem
    logger.info(f"Validating ApplicationSet: {name}")
    try:
        validate_appset_syntax(appset_file)
    except (AppSetSyntaxError, AppSetSchemaError, OSError) as e:
        logger.error(f"✗ {name}: {e}")
        return ValidationResult(name, Outcome.FAILED, str(e))

    logger.info(f"✓ {name}: ApplicationSet validation passed")
    return ValidationResult(name, Outcome.PASSED)


def _discover(
    roots: list[Path], finder: Callable[[Path], list[Path]]
) -> Iterator[Path]:
    """Yield chart directories from every root, warning about missing roots."""
    for root in roots:
        try:
            directories = finder(root)
        except FileNotFoundError as e:
            logger.warning(str(e))
            continue
        yield from directories


def _validate_appsets(config: ValidationConfig, summary: RunSummary) -> None:
    summary.category(Category.APPSETS)
    logger.info(f"Scanning for ApplicationSets in {config.appset_dir}...")
    try:
        appset_files = find_appset_files(config.appset_dir)
    except FileNotFoundError as e:
        logger.warning(str(e))
        return

    for appset_file in appset_files:
        summary.record(Category.APPSETS, validate_appset(appset_file))


def run_all(config: ValidationConfig) -> RunSummary:
    """
    Validate every chart directory and every ApplicationSet.

    Each direct child of a chart root is validated according to its kind;
    unrecognized directories are counted as skipped.

    Args:
        config: Discovery roots

    Returns:
        Summary with the CHARTS and APPSETS categories
    """
    summary = RunSummary()
    summary.category(Category.CHARTS)
    for chart_dir in _discover(config.chart_dirs, list_chart_directories):
        summary.record(Category.CHARTS, validate_chart_directory(chart_dir, config.appset_dir))

    _validate_appsets(config, summary)
    return summary


def run_template_validate(config: ValidationConfig) -> RunSummary:
    """
    Validate every directory holding a Chart.yaml or values.yaml near a chart root.

    Marker files are searched two levels deep, so a chart root may itself be
    a chart.

    Args:
        config: Discovery roots

    Returns:
        Summary with the CHARTS category
    """
    summary = RunSummary()
    summary.category(Category.CHARTS)
    for chart_dir in _discover(config.chart_dirs, find_chart_directories):
        summary.record(Category.CHARTS, validate_chart_directory(chart_dir, config.appset_dir))
    return summary


def _run_kind(
    config: ValidationConfig,
    kind: ChartKind,
    category: Category,
    validate: Callable[[Path], ValidationResult],
) -> RunSummary:
    summary = RunSummary()
    summary.category(category)
    for chart_dir in _discover(config.chart_dirs, list_chart_directories):
        if classify(chart_dir) is kind:
            summary.record(category, validate(chart_dir))
    return summary


def run_custom_charts(config: ValidationConfig) -> RunSummary:
    """Validate only the custom charts directly under the chart roots."""
    return _run_kind(config, ChartKind.CUSTOM, Category.CUSTOM_CHARTS, validate_custom_chart)


def run_values_only_charts(config: ValidationConfig) -> RunSummary:
    """Validate only the values-only charts directly under the chart roots."""
    return _run_kind(
        config,
        ChartKind.VALUES_ONLY,
        Category.VALUES_ONLY_CHARTS,
        lambda chart_dir: validate_values_only_chart(chart_dir, config.appset_dir),
    )


def run_appsets(config: ValidationConfig) -> RunSummary:
    """Validate the syntax and kind of every ApplicationSet."""
    summary = RunSummary()
    _validate_appsets(config, summary)
    return summary
