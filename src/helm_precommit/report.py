# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The helm-precommit contributors
"""Console logging and run summaries."""

import logging
import sys

import click

from helm_precommit.validator import Category, RunSummary

LEVEL_STYLES = {
    logging.DEBUG: ("DEBUG", "blue"),
    logging.INFO: ("INFO", "green"),
    logging.WARNING: ("WARN", "yellow"),
    logging.ERROR: ("ERROR", "red"),
    logging.CRITICAL: ("ERROR", "red"),
}


class LevelFormatter(logging.Formatter):
    """Prefix messages with a level tag, colored when color is enabled."""

    def __init__(self, color: bool) -> None:
        super().__init__("%(message)s")
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        label, fg = LEVEL_STYLES.get(record.levelno, (record.levelname, None))
        tag = f"[{label}]"
        if self.color and fg:
            tag = click.style(tag, fg=fg, bold=record.levelno >= logging.WARNING)
        return f"{tag} {super().format(record)}"


def setup_logging(verbose: bool = False, color: bool = True) -> None:
    """Configure logging with a level-tag formatter for console output.

    Args:
        verbose: If True, set log level to DEBUG; otherwise INFO
        color: If True, color the level tags
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(LevelFormatter(color))

    root_logger = logging.getLogger()
    # Replace a handler left by an earlier call in the same process
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, LevelFormatter):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def format_counts(category: Category, summary: RunSummary) -> str:
    counts = summary.category(category)
    line = (
        f"{category.value}: {counts.total} total, {counts.passed} passed, "
        f"{counts.failed} failed"
    )
    if category is not Category.APPSETS:
        line += f", {counts.skipped} skipped"
    return line


def print_summary(summary: RunSummary, title: str, color: bool = True) -> None:
    """
    Write the per-category counts and the overall verdict.

    Args:
        summary: Run summary to report
        title: Heading for the summary block
        color: If True, color the verdict line
    """
    click.echo()
    click.echo(f"=== {title} ===")
    for category in summary.categories:
        click.echo(format_counts(category, summary))

    if summary.success:
        verdict = click.style("✓", fg="green") if color else "✓"
        click.echo(f"{verdict} All validations passed!")
    else:
        verdict = click.style("✗", fg="red") if color else "✗"
        click.echo(f"{verdict} Validation failed!")
