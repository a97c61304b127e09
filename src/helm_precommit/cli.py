# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The helm-precommit contributors
"""Command-line interface for the helm-precommit hooks."""

import logging
import sys
from collections.abc import Callable
from pathlib import Path

import click

from helm_precommit._version import __version__
from helm_precommit.config import (
    DEFAULT_APPSET_DIR,
    DEFAULT_CHART_DIRS,
    ValidationConfig,
    find_repo_root,
    make_config,
)
from helm_precommit.helm import require_tools
from helm_precommit.report import print_summary, setup_logging
from helm_precommit.validator import (
    Category,
    RunSummary,
    run_all,
    run_appsets,
    run_custom_charts,
    run_template_validate,
    run_values_only_charts,
)

logger = logging.getLogger(__name__)


def hook_options(f: Callable) -> Callable:
    """Options and arguments shared by every hook command."""
    options = [
        click.version_option(version=__version__, prog_name="helm-precommit"),
        click.option(
            "--chart-dirs",
            envvar="CHART_DIRS",
            default=DEFAULT_CHART_DIRS,
            help="Comma-separated chart root directories",
            show_default=True,
        ),
        click.option(
            "--appset-dir",
            envvar=["APPSET_DIR", "APPSETS_DIR_PATTERN"],
            default=DEFAULT_APPSET_DIR,
            help="ApplicationSet root directory",
            show_default=True,
        ),
        click.option("--verbose", "-v", is_flag=True, help="Show detailed output"),
        click.option("--no-color", is_flag=True, help="Disable colored output"),
        # pre-commit passes the changed files; validation always covers the repo
        click.argument("filenames", nargs=-1, type=click.Path(path_type=Path)),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _run_hook(
    description: str,
    title: str,
    run: Callable[[ValidationConfig], RunSummary],
    tools: tuple[str, ...],
    chart_dirs: str,
    appset_dir: str,
    verbose: bool,
    no_color: bool,
    empty: tuple[Category, str] | None = None,
) -> None:
    """Resolve configuration, run one hook and exit with its verdict."""
    color = not no_color and sys.stdout.isatty()
    setup_logging(verbose=verbose, color=color)

    try:
        require_tools(*tools)

        repo_root = find_repo_root(Path.cwd())
        config = make_config(repo_root, chart_dirs, appset_dir)

        logger.info(f"Starting {description} validation")
        logger.info(f"Repository root: {repo_root}")
        logger.debug(f"Chart directories: {', '.join(str(d) for d in config.chart_dirs)}")
        logger.debug(f"ApplicationSet directory: {config.appset_dir}")

        summary = run(config)
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    except RuntimeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    if empty is not None:
        category, message = empty
        if summary.category(category).total == 0:
            logger.warning(message)

    print_summary(summary, title, color=color)

    if not summary.success:
        sys.exit(1)


@click.command("all")
@hook_options
def template_all(
    chart_dirs: str, appset_dir: str, verbose: bool, no_color: bool, filenames: tuple[Path, ...]
) -> None:
    """Validate all charts and ApplicationSets."""
    _run_hook(
        "comprehensive Helm",
        "Validation Summary",
        run_all,
        ("helm",),
        chart_dirs,
        appset_dir,
        verbose,
        no_color,
    )


@click.command("custom-charts")
@hook_options
def validate_custom_charts(
    chart_dirs: str, appset_dir: str, verbose: bool, no_color: bool, filenames: tuple[Path, ...]
) -> None:
    """Validate charts that have their own Chart.yaml."""
    _run_hook(
        "custom Helm chart",
        "Custom Chart Validation Summary",
        run_custom_charts,
        ("helm",),
        chart_dirs,
        appset_dir,
        verbose,
        no_color,
        empty=(Category.CUSTOM_CHARTS, "No custom charts found to validate"),
    )


@click.command("values-only")
@hook_options
def validate_values_only(
    chart_dirs: str, appset_dir: str, verbose: bool, no_color: bool, filenames: tuple[Path, ...]
) -> None:
    """Validate values.yaml overlays against their upstream charts."""
    _run_hook(
        "values-only chart",
        "Values-Only Chart Validation Summary",
        run_values_only_charts,
        ("helm",),
        chart_dirs,
        appset_dir,
        verbose,
        no_color,
        empty=(Category.VALUES_ONLY_CHARTS, "No values-only charts found to validate"),
    )


@click.command("appsets")
@hook_options
def validate_appsets(
    chart_dirs: str, appset_dir: str, verbose: bool, no_color: bool, filenames: tuple[Path, ...]
) -> None:
    """Validate ApplicationSet YAML syntax and kind."""
    _run_hook(
        "ApplicationSet",
        "ApplicationSet Validation Summary",
        run_appsets,
        (),
        chart_dirs,
        appset_dir,
        verbose,
        no_color,
        empty=(Category.APPSETS, "No ApplicationSets found to validate"),
    )


@click.command("template")
@hook_options
def template_validate(
    chart_dirs: str, appset_dir: str, verbose: bool, no_color: bool, filenames: tuple[Path, ...]
) -> None:
    """Render every chart found up to two levels below the chart roots."""
    _run_hook(
        "Helm template",
        "Helm Template Validation Summary",
        run_template_validate,
        ("helm",),
        chart_dirs,
        appset_dir,
        verbose,
        no_color,
    )


@click.group()
@click.version_option(version=__version__, prog_name="helm-precommit")
def main() -> None:
    """Pre-commit validation for Helm charts and ArgoCD ApplicationSets."""


for command in (
    template_all,
    validate_custom_charts,
    validate_values_only,
    validate_appsets,
    template_validate,
):
    main.add_command(command)


if __name__ == "__main__":
    main()
