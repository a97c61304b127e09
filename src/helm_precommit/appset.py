# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The helm-precommit contributors
"""ApplicationSet lookup, chart coordinate extraction and syntax checks."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from helm_precommit.query import first_with, lookup, scalar

logger = logging.getLogger(__name__)

APPSET_KIND = "ApplicationSet"
APPSET_MARKER = "kind: ApplicationSet"
YAML_SUFFIXES = (".yaml", ".yml")

# {{.values.targetRevision}} for cluster generators, {{.targetRevision}} for lists
PLACEHOLDER = re.compile(r"\{\{\s*\.?(?:values\.)?([A-Za-z_][\w-]*)\s*\}\}")


@dataclass(frozen=True)
class RepositoryChart:
    """A chart published in a Helm repository."""

    name: str
    repo_url: str
    target_revision: str


@dataclass(frozen=True)
class GitChart:
    """A chart referenced by its path inside a git repository."""

    path: str
    repo_url: str
    target_revision: str

    @property
    def name(self) -> str:
        return PurePosixPath(self.path.rstrip("/")).name


ChartCoordinates = RepositoryChart | GitChart


def is_git_chart(coords: ChartCoordinates) -> bool:
    """Git-backed charts cannot be rendered without cloning the repository."""
    return isinstance(coords, GitChart)


class ExtractionError(ValueError):
    """Chart coordinates could not be determined from an ApplicationSet."""

    reason = "unresolvable coordinates"


class UnresolvedTemplateError(ExtractionError):
    """A templated target revision has no generator value to fill it."""

    reason = "no generator value to resolve template"


class AppSetSyntaxError(ValueError):
    """The file is not well-formed YAML."""


class AppSetSchemaError(ValueError):
    """The document is not an ApplicationSet."""


def find_appset_file(chart_name: str, appset_dir: Path) -> Path | None:
    """
    Locate the ApplicationSet for a values-only chart.

    Looks for {appset_dir}/{name}/{name}.yaml first and falls back to
    {appset_dir}/{name}.yaml. Both .yaml and .yml are accepted.

    Args:
        chart_name: Name of the chart directory
        appset_dir: ApplicationSet root directory

    Returns:
        Path to the ApplicationSet file, or None if there is none
    """
    candidates = [appset_dir / chart_name / f"{chart_name}{s}" for s in YAML_SUFFIXES]
    candidates += [appset_dir / f"{chart_name}{s}" for s in YAML_SUFFIXES]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def _load(path: Path) -> Any:
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except OSError as e:
        raise ExtractionError(f"Cannot read ApplicationSet {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ExtractionError(f"ApplicationSet {path} is not valid UTF-8: {e}") from e
    except yaml.YAMLError as e:
        raise ExtractionError(f"Invalid YAML in ApplicationSet {path}: {e}") from e


def _generator_value(doc: Any, field: str) -> str:
    """Look up a templated field in the first generator, clusters before list."""
    value = scalar(lookup(doc, "spec", "generators", 0, "clusters", "values", field))
    if not value:
        value = scalar(lookup(doc, "spec", "generators", 0, "list", "elements", 0, field))
    return value


def resolve_revision(target_revision: str, doc: Any) -> str:
    """
    Fill generator placeholders in a target revision and drop a leading 'v'.

    Literal text around a placeholder is kept, so 'v{{.values.targetRevision}}'
    with a generator value of '2.0.0' becomes 'v2.0.0' before the prefix is
    stripped. The prefix is stripped from literal revisions too.

    Args:
        target_revision: Revision as written in the ApplicationSet source
        doc: Parsed ApplicationSet document

    Returns:
        The resolved revision

    Raises:
        UnresolvedTemplateError: If a placeholder has no generator value or
            template syntax is left after substitution
    """

    def substitute(match: re.Match) -> str:
        field = match.group(1)
        value = _generator_value(doc, field)
        if not value:
            raise UnresolvedTemplateError(
                f"No generator value for '{field}' in target revision '{target_revision}'"
            )
        return value

    revision = PLACEHOLDER.sub(substitute, target_revision)
    if "{{" in revision or "}}" in revision:
        raise UnresolvedTemplateError(
            f"Unsupported template in target revision '{target_revision}'"
        )
    if revision.startswith("v"):
        revision = revision[1:]
    return revision


def extract_coordinates(appset_file: Path) -> ChartCoordinates:
    """
    Extract the chart coordinates an ApplicationSet deploys.

    The first source with a 'chart' field wins. Without one, the first source
    with a 'path' field yields a git-backed chart. Templated target revisions
    are resolved from the first generator.

    Args:
        appset_file: Path to the ApplicationSet manifest

    Returns:
        RepositoryChart or GitChart

    Raises:
        ExtractionError: If no usable source exists or a field is empty
        UnresolvedTemplateError: If the target revision cannot be resolved
    """
    doc = _load(appset_file)
    sources = lookup(doc, "spec", "template", "spec", "sources")
    chart_source = first_with(sources, "chart")
    path_source = first_with(sources, "path")

    if chart_source is not None:
        if path_source is not None and path_source.get("repoURL") != chart_source.get("repoURL"):
            logger.warning(
                f"{appset_file.name}: chart and path sources use different repositories, "
                f"using chart source {chart_source.get('repoURL')}"
            )
        source = chart_source
    elif path_source is not None:
        source = path_source
    else:
        raise ExtractionError(f"No chart or path source found in {appset_file}")

    repo_url = scalar(source.get("repoURL"))
    revision = resolve_revision(scalar(source.get("targetRevision")), doc)

    coords: ChartCoordinates
    if source is chart_source:
        coords = RepositoryChart(scalar(source.get("chart")), repo_url, revision)
    else:
        coords = GitChart(scalar(source.get("path")), repo_url, revision)

    for field, value in (
        ("path" if is_git_chart(coords) else "chart", coords.name),
        ("repoURL", coords.repo_url),
        ("targetRevision", coords.target_revision),
    ):
        if not value:
            raise ExtractionError(f"Empty '{field}' in {appset_file}")

    return coords


def find_appset_files(appset_dir: Path) -> list[Path]:
    """
    Find ApplicationSet manifests anywhere below a directory.

    Only YAML files whose text contains 'kind: ApplicationSet' are returned;
    the text match is a pre-filter, not a parse.

    Args:
        appset_dir: ApplicationSet root directory

    Returns:
        Matching files sorted by path

    Raises:
        FileNotFoundError: If appset_dir is not a directory
    """
    if not appset_dir.is_dir():
        raise FileNotFoundError(f"ApplicationSets directory not found: {appset_dir}")

    files = []
    for path in sorted(appset_dir.rglob("*")):
        if path.suffix not in YAML_SUFFIXES or not path.is_file():
            continue
        if APPSET_MARKER in path.read_text(errors="replace"):
            files.append(path)
    return files


def validate_appset_syntax(appset_file: Path) -> None:
    """
    Check that a file is well-formed YAML describing an ApplicationSet.

    Args:
        appset_file: Path to the manifest

    Raises:
        AppSetSyntaxError: If the file does not decode or the YAML does not parse
        AppSetSchemaError: If 'kind' is not exactly 'ApplicationSet'
    """
    try:
        with open(appset_file) as f:
            documents = [d for d in yaml.safe_load_all(f) if d is not None]
    except yaml.YAMLError as e:
        raise AppSetSyntaxError(f"Invalid YAML syntax: {e}") from e
    except UnicodeDecodeError as e:
        raise AppSetSyntaxError(f"Invalid encoding: {e}") from e

    kinds = [scalar(lookup(d, "kind")) or "null" for d in documents]
    if kinds != [APPSET_KIND]:
        kind = ", ".join(kinds) or "null"
        raise AppSetSchemaError(f"Not an ApplicationSet (kind: {kind})")
