"""Model extractor: turn an evaluated project into repositories + coordinates."""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from gradle_runtime.engine.base import MAVEN, ProjectModel
from gradle_runtime.exceptions import EvaluationError
from gradle_runtime.models import (
    DependencyCoordinate,
    DependencyScope,
    ProjectDeclarations,
    RepositoryEndpoint,
)

log = structlog.get_logger("gradle_runtime.extractor")

# The configuration read for dependencies. Everything pulled from it is
# tagged RUNTIME; scope filtering happens later.
RUNTIME_CONFIGURATION = "runtime"

# Schemes are at least two characters so "C:/repo" stays a path.
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]+:/")


def absolute_url(url: str, project_dir: Path) -> str:
    """Return *url* in absolute form.

    URLs with a scheme are returned unchanged. Anything else is a file path,
    resolved against *project_dir* and returned as a ``file:`` URI.
    """
    url = url.strip()
    if _SCHEME_RE.match(url):
        return url
    path = Path(url).expanduser()
    if not path.is_absolute():
        path = project_dir / path
    return path.resolve().as_uri()


def extract_repositories(model: ProjectModel) -> list[RepositoryEndpoint]:
    endpoints: list[RepositoryEndpoint] = []
    for repo in model.repositories:
        if repo.kind != MAVEN:
            log.debug("extractor.repository_skipped", name=repo.name, kind=repo.kind)
            continue
        if not repo.url:
            raise EvaluationError(f"Maven repository '{repo.name}' declares no URL")
        endpoints.append(RepositoryEndpoint(url=absolute_url(repo.url, model.project_dir)))
    return endpoints


def extract_dependencies(model: ProjectModel) -> list[DependencyCoordinate]:
    try:
        declared = model.all_dependencies(RUNTIME_CONFIGURATION)
    except KeyError as exc:
        raise EvaluationError(
            f"Configuration with name '{exc.args[0]}' not found "
            f"(is the java plugin applied?)"
        ) from exc

    coordinates: list[DependencyCoordinate] = []
    for dep in declared:
        if not dep.group or not dep.version:
            log.warning(
                "extractor.dependency_skipped",
                name=dep.name,
                group=dep.group,
                version=dep.version,
                reason="not a Maven coordinate",
            )
            continue
        coordinates.append(
            DependencyCoordinate(
                group=dep.group,
                artifact=dep.name,
                version=dep.version,
                scope=DependencyScope.RUNTIME,
            )
        )
    return coordinates


def extract(model: ProjectModel) -> ProjectDeclarations:
    """Pull declared Maven repositories and runtime dependencies out of *model*."""
    declarations = ProjectDeclarations(
        repositories=extract_repositories(model),
        dependencies=extract_dependencies(model),
    )
    log.debug(
        "extractor.extracted",
        repositories=[r.url for r in declarations.repositories],
        dependencies=[str(d) for d in declarations.dependencies],
    )
    return declarations
