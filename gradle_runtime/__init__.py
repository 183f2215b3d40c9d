"""gradle-dependency-runtime: resolve dependencies declared in Gradle build descriptors."""

from gradle_runtime.aggregator import aggregate, filter_scopes
from gradle_runtime.api import (
    GradleDependencies,
    download,
    download_all,
    download_artifact,
    download_descriptor,
    download_resource,
    download_stream,
    download_url,
)
from gradle_runtime.config import Settings
from gradle_runtime.exceptions import (
    DescriptorError,
    DescriptorNotFoundError,
    EvaluationError,
    GradleRuntimeError,
    ResolutionError,
    WorkspaceError,
)
from gradle_runtime.models import (
    DEFAULT_SCOPES,
    DependencyCoordinate,
    DependencyScope,
    RepositoryEndpoint,
    ResolvedDependency,
)
from gradle_runtime.resolver import MavenResolver, ResolutionDelegate

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_SCOPES",
    "DependencyCoordinate",
    "DependencyScope",
    "DescriptorError",
    "DescriptorNotFoundError",
    "EvaluationError",
    "GradleDependencies",
    "GradleRuntimeError",
    "MavenResolver",
    "RepositoryEndpoint",
    "ResolutionDelegate",
    "ResolutionError",
    "ResolvedDependency",
    "Settings",
    "WorkspaceError",
    "aggregate",
    "download",
    "download_all",
    "download_artifact",
    "download_descriptor",
    "download_resource",
    "download_stream",
    "download_url",
    "filter_scopes",
]
