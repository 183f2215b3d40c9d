"""Public entry points: descriptor in, resolved dependency set out.

Every ``download_*`` call runs the same pipeline per descriptor::

    driver.evaluate(descriptor, extract)  -> repositories + runtime coordinates
    filter_scopes(coordinates, scopes)    -> requested subset
    resolver.download(repositories, subset)

and unions the batches. Any failure aborts the whole call.
"""

from __future__ import annotations

import atexit
import functools
from collections.abc import Iterable
from typing import BinaryIO

import structlog

from gradle_runtime.aggregator import aggregate, filter_scopes
from gradle_runtime.config import Settings
from gradle_runtime.driver import EvaluationDriver
from gradle_runtime.engine.registry import create_engine_factory
from gradle_runtime.exceptions import GradleRuntimeError
from gradle_runtime.extractor import extract
from gradle_runtime.manifest import ManifestDiscovery
from gradle_runtime.models import DependencyScope, ResolvedDependency, normalize_scopes
from gradle_runtime.resolver.base import ResolutionDelegate
from gradle_runtime.resolver.maven import MavenResolver
from gradle_runtime.sources import read_stream, read_url
from gradle_runtime.workspace import WorkspaceManager

log = structlog.get_logger("gradle_runtime.api")

Scopes = Iterable[DependencyScope | str] | DependencyScope | str | None


class GradleDependencies:
    """
    Resolve the runtime dependencies declared by Gradle build descriptors.

    Usage::

        with GradleDependencies.from_settings() as deps:
            jars = deps.download()                       # every packaged descriptor
            jars = deps.download_artifact("com.acme", "widget", ["runtime"])
            jars = deps.download_url("https://example.com/build.gradle")

    ``scopes`` defaults to (COMPILE, RUNTIME) everywhere.
    """

    def __init__(
        self,
        resolver: ResolutionDelegate | None = None,
        *,
        driver: EvaluationDriver | None = None,
        discovery: ManifestDiscovery | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._owns_resolver = resolver is None
        self._resolver = resolver or MavenResolver(
            self._settings.local_repository, timeout=self._settings.http_timeout
        )
        self._driver = driver or EvaluationDriver(
            create_engine_factory(self._settings.engine, self._settings),
            WorkspaceManager(self._settings.workspace_dir),
            callback_timeout=self._settings.evaluation_timeout,
        )
        self._discovery = discovery or ManifestDiscovery(self._settings.resource_path)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs) -> GradleDependencies:
        """Build an instance from ``settings`` (default: the environment)."""
        return cls(settings=settings or Settings.from_env(), **kwargs)

    @property
    def resolver(self) -> ResolutionDelegate:
        return self._resolver

    @property
    def discovery(self) -> ManifestDiscovery:
        return self._discovery

    def close(self) -> None:
        if self._owns_resolver and isinstance(self._resolver, MavenResolver):
            self._resolver.close()

    def __enter__(self) -> GradleDependencies:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ── single descriptor ──────────────────────────────────────────────────

    def download_descriptor(
        self,
        data: bytes,
        scopes: Scopes = None,
        *,
        label: str | None = None,
    ) -> set[ResolvedDependency]:
        """Resolve the dependencies declared by one descriptor's raw bytes."""
        return self._process(data, normalize_scopes(scopes), label or "<bytes>")

    def download_stream(self, stream: BinaryIO, scopes: Scopes = None) -> set[ResolvedDependency]:
        label = str(getattr(stream, "name", "<stream>"))
        return self._process(read_stream(stream, label=label), normalize_scopes(scopes), label)

    def download_url(self, url: str, scopes: Scopes = None) -> set[ResolvedDependency]:
        data = read_url(url, timeout=self._settings.http_timeout)
        return self._process(data, normalize_scopes(scopes), url)

    def download_resource(self, path: str, scopes: Scopes = None) -> set[ResolvedDependency]:
        """Resolve a descriptor packaged on the resource path at *path*."""
        return self._process(self._discovery.read_resource(path), normalize_scopes(scopes), path)

    def download_artifact(
        self, group: str, artifact: str, scopes: Scopes = None
    ) -> set[ResolvedDependency]:
        """Resolve the packaged descriptor ``META-INF/gradle/{group}/{artifact}/build.gradle``."""
        data = self._discovery.locate_descriptor(group, artifact)
        return self._process(data, normalize_scopes(scopes), f"{group}:{artifact}")

    # ── every packaged descriptor ──────────────────────────────────────────

    def download_all(self, scopes: Scopes = None) -> set[ResolvedDependency]:
        """Resolve every descriptor found under META-INF/gradle.

        Descriptors are processed one at a time. No packaged descriptors is
        an empty result, not an error.
        """
        wanted = normalize_scopes(scopes)
        batches: list[set[ResolvedDependency]] = []
        for group, artifact in self._discovery.iter_descriptors():
            data = self._discovery.locate_descriptor(group, artifact)
            batches.append(self._process(data, wanted, f"{group}:{artifact}"))
        result = aggregate(*batches)
        log.info(
            "pipeline.completed",
            descriptors=len(batches),
            dependencies=len(result),
            scopes=[s.value for s in wanted],
        )
        return result

    def download(self, *scopes: DependencyScope | str) -> set[ResolvedDependency]:
        """``download_all`` with scopes as positional arguments (none = defaults)."""
        return self.download_all(scopes or None)

    # ── internal ───────────────────────────────────────────────────────────

    def _process(
        self,
        data: bytes,
        scopes: tuple[DependencyScope, ...],
        label: str,
    ) -> set[ResolvedDependency]:
        declarations = self._driver.evaluate(data, extract, descriptor_label=label)
        wanted = filter_scopes(declarations.dependencies, scopes)
        try:
            resolved = self._resolver.download(declarations.repositories, wanted)
        except GradleRuntimeError as exc:
            if exc.descriptor is None:
                exc.descriptor = label
            exc.add_note(f"while resolving dependencies of {label}")
            raise
        log.info(
            "pipeline.descriptor_done",
            descriptor=label,
            repositories=len(declarations.repositories),
            declared=len(declarations.dependencies),
            resolved=len(resolved),
        )
        return aggregate(resolved)


# ── module-level convenience functions ─────────────────────────────────────


@functools.cache
def default_instance() -> GradleDependencies:
    """Process-wide instance configured from the environment.

    Its HTTP client is closed when the interpreter exits.
    """
    instance = GradleDependencies.from_settings()
    atexit.register(instance.close)
    return instance


def download(*scopes: DependencyScope | str) -> set[ResolvedDependency]:
    return default_instance().download(*scopes)


def download_all(scopes: Scopes = None) -> set[ResolvedDependency]:
    return default_instance().download_all(scopes)


def download_descriptor(data: bytes, scopes: Scopes = None) -> set[ResolvedDependency]:
    return default_instance().download_descriptor(data, scopes)


def download_stream(stream: BinaryIO, scopes: Scopes = None) -> set[ResolvedDependency]:
    return default_instance().download_stream(stream, scopes)


def download_url(url: str, scopes: Scopes = None) -> set[ResolvedDependency]:
    return default_instance().download_url(url, scopes)


def download_resource(path: str, scopes: Scopes = None) -> set[ResolvedDependency]:
    return default_instance().download_resource(path, scopes)


def download_artifact(group: str, artifact: str, scopes: Scopes = None) -> set[ResolvedDependency]:
    return default_instance().download_artifact(group, artifact, scopes)
