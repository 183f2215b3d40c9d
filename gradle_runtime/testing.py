"""Test doubles for the evaluation engine and the resolution delegate."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from gradle_runtime.driver import DESCRIPTOR_FILENAME
from gradle_runtime.engine.base import (
    MAVEN,
    ConfigurationModel,
    DeclaredDependency,
    DeclaredRepository,
    EvaluationEngine,
    ProjectModel,
)
from gradle_runtime.manifest import descriptor_path
from gradle_runtime.models import DependencyCoordinate, RepositoryEndpoint, ResolvedDependency

ModelBuilder = Callable[[Path, bytes], ProjectModel]


def add_descriptor(root: Path, group: str, artifact: str, content: str) -> Path:
    """Place a packaged descriptor for (group, artifact) under the resource dir *root*."""
    target = root / descriptor_path(group, artifact)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    return target


def java_project(
    project_dir: Path,
    *,
    repositories: Sequence[str] = (),
    compile: Sequence[str] = (),
    runtime: Sequence[str] = (),
) -> ProjectModel:
    """A model shaped like a project with the java plugin applied.

    *repositories* are Maven URLs; *compile* and *runtime* are ``g:a:v``
    notations. ``runtime`` extends ``compile``.
    """

    def deps(notations: Sequence[str]) -> list[DeclaredDependency]:
        result = []
        for notation in notations:
            group, name, version = notation.split(":")
            result.append(DeclaredDependency(group, name, version))
        return result

    return ProjectModel(
        project_dir=project_dir,
        repositories=[
            DeclaredRepository(name=f"maven{i or ''}", kind=MAVEN, url=url)
            for i, url in enumerate(repositories)
        ],
        configurations={
            "compile": ConfigurationModel("compile", deps(compile)),
            "runtime": ConfigurationModel("runtime", deps(runtime), extends_from=["compile"]),
        },
    )


class FakeEngine(EvaluationEngine):
    """
    Engine that fires a prepared model instead of evaluating anything.

    The model comes from *models*, keyed by the exact descriptor bytes written
    to the workspace, or from a builder ``(project_dir, descriptor) -> model``.
    ``error`` is raised from ``evaluate()`` after firing (or instead of it when
    ``fire`` is False). ``fire_count`` > 1 simulates an engine that calls back
    once per project; ``on_thread`` fires from a separate thread and waits for
    it. ``deferred`` (seconds) returns from ``evaluate()`` at once and fires
    from a thread that is not joined, like an engine with its own event loop.
    """

    def __init__(
        self,
        models: Mapping[bytes, ProjectModel] | ModelBuilder | None = None,
        *,
        error: Exception | None = None,
        fire: bool = True,
        fire_count: int = 1,
        on_thread: bool = False,
        deferred: float | None = None,
    ) -> None:
        super().__init__()
        self._models = models
        self._error = error
        self._fire_enabled = fire
        self._fire_count = fire_count
        self._on_thread = on_thread
        self._deferred = deferred
        if deferred is not None:
            self.fires_synchronously = False
        self.callback_thread: threading.Thread | None = None
        self.thread_errors: list[BaseException] = []
        self.closed = False
        self.seen_descriptor: bytes | None = None
        self.seen_files: list[str] = []

    @property
    def name(self) -> str:
        return "fake"

    def evaluate(self) -> None:
        descriptor = (self.project_dir / DESCRIPTOR_FILENAME).read_bytes()
        self.seen_descriptor = descriptor
        self.seen_files = sorted(p.name for p in self.project_dir.iterdir())

        if self._fire_enabled:
            model = self._build(descriptor)
            if self._deferred is not None:
                self._fire_later(model, self._deferred)
                return
            for _ in range(self._fire_count):
                if self._on_thread:
                    self._fire_on_thread(model)
                else:
                    self._fire(model)
        if self._error is not None:
            raise self._error

    def close(self) -> None:
        super().close()
        self.closed = True

    def _build(self, descriptor: bytes) -> ProjectModel:
        if self._models is None:
            return java_project(self.project_dir)
        if callable(self._models):
            return self._models(self.project_dir, descriptor)
        try:
            model = self._models[descriptor]
        except KeyError:
            raise RuntimeError(f"no model prepared for descriptor {descriptor!r}") from None
        model.project_dir = self.project_dir
        return model

    def _fire_on_thread(self, model: ProjectModel) -> None:
        errors: list[BaseException] = []

        def run() -> None:
            try:
                self._fire(model)
            except BaseException as exc:  # re-raised on the calling thread
                errors.append(exc)

        worker = threading.Thread(target=run, name="fake-engine-callback")
        worker.start()
        worker.join()
        if errors:
            raise errors[0]

    def _fire_later(self, model: ProjectModel, delay: float) -> None:
        def run() -> None:
            time.sleep(delay)
            try:
                self._fire(model)
            except BaseException as exc:  # nobody joins this thread
                self.thread_errors.append(exc)

        self.callback_thread = threading.Thread(
            target=run, name="fake-engine-deferred", daemon=True
        )
        self.callback_thread.start()


@dataclass
class FakeEngineFactory:
    """Engine factory that records every engine it hands out."""

    build: Callable[[], FakeEngine] = FakeEngine
    engines: list[FakeEngine] = field(default_factory=list)

    def __call__(self) -> FakeEngine:
        engine = self.build()
        self.engines.append(engine)
        return engine


@dataclass
class ResolverCall:
    repositories: list[RepositoryEndpoint]
    dependencies: list[DependencyCoordinate]


class RecordingResolver:
    """Resolution delegate that records its calls and resolves everything.

    Set ``error`` to make every call raise it instead.
    """

    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[ResolverCall] = []
        self.error = error

    def download(
        self,
        repositories: Sequence[RepositoryEndpoint],
        dependencies: Sequence[DependencyCoordinate],
    ) -> set[ResolvedDependency]:
        self.calls.append(ResolverCall(list(repositories), list(dependencies)))
        if self.error is not None:
            raise self.error
        return {ResolvedDependency(coordinate=c) for c in dependencies}
