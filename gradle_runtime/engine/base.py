"""Engine-neutral project model and the abstract evaluation engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Repository kinds. Only MAVEN repositories are artifact repositories for
# the extractor; the others are reported so they can be told apart.
MAVEN = "maven"
IVY = "ivy"
FLAT_DIR = "flat_dir"
OTHER = "other"


@dataclass(frozen=True)
class DeclaredRepository:
    """A repository as declared in the build script."""

    name: str
    kind: str  # MAVEN | IVY | FLAT_DIR | OTHER
    url: str | None = None  # as declared; may be relative for script engines


@dataclass(frozen=True)
class DeclaredDependency:
    """A dependency as declared against a configuration.

    ``group`` and ``version`` are None for file and project dependencies.
    """

    group: str | None
    name: str
    version: str | None


@dataclass
class ConfigurationModel:
    """A named dependency bucket and the configurations it extends."""

    name: str
    dependencies: list[DeclaredDependency] = field(default_factory=list)
    extends_from: list[str] = field(default_factory=list)


@dataclass
class ProjectModel:
    """
    The evaluated project, as seen by the extractor.
    Engines build it; nothing downstream mutates it.
    """

    project_dir: Path
    repositories: list[DeclaredRepository] = field(default_factory=list)
    configurations: dict[str, ConfigurationModel] = field(default_factory=dict)

    def configuration(self, name: str) -> ConfigurationModel:
        """Return the named configuration, raising KeyError if undeclared."""
        try:
            return self.configurations[name]
        except KeyError:
            raise KeyError(name) from None

    def all_dependencies(self, name: str) -> list[DeclaredDependency]:
        """
        Own plus inherited dependencies of a configuration.

        Walks ``extends_from`` depth-first, own dependencies first. Each
        configuration is visited once, so cyclic declarations terminate.
        Duplicates are dropped, keeping the first occurrence.
        """
        seen_confs: set[str] = set()
        result: dict[DeclaredDependency, None] = {}

        def visit(conf_name: str) -> None:
            if conf_name in seen_confs:
                return
            seen_confs.add(conf_name)
            conf = self.configuration(conf_name)
            for dep in conf.dependencies:
                result.setdefault(dep, None)
            for parent in conf.extends_from:
                visit(parent)

        visit(name)
        return list(result)


ModelCallback = Callable[[ProjectModel], Any]


class EvaluationEngine(ABC):
    """
    Abstract base class for build-evaluation engines.

    One instance evaluates one project, then is closed. Usage::

        engine.after_evaluate(callback)
        engine.configure(project_dir)
        engine.evaluate()   # fires callback(model) once, before any build phase
        engine.close()
    """

    # True when every registered hook has run by the time evaluate() returns.
    # Engines that call back from their own threads set this to False; the
    # driver then waits for the hook after evaluate() returns.
    fires_synchronously: bool = True

    def __init__(self) -> None:
        self._callbacks: list[ModelCallback] = []
        self._project_dir: Path | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Engine identifier, e.g. 'gradle', 'script'."""
        ...

    def after_evaluate(self, callback: ModelCallback) -> None:
        """Register a hook to run with the evaluated model."""
        self._callbacks.append(callback)

    def configure(self, project_dir: Path) -> None:
        """Point the engine at the directory holding the descriptor."""
        self._project_dir = Path(project_dir)

    @property
    def project_dir(self) -> Path:
        if self._project_dir is None:
            raise RuntimeError(f"{self.name} engine used before configure()")
        return self._project_dir

    @abstractmethod
    def evaluate(self) -> None:
        """Evaluate the configured project and fire the registered hooks."""
        ...

    def close(self) -> None:
        """Release engine-owned resources. The engine is unusable afterwards."""
        self._callbacks.clear()

    def check_prerequisites(self) -> list[str]:
        """
        Check prerequisites.
        Returns list of missing items (empty = can run).
        """
        return []

    def _fire(self, model: ProjectModel) -> None:
        for callback in list(self._callbacks):
            callback(model)
