"""Engine registry: name -> factory for fresh evaluation engines."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from gradle_runtime.config import Settings
from gradle_runtime.engine.base import EvaluationEngine

log = structlog.get_logger("gradle_runtime.engine")

EngineFactory = Callable[[], EvaluationEngine]


@dataclass
class EngineDescriptor:
    """Engine declaration: how to build one from settings."""

    name: str
    description: str
    build: Callable[[Settings], EvaluationEngine]


def _gradle(settings: Settings) -> EvaluationEngine:
    from gradle_runtime.engine.gradle_cli import GradleCliEngine

    return GradleCliEngine(gradle_bin=settings.gradle_bin, timeout=settings.evaluation_timeout)


def _script(settings: Settings) -> EvaluationEngine:
    from gradle_runtime.engine.script import ScriptEngine

    return ScriptEngine()


ENGINE_REGISTRY: dict[str, EngineDescriptor] = {}


def register_engine(descriptor: EngineDescriptor) -> None:
    """Register an engine by its name."""
    ENGINE_REGISTRY[descriptor.name] = descriptor


register_engine(EngineDescriptor("gradle", "Gradle executable, --dry-run evaluation", _gradle))
register_engine(EngineDescriptor("script", "in-process static DSL evaluation", _script))


def create_engine_factory(name: str, settings: Settings | None = None) -> EngineFactory:
    """Return a factory producing a new engine instance on every call.

    Engines are never shared between descriptors; the driver asks the factory
    for a fresh one per evaluation.
    """
    descriptor = ENGINE_REGISTRY.get(name)
    if descriptor is None:
        raise ValueError(f"unknown engine {name!r}; available: {sorted(ENGINE_REGISTRY)}")
    resolved = settings or Settings()

    def factory() -> EvaluationEngine:
        engine = descriptor.build(resolved)
        missing = engine.check_prerequisites()
        if missing:
            log.warning("engine.prerequisites_missing", engine=name, missing=missing)
        return engine

    return factory
