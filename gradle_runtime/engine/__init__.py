"""Build-evaluation engines and the engine-neutral project model."""

from gradle_runtime.engine.base import (
    ConfigurationModel,
    DeclaredDependency,
    DeclaredRepository,
    EvaluationEngine,
    ModelCallback,
    ProjectModel,
)
from gradle_runtime.engine.registry import EngineFactory, create_engine_factory

__all__ = [
    "ConfigurationModel",
    "DeclaredDependency",
    "DeclaredRepository",
    "EngineFactory",
    "EvaluationEngine",
    "ModelCallback",
    "ProjectModel",
    "create_engine_factory",
]
