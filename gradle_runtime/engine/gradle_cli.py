"""Gradle CLI engine: evaluates a project with a real Gradle installation.

Requires a ``gradle`` executable on PATH (or configured explicitly).
"""

from __future__ import annotations

import shutil
import subprocess
import time
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gradle_runtime.engine.base import (
    ConfigurationModel,
    DeclaredDependency,
    DeclaredRepository,
    EvaluationEngine,
    ProjectModel,
)
from gradle_runtime.exceptions import EvaluationError

log = structlog.get_logger("gradle_runtime.engine.gradle")

MODEL_PROPERTY = "gradleRuntimeModelFile"
INIT_SCRIPT_NAME = ".gradle-runtime-init.gradle"
MODEL_FILE_NAME = ".gradle-runtime-model.json"

# Runs inside Gradle once every project is configured and before the task
# graph executes. Only declared dependencies are dumped; inheritance is kept
# as extendsFrom names so ProjectModel can walk it.
INIT_SCRIPT = """\
import groovy.json.JsonOutput
import org.gradle.api.artifacts.repositories.FlatDirectoryArtifactRepository
import org.gradle.api.artifacts.repositories.IvyArtifactRepository
import org.gradle.api.artifacts.repositories.MavenArtifactRepository

gradle.projectsEvaluated { g ->
    def project = g.rootProject
    def repositories = project.repositories.collect { repo ->
        if (repo instanceof MavenArtifactRepository) {
            [name: repo.name, kind: 'maven', url: repo.url?.toString()]
        } else if (repo instanceof IvyArtifactRepository) {
            [name: repo.name, kind: 'ivy', url: repo.url?.toString()]
        } else if (repo instanceof FlatDirectoryArtifactRepository) {
            [name: repo.name, kind: 'flat_dir', url: null]
        } else {
            [name: repo.name, kind: 'other', url: null]
        }
    }
    def configurations = project.configurations.collect { conf ->
        [
            name: conf.name,
            extendsFrom: conf.extendsFrom.collect { it.name },
            dependencies: conf.dependencies.collect { dep ->
                [group: dep.group, name: dep.name, version: dep.version]
            },
        ]
    }
    def target = new File(project.property('%(property)s').toString())
    target.text = JsonOutput.toJson([
        projectDir: project.projectDir.absolutePath,
        repositories: repositories,
        configurations: configurations,
    ])
}
""" % {"property": MODEL_PROPERTY}


class _RepositoryDump(BaseModel):
    name: str
    kind: str
    url: str | None = None


class _DependencyDump(BaseModel):
    group: str | None = None
    name: str
    version: str | None = None


class _ConfigurationDump(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    extends_from: list[str] = Field(default_factory=list, alias="extendsFrom")
    dependencies: list[_DependencyDump] = Field(default_factory=list)


class _ModelDump(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_dir: str = Field(..., alias="projectDir")
    repositories: list[_RepositoryDump] = Field(default_factory=list)
    configurations: list[_ConfigurationDump] = Field(default_factory=list)

    def to_model(self) -> ProjectModel:
        return ProjectModel(
            project_dir=Path(self.project_dir),
            repositories=[
                DeclaredRepository(name=r.name, kind=r.kind, url=r.url) for r in self.repositories
            ],
            configurations={
                c.name: ConfigurationModel(
                    name=c.name,
                    dependencies=[
                        DeclaredDependency(group=d.group, name=d.name, version=d.version)
                        for d in c.dependencies
                    ],
                    extends_from=list(c.extends_from),
                )
                for c in self.configurations
            },
        )


class GradleCliEngine(EvaluationEngine):
    """
    Evaluate a project by running Gradle in a fresh, daemon-less process.

    Workflow:
        write init script -> gradle --no-daemon --init-script ... --dry-run help
            -> projectsEvaluated hook dumps JSON -> _ModelDump -> ProjectModel
            -> registered callbacks
    """

    def __init__(self, gradle_bin: str = "gradle", timeout: float | None = None) -> None:
        super().__init__()
        self._gradle_bin = gradle_bin
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "gradle"

    def check_prerequisites(self) -> list[str]:
        if shutil.which(self._gradle_bin) is None:
            return [f"Gradle executable '{self._gradle_bin}'"]
        return []

    def evaluate(self) -> None:
        project_dir = self.project_dir
        init_script = project_dir / INIT_SCRIPT_NAME
        model_file = project_dir / MODEL_FILE_NAME
        init_script.write_text(INIT_SCRIPT, encoding="utf-8")

        cmd = [
            self._gradle_bin,
            "--no-daemon",
            "--quiet",
            "--init-script",
            str(init_script),
            "--project-dir",
            str(project_dir),
            f"-P{MODEL_PROPERTY}={model_file}",
            "--dry-run",
            "help",
        ]

        log.info("gradle.evaluate", project_dir=str(project_dir))
        start = time.monotonic()
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                cwd=str(project_dir),
                timeout=self._timeout,
            )
        except FileNotFoundError as exc:
            raise EvaluationError(f"Gradle executable not found: {self._gradle_bin}") from exc
        except subprocess.TimeoutExpired as exc:
            raise EvaluationError(f"Gradle evaluation timed out after {self._timeout}s") from exc

        if result.returncode != 0:
            raise EvaluationError(
                f"Gradle evaluation failed (rc={result.returncode}): {result.stderr[-2000:].strip()}"
            )

        model = self._read_model(model_file)
        log.info(
            "gradle.evaluated",
            project_dir=str(project_dir),
            configurations=len(model.configurations),
            repositories=len(model.repositories),
            duration=round(time.monotonic() - start, 2),
        )
        self._fire(model)

    @staticmethod
    def _read_model(model_file: Path) -> ProjectModel:
        if not model_file.is_file():
            raise EvaluationError(
                "Gradle finished without evaluating the project (no model was written)"
            )
        try:
            dump = _ModelDump.model_validate_json(model_file.read_text(encoding="utf-8"))
        except ValidationError as exc:
            raise EvaluationError(f"Gradle produced an unreadable project model: {exc}") from exc
        return dump.to_model()
