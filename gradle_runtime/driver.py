"""Evaluation driver: runs one descriptor through a fresh engine in a fresh workspace."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from pathlib import Path
from typing import TypeVar

import structlog

from gradle_runtime.engine.base import ProjectModel
from gradle_runtime.engine.registry import EngineFactory
from gradle_runtime.exceptions import EvaluationError, GradleRuntimeError
from gradle_runtime.workspace import WorkspaceManager

log = structlog.get_logger("gradle_runtime.driver")

DESCRIPTOR_FILENAME = "build.gradle"
SETTINGS_FILENAME = "settings.gradle"

T = TypeVar("T")


class EvaluationDriver:
    """
    Obtain an evaluated ProjectModel for a descriptor without building it.

    Each call:
        acquire workspace -> write build.gradle -> new engine
            -> register one-shot hook -> configure + evaluate -> close engine
            -> release workspace
    """

    def __init__(
        self,
        engine_factory: EngineFactory,
        workspaces: WorkspaceManager | None = None,
        *,
        callback_timeout: float | None = None,
    ) -> None:
        self._engine_factory = engine_factory
        self._workspaces = workspaces or WorkspaceManager()
        # Only bounds the wait for engines that fire from their own threads.
        self._callback_timeout = callback_timeout

    def evaluate(
        self,
        descriptor: bytes,
        on_model_ready: Callable[[ProjectModel], T],
        *,
        descriptor_label: str | None = None,
    ) -> T:
        """Evaluate *descriptor* and return what *on_model_ready* returned.

        Blocks until the hook has run. Engine and hook failures are raised as
        EvaluationError; the workspace is removed in every case.
        """
        try:
            with self._workspaces.scoped() as workspace:
                workspace.write(DESCRIPTOR_FILENAME, descriptor)
                # An empty settings file stops the engine from adopting an
                # enclosing multi-project build.
                workspace.write(SETTINGS_FILENAME, b"")
                return self._run_engine(workspace.path, on_model_ready)
        except GradleRuntimeError as exc:
            if exc.descriptor is None:
                exc.descriptor = descriptor_label
            raise

    def _run_engine(self, project_dir: Path, on_model_ready: Callable[[ProjectModel], T]) -> T:
        engine = self._engine_factory()
        outcome: Future[T] = Future()
        lock = threading.Lock()
        claimed = False

        def hook(model: ProjectModel) -> None:
            nonlocal claimed
            # Engines may fire more than once (one per project), or after the
            # driver stopped waiting; only the first firing in time counts.
            with lock:
                if claimed:
                    log.warning("driver.hook_ignored", engine=engine.name)
                    return
                claimed = True
                outcome.set_running_or_notify_cancel()
            try:
                outcome.set_result(on_model_ready(model))
            except BaseException as exc:
                outcome.set_exception(exc)
                raise

        def stop_accepting() -> bool:
            """Refuse later firings; return whether the hook already fired."""
            nonlocal claimed
            with lock:
                fired = claimed
                claimed = True
            return fired

        engine.after_evaluate(hook)
        start = time.monotonic()
        engine_error: Exception | None = None
        timed_out = False
        try:
            engine.configure(project_dir)
            engine.evaluate()
            if not engine.fires_synchronously:
                try:
                    outcome.exception(timeout=self._callback_timeout)
                except TimeoutError:
                    timed_out = True
        except Exception as exc:
            engine_error = exc
        finally:
            fired = stop_accepting()
            engine.close()

        if fired:
            # Waits for a hook still running on an engine-owned thread.
            hook_error = outcome.exception()
            if hook_error is not None:
                if isinstance(hook_error, EvaluationError):
                    raise hook_error
                raise EvaluationError(f"model callback failed: {hook_error}") from hook_error
        if engine_error is not None:
            if isinstance(engine_error, EvaluationError):
                raise engine_error
            raise EvaluationError(f"{engine.name} engine failed: {engine_error}") from engine_error
        if not fired:
            if timed_out:
                raise EvaluationError(
                    f"{engine.name} engine did not evaluate the project "
                    f"within {self._callback_timeout}s"
                )
            raise EvaluationError(f"{engine.name} engine finished without evaluating the project")

        log.info(
            "driver.evaluated",
            engine=engine.name,
            duration=round(time.monotonic() - start, 2),
        )
        return outcome.result()
