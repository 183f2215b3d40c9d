"""Ephemeral, exclusively-owned directories hosting one build descriptor each."""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import structlog

from gradle_runtime.exceptions import GradleRuntimeError, WorkspaceError

log = structlog.get_logger("gradle_runtime.workspace")

WORKSPACE_PREFIX = "gradle-dependency-runtime-"


@dataclass(frozen=True)
class Workspace:
    """A directory owned by exactly one pipeline invocation."""

    path: Path

    def write(self, name: str, data: bytes) -> Path:
        """Write *data* verbatim to ``<workspace>/<name>``."""
        target = self.path / name
        try:
            target.write_bytes(data)
        except OSError as exc:
            raise WorkspaceError(f"cannot write {target}: {exc}") from exc
        return target


class WorkspaceManager:
    """Create and destroy workspaces.

    Names come from :func:`tempfile.mkdtemp`, so concurrent acquisitions never
    collide. Prefer :meth:`scoped` over calling :meth:`acquire` and
    :meth:`release` by hand.
    """

    def __init__(self, base_dir: Path | str | None = None, prefix: str = WORKSPACE_PREFIX) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else None
        self._prefix = prefix

    def acquire(self) -> Workspace:
        try:
            if self._base_dir is not None:
                self._base_dir.mkdir(parents=True, exist_ok=True)
            path = Path(tempfile.mkdtemp(prefix=self._prefix, dir=self._base_dir))
        except OSError as exc:
            raise WorkspaceError(f"cannot create workspace: {exc}") from exc
        log.debug("workspace.acquired", path=str(path))
        return Workspace(path)

    def release(self, workspace: Workspace) -> None:
        if not workspace.path.exists():
            return
        try:
            shutil.rmtree(workspace.path)
        except OSError as exc:
            raise WorkspaceError(f"cannot delete workspace {workspace.path}: {exc}") from exc
        log.debug("workspace.released", path=str(workspace.path))

    @contextmanager
    def scoped(self) -> Iterator[Workspace]:
        """Yield a fresh workspace and release it on every exit path.

        If the body raises and the release fails as well, the body's exception
        is the one that propagates; the release failure is logged and attached
        to it.
        """
        workspace = self.acquire()
        try:
            yield workspace
        except BaseException as primary:
            try:
                self.release(workspace)
            except WorkspaceError as cleanup_exc:
                log.warning(
                    "workspace.release_failed",
                    path=str(workspace.path),
                    error=str(cleanup_exc),
                    primary_error=repr(primary),
                )
                if isinstance(primary, GradleRuntimeError):
                    primary.suppressed.append(cleanup_exc)
                primary.add_note(f"workspace cleanup also failed: {cleanup_exc}")
            raise
        self.release(workspace)
