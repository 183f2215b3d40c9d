"""Runtime settings, read from ``GRADLE_RUNTIME_*`` environment variables."""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

_PREFIX = "GRADLE_RUNTIME_"

DEFAULT_ENGINE = "gradle"
DEFAULT_GRADLE_BIN = "gradle"
DEFAULT_HTTP_TIMEOUT = 30.0


def _default_local_repository() -> Path:
    return Path.home() / ".m2" / "repository"


@dataclass(frozen=True)
class Settings:
    """Pipeline settings.

    Every field has a usable default, so ``Settings()`` works without any
    environment. ``Settings.from_env()`` overrides from the environment.
    """

    engine: str = DEFAULT_ENGINE
    gradle_bin: str = DEFAULT_GRADLE_BIN
    evaluation_timeout: float | None = None  # seconds; None waits forever
    workspace_dir: Path | None = None  # None = system temp dir
    resource_path: tuple[str, ...] = field(default_factory=lambda: tuple(sys.path))
    local_repository: Path = field(default_factory=_default_local_repository)
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(_PREFIX + name)
            if value is None or not value.strip():
                return None
            return value.strip()

        kwargs: dict = {}
        if (engine := get("ENGINE")) is not None:
            kwargs["engine"] = engine.lower()
        if (gradle_bin := get("GRADLE_BIN")) is not None:
            kwargs["gradle_bin"] = gradle_bin
        if (timeout := get("EVALUATION_TIMEOUT")) is not None:
            kwargs["evaluation_timeout"] = _positive_float("EVALUATION_TIMEOUT", timeout)
        if (workspace_dir := get("WORKSPACE_DIR")) is not None:
            kwargs["workspace_dir"] = Path(workspace_dir).expanduser()
        if (resource_path := get("RESOURCE_PATH")) is not None:
            kwargs["resource_path"] = tuple(p for p in resource_path.split(os.pathsep) if p)
        if (local_repo := get("LOCAL_REPOSITORY")) is not None:
            kwargs["local_repository"] = Path(local_repo).expanduser()
        if (http_timeout := get("HTTP_TIMEOUT")) is not None:
            kwargs["http_timeout"] = _positive_float("HTTP_TIMEOUT", http_timeout)
        return cls(**kwargs)


def _positive_float(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{_PREFIX}{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{_PREFIX}{name} must be positive, got {raw!r}")
    return value
