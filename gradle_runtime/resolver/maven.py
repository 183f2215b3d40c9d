"""Maven repository resolver: downloads declared jars into a local Maven layout."""

from __future__ import annotations

import shutil
import time
from collections.abc import Sequence
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx
import structlog

from gradle_runtime.exceptions import ResolutionError
from gradle_runtime.models import DependencyCoordinate, RepositoryEndpoint, ResolvedDependency

log = structlog.get_logger("gradle_runtime.resolver.maven")

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds
_USER_AGENT = "gradle-dependency-runtime"


def artifact_path(coordinate: DependencyCoordinate, extension: str = "jar") -> str:
    """Repository-relative path of an artifact in the Maven 2 layout."""
    group_path = coordinate.group.replace(".", "/")
    filename = f"{coordinate.artifact}-{coordinate.version}.{extension}"
    return f"{group_path}/{coordinate.artifact}/{coordinate.version}/{filename}"


class _NotFound(Exception):
    """The repository answered, but does not have the artifact."""


class MavenResolver:
    """
    Download each coordinate's jar from the first repository that has it.

    Usage::

        with MavenResolver(Path("~/.m2/repository").expanduser()) as resolver:
            resolved = resolver.download(repositories, dependencies)

    Artifacts are always fetched, even when a copy already exists locally.
    Transitive dependencies are not resolved.
    """

    def __init__(
        self,
        local_repository: Path,
        *,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
        retry_base_delay: float = _RETRY_BASE_DELAY,
    ) -> None:
        self._local_repository = Path(local_repository)
        self._retry_base_delay = retry_base_delay
        self._owns_client = client is None
        self._client = client or httpx.Client(
            headers={"User-Agent": _USER_AGENT},
            timeout=timeout,
            follow_redirects=True,
        )

    @property
    def local_repository(self) -> Path:
        return self._local_repository

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> MavenResolver:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ── public API ─────────────────────────────────────────────────────────

    def download(
        self,
        repositories: Sequence[RepositoryEndpoint],
        dependencies: Sequence[DependencyCoordinate],
    ) -> set[ResolvedDependency]:
        resolved: set[ResolvedDependency] = set()
        for coordinate in dependencies:
            path = self._download_one(repositories, coordinate)
            resolved.add(ResolvedDependency(coordinate=coordinate, path=path))
        if dependencies:
            log.info(
                "resolver.downloaded",
                count=len(resolved),
                repositories=[r.url for r in repositories],
            )
        return resolved

    # ── internal ───────────────────────────────────────────────────────────

    def _download_one(
        self,
        repositories: Sequence[RepositoryEndpoint],
        coordinate: DependencyCoordinate,
    ) -> Path:
        if not repositories:
            raise ResolutionError(f"cannot resolve {coordinate}: no repositories declared")

        relative = artifact_path(coordinate)
        target = self._local_repository / relative
        failures: list[str] = []
        for repo in repositories:
            url = f"{repo.url.rstrip('/')}/{relative}"
            try:
                if urlparse(url).scheme.lower() == "file":
                    self._copy_file(url, target)
                else:
                    self._fetch(url, target)
            except _NotFound:
                log.debug("resolver.not_found", artifact=str(coordinate), url=url)
                failures.append(f"{url}: not found")
                continue
            except (httpx.HTTPError, OSError) as exc:
                log.warning("resolver.repository_failed", artifact=str(coordinate), url=url, error=str(exc))
                failures.append(f"{url}: {exc}")
                continue
            log.debug("resolver.fetched", artifact=str(coordinate), url=url, path=str(target))
            return target

        raise ResolutionError(
            f"cannot resolve {coordinate} from any declared repository: " + "; ".join(failures)
        )

    def _copy_file(self, url: str, target: Path) -> None:
        source = Path(unquote(urlparse(url).path))
        if not source.is_file():
            raise _NotFound(url)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)

    def _fetch(self, url: str, target: Path) -> None:
        resp = self._request_with_retry(url)
        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".part")
        partial.write_bytes(resp.content)
        partial.replace(target)

    def _request_with_retry(self, url: str) -> httpx.Response:
        """GET with exponential backoff on 5xx and timeout errors."""
        last_exc: Exception | None = None
        for attempt in range(_MAX_RETRIES):
            try:
                resp = self._client.get(url)

                if resp.status_code == 404:
                    raise _NotFound(url)

                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp

                log.warning(
                    "resolver.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )
            except httpx.TimeoutException as exc:
                log.warning(
                    "resolver.timeout",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = exc

            if attempt < _MAX_RETRIES - 1:
                time.sleep(self._retry_base_delay * (2**attempt))

        raise last_exc  # type: ignore[misc]
