"""The resolution delegate contract."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from gradle_runtime.models import DependencyCoordinate, RepositoryEndpoint, ResolvedDependency


@runtime_checkable
class ResolutionDelegate(Protocol):
    """Fetches the given coordinates from the given repositories.

    Called once per descriptor, with that descriptor's repositories (in
    declaration order) and its scope-filtered dependencies. Raises
    ResolutionError when an artifact cannot be obtained.
    """

    def download(
        self,
        repositories: Sequence[RepositoryEndpoint],
        dependencies: Sequence[DependencyCoordinate],
    ) -> set[ResolvedDependency]: ...
