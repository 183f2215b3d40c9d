"""Data models shared by the extraction pipeline and the resolvers."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class DependencyScope(Enum):
    """Maven dependency scopes."""

    COMPILE = "compile"
    PROVIDED = "provided"
    RUNTIME = "runtime"
    TEST = "test"
    SYSTEM = "system"
    IMPORT = "import"

    @classmethod
    def parse(cls, value: DependencyScope | str) -> DependencyScope:
        """Accept a scope member or its case-insensitive name/value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"unknown dependency scope {value!r}; "
                f"expected one of {[s.value for s in cls]}"
            ) from None


ScopeSet = tuple[DependencyScope, ...]

DEFAULT_SCOPES: ScopeSet = (DependencyScope.COMPILE, DependencyScope.RUNTIME)


def normalize_scopes(
    scopes: Iterable[DependencyScope | str] | DependencyScope | str | None,
) -> ScopeSet:
    """Turn caller input into an ordered, duplicate-free scope tuple.

    ``None`` means "use the defaults". An explicitly empty collection stays
    empty and filters everything out. A single scope or scope name is
    accepted as a one-element collection.
    """
    if scopes is None:
        return DEFAULT_SCOPES
    if isinstance(scopes, (str, DependencyScope)):
        scopes = (scopes,)
    return tuple(dict.fromkeys(DependencyScope.parse(s) for s in scopes))


@dataclass(frozen=True)
class DependencyCoordinate:
    """A Maven-style dependency. All four fields take part in identity."""

    group: str
    artifact: str
    version: str
    scope: DependencyScope = DependencyScope.COMPILE

    @property
    def notation(self) -> str:
        return f"{self.group}:{self.artifact}:{self.version}"

    def __str__(self) -> str:
        return self.notation


@dataclass(frozen=True)
class RepositoryEndpoint:
    """An artifact repository, identified by its absolute URL."""

    url: str


@dataclass(frozen=True)
class ResolvedDependency:
    """A dependency materialized by a resolver.

    Identity is the coordinate alone: the same coordinate fetched into two
    different locations is still one dependency.
    """

    coordinate: DependencyCoordinate
    path: Path | None = field(default=None, compare=False)

    def __str__(self) -> str:
        return str(self.coordinate)


@dataclass(frozen=True)
class ProjectDeclarations:
    """What the extractor pulls out of one evaluated project."""

    repositories: list[RepositoryEndpoint]
    dependencies: list[DependencyCoordinate]
