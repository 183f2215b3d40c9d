"""Scope filtering and result aggregation."""

from __future__ import annotations

from collections.abc import Iterable

from gradle_runtime.models import DependencyCoordinate, DependencyScope, ResolvedDependency


def filter_scopes(
    dependencies: Iterable[DependencyCoordinate],
    scopes: Iterable[DependencyScope],
) -> list[DependencyCoordinate]:
    """Keep coordinates whose scope is in *scopes*, in input order.

    No deduplication happens here; that is the aggregate's job.
    """
    wanted = frozenset(scopes)
    return [dep for dep in dependencies if dep.scope in wanted]


def aggregate(*batches: Iterable[ResolvedDependency]) -> set[ResolvedDependency]:
    """Union resolver batches into one deduplicated set."""
    result: set[ResolvedDependency] = set()
    for batch in batches:
        result.update(batch)
    return result
