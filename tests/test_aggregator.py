"""Tests for scope filtering and aggregation."""

from __future__ import annotations

from pathlib import Path

import pytest

from gradle_runtime.aggregator import aggregate, filter_scopes
from gradle_runtime.models import (
    DEFAULT_SCOPES,
    DependencyCoordinate,
    DependencyScope,
    ResolvedDependency,
    normalize_scopes,
)

RUNTIME = DependencyScope.RUNTIME
COMPILE = DependencyScope.COMPILE
TEST = DependencyScope.TEST

DEPS = [
    DependencyCoordinate("g", "a", "1", RUNTIME),
    DependencyCoordinate("g", "b", "1", COMPILE),
    DependencyCoordinate("g", "c", "1", TEST),
    DependencyCoordinate("g", "a", "1", RUNTIME),
]


class TestFilterScopes:
    def test_keeps_members_in_order_without_dedup(self):
        assert filter_scopes(DEPS, {RUNTIME}) == [DEPS[0], DEPS[3]]

    def test_empty_scopes_filters_everything(self):
        assert filter_scopes(DEPS, ()) == []

    def test_default_scopes(self):
        assert filter_scopes(DEPS, DEFAULT_SCOPES) == [DEPS[0], DEPS[1], DEPS[3]]

    def test_all_scopes(self):
        assert filter_scopes(DEPS, list(DependencyScope)) == DEPS


class TestNormalizeScopes:
    def test_none_means_defaults(self):
        assert normalize_scopes(None) == (COMPILE, RUNTIME)

    def test_empty_stays_empty(self):
        assert normalize_scopes([]) == ()

    def test_strings_parsed_and_deduplicated(self):
        assert normalize_scopes(["Runtime", RUNTIME, "test"]) == (RUNTIME, TEST)

    def test_single_scope_name(self):
        assert normalize_scopes("runtime") == (RUNTIME,)

    def test_single_scope_member(self):
        assert normalize_scopes(RUNTIME) == (RUNTIME,)

    def test_unknown_scope(self):
        with pytest.raises(ValueError, match="unknown dependency scope"):
            normalize_scopes(["optional"])


class TestAggregate:
    def _resolved(self, name, path=None):
        return ResolvedDependency(DependencyCoordinate("g", name, "1", RUNTIME), path)

    def test_union_deduplicates_by_coordinate(self):
        a1 = self._resolved("a", Path("/one/a.jar"))
        a2 = self._resolved("a", Path("/two/a.jar"))
        b = self._resolved("b")
        result = aggregate({a1, b}, {a2})
        assert len(result) == 2
        assert {r.coordinate.artifact for r in result} == {"a", "b"}

    def test_idempotent(self):
        batch = {self._resolved("a"), self._resolved("b")}
        assert aggregate(batch, batch) == aggregate(batch)

    def test_commutative(self):
        x = {self._resolved("a")}
        y = {self._resolved("b"), self._resolved("a")}
        z = {self._resolved("c")}
        assert aggregate(x, y, z) == aggregate(z, y, x) == aggregate(y, x, z)

    def test_no_batches(self):
        assert aggregate() == set()

    def test_scope_is_part_of_identity(self):
        compile_dep = ResolvedDependency(DependencyCoordinate("g", "a", "1", COMPILE))
        runtime_dep = ResolvedDependency(DependencyCoordinate("g", "a", "1", RUNTIME))
        assert len(aggregate({compile_dep}, {runtime_dep})) == 2
