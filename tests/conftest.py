"""Shared pytest fixtures for gradle-dependency-runtime tests."""

from __future__ import annotations

import pytest

from gradle_runtime.testing import RecordingResolver
from gradle_runtime.workspace import WorkspaceManager


@pytest.fixture
def workspace_base(tmp_path):
    base = tmp_path / "workspaces"
    base.mkdir()
    return base


@pytest.fixture
def workspaces(workspace_base):
    return WorkspaceManager(workspace_base)


@pytest.fixture
def resolver():
    return RecordingResolver()


@pytest.fixture
def resource_root(tmp_path):
    """A directory usable as a resource-path entry; see ``gradle_runtime.testing.add_descriptor``."""
    root = tmp_path / "resources"
    root.mkdir()
    return root
