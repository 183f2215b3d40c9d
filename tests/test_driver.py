"""Tests for EvaluationDriver."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from gradle_runtime.driver import DESCRIPTOR_FILENAME, SETTINGS_FILENAME, EvaluationDriver
from gradle_runtime.exceptions import EvaluationError, GradleRuntimeError, WorkspaceError
from gradle_runtime.testing import FakeEngine, FakeEngineFactory, java_project


def _factory(**kwargs) -> FakeEngineFactory:
    return FakeEngineFactory(build=lambda: FakeEngine(**kwargs))


class TestEvaluate:
    def test_returns_callback_result(self, workspaces):
        driver = EvaluationDriver(_factory(), workspaces)
        result = driver.evaluate(b"apply plugin: 'java'", lambda model: sorted(model.configurations))
        assert result == ["compile", "runtime"]

    def test_descriptor_written_verbatim_with_empty_settings(self, workspaces):
        factory = _factory()
        data = b"// descriptor\napply plugin: 'java'\n"
        EvaluationDriver(factory, workspaces).evaluate(data, lambda m: None)
        engine = factory.engines[0]
        assert engine.seen_descriptor == data
        assert engine.seen_files == [DESCRIPTOR_FILENAME, SETTINGS_FILENAME]

    def test_fresh_engine_per_call_and_closed(self, workspaces):
        factory = _factory()
        driver = EvaluationDriver(factory, workspaces)
        driver.evaluate(b"a", lambda m: None)
        driver.evaluate(b"b", lambda m: None)
        assert len(factory.engines) == 2
        assert factory.engines[0] is not factory.engines[1]
        assert all(e.closed for e in factory.engines)

    def test_callback_sees_workspace_as_project_dir(self, workspaces, workspace_base):
        seen = []
        EvaluationDriver(_factory(), workspaces).evaluate(b"", lambda m: seen.append(m.project_dir))
        assert seen[0].parent == workspace_base

    def test_workspace_removed_after_success(self, workspaces, workspace_base):
        EvaluationDriver(_factory(), workspaces).evaluate(b"", lambda m: None)
        assert list(workspace_base.iterdir()) == []

    def test_callback_on_engine_thread(self, workspaces):
        driver = EvaluationDriver(_factory(on_thread=True), workspaces)
        assert driver.evaluate(b"", lambda m: "done") == "done"


class TestDeferredCallback:
    def test_waits_for_callback_from_unjoined_thread(self, workspaces, workspace_base):
        factory = _factory(deferred=0.2)
        seen = []

        def on_ready(model):
            seen.append((model.project_dir / DESCRIPTOR_FILENAME).read_bytes())
            return "done"

        result = EvaluationDriver(factory, workspaces).evaluate(b"apply plugin: 'java'", on_ready)
        assert result == "done"
        assert seen == [b"apply plugin: 'java'"]
        assert factory.engines[0].closed
        assert list(workspace_base.iterdir()) == []

    def test_deferred_callback_error_wrapped(self, workspaces):
        def boom(model):
            raise ValueError("bad model")

        factory = _factory(deferred=0.05)
        with pytest.raises(EvaluationError, match="model callback failed: bad model"):
            EvaluationDriver(factory, workspaces).evaluate(b"", boom)
        factory.engines[0].callback_thread.join()
        assert len(factory.engines[0].thread_errors) == 1

    def test_deferred_engine_that_never_fires_times_out(self, workspaces, workspace_base):
        factory = _factory(deferred=0.05, fire=False)
        driver = EvaluationDriver(factory, workspaces, callback_timeout=0.05)
        with pytest.raises(EvaluationError, match="did not evaluate the project within 0.05s"):
            driver.evaluate(b"", lambda m: None)
        assert list(workspace_base.iterdir()) == []

    def test_firing_after_timeout_ignored(self, workspaces):
        factory = _factory(deferred=0.3)
        calls = []
        driver = EvaluationDriver(factory, workspaces, callback_timeout=0.05)
        with pytest.raises(EvaluationError, match="did not evaluate the project"):
            driver.evaluate(b"", calls.append)
        engine = factory.engines[0]
        engine.callback_thread.join()
        assert calls == []
        assert engine.thread_errors == []

    def test_synchronous_engine_not_waited_on(self, workspaces):
        factory = _factory(fire=False)
        driver = EvaluationDriver(factory, workspaces, callback_timeout=30)
        with patch("gradle_runtime.driver.Future.exception", side_effect=AssertionError):
            with pytest.raises(EvaluationError, match="finished without evaluating"):
                driver.evaluate(b"", lambda m: None)


class TestFailures:
    def test_engine_error_wrapped(self, workspaces, workspace_base):
        factory = _factory(fire=False, error=RuntimeError("engine exploded"))
        with pytest.raises(EvaluationError, match="fake engine failed: engine exploded") as info:
            EvaluationDriver(factory, workspaces).evaluate(b"", lambda m: None)
        assert isinstance(info.value.__cause__, RuntimeError)
        assert factory.engines[0].closed
        assert list(workspace_base.iterdir()) == []

    def test_engine_evaluation_error_passes_through(self, workspaces):
        original = EvaluationError("script error")
        with pytest.raises(EvaluationError) as info:
            EvaluationDriver(_factory(fire=False, error=original), workspaces).evaluate(b"", lambda m: None)
        assert info.value is original

    def test_callback_error_wrapped(self, workspaces, workspace_base):
        def on_ready(model):
            raise KeyError("missing")

        with pytest.raises(EvaluationError, match="model callback failed") as info:
            EvaluationDriver(_factory(), workspaces).evaluate(b"", on_ready)
        assert isinstance(info.value.__cause__, KeyError)
        assert list(workspace_base.iterdir()) == []

    def test_callback_error_on_engine_thread_wrapped(self, workspaces):
        def on_ready(model):
            raise ValueError("bad model")

        with pytest.raises(EvaluationError, match="model callback failed"):
            EvaluationDriver(_factory(on_thread=True), workspaces).evaluate(b"", on_ready)

    def test_callback_evaluation_error_passes_through(self, workspaces):
        original = EvaluationError("no runtime configuration")

        def on_ready(model):
            raise original

        with pytest.raises(EvaluationError) as info:
            EvaluationDriver(_factory(), workspaces).evaluate(b"", on_ready)
        assert info.value is original

    def test_callback_never_fired(self, workspaces, workspace_base):
        with pytest.raises(EvaluationError, match="without evaluating the project"):
            EvaluationDriver(_factory(fire=False), workspaces).evaluate(b"", lambda m: None)
        assert list(workspace_base.iterdir()) == []

    def test_only_first_firing_counts(self, workspaces):
        calls = []
        result = EvaluationDriver(_factory(fire_count=3), workspaces).evaluate(
            b"", lambda m: calls.append(m) or len(calls)
        )
        assert result == 1
        assert len(calls) == 1

    def test_descriptor_label_attached(self, workspaces):
        with pytest.raises(GradleRuntimeError) as info:
            EvaluationDriver(_factory(fire=False), workspaces).evaluate(
                b"", lambda m: None, descriptor_label="com.acme:widget"
            )
        assert info.value.descriptor == "com.acme:widget"
        assert "com.acme:widget" in str(info.value)

    def test_workspace_error_propagates(self, workspaces):
        with patch("gradle_runtime.workspace.tempfile.mkdtemp", side_effect=OSError("disk full")):
            with pytest.raises(WorkspaceError):
                EvaluationDriver(_factory(), workspaces).evaluate(b"", lambda m: None)

    def test_cleanup_failure_attached_to_evaluation_error(self, workspaces):
        with patch("gradle_runtime.workspace.shutil.rmtree", side_effect=OSError("busy")):
            with pytest.raises(EvaluationError) as info:
                EvaluationDriver(_factory(fire=False), workspaces).evaluate(b"", lambda m: None)
        assert isinstance(info.value.suppressed[0], WorkspaceError)

    def test_models_keyed_by_descriptor(self, workspaces, tmp_path):
        model = java_project(tmp_path, runtime=["com.acme:widget:1.2.0"])
        factory = FakeEngineFactory(build=lambda: FakeEngine({b"widget": model}))
        deps = EvaluationDriver(factory, workspaces).evaluate(
            b"widget", lambda m: m.all_dependencies("runtime")
        )
        assert [d.name for d in deps] == ["widget"]
