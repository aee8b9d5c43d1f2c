"""Tests for the polling Manager."""

from __future__ import annotations

import threading

import pytest

from controlspine.manager import Manager


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def manager(store, settings, clock):
    return Manager(store, settings=settings, clock=clock)


class TestRunOnce:
    def test_reconciles_executions_and_notebooks(self, store, manager, make_template, make_dag, make_execution, make_notebook):
        make_template()
        make_dag("pipeline", "t1", [{"name": "t1"}])
        make_execution("run", "pipeline")
        make_notebook("nb")

        stats = manager.run_once()

        assert stats.passes == 1
        assert stats.reconciled == 2
        assert stats.errors == 0
        assert [j.metadata.name for j in store.list("Job")] == ["run-t1"]
        assert [p.metadata.name for p in store.list("Pod")] == ["nb"]

    def test_requeue_delay_respected(self, store, manager, clock, make_template, make_dag, make_execution, finish_job):
        make_template()
        make_dag("pipeline", "t1", [{"name": "t1"}])
        make_execution("run", "pipeline")

        manager.run_once()
        finish_job("run-t1")

        clock.now += 5.0
        stats = manager.run_once()
        assert stats.skipped == 1
        assert store.get("Execution", "default", "run").status.completed is False

        clock.now += 5.0
        manager.run_once()
        assert store.get("Execution", "default", "run").status.succeeded is True

    def test_errors_counted_not_raised(self, store, manager, make_execution):
        make_execution("run", "absent")

        stats = manager.run_once()

        assert stats.errors == 1
        assert stats.reconciled == 0
        assert "absent" in stats.last_error

    def test_failed_object_retried_next_pass(self, store, manager, make_template, make_dag, make_execution):
        make_execution("run", "pipeline")
        manager.run_once()

        make_template()
        make_dag("pipeline", "t1", [{"name": "t1"}])
        stats = manager.run_once()

        assert stats.errors == 1
        assert stats.reconciled == 1
        assert store.list("Job")

    def test_malformed_fragment_counted_per_object(self, store, manager, make_template, make_pod_default, make_notebook):
        make_pod_default("broken", {"spec": "oops"})
        make_template(required=("broken",))
        make_notebook("nb1")
        make_notebook("nb2")

        stats = manager.run_once()

        assert stats.errors == 2
        assert stats.reconciled == 0
        assert "spec" in stats.last_error
        assert store.list("Pod") == []

    def test_unexpected_exception_does_not_stop_pass(self, store, manager, make_template, make_notebook):
        make_template()
        make_notebook("nb1")
        make_notebook("nb2")
        real = manager.controllers["Notebook"]

        class Crashing:
            def reconcile(self, key):
                if key.name == "nb1":
                    raise RuntimeError("boom")
                return real.reconcile(key)

        manager.controllers["Notebook"] = Crashing()
        stats = manager.run_once()

        assert stats.errors == 1
        assert stats.reconciled == 1
        assert stats.last_error == "boom"
        assert [p.metadata.name for p in store.list("Pod")] == ["nb2"]

    def test_crashed_object_retried_next_pass(self, store, manager, make_template, make_notebook):
        make_template()
        make_notebook("nb1")
        real = manager.controllers["Notebook"]
        calls = []

        class CrashOnce:
            def reconcile(self, key):
                calls.append(key.name)
                if len(calls) == 1:
                    raise KeyError("status")
                return real.reconcile(key)

        manager.controllers["Notebook"] = CrashOnce()
        manager.run_once()
        stats = manager.run_once()

        assert calls == ["nb1", "nb1"]
        assert stats.errors == 1
        assert stats.reconciled == 1

    def test_garbage_collected_each_pass(self, store, manager, make_template, make_dag, make_execution):
        make_template()
        make_dag("pipeline", "t1", [{"name": "t1"}])
        run = make_execution("run", "pipeline")
        manager.run_once()

        store.delete(run)
        stats = manager.run_once()

        assert stats.collected == 1
        assert store.list("Job") == []


class TestRun:
    def test_stops_when_event_set(self, manager):
        stop = threading.Event()
        stop.set()
        manager.run(interval=0.01, stop_event=stop)
        assert manager.stats.passes == 1
