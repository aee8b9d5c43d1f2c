"""
Polling dispatcher for the controllers.

Without a watch stream, the ``Manager`` is level-triggered by polling: each
pass lists every Execution and Notebook and reconciles them, skipping
objects whose requested requeue delay has not elapsed yet. Errors from one
object are logged and counted; they do not stop the pass.

Architecture:
    ::

        run(interval)
          └── while not stop_event.wait(interval):
                run_once()
                  ├── ExecutionReconciler.reconcile(key)  per Execution
                  ├── NotebookReconciler.reconcile(key)   per Notebook
                  └── GarbageCollector.collect()          if gc_on_pass

Examples:
    >>> manager = Manager(store)
    >>> stats = manager.run_once()
    >>> stats.passes
    1

Tags:
    manager, dispatcher, polling, requeue
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any

from controlspine.core.errors import ControlError
from controlspine.core.logging import get_logger
from controlspine.core.protocols import ObjectStore
from controlspine.core.result import ReconcileResult
from controlspine.core.settings import ControllerSettings, get_settings
from controlspine.execution.reconciler import ExecutionReconciler
from controlspine.gc import GarbageCollector
from controlspine.notebook.reconciler import NotebookReconciler
from controlspine.resources.meta import ObjectKey, object_key


@dataclass
class ManagerStats:
    passes: int = 0
    reconciled: int = 0
    skipped: int = 0
    errors: int = 0
    collected: int = 0
    last_error: str | None = None


class Manager:
    """Runs every controller over the store, once per pass."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        settings: ControllerSettings | None = None,
        logger: Any = None,
        clock: Any = time.monotonic,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.logger = logger or get_logger(__name__)
        self.clock = clock
        self.controllers = {
            "Execution": ExecutionReconciler(store, settings=self.settings, logger=self.logger),
            "Notebook": NotebookReconciler(store, settings=self.settings, logger=self.logger),
        }
        self.collector = GarbageCollector(store, logger=self.logger)
        self.stats = ManagerStats()
        self._not_before: dict[tuple[str, ObjectKey], float] = {}

    def run_once(self) -> ManagerStats:
        """Reconcile everything that is due, then collect garbage."""
        self.stats.passes += 1
        now = self.clock()
        for kind, controller in self.controllers.items():
            for obj in self.store.list(kind):
                key = object_key(obj)
                if self._not_before.get((kind, key), 0.0) > now:
                    self.stats.skipped += 1
                    continue
                self._dispatch(kind, key, controller)

        if self.settings.gc_on_pass:
            self.stats.collected += len(self.collector.collect())
        return self.stats

    def _dispatch(self, kind: str, key: ObjectKey, controller: Any) -> None:
        try:
            result: ReconcileResult = controller.reconcile(key)
        except ControlError as e:
            self.stats.errors += 1
            self.stats.last_error = str(e)
            self._not_before.pop((kind, key), None)
            self.logger.error("manager.reconcile_failed", kind=kind, object=str(key), **e.to_dict())
            return
        except Exception as e:
            self.stats.errors += 1
            self.stats.last_error = str(e)
            self._not_before.pop((kind, key), None)
            self.logger.exception("manager.reconcile_crashed", kind=kind, object=str(key), error=str(e))
            return

        self.stats.reconciled += 1
        if result.requeue:
            self._not_before[(kind, key)] = self.clock() + result.requeue_after
        else:
            self._not_before.pop((kind, key), None)

    def run(self, interval: float = 5.0, stop_event: threading.Event | None = None) -> None:
        """Run passes every ``interval`` seconds until ``stop_event`` is set."""
        stop_event = stop_event or threading.Event()
        self.logger.info("manager.started", interval=interval)
        self.run_once()
        while not stop_event.wait(interval):
            self.run_once()
        self.logger.info("manager.stopped", passes=self.stats.passes)
