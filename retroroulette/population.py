"""
Background population of leaf categories.

Sources run on a worker thread and produce a complete replacement list. The
result is only installed when the control thread calls ``try_finish()``, so a
leaf is never seen half populated, and a failed or cancelled refresh leaves the
previous list in place.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
from typing import Any, Dict, List, Optional

from .nodes import LeafCategory, iter_leaves, SelectionNode
from .sources import MameCatalog, RefreshCancelled

log = logging.getLogger(__name__)

STATUS_RUNNING = "running"
STATUS_OK = "ok"
STATUS_CANCELLED = "cancelled"
STATUS_ERROR = "error"


class BackgroundTask:
    """Work that runs on a pool thread and is committed from the control thread."""

    _executor = concurrent.futures.ThreadPoolExecutor(max_workers=4, thread_name_prefix="RR-Populate")
    label = "task"

    def __init__(self, executor: Optional[concurrent.futures.Executor] = None):
        self.status = STATUS_RUNNING
        self.error = ""
        self._cancel_event = threading.Event()
        self._finished = False
        self._future = (executor or self._executor).submit(self._work)

    def _work(self) -> Any:
        raise NotImplementedError

    def _commit(self, result: Any) -> None:
        raise NotImplementedError

    @property
    def is_running(self) -> bool:
        return not self._future.done()

    def cancel(self) -> None:
        self._cancel_event.set()
        self._future.cancel()

    def wait(self, timeout: Optional[float] = None) -> None:
        concurrent.futures.wait([self._future], timeout=timeout)

    def try_finish(self) -> bool:
        """Commit the result if the work is done. Call from the control thread only."""
        if self._finished:
            return True
        if not self._future.done():
            return False
        self._finished = True

        try:
            if self._cancel_event.is_set() or self._future.cancelled():
                raise RefreshCancelled()
            result = self._future.result()
        except RefreshCancelled:
            self.status = STATUS_CANCELLED
            log.info("Refresh cancelled: %s", self.label)
            return True
        except Exception as e:
            self.status = STATUS_ERROR
            self.error = str(e)
            log.error("Refresh failed for %s: %s", self.label, e)
            return True

        self._commit(result)
        self.status = STATUS_OK
        return True


class PopulationTask(BackgroundTask):
    """Refreshes one leaf off the control thread."""

    def __init__(self, leaf: LeafCategory, executor: Optional[concurrent.futures.Executor] = None):
        self.leaf = leaf
        self.source = leaf.source
        self.label = leaf.name or leaf.node_id
        super().__init__(executor)

    def _work(self):
        items = self.source.refresh(self._cancel_event)
        if self._cancel_event.is_set():
            raise RefreshCancelled()
        return self.source.build_selectables(items, self.leaf.node_id)

    def _commit(self, selectables) -> None:
        self.leaf.install(selectables)
        log.info("Refresh done: %s (%d games)", self.label, len(selectables))


class MameCatalogTask(BackgroundTask):
    """Reloads the shared MAME machine list."""

    label = "MAME catalog"

    def __init__(self, catalog: MameCatalog, executor: Optional[concurrent.futures.Executor] = None):
        self.catalog = catalog
        super().__init__(executor)

    def _work(self):
        return self.catalog.refresh(self._cancel_event)

    def _commit(self, systems) -> None:
        self.catalog.install(systems)


class PopulationManager:
    """Tracks running refreshes, mirroring a UI loop that polls once per frame."""

    def __init__(self, executor: Optional[concurrent.futures.Executor] = None):
        self.executor = executor
        self.tasks: List[BackgroundTask] = []
        self.last_status: Dict[str, str] = {}
        self.last_error: Dict[str, str] = {}

    def refresh_leaf(self, leaf: LeafCategory) -> Optional[PopulationTask]:
        if leaf.source is None:
            return None
        task = PopulationTask(leaf, self.executor)
        self.tasks.append(task)
        self.last_status[leaf.node_id] = STATUS_RUNNING
        return task

    def refresh_all(self, root: SelectionNode) -> List[PopulationTask]:
        started = []
        for leaf in iter_leaves(root):
            task = self.refresh_leaf(leaf)
            if task is not None:
                started.append(task)
        return started

    def refresh_catalog(self, catalog: MameCatalog) -> MameCatalogTask:
        task = MameCatalogTask(catalog, self.executor)
        self.tasks.append(task)
        return task

    def poll(self) -> List[BackgroundTask]:
        """Finish every completed task and return them."""
        finished = []
        for task in list(self.tasks):
            if task.try_finish():
                self.tasks.remove(task)
                finished.append(task)
                leaf = getattr(task, 'leaf', None)
                if leaf is not None:
                    self.last_status[leaf.node_id] = task.status
                    self.last_error[leaf.node_id] = task.error
        return finished

    def wait_all(self, timeout: Optional[float] = None) -> List[BackgroundTask]:
        """Block until every task is done, then poll. Meant for the CLI."""
        deadline = None if timeout is None else time.monotonic() + timeout
        for task in list(self.tasks):
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            task.wait(remaining)
        return self.poll()

    def abort_all(self) -> None:
        for task in self.tasks:
            task.cancel()

    @property
    def busy(self) -> bool:
        return any(task.is_running for task in self.tasks)
