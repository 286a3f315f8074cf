"""Worker pool that uploads the sheets of one document concurrently.

One dispatch loop (the caller's thread) and ``workers`` long-lived worker
threads share two queues:

- the task queue, on which the dispatch loop hands one ``UploadTask`` at a
  time to a free worker
- the result queue, on which each worker reports exactly one
  ``UploadResult`` per task it started

A worker counts as free while the number of handed-off but not yet drained
tasks is below the pool size. Each turn of the dispatch loop either hands off
the next sheet, when a worker is free, or waits for a result, so a full pool
and a pending result can never block each other.

The first failed result aborts the run: dispatching stops, the shared
cancellation flag fires and the error is raised once the workers had a bounded
amount of time to exit. Pipeline state lives in the dispatch loop only;
workers never see more than the two queues and the cancellation flag.
"""

from __future__ import annotations

import dataclasses
import logging
import queue
import threading
import time
from collections import deque
from collections.abc import Iterable

from sheets_uploader.cancellation import Cancellation
from sheets_uploader.exceptions import ConfigError, RunCancelled, UploaderError, WriteError
from sheets_uploader.logging_config import LogContext
from sheets_uploader.models import (
    Outcome,
    PipelineReport,
    RunState,
    Sheet,
    UploadResult,
    UploadTask,
)
from sheets_uploader.store import BlobStore
from sheets_uploader.templates import Template
from sheets_uploader.uploader import UploadOptions, upload_sheet

DEFAULT_POLL_INTERVAL = 0.05
DEFAULT_SHUTDOWN_TIMEOUT = 5.0


@dataclasses.dataclass
class PipelineState:
    remaining: deque[Sheet]
    outstanding: int = 0
    changed_paths: list[str] = dataclasses.field(default_factory=list)
    skipped: int = 0
    written: int = 0

    @property
    def results(self) -> int:
        return self.skipped + self.written

    @property
    def finished(self) -> bool:
        return not self.remaining and self.outstanding == 0


class UploadScheduler:
    def __init__(
        self,
        store: BlobStore,
        file_template: Template,
        options: UploadOptions,
        workers: int,
        *,
        cancellation: Cancellation | None = None,
        logger: logging.Logger | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
    ) -> None:
        if workers < 1:
            raise ConfigError(f"invalid number of workers: {workers}", context={"workers": workers})
        if poll_interval <= 0:
            raise ConfigError("poll_interval must be positive", context={"poll_interval": poll_interval})
        self.store = store
        self.file_template = file_template
        self.options = options
        self.workers = workers
        self.cancellation = cancellation or Cancellation()
        self.logger = logger or logging.getLogger("sheets-uploader")
        self.poll_interval = poll_interval
        self.shutdown_timeout = max(0.0, shutdown_timeout)
        self.state: RunState | None = None

    def run(self, sheets: Iterable[Sheet], directory: str) -> PipelineReport:
        """Upload every sheet below ``directory``.

        Raises:
            UploaderError: The first failed upload; remaining sheets may or may
                not have been attempted.
            RunCancelled: The shared cancellation flag fired before the run
                completed and before any upload failed.
        """
        pipeline = PipelineState(remaining=deque(sheets))
        tasks: queue.Queue[UploadTask | None] = queue.Queue()
        results: queue.Queue[UploadResult] = queue.Queue()

        self.logger.info("%d upload workers", self.workers)
        threads = [
            threading.Thread(
                target=self._work,
                args=(worker_id, tasks, results),
                name=f"upload-worker-{worker_id}",
                daemon=True,
            )
            for worker_id in range(self.workers)
        ]
        for thread in threads:
            thread.start()

        self.state = RunState.DISPATCHING if pipeline.remaining else RunState.DRAINING
        try:
            self._dispatch(pipeline, directory, tasks, results)
        except BaseException:
            self.state = RunState.ABORTED
            self.cancellation.cancel("run aborted")
            raise
        finally:
            for _ in threads:
                tasks.put(None)
            self._join(threads)

        self.state = RunState.COMPLETED
        self.logger.info(
            "uploaded %d sheets: %d written, %d unchanged",
            pipeline.results,
            pipeline.written,
            pipeline.skipped,
        )
        return PipelineReport(
            state=self.state,
            results=pipeline.results,
            skipped=pipeline.skipped,
            written=pipeline.written,
            changed_paths=tuple(pipeline.changed_paths),
        )

    def _dispatch(
        self,
        pipeline: PipelineState,
        directory: str,
        tasks: queue.Queue[UploadTask | None],
        results: queue.Queue[UploadResult],
    ) -> None:
        while not pipeline.finished:
            if self.cancellation.cancelled:
                raise RunCancelled(
                    f"run cancelled: {self.cancellation.reason}",
                    context={
                        "remaining": len(pipeline.remaining),
                        "outstanding": pipeline.outstanding,
                    },
                )
            if pipeline.remaining and pipeline.outstanding < self.workers:
                tasks.put(UploadTask(pipeline.remaining.popleft(), directory))
                pipeline.outstanding += 1
                if not pipeline.remaining:
                    self.state = RunState.DRAINING
                continue
            try:
                result = results.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
            pipeline.outstanding -= 1
            if result.outcome is Outcome.FAILED:
                error = result.error or WriteError(f"upload of {result.path!r} failed")
                self.logger.error("upload failed, aborting run: %s", error, extra=error.as_log_fields())
                self.state = RunState.ABORTED
                self.cancellation.cancel(f"upload failed: {error.code}")
                raise error
            if result.outcome is Outcome.SKIPPED:
                pipeline.skipped += 1
            else:
                pipeline.written += 1
                pipeline.changed_paths.append(result.changed_path)

    def _work(
        self,
        worker_id: int,
        tasks: queue.Queue[UploadTask | None],
        results: queue.Queue[UploadResult],
    ) -> None:
        while not self.cancellation.cancelled:
            try:
                task = tasks.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
            if task is None:
                return
            if self.cancellation.cancelled:
                self.logger.debug("worker %d abandoning %r", worker_id, task.sheet.title)
                return
            results.put(self._upload(worker_id, task))

    def _upload(self, worker_id: int, task: UploadTask) -> UploadResult:
        with LogContext(worker=worker_id, sheet=task.sheet.title):
            try:
                return upload_sheet(
                    task.sheet,
                    task.directory,
                    self.file_template,
                    self.store,
                    self.options,
                    logger=self.logger,
                )
            except UploaderError as exc:
                return UploadResult.failed(exc.context.get("path", ""), exc)
            except Exception as exc:
                self.logger.exception("unexpected error uploading %r", task.sheet.title)
                return UploadResult.failed(
                    "",
                    WriteError(
                        f"unexpected error uploading sheet {task.sheet.title!r}: {exc}",
                        context={"sheet": task.sheet.title},
                    ),
                )

    def _join(self, threads: list[threading.Thread]) -> None:
        deadline = time.monotonic() + self.shutdown_timeout
        for thread in threads:
            thread.join(max(0.0, deadline - time.monotonic()))
        stuck = [thread.name for thread in threads if thread.is_alive()]
        if stuck:
            self.logger.warning("workers still busy after shutdown: %s", ", ".join(stuck))
