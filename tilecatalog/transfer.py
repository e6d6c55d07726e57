"""
The batch transfer queue.

Upload tasks are drained strictly one at a time, in submission order, so
there is never more than one request to the catalog in flight. A failing
task is reported on its own and the queue moves on; once the queue is
empty the successfully created records are handed over in a single
batch-completion callback.
"""

import asyncio
from collections import deque
from enum import Enum
from typing import TYPE_CHECKING, Callable

import structlog
from pydantic import BaseModel, Field

from .records import Progress, TileRecord

if TYPE_CHECKING:
    from .catalog.core import TileCatalog


class BatchInProgress(Exception):
    """Raised when a new batch is started while the queue is draining."""

    pass


class DrainPolicy(str, Enum):
    EAGER = "eager"
    "Start draining on the first submission."
    COUNTED = "counted"
    "Start draining once the expected number of tasks has been submitted."


class UploadTask(BaseModel):
    name: str = Field(description="Display name of the file, used in notifications.")
    payload: bytes
    z: str
    x: str
    y: str
    content_type: str = "image/jpeg"
    on_success: Callable[[TileRecord], None] | None = None
    on_error: Callable[[Exception], None] | None = None


class BatchState(BaseModel):
    expected: int = 0
    submitted: int = 0
    completed: int = 0
    failed: int = 0
    published: int = 0
    produced: list[TileRecord] = []

    @property
    def total(self) -> int:
        return max(self.expected, self.submitted)

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 0

        return round(self.completed / self.total * 100)


class TransferQueue:
    catalog: "TileCatalog"
    policy: DrainPolicy
    state: BatchState
    last_batch: BatchState | None

    def __init__(
        self,
        catalog: "TileCatalog",
        policy: DrainPolicy = DrainPolicy.EAGER,
        on_progress: Callable[[Progress], None] | None = None,
        on_batch_complete: Callable[[list[TileRecord]], None] | None = None,
        notify: Callable[[str, str], None] | None = None,
    ):
        self.catalog = catalog
        self.policy = policy
        self.on_progress = on_progress
        self.on_batch_complete = on_batch_complete
        self.notify = notify

        self.state = BatchState()
        self.last_batch = None
        self.logger = structlog.get_logger()

        self._tasks: deque[UploadTask] = deque()
        self._draining = False
        self._drain_task: asyncio.Task | None = None

    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _publish(self, progress: Progress):
        if self.on_progress is not None:
            self.on_progress(progress)

    def expect(self, count: int):
        """
        Announce the size of the next batch, from a snapshot of the files
        about to be submitted.
        """
        if self._draining:
            raise BatchInProgress(
                f"Cannot start a batch of {count} while {self.pending} uploads are pending"
            )

        self.state.expected = count
        self._publish(Progress(is_uploading=False, percent=0))

    def submit(self, task: UploadTask):
        """
        Append a task to the queue, starting a drain if the policy allows.
        Must be called from a running event loop.
        """
        self._tasks.append(task)
        self.state.submitted += 1

        log = self.logger.bind(task=task.name, pending=self.pending)
        log.debug("transfer.submitted")

        if self._draining:
            return

        if self.policy == DrainPolicy.EAGER or self.pending >= self.state.expected:
            self._start()

    def _start(self):
        self._draining = True
        self._drain_task = asyncio.get_running_loop().create_task(self._drain_loop())

    async def drain(self):
        """
        Drain whatever is queued, regardless of policy, and wait for the
        batch to finish.
        """
        if not self._draining and self._tasks:
            self._start()

        await self.join()

    async def join(self):
        if self._drain_task is not None:
            await self._drain_task

    def _call(self, log, callback, *args):
        # A raising callback must not stop the drain loop.
        try:
            callback(*args)
        except Exception:
            name = getattr(callback, "__name__", repr(callback))
            log.exception("transfer.callback.failed", callback=name)

    async def _run(self, task: UploadTask):
        log = self.logger.bind(task=task.name, z=task.z, x=task.x, y=task.y)

        try:
            record = await self.catalog.create(
                task.z, task.x, task.y, task.payload, task.content_type
            )
        except Exception as e:
            self.state.failed += 1
            log.error("transfer.task.failed", error=str(e))

            if task.on_error is not None:
                self._call(log, task.on_error, e)

            if self.notify is not None:
                self._call(log, self.notify, "error", f"{task.name}: {e}")

            return

        self.state.produced.append(record)
        log.info("transfer.task.completed", tile_id=record.id)

        if task.on_success is not None:
            self._call(log, task.on_success, record)

    async def _drain_loop(self):
        log = self.logger.bind(total=self.state.total)
        log.info("transfer.drain.started")

        self._publish(Progress(is_uploading=True, percent=0))

        try:
            while self._tasks:
                task = self._tasks.popleft()
                await self._run(task)
                self.state.completed += 1

                # 100% is only ever published once, after the batch drains.
                if self._tasks:
                    percent = max(self.state.published, min(99, self.state.percent))
                    self.state.published = percent
                    self._publish(Progress(is_uploading=True, percent=percent))

            if self.state.produced and self.on_batch_complete is not None:
                self._call(log, self.on_batch_complete, list(self.state.produced))

            if self.notify is not None:
                self._call(log, self.notify, "success", "All uploads finished")
        finally:
            log = log.bind(
                completed=self.state.completed,
                succeeded=len(self.state.produced),
                failed=self.state.failed,
            )
            log.info("transfer.drain.finished")

            self.last_batch = self.state
            self.state = BatchState()
            self._draining = False
            self._publish(Progress(is_uploading=False, percent=100))
