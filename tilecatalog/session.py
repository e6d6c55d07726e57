"""
A catalog session: the single owner of one hierarchy index, one transfer
queue and one delete resolver for a user's session.
"""

from typing import Callable

import structlog

from . import index, uploads
from .catalog.core import TileCatalog
from .index import TreeNode
from .records import DeleteResult, Progress, TileRecord
from .resolver import DeleteResolver, NothingToDelete
from .transfer import BatchInProgress, DrainPolicy, TransferQueue, UploadTask


class CatalogSession:
    """
    Keeps the index in step with the catalog. The index is rebuilt on
    ``load`` and then only ever changed by completed uploads and deletes,
    never while a batch is draining.
    """

    catalog: TileCatalog
    tree: list[TreeNode]
    queue: TransferQueue
    resolver: DeleteResolver

    def __init__(
        self,
        catalog: TileCatalog,
        policy: DrainPolicy = DrainPolicy.EAGER,
        on_progress: Callable[[Progress], None] | None = None,
        on_uploaded: Callable[[list[TileRecord]], None] | None = None,
        on_deleted: Callable[[list[TileRecord]], None] | None = None,
        notify: Callable[[str, str], None] | None = None,
    ):
        self.catalog = catalog
        self.tree = []
        self.on_uploaded = on_uploaded
        self.notify = notify or self._log_notification
        self.logger = structlog.get_logger()

        self.queue = TransferQueue(
            catalog=catalog,
            policy=policy,
            on_progress=on_progress,
            on_batch_complete=self._fold_uploaded,
            notify=self.notify,
        )
        self.resolver = DeleteResolver(
            catalog=catalog, on_deleted=on_deleted, notify=self.notify
        )

    async def __aenter__(self):
        try:
            await self.load()
        except BaseException:
            await self.close()
            raise

        return self

    async def __aexit__(self, *args):
        await self.close()

    def _log_notification(self, level: str, message: str):
        log = self.logger.bind(notification=message)

        if level == "error":
            log.error("session.notify")
        elif level == "warning":
            log.warning("session.notify")
        else:
            log.info("session.notify")

    async def load(self) -> list[TreeNode]:
        """
        Rebuild the index from the catalog. If the catalog cannot be read
        the exception propagates and the current index is left untouched.
        """
        records = await self.catalog.list_all()
        self.tree = index.build(records)

        self.logger.info("session.loaded", records=len(records), roots=len(self.tree))

        return self.tree

    async def close(self):
        await self.queue.join()
        self.tree = []

        if hasattr(self.catalog, "aclose"):
            await self.catalog.aclose()

    def _fold_uploaded(self, records: list[TileRecord]):
        for record in records:
            self.tree = index.insert(self.tree, record)

        if self.on_uploaded is not None:
            self.on_uploaded(records)

    async def _upload(
        self,
        tasks: list[UploadTask],
        rejected: list[tuple[uploads.TileFile, uploads.ValidationFailure]],
    ) -> list[TileRecord]:
        for file, failure in rejected:
            self.logger.warning("session.upload.rejected", file=file.name, reason=str(failure))
            self.notify("error", str(failure))

        if not tasks:
            return []

        self.queue.expect(len(tasks))

        for task in tasks:
            self.queue.submit(task)

        await self.queue.join()

        return list(self.queue.last_batch.produced)

    async def upload_folder(self, files: list[uploads.TileFile]) -> list[TileRecord]:
        """
        Upload files laid out as ``z/x/y.jpg``. Returns the records that
        were created; rejected and failed files are reported via ``notify``.
        """
        tasks, rejected = uploads.prepare_folder(files)
        return await self._upload(tasks, rejected)

    async def upload_into(
        self, selected_key: str | None, files: list[uploads.TileFile]
    ) -> list[TileRecord]:
        """
        Upload ``y.jpg`` files into the selected ``z/x`` folder.
        """
        tasks, rejected = uploads.prepare_single(self.tree, selected_key, files)
        return await self._upload(tasks, rejected)

    async def delete(self, keys: list[str]) -> DeleteResult:
        """
        Delete everything under the selected node keys.

        Raises
        ------
        BatchInProgress
            If uploads are still draining.
        NothingToDelete
            If no selected key describes a tile or folder.
        """
        if self.queue.is_draining:
            raise BatchInProgress("Cannot delete while uploads are in progress")

        if not keys:
            self.notify("error", "Select the tiles or folders to delete first")
            raise NothingToDelete("Empty selection")

        try:
            self.tree, result = await self.resolver.delete(self.tree, keys)
        except NothingToDelete as e:
            self.notify("error", str(e))
            raise

        return result
