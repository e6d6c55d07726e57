"""
Turns an arbitrary selection of tree nodes into the smallest set of
coordinate prefixes to delete, then performs the cascading delete against
the catalog and folds the result back into the index.
"""

from typing import TYPE_CHECKING, Callable, Iterable

import structlog

from . import index
from .index import TreeNode
from .keys import MalformedKey, decode
from .records import DeleteResult, Prefix, TileRecord

if TYPE_CHECKING:
    from .catalog.core import TileCatalog


class NothingToDelete(Exception):
    """Raised when a selection resolves to no deletable prefix."""

    pass


def minimize(keys: Iterable[str]) -> list[str]:
    """
    Keep only the selected keys that have no selected ancestor. Keys that
    do not decode are dropped; duplicates collapse to their first
    occurrence.

    Selecting ``z_1``, ``z_1_x_2`` and ``z_1_x_2_y_3`` yields ``["z_1"]``;
    selecting ``z_1_x_2`` and ``z_1_x_5`` keeps both.
    """
    log = structlog.get_logger()

    decoded: list[tuple[str, Prefix]] = []
    for key in keys:
        try:
            prefix = decode(key)
        except MalformedKey:
            log.debug("resolver.malformed", key=str(key))
            continue

        if any(p == prefix for _, p in decoded):
            continue

        decoded.append((str(key), prefix))

    kept = [
        key
        for key, prefix in decoded
        if not any(other.is_ancestor_of(prefix) for _, other in decoded)
    ]

    log.debug("resolver.minimized", selected=len(decoded), kept=len(kept))

    return kept


class DeleteResolver:
    """
    Resolves a selection of keys and deletes the matching tiles through a
    catalog.
    """

    catalog: "TileCatalog"
    on_deleted: Callable[[list[TileRecord]], None] | None
    notify: Callable[[str, str], None] | None

    def __init__(
        self,
        catalog: "TileCatalog",
        on_deleted: Callable[[list[TileRecord]], None] | None = None,
        notify: Callable[[str, str], None] | None = None,
    ):
        self.catalog = catalog
        self.on_deleted = on_deleted
        self.notify = notify
        self.logger = structlog.get_logger()

    def prefixes(self, keys: Iterable[str]) -> list[Prefix]:
        return [decode(key) for key in minimize(keys)]

    async def delete(
        self, tree: list[TreeNode], keys: Iterable[str]
    ) -> tuple[list[TreeNode], DeleteResult]:
        """
        Delete everything under the selected keys.

        Raises
        ------
        NothingToDelete
            If the selection holds no valid key. No request is made.
        """
        keys = list(keys)
        prefixes = self.prefixes(keys)

        if not prefixes:
            raise NothingToDelete(f"No valid tiles or folders among {len(keys)} selected")

        log = self.logger.bind(prefixes=[str(p) for p in prefixes])
        log.info("resolver.delete.started")

        result = await self.catalog.delete_by_prefixes(prefixes)

        if not result.deleted_records:
            log.info("resolver.delete.nothing_matched")
            if self.notify is not None:
                self.notify(
                    "warning", f"No tiles found under {', '.join(map(str, prefixes))}"
                )
            return tree, result

        tree = index.remove_many(tree, result.deleted_records)

        log = log.bind(deleted=result.deleted_count, failed_objects=len(result.failed_objects))
        log.info("resolver.delete.completed")

        if self.notify is not None:
            self.notify("success", f"Deleted {result.deleted_count} tile records")
            if result.failed_objects:
                self.notify(
                    "warning",
                    f"{len(result.failed_objects)} tile images could not be removed from storage",
                )

        if self.on_deleted is not None:
            self.on_deleted(list(result.deleted_records))

        return tree, result
