"""
The tile hierarchy index: a three level tree (z -> x -> y) derived from the
flat list of tile records held by the catalog.

The tree is a cache of the catalog, not an authority. Operations on
coordinates that are not in the tree are silently ignored, and every
operation leaves siblings sorted by the integer value of their own
coordinate segment.
"""

from typing import Iterable, Iterator

import structlog
from pydantic import BaseModel, ConfigDict, Field

from .keys import decode, encode
from .records import TileRecord


class TreeNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str
    title: str = Field(description="Display label; the node's own coordinate segment.")
    children: list["TreeNode"] | None = None
    is_leaf: bool = Field(default=False, alias="isLeaf")
    tile_id: str | None = Field(default=None, alias="tileId")
    file_name: str | None = Field(default=None, alias="fileName")

    @property
    def segment(self) -> int:
        return int(decode(self.key).segments[-1])


def _branch(key: str, title: str) -> TreeNode:
    return TreeNode(key=key, title=title, children=[], is_leaf=False)


def _leaf(record: TileRecord) -> TreeNode:
    return TreeNode(
        key=encode(record.z, record.x, record.y),
        title=record.y,
        is_leaf=True,
        tile_id=record.id,
        file_name=record.file_name,
    )


def _find_child(nodes: list[TreeNode] | None, key: str) -> TreeNode | None:
    for node in nodes or []:
        if node.key == key:
            return node

    return None


def sort(tree: list[TreeNode]) -> list[TreeNode]:
    """
    Sort every level of the tree in place, numerically by coordinate
    segment. ``"10"`` sorts after ``"9"``.
    """
    tree.sort(key=lambda node: node.segment)

    for node in tree:
        if node.children:
            sort(node.children)

    return tree


def build(records: Iterable[TileRecord]) -> list[TreeNode]:
    """
    Build a sorted tree from a flat collection of records. The result does
    not depend on the order of ``records``; repeated coordinates keep the
    first record seen.
    """
    z_nodes: dict[str, TreeNode] = {}
    x_nodes: dict[str, TreeNode] = {}
    seen: set[str] = set()

    for record in records:
        leaf = _leaf(record)
        if leaf.key in seen:
            continue
        seen.add(leaf.key)

        z_key = encode(record.z)
        if (z_node := z_nodes.get(z_key)) is None:
            z_node = z_nodes[z_key] = _branch(z_key, record.z)

        x_key = encode(record.z, record.x)
        if (x_node := x_nodes.get(x_key)) is None:
            x_node = x_nodes[x_key] = _branch(x_key, record.x)
            z_node.children.append(x_node)

        x_node.children.append(leaf)

    return sort(list(z_nodes.values()))


def insert(tree: list[TreeNode], record: TileRecord) -> list[TreeNode]:
    """
    Add a single record, creating the z and (z, x) nodes on demand.
    Inserting a coordinate that is already present is a no-op.
    """
    z_key = encode(record.z)
    if (z_node := _find_child(tree, z_key)) is None:
        z_node = _branch(z_key, record.z)
        tree.append(z_node)

    x_key = encode(record.z, record.x)
    if (x_node := _find_child(z_node.children, x_key)) is None:
        x_node = _branch(x_key, record.x)
        z_node.children.append(x_node)

    leaf = _leaf(record)
    if _find_child(x_node.children, leaf.key) is None:
        x_node.children.append(leaf)

    return sort(tree)


def remove(tree: list[TreeNode], record: TileRecord) -> list[TreeNode]:
    """
    Detach the leaf for ``record`` and prune any parent left without
    children.
    """
    z_key = encode(record.z)
    x_key = encode(record.z, record.x)
    y_key = encode(record.z, record.x, record.y)

    z_node = _find_child(tree, z_key)
    if z_node is None or not z_node.children:
        return tree

    x_node = _find_child(z_node.children, x_key)
    if x_node is None or not x_node.children:
        return tree

    x_node.children = [child for child in x_node.children if child.key != y_key]

    if not x_node.children:
        z_node.children = [child for child in z_node.children if child.key != x_key]

    if not z_node.children:
        return [node for node in tree if node.key != z_key]

    return tree


def remove_many(tree: list[TreeNode], records: Iterable[TileRecord]) -> list[TreeNode]:
    log = structlog.get_logger()
    removed = 0

    for record in records:
        tree = remove(tree, record)
        removed += 1

    log.debug("index.removed", records=removed, roots=len(tree))

    return tree


def find(tree: list[TreeNode], key: str) -> TreeNode | None:
    """
    Look a node up by key, descending one level per key segment.
    """
    prefix = decode(key)
    nodes = tree
    node = None

    for depth in range(1, prefix.level + 1):
        node = _find_child(nodes, encode(*prefix.segments[:depth]))
        if node is None:
            return None
        nodes = node.children

    return node


def node_path(tree: list[TreeNode], key: str) -> list[str]:
    """
    Titles from the root down to the node with ``key``; empty when the node
    is not in the tree.
    """
    prefix = decode(key)
    path = []
    nodes = tree

    for depth in range(1, prefix.level + 1):
        node = _find_child(nodes, encode(*prefix.segments[:depth]))
        if node is None:
            return []
        path.append(node.title)
        nodes = node.children

    return path


def leaves(tree: list[TreeNode]) -> Iterator[TreeNode]:
    for node in tree:
        if node.is_leaf:
            yield node
        elif node.children:
            yield from leaves(node.children)
