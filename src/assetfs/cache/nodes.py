"""Tree nodes for a project's assets.

The remote store lists assets flat, each with a numeric ``parent`` id. The
tree is rebuilt locally through an id-indexed arena: every record becomes a
node first, then nodes are linked under their parents. Parent chains are
checked for cycles before linking so a corrupt listing fails fast instead of
looping.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime

from assetfs.errors import StructuralError
from assetfs.service.base import AssetRecord

logger = logging.getLogger(__name__)


@dataclass
class Node:
    """Fields shared by folders and files. ``id`` never changes; ``name`` can."""

    id: int
    name: str
    parent_id: int | None
    created_at: datetime
    modified_at: datetime


@dataclass
class Directory(Node):
    """A folder asset, or the synthetic root of a project."""

    children: dict[str, Node] = field(default_factory=dict)


@dataclass
class FileAsset(Node):
    """A typed leaf asset. ``content`` is filled in on first read."""

    hash: str = ""
    size: int = 0
    remote_type: str = ""
    filename: str = ""
    content: bytes | None = None


def node_from_record(record: AssetRecord) -> Node:
    """Build a node from remote metadata, discriminating on the remote type tag."""
    if record.is_folder:
        return Directory(
            id=record.id,
            name=record.name,
            parent_id=record.parent,
            created_at=record.created_at,
            modified_at=record.modified_at,
        )
    info = record.file
    return FileAsset(
        id=record.id,
        name=record.display_name,
        parent_id=record.parent,
        created_at=record.created_at,
        modified_at=record.modified_at,
        hash=info.hash if info else "",
        size=info.size if info else 0,
        remote_type=record.type,
        filename=info.filename if info else record.name,
    )


def merge_record(node: FileAsset, record: AssetRecord, content: bytes | None = None) -> FileAsset:
    """Overwrite a file node's top-level metadata with a fresh remote record.

    The merge is shallow: every field the record carries replaces the cached
    one wholesale, and ``content`` becomes whatever the caller passes (the
    bytes just written, or ``None`` to force a re-read).
    """
    if node.id != record.id:
        raise StructuralError(f"Cannot merge asset {record.id} into cached node {node.id}")
    fresh = node_from_record(record)
    if not isinstance(fresh, FileAsset):
        raise StructuralError(f"Asset {record.id} changed from file to folder")
    return replace(fresh, content=content)


def _check_cycles(parents: dict[int, int | None]) -> None:
    """Raise StructuralError if any parent chain loops back on itself."""
    terminated: set[int] = set()
    for start in parents:
        chain: list[int] = []
        seen: set[int] = set()
        current: int | None = start
        while current is not None and current in parents and current not in terminated:
            if current in seen:
                raise StructuralError(
                    f"Asset parent chain forms a cycle: {' -> '.join(map(str, [*chain, current]))}"
                )
            seen.add(current)
            chain.append(current)
            current = parents[current]
        terminated.update(chain)


def build_tree(records: list[AssetRecord], root: Directory) -> Directory:
    """Link flat asset records into ``root`` and return it.

    Assets without a parent, or whose parent is missing from the listing,
    hang directly off the root.
    """
    arena: dict[int, Node] = {}
    parents: dict[int, int | None] = {}
    for record in records:
        if record.id in arena:
            raise StructuralError(f"Duplicate asset id {record.id} in listing")
        arena[record.id] = node_from_record(record)
        parents[record.id] = record.parent

    _check_cycles(parents)

    for record in records:
        node = arena[record.id]
        parent: Node | None = root
        if record.parent is not None:
            parent = arena.get(record.parent)
            if parent is None:
                logger.warning(
                    "Asset %s (%s) references missing parent %s, attaching at root",
                    record.id, record.name, record.parent,
                )
                parent = root
        if not isinstance(parent, Directory):
            raise StructuralError(f"Asset {record.id} is parented to non-folder {record.parent}")
        if node.name in parent.children:
            logger.warning("Duplicate name %r under %s, keeping asset %s", node.name, parent.name, node.id)
        parent.children[node.name] = node

    return root
