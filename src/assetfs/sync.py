"""Optimistic-concurrency checks run before every upload.

Uploads are conditioned on the last modification time the client knows
about, and the remote store rejects a mismatch. Hashes decide whether a
mismatch is real:

    remote == cached                -> IN_SYNC          (proceed)
    remote != cached, new == remote -> CONTENT_MATCHES  (proceed)
    remote != cached, new != remote -> CONFLICT         (reject; reload first)

When only metadata drifted, the upload is made from a copy of the node
carrying the fresh remote metadata so the precondition is accepted.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from enum import Enum

from assetfs.cache.nodes import FileAsset, merge_record
from assetfs.errors import Conflict
from assetfs.service.base import AssetRecord

logger = logging.getLogger(__name__)


class SyncStatus(Enum):
    IN_SYNC = "in_sync"
    CONTENT_MATCHES = "content_matches"
    CONFLICT = "conflict"


def content_hash(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def evaluate(cached_hash: str, remote_hash: str, write_hash: str) -> SyncStatus:
    if remote_hash == cached_hash:
        return SyncStatus.IN_SYNC
    if write_hash == remote_hash:
        return SyncStatus.CONTENT_MATCHES
    return SyncStatus.CONFLICT


@dataclass
class SyncCheck:
    """Outcome of comparing a cached node against fresh remote metadata."""

    status: SyncStatus
    metadata_drift: bool
    base: FileAsset
    remote: AssetRecord

    @property
    def ok(self) -> bool:
        return self.status is not SyncStatus.CONFLICT


class ConflictDetector:
    """Decides whether a pending write is safe. Never mutates the cached node."""

    def check(self, node: FileAsset, remote: AssetRecord, content: bytes) -> SyncCheck:
        remote_hash = remote.file.hash if remote.file else ""
        status = evaluate(node.hash, remote_hash, content_hash(content))
        drift = remote.modified_at != node.modified_at

        base = node
        if status is not SyncStatus.CONFLICT and drift:
            logger.warning(
                "Asset %s modified remotely but content is in sync, adopting remote metadata",
                node.id,
            )
            base = merge_record(node, remote, content=node.content)

        logger.debug(
            "Sync check for asset %s: cached=%s remote=%s status=%s drift=%s",
            node.id, node.hash, remote_hash, status.value, drift,
        )
        return SyncCheck(status=status, metadata_drift=drift, base=base, remote=remote)

    def ensure_writable(self, node: FileAsset, remote: AssetRecord, content: bytes) -> SyncCheck:
        """Like ``check`` but raises Conflict instead of returning one."""
        result = self.check(node, remote, content)
        if not result.ok:
            raise Conflict(
                f"Asset {node.name!r} was modified remotely, pull the latest version before saving"
            )
        return result
