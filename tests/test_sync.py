"""Tests for the write-conflict detector."""

from datetime import timedelta

import pytest

from assetfs.cache.nodes import FileAsset
from assetfs.errors import Conflict
from assetfs.service.base import AssetRecord, FileInfo
from assetfs.sync import ConflictDetector, SyncStatus, content_hash, evaluate

from conftest import T0, md5

LATER = T0 + timedelta(minutes=5)


def cached(data=b"base"):
    return FileAsset(
        id=2, name="player.js", parent_id=None, created_at=T0, modified_at=T0,
        hash=md5(data), size=len(data), remote_type="script", filename="player.js", content=data,
    )


def remote(data=b"base", modified=T0):
    return AssetRecord(
        id=2, name="player.js", type="script", created_at=T0, modified_at=modified,
        file=FileInfo(hash=md5(data), filename="player.js", size=len(data)),
    )


class TestEvaluate:
    def test_in_sync(self):
        assert evaluate("a", "a", "b") is SyncStatus.IN_SYNC

    def test_content_matches(self):
        assert evaluate("a", "b", "b") is SyncStatus.CONTENT_MATCHES

    def test_conflict(self):
        assert evaluate("a", "b", "c") is SyncStatus.CONFLICT

    def test_content_hash_is_md5(self):
        assert content_hash(b"") == "d41d8cd98f00b204e9800998ecf8427e"


class TestConflictDetector:
    def test_in_sync_keeps_node(self):
        node = cached()
        check = ConflictDetector().check(node, remote(), b"edit")
        assert check.status is SyncStatus.IN_SYNC
        assert check.ok
        assert not check.metadata_drift
        assert check.base is node

    def test_drift_merges_into_copy(self):
        node = cached()
        check = ConflictDetector().check(node, remote(modified=LATER), b"edit")
        assert check.status is SyncStatus.IN_SYNC
        assert check.metadata_drift
        assert check.base is not node
        assert check.base.modified_at == LATER
        assert check.base.content == b"base"
        assert node.modified_at == T0

    def test_matching_remote_edit(self):
        check = ConflictDetector().check(cached(), remote(b"theirs", LATER), b"theirs")
        assert check.status is SyncStatus.CONTENT_MATCHES
        assert check.base.hash == md5(b"theirs")

    def test_conflict_not_merged(self):
        node = cached()
        check = ConflictDetector().check(node, remote(b"theirs", LATER), b"mine")
        assert check.status is SyncStatus.CONFLICT
        assert not check.ok
        assert check.base is node

    def test_ensure_writable_raises(self):
        node = cached()
        with pytest.raises(Conflict, match="pull the latest"):
            ConflictDetector().ensure_writable(node, remote(b"theirs", LATER), b"mine")
        assert node.hash == md5(b"base")

    def test_ensure_writable_passes(self):
        check = ConflictDetector().ensure_writable(cached(), remote(), b"edit")
        assert check.ok
