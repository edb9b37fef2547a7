"""Shared fakes for the remote asset service and host capabilities."""

from __future__ import annotations

import hashlib
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from assetfs.errors import AssetNotFound, StalePrecondition
from assetfs.filesystem import AssetFileSystem
from assetfs.service.base import (
    FOLDER_TYPE,
    AssetRecord,
    BranchOptions,
    BranchRecord,
    FileInfo,
    ProjectRecord,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def md5(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


class FakeAssetService:
    """In-memory stand-in for the remote store, recording every call."""

    def __init__(self) -> None:
        self.user_id = 7
        self.projects: list[ProjectRecord] = []
        self.branches: dict[int, list[BranchRecord]] = {}
        # (branch_id, asset_id) -> (project_id, record)
        self.assets: dict[tuple[str | None, int], tuple[int, AssetRecord]] = {}
        self.contents: dict[tuple[str | None, int], bytes] = {}
        self.calls: list[tuple] = []
        self._next_id = 1000
        self._clock = 0

    # ── Test helpers ─────────────────────────────────────────

    def tick(self) -> datetime:
        self._clock += 1
        return T0 + timedelta(minutes=self._clock)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def add_project(self, id: int, name: str) -> ProjectRecord:
        record = ProjectRecord(
            id=id,
            name=name,
            created=T0,
            modified=T0 + timedelta(days=1),
            owner="alice",
            owner_id=self.user_id,
        )
        self.projects.append(record)
        return record

    def add_branch(self, project_id: int, id: str, name: str) -> None:
        self.branches.setdefault(project_id, []).append(BranchRecord(id=id, name=name))

    def add_asset(
        self,
        project_id: int,
        id: int,
        name: str,
        type: str = "script",
        parent: int | None = None,
        content: bytes = b"",
        branch_id: str | None = None,
    ) -> AssetRecord:
        stamp = self.tick()
        file = None
        if type != FOLDER_TYPE:
            file = FileInfo(hash=md5(content), filename=name, size=len(content))
            self.contents[(branch_id, id)] = content
        record = AssetRecord(
            id=id, name=name, type=type, created_at=stamp, modified_at=stamp, parent=parent, file=file
        )
        self.assets[(branch_id, id)] = (project_id, record)
        return record

    def edit_remotely(self, asset_id: int, content: bytes, branch_id: str | None = None) -> None:
        project_id, record = self.assets[(branch_id, asset_id)]
        file = FileInfo(hash=md5(content), filename=record.file.filename, size=len(content))
        self.assets[(branch_id, asset_id)] = (
            project_id, replace(record, file=file, modified_at=self.tick())
        )
        self.contents[(branch_id, asset_id)] = content

    def touch_remotely(self, asset_id: int, branch_id: str | None = None) -> None:
        project_id, record = self.assets[(branch_id, asset_id)]
        self.assets[(branch_id, asset_id)] = (project_id, replace(record, modified_at=self.tick()))

    def record(self, asset_id: int, branch_id: str | None = None) -> AssetRecord:
        return self.assets[(branch_id, asset_id)][1]

    def _get(self, asset_id: int, branch_id: str | None) -> tuple[int, AssetRecord]:
        try:
            return self.assets[(branch_id, asset_id)]
        except KeyError:
            raise AssetNotFound(f"Remote asset {asset_id} not found") from None

    # ── RemoteAssetService ───────────────────────────────────

    async def get_user_id(self) -> int:
        self.calls.append(("get_user_id",))
        return self.user_id

    async def list_projects(self, user_id: int) -> list[ProjectRecord]:
        self.calls.append(("list_projects", user_id))
        return list(self.projects)

    async def list_branches(self, project_id: int) -> list[BranchRecord]:
        self.calls.append(("list_branches", project_id))
        return list(self.branches.get(project_id, []))

    async def list_assets(self, project_id: int, branch_id: str | None = None) -> list[AssetRecord]:
        self.calls.append(("list_assets", project_id, branch_id))
        return [
            replace(record)
            for (branch, _), (owner, record) in self.assets.items()
            if owner == project_id and branch == branch_id
        ]

    async def get_asset(self, asset_id: int, branch_id: str | None = None) -> AssetRecord:
        self.calls.append(("get_asset", asset_id, branch_id))
        return replace(self._get(asset_id, branch_id)[1])

    async def get_file_content(
        self, asset_id: int, filename: str, branch_id: str | None = None
    ) -> bytes:
        self.calls.append(("get_file_content", asset_id, filename, branch_id))
        self._get(asset_id, branch_id)
        return self.contents[(branch_id, asset_id)]

    async def create_asset(
        self, project_id, name, *, folder_id=None, branch_id=None, type=None
    ) -> AssetRecord:
        self.calls.append(("create_asset", project_id, name, folder_id, branch_id, type))
        self._next_id += 1
        return self.add_asset(
            project_id, self._next_id, name, type=type or "script", parent=folder_id, branch_id=branch_id
        )

    async def rename_asset(self, asset_id, new_name, *, folder_id=None, branch_id=None) -> AssetRecord:
        self.calls.append(("rename_asset", asset_id, new_name, folder_id, branch_id))
        project_id, record = self._get(asset_id, branch_id)
        file = replace(record.file, filename=new_name) if record.file else None
        renamed = replace(record, name=new_name, parent=folder_id, file=file, modified_at=self.tick())
        self.assets[(branch_id, asset_id)] = (project_id, renamed)
        return replace(renamed)

    async def copy_asset(
        self, src_project_id, asset_id, dst_project_id, folder_id, branches: BranchOptions
    ) -> AssetRecord:
        self.calls.append(("copy_asset", src_project_id, asset_id, dst_project_id, folder_id, branches))
        _, record = self._get(asset_id, branches.source_branch_id)
        self._next_id += 1
        content = self.contents.get((branches.source_branch_id, asset_id), b"")
        return self.add_asset(
            dst_project_id,
            self._next_id,
            record.name,
            type=record.type,
            parent=folder_id,
            content=content,
            branch_id=branches.target_branch_id,
        )

    async def delete_asset(self, asset_id: int, branch_id: str | None = None) -> None:
        self.calls.append(("delete_asset", asset_id, branch_id))
        self._get(asset_id, branch_id)
        del self.assets[(branch_id, asset_id)]
        self.contents.pop((branch_id, asset_id), None)

    async def upload_file(self, asset_id, filename, last_modified_at, content, branch_id=None) -> AssetRecord:
        self.calls.append(("upload_file", asset_id, filename, last_modified_at, content, branch_id))
        project_id, record = self._get(asset_id, branch_id)
        if record.modified_at != last_modified_at:
            raise StalePrecondition(f"Asset {asset_id} was modified, please pull the latest version")
        file = FileInfo(hash=md5(content), filename=filename, size=len(content))
        updated = replace(record, file=file, modified_at=self.tick())
        self.assets[(branch_id, asset_id)] = (project_id, updated)
        self.contents[(branch_id, asset_id)] = content
        return replace(updated)


class FakeCredentials:
    def __init__(self, available: bool = True) -> None:
        self.available = available

    async def has_credentials(self) -> bool:
        return self.available


class FakePrompt:
    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.asked: list[str] = []

    async def confirm(self, text: str) -> bool:
        self.asked.append(text)
        return self.answer


class FakeWorkspace:
    def __init__(self, folders: list[str] | None = None, branches: dict[str, str] | None = None) -> None:
        self.folders = folders or []
        self.branches = branches or {}

    def open_projects(self) -> list[str]:
        return list(self.folders)

    def get_branch(self, folder: str) -> str:
        return self.branches.get(folder, "main")

    def set_branch(self, folder: str, branch: str) -> None:
        self.branches[folder] = branch


@pytest.fixture
def service() -> FakeAssetService:
    """Project "Game" with scripts/player.js, plus an empty project "Tools"."""
    svc = FakeAssetService()
    svc.add_project(1, "Game")
    svc.add_project(2, "Tools")
    svc.add_asset(1, 1, "scripts", type=FOLDER_TYPE)
    svc.add_asset(1, 2, "player.js", parent=1, content=b"const speed = 1;\n")
    return svc


@pytest.fixture
def fs(service: FakeAssetService) -> AssetFileSystem:
    return AssetFileSystem(service)
