"""Remote asset service protocol and shared record types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable

FOLDER_TYPE = "folder"


@dataclass
class ProjectRecord:
    """A project as returned by the account's project listing."""

    id: int
    name: str
    created: datetime
    modified: datetime
    owner: str = ""
    owner_id: int | None = None
    access_level: str = ""
    permissions: dict[str, list[str]] = field(default_factory=dict)
    private: bool = False


@dataclass
class BranchRecord:
    """A named line of assets within one project."""

    id: str
    name: str


@dataclass
class FileInfo:
    """File payload metadata attached to non-folder assets."""

    hash: str
    filename: str
    size: int


@dataclass
class AssetRecord:
    """Flat asset metadata; hierarchy is rebuilt locally from ``parent`` ids."""

    id: int
    name: str
    type: str
    created_at: datetime
    modified_at: datetime
    parent: int | None = None
    file: FileInfo | None = None
    tags: list[str] = field(default_factory=list)
    preload: bool = True

    @property
    def is_folder(self) -> bool:
        return self.type == FOLDER_TYPE

    @property
    def display_name(self) -> str:
        return self.file.filename if self.file else self.name


@dataclass
class BranchOptions:
    """Branch scope for both ends of a cross-project copy."""

    source_branch_id: str | None = None
    target_branch_id: str | None = None


@runtime_checkable
class RemoteAssetService(Protocol):
    """Protocol for the transport client that talks to the canonical store.

    Implementations raise ``assetfs.errors.Unauthorized`` when credentials are
    rejected and ``assetfs.errors.StalePrecondition`` when an upload's
    ``last_modified_at`` no longer matches the stored asset.
    """

    async def get_user_id(self) -> int: ...

    async def list_projects(self, user_id: int) -> list[ProjectRecord]: ...

    async def list_branches(self, project_id: int) -> list[BranchRecord]: ...

    async def list_assets(
        self, project_id: int, branch_id: str | None = None
    ) -> list[AssetRecord]: ...

    async def get_asset(self, asset_id: int, branch_id: str | None = None) -> AssetRecord:
        """Fetch the current authoritative metadata for one asset."""
        ...

    async def get_file_content(
        self, asset_id: int, filename: str, branch_id: str | None = None
    ) -> bytes: ...

    async def create_asset(
        self,
        project_id: int,
        name: str,
        *,
        folder_id: int | None = None,
        branch_id: str | None = None,
        type: str | None = None,
    ) -> AssetRecord: ...

    async def rename_asset(
        self,
        asset_id: int,
        new_name: str,
        *,
        folder_id: int | None = None,
        branch_id: str | None = None,
    ) -> AssetRecord: ...

    async def copy_asset(
        self,
        src_project_id: int,
        asset_id: int,
        dst_project_id: int,
        folder_id: int | None,
        branches: BranchOptions,
    ) -> AssetRecord: ...

    async def delete_asset(self, asset_id: int, branch_id: str | None = None) -> None: ...

    async def upload_file(
        self,
        asset_id: int,
        filename: str,
        last_modified_at: datetime,
        content: bytes,
        branch_id: str | None = None,
    ) -> AssetRecord:
        """Replace file content, conditioned on ``last_modified_at``."""
        ...
