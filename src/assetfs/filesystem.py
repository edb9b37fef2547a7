"""AssetFileSystem — the public operation surface.

Responsibilities:
1. Account bootstrap — one coalesced project sync per session
2. Lazy trees — list each (project, branch) once, then serve from cache
3. Reads — stat / read_directory / read_file resolved against the cache
4. Writes — conflict check, conditional upload, merge into the cached node
5. Structural changes — create / rename / copy / delete, then relist
6. Search — recursive line matching over open projects

This is the only component that talks to the RemoteAssetService. A cache
node is replaced only after the remote round-trip it depends on succeeded.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import TYPE_CHECKING

from assetfs.cache.nodes import Directory, FileAsset, Node, merge_record
from assetfs.cache.projects import Branch, Project, ProjectCache
from assetfs.config import AssetFSConfig, load_config, setup_logging
from assetfs.errors import (
    AssetNotFound,
    BranchNotFound,
    FileExists,
    InvalidOperation,
    ProjectNotFound,
    StructuralError,
)
from assetfs.flight import SingleFlight
from assetfs.host import JsonWorkspaceState
from assetfs.paths import AssetPath, PathKind, PathResolver, join_path
from assetfs.search import SearchResult, compile_pattern, match_lines
from assetfs.service.base import FOLDER_TYPE, BranchOptions
from assetfs.sync import ConflictDetector

if TYPE_CHECKING:
    from assetfs.host import ConfirmationPrompt, CredentialProvider, WorkspaceState
    from assetfs.service.base import RemoteAssetService

logger = logging.getLogger(__name__)

_PROJECTS_KEY = "projects"


class FileType(IntEnum):
    FILE = 1
    DIRECTORY = 2


@dataclass
class FileStat:
    """Metadata for one path. Times are epoch milliseconds."""

    type: FileType
    size: int
    ctime: int
    mtime: int


def _epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _file_type(node: Node) -> FileType:
    return FileType.DIRECTORY if isinstance(node, Directory) else FileType.FILE


class AssetFileSystem:
    """Filesystem view over a remote project/branch/asset store."""

    def __init__(
        self,
        service: RemoteAssetService,
        cache: ProjectCache | None = None,
        config: AssetFSConfig | None = None,
        *,
        credentials: CredentialProvider | None = None,
        confirm: ConfirmationPrompt | None = None,
        workspace: WorkspaceState | None = None,
    ) -> None:
        self.config = config or AssetFSConfig()
        self.service = service
        self.cache = cache or ProjectCache(self.config.filesystem.default_branch)
        self.resolver = PathResolver(self.cache)
        self.detector = ConflictDetector()
        self.credentials = credentials
        self.confirm = confirm
        self.workspace = workspace
        self._user_id: int | None = None
        self._synced = False
        self._flight = SingleFlight()

    @classmethod
    def from_config(
        cls,
        service: RemoteAssetService,
        config: AssetFSConfig | None = None,
        *,
        credentials: CredentialProvider | None = None,
        confirm: ConfirmationPrompt | None = None,
    ) -> AssetFileSystem:
        """Build a filesystem wired from configuration.

        Loads ``assetfs.toml`` / environment when ``config`` is omitted, sets up
        logging at ``config.log_level`` and persists workspace state to
        ``config.state_file``.
        """
        config = config or load_config()
        setup_logging(config.log_level)
        workspace = JsonWorkspaceState(config.state_file, config.filesystem.default_branch)
        return cls(service, config=config, credentials=credentials, confirm=confirm, workspace=workspace)

    # ── Bootstrap ────────────────────────────────────────────

    async def ensure_synced(self) -> None:
        """Run the account-wide project sync once; concurrent callers share it."""
        if self._synced:
            return
        await self._flight.do(_PROJECTS_KEY, self._sync_once)

    async def _sync_once(self) -> None:
        await self.sync_projects()
        self._synced = True

    async def sync_projects(self) -> list[Project]:
        """Fetch the account's projects and preload those open in the workspace."""
        if self.credentials is not None and not await self.credentials.has_credentials():
            logger.info("No credentials available, skipping project sync")
            return []

        if self._user_id is None:
            self._user_id = await self.service.get_user_id()
        records = await self.service.list_projects(self._user_id)
        projects = self.cache.set_projects(records)

        if self.workspace is not None:
            preload = []
            for folder in self.workspace.open_projects():
                project = self.cache.get_by_name(AssetPath.parse(folder).project_name)
                if project is None:
                    logger.warning("Open workspace folder %s has no matching project", folder)
                    continue
                preload.append(self._preload(project, self.workspace.get_branch(folder)))
            await asyncio.gather(*preload)

        return projects

    async def _preload(self, project: Project, branch: str) -> None:
        try:
            await self.initialize_project(project, branch)
        except BranchNotFound:
            logger.warning(
                "Saved branch %s no longer exists in %s, using %s",
                branch, project.name, self.cache.default_branch,
            )
            await self.initialize_project(project, self.cache.default_branch)

    async def initialize_project(self, project: Project, branch: str | None) -> Directory:
        """Select ``branch`` (when not the default) and load the project's tree."""
        if branch and branch != self.cache.default_branch:
            await self._ensure_branches(project, branch)
            self.cache.switch_branch(project, branch)
        return await self.ensure_assets(project)

    async def list_projects(self) -> list[Project]:
        await self.ensure_synced()
        return self.cache.projects

    # ── Branches ─────────────────────────────────────────────

    async def _ensure_branches(self, project: Project, wanted: str | None = None) -> list[Branch]:
        known = project.branches
        if known is not None and (wanted is None or any(b.name == wanted for b in known)):
            return known
        return await self._fetch_branches(project)

    async def _fetch_branches(self, project: Project) -> list[Branch]:
        logger.debug("Fetching branches for %s", project.name)
        records = await self.service.list_branches(project.id)
        return self.cache.set_branches(project, records)

    async def list_branches(self, project_name: str) -> list[Branch]:
        _, project = await self._open(AssetPath.parse(project_name), apply_branch=False)
        return await self._fetch_branches(project)

    async def branch_name(self, project_name: str) -> str:
        """Display name of the branch the project currently targets."""
        _, project = await self._open(AssetPath.parse(project_name), apply_branch=False)
        if project.selected_branch_id is not None:
            await self._ensure_branches(project)
        return self.cache.branch_name(project)

    async def switch_branch(self, project_name: str, branch_name: str) -> bool:
        """Point the project at another branch and remember the choice."""
        _, project = await self._open(AssetPath.parse(project_name), apply_branch=False)
        await self._ensure_branches(project, branch_name)
        changed = self.cache.switch_branch(project, branch_name)
        if self.workspace is not None:
            self.workspace.set_branch(f"/{project.name}", branch_name)
        return changed

    # ── Trees ────────────────────────────────────────────────

    async def ensure_assets(self, project: Project) -> Directory:
        """Return the project's tree, listing it once per (project, branch).

        Callers only share a listing started after the tree was last
        dropped, so a reload never adopts a listing that predates it.
        """
        while project.root is None:
            branch_id = project.selected_branch_id
            generation = project.generation
            await self._flight.do(
                ("assets", project.id, branch_id, generation),
                lambda: self._load_assets(project, branch_id, generation),
            )
        return project.root

    async def _load_assets(self, project: Project, branch_id: str | None, generation: int) -> None:
        logger.info(
            "Fetching assets for %s (branch %s)",
            project.name, branch_id or self.cache.default_branch,
        )
        records = await self.service.list_assets(project.id, branch_id)
        self.cache.install_tree(project, records, branch_id, generation)

    async def reload_project(self, project: Project) -> Directory:
        logger.info("Reloading %s", project.name)
        self.cache.invalidate_tree(project)
        return await self.ensure_assets(project)

    async def pull_latest(self, path: str) -> None:
        """Discard the owning project's tree and list it again."""
        _, project = await self._open(AssetPath.parse(path))
        await self.reload_project(project)

    def refresh(self, full: bool = True) -> None:
        self.cache.refresh(full)
        if full:
            self._synced = False

    # ── Path helpers ─────────────────────────────────────────

    async def _open(self, parsed: AssetPath, apply_branch: bool = True) -> tuple[AssetPath, Project]:
        """Find the path's project, syncing the account first if nothing is cached."""
        project = self.cache.get_by_name(parsed.project_name)
        if project is None and self.cache.is_cold:
            logger.debug("No projects cached, syncing before %s", parsed)
            await self.ensure_synced()
            project = self.cache.get_by_name(parsed.project_name)
        if project is None:
            raise ProjectNotFound(f"Project {parsed.project_name!r} not found")
        if apply_branch and parsed.branch_name:
            await self._apply_branch_qualifier(project, parsed.branch_name)
        return parsed, project

    async def _apply_branch_qualifier(self, project: Project, branch_name: str) -> None:
        if project.selected_branch_id is None and branch_name == self.cache.default_branch:
            return
        if project.branches is not None and self.cache.branch_name(project) == branch_name:
            return
        await self._ensure_branches(project, branch_name)
        self.cache.switch_branch(project, branch_name)

    def _readable(self, path: str) -> AssetPath:
        """Parse a path, rejecting host probes such as ``.git`` up front."""
        parsed = AssetPath.parse(path)
        ignored = self.config.filesystem.ignored_segments
        if any(segment in ignored for segment in parsed.segments):
            raise AssetNotFound(f"Ignored path {path!r}")
        return parsed

    async def _lookup(self, parsed: AssetPath, project: Project) -> Node:
        """Resolve a path for reading; anything missing is AssetNotFound."""
        root = await self.ensure_assets(project)
        if parsed.kind is PathKind.PROJECT_ROOT:
            return root
        node = self.resolver.lookup(parsed)
        if node is None:
            raise AssetNotFound(f"Asset not found for path {parsed.raw!r}")
        return node

    def _folder_id(self, project: Project, folder: Directory) -> int | None:
        return None if folder is project.root else folder.id

    # ── Types reference header ───────────────────────────────

    def _uses_types_reference(self, node: FileAsset) -> bool:
        fs_config = self.config.filesystem
        return bool(fs_config.types_reference) and node.filename.endswith(
            tuple(fs_config.types_reference_suffixes)
        )

    def _present(self, node: FileAsset, content: bytes) -> bytes:
        if self._uses_types_reference(node):
            return self.config.filesystem.types_reference.encode() + content
        return content

    def _strip(self, node: FileAsset, content: bytes) -> bytes:
        if self._uses_types_reference(node):
            header = self.config.filesystem.types_reference.encode()
            if content.startswith(header):
                return content[len(header):]
        return content

    # ── Reads ────────────────────────────────────────────────

    async def stat(self, path: str) -> FileStat:
        logger.debug("stat %s", path)
        parsed, project = await self._open(self._readable(path))

        if parsed.kind is PathKind.PROJECT_ROOT:
            return FileStat(
                type=FileType.DIRECTORY,
                size=0,
                ctime=_epoch_ms(project.created),
                mtime=_epoch_ms(project.modified),
            )

        node = await self._lookup(parsed, project)
        return FileStat(
            type=_file_type(node),
            size=node.size if isinstance(node, FileAsset) else 0,
            ctime=_epoch_ms(node.created_at),
            mtime=_epoch_ms(node.modified_at),
        )

    async def read_directory(self, path: str) -> list[tuple[str, FileType]]:
        logger.debug("readDirectory %s", path)
        parsed, project = await self._open(self._readable(path))
        node = await self._lookup(parsed, project)
        if not isinstance(node, Directory):
            raise InvalidOperation(f"{path!r} is not a directory")
        return [(name, _file_type(child)) for name, child in node.children.items()]

    async def read_file(self, path: str) -> bytes:
        logger.debug("readFile %s", path)
        parsed, project = await self._open(self._readable(path))
        node = await self._lookup(parsed, project)
        if isinstance(node, Directory):
            return b""
        if node.content is None:
            logger.debug("Fetching content for asset %s (%s)", node.id, node.filename)
            content = await self.service.get_file_content(
                node.id, node.filename, project.selected_branch_id
            )
            self.cache.store_content(node, content)
        return self._present(node, node.content)

    # ── Writes ───────────────────────────────────────────────

    async def write_file(
        self, path: str, content: bytes, *, create: bool = False, overwrite: bool = True
    ) -> None:
        logger.debug("writeFile %s (%d bytes)", path, len(content))
        parsed, project = await self._open(AssetPath.parse(path))
        if parsed.kind is PathKind.PROJECT_ROOT:
            raise InvalidOperation(f"Cannot write to project root {path!r}")
        await self.ensure_assets(project)

        node = self.resolver.lookup(parsed)
        if node is None:
            if not create:
                raise AssetNotFound(f"Asset not found for path {path!r}")
            node = await self._create(project, parsed)
            if not content:
                return
        elif create and not overwrite:
            raise FileExists(f"{path!r} already exists")

        if not isinstance(node, FileAsset):
            raise InvalidOperation(f"Cannot write to directory {path!r}")
        await self._upload(project, parsed, node, content)

    async def _upload(self, project: Project, parsed: AssetPath, node: FileAsset, content: bytes) -> None:
        root = project.root
        parent = self.resolver.resolve_parent(parsed)
        data = self._strip(node, content)
        branch_id = project.selected_branch_id

        remote = await self.service.get_asset(node.id, branch_id)
        check = self.detector.ensure_writable(node, remote, data)

        updated = await self.service.upload_file(
            node.id, check.base.filename, check.base.modified_at, data, branch_id
        )
        fresh = merge_record(check.base, updated, content=data)
        if self.cache.replace_node(project, root, parent, node, fresh):
            logger.info("Uploaded %s (asset %s, hash %s)", parsed, fresh.id, fresh.hash)

    async def _create(self, project: Project, parsed: AssetPath, type: str | None = None) -> Node:
        parent = self.resolver.resolve_parent(parsed)
        record = await self.service.create_asset(
            project.id,
            parsed.leaf,
            folder_id=self._folder_id(project, parent),
            branch_id=project.selected_branch_id,
            type=type,
        )
        logger.info("Created %s (asset %s)", parsed, record.id)
        await self.reload_project(project)
        node = self.resolver.lookup(parsed)
        if node is None:
            raise StructuralError(f"Created asset {record.id} missing from relisted tree at {parsed}")
        return node

    async def create_directory(self, path: str) -> None:
        logger.debug("createDirectory %s", path)
        parsed, project = await self._open(AssetPath.parse(path))
        if parsed.kind is PathKind.PROJECT_ROOT:
            return
        await self.ensure_assets(project)
        existing = self.resolver.lookup(parsed)
        if isinstance(existing, Directory):
            return
        if existing is not None:
            raise FileExists(f"{path!r} already exists as a file")
        await self._create(project, parsed, type=FOLDER_TYPE)

    async def rename(self, old_path: str, new_path: str) -> None:
        logger.debug("rename %s -> %s", old_path, new_path)
        src, project = await self._open(AssetPath.parse(old_path))
        dst, dst_project = await self._open(AssetPath.parse(new_path))
        if dst_project is not project:
            raise InvalidOperation("Cannot rename an asset into another project, copy it instead")
        if dst.kind is PathKind.PROJECT_ROOT:
            raise InvalidOperation(f"Cannot rename onto project root {new_path!r}")
        await self.ensure_assets(project)

        node = self.resolver.resolve_asset(src)
        folder = self.resolver.resolve_parent(dst)
        await self.service.rename_asset(
            node.id,
            dst.leaf,
            folder_id=self._folder_id(project, folder),
            branch_id=project.selected_branch_id,
        )
        logger.info("Renamed %s -> %s", src, dst)
        await self.reload_project(project)

    async def copy(self, src_path: str, dst_path: str) -> None:
        logger.debug("copy %s -> %s", src_path, dst_path)
        src, src_project = await self._open(AssetPath.parse(src_path))
        dst, dst_project = await self._open(AssetPath.parse(dst_path))
        if src_project.id == dst_project.id:
            raise InvalidOperation(f"Cannot copy asset to the same project {src_project.name!r}")
        await asyncio.gather(self.ensure_assets(src_project), self.ensure_assets(dst_project))

        node = self.resolver.resolve_asset(src)
        if dst.kind is PathKind.PROJECT_ROOT:
            folder = self.resolver.resolve_folder(dst)
        else:
            folder = self.resolver.resolve_parent(dst)
        await self.service.copy_asset(
            src_project.id,
            node.id,
            dst_project.id,
            self._folder_id(dst_project, folder),
            BranchOptions(
                source_branch_id=src_project.selected_branch_id,
                target_branch_id=dst_project.selected_branch_id,
            ),
        )
        logger.info("Copied %s -> %s", src, dst)
        await self.reload_project(dst_project)

    async def delete(self, path: str) -> bool:
        """Delete an asset. Returns False when the confirmation prompt is declined."""
        logger.debug("delete %s", path)
        parsed, project = await self._open(AssetPath.parse(path))
        if parsed.kind is PathKind.PROJECT_ROOT:
            raise InvalidOperation(f"Cannot delete project root {path!r}")
        await self.ensure_assets(project)
        node = self.resolver.resolve_asset(parsed)

        if self.confirm is not None and not await self.confirm.confirm(f"Delete {parsed.leaf}?"):
            logger.info("Delete of %s cancelled", parsed)
            return False

        await self.service.delete_asset(node.id, project.selected_branch_id)
        logger.info("Deleted %s (asset %s)", parsed, node.id)
        await self.reload_project(project)
        return True

    # ── Search ───────────────────────────────────────────────

    def _search_roots(self) -> list[str]:
        if self.workspace is not None:
            return self.workspace.open_projects()
        return [f"/{p.name}" for p in self.cache.projects if p.is_loaded]

    async def search(self, pattern: str, scope: str | None = None) -> list[SearchResult]:
        """Case-insensitive regex search over file lines.

        ``scope`` limits the search to one subtree, or to a single file; by
        default every open project is searched. Stops at
        ``config.search.max_results``.
        """
        regex = compile_pattern(pattern)
        results: list[SearchResult] = []
        if scope and (await self.stat(scope)).type is FileType.FILE:
            await self._search_file(scope, regex, results)
        else:
            for root in [scope] if scope else self._search_roots():
                if await self._search_directory(root, regex, results):
                    break
        logger.debug("search %r found %d results", pattern, len(results))
        return results

    async def _search_directory(
        self, path: str, regex: re.Pattern[str], results: list[SearchResult]
    ) -> bool:
        for name, kind in await self.read_directory(path):
            child = join_path(path, name)
            if kind is FileType.DIRECTORY:
                found_all = await self._search_directory(child, regex, results)
            else:
                found_all = await self._search_file(child, regex, results)
            if found_all:
                return True
        return False

    async def _search_file(self, path: str, regex: re.Pattern[str], results: list[SearchResult]) -> bool:
        limits = self.config.search
        text = (await self.read_file(path)).decode("utf-8", errors="replace")
        return match_lines(path, text, regex, results, limit=limits.max_results, width=limits.preview_width)
