"""Project cache — the single owner of known projects and their asset trees.

Other components read projects and nodes freely but mutate them only through
the methods here (``install_tree``, ``invalidate_tree``, ``replace_node``,
``store_content``, ``switch_branch``, ``refresh``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from assetfs.cache.nodes import Directory, FileAsset, Node, build_tree
from assetfs.errors import BranchNotFound
from assetfs.service.base import AssetRecord, BranchRecord, ProjectRecord

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"


@dataclass
class Branch:
    """A branch of a project."""

    id: str
    name: str


@dataclass(eq=False)
class Project:
    """A project plus the cached state hanging off it.

    Instances keep their identity across soft refreshes so other components
    can hold references to them.
    """

    id: int
    name: str
    created: datetime
    modified: datetime
    owner: str = ""
    owner_id: int | None = None
    access_level: str = ""
    permissions: dict[str, list[str]] = field(default_factory=dict)
    private: bool = False
    selected_branch_id: str | None = None  # None: the primary branch
    branches: list[Branch] | None = None
    root: Directory | None = None
    # Bumped whenever the tree is dropped; a listing started earlier is stale
    generation: int = 0

    @classmethod
    def from_record(cls, record: ProjectRecord) -> Project:
        return cls(
            id=record.id,
            name=record.name,
            created=record.created,
            modified=record.modified,
            owner=record.owner,
            owner_id=record.owner_id,
            access_level=record.access_level,
            permissions=dict(record.permissions),
            private=record.private,
        )

    @property
    def is_loaded(self) -> bool:
        return self.root is not None

    def empty_root(self) -> Directory:
        return Directory(
            id=self.id,
            name=self.name,
            parent_id=None,
            created_at=self.created,
            modified_at=self.modified,
        )


def split_branch_suffix(name: str) -> tuple[str, str | None]:
    """``"Game:feature"`` -> ``("Game", "feature")``; ``"Game"`` -> ``("Game", None)``."""
    project_name, sep, branch_name = name.partition(":")
    return project_name, (branch_name or None) if sep else None


class ProjectCache:
    """Known projects for the signed-in account, each with a lazily-loaded tree."""

    def __init__(self, default_branch: str = DEFAULT_BRANCH) -> None:
        self.default_branch = default_branch
        self._projects: list[Project] = []

    # ── Project list ─────────────────────────────────────────

    @property
    def projects(self) -> list[Project]:
        return list(self._projects)

    @property
    def is_cold(self) -> bool:
        return not self._projects

    def set_projects(self, records: list[ProjectRecord]) -> list[Project]:
        """Replace the project list, keeping each project's selected branch."""
        selection = {
            p.id: p.selected_branch_id for p in self._projects if p.selected_branch_id
        }
        projects = []
        for record in records:
            project = Project.from_record(record)
            project.selected_branch_id = selection.get(record.id)
            projects.append(project)
        self._projects = projects
        logger.info("Cached %d projects", len(projects))
        return self.projects

    def get_by_name(self, name: str) -> Project | None:
        """Look up a project by display name; a ``:branch`` suffix is ignored."""
        if not name:
            return None
        project_name, _ = split_branch_suffix(name)
        for project in self._projects:
            if project.name == project_name:
                return project
        return None

    def get_by_id(self, project_id: int) -> Project | None:
        for project in self._projects:
            if project.id == project_id:
                return project
        return None

    # ── Branches ─────────────────────────────────────────────

    def set_branches(self, project: Project, records: list[BranchRecord]) -> list[Branch]:
        project.branches = [Branch(id=r.id, name=r.name) for r in records]
        return list(project.branches)

    def branch_name(self, project: Project) -> str:
        """Display name of the project's selected branch."""
        if project.selected_branch_id is None:
            return self.default_branch
        for branch in project.branches or []:
            if branch.id == project.selected_branch_id:
                return branch.name
        return ""

    def switch_branch(self, project: Project, branch_name: str) -> bool:
        """Select ``branch_name`` among the fetched branches.

        Returns True when the selection changed (and the tree was dropped).
        """
        branch = next((b for b in project.branches or [] if b.name == branch_name), None)
        if branch is not None:
            branch_id: str | None = branch.id
        elif branch_name == self.default_branch:
            branch_id = None
        else:
            raise BranchNotFound(f"Branch {branch_name!r} not found in project {project.name!r}")

        if branch_id == project.selected_branch_id:
            return False
        logger.info("Switching %s to branch %s", project.name, branch_name)
        project.selected_branch_id = branch_id
        self.invalidate_tree(project)
        return True

    # ── Trees ────────────────────────────────────────────────

    def install_tree(
        self,
        project: Project,
        records: list[AssetRecord],
        branch_id: str | None,
        generation: int | None = None,
    ) -> Directory | None:
        """Build and attach the project's tree from a flat listing.

        A listing fetched for a branch that is no longer selected, or started
        before the tree was last dropped (``generation``), is discarded.
        """
        if branch_id != project.selected_branch_id:
            logger.warning(
                "Discarding %s listing for branch %s, selection is now %s",
                project.name, branch_id, project.selected_branch_id,
            )
            return project.root
        if generation is not None and generation != project.generation:
            logger.warning(
                "Discarding stale %s listing (generation %d, now %d)",
                project.name, generation, project.generation,
            )
            return project.root
        root = build_tree(records, project.empty_root())
        project.root = root
        logger.debug("Installed tree for %s (%d assets)", project.name, len(records))
        return root

    def invalidate_tree(self, project: Project) -> None:
        project.root = None
        project.generation += 1

    def replace_node(
        self, project: Project, root: Directory, parent: Directory, old: Node, new: Node
    ) -> bool:
        """Swap ``old`` for ``new`` inside ``parent``, leaving siblings untouched.

        ``root`` is the tree the caller resolved ``parent`` from. If the tree
        has been reloaded or ``old`` moved since, nothing is replaced, the
        tree is dropped so the next access relists, and False is returned.
        """
        if project.root is not root or parent.children.get(old.name) is not old:
            logger.warning("Tree for %s changed during write, dropping it", project.name)
            self.invalidate_tree(project)
            return False
        if old.name != new.name:
            del parent.children[old.name]
        parent.children[new.name] = new
        return True

    def store_content(self, node: FileAsset, content: bytes) -> None:
        node.content = content

    # ── Lifecycle ────────────────────────────────────────────

    def refresh(self, full: bool = True) -> None:
        """Drop cached state.

        ``full`` forgets every project (the next access resyncs the account);
        otherwise projects keep their identity and only lose tree, branches
        and branch selection.
        """
        if full:
            self._projects = []
            logger.info("Project cache cleared")
            return
        for project in self._projects:
            self.invalidate_tree(project)
            project.branches = None
            project.selected_branch_id = None
        logger.info("Project cache soft-refreshed (%d projects)", len(self._projects))
