"""Path addressing: ``/<project>[:<branch>]/<folder>/.../<leaf>``.

The first segment names a project (optionally qualified with a branch). A
path with only that segment is the project root, which is always a
directory. Deeper paths address assets inside the project's tree.

Resolution is purely local: the resolver only reads the ProjectCache and
expects the owning project's tree to be loaded already.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from assetfs.cache.nodes import Directory, Node
from assetfs.cache.projects import Project, ProjectCache, split_branch_suffix
from assetfs.errors import AssetNotFound, ProjectNotFound, StructuralError


class PathKind(Enum):
    PROJECT_ROOT = "project_root"
    ASSET = "asset"


@dataclass(frozen=True)
class AssetPath:
    """A parsed address."""

    raw: str
    project_name: str
    branch_name: str | None
    segments: tuple[str, ...]

    @classmethod
    def parse(cls, path: str) -> AssetPath:
        parts = [p for p in path.split("/") if p]
        if not parts:
            raise ProjectNotFound(f"No project in path {path!r}")
        project_name, branch_name = split_branch_suffix(parts[0])
        return cls(
            raw=path,
            project_name=project_name,
            branch_name=branch_name,
            segments=tuple(parts[1:]),
        )

    @property
    def depth(self) -> int:
        return len(self.segments) + 1

    @property
    def kind(self) -> PathKind:
        return PathKind.PROJECT_ROOT if not self.segments else PathKind.ASSET

    @property
    def leaf(self) -> str:
        return self.segments[-1] if self.segments else self.project_name

    @property
    def root(self) -> str:
        """The project-root path, branch qualifier included."""
        head = self.project_name
        if self.branch_name:
            head = f"{head}:{self.branch_name}"
        return f"/{head}"

    @property
    def parent(self) -> AssetPath:
        if not self.segments:
            raise AssetNotFound(f"Project root {self.raw!r} has no parent")
        return AssetPath.parse("/".join([self.root, *self.segments[:-1]]))

    def child(self, name: str) -> AssetPath:
        return AssetPath.parse("/".join([self.root, *self.segments, name]))

    def __str__(self) -> str:
        return "/".join([self.root, *self.segments])


def join_path(base: str, name: str) -> str:
    return f"{base.rstrip('/')}/{name}"


class PathResolver:
    """Maps paths onto cached projects and nodes without touching the network."""

    def __init__(self, cache: ProjectCache) -> None:
        self.cache = cache

    def resolve_project(self, path: str | AssetPath) -> Project:
        parsed = _parsed(path)
        project = self.cache.get_by_name(parsed.project_name)
        if project is None:
            raise ProjectNotFound(f"Project {parsed.project_name!r} not found")
        return project

    def classify(self, path: str | AssetPath) -> PathKind:
        return _parsed(path).kind

    def _root(self, project: Project) -> Directory:
        if project.root is None:
            raise StructuralError(f"Tree for project {project.name!r} has not been loaded")
        return project.root

    def _walk(self, project: Project, segments: tuple[str, ...]) -> Directory:
        """Walk every segment as a Directory; a miss is a cache-ordering bug."""
        current = self._root(project)
        for segment in segments:
            child = current.children.get(segment)
            if not isinstance(child, Directory):
                raise StructuralError(f"Failed to find folder {segment!r} in {project.name!r}")
            current = child
        return current

    def resolve_parent(self, path: str | AssetPath) -> Directory:
        """The directory that holds (or would hold) the leaf of ``path``."""
        parsed = _parsed(path)
        if parsed.kind is PathKind.PROJECT_ROOT:
            raise AssetNotFound(f"Project root {parsed.raw!r} has no parent")
        return self._walk(self.resolve_project(parsed), parsed.segments[:-1])

    def resolve_asset(self, path: str | AssetPath) -> Node:
        parsed = _parsed(path)
        if parsed.kind is PathKind.PROJECT_ROOT:
            raise AssetNotFound(f"Path {parsed.raw!r} does not address an asset")
        parent = self.resolve_parent(parsed)
        node = parent.children.get(parsed.leaf)
        if node is None:
            raise AssetNotFound(f"Asset not found for path {parsed.raw!r}")
        return node

    def resolve_folder(self, path: str | AssetPath) -> Directory:
        """The addressed node if it is a folder, otherwise its parent folder."""
        parsed = _parsed(path)
        if parsed.kind is PathKind.PROJECT_ROOT:
            return self._root(self.resolve_project(parsed))
        node = self.resolve_asset(parsed)
        if isinstance(node, Directory):
            return node
        return self.resolve_parent(parsed)

    def lookup(self, path: str | AssetPath) -> Node | None:
        """Lenient resolution: any missing piece yields None instead of raising."""
        parsed = _parsed(path)
        project = self.cache.get_by_name(parsed.project_name)
        if project is None or project.root is None:
            return None
        current: Node = project.root
        for segment in parsed.segments:
            if not isinstance(current, Directory):
                return None
            child = current.children.get(segment)
            if child is None:
                return None
            current = child
        return current


def _parsed(path: str | AssetPath) -> AssetPath:
    return path if isinstance(path, AssetPath) else AssetPath.parse(path)
