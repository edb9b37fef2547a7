"""Capabilities the host environment supplies to the filesystem.

Prompts, credential storage and per-workspace state belong to whatever UI
embeds assetfs; the filesystem only talks to them through these protocols.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from assetfs.cache.projects import DEFAULT_BRANCH

logger = logging.getLogger(__name__)


@runtime_checkable
class ConfirmationPrompt(Protocol):
    """Asks the user to approve a destructive action."""

    async def confirm(self, text: str) -> bool: ...


@runtime_checkable
class CredentialProvider(Protocol):
    """Reports whether an access token is available for the remote service."""

    async def has_credentials(self) -> bool: ...


@runtime_checkable
class WorkspaceState(Protocol):
    """Per-workspace persisted state: open project folders and branch choices."""

    def open_projects(self) -> list[str]:
        """Root paths of the project folders open in the workspace (``/Game:dev``)."""
        ...

    def get_branch(self, folder: str) -> str:
        """Last-selected branch for a project folder, ``"main"`` when unset."""
        ...

    def set_branch(self, folder: str, branch: str) -> None: ...


class JsonWorkspaceState:
    """WorkspaceState backed by a small JSON file.

    Layout::

        {"open": ["/Game", "/Tools"], "folders": {"/Game": {"branch": "dev"}}}
    """

    def __init__(self, path: Path, default_branch: str = DEFAULT_BRANCH) -> None:
        self.path = path
        self.default_branch = default_branch
        self._data = self._load()

    def _load(self) -> dict:
        if not self.path.exists():
            return {"open": [], "folders": {}}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Workspace state %s is not valid JSON, starting empty", self.path)
            return {"open": [], "folders": {}}
        data.setdefault("open", [])
        data.setdefault("folders", {})
        return data

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")

    def open_projects(self) -> list[str]:
        return list(self._data["open"])

    def add_project(self, folder: str) -> None:
        if folder not in self._data["open"]:
            self._data["open"].append(folder)
            self._save()

    def remove_project(self, folder: str) -> None:
        if folder in self._data["open"]:
            self._data["open"].remove(folder)
            self._save()

    def get_branch(self, folder: str) -> str:
        return self._data["folders"].get(folder, {}).get("branch") or self.default_branch

    def set_branch(self, folder: str, branch: str) -> None:
        self._data["folders"].setdefault(folder, {})["branch"] = branch
        self._save()
