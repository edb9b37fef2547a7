"""Exception hierarchy for assetfs.

``Conflict`` is the only recoverable kind: the caller should reload the asset
and retry. Everything else is terminal for the operation that raised it.
"""

from __future__ import annotations


class AssetFSError(Exception):
    """Base class for all errors raised by assetfs."""


# --- Not found ---

class NotFound(AssetFSError):
    """Raised when a project, asset or branch cannot be located."""


class ProjectNotFound(NotFound):
    """Raised when no project matches the first path segment."""


class AssetNotFound(NotFound):
    """Raised when the addressed asset is not in the project tree."""


class BranchNotFound(NotFound):
    """Raised when a branch name is not among the project's fetched branches."""


# --- Concurrency ---

class Conflict(AssetFSError):
    """Raised when a write would overwrite remote changes that were never pulled."""


class StalePrecondition(Conflict):
    """Raised by the remote service when the last-known modification time is stale."""


# --- Terminal ---

class Unauthorized(AssetFSError):
    """Raised by the remote service when credentials are rejected."""


class StructuralError(AssetFSError):
    """Raised when the cached tree is inconsistent (cycle, unwarmed cache, missing folder)."""


class InvalidOperation(AssetFSError):
    """Raised when an operation does not apply to its target (e.g. listing a file)."""


class FileExists(AssetFSError):
    """Raised when creating an asset that already exists without overwrite."""
