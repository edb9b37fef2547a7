"""Configuration loading from environment variables and assetfs.toml."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_STATE_FILE = Path.home() / ".assetfs" / "workspace.json"
_CONFIG_FILENAME = "assetfs.toml"
_DEFAULT_IGNORED = [
    ".vscode",
    ".git",
    ".devcontainer",
    "node_modules",
    "pom.xml",
    "AndroidManifest.xml",
]


@dataclass
class SearchConfig:
    """Limits for content search."""

    max_results: int = 1000
    preview_width: int = 80


@dataclass
class FilesystemConfig:
    """Path handling and content presentation."""

    default_branch: str = "main"
    ignored_segments: list[str] = field(default_factory=lambda: list(_DEFAULT_IGNORED))
    # Header prepended to matching files on read and stripped again on write
    types_reference: str | None = None
    types_reference_suffixes: list[str] = field(default_factory=lambda: [".js", ".mjs"])


@dataclass
class AssetFSConfig:
    """Top-level assetfs configuration."""

    search: SearchConfig = field(default_factory=SearchConfig)
    filesystem: FilesystemConfig = field(default_factory=FilesystemConfig)
    state_file: Path = _DEFAULT_STATE_FILE
    log_level: str = "INFO"


def load_config(config_path: Path | None = None) -> AssetFSConfig:
    """Load configuration from environment variables and optional assetfs.toml.

    Priority: environment variables > assetfs.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.assetfs/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, Path.home() / ".assetfs" / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    search_data = file_data.get("search", {})
    fs_data = file_data.get("filesystem", {})

    config = AssetFSConfig(
        search=SearchConfig(
            max_results=int(
                os.getenv("ASSETFS_MAX_SEARCH_RESULTS", search_data.get("max_results", 1000))
            ),
            preview_width=int(
                os.getenv("ASSETFS_PREVIEW_WIDTH", search_data.get("preview_width", 80))
            ),
        ),
        filesystem=FilesystemConfig(
            default_branch=os.getenv(
                "ASSETFS_DEFAULT_BRANCH", fs_data.get("default_branch", "main")
            ),
            ignored_segments=fs_data.get("ignored_segments", list(_DEFAULT_IGNORED)),
            types_reference=os.getenv(
                "ASSETFS_TYPES_REFERENCE", fs_data.get("types_reference")
            ),
            types_reference_suffixes=fs_data.get("types_reference_suffixes", [".js", ".mjs"]),
        ),
        state_file=Path(
            os.getenv("ASSETFS_STATE_FILE", file_data.get("state_file", str(_DEFAULT_STATE_FILE)))
        ).expanduser(),
        log_level=os.getenv("ASSETFS_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
