"""assetfs — a remote project/branch/asset store exposed as a cached filesystem.

Layout:
    assetfs/
    ├── filesystem.py        # AssetFileSystem: the public async operation surface
    ├── paths.py             # /<project>[:<branch>]/a/b/c parsing and local resolution
    ├── sync.py              # content-hash conflict detection before uploads
    ├── search.py            # line matching and preview truncation
    ├── flight.py            # single-flight coalescing of identical async work
    ├── cache/
    │   ├── nodes.py         # Directory / FileAsset tree built from flat listings
    │   └── projects.py      # ProjectCache: projects, branches, lazily-loaded trees
    ├── service/base.py      # RemoteAssetService protocol + record types
    ├── host.py              # confirmation / credential / workspace-state capabilities
    ├── config.py            # env > assetfs.toml > defaults
    └── errors.py
"""

__version__ = "0.1.0"
