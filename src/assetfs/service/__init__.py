"""Remote asset service contract.

The transport/auth client lives outside this package; anything satisfying
``RemoteAssetService`` in ``service/base.py`` can back the filesystem.
"""
