"""VelvetCore identity: the owner id that scopes every stored row."""

from velvetcore.identity.fingerprint import (
    FileIdentityStorage,
    FingerprintIdentity,
    OwnerIdProvider,
    StaticIdentity,
    rolling_hash,
)

__all__ = [
    "FileIdentityStorage",
    "FingerprintIdentity",
    "OwnerIdProvider",
    "StaticIdentity",
    "rolling_hash",
]
