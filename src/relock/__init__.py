"""Lockfile and vendor-tree reconciliation for edited dependency manifests."""

from .engine import ArtifactUpdater, update_artifacts
from .masking import mask_local_replaces, unmask_local_replaces
from .schema import (
    ArtifactError,
    BinarySource,
    FileDelete,
    FileWrite,
    UpdateArtifactRequest,
    UpdateArtifactsResult,
    UpdateConfig,
)

__all__ = [
    "ArtifactError",
    "ArtifactUpdater",
    "BinarySource",
    "FileDelete",
    "FileWrite",
    "UpdateArtifactRequest",
    "UpdateArtifactsResult",
    "UpdateConfig",
    "mask_local_replaces",
    "unmask_local_replaces",
    "update_artifacts",
]
