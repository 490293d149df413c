"""Object storage for cached token media artifacts."""

from .artifact_writer import ArtifactKind, ArtifactWriter, CacheResult, artifact_key, coherency_deletions
from .gcs_object_store import GcsObjectStore
from .object_store import LocalObjectStore, ObjectStore

__all__ = [
    "ArtifactKind",
    "ArtifactWriter",
    "CacheResult",
    "GcsObjectStore",
    "LocalObjectStore",
    "ObjectStore",
    "artifact_key",
    "coherency_deletions",
]
