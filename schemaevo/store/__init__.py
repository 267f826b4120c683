"""
Snapshot persistence for schemaevo.
"""

from .snapshot_store import FileSnapshotStore, sanitize_key

__all__ = ["FileSnapshotStore", "sanitize_key"]
