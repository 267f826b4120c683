"""
File-backed snapshot store for schemaevo.

Persists Snapshots as canonical JSON documents, one file per key, so a
later run can diff against an earlier baseline.

Layout:
    <base_dir>/<key>.json

Invariants:
    - Writes are atomic: content goes to a temp file in the same directory
      and is moved into place with os.replace, so readers never see a
      partial document
    - A loaded snapshot's stored checksum matches its recomputed content
      checksum, otherwise SnapshotIntegrityError is raised
    - load() of an absent key returns None (first run, no baseline yet)

How to change safely:
    - Keep the document format equal to Snapshot.to_dict(); stored files
      outlive the code that wrote them
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path

from ..errors import SnapshotIntegrityError
from ..schema.snapshot import compute_checksum
from ..schema.types import Snapshot

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")
SNAPSHOT_SUFFIX = ".json"


def sanitize_key(key: str) -> str:
    """Map a snapshot key to a safe file stem ("prod/v1" -> "prod_v1").

    Raises:
        ValueError: If the key is empty or sanitizes to dots only
    """
    stem = _UNSAFE_KEY_CHARS.sub("_", key.strip())
    if not stem or set(stem) == {"."}:
        raise ValueError(f"Invalid snapshot key: {key!r}")
    return stem


class FileSnapshotStore:
    """Directory of persisted snapshots keyed by name.

    Attributes:
        base_dir: Directory holding the snapshot files (created on first save)

    Example:
        >>> store = FileSnapshotStore(".schema-snapshots")
        >>> store.save(snapshot, "production")
        >>> baseline = store.load("production") or Snapshot.empty()
    """

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)

    def path_for(self, key: str) -> Path:
        return self.base_dir / f"{sanitize_key(key)}{SNAPSHOT_SUFFIX}"

    def save(self, snapshot: Snapshot, key: str) -> Path:
        """Persist a snapshot under a key, replacing any previous one.

        Args:
            snapshot: Snapshot to persist
            key: Store key

        Returns:
            Path of the written file
        """
        path = self.path_for(key)
        self.base_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.stem}.", suffix=".tmp", dir=self.base_dir
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(snapshot.to_dict(), handle, indent=2, sort_keys=True)
                handle.write("\n")
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

        logger.info(f"Saved snapshot {snapshot.version!r} as '{key}' ({snapshot.checksum})")
        return path

    def load(self, key: str) -> Snapshot | None:
        """Load the snapshot stored under a key.

        Returns:
            The Snapshot, or None when nothing is stored under the key

        Raises:
            SnapshotIntegrityError: If the file is unreadable or its content
                does not match the stored checksum
        """
        path = self.path_for(key)
        if not path.exists():
            logger.warning(f"No snapshot stored under '{key}' in {self.base_dir}")
            return None

        try:
            with open(path, encoding="utf-8") as handle:
                data = json.load(handle)
            snapshot = Snapshot.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise SnapshotIntegrityError(f"Cannot read snapshot '{key}' from {path}: {e}") from e

        actual = compute_checksum(snapshot.entities, snapshot.relationships)
        if snapshot.checksum != actual:
            raise SnapshotIntegrityError(
                f"Snapshot '{key}' checksum mismatch (stored {snapshot.checksum}, actual {actual})",
                expected_checksum=snapshot.checksum,
                actual_checksum=actual,
            )

        logger.info(f"Loaded snapshot '{key}' version={snapshot.version!r}")
        return snapshot

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def keys(self) -> list[str]:
        """Stored keys (file stems), sorted."""
        if not self.base_dir.is_dir():
            return []
        return sorted(p.stem for p in self.base_dir.glob(f"*{SNAPSHOT_SUFFIX}"))

    def delete(self, key: str) -> bool:
        """Remove the snapshot under a key; returns whether one existed."""
        path = self.path_for(key)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Deleted snapshot '{key}'")
        return True
