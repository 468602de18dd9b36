"""Snapshot file storage.

A snapshot is one indented JSON document. It is written to a temporary file
next to the target and moved into place, so an interrupted backup never
leaves a truncated file behind.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from vault_migrator.vault.exceptions import SnapshotError
from vault_migrator.vault.models import Snapshot

logger = logging.getLogger(__name__)

SNAPSHOT_FILE_MODE = 0o600


def write_snapshot(snapshot: Snapshot, file_path: Union[str, Path]) -> Path:
    """Atomically write a snapshot to ``file_path`` with mode 0600.

    Raises:
        SnapshotError: If the file cannot be written
    """
    target = Path(file_path)
    payload = snapshot.to_json()
    tmp_name = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.",
            suffix=".tmp",
            dir=target.parent,
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, SNAPSHOT_FILE_MODE)
        os.replace(tmp_name, target)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise SnapshotError(str(target), f"Failed to write backup file {target}: {e}") from e

    logger.info(f"Wrote snapshot to {target} ({len(payload)} bytes)")
    return target


def load_snapshot(file_path: Union[str, Path]) -> Snapshot:
    """Read and parse a snapshot file.

    Raises:
        SnapshotError: If the file cannot be read or is not a valid snapshot
    """
    source = Path(file_path)
    try:
        text = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SnapshotError(str(source), f"Failed to read backup file {source}: {e}") from e

    try:
        snapshot = Snapshot.from_json(text)
    except ValidationError as e:
        raise SnapshotError(
            str(source),
            f"Failed to parse backup file {source}",
            details={"errors": e.error_count()},
        ) from e

    logger.info(
        f"Loaded snapshot from {source} taken {snapshot.timestamp.isoformat()} "
        f"(Vault {snapshot.vault_version or 'unknown'})"
    )
    return snapshot
