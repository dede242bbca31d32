"""Versioned snapshot files, atomic writes, and the directory lock."""

import os
import re
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from pydantic import ValidationError

from busm.config.logging import get_logger
from busm.errors import SnapshotError, SnapshotLockedError
from busm.ir.snapshot import SchemaSnapshot

logger = get_logger(__name__)

_SNAPSHOT_NAME = re.compile(r"^iteration-(\d+)-schema\.json$")
LOCK_NAME = ".busm.lock"


def atomic_write(path: Path, text: str) -> Path:
    """
    Write text by creating a temporary file beside `path` and renaming it into place.

    Readers never observe a partially written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    return path


class SnapshotStore:
    """
    One `iteration-N-schema.json` file per planner iteration.

    Snapshots are append-only: writing an iteration that already exists is an
    error.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, iteration: int) -> Path:
        return self.directory / f"iteration-{iteration}-schema.json"

    def iterations(self) -> List[int]:
        if not self.directory.exists():
            return []
        found = []
        for p in self.directory.iterdir():
            match = _SNAPSHOT_NAME.match(p.name)
            if match:
                found.append(int(match.group(1)))
        return sorted(found)

    def latest_iteration(self) -> int:
        """Highest stored iteration, or 0 when there is none."""
        found = self.iterations()
        return found[-1] if found else 0

    def exists(self, iteration: int) -> bool:
        return self.path_for(iteration).exists()

    def load(self, iteration: int) -> Optional[SchemaSnapshot]:
        """
        Load one iteration's snapshot.

        Returns:
            SchemaSnapshot, or None when the file does not exist

        Raises:
            SnapshotError: If the file exists but cannot be parsed
        """
        path = self.path_for(iteration)
        if not path.exists():
            return None
        try:
            return SchemaSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise SnapshotError(f"Corrupt snapshot {path}: {e}") from e

    def write(self, snapshot: SchemaSnapshot) -> Path:
        """
        Persist a snapshot.

        Raises:
            SnapshotError: If the iteration was already written
        """
        path = self.path_for(snapshot.iteration)
        if path.exists():
            raise SnapshotError(f"Snapshot for iteration {snapshot.iteration} already exists: {path}")
        atomic_write(path, snapshot.model_dump_json(indent=2) + "\n")
        logger.info(f"Saved schema state: {path.name}")
        return path

    @contextmanager
    def lock(self) -> Iterator[Path]:
        """
        Hold an exclusive lock file for the duration of a planner run.

        Raises:
            SnapshotLockedError: If another run holds the lock
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        lock_path = self.directory / LOCK_NAME
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as e:
            raise SnapshotLockedError(
                f"Snapshot directory {self.directory} is locked ({lock_path}); "
                "remove the lock file if no other run is active"
            ) from e
        try:
            os.write(fd, str(os.getpid()).encode())
            os.close(fd)
            yield lock_path
        finally:
            lock_path.unlink(missing_ok=True)
