"""File locking and atomic write helpers shared by file-backed state."""

from __future__ import annotations

import fcntl
import json
import os
from pathlib import Path
from typing import IO, Any, Optional

import yaml


class FileLock:
    """Exclusive advisory lock held on a sidecar lock file."""

    def __init__(self, lock_path: Path):
        self.lock_path = lock_path
        self.handle: Optional[IO[str]] = None

    def __enter__(self) -> "FileLock":
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        self.handle = open(self.lock_path, "w")
        fcntl.flock(self.handle, fcntl.LOCK_EX)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.handle:
            return
        fcntl.flock(self.handle, fcntl.LOCK_UN)
        self.handle.close()
        self.handle = None


def _replace_atomically(path: Path, write: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        write(handle)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)


def atomic_write_yaml(path: Path, data: dict[str, Any]) -> None:
    _replace_atomically(path, lambda handle: yaml.safe_dump(data, handle, sort_keys=False))


def atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    def _write(handle: IO[str]) -> None:
        json.dump(data, handle, indent=2)
        handle.write("\n")

    _replace_atomically(path, _write)
