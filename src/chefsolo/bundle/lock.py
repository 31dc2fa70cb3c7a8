# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chefsolo/bundle/lock.py

from __future__ import annotations

import fcntl
import logging
from pathlib import Path
from typing import IO, Optional

log = logging.getLogger("chefsolo")


class FileLock:
    """
    Exclusive advisory lock on a file (``flock``).

    Each instance owns its own open file description, so two FileLock
    objects on the same path exclude each other even inside one process.
    Not reentrant. The kernel drops the lock when the holder exits.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._handle: Optional[IO[str]] = None

    @property
    def locked(self) -> bool:
        return self._handle is not None

    def try_acquire(self) -> bool:
        """Take the lock without blocking; False if someone else holds it."""
        if self._handle is not None:
            raise RuntimeError(f"lock {self.path} is already held by this object")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self.path, "a")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            handle.close()
            return False
        except OSError:
            handle.close()
            raise

        self._handle = handle
        log.debug("Acquired lock %s", self.path)
        return True

    def release(self) -> None:
        if self._handle is None:
            return
        try:
            fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        finally:
            self._handle.close()
            self._handle = None
            log.debug("Released lock %s", self.path)
