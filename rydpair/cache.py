# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Two-tier matrix element cache.

An in-memory dict fronts a SQLite database in the cache directory. Entries
are immutable: ``put`` is insert-if-absent in both tiers, so concurrent
workers sweeping a parameter range against the same directory resolve races
as "first writer wins" (``INSERT OR IGNORE`` on a primary key) and adopt
the stored value afterwards.

If the database cannot be opened or read, the cache logs a warning and
continues in memory-only mode for the rest of the session.

File: rydpair/cache.py
"""

from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, NamedTuple, Optional, Union

from .config import CacheConfig
from .errors import CacheIOError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS elements (
    key   TEXT PRIMARY KEY,
    kind  TEXT NOT NULL,
    value REAL NOT NULL
)
"""


class ElementKind(str, Enum):
    """Kinds of cached single-atom matrix element factors."""
    RADIAL = "radial"
    ANGULAR = "angular"
    REDUCED_COMMUTES = "reduced_commutes"
    REDUCED_MULTIPOLE = "reduced_multipole"


class CacheKey(NamedTuple):
    """(kind, bra, ket, params): the content that determines an element."""
    kind: ElementKind
    bra: tuple
    ket: tuple
    params: tuple = ()

    def token(self) -> str:
        """Canonical text form used as primary key on disk."""
        parts = [self.kind.value]
        for group in (self.bra, self.ket, self.params):
            parts.append(",".join(_format_item(v) for v in group))
        return "|".join(parts)


def _format_item(value) -> str:
    if isinstance(value, float):
        return repr(value)
    return str(value)


@dataclass
class CacheStats:
    memory_hits: int = 0
    disk_hits: int = 0
    misses: int = 0
    inserts: int = 0


class MatrixElementCache:
    """
    Persistent, content-addressed store of matrix element values.

    Args:
        directory: Cache directory (``None`` for memory-only operation)
        filename: SQLite file name inside ``directory``
        timeout: Busy timeout for concurrent writers [s]
    """

    FLUSH_EVERY = 256

    def __init__(
        self,
        directory: Union[str, Path, None] = None,
        *,
        filename: str = "matrix_elements.db",
        timeout: float = 30.0,
    ):
        self.directory = Path(directory) if directory is not None else None
        self.filename = filename
        self.timeout = timeout
        self.stats = CacheStats()

        self._memory: dict[str, float] = {}
        self._pending: dict[str, tuple[str, float]] = {}
        self._conn: Optional[sqlite3.Connection] = None
        self._pid: Optional[int] = None
        self._disk_enabled = self.directory is not None

    @classmethod
    def from_config(cls, config: CacheConfig) -> MatrixElementCache:
        return cls(config.directory, filename=config.filename, timeout=config.timeout)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def path(self) -> Optional[Path]:
        return None if self.directory is None else self.directory / self.filename

    @property
    def persistent(self) -> bool:
        """True while the durable tier is in use."""
        return self._disk_enabled

    def __len__(self) -> int:
        return len(self._memory)

    def __contains__(self, key: CacheKey) -> bool:
        return self.get(key) is not None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def get(self, key: CacheKey) -> Optional[float]:
        """Look up memory, then disk. Returns None on a miss."""
        token = key.token()
        value = self._memory.get(token)
        if value is not None:
            self.stats.memory_hits += 1
            return value

        if self._disk_enabled:
            try:
                value = self._disk_get(token)
            except CacheIOError as exc:
                self._degrade(exc)
                value = None
            if value is not None:
                self.stats.disk_hits += 1
                self._memory[token] = value
                return value

        self.stats.misses += 1
        return None

    def put(self, key: CacheKey, value: float) -> float:
        """
        Insert if absent. Returns the value that is stored for ``key``.

        A second insert of an existing key never overwrites it; a differing
        value is reported as a warning.
        """
        token = key.token()
        value = float(value)

        existing = self._memory.get(token)
        if existing is not None:
            if existing != value:
                logger.warning(
                    "Ignoring conflicting value for %s (stored %r, got %r)",
                    token, existing, value,
                )
            return existing

        self._memory[token] = value
        self.stats.inserts += 1
        if self._disk_enabled:
            self._pending[token] = (key.kind.value, value)
            if len(self._pending) >= self.FLUSH_EVERY:
                self.flush()
        return self._memory[token]

    def get_or_compute(self, key: CacheKey, compute: Callable[[], float]) -> float:
        """Return the cached value or compute, insert and return it."""
        value = self.get(key)
        if value is None:
            value = self.put(key, compute())
        return value

    def flush(self) -> None:
        """Write pending inserts to disk and adopt values of earlier writers."""
        if not self._pending:
            return
        if not self._disk_enabled:
            self._pending.clear()
            return

        pending, self._pending = self._pending, {}
        try:
            conn = self._connect()
            with conn:
                conn.executemany(
                    "INSERT OR IGNORE INTO elements (key, kind, value) VALUES (?, ?, ?)",
                    [(token, kind, value) for token, (kind, value) in pending.items()],
                )
            for token in pending:
                stored = self._disk_get(token)
                if stored is not None:
                    self._memory[token] = stored
        except (sqlite3.Error, CacheIOError) as exc:
            self._degrade(exc if isinstance(exc, CacheIOError) else CacheIOError(str(exc)))

    def disk_size(self) -> int:
        """Number of entries in the durable tier (0 when memory-only)."""
        if not self._disk_enabled:
            return 0
        try:
            row = self._connect().execute("SELECT COUNT(*) FROM elements").fetchone()
        except (sqlite3.Error, CacheIOError) as exc:
            self._degrade(exc if isinstance(exc, CacheIOError) else CacheIOError(str(exc)))
            return 0
        return int(row[0])

    def close(self) -> None:
        """Flush and release the database connection."""
        self.flush()
        if self._conn is not None:
            self._conn.close()
        self._conn = None
        self._pid = None

    def __enter__(self) -> MatrixElementCache:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __getstate__(self) -> dict:
        # Connections are per process; workers reopen lazily
        self.flush()
        state = self.__dict__.copy()
        state["_conn"] = None
        state["_pid"] = None
        state["_pending"] = {}
        return state

    # -------------------------------------------------------------------------
    # Durable tier
    # -------------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        """Open (or reopen after fork) the SQLite connection."""
        if self._conn is not None and self._pid == os.getpid():
            return self._conn

        assert self.path is not None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.path), timeout=self.timeout)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute(_SCHEMA)
            conn.execute("SELECT 1 FROM elements LIMIT 1").fetchall()
        except (sqlite3.Error, OSError) as exc:
            raise CacheIOError(f"Cannot open matrix element cache {self.path}: {exc}") from exc

        self._conn = conn
        self._pid = os.getpid()
        logger.debug("Opened matrix element cache %s", self.path)
        return conn

    def _disk_get(self, token: str) -> Optional[float]:
        try:
            row = self._connect().execute(
                "SELECT value FROM elements WHERE key = ?", (token,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise CacheIOError(f"Cannot read matrix element cache {self.path}: {exc}") from exc
        return None if row is None else float(row[0])

    def _degrade(self, exc: CacheIOError) -> None:
        """Fall back to memory-only operation for the rest of the session."""
        if not self._disk_enabled:
            return
        logger.warning("%s; continuing with an in-memory cache", exc)
        self._disk_enabled = False
        self._pending.clear()
        if self._conn is not None:
            try:
                self._conn.close()
            except sqlite3.Error:
                logger.debug("Ignoring error while closing broken cache connection")
        self._conn = None


__all__ = ["ElementKind", "CacheKey", "CacheStats", "MatrixElementCache"]
