from __future__ import annotations

import json
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional

DEFAULT_TTL_SECONDS = 60 * 60

# Keys the intake form auto-saves between steps.
CONTACT_INFO = "contact_info"
EMPLOYER_INFO = "employer_info"
EVENTS = "events"
COMPLAINTS = "complaints"
CURRENT_STEP = "current_step"
CACHE_KEYS = (CONTACT_INFO, EMPLOYER_INFO, EVENTS, COMPLAINTS, CURRENT_STEP)

SCHEMA_DRAFTS = """
CREATE TABLE IF NOT EXISTS form_drafts (
    scope TEXT NOT NULL,
    key TEXT NOT NULL,
    value_json TEXT NOT NULL,
    stored_at REAL NOT NULL,
    expires_at REAL NOT NULL,
    PRIMARY KEY (scope, key)
);
"""


@dataclass
class DraftInfo:
    key: str
    expires_at: float
    is_expired: bool


class DraftCache:
    """Auto-saved form state per user scope, expiring after a TTL.

    Reads of an expired entry delete it and report a miss.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = Path(db_path)
        self._default_ttl = default_ttl
        self._clock = clock
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection() as conn:
            conn.execute(SCHEMA_DRAFTS)

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def set(self, key: str, scope: str, value: Any, ttl: Optional[int] = None) -> float:
        """Store ``value`` and return its expiry as a POSIX timestamp."""
        now = self._clock()
        expires_at = now + (ttl if ttl is not None else self._default_ttl)
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO form_drafts (scope, key, value_json, stored_at, expires_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (scope, key) DO UPDATE SET
                    value_json = excluded.value_json,
                    stored_at = excluded.stored_at,
                    expires_at = excluded.expires_at
                """,
                (scope, key, json.dumps(value, ensure_ascii=False), now, expires_at),
            )
        return expires_at

    def get(self, key: str, scope: str) -> Optional[Any]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT value_json, expires_at FROM form_drafts WHERE scope = ? AND key = ?",
                (scope, key),
            ).fetchone()
            if row is None:
                return None
            if self._clock() > row[1]:
                conn.execute("DELETE FROM form_drafts WHERE scope = ? AND key = ?", (scope, key))
                return None
        return json.loads(row[0])

    def expires_at(self, key: str, scope: str) -> Optional[float]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT expires_at FROM form_drafts WHERE scope = ? AND key = ?",
                (scope, key),
            ).fetchone()
        return float(row[0]) if row else None

    def remove(self, key: str, scope: str) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM form_drafts WHERE scope = ? AND key = ?", (scope, key))

    def clear(self, scope: Optional[str] = None) -> int:
        """Drop every draft of ``scope``, or all drafts when no scope is given."""
        with self._connection() as conn:
            if scope is None:
                cursor = conn.execute("DELETE FROM form_drafts")
            else:
                cursor = conn.execute("DELETE FROM form_drafts WHERE scope = ?", (scope,))
            return cursor.rowcount

    def info(self, scope: str) -> List[DraftInfo]:
        now = self._clock()
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT key, expires_at FROM form_drafts WHERE scope = ? ORDER BY key",
                (scope,),
            ).fetchall()
        return [DraftInfo(key=row[0], expires_at=float(row[1]), is_expired=now > row[1]) for row in rows]
