from __future__ import annotations

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Tuple
from uuid import uuid4

from .models import TimelineSubmission

try:  # pragma: no cover - optional dependency for Firestore mode
    from google.cloud import firestore as firestore_client  # type: ignore
except ImportError:  # pragma: no cover - SQLite only
    firestore_client = None

try:  # pragma: no cover - needed only when a credentials file is configured
    from google.oauth2 import service_account  # type: ignore
except ImportError:  # pragma: no cover
    service_account = None

logger = logging.getLogger("intake.submission_store")

SCHEMA_SUBMISSIONS = """
CREATE TABLE IF NOT EXISTS timeline_submissions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    document_json TEXT NOT NULL,
    submitted_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""
INDEX_USER = "CREATE INDEX IF NOT EXISTS idx_timeline_submissions_user ON timeline_submissions (user_id)"


class StoreError(RuntimeError):
    """Raised when the document store cannot be reached or returns garbage."""


@dataclass
class FirestoreConfig:
    enabled: bool
    project_id: str = ""
    credentials_path: str = ""
    collection: str = "timelineSubmissions"


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SubmissionStore:
    """
    Persistence for timeline submissions, one document per user.
    - Firestore enabled: documents in the configured collection
    - otherwise: a local SQLite file holding the same JSON documents
    """

    def __init__(self, firestore: FirestoreConfig | None = None, db_path: Optional[str] = None):
        self._firestore_cfg = firestore or FirestoreConfig(False)
        self._firestore_client = None
        self._collection = self._firestore_cfg.collection or "timelineSubmissions"
        if self._firestore_cfg.enabled:
            if firestore_client is None:
                raise RuntimeError("Firestore mode is enabled but google-cloud-firestore is not installed.")
            credentials = None
            creds_path = (self._firestore_cfg.credentials_path or "").strip()
            if creds_path:
                if service_account is None:
                    raise RuntimeError("google-auth is required for Firestore service account credentials.")
                credentials = service_account.Credentials.from_service_account_file(creds_path)
            project_id = (self._firestore_cfg.project_id or "").strip() or None
            self._firestore_client = firestore_client.Client(project=project_id, credentials=credentials)
            self._db_path = None
        else:
            self._db_path = db_path or os.path.abspath(os.path.join("data", "submissions.db"))
            os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
        self.init_schema()

    @property
    def backend(self) -> str:
        return "firestore" if self._firestore_client else "sqlite"

    # -------------------------------
    # Public API
    # -------------------------------
    def save_submission(self, submission: TimelineSubmission) -> Tuple[str, bool]:
        """
        Create or update the user's submission.
        Returns: (submission_id, created)

        Looks the user's document up first and updates it when found. Two
        concurrent first saves for one user can still both insert.
        """
        existing = self.get_user_submission(submission.user_id)
        now = now_utc_iso()
        document = submission.to_document()
        document.pop("id", None)
        document["updatedAt"] = now

        if existing is not None and existing.id:
            document["submittedAt"] = (
                existing.submitted_at.isoformat() if existing.submitted_at else now
            )
            self._write(existing.id, submission.user_id, document, document["submittedAt"], now, create=False)
            logger.info("Submission updated", extra={"submission_id": existing.id, "user_id": submission.user_id})
            return existing.id, False

        submission_id = str(uuid4())
        document["submittedAt"] = now
        self._write(submission_id, submission.user_id, document, now, now, create=True)
        logger.info("Submission created", extra={"submission_id": submission_id, "user_id": submission.user_id})
        return submission_id, True

    def get_user_submission(self, user_id: str) -> Optional[TimelineSubmission]:
        if self._firestore_client:
            # Earliest document first, matching the SQLite lookup. Needs a userId/submittedAt index.
            query = (
                self._firestore_client.collection(self._collection)
                .where("userId", "==", user_id)
                .order_by("submittedAt")
                .limit(1)
            )
            try:
                snapshots = list(query.stream())
            except Exception as exc:  # pragma: no cover - surface Firestore failure
                raise StoreError("Could not query submissions from Firestore.") from exc
            if not snapshots:
                return None
            return self._to_submission(snapshots[0].id, snapshots[0].to_dict() or {})

        with self._sqlite_conn() as conn:
            row = conn.execute(
                "SELECT id, document_json FROM timeline_submissions WHERE user_id = ? ORDER BY submitted_at ASC LIMIT 1",
                (user_id,),
            ).fetchone()
        if not row:
            return None
        return self._to_submission(row[0], json.loads(row[1]))

    def get_submission(self, submission_id: str) -> Optional[TimelineSubmission]:
        if self._firestore_client:
            try:
                snapshot = self._firestore_client.collection(self._collection).document(submission_id).get()
            except Exception as exc:  # pragma: no cover
                raise StoreError("Could not read the submission from Firestore.") from exc
            if not snapshot.exists:
                return None
            return self._to_submission(submission_id, snapshot.to_dict() or {})

        with self._sqlite_conn() as conn:
            row = conn.execute(
                "SELECT id, document_json FROM timeline_submissions WHERE id = ? LIMIT 1",
                (submission_id,),
            ).fetchone()
        if not row:
            return None
        return self._to_submission(row[0], json.loads(row[1]))

    def update_submission(self, submission_id: str, changes: Dict[str, Any]) -> bool:
        """Merge camelCase ``changes`` into a stored document. False when it does not exist."""
        current = self.get_submission(submission_id)
        if current is None:
            return False
        document = current.to_document()
        document.pop("id", None)
        document.update(changes)
        document["updatedAt"] = now_utc_iso()
        merged = self._to_submission(submission_id, document)
        document = merged.to_document()
        document.pop("id", None)
        self._write(
            submission_id,
            merged.user_id,
            document,
            document.get("submittedAt", document["updatedAt"]),
            document["updatedAt"],
            create=False,
        )
        return True

    def delete_submission(self, submission_id: str) -> bool:
        if self._firestore_client:
            doc_ref = self._firestore_client.collection(self._collection).document(submission_id)
            try:
                if not doc_ref.get().exists:
                    return False
                doc_ref.delete()
            except Exception as exc:  # pragma: no cover
                raise StoreError("Could not delete the submission from Firestore.") from exc
            return True

        with self._sqlite_conn() as conn:
            cursor = conn.execute("DELETE FROM timeline_submissions WHERE id = ?", (submission_id,))
            return cursor.rowcount > 0

    def init_schema(self) -> None:
        if self._firestore_client:
            # Firestore is schemaless.
            return
        with self._sqlite_conn() as conn:
            conn.execute(SCHEMA_SUBMISSIONS)
            conn.execute(INDEX_USER)

    # -------------------------------
    # Private helpers
    # -------------------------------
    def _write(
        self,
        submission_id: str,
        user_id: str,
        document: Dict[str, Any],
        submitted_at: str,
        updated_at: str,
        *,
        create: bool,
    ) -> None:
        if self._firestore_client:
            doc_ref = self._firestore_client.collection(self._collection).document(submission_id)
            try:
                doc_ref.set(document)
            except Exception as exc:  # pragma: no cover
                raise StoreError("Could not write the submission to Firestore.") from exc
            return

        document_json = json.dumps(document, ensure_ascii=False)
        with self._sqlite_conn() as conn:
            if create:
                conn.execute(
                    """
                    INSERT INTO timeline_submissions (id, user_id, document_json, submitted_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (submission_id, user_id, document_json, submitted_at, updated_at),
                )
            else:
                conn.execute(
                    """
                    UPDATE timeline_submissions
                    SET user_id = ?, document_json = ?, submitted_at = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (user_id, document_json, submitted_at, updated_at, submission_id),
                )

    @staticmethod
    def _to_submission(submission_id: str, data: Dict[str, Any]) -> TimelineSubmission:
        payload = dict(data)
        payload["id"] = submission_id
        try:
            return TimelineSubmission.model_validate(payload)
        except ValueError as exc:
            raise StoreError(f"Stored submission {submission_id} is malformed.") from exc

    @contextmanager
    def _sqlite_conn(self) -> Iterator[sqlite3.Connection]:
        if not self._db_path:
            raise RuntimeError("SQLite mode is disabled.")
        conn = sqlite3.connect(self._db_path)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()
