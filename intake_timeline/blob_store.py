"""
Attachment storage: Cloud Storage when a bucket is configured, local disk otherwise.
"""
from __future__ import annotations

import logging
import secrets
import string
import time
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote, urlparse

try:  # pragma: no cover - optional dependency for Cloud Storage mode
    from google.cloud import storage as gcs_client  # type: ignore
except ImportError:  # pragma: no cover - local disk only
    gcs_client = None

logger = logging.getLogger("intake.blob_store")

ATTACHMENT_ROOT = "timeline-attachments"
LOCAL_URL_PREFIX = "/files"
_TOKEN_ALPHABET = string.ascii_lowercase + string.digits
# Stored extensions follow the validated content type, never the client filename.
CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/bmp": "bmp",
    "image/webp": "webp",
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "text/plain": "txt",
    "application/rtf": "rtf",
}


def extension_for(content_type: str) -> str:
    return CONTENT_TYPE_EXTENSIONS.get(content_type, "bin")


def _unique_name(content_type: str) -> str:
    extension = extension_for(content_type)
    token = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(9))
    return f"{int(time.time() * 1000)}_{token}.{extension}"


def attachment_path(user_id: str, event_id: str, content_type: str) -> str:
    """Object path ``timeline-attachments/<user>/<event>/<ms>_<token>.<ext>``."""
    return f"{ATTACHMENT_ROOT}/{user_id}/{event_id}/{_unique_name(content_type)}"


def path_from_url(file_url: str) -> str:
    segments = [segment for segment in urlparse(file_url).path.split("/") if segment]
    return "/".join(unquote(segment) for segment in segments[-4:])


class BlobStore:
    def __init__(
        self,
        *,
        bucket: str = "",
        local_dir: Optional[str] = None,
        public_base_url: str = "",
    ) -> None:
        self._bucket = None
        self._local_dir: Optional[Path] = None
        self._public_base_url = public_base_url.rstrip("/")
        if bucket:
            if gcs_client is None:
                raise RuntimeError("A storage bucket is configured but google-cloud-storage is not installed.")
            self._bucket = gcs_client.Client().bucket(bucket)
        else:
            self._local_dir = Path(local_dir or "data/attachments")
            self._local_dir.mkdir(parents=True, exist_ok=True)

    @property
    def backend(self) -> str:
        return "gcs" if self._bucket is not None else "local"

    def upload_file(
        self,
        data: bytes,
        *,
        user_id: str,
        event_id: str,
        filename: str,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Store ``data`` and return a URL it can be downloaded from."""
        path = attachment_path(user_id, event_id, content_type)
        if self._bucket is not None:
            blob = self._bucket.blob(path)
            blob.upload_from_string(data, content_type=content_type)
            return blob.public_url

        target = self._local_path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.debug("Stored attachment on disk", extra={"path": str(target), "bytes": len(data)})
        return f"{self._public_base_url}{LOCAL_URL_PREFIX}/{quote(path)}"

    def delete_file(self, file_url: str) -> bool:
        path = path_from_url(file_url)
        if not path.startswith(ATTACHMENT_ROOT + "/"):
            raise ValueError(f"Not an attachment URL: {file_url}")
        if self._bucket is not None:
            blob = self._bucket.blob(path)
            if not blob.exists():
                return False
            blob.delete()
            return True

        target = self._local_path(path)
        if not target.exists():
            return False
        target.unlink()
        return True

    def read_local(self, path: str) -> Optional[bytes]:
        if self._local_dir is None:
            return None
        target = self._local_path(path)
        return target.read_bytes() if target.is_file() else None

    def _local_path(self, path: str) -> Path:
        if self._local_dir is None:
            raise RuntimeError("Local attachment storage is disabled.")
        root = self._local_dir.resolve()
        target = (root / path).resolve()
        if root not in target.parents:
            raise ValueError(f"Path escapes the attachment directory: {path}")
        return target
