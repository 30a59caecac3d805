from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from fastapi import HTTPException, UploadFile
from starlette.status import HTTP_413_REQUEST_ENTITY_TOO_LARGE

from .blob_store import BlobStore
from .models import Attachment

logger = logging.getLogger("intake.attachments")

ALLOWED_CONTENT_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "application/rtf",
}
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
READ_CHUNK_SIZE = 1 * 1024 * 1024  # 1 MB
SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    exponent = 0
    while size >= 1024 ** (exponent + 1) and exponent < len(SIZE_UNITS) - 1:
        exponent += 1
    value = round(size / (1024**exponent), 2)
    return f"{value:g} {SIZE_UNITS[exponent]}"


def validate_upload(upload: UploadFile) -> str:
    """Return the upload's content type, or raise 400 when it is not accepted."""
    content_type = (upload.content_type or "").split(";", 1)[0].strip().lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"File type not allowed: {upload.filename}. Please upload images, PDFs, or text documents only.",
        )
    return content_type


async def read_upload(upload: UploadFile, *, limit: int = MAX_FILE_SIZE) -> bytes:
    await upload.seek(0)
    buffer = bytearray()
    while True:
        chunk = await upload.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > limit:
            raise HTTPException(
                status_code=HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File too large: {upload.filename}. Maximum size is {format_file_size(limit)}.",
            )
    await upload.seek(0)
    return bytes(buffer)


async def upload_attachments(
    store: BlobStore,
    *,
    user_id: str,
    event_id: str,
    uploads: Sequence[UploadFile],
    limit: int = MAX_FILE_SIZE,
) -> Tuple[List[Attachment], int]:
    """Validate every file, then store each one.

    Validation problems reject the whole request. A storage failure only
    costs that file its URL: the attachment is still returned with its
    metadata so the event can be saved. Returns (attachments, failures).
    """

    prepared: List[Tuple[UploadFile, str, bytes]] = []
    for upload in uploads:
        content_type = validate_upload(upload)
        data = await read_upload(upload, limit=limit)
        prepared.append((upload, content_type, data))

    attachments: List[Attachment] = []
    failures = 0
    for upload, content_type, data in prepared:
        filename = upload.filename or "attachment"
        attachment = Attachment(name=filename, type=content_type, size=len(data))
        try:
            attachment.url = store.upload_file(
                data,
                user_id=user_id,
                event_id=event_id,
                filename=filename,
                content_type=content_type,
            )
        except Exception:
            failures += 1
            logger.exception(
                "Attachment upload failed",
                extra={"user_id": user_id, "event_id": event_id, "attachment_name": filename},
            )
        attachments.append(attachment)
    return attachments, failures
