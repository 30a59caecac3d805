import io

import pytest
from fastapi import HTTPException, UploadFile
from starlette.datastructures import Headers

from .attachments import format_file_size, read_upload, upload_attachments, validate_upload
from .blob_store import BlobStore


def _upload(name: str, data: bytes, content_type: str) -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename=name, headers=Headers({"content-type": content_type}))


@pytest.fixture
def anyio_backend():
    return "asyncio"


class BrokenStore:
    def upload_file(self, data, **kwargs):
        raise OSError("bucket unavailable")


@pytest.mark.parametrize(
    "size, expected",
    [
        (0, "0 Bytes"),
        (512, "512 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (10 * 1024 * 1024, "10 MB"),
    ],
)
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected


def test_validate_upload_rejects_unknown_types():
    assert validate_upload(_upload("a.png", b"x", "image/png")) == "image/png"
    with pytest.raises(HTTPException) as exc:
        validate_upload(_upload("a.exe", b"x", "application/x-msdownload"))
    assert exc.value.status_code == 400


@pytest.mark.anyio
async def test_read_upload_enforces_limit():
    assert await read_upload(_upload("a.txt", b"hello", "text/plain"), limit=5) == b"hello"
    with pytest.raises(HTTPException) as exc:
        await read_upload(_upload("a.txt", b"hello!", "text/plain"), limit=5)
    assert exc.value.status_code == 413


@pytest.mark.anyio
async def test_upload_attachments_stores_files(tmp_path):
    store = BlobStore(local_dir=str(tmp_path))
    uploads = [_upload("a.png", b"png", "image/png"), _upload("b.pdf", b"pdf", "application/pdf")]

    attachments, failed = await upload_attachments(store, user_id="u1", event_id="e1", uploads=uploads)

    assert failed == 0
    assert [(a.name, a.type, a.size) for a in attachments] == [("a.png", "image/png", 3), ("b.pdf", "application/pdf", 3)]
    assert all(a.url for a in attachments)


@pytest.mark.anyio
async def test_storage_failure_keeps_attachment_without_url():
    uploads = [_upload("a.png", b"png", "image/png")]

    attachments, failed = await upload_attachments(BrokenStore(), user_id="u1", event_id="e1", uploads=uploads)

    assert failed == 1
    assert attachments[0].name == "a.png"
    assert attachments[0].url is None
