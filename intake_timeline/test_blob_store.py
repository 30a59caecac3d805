import pytest

from .blob_store import ATTACHMENT_ROOT, BlobStore, attachment_path, path_from_url


def test_attachment_path_layout():
    path = attachment_path("user-1", "event-9", "application/pdf")
    root, user, event, name = path.split("/")

    assert (root, user, event) == (ATTACHMENT_ROOT, "user-1", "event-9")
    stamp, rest = name.split("_", 1)
    assert stamp.isdigit()
    assert rest.endswith(".pdf") and len(rest) == len("abcdefghi.pdf")


def test_extension_follows_content_type():
    assert attachment_path("u", "e", "image/jpeg").endswith(".jpg")
    assert attachment_path("u", "e", "text/plain").endswith(".txt")
    assert attachment_path("u", "e", "text/html").endswith(".bin")


def test_client_filename_does_not_pick_the_extension(tmp_path):
    store = BlobStore(local_dir=str(tmp_path))

    url = store.upload_file(b"<script>", user_id="u1", event_id="e1", filename="evil.html", content_type="image/png")

    assert url.endswith(".png")
    assert ".html" not in url


def test_path_from_url_keeps_last_four_segments():
    url = "https://storage.googleapis.com/bucket/timeline-attachments/u1/e1/1700000000000_abc.png"

    assert path_from_url(url) == "timeline-attachments/u1/e1/1700000000000_abc.png"


def test_local_upload_read_and_delete(tmp_path):
    store = BlobStore(local_dir=str(tmp_path / "files"), public_base_url="http://testserver/")
    assert store.backend == "local"

    url = store.upload_file(b"%PDF-1.4", user_id="u1", event_id="e1", filename="letter.pdf", content_type="application/pdf")

    assert url.startswith("http://testserver/files/timeline-attachments/u1/e1/")
    path = path_from_url(url)
    assert store.read_local(path) == b"%PDF-1.4"
    assert store.delete_file(url) is True
    assert store.delete_file(url) is False
    assert store.read_local(path) is None


def test_local_paths_cannot_escape_the_directory(tmp_path):
    store = BlobStore(local_dir=str(tmp_path / "files"))

    with pytest.raises(ValueError):
        store.read_local("../secrets.txt")
    with pytest.raises(ValueError):
        store.delete_file("http://example.com/some/other/file.txt")


def test_local_path_requires_local_storage(tmp_path):
    store = BlobStore(local_dir=str(tmp_path))
    store._local_dir = None

    with pytest.raises(RuntimeError):
        store.delete_file("http://testserver/files/timeline-attachments/u1/e1/1_abc.txt")
