import hashlib
import io
import re

import httpx
import pytest

from gamecatalog.storage import (
    S3Storage,
    StorageError,
    detect_content_type,
    get_s3_endpoint,
    init_s3,
)


def make_storage(handler, wait_attempts=20):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    storage = S3Storage(
        endpoint="http://s3.example.com",
        region="us-east-1",
        access_key="placeholder",
        secret_key="secret",
        bucket="media",
        client=client,
    )
    storage.wait_delay = 0
    storage.wait_attempts = wait_attempts
    return storage


def split_key(url, folder, prefix, filename):
    """Return the random middle part of an uploaded object's URL."""
    head = f"/{folder}{prefix}-"
    tail = f"-{filename}"
    assert url.startswith(head)
    assert url.endswith(tail)
    return url[len(head):len(url) - len(tail)]


@pytest.mark.parametrize(
    "path, expected",
    [
        ("cover.jpg", "image/jpeg"),
        ("dir/cover.jpeg", "image/jpeg"),
        ("a.png", "image/png"),
        ("a.gif", "image/gif"),
        ("archive.zip", "application/octet-stream"),
        ("noext", "application/octet-stream"),
        ("photo.JPG", "application/octet-stream"),
    ],
)
def test_detect_content_type(path, expected):
    assert detect_content_type(path) == expected


def test_endpoint_default(monkeypatch):
    monkeypatch.delenv("S3_ENDPOINT", raising=False)
    assert get_s3_endpoint() == "http://localhost:9000"


def test_endpoint_from_environment(monkeypatch):
    monkeypatch.setenv("S3_ENDPOINT", "http://files.example.com")
    assert get_s3_endpoint() == "http://files.example.com"


def test_upload_sends_signed_put():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200)

    storage = make_storage(handler)
    url = storage.upload_file("cover.png", b"image-bytes", "test", "games/")

    assert len(seen) == 1
    request = seen[0]
    assert request.method == "PUT"
    assert request.url.host == "s3.example.com"
    assert request.url.path == "/media" + url
    middle = split_key(url, "games/", "test", "cover.png")
    assert len(middle) == 10
    assert middle.isascii() and middle.isalnum()
    assert request.headers["content-type"] == "image/png"
    assert request.headers["x-amz-acl"] == "private"
    assert request.content == b"image-bytes"
    assert request.headers["x-amz-content-sha256"] == hashlib.sha256(b"image-bytes").hexdigest()
    auth = request.headers["authorization"]
    assert auth.startswith("AWS4-HMAC-SHA256 Credential=placeholder/")
    assert "/us-east-1/s3/aws4_request" in auth
    assert "SignedHeaders=content-type;host;x-amz-acl;x-amz-content-sha256;x-amz-date" in auth
    assert len(re.findall(r"Signature=[0-9a-f]{64}$", auth)) == 1


def test_upload_accepts_file_objects():
    bodies = []

    def handler(request):
        bodies.append(request.content)
        return httpx.Response(200)

    storage = make_storage(handler)
    url = storage.upload_file("shot.gif", io.BytesIO(b"gif-data"), "p", "screenshots/")
    assert bodies == [b"gif-data"]
    middle = split_key(url, "screenshots/", "p", "shot.gif")
    assert len(middle) == 10
    assert middle.isascii() and middle.isalnum()


def test_upload_keys_are_unique():
    storage = make_storage(lambda request: httpx.Response(200))
    first = storage.upload_file("a.png", b"x", "test", "games/")
    second = storage.upload_file("a.png", b"x", "test", "games/")
    assert first != second
    assert first.endswith("-a.png") and second.endswith("-a.png")


def test_upload_failure_raises():
    storage = make_storage(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(StorageError, match="PutObject"):
        storage.upload_file("a.png", b"x", "test", "games/")


def test_transport_error_raises_storage_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    storage = make_storage(handler)
    with pytest.raises(StorageError):
        storage.upload_file("a.png", b"x", "test", "games/")


def test_delete_waits_until_gone():
    methods = []
    paths = []

    def handler(request):
        methods.append(request.method)
        paths.append(request.url.path)
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(200 if methods.count("HEAD") < 3 else 404)

    storage = make_storage(handler)
    result = storage.delete_file("games/test-abc-cover.png")
    assert result is None
    assert methods == ["DELETE", "HEAD", "HEAD", "HEAD"]
    assert set(paths) == {"/media/games/test-abc-cover.png"}


def test_delete_failure_raises():
    storage = make_storage(lambda request: httpx.Response(403))
    with pytest.raises(StorageError, match="DeleteObject"):
        storage.delete_file("games/x.png")


def test_delete_gives_up_when_object_remains():
    def handler(request):
        return httpx.Response(204 if request.method == "DELETE" else 200)

    storage = make_storage(handler, wait_attempts=2)
    with pytest.raises(StorageError, match="waiting"):
        storage.delete_file("games/x.png")


def test_init_s3_reads_environment(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("S3_ENDPOINT", "http://store.example.com")
    monkeypatch.setenv("S3_REGION", "eu-west-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "placeholder")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
    monkeypatch.setenv("S3_BUCKET", "media")

    storage = init_s3()
    try:
        assert storage.endpoint == "http://store.example.com"
        assert storage.region == "eu-west-1"
        assert storage.bucket == "media"
    finally:
        storage.close()