"""Object storage on an S3-compatible service, signed with AWS Signature V4."""

from __future__ import annotations

import hashlib
import hmac
import os
import time
from datetime import datetime, timezone
from typing import BinaryIO
from urllib.parse import quote, urlsplit

import httpx
from dotenv import find_dotenv, load_dotenv

from gamecatalog.randomstr import random_string

DEFAULT_ENDPOINT = "http://localhost:9000"
DEFAULT_REGION = "us-east-1"
DEFAULT_WAIT_ATTEMPTS = 20
DEFAULT_WAIT_DELAY = 5.0


class StorageError(Exception):
    """Raised when an object storage request fails."""


def detect_content_type(path: str) -> str:
    """Guess a content type from the file extension of ``path``."""
    base = path.rsplit("/", 1)[-1]
    dot = base.rfind(".")
    ext = base[dot:] if dot >= 0 else ""
    if ext in (".jpg", ".jpeg"):
        return "image/jpeg"
    if ext == ".png":
        return "image/png"
    if ext == ".gif":
        return "image/gif"
    return "application/octet-stream"


def get_s3_endpoint() -> str:
    """Return the public endpoint prefixed to stored object paths."""
    return os.environ.get("S3_ENDPOINT") or DEFAULT_ENDPOINT


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


class S3Storage:
    """Path-style client for one bucket of an S3-compatible service.

    ``wait_attempts`` and ``wait_delay`` control how long :meth:`delete_file`
    polls for the object to disappear; they may be changed after construction.
    """

    def __init__(self, endpoint, region, access_key, secret_key, bucket, client=None):
        if "://" not in endpoint:
            endpoint = "https://" + endpoint
        self.endpoint = endpoint.rstrip("/")
        self.region = region or DEFAULT_REGION
        self.access_key = access_key
        self.secret_key = secret_key
        self.bucket = bucket
        self.client = client if client is not None else httpx.Client()
        self.wait_attempts = DEFAULT_WAIT_ATTEMPTS
        self.wait_delay = DEFAULT_WAIT_DELAY

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "S3Storage":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _signed_request(
        self, method: str, key: str, body: bytes = b"", extra_headers=None
    ) -> httpx.Response:
        parts = urlsplit(self.endpoint)
        canonical_uri = (
            parts.path.rstrip("/") + "/" + quote(self.bucket, safe="") + "/" + quote(key)
        )
        now = datetime.now(timezone.utc)
        amz_date = now.strftime("%Y%m%dT%H%M%SZ")
        datestamp = now.strftime("%Y%m%d")
        payload_hash = hashlib.sha256(body).hexdigest()

        headers = {
            "host": parts.netloc,
            "x-amz-date": amz_date,
            "x-amz-content-sha256": payload_hash,
        }
        for name, value in (extra_headers or {}).items():
            headers[name.lower()] = value

        names = sorted(headers)
        canonical_headers = "".join(
            f"{name}:{' '.join(str(headers[name]).split())}\n" for name in names
        )
        signed_headers = ";".join(names)
        canonical_request = "\n".join(
            [method, canonical_uri, "", canonical_headers, signed_headers, payload_hash]
        )
        scope = f"{datestamp}/{self.region}/s3/aws4_request"
        string_to_sign = "\n".join(
            [
                "AWS4-HMAC-SHA256",
                amz_date,
                scope,
                hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
            ]
        )
        signing_key = _hmac(("AWS4" + self.secret_key).encode("utf-8"), datestamp)
        for part in (self.region, "s3", "aws4_request"):
            signing_key = _hmac(signing_key, part)
        signature = hmac.new(
            signing_key, string_to_sign.encode("utf-8"), hashlib.sha256
        ).hexdigest()
        headers["authorization"] = (
            f"AWS4-HMAC-SHA256 Credential={self.access_key}/{scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )

        url = f"{parts.scheme}://{parts.netloc}{canonical_uri}"
        try:
            return self.client.request(method, url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            raise StorageError(f"S3 request failed: {exc}") from exc

    def upload_file(self, filename: str, data: bytes | BinaryIO, prefix: str, folder: str) -> str:
        """Store ``data`` under a randomised key and return its path ``/<key>``."""
        body = data.read() if hasattr(data, "read") else bytes(data)
        object_key = f"{folder}{prefix}-{random_string(10)}-{filename}"
        response = self._signed_request(
            "PUT",
            object_key,
            body,
            {"content-type": detect_content_type(filename), "x-amz-acl": "private"},
        )
        if not response.is_success:
            raise StorageError(
                f"S3 PutObject failed: {response.status_code} {response.text}"
            )
        return f"/{object_key}"

    def delete_file(self, object_key: str) -> None:
        """Delete an object and wait until the service no longer reports it."""
        response = self._signed_request("DELETE", object_key)
        if not response.is_success:
            raise StorageError(
                f"S3 DeleteObject failed: {response.status_code} {response.text}"
            )

        for attempt in range(self.wait_attempts):
            if attempt:
                time.sleep(self.wait_delay)
            head = self._signed_request("HEAD", object_key)
            if head.status_code == 404:
                return
            if not head.is_success:
                raise StorageError(
                    f"waiting for S3 object deletion failed: status {head.status_code}"
                )
        raise StorageError(
            "waiting for S3 object deletion failed: object still exists"
        )


def init_s3() -> S3Storage:
    """Build storage from the environment, loading a ``.env`` file if present."""
    env_file = find_dotenv(usecwd=True)
    if env_file:
        load_dotenv(env_file)
    else:
        print("No .env file found, relying on environment variables")

    return S3Storage(
        endpoint=get_s3_endpoint(),
        region=os.environ.get("S3_REGION", ""),
        access_key=os.environ.get("AWS_ACCESS_KEY_ID", ""),
        secret_key=os.environ.get("AWS_SECRET_ACCESS_KEY", ""),
        bucket=os.environ.get("S3_BUCKET", ""),
    )