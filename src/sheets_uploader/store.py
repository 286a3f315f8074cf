"""Destination stores for the uploaded CSV files.

The pipeline only needs three capabilities from a store:

- ``attributes(path)``: metadata of an existing blob, including the MD5 digest
  of its content when the backend knows it
- ``write_all(path, data, options)``: replace the blob at ``path``
- ``close()``: release clients and handles

Stores are opened from a bucket URL with :func:`open_store`:

- ``file://<dir>`` writes below a local directory (``file://.`` is the default)
- ``mem://`` keeps blobs in memory, mostly useful for tests and dry runs
- ``s3://<bucket>[/<prefix>][?region=<region>]`` writes to AWS S3 via boto3
"""

from __future__ import annotations

import base64
import dataclasses
import hashlib
import json
import logging
import os
import threading
from pathlib import Path
from types import TracebackType
from typing import Any
from urllib.parse import parse_qs, urlsplit

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from sheets_uploader.exceptions import BlobNotFound, ConfigError, StoreError

logger = logging.getLogger("sheets-uploader.store")

_S3_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}
ATTRS_SUFFIX = ".attrs"


@dataclasses.dataclass(frozen=True)
class WriteOptions:
    cache_control: str = ""
    content_type: str = "text/csv"


@dataclasses.dataclass(frozen=True)
class BlobAttributes:
    md5: bytes | None = None
    size: int = 0
    cache_control: str = ""
    content_type: str = ""


class BlobStore:
    """Base class for destination stores; usable as a context manager."""

    url: str = ""

    def attributes(self, path: str) -> BlobAttributes:
        raise NotImplementedError

    def write_all(self, path: str, data: bytes, options: WriteOptions) -> None:
        raise NotImplementedError

    def close(self) -> None:
        return None

    def __enter__(self) -> BlobStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            self.close()
        except Exception as close_exc:
            if exc is None:
                raise StoreError(
                    f"problem closing: {close_exc}", context={"url": self.url}
                ) from close_exc
            logger.warning("problem closing %s after earlier error: %s", self.url, close_exc)


class MemoryStore(BlobStore):
    def __init__(self) -> None:
        self.url = "mem://"
        self._blobs: dict[str, tuple[bytes, WriteOptions]] = {}
        self._lock = threading.Lock()
        self.closed = False

    def attributes(self, path: str) -> BlobAttributes:
        with self._lock:
            entry = self._blobs.get(path)
        if entry is None:
            raise BlobNotFound(path)
        data, options = entry
        return BlobAttributes(
            md5=hashlib.md5(data).digest(),
            size=len(data),
            cache_control=options.cache_control,
            content_type=options.content_type,
        )

    def write_all(self, path: str, data: bytes, options: WriteOptions) -> None:
        if self.closed:
            raise StoreError("store is closed", context={"url": self.url, "path": path})
        with self._lock:
            self._blobs[path] = (bytes(data), options)

    def read(self, path: str) -> bytes:
        with self._lock:
            entry = self._blobs.get(path)
        if entry is None:
            raise BlobNotFound(path)
        return entry[0]

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._blobs)

    def close(self) -> None:
        self.closed = True


class FileStore(BlobStore):
    """Store blobs as files below ``root``.

    Cache-Control and Content-Type have no filesystem equivalent, so they are
    kept in a JSON sidecar next to each file.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser().resolve()
        self.url = f"file://{self.root}"

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if target != self.root and self.root not in target.parents:
            raise StoreError(
                f"path escapes store root: {path!r}", context={"url": self.url, "path": path}
            )
        return target

    def attributes(self, path: str) -> BlobAttributes:
        target = self._resolve(path)
        h = hashlib.md5()
        size = 0
        try:
            with target.open("rb") as f:
                for chunk in iter(lambda: f.read(1024 * 1024), b""):
                    h.update(chunk)
                    size += len(chunk)
        except FileNotFoundError as exc:
            raise BlobNotFound(path) from exc
        except OSError as exc:
            raise StoreError(f"could not read {path!r}: {exc}", context={"path": path}) from exc
        meta = self._read_sidecar(target)
        return BlobAttributes(
            md5=h.digest(),
            size=size,
            cache_control=str(meta.get("cache_control", "")),
            content_type=str(meta.get("content_type", "")),
        )

    def _read_sidecar(self, target: Path) -> dict[str, Any]:
        sidecar = target.with_name(target.name + ATTRS_SUFFIX)
        try:
            return json.loads(sidecar.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}

    def write_all(self, path: str, data: bytes, options: WriteOptions) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._write_atomic(target, data)
            sidecar = {"cache_control": options.cache_control, "content_type": options.content_type}
            self._write_atomic(
                target.with_name(target.name + ATTRS_SUFFIX),
                (json.dumps(sidecar, indent=2) + "\n").encode("utf-8"),
            )
        except OSError as exc:
            raise StoreError(f"could not write {path!r}: {exc}", context={"path": path}) from exc

    @staticmethod
    def _write_atomic(target: Path, data: bytes) -> None:
        tmp_path = target.with_name(target.name + ".tmp")
        with tmp_path.open("wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(target)


def _etag_md5(etag: str | None) -> bytes | None:
    """MD5 digest from an S3 ETag; multipart ETags carry no content MD5."""
    if not etag:
        return None
    value = etag.strip().strip('"')
    if "-" in value:
        return None
    try:
        digest = bytes.fromhex(value)
    except ValueError:
        return None
    return digest if len(digest) == 16 else None


class S3Store(BlobStore):
    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        *,
        region: str | None = None,
        client: Any | None = None,
        connect_timeout: float = 10.0,
        read_timeout: float = 60.0,
    ) -> None:
        if not bucket:
            raise ConfigError("s3 bucket URL is missing a bucket name")
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.url = f"s3://{bucket}/{self.prefix}" if self.prefix else f"s3://{bucket}"
        if client is None:
            try:
                client = boto3.client(
                    "s3",
                    region_name=region,
                    config=BotoConfig(connect_timeout=connect_timeout, read_timeout=read_timeout),
                )
            except BotoCoreError as exc:
                raise ConfigError(
                    f"could not set up S3 client for {self.url}: {exc}",
                    context={"url": self.url},
                ) from exc
        self._client = client

    def key_for(self, path: str) -> str:
        path = path.lstrip("/")
        return f"{self.prefix}/{path}" if self.prefix else path

    def attributes(self, path: str) -> BlobAttributes:
        key = self.key_for(path)
        try:
            head = self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _S3_MISSING_CODES:
                raise BlobNotFound(path) from exc
            raise StoreError(
                f"could not read attributes of s3://{self.bucket}/{key}: {exc}",
                context={"bucket": self.bucket, "key": key, "aws_code": code},
            ) from exc
        except BotoCoreError as exc:
            raise StoreError(
                f"could not read attributes of s3://{self.bucket}/{key}: {exc}",
                context={"bucket": self.bucket, "key": key},
            ) from exc
        return BlobAttributes(
            md5=_etag_md5(head.get("ETag")),
            size=int(head.get("ContentLength", 0) or 0),
            cache_control=head.get("CacheControl", "") or "",
            content_type=head.get("ContentType", "") or "",
        )

    def write_all(self, path: str, data: bytes, options: WriteOptions) -> None:
        key = self.key_for(path)
        content_md5 = base64.b64encode(hashlib.md5(data).digest()).decode("ascii")
        kwargs: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "ContentType": options.content_type,
            "ContentMD5": content_md5,
        }
        if options.cache_control:
            kwargs["CacheControl"] = options.cache_control
        try:
            self._client.put_object(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(
                f"could not write s3://{self.bucket}/{key}: {exc}",
                context={"bucket": self.bucket, "key": key},
            ) from exc

    def close(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            close()


def open_store(url: str) -> BlobStore:
    """Open the destination store named by ``url``."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme == "file":
        root = f"{parts.netloc}{parts.path}" or "."
        return FileStore(root)
    if scheme == "mem":
        return MemoryStore()
    if scheme == "s3":
        query = parse_qs(parts.query)
        region = (query.get("region") or [None])[0]
        return S3Store(parts.netloc, parts.path, region=region)
    raise ConfigError(
        f"unsupported bucket URL scheme {parts.scheme!r}",
        context={"url": url, "supported": ["file", "mem", "s3"]},
    )
