from __future__ import annotations

import hashlib
import logging

from sheets_uploader.exceptions import StoreError
from sheets_uploader.store import BlobStore

logger = logging.getLogger("sheets-uploader.skip_check")


def content_md5(payload: bytes) -> bytes:
    """Raw MD5 digest of ``payload``, the checksum stores report natively."""
    return hashlib.md5(payload).digest()


def should_skip(
    store: BlobStore, path: str, payload: bytes, *, log: logging.Logger | None = None
) -> bool:
    """Return True when ``store`` already holds exactly ``payload`` at ``path``.

    A failed lookup (missing blob, backend error) or a blob without a known
    checksum counts as "not there yet" and never raises.
    """
    log = log or logger
    try:
        attrs = store.attributes(path)
    except StoreError as exc:
        log.debug("no usable attributes for %r: %s", path, exc)
        return False
    if attrs.md5 is None:
        log.debug("no checksum stored for %r", path)
        return False
    return content_md5(payload) == attrs.md5
