from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from sheets_uploader.exceptions import InvalidationError

logger = logging.getLogger("sheets-uploader.cdn")

# Characters a single URL path segment may carry unescaped, plus "/" itself.
_PATH_SAFE = "/$&+:=@"


def normalize_invalidation_path(path: str) -> str:
    """Return ``path`` with one leading ``/``, percent-encoded except for ``/``.

    >>> normalize_invalidation_path("reports/Q1 2024.csv")
    '/reports/Q1%202024.csv'
    """
    if not path.startswith("/"):
        path = "/" + path
    return quote(path, safe=_PATH_SAFE)


def caller_reference(now: float | None = None) -> str:
    return time.strftime("%Y%m%d%H%M%S", time.localtime(now))


def notify(
    changed_paths: Sequence[str],
    distribution_id: str,
    *,
    client: Any | None = None,
    log: logging.Logger | None = None,
) -> str | None:
    """Invalidate ``changed_paths`` in a CloudFront distribution in one batch.

    Returns the invalidation id, or None when there is nothing to invalidate or
    no distribution is configured.

    Raises:
        InvalidationError: CloudFront rejected the request or could not be reached.
    """
    log = log or logger
    if not changed_paths or not distribution_id:
        return None
    items = [normalize_invalidation_path(path) for path in changed_paths]
    log.info("invalidating %s in CloudFront %s", items, distribution_id)

    try:
        if client is None:
            client = boto3.client("cloudfront")
        response = client.create_invalidation(
            DistributionId=distribution_id,
            InvalidationBatch={
                "Paths": {"Quantity": len(items), "Items": items},
                "CallerReference": caller_reference(),
            },
        )
    except (ClientError, BotoCoreError) as exc:
        raise InvalidationError(
            f"could not invalidate CloudFront distribution {distribution_id}: {exc}",
            context={"distribution_id": distribution_id, "paths": items},
        ) from exc
    invalidation_id = response["Invalidation"]["Id"]
    log.info("created invalidation %s", invalidation_id)
    return invalidation_id
