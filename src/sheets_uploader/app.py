"""One upload run: fetch the document, upload every sheet, invalidate the CDN.

Usage:
    from sheets_uploader.app import run
    from sheets_uploader.config import UploaderConfig

    report = run(UploaderConfig(sheet_id="1AbC...", bucket_url="s3://my-bucket/data"))
    print(report.pipeline.changed_paths, report.invalidation_id)
"""

from __future__ import annotations

from typing import Any

from sheets_uploader import cdn
from sheets_uploader.cancellation import Cancellation
from sheets_uploader.config import UploaderConfig
from sheets_uploader.logging_config import LogContext
from sheets_uploader.models import RunReport
from sheets_uploader.scheduler import UploadScheduler
from sheets_uploader.source import DocumentSource, GoogleSheetsSource
from sheets_uploader.store import BlobStore, open_store


def run(
    config: UploaderConfig,
    *,
    source: DocumentSource | None = None,
    store: BlobStore | None = None,
    cancellation: Cancellation | None = None,
    cdn_client: Any | None = None,
) -> RunReport:
    """Execute one run.

    ``source``, ``store`` and ``cdn_client`` default to the collaborators named
    by ``config``. The store is closed on every exit path; a failure to close
    it is only reported when nothing else went wrong first.

    Raises:
        ConfigError: Invalid configuration, before any work starts.
        FetchError: The document could not be fetched.
        UploaderError: The first failed sheet upload.
        RunCancelled: The run was interrupted before completion.
        InvalidationError: Uploads succeeded but the CDN invalidation failed.
    """
    config.validate()
    log = config.logger
    path_template, file_template = config.compile_templates()
    cancellation = cancellation or Cancellation()
    if source is None:
        source = GoogleSheetsSource(config.google_client_secret, logger=log)
    if store is None:
        log.info("opening cloud storage %r", config.bucket_url)
        store = open_store(config.bucket_url)

    with store, LogContext(sheet_id=config.sheet_id):
        document = source.fetch(config.sheet_id)
        directory = path_template.render(document)
        scheduler = UploadScheduler(
            store,
            file_template,
            config.upload_options,
            config.workers,
            cancellation=cancellation,
            logger=log,
            shutdown_timeout=config.shutdown_timeout,
        )
        pipeline = scheduler.run(document.sheets, directory)

    invalidation_id = cdn.notify(
        pipeline.changed_paths, config.cloudfront_dist, client=cdn_client, log=log
    )
    return RunReport(
        document_title=document.title,
        directory=directory,
        pipeline=pipeline,
        invalidation_id=invalidation_id,
    )
