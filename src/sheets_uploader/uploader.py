from __future__ import annotations

import dataclasses
import logging
import posixpath
import re

from sheets_uploader.csv_encoder import encode_rows
from sheets_uploader.exceptions import StoreError, WriteError
from sheets_uploader.models import Sheet, UploadResult
from sheets_uploader.skip_check import should_skip
from sheets_uploader.store import BlobStore, WriteOptions
from sheets_uploader.templates import Template

CSV_CONTENT_TYPE = "text/csv"

_SEPARATORS = re.compile(r"/{2,}")


@dataclasses.dataclass(frozen=True)
class UploadOptions:
    cache_control: str = "max-age=900,public"
    use_crlf: bool = False

    @property
    def write_options(self) -> WriteOptions:
        return WriteOptions(cache_control=self.cache_control, content_type=CSV_CONTENT_TYPE)


def join_path(directory: str, name: str) -> str:
    """Join a directory and a file name with exactly one separator between them.

    Empty parts are ignored and ``.``/``..`` segments are resolved, so
    ``join_path("reports/", "/Q1.csv")`` gives ``"reports/Q1.csv"``.
    """
    joined = "/".join(part for part in (directory, name) if part)
    if not joined:
        return ""
    cleaned = posixpath.normpath(_SEPARATORS.sub("/", joined))
    return "" if cleaned == "." else cleaned


def upload_sheet(
    sheet: Sheet,
    directory: str,
    file_template: Template,
    store: BlobStore,
    options: UploadOptions,
    *,
    logger: logging.Logger,
) -> UploadResult:
    """Encode one sheet as CSV and write it unless the store already has it.

    Raises:
        TemplateError: The file name template could not be rendered.
        EncodingError: The rows could not be encoded.
        WriteError: The store rejected the write.
    """
    file_name = file_template.render(sheet)
    payload = encode_rows(sheet.rows, options.use_crlf)
    fullpath = join_path(directory, file_name)

    logger.info("checking existing %r in %s", fullpath, store.url)
    if should_skip(store, fullpath, payload, log=logger):
        logger.info("skipping %r; already uploaded", fullpath)
        return UploadResult.skipped(fullpath)

    logger.info("writing %r to %s", fullpath, store.url)
    try:
        store.write_all(fullpath, payload, options.write_options)
    except StoreError as exc:
        raise WriteError(
            f"could not write {fullpath!r}: {exc.message}",
            context={**exc.context, "path": fullpath, "sheet": sheet.title},
        ) from exc
    return UploadResult.written(fullpath)
