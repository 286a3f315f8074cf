"""
Document source: fetch a Google Sheets document with all of its sheets.

Authentication uses either an explicit service-account JSON (passed as a
``SecretStr``) or the Google default credentials:

1. A JSON file named by the GOOGLE_APPLICATION_CREDENTIALS environment variable.
2. The gcloud application default credentials file.
3. Metadata-server credentials on Google Cloud.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import google.auth
import gspread
import requests
from google.auth.exceptions import GoogleAuthError
from gspread.utils import absolute_range_name, fill_gaps

from sheets_uploader.exceptions import FetchError
from sheets_uploader.models import Document, DocumentProperties, Sheet, SheetProperties
from sheets_uploader.secrets import SecretStr


class DocumentSource(Protocol):
    def fetch(self, document_id: str) -> Document: ...


class GoogleSheetsSource:
    """Reads a spreadsheet through gspread with read-only scopes."""

    def __init__(
        self,
        client_secret: SecretStr | None = None,
        *,
        client: gspread.Client | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client_secret = client_secret
        self.logger = logger or logging.getLogger("sheets-uploader.source")
        self._client = client

    def _get_client(self) -> gspread.Client:
        if self._client is not None:
            return self._client
        scopes = gspread.auth.READONLY_SCOPES
        try:
            if self.client_secret:
                self.logger.info("using base64 Google credentials")
                info = json.loads(self.client_secret.reveal())
                self._client = gspread.service_account_from_dict(info, scopes=scopes)
            else:
                self.logger.info("using default Google credentials")
                credentials, _ = google.auth.default(scopes=scopes)
                self._client = gspread.authorize(credentials)
        except ValueError as exc:
            raise FetchError(f"could not parse Google credentials: {exc}", code="credentials_error") from exc
        except GoogleAuthError as exc:
            raise FetchError(f"could not find Google credentials: {exc}", code="credentials_error") from exc
        return self._client

    def fetch(self, document_id: str) -> Document:
        client = self._get_client()
        self.logger.info("connecting to Google Sheets for %r", document_id)
        try:
            if document_id.startswith(("http://", "https://")):
                spreadsheet = client.open_by_url(document_id)
            else:
                spreadsheet = client.open_by_key(document_id)
            worksheets = spreadsheet.worksheets()
            sheets = _read_sheets(spreadsheet, worksheets)
        except (gspread.exceptions.GSpreadException, GoogleAuthError, requests.exceptions.RequestException) as exc:
            raise FetchError(
                f"failure getting Google Sheet: {exc}",
                context={"document_id": document_id},
            ) from exc

        document = Document(
            id=spreadsheet.id,
            properties=DocumentProperties(
                title=spreadsheet.title,
                locale=getattr(spreadsheet, "locale", "") or "",
                time_zone=getattr(spreadsheet, "timezone", "") or "",
            ),
            sheets=sheets,
        )
        self.logger.info("got %r", document.title)
        return document


def _read_sheets(spreadsheet: Any, worksheets: list[Any]) -> tuple[Sheet, ...]:
    """Read the values of every worksheet with a single batch request."""
    if not worksheets:
        return ()
    ranges = [absolute_range_name(ws.title) for ws in worksheets]
    response = spreadsheet.values_batch_get(ranges)
    value_ranges = response.get("valueRanges", [])
    if len(value_ranges) != len(worksheets):
        raise FetchError(
            f"expected values for {len(worksheets)} sheets, got {len(value_ranges)}",
            context={"ranges": ranges},
        )
    return tuple(
        _sheet_from_values(ws, value_range.get("values", []))
        for ws, value_range in zip(worksheets, value_ranges)
    )


def _sheet_from_values(worksheet: Any, values: list[list[Any]]) -> Sheet:
    # The API trims trailing empty cells; pad rows back to a rectangle.
    grid = fill_gaps(values) if values else []
    return Sheet(
        properties=SheetProperties(sheet_id=worksheet.id, title=worksheet.title, index=worksheet.index),
        rows=tuple(tuple(str(cell) for cell in row) for row in grid),
    )
