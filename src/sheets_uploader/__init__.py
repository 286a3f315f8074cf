"""Upload every sheet of a Google Sheets document as CSV to file or object storage."""

from sheets_uploader.csv_encoder import encode_rows
from sheets_uploader.exceptions import (
    ConfigError,
    EncodingError,
    FetchError,
    InvalidationError,
    RunCancelled,
    TemplateError,
    UploaderError,
    WriteError,
)
from sheets_uploader.models import Document, Outcome, RunState, Sheet, UploadResult
from sheets_uploader.skip_check import should_skip

__version__ = "1.0.0"

__all__ = [
    "encode_rows",
    "should_skip",
    "Document",
    "Sheet",
    "Outcome",
    "RunState",
    "UploadResult",
    "UploaderError",
    "ConfigError",
    "TemplateError",
    "EncodingError",
    "WriteError",
    "FetchError",
    "InvalidationError",
    "RunCancelled",
]
