from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass
class UploaderError(Exception):
    message: str
    code: str = "uploader_error"
    context: dict[str, Any] = field(default_factory=dict)

    def __init__(self, message: str, *, code: str | None = None, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.code
        self.context = dict(context or {})

    def as_log_fields(self) -> dict[str, Any]:
        return {
            "error_code": self.code,
            "error_message": self.message,
            "error_context": self.context,
        }


class ConfigError(UploaderError):
    code = "config_error"


class TemplateError(UploaderError):
    code = "template_error"


class EncodingError(UploaderError):
    code = "encoding_error"


class WriteError(UploaderError):
    code = "write_error"


class FetchError(UploaderError):
    code = "fetch_error"


class InvalidationError(UploaderError):
    code = "invalidation_error"


class StoreError(UploaderError):
    code = "store_error"


class BlobNotFound(StoreError):
    code = "blob_not_found"

    def __init__(self, path: str) -> None:
        super().__init__(f"no such blob: {path!r}", context={"path": path})


class RunCancelled(UploaderError):
    code = "cancelled"
