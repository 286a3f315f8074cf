"""
Run configuration.

Values are resolved from, lowest to highest precedence:

1. defaults of :class:`UploaderConfig`
2. a YAML file (``--config``), validated against ``schemas/config.schema.json``
3. ``SHEETS_UPLOADER_<FLAG>`` environment variables (``SHEETS_UPLOADER_SHEET``,
   ``SHEETS_UPLOADER_BUCKET_URL``, ...)
4. command-line flags
"""

from __future__ import annotations

import base64
import binascii
import dataclasses
import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from sheets_uploader.config_validator import read_yaml
from sheets_uploader.exceptions import ConfigError
from sheets_uploader.logging_config import APP_LOGGER_NAME
from sheets_uploader.secrets import SecretStr
from sheets_uploader.templates import Template, compile_template
from sheets_uploader.uploader import UploadOptions

APP_NAME = "sheets-uploader"
ENV_PREFIX = "SHEETS_UPLOADER_"

DEFAULT_PATH_TEMPLATE = "${properties.title}"
DEFAULT_FILE_TEMPLATE = "${properties.index} ${properties.title}.csv"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def decode_client_secret(value: str | SecretStr | None) -> SecretStr | None:
    """Decode the base64-wrapped service-account JSON.

    The JSON is base64 encoded because the ``\\n`` sequences in its private key
    are often mangled when passed through the environment.
    """
    if value is None:
        return None
    if isinstance(value, SecretStr):
        return value
    if not value.strip():
        return None
    try:
        decoded = base64.b64decode(value.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise ConfigError(
            "google client secret is not valid base64 encoded JSON",
            context={"field": "google_client_secret"},
        ) from None
    return SecretStr(decoded)


# flag name -> (config field, converter)
FLAGS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "workers": ("workers", int),
    "sheet": ("sheet_id", str),
    "google-client-secret": ("google_client_secret", decode_client_secret),
    "path": ("path_template", str),
    "filename": ("file_template", str),
    "bucket-url": ("bucket_url", str),
    "dist": ("cloudfront_dist", str),
    "cache-control": ("cache_control", str),
    "crlf": ("use_crlf", parse_bool),
    "shutdown-timeout": ("shutdown_timeout", float),
    "log-level": ("log_level", str),
    "log-format": ("log_format", str),
    "quiet": ("quiet", parse_bool),
}
_CONVERTERS = {field: convert for field, convert in FLAGS.values()}


def env_name(flag: str) -> str:
    return ENV_PREFIX + flag.upper().replace("-", "_")


@dataclasses.dataclass
class UploaderConfig:
    sheet_id: str = ""
    workers: int = 10
    google_client_secret: SecretStr | None = None
    path_template: str = DEFAULT_PATH_TEMPLATE
    file_template: str = DEFAULT_FILE_TEMPLATE
    bucket_url: str = "file://."
    cache_control: str = "max-age=900,public"
    use_crlf: bool = False
    cloudfront_dist: str = ""
    shutdown_timeout: float = 5.0
    log_level: str = "INFO"
    log_format: str = "text"
    quiet: bool = False
    logger: logging.Logger = dataclasses.field(
        default_factory=lambda: logging.getLogger(APP_LOGGER_NAME),
        repr=False,
        compare=False,
    )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], **overrides: Any) -> UploaderConfig:
        """Build a config from already-merged field values, converting strings."""
        values: dict[str, Any] = {}
        for field, raw in {**data, **overrides}.items():
            if field == "logger":
                values[field] = raw
                continue
            convert = _CONVERTERS.get(field)
            if convert is None:
                raise ConfigError(f"unknown config field {field!r}", context={"field": field})
            try:
                values[field] = convert(raw)
            except (TypeError, ValueError) as exc:
                raise ConfigError(
                    f"invalid value for {field}: {exc}", context={"field": field}
                ) from exc
        return cls(**values)

    def validate(self) -> None:
        if self.workers < 1:
            raise ConfigError(f"invalid number of workers: {self.workers}", context={"workers": self.workers})
        if not self.sheet_id:
            raise ConfigError(
                f"missing required flag --sheet (or {env_name('sheet')})",
                context={"field": "sheet_id"},
            )
        if self.shutdown_timeout < 0:
            raise ConfigError(
                "shutdown_timeout must not be negative",
                context={"shutdown_timeout": self.shutdown_timeout},
            )
        if self.log_format not in ("text", "json"):
            raise ConfigError(f"unknown log format {self.log_format!r}", context={"field": "log_format"})

    def compile_templates(self) -> tuple[Template, Template]:
        return (
            compile_template(self.path_template, "path"),
            compile_template(self.file_template, "file path"),
        )

    @property
    def upload_options(self) -> UploadOptions:
        return UploadOptions(cache_control=self.cache_control, use_crlf=self.use_crlf)


def env_values(environ: Mapping[str, str]) -> dict[str, Any]:
    """Config field values found in ``SHEETS_UPLOADER_*`` variables."""
    values: dict[str, Any] = {}
    for flag, (field, _) in FLAGS.items():
        name = env_name(flag)
        if name in environ:
            values[field] = environ[name]
    return values


def resolve_config(
    cli_values: Mapping[str, Any],
    *,
    environ: Mapping[str, str],
    config_path: Path | None = None,
    logger: logging.Logger | None = None,
) -> UploaderConfig:
    """Merge file, environment and command-line values into one config."""
    merged: dict[str, Any] = {}
    if config_path is not None:
        merged.update(read_yaml(config_path, schema_name="config"))
    merged.update(env_values(environ))
    merged.update({field: value for field, value in cli_values.items() if value is not None})
    overrides = {"logger": logger} if logger is not None else {}
    return UploaderConfig.from_mapping(merged, **overrides)
