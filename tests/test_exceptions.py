from __future__ import annotations

import pytest

from sheets_uploader.exceptions import (
    BlobNotFound,
    ConfigError,
    FetchError,
    RunCancelled,
    StoreError,
    UploaderError,
    WriteError,
)


@pytest.mark.parametrize(
    ("error_type", "code"),
    [
        (UploaderError, "uploader_error"),
        (ConfigError, "config_error"),
        (FetchError, "fetch_error"),
        (WriteError, "write_error"),
        (StoreError, "store_error"),
        (RunCancelled, "cancelled"),
    ],
)
def test_default_codes(error_type: type[UploaderError], code: str) -> None:
    err = error_type("something happened")
    assert err.code == code
    assert err.message == "something happened"
    assert str(err) == "something happened"
    assert err.context == {}


def test_code_can_be_overridden() -> None:
    err = FetchError("no credentials", code="credentials_error")
    assert err.code == "credentials_error"
    assert isinstance(err, UploaderError)


def test_context_is_copied() -> None:
    context = {"path": "a.csv"}
    err = WriteError("failed", context=context)
    context["path"] = "b.csv"
    assert err.context == {"path": "a.csv"}


def test_blob_not_found_is_a_store_error() -> None:
    err = BlobNotFound("Budget/0 Summary.csv")
    assert isinstance(err, StoreError)
    assert err.code == "blob_not_found"
    assert err.context == {"path": "Budget/0 Summary.csv"}


def test_as_log_fields() -> None:
    err = WriteError("disk full", context={"path": "a.csv"})
    assert err.as_log_fields() == {
        "error_code": "write_error",
        "error_message": "disk full",
        "error_context": {"path": "a.csv"},
    }
