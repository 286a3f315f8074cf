from __future__ import annotations

import logging

import pytest

from sheets_uploader.exceptions import StoreError, TemplateError, WriteError
from sheets_uploader.models import Outcome, Sheet
from sheets_uploader.store import MemoryStore, WriteOptions
from sheets_uploader.templates import Template, compile_template
from sheets_uploader.uploader import UploadOptions, join_path, upload_sheet


class RejectingStore(MemoryStore):
    def write_all(self, path: str, data: bytes, options: WriteOptions) -> None:
        raise StoreError("bucket is read-only", context={"url": self.url})


@pytest.mark.parametrize(
    ("directory", "name", "expected"),
    [
        ("reports", "Q1.csv", "reports/Q1.csv"),
        ("reports/", "Q1.csv", "reports/Q1.csv"),
        ("reports/", "/Q1.csv", "reports/Q1.csv"),
        ("reports//2024", "Q1.csv", "reports/2024/Q1.csv"),
        ("", "Q1.csv", "Q1.csv"),
        ("reports", "", "reports"),
        ("a/./b", "../Q1.csv", "a/Q1.csv"),
        ("", "", ""),
    ],
)
def test_join_path(directory: str, name: str, expected: str) -> None:
    assert join_path(directory, name) == expected


def test_new_sheet_is_written(
    memory_store: MemoryStore,
    file_template: Template,
    upload_options: UploadOptions,
    quiet_logger: logging.Logger,
) -> None:
    sheet = Sheet.from_values("Summary", 0, [["a", "b"], ["", ""], ["1", "2"]])
    result = upload_sheet(sheet, "Budget", file_template, memory_store, upload_options, logger=quiet_logger)

    assert result.outcome is Outcome.WRITTEN
    assert result.path == "Budget/0 Summary.csv"
    assert result.changed_path == "Budget/0 Summary.csv"
    assert memory_store.read("Budget/0 Summary.csv") == b"a,b\n1,2\n"
    attrs = memory_store.attributes("Budget/0 Summary.csv")
    assert attrs.content_type == "text/csv"
    assert attrs.cache_control == "max-age=60,public"


def test_unchanged_sheet_is_skipped(
    memory_store: MemoryStore,
    file_template: Template,
    upload_options: UploadOptions,
    quiet_logger: logging.Logger,
) -> None:
    sheet = Sheet.from_values("Summary", 0, [["a", "b"]])
    upload_sheet(sheet, "Budget", file_template, memory_store, upload_options, logger=quiet_logger)
    result = upload_sheet(sheet, "Budget", file_template, memory_store, upload_options, logger=quiet_logger)

    assert result.outcome is Outcome.SKIPPED
    assert result.changed_path == ""


def test_changed_sheet_is_rewritten(
    memory_store: MemoryStore,
    file_template: Template,
    upload_options: UploadOptions,
    quiet_logger: logging.Logger,
) -> None:
    memory_store.write_all("Budget/0 Summary.csv", b"stale\n", WriteOptions())
    sheet = Sheet.from_values("Summary", 0, [["fresh"]])
    result = upload_sheet(sheet, "Budget", file_template, memory_store, upload_options, logger=quiet_logger)

    assert result.outcome is Outcome.WRITTEN
    assert memory_store.read("Budget/0 Summary.csv") == b"fresh\n"


def test_crlf_option_changes_payload(
    memory_store: MemoryStore, file_template: Template, quiet_logger: logging.Logger
) -> None:
    sheet = Sheet.from_values("Summary", 0, [["a"], ["b"]])
    upload_sheet(sheet, "", file_template, memory_store, UploadOptions(use_crlf=True), logger=quiet_logger)
    assert memory_store.read("0 Summary.csv") == b"a\r\nb\r\n"


def test_template_failure_raises_template_error(
    memory_store: MemoryStore, upload_options: UploadOptions, quiet_logger: logging.Logger
) -> None:
    sheet = Sheet.from_values("Summary", 0, [["a"]])
    with pytest.raises(TemplateError):
        upload_sheet(
            sheet,
            "Budget",
            compile_template("${properties.missing}.csv"),
            memory_store,
            upload_options,
            logger=quiet_logger,
        )
    assert memory_store.keys() == []


def test_store_failure_raises_write_error(
    file_template: Template, upload_options: UploadOptions, quiet_logger: logging.Logger
) -> None:
    sheet = Sheet.from_values("Summary", 0, [["a"]])
    with pytest.raises(WriteError) as excinfo:
        upload_sheet(sheet, "Budget", file_template, RejectingStore(), upload_options, logger=quiet_logger)
    assert excinfo.value.context["path"] == "Budget/0 Summary.csv"
    assert excinfo.value.context["sheet"] == "Summary"
    assert isinstance(excinfo.value.__cause__, StoreError)
