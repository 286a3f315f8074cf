"""
Shared pytest fixtures for sheets-uploader tests.

Provides common fixtures for:
- Sample documents and sheets
- In-memory destination stores
- A logger that stays out of the way
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if SRC_ROOT.is_dir():
    sys.path.insert(0, str(SRC_ROOT))

from sheets_uploader.models import Document, DocumentProperties, Sheet  # noqa: E402
from sheets_uploader.store import MemoryStore  # noqa: E402
from sheets_uploader.templates import compile_template  # noqa: E402
from sheets_uploader.uploader import UploadOptions  # noqa: E402


# =============================================================================
# Document fixtures
# =============================================================================


def make_sheets(count: int) -> list[Sheet]:
    """Sheets titled "Sheet<n>" with a header row and one data row each."""
    return [
        Sheet.from_values(
            f"Sheet{index}",
            index,
            [["name", "value"], [f"row-{index}", str(index * 10)]],
            sheet_id=1000 + index,
        )
        for index in range(count)
    ]


@pytest.fixture
def sheets() -> list[Sheet]:
    return make_sheets(5)


@pytest.fixture
def document(sheets: list[Sheet]) -> Document:
    return Document(
        id="doc-123",
        properties=DocumentProperties(title="Budget 2024", locale="en_US", time_zone="America/New_York"),
        sheets=tuple(sheets),
    )


# =============================================================================
# Pipeline collaborators
# =============================================================================


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def file_template():
    return compile_template("${properties.index} ${properties.title}.csv", "file path")


@pytest.fixture
def upload_options() -> UploadOptions:
    return UploadOptions(cache_control="max-age=60,public", use_crlf=False)


@pytest.fixture
def quiet_logger() -> logging.Logger:
    logger = logging.getLogger("sheets-uploader-tests")
    logger.propagate = False
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger


@pytest.fixture
def unknown_aws_profile(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> str:
    """Point boto3 at a profile that exists in no AWS config file."""
    import boto3

    profile = "no-such-profile"
    monkeypatch.setenv("AWS_PROFILE", profile)
    monkeypatch.setenv("AWS_CONFIG_FILE", str(tmp_path / "aws-config"))
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(tmp_path / "aws-credentials"))
    monkeypatch.setattr(boto3, "DEFAULT_SESSION", None)
    return profile
