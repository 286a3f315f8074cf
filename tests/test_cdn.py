"""Tests for sheets_uploader.cdn module."""

from __future__ import annotations

import re
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from sheets_uploader.cdn import caller_reference, normalize_invalidation_path, notify
from sheets_uploader.exceptions import InvalidationError


class TestNormalizeInvalidationPath:
    """Test normalize_invalidation_path function."""

    def test_leading_separator_is_added(self) -> None:
        assert normalize_invalidation_path("reports/Q1.csv") == "/reports/Q1.csv"

    def test_existing_separator_is_kept_single(self) -> None:
        assert normalize_invalidation_path("/reports/Q1.csv") == "/reports/Q1.csv"

    def test_spaces_and_reserved_characters_are_escaped(self) -> None:
        assert normalize_invalidation_path("Budget 2024/0 Q1?.csv") == "/Budget%202024/0%20Q1%3F.csv"

    def test_segment_delimiters_are_escaped(self) -> None:
        assert normalize_invalidation_path("a;b,c.csv") == "/a%3Bb%2Cc.csv"

    def test_path_safe_characters_survive(self) -> None:
        assert normalize_invalidation_path("x$&+:=@~-_.csv") == "/x$&+:=@~-_.csv"

    def test_non_ascii_is_utf8_escaped(self) -> None:
        assert normalize_invalidation_path("café.csv") == "/caf%C3%A9.csv"


def test_caller_reference_is_a_timestamp() -> None:
    assert re.fullmatch(r"\d{14}", caller_reference())


def test_nothing_to_invalidate_is_a_noop() -> None:
    client = MagicMock()
    assert notify([], "E123", client=client) is None
    assert notify(["a.csv"], "", client=client) is None
    client.create_invalidation.assert_not_called()


def test_one_batch_for_all_paths() -> None:
    client = MagicMock()
    client.create_invalidation.return_value = {"Invalidation": {"Id": "I2J0I21PCUYOIK"}}

    result = notify(["Budget/0 Sheet0.csv", "Budget/1 Sheet1.csv"], "E123", client=client)

    assert result == "I2J0I21PCUYOIK"
    client.create_invalidation.assert_called_once()
    kwargs = client.create_invalidation.call_args.kwargs
    assert kwargs["DistributionId"] == "E123"
    batch = kwargs["InvalidationBatch"]
    assert batch["Paths"] == {
        "Quantity": 2,
        "Items": ["/Budget/0%20Sheet0.csv", "/Budget/1%20Sheet1.csv"],
    }
    assert re.fullmatch(r"\d{14}", batch["CallerReference"])


def test_changed_paths_are_not_modified() -> None:
    client = MagicMock()
    client.create_invalidation.return_value = {"Invalidation": {"Id": "X"}}
    paths = ["a b.csv"]
    notify(paths, "E123", client=client)
    assert paths == ["a b.csv"]


def test_client_error_becomes_invalidation_error() -> None:
    client = MagicMock()
    client.create_invalidation.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "not allowed"}},
        "CreateInvalidation",
    )
    with pytest.raises(InvalidationError) as excinfo:
        notify(["a.csv"], "E123", client=client)
    assert excinfo.value.code == "invalidation_error"
    assert excinfo.value.context["paths"] == ["/a.csv"]


def test_client_setup_failure_becomes_invalidation_error(unknown_aws_profile: str) -> None:
    with pytest.raises(InvalidationError) as excinfo:
        notify(["a.csv"], "E123")
    assert unknown_aws_profile in excinfo.value.message
    assert excinfo.value.context["distribution_id"] == "E123"
