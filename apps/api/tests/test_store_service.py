"""Tests for custom URL validation."""

import pytest

from katalog.services.store_service import CustomURLError, validate_custom_url


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("mystore", "mystore"),
        ("MyStore", "mystore"),
        ("my.store_01", "my.store_01"),
        ("a", "a"),
        ("a___b", "a___b"),
        ("  shop  ", "shop"),
    ],
)
def test_valid_custom_urls(raw: str, expected: str) -> None:
    assert validate_custom_url(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "   ",
        "my store",
        "my-store",
        "dükkan",
        "my..store",
        "a____b",
        ".",
        "_",
    ],
)
def test_invalid_custom_urls(raw: str) -> None:
    with pytest.raises(CustomURLError):
        validate_custom_url(raw)


def test_error_message_is_readable() -> None:
    with pytest.raises(CustomURLError, match="consecutive dots"):
        validate_custom_url("a..b")
