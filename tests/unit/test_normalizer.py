"""Unit tests for input text normalization."""

import pytest

from invoice_ai.pipeline.errors import ErrorKind, InputEmptyError, InputTooLargeError
from invoice_ai.pipeline.normalizer import normalize_text


def test_trims_surrounding_whitespace() -> None:
    assert normalize_text("  \n Logo design $120 \t\n") == "Logo design $120"


def test_collapses_three_or_more_blank_lines() -> None:
    text = "Client: Sarah\n\n\n\n\nLogo design $120"
    assert normalize_text(text) == "Client: Sarah\n\nLogo design $120"


def test_whitespace_only_lines_count_as_blank() -> None:
    text = "Client: Sarah\n  \n\t\n   \nLogo design"
    assert normalize_text(text) == "Client: Sarah\n\nLogo design"


def test_keeps_up_to_two_blank_lines() -> None:
    text = "Client: Sarah\n\n\nLogo design"
    assert normalize_text(text) == text


def test_normalizes_windows_line_endings() -> None:
    assert normalize_text("a\r\n\r\n\r\n\r\n\r\nb") == "a\n\nb"


@pytest.mark.parametrize("raw", ["", "   ", "\n\t\n", None])
def test_empty_input_raises(raw: str | None) -> None:
    with pytest.raises(InputEmptyError) as exc_info:
        normalize_text(raw)
    assert exc_info.value.kind is ErrorKind.INPUT_EMPTY
    assert exc_info.value.retryable is False


def test_too_large_input_raises() -> None:
    with pytest.raises(InputTooLargeError) as exc_info:
        normalize_text("x" * 101, max_chars=100)
    assert exc_info.value.kind is ErrorKind.INPUT_TOO_LARGE
    assert "limit=100" in exc_info.value.details


def test_limit_applies_after_trimming() -> None:
    assert normalize_text("   " + "x" * 100 + "   ", max_chars=100) == "x" * 100
