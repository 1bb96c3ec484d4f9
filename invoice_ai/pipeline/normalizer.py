"""Input text sanitization.

Trims the pasted text, collapses long runs of blank lines and enforces the
configured size limit before anything is sent to a provider.
"""

import re

from invoice_ai.pipeline.errors import InputEmptyError, InputTooLargeError

DEFAULT_MAX_CHARS = 20000

# Three or more consecutive blank lines (whitespace-only lines count as blank)
_BLANK_RUN = re.compile(r"\n(?:[ \t]*\n){3,}")


def normalize_text(raw_text: str | None, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Sanitize and bound raw input text.

    Args:
        raw_text: Text pasted by the user
        max_chars: Maximum allowed length after normalization

    Returns:
        Normalized text

    Raises:
        InputEmptyError: If nothing remains after trimming
        InputTooLargeError: If the normalized text exceeds max_chars
    """
    text = (raw_text or "").replace("\r\n", "\n").replace("\r", "\n").strip()
    if not text:
        raise InputEmptyError("Please paste invoice text to generate from.")

    text = _BLANK_RUN.sub("\n\n", text)

    if len(text) > max_chars:
        raise InputTooLargeError(
            f"Input is too long ({len(text)} characters, limit {max_chars}).",
            details=[f"length={len(text)}", f"limit={max_chars}"],
        )
    return text
