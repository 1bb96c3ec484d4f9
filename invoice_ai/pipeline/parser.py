"""Tolerant parsing of raw provider output.

Handles common LLM quirks: markdown code fences, prose around the JSON
object, and trailing commas. Output is an untyped tree; typing decisions
belong to the validator.
"""

import json
import logging
import re
from typing import Any

from invoice_ai.pipeline.errors import ExtractionFailedError

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```[ \t]*[A-Za-z0-9_-]*[ \t]*\n?([\s\S]*?)```")

PARSE_ERROR = "ParseError"


def strip_code_fences(text: str) -> str:
    """Return the content of the first fenced block, or the text unchanged."""
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    # Opening fence without a closing one (truncated output)
    stripped = text.strip()
    if stripped.startswith("```"):
        return stripped.split("\n", 1)[1] if "\n" in stripped else ""
    return stripped


def find_balanced_object(text: str) -> str | None:
    """Locate the first balanced ``{...}`` block, ignoring braces inside strings.

    Args:
        text: Text that may contain a JSON object somewhere

    Returns:
        The substring of the block, or None if no balanced block exists
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def strip_trailing_commas(text: str) -> str:
    """Remove commas directly before a closing brace or bracket.

    Commas inside string values are left alone.
    """
    kept: list[str] = []
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == ",":
            following = index + 1
            while following < len(text) and text[following].isspace():
                following += 1
            if following < len(text) and text[following] in "}]":
                continue
        kept.append(char)
    return "".join(kept)


def _loads_tree(text: str) -> dict[str, Any] | list[Any] | None:
    try:
        tree = json.loads(text)
    except (ValueError, RecursionError):
        # RecursionError: nesting deeper than the decoder can follow
        return None
    if isinstance(tree, dict | list):
        return tree
    return None


def parse_response(response_text: str) -> dict[str, Any] | list[Any]:
    """Convert raw provider output into a candidate tree.

    Args:
        response_text: Raw text returned by the provider

    Returns:
        Parsed JSON object (or array) with no guarantees about its fields

    Raises:
        ExtractionFailedError: With subkind 'ParseError' if no JSON could be recovered
    """
    body = strip_code_fences(response_text or "")

    tree = _loads_tree(body)
    if tree is not None:
        return tree

    # Single repair pass
    block = find_balanced_object(body)
    if block is not None:
        tree = _loads_tree(strip_trailing_commas(block))
        if tree is not None:
            logger.info("Recovered provider output with repair pass")
            return tree

    logger.warning(f"Unparsable provider output ({len(response_text or '')} characters)")
    raise ExtractionFailedError(
        "The AI response could not be understood. Please try again.",
        subkind=PARSE_ERROR,
    )
