"""Pull JSON payloads out of free-form model output.

Models wrap structured answers in prose and code fences even when told not
to. These helpers scan for the first balanced top-level ``[...]`` or
``{...}`` span that parses, ignoring brackets inside string literals.
"""

from __future__ import annotations

import json
import re
from typing import Any

from ideaforge.exceptions import MalformedCompletionError

_QUOTES = "\"'`"


def _balanced_end(text: str, start: int, opener: str, closer: str) -> int | None:
    """Index just past the bracket that closes ``text[start]``, or None."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def _candidates(text: str, opener: str, closer: str):
    start = text.find(opener)
    while start != -1:
        end = _balanced_end(text, start, opener, closer)
        if end is not None:
            yield start, text[start:end]
        start = text.find(opener, start + 1)


def _first_parsed(text: str, opener: str, closer: str) -> tuple[int, Any] | None:
    for start, chunk in _candidates(text, opener, closer):
        try:
            return start, json.loads(chunk)
        except json.JSONDecodeError:
            continue
    return None


def extract_json_array(text: str) -> list[Any]:
    """Return the first balanced JSON array in ``text``.

    Raises:
        MalformedCompletionError: If no balanced array parses
    """
    found = _first_parsed(text or "", "[", "]")
    if found is None:
        raise MalformedCompletionError("AI response did not contain a valid JSON array", text or "")
    return found[1]


def extract_json_object(text: str) -> dict[str, Any]:
    """Return the first balanced JSON object in ``text``.

    Raises:
        MalformedCompletionError: If no balanced object parses
    """
    found = _first_parsed(text or "", "{", "}")
    if found is None:
        raise MalformedCompletionError("AI response did not contain a valid JSON object", text or "")
    return found[1]


def extract_json(text: str) -> list[Any] | dict[str, Any]:
    """Return whichever JSON array or object starts first in ``text``."""
    text = text or ""
    found = [
        hit
        for hit in (_first_parsed(text, "[", "]"), _first_parsed(text, "{", "}"))
        if hit is not None
    ]
    if not found:
        raise MalformedCompletionError("AI response did not contain valid JSON", text)
    return min(found, key=lambda hit: hit[0])[1]


def parse_keywords(text: str) -> list[str]:
    """Split a comma separated keyword reply into clean keywords."""
    # drop a leading "Keywords:" label if the model added one
    text = re.sub(r"^\s*keywords\s*:\s*", "", text or "", flags=re.IGNORECASE)
    keywords = []
    for part in text.replace("\n", ",").split(","):
        word = part.strip().strip(_QUOTES).strip()
        if word:
            keywords.append(word)
    return keywords
