"""
Best-effort clean-up of JSON text returned by language models.

Pure string functions with no I/O so they can be tested against fixture
strings directly.
"""

import re

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?\s*```\s*$")
_TRAILING_COMMA = re.compile(r",(\s*[\]}])")
# Control characters other than tab, newline and carriage return
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```), if any."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
        cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def repair_json(text: str) -> str:
    """
    Apply repair heuristics to malformed model output.

    - strips markdown fences
    - trims leading/trailing prose around the outermost JSON array
      (or object when no array is present)
    - removes trailing commas before ``]`` and ``}``
    - drops stray control characters

    The result is not guaranteed to parse; callers re-parse and handle failure.
    """
    cleaned = strip_code_fences(text)

    start = cleaned.find("[")
    end = cleaned.rfind("]")
    if start != -1 and end > start:
        cleaned = cleaned[start:end + 1]
    else:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start != -1 and end > start:
            cleaned = cleaned[start:end + 1]

    cleaned = _CONTROL_CHARS.sub("", cleaned)

    # Repeat until stable: ",]" can expose another ",}" after removal
    previous = None
    while previous != cleaned:
        previous = cleaned
        cleaned = _TRAILING_COMMA.sub(r"\1", cleaned)

    return cleaned
