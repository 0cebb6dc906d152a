"""Extract the AppleScript block from a model reply."""
from __future__ import annotations

import re

from askexcel.scripts import CLOSING_MARKER, OPENING_MARKER

_FENCES = (
    re.compile(r"```applescript\n?", re.IGNORECASE),
    re.compile(r"```osascript\n?", re.IGNORECASE),
    re.compile(r"```\n?"),
)


def strip_fences(raw: str) -> str:
    text = raw
    for pattern in _FENCES:
        text = pattern.sub("", text)
    return text


def clean_script(raw: str | None) -> str:
    """Keep the span from the first opening marker to the last closing marker.

    Text without both markers (or with the closing marker first) comes back
    trimmed but otherwise unbounded; callers validate it with
    :func:`is_valid_script`. Prose after the block that repeats the closing
    marker is kept inside the span.
    """
    script = strip_fences((raw or "").strip())
    start = script.find(OPENING_MARKER)
    end = script.rfind(CLOSING_MARKER)
    if start >= 0 and end > start:
        script = script[start:end + len(CLOSING_MARKER)]
    return script.strip()


def is_valid_script(script: str | None) -> bool:
    text = script or ""
    return OPENING_MARKER in text and CLOSING_MARKER in text


__all__ = ["clean_script", "is_valid_script", "strip_fences"]
