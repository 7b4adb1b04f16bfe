"""Split long synthesis input into bounded segments."""

import logging
import re
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_DELIMITERS = ["\n", ". ", "! ", "? ", "; ", ": "]


def compile_delimiter_pattern(delimiters: Sequence[str]) -> Optional[re.Pattern]:
    """
    Compile a regex pattern from a list of delimiters.

    Delimiters are sorted by length (longest first) to ensure proper matching.
    """
    if not delimiters:
        return None
    sorted_delims = sorted(delimiters, key=len, reverse=True)
    escaped = map(re.escape, sorted_delims)
    pattern = "|".join(escaped)
    return re.compile(pattern)


def split_for_synthesis(
    text: str,
    max_chars: int,
    delimiters: Sequence[str] = DEFAULT_DELIMITERS,
) -> list[str]:
    """
    Split text into segments no longer than max_chars, in original order.

    Cuts at the last sentence delimiter inside the window, then at the last
    whitespace, and only hard-cuts a single unbroken run of characters.
    """
    if max_chars < 1:
        raise ValueError("max_chars must be positive")

    remaining = text.strip()
    if not remaining:
        return []
    if len(remaining) <= max_chars:
        return [remaining]

    pattern = compile_delimiter_pattern(delimiters)
    segments: list[str] = []

    while len(remaining) > max_chars:
        window = remaining[: max_chars + 1]
        cut = 0
        if pattern is not None:
            for match in pattern.finditer(window):
                if match.end() <= max_chars + 1:
                    cut = match.end()
        if cut <= 0:
            cut = window.rfind(" ")
        if cut <= 0:
            cut = max_chars

        segment = remaining[:cut].strip()
        if segment:
            segments.append(segment)
        remaining = remaining[cut:].lstrip()

    if remaining:
        segments.append(remaining)

    logger.debug("Split %d chars into %d segment(s)", len(text), len(segments))
    return segments


__all__ = ["DEFAULT_DELIMITERS", "compile_delimiter_pattern", "split_for_synthesis"]
