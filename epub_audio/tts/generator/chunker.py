"""
Chunker - Splits chapter text into pieces a provider will accept.
"""

import math
from typing import List

SENTENCE_ENDINGS = (".", "!", "?")

# Only the last 20% of a window is searched for a sentence boundary.
BREAK_SEARCH_RATIO = 0.8


def split_text(text: str, max_chunk_size: int) -> List[str]:
    """
    Split text into chunks of at most `max_chunk_size` characters.

    Cuts fall just after the last sentence terminator in the tail of each
    window. When the tail holds none, the window is cut at its hard limit.
    Chunks are trimmed and empty ones dropped, so joining the chunks gives
    back the input up to whitespace at the cut points.

    Args:
        text: Normalized chapter text.
        max_chunk_size: Provider limit in characters.

    Returns:
        Ordered list of non-empty chunks. Text that already fits comes back
        as a single trimmed chunk; blank text gives no chunks.
    """
    if max_chunk_size <= 0:
        raise ValueError(f"max_chunk_size must be positive, got {max_chunk_size}")

    if len(text) <= max_chunk_size:
        text = text.strip()
        return [text] if text else []

    chunks: List[str] = []
    start = 0

    while start < len(text):
        end = start + max_chunk_size

        if end < len(text):
            search_start = max(math.ceil(start + max_chunk_size * BREAK_SEARCH_RATIO), start)
            best_break = -1
            # text[end] belongs to the next window, start at end - 1
            for i in range(end - 1, search_start - 1, -1):
                if text[i] in SENTENCE_ENDINGS:
                    best_break = i + 1
                    break

            if best_break > start:
                end = best_break

        chunk = text[start:end].strip()
        if chunk:
            chunks.append(chunk)

        start = end

    return chunks
