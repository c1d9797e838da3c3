"""
Generator utility functions for epub_audio.

Filename helpers shared by the pipeline and the batch processor.
"""

import re
import time


def sanitize_filename(text):
    """Lowercase, hyphenated slug of a chapter title."""
    text = text.lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip()


def chapter_audio_filename(order: int, title: str, extension: str) -> str:
    """
    Build the output filename for a chapter.

    Example:
        chapter_audio_filename(2, "The Titans!", "wav") -> "02-the-titans.wav"
    """
    return f"{order:02d}-{sanitize_filename(title)}.{extension}"


def chunk_filename(index: int, extension: str) -> str:
    """Temp file name for one synthesized chunk; timestamped to avoid collisions."""
    return f"chunk_{int(time.time() * 1000)}_{index}.{extension}"
