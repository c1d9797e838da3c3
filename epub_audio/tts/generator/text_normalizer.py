"""
Text Normalizer - Cleans chapter Markdown before it is sent to a TTS provider.

Markdown emphasis, link targets and list bullets are read aloud literally by
most providers, so they are stripped here. The function is pure: the same
input and flags always give the same output.
"""

import re
from typing import Optional

from epub_audio.config import TextProcessingSettings

_FOOTNOTE_BRACKET = re.compile(r"\[\d+\]")
_FOOTNOTE_PAREN = re.compile(r"\(\d+\)")
_WHITESPACE = re.compile(r"\s+")

# Applied in order after the config-gated steps.
_CLEANUP_STEPS = (
    (re.compile(r"\*\*(.*?)\*\*"), r"\1"),                # bold
    (re.compile(r"\*(.*?)\*"), r"\1"),                    # italic
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),        # links keep anchor text
    (re.compile(r"^\s*[-*+]\s+", re.MULTILINE), ""),      # list bullets
    (re.compile(r"\n{3,}"), "\n\n"),
    (re.compile(r"([.!?])\s*\n\s*"), r"\1 "),             # join wrapped sentences
    (re.compile(r"\n\s*\n"), ". "),                       # paragraph breaks
)


def _normalize_once(text: str, settings: TextProcessingSettings) -> str:
    if settings.remove_footnotes:
        text = _FOOTNOTE_BRACKET.sub("", text)
        text = _FOOTNOTE_PAREN.sub("", text)

    if settings.normalize_whitespace:
        text = _WHITESPACE.sub(" ", text)

    for pattern, replacement in _CLEANUP_STEPS:
        text = pattern.sub(replacement, text)

    return text.strip()


def normalize(raw_text: str, settings: Optional[TextProcessingSettings] = None) -> str:
    """
    Normalize chapter text for speech synthesis.

    Args:
        raw_text: Chapter source text (Markdown).
        settings: Text processing flags. Defaults to TextProcessingSettings().

    Returns:
        Cleaned text. Unchanged when `clean_markdown` is disabled.
    """
    settings = settings or TextProcessingSettings()
    if not settings.clean_markdown:
        return raw_text

    # A pass can expose new markup (e.g. "- - item", "[1[2]]"), so repeat
    # until nothing changes. Every changing pass removes characters or
    # line breaks, which bounds the loop.
    text = _normalize_once(raw_text, settings)
    while True:
        again = _normalize_once(text, settings)
        if again == text:
            return text
        text = again
