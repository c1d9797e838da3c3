"""
Error types raised by the chapter audio pipeline.

Fatal errors (unknown provider, invalid configuration, exhausted retries,
failed concatenation) propagate to the caller. Chapter lookups that miss are
reported through ChapterNotFoundError so batch callers can keep going.
"""

from typing import List, Optional


class EpubAudioError(Exception):
    """Base class for all epub_audio errors."""


class UnknownProviderError(EpubAudioError):
    """Raised when a provider id is not in the registry."""

    def __init__(self, provider: str, available: List[str]):
        self.provider = provider
        self.available = list(available)
        super().__init__(
            f"Provider '{provider}' not found. Available providers: {', '.join(self.available)}"
        )


class ConfigValidationError(EpubAudioError):
    """Missing credentials or defaults that are not in the provider catalog."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Configuration validation failed:\n" + "\n".join(self.errors))


class BookNotFoundError(EpubAudioError):
    """Book directory, metadata or table of contents is missing."""


class InvalidTableOfContentsError(EpubAudioError):
    """toc.yml cannot be parsed or its chapter orders are not 1..N."""


class ChapterNotFoundError(EpubAudioError):
    """No chapter matches the given identifier."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f'Chapter not found: "{identifier}"')


class ChapterContentMissingError(EpubAudioError):
    """The chapter is listed in the TOC but its source file does not exist."""


class SynthesisError(EpubAudioError):
    """A provider request failed or returned no audio."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ConcatenationError(EpubAudioError):
    """Chunk audio could not be joined into the chapter file."""
