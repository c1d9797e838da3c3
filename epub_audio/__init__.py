"""
epub_audio Package

Per-chapter text-to-speech audio for books already converted from EPUB to
Markdown, using pluggable cloud TTS providers (Google Gemini, OpenAI).
"""

__version__ = "1.0.0"

from epub_audio.errors import (
    BookNotFoundError,
    ChapterContentMissingError,
    ChapterNotFoundError,
    ConcatenationError,
    ConfigValidationError,
    EpubAudioError,
    SynthesisError,
    UnknownProviderError,
)
from epub_audio.models import BookMetadata, Chapter, TableOfContents
from epub_audio.tts.providers import ChapterAudioOptions, ProviderRegistry, default_registry
from epub_audio.tts.pipeline import (
    BatchSummary,
    ChapterAudioPipeline,
    ChapterResult,
    ChapterStatus,
    PipelineStage,
)
from epub_audio.batch import BatchProcessor, BatchReport

__all__ = [
    "__version__",
    # Errors
    "EpubAudioError",
    "UnknownProviderError",
    "ConfigValidationError",
    "BookNotFoundError",
    "ChapterNotFoundError",
    "ChapterContentMissingError",
    "SynthesisError",
    "ConcatenationError",
    # Models
    "BookMetadata",
    "Chapter",
    "TableOfContents",
    # Providers
    "ChapterAudioOptions",
    "ProviderRegistry",
    "default_registry",
    # Pipeline
    "ChapterAudioPipeline",
    "ChapterResult",
    "ChapterStatus",
    "BatchSummary",
    "PipelineStage",
    "BatchProcessor",
    "BatchReport",
]
