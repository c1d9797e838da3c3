"""
TTS Providers Package

Capability descriptions and request implementations for the cloud TTS
backends, plus the read-only registry that ties them together.
"""

from epub_audio.tts.providers.base import (
    ChapterAudioOptions,
    EffectiveOptions,
    GenerationResult,
    ProviderCapability,
    TTSProvider,
    VoiceInfo,
)
from epub_audio.tts.providers.registry import (
    ProviderRegistry,
    ValidationResult,
    default_registry,
)

__all__ = [
    # Base classes
    "ChapterAudioOptions",
    "EffectiveOptions",
    "GenerationResult",
    "ProviderCapability",
    "TTSProvider",
    "VoiceInfo",
    # Registry
    "ProviderRegistry",
    "ValidationResult",
    "default_registry",
]
