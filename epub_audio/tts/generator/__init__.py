"""
Generator Package for epub_audio.

Text preparation and audio helpers used while synthesizing a chapter.
Modules that talk to providers (chunk_generator) are imported directly.
"""

from epub_audio.tts.generator.chunker import split_text
from epub_audio.tts.generator.text_normalizer import normalize
from epub_audio.tts.generator.utils import chapter_audio_filename, sanitize_filename
from epub_audio.tts.generator.wav import decode_audio, pcm_to_wav

__all__ = [
    "split_text",
    "normalize",
    "chapter_audio_filename",
    "sanitize_filename",
    "decode_audio",
    "pcm_to_wav",
]
