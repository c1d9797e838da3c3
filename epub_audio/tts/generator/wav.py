"""
WAV helpers for providers that return raw linear PCM.

Gemini TTS answers with `audio/L16;codec=pcm;rate=24000` payloads. Those bytes
are not playable on their own, so a RIFF/WAVE header is prepended before the
chunk is written to disk.
"""

import io
import re
import wave
from typing import Tuple

DEFAULT_PCM_SAMPLE_RATE = 24000

WAV_HEADER_SIZE = 44

_RATE_PATTERN = re.compile(r"rate=(\d+)")


def is_raw_pcm(mime_type: str) -> bool:
    """True when the MIME type describes headerless 16-bit PCM."""
    if not mime_type:
        return False
    return "audio/L16" in mime_type or "pcm" in mime_type


def parse_sample_rate(mime_type: str, default: int = DEFAULT_PCM_SAMPLE_RATE) -> int:
    match = _RATE_PATTERN.search(mime_type or "")
    return int(match.group(1)) if match else default


def pcm_to_wav(pcm_data: bytes, sample_rate: int = DEFAULT_PCM_SAMPLE_RATE) -> bytes:
    """
    Wrap 16-bit mono PCM in a minimal 44-byte WAV container.

    Args:
        pcm_data: Raw little-endian samples.
        sample_rate: Samples per second.

    Returns:
        Header followed by the unmodified PCM bytes.
    """
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(pcm_data)
    return buf.getvalue()


def decode_audio(audio_data: bytes, mime_type: str) -> Tuple[bytes, int]:
    """
    Turn provider bytes into something playable.

    PCM payloads get a WAV header; anything else (mp3, opus, ...) is already
    containerized and passes through untouched. Returns the bytes together
    with the sample rate (0 when the provider did not declare one).
    """
    if is_raw_pcm(mime_type):
        sample_rate = parse_sample_rate(mime_type)
        return pcm_to_wav(audio_data, sample_rate), sample_rate
    return audio_data, 0
