"""
OpenAI TTS Provider

tts-1 / tts-1-hd through the official `openai` SDK. The API returns an
already-encoded file (mp3, opus, aac or flac), so bytes are written as-is.
"""

import json
from typing import Any, Dict, Optional

import httpx
import openai
from openai import AsyncOpenAI

from epub_audio.errors import SynthesisError
from epub_audio.tts.providers.base import (
    AudioFormat,
    AudioSettings,
    DefaultSettings,
    GenerationResult,
    ModelInfo,
    OpenAISettings,
    ProcessingLimits,
    ProviderAuth,
    ProviderCapability,
    ProviderFeatures,
    ProviderInfo,
    TTSProvider,
    VoiceInfo,
)
from epub_audio.utils.logging_config import get_logger

logger = get_logger(__name__)


OPENAI_LANGUAGES = ("en", "es", "fr", "de", "it", "pt", "ru", "ja", "ko", "zh", "ar", "hi")
OPENAI_FORMATS = ("mp3", "opus", "aac", "flac")

OPENAI_VOICES = (
    VoiceInfo(id="alloy", name="Alloy", gender="neutral", description="Neutral, balanced voice"),
    VoiceInfo(id="echo", name="Echo", gender="male", description="Clear, professional male voice"),
    VoiceInfo(id="fable", name="Fable", gender="neutral", description="Storytelling voice with character"),
    VoiceInfo(id="onyx", name="Onyx", gender="male", description="Deep, authoritative male voice"),
    VoiceInfo(id="nova", name="Nova", gender="female", description="Clear, pleasant female voice"),
    VoiceInfo(id="shimmer", name="Shimmer", gender="female", description="Bright, engaging female voice"),
)

_MP3 = AudioFormat(format="mp3", codec="mp3", sample_rate=22050, bit_rate="64k", channels=1, extension="mp3")

OPENAI_CAPABILITY = ProviderCapability(
    info=ProviderInfo(
        name="openai",
        display_name="OpenAI TTS",
        version="1.0",
        description="OpenAI Text-to-Speech API with high-quality voices",
        documentation_url="https://platform.openai.com/docs/guides/text-to-speech",
    ),
    api_style="openai",
    auth=ProviderAuth(
        api_key_env="OPENAI_API_KEY",
        base_url="https://api.openai.com/v1",
        headers={"Content-Type": "application/json"},
    ),
    models=(
        ModelInfo(
            id="tts-1",
            name="TTS-1",
            description="Standard quality text-to-speech model",
            max_text_length=4096,
            supported_formats=OPENAI_FORMATS,
            languages=OPENAI_LANGUAGES,
        ),
        ModelInfo(
            id="tts-1-hd",
            name="TTS-1-HD",
            description="High definition text-to-speech model with superior quality",
            max_text_length=4096,
            supported_formats=OPENAI_FORMATS,
            languages=OPENAI_LANGUAGES,
        ),
    ),
    voices=OPENAI_VOICES,
    audio=AudioSettings(
        default_format=_MP3,
        supported_formats=(
            _MP3,
            AudioFormat(format="opus", codec="opus", sample_rate=24000, bit_rate="64k", channels=1, extension="opus"),
            AudioFormat(format="aac", codec="aac", sample_rate=22050, bit_rate="64k", channels=1, extension="aac"),
            AudioFormat(format="flac", codec="flac", sample_rate=44100, channels=1, extension="flac"),
        ),
    ),
    processing=ProcessingLimits(
        max_text_length=4096,
        max_chunk_size=3000,
        rate_limit_delay=1000,
        max_concurrent_requests=5,
        retry_attempts=3,
        retry_delay=2000,
    ),
    features=ProviderFeatures(supports_speed_control=True),
    default_settings=DefaultSettings(model="tts-1", voice="alloy", format="mp3", speed=1.0),
    openai_settings=OpenAISettings(response_format="mp3", speed=1.0),
)


class OpenAITTSProvider(TTSProvider):
    """
    OpenAI-style provider: `audio.speech` with {model, voice, input,
    response_format, speed}. The response body is the audio file.
    """

    api_style = "openai"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    @property
    def speed(self) -> float:
        if self.capability.openai_settings and self.capability.openai_settings.speed:
            return self.capability.openai_settings.speed
        return self.capability.default_settings.speed or 1.0

    def build_request(self, text: str) -> Dict[str, Any]:
        return {
            "model": self.options.model,
            "voice": self.options.voice,
            "input": text,
            "response_format": self.options.format,
            "speed": self.speed,
        }

    async def synthesize(self, text: str) -> GenerationResult:
        request = self.build_request(text)
        if self.log_requests:
            logger.debug(f"OpenAI TTS request: {json.dumps(request)}")

        client = self._get_client()
        try:
            audio_buffer = bytearray()
            async with client.audio.speech.with_streaming_response.create(**request) as response:
                async for chunk in response.iter_bytes():
                    audio_buffer.extend(chunk)
        except openai.APIStatusError as e:
            raise SynthesisError(
                f"OpenAI TTS API error {e.status_code}: {e.message}",
                status_code=e.status_code,
            ) from e
        except openai.APIError as e:
            raise SynthesisError(f"OpenAI TTS generation failed: {e}") from e
        except httpx.HTTPError as e:
            raise SynthesisError(f"OpenAI TTS stream interrupted: {e}") from e

        if not audio_buffer:
            raise SynthesisError("No audio data received from OpenAI TTS API")

        audio_format = self.capability.audio.find(self.options.format)
        return GenerationResult(
            audio_data=bytes(audio_buffer),
            mime_type=f"audio/{self.options.format}",
            sample_rate=audio_format.sample_rate if audio_format else None,
            voice_id=self.options.voice,
            metadata={"provider": self.name, "model": self.options.model, "speed": request["speed"]},
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
