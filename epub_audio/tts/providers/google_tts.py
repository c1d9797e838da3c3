"""
Google Gemini TTS Provider

Gemini 2.5 Flash Preview TTS over the Generative Language REST API. Audio
comes back base64-encoded, usually as raw 16-bit PCM that needs a WAV header
before it can be played.
"""

import asyncio
import base64
import json
from typing import Any, Dict

import aiohttp

from epub_audio.errors import SynthesisError
from epub_audio.tts.generator.wav import decode_audio
from epub_audio.tts.providers.base import (
    AudioFormat,
    AudioSettings,
    DefaultSettings,
    GenerationResult,
    GoogleSettings,
    ModelInfo,
    ProcessingLimits,
    ProviderAuth,
    ProviderCapability,
    ProviderFeatures,
    ProviderInfo,
    SpeakerVoice,
    TTSProvider,
    VoiceInfo,
)
from epub_audio.utils.logging_config import get_logger

logger = get_logger(__name__)


GOOGLE_VOICES = (
    VoiceInfo(
        id="Kore",
        name="Kore",
        gender="neutral",
        description="Neutral, clear voice suitable for narration",
    ),
    VoiceInfo(
        id="Puck",
        name="Puck",
        gender="neutral",
        description="Expressive voice with character",
    ),
    VoiceInfo(
        id="Charon",
        name="Charon",
        gender="male",
        description="Deep, authoritative male voice",
    ),
    VoiceInfo(
        id="Fenrir",
        name="Fenrir",
        gender="male",
        description="Strong, commanding male voice",
    ),
    VoiceInfo(
        id="Aoede",
        name="Aoede",
        gender="female",
        description="Melodic female voice",
    ),
)

_WAV = AudioFormat(format="audio/wav", codec="pcm", sample_rate=24000, channels=1, extension="wav")

GOOGLE_CAPABILITY = ProviderCapability(
    info=ProviderInfo(
        name="google",
        display_name="Google Gemini TTS",
        version="2.5-flash-preview",
        description="Google Gemini 2.5 Flash Preview TTS with multi-speaker support",
        documentation_url="https://ai.google.dev/gemini-api/docs/text-to-speech",
    ),
    api_style="google",
    auth=ProviderAuth(
        api_key_env="GOOGLE_API_KEY",
        base_url="https://generativelanguage.googleapis.com/v1beta",
        headers={"Content-Type": "application/json"},
    ),
    models=(
        ModelInfo(
            id="gemini-2.5-flash-preview-tts",
            name="Gemini 2.5 Flash Preview TTS",
            description="Latest Google TTS model with multi-speaker capabilities",
            max_text_length=5000,
            supported_formats=("audio/wav", "audio/mp3", "audio/L16"),
            languages=("en", "es", "fr", "de", "it", "pt", "ru", "ja", "ko", "zh"),
        ),
    ),
    voices=GOOGLE_VOICES,
    audio=AudioSettings(
        default_format=_WAV,
        supported_formats=(
            _WAV,
            AudioFormat(format="audio/mp3", codec="mp3", sample_rate=24000, bit_rate="128k", channels=1, extension="mp3"),
            AudioFormat(format="audio/L16", codec="pcm", sample_rate=24000, channels=1, extension="wav"),
        ),
    ),
    # Preview APIs are rate limited hard: one request at a time, 10s apart.
    processing=ProcessingLimits(
        max_text_length=5000,
        max_chunk_size=3000,
        rate_limit_delay=10000,
        max_concurrent_requests=1,
        retry_attempts=5,
        retry_delay=30000,
    ),
    features=ProviderFeatures(supports_multi_speaker=True),
    default_settings=DefaultSettings(
        model="gemini-2.5-flash-preview-tts",
        voice="Kore",
        format="audio/wav",
    ),
    google_settings=GoogleSettings(
        multi_speaker=False,
        speakers=(SpeakerVoice(name="Joe", voice="Kore"), SpeakerVoice(name="Jane", voice="Puck")),
        response_modalities=("AUDIO",),
    ),
)


class GoogleTTSProvider(TTSProvider):
    """
    Google-style provider: POST {base_url}/models/{model}:generateContent.

    Multi-speaker mode is used only when google_settings enables it and
    lists at least one speaker; otherwise the single effective voice is sent.
    """

    api_style = "google"

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.options.model}:generateContent"

    def _speech_config(self) -> Dict[str, Any]:
        google_settings = self.capability.google_settings or GoogleSettings()
        if google_settings.multi_speaker and google_settings.speakers:
            return {
                "multiSpeakerVoiceConfig": {
                    "speakerVoiceConfigs": [
                        {
                            "speaker": speaker.name,
                            "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": speaker.voice}},
                        }
                        for speaker in google_settings.speakers
                    ]
                }
            }
        return {"voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self.options.voice}}}

    def build_request(self, text: str) -> Dict[str, Any]:
        google_settings = self.capability.google_settings or GoogleSettings()
        return {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": list(google_settings.response_modalities or ("AUDIO",)),
                "speechConfig": self._speech_config(),
            },
            "model": self.options.model,
        }

    @staticmethod
    def extract_inline_audio(payload: Dict[str, Any]) -> Dict[str, str]:
        """
        Pull `inlineData` out of a generateContent response.

        Raises:
            SynthesisError: If the response carries no audio.
        """
        if not isinstance(payload, dict):
            raise SynthesisError("Unexpected Google TTS response: expected a JSON object")

        candidates = payload.get("candidates") or []
        if candidates:
            parts = (candidates[0].get("content") or {}).get("parts") or []
            if parts:
                inline_data = parts[0].get("inlineData") or {}
                if inline_data.get("data"):
                    return inline_data
        raise SynthesisError("No audio data received from Google TTS API")

    def decode_response(self, payload: Dict[str, Any]) -> GenerationResult:
        inline_data = self.extract_inline_audio(payload)
        mime_type = inline_data.get("mimeType", "")
        logger.debug(f"Received audio format: {mime_type}")

        try:
            raw = base64.b64decode(inline_data["data"])
        except ValueError as e:
            raise SynthesisError(f"Google TTS returned undecodable audio data: {e}") from e
        audio_data, sample_rate = decode_audio(raw, mime_type)
        return GenerationResult(
            audio_data=audio_data,
            mime_type=mime_type,
            sample_rate=sample_rate or None,
            voice_id=self.options.voice,
            metadata={"provider": self.name, "model": self.options.model},
        )

    async def synthesize(self, text: str) -> GenerationResult:
        body = self.build_request(text)
        if self.log_requests:
            logger.debug(f"Google TTS request to {self.endpoint}: {json.dumps(body)}")

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.endpoint,
                    json=body,
                    headers=self.headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise SynthesisError(
                            f"Google TTS API error {response.status}: {error_text}",
                            status_code=response.status,
                        )
                    try:
                        payload = await response.json(content_type=None)
                    except ValueError as e:
                        raise SynthesisError(f"Google TTS returned a non-JSON response: {e}") from e
        except aiohttp.ClientError as e:
            raise SynthesisError(f"Google TTS connection error: {e}") from e
        except asyncio.TimeoutError as e:
            raise SynthesisError(f"Google TTS request timed out after {self.timeout}s") from e

        return self.decode_response(payload)
