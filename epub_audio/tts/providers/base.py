"""
TTS Provider Abstraction Layer

This module describes what each cloud TTS backend can do (auth, voice and
model catalogs, audio formats, processing limits) and the base interface
every provider implementation follows. Capabilities are declared once per
provider and never mutated.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional, Tuple


ApiStyle = Literal["google", "openai"]


@dataclass(frozen=True)
class VoiceInfo:
    """Information about an available voice."""
    id: str                          # Identifier sent to the provider
    name: str                        # Display name
    language: str = "en"             # Language code
    gender: str = "neutral"          # "male", "female", "neutral"
    description: str = ""


@dataclass(frozen=True)
class ModelInfo:
    """A synthesis model offered by the provider."""
    id: str
    name: str
    description: str = ""
    max_text_length: Optional[int] = None
    supported_formats: Tuple[str, ...] = ()
    languages: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AudioFormat:
    format: str
    extension: str
    codec: Optional[str] = None
    sample_rate: Optional[int] = None
    bit_rate: Optional[str] = None
    channels: Optional[int] = None


@dataclass(frozen=True)
class AudioSettings:
    default_format: AudioFormat
    supported_formats: Tuple[AudioFormat, ...]

    def find(self, format_id: str) -> Optional[AudioFormat]:
        for audio_format in self.supported_formats:
            if audio_format.format == format_id:
                return audio_format
        return None


@dataclass(frozen=True)
class ProviderAuth:
    api_key_env: str
    base_url: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderInfo:
    name: str
    display_name: str
    version: str
    description: str
    documentation_url: Optional[str] = None


@dataclass(frozen=True)
class ProcessingLimits:
    """Request limits. Delays are in milliseconds."""
    max_text_length: int
    max_chunk_size: int
    rate_limit_delay: int
    max_concurrent_requests: int
    retry_attempts: int
    retry_delay: int


@dataclass(frozen=True)
class ProviderFeatures:
    supports_ssml: bool = False
    supports_multi_speaker: bool = False
    supports_voice_cloning: bool = False
    supports_speed_control: bool = False
    supports_pitch_control: bool = False
    supports_streaming: bool = False
    supports_emotions: bool = False


@dataclass(frozen=True)
class DefaultSettings:
    model: str
    voice: str
    format: str
    speed: Optional[float] = None


@dataclass(frozen=True)
class SpeakerVoice:
    """Maps a named speaker role to a prebuilt voice."""
    name: str
    voice: str


@dataclass(frozen=True)
class GoogleSettings:
    multi_speaker: bool = False
    speakers: Tuple[SpeakerVoice, ...] = ()
    response_modalities: Tuple[str, ...] = ("AUDIO",)


@dataclass(frozen=True)
class OpenAISettings:
    response_format: str = "mp3"
    speed: float = 1.0


@dataclass(frozen=True)
class ProviderCapability:
    """Declarative description of one TTS backend."""
    info: ProviderInfo
    api_style: ApiStyle
    auth: ProviderAuth
    models: Tuple[ModelInfo, ...]
    voices: Tuple[VoiceInfo, ...]
    audio: AudioSettings
    processing: ProcessingLimits
    features: ProviderFeatures
    default_settings: DefaultSettings
    google_settings: Optional[GoogleSettings] = None
    openai_settings: Optional[OpenAISettings] = None

    @property
    def name(self) -> str:
        return self.info.name

    def get_voice(self, voice_id: str) -> Optional[VoiceInfo]:
        for voice in self.voices:
            if voice.id == voice_id:
                return voice
        return None

    def get_model(self, model_id: str) -> Optional[ModelInfo]:
        for model in self.models:
            if model.id == model_id:
                return model
        return None

    def extension_for(self, format_id: str) -> str:
        """File extension for a format id, falling back to the default format."""
        audio_format = self.audio.find(format_id)
        if audio_format is None:
            audio_format = self.audio.default_format
        return audio_format.extension


@dataclass(frozen=True)
class ChapterAudioOptions:
    """User overrides for one run. Unset (None or empty) fields take provider defaults."""
    provider: Optional[str] = None
    voice: Optional[str] = None
    model: Optional[str] = None
    format: Optional[str] = None
    force_regenerate: bool = False
    chunk_size: Optional[int] = None
    rate_limit_delay: Optional[int] = None   # milliseconds


@dataclass(frozen=True)
class EffectiveOptions:
    """Per-run synthesis parameters: user overrides merged over provider defaults."""
    provider: str
    voice: str
    model: str
    format: str
    force_regenerate: bool
    chunk_size: int
    rate_limit_delay: int            # milliseconds


@dataclass
class GenerationResult:
    """Result of one synthesis request."""
    audio_data: bytes                # Playable audio bytes (WAV for PCM responses)
    mime_type: str = ""              # MIME type reported by the provider
    sample_rate: Optional[int] = None
    voice_id: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


class TTSProvider(ABC):
    """
    Abstract base class for cloud TTS providers.

    A provider is built once per generation run from a resolved capability
    and effective options. It turns one text chunk into playable audio bytes.

    Example usage:
        provider = registry.create_provider("google", options)
        result = await provider.synthesize("Hello there.")
    """

    api_style: ApiStyle

    def __init__(
        self,
        capability: ProviderCapability,
        options: EffectiveOptions,
        headers: Mapping[str, str],
        api_key: str = "",
        timeout_seconds: int = 600,
        log_requests: bool = False,
    ):
        self.capability = capability
        self.options = options
        self.headers = dict(headers)
        self.api_key = api_key
        self.base_url = capability.auth.base_url.rstrip("/")
        self.timeout = timeout_seconds
        self.log_requests = log_requests

    @property
    def name(self) -> str:
        return self.capability.name

    @property
    def display_name(self) -> str:
        return self.capability.info.display_name

    @abstractmethod
    def build_request(self, text: str) -> Dict[str, Any]:
        """Build the provider-specific request body for `text`."""

    @abstractmethod
    async def synthesize(self, text: str) -> GenerationResult:
        """
        Synthesize one chunk of text.

        Raises:
            SynthesisError: If the request fails or no audio comes back
        """

    async def close(self) -> None:
        """Release any client resources."""
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, model={self.options.model}, voice={self.options.voice})>"
