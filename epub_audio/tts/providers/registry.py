"""
TTS Provider Registry

Read-only lookup of provider capabilities, option resolution, configuration
validation and provider construction.
"""

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type

from epub_audio.errors import ConfigValidationError, UnknownProviderError
from epub_audio.tts.providers.base import (
    ChapterAudioOptions,
    EffectiveOptions,
    ProviderCapability,
    TTSProvider,
)
from epub_audio.tts.providers.google_tts import GOOGLE_CAPABILITY, GoogleTTSProvider
from epub_audio.tts.providers.openai_tts import OPENAI_CAPABILITY, OpenAITTSProvider


PROVIDER_CLASSES: Mapping[str, Type[TTSProvider]] = MappingProxyType({
    "google": GoogleTTSProvider,
    "openai": OpenAITTSProvider,
})


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


class ProviderRegistry:
    """
    Immutable registry of TTS provider capabilities.

    Built once and passed to whatever needs capability lookups. There is no
    runtime registration; a new provider means a new capability constant.

    Usage:
        registry = default_registry()
        options = registry.resolve_effective_options("google", ChapterAudioOptions(voice="Puck"))
        provider = registry.create_provider("google", options)
    """

    def __init__(
        self,
        capabilities: Iterable[ProviderCapability],
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._capabilities: Mapping[str, ProviderCapability] = MappingProxyType(
            {capability.name: capability for capability in capabilities}
        )
        # None means "read os.environ at call time" so .env loading still applies
        self._environ = environ

    @property
    def capabilities(self) -> Mapping[str, ProviderCapability]:
        return self._capabilities

    def available_providers(self) -> List[str]:
        return list(self._capabilities.keys())

    def is_available(self, provider_id: str) -> bool:
        return provider_id in self._capabilities

    def lookup(self, provider_id: str) -> ProviderCapability:
        """
        Get a provider's capability.

        Raises:
            UnknownProviderError: If the provider is not registered
        """
        capability = self._capabilities.get(provider_id)
        if capability is None:
            raise UnknownProviderError(provider_id, self.available_providers())
        return capability

    def _api_key(self, capability: ProviderCapability) -> Optional[str]:
        environ = self._environ if self._environ is not None else os.environ
        return environ.get(capability.auth.api_key_env) or None

    def resolve_effective_options(
        self,
        provider_id: str,
        overrides: Optional[ChapterAudioOptions] = None,
    ) -> EffectiveOptions:
        """Merge overrides over the provider's defaults. Empty values count as unset."""
        capability = self.lookup(provider_id)
        overrides = overrides or ChapterAudioOptions()
        defaults = capability.default_settings
        return EffectiveOptions(
            provider=overrides.provider or provider_id,
            voice=overrides.voice or defaults.voice,
            model=overrides.model or defaults.model,
            format=overrides.format or defaults.format,
            force_regenerate=bool(overrides.force_regenerate),
            chunk_size=overrides.chunk_size or capability.processing.max_chunk_size,
            rate_limit_delay=overrides.rate_limit_delay or capability.processing.rate_limit_delay,
        )

    def validate(self, provider_id: str) -> ValidationResult:
        """
        Check a provider's configuration.

        Advisory: problems are collected, never raised. Checks the API key is
        set and the default voice, model and format exist in the catalog.
        """
        errors: List[str] = []
        try:
            capability = self.lookup(provider_id)
        except UnknownProviderError as e:
            return ValidationResult(valid=False, errors=[f"Configuration error: {e}"])

        if not self._api_key(capability):
            errors.append(
                f"Missing API key: Please set {capability.auth.api_key_env} environment variable"
            )

        defaults = capability.default_settings
        if capability.get_voice(defaults.voice) is None:
            errors.append(f"Default voice '{defaults.voice}' not found in available voices")
        if capability.get_model(defaults.model) is None:
            errors.append(f"Default model '{defaults.model}' not found in available models")
        if capability.audio.find(defaults.format) is None:
            errors.append(f"Default format '{defaults.format}' not found in supported formats")

        return ValidationResult(valid=not errors, errors=errors)

    def auth_headers(self, provider_id: str) -> Dict[str, str]:
        """
        Static headers plus the provider's auth header.

        Raises:
            ConfigValidationError: If the API key is not set
        """
        capability = self.lookup(provider_id)
        api_key = self._api_key(capability)
        if not api_key:
            raise ConfigValidationError([
                f"Missing API key for {provider_id}: Please set "
                f"{capability.auth.api_key_env} environment variable"
            ])

        headers = dict(capability.auth.headers)
        if capability.api_style == "google":
            headers["x-goog-api-key"] = api_key
        elif capability.api_style == "openai":
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def provider_info(self, provider_id: str) -> Dict[str, Any]:
        """Display summary of a provider for listings."""
        capability = self.lookup(provider_id)
        return {
            "name": capability.info.display_name,
            "description": capability.info.description,
            "version": capability.info.version,
            "features": capability.features,
            "voices": [
                {
                    "id": v.id,
                    "name": v.name,
                    "description": v.description,
                    "language": v.language,
                    "gender": v.gender,
                }
                for v in capability.voices
            ],
            "models": [
                {"id": m.id, "name": m.name, "description": m.description}
                for m in capability.models
            ],
            "formats": [
                {"format": f.format, "extension": f.extension}
                for f in capability.audio.supported_formats
            ],
        }

    def create_provider(
        self,
        provider_id: str,
        options: EffectiveOptions,
        timeout_seconds: int = 600,
        log_requests: bool = False,
    ) -> TTSProvider:
        """
        Instantiate the provider class matching the capability's api_style.

        Raises:
            UnknownProviderError: If the provider is not registered
            ConfigValidationError: If the API key is not set
        """
        capability = self.lookup(provider_id)
        provider_class = PROVIDER_CLASSES[capability.api_style]
        headers = self.auth_headers(provider_id)
        return provider_class(
            capability,
            options,
            headers,
            api_key=self._api_key(capability) or "",
            timeout_seconds=timeout_seconds,
            log_requests=log_requests,
        )


_default_registry: Optional[ProviderRegistry] = None


def default_registry() -> ProviderRegistry:
    """The process-wide registry of built-in providers."""
    global _default_registry
    if _default_registry is None:
        _default_registry = ProviderRegistry([GOOGLE_CAPABILITY, OPENAI_CAPABILITY])
    return _default_registry
