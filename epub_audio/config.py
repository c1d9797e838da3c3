
from dataclasses import dataclass
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class TextProcessingSettings:
    """Flags that drive text normalization before synthesis."""
    clean_markdown: bool = True
    remove_footnotes: bool = True
    normalize_whitespace: bool = True
    sentence_splitting: bool = True
    paragraph_splitting: bool = False


class Settings(BaseSettings):
    """
    Application configuration settings.
    Loads values from environment variables (and .env file).
    """
    # Provider selection & output layout
    default_provider: str = Field(default="google")
    output_directory_structure: Literal["provider-first", "book-first"] = Field(default="book-first")
    books_dir: str = Field(default="books")

    # Pacing
    chapter_delay_seconds: float = Field(default=3.0, description="Pause between chapters in a multi-chapter run")
    max_concurrent_books: int = Field(default=2, description="Max parallel book invocations in batch mode")

    # Text processing
    clean_markdown: bool = Field(default=True)
    remove_footnotes: bool = Field(default=True)
    normalize_whitespace: bool = Field(default=True)
    sentence_splitting: bool = Field(default=True)
    paragraph_splitting: bool = Field(default=False)

    # Audio processing (declared for compatibility, not applied)
    normalize_volume: bool = Field(default=False)
    target_volume_db: float = Field(default=-20.0)
    fade_in_ms: int = Field(default=100)
    fade_out_ms: int = Field(default=100)
    silence_detection: bool = Field(default=True)
    auto_split_chapters: bool = Field(default=True)

    # Logging
    log_level: Literal["debug", "info", "warn", "error"] = Field(default="info")
    log_api_requests: bool = Field(default=False)
    log_file_operations: bool = Field(default=True)
    save_processing_logs: bool = Field(default=True)
    log_file: str = Field(default="logs/epub_audio.log")

    # Config for pydantic-settings
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore" # Ignore extra env vars (API keys are read per provider)
    )

    @property
    def text_processing(self) -> TextProcessingSettings:
        return TextProcessingSettings(
            clean_markdown=self.clean_markdown,
            remove_footnotes=self.remove_footnotes,
            normalize_whitespace=self.normalize_whitespace,
            sentence_splitting=self.sentence_splitting,
            paragraph_splitting=self.paragraph_splitting,
        )

# Global settings instance
settings = Settings()
