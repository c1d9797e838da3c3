"""
Chunk Generator - Synthesizes chapter text one chunk at a time.

Handles:
- Splitting text under the provider's chunk size
- Retry with exponential backoff, slower for rate limits
- Pacing between chunks (rate_limit_delay)
- Writing a single chunk directly or concatenating several
"""

import asyncio
import os
from typing import Awaitable, Callable, List

from epub_audio.errors import ChapterContentMissingError, SynthesisError
from epub_audio.tts.generator.chapter_assembler import ChapterAssembler
from epub_audio.tts.generator.chunker import split_text
from epub_audio.tts.generator.utils import chunk_filename
from epub_audio.tts.providers.base import TTSProvider
from epub_audio.utils.logging_config import get_logger

logger = get_logger(__name__)

# Non rate-limit failures back off faster.
OTHER_ERROR_DELAY_DIVISOR = 3

Sleep = Callable[[float], Awaitable[None]]


def is_rate_limit_error(error: Exception) -> bool:
    """HTTP 429 on the error, or a rate-limit marker in its message."""
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if status == 429:
        return True
    message = str(error)
    return "429" in message or "Too Many Requests" in message


def retry_wait_seconds(retry_delay_ms: int, attempt: int, rate_limited: bool) -> float:
    """Backoff before retry number `attempt` (counted from 1)."""
    base_delay = retry_delay_ms if rate_limited else retry_delay_ms / OTHER_ERROR_DELAY_DIVISOR
    return base_delay * (2 ** (attempt - 1)) / 1000


class ChunkGenerator:
    """
    Generates audio for a block of text with one provider.

    Chunks are sent strictly one after another; a provider never sees two
    requests from the same run at once.

    Usage:
        generator = ChunkGenerator(provider, ChapterAssembler(temp_dir))
        await generator.synthesize_text(text, "audio/google/chapters/01-intro.wav")
    """

    def __init__(
        self,
        provider: TTSProvider,
        assembler: ChapterAssembler,
        sleep: Sleep = asyncio.sleep,
    ):
        self.provider = provider
        self.assembler = assembler
        self.processing = provider.capability.processing
        self.options = provider.options
        self.extension = provider.capability.extension_for(provider.options.format)
        self._sleep = sleep

    async def synthesize_chunk(self, text: str, chunk_index: int = 0, label: str = "") -> bytes:
        """
        Synthesize one chunk, retrying on failure.

        Args:
            text: Chunk text.
            chunk_index: Position of the chunk in the chapter (for logs).
            label: Name of the target file (for logs).

        Returns:
            Playable audio bytes.

        Raises:
            SynthesisError: The last error once all retries are used up.
        """
        max_retries = self.processing.retry_attempts
        attempt = 0

        while True:
            try:
                result = await self.provider.synthesize(text)
                return result.audio_data
            except SynthesisError as e:
                attempt += 1
                if attempt > max_retries:
                    logger.error(
                        f"Chunk {chunk_index + 1} of {label or 'text'} failed after "
                        f"{attempt} attempts: {e}"
                    )
                    raise

                rate_limited = is_rate_limit_error(e)
                wait = retry_wait_seconds(self.processing.retry_delay, attempt, rate_limited)
                reason = "rate limited" if rate_limited else "error"
                logger.warning(
                    f"Retry {attempt}/{max_retries} for chunk {chunk_index + 1} of "
                    f"{label or 'text'} ({reason}) - waiting {wait:g}s: {e}"
                )
                await self._sleep(wait)

    async def synthesize_text(self, text: str, output_path: str) -> str:
        """
        Synthesize `text` into `output_path`.

        A single chunk is written directly. Several chunks are written to temp
        files, joined in order, and the temp files removed.

        Returns:
            The output path.
        """
        chunks = split_text(text, self.options.chunk_size)
        label = os.path.basename(output_path)
        if not chunks:
            raise ChapterContentMissingError(f"No text to synthesize for {label}")
        total = len(chunks)
        logger.info(f"Generating {label} from {total} chunk(s) with {self.provider.display_name}")

        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

        if total == 1:
            audio_data = await self.synthesize_chunk(chunks[0], 0, label)
            with open(output_path, "wb") as f:
                f.write(audio_data)
            logger.info(f"Chunk 1/1 of {label} generated ({len(chunks[0])} chars)")
            return output_path

        chunk_paths: List[str] = []
        try:
            for i, chunk in enumerate(chunks):
                audio_data = await self.synthesize_chunk(chunk, i, label)
                path = self.assembler.chunk_path(chunk_filename(i, self.extension))
                chunk_paths.append(self.assembler.write_chunk(path, audio_data))
                logger.info(f"Chunk {i + 1}/{total} of {label} generated ({len(chunk)} chars)")

                if i < total - 1:
                    await self._sleep(self.options.rate_limit_delay / 1000)
        except Exception:
            self.assembler.cleanup(chunk_paths)
            raise

        return self.assembler.concatenate(chunk_paths, output_path)
