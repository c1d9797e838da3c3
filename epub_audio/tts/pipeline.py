"""
Chapter Audio Pipeline - Orchestrates chapter audio generation for one book.

This module resolves chapter identifiers against the book's table of
contents, prepares chapter text, and drives the chunk generator for each
chapter. It is the entry point used by the CLI and the batch processor.

Chapters are processed strictly one after another, and so are the chunks
inside a chapter.
"""

import asyncio
import os
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from epub_audio.config import Settings, settings as default_settings
from epub_audio.errors import (
    ChapterContentMissingError,
    ChapterNotFoundError,
    ConfigValidationError,
)
from epub_audio.models import (
    BookMetadata,
    Chapter,
    TableOfContents,
    chapter_source_path,
    find_chapter,
    load_book,
)
from epub_audio.tts.generator.chapter_assembler import ChapterAssembler
from epub_audio.tts.generator.chunk_generator import ChunkGenerator, Sleep
from epub_audio.tts.generator.text_normalizer import normalize
from epub_audio.tts.generator.utils import chapter_audio_filename
from epub_audio.tts.providers.base import ChapterAudioOptions, TTSProvider
from epub_audio.tts.providers.registry import ProviderRegistry, default_registry
from epub_audio.utils.logging_config import get_logger, processing_log

logger = get_logger(__name__)

PROCESSING_LOG_NAME = "audio-generation.log"


class PipelineStage(str, Enum):
    """Stages of a chapter generation run."""
    IDLE = "idle"
    VALIDATING = "validating"
    LOADING = "loading"
    RESOLVING = "resolving"
    SYNTHESIZING = "synthesizing"
    WRITING = "writing"
    COMPLETED = "completed"
    FAILED = "failed"


class ChapterStatus(str, Enum):
    GENERATED = "generated"
    SKIPPED = "skipped"          # audio already on disk
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class ChapterResult:
    """Outcome for one requested chapter identifier."""
    identifier: str
    status: ChapterStatus
    chapter: Optional[Chapter] = None
    output_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status in (ChapterStatus.GENERATED, ChapterStatus.SKIPPED)


@dataclass
class BatchSummary:
    results: List[ChapterResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded


class ChapterAudioPipeline:
    """
    Generates per-chapter audio for a converted book.

    Usage:
        pipeline = ChapterAudioPipeline("books/mythos", provider="google")
        result = await pipeline.generate_chapter("2")
        summary = await pipeline.generate_many(["1", "chaos", "3"])

    Output goes to `<book>/audio/<provider>/chapters/NN-<slug>.<ext>` and
    a per-provider log is appended at
    `<book>/processing/logs/<provider>/audio-generation.log`.
    """

    def __init__(
        self,
        book_dir: str,
        provider: Optional[str] = None,
        options: Optional[ChapterAudioOptions] = None,
        registry: Optional[ProviderRegistry] = None,
        settings: Optional[Settings] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.book_dir = book_dir
        self.settings = settings or default_settings
        self.registry = registry or default_registry()
        self.provider_id = provider or self.settings.default_provider

        # Unknown providers fail here, before anything touches the book
        self.capability = self.registry.lookup(self.provider_id)
        self.options = self.registry.resolve_effective_options(self.provider_id, options)
        self.extension = self.capability.extension_for(self.options.format)

        self._sleep = sleep
        self._stage = PipelineStage.IDLE
        self._validated = False
        self._metadata: Optional[BookMetadata] = None
        self._toc: Optional[TableOfContents] = None
        self._provider: Optional[TTSProvider] = None
        self._chunk_generator: Optional[ChunkGenerator] = None

    @property
    def stage(self) -> PipelineStage:
        return self._stage

    @property
    def audio_dir(self) -> str:
        return os.path.join(self.book_dir, "audio", self.provider_id)

    @property
    def chapters_audio_dir(self) -> str:
        return os.path.join(self.audio_dir, "chapters")

    @property
    def temp_dir(self) -> str:
        return os.path.join(self.book_dir, "temp")

    @property
    def log_path(self) -> str:
        return os.path.join(self.book_dir, "processing", "logs", self.provider_id, PROCESSING_LOG_NAME)

    @property
    def metadata(self) -> Optional[BookMetadata]:
        return self._metadata

    @property
    def toc(self) -> TableOfContents:
        if self._toc is None:
            self.load_book()
        return self._toc

    def validate(self) -> None:
        """
        Validate the provider configuration.

        Raises:
            ConfigValidationError: With every problem found (missing key,
                unknown default voice/model/format)
        """
        self._stage = PipelineStage.VALIDATING
        result = self.registry.validate(self.provider_id)
        if not result.valid:
            self._stage = PipelineStage.FAILED
            for error in result.errors:
                logger.error(error)
            raise ConfigValidationError(result.errors)

        self._validated = True
        logger.info(f"Configuration validated for {self.provider_id} TTS")

    def load_book(self) -> TableOfContents:
        """
        Load metadata.yml and toc.yml.

        Raises:
            BookNotFoundError: If either file is missing
            InvalidTableOfContentsError: If toc.yml is malformed or its orders skip
        """
        self._stage = PipelineStage.LOADING
        try:
            self._metadata, toc = load_book(self.book_dir)
            toc.validate_order()
        except Exception as e:
            self._stage = PipelineStage.FAILED
            logger.error(f"Could not load book {self.book_dir}: {e}")
            raise

        self._toc = toc
        logger.info(
            f"Processing: {self._metadata.title} by {self._metadata.author} "
            f"({toc.total_chapters} chapters)"
        )
        return toc

    def find_chapter(self, identifier: str) -> Optional[Chapter]:
        """Resolve by order number, else by case-insensitive title substring."""
        return find_chapter(self.toc, identifier)

    def get_chapter(self, identifier: str) -> Chapter:
        chapter = self.find_chapter(identifier)
        if chapter is None:
            raise ChapterNotFoundError(identifier)
        return chapter

    def output_path_for(self, chapter: Chapter) -> str:
        return os.path.join(
            self.chapters_audio_dir,
            chapter_audio_filename(chapter.order, chapter.title, self.extension),
        )

    def has_audio(self, chapter: Chapter) -> bool:
        return os.path.exists(self.output_path_for(chapter))

    def list_chapters(self) -> List[Tuple[Chapter, bool]]:
        """Chapters in TOC order with whether audio already exists for this provider."""
        return [(chapter, self.has_audio(chapter)) for chapter in self.toc.chapters]

    def _get_chunk_generator(self) -> ChunkGenerator:
        if self._chunk_generator is None:
            self._provider = self.registry.create_provider(
                self.provider_id,
                self.options,
                log_requests=self.settings.log_api_requests,
            )
            assembler = ChapterAssembler(self.temp_dir, self.settings.log_file_operations)
            self._chunk_generator = ChunkGenerator(self._provider, assembler, sleep=self._sleep)
            logger.info(f"Using {self._provider.display_name} with voice: {self.options.voice}")
        return self._chunk_generator

    async def close(self) -> None:
        if self._provider is not None:
            await self._provider.close()
        self._provider = None
        self._chunk_generator = None

    def _prepare(self) -> None:
        if not self._validated:
            self.validate()
        if self._toc is None:
            self.load_book()

    def _run_log(self) -> ExitStack:
        stack = ExitStack()
        if self.settings.save_processing_logs:
            stack.enter_context(processing_log(self.log_path))
        return stack

    async def generate_one(self, chapter: Chapter) -> str:
        """
        Synthesize one chapter into its output file.

        Existing audio is kept unless force_regenerate is set.

        Returns:
            Path of the chapter audio file.

        Raises:
            ChapterContentMissingError: If the chapter source is missing or empty
            SynthesisError: If a chunk still fails after all retries
            ConcatenationError: If chunk audio cannot be joined
        """
        source_path = chapter_source_path(self.book_dir, chapter)
        if not os.path.exists(source_path):
            logger.warning(f"Chapter file not found: {chapter.filename}")
            raise ChapterContentMissingError(f"Chapter file not found: {source_path}")

        output_path = self.output_path_for(chapter)
        if os.path.exists(output_path) and not self.options.force_regenerate:
            logger.info(f"Audio already exists, skipping: {os.path.basename(output_path)}")
            return output_path

        self._stage = PipelineStage.SYNTHESIZING
        logger.info(f"Processing chapter {chapter.order}: {chapter.title}")

        with open(source_path, "r", encoding="utf-8") as f:
            text = normalize(f.read(), self.settings.text_processing)
        if not text:
            raise ChapterContentMissingError(f"Chapter {chapter.order} has no text to synthesize")

        generator = self._get_chunk_generator()
        await generator.synthesize_text(text, output_path)

        self._stage = PipelineStage.WRITING
        size_kb = round(os.path.getsize(output_path) / 1024)
        logger.info(f"Chapter {chapter.order} audio generated: {os.path.basename(output_path)} ({size_kb}KB)")
        return output_path

    async def _generate_chapter(self, identifier: str) -> ChapterResult:
        self._stage = PipelineStage.RESOLVING
        try:
            chapter = self.get_chapter(identifier)
        except ChapterNotFoundError as e:
            logger.warning(str(e))
            return ChapterResult(identifier=identifier, status=ChapterStatus.NOT_FOUND)

        existed = self.has_audio(chapter) and not self.options.force_regenerate
        try:
            output_path = await self.generate_one(chapter)
        except Exception as e:
            self._stage = PipelineStage.FAILED
            logger.error(f"Failed to generate audio for chapter {chapter.order} ({chapter.title}): {e}")
            raise

        status = ChapterStatus.SKIPPED if existed else ChapterStatus.GENERATED
        return ChapterResult(identifier=identifier, status=status, chapter=chapter, output_path=output_path)

    async def generate_chapter(self, identifier: str) -> ChapterResult:
        """
        Generate audio for one chapter.

        A missing chapter is reported as ChapterStatus.NOT_FOUND. Validation,
        loading and synthesis errors propagate.
        """
        with self._run_log():
            try:
                self._prepare()
                result = await self._generate_chapter(identifier)
            finally:
                await self.close()

        if self._stage != PipelineStage.FAILED:
            self._stage = PipelineStage.COMPLETED
        return result

    async def generate_many(self, identifiers: Sequence[str]) -> BatchSummary:
        """
        Generate audio for several chapters, in the order given.

        A failing chapter is logged and recorded; the rest still run. Between
        generated chapters the pipeline waits `chapter_delay_seconds`.
        """
        summary = BatchSummary()
        total = len(identifiers)

        with self._run_log():
            try:
                self._prepare()
                logger.info(f"Generating audio for {total} chapters")

                for i, identifier in enumerate(identifiers):
                    logger.info(f"[{i + 1}/{total}] Processing chapter: {identifier}")
                    try:
                        result = await self._generate_chapter(identifier)
                    except Exception as e:
                        logger.error(f"Failed to generate audio for chapter {identifier}: {e}")
                        result = ChapterResult(
                            identifier=identifier,
                            status=ChapterStatus.FAILED,
                            error=str(e),
                        )
                    summary.results.append(result)

                    if result.status == ChapterStatus.GENERATED and i < total - 1:
                        logger.info(f"Waiting {self.settings.chapter_delay_seconds:g} seconds before next chapter...")
                        await self._sleep(self.settings.chapter_delay_seconds)
            finally:
                await self.close()

            logger.info(f"Results: {summary.succeeded} successful, {summary.failed} failed")

        self._stage = PipelineStage.COMPLETED
        return summary

    async def generate_all(self) -> BatchSummary:
        """Generate audio for every chapter in the table of contents."""
        self._prepare()
        identifiers = [str(chapter.order) for chapter in self.toc.chapters]
        return await self.generate_many(identifiers)
