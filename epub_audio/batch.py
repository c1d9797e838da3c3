"""
Batch processing of several converted books.

Each book runs its own sequential ChapterAudioPipeline; up to
`max_concurrent` books run at the same time. Only the read-only provider
registry is shared between them.
"""

import asyncio
import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from epub_audio.config import Settings, settings as default_settings
from epub_audio.models import is_book_dir
from epub_audio.tts.generator.chunk_generator import Sleep
from epub_audio.tts.pipeline import ChapterAudioPipeline
from epub_audio.tts.providers.base import ChapterAudioOptions
from epub_audio.tts.providers.registry import ProviderRegistry, default_registry
from epub_audio.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class BatchReport:
    successful: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successful) + len(self.skipped) + len(self.failed)


class BatchProcessor:
    """
    Generates chapter audio for every book under a directory.

    Usage:
        processor = BatchProcessor("google", max_concurrent=2, skip_existing=True)
        report = await processor.run(processor.find_books("books"))
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        max_concurrent: Optional[int] = None,
        skip_existing: bool = False,
        options: Optional[ChapterAudioOptions] = None,
        registry: Optional[ProviderRegistry] = None,
        settings: Optional[Settings] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings or default_settings
        self.provider = provider or self.settings.default_provider
        self.max_concurrent = max(1, max_concurrent or self.settings.max_concurrent_books)
        self.skip_existing = skip_existing
        self.options = options
        self.registry = registry or default_registry()
        self._sleep = sleep

    def find_books(self, root: str) -> List[str]:
        """Book directories (holding a toc.yml) directly under `root`, sorted by name."""
        if not os.path.isdir(root):
            logger.warning(f"Books directory not found: {root}")
            return []
        if is_book_dir(root):
            return [root]

        books = []
        for name in sorted(os.listdir(root)):
            path = os.path.join(root, name)
            if os.path.isdir(path) and is_book_dir(path):
                books.append(path)
        return books

    def _pipeline(self, book_dir: str) -> ChapterAudioPipeline:
        return ChapterAudioPipeline(
            book_dir,
            provider=self.provider,
            options=self.options,
            registry=self.registry,
            settings=self.settings,
            sleep=self._sleep,
        )

    def _already_done(self, pipeline: ChapterAudioPipeline) -> bool:
        chapters = pipeline.list_chapters()
        return bool(chapters) and all(has_audio for _, has_audio in chapters)

    async def process_book(self, book_dir: str) -> Optional[bool]:
        """
        Generate every chapter of one book.

        Returns:
            True when all chapters succeeded, False when any failed, None
            when the book was skipped because its audio already exists.
        """
        name = os.path.basename(os.path.normpath(book_dir))
        logger.info(f"Processing book: {name}")
        try:
            pipeline = self._pipeline(book_dir)
            if self.skip_existing and self._already_done(pipeline):
                logger.info(f"Skipping {name} (audio already generated)")
                return None
            summary = await pipeline.generate_all()
        except Exception as e:
            logger.error(f"Audio generation failed for {name}: {e}")
            return False

        if summary.failed:
            logger.warning(f"{name}: {summary.failed} of {len(summary.results)} chapters failed")
            return False
        logger.info(f"Audio generated: {name}")
        return True

    async def run(self, book_dirs: Sequence[str]) -> BatchReport:
        report = BatchReport()
        if not book_dirs:
            logger.warning("No books found")
            return report

        logger.info(f"Found {len(book_dirs)} books, processing up to {self.max_concurrent} at a time")
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def _bounded(book_dir: str) -> Optional[bool]:
            async with semaphore:
                return await self.process_book(book_dir)

        outcomes = await asyncio.gather(*(_bounded(book_dir) for book_dir in book_dirs))

        for book_dir, outcome in zip(book_dirs, outcomes):
            if outcome is None:
                report.skipped.append(book_dir)
            elif outcome:
                report.successful.append(book_dir)
            else:
                report.failed.append(book_dir)

        logger.info(
            f"Results: {len(report.successful) + len(report.skipped)} successful, "
            f"{len(report.failed)} failed"
        )
        return report
