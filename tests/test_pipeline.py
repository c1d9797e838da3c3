"""
Tests for the chapter audio pipeline.

The provider's synthesize() is patched so no network calls are made; each
chunk becomes b"AUDIO:" + chunk text so the output can be checked exactly.
"""

import os
import re
from unittest.mock import AsyncMock, patch

import pytest

from epub_audio.errors import (
    BookNotFoundError,
    ChapterNotFoundError,
    ConfigValidationError,
    InvalidTableOfContentsError,
    SynthesisError,
    UnknownProviderError,
)
from epub_audio.models import Chapter, TableOfContents, load_book, save_book
from epub_audio.tts.generator.chunker import split_text
from epub_audio.tts.generator.text_normalizer import normalize
from epub_audio.tts.pipeline import ChapterAudioPipeline, ChapterStatus, PipelineStage
from epub_audio.tts.providers.base import ChapterAudioOptions
from epub_audio.tts.providers.google_tts import GoogleTTSProvider
from epub_audio.tts.providers.registry import ProviderRegistry

from conftest import CHAPTERS, fake_audio

LOG_LINE = re.compile(r"^\[\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z\] (DEBUG|INFO|WARN|ERROR): ")


def _pipeline(book_dir, registry, test_settings, sleep, **options):
    return ChapterAudioPipeline(
        book_dir,
        provider="google",
        options=ChapterAudioOptions(**options),
        registry=registry,
        settings=test_settings,
        sleep=sleep,
    )


def _read(path, mode="r"):
    with open(path, mode) as f:
        return f.read()


def _synthesize_mock(side_effect=fake_audio):
    return patch.object(GoogleTTSProvider, "synthesize", new=AsyncMock(side_effect=side_effect))


class TestGenerateChapter:
    """Test generate_chapter()."""

    @pytest.mark.asyncio
    async def test_generates_single_chapter(self, book_dir, registry, test_settings, sleep):
        pipeline = _pipeline(book_dir, registry, test_settings, sleep, chunk_size=60)
        text = normalize(CHAPTERS[1][1], test_settings.text_processing)
        chunks = split_text(text, 60)
        assert len(chunks) > 1

        with _synthesize_mock() as synthesize:
            result = await pipeline.generate_chapter("2")

        assert result.status == ChapterStatus.GENERATED
        assert result.chapter.title == "Out of Chaos"
        assert synthesize.await_count == len(chunks)

        audio_dir = os.path.join(book_dir, "audio", "google", "chapters")
        assert os.listdir(audio_dir) == ["02-out-of-chaos.wav"]
        assert result.output_path == os.path.join(audio_dir, "02-out-of-chaos.wav")
        expected = b"".join(b"AUDIO:" + c.encode("utf-8") for c in chunks)
        assert _read(result.output_path, "rb") == expected

        assert os.listdir(os.path.join(book_dir, "temp")) == []
        assert pipeline.stage == PipelineStage.COMPLETED

    @pytest.mark.asyncio
    async def test_processing_log(self, book_dir, registry, test_settings, sleep):
        pipeline = _pipeline(book_dir, registry, test_settings, sleep, chunk_size=60)

        with _synthesize_mock():
            await pipeline.generate_chapter("chaos")

        log_path = os.path.join(book_dir, "processing", "logs", "google", "audio-generation.log")
        assert pipeline.log_path == log_path
        lines = _read(log_path).splitlines()
        assert lines
        assert all(LOG_LINE.match(line) for line in lines)

        log = "\n".join(lines)
        total = len(split_text(normalize(CHAPTERS[1][1], test_settings.text_processing), 60))
        for i in range(1, total + 1):
            assert f"Chunk {i}/{total} of 02-out-of-chaos.wav generated" in log
        assert "Chapter 2 audio generated: 02-out-of-chaos.wav" in log

    @pytest.mark.asyncio
    async def test_log_is_appended(self, book_dir, registry, test_settings, sleep):
        with _synthesize_mock():
            await _pipeline(book_dir, registry, test_settings, sleep).generate_chapter("1")
            await _pipeline(book_dir, registry, test_settings, sleep, force_regenerate=True).generate_chapter("1")

        log = _read(os.path.join(book_dir, "processing", "logs", "google", "audio-generation.log"))
        assert log.count("Chapter 1 audio generated") == 2

    @pytest.mark.asyncio
    async def test_chapter_not_found(self, book_dir, registry, test_settings, sleep):
        pipeline = _pipeline(book_dir, registry, test_settings, sleep)

        with _synthesize_mock() as synthesize:
            result = await pipeline.generate_chapter("99")

        assert result.status == ChapterStatus.NOT_FOUND
        assert not result.succeeded
        synthesize.assert_not_awaited()
        assert not os.path.exists(os.path.join(book_dir, "audio"))

        log = _read(pipeline.log_path)
        assert 'WARN: Chapter not found: "99"' in log

    @pytest.mark.asyncio
    async def test_existing_audio_is_skipped(self, book_dir, registry, test_settings, sleep):
        pipeline = _pipeline(book_dir, registry, test_settings, sleep)
        output = os.path.join(book_dir, "audio", "google", "chapters", "01-the-beginning.wav")
        os.makedirs(os.path.dirname(output))
        with open(output, "wb") as f:
            f.write(b"old audio")

        with _synthesize_mock() as synthesize:
            result = await pipeline.generate_chapter("1")

        assert result.status == ChapterStatus.SKIPPED
        assert result.succeeded
        synthesize.assert_not_awaited()
        assert _read(output, "rb") == b"old audio"

    @pytest.mark.asyncio
    async def test_force_regenerates(self, book_dir, registry, test_settings, sleep):
        pipeline = _pipeline(book_dir, registry, test_settings, sleep, force_regenerate=True)
        output = os.path.join(book_dir, "audio", "google", "chapters", "01-the-beginning.wav")
        os.makedirs(os.path.dirname(output))
        with open(output, "wb") as f:
            f.write(b"old audio")

        with _synthesize_mock():
            result = await pipeline.generate_chapter("1")

        assert result.status == ChapterStatus.GENERATED
        assert _read(output, "rb").startswith(b"AUDIO:Before anything")

    @pytest.mark.asyncio
    async def test_other_format_changes_extension(self, book_dir, registry, test_settings, sleep):
        pipeline = _pipeline(book_dir, registry, test_settings, sleep, format="audio/mp3")

        with _synthesize_mock():
            result = await pipeline.generate_chapter("3")

        assert result.output_path.endswith("03-the-titans.mp3")

    @pytest.mark.asyncio
    async def test_toc_on_disk_is_untouched(self, book_dir, registry, test_settings, sleep):
        toc_before = _read(os.path.join(book_dir, "toc.yml"))

        with _synthesize_mock():
            await _pipeline(book_dir, registry, test_settings, sleep).generate_chapter("2")

        assert _read(os.path.join(book_dir, "toc.yml")) == toc_before


class TestPipelineErrors:
    """Test fatal errors."""

    def test_unknown_provider(self, book_dir, registry, test_settings):
        with pytest.raises(UnknownProviderError):
            ChapterAudioPipeline(book_dir, provider="azure", registry=registry, settings=test_settings)

    @pytest.mark.asyncio
    async def test_invalid_configuration(self, book_dir, fast_google, test_settings, sleep):
        registry = ProviderRegistry([fast_google], environ={})
        pipeline = _pipeline(book_dir, registry, test_settings, sleep)

        with pytest.raises(ConfigValidationError) as exc_info:
            await pipeline.generate_chapter("1")

        assert "GOOGLE_API_KEY" in str(exc_info.value)
        assert pipeline.stage == PipelineStage.FAILED

    @pytest.mark.asyncio
    async def test_missing_book(self, tmp_path, registry, test_settings, sleep):
        pipeline = _pipeline(str(tmp_path / "missing"), registry, test_settings, sleep)

        with pytest.raises(BookNotFoundError):
            await pipeline.generate_chapter("1")

    @pytest.mark.asyncio
    async def test_gap_in_chapter_order(self, book_dir, registry, test_settings, sleep):
        metadata, toc = load_book(book_dir)
        gapped = TableOfContents(
            title=toc.title,
            author=toc.author,
            chapters=(toc.chapters[0], Chapter(id="x", title="Late", order=5, filename="03-chapter.md")),
        )
        save_book(book_dir, metadata, gapped)
        pipeline = _pipeline(book_dir, registry, test_settings, sleep)

        with _synthesize_mock() as synthesize:
            with pytest.raises(InvalidTableOfContentsError, match="expected 2"):
                await pipeline.generate_chapter("1")

        synthesize.assert_not_awaited()
        assert pipeline.stage == PipelineStage.FAILED

    def test_get_chapter(self, book_dir, registry, test_settings, sleep):
        pipeline = _pipeline(book_dir, registry, test_settings, sleep)

        assert pipeline.get_chapter("chaos").order == 2
        with pytest.raises(ChapterNotFoundError) as exc_info:
            pipeline.get_chapter("99")
        assert exc_info.value.identifier == "99"

    @pytest.mark.asyncio
    async def test_synthesis_failure_propagates(self, book_dir, registry, test_settings, sleep):
        pipeline = _pipeline(book_dir, registry, test_settings, sleep)

        with _synthesize_mock(SynthesisError("quota", status_code=429)):
            with pytest.raises(SynthesisError):
                await pipeline.generate_chapter("1")

        assert sleep.calls == [1.0, 2.0, 4.0]
        assert not os.path.exists(os.path.join(book_dir, "audio", "google", "chapters", "01-the-beginning.wav"))


class TestGenerateMany:
    """Test generate_many() and generate_all()."""

    @pytest.mark.asyncio
    async def test_failed_chapter_does_not_stop_the_run(self, book_dir, registry, test_settings, sleep):
        def synthesize(text):
            if "Chaos" in text:
                raise SynthesisError("server error", status_code=500)
            return fake_audio(text)

        pipeline = _pipeline(book_dir, registry, test_settings, sleep)
        with _synthesize_mock(synthesize):
            summary = await pipeline.generate_many(["1", "2", "3"])

        assert [r.status for r in summary.results] == [
            ChapterStatus.GENERATED,
            ChapterStatus.FAILED,
            ChapterStatus.GENERATED,
        ]
        assert (summary.succeeded, summary.failed) == (2, 1)
        assert "server error" in summary.results[1].error

        audio_dir = os.path.join(book_dir, "audio", "google", "chapters")
        assert sorted(os.listdir(audio_dir)) == ["01-the-beginning.wav", "03-the-titans.wav"]
        # one pause after chapter 1; none after a failure or the last chapter
        assert sleep.calls.count(3.0) == 1

        log = _read(pipeline.log_path)
        assert "Results: 2 successful, 1 failed" in log

    @pytest.mark.asyncio
    async def test_not_found_counts_as_failed(self, book_dir, registry, test_settings, sleep):
        pipeline = _pipeline(book_dir, registry, test_settings, sleep)

        with _synthesize_mock():
            summary = await pipeline.generate_many(["titans", "nope"])

        assert [r.status for r in summary.results] == [ChapterStatus.GENERATED, ChapterStatus.NOT_FOUND]
        assert (summary.succeeded, summary.failed) == (1, 1)
        assert sleep.calls == [3.0]

    @pytest.mark.asyncio
    async def test_missing_source_file(self, book_dir, registry, test_settings, sleep):
        os.remove(os.path.join(book_dir, "content", "chapters", "03-chapter.md"))
        pipeline = _pipeline(book_dir, registry, test_settings, sleep)

        with _synthesize_mock():
            summary = await pipeline.generate_many(["3"])

        assert summary.results[0].status == ChapterStatus.FAILED
        assert "Chapter file not found" in summary.results[0].error

    @pytest.mark.asyncio
    async def test_generate_all(self, book_dir, registry, test_settings, sleep):
        pipeline = _pipeline(book_dir, registry, test_settings, sleep)

        with _synthesize_mock() as synthesize:
            summary = await pipeline.generate_all()

        assert summary.succeeded == 3
        assert synthesize.await_count == 3
        assert sleep.calls == [3.0, 3.0]
        assert all(has_audio for _, has_audio in pipeline.list_chapters())
