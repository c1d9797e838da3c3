"""
Tests for chunk synthesis, retries and assembly.
"""

import os
from unittest.mock import AsyncMock

import pytest

from epub_audio.errors import ChapterContentMissingError, ConcatenationError, SynthesisError
from epub_audio.tts.generator.chapter_assembler import ChapterAssembler
from epub_audio.tts.generator.chunk_generator import (
    ChunkGenerator,
    is_rate_limit_error,
    retry_wait_seconds,
)
from epub_audio.tts.generator.chunker import split_text
from epub_audio.tts.providers.base import ChapterAudioOptions
from epub_audio.tts.providers.google_tts import GoogleTTSProvider
from epub_audio.tts.providers.registry import ProviderRegistry

from conftest import fake_audio

TEXT = (
    "Zeus was born on Crete. His mother hid him in a cave. "
    "Goats fed him milk. He grew strong and clever. One day he went home."
)


def _generator(fast_google, tmp_path, sleep, chunk_size=None):
    registry = ProviderRegistry([fast_google], environ={})
    options = registry.resolve_effective_options("google", ChapterAudioOptions(chunk_size=chunk_size))
    provider = GoogleTTSProvider(fast_google, options, headers={})
    assembler = ChapterAssembler(str(tmp_path / "temp"))
    return ChunkGenerator(provider, assembler, sleep=sleep)


class TestRetryHelpers:
    """Test backoff helpers."""

    def test_rate_limit_detection(self):
        assert is_rate_limit_error(SynthesisError("slow down", status_code=429))
        assert is_rate_limit_error(SynthesisError("HTTP 429 returned"))
        assert is_rate_limit_error(Exception("429 Too Many Requests"))
        assert not is_rate_limit_error(SynthesisError("bad gateway", status_code=502))

    def test_rate_limited_backoff_doubles(self):
        assert retry_wait_seconds(30000, 1, True) == 30.0
        assert retry_wait_seconds(30000, 2, True) == 60.0
        assert retry_wait_seconds(30000, 3, True) == 120.0

    def test_other_errors_back_off_faster(self):
        assert retry_wait_seconds(30000, 1, False) == pytest.approx(10.0)
        assert retry_wait_seconds(30000, 2, False) == pytest.approx(20.0)


class TestSynthesizeChunk:
    """Test ChunkGenerator.synthesize_chunk()."""

    @pytest.mark.asyncio
    async def test_returns_audio_on_success(self, fast_google, tmp_path, sleep):
        generator = _generator(fast_google, tmp_path, sleep)
        generator.provider.synthesize = AsyncMock(return_value=fake_audio("hi"))

        assert await generator.synthesize_chunk("hi") == b"AUDIO:hi"
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_rate_limit_retries_exhausted(self, fast_google, tmp_path, sleep):
        generator = _generator(fast_google, tmp_path, sleep)
        generator.provider.synthesize = AsyncMock(
            side_effect=SynthesisError("Google TTS API error 429", status_code=429)
        )

        with pytest.raises(SynthesisError):
            await generator.synthesize_chunk("hello", 0, "01-test.wav")

        assert generator.provider.synthesize.await_count == 4
        assert sleep.calls == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_recovers_after_transient_error(self, fast_google, tmp_path, sleep):
        generator = _generator(fast_google, tmp_path, sleep)
        generator.provider.synthesize = AsyncMock(
            side_effect=[SynthesisError("connection reset"), fake_audio("ok")]
        )

        assert await generator.synthesize_chunk("ok") == b"AUDIO:ok"
        assert generator.provider.synthesize.await_count == 2
        assert sleep.calls == [pytest.approx(1 / 3)]

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_not_retried(self, fast_google, tmp_path, sleep):
        generator = _generator(fast_google, tmp_path, sleep)
        generator.provider.synthesize = AsyncMock(side_effect=ValueError("bug"))

        with pytest.raises(ValueError):
            await generator.synthesize_chunk("text")
        assert generator.provider.synthesize.await_count == 1


class TestSynthesizeText:
    """Test ChunkGenerator.synthesize_text()."""

    @pytest.mark.asyncio
    async def test_single_chunk_written_directly(self, fast_google, tmp_path, sleep):
        generator = _generator(fast_google, tmp_path, sleep)
        generator.provider.synthesize = AsyncMock(side_effect=fake_audio)
        output = str(tmp_path / "out" / "01-intro.wav")

        assert await generator.synthesize_text("Short text.", output) == output
        with open(output, "rb") as f:
            assert f.read() == b"AUDIO:Short text."
        assert sleep.calls == []
        assert not os.path.exists(tmp_path / "temp")

    @pytest.mark.asyncio
    async def test_chunks_joined_in_order(self, fast_google, tmp_path, sleep):
        generator = _generator(fast_google, tmp_path, sleep, chunk_size=40)
        generator.provider.synthesize = AsyncMock(side_effect=fake_audio)
        output = str(tmp_path / "out" / "02-zeus.wav")
        chunks = split_text(TEXT, 40)
        assert len(chunks) > 2

        await generator.synthesize_text(TEXT, output)

        with open(output, "rb") as f:
            assert f.read() == b"".join(b"AUDIO:" + c.encode("utf-8") for c in chunks)
        sent = [call.args[0] for call in generator.provider.synthesize.await_args_list]
        assert sent == chunks
        # paced between chunks, not after the last
        assert sleep.calls == [0.01] * (len(chunks) - 1)
        assert os.listdir(tmp_path / "temp") == []

    @pytest.mark.asyncio
    async def test_failed_chunk_removes_temp_files(self, fast_google, tmp_path, sleep):
        generator = _generator(fast_google, tmp_path, sleep, chunk_size=40)
        calls = {"n": 0}

        async def flaky(text):
            calls["n"] += 1
            if calls["n"] > 1:
                raise SynthesisError("server error", status_code=500)
            return fake_audio(text)

        generator.provider.synthesize = flaky
        output = str(tmp_path / "out" / "02-zeus.wav")

        with pytest.raises(SynthesisError):
            await generator.synthesize_text(TEXT, output)

        assert not os.path.exists(output)
        assert os.listdir(tmp_path / "temp") == []

    @pytest.mark.asyncio
    async def test_blank_text_is_rejected(self, fast_google, tmp_path, sleep):
        generator = _generator(fast_google, tmp_path, sleep)
        generator.provider.synthesize = AsyncMock(side_effect=fake_audio)
        output = str(tmp_path / "out" / "01-blank.wav")

        with pytest.raises(ChapterContentMissingError):
            await generator.synthesize_text("   \n ", output)

        generator.provider.synthesize.assert_not_awaited()
        assert not os.path.exists(output)


class TestChapterAssembler:
    """Test ChapterAssembler."""

    def test_concatenates_in_order_and_cleans_up(self, tmp_path):
        assembler = ChapterAssembler(str(tmp_path / "temp"))
        paths = [
            assembler.write_chunk(assembler.chunk_path(f"chunk_1_{i}.wav"), data)
            for i, data in enumerate([b"one", b"two", b"three"])
        ]
        output = str(tmp_path / "chapters" / "01-a.wav")

        assert assembler.concatenate(paths, output) == output
        with open(output, "rb") as f:
            assert f.read() == b"onetwothree"
        assert all(not os.path.exists(p) for p in paths)

    def test_missing_chunk_raises_and_cleans_up(self, tmp_path):
        assembler = ChapterAssembler(str(tmp_path / "temp"))
        present = assembler.write_chunk(assembler.chunk_path("chunk_1_0.wav"), b"one")
        missing = assembler.chunk_path("chunk_1_1.wav")

        with pytest.raises(ConcatenationError):
            assembler.concatenate([present, missing], str(tmp_path / "out.wav"))
        assert not os.path.exists(present)
