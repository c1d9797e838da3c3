import os
from dataclasses import replace

import pytest

from epub_audio.config import Settings
from epub_audio.models import BookMetadata, Chapter, TableOfContents, save_book
from epub_audio.tts.providers.base import GenerationResult
from epub_audio.tts.providers.google_tts import GOOGLE_CAPABILITY
from epub_audio.tts.providers.openai_tts import OPENAI_CAPABILITY
from epub_audio.tts.providers.registry import ProviderRegistry

TEST_ENV = {"GOOGLE_API_KEY": "test-google-key", "OPENAI_API_KEY": "test-openai-key"}

CHAPTERS = [
    ("The Beginning", "Before anything there was nothing at all. Then there was a word."),
    (
        "Out of Chaos",
        "In the beginning there was **Chaos**. Chaos was vast and dark.\n\n"
        "From Chaos came Gaia, the earth. Then came Ouranos, the sky.\n"
        "- And after them the Titans were born.",
    ),
    ("The Titans!", "Kronos was the youngest of the Titans. He was also the most ambitious."),
]


class SleepRecorder:
    """Async stand-in for asyncio.sleep that records requested waits."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def fake_audio(text):
    return GenerationResult(audio_data=b"AUDIO:" + text.encode("utf-8"), mime_type="audio/wav")


def write_book(root, name="mythos", chapters=CHAPTERS, title="Mythos", author="Stephen Fry"):
    book_dir = os.path.join(str(root), name)
    toc_chapters = tuple(
        Chapter(id=f"chapter-{i:02d}", title=chapter_title, order=i, filename=f"{i:02d}-chapter.md")
        for i, (chapter_title, _) in enumerate(chapters, start=1)
    )
    toc = TableOfContents(title=title, author=author, chapters=toc_chapters)
    metadata = BookMetadata(title=title, author=author, language="en", total_chapters=len(chapters))
    save_book(book_dir, metadata, toc)

    chapters_dir = os.path.join(book_dir, "content", "chapters")
    os.makedirs(chapters_dir, exist_ok=True)
    for chapter, (_, text) in zip(toc_chapters, chapters):
        with open(os.path.join(chapters_dir, chapter.filename), "w", encoding="utf-8") as f:
            f.write(text)
    return book_dir


@pytest.fixture
def book_dir(tmp_path):
    return write_book(tmp_path)


@pytest.fixture
def fast_google():
    """Google capability with short delays so retries are quick to assert on."""
    processing = replace(
        GOOGLE_CAPABILITY.processing,
        retry_attempts=3,
        retry_delay=1000,
        rate_limit_delay=10,
    )
    return replace(GOOGLE_CAPABILITY, processing=processing)


@pytest.fixture
def registry(fast_google):
    return ProviderRegistry([fast_google, OPENAI_CAPABILITY], environ=dict(TEST_ENV))


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def test_settings():
    return Settings(save_processing_logs=True, chapter_delay_seconds=3.0, default_provider="google")
