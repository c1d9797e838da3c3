"""
Book data models.

A converted book directory holds `metadata.yml`, `toc.yml` and the chapter
sources under `content/chapters/`. Keys on disk are camelCase
(`totalChapters`) to match the converter that writes them.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import yaml

from epub_audio.errors import BookNotFoundError, InvalidTableOfContentsError

METADATA_FILE = "metadata.yml"
TOC_FILE = "toc.yml"
CHAPTERS_DIR = os.path.join("content", "chapters")


@dataclass(frozen=True)
class Chapter:
    """One entry of the table of contents. Identity is `order` (1-based)."""
    id: str
    title: str
    order: int
    filename: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chapter":
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            order=int(data["order"]),
            filename=str(data["filename"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "order": self.order, "filename": self.filename}


@dataclass(frozen=True)
class BookMetadata:
    title: str
    author: str = ""
    language: str = "en"
    total_chapters: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookMetadata":
        return cls(
            title=str(data.get("title", "")),
            author=str(data.get("author", "")),
            language=str(data.get("language", "en")),
            total_chapters=int(data.get("totalChapters", 0) or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "author": self.author,
            "language": self.language,
            "totalChapters": self.total_chapters,
        }


@dataclass(frozen=True)
class TableOfContents:
    """Ordered chapter list plus the book header it was written with."""
    title: str
    author: str = ""
    chapters: Tuple[Chapter, ...] = field(default_factory=tuple)

    @property
    def total_chapters(self) -> int:
        return len(self.chapters)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TableOfContents":
        book = data.get("book") or {}
        chapters = tuple(
            sorted(
                (Chapter.from_dict(c) for c in data.get("chapters") or []),
                key=lambda c: c.order,
            )
        )
        return cls(title=str(book.get("title", "")), author=str(book.get("author", "")), chapters=chapters)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "book": {"title": self.title, "author": self.author, "totalChapters": self.total_chapters},
            "chapters": [c.to_dict() for c in self.chapters],
        }

    def validate_order(self) -> None:
        """
        Check that chapter orders run 1, 2, 3, ... without gaps or repeats.

        Raises:
            InvalidTableOfContentsError: On the first order that breaks the sequence.
        """
        for expected, chapter in enumerate(self.chapters, start=1):
            if chapter.order != expected:
                raise InvalidTableOfContentsError(
                    f"Chapter '{chapter.title}' has order {chapter.order}, expected {expected}"
                )


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


def _write_yaml(path: str, data: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)


def load_book(book_dir: str) -> Tuple[BookMetadata, TableOfContents]:
    """
    Load metadata.yml and toc.yml from a converted book directory.

    Raises:
        BookNotFoundError: If either file is missing.
        InvalidTableOfContentsError: If a toc.yml entry has no filename or no integer order.
    """
    metadata_path = os.path.join(book_dir, METADATA_FILE)
    toc_path = os.path.join(book_dir, TOC_FILE)
    if not os.path.exists(metadata_path) or not os.path.exists(toc_path):
        raise BookNotFoundError(
            f"Book metadata or TOC not found in {book_dir}. Run conversion first."
        )

    metadata = BookMetadata.from_dict(_read_yaml(metadata_path))
    try:
        toc = TableOfContents.from_dict(_read_yaml(toc_path))
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidTableOfContentsError(f"Malformed {toc_path}: {e}") from e
    return metadata, toc


def save_book(book_dir: str, metadata: BookMetadata, toc: TableOfContents) -> None:
    """Write metadata.yml and toc.yml, creating the directory if needed."""
    os.makedirs(book_dir, exist_ok=True)
    _write_yaml(os.path.join(book_dir, METADATA_FILE), metadata.to_dict())
    _write_yaml(os.path.join(book_dir, TOC_FILE), toc.to_dict())


def chapter_source_path(book_dir: str, chapter: Chapter) -> str:
    return os.path.join(book_dir, CHAPTERS_DIR, chapter.filename)


def is_book_dir(path: str) -> bool:
    return os.path.isfile(os.path.join(path, TOC_FILE))


def find_chapter(toc: TableOfContents, identifier: str) -> Optional[Chapter]:
    """
    Resolve a chapter by order number or title.

    An identifier that parses as an integer matches `order`; anything else is
    a case-insensitive substring match against titles, first hit in TOC order.
    """
    identifier = identifier.strip()
    if not identifier:
        return None
    try:
        order = int(identifier)
    except ValueError:
        order = None

    if order is not None:
        for chapter in toc.chapters:
            if chapter.order == order:
                return chapter
        return None

    needle = identifier.lower()
    for chapter in toc.chapters:
        if needle in chapter.title.lower():
            return chapter
    return None
