#!/usr/bin/env python3
"""Book data model, section indexing, and JSON book loading."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping


logger = logging.getLogger(__name__)

DEFAULT_BOOKS_DIR = Path("books")

TYPE_BEGIN = "BEGIN"
TYPE_END = "END"
DEFAULT_OPTION_LABEL = "Continue"


class BookSourceError(Exception):
    """Base class for book loading failures."""


class BookNotFoundError(BookSourceError):
    """Raised when no book exists for the requested id."""


class BookLoadError(BookSourceError):
    """Raised when a book exists but cannot be read or parsed."""


def to_id_string(value: Any) -> str | None:
    """Normalize a section/target identifier, returning None when invalid."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        return cleaned or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and math.isfinite(value):
        return str(int(value)) if value.is_integer() else repr(value)
    return None


def to_finite_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    if isinstance(value, str) and "_" in value:
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _extra_fields(raw: Mapping[str, Any], known: Iterable[str]) -> dict[str, Any]:
    skip = set(known)
    return {key: value for key, value in raw.items() if key not in skip}


@dataclass(frozen=True)
class Consequence:
    """Typed effect attached to an option."""

    type: str | None = None
    value: Any = None
    text: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> "Consequence | None":
        if not isinstance(raw, Mapping):
            return None
        return cls(
            type=_optional_str(raw.get("type")),
            value=raw.get("value"),
            text=_optional_str(raw.get("text")),
        )


@dataclass(frozen=True)
class Option:
    """A player-facing choice leading to another section."""

    description: str | None = None
    goto_id: Any = None
    consequence: Consequence | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Option":
        return cls(
            description=_optional_str(raw.get("description")),
            goto_id=raw.get("gotoId"),
            consequence=Consequence.from_dict(raw.get("consequence")),
            extra=_extra_fields(raw, ("description", "gotoId", "consequence")),
        )

    @property
    def label(self) -> str:
        if self.description and self.description.strip():
            return self.description
        return DEFAULT_OPTION_LABEL

    @property
    def target_id(self) -> str | None:
        return to_id_string(self.goto_id)


@dataclass(frozen=True)
class Section:
    """One page of the book: narrative text plus outgoing options."""

    id: Any = None
    text: str | None = None
    type: str | None = None
    options: tuple[Option, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Section":
        options_raw = raw.get("options")
        options: list[Option] = []
        if isinstance(options_raw, list):
            options = [Option.from_dict(opt) for opt in options_raw if isinstance(opt, Mapping)]
        return cls(
            id=raw.get("id"),
            text=_optional_str(raw.get("text")),
            type=_optional_str(raw.get("type")),
            options=tuple(options),
            extra=_extra_fields(raw, ("id", "text", "type", "options")),
        )

    @property
    def section_id(self) -> str | None:
        return to_id_string(self.id)


@dataclass(frozen=True)
class Book:
    """A whole gamebook as delivered by the book source."""

    title: str | None = None
    author: str | None = None
    difficulty: str | None = None
    type: str | None = None
    sections: tuple[Section, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Book":
        sections_raw = raw.get("sections")
        sections: list[Section] = []
        if isinstance(sections_raw, list):
            sections = [Section.from_dict(s) for s in sections_raw if isinstance(s, Mapping)]
        return cls(
            title=_optional_str(raw.get("title")),
            author=_optional_str(raw.get("author")),
            difficulty=_optional_str(raw.get("difficulty")),
            type=_optional_str(raw.get("type")),
            sections=tuple(sections),
            extra=_extra_fields(raw, ("title", "author", "difficulty", "type", "sections")),
        )


def normalize_section_type(section_type: Any) -> str:
    if not isinstance(section_type, str):
        return ""
    return section_type.strip().upper()


def is_beginning_section(section: Section) -> bool:
    return normalize_section_type(section.type) == TYPE_BEGIN


def is_ending_section(section: Section) -> bool:
    return normalize_section_type(section.type) == TYPE_END


def index_sections(sections: Iterable[Section]) -> dict[str, Section]:
    """Map normalized ids to sections; unaddressable sections are skipped."""
    index: dict[str, Section] = {}
    for section in sections:
        section_id = section.section_id
        if section_id:
            index[section_id] = section
    return index


def section_number(sections: Iterable[Section], section_id: str) -> int | None:
    """Return the 1-based position of a section in the book, if present."""
    for position, section in enumerate(sections, start=1):
        if section.section_id == section_id:
            return position
    return None


class JsonBookSource:
    """Loads books stored as ``<root>/<book_id>.json`` documents."""

    def __init__(self, root: str | Path = DEFAULT_BOOKS_DIR) -> None:
        self.root = Path(root)

    def path_for(self, book_id: str) -> Path:
        return self.root / f"{book_id}.json"

    def list_books(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.stem for p in self.root.glob("*.json"))

    def load_book(self, book_id: str) -> Book:
        book_path = self.path_for(book_id)
        if not book_id.strip() or not book_path.is_file():
            raise BookNotFoundError(f"Book not found: {book_id}")
        try:
            data = json.loads(book_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise BookLoadError(f"Book '{book_id}' is not valid JSON: {exc}") from exc
        except OSError as exc:
            raise BookLoadError(f"Book '{book_id}' could not be read: {exc}") from exc

        if not isinstance(data, Mapping):
            raise BookLoadError(f"Book '{book_id}' must be a JSON object.")
        book = Book.from_dict(data)
        logger.debug("Loaded book %s with %d sections", book_id, len(book.sections))
        return book
