"""Shared book builders for the test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from game import GameMachine
from story import Book
from validate import validate_book


REPO_ROOT = Path(__file__).resolve().parents[1]
BOOKS_DIR = REPO_ROOT / "books"


def scenario_sections(lose_value: Any) -> list[dict[str, Any]]:
    return [
        {"id": "1", "type": "BEGIN", "text": "Start", "options": [{"gotoId": "2"}]},
        {
            "id": "2",
            "text": "Bridge",
            "options": [
                {
                    "description": "Jump",
                    "gotoId": "3",
                    "consequence": {"type": "LOSE_HEALTH", "value": lose_value},
                }
            ],
        },
        {"id": "3", "type": "END", "text": "Home"},
    ]


@pytest.fixture
def make_book() -> Callable[..., Book]:
    def _make(*sections: dict[str, Any], **fields: Any) -> Book:
        return Book.from_dict({"title": "Test Book", **fields, "sections": list(sections)})

    return _make


@pytest.fixture
def make_machine(make_book: Callable[..., Book]) -> Callable[..., GameMachine]:
    def _make(*sections: dict[str, Any]) -> GameMachine:
        book = make_book(*sections)
        validity = validate_book(book)
        assert validity.ok, validity.reason
        return GameMachine(book, validity)

    return _make


@pytest.fixture
def lethal_machine(make_machine: Callable[..., GameMachine]) -> GameMachine:
    return make_machine(*scenario_sections(20))


@pytest.fixture
def survivable_machine(make_machine: Callable[..., GameMachine]) -> GameMachine:
    return make_machine(*scenario_sections(5))
