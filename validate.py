#!/usr/bin/env python3
"""Validate a book's reachable graph before it can be played, then print a summary."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

from story import (
    Book,
    Section,
    index_sections,
    is_beginning_section,
    is_ending_section,
    to_id_string,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookValidity:
    """Outcome of validating a book for gameplay."""

    ok: bool
    start_id: str | None = None
    reachable_ids: frozenset[str] = field(default_factory=frozenset)
    reason: str | None = None

    @classmethod
    def failed(cls, reason: str) -> "BookValidity":
        return cls(ok=False, reason=reason)


def reachable_from(start_id: str, index: Mapping[str, Section]) -> set[str]:
    """Collect every section id reachable from ``start_id``.

    END sections are leaves. Options whose target is invalid or unknown are
    skipped here; the validation pass reports them.
    """
    if start_id not in index:
        return set()
    seen: set[str] = set()
    stack = [start_id]
    while stack:
        section_id = stack.pop()
        if section_id in seen:
            continue
        section = index.get(section_id)
        if section is None:
            continue
        seen.add(section_id)
        if is_ending_section(section):
            continue
        for option in section.options:
            target = option.target_id
            if target and target in index:
                stack.append(target)
    return seen


def validate_book(book: Book, index: Mapping[str, Section] | None = None) -> BookValidity:
    sections = book.sections
    if not sections:
        return BookValidity.failed("Book has no sections.")

    begin_sections = [s for s in sections if is_beginning_section(s)]
    if not begin_sections:
        return BookValidity.failed("Book has no beginning section (BEGIN).")
    if len(begin_sections) > 1:
        return BookValidity.failed("Book has more than one beginning section (BEGIN).")

    start_id = to_id_string(begin_sections[0].id)
    if not start_id:
        return BookValidity.failed("BEGIN section has invalid id.")

    if index is None:
        index = index_sections(sections)
    if start_id not in index:
        return BookValidity.failed(f'Start section id "{start_id}" not found in sections.')

    reachable_ids = reachable_from(start_id, index)

    reachable_end_count = 0
    for section_id in reachable_ids:
        section = index.get(section_id)
        if section is None:
            return BookValidity.failed(f'Reachable section "{section_id}" is missing.')
        if is_ending_section(section):
            reachable_end_count += 1
            continue
        if not section.options:
            return BookValidity.failed(f'Reachable non-ending section "{section_id}" has no options.')
        for option in section.options:
            target = option.target_id
            if not target:
                return BookValidity.failed(f'Option in section "{section_id}" has no gotoId.')
            if target not in index:
                return BookValidity.failed(
                    f'Invalid next section id "{target}" from section "{section_id}".'
                )

    if reachable_end_count == 0:
        return BookValidity.failed("Book has no reachable ending section (END).")

    return BookValidity(ok=True, start_id=start_id, reachable_ids=frozenset(reachable_ids))


def build_graph(index: Mapping[str, Section]) -> dict[str, list[str]]:
    graph: dict[str, list[str]] = {}
    for section_id, section in index.items():
        if is_ending_section(section):
            graph[section_id] = []
            continue
        graph[section_id] = [
            opt.target_id for opt in section.options if opt.target_id and opt.target_id in index
        ]
    return graph


def bfs_depth(entry_id: str, graph: dict[str, list[str]]) -> int:
    if entry_id not in graph:
        return 0
    q: deque[tuple[str, int]] = deque([(entry_id, 0)])
    seen = {entry_id}
    max_depth = 0
    while q:
        node, d = q.popleft()
        if d > max_depth:
            max_depth = d
        for nxt in graph.get(node, []):
            if nxt not in seen:
                seen.add(nxt)
                q.append((nxt, d + 1))
    return max_depth


def summary(book: Book, validity: BookValidity) -> str:
    index = index_sections(book.sections)
    graph = build_graph(index)
    entry = validity.start_id or ""
    reach = validity.reachable_ids
    unreachable = sorted(set(index) - reach)
    ending_count = sum(1 for sid in reach if is_ending_section(index[sid]))
    total_options = sum(len(index[sid].options) for sid in reach)

    lines = [
        f"Title: {book.title or 'Untitled'}",
        f"Total sections: {len(book.sections)}",
        f"Addressable sections: {len(index)}",
        f"Reachable sections: {len(reach)}",
        f"Reachable endings: {ending_count}",
        f"Options on reachable sections: {total_options}",
        f"Deepest reachable path length from start ({entry}): {bfs_depth(entry, graph)}",
        f"Unreachable sections: {unreachable if unreachable else 'None'}",
    ]
    return "\n".join(lines)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check that a gamebook can be played.")
    parser.add_argument("book_path", help="Path to the book JSON document.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    book_path = Path(args.book_path)
    try:
        data = json.loads(book_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        print(f"Failed to read book from {book_path}: {exc}")
        return 1
    if not isinstance(data, dict):
        print(f"Book file {book_path} must contain a JSON object.")
        return 1

    book = Book.from_dict(data)
    validity = validate_book(book)
    if not validity.ok:
        print(f"Invalid book structure: {validity.reason}")
        return 1

    print(f"Validation passed for {book_path}.")
    print(summary(book, validity))
    return 0


if __name__ == "__main__":
    sys.exit(main())
