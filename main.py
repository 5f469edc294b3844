#!/usr/bin/env python3
"""Entry point for the pygame gamebook player."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Sequence

import pygame

from app import BookPlayerApp
from progress import DEFAULT_SAVE_PATH, JsonProgressSink
from session import TOAST_DURATION_MS, GameSession
from story import DEFAULT_BOOKS_DIR, JsonBookSource


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Play a branching gamebook")
    parser.add_argument("book_id", nargs="?", help="Book to open (file stem under --books-dir).")
    parser.add_argument(
        "--books-dir",
        default=str(DEFAULT_BOOKS_DIR),
        help="Directory holding <book_id>.json documents.",
    )
    parser.add_argument(
        "--save-path",
        default=str(DEFAULT_SAVE_PATH),
        help="JSON file where saved progress is bookmarked.",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Print the available book ids and exit.",
    )
    parser.add_argument(
        "--toast-ms",
        type=int,
        default=TOAST_DURATION_MS,
        help="How long choice and save notifications stay on screen.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging verbosity.",
    )
    parser.add_argument(
        "--smoke",
        action="store_true",
        help="Run for a small number of frames and exit (test mode).",
    )
    parser.add_argument(
        "--frames",
        type=int,
        default=90,
        help="Frame budget for --smoke mode.",
    )
    parser.add_argument(
        "--autoplay",
        action="store_true",
        help="Always pick the first option (useful for smoke tests).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    source = JsonBookSource(args.books_dir)
    if args.list or not args.book_id:
        books = source.list_books()
        print("\n".join(books) if books else f"No books found in {args.books_dir}.")
        return 0 if args.list else 2

    session = GameSession(source, JsonProgressSink(args.save_path), toast_duration_ms=args.toast_ms)

    pygame.init()
    pygame.display.set_caption("Gamebook Player")
    try:
        app = BookPlayerApp(
            session,
            args.book_id,
            smoke=args.smoke,
            max_frames=max(1, args.frames),
            autoplay=args.autoplay,
        )
        asyncio.run(app.run())
    finally:
        pygame.quit()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
