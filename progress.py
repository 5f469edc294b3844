#!/usr/bin/env python3
"""Progress sink contract and a JSON-file implementation."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol


logger = logging.getLogger(__name__)

DEFAULT_SAVE_PATH = Path("progress.json")


class ProgressSaveError(Exception):
    """Raised by a progress sink when a save cannot be completed."""


class ProgressSink(Protocol):
    async def save_progress(self, book_id: str, section_number: int) -> None: ...


class JsonProgressSink:
    """Bookmarks the last saved section of each book in one JSON file."""

    def __init__(self, path: str | Path = DEFAULT_SAVE_PATH) -> None:
        self.path = Path(path)
        self.tmp_path = self.path.with_name(self.path.name + ".tmp")

    def read_all(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable progress file %s: %s", self.path, exc)
            return {}
        if not isinstance(payload, dict):
            return {}
        return {
            str(book): entry
            for book, entry in payload.items()
            if isinstance(entry, dict) and isinstance(entry.get("section"), int)
        }

    def saved_section(self, book_id: str) -> int | None:
        entry = self.read_all().get(book_id)
        return entry["section"] if entry else None

    def _write(self, book_id: str, section_number: int) -> None:
        payload = self.read_all()
        payload[book_id] = {
            "section": section_number,
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(self.tmp_path, self.path)
        except (OSError, TypeError, ValueError) as exc:
            try:
                if self.tmp_path.exists():
                    self.tmp_path.unlink()
            except OSError:
                pass
            raise ProgressSaveError(f"Failed to save progress: {exc}") from exc

    async def save_progress(self, book_id: str, section_number: int) -> None:
        if not book_id:
            raise ProgressSaveError("Cannot save: missing book id.")
        await asyncio.to_thread(self._write, book_id, int(section_number))
        logger.info("Saved progress for %s at section %d", book_id, section_number)
