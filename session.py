#!/usr/bin/env python3
"""One reader's session with one book: loading, validation, timers, and saving."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from game import (
    PHASE_INVALID,
    PHASE_LOAD_FAILED,
    PHASE_LOADING,
    PHASE_PLAYING,
    ClearToast,
    Choose,
    GameMachine,
    GameState,
    NavigationError,
    Restart,
    SaveAborted,
    SaveCompleted,
    SaveError,
    SaveProgress,
    SaveRequested,
    SectionView,
    TogglePause,
    ToastShown,
)
from progress import ProgressSaveError, ProgressSink
from story import Book, BookSourceError, index_sections
from validate import BookValidity, validate_book


logger = logging.getLogger(__name__)

TOAST_DURATION_MS = 2500
SAVE_CANCELLED_MESSAGE = "Save was cancelled."


class BookSource(Protocol):
    def load_book(self, book_id: str) -> Book: ...


class GameSession:
    """Owns the state machine for the currently open book.

    Player actions are applied synchronously. Saving is the only coroutine;
    its result is dropped if the book was changed or restarted meanwhile.
    """

    def __init__(
        self,
        source: BookSource,
        sink: ProgressSink,
        toast_duration_ms: int = TOAST_DURATION_MS,
    ) -> None:
        self.source = source
        self.sink = sink
        self.toast_duration_ms = max(0, int(toast_duration_ms))

        self.book_id: str | None = None
        self.book: Book | None = None
        self.validity: BookValidity | None = None
        self.machine: GameMachine | None = None
        self.state: GameState | None = None
        self.load_error: str | None = None

        self.clock_ms = 0
        self._toast_deadlines: list[tuple[int, int]] = []
        self._last_epoch = -1

    # ---------- Lifecycle ----------
    def _retire_state(self) -> None:
        if self.state is not None:
            self._last_epoch = max(self._last_epoch, self.state.epoch)
        self.book = None
        self.validity = None
        self.machine = None
        self.state = None
        self.load_error = None
        self._toast_deadlines.clear()

    def open(self, book_id: str) -> str:
        """Load and validate a book, starting a fresh play-through when it is sound."""
        self._retire_state()
        self.book_id = book_id

        try:
            book = self.source.load_book(book_id)
        except BookSourceError as exc:
            logger.warning("Failed to load book %s: %s", book_id, exc)
            self.load_error = str(exc)
            return self.phase

        index = index_sections(book.sections)
        validity = validate_book(book, index)
        self.book = book
        self.validity = validity
        if not validity.ok:
            logger.warning("Book %s cannot be played: %s", book_id, validity.reason)
            return self.phase

        self.machine = GameMachine(book, validity, index)
        self.state = self.machine.initial_state(epoch=self._last_epoch + 1)
        logger.info(
            "Opened book %s at section %s (%d reachable sections)",
            book_id,
            validity.start_id,
            len(validity.reachable_ids),
        )
        return self.phase

    def close(self) -> None:
        self._retire_state()
        self.book_id = None

    @property
    def phase(self) -> str:
        if self.load_error is not None:
            return PHASE_LOAD_FAILED
        if self.validity is None:
            return PHASE_LOADING
        if self.machine is None or self.state is None:
            return PHASE_INVALID
        return self.machine.phase(self.state)

    @property
    def title(self) -> str:
        if self.book is not None and self.book.title:
            return self.book.title
        return self.book_id or "Game"

    def view(self) -> SectionView | None:
        if self.machine is None or self.state is None:
            return None
        return self.machine.view(self.state, title=self.title)

    @property
    def reachable_count(self) -> int:
        return self.machine.reachable_count if self.machine is not None else 0

    @property
    def visited_count(self) -> int:
        if self.machine is None or self.state is None:
            return 0
        return self.machine.visited_count(self.state)

    # ---------- Actions ----------
    def dispatch(self, action: Any) -> tuple[Any, ...]:
        if self.machine is None or self.state is None:
            return ()
        transition = self.machine.step(self.state, action)
        self.state = transition.state
        for event in transition.events:
            if isinstance(event, ToastShown):
                deadline = self.clock_ms + self.toast_duration_ms
                self._toast_deadlines.append((deadline, event.generation))
            elif isinstance(event, NavigationError):
                logger.info("Navigation error in %s: %s", self.book_id, event.message)
            elif isinstance(event, SaveError):
                logger.warning("Save error in %s: %s", self.book_id, event.message)
        return transition.events

    def choose(self, option_index: int) -> tuple[Any, ...]:
        if self.machine is None or self.state is None:
            return ()
        if self.machine.phase(self.state) != PHASE_PLAYING:
            return ()
        section = self.machine.current_section(self.state)
        if section is None or not 0 <= option_index < len(section.options):
            return ()
        return self.dispatch(Choose(section.options[option_index]))

    def toggle_pause(self) -> tuple[Any, ...]:
        return self.dispatch(TogglePause())

    def restart(self) -> tuple[Any, ...]:
        self._toast_deadlines.clear()
        return self.dispatch(Restart())

    async def save_progress(self) -> tuple[Any, ...]:
        events = self.dispatch(SaveProgress(self.book_id))
        request = next((e for e in events if isinstance(e, SaveRequested)), None)
        if request is None:
            return events

        try:
            await self.sink.save_progress(request.book_id, request.section_number)
        except asyncio.CancelledError:
            self._resolve_save(request, SaveAborted(request.epoch, SAVE_CANCELLED_MESSAGE))
            raise
        except ProgressSaveError as exc:
            outcome: Any = SaveAborted(request.epoch, str(exc) or None)
        except Exception as exc:
            logger.exception("Progress sink failed for %s", request.book_id)
            outcome = SaveAborted(request.epoch, str(exc) or None)
        else:
            outcome = SaveCompleted(request.epoch)
        return events + self._resolve_save(request, outcome)

    def _resolve_save(self, request: SaveRequested, outcome: Any) -> tuple[Any, ...]:
        if self.book_id != request.book_id or self.state is None or self.state.epoch != request.epoch:
            logger.debug("Discarding stale save result for %s (epoch %d)", request.book_id, request.epoch)
            return ()
        return self.dispatch(outcome)

    # ---------- Timers ----------
    def advance(self, delta_ms: int) -> None:
        """Move the session clock forward and expire due toasts."""
        self.clock_ms += max(0, int(delta_ms))
        due = [gen for deadline, gen in self._toast_deadlines if deadline <= self.clock_ms]
        if not due:
            return
        self._toast_deadlines = [
            (deadline, gen) for deadline, gen in self._toast_deadlines if deadline > self.clock_ms
        ]
        for generation in due:
            self.dispatch(ClearToast(generation))
