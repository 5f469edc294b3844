#!/usr/bin/env python3
"""Gameplay state machine: transitions, progress accounting, and section views."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from player import INITIAL_HEALTH, MAX_HEALTH, clamp_health, consequence_text, health_delta
from story import Book, Option, Section, index_sections, is_ending_section, section_number, to_finite_number
from validate import BookValidity


logger = logging.getLogger(__name__)

PHASE_LOADING = "loading"
PHASE_LOAD_FAILED = "load_failed"
PHASE_INVALID = "invalid"
PHASE_PLAYING = "playing"
PHASE_ENDING = "ending"
PHASE_DEAD = "dead"
PHASE_SECTION_MISSING = "section_missing"

TOAST_CHOICE_TITLE = "Choice Made"
TOAST_CHOICE_DEFAULT = "Choice made."
TOAST_SAVED_TITLE = "Progress Saved"
TOAST_SAVED_MESSAGE = "Your adventure progress has been bookmarked."

NO_TARGET_MESSAGE = "This option has no target section (gotoId)."
SAVE_FAILED_DEFAULT = "Failed to save progress."

DEAD_TEXT = "Your health reached zero. The adventure is over."
NO_TEXT = "No text provided for this section."
MISSING_SECTION_TEXT = "Current section id is missing or not found in the book."


@dataclass(frozen=True)
class Toast:
    title: str
    message: str
    generation: int


@dataclass(frozen=True)
class GameState:
    """Immutable snapshot of one play-through; every action yields a new one."""

    section_override: str | None = None
    health: int = INITIAL_HEALTH
    paused: bool = False
    visited: frozenset[str] = field(default_factory=frozenset)
    nav_error: str | None = None
    save_error: str | None = None
    toast: Toast | None = None
    toast_generation: int = 0
    epoch: int = 0
    save_pending: bool = False

    @property
    def is_dead(self) -> bool:
        return self.health <= 0


# ---------- Actions ----------
@dataclass(frozen=True)
class Choose:
    option: Option


@dataclass(frozen=True)
class TogglePause:
    pass


@dataclass(frozen=True)
class Restart:
    pass


@dataclass(frozen=True)
class SaveProgress:
    book_id: str | None


@dataclass(frozen=True)
class SaveCompleted:
    epoch: int


@dataclass(frozen=True)
class SaveAborted:
    epoch: int
    message: str | None = None


@dataclass(frozen=True)
class ClearToast:
    generation: int


# ---------- Events ----------
@dataclass(frozen=True)
class ToastShown:
    title: str
    message: str
    generation: int


@dataclass(frozen=True)
class NavigationError:
    message: str
    target: str | None = None


@dataclass(frozen=True)
class SaveError:
    message: str


@dataclass(frozen=True)
class SaveRequested:
    book_id: str
    section_number: int
    epoch: int


@dataclass(frozen=True)
class Transition:
    state: GameState
    events: tuple[Any, ...] = ()


@dataclass(frozen=True)
class OptionView:
    index: int
    label: str
    note: str | None = None


@dataclass(frozen=True)
class SectionView:
    """Everything a front end needs to draw the current screen."""

    title: str
    phase: str
    heading: str
    body: str
    section_id: str | None
    section_number: int | None
    options: tuple[OptionView, ...]
    hp_text: str
    progress_text: str | None
    paused: bool
    toast: Toast | None
    nav_error: str | None
    save_error: str | None
    can_choose: bool
    can_pause: bool
    can_save: bool


def parse_section_number(section_id: str) -> int | None:
    number = to_finite_number(section_id)
    if number is None or not number.is_integer():
        return None
    return int(number)


class GameMachine:
    """Pure transition rules for one validated book."""

    def __init__(
        self,
        book: Book,
        validity: BookValidity,
        index: Mapping[str, Section] | None = None,
    ) -> None:
        if not validity.ok or not validity.start_id:
            raise ValueError(f"Book cannot be played: {validity.reason}")
        self.book = book
        self.validity = validity
        self.start_id = validity.start_id
        self.index = dict(index) if index is not None else index_sections(book.sections)

    # ---------- Queries ----------
    def initial_state(self, epoch: int = 0) -> GameState:
        return GameState(visited=frozenset({self.start_id}), epoch=epoch)

    def current_section_id(self, state: GameState) -> str:
        return state.section_override or self.start_id

    def current_section(self, state: GameState) -> Section | None:
        return self.index.get(self.current_section_id(state))

    def phase(self, state: GameState) -> str:
        if state.is_dead:
            return PHASE_DEAD
        section = self.current_section(state)
        if section is None:
            return PHASE_SECTION_MISSING
        if is_ending_section(section):
            return PHASE_ENDING
        return PHASE_PLAYING

    @property
    def reachable_count(self) -> int:
        return len(self.validity.reachable_ids)

    def visited_count(self, state: GameState) -> int:
        if self.phase(state) in (PHASE_ENDING, PHASE_DEAD):
            return self.reachable_count
        return len(state.visited)

    # ---------- Transitions ----------
    def step(self, state: GameState, action: Any) -> Transition:
        if isinstance(action, Choose):
            return self._choose(state, action.option)
        if isinstance(action, TogglePause):
            return self._toggle_pause(state)
        if isinstance(action, Restart):
            return self._restart(state)
        if isinstance(action, SaveProgress):
            return self._save(state, action.book_id)
        if isinstance(action, SaveCompleted):
            return self._save_completed(state, action.epoch)
        if isinstance(action, SaveAborted):
            return self._save_aborted(state, action.epoch, action.message)
        if isinstance(action, ClearToast):
            return self._clear_toast(state, action.generation)
        raise TypeError(f"Unknown action: {action!r}")

    @staticmethod
    def _show_toast(state: GameState, title: str, message: str) -> tuple[GameState, ToastShown]:
        generation = state.toast_generation + 1
        toast = Toast(title=title, message=message, generation=generation)
        shown = ToastShown(title=title, message=message, generation=generation)
        return replace(state, toast=toast, toast_generation=generation), shown

    def _choose(self, state: GameState, option: Option) -> Transition:
        if state.paused or state.is_dead:
            return Transition(state)

        state = replace(state, nav_error=None, save_error=None)

        target = option.target_id
        if not target:
            logger.info("Option without target chosen at section %s", self.current_section_id(state))
            error = NavigationError(NO_TARGET_MESSAGE)
            return Transition(replace(state, nav_error=error.message), (error,))
        if target not in self.index:
            logger.info("Option points at unknown section %s", target)
            error = NavigationError(f"Invalid next section id: {target}", target=target)
            return Transition(replace(state, nav_error=error.message), (error,))

        state, toast = self._show_toast(
            state, TOAST_CHOICE_TITLE, consequence_text(option) or TOAST_CHOICE_DEFAULT
        )

        health = clamp_health(state.health + health_delta(option))
        state = replace(state, health=health)
        if health <= 0:
            logger.info("Health reached zero before reaching section %s", target)
            return Transition(state, (toast,))

        state = replace(state, section_override=target, visited=state.visited | {target})
        return Transition(state, (toast,))

    def _toggle_pause(self, state: GameState) -> Transition:
        if self.phase(state) in (PHASE_DEAD, PHASE_ENDING):
            return Transition(state)
        return Transition(replace(state, paused=not state.paused))

    def _restart(self, state: GameState) -> Transition:
        fresh = self.initial_state(epoch=state.epoch + 1)
        return Transition(replace(fresh, toast_generation=state.toast_generation))

    def _save(self, state: GameState, book_id: str | None) -> Transition:
        state = replace(state, save_error=None)
        if state.save_pending:
            return Transition(state)

        if not book_id:
            error = SaveError("Cannot save: missing book id.")
            return Transition(replace(state, save_error=error.message), (error,))

        section = self.current_section(state)
        if section is None:
            error = SaveError("Cannot save: current section id is missing.")
            return Transition(replace(state, save_error=error.message), (error,))

        section_id = self.current_section_id(state)
        number = parse_section_number(section_id)
        if number is None:
            error = SaveError(
                f'Cannot save: section "{section_id}" is not a number (API expects integer section).'
            )
            return Transition(replace(state, save_error=error.message), (error,))

        request = SaveRequested(book_id=book_id, section_number=number, epoch=state.epoch)
        return Transition(replace(state, save_pending=True), (request,))

    def _save_completed(self, state: GameState, epoch: int) -> Transition:
        if epoch != state.epoch:
            return Transition(state)
        state, toast = self._show_toast(
            replace(state, save_pending=False), TOAST_SAVED_TITLE, TOAST_SAVED_MESSAGE
        )
        return Transition(state, (toast,))

    def _save_aborted(self, state: GameState, epoch: int, message: str | None) -> Transition:
        if epoch != state.epoch:
            return Transition(state)
        error = SaveError(message or SAVE_FAILED_DEFAULT)
        return Transition(replace(state, save_pending=False, save_error=error.message), (error,))

    @staticmethod
    def _clear_toast(state: GameState, generation: int) -> Transition:
        if state.toast is None or state.toast.generation != generation:
            return Transition(state)
        return Transition(replace(state, toast=None))

    # ---------- View ----------
    def view(self, state: GameState, title: str | None = None) -> SectionView:
        phase = self.phase(state)
        section = self.current_section(state)
        section_id = section.section_id if section is not None else None
        number = section_number(self.book.sections, section_id) if section_id else None

        if phase == PHASE_DEAD:
            heading, body = "Game Over", DEAD_TEXT
        elif phase == PHASE_SECTION_MISSING:
            heading, body = "Cannot render section", MISSING_SECTION_TEXT
        elif phase == PHASE_ENDING:
            heading, body = "The End", section.text or NO_TEXT
        else:
            heading = f"Section {number}" if number else "What do you choose?"
            body = section.text or NO_TEXT

        options: tuple[OptionView, ...] = ()
        if phase == PHASE_PLAYING:
            options = tuple(
                OptionView(index=idx, label=opt.label, note=consequence_text(opt))
                for idx, opt in enumerate(section.options)
            )

        reachable = self.reachable_count
        return SectionView(
            title=title or self.book.title or "Game",
            phase=phase,
            heading=heading,
            body=body,
            section_id=section_id,
            section_number=number,
            options=options,
            hp_text=f"{clamp_health(state.health)}/{MAX_HEALTH}",
            progress_text=f"{self.visited_count(state)}/{reachable}" if reachable > 0 else None,
            paused=state.paused,
            toast=state.toast,
            nav_error=state.nav_error,
            save_error=state.save_error,
            can_choose=phase == PHASE_PLAYING and not state.paused,
            can_pause=phase in (PHASE_PLAYING, PHASE_SECTION_MISSING),
            can_save=phase != PHASE_DEAD and not state.save_pending,
        )
