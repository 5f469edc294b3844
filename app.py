#!/usr/bin/env python3
"""pygame runtime loop that feeds player input into a game session."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import pygame

from game import PHASE_DEAD, PHASE_ENDING, PHASE_INVALID, PHASE_LOAD_FAILED, PHASE_PLAYING
from renderer import Renderer
from session import GameSession


logger = logging.getLogger(__name__)

FRAME_RATE = 30
AUTOPLAY_DELAY_MS = 150

NOTICE_TEXT = {
    PHASE_LOAD_FAILED: "Failed to load book",
    PHASE_INVALID: "Invalid book structure",
}


class BookPlayerApp:
    """Owns the window and input handling; all game rules live in the session."""

    def __init__(
        self,
        session: GameSession,
        book_id: str,
        smoke: bool = False,
        max_frames: int = 90,
        autoplay: bool = False,
    ) -> None:
        self.session = session
        self.book_id = book_id
        self.renderer = Renderer()
        self.screen = pygame.display.set_mode((Renderer.WIDTH, Renderer.HEIGHT))
        self.clock = pygame.time.Clock()
        self.running = True
        self.smoke = smoke
        self.max_frames = max(1, int(max_frames))
        self.autoplay = autoplay
        self.frame_count = 0
        self.autoplay_cooldown_ms = 0
        self.selected_index = 0
        self.save_task: asyncio.Task[Any] | None = None

    @property
    def saving(self) -> bool:
        return self.save_task is not None and not self.save_task.done()

    def _option_count(self) -> int:
        view = self.session.view()
        return len(view.options) if view is not None else 0

    def _move_cursor(self, delta: int) -> None:
        total = self._option_count()
        if total <= 0:
            self.selected_index = 0
            return
        self.selected_index = (self.selected_index + delta) % total

    def _choose(self, idx: int) -> None:
        self.session.choose(idx)
        self.selected_index = 0

    def _restart(self) -> None:
        self.session.restart()
        self.selected_index = 0

    def _start_save(self) -> None:
        view = self.session.view()
        if view is None or not view.can_save or self.saving:
            return
        self.save_task = asyncio.create_task(self.session.save_progress())

    def _handle_key(self, event: pygame.event.Event) -> None:
        if event.key == pygame.K_ESCAPE:
            self.running = False
        elif event.key == pygame.K_r:
            self._restart()
        elif event.key == pygame.K_p:
            self.session.toggle_pause()
        elif event.key == pygame.K_s:
            self._start_save()
        elif event.key == pygame.K_UP:
            self._move_cursor(-1)
        elif event.key == pygame.K_DOWN:
            self._move_cursor(1)
        elif pygame.K_1 <= event.key <= pygame.K_9:
            self._choose(event.key - pygame.K_1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            if self.session.phase in (PHASE_DEAD, PHASE_ENDING):
                self._restart()
            else:
                self._choose(self.selected_index)

    def _handle_events(self) -> None:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN:
                self._handle_key(event)
            elif event.type == pygame.MOUSEMOTION:
                for idx, rect in enumerate(self.renderer.choice_hitboxes(self._option_count())):
                    if rect.collidepoint(event.pos):
                        self.selected_index = idx
                        break
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                for idx, rect in enumerate(self.renderer.choice_hitboxes(self._option_count())):
                    if rect.collidepoint(event.pos):
                        self._choose(idx)
                        break

    def _update_autoplay(self, delta_ms: int) -> None:
        if not self.autoplay:
            return
        self.autoplay_cooldown_ms = max(0, self.autoplay_cooldown_ms - delta_ms)
        if self.autoplay_cooldown_ms > 0:
            return
        self.autoplay_cooldown_ms = AUTOPLAY_DELAY_MS

        phase = self.session.phase
        if phase == PHASE_PLAYING:
            self._choose(0)
        elif phase in (PHASE_DEAD, PHASE_ENDING):
            if self.smoke:
                self.running = False
            else:
                self._restart()
        elif self.smoke:
            self.running = False

    def build_frame(self) -> dict[str, Any]:
        view = self.session.view()
        if view is None:
            phase = self.session.phase
            if phase == PHASE_LOAD_FAILED:
                body = self.session.load_error or "Unknown error"
            elif phase == PHASE_INVALID and self.session.validity is not None:
                body = self.session.validity.reason or ""
            else:
                body = "Loading book…"
            return {
                "screen": "notice",
                "heading": NOTICE_TEXT.get(phase, "Loading"),
                "body": body,
            }

        return {
            "screen": "section",
            "title": view.title,
            "phase": view.phase,
            "heading": view.heading,
            "body": view.body,
            "section_id": view.section_id,
            "hp_text": view.hp_text,
            "progress_text": view.progress_text,
            "paused": view.paused,
            "options": list(view.options),
            "selected_choice_index": self.selected_index,
            "can_choose": view.can_choose,
            "toast": view.toast,
            "nav_error": view.nav_error,
            "save_error": view.save_error,
            "saving": self.saving,
        }

    async def run(self) -> None:
        self.session.open(self.book_id)
        while self.running:
            delta_ms = self.clock.tick(FRAME_RATE)
            self._handle_events()
            self.session.advance(delta_ms)
            self._update_autoplay(delta_ms)
            self.renderer.draw(self.screen, self.build_frame())
            pygame.display.flip()
            await asyncio.sleep(0)

            self.frame_count += 1
            if self.smoke and self.frame_count >= self.max_frames:
                self.running = False

        if self.save_task is not None and not self.save_task.done():
            await self.save_task
        self.session.close()
        logger.debug("Player loop finished after %d frames", self.frame_count)
