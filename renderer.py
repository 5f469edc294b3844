#!/usr/bin/env python3
"""Retro CRT renderer for the section, ending, game-over, and notice screens."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pygame


class Renderer:
    """Centralized drawing module for all player screens."""

    WIDTH = 800
    HEIGHT = 600

    COLOR_BG = (0x0A, 0x0A, 0x0A)
    COLOR_TEXT = (0x39, 0xFF, 0x14)
    COLOR_DIM = (0x1A, 0x7A, 0x08)
    COLOR_HIGHLIGHT = (0xFF, 0xFF, 0xFF)
    COLOR_DANGER = (0xFF, 0x31, 0x31)
    COLOR_GOLD = (0xFF, 0xD7, 0x00)
    COLOR_BORDER = (0x39, 0xFF, 0x14)
    COLOR_LOCKED = (0x33, 0x33, 0x33)

    STATUS_RECT = pygame.Rect(0, 0, WIDTH, 36)
    STORY_RECT = pygame.Rect(0, 36, WIDTH, 330)
    CHOICE_RECT = pygame.Rect(0, 366, WIDTH, 200)
    HINT_Y = HEIGHT - 26

    INNER_PADDING = 12
    MAX_CHOICES = 9

    def __init__(self) -> None:
        self.body_font = self._load_font(14)
        self.title_font = self._load_font(22)
        self.small_font = self._load_font(12)
        self.char_w = self.body_font.size("M")[0]
        self.line_height = int(self.body_font.get_linesize() * 1.4)
        self.scanline_surface = self._make_scanline_surface()
        self.frame_surface = pygame.Surface((self.WIDTH, self.HEIGHT))
        self._wrap_cache: dict[tuple[str, int], list[str]] = {}

    def _load_font(self, size: int) -> pygame.font.Font:
        font_path = Path("assets/fonts/PressStart2P-Regular.ttf")
        if font_path.exists():
            return pygame.font.Font(str(font_path), size)
        return pygame.font.SysFont("couriernew", size)

    def _make_scanline_surface(self) -> pygame.Surface:
        surface = pygame.Surface((self.WIDTH, self.HEIGHT), pygame.SRCALPHA)
        for y in range(0, self.HEIGHT, 2):
            pygame.draw.line(surface, (0, 0, 0, 38), (0, y), (self.WIDTH, y))
        return surface

    @staticmethod
    def _truncate(text: str, max_chars: int) -> str:
        if len(text) <= max_chars:
            return text
        if max_chars <= 1:
            return text[:max_chars]
        return text[: max_chars - 1] + "…"

    def wrap_text(self, text: str, max_width: int) -> list[str]:
        cache_key = (text, max_width)
        cached = self._wrap_cache.get(cache_key)
        if cached is not None:
            return list(cached)

        lines: list[str] = []
        for para in text.replace("\r\n", "\n").split("\n"):
            words = para.split()
            if not words:
                lines.append("")
                continue
            current = ""
            for word in words:
                candidate = f"{current} {word}".strip()
                if self.body_font.size(candidate)[0] <= max_width or not current:
                    current = candidate
                else:
                    lines.append(current)
                    current = word
            lines.append(current)

        if len(self._wrap_cache) > 256:
            self._wrap_cache.clear()
        self._wrap_cache[cache_key] = list(lines)
        return lines

    def _panel_inner(self, rect: pygame.Rect) -> pygame.Rect:
        return rect.inflate(-(self.INNER_PADDING * 2), -(self.INNER_PADDING * 2))

    def _draw_border(self, canvas: pygame.Surface, rect: pygame.Rect, color: tuple[int, int, int]) -> None:
        pygame.draw.rect(canvas, self.COLOR_BG, rect)
        pygame.draw.rect(canvas, color, rect.inflate(-4, -4), width=2)

    def choice_hitboxes(self, count: int) -> list[pygame.Rect]:
        inner = self._panel_inner(self.CHOICE_RECT)
        return [
            pygame.Rect(inner.x, inner.y + idx * self.line_height, inner.width, self.line_height)
            for idx in range(max(0, min(count, self.MAX_CHOICES)))
        ]

    def _blit_lines(
        self,
        canvas: pygame.Surface,
        lines: list[str],
        x: int,
        y: int,
        color: tuple[int, int, int],
        max_lines: int,
    ) -> int:
        for line in lines[:max_lines]:
            if line:
                canvas.blit(self.body_font.render(line, True, color), (x, y))
            y += self.line_height
        return y

    def draw(self, screen: pygame.Surface, frame: dict[str, Any]) -> None:
        canvas = self.frame_surface
        canvas.fill(self.COLOR_BG)

        if frame.get("screen") == "section":
            self._draw_section(canvas, frame)
        else:
            self._draw_notice(canvas, frame)

        canvas.blit(self.scanline_surface, (0, 0))
        screen.fill(self.COLOR_BG)
        screen.blit(canvas, (0, 0))

    def _draw_status(self, canvas: pygame.Surface, frame: dict[str, Any]) -> None:
        title = self._truncate(str(frame.get("title", "")), 36)
        canvas.blit(self.body_font.render(title, True, self.COLOR_TEXT), (12, 10))

        parts = [f"§ {frame.get('section_id') or '?'}", f"HP {frame.get('hp_text', '')}"]
        if frame.get("progress_text"):
            parts.append(f"Visited {frame['progress_text']}")
        if frame.get("paused"):
            parts.append("PAUSED")
        stats = "  ".join(parts)
        color = self.COLOR_DANGER if frame.get("phase") == "dead" else self.COLOR_TEXT
        surf = self.small_font.render(stats, True, color)
        canvas.blit(surf, (self.WIDTH - surf.get_width() - 12, 12))
        pygame.draw.line(
            canvas, self.COLOR_BORDER, (0, self.STATUS_RECT.bottom - 2), (self.WIDTH, self.STATUS_RECT.bottom - 2)
        )

    def _draw_section(self, canvas: pygame.Surface, frame: dict[str, Any]) -> None:
        phase = frame.get("phase")
        border = self.COLOR_DANGER if phase == "dead" else self.COLOR_BORDER
        self._draw_status(canvas, frame)
        self._draw_border(canvas, self.STORY_RECT, border)
        self._draw_border(canvas, self.CHOICE_RECT, border)

        story = self._panel_inner(self.STORY_RECT)
        heading_color = {"dead": self.COLOR_DANGER, "ending": self.COLOR_GOLD}.get(phase, self.COLOR_HIGHLIGHT)
        heading = self.title_font.render(str(frame.get("heading", "")), True, heading_color)
        canvas.blit(heading, (story.x + (story.width - heading.get_width()) // 2, story.y))

        y = story.y + heading.get_height() + self.line_height // 2
        for message, color in ((frame.get("nav_error"), self.COLOR_DANGER), (frame.get("save_error"), self.COLOR_DANGER)):
            if message:
                y = self._blit_lines(canvas, self.wrap_text(str(message), story.width), story.x, y, color, 2)

        max_lines = max(1, (story.bottom - y) // self.line_height)
        self._blit_lines(canvas, self.wrap_text(str(frame.get("body", "")), story.width), story.x, y, self.COLOR_TEXT, max_lines)

        choice_inner = self._panel_inner(self.CHOICE_RECT)
        options = frame.get("options", [])
        selected = int(frame.get("selected_choice_index", 0))
        can_choose = bool(frame.get("can_choose", False))
        footer = {"dead": "Game Over - press R to restart", "ending": "Adventure completed - press R to play again"}
        if not options and phase in footer:
            canvas.blit(self.body_font.render(footer[phase], True, self.COLOR_DIM), (choice_inner.x, choice_inner.y))
        for idx, option in enumerate(options[: self.MAX_CHOICES]):
            if not can_choose:
                prefix, color = f"[{idx + 1}]", self.COLOR_LOCKED
            elif idx == selected:
                prefix, color = ">", self.COLOR_HIGHLIGHT
            else:
                prefix, color = f"[{idx + 1}]", self.COLOR_DIM
            label = option.label if not option.note else f"{option.label} ({option.note})"
            max_chars = max(8, (choice_inner.width // self.char_w) - len(prefix) - 2)
            line = f"{prefix} {self._truncate(label, max_chars)}"
            canvas.blit(self.body_font.render(line, True, color), (choice_inner.x, choice_inner.y + idx * self.line_height))

        hint = "1-9 choose  P pause  R restart  S save  ESC quit"
        if frame.get("saving"):
            hint = "Saving…"
        surf = self.small_font.render(hint, True, self.COLOR_DIM)
        canvas.blit(surf, ((self.WIDTH - surf.get_width()) // 2, self.HINT_Y))

        self._draw_toast(canvas, frame.get("toast"))

    def _draw_toast(self, canvas: pygame.Surface, toast: Any) -> None:
        if toast is None:
            return
        rect = pygame.Rect(140, 230, 520, 110)
        self._draw_border(canvas, rect, self.COLOR_GOLD)
        inner = self._panel_inner(rect)
        title = self.body_font.render(str(toast.title), True, self.COLOR_GOLD)
        canvas.blit(title, (inner.x, inner.y))
        lines = self.wrap_text(str(toast.message), inner.width)
        self._blit_lines(canvas, lines, inner.x, inner.y + self.line_height, self.COLOR_TEXT, 2)

    def _draw_notice(self, canvas: pygame.Surface, frame: dict[str, Any]) -> None:
        title = self.title_font.render(str(frame.get("heading", "")), True, self.COLOR_DANGER)
        canvas.blit(title, ((self.WIDTH - title.get_width()) // 2, 180))

        lines = self.wrap_text(str(frame.get("body", "")), self.WIDTH - 120)
        self._blit_lines(canvas, lines, 60, 260, self.COLOR_TEXT, 6)

        hint = self.small_font.render("Press ESC to quit", True, self.COLOR_DIM)
        canvas.blit(hint, ((self.WIDTH - hint.get_width()) // 2, 520))
