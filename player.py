#!/usr/bin/env python3
"""Health bounds and option consequence resolution."""

from __future__ import annotations

from story import Consequence, Option, to_finite_number


MIN_HEALTH = 0
MAX_HEALTH = 10
INITIAL_HEALTH = MAX_HEALTH

LOSE_HEALTH = "LOSE_HEALTH"
GAIN_HEALTH = "GAIN_HEALTH"
HEALTH = "HEALTH"


def clamp(low: int, value: int, high: int) -> int:
    return max(low, min(high, int(value)))


def clamp_health(value: int) -> int:
    return clamp(MIN_HEALTH, value, MAX_HEALTH)


def _consequence_of(source: Option | Consequence | None) -> Consequence | None:
    if isinstance(source, Option):
        return source.consequence
    return source


def health_delta(source: Option | Consequence | None) -> int:
    """Signed health change for an option (or its consequence).

    The consequence type decides the sign: LOSE_HEALTH is always negative,
    GAIN_HEALTH always positive, HEALTH keeps the value as given.
    """
    consequence = _consequence_of(source)
    if consequence is None:
        return 0

    kind = consequence.type.strip().upper() if isinstance(consequence.type, str) else ""
    value = int(to_finite_number(consequence.value) or 0)

    if kind == LOSE_HEALTH:
        return -abs(value)
    if kind == GAIN_HEALTH:
        return abs(value)
    if kind == HEALTH:
        return value
    return 0


def consequence_text(source: Option | Consequence | None) -> str | None:
    consequence = _consequence_of(source)
    if consequence is None or not isinstance(consequence.text, str):
        return None
    return consequence.text.strip() or None
