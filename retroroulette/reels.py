"""
Slot machine reels: every spinning reel keeps redrawing a random game until it
is stopped, one reel at a time.
"""

from __future__ import annotations

import random
import time
from typing import Callable, List, Optional

from .models import MATCH_ALL, NameFilter, Selectable
from .nodes import SelectionNode, draw_random
from .shared_config import MIN_REEL_COUNT


class Reel:
    def __init__(self, game: Optional[Selectable] = None):
        self.spinning = True
        self.variant: Optional[str] = None
        self._game: Optional[Selectable] = None
        self.game = game

    @property
    def game(self) -> Optional[Selectable]:
        return self._game

    @game.setter
    def game(self, value: Optional[Selectable]) -> None:
        self._game = value
        self.variant = value.default_variant() if value is not None else None

    def to_dict(self) -> dict:
        return {
            'spinning': self.spinning,
            'game': self._game.to_dict() if self._game else None,
            'variant': self.variant,
        }


class SlotMachine:
    def __init__(self, root: SelectionNode, reel_count: int = 3, tick_seconds: float = 0.04,
                 rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.root = root
        self.reel_count = max(MIN_REEL_COUNT, reel_count)
        self.tick_seconds = tick_seconds
        self.rng = rng
        self.clock = clock
        self.reels: List[Reel] = []
        self._next_tick = 0.0

    @property
    def spinning(self) -> bool:
        return any(reel.spinning for reel in self.reels)

    def _draw(self, name_filter: NameFilter) -> Optional[Selectable]:
        return draw_random(self.root, name_filter, self.rng)

    def spin(self, name_filter: NameFilter = MATCH_ALL) -> List[Reel]:
        self.reels = [Reel(self._draw(name_filter)) for _ in range(self.reel_count)]
        self._next_tick = self.clock()
        return self.reels

    def tick(self, name_filter: NameFilter = MATCH_ALL) -> bool:
        """Redraw spinning reels once the tick interval has passed. Returns True if redrawn."""
        if not self.spinning or self.clock() < self._next_tick:
            return False
        for reel in self.reels:
            if reel.spinning:
                reel.game = self._draw(name_filter)
        self._next_tick = self.clock() + self.tick_seconds
        return True

    def stop_next(self) -> Optional[Reel]:
        for reel in self.reels:
            if reel.spinning:
                reel.spinning = False
                return reel
        return None

    def stop_all(self) -> List[Reel]:
        for reel in self.reels:
            reel.spinning = False
        return self.reels

    def set_reel_count(self, count: int, name_filter: NameFilter = MATCH_ALL) -> None:
        """Change the reel count; while spinning, reels are added or the spinning tail removed."""
        self.reel_count = max(MIN_REEL_COUNT, count)
        if not self.spinning:
            return
        while self.reel_count > len(self.reels):
            self.reels.append(Reel(self._draw(name_filter)))
        while self.reel_count < len(self.reels) and self.reels[-1].spinning:
            self.reels.pop()
