from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, Optional

from beatlab.config import SCHEDULER_CONFIG
from beatlab.errors import ConfigurationError
from .durations import check_bpm
from .pattern import Grid, SequencerPattern, empty_grid, validate_grid
from .scheduler import LookaheadScheduler, PadLookup

logger = logging.getLogger(__name__)

GRID_PADS = range(20)   # single hits and composite loops


class SequencerState(Enum):
    IDLE = "idle"
    PLAYING = "playing"


class StepSequencer:
    """
    Idle -> Playing -> Idle. No pause: stop always returns to step 0.

    The scheduler reads `grid` by reference, so toggles and clears made while
    playing are heard from its next pass without rescheduling anything.
    """

    def __init__(self, scheduler: LookaheadScheduler, pad_ids: Iterable[int] = GRID_PADS,
                 bpm: float = SCHEDULER_CONFIG.default_bpm):
        self.scheduler = scheduler
        self.steps = scheduler.steps
        self.grid: Grid = empty_grid(pad_ids, self.steps)
        self.bpm = check_bpm(bpm)
        self.state = SequencerState.IDLE

    @property
    def playing(self) -> bool:
        return self.state is SequencerState.PLAYING

    @property
    def current_step(self) -> int:
        return self.scheduler.current_step if self.playing else 0

    def start(self, bpm: Optional[float] = None, pad_lookup: Optional[PadLookup] = None) -> None:
        if bpm is not None:
            self.bpm = check_bpm(bpm)
        if self.playing:
            self.scheduler.stop()
        self.scheduler.on_cycle = None
        self.scheduler.start(self.bpm, self.grid, pad_lookup or self.scheduler.pad_lookup)
        self.state = SequencerState.PLAYING
        logger.info("sequencer playing at %.1f bpm", self.bpm)

    def stop(self) -> None:
        if self.playing:
            self.scheduler.stop()
            logger.info("sequencer stopped")
        self.state = SequencerState.IDLE

    def set_bpm(self, bpm: float) -> None:
        self.bpm = check_bpm(bpm)
        if self.playing:
            self.scheduler.set_bpm(self.bpm)

    def toggle_step(self, pad_id: int, step: int) -> bool:
        """Flip one cell; returns its new value."""
        if not 0 <= step < self.steps:
            raise ConfigurationError(f"step {step} out of range [0, {self.steps})")
        row = self.grid.setdefault(int(pad_id), [False] * self.steps)
        row[step] = not row[step]
        return row[step]

    def clear(self) -> None:
        for row in self.grid.values():
            row[:] = [False] * self.steps

    def load(self, pattern: SequencerPattern) -> None:
        """Replace grid and bpm in place; a bad grid leaves the current one untouched."""
        grid = validate_grid(pattern.grid, steps=self.steps)
        bpm = check_bpm(pattern.bpm)
        for row in self.grid.values():
            row[:] = [False] * self.steps
        self.grid.update(grid)
        self.set_bpm(bpm)

    def snapshot(self, name: str) -> SequencerPattern:
        return SequencerPattern(name=name, bpm=self.bpm,
                                grid={pad_id: list(row) for pad_id, row in self.grid.items()})
