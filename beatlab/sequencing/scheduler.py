"""
Lookahead step scheduler.

A coarse control tick (PollClock, ~25 ms) looks `lookahead` seconds ahead of
the audio clock and hands every step that falls inside that window to the
voice engine with its exact start time. Step times are computed from a tempo
anchor, `anchor + n * step_duration`, so they never accumulate rounding error.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Protocol

from beatlab.config import SCHEDULER_CONFIG
from beatlab.errors import SchedulingOverrun
from beatlab.instruments.pads import PadConfig
from .durations import check_bpm, step_duration

logger = logging.getLogger(__name__)

Grid = Dict[int, List[bool]]
PadLookup = Callable[[int], Optional[PadConfig]]


class ScheduledOutput(Protocol):
    """Owner-scoped handle on the signal graph (see audio.graph.VoiceInput)."""
    sample_rate: int

    def schedule(self, start_time: float, samples) -> None: ...
    def cancel(self) -> None: ...


# trigger(pad, when, bpm, out): render `pad` into `out` at audio-clock time `when`
Trigger = Callable[[PadConfig, float, float, ScheduledOutput], None]


class LookaheadScheduler:

    def __init__(self, clock: Callable[[], float], trigger: Trigger, *,
                 out: ScheduledOutput,
                 lookahead: float = SCHEDULER_CONFIG.lookahead,
                 steps: int = SCHEDULER_CONFIG.steps,
                 start_delay: float = SCHEDULER_CONFIG.start_delay):
        self.clock = clock
        self.trigger = trigger
        self.out = out
        self.lookahead = float(lookahead)
        self.steps = int(steps)
        self.start_delay = float(start_delay)

        self.on_cycle: Optional[Callable[[], None]] = None
        self.on_overrun: Optional[Callable[[SchedulingOverrun], None]] = None

        self.bpm = float(SCHEDULER_CONFIG.default_bpm)
        self.grid: Grid = {}
        self.pad_lookup: PadLookup = lambda pad_id: None
        self.current_step = 0
        self.cycles = 0
        self.overruns = 0

        self._running = False
        self._anchor = 0.0
        self._n = 0
        self._step_dur = step_duration(self.bpm)
        self._pending_bpm: Optional[float] = None

    # ---- state ----
    @property
    def running(self) -> bool:
        return self._running

    @property
    def step_duration(self) -> float:
        return self._step_dur

    @property
    def next_step_time(self) -> float:
        return self._anchor + self._n * self._step_dur

    # ---- control ----
    def start(self, bpm: float, grid: Grid, pad_lookup: PadLookup) -> None:
        bpm = check_bpm(bpm)
        self.grid = grid
        self.pad_lookup = pad_lookup
        self.bpm = bpm
        self._step_dur = step_duration(bpm)
        self._pending_bpm = None
        self.current_step = 0
        self.cycles = 0
        self._anchor = self.clock() + self.start_delay
        self._n = 0
        self._running = True
        logger.debug("scheduler start: %.1f bpm, step %.4fs", bpm, self._step_dur)

    def stop(self) -> None:
        """Stop and cancel everything this scheduler queued that has not started yet."""
        was_running = self._running
        self._running = False
        self.current_step = 0
        self._pending_bpm = None
        self.out.cancel()
        if was_running:
            logger.debug("scheduler stopped")

    def halt(self) -> None:
        """Stop scheduling; already queued steps still play."""
        self._running = False
        self.current_step = 0
        self._pending_bpm = None

    def set_bpm(self, bpm: float) -> None:
        """Takes effect at the next step boundary; queued steps keep their times."""
        bpm = check_bpm(bpm)
        if not self._running:
            self.bpm = bpm
            self._step_dur = step_duration(bpm)
            return
        self._pending_bpm = bpm

    def set_grid(self, grid: Grid) -> None:
        self.grid = grid

    # ---- control tick ----
    def tick(self) -> int:
        """Schedule every step inside the lookahead window; returns how many steps were scheduled."""
        if not self._running:
            return 0
        now = self.clock()
        scheduled = 0
        if self.next_step_time < now:
            scheduled += self._catch_up(now)

        horizon = now + self.lookahead
        while self._running and self.next_step_time < horizon:
            self._fire(self.current_step, self.next_step_time)
            self._advance()
            scheduled += 1
        return scheduled

    def _due(self, step: int) -> List[int]:
        return [pad_id for pad_id, row in list(self.grid.items()) if step < len(row) and row[step]]

    def _fire(self, step: int, when: float) -> None:
        for pad_id in self._due(step):
            pad = self.pad_lookup(pad_id)
            if pad is None:
                continue
            self.trigger(pad, when, self.bpm, self.out)

    def _advance(self) -> None:
        self.current_step = (self.current_step + 1) % self.steps
        self._n += 1
        if self.current_step == 0:
            self.cycles += 1
            if self.on_cycle is not None:
                self.on_cycle()
        if self._pending_bpm is not None:
            # re-anchor on the boundary so earlier steps keep their times
            self._anchor = self.next_step_time
            self._n = 0
            self.bpm = self._pending_bpm
            self._step_dur = step_duration(self.bpm)
            self._pending_bpm = None

    def _catch_up(self, now: float) -> int:
        """
        Play every step that fell due before `now` immediately. Each pad
        sounds once however many of its steps were missed; cycle callbacks
        still run once per cycle passed, so song repetitions stay counted.
        """
        late = now - self.next_step_time
        due: List[int] = []
        overdue = 0
        while self._running and self.next_step_time <= now:
            for pad_id in self._due(self.current_step):
                if pad_id not in due:
                    due.append(pad_id)
            self._advance()
            overdue += 1

        err = SchedulingOverrun(late, overdue)
        self.overruns += 1
        logger.warning("%s; playing %d pads now", err, len(due))
        for pad_id in due:
            pad = self.pad_lookup(pad_id)
            if pad is not None:
                self.trigger(pad, now, self.bpm, self.out)
        if self.on_overrun is not None:
            self.on_overrun(err)
        return overdue
