"""
Loop mode: each toggled pad repeats on its own step clock.

Every PadLoop owns a private LookaheadScheduler (and therefore its own owner
token on the graph), so toggling one loop off cancels only that loop's queued
voices. One scheduler cycle is one repeat: 4 steps for a single hit, 64 (four
bars) for a composite pad, which is never shorter than the macro it plays.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from beatlab.config import LOOP_CONFIG, SCHEDULER_CONFIG, LoopConfig
from beatlab.instruments.pads import PadConfig
from .scheduler import LookaheadScheduler, ScheduledOutput, Trigger

logger = logging.getLogger(__name__)


def loop_interval(pad: PadConfig, config: LoopConfig = LOOP_CONFIG) -> int:
    return config.composite_interval_steps if pad.is_composite else config.hit_interval_steps


def loop_grid(pad: PadConfig, config: LoopConfig = LOOP_CONFIG, steps: Optional[int] = None):
    """One row for `pad`, set every loop_interval() steps."""
    interval = loop_interval(pad, config)
    steps = interval if steps is None else steps
    return {pad.id: [i % interval == 0 for i in range(steps)]}


class PadLoop:

    def __init__(self, pad: PadConfig, scheduler: LookaheadScheduler, bpm: float,
                 config: LoopConfig = LOOP_CONFIG):
        self.pad = pad
        self.scheduler = scheduler
        scheduler.start(bpm, loop_grid(pad, config, scheduler.steps),
                        lambda pad_id: self.pad if pad_id == self.pad.id else None)

    @property
    def bpm(self) -> float:
        return self.scheduler.bpm

    def tick(self, bpm: float) -> None:
        if bpm != self.scheduler.bpm:
            self.scheduler.set_bpm(bpm)
        self.scheduler.tick()

    def stop(self) -> None:
        self.scheduler.stop()


class PadLoopBank:

    def __init__(self, clock: Callable[[], float], trigger: Trigger, *,
                 new_output: Callable[[], ScheduledOutput],
                 config: LoopConfig = LOOP_CONFIG,
                 lookahead: float = SCHEDULER_CONFIG.lookahead):
        self.clock = clock
        self.trigger = trigger
        self.new_output = new_output
        self.config = config
        self.lookahead = float(lookahead)
        self.loops: Dict[int, PadLoop] = {}

    @property
    def active(self) -> List[int]:
        return sorted(self.loops)

    def is_active(self, pad_id: int) -> bool:
        return pad_id in self.loops

    def toggle(self, pad: PadConfig, bpm: float) -> bool:
        """Start or stop the loop for `pad`; returns True if it is now looping."""
        if pad.id in self.loops:
            self.stop(pad.id)
            return False
        sched = LookaheadScheduler(self.clock, self.trigger, out=self.new_output(), lookahead=self.lookahead,
                                   steps=loop_interval(pad, self.config))
        loop = PadLoop(pad, sched, bpm, self.config)
        self.loops[pad.id] = loop
        loop.tick(bpm)
        logger.info("loop on: pad %d (%s)", pad.id, pad.label)
        return True

    def stop(self, pad_id: int) -> None:
        loop = self.loops.pop(pad_id, None)
        if loop is not None:
            loop.stop()
            logger.info("loop off: pad %d", pad_id)

    def stop_all(self) -> None:
        for pad_id in list(self.loops):
            self.stop(pad_id)

    def tick(self, bpm: float) -> None:
        for loop in list(self.loops.values()):
            loop.tick(bpm)
