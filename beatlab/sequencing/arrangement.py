"""
Song mode: chains saved patterns into sections with repeat counts.

The arranger rides on the scheduler's cycle callback. Each completed 16-step
cycle counts one repetition; when a section is done the next section's
pattern is resolved and its bpm and grid are handed to the scheduler, so the
change lands exactly on the bar line.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from beatlab.errors import ArrangementError, ConfigurationError, PatternNotFound
from .pattern import SequencerPattern
from .scheduler import LookaheadScheduler, PadLookup

logger = logging.getLogger(__name__)

PatternLookup = Callable[[str], Optional[SequencerPattern]]


@dataclass
class SongSection:
    name: str
    pattern_id: str
    repetitions: int = 1
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        self.repetitions = int(self.repetitions)
        if self.repetitions < 1:
            raise ConfigurationError(f"section '{self.name}': repetitions must be >= 1")

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "pattern_id": self.pattern_id, "repetitions": self.repetitions}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SongSection":
        return cls(id=str(data["id"]), name=str(data["name"]),
                   pattern_id=str(data.get("pattern_id", data.get("patternId"))),
                   repetitions=data.get("repetitions", 1))


@dataclass
class SongArrangement:
    name: str
    sections: List[SongSection] = field(default_factory=list)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def add_section(self, pattern_id: str, repetitions: int = 1, name: Optional[str] = None) -> SongSection:
        section = SongSection(name=name or f"Section {len(self.sections) + 1}",
                              pattern_id=pattern_id, repetitions=repetitions)
        self.sections.append(section)
        return section

    def remove_section(self, section_id: str) -> None:
        self.sections = [s for s in self.sections if s.id != section_id]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "sections": [s.to_dict() for s in self.sections]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SongArrangement":
        try:
            return cls(id=str(data["id"]), name=str(data["name"]),
                       sections=[SongSection.from_dict(s) for s in data.get("sections", [])])
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"malformed arrangement: {e}") from None


class ArrangerState(Enum):
    IDLE = "idle"
    PLAYING = "playing"


class SongArranger:

    def __init__(self, scheduler: LookaheadScheduler, pattern_lookup: PatternLookup):
        self.scheduler = scheduler
        self.pattern_lookup = pattern_lookup
        self.on_error: Optional[Callable[[ArrangementError], None]] = None
        self.on_finished: Optional[Callable[[], None]] = None

        self.state = ArrangerState.IDLE
        self.arrangement: Optional[SongArrangement] = None
        self.section_index = 0
        self.repetition = 0

    @property
    def playing(self) -> bool:
        return self.state is ArrangerState.PLAYING

    @property
    def section(self) -> Optional[SongSection]:
        if self.arrangement is None or not self.playing:
            return None
        return self.arrangement.sections[self.section_index]

    def _resolve(self, section: SongSection) -> SequencerPattern:
        pattern = self.pattern_lookup(section.pattern_id)
        if pattern is None:
            raise PatternNotFound(section.name, section.pattern_id)
        return pattern

    def start(self, arrangement: SongArrangement, pad_lookup: PadLookup) -> None:
        if not arrangement.sections:
            raise ArrangementError(f"song '{arrangement.name}' has no sections")
        pattern = self._resolve(arrangement.sections[0])
        if self.playing:
            # drop what the previous run queued
            self.scheduler.stop()

        self.arrangement = arrangement
        self.section_index = 0
        self.repetition = 0
        self.scheduler.on_cycle = self._on_cycle
        self.scheduler.start(pattern.bpm, pattern.copy_grid(), pad_lookup)
        self.state = ArrangerState.PLAYING
        logger.info("song '%s': section 1/%d '%s' (%s)", arrangement.name, len(arrangement.sections),
                    arrangement.sections[0].name, pattern.name)

    def stop(self) -> None:
        if self.playing:
            self.scheduler.stop()
        self._idle()

    def _idle(self) -> None:
        self.scheduler.on_cycle = None
        self.state = ArrangerState.IDLE
        self.section_index = 0
        self.repetition = 0

    def _on_cycle(self) -> None:
        if self.arrangement is None or not self.playing:
            return
        sections = self.arrangement.sections
        self.repetition += 1
        if self.repetition < sections[self.section_index].repetitions:
            return

        self.section_index += 1
        self.repetition = 0
        if self.section_index >= len(sections):
            logger.info("song '%s' finished", self.arrangement.name)
            self.scheduler.halt()
            self._idle()
            if self.on_finished is not None:
                self.on_finished()
            return

        section = sections[self.section_index]
        try:
            pattern = self._resolve(section)
        except PatternNotFound as err:
            logger.error("%s; stopping song", err)
            self.scheduler.halt()
            self._idle()
            if self.on_error is not None:
                self.on_error(err)
            return
        self.scheduler.set_bpm(pattern.bpm)
        self.scheduler.set_grid(pattern.copy_grid())
        logger.info("song '%s': section %d/%d '%s' (%s)", self.arrangement.name, self.section_index + 1,
                    len(sections), section.name, pattern.name)
