"""
DrumMachine: the controller that ties pads, sequencer, song mode and loops
to one audio engine.

All public methods take the controller's lock and return quickly; the only
periodic work is tick(), driven by a PollClock thread. Only one playback mode
runs at a time: starting the sequencer stops the song and vice versa. Loops
run alongside either.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

import numpy as np

from beatlab.config import LOOP_CONFIG, SCHEDULER_CONFIG, LoopConfig, SchedulerConfig
from beatlab.errors import ArrangementError, ConfigurationError, SchedulingOverrun
from beatlab.audio.engine import AudioEngine
from beatlab.audio.recording import RecordedTake, RecordingSink
from beatlab.generation import PatternGenerator, accept_generated
from beatlab.instruments.pads import Kit, PadConfig
from beatlab.instruments.predefined.kits import make_default_kit
from beatlab.instruments.synthesis import synthesize
from beatlab.midi.keys import KeyTriggerMap
from beatlab.sequencing.arrangement import SongArrangement, SongArranger
from beatlab.sequencing.clock import PollClock
from beatlab.sequencing.durations import check_bpm
from beatlab.sequencing.loops import PadLoop, PadLoopBank
from beatlab.sequencing.pattern import SequencerPattern
from beatlab.sequencing.scheduler import LookaheadScheduler, ScheduledOutput
from beatlab.sequencing.sequencer import StepSequencer
from beatlab.storage import ArrangementLibrary, KitLibrary, PatternLibrary, StoreFactory, memory_stores

logger = logging.getLogger(__name__)

PITCH_BEND_RANGE = 12.0


class PlaybackMode(Enum):
    IDLE = "idle"
    SEQUENCER = "sequencer"
    SONG = "song"


@dataclass
class PlaybackState:
    mode: PlaybackMode = PlaybackMode.IDLE
    step: int = 0
    section_index: int = 0
    repetition: int = 0
    loops: Dict[int, PadLoop] = field(default_factory=dict)
    bpm: float = float(SCHEDULER_CONFIG.default_bpm)
    pitch_bend: float = 0.0
    loop_mode: bool = False


class DrumMachine:

    def __init__(self, engine: AudioEngine, kit: Optional[Kit] = None, *,
                 config: SchedulerConfig = SCHEDULER_CONFIG,
                 loop_config: LoopConfig = LOOP_CONFIG,
                 stores: Optional[StoreFactory] = None,
                 generator: Optional[PatternGenerator] = None,
                 rng: Optional[np.random.Generator] = None):
        self.engine = engine
        self.config = config
        self.kit = kit if kit is not None else make_default_kit()
        self.generator = generator
        self._rng = rng if rng is not None else np.random.default_rng()
        self._lock = threading.RLock()

        store_for = stores if stores is not None else memory_stores()
        self.kits = KitLibrary(store_for(KitLibrary.collection))
        self.patterns = PatternLibrary(store_for(PatternLibrary.collection))
        self.arrangements = ArrangementLibrary(store_for(ArrangementLibrary.collection))

        self.keys = KeyTriggerMap(self.kit)
        self._oneshots = engine.new_input()

        self.scheduler = LookaheadScheduler(self._now, self._play, out=engine.new_input(),
                                            lookahead=config.lookahead, steps=config.steps,
                                            start_delay=config.start_delay)
        self.scheduler.on_overrun = self._on_overrun
        self.sequencer = StepSequencer(self.scheduler, bpm=config.default_bpm)
        self.arranger = SongArranger(self.scheduler, self.patterns.get)
        self.arranger.on_error = self._on_song_error
        self.arranger.on_finished = self._on_song_finished
        self.loop_bank = PadLoopBank(self._now, self._play, new_output=engine.new_input,
                                     config=loop_config, lookahead=config.lookahead)

        self.state = PlaybackState(bpm=float(config.default_bpm), loops=self.loop_bank.loops)
        self.on_error: Optional[Callable[[ArrangementError], None]] = None
        self.last_error: Optional[ArrangementError] = None
        self.overruns: List[SchedulingOverrun] = []

        self.poll_clock = PollClock(config.poll_interval)

    # ---- lifecycle ----
    def start(self) -> None:
        """Acquire the audio device and start the control tick."""
        self.engine.ensure_graph()
        self.engine.resume()
        self.poll_clock.start(self.tick)

    def close(self) -> None:
        self.stop()
        self.poll_clock.stop()
        self.engine.close()

    # ---- internals ----
    def _now(self) -> float:
        return self.engine.current_time

    def _lookup_pad(self, pad_id: int) -> Optional[PadConfig]:
        return self.kit.pad(pad_id)

    def _play(self, pad: PadConfig, when: float, bpm: float, out: ScheduledOutput) -> None:
        synthesize(pad, when, self.state.pitch_bend, out, bpm=bpm, rng=self._rng)

    def _on_overrun(self, err: SchedulingOverrun) -> None:
        self.overruns.append(err)
        del self.overruns[:-32]

    def _on_song_error(self, err: ArrangementError) -> None:
        self.last_error = err
        self.state.mode = PlaybackMode.IDLE
        if self.on_error is not None:
            self.on_error(err)

    def _on_song_finished(self) -> None:
        self.state.mode = PlaybackMode.IDLE

    def tick(self) -> None:
        """One control pass: schedule everything inside the lookahead window."""
        with self._lock:
            self.scheduler.tick()
            self.loop_bank.tick(self.state.bpm)
            st = self.state
            st.step = self.scheduler.current_step if st.mode is not PlaybackMode.IDLE else 0
            st.section_index = self.arranger.section_index
            st.repetition = self.arranger.repetition

    # ---- pads ----
    def trigger_pad(self, pad_id: int, when: Optional[float] = None) -> bool:
        """
        Play a pad now (or at audio-clock time `when`). In loop mode a
        manual press toggles the pad's loop instead. Returns False if the
        pad does not exist or the device cannot run.
        """
        with self._lock:
            pad = self.kit.pad(pad_id)
            if pad is None:
                return False
            if not self.engine.resume():
                logger.debug("audio not running; pad %d dropped", pad_id)
                return False
            if self.state.loop_mode and when is None:
                self.loop_bank.toggle(pad, self.state.bpm)
                return True
            t = self.engine.current_time if when is None else float(when)
            self._play(pad, t, self.state.bpm, self._oneshots)
            return True

    def press_key(self, key: str, repeat: bool = False) -> Optional[int]:
        with self._lock:
            pad_id = self.keys.press(key, repeat)
            if pad_id is not None:
                self.trigger_pad(pad_id)
            return pad_id

    def release_key(self, key: str) -> Optional[int]:
        with self._lock:
            return self.keys.release(key)

    @property
    def loop_mode(self) -> bool:
        return self.state.loop_mode

    @loop_mode.setter
    def loop_mode(self, enabled: bool) -> None:
        with self._lock:
            self.state.loop_mode = bool(enabled)
            if not enabled:
                self.loop_bank.stop_all()

    @property
    def pitch_bend(self) -> float:
        return self.state.pitch_bend

    @pitch_bend.setter
    def pitch_bend(self, semitones: float) -> None:
        semitones = float(semitones)
        if not -PITCH_BEND_RANGE <= semitones <= PITCH_BEND_RANGE:
            raise ConfigurationError(f"pitch bend {semitones} outside +/-{PITCH_BEND_RANGE:g} semitones")
        with self._lock:
            self.state.pitch_bend = semitones

    def load_kit(self, kit: Kit) -> None:
        with self._lock:
            self.loop_bank.stop_all()
            self.kit = kit
            self.keys.set_kit(kit)
            logger.info("kit loaded: %s (%d pads)", kit.name, len(kit.pads))

    def configure_pad(self, pad_id: int, **changes) -> PadConfig:
        with self._lock:
            self.kit = self.kit.configure_pad(pad_id, **changes)
            self.keys.set_kit(self.kit)
            pad = self.kit.pad(int(pad_id))
            logger.info("pad %d reconfigured: %s", pad.id, ", ".join(sorted(changes)))
            return pad

    # ---- sequencer ----
    def toggle_step(self, pad_id: int, step: int) -> bool:
        with self._lock:
            return self.sequencer.toggle_step(pad_id, step)

    def clear_pattern(self) -> None:
        with self._lock:
            self.sequencer.clear()

    def start_sequencer(self) -> None:
        with self._lock:
            if self.state.mode is PlaybackMode.SONG:
                self.stop_song()
            self.engine.ensure_graph()
            self.engine.resume()
            self.sequencer.start(self.state.bpm, self._lookup_pad)
            self.state.mode = PlaybackMode.SEQUENCER

    def stop_sequencer(self) -> None:
        with self._lock:
            self.sequencer.stop()
            if self.state.mode is PlaybackMode.SEQUENCER:
                self.state.mode = PlaybackMode.IDLE
                self.state.step = 0

    def set_bpm(self, bpm: float) -> None:
        with self._lock:
            bpm = check_bpm(bpm)
            self.state.bpm = bpm
            self.sequencer.set_bpm(bpm)

    def save_pattern(self, name: str) -> SequencerPattern:
        with self._lock:
            pattern = self.sequencer.snapshot(name)
            self.patterns.save(pattern)
            logger.info("pattern saved: %s (%s)", name, pattern.id)
            return pattern

    def load_pattern(self, pattern: Union[SequencerPattern, str]) -> SequencerPattern:
        with self._lock:
            if isinstance(pattern, str):
                found = self.patterns.get(pattern)
                if found is None:
                    raise ConfigurationError(f"no pattern with id {pattern!r}")
                pattern = found
            self.sequencer.load(pattern)
            self.state.bpm = self.sequencer.bpm
            return pattern

    def generate_pattern(self, prompt: str) -> SequencerPattern:
        """Ask the generator for a grid; a malformed result leaves the current pattern alone."""
        if self.generator is None:
            raise ConfigurationError("no pattern generator configured")
        result = self.generator.generate_pattern(prompt, self.kit)
        with self._lock:
            accepted = accept_generated(result, self.kit)
            pattern = SequencerPattern(name=prompt[:40] or "Generated", bpm=accepted.bpm, grid=accepted.grid)
            self.sequencer.load(pattern)
            self.state.bpm = self.sequencer.bpm
            logger.info("generated pattern loaded at %.1f bpm", pattern.bpm)
            return pattern

    # ---- song ----
    def start_song(self, arrangement: SongArrangement) -> None:
        with self._lock:
            if self.sequencer.playing:
                self.stop_sequencer()
            self.engine.ensure_graph()
            self.engine.resume()
            self.last_error = None
            self.arranger.start(arrangement, self._lookup_pad)
            self.state.mode = PlaybackMode.SONG

    def stop_song(self) -> None:
        with self._lock:
            self.arranger.stop()
            if self.state.mode is PlaybackMode.SONG:
                self.state.mode = PlaybackMode.IDLE
                self.state.step = 0

    def stop(self) -> None:
        """Stop every playback mode and every loop."""
        with self._lock:
            self.stop_sequencer()
            self.stop_song()
            self.loop_bank.stop_all()

    # ---- mix ----
    def set_master_gain(self, value: float) -> None:
        self.engine.set_master_gain(value)

    def set_reverb_mix(self, value: float) -> None:
        self.engine.set_reverb_mix(value)

    def set_reverb_decay(self, seconds: float) -> None:
        self.engine.set_reverb_decay(seconds)

    def start_recording(self, sink: RecordingSink) -> None:
        self.engine.start_recording(sink)

    def stop_recording(self) -> Optional[RecordedTake]:
        return self.engine.stop_recording()
