from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple
import heapq
import itertools
import numpy as np

from beatlab.config import (AudioConfig, CompressorConfig, ReverbConfig,
                            AUDIO_CONFIG, COMPRESSOR_CONFIG, REVERB_CONFIG)
from beatlab.audio.dsp import Compressor, RampedParam
from beatlab.audio.recording import RecordingTap
from beatlab.audio.reverb import Reverb, make_impulse_response
from beatlab.routing.bus import EventBus
from beatlab.routing.messages import ScheduleBuffer, CancelOwner, SetParam, SwapImpulse


@dataclass
class _Voice:
    owner: int
    start: int                                 # absolute sample index
    samples: np.ndarray = field(repr=False)
    pos: int = 0                               # samples already rendered


class VoiceInput:
    """
    Bus handle given to the voice generators.
    schedule() only enqueues: the buffer starts at `start_time` on the audio clock.
    """

    def __init__(self, bus: EventBus, sample_rate: int, owner: int):
        self.bus = bus
        self.sample_rate = int(sample_rate)
        self.owner = int(owner)

    def schedule(self, start_time: float, samples: np.ndarray) -> None:
        start = int(round(float(start_time) * self.sample_rate))
        self.bus.post(ScheduleBuffer(self.owner, start, np.asarray(samples, dtype=np.float32)))

    def cancel(self) -> None:
        self.bus.post(CancelOwner(self.owner))


class SignalGraph:
    """
    voices -> master gain -> compressor -> [dry, wet -> reverb] -> monitor
                         \\-> recording tap

    Lives on the render thread: only route_events() and render() are called
    there. The control thread talks to it through the EventBus.
    """

    PARAMS = ("master_gain", "reverb_mix")

    def __init__(self, sr: int, block: int, *,
                 audio: AudioConfig = AUDIO_CONFIG,
                 compressor: CompressorConfig = COMPRESSOR_CONFIG,
                 reverb: ReverbConfig = REVERB_CONFIG,
                 rng: Optional[np.random.Generator] = None):
        self.sr = int(sr)
        self.block = int(block)
        self.max_voices = int(audio.max_voices)

        self.master_gain = RampedParam(audio.master_gain, self.sr)
        self.reverb_mix = RampedParam(reverb.mix, self.sr)
        self.compressor = Compressor(compressor, self.sr)
        impulse = make_impulse_response(self.sr, reverb.duration, reverb.decay_exponent, rng)
        self.reverb = Reverb(impulse, self.block, self.sr, reverb.crossfade)
        self.tap = RecordingTap(self.sr, channels=2)

        self.frames_rendered = 0
        self.stolen_voices = 0
        self._seq = itertools.count()
        self._pending: List[Tuple[int, int, _Voice]] = []    # heap on start sample
        self._active: List[_Voice] = []

    ###########################################################################
    ##                          EVENT ROUTING                                ##
    ###########################################################################

    def route_event(self, e: object) -> None:
        if isinstance(e, ScheduleBuffer):
            if e.samples.size:
                v = _Voice(owner=e.owner, start=e.start, samples=e.samples)
                heapq.heappush(self._pending, (v.start, next(self._seq), v))
        elif isinstance(e, CancelOwner):
            # only voices that have not started; in-flight ones play out
            kept = [item for item in self._pending if item[2].owner != e.owner]
            if len(kept) != len(self._pending):
                heapq.heapify(kept)
                self._pending = kept
        elif isinstance(e, SetParam):
            if e.name == "master_gain":
                self.master_gain.ramp_to(e.value, e.ramp)
            elif e.name == "reverb_mix":
                self.reverb_mix.ramp_to(e.value, e.ramp)
        elif isinstance(e, SwapImpulse):
            self.reverb.swap(e.impulse)

    def route_events(self, events: Iterable[object]) -> None:
        for e in events:
            self.route_event(e)

    ###########################################################################
    ##                             RENDERING                                 ##
    ###########################################################################

    @property
    def current_time(self) -> float:
        return self.frames_rendered / self.sr

    def num_pending_voices(self) -> int:
        return len(self._pending)

    def num_active_voices(self) -> int:
        return len(self._active)

    def _mix_voices(self, frames: int) -> np.ndarray:
        start = self.frames_rendered
        end = start + frames
        dry = np.zeros(frames, dtype=np.float32)

        while self._pending and self._pending[0][0] < end:
            self._active.append(heapq.heappop(self._pending)[2])

        excess = len(self._active) - self.max_voices
        if excess > 0:
            # steal the oldest
            self._active = self._active[excess:]
            self.stolen_voices += excess

        alive: List[_Voice] = []
        for v in self._active:
            # late voices (start already passed) begin at the block start
            offset = max(0, v.start - start) if v.pos == 0 else 0
            n = min(frames - offset, v.samples.shape[0] - v.pos)
            if n > 0:
                dry[offset:offset + n] += v.samples[v.pos:v.pos + n]
                v.pos += n
            if v.pos < v.samples.shape[0]:
                alive.append(v)
        self._active = alive
        return dry

    def render(self, frames: int) -> np.ndarray:
        """Advance the graph by `frames` samples; returns stereo float32 (frames, 2)."""
        dry = self._mix_voices(frames)

        mg = dry * self.master_gain.render(frames)
        self.tap.push(mg)

        comp = self.compressor.process(mg)
        wet = self.reverb.process(comp)
        mix = self.reverb_mix.render(frames)[:, None]
        out = comp[:, None] * (1.0 - mix) + wet * mix

        self.frames_rendered += frames
        return out.astype(np.float32)
