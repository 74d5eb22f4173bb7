"""
Composite loop pads.

A loop is a macro over the same scheduling primitive single hits use: every
sub-voice is its own buffer placed with `out.schedule()` at an absolute time
derived from the BPM at trigger time. Nothing here keeps state between
triggers.
"""
from typing import Callable, Dict, Optional, Sequence, Tuple
import numpy as np

from .pads import LoopKind
from .signals.osc import Waveform
from . import voices

LOOP_GAIN = 0.8

TRAP_KICKS = (            # (beat offset, Hz, decay, waveform)
    (0.0, 50.0, 0.6, Waveform.SINE),
    (1.5, 50.0, 0.6, Waveform.SINE),
    (2.5, 45.0, 0.8, Waveform.TRIANGLE),
    (3.25, 40.0, 0.4, Waveform.SQUARE),
)
DARK_CHORDS = ((144.16, 216.00), (128.29, 192.43))
RIFF = (110.0, 130.81, 164.81, 130.81)


class _LoopWriter:
    """Scales, caches and places the sub-voices of one loop trigger."""

    def __init__(self, out, start_time: float, bpm: float, rng: Optional[np.random.Generator]):
        self.out = out
        self.sr = int(out.sample_rate)
        self.t0 = float(start_time)
        self.beat = 60.0 / float(bpm)
        self.bar = 4.0 * self.beat
        self.rng = rng
        self.count = 0
        self._cache: Dict[Tuple, np.ndarray] = {}

    def buffer(self, key: Tuple, make: Callable[[], np.ndarray]) -> np.ndarray:
        buf = self._cache.get(key)
        if buf is None:
            buf = make() * LOOP_GAIN
            self._cache[key] = buf
        return buf

    def place(self, offset: float, samples: np.ndarray) -> None:
        self.out.schedule(self.t0 + offset, samples)
        self.count += 1

    def kick(self, offset: float, freq: float, decay: float, waveform: Waveform, distortion: bool = True):
        buf = self.buffer(("kick", freq, decay, waveform, distortion), lambda: voices.render_kick(
            freq, decay, decay, self.sr, waveform=waveform,
            drive=voices.KICK_DRIVE if distortion else None, bias=voices.KICK_BIAS))
        self.place(offset, buf)

    def pluck(self, offset: float, freq: float, duration: float):
        buf = self.buffer(("pluck", freq, duration), lambda: voices.render_pluck(freq, duration, self.sr))
        self.place(offset, buf)

    def hat(self, offset: float, decay: float):
        buf = self.buffer(("hat", decay), lambda: voices.render_hihat(decay, self.sr, rng=self.rng))
        self.place(offset, buf)

    def snare(self, offset: float, freq: float, decay: float):
        buf = self.buffer(("snare", freq, decay), lambda: voices.render_snare(freq, decay, self.sr, rng=self.rng))
        self.place(offset, buf)

    def chord(self, offset: float, freqs: Sequence[float], duration: float):
        for f in freqs:
            self.pluck(offset, f, duration)


def _trap(w: _LoopWriter):
    for i in range(32):
        w.hat(i * w.beat / 2.0, 0.03)
    for beat, f, decay, wave in TRAP_KICKS:
        w.kick(beat * w.beat, f, decay, wave)


def _dark_pad(w: _LoopWriter):
    w.kick(0.0, 35.0, 3.0, Waveform.TRIANGLE)
    w.kick(2 * w.bar, 30.0, 3.0, Waveform.TRIANGLE)
    w.chord(0.0, DARK_CHORDS[0], w.bar)
    w.chord(2 * w.bar, DARK_CHORDS[1], w.bar)


def _halftime(w: _LoopWriter):
    for i in range(16):
        if i % 4 == 0:
            w.kick(i * w.beat, 72.0, 0.3, Waveform.SAWTOOTH)
        elif i % 2 == 0:
            w.kick(i * w.beat, 108.0, 0.3, Waveform.SAWTOOTH)
    w.pluck(0.0, 144.0, 2 * w.bar)


def _pluck_riff(w: _LoopWriter):
    sixteenth = w.beat / 4.0
    for i in range(64):
        w.pluck(i * sixteenth, RIFF[i % len(RIFF)], sixteenth * 0.9)
    for i in range(16):
        if i % 4 == 0:
            w.kick(i * w.beat, 60.0, 0.5, Waveform.SINE, distortion=False)
        elif i % 4 == 2:
            w.snare(i * w.beat, 200.0, 0.2)


_LOOPS = {
    LoopKind.TRAP: _trap,
    LoopKind.DARK_PAD: _dark_pad,
    LoopKind.HALFTIME: _halftime,
    LoopKind.PLUCK_RIFF: _pluck_riff,
}


def schedule_loop(kind: LoopKind, start_time: float, bpm: float, out,
                  rng: Optional[np.random.Generator] = None) -> int:
    """Schedule every sub-voice of a 4-bar loop; returns how many were placed."""
    w = _LoopWriter(out, start_time, bpm, rng)
    _LOOPS[kind](w)
    return w.count
