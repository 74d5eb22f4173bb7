from enum import Enum
from typing import Optional
import numpy as np
from scipy import signal as sps
from .base import Signal, Frequency


class Waveform(Enum):
    SINE = "sine"
    SQUARE = "square"
    SAWTOOTH = "sawtooth"
    TRIANGLE = "triangle"


class Oscillator(Signal):
    """
    Phase-accumulating oscillator (naive, aliased; voices low-pass where it matters).
    Accepts a per-sample frequency curve so pitch envelopes stay phase-continuous.
    """
    def __init__(self, waveform: Waveform = Waveform.SINE, phase: float = 0.0, gain: float = 1.0):
        self.waveform = Waveform(waveform)
        self.gain = float(gain)
        self.phase = float(phase) % 1.0  # phase in cycles, [0,1)

    def render(self, freq: Frequency, frames: int, sr: int = 44100) -> np.ndarray:
        if frames <= 0:
            return np.zeros(0, dtype=np.float32)
        f = np.broadcast_to(np.asarray(freq, dtype=np.float64), (frames,))
        # phase at the start of each sample, in cycles
        cycles = self.phase + np.concatenate(([0.0], np.cumsum(f[:-1]))) / sr
        self.phase = float((cycles[-1] + f[-1] / sr) % 1.0)
        theta = 2.0 * np.pi * cycles

        if self.waveform is Waveform.SINE:
            out = np.sin(theta)
        elif self.waveform is Waveform.SQUARE:
            out = sps.square(theta)
        elif self.waveform is Waveform.SAWTOOTH:
            out = sps.sawtooth(theta)
        else:
            out = sps.sawtooth(theta, width=0.5)
        return (out * self.gain).astype(np.float32)

    def reset(self) -> None:
        self.phase = 0.0


class WhiteNoise(Signal):
    """Uniform white noise in [-1, 1]; ignores frequency."""
    def __init__(self, rng: Optional[np.random.Generator] = None, gain: float = 1.0):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.gain = float(gain)

    def render(self, freq: Frequency, frames: int, sr: int = 44100) -> np.ndarray:
        return (self.rng.uniform(-1.0, 1.0, frames) * self.gain).astype(np.float32)

    def reset(self) -> None:
        pass
