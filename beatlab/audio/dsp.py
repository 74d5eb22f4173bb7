import math
import numpy as np

from beatlab.config import CompressorConfig

_EPS = 1e-12
_DEG = math.pi / 180.0


def lin_to_db(x: float) -> float:
    return 20.0 * math.log10(max(_EPS, x))

def soft_clip(x: np.ndarray, drive: float = 1.5) -> np.ndarray:
    # Smooth limiter. drive ~ 1.2–2.0
    return np.tanh(drive * x) / np.tanh(drive)

def waveshape(x: np.ndarray, amount: float, bias: float = 0.0) -> np.ndarray:
    """
    Warm saturation curve (3+k)·x·20°/(π + k|x|), input clamped to [-1, 1].
    A non-zero `bias` shifts the operating point so the two half-waves
    saturate differently; the DC it introduces is removed.
    """
    k = float(amount)

    def curve(v):
        return (3.0 + k) * v * 20.0 * _DEG / (math.pi + k * np.abs(v))

    shifted = np.clip(x + bias, -1.0, 1.0)
    return (curve(shifted) - curve(np.float64(bias))).astype(np.float32)


class RampedParam:
    """
    A global parameter written by the control thread and read by the render path.
    Every change is a linear ramp over at least one sample, never a jump.
    """

    def __init__(self, value: float, sr: int):
        self.sr = int(sr)
        self.value = float(value)
        self.target = float(value)
        self._step = 0.0
        self._left = 0

    def ramp_to(self, target: float, seconds: float) -> None:
        n = max(1, int(round(float(seconds) * self.sr)))
        self.target = float(target)
        self._step = (self.target - self.value) / n
        self._left = n

    def render(self, frames: int) -> np.ndarray:
        out = np.empty(frames, dtype=np.float32)
        if self._left <= 0:
            out.fill(self.value)
            return out

        n = min(frames, self._left)
        seg = self.value + self._step * np.arange(1, n + 1, dtype=np.float64)
        out[:n] = seg
        self._left -= n
        self.value = self.target if self._left == 0 else float(seg[-1])
        out[n:] = self.value
        return out


class Compressor:
    """
    Feed-forward soft-knee compressor (mono).
    Static curve on the instantaneous level, attack/release smoothing on the
    gain reduction in dB.
    """

    def __init__(self, settings: CompressorConfig, sr: int):
        self.settings = settings
        self.sr = int(sr)
        self._att = math.exp(-1.0 / max(1.0, settings.attack * sr))
        self._rel = math.exp(-1.0 / max(1.0, settings.release * sr))
        self._gr = 0.0                # current gain reduction in dB (<= 0)

    @property
    def reduction_db(self) -> float:
        return self._gr

    def gain_computer(self, level_db: np.ndarray) -> np.ndarray:
        T = self.settings.threshold_db
        W = self.settings.knee_db
        slope = 1.0 / self.settings.ratio - 1.0
        over = level_db - T

        gr = np.zeros_like(over)
        if W > 0:
            knee = np.abs(2.0 * over) <= W
            gr[knee] = slope * (over[knee] + W / 2.0) ** 2 / (2.0 * W)
            hard = 2.0 * over > W
        else:
            hard = over > 0
        gr[hard] = slope * over[hard]
        return gr

    def process(self, x: np.ndarray) -> np.ndarray:
        if x.size == 0:
            return x
        level = 20.0 * np.log10(np.maximum(np.abs(x).astype(np.float64), _EPS))
        target = self.gain_computer(level)

        smoothed = np.empty(target.shape[0], dtype=np.float64)
        g = self._gr
        att, rel = self._att, self._rel
        for i, t in enumerate(target.tolist()):
            coef = att if t < g else rel
            g = coef * g + (1.0 - coef) * t
            smoothed[i] = g
        self._gr = g
        return (x * np.power(10.0, smoothed / 20.0)).astype(np.float32)

    def reset(self) -> None:
        self._gr = 0.0
