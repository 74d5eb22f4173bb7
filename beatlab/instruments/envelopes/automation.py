import numpy as np
from enum import Enum, auto
from typing import List, Tuple
from .base import Envelope

_EPS = 1e-6


class RampKind(Enum):
    SET = auto()           # jump at the event time
    LINEAR = auto()        # linear from the previous event
    EXPONENTIAL = auto()   # exponential from the previous event


class Automation(Envelope):
    """
    Breakpoint automation lane, relative to the trigger time.

    Each ramp runs from the previous event's (time, value) to its own; the
    value holds after the last event. Exponential ramps need a non-zero start
    and keep its sign, so zero is replaced by a tiny epsilon.

        amp = Automation(0.0).linear_to(1.0, 0.002).exponential_to(0.001, 0.3)
    """

    def __init__(self, initial: float = 0.0):
        self.initial = float(initial)
        self._events: List[Tuple[RampKind, float, float]] = []

    def _add(self, kind: RampKind, value: float, t: float) -> "Automation":
        t = max(float(t), self.end_time())
        self._events.append((kind, t, float(value)))
        return self

    def set_at(self, value: float, t: float) -> "Automation":
        return self._add(RampKind.SET, value, t)

    def linear_to(self, value: float, t: float) -> "Automation":
        return self._add(RampKind.LINEAR, value, t)

    def exponential_to(self, value: float, t: float) -> "Automation":
        return self._add(RampKind.EXPONENTIAL, value, t)

    def end_time(self) -> float:
        return self._events[-1][1] if self._events else 0.0

    def render(self, frames: int, sr: int = 44100) -> np.ndarray:
        t = np.arange(frames, dtype=np.float64) / float(sr)
        out = np.full(frames, self.initial, dtype=np.float64)

        prev_t, prev_v = 0.0, self.initial
        for kind, when, value in self._events:
            seg = (t >= prev_t) & (t < when)
            if np.any(seg) and when > prev_t:
                x = (t[seg] - prev_t) / (when - prev_t)
                if kind is RampKind.LINEAR:
                    out[seg] = prev_v + (value - prev_v) * x
                elif kind is RampKind.EXPONENTIAL:
                    v0 = prev_v if abs(prev_v) > _EPS else np.copysign(_EPS, value)
                    v1 = value if abs(value) > _EPS else np.copysign(_EPS, v0)
                    if v0 * v1 > 0:
                        out[seg] = v0 * (v1 / v0) ** x
                    else:
                        out[seg] = prev_v
                else:
                    out[seg] = prev_v
            prev_t, prev_v = when, value
        out[t >= prev_t] = prev_v
        return out.astype(np.float32)
