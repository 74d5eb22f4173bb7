from dataclasses import dataclass, field
import numpy as np


@dataclass(frozen=True)
class ScheduleBuffer:
    """Play `samples` (mono float32) starting at absolute sample `start`."""
    owner: int
    start: int
    samples: np.ndarray = field(repr=False)


@dataclass(frozen=True)
class CancelOwner:
    """Drop every voice of `owner` that has not started rendering yet."""
    owner: int


@dataclass(frozen=True)
class SetParam:
    """Ramp a global graph parameter ("master_gain" or "reverb_mix")."""
    name: str
    value: float
    ramp: float = 0.010


@dataclass(frozen=True)
class SwapImpulse:
    """Replace the reverb impulse (shape (n, 2)); the graph crossfades."""
    impulse: np.ndarray = field(repr=False)
