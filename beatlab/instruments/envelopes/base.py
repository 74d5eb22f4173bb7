from typing import Protocol
import numpy as np

class Envelope(Protocol):
    """A time-varying control value, starting at the trigger time."""
    def render(self, frames: int, sr: int = 44100) -> np.ndarray:
        """Return envelope values for `frames` samples from the trigger time (float32)."""
        ...
    def end_time(self) -> float:
        """Time (seconds from trigger) of the last scheduled change."""
        ...
