from typing import Protocol, Union
import numpy as np

Frequency = Union[float, np.ndarray]

class Signal(Protocol):
    """A stateful, unlimited-time signal generator."""
    def render(self, freq: Frequency, frames: int, sr: int = 44100) -> np.ndarray:
        """
        Return `frames` samples (float32 mono), advancing internal state.
        `freq` is a constant or a per-sample frequency curve.
        """
        ...

    def reset(self) -> None:
        """Reset internal state/phase."""
        ...
