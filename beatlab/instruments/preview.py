"""
Pad previews outside the live graph: plot a rendered voice or play it
straight to the default device, e.g. while tuning a pad's decays.
"""
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

from beatlab.instruments.envelopes.base import Envelope
from beatlab.instruments.pads import PadConfig
from beatlab.instruments.synthesis import render_pad


def plot_samples(y: np.ndarray, sr: int, title: str, ylabel: str = "Amplitude", ax=None):
    t = np.arange(len(y)) / sr
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 3))
    else:
        fig = ax.figure
    ax.plot(t, y, lw=1.2)
    ax.set_xlabel("Time [s]")
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    return fig, ax


def plot_envelope(env: Envelope, seconds: Optional[float] = None, sr: int = 44100, ax=None):
    """Plot an envelope up to `seconds` (default: its last change plus 10%)."""
    if seconds is None:
        seconds = max(env.end_time() * 1.1, 0.01)
    frames = int(seconds * sr)
    return plot_samples(env.render(frames, sr), sr,
                        f"{env.__class__.__name__} ({seconds:.3f}s @ {sr}Hz)", ylabel="Value", ax=ax)


def plot_pad(pad: PadConfig, pitch_bend: float = 0.0, sr: int = 44100,
             rng: Optional[np.random.Generator] = None, ax=None):
    y = render_pad(pad, pitch_bend, sr, rng=rng)
    return plot_samples(y, sr, f"{pad.label} ({pad.sound_type.value}, {len(y) / sr:.2f}s)", ax=ax)


def play_pad(pad: PadConfig, pitch_bend: float = 0.0, sr: int = 44100, blocking: bool = True,
             rng: Optional[np.random.Generator] = None) -> np.ndarray:
    import sounddevice as sd

    sig = render_pad(pad, pitch_bend, sr, rng=rng).astype(np.float32)
    max_abs = float(np.max(np.abs(sig))) if sig.size else 0.0
    if max_abs > 1.0:
        sig /= max_abs
    sd.play(sig, samplerate=sr, blocking=blocking)
    return sig
