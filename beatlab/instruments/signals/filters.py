"""
Biquad filters (RBJ cookbook, the same responses as a Web Audio BiquadFilter).
Static filters run through scipy's sosfilt; swept filters recompute the
coefficients every `chunk` samples and carry the filter state across.
"""
import math
from typing import Union
import numpy as np
from scipy import signal as sps

Cutoff = Union[float, np.ndarray]

LOWPASS = "lowpass"
HIGHPASS = "highpass"
BANDPASS = "bandpass"

_BUTTERWORTH_Q = 1.0 / math.sqrt(2.0)


def biquad_sos(kind: str, cutoff: float, sr: int, q: float = _BUTTERWORTH_Q) -> np.ndarray:
    """One second-order section, shape (1, 6)."""
    fc = float(np.clip(cutoff, 10.0, 0.45 * sr))
    w0 = 2.0 * math.pi * fc / sr
    cw, sw = math.cos(w0), math.sin(w0)
    alpha = sw / (2.0 * max(float(q), 1e-3))

    if kind == LOWPASS:
        b = ((1 - cw) / 2, 1 - cw, (1 - cw) / 2)
    elif kind == HIGHPASS:
        b = ((1 + cw) / 2, -(1 + cw), (1 + cw) / 2)
    elif kind == BANDPASS:
        b = (alpha, 0.0, -alpha)
    else:
        raise ValueError(f"unknown filter kind: {kind}")
    a0, a1, a2 = 1 + alpha, -2 * cw, 1 - alpha
    return np.array([[b[0] / a0, b[1] / a0, b[2] / a0, 1.0, a1 / a0, a2 / a0]], dtype=np.float64)


def apply_filter(x: np.ndarray, kind: str, cutoff: float, sr: int,
                 q: float = _BUTTERWORTH_Q, stages: int = 1) -> np.ndarray:
    """Fixed-cutoff filter; `stages` cascades identical biquads (12 dB/oct each)."""
    sos = np.repeat(biquad_sos(kind, cutoff, sr, q), max(1, int(stages)), axis=0)
    return sps.sosfilt(sos, x).astype(np.float32)


def apply_swept_filter(x: np.ndarray, kind: str, cutoff: Cutoff, sr: int,
                       q: float = _BUTTERWORTH_Q, chunk: int = 64) -> np.ndarray:
    """
    Time-varying filter: `cutoff` is a per-sample curve (or a constant).
    Coefficients follow the curve value at the start of each chunk.
    """
    n = x.shape[0]
    fc = np.broadcast_to(np.asarray(cutoff, dtype=np.float64), (n,))
    out = np.empty(n, dtype=np.float64)
    zi = np.zeros((1, 2), dtype=np.float64)
    for i in range(0, n, chunk):
        sos = biquad_sos(kind, fc[i], sr, q)
        out[i:i + chunk], zi = sps.sosfilt(sos, x[i:i + chunk], zi=zi)
    return out.astype(np.float32)
