from __future__ import annotations
import math
from typing import Optional
import numpy as np


def make_impulse_response(sr: int, duration: float, decay_exponent: float = 2.0,
                          rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Two channels of white noise under (1 - t/duration)^decay_exponent.
    Returns float32 of shape (n, 2).
    """
    rng = rng if rng is not None else np.random.default_rng()
    n = max(1, int(sr * float(duration)))
    t = np.arange(n, dtype=np.float64) / n
    env = (1.0 - t) ** float(decay_exponent)
    noise = rng.uniform(-1.0, 1.0, size=(n, 2))
    return (noise * env[:, None]).astype(np.float32)


class PartitionedConvolver:
    """
    Uniformly partitioned overlap-save convolution, mono in -> multi-channel out.
    Arbitrary input lengths are accepted; the output lags the input by one
    partition (`block` samples).
    """

    def __init__(self, impulse: np.ndarray, block: int):
        ir = np.asarray(impulse, dtype=np.float64)
        if ir.ndim == 1:
            ir = ir[:, None]
        self.block = B = int(block)
        self.channels = ir.shape[1]

        K = max(1, math.ceil(ir.shape[0] / B))
        padded = np.zeros((K * B, self.channels), dtype=np.float64)
        padded[:ir.shape[0]] = ir
        parts = padded.reshape(K, B, self.channels).transpose(0, 2, 1)      # (K, C, B)
        self._H = np.fft.rfft(parts, n=2 * B, axis=-1)                        # (K, C, B+1)

        self._fdl = np.zeros((K, B + 1), dtype=np.complex128)
        self._prev = np.zeros(B, dtype=np.float64)
        self._in = np.zeros(0, dtype=np.float64)
        self._out = np.zeros((B, self.channels), dtype=np.float32)

    def _process_block(self, x: np.ndarray) -> np.ndarray:
        B = self.block
        X = np.fft.rfft(np.concatenate((self._prev, x)))
        self._prev = x
        self._fdl = np.roll(self._fdl, 1, axis=0)
        self._fdl[0] = X
        Y = np.einsum("kf,kcf->cf", self._fdl, self._H)
        y = np.fft.irfft(Y, n=2 * B, axis=-1)[:, B:]
        return y.T.astype(np.float32)

    def process(self, x: np.ndarray) -> np.ndarray:
        n = int(x.shape[0])
        self._in = np.concatenate((self._in, np.asarray(x, dtype=np.float64)))
        blocks = []
        B = self.block
        while self._in.shape[0] >= B:
            blocks.append(self._process_block(self._in[:B]))
            self._in = self._in[B:]
        if blocks:
            self._out = np.concatenate([self._out] + blocks, axis=0)
        y, self._out = self._out[:n], self._out[n:]
        return y


class Reverb:
    """
    Convolution reverb whose impulse can be swapped while running.
    The old and new convolvers both run during a short linear crossfade.
    """

    def __init__(self, impulse: np.ndarray, block: int, sr: int, crossfade: float = 0.05):
        self.block = int(block)
        self._conv = PartitionedConvolver(impulse, self.block)
        self._old: Optional[PartitionedConvolver] = None
        self._fade_len = max(1, int(round(crossfade * sr)))
        self._fade_pos = 0

    @property
    def crossfading(self) -> bool:
        return self._old is not None

    def swap(self, impulse: np.ndarray) -> None:
        self._old = self._conv
        self._conv = PartitionedConvolver(impulse, self.block)
        self._fade_pos = 0

    def process(self, x: np.ndarray) -> np.ndarray:
        y = self._conv.process(x)
        if self._old is None:
            return y

        y_old = self._old.process(x)
        n = x.shape[0]
        r = np.clip((self._fade_pos + np.arange(1, n + 1)) / self._fade_len, 0.0, 1.0).astype(np.float32)
        self._fade_pos += n
        if self._fade_pos >= self._fade_len:
            self._old = None
        return y_old * (1.0 - r)[:, None] + y * r[:, None]
