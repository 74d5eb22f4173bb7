"""Shared fixtures: a hand-driven audio clock, a capturing voice output and a device-free engine."""
from __future__ import annotations

from typing import List, Tuple

import numpy as np
import pytest

from beatlab.audio.engine import AudioEngine
from beatlab.config import AudioConfig, ReverbConfig
from beatlab.instruments.predefined.kits import make_default_kit

TEST_SR = 8000


class FakeClock:
    """Audio clock the test advances by hand."""

    def __init__(self, t: float = 0.0):
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += dt


class CapturingOutput:
    """Stands in for a graph VoiceInput: records schedule() and cancel() calls."""

    def __init__(self, sample_rate: int = TEST_SR):
        self.sample_rate = sample_rate
        self.scheduled: List[Tuple[float, np.ndarray]] = []
        self.cancelled = 0

    def schedule(self, start_time, samples):
        self.scheduled.append((float(start_time), np.asarray(samples)))

    def cancel(self):
        self.cancelled += 1

    @property
    def times(self) -> List[float]:
        return [t for t, _ in self.scheduled]


class OutputFactory:
    """new_output() for loop banks; keeps every output it handed out."""

    def __init__(self):
        self.made: List[CapturingOutput] = []

    def __call__(self) -> CapturingOutput:
        self.made.append(CapturingOutput())
        return self.made[-1]


class FakeStream:
    def __init__(self):
        self.active = False
        self.starts = 0
        self.closed = False

    def start(self):
        self.active = True
        self.starts += 1

    def stop(self):
        self.active = False

    def abort(self):
        self.active = False

    def close(self):
        self.closed = True


class StreamFactory:
    def __init__(self):
        self.calls = 0
        self.streams: List[FakeStream] = []

    def __call__(self, samplerate, blocksize, channels, callback, latency="low"):
        self.calls += 1
        stream = FakeStream()
        self.streams.append(stream)
        return stream


class TriggerRecorder:
    """trigger(pad, when, bpm, out) callable that remembers every call."""

    def __init__(self):
        self.calls: List[Tuple[int, float, float]] = []

    def __call__(self, pad, when, bpm, out):
        self.calls.append((pad.id, when, bpm))

    def times(self, pad_id=None) -> List[float]:
        return [w for p, w, _ in self.calls if pad_id is None or p == pad_id]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def capture():
    return CapturingOutput()


@pytest.fixture
def outputs():
    return OutputFactory()


@pytest.fixture
def recorder():
    return TriggerRecorder()


@pytest.fixture
def kit():
    return make_default_kit()


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def stream_factory():
    return StreamFactory()


@pytest.fixture
def audio_config():
    return AudioConfig(sample_rate=TEST_SR, block_size=128, meter_period=0)


@pytest.fixture
def engine(audio_config, stream_factory, rng):
    eng = AudioEngine(audio_config, reverb=ReverbConfig(duration=0.2),
                      stream_factory=stream_factory, rng=rng)
    yield eng
    eng.close()
