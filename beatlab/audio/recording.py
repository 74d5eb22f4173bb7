"""
Recording tap on the master-gain node.

The render thread only pushes blocks into a bounded queue; a writer thread
hands them to a RecordingSink. Encoding is the sink's business: the core never
encodes audio itself. WavFileSink is the default collaborator.
"""
from __future__ import annotations

import logging
import queue
import threading
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import numpy as np

from beatlab.errors import BeatLabError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordedTake:
    """A playable audio resource handed back by a sink."""
    uri: str
    size_bytes: int
    frames: int = 0


class RecordingSink(Protocol):
    def open(self, sr: int, channels: int) -> None: ...
    def write(self, block: np.ndarray) -> None:
        """Consume one float32 block of shape (frames, channels)."""
        ...
    def close(self) -> RecordedTake: ...


class WavFileSink:
    """16-bit PCM WAV writer."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._wav: Optional[wave.Wave_write] = None
        self._frames = 0

    def open(self, sr: int, channels: int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._wav = wave.open(str(self.path), mode="wb")
        self._wav.setnchannels(int(channels))
        self._wav.setsampwidth(2)  # 16-bit
        self._wav.setframerate(int(sr))
        self._frames = 0

    def write(self, block: np.ndarray) -> None:
        if self._wav is None:
            return
        blk = np.clip(block, -1.0, 1.0)
        self._wav.writeframes((blk * 32767.0).astype(np.int16).ravel(order="C").tobytes())
        self._frames += int(block.shape[0])

    def close(self) -> RecordedTake:
        if self._wav is not None:
            try:
                self._wav.close()
            finally:
                self._wav = None
        size = self.path.stat().st_size if self.path.exists() else 0
        return RecordedTake(uri=self.path.resolve().as_uri(), size_bytes=size, frames=self._frames)


class RecordingTap:
    """
    Output tap fed by the render thread. Inactive until a sink is attached.
    Blocks are dropped (never waited on) if the writer falls behind.
    """

    def __init__(self, sr: int, channels: int = 2, maxsize: int = 256):
        self.sr = int(sr)
        self.channels = int(channels)
        self._queue: "queue.Queue[np.ndarray]" = queue.Queue(maxsize=maxsize)
        self._sink: Optional[RecordingSink] = None
        self._run = False
        self._thread: Optional[threading.Thread] = None
        self.dropped_blocks = 0

    @property
    def active(self) -> bool:
        return self._run

    def push(self, block: np.ndarray) -> None:
        # called from the audio callback
        if not self._run:
            return
        if block.ndim == 1:
            block = np.repeat(block[:, None], self.channels, axis=1)
        try:
            self._queue.put_nowait(block.astype(np.float32, copy=True))
        except queue.Full:
            self.dropped_blocks += 1

    def attach(self, sink: RecordingSink) -> None:
        if self._run:
            raise BeatLabError("recording already in progress")
        sink.open(self.sr, self.channels)
        self._sink = sink
        self.dropped_blocks = 0
        self._run = True
        self._thread = threading.Thread(target=self._writer, name="RecordingWriterThread")
        self._thread.start()
        logger.info("Recording started (%d Hz, %d ch)", self.sr, self.channels)

    def detach(self) -> Optional[RecordedTake]:
        if self._sink is None:
            return None
        self._run = False
        if self._thread:
            self._thread.join()
            self._thread = None
        sink, self._sink = self._sink, None
        take = sink.close()
        if self.dropped_blocks:
            logger.warning("Recording dropped %d blocks", self.dropped_blocks)
        logger.info("Recording finished: %s (%d bytes)", take.uri, take.size_bytes)
        return take

    def _writer(self):
        # drain until told to stop AND queue is empty
        while self._run or not self._queue.empty():
            try:
                data = self._queue.get(timeout=0.25)
            except queue.Empty:
                continue
            try:
                self._sink.write(data)
            except Exception:
                logger.exception("Recording write failed, stopping tap")
                self._run = False
