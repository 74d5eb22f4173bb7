"""
Output meter for the render path.

The audio callback calls update() once per block; the meter thread collects a
MeterReading every period and logs it. Besides levels it tracks how busy the
voice mixer was: the most voices sounding at once and the most queued ahead
of the audio clock.
"""
import threading
from dataclasses import dataclass

from beatlab.audio.dsp import lin_to_db


@dataclass(frozen=True)
class MeterReading:
    frames: int
    peak_pre_db: float
    peak_post_db: float
    rms_db: float
    limited_blocks: int
    voices: int            # most voices sounding in one block
    queued: int            # most voices waiting for their start time
    xruns: int

    @property
    def silent(self) -> bool:
        return self.frames == 0


class AudioMeter:

    def __init__(self):
        self._lock = threading.Lock()
        self._clear()

    def _clear(self):
        self._frames = 0
        self._sum_sq = 0.0
        self._peak_pre = 0.0
        self._peak_post = 0.0
        self._limited = 0
        self._voices = 0
        self._queued = 0
        self._xruns = 0

    def update(self, pre_peak: float, post_peak: float, block_rms: float, limited: bool,
               frames: int, voices: int = 0, queued: int = 0):
        # audio thread
        with self._lock:
            self._frames += frames
            self._sum_sq += block_rms * block_rms * frames
            self._peak_pre = max(self._peak_pre, pre_peak)
            self._peak_post = max(self._peak_post, post_peak)
            self._voices = max(self._voices, voices)
            self._queued = max(self._queued, queued)
            if limited:
                self._limited += 1

    def note_xrun(self):
        with self._lock:
            self._xruns += 1

    def read(self) -> MeterReading:
        """Reading for everything since the last read; starts a new window."""
        with self._lock:
            rms = (self._sum_sq / self._frames) ** 0.5 if self._frames else 0.0
            reading = MeterReading(
                frames=self._frames,
                peak_pre_db=lin_to_db(self._peak_pre),
                peak_post_db=lin_to_db(self._peak_post),
                rms_db=lin_to_db(rms),
                limited_blocks=self._limited,
                voices=self._voices,
                queued=self._queued,
                xruns=self._xruns,
            )
            self._clear()
            return reading
