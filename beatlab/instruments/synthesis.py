"""
Pad -> audio.

synthesize() is the one entry point the schedulers call: single-hit pads are
rendered to a buffer and scheduled once, composite pads expand into their
sub-voices. Rendering happens on the control thread; the render thread only
mixes finished buffers.
"""
from typing import List, Optional, Protocol, Tuple
import logging
import numpy as np

from .pads import PadConfig, SoundType, FxKind
from . import voices
from .loops import schedule_loop

logger = logging.getLogger(__name__)


class VoiceOutput(Protocol):
    sample_rate: int

    def schedule(self, start_time: float, samples: np.ndarray) -> None:
        ...


def bend(freq: float, semitones: float) -> float:
    return float(freq) * 2.0 ** (float(semitones) / 12.0)


_FX = {
    FxKind.GUN_COCK: voices.render_gun_cock,
    FxKind.GUNSHOT: voices.render_gunshot,
    FxKind.TAPE_STOP: voices.render_tape_stop,
    FxKind.SCRATCH: voices.render_scratch,
    FxKind.ZAP: voices.render_zap,
}


def render_pad(pad: PadConfig, pitch_bend: float, sample_rate: int,
               rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Buffer for one single-hit pad. Composite pads are mixed down offline."""
    if pad.is_composite:
        offline = OfflineOutput(sample_rate)
        schedule_loop(pad.loop_kind, 0.0, offline.bpm, offline, rng=rng)
        return offline.mixdown()

    sr = int(sample_rate)
    f = bend(pad.base_frequency, pitch_bend)
    st = pad.sound_type

    if st is SoundType.KICK:
        return voices.render_kick(
            f, pad.pitch_decay, pad.volume_decay, sr,
            waveform=pad.waveform,
            drive=voices.KICK_DRIVE if pad.distortion else None,
            bias=voices.KICK_BIAS,
            click=voices.KICK_CLICK,
            noise=pad.noise, rng=rng)
    if st is SoundType.BASS:
        return voices.render_kick(
            f, pad.pitch_decay, pad.volume_decay, sr,
            waveform=pad.waveform,
            drive=voices.BASS_DRIVE if pad.distortion else None,
            bias=voices.BASS_BIAS,
            noise=pad.noise, rng=rng)
    if st is SoundType.SNARE:
        return voices.render_snare(f, pad.volume_decay, sr, clap=pad.clap, rng=rng)
    if st is SoundType.HIHAT:
        return voices.render_hihat(pad.volume_decay, sr, rng=rng)
    if st is SoundType.SYNTH:
        return voices.render_pluck(f, pad.volume_decay, sr)
    y = _FX[pad.fx_kind](sr, rng)
    return voices.trim_to(y, max(pad.pitch_decay, pad.volume_decay) + voices.TAIL_MARGIN, sr)


def synthesize(pad: PadConfig, start_time: float, pitch_bend: float, out: VoiceOutput, *,
               bpm: float = 120.0, rng: Optional[np.random.Generator] = None) -> None:
    """Schedule `pad` on `out` at `start_time` (audio clock seconds)."""
    if pad.is_composite:
        count = schedule_loop(pad.loop_kind, start_time, bpm, out, rng=rng)
        logger.debug("pad %d (%s loop): %d sub-voices at %.3fs", pad.id, pad.loop_kind.value, count, start_time)
        return
    out.schedule(start_time, render_pad(pad, pitch_bend, out.sample_rate, rng=rng))


class OfflineOutput:
    """Collects scheduled buffers and mixes them into one array (previews, tests)."""

    def __init__(self, sample_rate: int, bpm: float = 120.0):
        self.sample_rate = int(sample_rate)
        self.bpm = float(bpm)
        self.scheduled: List[Tuple[float, np.ndarray]] = []

    def schedule(self, start_time: float, samples: np.ndarray) -> None:
        self.scheduled.append((float(start_time), np.asarray(samples, dtype=np.float32)))

    def mixdown(self) -> np.ndarray:
        if not self.scheduled:
            return np.zeros(0, dtype=np.float32)
        t0 = min(t for t, _ in self.scheduled)
        starts = [int(round((t - t0) * self.sample_rate)) for t, _ in self.scheduled]
        length = max(s + buf.shape[0] for s, (_, buf) in zip(starts, self.scheduled))
        mix = np.zeros(length, dtype=np.float32)
        for s, (_, buf) in zip(starts, self.scheduled):
            mix[s:s + buf.shape[0]] += buf
        return mix
