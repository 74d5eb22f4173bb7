"""
One-shot voice generators.

Each function renders a complete mono float32 buffer for one hit, starting at
sample 0. Envelopes reach silence inside the buffer and the last few
milliseconds are faded out, so a buffer can be dropped into the mix at any
sample without a click. Buffers are at most max(pitch decay, volume decay)
plus TAIL_MARGIN long. The effects render at their natural length and are
cut back to that bound with trim_to().
"""
from typing import Optional
import math
import numpy as np

from beatlab.audio.dsp import waveshape
from .envelopes.automation import Automation
from .signals.osc import Oscillator, WhiteNoise, Waveform
from .signals.filters import LOWPASS, HIGHPASS, BANDPASS, apply_filter, apply_swept_filter

TAIL_MARGIN = 0.1        # seconds of buffer after the longest decay
FADE_OUT = 0.003         # click-free end of every buffer
PITCH_FLOOR = 20.0       # kicks sweep down to this
KICK_DRIVE = 40.0
KICK_BIAS = 0.1
BASS_DRIVE = 15.0
BASS_BIAS = 0.2          # asymmetric clipping for bass
KICK_CLICK = 60.0        # Hz of extra pitch at the attack
KICK_CLICK_TIME = 0.010
SNARE_BODY_RANGE = (150.0, 250.0)


def _frames(seconds: float, sr: int) -> int:
    return max(1, int(math.ceil(seconds * sr)))


def _fade_tail(x: np.ndarray, sr: int) -> np.ndarray:
    n = min(x.shape[0], max(1, int(FADE_OUT * sr)))
    x[-n:] *= np.linspace(1.0, 0.0, n, dtype=np.float32)
    return x


def trim_to(x: np.ndarray, seconds: float, sr: int) -> np.ndarray:
    """Cut `x` to at most `seconds`, fading the new end."""
    n = _frames(seconds, sr)
    if x.shape[0] <= n:
        return x
    return _fade_tail(x[:n].copy(), sr)


def decay_envelope(peak: float, decay: float, floor: float = 0.001, attack: float = 0.001) -> Automation:
    """Near-instant attack, exponential fall to `floor` at `decay`, then to zero."""
    decay = max(decay, attack + 1e-4)
    return (Automation(0.0)
            .linear_to(peak, attack)
            .exponential_to(floor, decay)
            .linear_to(0.0, decay + 0.02))


def _noise(frames: int, rng: Optional[np.random.Generator]) -> np.ndarray:
    return WhiteNoise(rng).render(0.0, frames)


def render_kick(freq: float, pitch_decay: float, volume_decay: float, sr: int, *,
                waveform: Waveform = Waveform.SINE,
                drive: Optional[float] = None,
                bias: float = 0.0,
                click: float = 0.0,
                noise: bool = False,
                rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Pitch-swept oscillator: `freq` falls exponentially to PITCH_FLOOR over
    `pitch_decay` while the amplitude falls over `volume_decay`. `click` adds
    extra Hz on top of the sweep that dies away in about 10 ms.
    """
    n = _frames(max(pitch_decay, volume_decay) + TAIL_MARGIN, sr)
    target = min(PITCH_FLOOR, freq)
    f = Automation(freq).exponential_to(target, pitch_decay).render(n, sr).astype(np.float64)
    if click:
        t = np.arange(n) / sr
        f = f + click * np.exp(-t / (KICK_CLICK_TIME / 3.0))
    y = Oscillator(waveform).render(f, n, sr) * decay_envelope(1.0, volume_decay).render(n, sr)
    if noise:
        y = y + _noise(n, rng) * decay_envelope(0.3, min(0.02, volume_decay)).render(n, sr)
    if drive:
        y = waveshape(y, drive, bias)
    return _fade_tail(y.astype(np.float32), sr)


def render_snare(freq: float, volume_decay: float, sr: int, *,
                 clap: bool = False,
                 rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Triangle body (clamped to 150-250 Hz, ~150 ms) plus noise high-passed at
    1200 Hz. A clap drops the body and gives the noise three quick bursts.
    """
    n = _frames(volume_decay + TAIL_MARGIN, sr)
    noise = apply_filter(_noise(n, rng), HIGHPASS, 1200.0, sr)
    if clap:
        end = max(volume_decay, 0.031)
        env = (Automation(0.0)
               .linear_to(0.8, 0.001)
               .exponential_to(0.1, 0.010)
               .set_at(0.8, 0.015)
               .exponential_to(0.1, 0.025)
               .set_at(0.8, 0.030)
               .exponential_to(0.01, end)
               .linear_to(0.0, end + 0.02))
        y = noise * env.render(n, sr)
    else:
        body_f = float(np.clip(freq, *SNARE_BODY_RANGE))
        body_env = decay_envelope(0.5, min(0.15, volume_decay), floor=0.01)
        body = Oscillator(Waveform.TRIANGLE).render(body_f, n, sr) * body_env.render(n, sr)
        y = body + noise * decay_envelope(0.8, volume_decay, floor=0.01).render(n, sr)
    return _fade_tail(y.astype(np.float32), sr)


def render_hihat(volume_decay: float, sr: int, *,
                 rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Noise through a steep 8 kHz high-pass, at least 50 ms long."""
    decay = max(volume_decay, 0.05)
    n = _frames(decay + TAIL_MARGIN, sr)
    y = apply_filter(_noise(n, rng), HIGHPASS, 8000.0, sr, stages=2)
    y = y * decay_envelope(0.6, decay, floor=0.01).render(n, sr)
    return _fade_tail(y.astype(np.float32), sr)


def render_pluck(freq: float, duration: float, sr: int, *, gain: float = 0.4) -> np.ndarray:
    """
    Sawtooth through a resonant low-pass that closes from 6x to 0.8x the
    note over 70% of its length, plus a short octave sine for the pick.
    """
    duration = max(duration, 0.02)
    n = _frames(duration + TAIL_MARGIN, sr)
    cutoff = Automation(freq * 6.0).exponential_to(freq * 0.8, duration * 0.7).render(n, sr)
    saw = apply_swept_filter(Oscillator(Waveform.SAWTOOTH).render(freq, n, sr), LOWPASS, cutoff, sr, q=2.0)
    pick = Oscillator(Waveform.SINE).render(freq * 2.0, n, sr) * \
        Automation(0.5).linear_to(0.0, min(0.05, duration)).render(n, sr)
    amp = (Automation(0.0)
           .linear_to(gain, 0.005)
           .exponential_to(0.001, duration)
           .linear_to(0.0, duration + 0.02))
    y = (saw + pick) * amp.render(n, sr)
    return _fade_tail(y.astype(np.float32), sr)


# ---- fixed-length effects ----

def render_gun_cock(sr: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    n = _frames(0.15, sr)
    click = apply_filter(_noise(n, rng), BANDPASS, 2500.0, sr, q=1.0)
    click = click * decay_envelope(0.8, 0.1, floor=0.01).render(n, sr)
    tick = Oscillator(Waveform.TRIANGLE).render(1200.0, n, sr)
    tick = tick * decay_envelope(0.3, 0.05, floor=0.01).render(n, sr)
    return _fade_tail((click + tick).astype(np.float32), sr)


def render_gunshot(sr: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    n = _frames(1.0, sr)
    cutoff = Automation(3000.0).exponential_to(100.0, 0.4).render(n, sr)
    blast = apply_swept_filter(_noise(n, rng), LOWPASS, cutoff, sr, q=1.0)
    blast = waveshape(blast * decay_envelope(1.0, 0.8).render(n, sr), 100.0)
    boom = render_kick(60.0, 0.3, 0.3, sr, waveform=Waveform.SQUARE, drive=KICK_DRIVE)
    y = blast.astype(np.float32)
    y[:boom.shape[0]] += boom[:n]
    return _fade_tail(y, sr)


def render_tape_stop(sr: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Sawtooth and noise slowing to a halt over half a second."""
    n = _frames(0.6, sr)
    f = Automation(880.0).exponential_to(0.01, 0.5).render(n, sr)
    tone = Oscillator(Waveform.SAWTOOTH).render(f, n, sr) * Automation(0.5).linear_to(0.0, 0.55).render(n, sr)
    # noise played back at a falling rate
    rate = Automation(1.0).exponential_to(0.01, 0.5).render(n, sr).astype(np.float64)
    pos = np.minimum(np.cumsum(rate).astype(np.int64), n - 1)
    hiss = _noise(n, rng)[pos] * Automation(0.1).linear_to(0.0, 0.55).render(n, sr)
    return _fade_tail((tone + hiss).astype(np.float32), sr)


def render_scratch(sr: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    n = _frames(0.2, sr)
    sweep = Automation(800.0).linear_to(2000.0, 0.05).linear_to(500.0, 0.12).render(n, sr)
    y = apply_swept_filter(_noise(n, rng), BANDPASS, sweep, sr, q=8.0)
    y = y * decay_envelope(0.6, 0.15).render(n, sr)
    return _fade_tail(y.astype(np.float32), sr)


def render_zap(sr: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    return render_kick(100.0, 0.2, 0.2, sr, waveform=Waveform.SAWTOOTH, drive=KICK_DRIVE)
