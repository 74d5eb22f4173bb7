"""
Configuration
-------------
Constants for the audio graph, the scheduler and loop mode.
Everything here is fixed at construction time; only master gain and
reverb mix change at runtime (through the graph's parameter ramps).
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class AudioConfig:
    """Output stream and render-path settings"""
    sample_rate: int = 44100
    block_size: int = 256
    channels: int = 2
    pre_gain: float = 0.9            # headroom before the limiter
    limiter_drive: float = 1.15      # gentle safety
    meter_period: float = 1.0        # seconds between meter log lines
    max_voices: int = 256            # oldest voice is stolen beyond this
    master_gain: float = 0.8
    param_ramp: float = 0.010        # seconds for gain / mix changes
    latency: str = "low"


@dataclass(frozen=True)
class CompressorConfig:
    """Fixed aggressive settings for dense percussion"""
    threshold_db: float = -12.0
    knee_db: float = 10.0
    ratio: float = 12.0
    attack: float = 0.002
    release: float = 0.150


@dataclass(frozen=True)
class ReverbConfig:
    duration: float = 2.0            # impulse length in seconds (the "decay" control)
    decay_exponent: float = 2.0
    mix: float = 0.2                 # wet amount, dry = 1 - mix
    crossfade: float = 0.050         # seconds to fade between impulses
    min_duration: float = 0.1
    max_duration: float = 5.0


@dataclass(frozen=True)
class SchedulerConfig:
    lookahead: float = 0.100         # seconds scheduled ahead of the audio clock
    poll_interval: float = 0.025     # coarse control tick
    steps: int = 16
    default_bpm: int = 120
    min_bpm: int = 40
    max_bpm: int = 300
    start_delay: float = 0.050       # first step lands this far after start()


@dataclass(frozen=True)
class LoopConfig:
    hit_interval_steps: int = 4          # single-hit pads
    composite_interval_steps: int = 64   # composite loop pads (ids >= 16): four bars


# Default configuration instances
AUDIO_CONFIG = AudioConfig()
COMPRESSOR_CONFIG = CompressorConfig()
REVERB_CONFIG = ReverbConfig()
SCHEDULER_CONFIG = SchedulerConfig()
LOOP_CONFIG = LoopConfig()
