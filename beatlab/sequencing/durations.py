from beatlab.config import SCHEDULER_CONFIG
from beatlab.errors import ConfigurationError

STEPS_PER_BEAT = 4       # 16th-note grid
BEATS_PER_BAR = 4


def beat_duration(bpm: float) -> float:
    return 60.0 / float(bpm)

def step_duration(bpm: float, steps_per_beat: int = STEPS_PER_BEAT) -> float:
    return beat_duration(bpm) / steps_per_beat

def bar_duration(bpm: float) -> float:
    return beat_duration(bpm) * BEATS_PER_BAR

def steps_to_seconds(steps: float, bpm: float) -> float:
    return float(steps) * step_duration(bpm)


def check_bpm(bpm, lo: float = SCHEDULER_CONFIG.min_bpm, hi: float = SCHEDULER_CONFIG.max_bpm) -> float:
    try:
        value = float(bpm)
    except (TypeError, ValueError):
        raise ConfigurationError(f"bpm must be a number, got {bpm!r}") from None
    if not lo <= value <= hi:
        raise ConfigurationError(f"bpm {value:g} out of range [{lo}, {hi}]")
    return value
