from __future__ import annotations


class BeatLabError(Exception):
    """Base error for the drum machine core."""


class ConfigurationError(BeatLabError):
    """Raised when a pad, kit or pattern has a malformed shape or value."""


class ResourceUnavailable(BeatLabError):
    """Raised when the audio output device is busy, missing or denied."""


class ArrangementError(BeatLabError):
    """Raised when a song arrangement cannot be played."""


class PatternNotFound(ArrangementError):
    """A section references a pattern id that does not resolve."""

    def __init__(self, section_name: str, pattern_id: str):
        self.section_name = section_name
        self.pattern_id = pattern_id
        super().__init__(f"Section '{section_name}' references missing pattern '{pattern_id}'")


class SchedulingOverrun(BeatLabError):
    """
    A control tick arrived after steps were already due.
    Recoverable: the overdue steps are scheduled immediately.
    """

    def __init__(self, late_by: float, steps: int):
        self.late_by = float(late_by)
        self.steps = int(steps)
        super().__init__(f"Scheduler tick late by {self.late_by * 1000.0:.1f} ms ({self.steps} overdue steps)")
