"""
AI pattern generation boundary.

The generator is an opaque grid producer. Whatever it returns is checked
strictly here before anything touches the sequencer: a malformed grid raises
ConfigurationError and the caller keeps its previous pattern.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol

from beatlab.errors import ConfigurationError
from beatlab.instruments.pads import Kit
from beatlab.sequencing.durations import check_bpm
from beatlab.sequencing.pattern import validate_grid


@dataclass
class GeneratedPattern:
    grid: Dict[Any, List[bool]]
    bpm: float
    notes: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)


class PatternGenerator(Protocol):
    def generate_pattern(self, prompt: str, kit: Kit) -> GeneratedPattern: ...


def accept_generated(result: GeneratedPattern, kit: Kit, pad_ids=None) -> GeneratedPattern:
    """Validated copy of `result` (int pad ids, 16 bools per row, bpm in range)."""
    if not isinstance(result, GeneratedPattern):
        raise ConfigurationError(f"generator returned {type(result).__name__}, expected GeneratedPattern")
    ids = list(pad_ids) if pad_ids is not None else list(kit.pad_ids)
    grid = validate_grid(result.grid, ids)
    bpm = check_bpm(result.bpm)
    return GeneratedPattern(grid=grid, bpm=bpm, notes=result.notes, extra=dict(result.extra))
