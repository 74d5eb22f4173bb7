from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from beatlab.config import SCHEDULER_CONFIG
from beatlab.errors import ConfigurationError
from .durations import check_bpm

logger = logging.getLogger(__name__)

STEPS = SCHEDULER_CONFIG.steps
Grid = Dict[int, List[bool]]


def empty_grid(pad_ids: Iterable[int], steps: int = STEPS) -> Grid:
    return {int(pad_id): [False] * steps for pad_id in pad_ids}


def _pad_key(key) -> int:
    try:
        return int(key)
    except (TypeError, ValueError):
        raise ConfigurationError(f"grid key {key!r} is not a pad id") from None


def validate_grid(grid: Dict[Any, Any], pad_ids: Optional[Iterable[int]] = None, *,
                  coerce: bool = False, steps: int = STEPS) -> Grid:
    """
    Return a clean copy of `grid` (int pad id -> list of `steps` bools).

    Strict mode rejects rows of the wrong length and ids outside `pad_ids`
    with ConfigurationError. With `coerce`, short rows are padded with False,
    long rows truncated and unknown ids dropped; every repair is logged.
    """
    if not isinstance(grid, dict):
        raise ConfigurationError(f"grid must be a mapping, got {type(grid).__name__}")
    known = None if pad_ids is None else {int(p) for p in pad_ids}

    out: Grid = {}
    for key, row in grid.items():
        pad_id = _pad_key(key)
        if known is not None and pad_id not in known:
            if coerce:
                logger.warning("dropping grid row for unknown pad %d", pad_id)
                continue
            raise ConfigurationError(f"grid references unknown pad {pad_id}")
        if not isinstance(row, (list, tuple)):
            raise ConfigurationError(f"grid row for pad {pad_id} must be a list, got {type(row).__name__}")
        cells = [bool(v) for v in row]
        if len(cells) != steps:
            if not coerce:
                raise ConfigurationError(f"grid row for pad {pad_id} has {len(cells)} steps, expected {steps}")
            logger.warning("coercing grid row for pad %d from %d to %d steps", pad_id, len(cells), steps)
            cells = (cells + [False] * steps)[:steps]
        out[pad_id] = cells
    return out


@dataclass
class SequencerPattern:
    name: str
    bpm: float
    grid: Grid = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        self.bpm = check_bpm(self.bpm)
        self.grid = validate_grid(self.grid)

    def copy_grid(self) -> Grid:
        return copy.deepcopy(self.grid)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "bpm": self.bpm,
            "grid": {str(k): list(v) for k, v in self.grid.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, coerce: bool = False) -> "SequencerPattern":
        try:
            grid = validate_grid(data.get("grid", {}), coerce=coerce)
            return cls(id=str(data["id"]), name=str(data["name"]), bpm=data["bpm"], grid=grid)
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"malformed pattern: {e}") from None
