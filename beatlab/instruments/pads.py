"""
Pad and kit configuration.

A PadConfig is frozen: changing a pad means building a new one (kit load or
the "configure pad" tool), which re-runs validation. Everything a voice needs
to pick its generator (fx kind, clap flag, composite loop kind) is resolved
here once, never re-parsed from the label on a trigger.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from beatlab.errors import ConfigurationError
from .signals.osc import Waveform

SINGLE_HIT_PADS = 16          # ids 0..15 are single hits
COMPOSITE_PAD_BASE = 16       # ids >= 16 are composite multi-bar loops

MIN_DECAY = 0.001
MAX_DECAY = 10.0
MAX_FREQUENCY = 20000.0


class SoundType(Enum):
    KICK = "kick"
    SNARE = "snare"
    HIHAT = "hihat"
    BASS = "bass"
    SYNTH = "synth"
    FX = "fx"


class FxKind(Enum):
    GUN_COCK = "gun_cock"
    GUNSHOT = "gunshot"
    TAPE_STOP = "tape_stop"
    SCRATCH = "scratch"
    ZAP = "zap"

    @classmethod
    def from_label(cls, label: str) -> "FxKind":
        text = label.lower()
        if "gun" in text and "cock" in text:
            return cls.GUN_COCK
        if "blast" in text or "gun" in text:
            return cls.GUNSHOT
        if "tape stop" in text:
            return cls.TAPE_STOP
        if "scratch" in text:
            return cls.SCRATCH
        return cls.ZAP


class LoopKind(Enum):
    TRAP = "trap"
    DARK_PAD = "dark_pad"
    HALFTIME = "halftime"
    PLUCK_RIFF = "pluck_riff"

    @classmethod
    def for_pad(cls, pad_id: int) -> "LoopKind":
        kinds = list(cls)
        return kinds[(int(pad_id) - COMPOSITE_PAD_BASE) % len(kinds)]


def _enum(enum_cls, value, what: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ConfigurationError(f"invalid {what} {value!r} (expected one of: {allowed})") from None


@dataclass(frozen=True)
class PadConfig:
    id: int
    key_trigger: str
    label: str
    color: str = "bg-gray-600"
    sound_type: SoundType = SoundType.KICK
    base_frequency: float = 60.0      # Hz
    pitch_decay: float = 0.3          # seconds
    volume_decay: float = 0.3         # seconds
    waveform: Waveform = Waveform.SINE
    noise: bool = False               # mix in noise
    distortion: bool = False          # waveshaping
    fx_kind: Optional[FxKind] = None  # FX pads: resolved from the label when not given

    clap: bool = field(init=False, default=False)
    loop_kind: Optional[LoopKind] = field(init=False, default=None)

    def __post_init__(self):
        set_ = object.__setattr__
        try:
            set_(self, "id", int(self.id))
            set_(self, "base_frequency", float(self.base_frequency))
            set_(self, "pitch_decay", float(self.pitch_decay))
            set_(self, "volume_decay", float(self.volume_decay))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"pad {self.id!r}: non-numeric parameter ({e})") from None
        set_(self, "sound_type", _enum(SoundType, self.sound_type, "sound type"))
        set_(self, "waveform", _enum(Waveform, self.waveform, "waveform"))
        set_(self, "label", str(self.label))
        set_(self, "noise", bool(self.noise))
        set_(self, "distortion", bool(self.distortion))

        if self.id < 0:
            raise ConfigurationError(f"pad id must be >= 0, got {self.id}")
        if not isinstance(self.key_trigger, str) or len(self.key_trigger) != 1:
            raise ConfigurationError(f"pad {self.id}: key trigger must be a single character, got {self.key_trigger!r}")
        set_(self, "key_trigger", self.key_trigger.upper())
        if not 0.0 < self.base_frequency <= MAX_FREQUENCY:
            raise ConfigurationError(f"pad {self.id}: base frequency {self.base_frequency} Hz out of range")
        for name in ("pitch_decay", "volume_decay"):
            value = getattr(self, name)
            if not MIN_DECAY <= value <= MAX_DECAY:
                raise ConfigurationError(f"pad {self.id}: {name} {value}s out of range [{MIN_DECAY}, {MAX_DECAY}]")

        if self.sound_type is SoundType.FX:
            kind = FxKind.from_label(self.label) if self.fx_kind is None else _enum(FxKind, self.fx_kind, "fx kind")
            set_(self, "fx_kind", kind)
        else:
            set_(self, "fx_kind", None)
        set_(self, "clap", self.sound_type is SoundType.SNARE and "clap" in self.label.lower())
        set_(self, "loop_kind", LoopKind.for_pad(self.id) if self.id >= COMPOSITE_PAD_BASE else None)

    @property
    def is_composite(self) -> bool:
        return self.loop_kind is not None

    def replace(self, **changes) -> "PadConfig":
        if "label" in changes and "fx_kind" not in changes:
            changes["fx_kind"] = None
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "key_trigger": self.key_trigger,
            "label": self.label,
            "color": self.color,
            "sound_type": self.sound_type.value,
            "base_frequency": self.base_frequency,
            "pitch_decay": self.pitch_decay,
            "volume_decay": self.volume_decay,
            "waveform": self.waveform.value,
            "noise": self.noise,
            "distortion": self.distortion,
            "fx_kind": self.fx_kind.value if self.fx_kind else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PadConfig":
        d = normalize_pad_fields(data)
        try:
            return cls(**d)
        except TypeError as e:
            raise ConfigurationError(f"malformed pad config: {e}") from None


# camelCase names used by older saved kits and by the pad-configuration tool
_ALIASES = {
    "padId": "id",
    "keyTrigger": "key_trigger",
    "soundType": "sound_type",
    "baseFrequency": "base_frequency",
    "pitchDecay": "pitch_decay",
    "volumeDecay": "volume_decay",
    "fxKind": "fx_kind",
}
_FIELDS = {f.name for f in dataclasses.fields(PadConfig) if f.init}


def normalize_pad_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map aliases onto field names and drop keys PadConfig does not know."""
    out: Dict[str, Any] = {}
    for key, value in data.items():
        name = _ALIASES.get(key, key)
        if name in _FIELDS:
            out[name] = value
    return out


@dataclass(frozen=True)
class Kit:
    id: str
    name: str
    pads: Tuple[PadConfig, ...] = ()

    def __post_init__(self):
        pads = tuple(self.pads)
        ids = [p.id for p in pads]
        if len(set(ids)) != len(ids):
            raise ConfigurationError(f"kit '{self.name}': duplicate pad ids")
        object.__setattr__(self, "pads", pads)

    @property
    def pad_ids(self) -> Tuple[int, ...]:
        return tuple(p.id for p in self.pads)

    def pad(self, pad_id: int) -> Optional[PadConfig]:
        for p in self.pads:
            if p.id == pad_id:
                return p
        return None

    def pad_for_key(self, key: str) -> Optional[PadConfig]:
        key = key.upper()
        for p in self.pads:
            if p.key_trigger == key:
                return p
        return None

    def configure_pad(self, pad_id: int, **changes) -> "Kit":
        """New kit with one single-hit pad updated; only the given fields change."""
        pad_id = int(pad_id)
        if not 0 <= pad_id < SINGLE_HIT_PADS:
            raise ConfigurationError(f"pad id must be between 0 and {SINGLE_HIT_PADS - 1}, got {pad_id}")
        current = self.pad(pad_id)
        if current is None:
            raise ConfigurationError(f"kit '{self.name}' has no pad {pad_id}")
        changes = normalize_pad_fields(changes)
        changes.pop("id", None)
        updated = current.replace(**changes)
        return dataclasses.replace(self, pads=tuple(updated if p.id == pad_id else p for p in self.pads))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "pads": [p.to_dict() for p in self.pads]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Kit":
        try:
            pads: Iterable[Dict[str, Any]] = data["pads"]
            return cls(id=str(data["id"]), name=str(data["name"]),
                       pads=tuple(PadConfig.from_dict(p) for p in pads))
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"malformed kit: {e}") from None
