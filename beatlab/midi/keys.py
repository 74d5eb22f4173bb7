from typing import Optional, Set

from beatlab.instruments.pads import Kit


class KeyTriggerMap:
    """
    Computer-keyboard pads. A held key fires once: auto-repeat presses are
    ignored until the key is released.
    """

    def __init__(self, kit: Kit):
        self.kit = kit
        self._held: Set[str] = set()

    def set_kit(self, kit: Kit) -> None:
        self.kit = kit

    def press(self, key: str, repeat: bool = False) -> Optional[int]:
        """Pad id to trigger for this key-down, or None."""
        key = key.upper()
        if repeat or key in self._held:
            return None
        pad = self.kit.pad_for_key(key)
        if pad is None:
            return None
        self._held.add(key)
        return pad.id

    def release(self, key: str) -> Optional[int]:
        key = key.upper()
        self._held.discard(key)
        pad = self.kit.pad_for_key(key)
        return pad.id if pad is not None else None

    @property
    def held(self) -> Set[str]:
        return set(self._held)
