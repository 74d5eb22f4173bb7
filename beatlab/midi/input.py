import logging
import threading
from typing import Callable, Optional

import mido

logger = logging.getLogger(__name__)

BASE_NOTE = 36          # C1, first pad on most controllers
PAD_COUNT = 20
BEND_RANGE = 12.0       # semitones at full pitch-wheel travel


def note_to_pad(note: int, base_note: int = BASE_NOTE, pad_count: int = PAD_COUNT) -> Optional[int]:
    pad_id = int(note) - int(base_note)
    return pad_id if 0 <= pad_id < pad_count else None


def wheel_to_semitones(pitch: int, bend_range: float = BEND_RANGE) -> float:
    return max(-bend_range, min(bend_range, pitch / 8192.0 * bend_range))


def start_midi_listener(on_pad: Callable[[int], None],
                        port_name_substr: str = "",
                        *,
                        base_note: int = BASE_NOTE,
                        on_pitch_bend: Optional[Callable[[float], None]] = None):
    """
    Listen on the first input port whose name contains `port_name_substr`
    (or "MIDI", or the first port) and turn note-ons into pad triggers.
    """
    def run():
        inp = None
        names = mido.get_input_names()
        for n in names:
            if (port_name_substr and port_name_substr in n) or "MIDI" in n:
                inp = n; break
        if not inp and names: inp = names[0]
        if not inp:
            logger.warning("No MIDI inputs found.")
            return
        logger.info("MIDI in: %s", inp)

        with mido.open_input(inp) as port:
            for msg in port:
                if msg.type == 'note_on' and msg.velocity > 0:
                    pad_id = note_to_pad(msg.note, base_note)
                    if pad_id is not None:
                        on_pad(pad_id)
                elif msg.type == 'pitchwheel' and on_pitch_bend is not None:
                    on_pitch_bend(wheel_to_semitones(msg.pitch))

    th = threading.Thread(target=run, name="MidiInputThread", daemon=True); th.start()
    return th
