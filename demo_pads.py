import logging
import time

from beatlab.audio.engine import AudioEngine
from beatlab.logging_utils import setup_logging
from beatlab.machine import DrumMachine
from beatlab.midi.input import start_midi_listener

logger = logging.getLogger("beatlab.demo")


def main():
    setup_logging(logging.INFO)

    engine = AudioEngine()
    machine = DrumMachine(engine)
    machine.start()

    def on_bend(semitones):
        machine.pitch_bend = semitones

    # pads 0-19 on notes 36-55; the pitch wheel bends every pad by up to an octave
    start_midi_listener(machine.trigger_pad, port_name_substr="Roland", on_pitch_bend=on_bend)

    machine.set_bpm(140)
    logger.info("Play the pads! (Ctrl+C to quit)")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Stopping")
    finally:
        machine.close()


if __name__ == "__main__":
    main()
