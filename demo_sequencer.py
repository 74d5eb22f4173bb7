import logging
import time

from beatlab.audio.engine import AudioEngine
from beatlab.config import AudioConfig
from beatlab.logging_utils import setup_logging
from beatlab.machine import DrumMachine
from beatlab.sequencing.arrangement import SongArrangement

SR = 44100
BLOCK = 256

logger = logging.getLogger("beatlab.demo")

if __name__ == "__main__":
    setup_logging(logging.INFO)

    engine = AudioEngine(AudioConfig(sample_rate=SR, block_size=BLOCK, meter_period=2.0))
    machine = DrumMachine(engine)
    machine.start()

    # verse: four-on-the-floor kick, snare on 2 and 4, rolling hats
    for step in range(0, 16, 4):
        machine.toggle_step(0, step)
    for step in (4, 12):
        machine.toggle_step(2, step)
    for step in range(0, 16, 2):
        machine.toggle_step(4, step)
    verse = machine.save_pattern("Verse")

    # drop: 808 on the off-beats and the trap loop on top
    machine.clear_pattern()
    for step in (0, 3, 6, 10):
        machine.toggle_step(1, step)
    machine.toggle_step(3, 12)
    machine.toggle_step(16, 0)
    for step in range(16):
        machine.toggle_step(5, step)
    drop = machine.save_pattern("Drop")

    song = SongArrangement(name="Demo")
    song.add_section(verse.id, repetitions=2, name="Verse")
    song.add_section(drop.id, repetitions=2, name="Drop")
    song.add_section(verse.id, name="Outro")

    machine.set_reverb_mix(0.25)
    machine.start_song(song)

    logger.info("Song running. Ctrl+C to quit.")
    try:
        while machine.arranger.playing:
            time.sleep(0.5)
        time.sleep(2.0)     # let the reverb tail ring out
    except KeyboardInterrupt:
        pass
    finally:
        machine.close()
