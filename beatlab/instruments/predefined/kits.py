from beatlab.instruments.pads import Kit, PadConfig, SoundType
from beatlab.instruments.signals.osc import Waveform


# Keyboard layout: four rows of four single hits, loop pads on the right-hand column.
#   1 2 3 4 | 5
#   Q W E R | T
#   A S D F | G
#   Z X C V | B


def make_trap_drums():
    return [
        PadConfig(0, "1", "Kick", "bg-red-600", SoundType.KICK, 55.0, 0.25, 0.45, Waveform.SINE, distortion=True),
        PadConfig(1, "2", "808", "bg-red-700", SoundType.KICK, 45.0, 0.60, 1.20, Waveform.SINE, distortion=True),
        PadConfig(2, "3", "Snare", "bg-orange-500", SoundType.SNARE, 200.0, 0.10, 0.20, Waveform.TRIANGLE, noise=True),
        PadConfig(3, "4", "Clap", "bg-orange-600", SoundType.SNARE, 1000.0, 0.05, 0.25, Waveform.TRIANGLE, noise=True),
        PadConfig(4, "Q", "Closed Hat", "bg-yellow-500", SoundType.HIHAT, 8000.0, 0.05, 0.05, Waveform.SQUARE, noise=True),
        PadConfig(5, "W", "Open Hat", "bg-yellow-600", SoundType.HIHAT, 8000.0, 0.30, 0.30, Waveform.SQUARE, noise=True),
        PadConfig(6, "E", "Rim", "bg-amber-600", SoundType.SNARE, 250.0, 0.05, 0.08, Waveform.TRIANGLE, noise=True),
        PadConfig(7, "R", "Tom", "bg-amber-700", SoundType.KICK, 110.0, 0.30, 0.35, Waveform.TRIANGLE),
    ]


def make_bass_and_synths():
    return [
        PadConfig(8, "A", "Reese", "bg-blue-600", SoundType.BASS, 55.0, 0.40, 0.80, Waveform.SAWTOOTH, distortion=True),
        PadConfig(9, "S", "Sub", "bg-blue-700", SoundType.BASS, 40.0, 0.80, 1.00, Waveform.SINE),
        PadConfig(10, "D", "Pluck", "bg-indigo-500", SoundType.SYNTH, 440.0, 0.10, 0.40, Waveform.SAWTOOTH),
        PadConfig(11, "F", "Bell Pluck", "bg-indigo-600", SoundType.SYNTH, 660.0, 0.10, 0.60, Waveform.SQUARE),
    ]


def make_fx():
    return [
        PadConfig(12, "Z", "Gun Cock", "bg-gray-600", SoundType.FX, 2500.0, 0.10, 0.15),
        PadConfig(13, "X", "Gun Blast", "bg-gray-700", SoundType.FX, 3000.0, 0.40, 0.80),
        PadConfig(14, "C", "Tape Stop", "bg-purple-600", SoundType.FX, 880.0, 0.50, 0.55),
        PadConfig(15, "V", "Scratch", "bg-purple-700", SoundType.FX, 800.0, 0.12, 0.15),
    ]


def make_loops():
    return [
        PadConfig(16, "5", "Trap Loop", "bg-green-600", SoundType.FX, 50.0, 0.6, 0.6),
        PadConfig(17, "T", "Dark Pad", "bg-green-700", SoundType.FX, 35.0, 3.0, 3.0),
        PadConfig(18, "G", "Halftime", "bg-teal-600", SoundType.FX, 72.0, 0.3, 0.3),
        PadConfig(19, "B", "Pluck Riff", "bg-teal-700", SoundType.FX, 110.0, 0.5, 0.5),
    ]


def make_default_kit() -> Kit:
    pads = make_trap_drums() + make_bass_and_synths() + make_fx() + make_loops()
    return Kit(id="default", name="Trap Starter", pads=tuple(pads))
