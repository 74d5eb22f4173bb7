"""
Tests for the DrumMachine controller.

The engine runs on a fake stream; time moves forward only when a test
renders blocks, and tick() is called by hand after each block the way the
PollClock thread would.
"""

import numpy as np
import pytest

from beatlab.errors import ConfigurationError, PatternNotFound
from beatlab.generation import GeneratedPattern
from beatlab.machine import DrumMachine, PlaybackMode
from beatlab.sequencing.arrangement import SongArrangement, SongSection
from beatlab.storage import json_file_stores

BLOCK = 128


class FakeGenerator:
    def __init__(self, result):
        self.result = result

    def generate_pattern(self, prompt, kit):
        return self.result


@pytest.fixture
def machine(engine):
    return DrumMachine(engine, rng=np.random.default_rng(5))


def play(machine, seconds):
    blocks = int(seconds * machine.engine.sr / BLOCK)
    for _ in range(blocks):
        machine.tick()
        machine.engine.render_block(BLOCK)


class TestPads:

    def test_trigger_pad_schedules_voice(self, machine):
        assert machine.trigger_pad(0)
        machine.engine.render_block(BLOCK)
        assert machine.engine.graph.num_active_voices() == 1
        assert machine.engine.running

    def test_unknown_pad(self, machine):
        assert machine.trigger_pad(42) is False

    def test_trigger_at_future_time(self, machine):
        machine.trigger_pad(2, when=1.0)
        machine.engine.render_block(BLOCK)
        assert machine.engine.graph.num_pending_voices() == 1

    def test_press_key_ignores_repeat(self, machine):
        assert machine.press_key("1") == 0
        assert machine.press_key("1") is None
        machine.release_key("1")
        assert machine.press_key("1") == 0

    def test_pitch_bend_range(self, machine):
        machine.pitch_bend = -12
        assert machine.pitch_bend == -12.0
        with pytest.raises(ConfigurationError):
            machine.pitch_bend = 12.5
        assert machine.pitch_bend == -12.0

    def test_configure_pad(self, machine):
        pad = machine.configure_pad(0, label="Boom", baseFrequency=48)
        assert machine.kit.pad(0) is pad
        assert pad.base_frequency == 48.0
        assert machine.press_key("1") == 0

    def test_configure_pad_rejects_composite(self, machine):
        with pytest.raises(ConfigurationError):
            machine.configure_pad(17, label="Nope")


class TestLoopMode:

    def test_press_toggles_loop(self, machine):
        machine.loop_mode = True
        machine.trigger_pad(0)
        machine.trigger_pad(16)
        assert sorted(machine.state.loops) == [0, 16]
        machine.trigger_pad(0)
        assert sorted(machine.state.loops) == [16]

    def test_leaving_loop_mode_stops_loops(self, machine):
        machine.loop_mode = True
        machine.trigger_pad(4)
        machine.loop_mode = False
        assert machine.state.loops == {}

    def test_loops_keep_playing(self, machine):
        machine.loop_mode = True
        machine.trigger_pad(0)
        play(machine, 1.2)
        assert machine.loop_bank.loops[0].scheduler.cycles >= 2
        assert machine.engine.graph.num_active_voices() >= 1

    def test_load_kit_stops_loops(self, machine, kit):
        machine.loop_mode = True
        machine.trigger_pad(0)
        machine.load_kit(kit)
        assert machine.state.loops == {}


class TestPlaybackModes:

    def _song(self, machine, *pattern_ids):
        return SongArrangement(name="Song", sections=[SongSection(f"S{i}", pid) for i, pid in enumerate(pattern_ids)])

    def test_sequencer_advances_and_stops(self, machine):
        machine.toggle_step(0, 0)
        machine.start_sequencer()
        assert machine.state.mode is PlaybackMode.SEQUENCER
        play(machine, 0.5)
        assert machine.state.step > 0
        machine.stop_sequencer()
        assert machine.state.mode is PlaybackMode.IDLE
        assert machine.state.step == 0

    def test_song_and_sequencer_are_exclusive(self, machine):
        machine.toggle_step(0, 0)
        pattern = machine.save_pattern("A")
        machine.start_sequencer()
        machine.start_song(self._song(machine, pattern.id))
        assert machine.state.mode is PlaybackMode.SONG
        assert not machine.sequencer.playing
        machine.start_sequencer()
        assert machine.state.mode is PlaybackMode.SEQUENCER
        assert not machine.arranger.playing

    def _every_step(self, machine):
        for step in range(16):
            machine.toggle_step(0, step)

    def test_restarting_sequencer_drops_queued_steps(self, machine):
        self._every_step(machine)
        machine.start_sequencer()
        play(machine, 0.1)
        assert machine.engine.graph.num_pending_voices() == 1
        machine.start_sequencer()
        machine.tick()
        machine.engine.render_block(BLOCK)
        assert machine.engine.graph.num_pending_voices() == 1
        assert machine.state.mode is PlaybackMode.SEQUENCER

    def test_restarting_song_drops_queued_steps(self, machine):
        self._every_step(machine)
        song = self._song(machine, machine.save_pattern("A").id)
        machine.start_song(song)
        play(machine, 0.1)
        assert machine.engine.graph.num_pending_voices() == 1
        machine.start_song(song)
        machine.tick()
        machine.engine.render_block(BLOCK)
        assert machine.engine.graph.num_pending_voices() == 1
        assert machine.arranger.section_index == 0

    def test_song_with_missing_first_pattern(self, machine):
        with pytest.raises(PatternNotFound):
            machine.start_song(self._song(machine, "missing"))
        assert machine.state.mode is PlaybackMode.IDLE

    def test_song_error_reported(self, machine):
        errors = []
        machine.on_error = errors.append
        pattern = machine.save_pattern("A")
        machine.start_song(self._song(machine, pattern.id, "missing"))
        play(machine, 2.5)
        assert machine.state.mode is PlaybackMode.IDLE
        assert machine.last_error is errors[0]
        assert errors[0].pattern_id == "missing"

    def test_song_finishes(self, machine):
        pattern = machine.save_pattern("A")
        machine.start_song(self._song(machine, pattern.id))
        play(machine, 2.5)
        assert machine.state.mode is PlaybackMode.IDLE

    def test_set_bpm(self, machine):
        machine.set_bpm(140)
        assert machine.state.bpm == 140.0
        with pytest.raises(ConfigurationError):
            machine.set_bpm(400)
        assert machine.state.bpm == 140.0

    def test_stop_everything(self, machine):
        machine.loop_mode = True
        machine.trigger_pad(0)
        machine.start_sequencer()
        machine.stop()
        assert machine.state.mode is PlaybackMode.IDLE
        assert machine.state.loops == {}


class TestPatterns:

    def test_save_and_load_by_id(self, machine):
        machine.toggle_step(3, 5)
        machine.set_bpm(100)
        pattern = machine.save_pattern("Groove")
        machine.clear_pattern()
        machine.set_bpm(120)
        machine.load_pattern(pattern.id)
        assert machine.sequencer.grid[3][5]
        assert machine.state.bpm == 100.0

    def test_collections_kept_apart(self, machine):
        machine.toggle_step(0, 0)
        pattern = machine.save_pattern("Verse")
        assert machine.patterns.load_all() == [pattern]
        assert machine.arrangements.load_all() == []
        assert machine.kits.load_all() == []

    def test_one_file_per_collection(self, engine, tmp_path):
        machine = DrumMachine(engine, stores=json_file_stores(tmp_path))
        machine.kits.save(machine.kit)
        pattern = machine.save_pattern("Verse")
        machine.arrangements.save(SongArrangement(name="Song", sections=[SongSection("Intro", pattern.id)]))
        assert sorted(p.name for p in tmp_path.iterdir()) == ["arrangements.json", "kits.json", "patterns.json"]

        reopened = DrumMachine(engine, stores=json_file_stores(tmp_path))
        assert [p.id for p in reopened.patterns.load_all()] == [pattern.id]
        assert [a.name for a in reopened.arrangements.load_all()] == ["Song"]
        assert [k.id for k in reopened.kits.load_all()] == [machine.kit.id]

    def test_load_missing_id(self, machine):
        with pytest.raises(ConfigurationError):
            machine.load_pattern("nope")

    def test_generate_without_generator(self, machine):
        with pytest.raises(ConfigurationError):
            machine.generate_pattern("trap beat")

    def test_generated_pattern_loaded(self, engine):
        grid = {pad_id: [False] * 16 for pad_id in range(20)}
        grid[0][0] = grid[2][4] = True
        machine = DrumMachine(engine, generator=FakeGenerator(GeneratedPattern(grid=grid, bpm=145)))
        pattern = machine.generate_pattern("trap beat")
        assert pattern.name == "trap beat"
        assert machine.sequencer.grid[2][4]
        assert machine.state.bpm == 145.0

    def test_malformed_generation_keeps_pattern(self, engine):
        grid = {pad_id: [False] * 16 for pad_id in range(20)}
        grid[9] = [True] * 12
        machine = DrumMachine(engine, generator=FakeGenerator(GeneratedPattern(grid=grid, bpm=120)))
        machine.toggle_step(0, 0)
        with pytest.raises(ConfigurationError):
            machine.generate_pattern("broken")
        assert machine.sequencer.grid[0][0]
        assert not any(machine.sequencer.grid[9])


class TestMix:

    def test_master_gain_passes_through(self, machine):
        machine.engine.ensure_graph()
        machine.set_master_gain(0.5)
        machine.engine.render_block(BLOCK)
        machine.engine.render_block(BLOCK)
        assert machine.engine.graph.master_gain.value == pytest.approx(0.5)

    def test_recording(self, machine, tmp_path):
        from beatlab.audio.recording import WavFileSink
        machine.start_recording(WavFileSink(tmp_path / "take.wav"))
        machine.trigger_pad(0)
        for _ in range(4):
            machine.engine.render_block(BLOCK)
        take = machine.stop_recording()
        assert take.frames == 4 * BLOCK
