"""
Tests for the voice synthesis engine.

Voices must be finite, bounded in length, start at sample 0 and end in
silence. Composite loops must go through the same schedule() primitive.
"""

import numpy as np
import pytest

from beatlab.instruments.envelopes.automation import Automation
from beatlab.instruments.loops import LOOP_GAIN, schedule_loop
from beatlab.instruments.pads import FxKind, LoopKind, PadConfig, SoundType
from beatlab.instruments.predefined.kits import make_default_kit
from beatlab.instruments.signals.filters import HIGHPASS, apply_filter, biquad_sos
from beatlab.instruments.signals.osc import Oscillator, Waveform
from beatlab.instruments.synthesis import bend, render_pad, synthesize
from beatlab.instruments import voices

SR = 8000


class TestAutomation:

    def test_linear_ramp(self):
        env = Automation(0.0).linear_to(1.0, 0.5).render(SR, SR)
        assert env[0] == pytest.approx(0.0)
        assert env[SR // 4] == pytest.approx(0.5, abs=1e-3)
        assert env[-1] == pytest.approx(1.0)

    def test_exponential_ramp_is_geometric(self):
        """Halfway through an exponential ramp from 1 to 0.01 the value is 0.1."""
        env = Automation(1.0).exponential_to(0.01, 1.0).render(SR, SR)
        assert env[SR // 2] == pytest.approx(0.1, rel=1e-2)

    def test_exponential_from_zero_does_not_stick(self):
        env = Automation(0.0).exponential_to(1.0, 0.1).render(SR, SR)
        assert env[-1] == pytest.approx(1.0)

    def test_set_jumps_and_holds(self):
        env = Automation(0.2).set_at(0.8, 0.25).render(SR, SR)
        assert env[SR // 8] == pytest.approx(0.2)
        assert env[SR // 2] == pytest.approx(0.8)

    def test_event_times_never_go_backwards(self):
        a = Automation(0.0).linear_to(1.0, 0.5).linear_to(0.0, 0.1)
        assert a.end_time() == pytest.approx(0.5)


class TestSignals:

    def test_oscillator_phase_continuity(self):
        """Two renders in a row equal one long render."""
        a = Oscillator(Waveform.SINE)
        joined = np.concatenate([a.render(440.0, 100, SR), a.render(440.0, 100, SR)])
        whole = Oscillator(Waveform.SINE).render(440.0, 200, SR)
        np.testing.assert_allclose(joined, whole, atol=1e-5)

    def test_oscillator_accepts_frequency_curve(self):
        f = np.linspace(100.0, 20.0, 400)
        y = Oscillator(Waveform.TRIANGLE).render(f, 400, SR)
        assert y.shape == (400,)
        assert np.max(np.abs(y)) <= 1.0 + 1e-6

    def test_highpass_removes_dc(self):
        y = apply_filter(np.ones(SR, dtype=np.float32), HIGHPASS, 1000.0, SR)
        assert abs(float(y[-1])) < 1e-3

    def test_cutoff_clamped_below_nyquist(self):
        sos = biquad_sos(HIGHPASS, 20000.0, SR)
        assert np.all(np.isfinite(sos))


class TestSingleHits:

    def _pad(self, sound_type, **kw):
        fields = dict(base_frequency=60.0, pitch_decay=0.2, volume_decay=0.3)
        fields.update(kw)
        return PadConfig(0, "1", sound_type.value.title(), sound_type=sound_type, **fields)

    @pytest.mark.parametrize("sound_type", [SoundType.KICK, SoundType.BASS, SoundType.SNARE,
                                            SoundType.HIHAT, SoundType.SYNTH])
    def test_length_bounded_by_decays(self, sound_type, rng):
        """A parameterized voice never outlives max(decays) + 0.1 s."""
        pad = self._pad(sound_type, base_frequency=200.0, distortion=True, noise=True)
        y = render_pad(pad, 0.0, SR, rng=rng)
        limit = max(pad.pitch_decay, max(pad.volume_decay, 0.05)) + voices.TAIL_MARGIN
        assert 0 < y.shape[0] <= int(np.ceil(limit * SR))

    @pytest.mark.parametrize("sound_type", list(SoundType))
    def test_finite_and_ends_silent(self, sound_type, rng):
        pad = self._pad(sound_type)
        y = render_pad(pad, 0.0, SR, rng=rng)
        assert y.dtype == np.float32
        assert np.all(np.isfinite(y))
        assert np.max(np.abs(y)) > 0.01
        assert abs(float(y[-1])) < 1e-6

    def test_hihat_minimum_decay(self, rng):
        """Very short hats still ring for at least 50 ms."""
        y = voices.render_hihat(0.005, SR, rng=rng)
        assert y.shape[0] >= int(0.05 * SR)

    def test_clap_differs_from_snare(self):
        snare = PadConfig(2, "3", "Snare", sound_type=SoundType.SNARE, base_frequency=200.0, volume_decay=0.2)
        clap = snare.replace(label="Clap")
        a = render_pad(snare, 0.0, SR, rng=np.random.default_rng(7))
        b = render_pad(clap, 0.0, SR, rng=np.random.default_rng(7))
        assert not np.allclose(a, b)

    @pytest.mark.parametrize("fx_kind", list(FxKind))
    @pytest.mark.parametrize("decays", [(0.01, 0.01), (0.2, 0.3), (0.4, 0.8), (2.0, 2.0)])
    def test_fx_length_bounded_by_decays(self, fx_kind, decays, rng):
        pitch_decay, volume_decay = decays
        pad = PadConfig(12, "Z", "Fx", sound_type=SoundType.FX, fx_kind=fx_kind,
                        pitch_decay=pitch_decay, volume_decay=volume_decay)
        y = render_pad(pad, 0.0, SR, rng=rng)
        assert 0 < y.shape[0] <= int(np.ceil((max(decays) + voices.TAIL_MARGIN) * SR))
        assert abs(float(y[-1])) < 1e-6

    def test_default_kit_single_hits_within_bound(self, rng):
        """Gun Blast (0.40 / 0.80) renders no more than 0.9 s."""
        for pad in make_default_kit().pads:
            if pad.is_composite:
                continue
            y = render_pad(pad, 0.0, SR, rng=rng)
            limit = max(pad.pitch_decay, max(pad.volume_decay, 0.05)) + voices.TAIL_MARGIN
            assert y.shape[0] <= int(np.ceil(limit * SR)), pad.label

    def test_pitch_bend(self):
        assert bend(100.0, 12) == pytest.approx(200.0)
        assert bend(100.0, -12) == pytest.approx(50.0)

    def test_synthesize_schedules_once_at_start_time(self, capture):
        pad = self._pad(SoundType.KICK)
        synthesize(pad, 1.25, 0.0, capture)
        assert capture.times == [1.25]


class TestCompositeLoops:

    @pytest.mark.parametrize("kind,count", [
        (LoopKind.TRAP, 32 + 4),
        (LoopKind.DARK_PAD, 2 + 4),
        (LoopKind.HALFTIME, 8 + 1),
        (LoopKind.PLUCK_RIFF, 64 + 4 + 4),
    ])
    def test_sub_voice_counts(self, capture, kind, count, rng):
        assert schedule_loop(kind, 0.0, 120.0, capture, rng=rng) == count
        assert len(capture.scheduled) == count

    def test_sub_voice_times_follow_bpm(self, capture, rng):
        """Trap hats land on eighth notes of the BPM at trigger time."""
        schedule_loop(LoopKind.TRAP, 2.0, 120.0, capture, rng=rng)
        assert min(capture.times) == pytest.approx(2.0)
        assert max(capture.times) == pytest.approx(2.0 + 31 * 0.25)

    def test_sub_voices_slow_down_with_bpm(self, capture, rng):
        schedule_loop(LoopKind.TRAP, 0.0, 60.0, capture, rng=rng)
        assert max(capture.times) == pytest.approx(31 * 0.5)

    def test_loop_gain_applied(self, capture):
        """Sub-voices are the plain voice scaled by the loop gain."""
        schedule_loop(LoopKind.DARK_PAD, 0.0, 120.0, capture)
        first_kick = capture.scheduled[0][1]
        expected = voices.render_kick(35.0, 3.0, 3.0, SR, waveform=Waveform.TRIANGLE,
                                      drive=voices.KICK_DRIVE, bias=voices.KICK_BIAS)
        np.testing.assert_allclose(first_kick, expected * LOOP_GAIN, atol=1e-6)

    def test_render_pad_mixes_composite(self, rng):
        pad = PadConfig(18, "G", "Halftime")
        y = render_pad(pad, 0.0, SR, rng=rng)
        assert y.shape[0] >= 4 * SR   # the two-bar pluck at 120 bpm
        assert np.all(np.isfinite(y))


class TestPreview:

    @pytest.fixture(autouse=True)
    def _headless(self):
        import matplotlib
        matplotlib.use("Agg")
        yield
        import matplotlib.pyplot as plt
        plt.close("all")

    def test_plot_pad(self, rng):
        from beatlab.instruments.preview import plot_pad
        pad = PadConfig(2, "3", "Snare", sound_type=SoundType.SNARE, base_frequency=200.0, volume_decay=0.2)
        fig, ax = plot_pad(pad, sr=SR, rng=rng)
        line = ax.get_lines()[0]
        assert len(line.get_xdata()) == len(render_pad(pad, 0.0, SR, rng=np.random.default_rng(1234)))
        assert "Snare" in ax.get_title()

    def test_plot_envelope_defaults_past_last_change(self):
        from beatlab.instruments.preview import plot_envelope
        env = voices.decay_envelope(1.0, 0.5)
        _, ax = plot_envelope(env, sr=SR)
        assert ax.get_lines()[0].get_xdata()[-1] >= env.end_time()

    def test_play_pad_normalizes(self, monkeypatch, rng):
        import sys
        import types
        from beatlab.instruments.preview import play_pad
        played = []
        fake = types.SimpleNamespace(play=lambda sig, samplerate, blocking: played.append((sig, samplerate)))
        monkeypatch.setitem(sys.modules, "sounddevice", fake)
        pad = PadConfig(0, "1", "Kick", sound_type=SoundType.KICK, distortion=True)
        sig = play_pad(pad, sr=SR, rng=rng)
        assert played[0][1] == SR
        assert np.max(np.abs(sig)) <= 1.0
