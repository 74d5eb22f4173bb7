# audio/engine.py
import itertools
import logging
import threading
from typing import Callable, Optional

import numpy as np

from beatlab.config import (AudioConfig, CompressorConfig, ReverbConfig,
                            AUDIO_CONFIG, COMPRESSOR_CONFIG, REVERB_CONFIG)
from beatlab.errors import ConfigurationError, ResourceUnavailable
from beatlab.routing.bus import EventBus
from beatlab.routing.messages import SetParam, SwapImpulse
from beatlab.audio.dsp import soft_clip
from beatlab.audio.graph import SignalGraph, VoiceInput
from beatlab.audio.meter import AudioMeter
from beatlab.audio.recording import RecordedTake, RecordingSink
from beatlab.audio.reverb import make_impulse_response

logger = logging.getLogger(__name__)

StreamFactory = Callable[..., object]


def open_output_stream(samplerate: int, blocksize: int, channels: int, callback, latency="low"):
    """Acquire the platform output device (PortAudio through sounddevice)."""
    try:
        import sounddevice as sd
    except OSError as e:  # PortAudio library missing
        raise ResourceUnavailable(f"audio backend unavailable: {e}") from e
    try:
        return sd.OutputStream(
            channels=channels,
            samplerate=samplerate,
            blocksize=blocksize,
            callback=callback,
            latency=latency,
        )
    except (sd.PortAudioError, OSError, ValueError) as e:
        raise ResourceUnavailable(f"cannot open output stream: {e}") from e


class AudioEngine:
    """
    Owns the signal graph and the output stream.

    The graph and the stream are built lazily by ensure_graph(), exactly once.
    The audio clock is the number of frames the graph has rendered.
    """

    def __init__(self, config: AudioConfig = AUDIO_CONFIG, *,
                 compressor: CompressorConfig = COMPRESSOR_CONFIG,
                 reverb: ReverbConfig = REVERB_CONFIG,
                 stream_factory: Optional[StreamFactory] = None,
                 rng: Optional[np.random.Generator] = None):
        self.config = config
        self.sr = int(config.sample_rate)
        self.blocksize = int(config.block_size)
        self.channels = int(config.channels)
        if self.channels not in (1, 2):
            raise ConfigurationError("Only mono or stereo output supported.")

        # processing
        self.pre_gain = float(config.pre_gain)
        self.limiter_drive = float(config.limiter_drive)
        self.compressor_config = compressor
        self.reverb_config = reverb
        self._reverb_duration = float(reverb.duration)
        self._rng = rng if rng is not None else np.random.default_rng()

        self.bus = EventBus()
        self.graph: Optional[SignalGraph] = None
        self.stream = None
        self._stream_factory = stream_factory or open_output_stream
        self._build_lock = threading.Lock()
        self._owners = itertools.count(1)

        # metering
        self.meter = AudioMeter()
        self._meter_period = float(config.meter_period)
        self._meter_thread: Optional[threading.Thread] = None

        # coordinated shutdown
        self._stop_evt = threading.Event()

    ###########################################################################
    ##                              LIFECYCLE                                ##
    ###########################################################################

    def ensure_graph(self) -> SignalGraph:
        """Build the graph and acquire the output device. Repeated calls are no-ops."""
        with self._build_lock:
            if self.graph is not None:
                return self.graph

            graph = SignalGraph(self.sr, self.blocksize,
                                audio=self.config,
                                compressor=self.compressor_config,
                                reverb=self.reverb_config,
                                rng=self._rng)
            self.stream = self._stream_factory(self.sr, self.blocksize, self.channels,
                                               self._cb, self.config.latency)
            self.graph = graph
            self._stop_evt.clear()
            logger.info("Signal graph built (%d Hz, block %d, %d ch)",
                        self.sr, self.blocksize, self.channels)

            if self._meter_period > 0:
                # meter thread (non-daemon: we join it)
                self._meter_thread = threading.Thread(target=self._meter_logger, name="AudioMeterThread")
                self._meter_thread.start()
            return graph

    @property
    def running(self) -> bool:
        return self.stream is not None and bool(getattr(self.stream, "active", False))

    def resume(self) -> bool:
        """
        Make sure the stream is running (a freshly opened or stopped stream
        counts as suspended). Returns False if the device cannot run; callers
        then drop their event.
        """
        try:
            self.ensure_graph()
        except ResourceUnavailable as e:
            logger.warning("Audio unavailable: %s", e)
            return False
        if self.running:
            return True
        try:
            self.stream.start()
        except Exception as e:
            logger.warning("Could not resume output stream: %s", e)
            return False
        logger.debug("Output stream resumed")
        return True

    def close(self):
        # tell threads to stop
        self._stop_evt.set()

        if self.stream is not None:
            # abort() is immediate; stop() drains
            for action in ("abort", "stop", "close"):
                try:
                    getattr(self.stream, action)()
                except Exception as e:
                    logger.debug("stream.%s() failed: %s", action, e)

        if self._meter_thread:
            self._meter_thread.join(timeout=2.0)
            if self._meter_thread.is_alive():
                logger.warning("meter thread still alive after join()")
            self._meter_thread = None

        if self.graph is not None and self.graph.tap.active:
            self.graph.tap.detach()
        logger.info("Engine closed")

    ###########################################################################
    ##                          CONTROL INTERFACE                            ##
    ###########################################################################

    @property
    def current_time(self) -> float:
        """Audio clock in seconds."""
        return self.graph.current_time if self.graph is not None else 0.0

    def new_input(self) -> VoiceInput:
        """A bus handle with its own owner token (cancellable as a group)."""
        return VoiceInput(self.bus, self.sr, next(self._owners))

    def set_master_gain(self, value: float, ramp: Optional[float] = None) -> None:
        value = float(np.clip(value, 0.0, 1.0))
        self.bus.post(SetParam("master_gain", value, self.config.param_ramp if ramp is None else ramp))

    def set_reverb_mix(self, value: float, ramp: Optional[float] = None) -> None:
        value = float(np.clip(value, 0.0, 1.0))
        self.bus.post(SetParam("reverb_mix", value, self.config.param_ramp if ramp is None else ramp))

    def set_reverb_decay(self, seconds: float) -> None:
        cfg = self.reverb_config
        seconds = float(np.clip(seconds, cfg.min_duration, cfg.max_duration))
        if abs(seconds - self._reverb_duration) < 1e-9:
            return
        self._reverb_duration = seconds
        impulse = make_impulse_response(self.sr, seconds, cfg.decay_exponent, self._rng)
        self.bus.post(SwapImpulse(impulse))
        logger.debug("Reverb impulse regenerated (%.2fs)", seconds)

    @property
    def reverb_decay(self) -> float:
        return self._reverb_duration

    def start_recording(self, sink: RecordingSink) -> None:
        self.ensure_graph().tap.attach(sink)

    def stop_recording(self) -> Optional[RecordedTake]:
        if self.graph is None:
            return None
        return self.graph.tap.detach()

    ###########################################################################
    ##                           AUDIO CALL BACK                             ##
    ###########################################################################

    def render_block(self, frames: int) -> np.ndarray:
        """Route pending events, render the graph, limit and meter one block."""
        graph = self.graph
        graph.route_events(self.bus.drain())
        mix = graph.render(frames)
        if self.channels == 1:
            mix = mix.mean(axis=1, keepdims=True)

        # pre-gain
        if self.pre_gain != 1.0:
            mix *= self.pre_gain

        # limiter
        pre_peak = float(np.max(np.abs(mix))) if mix.size else 0.0
        mix_lim = soft_clip(mix, drive=self.limiter_drive).astype(np.float32)

        post_peak = float(np.max(np.abs(mix_lim))) if mix_lim.size else 0.0
        if post_peak > 1.0:
            mix_lim /= post_peak
            post_peak = 1.0

        # meter (after limiting)
        block_rms = float(np.sqrt(np.mean(mix_lim.astype(np.float64)**2))) if mix_lim.size else 0.0
        limited = bool(np.any(np.abs(mix_lim - mix) > 1e-7))
        self.meter.update(pre_peak=pre_peak, post_peak=post_peak, block_rms=block_rms,
                          limited=limited, frames=frames, voices=graph.num_active_voices(),
                          queued=graph.num_pending_voices())
        return mix_lim

    def _cb(self, outdata, frames, time_info, status):
        # if we are stopping, output silence and return; do not do work
        if self._stop_evt.is_set() or self.graph is None:
            outdata.fill(0)
            return
        if status:
            self.meter.note_xrun()
        outdata[:] = self.render_block(frames)

    ###########################################################################
    ##                           METERING THREAD                             ##
    ###########################################################################

    def _meter_logger(self):
        period = self._meter_period

        while True:
            # wait() returns True if event was set during timeout, exit promptly
            if self._stop_evt.wait(timeout=period):
                break

            m = self.meter.read()
            if m.silent:
                continue
            lim = " LIM" if m.limited_blocks > 0 else ""
            logger.debug("peak(pre/post): %+6.1f dBFS / %+6.1f dBFS | rms: %+6.1f dBFS | "
                         "voices:%3d queued:%3d | xruns:%d | blocks_limited:%2d %s%s",
                         m.peak_pre_db, m.peak_post_db, m.rms_db,
                         m.voices, m.queued, m.xruns, m.limited_blocks, self._bar(m.peak_post_db), lim)

    @staticmethod
    def _bar(db, floor=-60.0, ceil=0.0, width=20):
        db = max(floor, min(ceil, db))
        fill = int((db - floor) / (ceil - floor) * width + 0.5)
        return "[" + ("#" * fill).ljust(width, ".") + "]"
