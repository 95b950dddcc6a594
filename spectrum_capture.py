"""
lightorgan - Spectrum capture
Captures audio with sounddevice, computes an analyser-style byte spectrum
with numpy and pushes it into a SpectrumHub.
"""

import threading
import time
from typing import Optional

import numpy as np

from config import AudioConfig
from logging_utils import log_event
from spectrum_hub import SpectrumHub


def compute_spectrum(block: np.ndarray, window: np.ndarray) -> np.ndarray:
    """Windowed magnitude spectrum of one mono block, fft_size / 2 bins."""
    n = len(block)
    mags = np.abs(np.fft.rfft(block * window)) / n
    return mags[: n // 2]


def analyser_bytes(magnitudes: np.ndarray, min_db: float = -100.0, max_db: float = -30.0) -> np.ndarray:
    """Map linear magnitudes onto 0..255 between min_db and max_db."""
    with np.errstate(divide="ignore"):
        db = 20.0 * np.log10(np.maximum(magnitudes, 1e-12))
    scaled = 255.0 * (db - min_db) / (max_db - min_db)
    return np.clip(scaled, 0.0, 255.0).astype(np.uint8)


def list_devices() -> list[dict]:
    """Input-capable audio devices as {index, name, inputs, sample_rate}."""
    import sounddevice as sd

    devices = []
    for i, d in enumerate(sd.query_devices()):
        if d['max_input_channels'] > 0:
            devices.append({
                'index': i,
                'name': d['name'],
                'inputs': d['max_input_channels'],
                'sample_rate': d['default_samplerate'],
            })
    return devices


class SpectrumCapture:
    """Feeds a SpectrumHub from an audio input device, one frame per block."""

    def __init__(self, hub: SpectrumHub, config: Optional[AudioConfig] = None):
        self.hub = hub
        self.config = config if config is not None else AudioConfig()
        self.stream = None
        self.running = False
        self.frames = 0
        self.last_error: Optional[str] = None
        self._lock = threading.Lock()
        self._window = np.blackman(self.config.fft_size).astype(np.float32)

    def start(self) -> None:
        """Open the input stream and announce sampling parameters to the hub."""
        if self.running:
            return
        import sounddevice as sd

        cfg = self.config
        try:
            stream = sd.InputStream(
                device=cfg.device_index,
                channels=cfg.channels,
                samplerate=cfg.sample_rate,
                blocksize=cfg.fft_size,
                dtype='float32',
                callback=self._audio_callback,
            )
        except sd.PortAudioError as e:
            self.last_error = str(e)
            log_event("ERROR", "Capture", "Failed to open input stream", error=e)
            raise

        try:
            cfg.sample_rate = int(stream.samplerate)
            with self._lock:
                self.hub.change_sampling_parameters(cfg.fft_size // 2, cfg.sample_rate)
            self.running = True
            stream.start()
        except Exception as e:
            self.running = False
            self.last_error = str(e)
            stream.close()
            log_event("ERROR", "Capture", "Failed to start input stream", error=e)
            raise
        self.stream = stream
        log_event("INFO", "Capture", "Input capture started", device=cfg.device_index,
                  sample_rate=cfg.sample_rate, fft_size=cfg.fft_size)

    def stop(self) -> None:
        self.running = False
        if self.stream is not None:
            self.stream.stop()
            self.stream.close()
            self.stream = None
        log_event("INFO", "Capture", "Stopped", frames=self.frames)

    def process_block(self, indata: np.ndarray, timestamp_ms: Optional[float] = None) -> None:
        """Mix a (frames, channels) block to mono and push its spectrum."""
        if indata.ndim > 1 and indata.shape[1] > 1:
            mono = np.mean(indata, axis=1)
        else:
            mono = indata.reshape(-1)
        if len(mono) != len(self._window):
            self._window = np.blackman(len(mono)).astype(np.float32)

        cfg = self.config
        spectrum = analyser_bytes(compute_spectrum(mono, self._window), cfg.min_decibels, cfg.max_decibels)
        t = time.time() * 1000.0 if timestamp_ms is None else timestamp_ms
        with self._lock:
            if len(spectrum) != self.hub.bin_count:
                self.hub.change_sampling_parameters(len(spectrum), cfg.sample_rate)
            self.hub.push_byte_frame(spectrum, t)
        self.frames += 1

    def _audio_callback(self, indata, frames, time_info, status):
        if status:
            log_event("DEBUG", "Capture", "Stream status", status=status)
        if not self.running:
            return
        try:
            self.process_block(indata)
        except Exception as e:
            # Raising inside the PortAudio thread would kill the stream
            self.last_error = str(e)
            log_event("ERROR", "Capture", "Frame processing failed", error=e)
