"""
lightorgan - Spectrum hub
The sampling context shared by all spectrum clients: it owns the current
bin count and sample rate and fans every frame out to its clients.
"""

from typing import List, Optional, Protocol, Tuple

import numpy as np

from errors import IllegalStateError, SizeMismatchError
from logging_utils import log_event
from range_tracker import now_ms
from signal_utils import normalize_byte_spectrum


class SpectrumClient(Protocol):
    def change_sampling_parameters(self, bin_count: int, sample_rate: float) -> None: ...

    def push_frame(self, spectrum, timestamp_ms: Optional[float] = None): ...


class SpectrumSource(Protocol):
    def last_spectrum(self) -> Optional[np.ndarray]: ...


class SpectrumHub:
    """
    Distributes spectrum frames to clients in registration order.

    A client registered with a source receives source.last_spectrum()
    instead of the raw frame, so derived spectra (e.g. SpectrumTransform)
    can feed other clients. Register the source before its consumers.
    """

    def __init__(self, bin_count: Optional[int] = None, sample_rate: Optional[float] = None):
        self.bin_count: Optional[int] = None
        self.sample_rate: Optional[float] = None
        self._clients: List[Tuple[SpectrumClient, Optional[SpectrumSource]]] = []
        self._last: Optional[np.ndarray] = None
        self._last_bytes: Optional[np.ndarray] = None
        self.frames = 0
        if bin_count is not None and sample_rate is not None:
            self.change_sampling_parameters(bin_count, sample_rate)

    @property
    def has_sampling_parameters(self) -> bool:
        return self.bin_count is not None and self.sample_rate is not None

    def add_client(self, client: SpectrumClient, source: Optional[SpectrumSource] = None) -> "SpectrumHub":
        self._clients.append((client, source))
        if self.has_sampling_parameters:
            client.change_sampling_parameters(self.bin_count, self.sample_rate)
        return self

    def change_sampling_parameters(self, bin_count: int, sample_rate: float) -> None:
        if bin_count < 1:
            raise ValueError(f"Bin count must be >= 1, got {bin_count}")
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")
        self.bin_count = int(bin_count)
        self.sample_rate = float(sample_rate)
        self._last = None
        self._last_bytes = None
        log_event("INFO", "SpectrumHub", "Sampling parameters", bins=self.bin_count,
                  sample_rate=self.sample_rate, clients=len(self._clients))
        for client, _ in self._clients:
            client.change_sampling_parameters(self.bin_count, self.sample_rate)

    def last_spectrum(self) -> Optional[np.ndarray]:
        return self._last

    def last_byte_spectrum(self) -> Optional[np.ndarray]:
        return self._last_bytes

    def push_frame(self, spectrum, timestamp_ms: Optional[float] = None) -> None:
        """Distribute one normalized (0..1) spectrum frame."""
        if not self.has_sampling_parameters:
            raise IllegalStateError("Frame pushed before sampling parameters were set")
        if len(spectrum) != self.bin_count:
            raise SizeMismatchError("spectrum", len(spectrum), self.bin_count)

        t = now_ms() if timestamp_ms is None else timestamp_ms
        self._last = np.array(spectrum, dtype=float)
        self.frames += 1

        for client, source in self._clients:
            data = self._last if source is None else source.last_spectrum()
            if data is None:
                continue
            client.push_frame(data, t)

    def push_byte_frame(self, spectrum, timestamp_ms: Optional[float] = None) -> None:
        """Distribute one byte (0..255) spectrum frame, normalized to 0..1."""
        if self.has_sampling_parameters and len(spectrum) != self.bin_count:
            raise SizeMismatchError("spectrum", len(spectrum), self.bin_count)
        self.push_frame(normalize_byte_spectrum(spectrum), timestamp_ms)
        self._last_bytes = np.array(spectrum, dtype=np.uint8)
