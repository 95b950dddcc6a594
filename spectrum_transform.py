"""Per-bin multiplicative persistence over the last few spectra."""

from typing import Optional

import numpy as np

from signal_utils import RecentBuffer


class SpectrumTransform:
    """
    Spectrum client producing the per-bin product of the last buffer_size
    spectra. Register it with a SpectrumHub and pass it as the source of
    other clients to feed them the transformed spectrum.
    """

    def __init__(self, buffer_size: int = 5):
        self._buffer = RecentBuffer(buffer_size)
        self._last: Optional[np.ndarray] = None

    @property
    def buffer_size(self) -> int:
        return self._buffer.size

    def set_buffer_size(self, buffer_size: int) -> None:
        self._buffer = RecentBuffer(buffer_size)
        self._last = None

    def clear(self) -> None:
        self._buffer.clear()
        self._last = None

    def change_sampling_parameters(self, bin_count: int, sample_rate: float) -> None:
        self.clear()

    def push_frame(self, spectrum, timestamp_ms: Optional[float] = None) -> np.ndarray:
        self._buffer.add(spectrum)
        self._last = np.prod(np.stack(self._buffer.get_all()), axis=0)
        return self._last

    def last_spectrum(self) -> Optional[np.ndarray]:
        return self._last
