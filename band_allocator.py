"""
lightorgan - Band allocation
Partitions an FFT spectrum into contiguous bands whose widths grow
geometrically, and reduces each band to a single energy value.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from errors import SizeMismatchError
from logging_utils import log_event
from signal_utils import round_half_up


def target_bin_count(sample_rate: float, bin_count: int, max_freq: float) -> int:
    """Number of FFT bins needed to cover 0..max_freq."""
    return round_half_up(2 * bin_count * max_freq / sample_rate)


@dataclass(frozen=True)
class BandLayout:
    """Immutable channel grouping of a spectrum; recomputed on any input change."""
    bin_count: int
    sample_rate: float
    max_freq: float
    channel_count: int
    span_ratio: float
    sizes: Tuple[int, ...]

    @property
    def target_bins(self) -> int:
        return min(self.bin_count, target_bin_count(self.sample_rate, self.bin_count, self.max_freq))

    @property
    def covered_bins(self) -> int:
        return sum(self.sizes)

    def band_edges(self) -> List[Tuple[int, int]]:
        """(start, stop) bin index of every band, stop exclusive."""
        edges = []
        start = 0
        for size in self.sizes:
            edges.append((start, start + size))
            start += size
        return edges

    def band_frequencies(self) -> List[Tuple[float, float]]:
        """(low, high) frequency of every band in Hz."""
        freq_per_bin = self.sample_rate / (2 * self.bin_count)
        return [(start * freq_per_bin, stop * freq_per_bin) for start, stop in self.band_edges()]

    def group(self, spectrum, exponent: int = 1) -> np.ndarray:
        """Mean of bin ** exponent over every band."""
        return BandEnergyReducer(exponent).reduce(self, spectrum)


class BandEnergyReducer:
    """Reduces per-bin magnitudes to per-band (or whole-spectrum) energy."""

    def __init__(self, exponent: int = 1):
        exponent = int(exponent)
        if exponent < 1:
            raise ValueError(f"Bin exponent must be >= 1, got {exponent}")
        self.exponent = exponent

    def _powered(self, spectrum) -> np.ndarray:
        s = np.asarray(spectrum, dtype=float)
        return s if self.exponent == 1 else np.power(s, self.exponent)

    def reduce(self, layout: BandLayout, spectrum) -> np.ndarray:
        if len(spectrum) != layout.bin_count:
            raise SizeMismatchError("spectrum", len(spectrum), layout.bin_count)

        powered = self._powered(spectrum)
        csum = np.concatenate(([0.0], np.cumsum(powered)))
        sizes = np.asarray(layout.sizes, dtype=int)
        stops = np.cumsum(sizes)
        starts = stops - sizes
        # Bands past the end of the spectrum (more channels than bins) read as silent
        stops = np.minimum(stops, layout.bin_count)
        starts = np.minimum(starts, layout.bin_count)
        return (csum[stops] - csum[starts]) / sizes

    def total(self, spectrum) -> float:
        """Mean of bin ** exponent over the whole spectrum."""
        if len(spectrum) == 0:
            return 0.0
        return float(np.mean(self._powered(spectrum)))


def _fit_sizes(sizes: List[int], target: int) -> int:
    """Adjust sizes in place towards target; returns the final total."""
    total = sum(sizes)

    # Every band gets at least one bin
    for i in range(len(sizes)):
        if sizes[i] < 1:
            total += 1 - sizes[i]
            sizes[i] = 1

    # Trim round-robin from the first band
    while total > target:
        found = False
        for i in range(len(sizes)):
            if total <= target:
                break
            if sizes[i] > 1:
                sizes[i] -= 1
                total -= 1
                found = True
        if not found:
            break

    # Grow round-robin from the last band
    while total < target:
        for i in range(len(sizes) - 1, -1, -1):
            if total >= target:
                break
            sizes[i] += 1
            total += 1

    return total


def allocate(
    sample_rate: float,
    bin_count: int,
    max_freq: float,
    channel_count: int,
    span_ratio: float,
) -> BandLayout:
    """
    Allocate FFT bins to channel_count bands covering 0..max_freq.

    Band widths follow w[i] = a * b ** i with w[last] / w[0] = span_ratio,
    so b = span_ratio ** (1 / (channel_count - 1)) and a is solved so the
    widths sum to the target bin count.
    """
    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")
    if bin_count < 1:
        raise ValueError(f"Bin count must be >= 1, got {bin_count}")
    if channel_count < 1:
        raise ValueError(f"Channel count must be >= 1, got {channel_count}")
    if max_freq <= 0:
        raise ValueError(f"Max frequency must be positive, got {max_freq}")
    if span_ratio <= 0:
        raise ValueError(f"Span ratio must be positive, got {span_ratio}")

    target = target_bin_count(sample_rate, bin_count, max_freq)
    if target > bin_count:
        log_event("WARNING", "BandAllocator", "Max frequency above Nyquist, clamping to spectrum",
                  max_freq=max_freq, target_bins=target, bin_count=bin_count)
        target = bin_count

    if channel_count == 1:
        sizes = [max(1, target)]
    else:
        b = span_ratio ** (1.0 / (channel_count - 1))
        if abs(b - 1.0) < 1e-12:
            a = target / channel_count
        else:
            a = target * (1 - b) / (1 - b ** channel_count)
        sizes = [round_half_up(a * b ** i) for i in range(channel_count)]

    total = _fit_sizes(sizes, target)
    if total != target:
        log_event("WARNING", "BandAllocator", "More channels than bins, layout oversized",
                  channels=channel_count, target_bins=target, covered_bins=total)

    return BandLayout(
        bin_count=bin_count,
        sample_rate=sample_rate,
        max_freq=max_freq,
        channel_count=channel_count,
        span_ratio=span_ratio,
        sizes=tuple(sizes),
    )


def describe_layout(layout: BandLayout) -> Sequence[str]:
    """Human readable band list, one "lo-hi Hz (n bins)" entry per band."""
    return [
        f"{low:.0f}-{high:.0f} Hz ({size} bins)"
        for (low, high), size in zip(layout.band_frequencies(), layout.sizes)
    ]
