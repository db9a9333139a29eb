"""Tone mapping of raw visit counts to 8-bit intensity images."""

from __future__ import annotations

import warnings
from dataclasses import dataclass

import numpy as np

from .errors import ConfigError, EmptyHistogramWarning
from .histogram import HistogramGrid

MAX_INTENSITY = 255
NORMALIZATION_MODES = ("linear", "logarithmic")
_MODE_ALIASES = {"log": "logarithmic", "lin": "linear"}


def canonical_mode(mode: str) -> str:
    name = _MODE_ALIASES.get(mode.lower(), mode.lower())
    if name not in NORMALIZATION_MODES:
        raise ConfigError(f"Unknown normalization mode '{mode}'. Valid choices: {', '.join(NORMALIZATION_MODES)}.")
    return name


def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.ascontiguousarray(array, dtype=np.uint8)
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class IntensityImage:
    """Single-channel uint8 image shaped ``(height, width)``."""

    pixels: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "pixels", _frozen(self.pixels))

    @property
    def width_px(self) -> int:
        return self.pixels.shape[1]

    @property
    def height_px(self) -> int:
        return self.pixels.shape[0]

    @property
    def shape(self) -> tuple[int, int]:
        return self.pixels.shape


class Normalizer:
    """Map a histogram onto ``[0, 255]``.

    ``logarithmic`` (the default) computes ``255 * log(1 + c) / log(1 + max)``
    and keeps the faint outer orbits visible; ``linear`` computes
    ``255 * c / max`` and emphasises the densest regions. ``gamma`` is applied
    to the normalized value before quantization. With ``clip_percentile``
    below 100 the scale maximum is that percentile of the visited pixels and
    denser pixels saturate.
    """

    def __init__(self, mode: str = "logarithmic", *, gamma: float = 1.0, clip_percentile: float = 100.0):
        self.mode = canonical_mode(mode)
        if not gamma > 0:
            raise ConfigError("gamma must be positive.")
        if not 0 < clip_percentile <= 100:
            raise ConfigError("clip_percentile must lie in (0, 100].")
        self.gamma = float(gamma)
        self.clip_percentile = float(clip_percentile)

    def _scale_max(self, counts: np.ndarray) -> float:
        if self.clip_percentile >= 100:
            return float(counts.max())
        visited = counts[counts > 0]
        return float(np.percentile(visited, self.clip_percentile))

    def normalize(self, grid: HistogramGrid) -> IntensityImage:
        counts = grid.counts
        if counts.size == 0 or not counts.any():
            warnings.warn(
                "Histogram is empty; no escaping orbit crossed the viewport. "
                "Check the viewport bounds and sample count.",
                EmptyHistogramWarning,
                stacklevel=2,
            )
            return IntensityImage(np.zeros(counts.shape, dtype=np.uint8))

        top = self._scale_max(counts)
        values = np.minimum(counts.astype(np.float64), top)
        if self.mode == "linear":
            v = values / top
        else:
            v = np.log1p(values) / np.log1p(top)

        if self.gamma != 1.0:
            v = v ** self.gamma
        return IntensityImage(np.rint(np.clip(v, 0.0, 1.0) * MAX_INTENSITY).astype(np.uint8))
