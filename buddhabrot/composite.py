"""Pseudocolor compositing of intensity layers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .errors import ConfigError, DimensionMismatch
from .normalize import MAX_INTENSITY, IntensityImage

NAMED_COLORS = {
    "red": (1.0, 0.0, 0.0),
    "green": (0.0, 1.0, 0.0),
    "blue": (0.0, 0.0, 1.0),
    "cyan": (0.0, 1.0, 1.0),
    "magenta": (1.0, 0.0, 1.0),
    "yellow": (1.0, 1.0, 0.0),
    "white": (1.0, 1.0, 1.0),
}


@dataclass(frozen=True)
class ChannelWeights:
    """Contribution of one layer to the red, green and blue channels."""

    red: float = 0.0
    green: float = 0.0
    blue: float = 0.0

    def __post_init__(self) -> None:
        weights = self.as_tuple()
        if not all(math.isfinite(w) for w in weights):
            raise ConfigError(f"Channel weights must be finite, got {weights}.")
        if min(weights) < 0:
            raise ConfigError(f"Channel weights must not be negative, got {weights}.")

    def as_tuple(self) -> tuple[float, float, float]:
        return self.red, self.green, self.blue

    @classmethod
    def parse(cls, text: str) -> ChannelWeights:
        """Accept a color name, ``#RRGGBB`` or three comma separated weights."""

        text = text.strip().lower()
        if text in NAMED_COLORS:
            return cls(*NAMED_COLORS[text])
        if text.startswith("#"):
            hex_color = text.lstrip("#")
            if len(hex_color) != 6:
                raise ConfigError("Hex colors must be in the form #RRGGBB.")
            try:
                return cls(*(int(hex_color[i:i + 2], 16) / 255.0 for i in (0, 2, 4)))
            except ValueError as exc:
                raise ConfigError("Hex colors must contain only hexadecimal digits.") from exc
        parts = text.split(",")
        if len(parts) != 3:
            raise ConfigError(f"Cannot read color '{text}'. Use a name ({', '.join(NAMED_COLORS)}), #RRGGBB or R,G,B weights.")
        try:
            return cls(*(float(part) for part in parts))
        except ValueError as exc:
            raise ConfigError(f"Channel weights must be numbers, got '{text}'.") from exc


WHITE = ChannelWeights(1.0, 1.0, 1.0)


@dataclass(frozen=True)
class ColorChannelAssignment:
    """One iteration-depth threshold and the channels its layer feeds.

    ``weights`` of ``None`` marks a grayscale layer.
    """

    max_iterations: int
    weights: Optional[ChannelWeights] = None

    @classmethod
    def parse(cls, text: str) -> ColorChannelAssignment:
        """Read ``ITER`` or ``ITER:COLOR``, e.g. ``"256:red"`` or ``"64:0.2,0.4,1"``."""

        head, sep, color = text.partition(":")
        try:
            max_iterations = int(head)
        except ValueError as exc:
            raise ConfigError(f"Threshold '{text}' must start with an integer iteration count.") from exc
        weights = ChannelWeights.parse(color) if sep else None
        return cls(max_iterations=max_iterations, weights=weights)


@dataclass(frozen=True)
class CompositeImage:
    """RGB uint8 image shaped ``(height, width, 3)``."""

    pixels: np.ndarray

    def __post_init__(self) -> None:
        pixels = np.ascontiguousarray(self.pixels, dtype=np.uint8)
        pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)

    @property
    def width_px(self) -> int:
        return self.pixels.shape[1]

    @property
    def height_px(self) -> int:
        return self.pixels.shape[0]


class Compositor:
    """Blend layers with a per-channel lighten (maximum) operation."""

    def composite(self, layers: Sequence[tuple[IntensityImage, ColorChannelAssignment]]) -> CompositeImage:
        if not layers:
            raise ConfigError("At least one layer is required to composite.")

        shape = layers[0][0].shape
        rgb = np.zeros(shape + (3,), dtype=np.float64)
        for image, assignment in layers:
            if image.shape != shape:
                raise DimensionMismatch(f"Layer of shape {image.shape} does not match {shape}.")
            weights = assignment.weights if assignment.weights is not None else WHITE
            intensity = image.pixels.astype(np.float64)
            for channel, weight in enumerate(weights.as_tuple()):
                if weight:
                    np.maximum(rgb[..., channel], intensity * weight, out=rgb[..., channel])

        return CompositeImage(np.rint(np.clip(rgb, 0, MAX_INTENSITY)).astype(np.uint8))
