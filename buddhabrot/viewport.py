"""Viewport description and the pixel <-> complex plane mapping."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from .errors import ConfigError


@dataclass(frozen=True)
class Viewport:
    """Rectangular window onto the complex plane and its pixel resolution."""

    real_min: float
    real_max: float
    imag_min: float
    imag_max: float
    width_px: int
    height_px: int

    def __post_init__(self) -> None:
        bounds = (self.real_min, self.real_max, self.imag_min, self.imag_max)
        if not all(math.isfinite(value) for value in bounds):
            raise ConfigError(f"Viewport bounds must be finite, got {bounds}.")
        if not self.real_max > self.real_min:
            raise ConfigError(f"real_max ({self.real_max}) must exceed real_min ({self.real_min}).")
        if not self.imag_max > self.imag_min:
            raise ConfigError(f"imag_max ({self.imag_max}) must exceed imag_min ({self.imag_min}).")
        if int(self.width_px) <= 0 or int(self.height_px) <= 0:
            raise ConfigError(f"Resolution must be positive, got {self.width_px}x{self.height_px}.")

    @property
    def shape(self) -> tuple[int, int]:
        return int(self.height_px), int(self.width_px)

    @property
    def real_span(self) -> float:
        return float(np.float64(self.real_max) - np.float64(self.real_min))

    @property
    def imag_span(self) -> float:
        return float(np.float64(self.imag_max) - np.float64(self.imag_min))

    def locked_aspect(self) -> Viewport:
        """Return a viewport whose imaginary span matches the pixel aspect ratio."""

        aspect = np.float64(self.height_px) / np.float64(self.width_px)
        imag_span = np.float64(self.real_span) * aspect
        imag_center = (np.float64(self.imag_min) + np.float64(self.imag_max)) / 2.0
        return replace(
            self,
            imag_min=float(imag_center - imag_span / 2.0),
            imag_max=float(imag_center + imag_span / 2.0),
        )


class CoordinateMapper:
    """Affine transform between pixel cells and complex-plane points.

    Column ``i`` follows the real axis and row ``j`` the imaginary axis, with
    ``j = 0`` at ``imag_min``. ``pixel_to_complex`` returns cell centers, so
    ``complex_to_pixel(pixel_to_complex(i, j)) == (i, j)`` for every pixel.
    """

    def __init__(self, viewport: Viewport):
        self.viewport = viewport
        self.real_min = float(viewport.real_min)
        self.imag_min = float(viewport.imag_min)
        self.width = int(viewport.width_px)
        self.height = int(viewport.height_px)
        self.real_span = viewport.real_span
        self.imag_span = viewport.imag_span
        # Pixels per unit; the batched kernel uses these exact values too.
        self.re_scale = self.width / self.real_span
        self.im_scale = self.height / self.imag_span

    def pixel_to_complex(self, i: int, j: int) -> complex:
        re = self.real_min + (i + 0.5) * self.real_span / self.width
        im = self.imag_min + (j + 0.5) * self.imag_span / self.height
        return complex(re, im)

    def complex_to_pixel(self, point: complex) -> Optional[tuple[int, int]]:
        x = (point.real - self.real_min) * self.re_scale
        y = (point.imag - self.imag_min) * self.im_scale
        # Far-away orbit points can overflow the scaled offset.
        if not (math.isfinite(x) and math.isfinite(y)):
            return None
        col = math.floor(x)
        row = math.floor(y)
        if 0 <= col < self.width and 0 <= row < self.height:
            return col, row
        return None
