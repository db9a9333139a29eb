"""Per-seed escape-time iteration of z <- z^2 + c."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Union

import numpy as np

HORIZON = 4.0


@dataclass(frozen=True)
class Escaped:
    """Seed diverged; ``orbit`` holds every z visited up to and including escape."""

    orbit: np.ndarray
    iterations_used: int


@dataclass(frozen=True)
class Bounded:
    """Seed did not escape within the iteration bound, or its orbit stopped being finite."""


BOUNDED = Bounded()

EscapeResult = Union[Escaped, Bounded]


class EscapeIterator:
    """Iterate seeds one at a time, recording orbits in a reusable buffer.

    The orbit carried by an :class:`Escaped` result is a view into the
    iterator's buffer and is only valid until the next call to
    :meth:`iterate`. Copy it if it must outlive that call.
    """

    def __init__(self, capacity: int = 0):
        self._buffer = np.empty(max(int(capacity), 0), dtype=np.complex128)

    def _reserve(self, max_iterations: int) -> np.ndarray:
        if self._buffer.size < max_iterations:
            self._buffer = np.empty(max_iterations, dtype=np.complex128)
        return self._buffer

    def iterate(self, seed: complex, max_iterations: int) -> EscapeResult:
        if max_iterations <= 0:
            return BOUNDED

        buffer = self._reserve(max_iterations)
        cr = float(seed.real)
        ci = float(seed.imag)
        zr = 0.0
        zi = 0.0
        for step in range(max_iterations):
            zr, zi = zr * zr - zi * zi + cr, 2.0 * zr * zi + ci
            if not (math.isfinite(zr) and math.isfinite(zi)):
                return BOUNDED
            buffer[step] = complex(zr, zi)
            # A finite z far out may still overflow the squared magnitude to inf.
            if zr * zr + zi * zi > HORIZON:
                return Escaped(orbit=buffer[:step + 1], iterations_used=step + 1)
        return BOUNDED


def iterate(seed: complex, max_iterations: int) -> EscapeResult:
    """Iterate a single seed and return a result that owns its orbit."""

    result = EscapeIterator(max_iterations).iterate(seed, max_iterations)
    if isinstance(result, Escaped):
        return Escaped(orbit=result.orbit.copy(), iterations_used=result.iterations_used)
    return result
