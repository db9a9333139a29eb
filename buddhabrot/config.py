"""Render configuration bundle."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .composite import ChannelWeights, ColorChannelAssignment
from .errors import ConfigError
from .normalize import canonical_mode
from .sampling import BACKENDS, DEFAULT_BATCH_SIZE, MAX_ITERATIONS, REGIONS
from .viewport import Viewport

DEFAULT_THRESHOLDS = (
    ColorChannelAssignment(64, ChannelWeights(blue=1.0)),
    ColorChannelAssignment(256, ChannelWeights(red=1.0)),
    ColorChannelAssignment(4096, ChannelWeights(green=1.0)),
)


@dataclass(frozen=True)
class RenderConfig:
    """Everything needed for one render request."""

    viewport: Viewport
    thresholds: tuple[ColorChannelAssignment, ...] = DEFAULT_THRESHOLDS
    sample_count: int = 1_000_000
    random_seed: Optional[int] = None
    normalization: str = "logarithmic"
    gamma: float = 1.0
    clip_percentile: float = 100.0
    workers: Optional[int] = None
    batch_size: int = DEFAULT_BATCH_SIZE
    region: str = "disk"
    skip_interior: bool = True
    backend: str = "tensorflow"
    time_limit: Optional[float] = None
    keep_histograms: bool = False

    @property
    def grayscale(self) -> bool:
        return len(self.thresholds) == 1 and self.thresholds[0].weights is None

    def validate(self) -> None:
        """Raise :class:`ConfigError` for anything that would make the render meaningless."""

        if not isinstance(self.viewport, Viewport):
            raise ConfigError("viewport must be a Viewport instance.")
        if not self.thresholds:
            raise ConfigError("At least one iteration threshold is required.")
        for threshold in self.thresholds:
            if threshold.max_iterations < 0:
                raise ConfigError(f"max_iterations must not be negative, got {threshold.max_iterations}.")
            if threshold.max_iterations > MAX_ITERATIONS:
                raise ConfigError(f"max_iterations must not exceed {MAX_ITERATIONS}, got {threshold.max_iterations}.")
        if len(self.thresholds) > 1 and any(t.weights is None for t in self.thresholds):
            raise ConfigError("Grayscale thresholds cannot be combined with other layers; give each a color.")
        if self.sample_count <= 0:
            raise ConfigError("sample_count must be positive.")
        if self.random_seed is not None and self.random_seed < 0:
            raise ConfigError("random_seed must not be negative.")
        canonical_mode(self.normalization)
        if not self.gamma > 0:
            raise ConfigError("gamma must be positive.")
        if not 0 < self.clip_percentile <= 100:
            raise ConfigError("clip_percentile must lie in (0, 100].")
        if self.workers is not None and self.workers < 1:
            raise ConfigError("workers must be at least 1.")
        if self.batch_size <= 0:
            raise ConfigError("batch_size must be positive.")
        if self.region not in REGIONS:
            raise ConfigError(f"Unknown sampling region '{self.region}'. Valid choices: {', '.join(REGIONS)}.")
        if self.backend not in BACKENDS:
            raise ConfigError(f"Unknown backend '{self.backend}'. Valid choices: {', '.join(BACKENDS)}.")
        if self.time_limit is not None and not self.time_limit > 0:
            raise ConfigError("time_limit must be positive when given.")
