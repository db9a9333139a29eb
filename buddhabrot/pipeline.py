"""End-to-end render orchestration."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from .composite import CompositeImage, Compositor
from .config import RenderConfig
from .histogram import HistogramGrid
from .normalize import IntensityImage, Normalizer
from .sampling import ProgressCallback, SamplingEngine, SamplingStats

logger = logging.getLogger(__name__)

Image = Union[CompositeImage, IntensityImage]


class OutputSink(Protocol):
    def deliver(self, image: Image, width_px: int, height_px: int) -> None:
        ...


class ArraySink:
    """Keep the most recent delivery in memory."""

    def __init__(self) -> None:
        self.image: Optional[Image] = None
        self.size: Optional[tuple[int, int]] = None

    def deliver(self, image: Image, width_px: int, height_px: int) -> None:
        self.image = image
        self.size = (width_px, height_px)


@dataclass(frozen=True)
class RenderResult:
    """Container for the final image and the per-threshold intermediates."""

    image: Image
    layers: tuple[IntensityImage, ...]
    histograms: tuple[HistogramGrid, ...]
    stats: tuple[SamplingStats, ...]

    @property
    def complete(self) -> bool:
        return all(s.complete for s in self.stats)


class RenderPipeline:
    """Sample, normalize and composite every configured threshold.

    The configuration is validated on construction, so a bad request fails
    with :class:`~buddhabrot.errors.ConfigError` before any sampling work.
    """

    def __init__(
        self,
        config: RenderConfig,
        *,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        device: Optional[str] = None,
    ):
        config.validate()
        self.config = config
        self.engine = SamplingEngine(
            random_seed=config.random_seed,
            workers=config.workers,
            batch_size=config.batch_size,
            region=config.region,
            skip_interior=config.skip_interior,
            backend=config.backend,
            device=device,
            time_limit=config.time_limit,
            progress=progress,
            cancel_event=cancel_event,
        )
        self.normalizer = Normalizer(
            config.normalization,
            gamma=config.gamma,
            clip_percentile=config.clip_percentile,
        )
        self.compositor = Compositor()

    def render(self) -> RenderResult:
        config = self.config
        viewport = config.viewport
        layers: list[IntensityImage] = []
        histograms: list[HistogramGrid] = []
        stats: list[SamplingStats] = []

        for stream, threshold in enumerate(config.thresholds):
            logger.info(
                "Threshold %d/%d: max_iterations=%d, %d samples",
                stream + 1, len(config.thresholds), threshold.max_iterations, config.sample_count,
            )
            run = self.engine.sample(viewport, config.sample_count, threshold.max_iterations, stream=stream)
            layers.append(self.normalizer.normalize(run.grid))
            stats.append(run.stats)
            if config.keep_histograms:
                histograms.append(run.grid)
            logger.info(
                "Threshold %d/%d: %d escaped, %d of %d orbit points in frame",
                stream + 1, len(config.thresholds), run.stats.escaped, run.stats.recorded, run.stats.orbit_points,
            )

        if config.grayscale:
            image: Image = layers[0]
        else:
            image = self.compositor.composite(list(zip(layers, config.thresholds)))

        return RenderResult(
            image=image,
            layers=tuple(layers),
            histograms=tuple(histograms),
            stats=tuple(stats),
        )

    def run(self, sink: OutputSink) -> RenderResult:
        result = self.render()
        sink.deliver(result.image, self.config.viewport.width_px, self.config.viewport.height_px)
        return result


def render(config: RenderConfig, sink: Optional[OutputSink] = None, **kwargs) -> RenderResult:
    """Render ``config`` and hand the image to ``sink`` when one is given."""

    pipeline = RenderPipeline(config, **kwargs)
    if sink is None:
        return pipeline.render()
    return pipeline.run(sink)
