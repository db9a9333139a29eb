"""Monte-Carlo sampling of seeds into a visitation histogram."""

from __future__ import annotations

import logging
import math
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np

from .errors import ConfigError
from .histogram import HistogramGrid, merge_all
from .iterator import EscapeIterator, Escaped
from .kernel import MAX_ITERATIONS, orbit_histogram
from .viewport import CoordinateMapper, Viewport

logger = logging.getLogger(__name__)

SAMPLING_RADIUS = 2.0
DEFAULT_BATCH_SIZE = 50_000
REGIONS = ("disk", "square")
BACKENDS = ("tensorflow", "python")

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class SamplingStats:
    """Bookkeeping for one sampling run."""

    samples: int
    escaped: int
    orbit_points: int
    recorded: int
    batches: int
    complete: bool


@dataclass(frozen=True)
class SamplingRun:
    grid: HistogramGrid
    stats: SamplingStats


@dataclass
class _WorkerTally:
    grid: HistogramGrid
    samples: int = 0
    escaped: int = 0
    orbit_points: int = 0
    batches: int = 0


def in_main_bulbs(re: np.ndarray, im: np.ndarray) -> np.ndarray:
    """True for seeds inside the main cardioid or the period-2 bulb."""

    x = re - 0.25
    y2 = im * im
    q = x * x + y2
    cardioid = q * (q + x) <= 0.25 * y2
    bulb = (re + 1.0) ** 2 + y2 <= 0.0625
    return cardioid | bulb


def partition_batches(batch_count: int, workers: int) -> list[range]:
    """Split ``range(batch_count)`` into at most ``workers`` contiguous runs."""

    workers = max(1, min(workers, batch_count))
    base, extra = divmod(batch_count, workers)
    runs = []
    start = 0
    for w in range(workers):
        stop = start + base + (1 if w < extra else 0)
        runs.append(range(start, stop))
        start = stop
    return runs


class SamplingEngine:
    """Uniform random sampling over the radius-2 region around the origin.

    Seeds are drawn per batch from ``SeedSequence(entropy, spawn_key=(stream, batch))``
    so the histogram depends only on the seed, batch size, region and stream,
    never on how batches were spread across workers.
    """

    def __init__(
        self,
        *,
        random_seed: Optional[int] = None,
        workers: Optional[int] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        region: str = "disk",
        skip_interior: bool = True,
        backend: str = "tensorflow",
        device: Optional[str] = None,
        time_limit: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        if region not in REGIONS:
            raise ConfigError(f"Unknown sampling region '{region}'. Valid choices: {', '.join(REGIONS)}.")
        if backend not in BACKENDS:
            raise ConfigError(f"Unknown backend '{backend}'. Valid choices: {', '.join(BACKENDS)}.")
        if batch_size <= 0:
            raise ConfigError("batch_size must be positive.")
        if workers is not None and workers < 1:
            raise ConfigError("workers must be at least 1.")

        self.entropy = np.random.SeedSequence(random_seed).entropy
        if random_seed is None:
            logger.info("No random seed supplied; sampling with entropy %d", self.entropy)
        self.workers = workers or os.cpu_count() or 1
        self.batch_size = int(batch_size)
        self.region = region
        self.skip_interior = skip_interior
        self.backend = backend
        self.device = device
        self.time_limit = time_limit
        self.progress = progress
        self.cancel_event = cancel_event
        self._lock = threading.Lock()
        self._done = 0

    def batch_seeds(self, batch_index: int, count: int, stream: int = 0) -> tuple[np.ndarray, np.ndarray]:
        """Draw the raw seeds of one batch as separate real and imaginary arrays."""

        sequence = np.random.SeedSequence(self.entropy, spawn_key=(stream, batch_index))
        rng = np.random.default_rng(sequence)
        if self.region == "disk":
            radius = SAMPLING_RADIUS * np.sqrt(rng.random(count))
            theta = 2.0 * np.pi * rng.random(count)
            return radius * np.cos(theta), radius * np.sin(theta)
        re = rng.uniform(-SAMPLING_RADIUS, SAMPLING_RADIUS, count)
        im = rng.uniform(-SAMPLING_RADIUS, SAMPLING_RADIUS, count)
        return re, im

    def run(self, viewport: Viewport, sample_count: int, max_iterations: int, *, stream: int = 0) -> HistogramGrid:
        return self.sample(viewport, sample_count, max_iterations, stream=stream).grid

    def sample(self, viewport: Viewport, sample_count: int, max_iterations: int, *, stream: int = 0) -> SamplingRun:
        if sample_count <= 0:
            raise ConfigError("sample_count must be positive.")
        if not 0 <= max_iterations <= MAX_ITERATIONS:
            raise ConfigError(f"max_iterations must lie in [0, {MAX_ITERATIONS}], got {max_iterations}.")

        mapper = CoordinateMapper(viewport)
        batch_count = math.ceil(sample_count / self.batch_size)
        runs = partition_batches(batch_count, self.workers)
        deadline = time.monotonic() + self.time_limit if self.time_limit is not None else None
        self._done = 0

        logger.debug(
            "Sampling %d seeds in %d batches over %d workers (max_iterations=%d, backend=%s)",
            sample_count, batch_count, len(runs), max_iterations, self.backend,
        )

        def work(batches: Sequence[int]) -> _WorkerTally:
            return self._work(batches, sample_count, max_iterations, mapper, stream, deadline)

        if len(runs) == 1:
            tallies = [work(runs[0])]
        else:
            with ThreadPoolExecutor(max_workers=len(runs)) as pool:
                tallies = list(pool.map(work, runs))

        grid = merge_all(tally.grid for tally in tallies)
        done_batches = sum(tally.batches for tally in tallies)
        stats = SamplingStats(
            samples=sum(tally.samples for tally in tallies),
            escaped=sum(tally.escaped for tally in tallies),
            orbit_points=sum(tally.orbit_points for tally in tallies),
            recorded=grid.total(),
            batches=done_batches,
            complete=done_batches == batch_count,
        )
        if not stats.complete:
            logger.warning(
                "Sampling stopped early after %d of %d batches (%d of %d seeds)",
                done_batches, batch_count, stats.samples, sample_count,
            )
        logger.debug("Sampling finished: %s", stats)
        return SamplingRun(grid=grid, stats=stats)

    def _should_stop(self, deadline: Optional[float]) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return deadline is not None and time.monotonic() >= deadline

    def _work(
        self,
        batches: Sequence[int],
        sample_count: int,
        max_iterations: int,
        mapper: CoordinateMapper,
        stream: int,
        deadline: Optional[float],
    ) -> _WorkerTally:
        tally = _WorkerTally(grid=HistogramGrid.for_viewport(mapper.viewport))
        iterator = EscapeIterator(max_iterations) if self.backend == "python" else None

        for batch_index in batches:
            if self._should_stop(deadline):
                break
            count = min(self.batch_size, sample_count - batch_index * self.batch_size)
            re, im = self.batch_seeds(batch_index, count, stream)
            if self.skip_interior:
                keep = ~in_main_bulbs(re, im)
                re, im = re[keep], im[keep]

            if iterator is None:
                result = orbit_histogram(re, im, max_iterations, mapper, device=self.device)
                tally.grid.merge(HistogramGrid.from_counts(result.counts))
                escaped, orbit_points = result.escaped, result.orbit_points
            else:
                escaped, orbit_points = _iterate_batch(iterator, re, im, max_iterations, mapper, tally.grid)

            tally.samples += count
            tally.escaped += escaped
            tally.orbit_points += orbit_points
            tally.batches += 1
            self._report(count, sample_count)
        return tally

    def _report(self, count: int, sample_count: int) -> None:
        with self._lock:
            self._done += count
            done = self._done
        if self.progress is not None:
            self.progress(done, sample_count)


def _iterate_batch(
    iterator: EscapeIterator,
    seeds_re: np.ndarray,
    seeds_im: np.ndarray,
    max_iterations: int,
    mapper: CoordinateMapper,
    grid: HistogramGrid,
) -> tuple[int, int]:
    """Scalar path: iterate seeds one by one straight into ``grid``."""

    escaped = 0
    orbit_points = 0
    for cr, ci in zip(seeds_re.tolist(), seeds_im.tolist()):
        result = iterator.iterate(complex(cr, ci), max_iterations)
        if not isinstance(result, Escaped):
            continue
        escaped += 1
        orbit_points += result.iterations_used
        for z in result.orbit.tolist():
            pixel = mapper.complex_to_pixel(z)
            if pixel is not None:
                grid.increment(*pixel)
    return escaped, orbit_points
