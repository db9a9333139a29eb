"""Public API for Buddhabrot rendering utilities."""

from .composite import ChannelWeights, ColorChannelAssignment, CompositeImage, Compositor
from .config import DEFAULT_THRESHOLDS, RenderConfig
from .errors import ConfigError, DimensionMismatch, EmptyHistogramWarning
from .histogram import HistogramGrid, merge_all
from .iterator import Bounded, EscapeIterator, Escaped, iterate
from .normalize import IntensityImage, Normalizer
from .pipeline import ArraySink, OutputSink, RenderPipeline, RenderResult, render
from .sampling import SamplingEngine, SamplingRun, SamplingStats
from .viewport import CoordinateMapper, Viewport

__all__ = [
    "ArraySink",
    "Bounded",
    "ChannelWeights",
    "ColorChannelAssignment",
    "CompositeImage",
    "Compositor",
    "ConfigError",
    "CoordinateMapper",
    "DEFAULT_THRESHOLDS",
    "DimensionMismatch",
    "EmptyHistogramWarning",
    "EscapeIterator",
    "Escaped",
    "HistogramGrid",
    "IntensityImage",
    "Normalizer",
    "OutputSink",
    "RenderConfig",
    "RenderPipeline",
    "RenderResult",
    "SamplingEngine",
    "SamplingRun",
    "SamplingStats",
    "Viewport",
    "iterate",
    "merge_all",
    "render",
]
