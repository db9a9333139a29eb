import threading
from dataclasses import replace

import numpy as np
import pytest

from buddhabrot import (
    ArraySink,
    ChannelWeights,
    ColorChannelAssignment,
    CompositeImage,
    ConfigError,
    EmptyHistogramWarning,
    IntensityImage,
    RenderConfig,
    RenderPipeline,
    Viewport,
    render,
)

COLOR_THRESHOLDS = (
    ColorChannelAssignment(16, ChannelWeights(blue=1.0)),
    ColorChannelAssignment(48, ChannelWeights(red=1.0)),
    ColorChannelAssignment(96, ChannelWeights(green=1.0)),
)


@pytest.fixture
def color_config(small_viewport):
    return RenderConfig(
        viewport=small_viewport,
        thresholds=COLOR_THRESHOLDS,
        sample_count=3_000,
        random_seed=42,
        batch_size=1_000,
        workers=2,
    )


def test_composite_render_is_delivered_to_sink(color_config):
    sink = ArraySink()
    result = RenderPipeline(color_config).run(sink)
    assert isinstance(sink.image, CompositeImage)
    assert sink.size == (24, 16)
    assert sink.image.pixels.shape == (16, 24, 3)
    assert len(result.layers) == 3
    assert result.histograms == ()
    assert result.complete


def test_composite_channels_come_from_their_layers(color_config):
    result = RenderPipeline(color_config).render()
    pixels = result.image.pixels
    np.testing.assert_array_equal(pixels[..., 2], result.layers[0].pixels)
    np.testing.assert_array_equal(pixels[..., 0], result.layers[1].pixels)
    np.testing.assert_array_equal(pixels[..., 1], result.layers[2].pixels)


def test_identical_configs_render_identical_images(color_config):
    first = render(color_config)
    second = render(color_config)
    assert first.image.pixels.tobytes() == second.image.pixels.tobytes()


def test_grayscale_mode_returns_intensity_image(small_viewport):
    config = RenderConfig(
        viewport=small_viewport,
        thresholds=(ColorChannelAssignment(60),),
        sample_count=2_000,
        random_seed=1,
        keep_histograms=True,
    )
    sink = ArraySink()
    result = render(config, sink)
    assert isinstance(result.image, IntensityImage)
    assert sink.image is result.image
    assert result.image is result.layers[0]
    assert len(result.histograms) == 1
    assert result.histograms[0].total() == result.stats[0].recorded


def test_layers_use_independent_seed_streams(small_viewport):
    same = ColorChannelAssignment(40, ChannelWeights(red=1.0))
    config = RenderConfig(
        viewport=small_viewport,
        thresholds=(same, replace(same, weights=ChannelWeights(green=1.0))),
        sample_count=2_000,
        random_seed=8,
        keep_histograms=True,
    )
    result = render(config)
    assert not np.array_equal(result.histograms[0].counts, result.histograms[1].counts)


def test_viewport_missing_every_orbit_warns_and_renders_black():
    far_away = Viewport(real_min=50.0, real_max=60.0, imag_min=50.0, imag_max=60.0, width_px=8, height_px=8)
    config = RenderConfig(viewport=far_away, thresholds=COLOR_THRESHOLDS[:1], sample_count=500, random_seed=3)
    with pytest.warns(EmptyHistogramWarning):
        result = render(config)
    assert not result.image.pixels.any()


def test_cancelled_render_is_marked_incomplete(color_config):
    cancel = threading.Event()
    cancel.set()
    with pytest.warns(EmptyHistogramWarning):
        result = RenderPipeline(color_config, cancel_event=cancel).render()
    assert not result.complete


@pytest.mark.parametrize(
    "changes",
    [
        dict(sample_count=0),
        dict(thresholds=()),
        dict(thresholds=(ColorChannelAssignment(-1, ChannelWeights(red=1.0)),)),
        dict(thresholds=(ColorChannelAssignment(3_000_000_000, ChannelWeights(red=1.0)),)),
        dict(thresholds=(ColorChannelAssignment(10), ColorChannelAssignment(20, ChannelWeights(red=1.0)))),
        dict(normalization="cubic"),
        dict(gamma=-1.0),
        dict(clip_percentile=0.0),
        dict(workers=0),
        dict(batch_size=0),
        dict(region="annulus"),
        dict(backend="opencl"),
        dict(time_limit=0.0),
        dict(random_seed=-5),
    ],
)
def test_invalid_config_fails_before_sampling(color_config, changes):
    with pytest.raises(ConfigError):
        RenderPipeline(replace(color_config, **changes))
