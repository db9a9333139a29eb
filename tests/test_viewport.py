import math

import pytest

from buddhabrot import ConfigError, CoordinateMapper, Viewport


def test_pixel_roundtrip_every_pixel(classic_viewport):
    mapper = CoordinateMapper(classic_viewport)
    for j in range(classic_viewport.height_px):
        for i in range(classic_viewport.width_px):
            assert mapper.complex_to_pixel(mapper.pixel_to_complex(i, j)) == (i, j)


def test_pixel_roundtrip_non_square_offset_window():
    viewport = Viewport(real_min=-0.75, real_max=-0.7, imag_min=0.1, imag_max=0.13, width_px=37, height_px=11)
    mapper = CoordinateMapper(viewport)
    for j in range(viewport.height_px):
        for i in range(viewport.width_px):
            assert mapper.complex_to_pixel(mapper.pixel_to_complex(i, j)) == (i, j)


def test_pixel_to_complex_returns_cell_centers():
    viewport = Viewport(real_min=0.0, real_max=4.0, imag_min=-2.0, imag_max=2.0, width_px=4, height_px=2)
    mapper = CoordinateMapper(viewport)
    assert mapper.pixel_to_complex(0, 0) == complex(0.5, -1.0)
    assert mapper.pixel_to_complex(3, 1) == complex(3.5, 1.0)


def test_complex_to_pixel_edges():
    viewport = Viewport(real_min=0.0, real_max=4.0, imag_min=0.0, imag_max=2.0, width_px=4, height_px=2)
    mapper = CoordinateMapper(viewport)
    assert mapper.complex_to_pixel(complex(0.0, 0.0)) == (0, 0)
    assert mapper.complex_to_pixel(complex(3.999, 1.999)) == (3, 1)
    # upper bounds are exclusive
    assert mapper.complex_to_pixel(complex(4.0, 1.0)) is None
    assert mapper.complex_to_pixel(complex(1.0, 2.0)) is None


@pytest.mark.parametrize(
    "point",
    [
        complex(-2.5, 0.0), complex(0.0, -1.6), complex(1.2, 1.7),
        complex(math.nan, 0.0), complex(0.0, math.inf), complex(1e308, 0.0), complex(-1e308, 1e308),
    ],
)
def test_out_of_frame_points_map_to_none(classic_viewport, point):
    assert CoordinateMapper(classic_viewport).complex_to_pixel(point) is None


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(real_min=1.0, real_max=1.0, imag_min=-1.0, imag_max=1.0, width_px=10, height_px=10),
        dict(real_min=1.0, real_max=-1.0, imag_min=-1.0, imag_max=1.0, width_px=10, height_px=10),
        dict(real_min=-1.0, real_max=1.0, imag_min=1.0, imag_max=0.0, width_px=10, height_px=10),
        dict(real_min=-1.0, real_max=1.0, imag_min=-1.0, imag_max=1.0, width_px=0, height_px=10),
        dict(real_min=-1.0, real_max=1.0, imag_min=-1.0, imag_max=1.0, width_px=10, height_px=-3),
        dict(real_min=-math.inf, real_max=1.0, imag_min=-1.0, imag_max=1.0, width_px=10, height_px=10),
    ],
)
def test_invalid_viewport_raises_config_error(kwargs):
    with pytest.raises(ConfigError):
        Viewport(**kwargs)


def test_locked_aspect_matches_resolution():
    viewport = Viewport(real_min=-2.0, real_max=1.0, imag_min=-1.0, imag_max=1.0, width_px=300, height_px=150)
    locked = viewport.locked_aspect()
    assert locked.real_min == viewport.real_min
    assert locked.real_max == viewport.real_max
    assert locked.imag_span == pytest.approx(1.5)
    assert (locked.imag_min + locked.imag_max) / 2.0 == pytest.approx(0.0)
