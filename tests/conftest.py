import os

os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "3")

import pytest

from buddhabrot import Viewport


@pytest.fixture
def classic_viewport():
    """The full Buddhabrot frame at a test-friendly resolution."""
    return Viewport(real_min=-2.0, real_max=1.0, imag_min=-1.5, imag_max=1.5, width_px=100, height_px=100)


@pytest.fixture
def small_viewport():
    return Viewport(real_min=-2.0, real_max=1.0, imag_min=-1.5, imag_max=1.5, width_px=24, height_px=16)
