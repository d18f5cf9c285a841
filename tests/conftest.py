"""
Test configuration and fixtures for ChromaSift tests.
"""
import numpy as np
import pytest

RED = (1.0, 0.0, 0.0)
GREEN = (0.0, 1.0, 0.0)
BLUE = (0.0, 0.0, 1.0)
WHITE = (1.0, 1.0, 1.0)


def make_quadrant_image() -> np.ndarray:
    """8x8 float image: red, green / blue, white quadrants of 4x4."""
    image = np.zeros((8, 8, 3), dtype=np.float64)
    image[:4, :4] = RED
    image[:4, 4:] = GREEN
    image[4:, :4] = BLUE
    image[4:, 4:] = WHITE
    return image


@pytest.fixture
def quadrant_image():
    """Four solid 4x4 quadrants (red, green, blue, white)."""
    return make_quadrant_image()


@pytest.fixture
def gradient_image():
    """256-pixel horizontal red -> blue gradient."""
    t = np.linspace(0.0, 1.0, 256)
    image = np.zeros((1, 256, 3), dtype=np.float64)
    image[0, :, 0] = 1.0 - t
    image[0, :, 2] = t
    return image


@pytest.fixture
def random_image():
    """Deterministic 32x32 uint8 noise image."""
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, size=(32, 32, 3), dtype=np.uint8)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Reset metrics before each test."""
    from chromasift.services.observability.metrics import reset_metrics
    reset_metrics()
