"""
Pytest configuration and fixtures for Photo Refine tests.
"""
import os
import tempfile

import cv2
import numpy as np
import pytest

# Keep request logs out of the home directory
os.environ.setdefault('PHOTOREFINE_LOG_DIR', tempfile.mkdtemp(prefix='photorefine-logs-'))
os.environ.setdefault('PHOTOREFINE_NEURAL_ENABLED', 'false')

from photorefine.core.pixel_buffer import PixelBuffer  # noqa: E402


def create_test_image(width=64, height=48, scene='interior'):
    """Create a synthetic RGBA test image as a PixelBuffer."""
    img = np.zeros((height, width, 3), dtype=np.uint8)

    if scene == 'interior':
        # Dark room with bright window
        img[:, :] = [50, 55, 60]
        wx, wy = int(width * 0.6), int(height * 0.1)
        ww, wh = max(1, int(width * 0.3)), max(1, int(height * 0.4))
        img[wy:wy + wh, wx:wx + ww] = [255, 255, 255]
        # Floor
        img[int(height * 0.7):, :] = [60, 70, 80]

    elif scene == 'gradient':
        xs = np.linspace(0, 255, width)
        img[:, :, 0] = xs[np.newaxis, :]
        img[:, :, 1] = np.linspace(0, 255, height)[:, np.newaxis]
        img[:, :, 2] = 128

    elif scene == 'noisy':
        rng = np.random.default_rng(7)
        img[:, :] = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)

    elif scene == 'skin':
        # Skin tone on the left half, grey-blue on the right
        img[:, :width // 2] = [210, 160, 130]
        img[:, width // 2:] = [90, 100, 120]

    elif scene == 'dark':
        rng = np.random.default_rng(3)
        img[:, :] = rng.integers(5, 40, size=(height, width, 3), dtype=np.uint8)

    return PixelBuffer.from_array(img)


def encode_png(buffer: PixelBuffer) -> bytes:
    return buffer.encode('.png')


@pytest.fixture
def interior():
    return create_test_image(scene='interior')


@pytest.fixture
def gradient():
    return create_test_image(scene='gradient')


@pytest.fixture
def noisy():
    return create_test_image(scene='noisy')


@pytest.fixture
def grey_4x4():
    """Uniform mid-grey 4x4 image."""
    return PixelBuffer.blank(4, 4, (128, 128, 128, 255))


@pytest.fixture
def transparent_pixel():
    """Single fully transparent pixel."""
    return PixelBuffer.blank(1, 1, (0, 0, 0, 0))


@pytest.fixture
def jpeg_bytes(interior):
    ok, encoded = cv2.imencode('.jpg', cv2.cvtColor(interior.pixels, cv2.COLOR_RGBA2BGR))
    assert ok
    return encoded.tobytes()
