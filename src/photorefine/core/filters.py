"""
Spatial & tonal filters
=======================

Every filter takes a PixelBuffer and returns a new one. RGB is processed in
float64 and clamped to 0-255 on the way back; alpha is passed through.

Filters that look at neighbours (blur, sharpen, local contrast, denoise,
vignette) return a copy for buffers whose width or height is 1.
"""

import cv2
import numpy as np

from .. import config
from .color_space import hsl_to_rgb_array, mean_luminance, rgb_to_hsl_array
from .errors import BufferShapeError
from .pixel_buffer import PixelBuffer


def _has_neighbours(buffer: PixelBuffer) -> bool:
    return buffer.width > 1 and buffer.height > 1


def _box_mean(values: np.ndarray, radius: int, axis: int) -> np.ndarray:
    """Mean over a 2r+1 window along one axis, truncated at the borders."""
    n = values.shape[axis]
    if radius <= 0 or n == 1:
        return values.astype(np.float64)

    csum = np.cumsum(values, axis=axis, dtype=np.float64)
    pad_shape = list(values.shape)
    pad_shape[axis] = 1
    csum = np.concatenate([np.zeros(pad_shape), csum], axis=axis)

    idx = np.arange(n)
    hi = np.minimum(idx + radius, n - 1) + 1
    lo = np.maximum(idx - radius, 0)
    sums = np.take(csum, hi, axis=axis) - np.take(csum, lo, axis=axis)

    counts_shape = [1] * values.ndim
    counts_shape[axis] = n
    return sums / (hi - lo).reshape(counts_shape)


def box_blur_plane(plane: np.ndarray, radius: int) -> np.ndarray:
    """Separable box blur of a 2-D (or H x W x C) float array."""
    horizontal = _box_mean(plane, radius, axis=1)
    return _box_mean(horizontal, radius, axis=0)


def box_blur(buffer: PixelBuffer, radius: int = 1) -> PixelBuffer:
    """Two-pass mean filter; edge pixels average only in-bounds samples."""
    if radius <= 0 or not _has_neighbours(buffer):
        return buffer.copy()
    return buffer.with_rgb(box_blur_plane(buffer.rgb(), radius))


def unsharp_mask(
    buffer: PixelBuffer,
    amount: float,
    radius: int = 1,
    threshold: float = config.UNSHARP_THRESHOLD,
) -> PixelBuffer:
    """
    sharpened = original + (original - blurred) * amount

    Differences at or below ``threshold`` are left alone so flat noise is
    not amplified.
    """
    if amount <= 0 or not _has_neighbours(buffer):
        return buffer.copy()

    original = buffer.rgb()
    blurred = np.round(box_blur_plane(original, radius))
    diff = original - blurred
    sharpened = np.where(np.abs(diff) > threshold, original + diff * amount, original)
    return buffer.with_rgb(sharpened)


def local_contrast(
    buffer: PixelBuffer,
    radius: int = config.LOCAL_CONTRAST_RADIUS,
    amount: float = 0.3,
) -> PixelBuffer:
    """Scale each pixel by how far its luminance sits from the local mean."""
    if amount == 0 or not _has_neighbours(buffer):
        return buffer.copy()

    rgb = buffer.rgb()
    gray = np.round(mean_luminance(rgb))
    surround = box_blur_plane(gray, radius)
    factor = (128.0 + (gray - surround) * amount) / 128.0
    return buffer.with_rgb(rgb * factor[:, :, np.newaxis])


def vignette(buffer: PixelBuffer, strength: float = 0.3, falloff: float = 2.0) -> PixelBuffer:
    """Radial darkening: multiplier = 1 - strength * d ** falloff, d in [0, 1]."""
    strength = float(np.clip(strength, 0.0, 1.0))
    if strength == 0 or not _has_neighbours(buffer):
        return buffer.copy()

    h, w = buffer.height, buffer.width
    cy, cx = (h - 1) / 2.0, (w - 1) / 2.0
    ys, xs = np.mgrid[0:h, 0:w]
    dist = np.sqrt((xs - cx) ** 2 + (ys - cy) ** 2) / np.sqrt(cx ** 2 + cy ** 2)
    multiplier = 1.0 - strength * np.clip(dist, 0.0, 1.0) ** max(falloff, 0.1)
    return buffer.with_rgb(buffer.rgb() * multiplier[:, :, np.newaxis])


def letterbox(buffer: PixelBuffer, bar_fraction: float = 0.1) -> PixelBuffer:
    """Black cinema bars over the top and bottom rows."""
    bar = min(int(round(buffer.height * bar_fraction)), buffer.height // 2)
    if bar <= 0:
        return buffer.copy()
    rgb = buffer.rgb()
    rgb[:bar] = 0
    rgb[buffer.height - bar:] = 0
    return buffer.with_rgb(rgb)


# ============================================================================
# PER-PIXEL TONE & COLOUR
# ============================================================================

def adjust_saturation(buffer: PixelBuffer, factor) -> PixelBuffer:
    """
    Multiply HSL saturation by ``factor`` (scalar, or an H x W array), capped at 1.
    """
    h, s, l = rgb_to_hsl_array(buffer.rgb() / 255.0)
    s = np.minimum(1.0, s * np.asarray(factor, dtype=np.float64))
    return buffer.with_rgb(hsl_to_rgb_array(h, s, l) * 255.0)


def adjust_brightness(buffer: PixelBuffer, offset: float) -> PixelBuffer:
    """Add ``offset`` intensity units to every channel."""
    if offset == 0:
        return buffer.copy()
    return buffer.with_rgb(buffer.rgb() + offset)


def adjust_contrast(buffer: PixelBuffer, factor: float) -> PixelBuffer:
    """Stretch (factor > 1) or flatten channels around mid-grey."""
    if factor == 1:
        return buffer.copy()
    return buffer.with_rgb(128.0 + (buffer.rgb() - 128.0) * factor)


def blend(base: PixelBuffer, overlay: PixelBuffer, ratio: float) -> PixelBuffer:
    """base * (1 - ratio) + overlay * ratio, alpha from ``base``."""
    if not base.same_size(overlay):
        raise BufferShapeError(
            f"Cannot blend {overlay.width}x{overlay.height} onto {base.width}x{base.height}"
        )
    ratio = float(np.clip(ratio, 0.0, 1.0))
    return base.with_rgb(base.rgb() * (1.0 - ratio) + overlay.rgb() * ratio)


# ============================================================================
# LOCAL SUBSTITUTES FOR THE NEURAL MODELS
# ============================================================================

def reduce_noise(buffer: PixelBuffer, strength: float) -> PixelBuffer:
    """
    Edge-preserving denoise (bilateral chain) blended in by strength / 100.

    Stands in for the neural denoiser when it is not available.
    """
    ratio = float(np.clip(strength, 0.0, 100.0)) / 100.0
    if ratio == 0 or not _has_neighbours(buffer):
        return buffer.copy()

    # Bilateral parameters scale with strength (light → heavy)
    d = 5 if ratio < 0.6 else 9
    sigma_color = 30 + 70 * ratio
    sigma_space = 30 + 45 * ratio

    rgb = np.ascontiguousarray(buffer.pixels[:, :, :3])
    denoised = cv2.bilateralFilter(rgb, d, sigma_color, sigma_space)
    return blend(buffer, buffer.with_rgb(denoised.astype(np.float64)), ratio)


def enhance_detail(buffer: PixelBuffer, amount: float = 0.5) -> PixelBuffer:
    """
    Multi-scale detail synthesis at the input resolution.

    Stands in for neural super-resolution: fine and medium detail layers are
    amplified and combined, without changing dimensions.
    """
    if amount <= 0 or not _has_neighbours(buffer):
        return buffer.copy()

    original = buffer.rgb()
    fine = original - box_blur_plane(original, 1)
    medium = original - box_blur_plane(original, 2)
    return buffer.with_rgb(original + fine * amount * 0.6 + medium * amount * 0.4)
