"""
RGB <-> HSL conversion.

The array functions work on floats in [0, 1] with channels on the last axis
and back every saturation/hue operation in the filters. The scalar functions
take and return bytes and are thin wrappers around them.
"""

from typing import Tuple

import numpy as np


def rgb_to_hsl_array(rgb: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """(..., 3) RGB in [0, 1] -> h, s, l arrays in [0, 1]."""
    rgb = np.clip(np.asarray(rgb, dtype=np.float64), 0.0, 1.0)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]

    mx = np.max(rgb, axis=-1)
    mn = np.min(rgb, axis=-1)
    lightness = (mx + mn) / 2.0
    d = mx - mn
    chromatic = d > 0

    # Guard denominators on achromatic pixels; those get h = s = 0 below.
    safe_d = np.where(chromatic, d, 1.0)
    denom = np.where(lightness > 0.5, 2.0 - mx - mn, mx + mn)
    safe_denom = np.where(chromatic, denom, 1.0)
    saturation = np.where(chromatic, d / safe_denom, 0.0)

    hue = np.where(
        mx == r,
        (g - b) / safe_d + np.where(g < b, 6.0, 0.0),
        np.where(mx == g, (b - r) / safe_d + 2.0, (r - g) / safe_d + 4.0),
    )
    hue = np.where(chromatic, hue / 6.0, 0.0)
    return hue, saturation, lightness


def _hue_to_rgb(p: np.ndarray, q: np.ndarray, t: np.ndarray) -> np.ndarray:
    t = np.where(t < 0, t + 1.0, t)
    t = np.where(t > 1, t - 1.0, t)
    return np.select(
        [t < 1 / 6, t < 1 / 2, t < 2 / 3],
        [p + (q - p) * 6.0 * t, q, p + (q - p) * (2 / 3 - t) * 6.0],
        default=p,
    )


def hsl_to_rgb_array(h: np.ndarray, s: np.ndarray, l: np.ndarray) -> np.ndarray:
    """h, s, l arrays in [0, 1] -> (..., 3) RGB floats in [0, 1]."""
    h = np.asarray(h, dtype=np.float64)
    s = np.clip(np.asarray(s, dtype=np.float64), 0.0, 1.0)
    l = np.clip(np.asarray(l, dtype=np.float64), 0.0, 1.0)

    q = np.where(l < 0.5, l * (1.0 + s), l + s - l * s)
    p = 2.0 * l - q

    r = _hue_to_rgb(p, q, h + 1 / 3)
    g = _hue_to_rgb(p, q, h)
    b = _hue_to_rgb(p, q, h - 1 / 3)

    rgb = np.stack([r, g, b], axis=-1)
    achromatic = (s == 0)[..., np.newaxis]
    rgb = np.where(achromatic, l[..., np.newaxis], rgb)
    return np.clip(rgb, 0.0, 1.0)


def rgb_to_hsl(r: int, g: int, b: int) -> Tuple[float, float, float]:
    """Byte triple -> (h, s, l) each in [0, 1]."""
    h, s, l = rgb_to_hsl_array(np.array([r, g, b], dtype=np.float64) / 255.0)
    return float(h), float(s), float(l)


def hsl_to_rgb(h: float, s: float, l: float) -> Tuple[int, int, int]:
    """(h, s, l) in [0, 1] -> byte triple, rounded and clamped."""
    rgb = hsl_to_rgb_array(np.float64(h), np.float64(s), np.float64(l))
    r, g, b = np.clip(np.round(rgb * 255.0), 0, 255).astype(int)
    return int(r), int(g), int(b)


def luminance(rgb: np.ndarray) -> np.ndarray:
    """Rec. 601 luma of (..., 3) RGB, same scale as the input."""
    return 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]


def mean_luminance(rgb: np.ndarray) -> np.ndarray:
    """Plain (r + g + b) / 3, used by region analysis and the metrics."""
    return (rgb[..., 0] + rgb[..., 1] + rgb[..., 2]) / 3.0
