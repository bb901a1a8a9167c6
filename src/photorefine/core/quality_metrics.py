"""
Quality metrics: candidate vs original
======================================

PSNR and a simplified SSIM decide whether an enhancement is kept.

The SSIM here is a single global window over mean-of-RGB luminance, not the
windowed Gaussian SSIM. It is coarse, cheap and deterministic, which is what
the refinement loop needs to rank candidates.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import cv2
import numpy as np

from .. import config
from .color_space import mean_luminance
from .errors import BufferShapeError
from .pixel_buffer import PixelBuffer


C1 = (0.01 * 255) ** 2
C2 = (0.03 * 255) ** 2


def _check_same_size(a: PixelBuffer, b: PixelBuffer):
    if not a.same_size(b):
        raise BufferShapeError(
            f"Cannot compare {a.width}x{a.height} with {b.width}x{b.height}"
        )


def crop_to_overlap(a: PixelBuffer, b: PixelBuffer) -> Tuple[PixelBuffer, PixelBuffer]:
    """Top-left region both buffers cover."""
    w = min(a.width, b.width)
    h = min(a.height, b.height)
    return a.crop(0, 0, w, h), b.crop(0, 0, w, h)


def mse(a: PixelBuffer, b: PixelBuffer) -> float:
    """Mean squared error over RGB (alpha excluded)."""
    _check_same_size(a, b)
    diff = a.rgb() - b.rgb()
    return float(np.mean(diff * diff))


def psnr(a: PixelBuffer, b: PixelBuffer) -> float:
    """Peak Signal-to-Noise Ratio in dB, capped at 100 for identical images."""
    error = mse(a, b)
    if error == 0:
        return config.PSNR_CAP
    value = 10.0 * np.log10(255.0 ** 2 / error)
    return float(np.clip(value, 0.0, config.PSNR_CAP))


def ssim(a: PixelBuffer, b: PixelBuffer) -> float:
    """Global luminance-only Structural Similarity Index."""
    _check_same_size(a, b)
    luma1 = mean_luminance(a.rgb())
    luma2 = mean_luminance(b.rgb())

    mean1 = luma1.mean()
    mean2 = luma2.mean()
    diff1 = luma1 - mean1
    diff2 = luma2 - mean2
    variance1 = np.mean(diff1 * diff1)
    variance2 = np.mean(diff2 * diff2)
    covariance = np.mean(diff1 * diff2)

    value = ((2 * mean1 * mean2 + C1) * (2 * covariance + C2)) / \
            ((mean1 ** 2 + mean2 ** 2 + C1) * (variance1 + variance2 + C2))
    return float(value)


def improvement_score(
    psnr_value: float,
    ssim_value: float,
    psnr_baseline: float = config.PSNR_BASELINE,
    psnr_weight: float = config.PSNR_WEIGHT,
    ssim_baseline: float = config.SSIM_BASELINE,
    ssim_weight: float = config.SSIM_WEIGHT,
) -> float:
    """Composite 0-100 score: (psnr - 20) * 2 + (ssim - 0.5) * 100, clamped."""
    raw = (psnr_value - psnr_baseline) * psnr_weight + (ssim_value - ssim_baseline) * ssim_weight
    return float(np.clip(raw, 0.0, 100.0))


@dataclass(frozen=True)
class QualityThresholds:
    """Quality gate used by the refinement loop."""
    min_psnr: float = config.MIN_PSNR
    min_ssim: float = config.MIN_SSIM
    min_improvement: float = config.MIN_IMPROVEMENT


@dataclass(frozen=True)
class QualityMetrics:
    """Scores of one candidate against the original."""
    psnr: float
    ssim: float
    improvement: float

    @classmethod
    def compare(
        cls,
        original: PixelBuffer,
        candidate: PixelBuffer,
        crop_overlap: bool = False,
    ) -> "QualityMetrics":
        """
        Score ``candidate`` against ``original``.

        A candidate identical to the original scores zero improvement: the
        PSNR cap keeps the maths finite, but no change is not an enhancement.
        """
        if crop_overlap and not original.same_size(candidate):
            original, candidate = crop_to_overlap(original, candidate)

        error = mse(original, candidate)
        p = psnr(original, candidate)
        s = ssim(original, candidate)
        improvement = 0.0 if error == 0 else improvement_score(p, s)
        return cls(psnr=p, ssim=s, improvement=improvement)

    def meets(self, thresholds: Optional[QualityThresholds] = None) -> bool:
        t = thresholds or QualityThresholds()
        return (
            self.psnr > t.min_psnr
            and self.ssim > t.min_ssim
            and self.improvement > t.min_improvement
        )

    def as_dict(self) -> Dict[str, float]:
        return {
            "psnr": round(self.psnr, 3),
            "ssim": round(self.ssim, 5),
            "improvement": round(self.improvement, 2),
        }


def analyze_quality(original: PixelBuffer, processed: PixelBuffer) -> Dict[str, float]:
    """Full quality analysis: metrics plus brightness/contrast/edge diagnostics."""
    metrics = QualityMetrics.compare(original, processed)
    result = {
        "psnr": metrics.psnr,
        "ssim": metrics.ssim,
        "improvement": metrics.improvement,
    }

    orig_rgb = original.rgb()
    proc_rgb = processed.rgb()

    # Brightness comparison
    result["brightness_change"] = float(np.mean(proc_rgb) - np.mean(orig_rgb))

    # Contrast (std dev)
    result["contrast_change"] = float(np.std(proc_rgb) - np.std(orig_rgb))

    # Edge preservation (Laplacian variance)
    orig_edges = cv2.Laplacian(np.ascontiguousarray(mean_luminance(orig_rgb)), cv2.CV_64F).var()
    proc_edges = cv2.Laplacian(np.ascontiguousarray(mean_luminance(proc_rgb)), cv2.CV_64F).var()
    result["edge_preservation"] = float(proc_edges / orig_edges) if orig_edges > 0 else 1.0

    return result
