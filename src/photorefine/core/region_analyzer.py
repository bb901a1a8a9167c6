"""
Grid-based region analysis.

Splits an image into an N x N grid and flags flat or low-detail cells as
enhancement candidates. The auto strategy uses the share of flagged cells to
choose between global and selective processing.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .. import config
from .color_space import mean_luminance
from .pixel_buffer import PixelBuffer


@dataclass(frozen=True)
class Region:
    """One grid cell and its score."""
    x: int
    y: int
    width: int
    height: int
    needs_enhancement: bool
    entropy: float = 0.0
    contrast: float = 0.0

    @property
    def area(self) -> int:
        return self.width * self.height


def cell_entropy(gray: np.ndarray) -> float:
    """Shannon entropy (bits) of the 256-bin histogram of ``gray``."""
    if gray.size == 0:
        return 0.0
    bins = np.clip(np.floor(gray), 0, 255).astype(np.int64).ravel()
    histogram = np.bincount(bins, minlength=256)
    p = histogram[histogram > 0] / gray.size
    return float(-np.sum(p * np.log2(p)))


def cell_contrast(gray: np.ndarray) -> float:
    """
    Sum of |g - right| + |g - below| over pixels that have both neighbours,
    divided by twice the cell's pixel count.
    """
    if gray.size == 0:
        return 0.0
    h, w = gray.shape
    if h < 2 or w < 2:
        return 0.0
    center = np.floor(gray[:-1, :-1])
    right = gray[:-1, 1:]
    below = gray[1:, :-1]
    total = np.abs(center - right).sum() + np.abs(center - below).sum()
    return float(total / (gray.size * 2))


class RegionAnalyzer:
    """Scores grid cells by entropy and local contrast."""

    def __init__(
        self,
        grid_size: int = config.REGION_GRID_SIZE,
        entropy_threshold: float = config.REGION_ENTROPY_THRESHOLD,
        contrast_threshold: float = config.REGION_CONTRAST_THRESHOLD,
    ):
        if grid_size < 1:
            raise ValueError(f"grid_size must be >= 1, got {grid_size}")
        self.grid_size = grid_size
        self.entropy_threshold = entropy_threshold
        self.contrast_threshold = contrast_threshold

    def analyze(self, buffer: PixelBuffer, grid_size: Optional[int] = None) -> List[Region]:
        """
        Return grid_size ** 2 regions, row by row.

        Cells are floor(dim / N) wide; the last row and column take the
        remainder so the grid covers every pixel exactly once.
        """
        n = grid_size or self.grid_size
        h, w = buffer.height, buffer.width
        cell_w = w // n
        cell_h = h // n
        gray = mean_luminance(buffer.rgb())

        regions = []
        for gy in range(n):
            for gx in range(n):
                x1 = gx * cell_w
                y1 = gy * cell_h
                x2 = w if gx == n - 1 else x1 + cell_w
                y2 = h if gy == n - 1 else y1 + cell_h

                cell = gray[y1:y2, x1:x2]
                entropy = cell_entropy(cell)
                contrast = cell_contrast(cell)
                needs = entropy < self.entropy_threshold or contrast < self.contrast_threshold

                regions.append(Region(
                    x=x1, y=y1, width=x2 - x1, height=y2 - y1,
                    needs_enhancement=needs,
                    entropy=entropy,
                    contrast=contrast,
                ))

        return regions


def fraction_needing_enhancement(regions: List[Region]) -> float:
    if not regions:
        return 0.0
    return sum(1 for r in regions if r.needs_enhancement) / len(regions)
