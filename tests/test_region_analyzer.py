"""
Tests for grid region analysis.
"""
import numpy as np
import pytest

from conftest import create_test_image
from photorefine.core.pixel_buffer import PixelBuffer
from photorefine.core.region_analyzer import (
    RegionAnalyzer,
    cell_contrast,
    cell_entropy,
    fraction_needing_enhancement,
)


def _coverage(regions, width, height):
    counts = np.zeros((height, width), dtype=int)
    for r in regions:
        counts[r.y:r.y + r.height, r.x:r.x + r.width] += 1
    return counts


class TestGridTiling:
    """Test the N x N grid covers every pixel exactly once."""

    @pytest.mark.parametrize('width,height,n', [
        (64, 48, 4), (37, 23, 4), (10, 10, 3), (5, 7, 1), (3, 2, 4), (1, 1, 4),
    ])
    def test_tiles_exactly(self, width, height, n):
        """Test region count and exact tiling, remainders included."""
        buffer = create_test_image(width, height, 'gradient')
        regions = RegionAnalyzer(grid_size=n).analyze(buffer)
        assert len(regions) == n * n
        assert np.all(_coverage(regions, width, height) == 1)

    def test_last_row_and_column_absorb_remainder(self):
        """Test remainder pixels go to the final row and column."""
        regions = RegionAnalyzer(grid_size=4).analyze(create_test_image(10, 9, 'gradient'))
        assert regions[0].width == 2 and regions[0].height == 2
        assert regions[3].width == 4
        assert regions[15].height == 3

    def test_invalid_grid(self):
        """Test a zero grid is rejected."""
        with pytest.raises(ValueError):
            RegionAnalyzer(grid_size=0)


class TestScoring:
    """Test entropy, contrast and the enhancement policy."""

    def test_flat_cell_scores_zero(self):
        """Test a uniform cell has zero entropy and contrast."""
        gray = np.full((8, 8), 120.0)
        assert cell_entropy(gray) == 0.0
        assert cell_contrast(gray) == 0.0

    def test_empty_cell(self):
        """Test empty cells score zero without dividing by zero."""
        empty = np.zeros((0, 0))
        assert cell_entropy(empty) == 0.0
        assert cell_contrast(empty) == 0.0

    def test_two_level_entropy(self):
        """Test a half/half cell has exactly one bit of entropy."""
        gray = np.zeros((4, 4))
        gray[:, 2:] = 255
        assert abs(cell_entropy(gray) - 1.0) < 1e-9

    def test_uniform_image_all_flagged(self, grey_4x4):
        """Test flat images need enhancement everywhere."""
        regions = RegionAnalyzer().analyze(grey_4x4)
        assert fraction_needing_enhancement(regions) == 1.0

    def test_busy_image_not_flagged(self):
        """Test high-entropy, high-contrast noise passes the policy."""
        rng = np.random.default_rng(0)
        img = rng.integers(0, 256, (128, 128, 3), dtype=np.uint8)
        regions = RegionAnalyzer().analyze(PixelBuffer.from_array(img))
        assert fraction_needing_enhancement(regions) == 0.0

    def test_thresholds_are_configurable(self, noisy):
        """Test raising the thresholds flags busy cells too."""
        strict = RegionAnalyzer(entropy_threshold=100, contrast_threshold=1000)
        assert all(r.needs_enhancement for r in strict.analyze(noisy))

    def test_fraction_of_empty_list(self):
        """Test no regions means nothing to enhance."""
        assert fraction_needing_enhancement([]) == 0.0
