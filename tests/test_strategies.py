"""
Tests for the seven enhancement strategies and the stage runner.
"""
import numpy as np
import pytest

from conftest import create_test_image
from photorefine.core.color_space import rgb_to_hsl
from photorefine.core.params import DEFAULT_PARAMS, EnhancementMode, EnhancementStrengthParams
from photorefine.core.pixel_buffer import PixelBuffer
from photorefine.core.quality_metrics import ssim
from photorefine.core.region_analyzer import RegionAnalyzer
from photorefine.core.strategies import EnhancementStrategies, StageRunner

EXTREME_PARAMS = [
    EnhancementStrengthParams(detail_level=100, color_intensity=100, noise_reduction=100,
                              sharpness=100, brightness=100, contrast=100),
    EnhancementStrengthParams(detail_level=0, color_intensity=0, noise_reduction=0,
                              sharpness=0, brightness=-100, contrast=-100),
]


@pytest.fixture
def strategies():
    return EnhancementStrategies()


class TestStageRunner:
    """Test per-stage failure isolation."""

    def test_failure_keeps_pre_stage_buffer(self, interior):
        """Test a raising stage is skipped and later stages still run."""
        def explode(buffer):
            raise RuntimeError('boom')

        def brighten(buffer):
            return buffer.with_rgb(buffer.rgb() + 10)

        runner = StageRunner(interior)
        runner.run('Explode', explode)
        assert runner.buffer is interior
        runner.run('Brighten', brighten)

        outcome = runner.outcome()
        assert outcome.applied == ['Brighten']
        assert outcome.failed == ['Explode']
        assert outcome.buffer.pixels[0, 0, 0] == interior.pixels[0, 0, 0] + 10

    def test_wrong_size_result_is_failure(self, interior):
        """Test a stage that changes dimensions is rejected."""
        runner = StageRunner(interior)
        runner.run('Shrink', lambda b: b.resized(10, 10))
        assert runner.buffer is interior
        assert runner.failed == ['Shrink']

    def test_non_buffer_result_is_failure(self, interior):
        """Test a stage returning the wrong type is rejected."""
        runner = StageRunner(interior)
        runner.run('Array', lambda b: b.pixels)
        assert runner.applied == []

    def test_names_deduplicated(self, interior):
        """Test a stage name is recorded once."""
        runner = StageRunner(interior)
        runner.run('Vignette', lambda b: b.copy())
        runner.run('Vignette', lambda b: b.copy())
        assert runner.applied == ['Vignette']


class TestAllModesTotal:
    """Test every mode returns a valid same-size buffer for any valid input."""

    @pytest.mark.parametrize('mode', list(EnhancementMode))
    @pytest.mark.parametrize('params', [DEFAULT_PARAMS] + EXTREME_PARAMS)
    def test_valid_output(self, strategies, mode, params):
        """Test dtype, size and alpha under default and extreme sliders."""
        for scene in ('interior', 'noisy', 'skin', 'dark'):
            buffer = create_test_image(40, 30, scene)
            outcome = strategies.apply(mode, buffer, params)
            assert outcome.buffer.pixels.dtype == np.uint8
            assert outcome.buffer.same_size(buffer)
            assert np.array_equal(outcome.buffer.alpha(), buffer.alpha())
            assert outcome.failed == []

    @pytest.mark.parametrize('mode', list(EnhancementMode))
    def test_single_transparent_pixel(self, strategies, transparent_pixel, mode):
        """Test a 1x1 fully transparent image keeps alpha 0."""
        outcome = strategies.apply(mode, transparent_pixel, DEFAULT_PARAMS)
        assert outcome.buffer.same_size(transparent_pixel)
        assert outcome.buffer.alpha()[0, 0] == 0

    def test_mode_names_accepted(self, strategies, grey_4x4):
        """Test string mode names work like the enum."""
        assert strategies.apply('color-pop', grey_4x4, DEFAULT_PARAMS).applied[0] == 'Color Pop Enhancement'


class TestAuto:
    """Test the auto mode's global/selective split."""

    def test_flat_image_goes_global(self, strategies, grey_4x4):
        """Test a mostly flagged image gets the global pipeline."""
        outcome = strategies.apply(EnhancementMode.AUTO, grey_4x4, DEFAULT_PARAMS)
        assert outcome.applied == [
            'Super Resolution', 'Noise Reduction', 'Color Enhancement', 'Detail Sharpening',
        ]

    def test_busy_image_goes_selective(self, noisy):
        """Test a mostly detailed image only touches flagged cells."""
        img = noisy.pixels.copy()
        # One flat cell in the top-left corner
        img[:12, :16, :3] = 90
        buffer = PixelBuffer(noisy.width, noisy.height, img)

        regions = RegionAnalyzer().analyze(buffer)
        flagged = [r for r in regions if r.needs_enhancement]
        assert 0 < len(flagged) < len(regions) / 2

        outcome = EnhancementStrategies().apply(EnhancementMode.AUTO, buffer, DEFAULT_PARAMS)
        assert outcome.applied == ['Selective Regional Enhancement']
        for r in regions:
            if not r.needs_enhancement:
                tile = (slice(r.y, r.y + r.height), slice(r.x, r.x + r.width))
                assert np.array_equal(outcome.buffer.pixels[tile], buffer.pixels[tile])


class TestHDR:
    """Test the tone-curve strategy."""

    def test_grey_4x4(self, strategies, grey_4x4):
        """Test a uniform grey image is lifted and labelled."""
        outcome = strategies.apply(EnhancementMode.HDR, grey_4x4, DEFAULT_PARAMS)
        assert outcome.applied == ['HDR Enhancement', 'Local Contrast Enhancement', 'Saturation Boost']
        assert outcome.buffer.same_size(grey_4x4)
        assert outcome.buffer.pixels[0, 0, 0] > 128

    def test_midtones_gain_most(self, strategies):
        """Test midtones brighten more than shadows, relatively."""
        shadows = PixelBuffer.blank(8, 8, (20, 20, 20, 255))
        midtones = PixelBuffer.blank(8, 8, (128, 128, 128, 255))
        params = DEFAULT_PARAMS.replace(contrast=0)
        gain_shadow = strategies._hdr_tone_curve(shadows, params).pixels[0, 0, 0] / 20
        gain_mid = strategies._hdr_tone_curve(midtones, params).pixels[0, 0, 0] / 128
        assert gain_mid > gain_shadow


class TestNight:
    """Test shadow lifting and blue tint."""

    def test_dark_pixels_gain_more(self, strategies):
        """Test darker pixels receive the larger multiplier."""
        params = DEFAULT_PARAMS.replace(brightness=50)
        dark = strategies._night_boost(PixelBuffer.blank(2, 2, (30, 30, 30, 255)), params)
        bright = strategies._night_boost(PixelBuffer.blank(2, 2, (200, 200, 200, 255)), params)
        assert dark.pixels[0, 0, 0] / 30 > bright.pixels[0, 0, 0] / 200

    def test_shadows_tinted_blue(self, strategies):
        """Test blue rises above red in shadows."""
        result = strategies._night_boost(PixelBuffer.blank(2, 2, (30, 30, 30, 255)), DEFAULT_PARAMS)
        r, g, b = result.pixels[0, 0, :3]
        assert b > r and r == g

    def test_stages(self, strategies, interior):
        """Test the night pipeline labels."""
        outcome = strategies.apply(EnhancementMode.NIGHT, interior, DEFAULT_PARAMS)
        assert outcome.applied == ['Noise Reduction', 'Night Mode Enhancement']


class TestPortrait:
    """Test skin-aware processing."""

    def test_skin_is_warmed(self, strategies):
        """Test skin pixels get warm gains (red up, blue down)."""
        buffer = create_test_image(20, 20, 'skin')
        result = strategies._portrait_retouch(buffer, DEFAULT_PARAMS)
        r, g, b = result.pixels[10, 2, :3].astype(int)
        assert r > 210 and b < 130

    def test_non_skin_gets_contrast(self, strategies):
        """Test non-skin pixels are stretched away from mid-grey."""
        buffer = create_test_image(20, 20, 'skin')
        result = strategies._portrait_retouch(buffer, DEFAULT_PARAMS)
        # (90, 100, 120) sits below mid-grey, contrast pushes it down
        assert result.pixels[10, 17, 0] < 90

    def test_stages(self, strategies, interior):
        """Test the portrait pipeline labels."""
        outcome = strategies.apply(EnhancementMode.PORTRAIT, interior, DEFAULT_PARAMS)
        assert outcome.applied == ['Portrait Enhancement', 'Vignette']


class TestColorPop:
    """Test adaptive saturation."""

    def test_zero_intensity_keeps_image(self, strategies, gradient):
        """Test colour intensity 0 leaves the image nearly untouched."""
        params = DEFAULT_PARAMS.replace(color_intensity=0)
        outcome = strategies.apply(EnhancementMode.COLOR, gradient, params)
        assert ssim(gradient, outcome.buffer) > 0.99

    def test_dull_colours_gain_more(self, strategies):
        """Test low-saturation pixels get the larger relative boost."""
        dull = PixelBuffer.blank(1, 1, (140, 120, 110, 255))
        vivid = PixelBuffer.blank(1, 1, (230, 40, 20, 255))

        def gain(buffer):
            before = rgb_to_hsl(*buffer.pixels[0, 0, :3].tolist())[1]
            after_px = strategies._adaptive_saturation(buffer, 80).pixels[0, 0, :3].tolist()
            return rgb_to_hsl(*after_px)[1] / before

        assert gain(dull) > gain(vivid)

    def test_contrast_stage_skipped_at_zero(self, strategies, gradient):
        """Test no contrast stage when the slider is 0."""
        outcome = strategies.apply(EnhancementMode.COLOR, gradient, DEFAULT_PARAMS.replace(contrast=0))
        assert outcome.applied == ['Color Pop Enhancement']


class TestDetailAndStyle:
    """Test detail boost and cinematic grading."""

    def test_detail_stages(self, strategies, interior):
        """Test detail boost labels and sharpening."""
        outcome = strategies.apply(EnhancementMode.DETAIL, interior, DEFAULT_PARAMS)
        assert outcome.applied == ['Super Resolution', 'Advanced Detail Sharpening']
        assert not np.array_equal(outcome.buffer.pixels, interior.pixels)

    def test_letterbox_only_above_80(self, strategies, interior):
        """Test the letterbox stage depends on detail level."""
        low = strategies.apply(EnhancementMode.STYLE, interior, DEFAULT_PARAMS.replace(detail_level=80))
        high = strategies.apply(EnhancementMode.STYLE, interior, DEFAULT_PARAMS.replace(detail_level=81))
        assert 'Letterbox' not in low.applied
        assert high.applied == ['Cinematic Style Transfer', 'Vignette', 'Letterbox']
        assert np.all(high.buffer.pixels[0, :, :3] == 0)

    def test_grading_bands(self, strategies):
        """Test shadows shift teal and highlights shift warm."""
        shadows = strategies._cinematic_grade(PixelBuffer.blank(2, 2, (60, 60, 60, 255)), DEFAULT_PARAMS)
        highlights = strategies._cinematic_grade(PixelBuffer.blank(2, 2, (210, 210, 210, 255)), DEFAULT_PARAMS)
        sr, _, sb = shadows.pixels[0, 0, :3].astype(int)
        hr, _, hb = highlights.pixels[0, 0, :3].astype(int)
        assert sb > sr
        assert hr > hb
