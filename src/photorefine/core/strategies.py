"""
Enhancement Strategies
======================

Seven named modes, each a fixed pipeline of filters:

    auto      Region analysis → global (super resolution, denoise, colour,
              sharpen) or selective per-region processing
    hdr       Luminance-weighted tone curve + local contrast + saturation
    night     Heavy denoise → shadow-weighted brightening + blue shadow tint
    portrait  Skin-tone aware warm/smooth vs contrast/sharpen + vignette
    color     Adaptive saturation (dull colours gain most) + mild contrast
    detail    Super resolution + strong unsharp mask
    style     Teal/orange luminance-band grading + vignette (+ letterbox)

Every stage goes through a StageRunner: if a stage raises, the failure is
logged and the image from before that stage carries on to the next one.
Neural steps try the collaborator first and fall back to local filters.

Usage:
    strategies = EnhancementStrategies()
    outcome = strategies.apply(EnhancementMode.HDR, buffer, params)
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from .. import config
from .color_space import hsl_to_rgb_array, luminance, rgb_to_hsl_array
from .errors import StageFailure
from .filters import (
    adjust_contrast,
    adjust_saturation,
    blend,
    box_blur,
    enhance_detail,
    letterbox,
    local_contrast,
    reduce_noise,
    unsharp_mask,
    vignette,
)
from .neural import ModelState, NO_MODELS, call_with_deadline
from .params import EnhancementMode, EnhancementStrengthParams
from .pixel_buffer import PixelBuffer
from .region_analyzer import RegionAnalyzer, Region, fraction_needing_enhancement

logger = logging.getLogger(__name__)


@dataclass
class StrategyOutcome:
    """Result of one strategy pass."""
    buffer: PixelBuffer
    applied: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class StageRunner:
    """Runs named stages in order, keeping the pre-stage image on failure."""

    def __init__(self, buffer: PixelBuffer):
        self.buffer = buffer
        self.applied: List[str] = []
        self.failed: List[str] = []

    def run(self, name: str, stage: Callable[..., PixelBuffer], *args, **kwargs) -> PixelBuffer:
        before = self.buffer
        try:
            result = stage(before, *args, **kwargs)
            if not isinstance(result, PixelBuffer):
                raise TypeError(f"stage returned {type(result).__name__}")
            if not result.same_size(before):
                raise ValueError(
                    f"stage changed size {before.width}x{before.height} -> {result.width}x{result.height}"
                )
        except Exception as e:
            failure = StageFailure(name, e)
            logger.warning(f"{failure}; continuing with the pre-stage image", exc_info=True)
            self.failed.append(name)
            return before

        self.buffer = result
        if name not in self.applied:
            self.applied.append(name)
        return result

    def outcome(self) -> StrategyOutcome:
        return StrategyOutcome(self.buffer, list(self.applied), list(self.failed))


class EnhancementStrategies:
    """
    Applies a named enhancement mode to a PixelBuffer.

    ``models`` holds the optional neural collaborators; with the default
    (no models) every step runs on the local substitutes.
    """

    def __init__(
        self,
        models: ModelState = NO_MODELS,
        analyzer: Optional[RegionAnalyzer] = None,
        neural_timeout: float = config.NEURAL_TIMEOUT,
    ):
        self.models = models
        self.analyzer = analyzer or RegionAnalyzer()
        self.neural_timeout = neural_timeout
        self._dispatch: Dict[EnhancementMode, Callable] = {
            EnhancementMode.AUTO: self._apply_auto,
            EnhancementMode.HDR: self._apply_hdr,
            EnhancementMode.NIGHT: self._apply_night,
            EnhancementMode.PORTRAIT: self._apply_portrait,
            EnhancementMode.COLOR: self._apply_color_pop,
            EnhancementMode.DETAIL: self._apply_detail,
            EnhancementMode.STYLE: self._apply_style,
        }

    def apply(
        self,
        mode: EnhancementMode,
        buffer: PixelBuffer,
        params: EnhancementStrengthParams,
    ) -> StrategyOutcome:
        mode = EnhancementMode.parse(mode)
        runner = StageRunner(buffer)
        logger.debug(f"Applying {mode.value} enhancement to {buffer.width}x{buffer.height}")
        self._dispatch[mode](runner, params)
        return runner.outcome()

    # ========================================================================
    # MODES
    # ========================================================================

    def _apply_auto(self, runner: StageRunner, params: EnhancementStrengthParams):
        regions = self.analyzer.analyze(runner.buffer)
        share = fraction_needing_enhancement(regions)

        if share >= config.GLOBAL_ENHANCEMENT_FRACTION:
            logger.debug(f"{share:.0%} of regions flagged - global enhancement")
            runner.run("Super Resolution", self._super_resolution, params.detail_level)
            runner.run("Noise Reduction", self._noise_reduction, params.noise_reduction)
            runner.run("Color Enhancement", self._color_enhancement, params.color_intensity)
            runner.run("Detail Sharpening", self._sharpen, params.sharpness)
        else:
            logger.debug(f"{share:.0%} of regions flagged - selective enhancement")
            runner.run("Selective Regional Enhancement", self._selective_enhancement, regions, params)

    def _apply_hdr(self, runner: StageRunner, params: EnhancementStrengthParams):
        runner.run("HDR Enhancement", self._hdr_tone_curve, params)
        runner.run("Local Contrast Enhancement", local_contrast, config.LOCAL_CONTRAST_RADIUS, 0.3)
        runner.run("Saturation Boost", adjust_saturation, 1.1 + params.color_intensity / 200.0)

    def _apply_night(self, runner: StageRunner, params: EnhancementStrengthParams):
        runner.run("Noise Reduction", self._noise_reduction, min(100.0, params.noise_reduction * 1.5))
        runner.run("Night Mode Enhancement", self._night_boost, params)

    def _apply_portrait(self, runner: StageRunner, params: EnhancementStrengthParams):
        runner.run("Portrait Enhancement", self._portrait_retouch, params)
        runner.run("Vignette", vignette, 0.15, 2.0)

    def _apply_color_pop(self, runner: StageRunner, params: EnhancementStrengthParams):
        runner.run("Color Pop Enhancement", self._adaptive_saturation, params.color_intensity)
        if params.contrast != 0:
            runner.run("Contrast Adjustment", adjust_contrast, 1.0 + params.contrast / 500.0)

    def _apply_detail(self, runner: StageRunner, params: EnhancementStrengthParams):
        runner.run("Super Resolution", self._super_resolution, params.detail_level)
        runner.run("Advanced Detail Sharpening", self._sharpen, params.sharpness * 1.5)

    def _apply_style(self, runner: StageRunner, params: EnhancementStrengthParams):
        runner.run("Cinematic Style Transfer", self._cinematic_grade, params)
        runner.run("Vignette", vignette, 0.25, 2.0)
        if params.detail_level > 80:
            runner.run("Letterbox", letterbox, 0.1)

    # ========================================================================
    # NEURAL STEPS (collaborator first, local substitute otherwise)
    # ========================================================================

    def _consult(self, model, buffer: PixelBuffer) -> Optional[PixelBuffer]:
        """Collaborator output at the buffer's size, or None if unusable."""
        if model is None:
            return None
        try:
            result = call_with_deadline(model, buffer, self.neural_timeout)
        except Exception as e:
            logger.warning(f"{model.name} failed, using local fallback: {e}")
            return None
        # Keep every buffer in a run aligned with the original
        return result.resized(buffer.width, buffer.height)

    def _super_resolution(self, buffer: PixelBuffer, detail_level: float) -> PixelBuffer:
        enhanced = self._consult(self.models.super_resolution, buffer)
        if enhanced is not None:
            return enhanced
        return enhance_detail(buffer, amount=0.25 + detail_level / 200.0)

    def _noise_reduction(self, buffer: PixelBuffer, strength: float) -> PixelBuffer:
        denoised = self._consult(self.models.denoise, buffer)
        if denoised is not None:
            return blend(buffer, denoised, strength / 100.0)
        return reduce_noise(buffer, strength)

    # ========================================================================
    # LOCAL STAGES
    # ========================================================================

    def _color_enhancement(self, buffer: PixelBuffer, intensity: float) -> PixelBuffer:
        return adjust_saturation(buffer, 1.0 + intensity / 100.0)

    def _sharpen(self, buffer: PixelBuffer, sharpness: float) -> PixelBuffer:
        return unsharp_mask(buffer, amount=sharpness / 100.0)

    def _selective_enhancement(
        self,
        buffer: PixelBuffer,
        regions: List[Region],
        params: EnhancementStrengthParams,
    ) -> PixelBuffer:
        """Denoise, sharpen and boost colour only inside flagged regions."""
        result = buffer
        for region in regions:
            if not region.needs_enhancement or region.area == 0:
                continue
            tile = buffer.crop(region.x, region.y, region.width, region.height)
            tile = self._noise_reduction(tile, params.noise_reduction)
            tile = self._sharpen(tile, params.sharpness)
            tile = self._color_enhancement(tile, params.color_intensity)
            result = result.paste(tile, region.x, region.y)
        return result

    def _hdr_tone_curve(self, buffer: PixelBuffer, params: EnhancementStrengthParams) -> PixelBuffer:
        """
        Luminance-weighted gain: midtones lifted most.

        curve = 1.4 + 0.6 * sin(L * pi); the detail slider sets how much of
        the curve is applied. Brightness and contrast sliders follow.
        """
        rgb = buffer.rgb()
        lum = luminance(rgb) / 255.0
        curve = 1.4 + 0.6 * np.sin(lum * math.pi)
        weight = 0.1 + 0.2 * params.detail_level / 100.0
        gain = 1.0 + (curve - 1.0) * weight

        rgb = rgb * gain[:, :, np.newaxis]
        rgb = rgb + params.brightness * 0.4
        rgb = 128.0 + (rgb - 128.0) * (1.0 + params.contrast / 200.0)
        return buffer.with_rgb(np.clip(rgb, 0, 255))

    def _night_boost(self, buffer: PixelBuffer, params: EnhancementStrengthParams) -> PixelBuffer:
        """Darker pixels gain more; shadows pick up a slight blue tint."""
        rgb = buffer.rgb()
        lum = luminance(rgb) / 255.0

        factor = 2.0 - 0.8 * lum                       # 2.0 in black, 1.2 in white
        strength = 0.5 + params.brightness / 200.0     # 0 .. 1
        gain = 1.0 + (factor - 1.0) * strength
        rgb = rgb * gain[:, :, np.newaxis]

        shadow = np.clip(1.0 - lum / 0.5, 0.0, 1.0)
        rgb[:, :, 2] *= 1.0 + 0.1 * shadow
        return buffer.with_rgb(np.clip(rgb, 0, 255))

    def _portrait_retouch(self, buffer: PixelBuffer, params: EnhancementStrengthParams) -> PixelBuffer:
        """
        Skin pixels: gentle warmth and smoothing.
        Everything else: contrast and sharpening.
        """
        rgb = buffer.rgb()
        r, g, b = rgb[:, :, 0], rgb[:, :, 1], rgb[:, :, 2]
        skin = (
            (r > 95) & (g > 40) & (b > 20)
            & (r > g) & (r > b)
            & (np.abs(r - g) > 15)
        )

        smoothing = params.noise_reduction / 200.0
        smoothed = box_blur(buffer, radius=1).rgb()
        skin_rgb = rgb * (1.0 - smoothing) + smoothed * smoothing
        skin_rgb = skin_rgb * np.array([1.05, 1.02, 0.97])

        contrast_factor = 1.0 + max(params.contrast, 0.0) / 200.0 + 0.05
        detail = unsharp_mask(adjust_contrast(buffer, contrast_factor), amount=params.sharpness * 0.6 / 100.0)

        out = np.where(skin[:, :, np.newaxis], skin_rgb, detail.rgb())
        return buffer.with_rgb(np.clip(out, 0, 255))

    def _adaptive_saturation(self, buffer: PixelBuffer, intensity: float) -> PixelBuffer:
        """Saturation boost proportional to 1 - s: dull colours gain the most."""
        h, s, l = rgb_to_hsl_array(buffer.rgb() / 255.0)
        boost = 1.0 + (intensity / 100.0) * (1.0 - s)
        s = np.minimum(1.0, s * boost)
        return buffer.with_rgb(hsl_to_rgb_array(h, s, l) * 255.0)

    def _cinematic_grade(self, buffer: PixelBuffer, params: EnhancementStrengthParams) -> PixelBuffer:
        """Teal shadows, neutral punchy midtones, warm highlights."""
        rgb = buffer.rgb()
        lum = luminance(rgb)

        shadows = lum < 120
        highlights = lum >= 180
        midtones = ~shadows & ~highlights

        graded = rgb.copy()
        graded[shadows] *= np.array([0.9, 1.05, 1.15])
        graded[midtones] = 128.0 + (graded[midtones] - 128.0) * 1.1
        graded[highlights] *= np.array([1.12, 1.04, 0.9])

        mix = 0.5 + params.color_intensity / 200.0
        out = rgb + (np.clip(graded, 0, 255) - rgb) * mix
        return buffer.with_rgb(out)
