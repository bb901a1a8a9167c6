"""
Refinement Controller
=====================

Quality-driven loop around a single enhancement strategy:

    IDLE → ANALYZING → [ENHANCING → SCORING → CONTINUE]* → STOP_* → RETURNED | REVERTED

Each round re-applies the strategy to the previous candidate and scores the
result against the original. The loop stops early on an excellent score,
on a score that does not beat the best so far, or once the quality gate is
met. If the best candidate still falls short of the minimum improvement the
original image is returned unchanged.

Usage:
    controller = RefinementController()
    result = controller.enhance(open("photo.jpg", "rb").read(), "hdr")
    open("photo_enhanced.png", "wb").write(result.after)
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

from .. import config
from .errors import InputError
from .neural import ModelState, NO_MODELS, initialize_models
from .params import DEFAULT_PARAMS, EnhancementMode, EnhancementStrengthParams
from .pixel_buffer import PixelBuffer
from .quality_metrics import QualityMetrics, QualityThresholds
from .strategies import EnhancementStrategies

logger = logging.getLogger(__name__)

REVERTED_LABEL = "Original (no significant improvement possible)"


class RefinementState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    ENHANCING = "enhancing"
    SCORING = "scoring"
    CONTINUE = "continue"
    STOP_SUCCESS = "stop_success"
    STOP_DIMINISHING = "stop_diminishing"
    STOP_THRESHOLD = "stop_threshold"
    REVERTED = "reverted"
    RETURNED = "returned"


class StopReason(str, Enum):
    SUCCESS = "success"              # improvement above early-stop level
    DIMINISHING = "diminishing"      # round did not beat the best so far
    THRESHOLD = "threshold"          # quality gate met
    EXHAUSTED = "max_iterations"


_STOP_STATES = {
    StopReason.SUCCESS: RefinementState.STOP_SUCCESS,
    StopReason.DIMINISHING: RefinementState.STOP_DIMINISHING,
    StopReason.THRESHOLD: RefinementState.STOP_THRESHOLD,
}


@dataclass(frozen=True)
class RefinementPolicy:
    """Loop limits and quality gate."""
    max_iterations: int = config.MAX_ITERATIONS
    thresholds: QualityThresholds = field(default_factory=QualityThresholds)
    early_stop_factor: float = config.EARLY_STOP_FACTOR

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")

    @property
    def early_stop_improvement(self) -> float:
        return self.thresholds.min_improvement * self.early_stop_factor


@dataclass(frozen=True, eq=False)
class EnhancementResult:
    """What a caller gets back from one enhance() call."""
    before: bytes
    after: bytes
    metrics: Optional[QualityMetrics]
    applied_enhancements: Tuple[str, ...]
    before_image: PixelBuffer
    after_image: PixelBuffer
    stop_reason: StopReason
    iterations: int
    states: Tuple[RefinementState, ...] = ()

    @property
    def reverted(self) -> bool:
        return self.applied_enhancements == (REVERTED_LABEL,)

    def summary(self) -> dict:
        return {
            "width": self.after_image.width,
            "height": self.after_image.height,
            "metrics": self.metrics.as_dict() if self.metrics else None,
            "applied_enhancements": list(self.applied_enhancements),
            "stop_reason": self.stop_reason.value,
            "iterations": self.iterations,
            "reverted": self.reverted,
        }


@dataclass
class _Round:
    number: int
    buffer: PixelBuffer
    metrics: QualityMetrics
    applied: List[str]


class RefinementController:
    """
    Runs a strategy repeatedly and keeps the best-scoring candidate.

    Holds no per-call state; one controller can serve many enhance() calls.
    """

    def __init__(
        self,
        strategies: Optional[EnhancementStrategies] = None,
        models: Optional[ModelState] = None,
        policy: Optional[RefinementPolicy] = None,
    ):
        self.models = models or NO_MODELS
        self.strategies = strategies or EnhancementStrategies(models=self.models)
        self.policy = policy or RefinementPolicy()

    def initialize(self, **kwargs) -> ModelState:
        """Probe the neural service and rebuild the strategies around the result."""
        self.models = initialize_models(**kwargs)
        self.strategies = EnhancementStrategies(
            models=self.models,
            analyzer=self.strategies.analyzer,
            neural_timeout=self.strategies.neural_timeout,
        )
        return self.models

    def enhance(
        self,
        image_bytes: bytes,
        mode: Union[EnhancementMode, str] = EnhancementMode.AUTO,
        params: Union[EnhancementStrengthParams, dict, None] = None,
    ) -> EnhancementResult:
        """Decode, refine and re-encode. Only InputError reaches the caller."""
        mode = EnhancementMode.parse(mode)
        params = _coerce_params(params)
        original = PixelBuffer.decode(image_bytes)
        return self.enhance_buffer(original, mode, params)

    def enhance_buffer(
        self,
        original: PixelBuffer,
        mode: Union[EnhancementMode, str] = EnhancementMode.AUTO,
        params: Union[EnhancementStrengthParams, dict, None] = None,
    ) -> EnhancementResult:
        mode = EnhancementMode.parse(mode)
        params = _coerce_params(params)
        policy = self.policy
        states = [RefinementState.IDLE, RefinementState.ANALYZING]

        logger.info(
            f"Enhancing {original.width}x{original.height} image in {mode.value} mode "
            f"(up to {policy.max_iterations} rounds)"
        )

        rounds: List[_Round] = []
        best: Optional[_Round] = None
        working = original
        stop_reason = StopReason.EXHAUSTED

        for number in range(1, policy.max_iterations + 1):
            states.append(RefinementState.ENHANCING)
            outcome = self.strategies.apply(mode, working, params)

            states.append(RefinementState.SCORING)
            metrics = QualityMetrics.compare(original, outcome.buffer)
            current = _Round(number, outcome.buffer, metrics, outcome.applied)
            rounds.append(current)
            logger.info(
                f"Round {number}/{policy.max_iterations}: psnr={metrics.psnr:.2f} "
                f"ssim={metrics.ssim:.4f} improvement={metrics.improvement:.1f}"
            )

            if best is None or metrics.improvement > best.metrics.improvement:
                best = current
                if best.metrics.improvement > policy.early_stop_improvement:
                    stop_reason = StopReason.SUCCESS
                    break
            else:
                stop_reason = StopReason.DIMINISHING
                break

            if best.metrics.meets(policy.thresholds):
                stop_reason = StopReason.THRESHOLD
                break

            working = outcome.buffer
            if number < policy.max_iterations:
                states.append(RefinementState.CONTINUE)

        if stop_reason in _STOP_STATES:
            states.append(_STOP_STATES[stop_reason])
        logger.debug(f"Stopped after {len(rounds)} round(s): {stop_reason.value}")

        if best.metrics.improvement < policy.thresholds.min_improvement:
            logger.info(
                f"Best improvement {best.metrics.improvement:.1f} below "
                f"{policy.thresholds.min_improvement:g}, returning the original"
            )
            states.append(RefinementState.REVERTED)
            after_image = original
            applied = (REVERTED_LABEL,)
        else:
            states.append(RefinementState.RETURNED)
            after_image = best.buffer
            applied = _applied_through(rounds, best.number)

        before = original.encode(config.OUTPUT_FORMAT)
        after = before if after_image is original else after_image.encode(config.OUTPUT_FORMAT)

        return EnhancementResult(
            before=before,
            after=after,
            metrics=best.metrics,
            applied_enhancements=applied,
            before_image=original,
            after_image=after_image,
            stop_reason=stop_reason,
            iterations=len(rounds),
            states=tuple(states),
        )


def _coerce_params(params) -> EnhancementStrengthParams:
    if params is None:
        return DEFAULT_PARAMS
    if isinstance(params, EnhancementStrengthParams):
        return params
    if isinstance(params, dict):
        return EnhancementStrengthParams.from_dict(params)
    raise InputError(f"Unsupported params type {type(params).__name__}")


def _applied_through(rounds: List[_Round], last: int) -> Tuple[str, ...]:
    """Ordered, de-duplicated stage names from round 1 up to round ``last``."""
    applied: List[str] = []
    for r in rounds:
        if r.number > last:
            break
        for name in r.applied:
            if name not in applied:
                applied.append(name)
    return tuple(applied)


# ============================================================================
# CLI
# ============================================================================

def main(argv=None):
    import argparse
    import json

    parser = argparse.ArgumentParser(description='Photo Refine - quality-driven enhancement')
    parser.add_argument('--input', '-i', required=True, help='Input image')
    parser.add_argument('--output', '-o', required=True, help='Output image')
    parser.add_argument('--mode', '-m', default='auto',
                        help='auto, hdr, night, portrait, color, detail or style')
    parser.add_argument('--preset', action='store_true',
                        help='Start from the slider preset tuned for the mode')
    parser.add_argument('--detail-level', type=float)
    parser.add_argument('--color-intensity', type=float)
    parser.add_argument('--noise-reduction', type=float)
    parser.add_argument('--sharpness', type=float)
    parser.add_argument('--brightness', type=float)
    parser.add_argument('--contrast', type=float)
    parser.add_argument('--report', action='store_true', help='Print a JSON quality report')
    parser.add_argument('--verbose', '-v', action='store_true')

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        mode = EnhancementMode.parse(args.mode)
        params = EnhancementStrengthParams.for_mode(mode) if args.preset else DEFAULT_PARAMS
        overrides = {
            name: getattr(args, name)
            for name in ('detail_level', 'color_intensity', 'noise_reduction',
                         'sharpness', 'brightness', 'contrast')
            if getattr(args, name) is not None
        }
        params = params.replace(**overrides)

        with open(args.input, 'rb') as f:
            image_bytes = f.read()

        controller = RefinementController()
        controller.initialize()
        result = controller.enhance(image_bytes, mode, params)

        suffix = os.path.splitext(args.output)[1] or config.OUTPUT_FORMAT
        with open(args.output, 'wb') as f:
            f.write(result.after_image.encode(suffix))
    except (InputError, OSError) as e:
        print(f"Error: {e}")
        return 1

    print(f"Applied: {', '.join(result.applied_enhancements)}")
    print(f"Saved: {args.output}")
    if args.report:
        print(json.dumps(result.summary(), indent=2))
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
