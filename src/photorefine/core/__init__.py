from .errors import BufferShapeError, InputError, StageFailure
from .params import EnhancementMode, EnhancementStrengthParams
from .pixel_buffer import PixelBuffer
from .quality_metrics import QualityMetrics, QualityThresholds
from .refinement import EnhancementResult, RefinementController, RefinementPolicy

__all__ = [
    "BufferShapeError",
    "EnhancementMode",
    "EnhancementResult",
    "EnhancementStrengthParams",
    "InputError",
    "PixelBuffer",
    "QualityMetrics",
    "QualityThresholds",
    "RefinementController",
    "RefinementPolicy",
    "StageFailure",
]
