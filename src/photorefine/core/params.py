"""
Enhancement modes and strength sliders.
"""

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from numbers import Real
from typing import Dict

from .errors import InputError


class EnhancementMode(str, Enum):
    """The seven named enhancement strategies."""
    AUTO = "auto"
    HDR = "hdr"
    NIGHT = "night"
    PORTRAIT = "portrait"
    COLOR = "color"
    DETAIL = "detail"
    STYLE = "style"

    @classmethod
    def parse(cls, value) -> "EnhancementMode":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("_", "-")
        key = _MODE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise InputError(f"Unknown enhancement mode '{value}'. Valid modes: {valid}") from None


_MODE_ALIASES = {
    "color-pop": "color",
    "colour": "color",
    "detail-boost": "detail",
    "style-transfer": "style",
}

MODE_LABELS: Dict[EnhancementMode, str] = {
    EnhancementMode.AUTO: "Auto Enhance",
    EnhancementMode.HDR: "HDR Effect",
    EnhancementMode.NIGHT: "Night Mode",
    EnhancementMode.PORTRAIT: "Portrait",
    EnhancementMode.COLOR: "Color Pop",
    EnhancementMode.DETAIL: "Detail Boost",
    EnhancementMode.STYLE: "Style Transfer",
}


# Slider ranges: (low, high)
_UNIT_RANGE = (0.0, 100.0)
_SIGNED_RANGE = (-100.0, 100.0)
_RANGES = {
    "detail_level": _UNIT_RANGE,
    "color_intensity": _UNIT_RANGE,
    "noise_reduction": _UNIT_RANGE,
    "sharpness": _UNIT_RANGE,
    "brightness": _SIGNED_RANGE,
    "contrast": _SIGNED_RANGE,
}


@dataclass(frozen=True)
class EnhancementStrengthParams:
    """
    Six user sliders. Values outside their range are rejected here, at the
    boundary, instead of being tolerated deep inside a filter.
    """
    detail_level: float = 70.0       # 0-100
    color_intensity: float = 60.0    # 0-100
    noise_reduction: float = 50.0    # 0-100
    sharpness: float = 65.0          # 0-100
    brightness: float = 0.0          # -100 to 100
    contrast: float = 10.0           # -100 to 100

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, Real):
                raise InputError(f"{f.name} must be a number, got {value!r}")
            value = float(value)
            if value != value:
                raise InputError(f"{f.name} must not be NaN")
            low, high = _RANGES[f.name]
            if not low <= value <= high:
                raise InputError(f"{f.name}={value:g} is outside [{low:g}, {high:g}]")
            object.__setattr__(self, f.name, value)

    @classmethod
    def for_mode(cls, mode) -> "EnhancementStrengthParams":
        """Default sliders tuned for a mode (what the mode picker pre-fills)."""
        return replace(DEFAULT_PARAMS, **MODE_PRESETS.get(EnhancementMode.parse(mode), {}))

    @classmethod
    def from_dict(cls, values: Dict) -> "EnhancementStrengthParams":
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise InputError(f"Unknown parameter(s): {', '.join(sorted(unknown))}")
        return cls(**values)

    def replace(self, **changes) -> "EnhancementStrengthParams":
        return replace(self, **changes)

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


DEFAULT_PARAMS = EnhancementStrengthParams()

MODE_PRESETS: Dict[EnhancementMode, Dict[str, float]] = {
    EnhancementMode.HDR: {"detail_level": 75, "contrast": 30, "brightness": 10},
    EnhancementMode.NIGHT: {"noise_reduction": 80, "brightness": 40, "contrast": 20},
    EnhancementMode.PORTRAIT: {"detail_level": 65, "noise_reduction": 60, "sharpness": 60},
    EnhancementMode.COLOR: {"color_intensity": 80, "contrast": 15},
    EnhancementMode.DETAIL: {"detail_level": 90, "sharpness": 85, "noise_reduction": 30},
}
