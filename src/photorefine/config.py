"""
Tunables for the enhancement core and API.
Defaults below; each PHOTOREFINE_* environment variable overrides its value.
"""

import os


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


# Refinement loop
MAX_ITERATIONS = _env_int("PHOTOREFINE_MAX_ITERATIONS", 3)

# Quality gate (empirical defaults, not perceptually validated)
MIN_PSNR = _env_float("PHOTOREFINE_MIN_PSNR", 25.0)
MIN_SSIM = _env_float("PHOTOREFINE_MIN_SSIM", 0.8)
MIN_IMPROVEMENT = _env_float("PHOTOREFINE_MIN_IMPROVEMENT", 15.0)
EARLY_STOP_FACTOR = _env_float("PHOTOREFINE_EARLY_STOP_FACTOR", 1.5)

# Composite score: (psnr - PSNR_BASELINE) * PSNR_WEIGHT + (ssim - SSIM_BASELINE) * SSIM_WEIGHT
PSNR_CAP = 100.0
PSNR_BASELINE = 20.0
PSNR_WEIGHT = 2.0
SSIM_BASELINE = 0.5
SSIM_WEIGHT = 100.0

# Region analysis
REGION_GRID_SIZE = _env_int("PHOTOREFINE_REGION_GRID", 4)
REGION_ENTROPY_THRESHOLD = _env_float("PHOTOREFINE_REGION_ENTROPY", 5.0)
REGION_CONTRAST_THRESHOLD = _env_float("PHOTOREFINE_REGION_CONTRAST", 15.0)
GLOBAL_ENHANCEMENT_FRACTION = 0.5

# Filters
UNSHARP_THRESHOLD = 10
LOCAL_CONTRAST_RADIUS = 10

# Neural collaborator (super-resolution / denoise service)
NEURAL_BASE = os.environ.get("PHOTOREFINE_NEURAL_BASE", "")
NEURAL_ENABLED = os.environ.get("PHOTOREFINE_NEURAL_ENABLED", "false").lower() == "true"
NEURAL_TIMEOUT = _env_float("PHOTOREFINE_NEURAL_TIMEOUT", 20.0)
NEURAL_CONNECT_TIMEOUT = _env_float("PHOTOREFINE_NEURAL_CONNECT_TIMEOUT", 5.0)
SUPER_RESOLUTION_MODEL = os.environ.get("PHOTOREFINE_SR_MODEL", "real-esrgan-x4-v3")
DENOISE_MODEL = os.environ.get("PHOTOREFINE_DENOISE_MODEL", "swin-ir-color-denoise")

# API
LOG_DIR = os.path.expanduser(os.environ.get("PHOTOREFINE_LOG_DIR", "~/.photorefine/logs"))
MAX_UPLOAD_BYTES = 50 * 1024 * 1024
OUTPUT_FORMAT = ".png"
