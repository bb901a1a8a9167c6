"""Response models for the HTTP API."""

from typing import Dict, List, Optional

from pydantic import BaseModel


class MetricsModel(BaseModel):
    psnr: float
    ssim: float
    improvement: float


class EnhanceResponse(BaseModel):
    before: str                      # data URL
    after: str                       # data URL
    metrics: Optional[MetricsModel] = None
    applied_enhancements: List[str]
    stop_reason: str
    iterations: int
    reverted: bool
    width: int
    height: int
    processing_time_ms: float


class ModeInfo(BaseModel):
    id: str
    label: str
    preset: Dict[str, float]


class ModesResponse(BaseModel):
    modes: List[ModeInfo]
    defaults: Dict[str, float]
