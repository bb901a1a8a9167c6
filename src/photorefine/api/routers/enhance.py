"""
Enhancement Router
==================
POST /enhance  - run one image through the refinement loop
GET  /modes    - available modes and their slider presets
"""

import base64
import logging
import time
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile
from starlette.concurrency import run_in_threadpool

from ... import config
from ...core.params import (
    DEFAULT_PARAMS,
    MODE_LABELS,
    EnhancementMode,
    EnhancementStrengthParams,
)
from ..schemas import EnhanceResponse, MetricsModel, ModeInfo, ModesResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["enhance"])


def _data_url(data: bytes, media_type: str = "image/png") -> str:
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


@router.post("/enhance", response_model=EnhanceResponse)
async def enhance_image(
    request: Request,
    file: UploadFile = File(..., description="Image to enhance"),
    mode: str = Form("auto", description="auto, hdr, night, portrait, color, detail, style"),
    preset: bool = Form(False, description="Start from the mode's slider preset"),
    detail_level: Optional[float] = Form(None),
    color_intensity: Optional[float] = Form(None),
    noise_reduction: Optional[float] = Form(None),
    sharpness: Optional[float] = Form(None),
    brightness: Optional[float] = Form(None),
    contrast: Optional[float] = Form(None),
):
    """
    Enhance one uploaded image.

    Sliders left out fall back to the defaults (or the mode preset when
    ``preset`` is set). Out-of-range sliders and undecodable images are
    rejected with 400.
    """
    start_time = time.time()

    data = await file.read()
    if not data:
        raise HTTPException(400, "No image provided")
    if len(data) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(413, f"Image exceeds {config.MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit")

    enhancement_mode = EnhancementMode.parse(mode)
    params = EnhancementStrengthParams.for_mode(enhancement_mode) if preset else DEFAULT_PARAMS
    overrides = {
        "detail_level": detail_level,
        "color_intensity": color_intensity,
        "noise_reduction": noise_reduction,
        "sharpness": sharpness,
        "brightness": brightness,
        "contrast": contrast,
    }
    params = params.replace(**{k: v for k, v in overrides.items() if v is not None})

    logger.info(f"Enhancing {file.filename} ({len(data)} bytes) in {enhancement_mode.value} mode")
    controller = request.app.state.controller
    result = await run_in_threadpool(controller.enhance, data, enhancement_mode, params)

    elapsed_ms = round((time.time() - start_time) * 1000, 1)
    return EnhanceResponse(
        before=_data_url(result.before),
        after=_data_url(result.after),
        metrics=MetricsModel(**result.metrics.as_dict()) if result.metrics else None,
        applied_enhancements=list(result.applied_enhancements),
        stop_reason=result.stop_reason.value,
        iterations=result.iterations,
        reverted=result.reverted,
        width=result.after_image.width,
        height=result.after_image.height,
        processing_time_ms=elapsed_ms,
    )


@router.get("/modes", response_model=ModesResponse)
async def list_modes():
    """Enhancement modes with the sliders each one starts from."""
    return ModesResponse(
        modes=[
            ModeInfo(
                id=mode.value,
                label=MODE_LABELS[mode],
                preset=EnhancementStrengthParams.for_mode(mode).as_dict(),
            )
            for mode in EnhancementMode
        ],
        defaults=DEFAULT_PARAMS.as_dict(),
    )
