"""
Health Router
=============
/health - library versions and neural collaborator status
"""

import cv2
import numpy as np
from fastapi import APIRouter, Request

from ... import __version__

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    models = request.app.state.controller.models
    return {
        "status": "healthy",
        "version": __version__,
        "components": {
            "opencv": {"installed": True, "version": cv2.__version__},
            "numpy": {"installed": True, "version": np.__version__},
            "neural": models.describe(),
        },
        # Local fallbacks keep every mode available without the service
        "mode": "neural" if models.initialized else "local",
    }
