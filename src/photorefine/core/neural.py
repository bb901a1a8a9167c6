"""
Neural enhancement collaborator
===============================

Optional remote super-resolution / denoise models. The contract is simple:
``enhance(buffer)`` returns a buffer at least as large as its input, or
raises. Nothing in the core depends on a model being present; every caller
has a local algorithmic substitute.

Model availability is an explicit ``ModelState`` value produced by
``initialize_models()`` and handed to whoever needs it.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Optional

import httpx

from .. import config
from .errors import StageFailure
from .pixel_buffer import PixelBuffer

logger = logging.getLogger(__name__)


class ImageModel:
    """Anything that turns one PixelBuffer into an enhanced one."""

    name = "image-model"

    def enhance(self, buffer: PixelBuffer) -> PixelBuffer:
        raise NotImplementedError


class RemoteImageModel(ImageModel):
    """
    Image-to-image model behind an HTTP endpoint.

    POSTs the buffer as PNG to ``{base_url}/{task}`` and decodes the PNG
    (or any image) the service answers with.
    """

    def __init__(self, base_url: str, task: str, model: str, client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.task = task
        self.model = model
        self.name = f"{task}:{model}"
        self._client = client or _default_client()

    def enhance(self, buffer: PixelBuffer) -> PixelBuffer:
        resp = self._client.post(
            f"{self.base_url}/{self.task}",
            params={"model": self.model},
            content=buffer.encode(".png"),
            headers={"Content-Type": "image/png"},
        )
        resp.raise_for_status()
        return PixelBuffer.decode(resp.content)


def _default_client() -> httpx.Client:
    return httpx.Client(
        timeout=httpx.Timeout(config.NEURAL_TIMEOUT, connect=config.NEURAL_CONNECT_TIMEOUT)
    )


@dataclass(frozen=True)
class ModelState:
    """Outcome of model initialisation, threaded through the pipeline."""
    super_resolution: Optional[ImageModel] = None
    denoise: Optional[ImageModel] = None
    error: Optional[str] = None

    @property
    def initialized(self) -> bool:
        return self.super_resolution is not None or self.denoise is not None

    def describe(self) -> dict:
        return {
            "initialized": self.initialized,
            "super_resolution": self.super_resolution.name if self.super_resolution else None,
            "denoise": self.denoise.name if self.denoise else None,
            "error": self.error,
        }


NO_MODELS = ModelState(error="neural service not configured")


def initialize_models(
    base_url: Optional[str] = None,
    enabled: Optional[bool] = None,
    client: Optional[httpx.Client] = None,
) -> ModelState:
    """
    Probe the neural service once and return what is usable.

    Never raises: an unreachable service yields a ModelState without models
    and the reason in ``error``.
    """
    base_url = config.NEURAL_BASE if base_url is None else base_url
    enabled = config.NEURAL_ENABLED if enabled is None else enabled
    if not enabled or not base_url:
        return NO_MODELS

    client = client or _default_client()
    try:
        resp = client.get(f"{base_url.rstrip('/')}/health")
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"Neural service at {base_url} unavailable, using local fallbacks: {e}")
        return ModelState(error=str(e))

    logger.info(f"Neural service ready at {base_url}")
    return ModelState(
        super_resolution=RemoteImageModel(base_url, "super-resolution", config.SUPER_RESOLUTION_MODEL, client),
        denoise=RemoteImageModel(base_url, "denoise", config.DENOISE_MODEL, client),
    )


def call_with_deadline(model: ImageModel, buffer: PixelBuffer, timeout: float) -> PixelBuffer:
    """
    Run ``model.enhance`` with a wall-clock deadline.

    Raises StageFailure on timeout or on a result smaller than the input;
    the model's own exceptions propagate unchanged.
    """
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(model.enhance, buffer)
    try:
        result = future.result(timeout=timeout)
    except FutureTimeout as e:
        future.cancel()
        raise StageFailure(model.name, TimeoutError(f"no response within {timeout:g}s")) from e
    finally:
        # A hung call is abandoned, not waited for
        executor.shutdown(wait=False)

    if not isinstance(result, PixelBuffer):
        raise StageFailure(model.name, TypeError(f"returned {type(result).__name__}, not a PixelBuffer"))
    if result.width < buffer.width or result.height < buffer.height:
        raise StageFailure(
            model.name,
            ValueError(f"returned {result.width}x{result.height} for a {buffer.width}x{buffer.height} input"),
        )
    return result
