"""
PixelBuffer - RGBA raster shared by every stage of the pipeline.
================================================================

Pixels are held as a ``(height, width, 4)`` uint8 array in R, G, B, A order.
Filters never write into a buffer they were handed; they build a new one.

Usage:
    buffer = PixelBuffer.decode(open("photo.jpg", "rb").read())
    png_bytes = buffer.encode()
"""

from dataclasses import dataclass, field

import cv2
import numpy as np

from .errors import InputError


_ENCODABLE = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp"}


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """In-memory RGBA image."""
    width: int
    height: int
    pixels: np.ndarray = field(repr=False)

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise InputError(f"Image dimensions must be positive, got {self.width}x{self.height}")
        if not isinstance(self.pixels, np.ndarray) or self.pixels.dtype != np.uint8:
            raise InputError("Pixel data must be a uint8 numpy array")
        if self.pixels.shape != (self.height, self.width, 4):
            raise InputError(
                f"Pixel data shape {self.pixels.shape} does not match "
                f"{self.width}x{self.height} RGBA"
            )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def blank(cls, width: int, height: int, color=(0, 0, 0, 255)) -> "PixelBuffer":
        if width <= 0 or height <= 0:
            raise InputError(f"Image dimensions must be positive, got {width}x{height}")
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :] = np.asarray(color, dtype=np.uint8)
        return cls(width, height, pixels)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """
        Build a buffer from a grey, RGB or RGBA array.

        uint16 data is scaled down to 8 bits; float data is taken as 0-255
        and clamped.
        """
        array = np.asarray(array)
        if array.ndim == 2:
            array = array[:, :, np.newaxis]
        if array.ndim != 3 or array.shape[2] not in (1, 3, 4):
            raise InputError(f"Unsupported pixel array shape {array.shape}")
        if array.shape[0] == 0 or array.shape[1] == 0:
            raise InputError("Image has no pixels")

        if array.dtype == np.uint16:
            array = np.round(array / 257.0)
        if array.dtype != np.uint8:
            array = np.clip(np.nan_to_num(array.astype(np.float64)), 0, 255).round().astype(np.uint8)

        h, w, channels = array.shape
        rgba = np.empty((h, w, 4), dtype=np.uint8)
        if channels == 1:
            rgba[:, :, :3] = array
            rgba[:, :, 3] = 255
        elif channels == 3:
            rgba[:, :, :3] = array
            rgba[:, :, 3] = 255
        else:
            rgba[:] = array
        return cls(w, h, rgba)

    @classmethod
    def decode(cls, data: bytes) -> "PixelBuffer":
        """Decode an encoded image (PNG, JPEG, BMP, TIFF, WebP...)."""
        if not data:
            raise InputError("Empty image data")
        nparr = np.frombuffer(data, np.uint8)
        try:
            image = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)
        except cv2.error as e:
            raise InputError(f"Could not decode image: {e}") from e
        if image is None:
            raise InputError("Could not decode image")

        if image.dtype == np.uint16:
            image = np.round(image / 257.0).astype(np.uint8)
        elif image.dtype != np.uint8:
            raise InputError(f"Unsupported image depth {image.dtype}")

        if image.ndim == 2:
            rgba = cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
        elif image.shape[2] == 3:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
        elif image.shape[2] == 4:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
        else:
            raise InputError(f"Unsupported channel count {image.shape[2]}")
        return cls(rgba.shape[1], rgba.shape[0], np.ascontiguousarray(rgba))

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def encode(self, format: str = ".png", quality: int = 95) -> bytes:
        """Encode to bytes. PNG keeps alpha; JPEG drops it."""
        format = format.lower() if format.startswith(".") else f".{format.lower()}"
        if format not in _ENCODABLE:
            raise InputError(f"Unsupported output format: {format}")

        if format in (".jpg", ".jpeg"):
            image = cv2.cvtColor(self.pixels, cv2.COLOR_RGBA2BGR)
            encode_params = [cv2.IMWRITE_JPEG_QUALITY, quality]
        else:
            image = cv2.cvtColor(self.pixels, cv2.COLOR_RGBA2BGRA)
            encode_params = []
        success, encoded = cv2.imencode(format, image, encode_params)
        if not success:
            raise RuntimeError(f"Failed to encode image as {format}")
        return encoded.tobytes()

    # ------------------------------------------------------------------
    # Views & derived buffers
    # ------------------------------------------------------------------

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def shape(self):
        return self.pixels.shape

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.width, self.height, self.pixels.copy())

    def rgb(self) -> np.ndarray:
        """RGB channels as float64 in 0-255."""
        return self.pixels[:, :, :3].astype(np.float64)

    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3]

    def with_rgb(self, rgb: np.ndarray) -> "PixelBuffer":
        """New buffer with the given RGB values (clamped, rounded) and this alpha."""
        values = np.clip(np.nan_to_num(rgb, nan=0.0, posinf=255.0, neginf=0.0), 0, 255)
        pixels = np.empty_like(self.pixels)
        pixels[:, :, :3] = np.round(values).astype(np.uint8)
        pixels[:, :, 3] = self.pixels[:, :, 3]
        return PixelBuffer(self.width, self.height, pixels)

    def crop(self, x: int, y: int, width: int, height: int) -> "PixelBuffer":
        x2 = min(self.width, x + width)
        y2 = min(self.height, y + height)
        x, y = max(0, x), max(0, y)
        if x2 <= x or y2 <= y:
            raise InputError(f"Crop {width}x{height}+{x}+{y} lies outside the image")
        return PixelBuffer(x2 - x, y2 - y, self.pixels[y:y2, x:x2].copy())

    def paste(self, other: "PixelBuffer", x: int, y: int) -> "PixelBuffer":
        """New buffer with ``other`` drawn at (x, y), clipped to this image."""
        pixels = self.pixels.copy()
        x2 = min(self.width, x + other.width)
        y2 = min(self.height, y + other.height)
        if x2 > x and y2 > y:
            pixels[y:y2, x:x2] = other.pixels[:y2 - y, :x2 - x]
        return PixelBuffer(self.width, self.height, pixels)

    def resized(self, width: int, height: int) -> "PixelBuffer":
        if (width, height) == (self.width, self.height):
            return self.copy()
        shrinking = width * height < self.pixel_count
        interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_CUBIC
        pixels = cv2.resize(self.pixels, (width, height), interpolation=interpolation)
        return PixelBuffer(width, height, np.ascontiguousarray(pixels))

    def same_size(self, other: "PixelBuffer") -> bool:
        return self.width == other.width and self.height == other.height
