"""
Image Processing Service

Resizes product photos to a maximum edge length and re-encodes them
for marketplace upload, using Pillow. Work runs in a thread so the
event loop stays free.
"""

import asyncio
import io
import logging
import time
from dataclasses import dataclass
from typing import Literal

from PIL import Image, ImageOps, UnidentifiedImageError
from pydantic import BaseModel, Field

from app.infrastructure.exceptions import ValidationError


logger = logging.getLogger(__name__)


MAX_FILE_SIZE = 25 * 1024 * 1024
MIN_EDGE = 500
MAX_EDGE = 5000

PIL_FORMATS = {"jpeg": "JPEG", "png": "PNG", "webp": "WEBP"}

# Modes Pillow can write as PNG
PNG_MODES = frozenset({"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"})


class ImageProcessingOptions(BaseModel):
    """Options accepted in the `options` form field (JSON)."""

    max_edge: int = Field(default=2000, ge=MIN_EDGE, le=MAX_EDGE, alias="maxEdge")
    format: Literal["jpeg", "png", "webp"] = "jpeg"
    quality: int = Field(default=85, ge=1, le=100)

    model_config = {"populate_by_name": True}


@dataclass
class ProcessedImage:
    content: bytes
    format: str
    width: int
    height: int
    original_size: int
    processing_time_ms: int

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def compression_ratio(self) -> int:
        """Percent saved relative to the upload, rounded."""
        if not self.original_size:
            return 0
        return round((1 - self.size / self.original_size) * 100)

    @property
    def media_type(self) -> str:
        return f"image/{self.format}"


def capabilities() -> dict:
    """What the photo endpoint supports, for GET /process-photo."""
    return {
        "supportedFormats": list(PIL_FORMATS),
        "maxFileSize": MAX_FILE_SIZE,
        "maxEdgeSize": MAX_EDGE,
        "minEdgeSize": MIN_EDGE,
        "features": {
            "resize": True,
            "formatConversion": True,
            "qualityControl": True,
            "backgroundRemoval": False,
        },
    }


def process_image(data: bytes, options: ImageProcessingOptions) -> ProcessedImage:
    """
    Resize and re-encode an image synchronously.

    Raises:
        ValidationError: empty, too large, or not a readable image
    """
    if not data:
        raise ValidationError("No image data provided")
    if len(data) > MAX_FILE_SIZE:
        raise ValidationError(
            "Image too large",
            details={"size": len(data), "maxFileSize": MAX_FILE_SIZE},
        )

    started = time.perf_counter()
    try:
        image = Image.open(io.BytesIO(data))
        image = ImageOps.exif_transpose(image)
        image.thumbnail((options.max_edge, options.max_edge), Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError("Unsupported or corrupt image", original_error=e)

    pil_format = PIL_FORMATS[options.format]
    if pil_format == "JPEG" and image.mode not in ("RGB", "L"):
        # JPEG has no alpha; flatten onto white
        background = Image.new("RGB", image.size, (255, 255, 255))
        rgba = image.convert("RGBA")
        background.paste(rgba, mask=rgba.split()[-1])
        image = background
    elif pil_format == "WEBP" and image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA")
    elif pil_format == "PNG" and image.mode not in PNG_MODES:
        # CMYK and YCbCr come from print workflows
        image = image.convert("RGBA" if "A" in image.getbands() else "RGB")

    output = io.BytesIO()
    save_kwargs = {"optimize": True}
    if pil_format in ("JPEG", "WEBP"):
        save_kwargs["quality"] = options.quality
    try:
        image.save(output, format=pil_format, **save_kwargs)
    except OSError as e:
        raise ValidationError(
            f"Cannot encode image as {options.format}",
            details={"mode": image.mode, "format": options.format},
            original_error=e,
        )

    elapsed_ms = int((time.perf_counter() - started) * 1000)
    return ProcessedImage(
        content=output.getvalue(),
        format=options.format,
        width=image.width,
        height=image.height,
        original_size=len(data),
        processing_time_ms=elapsed_ms,
    )


class ImageProcessingService:
    """Async facade over Pillow processing."""

    async def process(
        self,
        data: bytes,
        filename: str,
        options: ImageProcessingOptions,
    ) -> ProcessedImage:
        result = await asyncio.to_thread(process_image, data, options)
        logger.info(
            f"Processed {filename}: {result.original_size} -> {result.size} bytes "
            f"({result.width}x{result.height} {result.format}, {result.processing_time_ms}ms)"
        )
        return result
