"""Thumbnail derivative generation with Pillow."""

import logging
import os

from PIL import Image, ImageOps

from ..domain.models import THUMBNAIL_SIZES

module_logger = logging.getLogger(__name__)

# Longest edge in pixels; square is cropped to an exact box
DERIVATIVE_CONSTRAINTS = {
    "large": 800,
    "medium": 200,
    "square": 200,
}

JPEG_QUALITY = 85


class DerivativeGenerator:
    """Turns one extracted frame into the large, medium and square JPEGs."""

    def __init__(
        self,
        constraints: dict[str, int] | None = None,
        quality: int = JPEG_QUALITY,
        logger: logging.Logger | None = None,
    ):
        self.constraints = constraints or DERIVATIVE_CONSTRAINTS
        self.quality = quality
        self.logger = logger or module_logger

    def generate(self, source_path: str, output_dir: str) -> dict[str, str]:
        """Write one JPEG per size into output_dir.

        Returns:
            Mapping of size name to the generated file path.

        Raises:
            OSError: If the source is not a readable image or a write fails
        """
        outputs = {}
        with Image.open(source_path) as opened:
            image = opened.convert("RGB")

        for size in THUMBNAIL_SIZES:
            constraint = self.constraints[size]
            if size == "square":
                derivative = ImageOps.fit(
                    image, (constraint, constraint), method=Image.LANCZOS
                )
            else:
                derivative = image.copy()
                derivative.thumbnail((constraint, constraint), Image.LANCZOS)

            path = os.path.join(output_dir, f"{size}.jpg")
            derivative.save(path, "JPEG", quality=self.quality)
            outputs[size] = path

        self.logger.debug(
            f"Generated {len(outputs)} derivatives from {source_path} "
            f"({image.width}x{image.height})"
        )
        return outputs
