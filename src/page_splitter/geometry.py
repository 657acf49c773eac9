"""
Pixel post-processing for rendered pages.

Why this module exists:
- Rendered pages carry wide white margins; trimming to the content and then
  adding a uniform border gives consistent figures.
- Every helper is a pure Pillow transform: the input image is never touched
  and a new image is returned, so stages can be composed freely.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

from PIL import Image, ImageChops


BBox = Tuple[int, int, int, int]
WHITE = (255, 255, 255)
DEFAULT_TRIM_THRESHOLD = 245
SCALE_EPSILON = 0.001


def find_content_bbox(image: Image.Image, threshold: int = DEFAULT_TRIM_THRESHOLD) -> Optional[BBox]:
    """
    Return the bounding box (left, top, right, bottom) of non-background pixels.

    A pixel is content when it is not fully transparent and at least one of
    its R/G/B values is below `threshold`. Near-white rather than pure white
    so anti-aliased edges of the background do not count as content.
    Returns None when the image has no content at all.
    """

    rgba = image.convert("RGBA")
    red, green, blue, alpha = rgba.split()

    def below(band: Image.Image) -> Image.Image:
        return band.point(lambda p: 255 if p < threshold else 0)

    dark = ImageChops.lighter(ImageChops.lighter(below(red), below(green)), below(blue))
    visible = alpha.point(lambda p: 255 if p > 0 else 0)
    mask = ImageChops.darker(dark, visible)
    return mask.getbbox()


def trim(image: Image.Image, threshold: int = DEFAULT_TRIM_THRESHOLD) -> Image.Image:
    """Crop to the content bounding box; blank images come back unchanged."""

    bbox = find_content_bbox(image, threshold)
    if bbox is None:
        return image

    left, top, right, bottom = bbox
    width = max(1, right - left)
    height = max(1, bottom - top)
    cropped = image.crop((left, top, left + width, top + height))
    cropped.load()
    return cropped


def pad(image: Image.Image, padding: int) -> Image.Image:
    """Surround the image with a solid white border of `padding` pixels."""

    if padding <= 0:
        return image

    width, height = image.size
    canvas = Image.new("RGB", (width + 2 * padding, height + 2 * padding), WHITE)
    if image.mode in {"RGBA", "LA"} or (image.mode == "P" and "transparency" in image.info):
        source = image.convert("RGBA")
        canvas.paste(source, (padding, padding), source)
    else:
        canvas.paste(image.convert("RGB"), (padding, padding))
    return canvas


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def scaled_size(size: Tuple[int, int], scale_factor: float) -> Tuple[int, int]:
    """Integer target size for a scale factor, never smaller than 1x1."""

    width, height = size
    return (
        max(1, _round_half_up(width * scale_factor)),
        max(1, _round_half_up(height * scale_factor)),
    )


def resize(image: Image.Image, scale_factor: float) -> Image.Image:
    """Scale proportionally; factors within 0.001 of 1.0 are a no-op."""

    if abs(scale_factor - 1.0) <= SCALE_EPSILON:
        return image
    return image.resize(scaled_size(image.size, scale_factor), Image.Resampling.LANCZOS)


def postprocess(image: Image.Image, padding: int, scale_factor: float) -> Image.Image:
    """Apply the fixed page chain: trim -> pad -> resize."""

    return resize(pad(trim(image), padding), scale_factor)
