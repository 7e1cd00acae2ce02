import logging
from pathlib import Path
from typing import Optional, Union

from PIL import Image, ImageChops, ImageStat, UnidentifiedImageError

from meter_ocr.types import ImageFeatures

logger = logging.getLogger(__name__)

ImageInput = Union[str, Path, Image.Image]


def open_image(image: ImageInput) -> Image.Image:
    if isinstance(image, Image.Image):
        return image
    with Image.open(image) as img:
        img.load()
        return img.copy()


def estimate_sharpness(gray: Image.Image) -> float:
    """Mean absolute difference between neighbouring pixels, scaled to [0, 1]."""
    width, height = gray.size
    if width < 2 or height < 2:
        return 0.0

    base = gray.crop((0, 0, width - 1, height - 1))
    right = gray.crop((1, 0, width, height - 1))
    below = gray.crop((0, 1, width - 1, height))

    horizontal = ImageStat.Stat(ImageChops.difference(base, right)).mean[0]
    vertical = ImageStat.Stat(ImageChops.difference(base, below)).mean[0]
    return (horizontal + vertical) / 2 / 255


def extract_image_features(image: ImageInput, log: Optional[logging.Logger] = None) -> ImageFeatures:
    """Measure brightness, contrast and sharpness of a meter photograph.

    Images that cannot be opened yield neutral features rather than an error.
    """
    log = log or logger
    try:
        img = open_image(image)
    except (OSError, UnidentifiedImageError) as e:
        log.error(f"Failed to extract image features: {e}")
        return ImageFeatures.neutral()

    gray = img.convert("L")
    stat = ImageStat.Stat(gray)
    width, height = img.size

    return ImageFeatures(
        brightness=stat.mean[0] / 255,
        contrast=stat.stddev[0] / 255,
        sharpness=estimate_sharpness(gray),
        width=width,
        height=height,
        aspect_ratio=width / height if height else 1.0,
    )
