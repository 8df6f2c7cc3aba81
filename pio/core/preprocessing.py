"""Input pre-processing applied once before the search starts.

Orientation, colour management and alpha flattening all return a new image;
the search only ever sees the final, immutable source.
"""

from io import BytesIO
from typing import Optional, Tuple

import numpy as np
import structlog
from PIL import Image, ImageCms, ImageOps

from pio.core.codecs import SUPPORTED_FORMATS, detect_format
from pio.core.constants import MAX_IMAGE_PIXELS
from pio.core.exceptions import InvalidImageError, UnsupportedFormatError
from pio.core.image import RasterImage

logger = structlog.get_logger()

# Descriptions of compact ICC profiles that are sRGB in all but name
_SRGB_DESCRIPTIONS = {"c2", "srgbz", "z", "nrgb", "urgb", "srgb", "ngry", "ugry", "sgry"}


def srgb_to_linear(values: np.ndarray) -> np.ndarray:
    """Convert sRGB samples in [0, 1] to linear light."""
    return np.where(
        values <= 0.04045, values / 12.92, ((values + 0.055) / 1.055) ** 2.4
    )


def linear_to_srgb(values: np.ndarray) -> np.ndarray:
    """Convert linear light in [0, 1] to sRGB samples in [0, 1]."""
    values = np.clip(values, 0.0, 1.0)
    return np.where(
        values <= 0.0031308,
        12.92 * values,
        1.055 * np.power(values, 1.0 / 2.4) - 0.055,
    )


def is_srgb_profile(icc_profile: bytes) -> bool:
    """Check whether an embedded ICC profile describes sRGB."""
    try:
        profile = ImageCms.ImageCmsProfile(BytesIO(icc_profile))
        description = ImageCms.getProfileDescription(profile).strip()
    except (OSError, ImageCms.PyCMSError):
        return False
    return description.lower() in _SRGB_DESCRIPTIONS or "srgb" in description.lower()


def convert_to_srgb(image: Image.Image) -> Image.Image:
    """Convert an image with an embedded ICC profile to sRGB.

    Images without a profile are assumed to be sRGB already. Unreadable
    profiles are logged and ignored.
    """
    icc_profile = image.info.get("icc_profile")
    if not icc_profile or is_srgb_profile(icc_profile):
        return image

    has_alpha = "A" in image.getbands()
    if image.mode not in ("RGB", "RGBA", "CMYK", "L"):
        image = image.convert("RGBA" if has_alpha else "RGB")
    output_mode = "RGBA" if has_alpha else "RGB"

    try:
        source = ImageCms.ImageCmsProfile(BytesIO(icc_profile))
        target = ImageCms.createProfile("sRGB")
        converted = ImageCms.profileToProfile(
            image,
            source,
            target,
            renderingIntent=ImageCms.Intent.PERCEPTUAL,
            outputMode=output_mode,
        )
        logger.debug("Converted embedded ICC profile to sRGB", mode=image.mode)
        return converted
    except (OSError, ImageCms.PyCMSError) as e:
        logger.warning("Failed to apply ICC profile, assuming sRGB", error=str(e))
        return image


def load_image(data: bytes) -> Tuple[RasterImage, str]:
    """Decode input bytes into an oriented, sRGB source image.

    Returns:
        Tuple of (image, detected format name)
    """
    if not data:
        raise InvalidImageError("Input image is empty")

    input_format = detect_format(data)
    if input_format is None:
        raise UnsupportedFormatError(
            "Input must be JPEG, PNG or WebP",
            details={"supported_formats": SUPPORTED_FORMATS},
        )

    try:
        with BytesIO(data) as buffer:
            with Image.open(buffer) as img:
                if img.width * img.height > MAX_IMAGE_PIXELS:
                    raise InvalidImageError(
                        f"Image too large: {img.width}x{img.height}",
                        details={"requested_format": input_format},
                    )
                img.load()
                oriented = ImageOps.exif_transpose(img)
                managed = convert_to_srgb(oriented)
                source = RasterImage.from_pil(managed)
    except InvalidImageError:
        raise
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise InvalidImageError(
            f"Failed to decode input image: {str(e)}",
            details={"requested_format": input_format},
        ) from e

    # Drop an alpha channel that carries no information
    if source.has_alpha and not source.uses_alpha():
        source = RasterImage(source.pixels[:, :, :3])

    logger.info(
        "Loaded source image",
        format=input_format,
        width=source.width,
        height=source.height,
        mode=source.mode,
    )
    return source, input_format


def flatten_alpha(
    image: RasterImage, background: Tuple[int, int, int] = (255, 255, 255)
) -> RasterImage:
    """Composite an RGBA image onto an opaque background in linear light."""
    if not image.has_alpha:
        return image

    pixels = image.pixels.astype(np.float64) / 255.0
    alpha = pixels[:, :, 3:4]
    foreground = srgb_to_linear(pixels[:, :, :3])
    backdrop = srgb_to_linear(np.asarray(background, dtype=np.float64) / 255.0)

    blended = foreground * alpha + backdrop * (1.0 - alpha)
    rgb = np.round(linear_to_srgb(blended) * 255.0).astype(np.uint8)
    return RasterImage(rgb)


def prepare_for_codec(
    image: RasterImage,
    supports_alpha: bool,
    background: Optional[Tuple[int, int, int]] = None,
) -> RasterImage:
    """Return the source as a codec without alpha support must receive it."""
    if image.has_alpha and not supports_alpha:
        return flatten_alpha(image, background or (255, 255, 255))
    return image
