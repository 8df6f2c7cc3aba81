"""Codec capability interface shared by all output formats."""

from functools import lru_cache
from io import BytesIO
from typing import Protocol, Tuple, runtime_checkable

from PIL import Image, ImageCms

from pio.core.constants import MAX_QUALITY, MIN_QUALITY
from pio.core.exceptions import DecodeError, EncodeError
from pio.core.image import RasterImage


@runtime_checkable
class Codec(Protocol):
    """What the search needs from an output format.

    The native parameter is an integer in ``native_range()`` where larger values
    trade size for fidelity. That trade is only approximately monotonic.
    """

    name: str
    extension: str
    supports_alpha: bool

    def native_range(self) -> Tuple[int, int]: ...

    def native_param_for(self, quality: float) -> int: ...

    def encode(self, image: RasterImage, parameter: int) -> bytes: ...

    def decode(self, data: bytes) -> RasterImage: ...


def clamp(value: int, bounds: Tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, value))


def scale_quality(quality: float, bounds: Tuple[int, int]) -> int:
    """Map operator quality (0-100) linearly onto a native range."""
    low, high = bounds
    fraction = (quality - MIN_QUALITY) / (MAX_QUALITY - MIN_QUALITY)
    return clamp(int(round(low + fraction * (high - low))), bounds)


@lru_cache(maxsize=1)
def srgb_icc_profile() -> bytes:
    """Serialized sRGB ICC profile tagged onto colour output."""
    return ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB")).tobytes()


def check_encodable(
    codec: Codec, image: RasterImage, parameter: int
) -> None:
    """Reject parameters and images the codec cannot encode."""
    low, high = codec.native_range()
    if isinstance(parameter, bool) or not isinstance(parameter, int):
        raise EncodeError(
            f"{codec.name} parameter must be an integer, got {parameter!r}",
            details={"format": codec.name},
        )
    if not low <= parameter <= high:
        raise EncodeError(
            f"{codec.name} parameter {parameter} outside {low}-{high}",
            details={
                "format": codec.name,
                "parameter": parameter,
                "native_range": (low, high),
            },
        )
    if image.width == 0 or image.height == 0:
        raise EncodeError(
            f"Cannot encode empty {image.width}x{image.height} image as {codec.name}",
            details={"format": codec.name, "dimensions": image.size},
        )
    if image.has_alpha and not codec.supports_alpha:
        raise EncodeError(
            f"{codec.name} does not support transparency; flatten the image first",
            details={"format": codec.name, "reason": "alpha"},
        )


def decode_with_pillow(data: bytes, format_name: str) -> RasterImage:
    """Decode bytes with Pillow, requiring the expected container format."""
    try:
        with BytesIO(data) as buffer:
            with Image.open(buffer) as img:
                if img.format != format_name:
                    raise DecodeError(
                        f"Expected {format_name} data, found {img.format}",
                        details={"format": format_name},
                    )
                img.load()
                return RasterImage.from_pil(img)
    except DecodeError:
        raise
    except Exception as e:
        raise DecodeError(
            f"Failed to decode {format_name} image: {str(e)}",
            details={"format": format_name, "reason": str(e)},
        ) from e
