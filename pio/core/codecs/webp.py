"""WebP codec."""

from io import BytesIO
from typing import Tuple

from pio.core.codecs.base import (
    check_encodable,
    clamp,
    decode_with_pillow,
    srgb_icc_profile,
)
from pio.core.constants import WEBP_METHOD, WEBP_QUALITY_RANGE
from pio.core.exceptions import EncodeError
from pio.core.image import RasterImage


class WebPCodec:
    """Lossy WebP through Pillow's libwebp binding, tagged as sRGB."""

    name = "webp"
    extension = ".webp"
    supports_alpha = True

    def __init__(self, method: int = WEBP_METHOD):
        self.method = method

    def native_range(self) -> Tuple[int, int]:
        return WEBP_QUALITY_RANGE

    def native_param_for(self, quality: float) -> int:
        return clamp(int(round(quality)), WEBP_QUALITY_RANGE)

    def encode(self, image: RasterImage, parameter: int) -> bytes:
        check_encodable(self, image, parameter)
        save_params = {
            "quality": parameter,
            "method": self.method,
            "lossless": False,
            "icc_profile": srgb_icc_profile(),
        }
        try:
            output = BytesIO()
            image.to_pil().save(output, format="WEBP", **save_params)
            return output.getvalue()
        except (OSError, ValueError) as e:
            raise EncodeError(
                f"Failed to save image as WebP: {str(e)}",
                details={"format": self.name, "parameter": parameter},
            ) from e

    def decode(self, data: bytes) -> RasterImage:
        return decode_with_pillow(data, "WEBP")

    def __repr__(self) -> str:
        return f"WebPCodec(method={self.method})"
