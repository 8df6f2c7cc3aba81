"""JPEG codec."""

from io import BytesIO
from typing import Tuple

from pio.core.codecs.base import (
    check_encodable,
    clamp,
    decode_with_pillow,
    srgb_icc_profile,
)
from pio.core.constants import DEFAULT_CHROMA_SUBSAMPLING, JPEG_QUALITY_RANGE
from pio.core.exceptions import EncodeError
from pio.core.image import RasterImage

# Pillow's subsampling argument values
CHROMA_SUBSAMPLING = {"4:4:4": 0, "4:2:2": 1, "4:2:0": 2}


class JpegCodec:
    """Baseline JPEG through Pillow's libjpeg binding.

    The native parameter is the libjpeg quality factor. Pixels are expected to
    be sRGB already. Colour output is tagged with an sRGB ICC profile and
    carries no other metadata. Opaque images with only neutral pixels are
    written as single-channel grayscale, which needs no chroma planes.
    """

    name = "jpeg"
    extension = ".jpg"
    supports_alpha = False

    def __init__(self, chroma_subsampling: str = DEFAULT_CHROMA_SUBSAMPLING):
        if chroma_subsampling not in CHROMA_SUBSAMPLING:
            raise ValueError(
                f"chroma_subsampling must be one of {sorted(CHROMA_SUBSAMPLING)}"
            )
        self.chroma_subsampling = chroma_subsampling

    def native_range(self) -> Tuple[int, int]:
        return JPEG_QUALITY_RANGE

    def native_param_for(self, quality: float) -> int:
        return clamp(int(round(quality)), JPEG_QUALITY_RANGE)

    def encode(self, image: RasterImage, parameter: int) -> bytes:
        check_encodable(self, image, parameter)
        pil_image = image.to_pil()
        save_params = {"quality": parameter, "optimize": True}
        if image.is_grayscale():
            pil_image = pil_image.getchannel("G")
        else:
            save_params["subsampling"] = CHROMA_SUBSAMPLING[self.chroma_subsampling]
            save_params["icc_profile"] = srgb_icc_profile()
        try:
            output = BytesIO()
            pil_image.save(output, format="JPEG", **save_params)
            return output.getvalue()
        except (OSError, ValueError) as e:
            raise EncodeError(
                f"Failed to save image as JPEG: {str(e)}",
                details={"format": self.name, "parameter": parameter},
            ) from e

    def decode(self, data: bytes) -> RasterImage:
        return decode_with_pillow(data, "JPEG")

    def __repr__(self) -> str:
        return f"JpegCodec(chroma_subsampling={self.chroma_subsampling!r})"
