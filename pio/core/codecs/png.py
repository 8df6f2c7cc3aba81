"""Palette-quantized PNG codec."""

import struct
from io import BytesIO
from typing import Tuple

from PIL import Image, PngImagePlugin, features

from pio.core.codecs.base import (
    check_encodable,
    decode_with_pillow,
    scale_quality,
)
from pio.core.constants import PNG_PALETTE_RANGE
from pio.core.exceptions import EncodeError
from pio.core.image import RasterImage

# gAMA value 1/2.2 and cHRM white point and primaries of sRGB, both scaled by 100000
SRGB_GAMMA = 45455
SRGB_CHROMATICITY = (31270, 32900, 64000, 33000, 30000, 60000, 15000, 6000)


def srgb_chunks() -> PngImagePlugin.PngInfo:
    """Colour chunks marking the output as sRGB with perceptual intent.

    ``gAMA`` and ``cHRM`` repeat what ``sRGB`` says for readers that only
    understand the older chunks.
    """
    info = PngImagePlugin.PngInfo()
    info.add(b"sRGB", b"\x00")
    info.add(b"gAMA", struct.pack(">I", SRGB_GAMMA))
    info.add(b"cHRM", struct.pack(">8I", *SRGB_CHROMATICITY))
    return info


class PngQuantCodec:
    """Lossy PNG: quantize to an 8-bit palette, then deflate.

    The native parameter is the palette size (2-256 colours). Unlike JPEG
    quality it is not linear in perceived quality; the operator scale is mapped
    onto it linearly and the search takes care of the rest.
    """

    name = "png"
    extension = ".png"
    supports_alpha = True

    def __init__(self, dither: bool = True, compress_level: int = 9):
        self.dither = dither
        self.compress_level = compress_level

    def native_range(self) -> Tuple[int, int]:
        return PNG_PALETTE_RANGE

    def native_param_for(self, quality: float) -> int:
        return scale_quality(quality, PNG_PALETTE_RANGE)

    def quantize(self, image: RasterImage, colors: int) -> Image.Image:
        """Reduce an image to a palette of at most ``colors`` entries.

        Pillow only applies its ``dither`` argument when remapping onto a given
        palette, so a dithered RGB result is built in two passes: choose the
        palette, then remap the source onto it with error diffusion.
        """
        pil_image = image.to_pil()
        if image.has_alpha:
            # Median cut does not handle alpha; libimagequant dithers by itself
            if features.check_feature("libimagequant"):
                method = Image.Quantize.LIBIMAGEQUANT
            else:
                method = Image.Quantize.FASTOCTREE
            return pil_image.quantize(colors=colors, method=method)

        palette = pil_image.quantize(colors=colors, method=Image.Quantize.MEDIANCUT)
        if not self.dither:
            return palette
        return pil_image.quantize(palette=palette, dither=Image.Dither.FLOYDSTEINBERG)

    def encode(self, image: RasterImage, parameter: int) -> bytes:
        check_encodable(self, image, parameter)
        try:
            quantized = self.quantize(image, parameter)
            output = BytesIO()
            quantized.save(
                output,
                format="PNG",
                optimize=True,
                compress_level=self.compress_level,
                pnginfo=srgb_chunks(),
            )
            return output.getvalue()
        except (OSError, ValueError) as e:
            raise EncodeError(
                f"Failed to save image as quantized PNG: {str(e)}",
                details={"format": self.name, "parameter": parameter},
            ) from e

    def decode(self, data: bytes) -> RasterImage:
        return decode_with_pillow(data, "PNG")

    def __repr__(self) -> str:
        return f"PngQuantCodec(dither={self.dither})"
