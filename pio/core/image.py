"""Immutable 8-bit raster image shared by codecs, evaluator and search."""

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from PIL import Image

_MODES = {3: "RGB", 4: "RGBA"}


@dataclass(frozen=True, eq=False)
class RasterImage:
    """Rectangular RGB or RGBA pixel buffer, 8 bits per channel.

    The backing array has shape ``(height, width, channels)`` and is marked
    read-only, so ``width * height * channels`` always equals the buffer
    length and no caller can mutate a shared source image.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        pixels = self.pixels
        if not isinstance(pixels, np.ndarray):
            raise TypeError("pixels must be a numpy array")
        if pixels.dtype != np.uint8:
            raise ValueError(f"expected uint8 samples, got {pixels.dtype}")
        if pixels.ndim != 3 or pixels.shape[2] not in _MODES:
            raise ValueError(
                f"expected (height, width, 3|4) array, got shape {pixels.shape}"
            )
        if pixels.flags.writeable:
            pixels = pixels.copy()
            pixels.setflags(write=False)
            object.__setattr__(self, "pixels", pixels)

    @classmethod
    def from_pil(cls, image: Image.Image) -> "RasterImage":
        """Create from a Pillow image, converting to RGB or RGBA."""
        has_alpha = image.mode in ("RGBA", "LA", "PA") or (
            image.mode == "P" and "transparency" in image.info
        )
        target_mode = "RGBA" if has_alpha else "RGB"
        if image.mode != target_mode:
            image = image.convert(target_mode)
        pixels = np.asarray(image, dtype=np.uint8)
        return cls(pixels.reshape(image.height, image.width, len(target_mode)))

    @classmethod
    def blank(
        cls, width: int, height: int, color: Tuple[int, ...] = (0, 0, 0)
    ) -> "RasterImage":
        pixels = np.empty((height, width, len(color)), dtype=np.uint8)
        pixels[...] = color
        return cls(pixels)

    def to_pil(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.pixels))

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def channels(self) -> int:
        return self.pixels.shape[2]

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def mode(self) -> str:
        return _MODES[self.channels]

    @property
    def has_alpha(self) -> bool:
        return self.channels == 4

    def uses_alpha(self) -> bool:
        """Whether any pixel is not fully opaque."""
        return self.has_alpha and bool((self.pixels[:, :, 3] < 255).any())

    def is_grayscale(self) -> bool:
        """Whether every pixel is neutral within one level between channels."""
        rgb = self.pixels[:, :, :3].astype(np.int16)
        red, green, blue = rgb[:, :, 0], rgb[:, :, 1], rgb[:, :, 2]
        return bool(
            (np.abs(red - green) <= 1).all() and (np.abs(green - blue) <= 1).all()
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RasterImage):
            return NotImplemented
        return np.array_equal(self.pixels, other.pixels)

    def __hash__(self) -> int:
        return hash((self.pixels.shape, self.pixels.tobytes()))

    def __repr__(self) -> str:
        return f"RasterImage({self.width}x{self.height} {self.mode})"
