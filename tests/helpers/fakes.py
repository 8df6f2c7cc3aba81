"""Deterministic stand-ins for codecs and the evaluator.

A fake codec writes the parameter into its output and decodes it back into
the first pixel, so a fake evaluator can score trials from a plain function
of the parameter.
"""

import time
from typing import Callable, Optional, Set, Tuple

import structlog

from pio.core.exceptions import DecodeError, EncodeError
from pio.core.image import RasterImage


def _linear_size(parameter: int) -> int:
    return 100 + 10 * parameter


class FakeCodec:
    """Codec whose output size and score are functions of the parameter."""

    supports_alpha = True
    extension = ".fake"

    def __init__(
        self,
        name: str = "fake",
        native: Tuple[int, int] = (0, 100),
        size_for: Callable[[int], int] = _linear_size,
        fail_encode: Optional[Set[int]] = None,
        fail_all: bool = False,
        fail_decode: bool = False,
        slow_after: Optional[int] = None,
        delay: float = 0.0,
    ):
        self.name = name
        self.native = native
        self.size_for = size_for
        self.fail_encode = fail_encode or set()
        self.fail_all = fail_all
        self.fail_decode = fail_decode
        self.slow_after = slow_after
        self.delay = delay
        self.encoded = []
        self.channels = set()
        self.contexts = []
        self._size = None

    def native_range(self) -> Tuple[int, int]:
        return self.native

    def native_param_for(self, quality: float) -> int:
        low, high = self.native
        return max(low, min(high, int(round(quality))))

    def encode(self, image: RasterImage, parameter: int) -> bytes:
        self.encoded.append(parameter)
        self.channels.add(image.channels)
        self.contexts.append(structlog.contextvars.get_contextvars())
        if self.slow_after is not None and len(self.encoded) > self.slow_after:
            time.sleep(self.delay)
        if self.fail_all or parameter in self.fail_encode:
            raise EncodeError(f"{self.name} refused parameter {parameter}")
        self._size = image.size
        header = b"FAKE" + parameter.to_bytes(2, "big")
        return header + b"\x00" * max(0, self.size_for(parameter) - len(header))

    def decode(self, data: bytes) -> RasterImage:
        if self.fail_decode or not data.startswith(b"FAKE"):
            raise DecodeError(f"{self.name} cannot decode its output")
        parameter = int.from_bytes(data[4:6], "big")
        width, height = self._size
        return RasterImage.blank(width, height, (parameter >> 8, parameter & 0xFF, 0))


class FakeEvaluator:
    """Scores a fake codec's output with ``score_for(parameter)``."""

    def __init__(self, score_for: Callable[[int], float]):
        self.score_for = score_for

    def evaluate(self, source: RasterImage, candidate: RasterImage) -> float:
        pixel = candidate.pixels[0, 0]
        return self.score_for(int(pixel[0]) * 256 + int(pixel[1]))


def decreasing_score(parameter: int) -> float:
    """Monotonic curve: 0.1 at parameter 0 down to 0.0 at 100."""
    return (100 - parameter) / 1000.0
