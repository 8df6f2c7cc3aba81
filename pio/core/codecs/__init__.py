"""Output format codecs and format detection."""

from pathlib import Path
from typing import Dict, List, Optional, Union

from pio.core.codecs.base import Codec
from pio.core.codecs.jpeg import JpegCodec
from pio.core.codecs.png import PngQuantCodec
from pio.core.codecs.webp import WebPCodec
from pio.core.constants import DEFAULT_CHROMA_SUBSAMPLING
from pio.core.exceptions import UnsupportedFormatError

FORMAT_ALIASES: Dict[str, str] = {
    "jpeg": "jpeg",
    "jpg": "jpeg",
    "jpe": "jpeg",
    "jfif": "jpeg",
    "webp": "webp",
    "png": "png",
}

SUPPORTED_FORMATS: List[str] = ["jpeg", "webp", "png"]


def normalize_format(name: str) -> str:
    """Resolve a format name or alias to its canonical name."""
    key = name.lower().lstrip(".")
    try:
        return FORMAT_ALIASES[key]
    except KeyError:
        raise UnsupportedFormatError(
            f"Unsupported format: {name}",
            details={"requested_format": name, "supported_formats": SUPPORTED_FORMATS},
        ) from None


def get_codec(
    name: str, chroma_subsampling: str = DEFAULT_CHROMA_SUBSAMPLING
) -> Codec:
    """Create the codec for a format name or alias."""
    canonical = normalize_format(name)
    if canonical == "jpeg":
        return JpegCodec(chroma_subsampling=chroma_subsampling)
    if canonical == "webp":
        return WebPCodec()
    return PngQuantCodec()


def detect_format(data: bytes) -> Optional[str]:
    """Detect a supported format from magic bytes."""
    if data[:3] == b"\xff\xd8\xff":
        return "jpeg"
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "png"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return None


def format_from_path(path: Union[str, Path]) -> str:
    """Determine a supported format from a file extension."""
    suffix = Path(path).suffix
    if not suffix:
        raise UnsupportedFormatError(
            f"Cannot determine format of {path}: no file extension",
            details={"supported_formats": SUPPORTED_FORMATS},
        )
    try:
        return normalize_format(suffix)
    except UnsupportedFormatError as e:
        e.details["file_extension"] = suffix
        raise


__all__ = [
    "Codec",
    "JpegCodec",
    "WebPCodec",
    "PngQuantCodec",
    "SUPPORTED_FORMATS",
    "normalize_format",
    "get_codec",
    "detect_format",
    "format_from_path",
]
