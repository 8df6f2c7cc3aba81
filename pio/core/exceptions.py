from typing import Dict, List, Optional, Tuple, TypedDict, Union


class CodecDetails(TypedDict, total=False):
    """Type-safe details for encode/decode errors."""

    format: str
    parameter: int
    native_range: Tuple[int, int]
    dimensions: Tuple[int, int]
    reason: str


class DimensionDetails(TypedDict, total=False):
    """Type-safe details for dimension mismatch errors."""

    source: Tuple[int, int]
    candidate: Tuple[int, int]


class SearchDetails(TypedDict, total=False):
    """Type-safe details for failed optimization runs."""

    formats: List[str]
    failures: Dict[str, str]
    timeout_seconds: float


class FormatDetails(TypedDict, total=False):
    """Type-safe details for format errors."""

    requested_format: str
    supported_formats: List[str]
    file_extension: str


class ConfigDetails(TypedDict, total=False):
    """Type-safe details for configuration errors."""

    config_key: str
    config_value: Union[str, int, float, bool, None]
    valid_range: Tuple[int, int]


ErrorDetails = Union[
    CodecDetails,
    DimensionDetails,
    SearchDetails,
    FormatDetails,
    ConfigDetails,
    Dict[str, Union[str, int, float, bool, List[str]]],
]


class PioError(Exception):
    """Base exception for all optimizer errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        details: Optional[ErrorDetails] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class EncodeError(PioError):
    """Raised when a codec rejects a parameter or an image.

    Recoverable: the trial is dropped and the search continues.
    """

    def __init__(self, message: str, details: Optional[CodecDetails] = None):
        super().__init__(message=message, error_code="PIO101", details=details)


class DecodeError(PioError):
    """Raised when encoded data cannot be decoded.

    The search only decodes a codec's own output, so this means the codec
    is broken; it aborts the affected format's search.
    """

    def __init__(self, message: str, details: Optional[CodecDetails] = None):
        super().__init__(message=message, error_code="PIO102", details=details)


class DimensionMismatchError(PioError):
    """Raised when the evaluator is given images of different sizes."""

    def __init__(self, message: str, details: Optional[DimensionDetails] = None):
        super().__init__(message=message, error_code="PIO103", details=details)


class NoViableEncodingError(PioError):
    """Raised when no candidate format produced a usable trial."""

    def __init__(self, message: str, details: Optional[SearchDetails] = None):
        super().__init__(message=message, error_code="PIO104", details=details)


class UnsupportedFormatError(PioError):
    """Raised when a format name or input file is not supported."""

    def __init__(self, message: str, details: Optional[FormatDetails] = None):
        super().__init__(message=message, error_code="PIO105", details=details)


class ConfigurationError(PioError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, details: Optional[ConfigDetails] = None):
        super().__init__(message=message, error_code="PIO106", details=details)


class InvalidImageError(PioError):
    """Raised when input image data is invalid or corrupted."""

    def __init__(self, message: str, details: Optional[FormatDetails] = None):
        super().__init__(message=message, error_code="PIO107", details=details)
