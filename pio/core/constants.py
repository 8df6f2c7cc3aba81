"""Constants and default values for the optimizer."""

from typing import Tuple

# Operator-facing quality scale
MIN_QUALITY = 0
MAX_QUALITY = 100
DEFAULT_QUALITY = 85
DEFAULT_SPREAD = 10

# Native parameter ranges per format
JPEG_QUALITY_RANGE: Tuple[int, int] = (0, 100)
WEBP_QUALITY_RANGE: Tuple[int, int] = (0, 100)
PNG_PALETTE_RANGE: Tuple[int, int] = (2, 256)

# Encoder settings
WEBP_METHOD = 6  # Slowest but best compression
DEFAULT_CHROMA_SUBSAMPLING = "4:2:0"

# Search
DEFAULT_TRIAL_BUDGET = 8
MAX_TRIAL_BUDGET = 64

# Perceptual metric (multi-scale SSIM with P-SSIM pooling)
SSIM_SCALE_WEIGHTS: Tuple[float, ...] = (0.0448, 0.2856, 0.3001, 0.2363, 0.1333)
SSIM_K1 = 0.01
SSIM_K2 = 0.03
SSIM_C1 = SSIM_K1**2  # Dynamic range is 1.0 after normalization
SSIM_C2 = SSIM_K2**2
SSIM_WINDOW_SIZE = 7
PSSIM_WORST_FRACTION = 0.06
PSSIM_WORST_WEIGHT = 4000.0

# Alpha flattening
DEFAULT_BACKGROUND: Tuple[int, int, int] = (255, 255, 255)

# Input limits
MAX_IMAGE_PIXELS = 178956970  # ~178MP (same as PIL default)

# Calibration
CALIBRATION_STEP = 5
