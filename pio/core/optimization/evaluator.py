"""Perceptual dissimilarity between a source image and a decoded trial."""

from typing import Sequence

import numpy as np

from pio.core.constants import (
    PSSIM_WORST_FRACTION,
    PSSIM_WORST_WEIGHT,
    SSIM_C1,
    SSIM_C2,
    SSIM_SCALE_WEIGHTS,
    SSIM_WINDOW_SIZE,
)
from pio.core.exceptions import DimensionMismatchError
from pio.core.image import RasterImage
from pio.core.preprocessing import linear_to_srgb, srgb_to_linear


class PerceptualEvaluator:
    """Multi-scale SSIM with P-SSIM pooling, reported as a DSSIM-style score.

    Each scale's SSIM map is pooled with the worst ``worst_fraction`` of the
    values weighted ``worst_weight`` times more than the rest (Moorthy & Bovik,
    visual importance pooling), so a few badly damaged areas dominate an
    otherwise clean image. The weighted mean over scales, ``pssim``, is turned
    into ``1 / pssim - 1``: 0 for identical images, growing without bound.

    The evaluator holds configuration only; ``evaluate`` is a pure function of
    its inputs.
    """

    def __init__(
        self,
        scale_weights: Sequence[float] = SSIM_SCALE_WEIGHTS,
        window_size: int = SSIM_WINDOW_SIZE,
        worst_fraction: float = PSSIM_WORST_FRACTION,
        worst_weight: float = PSSIM_WORST_WEIGHT,
    ):
        if window_size < 1 or window_size % 2 == 0:
            raise ValueError("window_size must be a positive odd number")
        self.scale_weights = tuple(scale_weights)
        self.window_size = window_size
        self.worst_fraction = worst_fraction
        self.worst_weight = worst_weight

    def evaluate(self, source: RasterImage, candidate: RasterImage) -> float:
        """Score how different ``candidate`` looks from ``source``.

        Raises:
            DimensionMismatchError: If the images differ in width or height
        """
        if source.size != candidate.size:
            raise DimensionMismatchError(
                f"Cannot compare {source.width}x{source.height} source with "
                f"{candidate.width}x{candidate.height} candidate",
                details={"source": source.size, "candidate": candidate.size},
            )
        if source.width == 0 or source.height == 0:
            return 0.0

        with_alpha = source.has_alpha or candidate.has_alpha
        img1 = self._to_float(source, with_alpha)
        img2 = self._to_float(candidate, with_alpha)
        if np.array_equal(img1, img2):
            return 0.0

        numerator = 0.0
        denominator = 0.0
        for weight in self.scale_weights:
            if min(img1.shape[0], img1.shape[1]) < self.window_size:
                break
            ssim_map = self._ssim_map(img1, img2)
            numerator += weight * self._pool(ssim_map)
            denominator += weight
            img1 = self._downsample(img1)
            img2 = self._downsample(img2)

        if denominator == 0.0:
            # Smaller than one window: fall back to a single global window
            pssim = self._global_ssim(img1, img2)
        else:
            pssim = numerator / denominator

        dssim = 1.0 / max(pssim, np.finfo(np.float64).eps) - 1.0
        return max(0.0, float(dssim))

    @staticmethod
    def _to_float(image: RasterImage, with_alpha: bool) -> np.ndarray:
        """Normalize to [0, 1], premultiplying alpha in linear light."""
        pixels = image.pixels.astype(np.float64) / 255.0
        if not with_alpha:
            return pixels
        if not image.has_alpha:
            opaque = np.ones(pixels.shape[:2] + (1,), dtype=np.float64)
            return np.concatenate([pixels, opaque], axis=2)

        alpha = pixels[:, :, 3:4]
        rgb = linear_to_srgb(srgb_to_linear(pixels[:, :, :3]) * alpha)
        return np.concatenate([rgb, alpha], axis=2)

    def _box_filter(self, values: np.ndarray) -> np.ndarray:
        """Mean over a square window using an integral image."""
        size = self.window_size
        pad = size // 2
        padded = np.pad(values, ((pad, pad), (pad, pad), (0, 0)), mode="edge")
        integral = np.cumsum(np.cumsum(padded, axis=0), axis=1)
        integral = np.pad(integral, ((1, 0), (1, 0), (0, 0)))
        total = (
            integral[size:, size:]
            - integral[:-size, size:]
            - integral[size:, :-size]
            + integral[:-size, :-size]
        )
        return total / (size * size)

    def _ssim_map(self, img1: np.ndarray, img2: np.ndarray) -> np.ndarray:
        mu1 = self._box_filter(img1)
        mu2 = self._box_filter(img2)
        mu1_sq = mu1 * mu1
        mu2_sq = mu2 * mu2
        mu1_mu2 = mu1 * mu2

        sigma1_sq = self._box_filter(img1 * img1) - mu1_sq
        sigma2_sq = self._box_filter(img2 * img2) - mu2_sq
        sigma12 = self._box_filter(img1 * img2) - mu1_mu2

        numerator = (2 * mu1_mu2 + SSIM_C1) * (2 * sigma12 + SSIM_C2)
        denominator = (mu1_sq + mu2_sq + SSIM_C1) * (sigma1_sq + sigma2_sq + SSIM_C2)

        # Average the channels into one map
        return (numerator / denominator).mean(axis=2)

    @staticmethod
    def _global_ssim(img1: np.ndarray, img2: np.ndarray) -> float:
        mu1 = img1.mean()
        mu2 = img2.mean()
        sigma1_sq = (img1 * img1).mean() - mu1 * mu1
        sigma2_sq = (img2 * img2).mean() - mu2 * mu2
        sigma12 = (img1 * img2).mean() - mu1 * mu2
        numerator = (2 * mu1 * mu2 + SSIM_C1) * (2 * sigma12 + SSIM_C2)
        denominator = (mu1 * mu1 + mu2 * mu2 + SSIM_C1) * (
            sigma1_sq + sigma2_sq + SSIM_C2
        )
        return float(numerator / denominator)

    def _pool(self, ssim_map: np.ndarray) -> float:
        values = ssim_map.ravel()
        count = values.size
        worst_count = int(self.worst_fraction * count)
        if worst_count == 0 or worst_count == count:
            return float(values.mean())

        partitioned = np.partition(values, worst_count)
        worst = partitioned[:worst_count]
        rest = partitioned[worst_count:]
        weighted = self.worst_weight * worst.sum() + rest.sum()
        return float(weighted / (self.worst_weight * worst.size + rest.size))

    @staticmethod
    def _downsample(values: np.ndarray) -> np.ndarray:
        """Halve resolution by averaging 2x2 blocks."""
        height = values.shape[0] - values.shape[0] % 2
        width = values.shape[1] - values.shape[1] % 2
        cropped = values[:height, :width]
        return (
            cropped[0::2, 0::2]
            + cropped[1::2, 0::2]
            + cropped[0::2, 1::2]
            + cropped[1::2, 1::2]
        ) / 4.0
