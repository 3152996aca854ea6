"""
Viewing-distance similarity between two RGB buffers.

Both buffers are Gaussian-blurred (separable, edge-clamped) so dither noise
averages out, then compared per pixel in OKLab (or normalized Lab, or unit
RGB). The mean delta is turned into a 0..100 score.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import ndimage

from color_spaces import ColorMode, resolve_color_mode, rgb255_array_to_lab, rgb255_array_to_oklab

__all__ = [
    'DEFAULT_PERCEPTUAL_BLUR_RADIUS_PX',
    'PerceptualSimilarityResult',
    'PerceptualSimilarityArtifacts',
    'build_gaussian_kernel',
    'blur_rgb_buffer',
    'compute_perceptual_similarity_artifacts',
    'compute_perceptual_similarity_score',
]

logger = logging.getLogger(__name__)

MIN_GAUSSIAN_SIGMA = 0.25
OKLAB_DISTANCE_REFERENCE = 0.05  # about one just-noticeable difference on smooth content
DEFAULT_PERCEPTUAL_BLUR_RADIUS_PX = 1.25


@dataclass
class PerceptualSimilarityResult:
    score: float
    mean_delta: float
    max_delta: float
    blur_radius_px: float


@dataclass
class PerceptualSimilarityArtifacts:
    result: Optional[PerceptualSimilarityResult] = None
    blurred_reference: Optional[np.ndarray] = None
    blurred_test: Optional[np.ndarray] = None
    delta_map: Optional[np.ndarray] = None


def build_gaussian_kernel(sigma_px: float) -> np.ndarray:
    """Normalized 1D kernel; sigma >= 0.25 and radius max(1, ceil(3 sigma))."""
    sigma = max(MIN_GAUSSIAN_SIGMA, sigma_px if math.isfinite(sigma_px) else 0.0)
    radius = max(1, int(math.ceil(sigma * 3.0)))
    taps = np.arange(-radius, radius + 1, dtype=np.float64)
    weights = np.exp(-(taps * taps) / (2.0 * sigma * sigma))
    return weights / weights.sum()


def blur_rgb_buffer(buffer: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Horizontal then vertical pass over an (H, W, 3) buffer, edges clamped."""
    data = np.asarray(buffer, dtype=np.float64)
    horizontal = ndimage.correlate1d(data, kernel, axis=1, mode='nearest')
    return ndimage.correlate1d(horizontal, kernel, axis=0, mode='nearest')


def _distance_tuples(buffer: np.ndarray, mode: ColorMode) -> np.ndarray:
    if mode == ColorMode.OKLAB:
        return rgb255_array_to_oklab(buffer)
    if mode == ColorMode.LAB:
        return rgb255_array_to_lab(buffer) / np.array([100.0, 128.0, 128.0])
    return buffer / 255.0


def compute_perceptual_similarity_artifacts(reference: np.ndarray, test: np.ndarray,
                                            blur_radius_px: float = DEFAULT_PERCEPTUAL_BLUR_RADIUS_PX,
                                            distance_space=ColorMode.OKLAB) -> PerceptualSimilarityArtifacts:
    """
    Compare two (H, W, 3|4) buffers of 0..255 values. Mismatched shapes or an
    empty image give artifacts whose fields are all None.
    """
    reference = np.asarray(reference, dtype=np.float64)
    test = np.asarray(test, dtype=np.float64)
    if (reference.ndim != 3 or test.ndim != 3 or reference.shape[:2] != test.shape[:2]
            or reference.shape[-1] < 3 or test.shape[-1] < 3):
        logger.debug("Perceptual similarity skipped: shapes %s and %s differ", reference.shape, test.shape)
        return PerceptualSimilarityArtifacts()
    height, width = reference.shape[:2]
    if width <= 0 or height <= 0:
        return PerceptualSimilarityArtifacts()

    blur_radius_px = max(0.0, blur_radius_px)
    kernel = build_gaussian_kernel(blur_radius_px)
    blurred_reference = blur_rgb_buffer(reference[..., :3], kernel)
    blurred_test = blur_rgb_buffer(test[..., :3], kernel)

    # the metric is asked for oklab, lab, or anything else (plain rgb)
    mode = resolve_color_mode(distance_space)
    delta = np.linalg.norm(_distance_tuples(blurred_reference, mode) - _distance_tuples(blurred_test, mode), axis=-1)
    mean_delta = float(delta.mean())
    max_delta = float(delta.max())

    return PerceptualSimilarityArtifacts(
        result=PerceptualSimilarityResult(
            score=100.0 / (1.0 + mean_delta / OKLAB_DISTANCE_REFERENCE),
            mean_delta=mean_delta,
            max_delta=max_delta,
            blur_radius_px=blur_radius_px,
        ),
        blurred_reference=blurred_reference,
        blurred_test=blurred_test,
        delta_map=delta,
    )


def compute_perceptual_similarity_score(reference: np.ndarray, test: np.ndarray,
                                        blur_radius_px: float = DEFAULT_PERCEPTUAL_BLUR_RADIUS_PX,
                                        distance_space=ColorMode.OKLAB) -> Optional[PerceptualSimilarityResult]:
    return compute_perceptual_similarity_artifacts(reference, test, blur_radius_px, distance_space).result
