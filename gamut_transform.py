"""
Statistical gamut fitting: an affine map (translate, per-axis scale, PCA
rotation) that moves the source color distribution toward the palette's,
computed on normalized axis triples of one color space.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from color_axes import AxisStats, apply_axis_triple_to_rgb, extract_axis_triple
from color_spaces import RGBColor
from matrix_math import (
    blend_rotation_matrix, eigen_decomposition_2x2, ensure_right_handed_basis,
    ensure_right_handed_basis2, identity_matrix2, identity_matrix3,
    is_identity_matrix3, jacobi_eigen_decomposition, multiply_matrix2,
    multiply_matrix3, regularize_matrix2, regularize_matrix3,
    transpose_matrix2, transpose_matrix3,
)

__all__ = [
    'GamutStrengths',
    'GamutTransform',
    'compute_covariance_matrix',
    'compute_rotation_alignment_matrix',
    'compute_lightness_slope',
    'compute_chroma_alignment_matrix',
    'compute_gamut_transform',
    'identity_gamut_transform',
    'apply_gamut_transform_to_color',
]

logger = logging.getLogger(__name__)

ROTATION_RIDGE_EPSILON = 1e-6
ACTIVE_TOLERANCE = 1e-4
STD_EPSILON = 1e-6
LIGHTNESS_STD_EPSILON = 1e-4
MIN_LIGHTNESS_SLOPE = 0.05
MAX_LIGHTNESS_SLOPE = 4.0
CHROMA_VARIANCE_EPSILON = 1e-6
MIN_CHROMA_SCALE = 0.5
MAX_CHROMA_SCALE = 2.0


@dataclass
class GamutStrengths:
    """Slider values in [0, 1]; ``overall`` multiplies every other one."""
    overall: float = 1.0
    translation: float = 1.0
    rotation: float = 0.0
    axis: Tuple[float, float, float] = (1.0, 1.0, 1.0)


@dataclass
class GamutTransform:
    source_mean: np.ndarray
    desired_mean: np.ndarray
    scale: np.ndarray
    rotation_matrix: np.ndarray = field(default_factory=identity_matrix3)
    is_active: bool = False


def _clamp_unit(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return min(1.0, max(0.0, value))


def identity_gamut_transform() -> GamutTransform:
    return GamutTransform(
        source_mean=np.zeros(3),
        desired_mean=np.zeros(3),
        scale=np.ones(3),
        rotation_matrix=identity_matrix3(),
        is_active=False,
    )


# -------------------- Alignment helpers --------------------

def compute_covariance_matrix(samples: np.ndarray, mean: np.ndarray) -> Optional[np.ndarray]:
    """Population covariance of (N, 3) samples; None below three samples."""
    samples = np.asarray(samples, dtype=np.float64)
    if samples.ndim != 2 or samples.shape[0] < 3:
        return None
    centered = samples[:, :3] - np.asarray(mean, dtype=np.float64)[:3]
    return (centered.T @ centered) / samples.shape[0]


def compute_rotation_alignment_matrix(source_stats: AxisStats, palette_stats: AxisStats,
                                      ridge_epsilon: float = ROTATION_RIDGE_EPSILON) -> Optional[np.ndarray]:
    """
    Rotation taking the source covariance eigenbasis onto the palette's
    (``palette_basis @ source_basis.T``). None when either side has fewer
    than three samples.
    """
    source_cov = compute_covariance_matrix(source_stats.samples, source_stats.mean)
    palette_cov = compute_covariance_matrix(palette_stats.samples, palette_stats.mean)
    if source_cov is None or palette_cov is None:
        return None
    _, source_vectors = jacobi_eigen_decomposition(regularize_matrix3(source_cov, ridge_epsilon))
    _, palette_vectors = jacobi_eigen_decomposition(regularize_matrix3(palette_cov, ridge_epsilon))
    source_basis = ensure_right_handed_basis(source_vectors)
    palette_basis = ensure_right_handed_basis(palette_vectors)
    return multiply_matrix3(palette_basis, transpose_matrix3(source_basis))


def compute_lightness_slope(source_stats: AxisStats, palette_stats: AxisStats) -> float:
    """Ratio of lightness (axis 0) spreads, clamped to [0.05, 4]."""
    source_std = max(float(source_stats.std_dev[0]), LIGHTNESS_STD_EPSILON)
    target_std = max(float(palette_stats.std_dev[0]), LIGHTNESS_STD_EPSILON)
    return min(MAX_LIGHTNESS_SLOPE, max(MIN_LIGHTNESS_SLOPE, target_std / source_std))


def _chroma_covariance(stats: AxisStats) -> Optional[np.ndarray]:
    samples = np.asarray(stats.samples, dtype=np.float64)
    if samples.ndim != 2 or samples.shape[0] == 0:
        return None
    centered = samples[:, 1:3] - np.asarray(stats.mean, dtype=np.float64)[1:3]
    return (centered.T @ centered) / samples.shape[0]


def compute_chroma_alignment_matrix(source_stats: AxisStats, palette_stats: AxisStats,
                                    ridge_epsilon: float = ROTATION_RIDGE_EPSILON) -> np.ndarray:
    """
    2x2 map on the chroma plane (axes 1 and 2): rotate into the source
    eigenbasis, scale each principal axis by the spread ratio (clamped to
    [0.5, 2]), rotate out along the palette eigenbasis. Identity when either
    side has no samples.
    """
    source_cov = _chroma_covariance(source_stats)
    palette_cov = _chroma_covariance(palette_stats)
    if source_cov is None or palette_cov is None:
        return identity_matrix2()
    source_values, source_vectors = eigen_decomposition_2x2(regularize_matrix2(source_cov, ridge_epsilon))
    palette_values, palette_vectors = eigen_decomposition_2x2(regularize_matrix2(palette_cov, ridge_epsilon))
    source_basis = ensure_right_handed_basis2(source_vectors)
    palette_basis = ensure_right_handed_basis2(palette_vectors)
    scales = []
    for index in range(2):
        source_var = max(float(source_values[index]), CHROMA_VARIANCE_EPSILON)
        palette_var = max(float(palette_values[index]), CHROMA_VARIANCE_EPSILON)
        ratio = math.sqrt(palette_var / source_var)
        scales.append(min(MAX_CHROMA_SCALE, max(MIN_CHROMA_SCALE, ratio)))
    return multiply_matrix2(palette_basis, multiply_matrix2(np.diag(scales), transpose_matrix2(source_basis)))


# -------------------- Transform --------------------

def compute_gamut_transform(source_stats: Optional[AxisStats], palette_stats: Optional[AxisStats],
                            strengths: GamutStrengths) -> GamutTransform:
    """
    Build the source -> palette fit. Missing statistics give an inactive
    identity transform; too few samples for covariance drop the rotation only.
    """
    if source_stats is None or palette_stats is None:
        return identity_gamut_transform()

    overall = _clamp_unit(strengths.overall)
    translation = overall * _clamp_unit(strengths.translation)
    rotation = overall * _clamp_unit(strengths.rotation)

    source_mean = np.asarray(source_stats.mean, dtype=np.float64)
    palette_mean = np.asarray(palette_stats.mean, dtype=np.float64)
    desired_mean = source_mean + (palette_mean - source_mean) * translation

    scale = np.ones(3)
    for i in range(3):
        source_std = float(source_stats.std_dev[i])
        ratio = float(palette_stats.std_dev[i]) / source_std if source_std > STD_EPSILON else 1.0
        scale[i] = 1.0 + overall * _clamp_unit(strengths.axis[i]) * (ratio - 1.0)

    rotation_matrix = identity_matrix3()
    if rotation > 0.0:
        alignment = compute_rotation_alignment_matrix(source_stats, palette_stats)
        if alignment is None:
            logger.debug("Too few samples for rotation alignment; using translation and scale only")
        else:
            rotation_matrix = blend_rotation_matrix(alignment, rotation)

    is_active = bool(
        np.max(np.abs(desired_mean - source_mean)) > ACTIVE_TOLERANCE
        or np.max(np.abs(scale - 1.0)) > ACTIVE_TOLERANCE
        or not is_identity_matrix3(rotation_matrix, ACTIVE_TOLERANCE)
    )
    return GamutTransform(
        source_mean=source_mean,
        desired_mean=desired_mean,
        scale=scale,
        rotation_matrix=rotation_matrix,
        is_active=is_active,
    )


def apply_gamut_transform_to_color(color, transform: GamutTransform, mode) -> RGBColor:
    """Center on the source mean, rotate, scale, then re-center on the desired mean."""
    if not transform.is_active:
        return RGBColor(color[0], color[1], color[2])
    axes = np.asarray(extract_axis_triple(color, mode), dtype=np.float64)
    centered = axes - transform.source_mean
    rotated = transform.rotation_matrix @ centered
    adjusted = transform.desired_mean + rotated * transform.scale
    return apply_axis_triple_to_rgb(color, adjusted, mode)
