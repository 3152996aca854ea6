"""
Projection of any color space onto a normalized 3-axis triple, and the
summary statistics (mean, std-dev, samples) computed over those triples.

Hue axes are wrapped to [0, 1) and treated as linear for statistics; there is
no circular-mean correction.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from color_spaces import (
    ColorMode, RGBColor, clamp01, resolve_color_mode, rgb255_to_vector,
    rgb_unit_to_255, vector_to_rgb,
)

__all__ = [
    'AxisTriple',
    'AxisStats',
    'OKLCH_CHROMA_NORMALIZER',
    'extract_axis_triple',
    'apply_axis_triple_to_rgb',
    'compute_axis_stats',
    'sample_buffer_colors',
]

AxisTriple = Tuple[float, float, float]

OKLCH_CHROMA_NORMALIZER = 0.4


@dataclass
class AxisStats:
    """Per-axis mean and population std-dev, plus the raw (N, 3) samples."""
    mean: np.ndarray
    std_dev: np.ndarray
    samples: np.ndarray

    @property
    def count(self) -> int:
        return int(self.samples.shape[0])


def _wrap_unit(value: float) -> float:
    wrapped = value % 1.0
    return 0.0 if wrapped >= 1.0 else wrapped


def extract_axis_triple(rgb255, mode) -> AxisTriple:
    """Project an 8-bit RGB color onto the normalized axes of ``mode``."""
    mode = resolve_color_mode(mode)
    vector = rgb255_to_vector(rgb255, mode)
    if mode in (ColorMode.HSL, ColorMode.HSV, ColorMode.HWB, ColorMode.RYB):
        return (_wrap_unit(vector[0] / 360.0), clamp01(vector[1]), clamp01(vector[2]))
    if mode in (ColorMode.CMY, ColorMode.CMYK):
        return (vector[0], vector[1], vector[2])
    if mode in (ColorMode.LUMA_RGB, ColorMode.LUMA_LAB, ColorMode.LUMA_OKLAB):
        return (vector[0], 0.0, 0.0)
    if mode == ColorMode.LAB:
        return (vector.l / 100.0, (vector.a + 128.0) / 256.0, (vector.b + 128.0) / 256.0)
    if mode == ColorMode.OKLCH:
        return (vector.L, vector.C / OKLCH_CHROMA_NORMALIZER, _wrap_unit(vector.h / 360.0))
    # rgb, oklab and ycbcr already sit on usable axes
    return (vector[0], vector[1], vector[2])


def apply_axis_triple_to_rgb(rgb255, axes: Sequence[float], mode) -> RGBColor:
    """
    Inverse of :func:`extract_axis_triple`. Components not carried by the
    triple (CMYK key) are taken from ``rgb255``. Returns 0..255 RGB.
    """
    mode = resolve_color_mode(mode)
    a0, a1, a2 = (float(v) for v in axes[:3])
    base = rgb255_to_vector(rgb255, mode)

    if mode in (ColorMode.HSL, ColorMode.HSV, ColorMode.HWB, ColorMode.RYB):
        vector = base._replace(**{base._fields[0]: _wrap_unit(a0) * 360.0,
                                  base._fields[1]: clamp01(a1),
                                  base._fields[2]: clamp01(a2)})
    elif mode == ColorMode.CMY:
        vector = base._replace(c=clamp01(a0), m=clamp01(a1), y=clamp01(a2))
    elif mode == ColorMode.CMYK:
        vector = base._replace(c=clamp01(a0), m=clamp01(a1), y=clamp01(a2))
    elif mode in (ColorMode.LUMA_RGB, ColorMode.LUMA_LAB, ColorMode.LUMA_OKLAB):
        vector = base._replace(l=clamp01(a0))
    elif mode == ColorMode.LAB:
        vector = base._replace(l=min(100.0, max(0.0, a0 * 100.0)),
                               a=min(128.0, max(-128.0, a1 * 256.0 - 128.0)),
                               b=min(128.0, max(-128.0, a2 * 256.0 - 128.0)))
    elif mode == ColorMode.OKLAB:
        vector = base._replace(L=clamp01(a0),
                               a=min(0.5, max(-0.5, a1)),
                               b=min(0.5, max(-0.5, a2)))
    elif mode == ColorMode.OKLCH:
        vector = base._replace(L=clamp01(a0),
                               C=max(0.0, a1 * OKLCH_CHROMA_NORMALIZER),
                               h=_wrap_unit(a2) * 360.0)
    elif mode == ColorMode.YCBCR:
        vector = base._replace(y=a0, cb=a1, cr=a2)
    else:
        vector = base._replace(r=clamp01(a0), g=clamp01(a1), b=clamp01(a2))

    return rgb_unit_to_255(vector_to_rgb(vector, mode))


def compute_axis_stats(colors: Iterable, mode) -> Optional[AxisStats]:
    """
    Mean and population std-dev of the axis triples of ``colors`` (8-bit RGB).
    Returns None when there are no colors.
    """
    triples = [extract_axis_triple(c, mode) for c in colors]
    if not triples:
        return None
    samples = np.asarray(triples, dtype=np.float64)
    mean = samples.mean(axis=0)
    std_dev = np.sqrt(((samples - mean) ** 2).mean(axis=0))
    return AxisStats(mean=mean, std_dev=std_dev, samples=samples)


def sample_buffer_colors(buffer: np.ndarray, max_points: int = 4096) -> np.ndarray:
    """
    Take an evenly strided subset of the pixels of an (H, W, 3|4) buffer.

    Returns an (N, 3) float array with N <= max(1, max_points).
    """
    flat = np.asarray(buffer, dtype=np.float64).reshape(-1, buffer.shape[-1])[:, :3]
    total = flat.shape[0]
    if total == 0:
        return flat
    step = max(1, int(math.floor(total / max(1, max_points))))
    return flat[::step][:max(1, max_points)]
