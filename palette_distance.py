"""
Palette reduction: nearest-color lookup in a configurable distance space,
per-pixel palette error / ambiguity metrics, and the "gravity" nudge that
pulls colors toward nearby palette entries before dithering.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, NamedTuple, Optional, Sequence

from color_spaces import (
    ColorMode, OklabVector, OklchVector, RGBColor, clamp01, hex_to_rgb255,
    resolve_color_mode, rgb255_to_vector, rgb_unit_to_255, vector_to_rgb,
)

__all__ = [
    'ReductionMode',
    'ReductionPaletteEntry',
    'PaletteDistanceSummary',
    'PaletteGravityParams',
    'PaletteModulationParams',
    'build_reduction_palette',
    'rgb_to_coords',
    'distance_sq',
    'find_nearest_palette_index',
    'quantize_to_palette',
    'apply_reduction',
    'summarize_palette_distances',
    'compute_palette_ambiguity',
    'compute_palette_modulation',
    'apply_palette_gravity_nudge',
    'clamp_rgb255',
]

OKLCH_CHROMA_NORMALIZER = 0.4
MIN_GRAVITY_SOFTNESS = 0.0025
MAX_GRAVITY_SOFTNESS = 0.5
MAX_AMBIGUITY_BOOST = 20.0
MIN_GRAVITY_WEIGHT = 1e-6
DEFAULT_BINARY_THRESHOLD = 127.0


class ReductionMode(Enum):
    NONE = "none"
    PALETTE = "palette"
    BINARY = "binary"


@dataclass(frozen=True)
class ReductionPaletteEntry:
    """A palette color with its coordinates precomputed for the distance space."""
    rgb: RGBColor
    coords: tuple
    oklab: OklabVector
    oklch: OklchVector


class PaletteDistanceSummary(NamedTuple):
    nearest_distance: float
    second_nearest_distance: float


@dataclass
class PaletteGravityParams:
    softness: float = 0.035
    lightness_strength: float = 0.35
    chroma_strength: float = 0.5
    ambiguity_boost: float = 0.0

    def normalized(self) -> 'PaletteGravityParams':
        softness = self.softness if math.isfinite(self.softness) else MIN_GRAVITY_SOFTNESS
        return PaletteGravityParams(
            softness=min(MAX_GRAVITY_SOFTNESS, max(MIN_GRAVITY_SOFTNESS, softness)),
            lightness_strength=clamp01(self.lightness_strength or 0.0),
            chroma_strength=clamp01(self.chroma_strength or 0.0),
            ambiguity_boost=max(0.0, min(MAX_AMBIGUITY_BOOST, self.ambiguity_boost or 0.0)),
        )


@dataclass
class PaletteModulationParams:
    """
    How palette error and ambiguity scale the effective dither strength.

    Each enabled term is ``bias + (1 - bias) * term ** exponent``; the two are
    combined as ``1 - (1 - error) * (1 - ambiguity)``. With both disabled the
    factor is 1 (strength unchanged).
    """
    error_enabled: bool = False
    error_normalizer: float = 0.25
    error_exponent: float = 1.0
    error_bias: float = 0.0
    ambiguity_enabled: bool = False
    ambiguity_exponent: float = 1.0
    ambiguity_bias: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.error_enabled or self.ambiguity_enabled


# -------------------- Coordinates --------------------

def _hue_to_cartesian(degrees: float):
    radians = math.radians(((degrees or 0.0) % 360.0 + 360.0) % 360.0)
    return math.cos(radians), math.sin(radians)


def rgb_to_coords(rgb, mode) -> tuple:
    """Project 8-bit RGB to the Euclidean distance tuple of ``mode``."""
    mode = resolve_color_mode(mode)
    vector = rgb255_to_vector(rgb, mode)
    if mode in (ColorMode.HSL, ColorMode.HSV, ColorMode.RYB):
        hx, hy = _hue_to_cartesian(vector[0])
        return (hx, hy, vector[1], vector[2])
    if mode == ColorMode.HWB:
        hx, hy = _hue_to_cartesian(vector.h)
        return (hx, hy, vector.w, vector.b)
    if mode == ColorMode.LAB:
        return (vector.l / 100.0, vector.a / 128.0, vector.b / 128.0)
    if mode == ColorMode.OKLCH:
        hx, hy = _hue_to_cartesian(vector.h)
        return (vector.L, vector.C / OKLCH_CHROMA_NORMALIZER, hx, hy)
    # rgb, cmy, cmyk, oklab, ycbcr and the luma spaces are used as-is
    return tuple(vector)


def distance_sq(a: Sequence[float], b: Sequence[float]) -> float:
    total = 0.0
    for ca, cb in zip(a, b):
        delta = ca - cb
        total += delta * delta
    return total


def build_reduction_palette(colors: Sequence, distance_space) -> List[ReductionPaletteEntry]:
    """
    Precompute palette entries from hex strings or 8-bit RGB triples. Order is
    preserved; it decides exact ties during quantization.
    """
    entries = []
    for color in colors:
        rgb = hex_to_rgb255(color) if isinstance(color, str) else color
        rgb = RGBColor(float(rgb[0]), float(rgb[1]), float(rgb[2]))
        entries.append(ReductionPaletteEntry(
            rgb=rgb,
            coords=rgb_to_coords(rgb, distance_space),
            oklab=rgb255_to_vector(rgb, ColorMode.OKLAB),
            oklch=rgb255_to_vector(rgb, ColorMode.OKLCH),
        ))
    return entries


# -------------------- Quantization --------------------

def find_nearest_palette_index(rgb, palette: Sequence[ReductionPaletteEntry], distance_space) -> int:
    """Index of the nearest entry, -1 for an empty palette. First minimum wins."""
    if not palette:
        return -1
    target = rgb_to_coords(rgb, distance_space)
    best_index = 0
    best_distance = math.inf
    for index, entry in enumerate(palette):
        d = distance_sq(target, entry.coords)
        if d < best_distance:
            best_distance = d
            best_index = index
    return best_index


def quantize_to_palette(rgb, palette: Sequence[ReductionPaletteEntry], distance_space) -> RGBColor:
    index = find_nearest_palette_index(rgb, palette, distance_space)
    if index < 0:
        return RGBColor(rgb[0], rgb[1], rgb[2])
    return palette[index].rgb


def _step_channel(c: float, threshold: float) -> float:
    return 0.0 if c < threshold else 255.0


def apply_reduction(rgb, mode, palette: Sequence[ReductionPaletteEntry], distance_space,
                    binary_threshold: float = DEFAULT_BINARY_THRESHOLD) -> RGBColor:
    """
    Reduce a color according to ``mode``. Palette mode with an empty palette
    and mode "none" pass the color through unchanged; binary mode steps each
    channel to 0 below ``binary_threshold`` and to 255 at or above it.
    """
    if not isinstance(mode, ReductionMode):
        try:
            mode = ReductionMode(mode)
        except ValueError:
            mode = ReductionMode.NONE
    if mode == ReductionMode.PALETTE and palette:
        return quantize_to_palette(rgb, palette, distance_space)
    if mode == ReductionMode.BINARY:
        return RGBColor(*(_step_channel(c, binary_threshold) for c in rgb[:3]))
    return RGBColor(rgb[0], rgb[1], rgb[2])


# -------------------- Error & ambiguity --------------------

def summarize_palette_distances(
    source_coords: Sequence[float],
    palette: Sequence[ReductionPaletteEntry],
    coord_selector: Optional[Callable[[ReductionPaletteEntry], Sequence[float]]] = None,
) -> Optional[PaletteDistanceSummary]:
    """Distances to the nearest and second-nearest entries; None for an empty palette."""
    if not palette:
        return None
    selector = coord_selector or (lambda entry: entry.coords)
    nearest = math.inf
    second = math.inf
    for entry in palette:
        d = distance_sq(source_coords, selector(entry))
        if d < nearest:
            second = nearest
            nearest = d
        elif d < second:
            second = d
    if not math.isfinite(nearest):
        return None
    return PaletteDistanceSummary(math.sqrt(max(nearest, 0.0)), math.sqrt(max(second, 0.0)))


def compute_palette_ambiguity(summary: Optional[PaletteDistanceSummary]) -> float:
    """1 when the two nearest entries are equidistant, falling to 0 as one dominates."""
    if summary is None:
        return 0.0
    second = summary.second_nearest_distance
    if not math.isfinite(second) or second <= 0.0:
        return 0.0
    return clamp01(1.0 - abs(second - summary.nearest_distance) / second)


def _shaped(term: float, exponent: float, bias: float) -> float:
    exponent = exponent if math.isfinite(exponent) and exponent > 0.0 else 1.0
    bias = clamp01(bias)
    return bias + (1.0 - bias) * (clamp01(term) ** exponent)


def compute_palette_modulation(summary: Optional[PaletteDistanceSummary],
                               params: PaletteModulationParams) -> float:
    """Dither-strength multiplier in [0, 1] for a pixel's palette distances."""
    if not params.is_active or summary is None:
        return 1.0
    error_term = 0.0
    ambiguity_term = 0.0
    if params.error_enabled:
        normalizer = params.error_normalizer if params.error_normalizer > 0 else 1.0
        error_term = _shaped(summary.nearest_distance / normalizer,
                             params.error_exponent, params.error_bias)
    if params.ambiguity_enabled:
        ambiguity_term = _shaped(compute_palette_ambiguity(summary),
                                 params.ambiguity_exponent, params.ambiguity_bias)
    return clamp01(1.0 - (1.0 - error_term) * (1.0 - ambiguity_term))


# -------------------- Gravity nudge --------------------

def _shortest_angle_degrees(a: float, b: float) -> float:
    delta = (a % 360.0) - (b % 360.0)
    if delta > 180.0:
        delta -= 360.0
    elif delta < -180.0:
        delta += 360.0
    return delta


def _oklch_distance_sq(a: OklchVector, b: OklchVector) -> float:
    delta_l = a.L - b.L
    delta_c = a.C - b.C
    avg_chroma = math.sqrt(max(0.0, a.C * b.C))
    delta_h = 2.0 * avg_chroma * math.sin(math.radians(_shortest_angle_degrees(a.h, b.h)) / 2.0)
    return delta_l * delta_l + delta_c * delta_c + delta_h * delta_h


def _oklab_tuple(v) -> tuple:
    return (v.L, v.a, v.b)


def _gravity_centroid(source: OklabVector, palette: Sequence[ReductionPaletteEntry],
                      softness: float) -> Optional[tuple]:
    chroma = math.hypot(source.a, source.b)
    hue = math.degrees(math.atan2(source.b, source.a)) % 360.0
    source_lch = OklchVector(source.L, chroma, hue)
    tau_sq = softness * softness
    total = 0.0
    acc_l = acc_a = acc_b = 0.0
    for entry in palette:
        weight = math.exp(-_oklch_distance_sq(source_lch, entry.oklch) / tau_sq)
        if weight < MIN_GRAVITY_WEIGHT:
            continue
        total += weight
        acc_l += entry.oklab.L * weight
        acc_a += entry.oklab.a * weight
        acc_b += entry.oklab.b * weight
    if total <= MIN_GRAVITY_WEIGHT:
        nearest = min(palette, key=lambda e: distance_sq(_oklab_tuple(source), _oklab_tuple(e.oklab)))
        return _oklab_tuple(nearest.oklab)
    return (acc_l / total, acc_a / total, acc_b / total)


def _emphasize(strength: float, emphasis: float) -> float:
    if strength >= 1.0:
        return 1.0
    if emphasis <= 0.0:
        return clamp01(strength)
    return clamp01(strength + (1.0 - strength) * emphasis)


def apply_palette_gravity_nudge(rgb, palette: Sequence[ReductionPaletteEntry],
                                params: PaletteGravityParams) -> RGBColor:
    """
    Pull ``rgb`` toward a Gaussian-weighted centroid of nearby palette colors
    in OKLab. Lightness and chroma move by separate strengths; ambiguity boost
    pushes pixels sitting between two entries harder.
    """
    if not palette:
        return RGBColor(rgb[0], rgb[1], rgb[2])
    resolved = params.normalized()
    if resolved.lightness_strength <= 0.0 and resolved.chroma_strength <= 0.0:
        return RGBColor(rgb[0], rgb[1], rgb[2])

    source = rgb255_to_vector(rgb, ColorMode.OKLAB)
    centroid = _gravity_centroid(source, palette, resolved.softness)

    emphasis = 0.0
    if resolved.ambiguity_boost > 0.0:
        summary = summarize_palette_distances(_oklab_tuple(source), palette,
                                              lambda entry: _oklab_tuple(entry.oklab))
        emphasis = clamp01(compute_palette_ambiguity(summary) * resolved.ambiguity_boost)
    lightness_t = _emphasize(resolved.lightness_strength, emphasis)
    chroma_t = _emphasize(resolved.chroma_strength, emphasis)

    adjusted = OklabVector(
        source.L + (centroid[0] - source.L) * lightness_t,
        source.a + (centroid[1] - source.a) * chroma_t,
        source.b + (centroid[2] - source.b) * chroma_t,
    )
    return clamp_rgb255(rgb_unit_to_255(vector_to_rgb(adjusted, ColorMode.OKLAB)))


def clamp_rgb255(rgb) -> RGBColor:
    """Round half up and clamp to displayable 0..255 channels; NaN becomes 0."""
    channels = []
    for c in rgb[:3]:
        c = float(c)
        if c != c:
            c = 0.0
        c = min(255.0, max(0.0, c))
        channels.append(float(math.floor(c + 0.5)))
    return RGBColor(*channels)
