"""
The per-pixel preview pipeline:

    gamma -> gamut fit -> palette nudge -> dither (jitter or error diffusion) -> reduction

One call renders every requested preview stage in a single scanline pass and
reports palette usage and perceptual similarity. Each call builds its own
gamut transform, threshold tile and error-diffusion context; nothing is kept
between renders.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np
from PIL import Image
from scipy import ndimage

from color_axes import compute_axis_stats, sample_buffer_colors
from color_spaces import ColorMode, RGBColor, resolve_color_mode, rgb255_array_to_luma
from dithering_lib import (
    DEFAULT_ERROR_DIFFUSION_KERNEL, DitherMode, DitherThresholdTile,
    advance_error_diffusion_row, apply_error_diffusion_to_pixel,
    build_procedural_dither_tile, get_dither_strategy,
)
from gamut_transform import (
    GamutStrengths, GamutTransform, apply_gamut_transform_to_color,
    compute_gamut_transform, identity_gamut_transform,
)
from palette_distance import (
    DEFAULT_BINARY_THRESHOLD, PaletteGravityParams, PaletteModulationParams,
    ReductionMode, apply_palette_gravity_nudge, apply_reduction,
    build_reduction_palette, clamp_rgb255, compute_palette_ambiguity,
    compute_palette_modulation, rgb_to_coords, summarize_palette_distances,
)
from perceptual_similarity import (
    DEFAULT_PERCEPTUAL_BLUR_RADIUS_PX, PerceptualSimilarityResult,
    compute_perceptual_similarity_artifacts,
)

__all__ = [
    'PreviewStage',
    'GamutFitSettings',
    'RenderSettings',
    'RenderResult',
    'apply_gamma',
    'apply_gamma_buffer',
    'compute_sharpness_mask',
    'heatmap_to_rgba',
    'render_dither_preview',
    'stage_to_image',
]

logger = logging.getLogger(__name__)

GAMMA_IDENTITY_TOLERANCE = 1e-3


class PreviewStage(Enum):
    SOURCE = "source"
    GAMUT = "gamut"
    DITHER = "dither"
    REDUCED = "reduced"
    PALETTE_ERROR = "palette-error"
    PALETTE_AMBIGUITY = "palette-ambiguity"
    PALETTE_MODULATION = "palette-modulation"
    PERCEPTUAL_DELTA = "perceptual-delta"


METRIC_STAGES = (PreviewStage.PALETTE_ERROR, PreviewStage.PALETTE_AMBIGUITY, PreviewStage.PALETTE_MODULATION)


@dataclass
class GamutFitSettings:
    enabled: bool = False
    color_space: ColorMode = ColorMode.OKLAB
    strengths: GamutStrengths = field(default_factory=GamutStrengths)
    max_sample_points: int = 4096


@dataclass
class RenderSettings:
    dither_mode: DitherMode = DitherMode.BAYER4
    dither_strength: float = 0.25
    dither_seed: int = 0
    error_diffusion_kernel: object = DEFAULT_ERROR_DIFFUSION_KERNEL
    voronoi_cells: int = 8
    voronoi_jitter: float = 0.85
    reduction_mode: ReductionMode = ReductionMode.PALETTE
    binary_threshold: float = DEFAULT_BINARY_THRESHOLD
    distance_space: ColorMode = ColorMode.OKLAB
    gamma: float = 1.0
    gamut: GamutFitSettings = field(default_factory=GamutFitSettings)
    palette_nudge: Optional[PaletteGravityParams] = None
    modulation: PaletteModulationParams = field(default_factory=PaletteModulationParams)
    dither_masking_strength: float = 0.0
    perceptual_blur_radius: float = DEFAULT_PERCEPTUAL_BLUR_RADIUS_PX
    perceptual_distance_space: ColorMode = ColorMode.OKLAB
    stages: Tuple[PreviewStage, ...] = (PreviewStage.SOURCE, PreviewStage.DITHER, PreviewStage.REDUCED)


@dataclass
class RenderResult:
    width: int
    height: int
    stages: Dict[PreviewStage, np.ndarray]
    palette_usage: np.ndarray
    perceptual: Optional[PerceptualSimilarityResult]
    gamut_transform: GamutTransform


# -------------------- Buffer helpers --------------------

def _gamma_is_identity(gamma: float) -> bool:
    return not math.isfinite(gamma) or gamma <= 0.0 or abs(gamma - 1.0) < GAMMA_IDENTITY_TOLERANCE


def apply_gamma(rgb, gamma: float) -> RGBColor:
    """Raise unit channels to ``gamma``; degenerate or ~1 gamma is the identity."""
    if _gamma_is_identity(gamma):
        return RGBColor(rgb[0], rgb[1], rgb[2])
    return RGBColor(*(255.0 * (min(255.0, max(0.0, c)) / 255.0) ** gamma for c in rgb[:3]))


def apply_gamma_buffer(buffer: np.ndarray, gamma: float) -> np.ndarray:
    data = np.asarray(buffer, dtype=np.float64)[..., :3]
    if _gamma_is_identity(gamma):
        return data.copy()
    return 255.0 * (np.clip(data, 0.0, 255.0) / 255.0) ** gamma


def compute_sharpness_mask(buffer: np.ndarray, strength: float) -> np.ndarray:
    """
    Per-pixel dither multiplier ``1 - strength * sharpness`` where sharpness is
    the Sobel gradient magnitude of luma normalized to its maximum. Flat areas
    keep full dither; edges lose up to ``strength`` of it.
    """
    height, width = buffer.shape[:2]
    if not strength > 0.0:
        return np.ones((height, width))
    luma = rgb255_array_to_luma(buffer) / 255.0
    gx = ndimage.sobel(luma, axis=1, mode='nearest')
    gy = ndimage.sobel(luma, axis=0, mode='nearest')
    magnitude = np.hypot(gx, gy)
    peak = float(magnitude.max()) if magnitude.size else 0.0
    if peak <= 0.0:
        return np.ones((height, width))
    return np.clip(1.0 - min(1.0, strength) * (magnitude / peak), 0.0, 1.0)


def heatmap_to_rgba(values: np.ndarray) -> np.ndarray:
    """Map [0, 1] to a black -> red -> yellow -> white ramp, as uint8 RGBA."""
    t = np.clip(np.nan_to_num(np.asarray(values, dtype=np.float64)), 0.0, 1.0) * 3.0
    rgba = np.empty(t.shape + (4,), dtype=np.uint8)
    rgba[..., 0] = np.round(np.clip(t, 0.0, 1.0) * 255.0)
    rgba[..., 1] = np.round(np.clip(t - 1.0, 0.0, 1.0) * 255.0)
    rgba[..., 2] = np.round(np.clip(t - 2.0, 0.0, 1.0) * 255.0)
    rgba[..., 3] = 255
    return rgba


def stage_to_image(stage: np.ndarray) -> Image.Image:
    return Image.fromarray(np.ascontiguousarray(stage, dtype=np.uint8), 'RGBA')


def _write(stage: Optional[np.ndarray], y: int, x: int, color):
    if stage is not None:
        stage[y, x, 0] = int(color[0])
        stage[y, x, 1] = int(color[1])
        stage[y, x, 2] = int(color[2])


# -------------------- Render --------------------

def _source_gamut_transform(buffer: np.ndarray, palette, settings: RenderSettings) -> GamutTransform:
    gamut = settings.gamut
    if not gamut.enabled or not palette:
        return identity_gamut_transform()
    space = resolve_color_mode(gamut.color_space)
    samples = sample_buffer_colors(buffer, gamut.max_sample_points)
    source_stats = compute_axis_stats(samples, space)
    palette_stats = compute_axis_stats([entry.rgb for entry in palette], space)
    transform = compute_gamut_transform(source_stats, palette_stats, gamut.strengths)
    logger.debug("Gamut transform in %s: active=%s scale=%s", space.value, transform.is_active,
                 np.round(transform.scale, 4).tolist())
    return transform


def render_dither_preview(source_rgb: np.ndarray, palette: Sequence, settings: RenderSettings,
                          tile: Optional[DitherThresholdTile] = None,
                          progress_callback: Optional[Callable[[float, str], None]] = None) -> RenderResult:
    """
    Render the preview stages for an (H, W, 3|4) source buffer of 0..255
    values against ``palette`` (hex strings or 8-bit RGB triples).

    Args:
        source_rgb: source pixels, never modified
        palette: reduction palette in user order
        settings: pipeline parameters
        tile: threshold tile for procedural modes; generated from the seed if omitted
        progress_callback: called as (fraction, message) after each row

    Returns:
        RenderResult with one uint8 RGBA buffer per requested stage
    """
    source = np.asarray(source_rgb, dtype=np.float64)
    height, width = source.shape[:2]
    distance_space = resolve_color_mode(settings.distance_space)
    dither_mode = DitherMode(settings.dither_mode)
    reduction_mode = ReductionMode(settings.reduction_mode)
    entries = build_reduction_palette(palette, distance_space)
    if reduction_mode == ReductionMode.PALETTE and not entries:
        logger.warning("Palette reduction requested with an empty palette; colors pass through")

    requested = set(PreviewStage(s) for s in settings.stages)
    stages: Dict[PreviewStage, np.ndarray] = {}
    for stage in (PreviewStage.SOURCE, PreviewStage.GAMUT, PreviewStage.DITHER, PreviewStage.REDUCED):
        if stage in requested:
            stages[stage] = np.zeros((height, width, 4), dtype=np.uint8)
            stages[stage][..., 3] = 255
    metrics = {stage: np.zeros((height, width)) for stage in METRIC_STAGES if stage in requested}

    adjusted = apply_gamma_buffer(source, settings.gamma)
    transform = _source_gamut_transform(adjusted, entries, settings)
    gamut_space = resolve_color_mode(settings.gamut.color_space)
    mask = compute_sharpness_mask(adjusted, settings.dither_masking_strength)

    if tile is None and dither_mode.is_procedural_tile:
        tile = build_procedural_dither_tile(dither_mode, settings.dither_seed,
                                            settings.voronoi_cells, settings.voronoi_jitter)
    strategy = get_dither_strategy(dither_mode, seed=settings.dither_seed, tile=tile,
                                   kernel=settings.error_diffusion_kernel,
                                   params={'cells_per_axis': settings.voronoi_cells,
                                           'jitter': settings.voronoi_jitter})
    context = strategy.create_context(width, height) if strategy.is_error_diffusion else None

    def reduce_color(color):
        return apply_reduction(color, reduction_mode, entries, distance_space, settings.binary_threshold)

    palette_lookup: Dict[Tuple[float, float, float], int] = {}
    for index, entry in enumerate(entries):
        palette_lookup.setdefault(tuple(clamp_rgb255(entry.rgb)), index)
    usage = np.zeros(len(entries), dtype=np.int64)

    reduced_buffer = np.zeros((height, width, 3))
    needs_summary = bool(entries) and (settings.modulation.is_active or bool(metrics))
    base_strength = settings.dither_strength if math.isfinite(settings.dither_strength) else 0.0

    logger.debug("Rendering %dx%d with %s, %d palette colors", width, height, dither_mode.value, len(entries))
    for y in range(height):
        for x in range(width):
            color = RGBColor(*adjusted[y, x])
            if transform.is_active:
                color = apply_gamut_transform_to_color(color, transform, gamut_space)
            gamut_color = color
            if settings.palette_nudge is not None and entries:
                color = apply_palette_gravity_nudge(color, entries, settings.palette_nudge)

            modulation = 1.0
            if needs_summary:
                summary = summarize_palette_distances(rgb_to_coords(color, distance_space), entries)
                modulation = compute_palette_modulation(summary, settings.modulation)
                if PreviewStage.PALETTE_ERROR in metrics:
                    normalizer = settings.modulation.error_normalizer or 1.0
                    metrics[PreviewStage.PALETTE_ERROR][y, x] = summary.nearest_distance / normalizer
                if PreviewStage.PALETTE_AMBIGUITY in metrics:
                    metrics[PreviewStage.PALETTE_AMBIGUITY][y, x] = compute_palette_ambiguity(summary)
                if PreviewStage.PALETTE_MODULATION in metrics:
                    metrics[PreviewStage.PALETTE_MODULATION][y, x] = modulation
            strength = base_strength * modulation * mask[y, x]

            if context is not None:
                result = apply_error_diffusion_to_pixel(color, x, y, context, strength, reduce_color)
                dithered = clamp_rgb255(result.dithered_color)
                reduced = clamp_rgb255(result.quantized_color)
            else:
                jittered = strategy.jitter(color, x, y, strength)
                dithered = clamp_rgb255(jittered)
                reduced = clamp_rgb255(reduce_color(jittered))

            _write(stages.get(PreviewStage.SOURCE), y, x, clamp_rgb255(source[y, x]))
            _write(stages.get(PreviewStage.GAMUT), y, x, clamp_rgb255(gamut_color))
            _write(stages.get(PreviewStage.DITHER), y, x, dithered)
            _write(stages.get(PreviewStage.REDUCED), y, x, reduced)
            reduced_buffer[y, x] = reduced

            index = palette_lookup.get(tuple(reduced))
            if index is not None:
                usage[index] += 1

        if context is not None:
            advance_error_diffusion_row(context)
        if progress_callback is not None:
            progress_callback((y + 1) / height, f"Rendering row {y + 1}/{height}")

    for stage, values in metrics.items():
        stages[stage] = heatmap_to_rgba(values)

    artifacts = compute_perceptual_similarity_artifacts(
        source[..., :3], reduced_buffer, settings.perceptual_blur_radius, settings.perceptual_distance_space)
    if PreviewStage.PERCEPTUAL_DELTA in requested and artifacts.delta_map is not None:
        peak = artifacts.result.max_delta
        stages[PreviewStage.PERCEPTUAL_DELTA] = heatmap_to_rgba(
            artifacts.delta_map / peak if peak > 0 else artifacts.delta_map)

    return RenderResult(
        width=width,
        height=height,
        stages=stages,
        palette_usage=usage,
        perceptual=artifacts.result,
        gamut_transform=transform,
    )
