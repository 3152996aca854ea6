"""
Dithering strategies for the preview pipeline: ordered Bayer thresholds,
seeded per-pixel noise, procedural threshold tiles (blue noise, Voronoi
clusters) and kernel-based error diffusion.

Every strategy works on one pixel at a time in 0..255 RGB and takes the
per-pixel strength as a plain scalar; the caller decides how strength varies.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

import numpy as np

from color_spaces import RGBColor
from palette_distance import clamp_rgb255

__all__ = [
    'DitherMode',
    'ErrorDiffusionKernelId',
    'KernelOffset',
    'ErrorDiffusionKernel',
    'ERROR_DIFFUSION_KERNELS',
    'DEFAULT_ERROR_DIFFUSION_KERNEL',
    'DitherThresholdTile',
    'ErrorDiffusionContext',
    'ErrorDiffusionResult',
    'BaseDitherStrategy',
    'NoDitherStrategy',
    'OrderedDitherStrategy',
    'RandomNoiseDitherStrategy',
    'ThresholdTileDitherStrategy',
    'BlueNoiseDitherStrategy',
    'VoronoiClusterDitherStrategy',
    'ErrorDiffusionDitherStrategy',
    'build_bayer_matrix',
    'normalize_seed',
    'pseudo_random_unit',
    'generate_blue_noise_tile',
    'generate_voronoi_cluster_tile',
    'resolve_voronoi_cells',
    'build_procedural_dither_tile',
    'sample_dither_tile',
    'get_error_diffusion_kernel',
    'get_dither_strategy',
    'get_mode_parameters',
    'apply_dither_jitter',
    'create_error_diffusion_context',
    'apply_error_diffusion_to_pixel',
    'advance_error_diffusion_row',
]

logger = logging.getLogger(__name__)


# -------------------- Enumerations --------------------

class DitherMode(Enum):
    NONE = "none"
    BAYER2 = "bayer2"
    BAYER4 = "bayer4"
    BAYER8 = "bayer8"
    BAYER16 = "bayer16"
    BW_NOISE = "bw-noise"
    GRAYSCALE_NOISE = "grayscale-noise"
    RGB_NOISE = "rgb-noise"
    COLOR_NOISE = "color-noise"
    BLUE_NOISE = "blue-noise"
    VORONOI_CLUSTER = "voronoi-cluster"
    ERROR_DIFFUSION = "error-diffusion-kernel"

    @property
    def label(self) -> str:
        return DITHER_LABELS[self]

    @property
    def description(self) -> str:
        return DITHER_DESCRIPTIONS[self]

    @property
    def is_error_diffusion(self) -> bool:
        return self == DitherMode.ERROR_DIFFUSION

    @property
    def is_procedural_tile(self) -> bool:
        return self in (DitherMode.BLUE_NOISE, DitherMode.VORONOI_CLUSTER)

    @property
    def uses_seed(self) -> bool:
        return self in RANDOM_VARIANT_OFFSETS or self.is_procedural_tile


class ErrorDiffusionKernelId(Enum):
    FLOYD_STEINBERG = "floyd-steinberg"
    JARVIS_JUDICE_NINKE = "jarvis-judice-ninke"
    STUCKI = "stucki"
    ATKINSON = "atkinson"
    BURKES = "burkes"
    SIERRA = "sierra"
    SIERRA_LITE = "sierra-lite"


DITHER_LABELS = {
    DitherMode.NONE: "None",
    DitherMode.BAYER2: "2×2 Bayer",
    DitherMode.BAYER4: "4×4 Bayer",
    DitherMode.BAYER8: "8×8 Bayer",
    DitherMode.BAYER16: "16×16 Bayer",
    DitherMode.BW_NOISE: "Random B/W noise",
    DitherMode.GRAYSCALE_NOISE: "Random grayscale noise",
    DitherMode.RGB_NOISE: "Random RGB primary noise",
    DitherMode.COLOR_NOISE: "Random color noise",
    DitherMode.BLUE_NOISE: "Blue-noise tile",
    DitherMode.VORONOI_CLUSTER: "Voronoi cluster",
    DitherMode.ERROR_DIFFUSION: "Error diffusion (kernel)",
}

DITHER_DESCRIPTIONS = {
    DitherMode.NONE: "No jitter",
    DitherMode.BAYER2: "2×2 ordered thresholds",
    DitherMode.BAYER4: "4×4 ordered thresholds",
    DitherMode.BAYER8: "8×8 ordered thresholds",
    DitherMode.BAYER16: "16×16 ordered thresholds",
    DitherMode.BW_NOISE: "Binary noise per pixel",
    DitherMode.GRAYSCALE_NOISE: "Monochrome random jitter",
    DitherMode.RGB_NOISE: "Channel-wise binary noise",
    DitherMode.COLOR_NOISE: "Channel-wise random jitter",
    DitherMode.BLUE_NOISE: "Tiled blue-noise thresholds",
    DitherMode.VORONOI_CLUSTER: "Clustered Voronoi thresholds",
    DitherMode.ERROR_DIFFUSION: "Kernel-based error diffusion",
}

RANDOM_VARIANT_OFFSETS = {
    DitherMode.BW_NOISE: 101,
    DitherMode.GRAYSCALE_NOISE: 211,
    DitherMode.RGB_NOISE: 307,
    DitherMode.COLOR_NOISE: 401,
}

BAYER_SIZES = {
    DitherMode.BAYER2: 2,
    DitherMode.BAYER4: 4,
    DitherMode.BAYER8: 8,
    DitherMode.BAYER16: 16,
}

BLUE_NOISE_TILE_SIZE = 64
BLUE_NOISE_VARIANT = 523
VORONOI_TILE_SIZE = 64
DEFAULT_VORONOI_CELLS = 8
DEFAULT_VORONOI_JITTER = 0.85
VORONOI_X_VARIANT = 811
VORONOI_Y_VARIANT = 923

UINT32_MASK = 0xFFFFFFFF


# -------------------- Bayer matrices --------------------

def build_bayer_matrix(n: int) -> np.ndarray:
    """
    Index matrix of size n x n (n a power of two >= 2), built by tiling four
    copies of the n/2 matrix scaled by 4 with offsets 0, 2, 3, 1.
    """
    if n < 2 or n & (n - 1):
        raise ValueError(f"Bayer matrix size must be a power of two >= 2, got {n}")
    matrix = np.array([[0, 2], [3, 1]], dtype=np.int64)
    while matrix.shape[0] < n:
        scaled = matrix * 4
        matrix = np.block([
            [scaled, scaled + 2],
            [scaled + 3, scaled + 1],
        ])
    return matrix


def _bayer_thresholds(n: int) -> np.ndarray:
    thresholds = (build_bayer_matrix(n) + 0.5) / float(n * n) - 0.5
    thresholds.setflags(write=False)
    return thresholds


# constant threshold tables keyed by matrix size, centered on zero
BAYER_THRESHOLDS = {size: _bayer_thresholds(size) for size in BAYER_SIZES.values()}


# -------------------- Seeded noise --------------------

def _imul(a: int, b: int) -> int:
    return (a * b) & UINT32_MASK


def normalize_seed(seed) -> int:
    """Non-finite seeds become 0; everything else is |floor(seed)| mod 2^32."""
    try:
        value = float(seed)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value):
        return 0
    return abs(math.floor(value)) & UINT32_MASK


def pseudo_random_unit(seed, x: int, y: int, variant: int) -> float:
    """Deterministic hash of (seed, x, y, variant) mapped to [0, 1]."""
    h = normalize_seed(seed) ^ _imul((variant + 0x7F4A7C15) & UINT32_MASK, 0x45D9F3B)
    h ^= _imul((x + 0x27D4EB2F) & UINT32_MASK, 0x9E3779B9)
    h = _imul(h ^ (h >> 15), 0x85EBCA6B)
    h ^= _imul((y + 0x165667B1) & UINT32_MASK, 0xC2B2AE35)
    h ^= h >> 13
    h = _imul(h, 1274126177)
    h ^= h >> 16
    return (h & UINT32_MASK) / UINT32_MASK


# -------------------- Procedural threshold tiles --------------------

@dataclass(frozen=True)
class DitherThresholdTile:
    """Square table of thresholds in [-0.5, 0.5], sampled with wrap-around."""
    size: int
    data: np.ndarray


def _rank_thresholds(scores: np.ndarray) -> np.ndarray:
    flat = scores.ravel()
    total = flat.size
    thresholds = np.zeros(total, dtype=np.float32)
    if total > 1:
        order = np.argsort(flat, kind='stable')
        thresholds[order] = np.arange(total, dtype=np.float64) / (total - 1) - 0.5
    thresholds = thresholds.reshape(scores.shape)
    thresholds.setflags(write=False)
    return thresholds


def generate_blue_noise_tile(size: int = BLUE_NOISE_TILE_SIZE, seed=0) -> DitherThresholdTile:
    """
    Rank a white-noise tile by a high-frequency score (value minus the mean of
    its 8 toroidal neighbours, plus a small bias toward the value itself) and
    spread the ranks evenly over [-0.5, 0.5].
    """
    base = np.empty((size, size), dtype=np.float32)
    for y in range(size):
        for x in range(size):
            base[y, x] = pseudo_random_unit(seed, x, y, BLUE_NOISE_VARIANT)

    values = base.astype(np.float64)
    neighbour_sum = np.zeros_like(values)
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            if dx or dy:
                neighbour_sum += np.roll(np.roll(values, -dy, axis=0), -dx, axis=1)
    scores = (values - neighbour_sum / 8.0) + (values - 0.5) * 0.25
    return DitherThresholdTile(size=size, data=_rank_thresholds(scores.astype(np.float32)))


def resolve_voronoi_cells(requested: Optional[int] = None, size: int = VORONOI_TILE_SIZE) -> int:
    """Clamp the requested cell count to [1, size] and move it to the nearest divisor of size."""
    try:
        candidate = int(math.floor(requested if requested is not None else DEFAULT_VORONOI_CELLS))
    except (TypeError, ValueError, OverflowError):
        candidate = DEFAULT_VORONOI_CELLS
    candidate = max(1, min(size, candidate))
    if size % candidate == 0:
        return candidate
    for delta in range(1, size):
        lower = candidate - delta
        if lower >= 1 and size % lower == 0:
            return lower
        upper = candidate + delta
        if upper <= size and size % upper == 0:
            return upper
    return DEFAULT_VORONOI_CELLS


def generate_voronoi_cluster_tile(size: int = VORONOI_TILE_SIZE,
                                  cells_per_axis: int = DEFAULT_VORONOI_CELLS,
                                  jitter: float = DEFAULT_VORONOI_JITTER,
                                  seed=0) -> DitherThresholdTile:
    """
    Thresholds that grow outward from one jittered centroid per grid cell, so
    dots form round clusters. Distances are measured toroidally.

    Raises:
        ValueError: if ``size`` is not divisible by ``cells_per_axis``
    """
    if cells_per_axis <= 0 or size % cells_per_axis:
        raise ValueError(f"Voronoi tile size {size} must be divisible by {cells_per_axis}")
    cell_size = size // cells_per_axis

    centroid_x = np.empty((cells_per_axis, cells_per_axis))
    centroid_y = np.empty((cells_per_axis, cells_per_axis))
    for cy in range(cells_per_axis):
        for cx in range(cells_per_axis):
            jx = (pseudo_random_unit(seed, cx, cy, VORONOI_X_VARIANT) - 0.5) * cell_size * jitter
            jy = (pseudo_random_unit(seed, cx, cy, VORONOI_Y_VARIANT) - 0.5) * cell_size * jitter
            centroid_x[cy, cx] = (cx * cell_size + cell_size / 2.0 + jx) % size
            centroid_y[cy, cx] = (cy * cell_size + cell_size / 2.0 + jy) % size

    ys, xs = np.mgrid[0:size, 0:size]
    px, py = xs + 0.5, ys + 0.5
    base_cx, base_cy = xs // cell_size, ys // cell_size
    min_dist = np.full((size, size), np.inf)
    for oy in (-1, 0, 1):
        for ox in (-1, 0, 1):
            ncx, ncy = base_cx + ox, base_cy + oy
            wcx, wcy = np.mod(ncx, cells_per_axis), np.mod(ncy, cells_per_axis)
            cx_pos = centroid_x[wcy, wcx] + (ncx - wcx) / cells_per_axis * size
            cy_pos = centroid_y[wcy, wcx] + (ncy - wcy) / cells_per_axis * size
            min_dist = np.minimum(min_dist, (px - cx_pos) ** 2 + (py - cy_pos) ** 2)

    return DitherThresholdTile(size=size, data=_rank_thresholds(min_dist.astype(np.float32)))


def build_procedural_dither_tile(mode, seed=0, voronoi_cells: Optional[int] = None,
                                 voronoi_jitter: Optional[float] = None) -> Optional[DitherThresholdTile]:
    """Tile for a procedural mode, None for every other mode."""
    mode = DitherMode(mode)
    if mode == DitherMode.BLUE_NOISE:
        return generate_blue_noise_tile(BLUE_NOISE_TILE_SIZE, seed)
    if mode == DitherMode.VORONOI_CLUSTER:
        jitter = DEFAULT_VORONOI_JITTER if voronoi_jitter is None else voronoi_jitter
        jitter = min(1.0, max(0.0, jitter)) if math.isfinite(jitter) else 0.0
        return generate_voronoi_cluster_tile(VORONOI_TILE_SIZE, resolve_voronoi_cells(voronoi_cells),
                                             jitter, seed)
    return None


def sample_dither_tile(tile: DitherThresholdTile, x: int, y: int) -> float:
    if tile is None or tile.size <= 0 or tile.data.size == 0:
        return 0.0
    return float(tile.data[y % tile.size, x % tile.size])


# -------------------- Error diffusion kernels --------------------

class KernelOffset(NamedTuple):
    dx: int
    dy: int
    weight: float


@dataclass(frozen=True)
class ErrorDiffusionKernel:
    id: ErrorDiffusionKernelId
    label: str
    divisor: float
    offsets: Tuple[KernelOffset, ...]

    @property
    def max_dy(self) -> int:
        return max([0] + [offset.dy for offset in self.offsets])


def _kernel(kernel_id, label, divisor, offsets) -> ErrorDiffusionKernel:
    return ErrorDiffusionKernel(kernel_id, label, divisor, tuple(KernelOffset(*o) for o in offsets))


ERROR_DIFFUSION_KERNELS: Dict[ErrorDiffusionKernelId, ErrorDiffusionKernel] = {k.id: k for k in (
    _kernel(ErrorDiffusionKernelId.FLOYD_STEINBERG, "Floyd–Steinberg", 16, [
        (1, 0, 7), (-1, 1, 3), (0, 1, 5), (1, 1, 1),
    ]),
    _kernel(ErrorDiffusionKernelId.JARVIS_JUDICE_NINKE, "Jarvis–Judice–Ninke", 48, [
        (1, 0, 7), (2, 0, 5),
        (-2, 1, 3), (-1, 1, 5), (0, 1, 7), (1, 1, 5), (2, 1, 3),
        (-2, 2, 1), (-1, 2, 3), (0, 2, 5), (1, 2, 3), (2, 2, 1),
    ]),
    _kernel(ErrorDiffusionKernelId.STUCKI, "Stucki", 42, [
        (1, 0, 8), (2, 0, 4),
        (-2, 1, 2), (-1, 1, 4), (0, 1, 8), (1, 1, 4), (2, 1, 2),
        (-2, 2, 1), (-1, 2, 2), (0, 2, 4), (1, 2, 2), (2, 2, 1),
    ]),
    # Atkinson deliberately spreads only 6/8 of the error
    _kernel(ErrorDiffusionKernelId.ATKINSON, "Atkinson", 8, [
        (1, 0, 1), (2, 0, 1),
        (-1, 1, 1), (0, 1, 1), (1, 1, 1),
        (0, 2, 1),
    ]),
    _kernel(ErrorDiffusionKernelId.BURKES, "Burkes", 32, [
        (1, 0, 8), (2, 0, 4),
        (-2, 1, 2), (-1, 1, 4), (0, 1, 8), (1, 1, 4), (2, 1, 2),
    ]),
    _kernel(ErrorDiffusionKernelId.SIERRA, "Sierra", 32, [
        (1, 0, 5), (2, 0, 3),
        (-2, 1, 2), (-1, 1, 4), (0, 1, 5), (1, 1, 4), (2, 1, 2),
        (-1, 2, 2), (0, 2, 3), (1, 2, 2),
    ]),
    _kernel(ErrorDiffusionKernelId.SIERRA_LITE, "Sierra Lite", 4, [
        (1, 0, 2), (-1, 1, 1), (0, 1, 1),
    ]),
)}

DEFAULT_ERROR_DIFFUSION_KERNEL = ErrorDiffusionKernelId.FLOYD_STEINBERG


def get_error_diffusion_kernel(kernel_id) -> ErrorDiffusionKernel:
    """Kernel by id or id string; unknown ids fall back to Floyd–Steinberg."""
    try:
        return ERROR_DIFFUSION_KERNELS[ErrorDiffusionKernelId(kernel_id)]
    except ValueError:
        return ERROR_DIFFUSION_KERNELS[DEFAULT_ERROR_DIFFUSION_KERNEL]


class ErrorDiffusionContext:
    """
    Per-render error accumulator. Holds ``max_dy + 1`` rows of width*3
    float32 errors in a ring; ``head`` is the row being processed.
    """

    def __init__(self, width: int, height: int, kernel: ErrorDiffusionKernel):
        self.width = width
        self.height = height
        self.kernel = kernel
        self.row_buffers = np.zeros((kernel.max_dy + 1, max(0, width) * 3), dtype=np.float32)
        self.head = 0
        self.current_row = 0

    def row(self, dy: int) -> np.ndarray:
        return self.row_buffers[(self.head + dy) % self.row_buffers.shape[0]]

    def advance_row(self):
        """Recycle the finished row to the back of the ring, cleared."""
        self.row_buffers[self.head].fill(0.0)
        self.head = (self.head + 1) % self.row_buffers.shape[0]
        self.current_row += 1


class ErrorDiffusionResult(NamedTuple):
    dithered_color: RGBColor
    quantized_color: RGBColor


def create_error_diffusion_context(width: int, height: int, kernel) -> ErrorDiffusionContext:
    if not isinstance(kernel, ErrorDiffusionKernel):
        kernel = get_error_diffusion_kernel(kernel)
    return ErrorDiffusionContext(width, height, kernel)


def apply_error_diffusion_to_pixel(rgb, x: int, y: int, context: ErrorDiffusionContext, strength: float,
                                   reduce_color: Callable[[RGBColor], RGBColor]) -> ErrorDiffusionResult:
    """
    Add the error accumulated for (x, y), round and clamp to 0..255, reduce
    the result with ``reduce_color`` and push ``(dithered - quantized) *
    strength`` to the kernel's in-bounds neighbours. The quantized color is
    clamped as well.
    Pixels must be visited in scanline order.
    """
    current = context.row(0)
    base = x * 3
    dithered = clamp_rgb255((
        rgb[0] + float(current[base]),
        rgb[1] + float(current[base + 1]),
        rgb[2] + float(current[base + 2]),
    ))
    quantized = clamp_rgb255(reduce_color(dithered))

    if strength > 0.0:
        scale = strength / context.kernel.divisor
        residual = (
            (dithered[0] - quantized[0]) * scale,
            (dithered[1] - quantized[1]) * scale,
            (dithered[2] - quantized[2]) * scale,
        )
        for offset in context.kernel.offsets:
            tx = x + offset.dx
            ty = y + offset.dy
            if tx < 0 or tx >= context.width or ty >= context.height:
                continue
            target = context.row(offset.dy)
            index = tx * 3
            target[index] += residual[0] * offset.weight
            target[index + 1] += residual[1] * offset.weight
            target[index + 2] += residual[2] * offset.weight

    return ErrorDiffusionResult(dithered, quantized)


def advance_error_diffusion_row(context: ErrorDiffusionContext):
    context.advance_row()


# -------------------- Strategies --------------------

def _add_rgb(rgb, offset: float) -> RGBColor:
    return RGBColor(rgb[0] + offset, rgb[1] + offset, rgb[2] + offset)


class BaseDitherStrategy:
    """
    Base class for dithering strategies.
    Each strategy implements .jitter(rgb, x, y, strength) returning the
    perturbed 0..255 color for pixel (x, y).
    """
    is_error_diffusion = False

    def jitter(self, rgb, x: int, y: int, strength: float) -> RGBColor:
        raise NotImplementedError


class NoDitherStrategy(BaseDitherStrategy):
    def jitter(self, rgb, x, y, strength):
        return RGBColor(rgb[0], rgb[1], rgb[2])


class OrderedDitherStrategy(BaseDitherStrategy):
    """
    Bayer ordered dithering. The same threshold is added to all three
    channels, so the jitter is monochrome.
    """
    def __init__(self, size: int = 4):
        self.size = size
        self.thresholds = BAYER_THRESHOLDS.get(size)
        if self.thresholds is None:
            self.thresholds = _bayer_thresholds(size)

    def jitter(self, rgb, x, y, strength):
        threshold = self.thresholds[y % self.size, x % self.size]
        return _add_rgb(rgb, float(threshold) * strength * 255.0)


class RandomNoiseDitherStrategy(BaseDitherStrategy):
    """
    Seeded per-pixel noise. B/W and RGB variants use binary +-0.5 jitter;
    grayscale and color use the continuous hash value minus 0.5. RGB and color
    variants draw an independent value per channel.
    """

    @staticmethod
    def get_parameter_info():
        return {
            'seed': {
                'type': 'int',
                'default': 0,
                'min': 0,
                'max': 2 ** 32 - 1,
                'label': 'Random Seed',
                'description': 'Same seed gives the same noise at every pixel'
            }
        }

    def __init__(self, mode: DitherMode, seed=0):
        if mode not in RANDOM_VARIANT_OFFSETS:
            raise ValueError(f"Not a random-noise mode: {mode}")
        self.mode = mode
        self.seed = seed
        self.variant = RANDOM_VARIANT_OFFSETS[mode]

    def _binary(self) -> bool:
        return self.mode in (DitherMode.BW_NOISE, DitherMode.RGB_NOISE)

    def _noise(self, x, y, variant) -> float:
        rand = pseudo_random_unit(self.seed, x, y, variant)
        if self._binary():
            return 0.5 if rand > 0.5 else -0.5
        return rand - 0.5

    def jitter(self, rgb, x, y, strength):
        magnitude = strength * 255.0
        if self.mode in (DitherMode.BW_NOISE, DitherMode.GRAYSCALE_NOISE):
            return _add_rgb(rgb, self._noise(x, y, self.variant) * magnitude)
        return RGBColor(
            rgb[0] + self._noise(x, y, self.variant) * magnitude,
            rgb[1] + self._noise(x, y, self.variant + 1) * magnitude,
            rgb[2] + self._noise(x, y, self.variant + 2) * magnitude,
        )


class ThresholdTileDitherStrategy(BaseDitherStrategy):
    """Monochrome jitter read from a precomputed, wrapping threshold tile."""

    def __init__(self, tile: Optional[DitherThresholdTile]):
        self.tile = tile

    def jitter(self, rgb, x, y, strength):
        if self.tile is None:
            return RGBColor(rgb[0], rgb[1], rgb[2])
        return _add_rgb(rgb, sample_dither_tile(self.tile, x, y) * strength * 255.0)


class BlueNoiseDitherStrategy(ThresholdTileDitherStrategy):
    """Blue-noise tile: high-frequency thresholds without the Bayer cross-hatch."""

    @staticmethod
    def get_parameter_info():
        return {
            'seed': {
                'type': 'int',
                'default': 0,
                'min': 0,
                'max': 2 ** 32 - 1,
                'label': 'Random Seed',
                'description': 'Seed for the white-noise base of the tile'
            }
        }

    def __init__(self, seed=0, tile: Optional[DitherThresholdTile] = None):
        self.seed = seed
        super().__init__(tile if tile is not None else generate_blue_noise_tile(BLUE_NOISE_TILE_SIZE, seed))


class VoronoiClusterDitherStrategy(ThresholdTileDitherStrategy):
    """Clustered-dot thresholds grown around jittered Voronoi centroids."""

    @staticmethod
    def get_parameter_info():
        return {
            'cells_per_axis': {
                'type': 'int',
                'default': DEFAULT_VORONOI_CELLS,
                'min': 1,
                'max': VORONOI_TILE_SIZE,
                'label': 'Cells per Axis',
                'description': 'Cluster count along each tile edge (snapped to a divisor of 64)'
            },
            'jitter': {
                'type': 'float',
                'default': DEFAULT_VORONOI_JITTER,
                'min': 0.0,
                'max': 1.0,
                'label': 'Centroid Jitter',
                'description': 'How far cluster centres wander from the regular grid'
            },
            'seed': {
                'type': 'int',
                'default': 0,
                'min': 0,
                'max': 2 ** 32 - 1,
                'label': 'Random Seed',
                'description': 'Seed for centroid placement'
            }
        }

    def __init__(self, cells_per_axis: int = DEFAULT_VORONOI_CELLS, jitter: float = DEFAULT_VORONOI_JITTER,
                 seed=0, tile: Optional[DitherThresholdTile] = None):
        self.cells_per_axis = resolve_voronoi_cells(cells_per_axis)
        self.jitter_amount = jitter
        self.seed = seed
        if tile is None:
            tile = build_procedural_dither_tile(DitherMode.VORONOI_CLUSTER, seed, cells_per_axis, jitter)
        super().__init__(tile)


class ErrorDiffusionDitherStrategy(BaseDitherStrategy):
    """
    Kernel error diffusion. Per-pixel jitter is a no-op; the render loop uses
    create_context() and apply_error_diffusion_to_pixel() instead.
    """
    is_error_diffusion = True

    @staticmethod
    def get_parameter_info():
        return {
            'kernel': {
                'type': 'choice',
                'default': DEFAULT_ERROR_DIFFUSION_KERNEL.value,
                'choices': [k.value for k in ErrorDiffusionKernelId],
                'label': 'Kernel',
                'description': 'Neighbour weights used to spread quantization error'
            }
        }

    def __init__(self, kernel=DEFAULT_ERROR_DIFFUSION_KERNEL):
        self.kernel = get_error_diffusion_kernel(kernel)

    def jitter(self, rgb, x, y, strength):
        return RGBColor(rgb[0], rgb[1], rgb[2])

    def create_context(self, width: int, height: int) -> ErrorDiffusionContext:
        return create_error_diffusion_context(width, height, self.kernel)


def get_mode_parameters(mode) -> Optional[dict]:
    """
    Get parameter metadata for a specific dithering mode.
    Returns None if the mode has no configurable parameters.
    """
    mode = DitherMode(mode)
    if mode in RANDOM_VARIANT_OFFSETS:
        return RandomNoiseDitherStrategy.get_parameter_info()
    if mode == DitherMode.BLUE_NOISE:
        return BlueNoiseDitherStrategy.get_parameter_info()
    if mode == DitherMode.VORONOI_CLUSTER:
        return VoronoiClusterDitherStrategy.get_parameter_info()
    if mode == DitherMode.ERROR_DIFFUSION:
        return ErrorDiffusionDitherStrategy.get_parameter_info()
    return None


def get_dither_strategy(mode, seed=0, tile: Optional[DitherThresholdTile] = None,
                        kernel=DEFAULT_ERROR_DIFFUSION_KERNEL,
                        params: Optional[dict] = None) -> BaseDitherStrategy:
    """
    The one place a dither mode turns into behaviour. ``tile`` is reused for
    procedural modes when given; otherwise a fresh one is generated.
    """
    mode = DitherMode(mode)
    params = params or {}
    if mode == DitherMode.NONE:
        return NoDitherStrategy()
    if mode in BAYER_SIZES:
        return OrderedDitherStrategy(BAYER_SIZES[mode])
    if mode in RANDOM_VARIANT_OFFSETS:
        return RandomNoiseDitherStrategy(mode, seed)
    if mode == DitherMode.BLUE_NOISE:
        return BlueNoiseDitherStrategy(seed=seed, tile=tile)
    if mode == DitherMode.VORONOI_CLUSTER:
        settings = {key: info['default'] for key, info in VoronoiClusterDitherStrategy.get_parameter_info().items()}
        settings.update({k: v for k, v in params.items() if k in settings})
        settings['seed'] = seed
        return VoronoiClusterDitherStrategy(tile=tile, **settings)
    if mode == DitherMode.ERROR_DIFFUSION:
        return ErrorDiffusionDitherStrategy(kernel)
    raise ValueError(f"Unrecognized DitherMode: {mode}")


def apply_dither_jitter(rgb, x: int, y: int, mode, strength: float, seed=0,
                        tile: Optional[DitherThresholdTile] = None) -> RGBColor:
    """
    Jitter one pixel. Procedural modes without a tile, error diffusion, and a
    non-positive strength leave the color unchanged.
    """
    mode = DitherMode(mode)
    if mode == DitherMode.NONE or not strength > 0.0 or mode.is_error_diffusion:
        return RGBColor(rgb[0], rgb[1], rgb[2])
    if mode.is_procedural_tile:
        return ThresholdTileDitherStrategy(tile).jitter(rgb, x, y, strength)
    return get_dither_strategy(mode, seed=seed).jitter(rgb, x, y, strength)
