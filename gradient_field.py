"""
Continuous 2D color fields built from sparse control points.

Control points carry a hex color and a position in the unit square. Colors
are blended in the field's own color space. Two sampling schemes exist:

* ``idw``: inverse-distance weighting (weight = 1 / d^2) over every point.
* ``layered``: points that all sit on the square's edges are interpolated
  along those edges (1D, or between two opposite edges); otherwise a Delaunay
  triangle containing (u, v) is blended barycentrically; anything outside the
  triangulation falls back to ``idw``.

Both return a control point's own color when sampled at its position.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import Delaunay, QhullError

from color_spaces import (
    ColorMode, RGBColor, hex_to_rgb255, mix_vectors_weighted, resolve_color_mode,
    rgb255_to_vector, rgb_unit_to_255, vector_to_rgb,
)

__all__ = [
    'GradientSampling',
    'EdgeStrategyKind',
    'GradientControlPoint',
    'GradientFieldPoint',
    'GradientTriangle',
    'EdgeStrategy',
    'GradientField',
    'build_default_perimeter_layout',
    'resolve_control_points',
    'build_triangles',
    'derive_edge_strategy',
    'build_gradient_field',
    'sample_gradient_field',
    'render_gradient_field',
]

logger = logging.getLogger(__name__)

Position = Tuple[float, float]

ZERO_DISTANCE_EPSILON = 1e-6
BARYCENTRIC_TOLERANCE = 1e-4
TRIANGLE_AREA_EPSILON = 1e-9
EDGE_TOLERANCE = 1e-3
FALLBACK_POSITION: Position = (0.0, 0.0)
# fill order for the first four points
CORNER_SEQUENCE: Tuple[Position, ...] = ((0.0, 0.0), (1.0, 0.0), (0.0, 1.0), (1.0, 1.0))
# perimeter walk used when more than four points need a home
CLOCKWISE_CORNERS: Tuple[Position, ...] = ((0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0))


class GradientSampling(Enum):
    IDW = "idw"
    LAYERED = "layered"


class EdgeStrategyKind(Enum):
    HORIZONTAL_1D = "horizontal-1d"
    VERTICAL_1D = "vertical-1d"
    HORIZONTAL_BILINEAR = "horizontal-bilinear"
    VERTICAL_BILINEAR = "vertical-bilinear"


@dataclass(frozen=True)
class GradientControlPoint:
    hex: str
    position: Optional[Position] = None


@dataclass(frozen=True)
class GradientFieldPoint:
    position: Position
    vector: tuple
    rgb: RGBColor


@dataclass(frozen=True)
class GradientTriangle:
    indices: Tuple[int, int, int]
    bbox: Tuple[float, float, float, float]  # min_x, max_x, min_y, max_y


@dataclass(frozen=True)
class EdgeStrategy:
    """
    Edge interpolation plan. 1D kinds use ``first`` only; bilinear kinds
    blend ``first`` (top or left) with ``second`` (bottom or right).
    """
    kind: EdgeStrategyKind
    first: Tuple[GradientFieldPoint, ...]
    second: Tuple[GradientFieldPoint, ...] = ()


@dataclass(frozen=True)
class GradientField:
    mode: ColorMode
    points: Tuple[GradientFieldPoint, ...] = field(default_factory=tuple)
    triangles: Tuple[GradientTriangle, ...] = field(default_factory=tuple)
    edge_strategy: Optional[EdgeStrategy] = None
    sampling: GradientSampling = GradientSampling.IDW


def build_default_perimeter_layout(count: int) -> List[Position]:
    """
    Positions for ``count`` points spread around the unit-square boundary.

    The four corners come first; every further point bisects the oldest
    unsplit perimeter segment, so points fill the border evenly.
    """
    if count <= 0:
        return []
    if count <= len(CORNER_SEQUENCE):
        return list(CORNER_SEQUENCE[:count])

    layout = list(CORNER_SEQUENCE)
    segments = deque(
        (CLOCKWISE_CORNERS[i], CLOCKWISE_CORNERS[(i + 1) % len(CLOCKWISE_CORNERS)])
        for i in range(len(CLOCKWISE_CORNERS))
    )
    remaining = count - len(layout)
    while remaining > 0 and segments:
        start, end = segments.popleft()
        mid = ((start[0] + end[0]) / 2.0, (start[1] + end[1]) / 2.0)
        layout.append(mid)
        segments.append((start, mid))
        segments.append((mid, end))
        remaining -= 1
    while len(layout) < count:
        layout.append(FALLBACK_POSITION)
    return layout


def resolve_control_points(swatches: Sequence) -> List[GradientControlPoint]:
    """
    Give every swatch a position. Swatches may be GradientControlPoint,
    palette-definition swatches, or anything with ``hex`` and optional
    ``position`` attributes. Explicit positions pass through; the rest take
    the slot of the default perimeter layout at their index.
    """
    if not swatches:
        return []
    layout = build_default_perimeter_layout(len(swatches))
    points = []
    for index, swatch in enumerate(swatches):
        position = getattr(swatch, 'position', None)
        if position is None:
            position = layout[index] if index < len(layout) else FALLBACK_POSITION
        points.append(GradientControlPoint(hex=swatch.hex, position=(float(position[0]), float(position[1]))))
    return points


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _vector_to_rgb255(vector, mode: ColorMode) -> RGBColor:
    return rgb_unit_to_255(vector_to_rgb(vector, mode))


def build_triangles(points: Sequence[GradientFieldPoint]) -> Tuple[GradientTriangle, ...]:
    """Delaunay triangulation of the point positions, skipping degenerate triangles."""
    if len(points) < 3:
        return ()
    coords = np.array([point.position for point in points], dtype=np.float64)
    try:
        simplices = Delaunay(coords).simplices
    except QhullError:
        logger.debug("Control points are collinear or coincident; no triangulation")
        return ()

    triangles = []
    for simplex in simplices:
        indices = (int(simplex[0]), int(simplex[1]), int(simplex[2]))
        (x0, y0), (x1, y1), (x2, y2) = (points[i].position for i in indices)
        area = (x1 - x0) * (y2 - y0) - (x2 - x0) * (y1 - y0)
        if abs(area) < TRIANGLE_AREA_EPSILON:
            continue
        triangles.append(GradientTriangle(
            indices=indices,
            bbox=(min(x0, x1, x2), max(x0, x1, x2), min(y0, y1, y2), max(y0, y1, y2)),
        ))
    return tuple(triangles)


def derive_edge_strategy(points: Sequence[GradientFieldPoint]) -> Optional[EdgeStrategy]:
    """
    Edge plan when every point lies on one edge, or on two opposite edges.
    A corner point belongs to both edges that meet there.
    """
    if not points:
        return None
    top = tuple(p for p in points if p.position[1] <= EDGE_TOLERANCE)
    bottom = tuple(p for p in points if p.position[1] >= 1.0 - EDGE_TOLERANCE)
    left = tuple(p for p in points if p.position[0] <= EDGE_TOLERANCE)
    right = tuple(p for p in points if p.position[0] >= 1.0 - EDGE_TOLERANCE)
    count = len(points)

    if len(top) == count:
        return EdgeStrategy(EdgeStrategyKind.HORIZONTAL_1D, top)
    if len(bottom) == count:
        return EdgeStrategy(EdgeStrategyKind.HORIZONTAL_1D, bottom)
    if len(left) == count:
        return EdgeStrategy(EdgeStrategyKind.VERTICAL_1D, left)
    if len(right) == count:
        return EdgeStrategy(EdgeStrategyKind.VERTICAL_1D, right)
    if top and bottom and len(top) + len(bottom) == count:
        return EdgeStrategy(EdgeStrategyKind.HORIZONTAL_BILINEAR, top, bottom)
    if left and right and len(left) + len(right) == count:
        return EdgeStrategy(EdgeStrategyKind.VERTICAL_BILINEAR, left, right)
    return None


def build_gradient_field(points: Sequence[GradientControlPoint], mode,
                         sampling: GradientSampling = GradientSampling.IDW) -> GradientField:
    mode = resolve_color_mode(mode)
    field_points = []
    for point in points:
        rgb = RGBColor(*(float(c) for c in hex_to_rgb255(point.hex)))
        position = point.position if point.position is not None else FALLBACK_POSITION
        field_points.append(GradientFieldPoint(
            position=(float(position[0]), float(position[1])),
            vector=rgb255_to_vector(rgb, mode),
            rgb=rgb,
        ))
    triangles = build_triangles(field_points)
    edge_strategy = derive_edge_strategy(field_points)
    logger.debug("Built gradient field with %d points (%d triangles, edge=%s) in %s", len(field_points),
                 len(triangles), edge_strategy.kind.value if edge_strategy else None, mode.value)
    return GradientField(
        mode=mode,
        points=tuple(field_points),
        triangles=triangles,
        edge_strategy=edge_strategy,
        sampling=GradientSampling(sampling),
    )


def _sample_axis_vector(points: Sequence[GradientFieldPoint], axis: int, value: float, mode: ColorMode):
    """1D inverse-distance blend (weight = 1 / d) along one coordinate axis."""
    if len(points) == 1:
        return points[0].vector
    vectors = []
    weights = []
    for point in points:
        distance = abs(value - point.position[axis])
        if distance <= ZERO_DISTANCE_EPSILON:
            return point.vector
        vectors.append(point.vector)
        weights.append(1.0 / distance)
    return mix_vectors_weighted(vectors, weights, mode)


def _sample_edge_strategy(gradient: GradientField, u: float, v: float) -> RGBColor:
    strategy = gradient.edge_strategy
    mode = gradient.mode
    u, v = _clamp01(u), _clamp01(v)
    if strategy.kind == EdgeStrategyKind.HORIZONTAL_1D:
        return _vector_to_rgb255(_sample_axis_vector(strategy.first, 0, u, mode), mode)
    if strategy.kind == EdgeStrategyKind.VERTICAL_1D:
        return _vector_to_rgb255(_sample_axis_vector(strategy.first, 1, v, mode), mode)
    if strategy.kind == EdgeStrategyKind.HORIZONTAL_BILINEAR:
        axis, along, across = 0, u, v
    else:
        axis, along, across = 1, v, u
    first = _sample_axis_vector(strategy.first, axis, along, mode)
    second = _sample_axis_vector(strategy.second, axis, along, mode)
    blended = mix_vectors_weighted([first, second], [1.0 - across, across], mode)
    return _vector_to_rgb255(blended, mode)


def _barycentric_weights(gradient: GradientField, triangle: GradientTriangle,
                         x: float, y: float) -> Optional[Tuple[float, float, float]]:
    (x0, y0), (x1, y1), (x2, y2) = (gradient.points[i].position for i in triangle.indices)
    denom = (y1 - y2) * (x0 - x2) + (x2 - x1) * (y0 - y2)
    if abs(denom) < TRIANGLE_AREA_EPSILON:
        return None
    w0 = ((y1 - y2) * (x - x2) + (x2 - x1) * (y - y2)) / denom
    w1 = ((y2 - y0) * (x - x2) + (x0 - x2) * (y - y2)) / denom
    return w0, w1, 1.0 - w0 - w1


def _sample_triangles(gradient: GradientField, u: float, v: float) -> Optional[RGBColor]:
    for triangle in gradient.triangles:
        min_x, max_x, min_y, max_y = triangle.bbox
        if not (min_x - BARYCENTRIC_TOLERANCE <= u <= max_x + BARYCENTRIC_TOLERANCE
                and min_y - BARYCENTRIC_TOLERANCE <= v <= max_y + BARYCENTRIC_TOLERANCE):
            continue
        weights = _barycentric_weights(gradient, triangle, u, v)
        if weights is None or min(weights) < -BARYCENTRIC_TOLERANCE:
            continue
        clamped = [max(0.0, w) for w in weights]
        total = sum(clamped)
        if total <= 0.0:
            continue
        vectors = [gradient.points[i].vector for i in triangle.indices]
        blended = mix_vectors_weighted(vectors, [w / total for w in clamped], gradient.mode)
        return _vector_to_rgb255(blended, gradient.mode)
    return None


def _sample_inverse_distance(gradient: GradientField, u: float, v: float) -> RGBColor:
    vectors = []
    weights = []
    for point in gradient.points:
        dx = u - point.position[0]
        dy = v - point.position[1]
        distance_sq = dx * dx + dy * dy
        if distance_sq <= ZERO_DISTANCE_EPSILON:
            return point.rgb
        vectors.append(point.vector)
        weights.append(1.0 / distance_sq)
    return _vector_to_rgb255(mix_vectors_weighted(vectors, weights, gradient.mode), gradient.mode)


def sample_gradient_field(gradient: GradientField, u: float, v: float) -> RGBColor:
    """Color (0..255 channels, unrounded) of the field at (u, v)."""
    if not gradient.points:
        return RGBColor(0.0, 0.0, 0.0)
    if len(gradient.points) == 1:
        return gradient.points[0].rgb
    if gradient.sampling == GradientSampling.IDW:
        return _sample_inverse_distance(gradient, u, v)

    for point in gradient.points:
        dx = u - point.position[0]
        dy = v - point.position[1]
        if dx * dx + dy * dy <= ZERO_DISTANCE_EPSILON:
            return point.rgb
    if gradient.edge_strategy is not None:
        return _sample_edge_strategy(gradient, u, v)
    if gradient.triangles:
        color = _sample_triangles(gradient, u, v)
        if color is not None:
            return color
    return _sample_inverse_distance(gradient, u, v)


def render_gradient_field(gradient: GradientField, width: int, height: int) -> np.ndarray:
    """Rasterise the field to an (height, width, 3) float buffer of 0..255 values."""
    out = np.zeros((max(0, height), max(0, width), 3), dtype=np.float64)
    for y in range(height):
        v = y / (height - 1) if height > 1 else 0.0
        for x in range(width):
            u = x / (width - 1) if width > 1 else 0.0
            out[y, x] = sample_gradient_field(gradient, u, v)
    return out
