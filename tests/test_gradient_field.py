import numpy as np

from color_spaces import ColorMode, interpolate_gradient_color
from gradient_field import (
    EdgeStrategyKind, GradientControlPoint, GradientField, GradientSampling, build_default_perimeter_layout,
    build_gradient_field, render_gradient_field, resolve_control_points, sample_gradient_field,
)
from palette_definition import parse_palette_definition


def test_sample_at_control_point_is_exact():
    points = [
        GradientControlPoint("#FF0000", (0.0, 0.0)),
        GradientControlPoint("#0000FF", (1.0, 1.0)),
        GradientControlPoint("#12AB34", (0.5, 0.25)),
    ]
    for mode in (ColorMode.OKLAB, ColorMode.HSL, ColorMode.RGB):
        gradient = build_gradient_field(points, mode)
        assert tuple(sample_gradient_field(gradient, 0.0, 0.0)) == (255.0, 0.0, 0.0)
        assert tuple(sample_gradient_field(gradient, 0.5, 0.25)) == (0x12, 0xAB, 0x34)


def test_empty_and_single_point_fields():
    assert tuple(sample_gradient_field(GradientField(ColorMode.RGB), 0.3, 0.3)) == (0.0, 0.0, 0.0)
    single = build_gradient_field([GradientControlPoint("#336699", (0.0, 0.0))], ColorMode.OKLAB)
    assert tuple(sample_gradient_field(single, 0.9, 0.1)) == (0x33, 0x66, 0x99)


def test_midpoint_between_two_points_blends_evenly():
    gradient = build_gradient_field([
        GradientControlPoint("#000000", (0.0, 0.5)),
        GradientControlPoint("#FFFFFF", (1.0, 0.5)),
    ], ColorMode.RGB)
    assert np.allclose(sample_gradient_field(gradient, 0.5, 0.5), (127.5, 127.5, 127.5))


def test_default_perimeter_layout():
    assert build_default_perimeter_layout(0) == []
    assert build_default_perimeter_layout(4) == [(0.0, 0.0), (1.0, 0.0), (0.0, 1.0), (1.0, 1.0)]
    layout = build_default_perimeter_layout(8)
    assert layout[4:] == [(0.5, 0.0), (1.0, 0.5), (0.5, 1.0), (0.0, 0.5)]
    assert all(0.0 <= x <= 1.0 and 0.0 <= y <= 1.0 for x, y in build_default_perimeter_layout(20))


def test_resolve_control_points_keeps_explicit_positions():
    parsed = parse_palette_definition("#000 (0.5, 0.5)\n#FFF\n#F00\n")
    points = resolve_control_points(parsed.swatches)
    assert points[0].position == (0.5, 0.5)
    assert points[1].position == (1.0, 0.0)
    assert points[2].position == (0.0, 1.0)


def test_render_gradient_field_shape_and_corners():
    gradient = build_gradient_field(resolve_control_points([
        GradientControlPoint("#FF0000"), GradientControlPoint("#00FF00"),
        GradientControlPoint("#0000FF"), GradientControlPoint("#FFFFFF"),
    ]), ColorMode.OKLAB)
    buffer = render_gradient_field(gradient, 6, 4)
    assert buffer.shape == (4, 6, 3)
    assert np.allclose(buffer[0, 0], (255.0, 0.0, 0.0))
    assert np.allclose(buffer[0, -1], (0.0, 255.0, 0.0))
    assert np.allclose(buffer[-1, 0], (0.0, 0.0, 255.0))
    assert np.allclose(buffer[-1, -1], (255.0, 255.0, 255.0))


def _triangle_points():
    return [
        GradientControlPoint("#FF0000", (0.2, 0.2)),
        GradientControlPoint("#00FF00", (0.8, 0.2)),
        GradientControlPoint("#0000FF", (0.2, 0.8)),
    ]


def test_layered_field_blends_inside_triangle_barycentrically():
    layered = build_gradient_field(_triangle_points(), ColorMode.RGB, GradientSampling.LAYERED)
    assert layered.edge_strategy is None
    assert len(layered.triangles) == 1
    assert sorted(layered.triangles[0].indices) == [0, 1, 2]
    assert np.allclose(sample_gradient_field(layered, 0.3, 0.3), (170.0, 42.5, 42.5))
    assert np.allclose(sample_gradient_field(layered, 0.4, 0.4), (85.0, 85.0, 85.0))


def test_layered_field_falls_back_to_idw_outside_triangles():
    layered = build_gradient_field(_triangle_points(), ColorMode.RGB, GradientSampling.LAYERED)
    idw = build_gradient_field(_triangle_points(), ColorMode.RGB)
    assert idw.sampling == GradientSampling.IDW
    assert np.allclose(sample_gradient_field(layered, 0.9, 0.9), sample_gradient_field(idw, 0.9, 0.9))
    assert not np.allclose(sample_gradient_field(layered, 0.3, 0.3), sample_gradient_field(idw, 0.3, 0.3))


def test_top_and_bottom_points_blend_between_edges():
    gradient = build_gradient_field([
        GradientControlPoint("#000000", (0.0, 0.0)),
        GradientControlPoint("#FF0000", (1.0, 0.0)),
        GradientControlPoint("#0000FF", (0.5, 1.0)),
    ], ColorMode.RGB, GradientSampling.LAYERED)
    assert gradient.edge_strategy.kind == EdgeStrategyKind.HORIZONTAL_BILINEAR
    assert len(gradient.edge_strategy.first) == 2 and len(gradient.edge_strategy.second) == 1
    assert np.allclose(sample_gradient_field(gradient, 0.5, 0.5), (63.75, 0.0, 127.5))
    assert np.allclose(sample_gradient_field(gradient, 0.25, 0.0), (63.75, 0.0, 0.0))


def test_default_corners_match_bilinear_interpolation():
    corners = ["#FF0000", "#00FF00", "#0000FF", "#FFFFFF"]
    gradient = build_gradient_field(resolve_control_points([GradientControlPoint(h) for h in corners]),
                                    ColorMode.RGB, GradientSampling.LAYERED)
    assert gradient.edge_strategy.kind == EdgeStrategyKind.HORIZONTAL_BILINEAR
    for u, v in ((0.5, 0.5), (0.25, 0.7), (0.9, 0.1)):
        assert np.allclose(sample_gradient_field(gradient, u, v),
                           interpolate_gradient_color(corners, u, v, ColorMode.RGB))


def test_single_edge_and_degenerate_layouts():
    column = build_gradient_field([
        GradientControlPoint("#000000", (0.0, 0.0)),
        GradientControlPoint("#FFFFFF", (0.0, 1.0)),
    ], ColorMode.RGB, GradientSampling.LAYERED)
    assert column.edge_strategy.kind == EdgeStrategyKind.VERTICAL_1D
    assert np.allclose(sample_gradient_field(column, 0.7, 0.5), (127.5, 127.5, 127.5))

    collinear = build_gradient_field([
        GradientControlPoint("#000000", (0.2, 0.2)),
        GradientControlPoint("#808080", (0.5, 0.5)),
        GradientControlPoint("#FFFFFF", (0.8, 0.8)),
    ], ColorMode.OKLAB, GradientSampling.LAYERED)
    assert collinear.triangles == () and collinear.edge_strategy is None
    assert tuple(sample_gradient_field(collinear, 0.5, 0.5)) == (128.0, 128.0, 128.0)


def test_layered_sampling_keeps_exact_hits():
    points = _triangle_points() + [GradientControlPoint("#12AB34", (0.0, 0.0))]
    for mode in (ColorMode.OKLAB, ColorMode.HSL):
        gradient = build_gradient_field(points, mode, GradientSampling.LAYERED)
        assert tuple(sample_gradient_field(gradient, 0.8, 0.2)) == (0.0, 255.0, 0.0)
        assert tuple(sample_gradient_field(gradient, 0.0, 0.0)) == (0x12, 0xAB, 0x34)
