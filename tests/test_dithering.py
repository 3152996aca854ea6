import numpy as np
import pytest

from color_spaces import ColorMode, RGBColor
from dithering_lib import (
    BAYER_THRESHOLDS, ERROR_DIFFUSION_KERNELS, DitherMode, ErrorDiffusionKernelId,
    advance_error_diffusion_row, apply_dither_jitter, apply_error_diffusion_to_pixel,
    build_bayer_matrix, build_procedural_dither_tile, create_error_diffusion_context,
    generate_blue_noise_tile, generate_voronoi_cluster_tile, get_dither_strategy,
    get_error_diffusion_kernel, get_mode_parameters, normalize_seed, pseudo_random_unit,
    resolve_voronoi_cells,
)
from palette_distance import build_reduction_palette, quantize_to_palette


def _to_black(color):
    return RGBColor(0.0, 0.0, 0.0)


def test_bayer_matrix_layout():
    assert build_bayer_matrix(2).tolist() == [[0, 2], [3, 1]]
    assert build_bayer_matrix(4).tolist() == [[0, 8, 2, 10], [12, 4, 14, 6], [3, 11, 1, 9], [15, 7, 13, 5]]
    for n in (2, 4, 8, 16):
        assert sorted(build_bayer_matrix(n).ravel().tolist()) == list(range(n * n))


def test_bayer_matrix_rejects_bad_sizes():
    for n in (0, 1, 3, 6, 12):
        with pytest.raises(ValueError):
            build_bayer_matrix(n)


def test_bayer_thresholds_are_centered():
    for size, thresholds in BAYER_THRESHOLDS.items():
        assert thresholds.shape == (size, size)
        assert abs(float(thresholds.mean())) < 1e-12
        assert thresholds.min() > -0.5 and thresholds.max() < 0.5


def test_ordered_jitter_is_monochrome():
    jittered = apply_dither_jitter((100, 100, 100), 1, 0, DitherMode.BAYER4, 0.5)
    expected = 100 + BAYER_THRESHOLDS[4][0, 1] * 0.5 * 255.0
    assert jittered == pytest.approx((expected, expected, expected))


def test_zero_strength_and_none_leave_color():
    for mode in DitherMode:
        assert apply_dither_jitter((10, 20, 30), 3, 4, mode, 0.0) == RGBColor(10, 20, 30)
    assert apply_dither_jitter((10, 20, 30), 3, 4, DitherMode.NONE, 1.0) == RGBColor(10, 20, 30)
    assert apply_dither_jitter((10, 20, 30), 3, 4, DitherMode.ERROR_DIFFUSION, 1.0) == RGBColor(10, 20, 30)
    assert apply_dither_jitter((10, 20, 30), 3, 4, DitherMode.BLUE_NOISE, 1.0, tile=None) == RGBColor(10, 20, 30)


def test_seeded_noise_is_reproducible():
    assert pseudo_random_unit(42, 3, 7, 101) == pseudo_random_unit(42, 3, 7, 101)
    values = [pseudo_random_unit(42, x, 0, 101) for x in range(64)]
    assert all(0.0 <= v <= 1.0 for v in values)
    assert len(set(values)) > 60
    assert values != [pseudo_random_unit(43, x, 0, 101) for x in range(64)]
    assert normalize_seed(float("nan")) == 0
    assert normalize_seed(-3.7) == 4

    for mode in (DitherMode.BW_NOISE, DitherMode.GRAYSCALE_NOISE, DitherMode.RGB_NOISE, DitherMode.COLOR_NOISE):
        first = apply_dither_jitter((128, 128, 128), 5, 9, mode, 0.4, seed=7)
        second = apply_dither_jitter((128, 128, 128), 5, 9, mode, 0.4, seed=7)
        assert first == second


def test_binary_noise_magnitude():
    jittered = apply_dither_jitter((128, 128, 128), 2, 2, DitherMode.BW_NOISE, 0.2, seed=1)
    offset = jittered.r - 128
    assert abs(abs(offset) - 0.5 * 0.2 * 255.0) < 1e-9
    assert jittered.r == jittered.g == jittered.b


def test_procedural_tiles_span_threshold_range():
    for tile in (generate_blue_noise_tile(16, seed=3), generate_voronoi_cluster_tile(16, 4, 0.5, seed=3)):
        assert tile.data.shape == (16, 16)
        assert tile.data.min() == pytest.approx(-0.5)
        assert tile.data.max() == pytest.approx(0.5)
        assert len(np.unique(tile.data)) == 256
    assert np.array_equal(generate_blue_noise_tile(16, seed=3).data, generate_blue_noise_tile(16, seed=3).data)


def test_voronoi_cells_snap_to_divisors():
    assert resolve_voronoi_cells(8) == 8
    assert resolve_voronoi_cells(7) == 8
    assert resolve_voronoi_cells(100) == 64
    assert resolve_voronoi_cells(0) == 1
    with pytest.raises(ValueError):
        generate_voronoi_cluster_tile(64, 7)


def test_build_procedural_tile_only_for_tile_modes():
    assert build_procedural_dither_tile(DitherMode.BAYER4) is None
    tile = build_procedural_dither_tile(DitherMode.VORONOI_CLUSTER, seed=2, voronoi_cells=5)
    assert tile.size == 64


@pytest.mark.parametrize("kernel_id", list(ErrorDiffusionKernelId), ids=lambda k: k.value)
def test_error_diffusion_conserves_error(kernel_id):
    kernel = ERROR_DIFFUSION_KERNELS[kernel_id]
    context = create_error_diffusion_context(9, 5, kernel_id)
    result = apply_error_diffusion_to_pixel((100, 100, 100), 4, 0, context, 1.0, _to_black)
    assert result.quantized_color == RGBColor(0.0, 0.0, 0.0)
    pushed = sum(offset.weight for offset in kernel.offsets) / kernel.divisor
    assert float(context.row_buffers.sum()) == pytest.approx(300.0 * pushed, rel=1e-5)


def test_atkinson_spreads_three_quarters():
    context = create_error_diffusion_context(9, 5, ErrorDiffusionKernelId.ATKINSON)
    apply_error_diffusion_to_pixel((80, 80, 80), 4, 0, context, 1.0, _to_black)
    assert float(context.row_buffers.sum()) == pytest.approx(240.0 * 6.0 / 8.0, rel=1e-5)


def test_error_diffusion_skips_out_of_bounds_and_zero_strength():
    context = create_error_diffusion_context(3, 1, ErrorDiffusionKernelId.FLOYD_STEINBERG)
    apply_error_diffusion_to_pixel((160, 160, 160), 2, 0, context, 1.0, _to_black)
    assert float(context.row_buffers.sum()) == 0.0

    context = create_error_diffusion_context(3, 3, ErrorDiffusionKernelId.FLOYD_STEINBERG)
    apply_error_diffusion_to_pixel((160, 160, 160), 0, 0, context, 0.0, _to_black)
    assert float(context.row_buffers.sum()) == 0.0


def test_error_diffusion_carries_to_next_row():
    context = create_error_diffusion_context(3, 3, ErrorDiffusionKernelId.FLOYD_STEINBERG)
    apply_error_diffusion_to_pixel((160, 160, 160), 1, 0, context, 1.0, _to_black)
    advance_error_diffusion_row(context)
    result = apply_error_diffusion_to_pixel((0, 0, 0), 1, 1, context, 1.0, _to_black)
    assert result.dithered_color.r == pytest.approx(160.0 * 5.0 / 16.0, rel=1e-5)
    assert context.current_row == 1


def test_kernel_lookup_falls_back():
    assert get_error_diffusion_kernel("sierra-lite").divisor == 4
    assert get_error_diffusion_kernel("nope").id == ErrorDiffusionKernelId.FLOYD_STEINBERG


def test_strategies_and_parameters():
    assert get_dither_strategy(DitherMode.ERROR_DIFFUSION).is_error_diffusion
    assert not get_dither_strategy(DitherMode.BAYER8).is_error_diffusion
    assert get_mode_parameters(DitherMode.BAYER4) is None
    params = get_mode_parameters(DitherMode.VORONOI_CLUSTER)
    assert params['cells_per_axis']['default'] == 8
    assert 'kernel' in get_mode_parameters(DitherMode.ERROR_DIFFUSION)


def test_error_diffusion_stays_bounded_outside_palette_hull():
    kernel = ERROR_DIFFUSION_KERNELS[ErrorDiffusionKernelId.FLOYD_STEINBERG]
    palette = build_reduction_palette(["#000000", "#FFFFFF"], ColorMode.OKLAB)
    context = create_error_diffusion_context(32, 32, kernel.id)
    limit = 255.0 * sum(offset.weight for offset in kernel.offsets) / kernel.divisor
    worst_error = 0.0
    for y in range(32):
        for x in range(32):
            result = apply_error_diffusion_to_pixel(
                (255, 0, 0), x, y, context, 1.0,
                lambda color: quantize_to_palette(color, palette, ColorMode.OKLAB))
            assert all(0.0 <= c <= 255.0 for c in result.dithered_color)
            assert result.quantized_color in (RGBColor(0, 0, 0), RGBColor(255, 255, 255))
            worst_error = max(worst_error, float(np.abs(context.row_buffers).max()))
        advance_error_diffusion_row(context)
    assert worst_error <= limit + 1e-3


def test_error_diffusion_rounds_adjusted_color():
    context = create_error_diffusion_context(3, 3, ErrorDiffusionKernelId.FLOYD_STEINBERG)
    context.row(0)[3:6] = (0.4, -7.0, 300.0)
    result = apply_error_diffusion_to_pixel((10, 5, 10), 1, 0, context, 1.0, lambda color: color)
    assert result.dithered_color == RGBColor(10.0, 0.0, 255.0)
    assert float(np.abs(context.row_buffers[1:]).sum()) == 0.0
