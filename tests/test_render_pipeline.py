import numpy as np
import pytest

from color_spaces import ColorMode
from dithering_lib import DitherMode, ErrorDiffusionKernelId
from palette_distance import PaletteModulationParams, ReductionMode
from render_pipeline import (
    GamutFitSettings, PreviewStage, RenderSettings, apply_gamma, apply_gamma_buffer,
    compute_sharpness_mask, heatmap_to_rgba, render_dither_preview, stage_to_image,
)

BLACK_WHITE = ["#000000", "#FFFFFF"]


def _ramp(width=16, height=8):
    values = np.linspace(0, 255, width).round()
    buffer = np.zeros((height, width, 3))
    buffer[...] = values[None, :, None]
    return buffer


def test_passthrough_render_matches_source():
    source = _ramp()
    settings = RenderSettings(dither_mode=DitherMode.NONE, reduction_mode=ReductionMode.NONE,
                              stages=(PreviewStage.SOURCE, PreviewStage.REDUCED))
    result = render_dither_preview(source, BLACK_WHITE, settings)
    reduced = result.stages[PreviewStage.REDUCED]
    assert reduced.shape == (8, 16, 4) and reduced.dtype == np.uint8
    assert np.all(reduced[..., 3] == 255)
    assert np.array_equal(reduced[..., :3], source.astype(np.uint8))
    assert np.array_equal(result.stages[PreviewStage.SOURCE], reduced)
    assert result.perceptual.score == pytest.approx(100.0)


def test_palette_reduction_uses_only_palette_colors():
    settings = RenderSettings(dither_mode=DitherMode.BAYER4, dither_strength=0.5,
                              distance_space=ColorMode.RGB)
    result = render_dither_preview(_ramp(), BLACK_WHITE, settings)
    reduced = result.stages[PreviewStage.REDUCED][..., :3]
    assert set(np.unique(reduced).tolist()) <= {0, 255}
    assert int(result.palette_usage.sum()) == 16 * 8
    assert len(result.palette_usage) == 2
    assert PreviewStage.GAMUT not in result.stages


def test_error_diffusion_preserves_average_tone():
    source = np.full((16, 16, 3), 64.0)
    settings = RenderSettings(dither_mode=DitherMode.ERROR_DIFFUSION, dither_strength=1.0,
                              error_diffusion_kernel=ErrorDiffusionKernelId.FLOYD_STEINBERG,
                              distance_space=ColorMode.RGB)
    result = render_dither_preview(source, BLACK_WHITE, settings)
    white_share = result.palette_usage[1] / result.palette_usage.sum()
    assert 0.15 < white_share < 0.35


def test_without_dither_flat_gray_quantizes_uniformly():
    source = np.full((4, 4, 3), 64.0)
    settings = RenderSettings(dither_mode=DitherMode.NONE, distance_space=ColorMode.RGB)
    result = render_dither_preview(source, BLACK_WHITE, settings)
    assert result.palette_usage.tolist() == [16, 0]


def test_binary_reduction():
    settings = RenderSettings(dither_mode=DitherMode.NONE, reduction_mode=ReductionMode.BINARY)
    result = render_dither_preview(_ramp(), [], settings)
    row = result.stages[PreviewStage.REDUCED][0, :, 0]
    assert set(row.tolist()) == {0, 255}
    assert row[0] == 0 and row[-1] == 255

    red = np.zeros((3, 3, 3))
    red[...] = (200, 10, 140)
    reduced = render_dither_preview(red, [], settings).stages[PreviewStage.REDUCED]
    assert np.all(reduced[..., :3] == (255, 0, 255))


def test_metric_and_delta_stages():
    stages = (PreviewStage.PALETTE_ERROR, PreviewStage.PALETTE_AMBIGUITY,
              PreviewStage.PALETTE_MODULATION, PreviewStage.PERCEPTUAL_DELTA, PreviewStage.GAMUT)
    settings = RenderSettings(dither_mode=DitherMode.BLUE_NOISE, stages=stages,
                              modulation=PaletteModulationParams(error_enabled=True),
                              gamut=GamutFitSettings(enabled=True))
    result = render_dither_preview(_ramp(), ["#102030", "#E0C080", "#40A040"], settings)
    for stage in stages:
        assert result.stages[stage].shape == (8, 16, 4)
    assert result.gamut_transform.is_active


def test_progress_callback_reports_each_row():
    calls = []
    render_dither_preview(_ramp(4, 3), BLACK_WHITE, RenderSettings(),
                          progress_callback=lambda fraction, message: calls.append(fraction))
    assert len(calls) == 3
    assert calls[-1] == pytest.approx(1.0)


def test_gamma():
    assert apply_gamma((128, 128, 128), 1.0005) == (128, 128, 128)
    assert apply_gamma((128, 128, 128), float("nan")) == (128, 128, 128)
    darker = apply_gamma((128, 128, 128), 2.2)
    assert darker.r < 128
    assert apply_gamma((255, 0, 0), 2.2) == pytest.approx((255.0, 0.0, 0.0))
    buffer = np.full((2, 2, 3), 128.0)
    assert np.allclose(apply_gamma_buffer(buffer, 2.2), darker.r)


def test_sharpness_mask():
    flat = np.full((6, 6, 3), 90.0)
    assert np.all(compute_sharpness_mask(flat, 1.0) == 1.0)
    edge = np.zeros((6, 6, 3))
    edge[:, 3:] = 255.0
    mask = compute_sharpness_mask(edge, 1.0)
    assert mask.min() == pytest.approx(0.0)
    assert mask[:, 0].tolist() == [1.0] * 6
    assert np.all(compute_sharpness_mask(edge, 0.0) == 1.0)


def test_heatmap_ramp_and_image():
    ramp = heatmap_to_rgba(np.array([[0.0, 1.0 / 3.0, 2.0 / 3.0, 1.0]]))
    assert ramp[0, 0].tolist() == [0, 0, 0, 255]
    assert ramp[0, 1].tolist() == [255, 0, 0, 255]
    assert ramp[0, 2].tolist() == [255, 255, 0, 255]
    assert ramp[0, 3].tolist() == [255, 255, 255, 255]
    image = stage_to_image(ramp)
    assert image.size == (4, 1) and image.mode == "RGBA"
