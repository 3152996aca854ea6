import numpy as np
import pytest

from color_spaces import (
    ColorMode, HSLVector, RGBColor, gamut_fit_by_chroma, hex_to_rgb255, hex_to_vector,
    interpolate_gradient_color, lerp_angle, mix_vectors, mix_vectors_weighted, oklch_to_srgb,
    resolve_color_mode, rgb255_array_to_lab, rgb255_array_to_oklab, rgb255_to_vector,
    rgb_to_vector, rgb_unit_to_hex, vector_to_rgb,
)

ROUND_TRIP_MODES = [
    ColorMode.RGB, ColorMode.HSL, ColorMode.HSV, ColorMode.HWB, ColorMode.RYB,
    ColorMode.CMY, ColorMode.CMYK, ColorMode.LAB, ColorMode.YCBCR, ColorMode.OKLAB,
    ColorMode.OKLCH,
]


def _angle_gap(a, b):
    d = abs(a - b) % 360.0
    return min(d, 360.0 - d)


@pytest.mark.parametrize("mode", ROUND_TRIP_MODES, ids=lambda m: m.value)
def test_round_trip_random_colors(mode):
    rng = np.random.default_rng(1234)
    for rgb in rng.random((1000, 3)):
        back = vector_to_rgb(rgb_to_vector(rgb, mode), mode)
        assert np.allclose(back, rgb, atol=1e-4), (mode, rgb, back)


def test_luma_modes_return_grays():
    for mode in (ColorMode.LUMA_RGB, ColorMode.LUMA_LAB, ColorMode.LUMA_OKLAB):
        back = vector_to_rgb(rgb_to_vector((0.8, 0.2, 0.4), mode), mode)
        assert back.r == pytest.approx(back.g, abs=1e-6)
        assert back.g == pytest.approx(back.b, abs=1e-6)


def test_luma_rgb_uses_rec601_weights():
    vector = rgb_to_vector((1.0, 0.0, 0.0), ColorMode.LUMA_RGB)
    assert vector[0] == pytest.approx(0.299)


def test_unknown_mode_is_rgb():
    assert resolve_color_mode("not-a-space") == ColorMode.RGB
    assert rgb_to_vector((0.2, 0.4, 0.6), "not-a-space") == RGBColor(0.2, 0.4, 0.6)
    assert resolve_color_mode("OKLAB") == ColorMode.OKLAB


def test_hex_parsing():
    assert hex_to_rgb255("#F80") == (255, 136, 0)
    assert hex_to_rgb255("00ff7f") == (0, 255, 127)
    with pytest.raises(ValueError):
        hex_to_rgb255("#12345")
    assert rgb_unit_to_hex((1.0, 0.5, 0.0)) == "#FF8000"


def test_oklab_white_and_black():
    white = hex_to_vector("#FFFFFF", ColorMode.OKLAB)
    black = hex_to_vector("#000000", ColorMode.OKLAB)
    assert white.L == pytest.approx(1.0, abs=1e-4)
    assert abs(white.a) < 1e-4 and abs(white.b) < 1e-4
    assert black.L == pytest.approx(0.0, abs=1e-6)


def test_lerp_angle_takes_short_arc():
    assert _angle_gap(lerp_angle(350.0, 10.0, 0.5), 0.0) < 1e-9
    assert _angle_gap(lerp_angle(10.0, 350.0, 0.5), 0.0) < 1e-9
    assert lerp_angle(0.0, 90.0, 0.5) == pytest.approx(45.0)


def test_mix_vectors_wraps_hue():
    a = HSLVector(350.0, 1.0, 0.5)
    b = HSLVector(10.0, 1.0, 0.5)
    mixed = mix_vectors(a, b, 0.5, ColorMode.HSL)
    assert _angle_gap(mixed.h, 0.0) < 1e-9
    assert mixed.s == pytest.approx(1.0)


def test_weighted_mix_ignores_gray_hue():
    red = HSLVector(0.0, 1.0, 0.5)
    gray = HSLVector(120.0, 0.0, 0.5)
    mixed = mix_vectors_weighted([red, gray], [1.0, 1.0], ColorMode.HSL)
    assert _angle_gap(mixed.h, 0.0) < 1e-9
    assert mixed.s == pytest.approx(0.5)


def test_weighted_mix_zero_weights_returns_first():
    first = rgb255_to_vector((10, 20, 30), ColorMode.OKLAB)
    second = rgb255_to_vector((200, 20, 30), ColorMode.OKLAB)
    assert mix_vectors_weighted([first, second], [0.0, 0.0], ColorMode.OKLAB) == first


def test_oklch_gamut_flag():
    assert oklch_to_srgb(0.5, 0.0, 0.0).in_gamut
    assert not oklch_to_srgb(0.9, 0.4, 150.0).in_gamut


def test_gamut_fit_by_chroma_reduces_chroma():
    fitted, conversion = gamut_fit_by_chroma(0.7, 0.4, 30.0)
    assert conversion.in_gamut
    assert fitted.C < 0.4
    assert fitted.L == 0.7 and fitted.h == 30.0


def test_interpolate_gradient_corners():
    corners = ["#FF0000", "#00FF00", "#0000FF", "#FFFFFF"]
    top_left = interpolate_gradient_color(corners, 0.0, 0.0, ColorMode.RGB)
    bottom_right = interpolate_gradient_color(corners, 1.0, 1.0, ColorMode.RGB)
    assert np.allclose(top_left, (255.0, 0.0, 0.0))
    assert np.allclose(bottom_right, (255.0, 255.0, 255.0))
    center = interpolate_gradient_color(corners, 0.5, 0.5, ColorMode.RGB)
    assert np.allclose(center, (127.5, 127.5, 127.5))


def test_interpolate_gradient_needs_four_corners():
    with pytest.raises(ValueError):
        interpolate_gradient_color(["#000000", "#FFFFFF"], 0.5, 0.5, ColorMode.RGB)


def test_vectorised_conversions_match_scalar():
    rng = np.random.default_rng(5)
    pixels = rng.integers(0, 256, size=(8, 8, 3)).astype(np.float64)
    oklab = rgb255_array_to_oklab(pixels)
    lab = rgb255_array_to_lab(pixels)
    for y, x in [(0, 0), (3, 5), (7, 7)]:
        assert np.allclose(oklab[y, x], rgb255_to_vector(pixels[y, x], ColorMode.OKLAB), atol=1e-9)
        assert np.allclose(lab[y, x], rgb255_to_vector(pixels[y, x], ColorMode.LAB), atol=1e-6)
