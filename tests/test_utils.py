import numpy as np
import pytest
from PIL import Image

from utils import (
    compute_fit_dimensions, ensure_rgb, get_image_info, hex_to_rgb, load_image_rgb,
    palette_from_hex_list, rgb_to_hex, save_stage_png, validate_image_file,
)


def test_hex_helpers():
    assert hex_to_rgb("#FF8000") == (255, 128, 0)
    assert hex_to_rgb("0f0") == (0, 255, 0)
    assert rgb_to_hex((255, 128, 0)) == "#FF8000"
    assert palette_from_hex_list(["#000", "#FFF"]) == [(0, 0, 0), (255, 255, 255)]


def test_compute_fit_dimensions():
    assert compute_fit_dimensions(800, 400, 200) == (200, 100)
    assert compute_fit_dimensions(300, 600, 150) == (75, 150)
    assert compute_fit_dimensions(50, 40, 200) == (50, 40)


def test_ensure_rgb_composites_alpha_over_black():
    image = Image.new("RGBA", (2, 2), (255, 255, 255, 0))
    assert ensure_rgb(image).getpixel((0, 0)) == (0, 0, 0)
    gray = Image.new("L", (2, 2), 77)
    assert ensure_rgb(gray).getpixel((1, 1)) == (77, 77, 77)


def test_load_image_scale_modes(tmp_path):
    path = tmp_path / "wide.png"
    Image.new("RGB", (40, 20), (200, 100, 50)).save(path)
    assert validate_image_file(str(path))
    assert get_image_info(str(path))["width"] == 40

    native = load_image_rgb(str(path))
    assert native.shape == (20, 40, 3)
    assert np.allclose(native[0, 0], (200, 100, 50))

    for mode in ("cover", "contain", "stretch", "none"):
        assert load_image_rgb(str(path), 16, 16, mode).shape == (16, 16, 3)

    contained = load_image_rgb(str(path), 16, 16, "contain")
    assert np.allclose(contained[0, 8], (0, 0, 0))
    assert np.allclose(contained[8, 8], (200, 100, 50), atol=1)

    with pytest.raises(ValueError):
        load_image_rgb(str(path), 16, 16, "zoom")


def test_save_stage_png(tmp_path):
    stage = np.zeros((3, 5, 4), dtype=np.uint8)
    stage[..., 0] = 255
    stage[..., 3] = 255
    target = tmp_path / "nested" / "stage.png"
    save_stage_png(stage, str(target))
    with Image.open(target) as image:
        assert image.size == (5, 3)
        assert image.getpixel((0, 0)) == (255, 0, 0, 255)
