import json

import numpy as np
import pytest

from color_spaces import ColorMode
from config_manager import ConfigManager
from dither_cli import ConfigValidationError, build_source_buffer, load_config, settings_from_config, validate_config
from dithering_lib import DitherMode, ErrorDiffusionKernelId
from palette_distance import ReductionMode
from render_pipeline import PreviewStage


def _write_config(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _base_config(tmp_path):
    (tmp_path / "gradient.txt").write_text("#000\n#FFF\n#F00\n#00F\n", encoding="utf-8")
    return {
        "source": {"type": "gradient", "path": "gradient.txt"},
        "palette": ["#000000", "#FFFFFF"],
        "output_dir": "out",
    }


def test_config_manager_defaults_and_merge(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"render": {"gamma": 2.2}, "extra": 1}), encoding="utf-8")
    manager = ConfigManager(str(path))
    assert manager.get("render", "gamma") == 2.2
    assert manager.get("render", "dither_mode") == "bayer4"
    assert manager.get("extra") == 1
    assert manager.get("missing", "key", default="x") == "x"

    manager.set("render", "seed", value=9)
    manager.save()
    reloaded = ConfigManager(str(path))
    assert reloaded.get("render", "seed") == 9
    assert ConfigManager.DEFAULT_CONFIG["render"]["seed"] == 0


def test_config_manager_missing_file(tmp_path):
    path = tmp_path / "absent.json"
    manager = ConfigManager(str(path))
    assert manager.get("gamut", "enabled") is False
    assert not path.exists()

    ConfigManager(str(path), create_if_missing=True)
    assert json.loads(path.read_text(encoding="utf-8"))["render"]["width"] == 256


def test_with_defaults_does_not_share_state():
    first = ConfigManager.with_defaults({})
    first["output"]["stages"].append("gamut")
    assert ConfigManager.DEFAULT_CONFIG["output"]["stages"] == ["source", "dither", "reduced"]


def test_validate_config_resolves_paths(tmp_path):
    config_path = _write_config(tmp_path, _base_config(tmp_path))
    config = load_config(config_path)
    assert config["source"]["path"] == str((tmp_path / "gradient.txt").resolve())
    assert config["output_dir"] == str((tmp_path / "out").resolve())
    assert config["source"]["interpolation"] == "field"
    assert config["render"]["dither_mode"] == "bayer4"


def test_validate_config_collects_errors(tmp_path):
    data = _base_config(tmp_path)
    data["palette"] = ["#000000", "#XYZ"]
    data["render"] = {"dither_mode": "zigzag", "width": 0, "gamma": "high"}
    data["output"] = {"stages": ["source", "bogus"]}
    with pytest.raises(ConfigValidationError) as excinfo:
        validate_config(data, tmp_path / "config.json")
    message = str(excinfo.value)
    assert message.startswith("Configuration validation failed:")
    for fragment in ("#XYZ", "zigzag", "render.width", "render.gamma", "bogus"):
        assert fragment in message


def test_validate_config_requires_fields(tmp_path):
    with pytest.raises(ConfigValidationError) as excinfo:
        validate_config({"palette": []}, tmp_path / "config.json")
    assert "'source'" in str(excinfo.value)
    assert "'output_dir'" in str(excinfo.value)


def test_missing_source_file(tmp_path):
    data = {"source": {"type": "image", "path": "nope.png"}, "palette": ["#000"], "output_dir": "out"}
    with pytest.raises(ConfigValidationError, match="Source file not found"):
        validate_config(data, tmp_path / "config.json")


def test_invalid_json_reports_line(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text('{\n  "source": ,\n}', encoding="utf-8")
    with pytest.raises(ConfigValidationError, match="Line 2"):
        load_config(path)


def test_settings_from_config(tmp_path):
    data = _base_config(tmp_path)
    data["render"] = {"dither_mode": "error-diffusion-kernel", "kernel": "atkinson",
                      "reduction": "binary", "distance_space": "lab"}
    data["palette_nudge"] = {"enabled": True, "softness": 5.0}
    data["output"] = {"stages": ["reduced", "perceptual-delta"]}
    settings = settings_from_config(validate_config(data, tmp_path / "config.json"))
    assert settings.dither_mode == DitherMode.ERROR_DIFFUSION
    assert settings.error_diffusion_kernel == ErrorDiffusionKernelId.ATKINSON
    assert settings.reduction_mode == ReductionMode.BINARY
    assert settings.distance_space == ColorMode.LAB
    assert settings.palette_nudge.softness == 0.5
    assert settings.stages == (PreviewStage.REDUCED, PreviewStage.PERCEPTUAL_DELTA)
    assert settings.gamut.strengths.axis == (1.0, 1.0, 1.0)
    assert not settings.modulation.is_active


def test_gradient_interpolation_options(tmp_path):
    buffers = {}
    for interpolation in ("field", "idw", "bilinear"):
        data = _base_config(tmp_path)
        data["source"]["interpolation"] = interpolation
        data["render"] = {"width": 5, "height": 4, "gradient_mode": "rgb"}
        buffers[interpolation] = build_source_buffer(load_config(_write_config(tmp_path, data)))
    assert buffers["field"].shape == (4, 5, 3)
    assert np.allclose(buffers["field"], buffers["bilinear"])
    assert not np.allclose(buffers["idw"], buffers["bilinear"])
    assert np.allclose(buffers["idw"][0, 0], (0, 0, 0))
