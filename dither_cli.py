#!/usr/bin/env python3
"""
CLI module for Dither Lab - Command-Line Interface

Renders dithering previews from a JSON config: load an image or build a
gradient, run the palette-reduction pipeline, write one PNG per preview stage
and report perceptual similarity and palette usage. Uses Rich for terminal
output.
"""

import sys
import logging
import argparse
import json
from pathlib import Path
from typing import Optional, List, Dict, Any

import numpy as np

# Rich imports for terminal output
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.panel import Panel
from rich.table import Table

# Local imports
from color_spaces import ColorMode, hex_to_rgb255, interpolate_gradient_color
from config_manager import ConfigManager
from dithering_lib import DitherMode, ErrorDiffusionKernelId, get_mode_parameters
from gamut_transform import GamutStrengths
from gradient_field import GradientSampling, build_gradient_field, render_gradient_field, resolve_control_points
from palette_definition import parse_palette_definition
from palette_distance import PaletteGravityParams, PaletteModulationParams, ReductionMode
from render_pipeline import GamutFitSettings, PreviewStage, RenderResult, RenderSettings, render_dither_preview
from utils import SCALE_MODES, load_image_rgb, load_palette_text, rgb_to_hex, save_stage_png


# Initialize Rich console
console = Console()

# Logger instance
logger = logging.getLogger('dither_lab')


def setup_logging(verbose: bool = False, quiet: bool = False, log_file: Optional[str] = None):
    """
    Setup logging with Rich handler for terminal output.

    Args:
        verbose: Enable verbose (DEBUG) logging
        quiet: Suppress all but ERROR messages
        log_file: Optional path to log file
    """
    global logger

    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    handlers = []

    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=True,
        rich_tracebacks=True
    )
    handlers.append(rich_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers
    )

    logger = logging.getLogger('dither_lab')
    logger.setLevel(level)

    return logger


class CLIProgressCallback:
    """
    Rich progress bar usable as the render pipeline's
    ``progress_callback(fraction, message)``.
    """

    def __init__(self, description: str = "Rendering..."):
        self.description = description
        self.progress = None
        self.task = None

    def __enter__(self):
        """Setup progress bar."""
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console
        )
        self.progress.__enter__()
        self.task = self.progress.add_task(self.description, total=100)
        return self

    def __exit__(self, *args):
        """Cleanup progress bar."""
        if self.progress:
            self.progress.__exit__(*args)

    def __call__(self, fraction: float, message: str):
        self.update(fraction, message)

    def update(self, fraction: float, message: str):
        """
        Update progress bar.

        Args:
            fraction: Progress fraction (0.0 to 1.0)
            message: Status message
        """
        if self.progress and self.task is not None:
            self.progress.update(self.task, completed=fraction * 100, description=message)

    def finish(self):
        """Mark as complete."""
        if self.progress and self.task is not None:
            self.progress.update(self.task, completed=100, description="Complete!")


# ==================== Config Schema & Validation ====================

VALID_SOURCE_TYPES = ["image", "gradient"]
VALID_GRADIENT_INTERPOLATIONS = ["field", "idw", "bilinear"]
VALID_DITHER_MODES = [mode.value for mode in DitherMode]
VALID_KERNELS = [kernel.value for kernel in ErrorDiffusionKernelId]
VALID_REDUCTION_MODES = [mode.value for mode in ReductionMode]
VALID_COLOR_SPACES = [mode.value for mode in ColorMode]
VALID_STAGES = [stage.value for stage in PreviewStage]


class ConfigValidationError(Exception):
    """Raised when config validation fails."""
    pass


def _check_choice(errors: List[str], section: Dict[str, Any], name: str, key: str, valid: List[str]):
    value = section.get(key)
    if value not in valid:
        errors.append(f"Invalid {name}.{key}: '{value}'. Must be one of: {valid}")


def _check_number(errors: List[str], section: Dict[str, Any], name: str, key: str,
                  minimum: Optional[float] = None, maximum: Optional[float] = None, integer: bool = False):
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or (integer and not isinstance(value, int)):
        errors.append(f"'{name}.{key}' must be {'an integer' if integer else 'a number'}")
        return
    if minimum is not None and value < minimum:
        errors.append(f"'{name}.{key}' must be >= {minimum}")
    if maximum is not None and value > maximum:
        errors.append(f"'{name}.{key}' must be <= {maximum}")


def _resolve_path(value: str, config_dir: Path) -> str:
    path = Path(value)
    if not path.is_absolute():
        path = (config_dir / path).resolve()
    return str(path)


def validate_config(config: Dict[str, Any], config_path: Path) -> Dict[str, Any]:
    """
    Validate configuration and return it normalized: every optional section
    filled from ConfigManager defaults and paths resolved relative to the
    config file.

    Raises:
        ConfigValidationError: If validation fails
    """
    if not isinstance(config, dict):
        raise ConfigValidationError("Configuration must be a JSON object")

    errors = []

    for field_name in ("source", "palette", "output_dir"):
        if field_name not in config:
            errors.append(f"Missing required field: '{field_name}'")

    config = ConfigManager.with_defaults(config)
    for section in ("render", "gamut", "palette_nudge", "modulation", "masking", "perceptual", "output"):
        if not isinstance(config[section], dict):
            errors.append(f"'{section}' must be an object/dictionary")
    if errors:
        raise ConfigValidationError("Configuration validation failed:\n" + "\n".join(f"  • {e}" for e in errors))

    # Source
    source = config["source"]
    if not isinstance(source, dict):
        errors.append("'source' must be an object/dictionary")
    else:
        source_type = source.get("type", "image")
        if source_type not in VALID_SOURCE_TYPES:
            errors.append(f"Invalid source.type: '{source_type}'. Must be one of: {VALID_SOURCE_TYPES}")
        elif source_type == "image" and not source.get("path"):
            errors.append("Image sources need 'source.path'")
        elif source_type == "gradient":
            if not source.get("path") and not source.get("text"):
                errors.append("Gradient sources need 'source.path' or 'source.text'")
            interpolation = source.get("interpolation", "field")
            if interpolation not in VALID_GRADIENT_INTERPOLATIONS:
                errors.append(f"Invalid source.interpolation: '{interpolation}'. "
                              f"Must be one of: {VALID_GRADIENT_INTERPOLATIONS}")

    # Palette: list of hex strings or a palette definition file
    palette = config["palette"]
    if isinstance(palette, list):
        for entry in palette:
            try:
                hex_to_rgb255(str(entry))
            except ValueError:
                errors.append(f"Invalid palette color: '{entry}'")
    elif not isinstance(palette, str):
        errors.append("'palette' must be a list of hex colors or a path to a palette file")

    render = config["render"]
    _check_number(errors, render, "render", "width", minimum=1, integer=True)
    _check_number(errors, render, "render", "height", minimum=1, integer=True)
    _check_choice(errors, render, "render", "scale_mode", list(SCALE_MODES))
    _check_choice(errors, render, "render", "gradient_mode", VALID_COLOR_SPACES)
    _check_choice(errors, render, "render", "dither_mode", VALID_DITHER_MODES)
    _check_number(errors, render, "render", "dither_strength", minimum=0)
    _check_number(errors, render, "render", "seed", minimum=0, integer=True)
    _check_choice(errors, render, "render", "kernel", VALID_KERNELS)
    _check_number(errors, render, "render", "voronoi_cells", minimum=1, maximum=64, integer=True)
    _check_number(errors, render, "render", "voronoi_jitter", minimum=0, maximum=1)
    _check_choice(errors, render, "render", "reduction", VALID_REDUCTION_MODES)
    _check_number(errors, render, "render", "binary_threshold", minimum=0, maximum=255)
    _check_choice(errors, render, "render", "distance_space", VALID_COLOR_SPACES)
    _check_number(errors, render, "render", "gamma", minimum=0)

    gamut = config["gamut"]
    _check_choice(errors, gamut, "gamut", "color_space", VALID_COLOR_SPACES)
    for key in ("overall", "translation", "rotation"):
        _check_number(errors, gamut, "gamut", key, minimum=0, maximum=1)
    axis = gamut.get("axis")
    if not isinstance(axis, list) or len(axis) != 3 or not all(
            isinstance(a, (int, float)) and not isinstance(a, bool) for a in axis):
        errors.append("'gamut.axis' must be a list of three numbers")
    _check_number(errors, gamut, "gamut", "max_sample_points", minimum=1, integer=True)

    nudge = config["palette_nudge"]
    for key in ("softness", "lightness_strength", "chroma_strength", "ambiguity_boost"):
        _check_number(errors, nudge, "palette_nudge", key, minimum=0)

    modulation = config["modulation"]
    _check_number(errors, modulation, "modulation", "error_normalizer", minimum=0)
    for key in ("error_exponent", "ambiguity_exponent"):
        _check_number(errors, modulation, "modulation", key, minimum=0)
    for key in ("error_bias", "ambiguity_bias"):
        _check_number(errors, modulation, "modulation", key, minimum=0, maximum=1)

    _check_number(errors, config["masking"], "masking", "strength", minimum=0, maximum=1)
    _check_number(errors, config["perceptual"], "perceptual", "blur_radius", minimum=0)
    _check_choice(errors, config["perceptual"], "perceptual", "distance_space", VALID_COLOR_SPACES)

    stages = config["output"].get("stages")
    if not isinstance(stages, list) or not stages:
        errors.append("'output.stages' must be a non-empty list")
    else:
        for stage in stages:
            if stage not in VALID_STAGES:
                errors.append(f"Invalid output stage: '{stage}'. Must be one of: {VALID_STAGES}")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  • {e}" for e in errors)
        raise ConfigValidationError(error_msg)

    # Normalize paths (resolve relative to config file)
    config_dir = config_path.parent
    source.setdefault("type", "image")
    source.setdefault("interpolation", "field")
    if source.get("path"):
        source["path"] = _resolve_path(source["path"], config_dir)
        if not Path(source["path"]).exists():
            raise ConfigValidationError(f"Source file not found: {source['path']}")
    if isinstance(palette, str):
        config["palette"] = _resolve_path(palette, config_dir)
        if not Path(config["palette"]).exists():
            raise ConfigValidationError(f"Palette file not found: {config['palette']}")
    config["output_dir"] = _resolve_path(config["output_dir"], config_dir)

    return config


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load and validate configuration from JSON file.

    Raises:
        ConfigValidationError: If validation fails
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigValidationError(f"Invalid JSON in config file:\n  Line {e.lineno}: {e.msg}")
    except OSError as e:
        raise ConfigValidationError(f"Failed to load config file: {e}")

    return validate_config(config, config_path)


def settings_from_config(config: Dict[str, Any]) -> RenderSettings:
    """Turn a validated config into pipeline settings."""
    render = config["render"]
    gamut = config["gamut"]
    nudge = config["palette_nudge"]
    modulation = config["modulation"]

    palette_nudge = None
    if nudge.get("enabled"):
        palette_nudge = PaletteGravityParams(
            softness=float(nudge["softness"]),
            lightness_strength=float(nudge["lightness_strength"]),
            chroma_strength=float(nudge["chroma_strength"]),
            ambiguity_boost=float(nudge["ambiguity_boost"]),
        ).normalized()

    return RenderSettings(
        dither_mode=DitherMode(render["dither_mode"]),
        dither_strength=float(render["dither_strength"]),
        dither_seed=int(render["seed"]),
        error_diffusion_kernel=ErrorDiffusionKernelId(render["kernel"]),
        voronoi_cells=int(render["voronoi_cells"]),
        voronoi_jitter=float(render["voronoi_jitter"]),
        reduction_mode=ReductionMode(render["reduction"]),
        binary_threshold=float(render["binary_threshold"]),
        distance_space=ColorMode(render["distance_space"]),
        gamma=float(render["gamma"]),
        gamut=GamutFitSettings(
            enabled=bool(gamut["enabled"]),
            color_space=ColorMode(gamut["color_space"]),
            strengths=GamutStrengths(
                overall=float(gamut["overall"]),
                translation=float(gamut["translation"]),
                rotation=float(gamut["rotation"]),
                axis=tuple(float(a) for a in gamut["axis"]),
            ),
            max_sample_points=int(gamut["max_sample_points"]),
        ),
        palette_nudge=palette_nudge,
        modulation=PaletteModulationParams(
            error_enabled=bool(modulation["error_enabled"]),
            error_normalizer=float(modulation["error_normalizer"]),
            error_exponent=float(modulation["error_exponent"]),
            error_bias=float(modulation["error_bias"]),
            ambiguity_enabled=bool(modulation["ambiguity_enabled"]),
            ambiguity_exponent=float(modulation["ambiguity_exponent"]),
            ambiguity_bias=float(modulation["ambiguity_bias"]),
        ),
        dither_masking_strength=float(config["masking"]["strength"]),
        perceptual_blur_radius=float(config["perceptual"]["blur_radius"]),
        perceptual_distance_space=ColorMode(config["perceptual"]["distance_space"]),
        stages=tuple(PreviewStage(s) for s in config["output"]["stages"]),
    )


# ==================== Sources & Palette ====================

def load_palette_from_config(config: Dict[str, Any]) -> List[str]:
    """Hex colors of the reduction palette, in file or list order."""
    palette = config["palette"]
    if isinstance(palette, list):
        return [str(entry) for entry in palette]

    parsed = parse_palette_definition(load_palette_text(palette))
    for error in parsed.errors:
        logger.warning(f"Palette line {error.line_index + 1}: {error.message}")
    logger.info(f"Loaded palette: [cyan]{Path(palette).name}[/] ({len(parsed.hex_colors)} colors)")
    return parsed.hex_colors


def render_corner_gradient(corners: List[str], width: int, height: int, mode) -> np.ndarray:
    """Bilinear four-corner gradient as an (height, width, 3) float buffer."""
    out = np.zeros((height, width, 3), dtype=np.float64)
    for y in range(height):
        v = y / (height - 1) if height > 1 else 0.0
        for x in range(width):
            u = x / (width - 1) if width > 1 else 0.0
            out[y, x] = interpolate_gradient_color(corners, u, v, mode)
    return out


def build_source_buffer(config: Dict[str, Any]) -> np.ndarray:
    """Load the image or rasterise the gradient described by ``config['source']``."""
    source = config["source"]
    render = config["render"]
    width, height = render["width"], render["height"]

    if source["type"] == "image":
        logger.info(f"Loading image: [cyan]{Path(source['path']).name}[/]")
        return load_image_rgb(source["path"], width, height, render["scale_mode"])

    text = source.get("text") or load_palette_text(source["path"])
    parsed = parse_palette_definition(text)
    for error in parsed.errors:
        logger.warning(f"Gradient line {error.line_index + 1}: {error.message}")
    mode = ColorMode(render["gradient_mode"])

    if source["interpolation"] == "bilinear":
        logger.info(f"Building bilinear gradient in [cyan]{mode.value}[/]")
        return render_corner_gradient(parsed.hex_colors, width, height, mode)

    points = resolve_control_points(parsed.swatches)
    sampling = GradientSampling.IDW if source["interpolation"] == "idw" else GradientSampling.LAYERED
    logger.info(f"Building gradient field: [cyan]{len(points)}[/] points, "
                f"[cyan]{sampling.value}[/] sampling in [cyan]{mode.value}[/]")
    return render_gradient_field(build_gradient_field(points, mode, sampling), width, height)


# ==================== Output ====================

def write_stage_images(result: RenderResult, output_dir: Path, prefix: str) -> List[Path]:
    written = []
    for stage, buffer in result.stages.items():
        path = output_dir / f"{prefix}-{stage.value}.png"
        save_stage_png(buffer, str(path))
        logger.debug(f"Wrote {path}")
        written.append(path)
    return written


def show_metrics(result: RenderResult, palette: List[str]):
    """Print perceptual similarity and palette usage tables."""
    table = Table(title="Render Metrics", border_style="cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Size", f"{result.width}x{result.height}")
    table.add_row("Gamut fit", "active" if result.gamut_transform.is_active else "off")
    if result.perceptual is not None:
        table.add_row("Perceptual score", f"{result.perceptual.score:.2f}")
        table.add_row("Mean ΔE", f"{result.perceptual.mean_delta:.4f}")
        table.add_row("Max ΔE", f"{result.perceptual.max_delta:.4f}")
    console.print(table)

    total = int(result.palette_usage.sum())
    if not palette or total == 0:
        return
    usage = Table(title="Palette Usage", border_style="cyan")
    usage.add_column("#", justify="right")
    usage.add_column("Color")
    usage.add_column("Hex")
    usage.add_column("Pixels", justify="right")
    usage.add_column("Share", justify="right")
    for index, count in enumerate(result.palette_usage):
        hex_color = rgb_to_hex(hex_to_rgb255(palette[index]))
        usage.add_row(str(index), f"[on {hex_color}]      [/]", hex_color,
                      str(int(count)), f"{100.0 * count / total:.1f}%")
    console.print(usage)


def run_render(config: Dict[str, Any]) -> bool:
    """
    Render every configured preview stage and write them to disk.

    Returns:
        True if successful, False otherwise
    """
    try:
        settings = settings_from_config(config)
        palette = load_palette_from_config(config)
        source = build_source_buffer(config)
        height, width = source.shape[:2]
        logger.info(f"Source size: [cyan]{width}x{height}[/]")

        with CLIProgressCallback() as progress:
            result = render_dither_preview(source, palette, settings, progress_callback=progress)
            progress.finish()
        logger.info("[green]✓[/] Render complete")

        output_dir = Path(config["output_dir"])
        written = write_stage_images(result, output_dir, config["output"]["prefix"])
        logger.info(f"[bold green]✓ Wrote {len(written)} stage image(s)[/] to [cyan]{output_dir}[/]")

        show_metrics(result, palette)
        return True

    except (OSError, ValueError) as e:
        logger.error(f"Failed to render: {e}", exc_info=True)
        return False


def show_banner():
    """Display application banner."""
    banner = """
[bold cyan]╔═══════════════════════════════════════╗[/]
[bold cyan]║[/]      [bold white]Dither Lab CLI[/] [dim]- v1.0[/]            [bold cyan]║[/]
[bold cyan]║[/]  Dithering & Palette Reduction Lab   [bold cyan]║[/]
[bold cyan]╚═══════════════════════════════════════╝[/]
"""
    console.print(banner)


def show_help():
    """Display detailed help information."""
    help_text = """
[bold cyan]Dither Lab CLI - Usage[/]

[bold]Basic Usage:[/]
  dither-lab <config.json>        Render with JSON config
  dither-lab --help               Show this help
  dither-lab --example-config     Generate example config

[bold]Options:[/]
  --verbose, -v     Enable verbose output
  --quiet, -q       Suppress all but error messages
  --log-file FILE   Write log to file

[bold]Config File Format:[/]
  JSON file naming a source (image or gradient), a palette and an output
  directory. Omitted sections take their defaults.
  Use --example-config to generate a template.

[bold]Available Dither Modes:[/]
"""

    console.print(help_text)

    for mode in DitherMode:
        console.print(f"    • [cyan]{mode.value}[/] [dim]- {mode.description}[/]")
        params = get_mode_parameters(mode)
        if params:
            for name, info in params.items():
                console.print(f"        [yellow]{name}[/] ({info['type']}, default {info['default']}): "
                              f"{info['description']}")

    console.print("\n  [bold]Error Diffusion Kernels:[/]")
    for kernel in ErrorDiffusionKernelId:
        console.print(f"    • [cyan]{kernel.value}[/]")

    console.print("\n  [bold]Preview Stages:[/]")
    console.print("    " + ", ".join(f"[cyan]{stage}[/]" for stage in VALID_STAGES))
    console.print()


def generate_example_config():
    """Generate and print an example configuration file."""
    example = {
        "_comment": "Dither Lab CLI Configuration",
        "source": {
            "_comment_type": "Options: image (needs path), gradient (path or text of a palette definition)",
            "_comment_interpolation": "Gradients only: field (edges, then triangles, then IDW), idw, bilinear",
            "type": "image",
            "path": "path/to/input.png"
        },
        "_comment_palette": "List of hex colors, or a path to a palette definition file",
        "palette": ["#000000", "#1D2B53", "#7E2553", "#008751", "#AB5236", "#FFF1E8"],
        "output_dir": "out",
        "render": ConfigManager.DEFAULT_CONFIG["render"],
        "gamut": {"enabled": True, "color_space": "oklab", "rotation": 0.5},
        "output": {"prefix": "preview", "stages": ["source", "gamut", "reduced", "perceptual-delta"]}
    }

    example_json = json.dumps(example, indent=4)

    console.print("\n[bold cyan]Example Configuration:[/]\n")
    console.print(Panel(example_json, title="config.json", border_style="cyan"))
    console.print("\n[dim]Save this to a .json file and modify as needed.[/]\n")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Dither Lab CLI - Dithering & Palette Reduction Lab",
        add_help=False  # We'll handle help ourselves
    )

    parser.add_argument('config', nargs='?', help='Path to JSON configuration file')
    parser.add_argument('--help', '-h', action='store_true', help='Show help')
    parser.add_argument('--example-config', action='store_true', help='Generate example config')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose output')
    parser.add_argument('--quiet', '-q', action='store_true', help='Quiet mode (errors only)')
    parser.add_argument('--log-file', type=str, help='Log to file')

    args = parser.parse_args()

    # Handle special commands first (before logging setup)
    if args.help:
        show_banner()
        show_help()
        sys.exit(0)

    if args.example_config:
        show_banner()
        generate_example_config()
        sys.exit(0)

    setup_logging(verbose=args.verbose, quiet=args.quiet, log_file=args.log_file)

    if not args.quiet:
        show_banner()

    if not args.config:
        console.print("[bold red]Error:[/] No configuration file specified.\n")
        console.print("Usage: dither-lab <config.json>")
        console.print("       dither-lab --help\n")
        sys.exit(1)

    config_path = Path(args.config)
    if not config_path.exists():
        logger.error(f"Configuration file not found: {config_path}")
        sys.exit(1)

    logger.info(f"Loading configuration from: [cyan]{config_path}[/]")

    try:
        config = load_config(config_path)
    except ConfigValidationError as e:
        logger.error(f"[bold red]{e}[/]")
        sys.exit(1)

    logger.info("[green]✓[/] Configuration validated")

    render = config["render"]
    logger.info(f"Source:    [cyan]{config['source']['type']}[/]")
    logger.info(f"Output:    [cyan]{config['output_dir']}[/]")
    logger.info(f"Dithering: [yellow]{render['dither_mode']}[/] (strength={render['dither_strength']})")
    logger.info(f"Reduction: [yellow]{render['reduction']}[/] in {render['distance_space']}")
    if config["gamut"]["enabled"]:
        logger.info(f"Gamut fit: [yellow]{config['gamut']['color_space']}[/]")
    else:
        logger.info("Gamut fit: [dim]disabled[/]")

    logger.info("")

    if run_render(config):
        logger.info("")
        logger.info("[bold green]✓ Processing complete![/]")
        sys.exit(0)
    else:
        logger.error("")
        logger.error("[bold red]✗ Processing failed![/]")
        sys.exit(1)


if __name__ == "__main__":
    main()
