"""
Utility functions for the dither lab: hex colors, palette files and image I/O.
"""

import logging
import os
from typing import Dict, List, Optional, Tuple

import numpy as np
from PIL import Image, ImageOps

from color_spaces import hex_to_rgb255, rgb_unit_to_hex

__all__ = [
    'SCALE_MODES',
    'hex_to_rgb',
    'rgb_to_hex',
    'palette_from_hex_list',
    'load_palette_text',
    'compute_fit_dimensions',
    'validate_image_file',
    'get_image_info',
    'ensure_rgb',
    'load_image_rgb',
    'save_stage_png',
]

logger = logging.getLogger(__name__)

SCALE_MODES = ('cover', 'contain', 'stretch', 'none')
IMAGE_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.gif', '.bmp', '.tiff', '.webp'}


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    """
    Convert hex color string to RGB tuple.

    Args:
        hex_color: Hex string like "#FF0000", "FF0000" or "#F00"

    Returns:
        RGB tuple (r, g, b)
    """
    r, g, b = hex_to_rgb255(hex_color)
    return int(r), int(g), int(b)


def rgb_to_hex(rgb: Tuple[int, int, int]) -> str:
    """Convert an 8-bit RGB tuple to an uppercase "#RRGGBB" string."""
    return rgb_unit_to_hex(tuple(c / 255.0 for c in rgb[:3]))


def palette_from_hex_list(hex_list: List[str]) -> List[Tuple[int, int, int]]:
    return [hex_to_rgb(h) for h in hex_list]


def load_palette_text(filepath: str) -> str:
    """Read a palette definition file (one color per line)."""
    with open(filepath, 'r', encoding='utf-8') as f:
        return f.read()


def compute_fit_dimensions(orig_w: int, orig_h: int, max_size: int) -> Tuple[int, int]:
    """
    Scale (orig_w, orig_h) so the larger side is at most max_size, keeping
    the aspect ratio. Images already small enough are left alone.
    """
    if max_size <= 0 or max(orig_w, orig_h) <= max_size:
        return orig_w, orig_h
    if orig_w >= orig_h:
        target_w = max_size
        target_h = max(1, int(round(orig_h * max_size / orig_w)))
    else:
        target_h = max_size
        target_w = max(1, int(round(orig_w * max_size / orig_h)))
    return target_w, target_h


def validate_image_file(filepath: str) -> bool:
    """
    Check if file is a valid image file.

    Args:
        filepath: Path to image file

    Returns:
        True if the extension is a known image type and the file exists
    """
    ext = os.path.splitext(filepath)[1].lower()
    return ext in IMAGE_EXTENSIONS and os.path.exists(filepath)


def get_image_info(filepath: str) -> Optional[Dict]:
    """
    Get basic image information.

    Returns:
        Dictionary with width, height, mode, format; None if unreadable
    """
    try:
        with Image.open(filepath) as img:
            return {
                'width': img.width,
                'height': img.height,
                'mode': img.mode,
                'format': img.format
            }
    except OSError as e:
        logger.error(f"Error getting image info: {e}")
        return None


def ensure_rgb(image: Image.Image) -> Image.Image:
    """
    Ensure image is in RGB mode. Transparent pixels are composited over black.
    """
    if image.mode == 'RGB':
        return image
    if image.mode in ('RGBA', 'LA') or (image.mode == 'P' and 'transparency' in image.info):
        rgba = image.convert('RGBA')
        background = Image.new('RGBA', rgba.size, (0, 0, 0, 255))
        return Image.alpha_composite(background, rgba).convert('RGB')
    return image.convert('RGB')


def _scale_image(image: Image.Image, width: int, height: int, scale_mode: str) -> Image.Image:
    if scale_mode == 'cover':
        return ImageOps.fit(image, (width, height), Image.Resampling.LANCZOS)
    if scale_mode == 'contain':
        return ImageOps.pad(image, (width, height), Image.Resampling.LANCZOS, color=(0, 0, 0))
    if scale_mode == 'stretch':
        return image.resize((width, height), Image.Resampling.LANCZOS)
    # none: centre at native size, cropping or padding with black
    canvas = Image.new('RGB', (width, height), (0, 0, 0))
    canvas.paste(image, ((width - image.width) // 2, (height - image.height) // 2))
    return canvas


def load_image_rgb(filepath: str, width: Optional[int] = None, height: Optional[int] = None,
                   scale_mode: str = 'cover') -> np.ndarray:
    """
    Load an image as an (H, W, 3) float array of 0..255 values.

    Args:
        filepath: Path to image file
        width: Target width; None keeps the image's own size
        height: Target height; None keeps the image's own size
        scale_mode: One of cover, contain, stretch, none

    Returns:
        float64 array of shape (height, width, 3)
    """
    if scale_mode not in SCALE_MODES:
        raise ValueError(f"Unknown scale mode '{scale_mode}', expected one of {', '.join(SCALE_MODES)}")
    with Image.open(filepath) as img:
        image = ensure_rgb(img.copy())
    if width and height and (image.width, image.height) != (width, height):
        logger.debug(f"Scaling {image.width}x{image.height} -> {width}x{height} ({scale_mode})")
        image = _scale_image(image, width, height, scale_mode)
    return np.asarray(image, dtype=np.float64)


def save_stage_png(stage: np.ndarray, filepath: str):
    """Save an (H, W, 4) uint8 stage buffer as a PNG, creating the directory."""
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)
    Image.fromarray(np.ascontiguousarray(stage, dtype=np.uint8), 'RGBA').save(filepath, format='PNG')
