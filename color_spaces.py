"""
Color-space conversions used by the dithering pipeline.

Every conversion goes through unit sRGB (channels in [0, 1]). Supported spaces:
RGB, HSL, HSV, HWB, RYB, CMY, CMYK, CIE Lab (D65), YCbCr (BT.601), OKLab, OKLCH
and three single-axis luma spaces. Unknown modes are treated as plain RGB.
"""

import math
from enum import Enum
from typing import List, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np

__all__ = [
    'ColorMode',
    'RGBColor', 'HSLVector', 'HSVVector', 'HWBVector', 'RYBVector', 'CMYVector',
    'CMYKVector', 'LabVector', 'OklabVector', 'OklchVector', 'YCbCrVector',
    'LumaVector', 'OklchConversion',
    'resolve_color_mode', 'is_hue_mode', 'is_luma_mode',
    'clamp01', 'srgb_to_linear', 'linear_to_srgb',
    'srgb_to_linear_array', 'linear_to_srgb_array',
    'rgb255_to_unit', 'rgb_unit_to_255', 'hex_to_rgb255', 'hex_to_rgb_unit',
    'rgb_unit_to_hex', 'rgb_to_vector', 'vector_to_rgb', 'rgb255_to_vector',
    'hex_to_vector', 'rgb_unit_to_oklab', 'oklab_to_linear_rgb',
    'oklch_to_srgb', 'gamut_fit_by_chroma', 'lerp_angle', 'mix_vectors',
    'mix_vectors_weighted', 'interpolate_gradient_color',
    'rgb255_array_to_oklab', 'rgb255_array_to_lab', 'rgb255_array_to_luma',
]


# -------------------- Enumerations & vector types --------------------

class ColorMode(Enum):
    RGB = "rgb"
    HSL = "hsl"
    HSV = "hsv"
    HWB = "hwb"
    RYB = "ryb"
    CMY = "cmy"
    CMYK = "cmyk"
    LAB = "lab"
    YCBCR = "ycbcr"
    OKLAB = "oklab"
    OKLCH = "oklch"
    LUMA_RGB = "luma-rgb"
    LUMA_LAB = "luma-lab"
    LUMA_OKLAB = "luma-oklab"


class RGBColor(NamedTuple):
    r: float
    g: float
    b: float


class HSLVector(NamedTuple):
    h: float
    s: float
    l: float


class HSVVector(NamedTuple):
    h: float
    s: float
    v: float


class HWBVector(NamedTuple):
    h: float
    w: float
    b: float


class RYBVector(NamedTuple):
    h: float
    s: float
    v: float


class CMYVector(NamedTuple):
    c: float
    m: float
    y: float


class CMYKVector(NamedTuple):
    c: float
    m: float
    y: float
    k: float


class LabVector(NamedTuple):
    l: float
    a: float
    b: float


class OklabVector(NamedTuple):
    L: float
    a: float
    b: float


class OklchVector(NamedTuple):
    L: float
    C: float
    h: float


class YCbCrVector(NamedTuple):
    y: float
    cb: float
    cr: float


class LumaVector(NamedTuple):
    l: float


class OklchConversion(NamedTuple):
    """Result of converting an OKLCH color to sRGB; ``rgb`` is clamped, ``in_gamut`` is not."""
    hex: str
    rgb: RGBColor
    in_gamut: bool


ColorVector = Union[RGBColor, HSLVector, HSVVector, HWBVector, RYBVector, CMYVector,
                    CMYKVector, LabVector, OklabVector, OklchVector, YCbCrVector, LumaVector]

HUE_MODES = (ColorMode.HSL, ColorMode.HSV, ColorMode.HWB, ColorMode.RYB, ColorMode.OKLCH)
LUMA_MODES = (ColorMode.LUMA_RGB, ColorMode.LUMA_LAB, ColorMode.LUMA_OKLAB)


def resolve_color_mode(mode) -> ColorMode:
    """Accept a ColorMode or its string value; anything unrecognised becomes RGB."""
    if isinstance(mode, ColorMode):
        return mode
    try:
        return ColorMode(str(mode).strip().lower())
    except ValueError:
        return ColorMode.RGB


def is_hue_mode(mode) -> bool:
    return resolve_color_mode(mode) in HUE_MODES


def is_luma_mode(mode) -> bool:
    return resolve_color_mode(mode) in LUMA_MODES


# -------------------- Constants --------------------

# CIE Lab, D65 white
LAB_WHITE = (0.95047, 1.0, 1.08883)
LAB_DELTA = 6.0 / 29.0

RGB_TO_XYZ = (
    (0.4124564, 0.3575761, 0.1804375),
    (0.2126729, 0.7151522, 0.0721750),
    (0.0193339, 0.1191920, 0.9503041),
)
XYZ_TO_RGB = (
    (3.2404542, -1.5371385, -0.4985314),
    (-0.9692660, 1.8760108, 0.0415560),
    (0.0556434, -0.2040259, 1.0572252),
)

# OKLab (Ottosson)
LINEAR_RGB_TO_LMS = (
    (0.4122214708, 0.5363325363, 0.0514459929),
    (0.2119034982, 0.6806995451, 0.1073969566),
    (0.0883024619, 0.2817188376, 0.6299787005),
)
LMS_TO_OKLAB = (
    (0.2104542553, 0.7936177850, -0.0040720468),
    (1.9779984951, -2.4285922050, 0.4505937099),
    (0.0259040371, 0.7827717662, -0.8086757660),
)
OKLAB_TO_LMS = (
    (1.0, 0.3963377774, 0.2158037573),
    (1.0, -0.1055613458, -0.0638541728),
    (1.0, -0.0894841775, -1.2914855480),
)
LMS_TO_LINEAR_RGB = (
    (4.0767416621, -3.3077115913, 0.2309699292),
    (-1.2684380046, 2.6097574011, -0.3413193965),
    (-0.0041960863, -0.7034186147, 1.7076147010),
)

# BT.601 luma and chroma scales
LUMA_WEIGHTS = (0.299, 0.587, 0.114)
YCBCR_CB_SCALE = 1.772
YCBCR_CR_SCALE = 1.402

# RYB hue wheel -> RGB hue wheel, piecewise linear
RYB_HUE_STOPS = (0.0, 60.0, 120.0, 180.0, 240.0, 300.0, 360.0)
RGB_HUE_STOPS = (0.0, 35.0, 60.0, 120.0, 195.0, 275.0, 360.0)

OKLCH_GAMUT_EPSILON = 1e-6
GAMUT_FIT_SHRINK = 0.96


# -------------------- Scalar helpers --------------------

def clamp01(value: float) -> float:
    if value != value:  # NaN
        return 0.0
    return 0.0 if value < 0.0 else 1.0 if value > 1.0 else value


def _wrap_degrees(h: float) -> float:
    h = math.fmod(h, 360.0)
    if h < 0.0:
        h += 360.0
    return 0.0 if h >= 360.0 else h


def _mat3_apply(m, x: float, y: float, z: float) -> Tuple[float, float, float]:
    return (
        m[0][0] * x + m[0][1] * y + m[0][2] * z,
        m[1][0] * x + m[1][1] * y + m[1][2] * z,
        m[2][0] * x + m[2][1] * y + m[2][2] * z,
    )


def _piecewise(value: float, xs: Sequence[float], ys: Sequence[float]) -> float:
    for i in range(1, len(xs)):
        if value <= xs[i]:
            span = xs[i] - xs[i - 1]
            t = 0.0 if span == 0 else (value - xs[i - 1]) / span
            return ys[i - 1] + (ys[i] - ys[i - 1]) * t
    return ys[-1]


def srgb_to_linear(u: float) -> float:
    if u <= 0.04045:
        return u / 12.92
    return ((u + 0.055) / 1.055) ** 2.4


def linear_to_srgb(v: float) -> float:
    if v <= 0.0031308:
        out = 12.92 * v
    else:
        out = 1.055 * (v ** (1.0 / 2.4)) - 0.055
    return clamp01(out)


def srgb_to_linear_array(c: np.ndarray) -> np.ndarray:
    c = np.asarray(c, dtype=np.float64)
    low = (c <= 0.04045)
    out = np.empty_like(c)
    out[low] = c[low] / 12.92
    out[~low] = ((c[~low] + 0.055) / 1.055) ** 2.4
    return out


def linear_to_srgb_array(c: np.ndarray) -> np.ndarray:
    c = np.asarray(c, dtype=np.float64)
    low = (c <= 0.0031308)
    out = np.empty_like(c)
    out[low] = c[low] * 12.92
    out[~low] = 1.055 * (np.maximum(c[~low], 0.0) ** (1.0 / 2.4)) - 0.055
    return np.clip(out, 0.0, 1.0)


def rgb255_to_unit(rgb) -> RGBColor:
    return RGBColor(clamp01(rgb[0] / 255.0), clamp01(rgb[1] / 255.0), clamp01(rgb[2] / 255.0))


def rgb_unit_to_255(rgb) -> RGBColor:
    """Scale a unit color to 0..255. No rounding; callers round at their sink."""
    return RGBColor(clamp01(rgb[0]) * 255.0, clamp01(rgb[1]) * 255.0, clamp01(rgb[2]) * 255.0)


def hex_to_rgb255(hex_color: str) -> Tuple[int, int, int]:
    """
    Parse "#RGB", "#RRGGBB" (hash optional) into an (r, g, b) tuple of ints.

    Raises:
        ValueError: if the string is not a 3- or 6-digit hex color
    """
    digits = hex_color.strip().lstrip('#')
    if len(digits) == 3:
        digits = ''.join(ch * 2 for ch in digits)
    if len(digits) != 6:
        raise ValueError(f"Invalid hex color: {hex_color!r}")
    return tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))


def hex_to_rgb_unit(hex_color: str) -> RGBColor:
    return rgb255_to_unit(hex_to_rgb255(hex_color))


def rgb_unit_to_hex(rgb) -> str:
    r, g, b = (int(round(clamp01(c) * 255.0)) for c in rgb)
    return f"#{r:02X}{g:02X}{b:02X}"


# -------------------- Hue-based spaces --------------------

def _rgb_hue(r: float, g: float, b: float, mx: float, delta: float) -> float:
    if delta == 0.0:
        return 0.0
    if mx == r:
        h = ((g - b) / delta) % 6.0
    elif mx == g:
        h = (b - r) / delta + 2.0
    else:
        h = (r - g) / delta + 4.0
    return _wrap_degrees(h * 60.0)


def _hue_sector_to_rgb(h: float, c: float, m: float) -> RGBColor:
    h = _wrap_degrees(h)
    x = c * (1.0 - abs((h / 60.0) % 2.0 - 1.0))
    sector = int(h // 60.0)
    if sector == 0:
        r, g, b = c, x, 0.0
    elif sector == 1:
        r, g, b = x, c, 0.0
    elif sector == 2:
        r, g, b = 0.0, c, x
    elif sector == 3:
        r, g, b = 0.0, x, c
    elif sector == 4:
        r, g, b = x, 0.0, c
    else:
        r, g, b = c, 0.0, x
    return RGBColor(r + m, g + m, b + m)


def _rgb_to_hsl(r: float, g: float, b: float) -> HSLVector:
    mx, mn = max(r, g, b), min(r, g, b)
    delta = mx - mn
    l = (mx + mn) / 2.0
    if delta == 0.0:
        return HSLVector(0.0, 0.0, l)
    s = delta / (1.0 - abs(2.0 * l - 1.0))
    return HSLVector(_rgb_hue(r, g, b, mx, delta), clamp01(s), l)


def _hsl_to_rgb(v: HSLVector) -> RGBColor:
    s, l = clamp01(v.s), clamp01(v.l)
    c = (1.0 - abs(2.0 * l - 1.0)) * s
    return _hue_sector_to_rgb(v.h, c, l - c / 2.0)


def _rgb_to_hsv(r: float, g: float, b: float) -> HSVVector:
    mx, mn = max(r, g, b), min(r, g, b)
    delta = mx - mn
    s = 0.0 if mx <= 0.0 else delta / mx
    return HSVVector(_rgb_hue(r, g, b, mx, delta), s, mx)


def _hsv_to_rgb(h: float, s: float, v: float) -> RGBColor:
    s, v = clamp01(s), clamp01(v)
    c = v * s
    return _hue_sector_to_rgb(h, c, v - c)


def _rgb_to_hwb(r: float, g: float, b: float) -> HWBVector:
    hue = _rgb_to_hsl(r, g, b).h
    return HWBVector(hue, min(r, g, b), 1.0 - max(r, g, b))


def _hwb_to_rgb(v: HWBVector) -> RGBColor:
    w, bl = clamp01(v.w), clamp01(v.b)
    total = w + bl
    if total >= 1.0:
        gray = w / total
        return RGBColor(gray, gray, gray)
    pure = _hsv_to_rgb(v.h, 1.0, 1.0)
    scale = 1.0 - w - bl
    return RGBColor(pure.r * scale + w, pure.g * scale + w, pure.b * scale + w)


def _rgb_to_ryb(r: float, g: float, b: float) -> RYBVector:
    hsv = _rgb_to_hsv(r, g, b)
    return RYBVector(_piecewise(hsv.h, RGB_HUE_STOPS, RYB_HUE_STOPS), hsv.s, hsv.v)


def _ryb_to_rgb(v: RYBVector) -> RGBColor:
    hue = _piecewise(_wrap_degrees(v.h), RYB_HUE_STOPS, RGB_HUE_STOPS)
    return _hsv_to_rgb(hue, v.s, v.v)


# -------------------- Subtractive & video spaces --------------------

def _rgb_to_cmyk(r: float, g: float, b: float) -> CMYKVector:
    k = 1.0 - max(r, g, b)
    if k >= 1.0:
        return CMYKVector(0.0, 0.0, 0.0, 1.0)
    inv = 1.0 - k
    return CMYKVector((1.0 - r - k) / inv, (1.0 - g - k) / inv, (1.0 - b - k) / inv, k)


def _cmyk_to_rgb(v: CMYKVector) -> RGBColor:
    k = clamp01(v.k)
    return RGBColor((1.0 - clamp01(v.c)) * (1.0 - k),
                    (1.0 - clamp01(v.m)) * (1.0 - k),
                    (1.0 - clamp01(v.y)) * (1.0 - k))


def _luma(r: float, g: float, b: float) -> float:
    return LUMA_WEIGHTS[0] * r + LUMA_WEIGHTS[1] * g + LUMA_WEIGHTS[2] * b


def _rgb_to_ycbcr(r: float, g: float, b: float) -> YCbCrVector:
    y = _luma(r, g, b)
    cb = (b - y) / YCBCR_CB_SCALE + 0.5
    cr = (r - y) / YCBCR_CR_SCALE + 0.5
    return YCbCrVector(y, clamp01(cb), clamp01(cr))


def _ycbcr_to_rgb(v: YCbCrVector) -> RGBColor:
    cb = v.cb - 0.5
    cr = v.cr - 0.5
    r = v.y + YCBCR_CR_SCALE * cr
    b = v.y + YCBCR_CB_SCALE * cb
    # solve the luma equation for green so the round trip is exact
    g = (v.y - LUMA_WEIGHTS[0] * r - LUMA_WEIGHTS[2] * b) / LUMA_WEIGHTS[1]
    return RGBColor(r, g, b)


# -------------------- Lab / OKLab / OKLCH --------------------

def _lab_f(t: float) -> float:
    if t > LAB_DELTA ** 3:
        return math.copysign(abs(t) ** (1.0 / 3.0), t)
    return t / (3.0 * LAB_DELTA ** 2) + 4.0 / 29.0


def _lab_f_inv(f: float) -> float:
    if f > LAB_DELTA:
        return f ** 3
    return (f - 4.0 / 29.0) * 3.0 * LAB_DELTA ** 2


def _rgb_to_lab(r: float, g: float, b: float) -> LabVector:
    x, y, z = _mat3_apply(RGB_TO_XYZ, srgb_to_linear(r), srgb_to_linear(g), srgb_to_linear(b))
    fx = _lab_f(x / LAB_WHITE[0])
    fy = _lab_f(y / LAB_WHITE[1])
    fz = _lab_f(z / LAB_WHITE[2])
    return LabVector(116.0 * fy - 16.0, 500.0 * (fx - fy), 200.0 * (fy - fz))


def _lab_to_rgb(v: LabVector) -> RGBColor:
    fy = (v.l + 16.0) / 116.0
    fx = fy + v.a / 500.0
    fz = fy - v.b / 200.0
    x = _lab_f_inv(fx) * LAB_WHITE[0]
    y = _lab_f_inv(fy) * LAB_WHITE[1]
    z = _lab_f_inv(fz) * LAB_WHITE[2]
    lr, lg, lb = _mat3_apply(XYZ_TO_RGB, x, y, z)
    return RGBColor(linear_to_srgb(lr), linear_to_srgb(lg), linear_to_srgb(lb))


def rgb_unit_to_oklab(rgb) -> OklabVector:
    l, m, s = _mat3_apply(LINEAR_RGB_TO_LMS, srgb_to_linear(rgb[0]),
                          srgb_to_linear(rgb[1]), srgb_to_linear(rgb[2]))
    l_, m_, s_ = (math.copysign(abs(c) ** (1.0 / 3.0), c) for c in (l, m, s))
    return OklabVector(*_mat3_apply(LMS_TO_OKLAB, l_, m_, s_))


def oklab_to_linear_rgb(v) -> Tuple[float, float, float]:
    """OKLab to linear-light RGB, unclamped so callers can detect out-of-gamut results."""
    l_, m_, s_ = _mat3_apply(OKLAB_TO_LMS, v[0], v[1], v[2])
    return _mat3_apply(LMS_TO_LINEAR_RGB, l_ ** 3, m_ ** 3, s_ ** 3)


def _oklab_to_rgb(v: OklabVector) -> RGBColor:
    return RGBColor(*(linear_to_srgb(c) for c in oklab_to_linear_rgb(v)))


def _oklab_to_oklch(v: OklabVector) -> OklchVector:
    c = math.hypot(v.a, v.b)
    h = _wrap_degrees(math.degrees(math.atan2(v.b, v.a))) if c > 0.0 else 0.0
    return OklchVector(v.L, c, h)


def _oklch_to_oklab(v: OklchVector) -> OklabVector:
    rad = math.radians(v.h)
    c = max(0.0, v.C)
    return OklabVector(v.L, c * math.cos(rad), c * math.sin(rad))


def oklch_to_srgb(L: float, C: float, h: float) -> OklchConversion:
    linear = oklab_to_linear_rgb(_oklch_to_oklab(OklchVector(L, C, h)))
    in_gamut = all(-OKLCH_GAMUT_EPSILON <= c <= 1.0 + OKLCH_GAMUT_EPSILON for c in linear)
    rgb = RGBColor(*(linear_to_srgb(c) for c in linear))
    return OklchConversion(rgb_unit_to_hex(rgb), rgb, in_gamut)


def gamut_fit_by_chroma(L: float, C: float, h: float,
                        max_iter: int = 48) -> Tuple[OklchVector, OklchConversion]:
    """
    Shrink chroma by a constant factor until the color fits the sRGB gamut.

    Returns the last candidate tried, which may still be out of gamut when the
    iteration budget runs out.
    """
    chroma = max(0.0, C)
    result = oklch_to_srgb(L, chroma, h)
    for _ in range(max_iter):
        if result.in_gamut:
            break
        chroma *= GAMUT_FIT_SHRINK
        result = oklch_to_srgb(L, chroma, h)
    return OklchVector(L, chroma, h), result


# -------------------- Dispatch --------------------

def rgb_to_vector(rgb, mode) -> ColorVector:
    """Convert a unit RGB triple to the vector type of ``mode``."""
    mode = resolve_color_mode(mode)
    r, g, b = float(rgb[0]), float(rgb[1]), float(rgb[2])
    if mode == ColorMode.HSL:
        return _rgb_to_hsl(r, g, b)
    if mode == ColorMode.HSV:
        return _rgb_to_hsv(r, g, b)
    if mode == ColorMode.HWB:
        return _rgb_to_hwb(r, g, b)
    if mode == ColorMode.RYB:
        return _rgb_to_ryb(r, g, b)
    if mode == ColorMode.CMY:
        return CMYVector(1.0 - r, 1.0 - g, 1.0 - b)
    if mode == ColorMode.CMYK:
        return _rgb_to_cmyk(r, g, b)
    if mode == ColorMode.LAB:
        return _rgb_to_lab(r, g, b)
    if mode == ColorMode.YCBCR:
        return _rgb_to_ycbcr(r, g, b)
    if mode == ColorMode.OKLAB:
        return rgb_unit_to_oklab((r, g, b))
    if mode == ColorMode.OKLCH:
        return _oklab_to_oklch(rgb_unit_to_oklab((r, g, b)))
    if mode == ColorMode.LUMA_RGB:
        return LumaVector(_luma(r, g, b))
    if mode == ColorMode.LUMA_LAB:
        return LumaVector(_rgb_to_lab(r, g, b).l / 100.0)
    if mode == ColorMode.LUMA_OKLAB:
        return LumaVector(rgb_unit_to_oklab((r, g, b)).L)
    return RGBColor(r, g, b)


def _vector_to_rgb_raw(vector, mode: ColorMode) -> RGBColor:
    if mode == ColorMode.HSL:
        return _hsl_to_rgb(HSLVector(*vector))
    if mode == ColorMode.HSV:
        v = HSVVector(*vector)
        return _hsv_to_rgb(v.h, v.s, v.v)
    if mode == ColorMode.HWB:
        return _hwb_to_rgb(HWBVector(*vector))
    if mode == ColorMode.RYB:
        return _ryb_to_rgb(RYBVector(*vector))
    if mode == ColorMode.CMY:
        return RGBColor(1.0 - vector[0], 1.0 - vector[1], 1.0 - vector[2])
    if mode == ColorMode.CMYK:
        return _cmyk_to_rgb(CMYKVector(*vector))
    if mode == ColorMode.LAB:
        return _lab_to_rgb(LabVector(*vector))
    if mode == ColorMode.YCBCR:
        return _ycbcr_to_rgb(YCbCrVector(*vector))
    if mode == ColorMode.OKLAB:
        return _oklab_to_rgb(OklabVector(*vector))
    if mode == ColorMode.OKLCH:
        return _oklab_to_rgb(_oklch_to_oklab(OklchVector(*vector)))
    if mode == ColorMode.LUMA_RGB:
        return RGBColor(vector[0], vector[0], vector[0])
    if mode == ColorMode.LUMA_LAB:
        return _lab_to_rgb(LabVector(vector[0] * 100.0, 0.0, 0.0))
    if mode == ColorMode.LUMA_OKLAB:
        return _oklab_to_rgb(OklabVector(vector[0], 0.0, 0.0))
    return RGBColor(vector[0], vector[1], vector[2])


def vector_to_rgb(vector, mode) -> RGBColor:
    """Convert a vector of ``mode`` back to unit RGB, clamped to [0, 1]."""
    rgb = _vector_to_rgb_raw(vector, resolve_color_mode(mode))
    return RGBColor(clamp01(rgb.r), clamp01(rgb.g), clamp01(rgb.b))


def rgb255_to_vector(rgb, mode) -> ColorVector:
    return rgb_to_vector(rgb255_to_unit(rgb), mode)


def hex_to_vector(hex_color: str, mode) -> ColorVector:
    return rgb_to_vector(hex_to_rgb_unit(hex_color), mode)


# -------------------- Mixing --------------------

def lerp_angle(a: float, b: float, t: float) -> float:
    """Interpolate between two angles in degrees along the shorter arc."""
    delta = ((((b - a) % 360.0) + 540.0) % 360.0) - 180.0
    return _wrap_degrees(a + delta * t)


def _hue_index(mode: ColorMode) -> Optional[int]:
    if mode in (ColorMode.HSL, ColorMode.HSV, ColorMode.HWB, ColorMode.RYB):
        return 0
    if mode == ColorMode.OKLCH:
        return 2
    return None


def mix_vectors(a, b, t: float, mode):
    """Blend two vectors of the same space; hue components take the shorter arc."""
    mode = resolve_color_mode(mode)
    hue_index = _hue_index(mode)
    mixed = []
    for i, (ca, cb) in enumerate(zip(a, b)):
        if i == hue_index:
            mixed.append(lerp_angle(ca, cb, t))
        else:
            mixed.append(ca + (cb - ca) * t)
    return type(a)(*mixed)


def _polar_radius(vector, mode: ColorMode) -> float:
    if mode == ColorMode.OKLCH:
        return max(0.0, vector[1])
    if mode == ColorMode.HWB:
        return max(0.0, 1.0 - vector[1] - vector[2])
    return max(0.0, vector[1])


def mix_vectors_weighted(vectors: Sequence, weights: Sequence[float], mode):
    """
    Weighted average of several vectors in one color space.

    Hue is averaged as a weighted 2D vector whose radius is the color's
    saturation (chroma for OKLCH, 1 - w - b for HWB), so gray entries do not
    drag the hue. Other components are plain weighted means.
    """
    if not vectors:
        return None
    mode = resolve_color_mode(mode)
    total = float(sum(weights))
    if total <= 0.0 or not math.isfinite(total):
        return vectors[0]
    hue_index = _hue_index(mode)
    size = len(vectors[0])
    sums = [0.0] * size
    hx = hy = 0.0
    for vector, weight in zip(vectors, weights):
        w = weight / total
        for i in range(size):
            if i != hue_index:
                sums[i] += vector[i] * w
        if hue_index is not None:
            radius = _polar_radius(vector, mode)
            rad = math.radians(vector[hue_index])
            hx += math.cos(rad) * radius * w
            hy += math.sin(rad) * radius * w
    if hue_index is not None:
        if math.hypot(hx, hy) > 1e-12:
            sums[hue_index] = _wrap_degrees(math.degrees(math.atan2(hy, hx)))
        else:
            heaviest = max(range(len(vectors)), key=lambda i: weights[i])
            sums[hue_index] = vectors[heaviest][hue_index]
    return type(vectors[0])(*sums)


def interpolate_gradient_color(corners: Sequence, u: float, v: float, mode) -> RGBColor:
    """
    Bilinear blend of four corners ordered top-left, top-right, bottom-left,
    bottom-right, mixed in ``mode``. Corners are hex strings or unit RGB
    triples; the result is 0..255 RGB (unrounded).
    """
    if len(corners) < 4:
        raise ValueError("Expected four corner colors for bilinear gradient")
    mode = resolve_color_mode(mode)
    tl, tr, bl, br = (
        rgb_to_vector(hex_to_rgb_unit(c) if isinstance(c, str) else c, mode)
        for c in corners[:4]
    )
    top = mix_vectors(tl, tr, u, mode)
    bottom = mix_vectors(bl, br, u, mode)
    return rgb_unit_to_255(vector_to_rgb(mix_vectors(top, bottom, v, mode), mode))


# -------------------- Vectorised buffer conversions --------------------

def _as_unit_array(arr: np.ndarray) -> np.ndarray:
    return np.clip(np.asarray(arr, dtype=np.float64)[..., :3] / 255.0, 0.0, 1.0)


def rgb255_array_to_oklab(arr: np.ndarray) -> np.ndarray:
    """(..., 3) array of 0..255 RGB -> (..., 3) OKLab."""
    linear = srgb_to_linear_array(_as_unit_array(arr))
    lms = linear @ np.array(LINEAR_RGB_TO_LMS).T
    return np.cbrt(lms) @ np.array(LMS_TO_OKLAB).T


def rgb255_array_to_lab(arr: np.ndarray) -> np.ndarray:
    """(..., 3) array of 0..255 RGB -> (..., 3) CIE Lab."""
    linear = srgb_to_linear_array(_as_unit_array(arr))
    xyz = (linear @ np.array(RGB_TO_XYZ).T) / np.array(LAB_WHITE)
    delta3 = LAB_DELTA ** 3
    f = np.where(xyz > delta3, np.cbrt(xyz), xyz / (3.0 * LAB_DELTA ** 2) + 4.0 / 29.0)
    return np.stack([
        116.0 * f[..., 1] - 16.0,
        500.0 * (f[..., 0] - f[..., 1]),
        200.0 * (f[..., 1] - f[..., 2]),
    ], axis=-1)


def rgb255_array_to_luma(arr: np.ndarray) -> np.ndarray:
    """(..., 3) array of 0..255 RGB -> (...) Rec.601 luma in 0..255."""
    arr = np.asarray(arr, dtype=np.float64)[..., :3]
    return arr @ np.array(LUMA_WEIGHTS)
