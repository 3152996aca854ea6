"""
Tokenizer for free-text palette definitions.

One token per line:
  * a color literal (``#RGB``, ``#RRGGBB``, or a single hex digit for a gray),
    optionally followed by a gradient coordinate ``(x, y)`` and a comment;
  * a separator of five or more dashes, which starts a new swatch row;
  * anything else, which is kept verbatim but ignored.

Example::

    #000 (0, 0)   // ink
    #FFF (1, 1)   paper
    -----
    #E04040
"""

import math
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

__all__ = [
    'PaletteToken',
    'PaletteSwatch',
    'PaletteParseError',
    'PaletteParseResult',
    'parse_palette_definition',
    'stringify_palette_tokens',
    'normalize_hex_literal',
]

COLOR_LITERAL = re.compile(r'^#?(?:[0-9a-fA-F]{1}|[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$')
COORDINATE_LITERAL = re.compile(
    r'^\(\s*([+-]?(?:\d+(?:\.\d+)?|\.\d+))\s*,\s*([+-]?(?:\d+(?:\.\d+)?|\.\d+))\s*\)(?:\s+(.*))?$'
)
SEPARATOR_LITERAL = re.compile(r'^-{5,}$')
COLOR_LINE = re.compile(r'^(\S+)(?:\s+(.*))?$')


@dataclass
class PaletteToken:
    """One line of the definition. ``raw`` keeps the trailing newline."""
    kind: str  # "color", "separator" or "ignored"
    raw: str
    line: str
    line_index: int
    hex: Optional[str] = None
    comment: str = ""
    coordinate: Optional[Tuple[float, float]] = None


@dataclass
class PaletteSwatch:
    hex: str
    comment: str
    row_index: int
    column_index: int
    ordinal: int
    line_index: int
    position: Optional[Tuple[float, float]] = None


@dataclass
class PaletteParseError:
    line_index: int
    message: str


@dataclass
class PaletteParseResult:
    text: str
    tokens: List[PaletteToken] = field(default_factory=list)
    rows: List[List[PaletteSwatch]] = field(default_factory=list)
    swatches: List[PaletteSwatch] = field(default_factory=list)
    errors: List[PaletteParseError] = field(default_factory=list)

    @property
    def hex_colors(self) -> List[str]:
        return [swatch.hex for swatch in self.swatches]


def normalize_hex_literal(literal: str) -> Optional[str]:
    """Expand a 1-, 3- or 6-digit literal to ``#RRGGBB``; None if it is not one."""
    digits = literal[1:] if literal.startswith('#') else literal
    if len(digits) == 1:
        digits = digits * 6
    elif len(digits) == 3:
        digits = ''.join(ch * 2 for ch in digits)
    elif len(digits) != 6:
        return None
    if not re.fullmatch(r'[0-9a-fA-F]{6}', digits):
        return None
    return '#' + digits.upper()


def _clean_comment(text: str) -> str:
    text = text.strip()
    if text.startswith('//'):
        text = text[2:].strip()
    return text


def _split_remainder(remainder: Optional[str]) -> Tuple[Optional[Tuple[float, float]], str]:
    if not remainder:
        return None, ""
    trimmed = remainder.strip()
    if not trimmed.startswith('('):
        return None, _clean_comment(trimmed)
    match = COORDINATE_LITERAL.match(trimmed)
    if not match:
        return None, _clean_comment(trimmed)
    x, y = float(match.group(1)), float(match.group(2))
    coordinate = (x, y) if math.isfinite(x) and math.isfinite(y) else None
    return coordinate, _clean_comment(match.group(3) or "")


def _tokenize_line(raw: str, line_index: int) -> PaletteToken:
    line = raw.rstrip('\r\n')
    body = line.lstrip()

    if body and SEPARATOR_LITERAL.match(body.strip()):
        return PaletteToken(kind='separator', raw=raw, line=line, line_index=line_index)

    match = COLOR_LINE.match(body)
    if match and COLOR_LITERAL.match(match.group(1)):
        hex_value = normalize_hex_literal(match.group(1))
        if hex_value:
            coordinate, comment = _split_remainder(match.group(2))
            return PaletteToken(kind='color', raw=raw, line=line, line_index=line_index,
                                hex=hex_value, comment=comment, coordinate=coordinate)

    return PaletteToken(kind='ignored', raw=raw, line=line, line_index=line_index)


def _normalize_coordinate(token: PaletteToken,
                          errors: List[PaletteParseError]) -> Optional[Tuple[float, float]]:
    if token.coordinate is None:
        return None
    x, y = token.coordinate
    cx, cy = min(1.0, max(0.0, x)), min(1.0, max(0.0, y))
    if cx != x or cy != y:
        errors.append(PaletteParseError(
            line_index=token.line_index,
            message="Gradient coordinates must be between 0 and 1; values were clamped.",
        ))
    return (cx, cy)


def parse_palette_definition(text: str) -> PaletteParseResult:
    """
    Parse palette text into tokens, swatches and rows. Never raises; coordinate
    problems are reported in ``errors``. Empty rows are dropped.
    """
    result = PaletteParseResult(text=text or "")
    if not text:
        return result

    result.tokens = [_tokenize_line(raw, i) for i, raw in enumerate(text.splitlines(keepends=True))]

    rows: List[List[PaletteSwatch]] = [[]]
    ordinal = 0
    for token in result.tokens:
        if token.kind == 'separator':
            rows.append([])
            continue
        if token.kind != 'color':
            continue
        row = rows[-1]
        swatch = PaletteSwatch(
            hex=token.hex,
            comment=token.comment,
            row_index=len(rows) - 1,
            column_index=len(row),
            ordinal=ordinal,
            line_index=token.line_index,
            position=_normalize_coordinate(token, result.errors),
        )
        row.append(swatch)
        result.swatches.append(swatch)
        ordinal += 1

    result.rows = [row for row in rows if row]
    return result


def stringify_palette_tokens(tokens: List[PaletteToken]) -> str:
    """Concatenate raw token text; reproduces the parsed input exactly."""
    return ''.join(token.raw for token in tokens)
