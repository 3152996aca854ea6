from palette_definition import normalize_hex_literal, parse_palette_definition, stringify_palette_tokens

SAMPLE = """#000 (0, 0)   // ink
#ffffff (1, 1) paper
not a color
-----
#E04040
7
"""


def test_normalize_hex_literal():
    assert normalize_hex_literal("#abc") == "#AABBCC"
    assert normalize_hex_literal("7") == "#777777"
    assert normalize_hex_literal("#12ab3F") == "#12AB3F"
    assert normalize_hex_literal("#1234") is None
    assert normalize_hex_literal("#GGGGGG") is None


def test_parse_tokens_rows_and_comments():
    result = parse_palette_definition(SAMPLE)
    assert [t.kind for t in result.tokens] == ["color", "color", "ignored", "separator", "color", "color"]
    assert result.hex_colors == ["#000000", "#FFFFFF", "#E04040", "#777777"]
    assert [len(row) for row in result.rows] == [2, 2]

    ink, paper, red, gray = result.swatches
    assert ink.comment == "ink"
    assert paper.comment == "paper"
    assert ink.position == (0.0, 0.0) and paper.position == (1.0, 1.0)
    assert red.position is None
    assert red.row_index == 1 and red.column_index == 0
    assert gray.ordinal == 3
    assert result.errors == []


def test_out_of_range_coordinates_are_clamped():
    result = parse_palette_definition("#F00 (1.5, -0.25)\n")
    assert result.swatches[0].position == (1.0, 0.0)
    assert len(result.errors) == 1
    assert result.errors[0].line_index == 0
    assert "clamped" in result.errors[0].message


def test_empty_rows_are_dropped():
    result = parse_palette_definition("-----\n-----\n#000\n-----\n")
    assert len(result.rows) == 1
    assert result.hex_colors == ["#000000"]


def test_stringify_reproduces_input():
    result = parse_palette_definition(SAMPLE)
    assert stringify_palette_tokens(result.tokens) == SAMPLE
    assert parse_palette_definition("").swatches == []
