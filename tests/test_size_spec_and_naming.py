"""尺寸描述解析与文件名组合。"""

from __future__ import annotations

import pytest

from image_variants.core.naming import compose_file_name
from image_variants.core.size_spec import (
    AspectRatio,
    Dimension,
    SizeSpecKind,
    Square,
    parse_size_spec,
    parse_specification,
    round_half_away_from_zero,
)


def test_square_skips_invalid_tokens() -> None:
    assert parse_size_spec(SizeSpecKind.SQUARE, "16,32,foo,64") == [(16, 16), (32, 32), (64, 64)]


def test_square_trims_and_drops_empty_and_non_positive_tokens() -> None:
    assert parse_size_spec("square", " 8 , ,16 ,0,-4,1.5,") == [(8, 8), (16, 16)]


def test_square_with_no_valid_token_is_empty() -> None:
    assert parse_size_spec("square", "foo, bar") == []
    assert parse_size_spec("square", "") == []


def test_oversized_integers_are_invalid_tokens() -> None:
    assert parse_size_spec("square", "9" * 5000) == []
    assert parse_size_spec("square", "16," + "9" * 19) == [(16, 16)]
    assert parse_size_spec("square", "0" * 30 + "16") == [(16, 16)]


def test_aspect_ratio_overflowing_height_resolves_to_nothing() -> None:
    assert AspectRatio(1.0, 9.0, 10**400).resolve() == []


def test_dimension_parses_exact_pair() -> None:
    assert parse_size_spec(SizeSpecKind.DIMENSION, "1920x1080") == [(1920, 1080)]
    assert parse_size_spec("dimension", " 800 x 600 ") == [(800, 600)]


@pytest.mark.parametrize("text", ["1920", "1920x1080x2", "0x10", "10x-1", "1920X1080", "axb", "x", "9" * 5000 + "x10", "10x" + "9" * 19])
def test_dimension_rejects_malformed_text(text: str) -> None:
    assert parse_size_spec("dimension", text) == []


def test_aspect_ratio_uses_base_as_width() -> None:
    assert parse_size_spec(SizeSpecKind.ASPECT_RATIO, "16:9@1920") == [(1920, 1080)]
    assert parse_size_spec("aspect", "4:3@1000") == [(1000, 750)]
    assert parse_size_spec("aspect", "1.5:1@300") == [(300, 200)]


def test_aspect_ratio_rounds_half_away_from_zero() -> None:
    # 3 * 1 / 2 = 1.5
    assert parse_size_spec("aspect", "2:1@3") == [(3, 2)]
    assert round_half_away_from_zero(2.5) == 3
    assert round_half_away_from_zero(-2.5) == -3


@pytest.mark.parametrize(
    "text",
    [
        "16:9", "16:9@", "16@9@1920", "16:9:1@1920", "1:0@100", "0:1@100", "inf:1@10", "nan:1@10",
        "1e2:1@10", "16:9@-5", "16:9@1.5", "a:b@10", "3:1@1",
        "16:9@" + "9" * 400, "9" * 400 + ":1@10", "1:" + "9" * 400 + "@10",
    ],
)
def test_aspect_ratio_rejects_malformed_or_degenerate_text(text: str) -> None:
    assert parse_size_spec("aspect", text) == []


def test_unknown_kind_yields_nothing() -> None:
    assert parse_size_spec("circle", "16") == []
    assert parse_specification("aspect_ratio", "16:9@1920") == AspectRatio(16.0, 9.0, 1920)


def test_parse_specification_returns_tagged_values() -> None:
    assert parse_specification("square", "16,32") == Square((16, 32))
    assert parse_specification("dimension", "10x20") == Dimension(10, 20)
    assert parse_specification("dimension", "10") is None
    assert AspectRatio(16.0, 9.0, 1920).label == "16-9"
    assert AspectRatio(1.5, 1.0, 300).label == "1.5-1"


def test_compose_inserts_resolution_at_position() -> None:
    assert compose_file_name(["Square_", "Logo", "Tauri"], 2, 16, 16) == "Square_16x16LogoTauri"


def test_compose_handles_edge_positions() -> None:
    parts = ["icon_", "dark"]
    assert compose_file_name(parts, 1, 32, 32) == "32x32icon_dark"
    assert compose_file_name(parts, 3, 32, 32) == "icon_dark32x32"
    assert compose_file_name(parts, 99, 32, 32) == "icon_dark32x32"
    assert compose_file_name(parts, 0, 32, 32) == "32x32icon_dark"
    assert compose_file_name([], 5, 8, 4) == "8x4"
    # 原始片段列表不被修改
    assert parts == ["icon_", "dark"]
