"""输出文件名的组合规则。"""

from __future__ import annotations

from typing import Sequence


def resolution_token(width: int, height: int) -> str:
    return f"{width}x{height}"


def compose_file_name(parts: Sequence[str], position: int, width: int, height: int) -> str:
    """在 1 起始的 ``position`` 处插入 ``<width>x<height>`` 并直接拼接所有片段。

    位置超出片段数量时追加到末尾，小于 1 时放在最前面。
    """

    literal_parts = list(parts)
    index = min(max(position, 1) - 1, len(literal_parts))
    literal_parts.insert(index, resolution_token(width, height))
    return "".join(literal_parts)
