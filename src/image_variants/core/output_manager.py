"""输出目录与输出路径的处理。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from image_variants.core.exceptions import DirectoryCreationError, InvalidConfigurationError
from image_variants.core.models import Variant

LOGGER = logging.getLogger(__name__)


def ensure_directory(directory: Path) -> Path:
    """确保目录存在（含父目录），已存在时直接返回。"""

    if directory.is_dir():
        return directory
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DirectoryCreationError(f"无法创建输出目录 {directory}: {exc}") from exc
    LOGGER.debug("已创建输出目录 %s", directory)
    return directory


def resolve_destination(root: Path, output_subdir: Optional[str] = None) -> Path:
    """计算单张图片的输出目录，子目录不允许跳出根目录。"""

    if not output_subdir:
        return root
    subdir = Path(output_subdir)
    if subdir.is_absolute() or ".." in subdir.parts:
        raise InvalidConfigurationError(f"输出子目录必须是根目录下的相对路径: {output_subdir}")
    return root / subdir


def output_path_for(destination: Path, variant: Variant) -> Path:
    return destination / variant.file_name
