"""源图片的扫描与筛选逻辑。"""

from __future__ import annotations

from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, Iterator, Sequence

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".tiff", ".tif"}
DEFAULT_PATTERNS = ("*.png", "*.jpg", "*.jpeg", "*.webp", "*.bmp", "*.tiff", "*.tif")


def _iter_candidate_files(path: Path, recursive: bool) -> Iterator[Path]:
    """遍历路径下的所有文件。"""

    if path.is_file():
        yield path
        return

    if not path.is_dir():
        return

    iterator = path.rglob("*") if recursive else path.glob("*")
    for candidate in iterator:
        if candidate.is_file():
            yield candidate


def _matches_any(name: str, patterns: Sequence[str]) -> bool:
    lowered = name.lower()
    return any(fnmatch(lowered, pattern.lower()) for pattern in patterns)


def collect_source_images(
    sources: Iterable[Path],
    *,
    recursive: bool = True,
    include_patterns: Sequence[str] = DEFAULT_PATTERNS,
) -> list[Path]:
    """展开文件与目录，返回去重并排序后的图片路径。"""

    collected: list[Path] = []
    seen_paths: set[Path] = set()
    patterns = include_patterns or DEFAULT_PATTERNS

    for root in sources:
        resolved_root = Path(root).expanduser().resolve()
        for candidate in _iter_candidate_files(resolved_root, recursive):
            if candidate in seen_paths:
                continue
            seen_paths.add(candidate)

            if not _matches_any(candidate.name, patterns):
                continue
            if candidate.suffix.lower() not in IMAGE_EXTENSIONS:
                continue
            collected.append(candidate)

    collected.sort(key=lambda x: str(x).lower())
    return collected
