"""转换任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Tuple

from image_variants.core.exceptions import InvalidConfigurationError

TRANSCODER_BACKENDS = ("ffmpeg", "pillow")


@dataclass(slots=True)
class TranscoderConfig:
    """外部转码器及各格式编码参数。"""

    binary: str = "ffmpeg"
    backend: str = "ffmpeg"  # ffmpeg | pillow
    jpeg_qscale: int = 2
    png_compression_level: int = 6
    webp_quality: int = 90

    def __post_init__(self) -> None:
        if self.backend not in TRANSCODER_BACKENDS:
            raise InvalidConfigurationError(f"未知的转码后端: {self.backend}")
        if not self.binary:
            raise InvalidConfigurationError("转码器路径不能为空")


@dataclass(slots=True)
class SizeRequest:
    """一条尺寸描述：类型 + 原始文本，例如 ("aspect", "16:9@1920")。"""

    kind: str
    text: str


@dataclass(slots=True)
class NamingConfig:
    """自定义变体的命名规则。"""

    parts: Tuple[str, ...] = ("custom_",)
    position: int = 2


@dataclass(slots=True)
class JobConfig:
    """单次批处理任务的配置集合。"""

    sources: Sequence[Path]
    output_dir: Optional[Path]
    preset_id: Optional[str] = None
    size_requests: Sequence[SizeRequest] = field(default_factory=tuple)
    naming: NamingConfig = field(default_factory=NamingConfig)
    image_format: str = "png"
    min_size: Optional[float] = None
    max_size: Optional[float] = None
    per_image_subdir: bool = False
    allow_recursive: bool = True
    include_patterns: Sequence[str] = field(
        default_factory=lambda: ("*.png", "*.jpg", "*.jpeg", "*.webp", "*.bmp", "*.tiff")
    )
    max_workers: int = 1
    report_filename: Optional[str] = "report.csv"
    transcoder: TranscoderConfig = field(default_factory=TranscoderConfig)
