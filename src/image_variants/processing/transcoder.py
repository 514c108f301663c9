"""外部转码器的调用封装。

所有后端都接受同一套参数约定::

    -i <input> -vf scale=<w>:<h> [格式参数...] -y <output>

并只返回退出码与 stderr 文本，标准输出一律丢弃。
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from PIL import Image, ImageOps

from image_variants.core.config import TranscoderConfig
from image_variants.core.models import Variant

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TranscodeOutput:
    returncode: int
    stderr: str = ""


Runner = Callable[[Sequence[str]], TranscodeOutput]


def format_arguments(image_format: str, config: TranscoderConfig) -> list[str]:
    """各输出格式固定的编码参数。"""

    if image_format in {"jpg", "jpeg"}:
        return ["-q:v", str(config.jpeg_qscale)]
    if image_format == "png":
        return ["-compression_level", str(config.png_compression_level)]
    if image_format == "webp":
        return ["-quality", str(config.webp_quality)]
    return []


def build_arguments(input_path: Path, output_path: Path, variant: Variant, config: TranscoderConfig) -> list[str]:
    """构造转码参数：输入在最前，输出在最后。"""

    return [
        "-i",
        str(input_path),
        "-vf",
        f"scale={variant.width}:{variant.height}",
        *format_arguments(variant.format, config),
        "-y",
        str(output_path),
    ]


class FFmpegRunner:
    """以子进程方式调用 ffmpeg。"""

    def __init__(self, binary: str = "ffmpeg") -> None:
        self.binary = binary

    def __call__(self, args: Sequence[str]) -> TranscodeOutput:
        # 可执行文件不存在时 subprocess 抛出 OSError，由调用方处理。
        proc = subprocess.run(
            [self.binary, *args],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            check=False,
        )
        return TranscodeOutput(returncode=proc.returncode, stderr=proc.stderr or "")


PILLOW_FORMATS = {
    ".png": "PNG",
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".webp": "WEBP",
    ".bmp": "BMP",
    ".tiff": "TIFF",
    ".ico": "ICO",
}


@dataclass(slots=True)
class _ParsedArguments:
    input_path: Path
    size: tuple[int, int]
    options: dict[str, str]
    output_path: Path


def _parse_arguments(args: Sequence[str]) -> _ParsedArguments:
    items = list(args)
    if len(items) < 6 or items[0] != "-i" or items[2] != "-vf" or items[-2] != "-y":
        raise ValueError(f"无法识别的转码参数: {items}")
    scale = items[3]
    if not scale.startswith("scale="):
        raise ValueError(f"缺少缩放参数: {scale}")
    width_text, _, height_text = scale[len("scale="):].partition(":")
    flags = items[4:-2]
    if len(flags) % 2:
        raise ValueError(f"格式参数不成对: {flags}")
    options = {flags[i]: flags[i + 1] for i in range(0, len(flags), 2)}
    return _ParsedArguments(
        input_path=Path(items[1]),
        size=(int(width_text), int(height_text)),
        options=options,
        output_path=Path(items[-1]),
    )


def _qscale_to_quality(qscale: int) -> int:
    # ffmpeg 的 qscale 2 约等于 Pillow 的 95。
    return max(1, min(95, 100 - (qscale - 1) * 5))


def _prepare_mode(image: Image.Image, image_format: str) -> Image.Image:
    if image_format in {"JPEG", "BMP"}:
        if image.mode in {"RGBA", "LA", "PA"} or (image.mode == "P" and "transparency" in image.info):
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[-1])
            return background
        return image if image.mode == "RGB" else image.convert("RGB")

    if image.mode in {"RGB", "RGBA"}:
        return image
    has_alpha = "A" in image.mode or "transparency" in image.info
    return image.convert("RGBA" if has_alpha else "RGB")


class PillowRunner:
    """进程内的 Pillow 实现，适用于没有安装 ffmpeg 的环境。

    参数约定与 ffmpeg 相同，失败时返回非零退出码和错误描述。
    """

    def __call__(self, args: Sequence[str]) -> TranscodeOutput:
        try:
            parsed = _parse_arguments(args)
            self._transcode(parsed)
        except (OSError, ValueError) as exc:
            LOGGER.debug("Pillow 转码失败: %s", exc)
            return TranscodeOutput(returncode=1, stderr=str(exc))
        return TranscodeOutput(returncode=0)

    def _transcode(self, parsed: _ParsedArguments) -> None:
        image_format = PILLOW_FORMATS.get(parsed.output_path.suffix.lower())
        if image_format is None:
            raise ValueError(f"不支持的输出格式: {parsed.output_path.suffix}")

        with Image.open(parsed.input_path) as img:
            img.load()
            oriented = ImageOps.exif_transpose(img)
            resized = oriented.resize(parsed.size, Image.LANCZOS)

        prepared = _prepare_mode(resized, image_format)
        save_params: dict = {}
        if image_format == "JPEG":
            save_params.update(quality=_qscale_to_quality(int(parsed.options.get("-q:v", 2))))
        elif image_format == "PNG":
            save_params.update(compress_level=int(parsed.options.get("-compression_level", 6)))
        elif image_format == "WEBP":
            save_params.update(quality=int(parsed.options.get("-quality", 90)))
        elif image_format == "ICO":
            save_params.update(sizes=[parsed.size])

        # -y：覆盖已存在的输出
        prepared.save(parsed.output_path, format=image_format, **save_params)


def make_runner(config: TranscoderConfig) -> Runner:
    if config.backend == "pillow":
        return PillowRunner()
    return FFmpegRunner(config.binary)
