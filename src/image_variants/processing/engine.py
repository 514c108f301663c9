"""单个变体的转换：调用转码器并校验输出文件大小。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from image_variants.core.config import TranscoderConfig
from image_variants.core.exceptions import DirectoryCreationError, SizeConstraintViolation, TranscodeError
from image_variants.core.models import ConversionResult, Variant
from image_variants.core.output_manager import ensure_directory, output_path_for
from image_variants.processing.transcoder import Runner, build_arguments, make_runner

LOGGER = logging.getLogger(__name__)

SizeProbe = Callable[[Path], Optional[int]]


def probe_file_size(path: Path) -> Optional[int]:
    """返回文件字节数，读取失败时返回 None。"""

    try:
        return path.stat().st_size
    except OSError:
        return None


def _format_kb(value: float) -> str:
    return f"{value:g}"


class ConversionEngine:
    """驱动一次转码器调用并返回结构化结果。

    任何单元级失败都转换为 ``ConversionResult(success=False)``，不会向外抛出；
    失败不会重试，也不会清理已生成的文件。
    """

    def __init__(
        self,
        config: Optional[TranscoderConfig] = None,
        *,
        runner: Optional[Runner] = None,
        probe: Optional[SizeProbe] = None,
    ) -> None:
        self.config = config or TranscoderConfig()
        self.runner = runner or make_runner(self.config)
        self.probe = probe or probe_file_size

    def convert(self, source_path: Path, variant: Variant, destination: Path) -> ConversionResult:
        try:
            ensure_directory(destination)
        except DirectoryCreationError as exc:
            LOGGER.error("%s", exc)
            return ConversionResult.failed(str(exc))

        output_path = output_path_for(destination, variant)
        args = build_arguments(source_path, output_path, variant, self.config)

        try:
            self._transcode(args)
        except TranscodeError as exc:
            LOGGER.warning("转码失败 %s -> %s: %s", source_path.name, output_path.name, exc)
            return ConversionResult.failed(str(exc))
        except OSError as exc:
            LOGGER.error("无法启动转码器 %s: %s", self.config.binary, exc)
            return ConversionResult.failed(f"无法启动转码器 {self.config.binary}: {exc}")

        if not variant.has_size_constraints:
            return ConversionResult.ok(output_path)

        try:
            self._check_size(output_path, variant)
        except SizeConstraintViolation as exc:
            LOGGER.warning("%s 违反 %s 限制: %s", output_path.name, exc.bound, exc)
            return ConversionResult.failed(str(exc), output_path=output_path)

        return ConversionResult.ok(output_path)

    def _transcode(self, args: list[str]) -> None:
        LOGGER.debug("执行转码: %s %s", self.config.binary, " ".join(args))
        output = self.runner(args)
        if output.returncode != 0:
            message = output.stderr.strip() or f"转码失败（退出码 {output.returncode}）"
            raise TranscodeError(message, returncode=output.returncode)

    def _check_size(self, output_path: Path, variant: Variant) -> None:
        """校验输出大小；无法读取大小时放行。"""

        try:
            size = self.probe(output_path)
        except OSError:
            size = None
        if size is None:
            LOGGER.warning("无法读取输出文件大小，跳过校验: %s", output_path)
            return

        size_kb = size / 1024
        if variant.min_size and size_kb < variant.min_size:
            raise SizeConstraintViolation(
                f"输出文件 {size_kb:.1f} KB 小于 min_size 限制 {_format_kb(variant.min_size)} KB",
                bound="min_size",
            )
        if variant.max_size and size_kb > variant.max_size:
            raise SizeConstraintViolation(
                f"输出文件 {size_kb:.1f} KB 超过 max_size 限制 {_format_kb(variant.max_size)} KB",
                bound="max_size",
            )


def convert(
    source_path: Path,
    variant: Variant,
    destination: Path,
    config: Optional[TranscoderConfig] = None,
) -> ConversionResult:
    """使用默认转码器转换单个变体。"""

    return ConversionEngine(config).convert(source_path, variant, destination)
