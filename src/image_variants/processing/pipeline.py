"""任务流水线：扫描源图片、生成变体、批量转换并写出报告。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from image_variants.core.config import JobConfig
from image_variants.core.exceptions import UnknownPresetError
from image_variants.core.models import BatchReport, ConversionJob, Variant
from image_variants.core.presets import apply_preset, default_variant, generate_variants, get_preset
from image_variants.core.progress import ProgressTracker, ProgressUpdate
from image_variants.core.report import write_csv_report
from image_variants.core.scanner import collect_source_images
from image_variants.core.session import ConversionSession
from image_variants.processing.batch import collect_outcomes, run_batch
from image_variants.processing.engine import ConversionEngine

LOGGER = logging.getLogger(__name__)

NOTHING_TO_GENERATE = "没有可生成的变体"

ProgressCallback = Optional[Callable[[ProgressUpdate], None]]


def build_variants(config: JobConfig) -> list[Variant]:
    """根据任务配置为单张图片生成一组新的变体。"""

    if config.preset_id:
        preset = get_preset(config.preset_id)
        if preset is None:
            raise UnknownPresetError(f"未知的预设: {config.preset_id}")
        return apply_preset(preset)

    if config.size_requests:
        return generate_variants(
            config.size_requests,
            config.naming.parts,
            config.naming.position,
            config.image_format,
            min_size=config.min_size,
            max_size=config.max_size,
        )

    return [default_variant()]


def build_session(config: JobConfig) -> ConversionSession:
    """扫描源路径并为每张图片填充变体。"""

    session = ConversionSession()
    paths = collect_source_images(
        config.sources,
        recursive=config.allow_recursive,
        include_patterns=config.include_patterns,
    )
    LOGGER.info("发现 %d 个候选图片文件", len(paths))
    for path in paths:
        subdir = path.stem if config.per_image_subdir else None
        image = session.add_image(path, output_subdir=subdir, with_default_variant=False)
        session.replace_variants(image.id, build_variants(config))
    return session


def process_job(config: JobConfig, progress_callback: ProgressCallback = None) -> BatchReport:
    """任务入口：生成变体、批量转换并写出 CSV 报告。

    尺寸描述全部无效时不做任何转换，返回带提示信息的空报告。
    """

    if not build_variants(config):
        LOGGER.warning(NOTHING_TO_GENERATE)
        return BatchReport(message=NOTHING_TO_GENERATE)

    session = build_session(config)
    jobs = [ConversionJob.from_source(image) for image in session.images()]
    total = sum(len(job.variants) for job in jobs)

    callback = ProgressTracker(total, progress_callback) if progress_callback else None
    engine = ConversionEngine(config.transcoder)
    results = run_batch(
        session,
        config.output_dir,
        callback,
        engine=engine,
        max_workers=config.max_workers,
    )

    report = BatchReport(outcomes=collect_outcomes(jobs, results))
    if config.report_filename and config.output_dir is not None:
        report.report_path = _write_report(Path(config.output_dir), config.report_filename, report)
    return report


def _write_report(output_dir: Path, filename: str, report: BatchReport) -> Optional[Path]:
    try:
        return write_csv_report(report.outcomes, output_dir.expanduser(), filename)
    except OSError as exc:
        LOGGER.error("写入报告失败：%s", exc)
        return None
