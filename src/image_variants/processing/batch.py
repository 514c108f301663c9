"""批量转换：按顺序遍历 (图片, 变体) 的全部组合。

单元之间互不影响，任何一个单元失败都不会中断其余单元；每个单元完成后立即回调一次。
默认严格串行。``max_workers > 1`` 时不同图片在线程池中并行，同一图片的变体仍按顺序执行，
跨图片的回调顺序不再保证。
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Optional, Sequence

from image_variants.core.exceptions import InvalidConfigurationError, PreflightError, UnknownRecordError
from image_variants.core.models import (
    STATUS_CONVERTING,
    ConversionJob,
    ConversionResult,
    UnitOutcome,
)
from image_variants.core.output_manager import ensure_directory, resolve_destination
from image_variants.core.progress import UnitCallback
from image_variants.core.session import ConversionSession
from image_variants.processing.engine import ConversionEngine

LOGGER = logging.getLogger(__name__)


def convert_many(
    jobs: Iterable[ConversionJob],
    destination: Path,
    callback: Optional[UnitCallback] = None,
    *,
    engine: Optional[ConversionEngine] = None,
    max_workers: int = 1,
) -> list[list[ConversionResult]]:
    """转换全部单元，返回与输入顺序一致的结果矩阵。"""

    job_list = list(jobs)
    engine = engine or ConversionEngine()
    emit = _serialized(callback)
    total = sum(len(job.variants) for job in job_list)
    LOGGER.info("开始批量转换：%d 张图片，共 %d 个变体", len(job_list), total)

    if max_workers <= 1 or len(job_list) <= 1:
        results = [_convert_job(engine, job, destination, emit) for job in job_list]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(_convert_job, engine, job, destination, emit) for job in job_list]
            results = [future.result() for future in futures]

    failed = sum(1 for row in results for result in row if not result.success)
    LOGGER.info("批量转换完成：成功 %d 个，失败 %d 个", total - failed, failed)
    return results


def _serialized(callback: Optional[UnitCallback]) -> UnitCallback:
    lock = threading.Lock()

    def emit(image_id: str, variant_id: str, result: ConversionResult) -> None:
        if callback is None:
            return
        with lock:
            callback(image_id, variant_id, result)

    return emit


def _convert_job(
    engine: ConversionEngine,
    job: ConversionJob,
    root: Path,
    emit: UnitCallback,
) -> list[ConversionResult]:
    destination: Optional[Path]
    try:
        destination = resolve_destination(root, job.output_subdir)
        setup_error = None
    except InvalidConfigurationError as exc:
        destination = None
        setup_error = str(exc)

    results: list[ConversionResult] = []
    for variant in job.variants:
        if destination is None:
            result = ConversionResult.failed(setup_error or "无效的输出目录")
        else:
            try:
                result = engine.convert(job.source_path, variant, destination)
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("转换单元异常：%s", exc)
                result = ConversionResult.failed(f"未预期的错误: {exc}")
        results.append(result)
        emit(job.image_id, variant.id, result)
    return results


def collect_outcomes(jobs: Sequence[ConversionJob], results: Sequence[Sequence[ConversionResult]]) -> list[UnitOutcome]:
    """把结果矩阵展开为逐单元记录，用于报告。"""

    outcomes: list[UnitOutcome] = []
    for job, row in zip(jobs, results):
        for variant, result in zip(job.variants, row):
            outcomes.append(
                UnitOutcome(image_id=job.image_id, source_path=job.source_path, variant=variant, result=result)
            )
    return outcomes


# ----------------------------------------------------------------------
# 会话驱动的运行入口
# ----------------------------------------------------------------------
def run_batch(
    session: ConversionSession,
    destination: Optional[Path],
    callback: Optional[UnitCallback] = None,
    *,
    engine: Optional[ConversionEngine] = None,
    max_workers: int = 1,
) -> list[list[ConversionResult]]:
    """转换会话中所有图片的所有变体。"""

    _require_destination(destination)
    images = session.images()
    if not images:
        raise PreflightError("请先添加图片")
    jobs = [ConversionJob.from_source(image) for image in images]
    return _run_jobs(session, jobs, destination, callback, engine=engine, max_workers=max_workers)


def run_image(
    session: ConversionSession,
    image_id: str,
    destination: Optional[Path],
    callback: Optional[UnitCallback] = None,
    *,
    engine: Optional[ConversionEngine] = None,
) -> list[ConversionResult]:
    """转换单张图片的全部变体。"""

    image = session.get_image(image_id)
    results = _run_jobs(session, [ConversionJob.from_source(image)], destination, callback, engine=engine)
    return results[0]


def run_variant(
    session: ConversionSession,
    image_id: str,
    variant_id: str,
    destination: Optional[Path],
    callback: Optional[UnitCallback] = None,
    *,
    engine: Optional[ConversionEngine] = None,
) -> ConversionResult:
    """转换单个变体。"""

    image = session.get_image(image_id)
    variant = session.get_variant(image_id, variant_id)
    job = ConversionJob(
        image_id=image.id,
        source_path=image.path,
        variants=(variant,),
        output_subdir=image.output_subdir,
    )
    results = _run_jobs(session, [job], destination, callback, engine=engine)
    return results[0][0]


def _run_jobs(
    session: ConversionSession,
    jobs: list[ConversionJob],
    destination: Optional[Path],
    callback: Optional[UnitCallback],
    *,
    engine: Optional[ConversionEngine] = None,
    max_workers: int = 1,
) -> list[list[ConversionResult]]:
    _require_destination(destination)
    targets = [(job.image_id, variant.id) for job in jobs for variant in job.variants]
    if not targets:
        raise PreflightError("没有需要转换的变体")

    root = ensure_directory(Path(destination).expanduser())
    session.mark_converting(targets)

    def on_unit(image_id: str, variant_id: str, result: ConversionResult) -> None:
        session.record_result(image_id, variant_id, result)
        if callback is not None:
            callback(image_id, variant_id, result)

    try:
        return convert_many(jobs, root, on_unit, engine=engine, max_workers=max_workers)
    except BaseException:
        _abandon(session, targets)
        raise


def _require_destination(destination: Optional[Path]) -> None:
    if destination is None or not str(destination).strip():
        raise PreflightError("请先选择输出目录")


def _abandon(session: ConversionSession, targets: list[tuple[str, str]]) -> None:
    """批处理异常终止时，把仍停留在 converting 的变体标记为失败。"""

    for image_id, variant_id in targets:
        try:
            image = session.get_image(image_id)
        except UnknownRecordError:
            continue
        variant = image.find_variant(variant_id)
        if variant is not None and variant.status == STATUS_CONVERTING:
            session.record_result(image_id, variant_id, ConversionResult.failed("批处理被中断"))
