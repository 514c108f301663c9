"""命令行入口。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from image_variants.core.config import JobConfig, NamingConfig, SizeRequest, TranscoderConfig
from image_variants.core.exceptions import (
    DirectoryCreationError,
    InvalidConfigurationError,
    PreflightError,
    UnknownPresetError,
)
from image_variants.core.models import IMAGE_FORMATS
from image_variants.core.presets import list_presets
from image_variants.core.progress import ProgressUpdate
from image_variants.core.size_spec import coerce_kind
from image_variants.processing.pipeline import process_job
from image_variants.utils.logging import setup_logging

app = typer.Typer(help="把一张源图片批量转换为多个尺寸、格式的变体。")


def _parse_size_request(value: str) -> SizeRequest:
    kind, sep, text = value.partition(":")
    if not sep or coerce_kind(kind) is None:
        raise typer.BadParameter(f"尺寸必须形如 square:16,32 / dimension:1920x1080 / aspect:16:9@1920，收到 {value}")
    return SizeRequest(kind=kind.strip().lower(), text=text)


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if update.total == 0:
            return
        if task_id is None:
            task_id = progress.add_task("转换变体", total=update.total)
        progress.update(task_id, completed=update.completed)
        if update.result is not None and not update.result.success:
            progress.log(f"[red]失败[/red] {update.message}")

    return callback


@app.command("presets")
def presets_cli() -> None:
    """列出内置预设。"""

    table = Table(title="内置预设")
    table.add_column("ID")
    table.add_column("名称")
    table.add_column("变体")
    table.add_column("说明")
    for preset in list_presets():
        summary = ", ".join(f"{t.name}.{t.format}" for t in preset.variants)
        table.add_row(preset.id, preset.name, summary, preset.description)
    Console().print(table)


@app.command("run")
def run_cli(  # noqa: PLR0913
    source: List[Path] = typer.Argument(..., help="源图片文件或目录，可指定多个"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="输出目录"),
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="使用内置预设，见 presets 命令"),
    size: Optional[List[str]] = typer.Option(None, "--size", "-s", help="尺寸描述，如 square:16,32 或 aspect:16:9@1920，可重复"),
    name: Optional[List[str]] = typer.Option(None, "--name", help="文件名片段，按顺序拼接，可重复"),
    position: int = typer.Option(2, "--position", help="分辨率插入位置（从 1 开始）"),
    image_format: str = typer.Option("png", "--format", "-f", help="自定义变体的输出格式"),
    min_size: Optional[float] = typer.Option(None, "--min-size", help="输出文件最小大小 (KB)"),
    max_size: Optional[float] = typer.Option(None, "--max-size", help="输出文件最大大小 (KB)"),
    max_workers: int = typer.Option(1, "--workers", "-w", help="并行处理的图片数量"),
    backend: str = typer.Option("ffmpeg", "--backend", help="转码后端 ffmpeg 或 pillow"),
    ffmpeg_binary: str = typer.Option("ffmpeg", "--ffmpeg", help="ffmpeg 可执行文件路径"),
    per_image_subdir: bool = typer.Option(False, "--per-image-dir", help="每张图片输出到以文件名命名的子目录"),
    allow_recursive: bool = typer.Option(True, "--recursive/--no-recursive", help="是否递归扫描目录"),
    report: str = typer.Option("report.csv", "--report", help="CSV 报告文件名，留空则不生成"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """执行批量转换。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)

    if preset and size:
        raise typer.BadParameter("--preset 与 --size 不能同时使用")
    fmt = image_format.strip().lower()
    if fmt not in IMAGE_FORMATS:
        raise typer.BadParameter(f"不支持的输出格式: {image_format}")

    try:
        transcoder = TranscoderConfig(binary=ffmpeg_binary, backend=backend)
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    job = JobConfig(
        sources=[p.expanduser().resolve() for p in source],
        output_dir=output.expanduser().resolve() if output else None,
        preset_id=preset,
        size_requests=tuple(_parse_size_request(value) for value in size or ()),
        naming=NamingConfig(parts=tuple(name or ()) or ("custom_",), position=position),
        image_format=fmt,
        min_size=min_size,
        max_size=max_size,
        per_image_subdir=per_image_subdir,
        allow_recursive=allow_recursive,
        max_workers=max_workers,
        report_filename=report or None,
        transcoder=transcoder,
    )

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
    )

    try:
        with progress:
            result = process_job(job, progress_callback=_build_progress_callback(progress))
    except (PreflightError, DirectoryCreationError, UnknownPresetError, InvalidConfigurationError) as exc:
        typer.echo(f"错误：{exc}", err=True)
        raise typer.Exit(code=1) from exc

    if result.message:
        typer.echo(result.message)
        raise typer.Exit(code=1)

    typer.echo(f"转换完成：成功 {len(result.succeeded)} 个，失败 {len(result.failed)} 个。")
    for outcome in result.failed:
        typer.echo(f"  {outcome.source_path.name} -> {outcome.variant.file_name}: {outcome.result.error_message}")
    if result.report_path:
        typer.echo(f"报告文件：{result.report_path}")
    if result.failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
