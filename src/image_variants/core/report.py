"""报告生成工具。"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

from image_variants.core.models import UnitOutcome

HEADER = ["source_path", "variant", "format", "width", "height", "status", "output_path", "message"]


def write_csv_report(outcomes: Iterable[UnitOutcome], output_dir: Path, filename: str) -> Path:
    """将逐单元的转换结果写入 CSV 报告。"""

    report_path = output_dir / filename
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        for record in outcomes:
            variant = record.variant
            writer.writerow(
                [
                    str(record.source_path),
                    variant.name,
                    variant.format,
                    variant.width,
                    variant.height,
                    record.status,
                    str(record.result.output_path) if record.result.output_path else "",
                    record.result.error_message or "",
                ]
            )
    return report_path
