"""进度更新的数据模型。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from image_variants.core.models import ConversionResult

UnitCallback = Callable[[str, str, ConversionResult], None]


@dataclass(slots=True)
class ProgressUpdate:
    """批处理过程中的进度信息。"""

    total: int
    completed: int
    image_id: Optional[str] = None
    variant_id: Optional[str] = None
    result: Optional[ConversionResult] = None
    message: Optional[str] = None


class ProgressTracker:
    """把逐单元回调累积为 ProgressUpdate。"""

    def __init__(self, total: int, sink: Callable[[ProgressUpdate], None]) -> None:
        self.total = total
        self.completed = 0
        self._sink = sink

    def __call__(self, image_id: str, variant_id: str, result: ConversionResult) -> None:
        self.completed += 1
        message = f"{variant_id}: 成功" if result.success else f"{variant_id}: {result.error_message}"
        self._sink(
            ProgressUpdate(
                total=self.total,
                completed=self.completed,
                image_id=image_id,
                variant_id=variant_id,
                result=result,
                message=message,
            )
        )
