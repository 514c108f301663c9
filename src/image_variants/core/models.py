"""核心数据模型定义。

所有记录均为不可变 dataclass：局部修改通过 ``evolve`` / ``transition`` 返回新对象，
会话层再以整条记录替换的方式写回，不存在原地修改。
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from image_variants.core.exceptions import InvalidConfigurationError, InvalidTransitionError

IMAGE_FORMATS = ("png", "jpg", "jpeg", "webp", "bmp", "tiff", "ico")

STATUS_IDLE = "idle"
STATUS_CONVERTING = "converting"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"

VARIANT_STATUSES = (STATUS_IDLE, STATUS_CONVERTING, STATUS_SUCCESS, STATUS_ERROR)

# 终态只能通过重新运行回到 converting。
_ALLOWED_TRANSITIONS = {
    STATUS_IDLE: {STATUS_CONVERTING},
    STATUS_CONVERTING: {STATUS_SUCCESS, STATUS_ERROR},
    STATUS_SUCCESS: {STATUS_CONVERTING},
    STATUS_ERROR: {STATUS_CONVERTING},
}


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _check_common_fields(
    name: str,
    image_format: str,
    width: int,
    height: int,
    min_size: Optional[float],
    max_size: Optional[float],
) -> None:
    if not isinstance(name, str) or not name.strip():
        raise InvalidConfigurationError("变体名称不能为空")
    if "/" in name or "\\" in name:
        raise InvalidConfigurationError(f"变体名称不能包含路径分隔符: {name}")
    if image_format not in IMAGE_FORMATS:
        raise InvalidConfigurationError(f"不支持的输出格式: {image_format}")
    if not _is_positive_int(width) or not _is_positive_int(height):
        raise InvalidConfigurationError(f"宽高必须为正整数: {width}x{height}")
    for label, bound in (("min_size", min_size), ("max_size", max_size)):
        if bound is None:
            continue
        if isinstance(bound, bool) or not isinstance(bound, (int, float)) or bound < 0:
            raise InvalidConfigurationError(f"{label} 必须为非负数: {bound}")


def normalize_format(value: str) -> str:
    """统一格式字符串的大小写与空白。"""

    return value.strip().lower() if isinstance(value, str) else value


@dataclass(frozen=True, slots=True)
class Variant:
    """单个输出变体：名称、格式、尺寸、大小约束与转换状态。"""

    id: str
    name: str
    format: str
    width: int
    height: int
    min_size: Optional[float] = None
    max_size: Optional[float] = None
    status: str = STATUS_IDLE
    output_path: Optional[Path] = None
    error_message: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "format", normalize_format(self.format))
        if not self.id:
            raise InvalidConfigurationError("变体 ID 不能为空")
        _check_common_fields(self.name, self.format, self.width, self.height, self.min_size, self.max_size)
        if self.status not in VARIANT_STATUSES:
            raise InvalidConfigurationError(f"未知的变体状态: {self.status}")

    @property
    def file_name(self) -> str:
        return f"{self.name}.{self.format}"

    @property
    def has_size_constraints(self) -> bool:
        # 0 与 None 一样视为未设置。
        return bool(self.min_size) or bool(self.max_size)

    def evolve(self, **changes: object) -> "Variant":
        """返回应用了部分字段修改的新记录，原记录保持不变。"""

        return dataclasses.replace(self, **changes)

    def transition(
        self,
        status: str,
        *,
        output_path: Optional[Path] = None,
        error_message: Optional[str] = None,
    ) -> "Variant":
        """按状态机迁移到新状态。

        进入 converting 时清空上一次的结果；success 记录输出路径，error 记录错误信息。
        """

        allowed = _ALLOWED_TRANSITIONS.get(self.status, set())
        if status not in allowed:
            raise InvalidTransitionError(f"变体 {self.id} 不能从 {self.status} 迁移到 {status}")

        if status == STATUS_SUCCESS:
            return dataclasses.replace(self, status=status, output_path=output_path, error_message=None)
        if status == STATUS_ERROR:
            return dataclasses.replace(self, status=status, output_path=None, error_message=error_message)
        return dataclasses.replace(self, status=status, output_path=None, error_message=None)


@dataclass(frozen=True, slots=True)
class VariantTemplate:
    """预设中的变体模板（不含 ID）。"""

    name: str
    format: str
    width: int
    height: int
    min_size: Optional[float] = None
    max_size: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "format", normalize_format(self.format))
        _check_common_fields(self.name, self.format, self.width, self.height, self.min_size, self.max_size)

    def instantiate(self, variant_id: str) -> Variant:
        return Variant(
            id=variant_id,
            name=self.name,
            format=self.format,
            width=self.width,
            height=self.height,
            min_size=self.min_size,
            max_size=self.max_size,
        )


@dataclass(frozen=True, slots=True)
class Preset:
    """命名的变体模板集合。"""

    id: str
    name: str
    description: str
    variants: tuple[VariantTemplate, ...]


@dataclass(frozen=True, slots=True)
class SourceImage:
    """一张源图片及其独占的有序变体列表。"""

    id: str
    path: Path
    display_name: str
    output_subdir: Optional[str] = None
    variants: tuple[Variant, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "variants", tuple(self.variants))
        seen: set[str] = set()
        for variant in self.variants:
            if variant.id in seen:
                raise InvalidConfigurationError(f"图片 {self.id} 中存在重复的变体 ID: {variant.id}")
            seen.add(variant.id)

    def find_variant(self, variant_id: str) -> Optional[Variant]:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None

    def with_variants(self, variants: "tuple[Variant, ...] | list[Variant]") -> "SourceImage":
        """整体替换变体列表（不合并）。"""

        return dataclasses.replace(self, variants=tuple(variants))

    def with_variant(self, updated: Variant) -> "SourceImage":
        """以同 ID 的新记录替换对应变体。"""

        return dataclasses.replace(
            self,
            variants=tuple(updated if v.id == updated.id else v for v in self.variants),
        )


@dataclass(frozen=True, slots=True)
class ConversionResult:
    """单个 (图片, 变体) 单元的转换结果。"""

    success: bool
    output_path: Optional[Path] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, output_path: Path) -> "ConversionResult":
        return cls(success=True, output_path=output_path)

    @classmethod
    def failed(cls, message: str, output_path: Optional[Path] = None) -> "ConversionResult":
        return cls(success=False, output_path=output_path, error_message=message)


@dataclass(frozen=True, slots=True)
class ConversionJob:
    """批处理的一行输入：一张源图片及其要生成的变体。"""

    image_id: str
    source_path: Path
    variants: tuple[Variant, ...]
    output_subdir: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "variants", tuple(self.variants))

    @classmethod
    def from_source(cls, image: SourceImage) -> "ConversionJob":
        return cls(
            image_id=image.id,
            source_path=image.path,
            variants=image.variants,
            output_subdir=image.output_subdir,
        )


@dataclass(slots=True)
class UnitOutcome:
    """记录单个单元的处理结果（用于报告/日志）。"""

    image_id: str
    source_path: Path
    variant: Variant
    result: ConversionResult

    @property
    def status(self) -> str:
        return STATUS_SUCCESS if self.result.success else STATUS_ERROR


@dataclass(slots=True)
class BatchReport:
    """一次任务的全部产出。"""

    outcomes: list[UnitOutcome] = field(default_factory=list)
    report_path: Optional[Path] = None
    message: Optional[str] = None

    @property
    def succeeded(self) -> list[UnitOutcome]:
        return [outcome for outcome in self.outcomes if outcome.result.success]

    @property
    def failed(self) -> list[UnitOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.result.success]
