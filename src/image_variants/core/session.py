"""会话内的图片与变体集合。

会话只在内存中保存数据，不做任何持久化。所有记录都是不可变对象，每次修改都生成新记录并
在锁内整体替换，读取方拿到的永远是某一时刻的完整快照。
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable, Optional

from image_variants.core.exceptions import (
    ConversionInProgressError,
    InvalidConfigurationError,
    UnknownPresetError,
    UnknownRecordError,
)
from image_variants.core.models import (
    STATUS_CONVERTING,
    STATUS_ERROR,
    STATUS_SUCCESS,
    ConversionResult,
    SourceImage,
    Variant,
)
from image_variants.core.presets import apply_preset, default_variant, get_preset, new_id

LOGGER = logging.getLogger(__name__)

# 仅允许通过 update_variant 编辑的字段；状态与结果字段由转换流程维护。
EDITABLE_FIELDS = frozenset({"name", "format", "width", "height", "min_size", "max_size"})


class ConversionSession:
    """按插入顺序保存源图片及其变体。"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._images: dict[str, SourceImage] = {}

    # ------------------------------------------------------------------
    # 图片
    # ------------------------------------------------------------------
    def add_image(
        self,
        path: Path,
        *,
        output_subdir: Optional[str] = None,
        with_default_variant: bool = True,
    ) -> SourceImage:
        resolved = Path(path).expanduser().resolve()
        variants = (default_variant(),) if with_default_variant else ()
        image = SourceImage(
            id=new_id("img"),
            path=resolved,
            display_name=resolved.name,
            output_subdir=output_subdir,
            variants=variants,
        )
        with self._lock:
            self._images[image.id] = image
        LOGGER.debug("添加图片 %s (%s)", image.display_name, image.id)
        return image

    def add_images(self, paths: Iterable[Path], **kwargs) -> list[SourceImage]:
        return [self.add_image(path, **kwargs) for path in paths]

    def remove_image(self, image_id: str) -> None:
        with self._lock:
            if self._images.pop(image_id, None) is None:
                raise UnknownRecordError(f"找不到图片: {image_id}")

    def get_image(self, image_id: str) -> SourceImage:
        with self._lock:
            return self._get_image_locked(image_id)

    def images(self) -> list[SourceImage]:
        with self._lock:
            return list(self._images.values())

    # ------------------------------------------------------------------
    # 变体
    # ------------------------------------------------------------------
    def get_variant(self, image_id: str, variant_id: str) -> Variant:
        image = self.get_image(image_id)
        variant = image.find_variant(variant_id)
        if variant is None:
            raise UnknownRecordError(f"图片 {image_id} 中找不到变体: {variant_id}")
        return variant

    def add_variant(self, image_id: str, variant: Optional[Variant] = None) -> Variant:
        new_variant = variant or default_variant()
        self._modify(image_id, lambda image: image.with_variants((*image.variants, new_variant)))
        return new_variant

    def update_variant(self, image_id: str, variant_id: str, **changes: object) -> Variant:
        """对变体应用部分字段修改，返回新记录。"""

        illegal = set(changes) - EDITABLE_FIELDS
        if illegal:
            raise InvalidConfigurationError(f"以下字段不可直接编辑: {', '.join(sorted(illegal))}")

        def update(image: SourceImage) -> SourceImage:
            current = _require_variant(image, variant_id)
            return image.with_variant(current.evolve(**changes))

        updated = self._modify(image_id, update)
        return _require_variant(updated, variant_id)

    def delete_variant(self, image_id: str, variant_id: str) -> None:
        def delete(image: SourceImage) -> SourceImage:
            _require_variant(image, variant_id)
            return image.with_variants(tuple(v for v in image.variants if v.id != variant_id))

        self._modify(image_id, delete)

    def replace_variants(self, image_id: str, variants: Iterable[Variant]) -> SourceImage:
        """整体替换图片的变体列表，不与旧列表合并。"""

        new_variants = tuple(variants)
        return self._modify(image_id, lambda image: image.with_variants(new_variants))

    def apply_preset(self, image_id: str, preset_id: str) -> SourceImage:
        preset = get_preset(preset_id)
        if preset is None:
            raise UnknownPresetError(f"未知的预设: {preset_id}")
        return self.replace_variants(image_id, apply_preset(preset))

    def apply_custom(self, image_id: str, variants: Iterable[Variant]) -> SourceImage:
        return self.replace_variants(image_id, variants)

    # ------------------------------------------------------------------
    # 转换状态
    # ------------------------------------------------------------------
    def mark_converting(self, targets: Iterable[tuple[str, str]]) -> None:
        """把一组变体标记为 converting。

        任一目标已处于 converting 时整体拒绝，不修改任何状态。
        """

        target_list = list(targets)
        with self._lock:
            staged: dict[str, SourceImage] = {}
            for image_id, variant_id in target_list:
                image = staged.get(image_id) or self._get_image_locked(image_id)
                variant = _require_variant(image, variant_id)
                if variant.status == STATUS_CONVERTING:
                    raise ConversionInProgressError(f"变体 {variant.name} ({variant_id}) 正在转换中")
                staged[image_id] = image.with_variant(variant.transition(STATUS_CONVERTING))
            self._images.update(staged)

    def record_result(self, image_id: str, variant_id: str, result: ConversionResult) -> Optional[Variant]:
        """根据转换结果把变体迁移到终态。

        转换期间变体或图片已被移除时忽略该结果。
        """

        with self._lock:
            image = self._images.get(image_id)
            variant = image.find_variant(variant_id) if image is not None else None
            if image is None or variant is None:
                LOGGER.warning("结果对应的变体已不存在，忽略: %s/%s", image_id, variant_id)
                return None
            if result.success:
                updated = variant.transition(STATUS_SUCCESS, output_path=result.output_path)
            else:
                updated = variant.transition(STATUS_ERROR, error_message=result.error_message)
            self._images[image_id] = image.with_variant(updated)
            return updated

    # ------------------------------------------------------------------
    def _get_image_locked(self, image_id: str) -> SourceImage:
        image = self._images.get(image_id)
        if image is None:
            raise UnknownRecordError(f"找不到图片: {image_id}")
        return image

    def _modify(self, image_id: str, change) -> SourceImage:
        with self._lock:
            updated = change(self._get_image_locked(image_id))
            self._images[image_id] = updated
            return updated


def _require_variant(image: SourceImage, variant_id: str) -> Variant:
    variant = image.find_variant(variant_id)
    if variant is None:
        raise UnknownRecordError(f"图片 {image.id} 中找不到变体: {variant_id}")
    return variant