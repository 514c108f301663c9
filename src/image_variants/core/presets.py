"""内置转换预设与自定义变体生成。"""

from __future__ import annotations

import logging
import uuid
from typing import Iterable, Optional, Sequence

from image_variants.core.config import SizeRequest
from image_variants.core.models import Preset, Variant, VariantTemplate
from image_variants.core.naming import compose_file_name
from image_variants.core.size_spec import AspectRatio, parse_specification

LOGGER = logging.getLogger(__name__)


def _t(name: str, fmt: str, width: int, height: int, max_size: Optional[float] = None) -> VariantTemplate:
    return VariantTemplate(name=name, format=fmt, width=width, height=height, max_size=max_size)


CONVERSION_PRESETS: tuple[Preset, ...] = (
    Preset(
        id="app-icons",
        name="App Icons",
        description="Standard app icon sizes for desktop and mobile",
        variants=tuple(_t(f"icon_{size}", "png", size, size) for size in (16, 32, 48, 64, 128, 256, 512, 1024)),
    ),
    Preset(
        id="web-responsive",
        name="Responsive Web Images",
        description="Optimized images for responsive web design",
        variants=(
            _t("desktop_2x", "webp", 1920, 1080, 500),
            _t("desktop_1x", "webp", 1280, 720, 300),
            _t("tablet_2x", "webp", 1024, 768, 250),
            _t("tablet_1x", "webp", 768, 576, 150),
            _t("mobile_2x", "webp", 750, 1334, 200),
            _t("mobile_1x", "webp", 375, 667, 100),
        ),
    ),
    Preset(
        id="social-media",
        name="Social Media",
        description="Standard sizes for major social platforms",
        variants=(
            _t("facebook_cover", "jpg", 820, 312, 100),
            _t("facebook_post", "jpg", 1200, 630, 100),
            _t("twitter_header", "jpg", 1500, 500, 100),
            _t("twitter_post", "jpg", 1200, 675, 100),
            _t("instagram_post", "jpg", 1080, 1080, 100),
            _t("instagram_story", "jpg", 1080, 1920, 100),
            _t("linkedin_post", "jpg", 1200, 627, 100),
            _t("youtube_thumbnail", "jpg", 1280, 720, 2048),
        ),
    ),
    Preset(
        id="favicon",
        name="Favicon Set",
        description="Complete favicon package for websites",
        variants=(
            _t("favicon", "ico", 32, 32),
            _t("favicon-16x16", "png", 16, 16),
            _t("favicon-32x32", "png", 32, 32),
            _t("apple-touch-icon", "png", 180, 180),
            _t("android-chrome-192x192", "png", 192, 192),
            _t("android-chrome-512x512", "png", 512, 512),
        ),
    ),
    Preset(
        id="thumbnails",
        name="Thumbnail Sizes",
        description="Various thumbnail sizes for galleries and previews",
        variants=(
            _t("thumb_small", "jpg", 150, 150, 20),
            _t("thumb_medium", "jpg", 300, 300, 50),
            _t("thumb_large", "jpg", 600, 600, 100),
        ),
    ),
    Preset(
        id="product-images",
        name="E-commerce Product Images",
        description="Standard product image sizes for online stores",
        variants=(
            _t("product_full", "jpg", 2000, 2000, 500),
            _t("product_large", "jpg", 1200, 1200, 300),
            _t("product_medium", "jpg", 600, 600, 150),
            _t("product_small", "jpg", 300, 300, 50),
            _t("product_thumb", "jpg", 150, 150, 20),
        ),
    ),
    Preset(
        id="print-ready",
        name="Print Quality",
        description="High-resolution images for print materials",
        variants=(
            _t("print_a4_300dpi", "tiff", 2480, 3508),
            _t("print_letter_300dpi", "tiff", 2550, 3300),
            _t("print_a5_300dpi", "tiff", 1748, 2480),
        ),
    ),
)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def list_presets() -> tuple[Preset, ...]:
    return CONVERSION_PRESETS


def get_preset(preset_id: str) -> Optional[Preset]:
    for preset in CONVERSION_PRESETS:
        if preset.id == preset_id:
            return preset
    return None


def apply_preset(preset: Preset) -> list[Variant]:
    """按预设模板生成一组带新 ID 的变体，顺序与目录一致。"""

    batch_id = new_id(f"preset-{preset.id}")
    return [template.instantiate(f"{batch_id}-{index}") for index, template in enumerate(preset.variants)]


def default_variant() -> Variant:
    """新加入图片时附带的默认变体。"""

    return Variant(id=new_id("variant"), name="output", format="png", width=512, height=512)


def create_custom_variants(
    base_name: str,
    image_format: str,
    sizes: Iterable[tuple[int, int]],
) -> list[Variant]:
    """以 ``<base_name>_<w>x<h>`` 命名生成变体。"""

    return generate_from_sizes((f"{base_name}_",), 2, image_format, sizes)


def generate_from_sizes(
    name_parts: Sequence[str],
    position: int,
    image_format: str,
    sizes: Iterable[tuple[int, int]],
    *,
    min_size: Optional[float] = None,
    max_size: Optional[float] = None,
) -> list[Variant]:
    batch_id = new_id("custom")
    return [
        Variant(
            id=f"{batch_id}-{index}",
            name=compose_file_name(name_parts, position, width, height),
            format=image_format,
            width=width,
            height=height,
            min_size=min_size,
            max_size=max_size,
        )
        for index, (width, height) in enumerate(sizes)
    ]


def generate_variants(
    requests: Iterable[SizeRequest],
    name_parts: Sequence[str],
    position: int,
    image_format: str,
    *,
    min_size: Optional[float] = None,
    max_size: Optional[float] = None,
) -> list[Variant]:
    """把多条尺寸描述展开为变体列表。

    无效的描述不产生任何变体；返回空列表表示没有可生成的内容。
    比例描述在名称末尾追加 ``_<w>-<h>``，避免与同尺寸的 dimension 变体重名。
    """

    batch_id = new_id("custom")
    variants: list[Variant] = []
    for request in requests:
        spec = parse_specification(request.kind, request.text)
        if spec is None:
            LOGGER.info("尺寸描述无效，已忽略: %s %r", request.kind, request.text)
            continue
        parts = list(name_parts)
        if isinstance(spec, AspectRatio):
            parts.append(f"_{spec.label}")
        for width, height in spec.resolve():
            variants.append(
                Variant(
                    id=f"{batch_id}-{len(variants)}",
                    name=compose_file_name(parts, position, width, height),
                    format=image_format,
                    width=width,
                    height=height,
                    min_size=min_size,
                    max_size=max_size,
                )
            )
    return variants
