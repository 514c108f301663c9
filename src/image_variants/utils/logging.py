"""日志配置。

格式中带线程名：多图片并行转换时各图片的工作线程输出交织在一起，需要据此区分。
"""

from __future__ import annotations

import logging


def setup_logging(level: int = logging.INFO) -> None:
    """初始化项目日志配置。"""

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(threadName)s] %(levelname)s %(name)s: %(message)s",
    )
