"""项目内使用的自定义异常定义。"""


class ImageVariantsError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(ImageVariantsError):
    """配置或变体参数不合法时抛出。"""


class PreflightError(ImageVariantsError):
    """批处理启动前的检查未通过（未选择输出目录、没有图片等）。"""


class DirectoryCreationError(ImageVariantsError):
    """输出目录不存在且无法创建。"""


class TranscodeError(ImageVariantsError):
    """外部转码进程以非零退出码结束。"""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class SizeConstraintViolation(ImageVariantsError):
    """输出文件大小超出变体配置的范围。"""

    def __init__(self, message: str, bound: str) -> None:
        super().__init__(message)
        self.bound = bound


class InvalidTransitionError(ImageVariantsError):
    """变体状态的非法迁移。"""


class ConversionInProgressError(ImageVariantsError):
    """目标变体正在转换中，拒绝重复触发。"""


class UnknownPresetError(ImageVariantsError):
    """找不到指定 ID 的预设。"""


class UnknownRecordError(ImageVariantsError):
    """会话中找不到指定的图片或变体。"""
