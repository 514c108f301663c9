"""测试共用的假转码器与图片工具。"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import pytest
from PIL import Image

from image_variants.processing.transcoder import TranscodeOutput


class FakeRunner:
    """记录参数并按需写出固定大小的输出文件。"""

    def __init__(
        self,
        returncode: int = 0,
        stderr: str = "",
        payload_size: Optional[int] = 2048,
        fail_when: Optional[str] = None,
    ) -> None:
        self.returncode = returncode
        self.stderr = stderr
        self.payload_size = payload_size
        self.fail_when = fail_when
        self.calls: list[list[str]] = []

    def __call__(self, args: Sequence[str]) -> TranscodeOutput:
        self.calls.append(list(args))
        output = Path(args[-1])
        if self.fail_when and self.fail_when in output.name:
            return TranscodeOutput(returncode=1, stderr=f"cannot encode {output.name}")
        if self.returncode == 0 and self.payload_size is not None:
            output.write_bytes(b"\0" * self.payload_size)
        return TranscodeOutput(returncode=self.returncode, stderr=self.stderr)


def make_image(path: Path, size: tuple[int, int] = (64, 64), color: str = "blue") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path)
    return path


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def source_image(tmp_path: Path) -> Path:
    return make_image(tmp_path / "input" / "logo.png", (128, 96))
