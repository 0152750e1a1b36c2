from __future__ import annotations

import io
from concurrent.futures import Future
from typing import List, Optional, Sequence, Tuple

import pytest
from PIL import Image

from animethumb.generator import GenerationOptions


def make_image_bytes(fmt: str = "JPEG", size: Tuple[int, int] = (16, 9)) -> bytes:
    mode = "RGBA" if fmt == "PNG" else "RGB"
    buffer = io.BytesIO()
    Image.new(mode, size, color=(200, 40, 120)).save(buffer, format=fmt)
    return buffer.getvalue()


class StubGenerator:
    """Records prompts and answers with a pre-resolved future."""

    def __init__(
        self,
        payloads: Sequence[bytes] = (),
        error: Optional[BaseException] = None,
    ) -> None:
        self.payloads = list(payloads)
        self.error = error
        self.calls: List[Tuple[str, GenerationOptions]] = []

    def generate(self, prompt: str, options: GenerationOptions) -> "Future[List[bytes]]":
        self.calls.append((prompt, options))
        future: "Future[List[bytes]]" = Future()
        if self.error is not None:
            future.set_exception(self.error)
        else:
            future.set_result(list(self.payloads))
        return future


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG")


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")
