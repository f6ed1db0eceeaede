import base64
from io import BytesIO

import pytest
from PIL import Image

from backend.model import EditResult, ImageAsset


def make_image_bytes(fmt: str = "PNG", size=(8, 8), color=(0, 120, 255)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class FakeGateway:
    """Records every call and answers from a queue of results or exceptions."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def edit_image(self, image_data, mime_type, instruction):
        self.calls.append((image_data, mime_type, instruction))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG", size=(16, 16))


@pytest.fixture
def edited_png() -> ImageAsset:
    return ImageAsset(data=b64(make_image_bytes("PNG", color=(0, 0, 0))), mime_type="image/png")


@pytest.fixture
def image_result(edited_png) -> EditResult:
    return EditResult(image=edited_png)
