import base64
import json
from types import SimpleNamespace

import pytest
from google.genai import types

from backend.gemini_client import GeminiEditGateway, parse_edit_response
from backend.model import EditResult


class FakeModels:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_gateway(*responses, **kwargs):
    models = FakeModels(*responses)
    client = SimpleNamespace(aio=SimpleNamespace(models=models))
    gateway = GeminiEditGateway(api_key="test-key", model="gemini-2.5-flash-image", client=client, **kwargs)
    return gateway, models


def response_with(*parts):
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=list(parts)))]
    )


def image_part(data: bytes, mime_type="image/png"):
    return types.Part(inline_data=types.Blob(data=data, mime_type=mime_type))


def text_part(text: str):
    return types.Part(text=text)


async def test_request_framing():
    gateway, models = make_gateway(response_with(image_part(b"ABC")))
    jpeg = b"\xff\xd8\xff\xe0fake"

    await gateway.edit_image(
        "data:image/jpeg;base64," + base64.b64encode(jpeg).decode(), "image/jpeg", "Make it black and white"
    )

    assert len(models.calls) == 1
    call = models.calls[0]
    assert call["model"] == "gemini-2.5-flash-image"

    image, text = call["contents"]
    assert image.inline_data.data == jpeg
    assert image.inline_data.mime_type == "image/jpeg"
    assert text == "Edit this image. Make it black and white"

    config = call["config"]
    assert config.image_config.aspect_ratio == "1:1"
    assert config.response_modalities == ["TEXT", "IMAGE"]


async def test_raw_payload_decoded_unchanged():
    gateway, models = make_gateway(response_with())
    await gateway.edit_image(base64.b64encode(b"raw").decode(), "image/png", "x")
    assert models.calls[0]["contents"][0].inline_data.data == b"raw"


def test_missing_key_does_not_fail_construction():
    gateway = GeminiEditGateway(api_key=None)
    assert gateway.api_key is None


async def test_image_result_uses_canonical_encoding():
    gateway, _ = make_gateway(
        response_with(text_part("Here is your image"), image_part(b"IMG", "image/jpeg"))
    )

    result = await gateway.edit_image("AAAA", "image/webp", "x")

    assert result.image.data == base64.b64encode(b"IMG").decode()
    assert result.image.mime_type == "image/png"
    assert result.message == "Here is your image"


@pytest.mark.parametrize("error", [RuntimeError("403 API key not valid"), ConnectionError("no route to host")])
async def test_errors_propagate(error):
    gateway, models = make_gateway(error)

    with pytest.raises(type(error)):
        await gateway.edit_image("AAAA", "image/png", "x")
    assert len(models.calls) == 1


async def test_debug_payload_dump(tmp_path):
    gateway, _ = make_gateway(response_with(), debug_dir=str(tmp_path))
    await gateway.edit_image(base64.b64encode(b"four").decode(), "image/png", "x")

    dumps = list(tmp_path.glob("edit_*.json"))
    assert len(dumps) == 1
    saved = json.loads(dumps[0].read_text(encoding="utf-8"))
    assert saved["model"] == "gemini-2.5-flash-image"
    assert saved["contents"][0]["inline_data"]["data"] == "<4 bytes>"
    assert saved["contents"][1] == {"text": "Edit this image. x"}


def test_first_image_and_first_text_win():
    result = parse_edit_response(
        response_with(text_part("first"), image_part(b"ONE"), text_part("second"), image_part(b"TWO"))
    )
    assert result.image.data == base64.b64encode(b"ONE").decode()
    assert result.message == "first"


@pytest.mark.parametrize(
    "response",
    [
        None,
        types.GenerateContentResponse(),
        types.GenerateContentResponse(candidates=[]),
        types.GenerateContentResponse(candidates=[types.Candidate()]),
        types.GenerateContentResponse(candidates=[types.Candidate(content=types.Content())]),
        response_with(types.Part(inline_data=types.Blob(mime_type="image/png")), text_part("")),
    ],
)
def test_unexpected_shapes_give_empty_result(response):
    assert parse_edit_response(response) == EditResult(image=None, message=None)


def test_from_settings_reads_configuration():
    class Cfg:
        GEMINI_API_KEY = "k"
        GEMINI_MODEL = "some-model"
        GEMINI_API_BASE = None
        REQUEST_TIMEOUT = 30.0
        DEBUG_PAYLOAD_DIR = None

    gateway = GeminiEditGateway.from_settings(Cfg)
    assert gateway.api_key == "k"
    assert gateway.model == "some-model"
    assert gateway.timeout == 30.0
