import base64
import logging
from typing import Any, Optional

from google import genai
from google.genai import errors, types

from config.settings import settings

from .model import EditResult, ImageAsset
from .request_builder import build_edit_config, build_edit_contents, describe_request, save_debug_payload
from .utils import strip_data_url, get_timestamp_ms

logger = logging.getLogger(__name__)


def _first_candidate_parts(response: Any) -> list:
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return list(getattr(content, "parts", None) or [])


def parse_edit_response(response: Any, output_mime_type: str = None) -> EditResult:
    """
    From a generate_content response, take the first part carrying inline image
    data as the image and the first part carrying text as the message.
    Any missing level (candidates, content, parts) gives an empty result.
    """
    output_mime_type = output_mime_type or settings.OUTPUT_MIME_TYPE
    image: Optional[ImageAsset] = None
    message: Optional[str] = None

    for part in _first_candidate_parts(response):
        inline = getattr(part, "inline_data", None)
        data = getattr(inline, "data", None)
        if image is None and data:
            if isinstance(data, bytes):
                data = base64.b64encode(data).decode("ascii")
            image = ImageAsset(data=data, mime_type=output_mime_type)
            continue
        text = getattr(part, "text", None)
        if message is None and text:
            message = text

    return EditResult(image=image, message=message)


class GeminiEditGateway:
    """
    Sends one edit (image + instruction) to a Gemini image model.
    Errors from the SDK, the transport or the service are not caught here.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash-image",
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[genai.Client] = None,
        debug_dir: Optional[str] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.debug_dir = debug_dir
        self._client = client

    @classmethod
    def from_settings(cls, cfg=settings) -> "GeminiEditGateway":
        return cls(
            api_key=cfg.GEMINI_API_KEY,
            model=cfg.GEMINI_MODEL,
            base_url=cfg.GEMINI_API_BASE,
            timeout=cfg.REQUEST_TIMEOUT,
            debug_dir=cfg.DEBUG_PAYLOAD_DIR,
        )

    def _get_client(self) -> genai.Client:
        # Built on first use so a missing key only fails the first edit
        if self._client is None:
            http_options = types.HttpOptions(
                base_url=self.base_url,
                timeout=int(self.timeout * 1000) if self.timeout else None,
            )
            self._client = genai.Client(api_key=self.api_key, http_options=http_options)
        return self._client

    async def edit_image(self, image_data: str, mime_type: str, instruction: str) -> EditResult:
        image_bytes = base64.b64decode(strip_data_url(image_data))
        contents = build_edit_contents(image_bytes, mime_type, instruction)
        config = build_edit_config()
        if self.debug_dir:
            save_debug_payload(
                describe_request(self.model, contents, config),
                f"edit_{get_timestamp_ms()}.json",
                self.debug_dir,
            )

        logger.info("Sending edit to %s (input %s, instruction %r)", self.model, mime_type, instruction[:60])
        try:
            response = await self._get_client().aio.models.generate_content(
                model=self.model, contents=contents, config=config,
            )
        except errors.APIError as e:
            logger.error("Gemini returned %s: %s", e.code, e.message)
            raise

        result = parse_edit_response(response)
        logger.info(
            "Edit response: image=%s message=%s",
            result.image is not None,
            result.message is not None,
        )
        return result
