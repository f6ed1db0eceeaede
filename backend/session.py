# backend/session.py
"""
Edit session controller.

One EditSession owns the upload -> edit -> preview loop of a single user:
the original upload, the current (possibly edited) image, the pending
instruction and the processing/error flags. Presentation code never mutates
these directly; it dispatches one of the actions below and renders the
returned SessionState.

Edits chain: each generate() sends the *current* image, so the second edit
is applied to the output of the first. reset() is the only way back to the
original.

While an edit is in flight, generate() is a silent no-op and select_file() /
reset() raise SessionBusy without touching state. set_instruction() is always
accepted since the running request already captured its instruction.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from config.settings import settings

from .errors import (
    DecodeError,
    ModelRefusal,
    NoImageProduced,
    RequestFailure,
    SessionBusy,
    SizeExceeded,
)
from .model import EditResult, ImageAsset, SessionFlags, SessionState
from .utils import encode_upload

logger = logging.getLogger(__name__)

PRESET_INSTRUCTIONS = [
    "Make it look like a neon sign",
    "Convert to black and white sketch",
    "Add a retro VHS filter",
    "Crop this image in 1200x1200 px with proper visibility",
]


class EditGateway(Protocol):
    async def edit_image(self, image_data: str, mime_type: str, instruction: str) -> EditResult:
        ...


@dataclass(frozen=True)
class SelectFile:
    data: bytes
    content_type: str


@dataclass(frozen=True)
class SetInstruction:
    text: str


@dataclass(frozen=True)
class Generate:
    pass


@dataclass(frozen=True)
class Reset:
    pass


Action = Union[SelectFile, SetInstruction, Generate, Reset]


class EditSession:
    def __init__(
        self,
        gateway: EditGateway,
        session_id: Optional[str] = None,
        max_upload_bytes: Optional[int] = None,
        output_mime_type: Optional[str] = None,
    ):
        self.gateway = gateway
        self.session_id = session_id
        self.max_upload_bytes = settings.MAX_UPLOAD_BYTES if max_upload_bytes is None else max_upload_bytes
        self.output_mime_type = output_mime_type or settings.OUTPUT_MIME_TYPE

        self.original: Optional[ImageAsset] = None
        self.current: Optional[ImageAsset] = None
        self.instruction: str = ""
        self.flags = SessionFlags()

    async def dispatch(self, action: Action) -> SessionState:
        if isinstance(action, SelectFile):
            return self.select_file(action.data, action.content_type)
        if isinstance(action, SetInstruction):
            return self.set_instruction(action.text)
        if isinstance(action, Generate):
            return await self.generate()
        if isinstance(action, Reset):
            return self.reset()
        raise TypeError(f"Unknown action: {action!r}")

    def select_file(self, data: bytes, content_type: str) -> SessionState:
        if self.flags.is_processing:
            logger.warning("[%s] Upload rejected, edit in flight", self.session_id)
            raise SessionBusy()

        try:
            if len(data) > self.max_upload_bytes:
                raise SizeExceeded()
            asset = encode_upload(data, content_type)
        except (SizeExceeded, DecodeError) as e:
            logger.info("[%s] Upload refused: %s", self.session_id, type(e).__name__)
            self.flags.last_error = e.message
            return self.snapshot()

        self.original = asset
        self.current = asset
        self.instruction = ""
        self.flags.last_error = None
        logger.info("[%s] New image %s, %d bytes", self.session_id, content_type, len(data))
        return self.snapshot()

    def set_instruction(self, text: str) -> SessionState:
        self.instruction = text
        return self.snapshot()

    def can_generate(self) -> bool:
        return (
            self.current is not None
            and bool(self.instruction.strip())
            and not self.flags.is_processing
        )

    async def generate(self) -> SessionState:
        if not self.can_generate():
            return self.snapshot()

        source = self.current
        instruction = self.instruction
        self.flags.is_processing = True
        self.flags.last_error = None
        try:
            result = await self.gateway.edit_image(source.data, source.mime_type, instruction)
            self.current = self._apply_result(result)
        except (ModelRefusal, NoImageProduced) as e:
            logger.info("[%s] No edit applied: %s", self.session_id, type(e).__name__)
            self.flags.last_error = e.message
        except Exception:
            logger.exception("[%s] Edit request failed", self.session_id)
            self.flags.last_error = RequestFailure.message
        finally:
            self.flags.is_processing = False
        return self.snapshot()

    def _apply_result(self, result: EditResult) -> ImageAsset:
        if result.image is not None:
            return ImageAsset(data=result.image.data, mime_type=self.output_mime_type)
        if result.message:
            raise ModelRefusal(result.message)
        raise NoImageProduced()

    def reset(self) -> SessionState:
        if self.original is None:
            return self.snapshot()
        if self.flags.is_processing:
            logger.warning("[%s] Reset rejected, edit in flight", self.session_id)
            raise SessionBusy()

        self.current = self.original
        self.instruction = ""
        self.flags.last_error = None
        return self.snapshot()

    @property
    def stage(self) -> str:
        if self.flags.is_processing:
            return "EDITING"
        if self.current is not None:
            return "HAS_IMAGE"
        return "EMPTY"

    def snapshot(self) -> SessionState:
        return SessionState(
            session_id=self.session_id,
            stage=self.stage,
            original=self.original,
            current=self.current,
            instruction=self.instruction,
            is_processing=self.flags.is_processing,
            last_error=self.flags.last_error,
            is_edited=self.original is not None and self.current != self.original,
        )
