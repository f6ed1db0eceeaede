# backend/model.py
from pydantic import BaseModel, ConfigDict
from typing import Optional, Literal, List

SessionStage = Literal["EMPTY", "HAS_IMAGE", "EDITING"]


class ImageAsset(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: str       # base64, no data-URL header
    mime_type: str


class EditResult(BaseModel):
    # both, either or neither may be set
    image: Optional[ImageAsset] = None
    message: Optional[str] = None


class SessionFlags(BaseModel):
    is_processing: bool = False
    last_error: Optional[str] = None


class SessionState(BaseModel):
    session_id: Optional[str] = None
    stage: SessionStage
    original: Optional[ImageAsset] = None
    current: Optional[ImageAsset] = None
    instruction: str = ""
    is_processing: bool = False
    last_error: Optional[str] = None
    is_edited: bool = False


class InstructionRequest(BaseModel):
    text: str


class PresetsResponse(BaseModel):
    presets: List[str]
