# backend/request_builder.py

import json
import logging
from pathlib import Path
from typing import Dict, Any, List, Union

from google.genai import types

from config.settings import settings

logger = logging.getLogger(__name__)


def build_edit_instruction(instruction: str, directive: str = None) -> str:
    """
    Prefix the user's instruction with the edit directive so the model
    returns an edited image instead of describing the input.
    """
    directive = settings.EDIT_DIRECTIVE if directive is None else directive
    return f"{directive} {instruction}"


def build_edit_contents(
    image_bytes: bytes,
    mime_type: str,
    instruction: str,
    directive: str = None,
) -> List[Union[types.Part, str]]:
    """
    Image first, then the augmented instruction text.
    """
    return [
        types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
        build_edit_instruction(instruction, directive),
    ]


def build_edit_config(aspect_ratio: str = None) -> types.GenerateContentConfig:
    aspect_ratio = aspect_ratio or settings.ASPECT_RATIO
    return types.GenerateContentConfig(
        response_modalities=["TEXT", "IMAGE"],
        image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
    )


def describe_request(
    model: str,
    contents: List[Union[types.Part, str]],
    config: types.GenerateContentConfig,
) -> Dict[str, Any]:
    """JSON-safe view of one request with inline image data replaced by a length marker."""
    parts = []
    for item in contents:
        if isinstance(item, str):
            parts.append({"text": item})
        elif item.inline_data is not None:
            parts.append(
                {
                    "inline_data": {
                        "mime_type": item.inline_data.mime_type,
                        "data": f"<{len(item.inline_data.data or b'')} bytes>",
                    }
                }
            )
        else:
            parts.append({"text": item.text})
    return {
        "model": model,
        "contents": parts,
        "config": config.model_dump(mode="json", exclude_none=True),
    }


def save_debug_payload(payload: Dict[str, Any], filename: str, debug_dir: str) -> Path:
    path = Path(debug_dir)
    path.mkdir(parents=True, exist_ok=True)
    target = path / filename
    with target.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    logger.debug("Saved debug payload to %s", target)
    return target
