import base64
import binascii
import re
import time
import uuid
from io import BytesIO

from PIL import Image

from .errors import DecodeError
from .model import ImageAsset

_DATA_URL_PREFIX = re.compile(r"^data:[\w.+-]+/[\w.+-]+;base64,", re.IGNORECASE)

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}


def strip_data_url(data: str) -> str:
    """
    Remove a `data:image/png;base64,` style header if present.
    Raw base64 is returned unchanged.
    """
    return _DATA_URL_PREFIX.sub("", data.strip(), count=1)


def encode_upload(data: bytes, content_type: str) -> ImageAsset:
    """
    Turn an uploaded file into an ImageAsset.
    Raises DecodeError if the declared type is not an image or Pillow cannot read the bytes.
    """
    if not content_type or not content_type.startswith("image/"):
        raise DecodeError()
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
    except Exception as e:
        raise DecodeError() from e
    return ImageAsset(data=base64.b64encode(data).decode("ascii"), mime_type=content_type)


def download_bytes(asset: ImageAsset) -> bytes:
    try:
        return base64.b64decode(strip_data_url(asset.data), validate=True)
    except binascii.Error as e:
        raise DecodeError() from e


def download_filename(asset: ImageAsset, stem: str = "edited-image") -> str:
    ext = _EXTENSIONS.get(asset.mime_type.lower(), "png")
    return f"{stem}.{ext}"


def gen_session_id() -> str:
    return str(uuid.uuid4())


def get_timestamp_ms() -> int:
    return int(time.time() * 1000)
