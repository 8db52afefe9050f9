import base64
import mimetypes
import random
import string
import time
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, field_serializer

SUPPORTED_IMAGE_TYPES = ("image/png", "image/jpeg", "image/webp")
SUPPORTED_FILE_TYPES = ("application/pdf",)
SUPPORTED_ATTACHMENT_TYPES = SUPPORTED_IMAGE_TYPES + SUPPORTED_FILE_TYPES


class AttachmentError(ValueError):
    pass


class AttachmentType(Enum):
    IMAGE = "image"
    FILE = "file"


class Attachment(BaseModel):
    id: str
    name: str
    type: AttachmentType
    mime_type: str
    base64: str
    size: int = 0

    @field_serializer("type")
    def serialize_type(self, type: AttachmentType, _info) -> str:
        return type.value

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


def generate_attachment_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"attach_{int(time.time() * 1000)}_{suffix}"


def is_image_mime_type(mime_type: str) -> bool:
    return mime_type in SUPPORTED_IMAGE_TYPES


def is_file_mime_type(mime_type: str) -> bool:
    return mime_type in SUPPORTED_FILE_TYPES


def is_supported_mime_type(mime_type: str) -> bool:
    return is_image_mime_type(mime_type) or is_file_mime_type(mime_type)


def get_attachment_type(mime_type: str) -> AttachmentType:
    if is_image_mime_type(mime_type):
        return AttachmentType.IMAGE
    return AttachmentType.FILE


def accept_string() -> str:
    return ",".join(SUPPORTED_ATTACHMENT_TYPES)


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def create_attachment(
    name: str,
    data: bytes,
    mime_type: str,
    max_size: int | None = None,
) -> Attachment:
    """Validate raw file bytes and wrap them as an :class:`Attachment`.

    Raises:
        AttachmentError: If the MIME type is unsupported or the data is
            larger than ``max_size``.
    """
    if not is_supported_mime_type(mime_type):
        raise AttachmentError(f"Unsupported file type for {name}: {mime_type}")
    if max_size is not None and len(data) > max_size:
        raise AttachmentError(
            f"{name} is {format_file_size(len(data))}, "
            f"limit is {format_file_size(max_size)}"
        )
    return Attachment(
        id=generate_attachment_id(),
        name=name,
        type=get_attachment_type(mime_type),
        mime_type=mime_type,
        base64=base64.b64encode(data).decode("ascii"),
        size=len(data),
    )


def create_attachment_from_path(
    path: Path | str, max_size: int | None = None,
) -> Attachment:
    path = Path(path)
    mime_type, _ = mimetypes.guess_type(path.name)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise AttachmentError(f"Failed to read file: {path.name}") from e
    return create_attachment(path.name, data, mime_type or "", max_size)
