import base64
import binascii
import re
from dataclasses import dataclass
from typing import List, Union

from photoshoot.core.errors import MalformedInputError

DATA_URL_PATTERN = re.compile(r"^data:([^;,]+);base64,([A-Za-z0-9+/]*={0,2})$")


@dataclass(frozen=True)
class TextSegment:
    text: str


@dataclass(frozen=True)
class ImageSegment:
    data: bytes
    mime_type: str


Segment = Union[TextSegment, ImageSegment]


def parse_data_url(data_url: str) -> ImageSegment:
    """
    Decodes `data:<mime>;base64,<payload>` into an image segment.

    Raises:
        MalformedInputError: the string does not have exactly that shape
            or the payload is not valid base64.
    """
    if not isinstance(data_url, str):
        raise MalformedInputError("Invalid data URL")
    match = DATA_URL_PATTERN.match(data_url)
    if not match:
        raise MalformedInputError("Invalid data URL")
    mime_type, payload = match.groups()
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedInputError(f"Invalid data URL payload: {e}") from e
    return ImageSegment(data=data, mime_type=mime_type)


def to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('utf-8')}"


def first_text(segments: List[Segment]) -> str:
    """Text of the first text segment, or an empty string."""
    for segment in segments:
        if isinstance(segment, TextSegment):
            return segment.text
    return ""


def image_segments(segments: List[Segment]) -> List[ImageSegment]:
    return [s for s in segments if isinstance(s, ImageSegment)]
