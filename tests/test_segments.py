import pytest

from photoshoot.core.errors import MalformedInputError, ValidationError
from photoshoot.engine.segments import (
    ImageSegment,
    TextSegment,
    first_text,
    image_segments,
    parse_data_url,
    to_data_url,
)


def test_parse_data_url_decodes_payload():
    segment = parse_data_url("data:image/jpeg;base64,aGVsbG8=")
    assert segment == ImageSegment(data=b"hello", mime_type="image/jpeg")


def test_to_data_url_matches_parser_shape():
    url = to_data_url(b"\x89PNG", "image/png")
    assert url.startswith("data:image/png;base64,")
    assert parse_data_url(url).data == b"\x89PNG"


@pytest.mark.parametrize("value", [
    "not a data url",
    "data:image/png,aGVsbG8=",
    "data:;base64,aGVsbG8=",
    "data:image/png;base64,%%%",
    "data:image/png;base64,aGVsbG8",
    None,
])
def test_parse_data_url_rejects_malformed_input(value):
    with pytest.raises(MalformedInputError):
        parse_data_url(value)


def test_malformed_input_is_a_validation_error():
    with pytest.raises(ValidationError):
        parse_data_url("https://example.com/image.png")


def test_first_text_and_image_segments():
    image = ImageSegment(data=b"x", mime_type="image/png")
    segments = [TextSegment("prompt"), image, TextSegment("later")]
    assert first_text(segments) == "prompt"
    assert image_segments(segments) == [image]
    assert first_text([image]) == ""
