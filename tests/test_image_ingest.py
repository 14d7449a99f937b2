import base64

import pytest

from tests.helpers import make_data_url, make_image_bytes
from pill_counter.errors import InvalidInput
from pill_counter.image_ingest import decode_image_payload


def test_decodes_png_data_url():
    image = decode_image_payload(make_data_url("PNG"))
    assert image.mime_type == "image/png"
    assert image.data == make_image_bytes("PNG")
    assert image.data_url.startswith("data:image/png;base64,")


def test_decodes_jpeg_data_url():
    image = decode_image_payload(make_data_url("JPEG"))
    assert image.mime_type == "image/jpeg"
    assert image.data[:2] == b"\xff\xd8"


@pytest.mark.parametrize("payload", [None, ""])
def test_missing_image_is_rejected(payload):
    with pytest.raises(InvalidInput, match="No image provided"):
        decode_image_payload(payload)


def test_plain_base64_without_prefix_is_rejected():
    raw = base64.b64encode(make_image_bytes()).decode()
    with pytest.raises(InvalidInput, match="Expected base64 data URL"):
        decode_image_payload(raw)


def test_non_image_mime_is_rejected():
    raw = base64.b64encode(make_image_bytes()).decode()
    with pytest.raises(InvalidInput):
        decode_image_payload(f"data:text/plain;base64,{raw}")


def test_broken_base64_is_rejected():
    with pytest.raises(InvalidInput, match="base64"):
        decode_image_payload("data:image/png;base64,@@not-base64@@")


def test_bytes_that_are_not_an_image_are_rejected():
    junk = base64.b64encode(b"definitely not an image").decode()
    with pytest.raises(InvalidInput, match="not a decodable image"):
        decode_image_payload(f"data:image/png;base64,{junk}")


def test_invalid_input_maps_to_400():
    with pytest.raises(InvalidInput) as exc_info:
        decode_image_payload(None)
    assert exc_info.value.status_code == 400
