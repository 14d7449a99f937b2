import pytest

from pill_counter.image_ingest import DecodedImage, decode_image_payload
from pill_counter.vision_pipeline.base import RawDetection
from tests.helpers import make_data_url, square


@pytest.fixture
def data_url() -> str:
    return make_data_url()


@pytest.fixture
def decoded_image(data_url) -> DecodedImage:
    return decode_image_payload(data_url)


@pytest.fixture
def pill_detection() -> RawDetection:
    return RawDetection(label="Pill", score=0.9, region=square(0.25, 0.5))
