import pytest
from PIL import Image

from meter_ocr.ocr.features import estimate_sharpness, extract_image_features
from meter_ocr.types import ImageFeatures


def test_uniform_image():
    features = extract_image_features(Image.new("RGB", (40, 20), color=(255, 255, 255)))

    assert features.brightness == pytest.approx(1.0)
    assert features.contrast == pytest.approx(0.0)
    assert features.sharpness == pytest.approx(0.0)
    assert (features.width, features.height) == (40, 20)
    assert features.aspect_ratio == pytest.approx(2.0)


def test_checkerboard_is_sharp_and_contrasted():
    img = Image.new("L", (10, 10))
    img.putdata([255 if (x + y) % 2 else 0 for y in range(10) for x in range(10)])

    features = extract_image_features(img)

    assert features.brightness == pytest.approx(0.5, abs=0.01)
    assert features.contrast == pytest.approx(0.5, abs=0.01)
    assert features.sharpness == pytest.approx(1.0)


def test_image_file(tmp_path):
    path = tmp_path / "meter.png"
    Image.new("RGB", (8, 8), color=(0, 0, 0)).save(path)

    features = extract_image_features(path)

    assert features.brightness == pytest.approx(0.0)
    assert features.width == 8


def test_unreadable_image_gives_neutral_features(tmp_path):
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"not an image")

    assert extract_image_features(path) == ImageFeatures.neutral()
    assert extract_image_features(tmp_path / "missing.jpg") == ImageFeatures.neutral()


def test_sharpness_of_tiny_image():
    assert estimate_sharpness(Image.new("L", (1, 5))) == 0.0
