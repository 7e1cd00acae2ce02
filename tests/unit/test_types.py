import pytest

from meter_ocr.types import Context, ImageFeatures


def test_context_attributes_are_read_only():
    context = Context(device_type="gas", attributes={"site": "A"})

    with pytest.raises(TypeError):
        context.attributes["site"] = "B"

    assert context.attributes == {"site": "A"}


def test_context_copies_caller_attributes():
    attributes = {"site": "A"}
    context = Context(attributes=attributes)

    attributes["site"] = "B"
    attributes["user"] = "u1"

    assert context.attributes == {"site": "A"}


def test_context_round_trip_keeps_attributes():
    context = Context(device_type="water", image_features=ImageFeatures(sharpness=0.4), attributes={"site": "A"})

    data = context.to_dict()
    assert data["attributes"] == {"site": "A"}
    assert isinstance(data["attributes"], dict)
    assert Context.from_dict(data) == context


def test_context_from_partial_dict():
    context = Context.from_dict({"attributes": None})
    assert context.device_type is None
    assert context.image_features is None
    assert context.attributes == {}
