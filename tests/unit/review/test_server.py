from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from meter_ocr.exceptions import PersistenceError
from meter_ocr.review.server import LearningServer
from tests.test_helpers import submit_repeatedly


@pytest.fixture
def client(coordinator, test_logger):
    server = LearningServer(coordinator, logger=test_logger)
    return TestClient(server.app)


def correction_body(original="1234", corrected="1334", device_type="gas", confidence=0.5):
    return {
        "ocr_result": {"text": original, "confidence": confidence},
        "user_text": corrected,
        "image_features": {"brightness": 0.6, "sharpness": 0.4},
        "context": {"device_type": device_type},
    }


def test_ping(client):
    response = client.get("/api/ping")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_empty_statistics(client):
    response = client.get("/api/statistics")
    assert response.status_code == 200
    assert response.json() == {
        "observation_count": 0,
        "rule_count": 0,
        "pattern_count": 0,
        "success_rate": 0.0,
        "success_rate_percent": 0.0,
    }


def test_submit_correction(client):
    response = client.post("/api/corrections", json=correction_body())

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "saved"
    assert data["observation"]["error_kind"] == "digit_confusion"
    assert data["observation"]["context"]["image_features"]["sharpness"] == 0.4


def test_unchanged_correction(client):
    response = client.post("/api/corrections", json=correction_body(corrected="1234"))
    assert response.json() == {"status": "unchanged", "observation": None}


def test_invalid_confidence_rejected(client):
    response = client.post("/api/corrections", json=correction_body(confidence=3.0))
    assert response.status_code == 422


def test_learn_and_apply(client):
    for _ in range(5):
        client.post("/api/corrections", json=correction_body())

    rules = client.get("/api/rules").json()
    assert len(rules) == 1
    assert rules[0]["from_token"] == "1234"
    assert rules[0]["conditions"]["allowed_device_types"] == ["gas"]
    assert rules[0]["id"] is not None

    patterns = client.get("/api/patterns").json()
    assert patterns[0]["occurrence_count"] == 5

    response = client.post(
        "/api/apply", json={"ocr_result": {"text": "1234", "confidence": 0.55}, "context": {"device_type": "gas"}}
    )
    assert response.status_code == 200
    result = response.json()
    assert result["corrected_text"] == "1334"
    assert result["original_text"] == "1234"
    assert result["was_corrected"] is True
    assert result["applied_rules"][0]["from_text"] == "1234"


def test_reset(client, coordinator):
    submit_repeatedly(coordinator, "1234", "1334", 5)

    assert client.post("/api/reset").json() == {"status": "reset"}
    assert client.get("/api/rules").json() == []
    assert client.get("/api/statistics").json()["success_rate_percent"] == 0


def test_persistence_failure_is_service_unavailable(client, coordinator):
    with patch.object(coordinator, "submit_correction", side_effect=PersistenceError("disk full")):
        response = client.post("/api/corrections", json=correction_body())

    assert response.status_code == 503
    assert response.json()["detail"] == "disk full"


def test_observations(client, coordinator):
    submit_repeatedly(coordinator, "1234", "1334", 2)
    submit_repeatedly(coordinator, "1234", "12345", 1)

    response = client.get("/api/observations")
    assert response.status_code == 200
    assert [o["corrected_text"] for o in response.json()] == ["1334", "1334", "12345"]

    response = client.get("/api/observations", params={"error_kind": "missing_digit"})
    data = response.json()
    assert len(data) == 1
    assert data[0]["error_kind"] == "missing_digit"
    assert data[0]["id"] is not None


def test_observations_rejects_unknown_kind(client):
    response = client.get("/api/observations", params={"error_kind": "smudge"})
    assert response.status_code == 422
