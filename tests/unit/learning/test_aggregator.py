import pytest

from meter_ocr.learning.aggregator import MistakeAggregator
from meter_ocr.storage.base import MISTAKE_PATTERNS
from meter_ocr.types import ErrorKind
from tests.test_helpers import create_test_context, create_test_observation


@pytest.fixture
def aggregator(memory_store, test_logger):
    return MistakeAggregator(memory_store, logger=test_logger)


def test_first_observation_initializes_pattern(aggregator):
    observation = create_test_observation(confidence=0.4)

    pattern = aggregator.record(observation)

    assert pattern.pattern_key == "digit_confusion|1234|1334"
    assert pattern.occurrence_count == 1
    assert pattern.confidence_sum == pytest.approx(0.4)
    assert pattern.contexts == (observation.context,)
    assert pattern.first_seen == pattern.last_seen == observation.timestamp


def test_repeated_observation_accumulates(aggregator):
    aggregator.record(create_test_observation(confidence=0.4, timestamp="2024-01-01T00:00:00+00:00"))
    pattern = aggregator.record(
        create_test_observation(confidence=0.6, context=create_test_context("water"), timestamp="2024-01-02T00:00:00+00:00")
    )

    assert pattern.occurrence_count == 2
    assert pattern.confidence_sum == pytest.approx(1.0)
    assert pattern.average_confidence == pytest.approx(0.5)
    assert [c.device_type for c in pattern.contexts] == ["gas", "water"]
    assert pattern.first_seen == "2024-01-01T00:00:00+00:00"
    assert pattern.last_seen == "2024-01-02T00:00:00+00:00"
    assert len(aggregator) == 1


def test_distinct_pairs_of_same_kind_are_tracked_separately(aggregator):
    aggregator.record(create_test_observation(original="1234", corrected="1334"))
    aggregator.record(create_test_observation(original="5678", corrected="5670"))

    assert len(aggregator) == 2
    assert len(aggregator.for_kind(ErrorKind.DIGIT_CONFUSION)) == 2
    assert aggregator.for_kind(ErrorKind.FORMAT_ERROR) == []


def test_occurrence_count_matches_contexts(aggregator):
    for _ in range(7):
        pattern = aggregator.record(create_test_observation())
    assert pattern.occurrence_count == len(pattern.contexts) == 7
    assert 0.0 <= pattern.average_confidence <= 1.0


def test_every_update_appends_a_stat_record(aggregator, memory_store):
    for _ in range(3):
        aggregator.record(create_test_observation())

    records = memory_store.get_all(MISTAKE_PATTERNS)
    assert [r["occurrence_count"] for r in records] == [1, 2, 3]


def test_build_does_not_change_state(aggregator):
    pattern = aggregator.build(create_test_observation())
    assert pattern.occurrence_count == 1
    assert len(aggregator) == 0
    assert aggregator.get(pattern.pattern_key) is None


def test_load_folds_records_to_latest_snapshot(aggregator, memory_store, test_logger):
    for _ in range(3):
        aggregator.record(create_test_observation())
    aggregator.record(create_test_observation(original="9", corrected="8"))

    reloaded = MistakeAggregator(memory_store, logger=test_logger)
    assert reloaded.load(memory_store.get_all(MISTAKE_PATTERNS)) == 2
    assert reloaded.get("digit_confusion|1234|1334").occurrence_count == 3
    assert reloaded.patterns() == aggregator.patterns()


def test_clear(aggregator):
    aggregator.record(create_test_observation())
    aggregator.clear()
    assert aggregator.patterns() == []
