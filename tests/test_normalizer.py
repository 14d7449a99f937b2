import pytest

from tests.helpers import square
from pill_counter.schemas import ConfidenceTier, CountResult, PillPosition
from pill_counter.vision_pipeline.base import RawDetection
from pill_counter.vision_pipeline.classifier import Strategy
from pill_counter.vision_pipeline.normalizer import (
    FALLBACK_NOTES_PREFIX,
    build_detection_result,
    build_fallback_result,
    centroid,
    confidence_tier,
    degraded_result,
)


def test_centroid_is_mean_of_vertices_in_percent():
    pos = centroid(square(0.25, 0.75, half=0.1))
    assert pos.x == pytest.approx(25.0)
    assert pos.y == pytest.approx(75.0)


def test_centroid_is_clamped():
    pos = centroid(((1.2, -0.4), (1.4, -0.2)))
    assert (pos.x, pos.y) == (100.0, 0.0)


def test_empty_region_maps_to_image_centre():
    assert centroid(()) == PillPosition(x=50, y=50)


@pytest.mark.parametrize(
    "avg, tier",
    [
        (0.9, ConfidenceTier.HIGH),
        (0.81, ConfidenceTier.HIGH),
        (0.8, ConfidenceTier.MEDIUM),
        (0.6, ConfidenceTier.MEDIUM),
        (0.5, ConfidenceTier.LOW),
        (0.3, ConfidenceTier.LOW),
    ],
)
def test_confidence_tier(avg, tier):
    assert confidence_tier(avg) is tier


def test_pill_detections_result():
    detections = [
        RawDetection("Pill", 0.95, square(0.2, 0.2)),
        RawDetection("Tablet", 0.85, square(0.8, 0.6)),
    ]
    result = build_detection_result(detections, Strategy.PILLS)
    assert result.count == 2
    assert result.confidence is ConfidenceTier.HIGH
    assert [(round(p.x), round(p.y)) for p in result.pills] == [(20, 20), (80, 60)]
    assert result.notes == "Detected 2 objects via Vision API. Objects: Pill(95%), Tablet(85%)"


def test_all_objects_result_is_forced_medium():
    detections = [RawDetection("Button", 0.1, square(0.5, 0.5))]
    result = build_detection_result(detections, Strategy.ALL_OBJECTS)
    assert result.count == 1
    assert result.confidence is ConfidenceTier.MEDIUM
    assert result.notes == "Found 1 objects (no specific pill labels). Objects: Button"


def test_fallback_in_range_values_pass_through():
    payload = {
        "count": 2,
        "confidence": "high",
        "notes": "two capsules",
        "pills": [{"x": 25, "y": 50}, {"x": 75, "y": 50}],
    }
    result = build_fallback_result(payload)
    assert result.count == 2
    assert result.confidence is ConfidenceTier.HIGH
    assert result.pills == [PillPosition(x=25, y=50), PillPosition(x=75, y=50)]
    assert result.notes == FALLBACK_NOTES_PREFIX + "two capsules"


def test_fallback_coordinates_are_coerced_and_clamped():
    payload = {
        "count": 3,
        "confidence": "low",
        "pills": [{"x": 140, "y": -5}, {"x": "30", "y": "abc"}, {}],
    }
    result = build_fallback_result(payload)
    assert result.pills == [
        PillPosition(x=100, y=0),
        PillPosition(x=30, y=50),
        PillPosition(x=50, y=50),
    ]


@pytest.mark.parametrize("confidence", [None, "certain", 7])
def test_fallback_confidence_defaults_to_medium(confidence):
    result = build_fallback_result({"count": 0, "confidence": confidence, "pills": []})
    assert result.confidence is ConfidenceTier.MEDIUM


def test_fallback_count_is_not_reconciled_with_pills():
    result = build_fallback_result({"count": 5, "pills": [{"x": 10, "y": 10}]})
    assert result.count == 5
    assert len(result.pills) == 1


@pytest.mark.parametrize("count, expected", [(-3, 0), ("4", 4), ("many", 0), (None, 0), (2.7, 2)])
def test_fallback_count_is_non_negative_int(count, expected):
    assert build_fallback_result({"count": count}).count == expected


def test_fallback_oversized_numbers_fall_back_to_defaults():
    huge = int("1" + "0" * 400)
    payload = {"count": huge, "pills": [{"x": huge, "y": "1e400"}, {"x": -huge, "y": 20}]}
    result = build_fallback_result(payload)
    assert result.count == 0
    assert result.pills == [PillPosition(x=50, y=50), PillPosition(x=50, y=20)]


def test_degraded_result_shape():
    result = degraded_result()
    assert result == CountResult(count=0, confidence=ConfidenceTier.LOW, notes="No pills detected", pills=[])


def test_results_are_immutable():
    result = degraded_result()
    with pytest.raises(Exception):
        result.count = 3
