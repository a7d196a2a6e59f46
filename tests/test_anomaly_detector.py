"""Tests for behavioral anomaly scoring."""
from __future__ import annotations

import pytest

from riskauth.core.anomaly_detector import (
    ConfidenceLevel,
    build_anomaly_alert,
    no_baseline_result,
    score_behavior,
    z_score,
    z_score_to_anomaly_probability,
)
from riskauth.core.baseline import BaselineProfile, FeatureStats, build_baseline
from riskauth.core.behavior import BehavioralSample
from riskauth.core.policy import Recommendation


def _baseline(**stats):
    return BaselineProfile(
        features={name: FeatureStats(mean=m, std_dev=s) for name, (m, s) in stats.items()},
        sample_count=3,
    )


@pytest.mark.parametrize(
    "z, expected",
    [
        (0.0, 0.0),
        (1.0, 0.0),
        (1.5, 0.15),
        (2.0, 0.3),
        (2.5, 0.5),
        (3.0, 0.7),
        (4.0, 0.85),
        (10.0, 1.0),
    ],
)
def test_probability_mapping(z, expected):
    assert z_score_to_anomaly_probability(z) == pytest.approx(expected)


def test_probability_is_monotonic_in_deviation():
    probabilities = [z_score_to_anomaly_probability(z / 10) for z in range(0, 120)]
    assert probabilities == sorted(probabilities)


def test_z_score_is_absolute_and_zero_without_spread():
    assert z_score(70.0, 90.0, 10.0) == pytest.approx(2.0)
    assert z_score(500.0, 90.0, 0.0) == 0.0


@pytest.mark.parametrize(
    "sample",
    [BehavioralSample(), BehavioralSample(dwell_time=5000.0, typing_speed=1.0)],
)
def test_no_baseline_defaults(sample):
    result = score_behavior(None, sample)

    assert result.overall_score == 0.85
    assert result.recommendation == Recommendation.STEP_UP
    assert result.confidence_level == ConfidenceLevel.LOW
    assert result.anomaly_factors == []
    assert result.is_anomaly is False
    assert result == no_baseline_result()


def test_single_feature_end_to_end():
    baseline = build_baseline([BehavioralSample(dwell_time=v) for v in (80.0, 90.0, 100.0)])

    result = score_behavior(baseline, BehavioralSample(dwell_time=130.0))

    assert len(result.anomaly_factors) == 1
    factor = result.anomaly_factors[0]
    assert factor.factor == "avgKeyHoldTime"
    assert factor.expected_value == pytest.approx(90.0)
    assert factor.deviation == pytest.approx(4.0)
    assert factor.is_anomaly is True
    assert result.overall_score == pytest.approx(0.15)
    assert result.is_anomaly is True
    assert result.recommendation == Recommendation.BLOCK
    assert result.confidence_level == ConfidenceLevel.LOW


def test_matching_behavior_is_allowed():
    baseline = _baseline(dwell_time=(90.0, 10.0), flight_time=(120.0, 15.0), typing_speed=(60.0, 5.0))

    result = score_behavior(baseline, BehavioralSample(dwell_time=95.0, flight_time=110.0, typing_speed=62.0))

    assert result.overall_score == pytest.approx(1.0)
    assert result.is_anomaly is False
    assert result.recommendation == Recommendation.ALLOW
    assert result.confidence_level == ConfidenceLevel.MEDIUM


def test_missing_features_do_not_dilute_score():
    baseline = _baseline(dwell_time=(90.0, 10.0), typing_speed=(60.0, 5.0))

    # typing_speed absent from the sample, mouse_velocity absent from the baseline
    result = score_behavior(baseline, BehavioralSample(dwell_time=130.0, mouse_velocity=3.0))

    assert [f.factor for f in result.anomaly_factors] == ["avgKeyHoldTime"]
    assert result.overall_score == pytest.approx(0.15)


def test_weights_normalise_over_evaluated_features():
    baseline = _baseline(dwell_time=(90.0, 10.0), straight_line_ratio=(0.5, 0.1))

    # dwell z=4 -> 0.85 at weight 0.20; straight line z=0 at weight 0.05
    result = score_behavior(baseline, BehavioralSample(dwell_time=130.0, straight_line_ratio=0.5))

    assert result.overall_score == pytest.approx(1.0 - (0.85 * 0.20) / 0.25)


def test_three_mildly_anomalous_features_flag_anomaly():
    baseline = _baseline(
        mouse_velocity=(1.0, 0.1),
        dwell_time=(90.0, 10.0),
        flight_time=(120.0, 10.0),
        typing_speed=(60.0, 5.0),
        mouse_acceleration=(2.0, 0.5),
        straight_line_ratio=(0.5, 0.1),
    )
    # three features at z=2.2, the rest on the mean
    sample = BehavioralSample(
        mouse_velocity=1.22,
        dwell_time=112.0,
        flight_time=142.0,
        typing_speed=60.0,
        mouse_acceleration=2.0,
        straight_line_ratio=0.5,
    )

    result = score_behavior(baseline, sample)

    assert len(result.anomalous_factors) == 3
    assert result.overall_score > 0.5
    assert result.is_anomaly is True
    assert result.confidence_level == ConfidenceLevel.HIGH


def test_zero_variance_feature_never_deviates():
    baseline = _baseline(dwell_time=(90.0, 0.0))

    result = score_behavior(baseline, BehavioralSample(dwell_time=400.0))

    assert result.anomaly_factors[0].deviation == 0.0
    assert result.overall_score == pytest.approx(1.0)


def test_no_overlap_is_fully_trusted_with_low_confidence():
    baseline = _baseline(dwell_time=(90.0, 10.0))

    result = score_behavior(baseline, BehavioralSample(scroll_speed=9.0))

    assert result.anomaly_factors == []
    assert result.overall_score == pytest.approx(1.0)
    assert result.confidence_level == ConfidenceLevel.LOW


def test_behavior_recommendation_bands():
    baseline = _baseline(dwell_time=(90.0, 10.0))

    # z=2.5 -> probability 0.5 -> trust 0.5, the inclusive step-up bound
    result = score_behavior(baseline, BehavioralSample(dwell_time=115.0))

    assert result.overall_score == pytest.approx(0.5)
    assert result.recommendation == Recommendation.STEP_UP


def test_anomaly_alert_payload():
    baseline = _baseline(dwell_time=(90.0, 10.0))
    result = score_behavior(baseline, BehavioralSample(dwell_time=130.0))

    alert = build_anomaly_alert(result)

    assert alert["alertType"] == "behavioral"
    assert alert["severity"] == "critical"
    assert alert["description"] == "Behavioral anomaly detected: avgKeyHoldTime"
    assert alert["riskScore"] == pytest.approx(0.85)


def test_no_alert_for_normal_behavior():
    baseline = _baseline(dwell_time=(90.0, 10.0))
    result = score_behavior(baseline, BehavioralSample(dwell_time=92.0))

    assert build_anomaly_alert(result) is None


def test_result_serialises_camel_case():
    baseline = _baseline(dwell_time=(90.0, 10.0))
    payload = score_behavior(baseline, BehavioralSample(dwell_time=130.0)).to_dict()

    assert payload["recommendation"] == "block"
    assert payload["confidenceLevel"] == "low"
    assert payload["anomalyFactors"][0]["currentValue"] == 130.0
    assert payload["anomalyFactors"][0]["isAnomaly"] is True
