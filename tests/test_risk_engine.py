"""Tests for the composite risk engine."""
from __future__ import annotations

import threading

import pytest

from riskauth.core.anomaly_detector import no_baseline_result
from riskauth.core.baseline import BaselineCache
from riskauth.core.behavior import BehavioralSample
from riskauth.core.policy import DecisionPolicy, Recommendation, ScoringWeights
from riskauth.core.risk_engine import (
    CompositeRiskEngine,
    DeviceHistory,
    RiskAssessment,
    TlsFingerprintRecord,
    combine_scores,
    compute_device_score,
    compute_tls_score,
)


def test_unknown_device_scores_point_three(engine, data_source):
    data_source.add_device("u1", "known-device", seen_count=10, trust_score=1.0)

    assessment = engine.compute_overall_risk("u1", device_id="never-seen")

    assert assessment.device_score == 0.3


def test_missing_device_id_is_neutral(engine):
    assert engine.compute_overall_risk("u1").device_score == 0.5


def test_device_familiarity_and_trust():
    assert compute_device_score(DeviceHistory(seen_count=10, trust_score=1.0)) == pytest.approx(1.0)
    assert compute_device_score(DeviceHistory(seen_count=5, trust_score=0.5)) == pytest.approx(0.5)
    assert compute_device_score(DeviceHistory(seen_count=50, trust_score=0.0)) == pytest.approx(0.6)
    # unset fields fall back to one sighting at neutral trust
    assert compute_device_score(DeviceHistory()) == pytest.approx(0.06 + 0.2)


def test_tls_scoring_rules(engine, data_source):
    data_source.add_fingerprint("ja3-abc", trust_score=0.9, ja4_hash="t13d-xyz")

    assert engine.tls_score("ja3-abc") == 0.9
    assert engine.tls_score("t13d-xyz") == 0.9
    assert engine.tls_score("unknown") == 0.5
    assert engine.tls_score(None) == 0.7
    assert engine.tls_score("") == 0.7


def test_tls_record_without_trust_is_unmatched():
    assert compute_tls_score(TlsFingerprintRecord(ja3_hash="x")) == 0.5


def test_tls_trust_is_clamped():
    assert compute_tls_score(TlsFingerprintRecord(ja3_hash="x", trust_score=1.4)) == 1.0
    assert compute_tls_score(TlsFingerprintRecord(ja3_hash="x", trust_score=-0.2)) == 0.0


@pytest.mark.parametrize(
    "weights",
    [ScoringWeights(), ScoringWeights(1.0, 0.0, 0.0), ScoringWeights(0.2, 0.3, 0.5)],
)
def test_composite_is_a_weighted_average(weights):
    assert combine_scores(1.0, 1.0, 1.0, weights) == pytest.approx(1.0)
    assert combine_scores(0.0, 0.0, 0.0, weights) == 0.0


def test_perfect_signals_allow(engine, data_source):
    data_source.add_device("u1", "d1", seen_count=12, trust_score=1.0)
    data_source.add_fingerprint("ja3", trust_score=1.0)
    data_source.add_samples("u1", *[BehavioralSample(dwell_time=v) for v in (80.0, 90.0, 100.0)])

    assessment = engine.compute_overall_risk(
        "u1", device_id="d1", tls_fingerprint="ja3", sample=BehavioralSample(dwell_time=90.0)
    )

    assert assessment.overall_score == pytest.approx(1.0)
    assert assessment.recommendation == Recommendation.ALLOW
    assert assessment.passed is True
    assert assessment.degraded_signals == []


def test_new_user_defaults(engine):
    assessment = engine.compute_overall_risk("newcomer", device_id="d1", tls_fingerprint="ja3")

    # 0.3 * 0.35 + 0.5 * 0.25 + 0.85 * 0.40
    assert assessment.overall_score == pytest.approx(0.57)
    assert assessment.behavioral_score == 0.85
    assert assessment.recommendation == Recommendation.STEP_UP
    assert assessment.to_dict()["stepUpMethod"] == "otp"


def test_request_weights_override_policy(engine):
    assessment = engine.compute_overall_risk(
        "u1", device_id="d1", weights=ScoringWeights(1.0, 0.0, 0.0)
    )

    assert assessment.overall_score == pytest.approx(0.3)
    assert assessment.recommendation == Recommendation.BLOCK
    assert assessment.policy.weights == ScoringWeights(1.0, 0.0, 0.0)


def test_unnormalized_weights_are_scored_as_given(engine):
    assessment = engine.compute_overall_risk(
        "u1", tls_fingerprint=None, weights=ScoringWeights(0.5, 0.5, 0.5)
    )

    assert assessment.overall_score == pytest.approx(0.5 * 0.5 + 0.7 * 0.5 + 0.85 * 0.5)


def test_slow_device_lookup_falls_back(data_source):
    data_source.delays["device"] = 0.5
    engine = CompositeRiskEngine(data_source, fetch_timeout=0.1)
    assessment = engine.compute_overall_risk("u1", device_id="d1", tls_fingerprint="ja3")

    assert assessment.device_score == 0.3
    assert assessment.degraded_signals == ["device"]
    assert assessment.to_dict()["degradedSignals"] == ["device"]


def test_slow_assessment_does_not_starve_other_users(data_source):
    data_source.add_device("fast", "d1", seen_count=10, trust_score=1.0)
    started = threading.Semaphore(0)
    release = threading.Event()
    original_lookup = data_source.get_device_history

    def stalling_lookup(user_id, device_id):
        if user_id == "slow":
            started.release()
            release.wait(5)
        return original_lookup(user_id, device_id)

    data_source.get_device_history = stalling_lookup
    engine = CompositeRiskEngine(data_source, fetch_timeout=0.5)

    slow_requests = [
        threading.Thread(target=engine.compute_overall_risk, args=("slow",), kwargs={"device_id": "d1"})
        for _ in range(3)
    ]
    for thread in slow_requests:
        thread.start()
    for _ in slow_requests:
        assert started.acquire(timeout=5)

    try:
        assessment = engine.compute_overall_risk("fast", device_id="d1", tls_fingerprint="ja3")
    finally:
        release.set()
        for thread in slow_requests:
            thread.join(5)

    assert assessment.device_score == pytest.approx(1.0)
    assert assessment.degraded_signals == []


def test_failed_baseline_lookup_means_no_baseline(engine, data_source):
    data_source.failures["behavioral"] = RuntimeError("storage down")

    assessment = engine.compute_overall_risk("u1", sample=BehavioralSample(dwell_time=500.0))

    assert assessment.behavioral_score == 0.85
    assert assessment.degraded_signals == ["behavioral"]


def test_baseline_cache_is_used(data_source):
    data_source.add_samples("u1", *[BehavioralSample(dwell_time=v) for v in (80.0, 90.0, 100.0)])
    cache = BaselineCache()
    engine = CompositeRiskEngine(data_source, baseline_cache=cache)
    engine.score_behavior("u1", BehavioralSample(dwell_time=90.0))
    engine.score_behavior("u1", BehavioralSample(dwell_time=91.0))

    assert (cache.hits, cache.misses) == (1, 1)


def test_factors_and_record(engine, data_source):
    data_source.add_samples("u1", *[BehavioralSample(dwell_time=v) for v in (80.0, 90.0, 100.0)])
    assessment = engine.compute_overall_risk("u1", sample=BehavioralSample(dwell_time=130.0))

    factors = assessment.factors()
    assert factors["deviceFamiliarity"] == 0.5
    assert factors["tlsConsistency"] == 0.7
    assert factors["behavioralMatch"] == pytest.approx(0.15)
    assert factors["behavioralDeviations"] == {"avgKeyHoldTime": pytest.approx(4.0)}

    record = assessment.to_record()
    assert record["threshold"] == 0.75
    assert record["passed"] is False
    assert record["recommendation"] == "block"


def test_low_confidence_alert():
    assessment = RiskAssessment(
        user_id="u1",
        overall_score=0.1,
        device_score=0.1,
        tls_score=0.1,
        behavioral_score=0.1,
        anomaly_result=no_baseline_result(),
        recommendation=Recommendation.BLOCK,
        policy=DecisionPolicy(alert_threshold=0.4),
    )

    alert = assessment.low_confidence_alert()
    assert alert["alertType"] == "low_confidence"
    assert alert["severity"] == "critical"
    assert alert["riskScore"] == pytest.approx(0.9)


def test_confidence_update_payload(engine):
    payload = engine.compute_overall_risk("u7").confidence_update()
    assert payload["type"] == "confidence_update"
    assert payload["userId"] == "u7"
    assert 0.0 <= payload["score"] <= 1.0
