"""Tests for baseline construction and caching."""
from __future__ import annotations

import pytest

from riskauth.core.baseline import BaselineCache, build_baseline
from riskauth.core.behavior import BehavioralSample


def _dwell(*values):
    return [BehavioralSample(dwell_time=v) for v in values]


@pytest.mark.parametrize("count", [0, 1, 2])
def test_fewer_than_three_samples_has_no_baseline(count):
    assert build_baseline(_dwell(*[100.0] * count)) is None


def test_three_samples_build_a_profile():
    baseline = build_baseline(_dwell(80.0, 90.0, 100.0))

    assert baseline is not None
    assert baseline.sample_count == 3
    stats = baseline.stats_for("dwell_time")
    assert stats.mean == pytest.approx(90.0)
    # n - 1 denominator
    assert stats.std_dev == pytest.approx(10.0)


def test_single_value_for_a_feature_has_zero_spread():
    samples = [
        BehavioralSample(dwell_time=90.0, typing_speed=60.0),
        BehavioralSample(dwell_time=95.0),
        BehavioralSample(dwell_time=100.0),
    ]
    baseline = build_baseline(samples)

    assert baseline.stats_for("typing_speed").mean == pytest.approx(60.0)
    assert baseline.stats_for("typing_speed").std_dev == 0.0


def test_features_without_history_are_absent():
    baseline = build_baseline(_dwell(80.0, 90.0, 100.0))

    assert baseline.stats_for("mouse_velocity") is None
    assert "avgMouseSpeed" not in baseline.to_dict()


def test_untracked_features_do_not_enter_baseline():
    samples = [BehavioralSample(scroll_speed=float(v), dwell_time=90.0) for v in (1, 2, 3)]
    baseline = build_baseline(samples)

    assert baseline.stats_for("scroll_speed") is None
    assert set(baseline.features) == {"dwell_time"}


def test_to_dict_uses_dashboard_names():
    samples = [BehavioralSample(dwell_time=90.0, mouse_velocity=1.0) for _ in range(3)]
    payload = build_baseline(samples).to_dict()

    assert payload["avgKeyHoldTime"] == {"mean": 90.0, "stdDev": 0.0}
    assert payload["avgMouseSpeed"] == {"mean": 1.0, "stdDev": 0.0}


def test_build_baseline_is_idempotent():
    samples = _dwell(70.0, 85.0, 130.0, 91.0)
    assert build_baseline(samples) == build_baseline(samples)


def test_cache_rebuilds_when_history_grows():
    cache = BaselineCache(max_size=4)
    samples = _dwell(80.0, 90.0, 100.0)

    first = cache.get_or_build("u1", samples)
    again = cache.get_or_build("u1", samples)
    assert first is again
    assert (cache.hits, cache.misses) == (1, 1)

    grown = cache.get_or_build("u1", samples + _dwell(200.0))
    assert grown.sample_count == 4
    assert cache.misses == 2


def test_cache_evicts_least_recently_used():
    cache = BaselineCache(max_size=2)
    samples = _dwell(80.0, 90.0, 100.0)

    cache.get_or_build("a", samples)
    cache.get_or_build("b", samples)
    cache.get_or_build("a", samples)
    cache.get_or_build("c", samples)

    cache.get_or_build("a", samples)
    assert cache.hits == 2
    cache.get_or_build("b", samples)
    assert cache.misses == 4


def test_cache_invalidate_drops_user_entries():
    cache = BaselineCache()
    samples = _dwell(80.0, 90.0, 100.0)
    cache.get_or_build("u1", samples)

    cache.invalidate("u1")
    cache.get_or_build("u1", samples)
    assert cache.misses == 2
