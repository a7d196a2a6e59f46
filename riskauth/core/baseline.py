# riskauth/core/baseline.py
"""
Per-user behavioral baseline built from historical samples
"""
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from riskauth.core.behavior import BehavioralSample, TRACKED_FEATURES

logger = logging.getLogger(__name__)

# Fewer samples than this means "unknown user", not "anomalous user"
MIN_BASELINE_SAMPLES = 3


@dataclass(frozen=True)
class FeatureStats:
    mean: float
    std_dev: float

    def to_dict(self) -> Dict[str, float]:
        return {'mean': self.mean, 'stdDev': self.std_dev}


@dataclass(frozen=True)
class BaselineProfile:
    """Mean and sample standard deviation per tracked feature.

    Only features with at least one historical value are present in
    ``features``; keys are BehavioralSample field names.
    """
    features: Dict[str, FeatureStats] = field(default_factory=dict)
    sample_count: int = 0

    def stats_for(self, sample_field: str) -> Optional[FeatureStats]:
        return self.features.get(sample_field)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise using the dashboard's feature names"""
        return {
            feature.baseline_name: self.features[feature.sample_field].to_dict()
            for feature in TRACKED_FEATURES
            if feature.sample_field in self.features
        }


def _feature_stats(values: List[float]) -> FeatureStats:
    data = np.asarray(values, dtype=float)
    mean = float(np.mean(data))
    # Sample standard deviation; a single observation carries no spread
    std_dev = float(np.std(data, ddof=1)) if len(data) >= 2 else 0.0
    return FeatureStats(mean=mean, std_dev=std_dev)


def build_baseline(samples: Iterable[BehavioralSample]) -> Optional[BaselineProfile]:
    """Build a baseline profile from a user's full sample history.

    Returns None when fewer than MIN_BASELINE_SAMPLES samples exist.
    """
    samples = list(samples)
    if len(samples) < MIN_BASELINE_SAMPLES:
        logger.debug(f"Insufficient history for baseline: {len(samples)} samples")
        return None

    features = {}
    for feature in TRACKED_FEATURES:
        values = [s.get(feature.sample_field) for s in samples]
        values = [v for v in values if v is not None]
        if values:
            features[feature.sample_field] = _feature_stats(values)

    return BaselineProfile(features=features, sample_count=len(samples))


class BaselineCache:
    """LRU cache of baselines keyed by (user_id, sample_count).

    Samples are append-only, so a new sample changes the count and misses.
    """

    def __init__(self, max_size: int = 256):
        self.max_size = max_size
        self._entries: 'OrderedDict[Tuple[Any, int], Optional[BaselineProfile]]' = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_or_build(self, user_id: Any, samples: Sequence[BehavioralSample]) -> Optional[BaselineProfile]:
        key = (user_id, len(samples))
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self.hits += 1
                logger.debug(f"Baseline cache hit for user {user_id}")
                return self._entries[key]

        baseline = build_baseline(samples)

        with self._lock:
            self.misses += 1
            self._entries[key] = baseline
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

        return baseline

    def invalidate(self, user_id: Any) -> None:
        with self._lock:
            for key in [k for k in self._entries if k[0] == user_id]:
                del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0
