# riskauth/core/anomaly_detector.py
"""
Behavioral anomaly scoring against a user's statistical baseline
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Any

from riskauth.core.baseline import BaselineProfile
from riskauth.core.behavior import BehavioralSample, TRACKED_FEATURES
from riskauth.core.policy import Recommendation, recommend

logger = logging.getLogger(__name__)

# Trust returned when the user has no usable baseline yet
NO_BASELINE_SCORE = 0.85

FEATURE_ANOMALY_Z = 2.0
AGGREGATE_ANOMALY_THRESHOLD = 0.5
MIN_ANOMALOUS_FEATURES = 3

BEHAVIOR_ALLOW_THRESHOLD = 0.8
BEHAVIOR_STEP_UP_THRESHOLD = 0.5

CRITICAL_TRUST_THRESHOLD = 0.3


class ConfidenceLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertSeverity(Enum):
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class AnomalyFactor:
    """Comparison of one feature against its baseline"""
    factor: str
    current_value: float
    expected_value: float
    deviation: float
    is_anomaly: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'factor': self.factor,
            'currentValue': self.current_value,
            'expectedValue': self.expected_value,
            'deviation': self.deviation,
            'isAnomaly': self.is_anomaly,
        }


@dataclass(frozen=True)
class AnomalyResult:
    overall_score: float
    anomaly_factors: List[AnomalyFactor] = field(default_factory=list)
    is_anomaly: bool = False
    confidence_level: ConfidenceLevel = ConfidenceLevel.LOW
    recommendation: Recommendation = Recommendation.STEP_UP

    @property
    def anomalous_factors(self) -> List[AnomalyFactor]:
        return [f for f in self.anomaly_factors if f.is_anomaly]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overallScore': self.overall_score,
            'anomalyFactors': [f.to_dict() for f in self.anomaly_factors],
            'isAnomaly': self.is_anomaly,
            'confidenceLevel': self.confidence_level.value,
            'recommendation': self.recommendation.value,
        }


def z_score(value: float, mean: float, std_dev: float) -> float:
    """Absolute z-score; a zero-variance feature never deviates"""
    if std_dev == 0:
        return 0.0
    return abs(value - mean) / std_dev


def z_score_to_anomaly_probability(z: float) -> float:
    """Piecewise-linear mapping that ignores mild deviations and
    saturates extreme ones at 1.0"""
    if z <= 1:
        return 0.0
    if z <= 2:
        return (z - 1) * 0.3
    if z <= 3:
        return 0.3 + (z - 2) * 0.4
    return min(1.0, 0.7 + (z - 3) * 0.15)


def no_baseline_result() -> AnomalyResult:
    return AnomalyResult(
        overall_score=NO_BASELINE_SCORE,
        anomaly_factors=[],
        is_anomaly=False,
        confidence_level=ConfidenceLevel.LOW,
        recommendation=Recommendation.STEP_UP,
    )


def _confidence_for(evaluated: int) -> ConfidenceLevel:
    if evaluated >= 6:
        return ConfidenceLevel.HIGH
    if evaluated >= 3:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def score_behavior(baseline: Optional[BaselineProfile], sample: BehavioralSample) -> AnomalyResult:
    """Score a behavioral sample against a baseline.

    Features missing from either the sample or the baseline are skipped and
    do not count toward weight normalisation.
    """
    if baseline is None:
        return no_baseline_result()

    factors = []
    weighted_anomaly = 0.0
    weight_used = 0.0

    for feature in TRACKED_FEATURES:
        value = sample.get(feature.sample_field)
        stats = baseline.stats_for(feature.sample_field)
        if value is None or stats is None:
            continue

        deviation = z_score(value, stats.mean, stats.std_dev)
        probability = z_score_to_anomaly_probability(deviation)

        factors.append(AnomalyFactor(
            factor=feature.baseline_name,
            current_value=value,
            expected_value=stats.mean,
            deviation=deviation,
            is_anomaly=deviation > FEATURE_ANOMALY_Z,
        ))
        weighted_anomaly += probability * feature.weight
        weight_used += feature.weight

        logger.debug(f"{feature.baseline_name}: z={deviation:.3f} p={probability:.3f}")

    normalized_anomaly = weighted_anomaly / weight_used if weight_used > 0 else 0.0
    trust = 1.0 - normalized_anomaly

    anomalous_count = sum(1 for f in factors if f.is_anomaly)
    is_anomaly = normalized_anomaly > AGGREGATE_ANOMALY_THRESHOLD or anomalous_count >= MIN_ANOMALOUS_FEATURES

    return AnomalyResult(
        overall_score=trust,
        anomaly_factors=factors,
        is_anomaly=is_anomaly,
        confidence_level=_confidence_for(len(factors)),
        recommendation=recommend(trust, BEHAVIOR_ALLOW_THRESHOLD, BEHAVIOR_STEP_UP_THRESHOLD),
    )


def build_anomaly_alert(result: AnomalyResult) -> Optional[Dict[str, Any]]:
    """Alert payload for an anomalous result, None otherwise"""
    if not result.is_anomaly:
        return None

    severity = AlertSeverity.CRITICAL if result.overall_score < CRITICAL_TRUST_THRESHOLD else AlertSeverity.HIGH
    names = ", ".join(f.factor for f in result.anomalous_factors)

    return {
        'alertType': 'behavioral',
        'severity': severity.value,
        'description': f"Behavioral anomaly detected: {names}",
        'riskScore': 1.0 - result.overall_score,
    }
