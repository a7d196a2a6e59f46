# riskauth/core/risk_engine.py
"""
Composite risk engine combining device, TLS and behavioral trust signals
into one confidence score and an authentication decision
"""
import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any, Callable

from riskauth.core.anomaly_detector import AnomalyResult, score_behavior, no_baseline_result
from riskauth.core.baseline import BaselineCache, build_baseline
from riskauth.core.behavior import BehavioralSample
from riskauth.core.policy import DecisionPolicy, Recommendation, ScoringWeights, validate_weights

logger = logging.getLogger(__name__)

# Uncalibrated defaults, kept as literal constants
UNKNOWN_DEVICE_SCORE = 0.3
NO_DEVICE_SCORE = 0.5
DEFAULT_DEVICE_TRUST = 0.5
UNMATCHED_TLS_SCORE = 0.5
NO_TLS_SCORE = 0.7

FAMILIARITY_SATURATION = 10
FAMILIARITY_WEIGHT = 0.6
DEVICE_TRUST_WEIGHT = 0.4


@dataclass(frozen=True)
class DeviceHistory:
    seen_count: Optional[int] = None
    trust_score: Optional[float] = None


@dataclass(frozen=True)
class TlsFingerprintRecord:
    trust_score: Optional[float] = None
    ja3_hash: Optional[str] = None
    ja4_hash: Optional[str] = None


class RiskDataSource(ABC):
    """Read-only access to the history the engine scores against.

    Implementations must be safe to call from worker threads.
    """

    @abstractmethod
    def get_behavioral_samples_for_user(self, user_id: Any) -> List[BehavioralSample]:
        ...

    @abstractmethod
    def get_device_history(self, user_id: Any, device_id: Any) -> Optional[DeviceHistory]:
        """History of ``device_id`` for this user, None if the user has never used it"""

    @abstractmethod
    def get_tls_fingerprint_by_hash(self, fingerprint_hash: str) -> Optional[TlsFingerprintRecord]:
        """Fingerprint whose JA3 or JA4 hash matches, None if unknown"""


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def compute_device_score(history: Optional[DeviceHistory]) -> float:
    """Familiarity-weighted device trust"""
    if history is None:
        return UNKNOWN_DEVICE_SCORE

    seen_count = history.seen_count or 1
    trust = history.trust_score if history.trust_score is not None else DEFAULT_DEVICE_TRUST
    familiarity = min(1.0, seen_count / FAMILIARITY_SATURATION)

    return _clamp(familiarity * FAMILIARITY_WEIGHT + trust * DEVICE_TRUST_WEIGHT)


def compute_tls_score(record: Optional[TlsFingerprintRecord]) -> float:
    if record is None or record.trust_score is None:
        return UNMATCHED_TLS_SCORE
    return _clamp(record.trust_score)


def combine_scores(device_score: float, tls_score: float, behavioral_score: float,
                   weights: ScoringWeights) -> float:
    """Weighted sum of the three signals; weights are not renormalised"""
    return (device_score * weights.device +
            tls_score * weights.tls +
            behavioral_score * weights.behavioral)


@dataclass
class RiskAssessment:
    """Result of one composite risk calculation"""
    user_id: Any
    overall_score: float
    device_score: float
    tls_score: float
    behavioral_score: float
    anomaly_result: AnomalyResult
    recommendation: Recommendation
    policy: DecisionPolicy
    degraded_signals: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def passed(self) -> bool:
        """Whether silent authentication is granted"""
        return self.overall_score >= self.policy.silent_auth_threshold

    @property
    def is_low_confidence(self) -> bool:
        return self.overall_score < self.policy.alert_threshold

    def factors(self) -> Dict[str, Any]:
        return {
            'deviceFamiliarity': self.device_score,
            'tlsConsistency': self.tls_score,
            'behavioralMatch': self.behavioral_score,
            'behavioralDeviations': {
                f.factor: f.deviation for f in self.anomaly_result.anomaly_factors
            },
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'userId': self.user_id,
            'overallScore': self.overall_score,
            'deviceScore': self.device_score,
            'tlsScore': self.tls_score,
            'behavioralScore': self.behavioral_score,
            'anomalyResult': self.anomaly_result.to_dict(),
            'recommendation': self.recommendation.value,
            'passed': self.passed,
            'threshold': self.policy.silent_auth_threshold,
            'stepUpMethod': self.policy.step_up_method if self.recommendation == Recommendation.STEP_UP else None,
            'degradedSignals': list(self.degraded_signals),
            'timestamp': self.created_at.isoformat(),
        }

    def to_record(self) -> Dict[str, Any]:
        """Column values for a persisted RiskScore"""
        return {
            'user_id': self.user_id,
            'device_score': self.device_score,
            'tls_score': self.tls_score,
            'behavioral_score': self.behavioral_score,
            'overall_score': self.overall_score,
            'factors': self.factors(),
            'threshold': self.policy.silent_auth_threshold,
            'passed': self.passed,
            'recommendation': self.recommendation.value,
            'created_at': self.created_at,
        }

    def confidence_update(self) -> Dict[str, Any]:
        """Dashboard push payload"""
        return {
            'type': 'confidence_update',
            'score': self.overall_score,
            'userId': self.user_id,
        }

    def low_confidence_alert(self) -> Optional[Dict[str, Any]]:
        if not self.is_low_confidence:
            return None
        severity = 'critical' if self.overall_score < self.policy.alert_threshold / 2 else 'high'
        return {
            'alertType': 'low_confidence',
            'severity': severity,
            'description': (f"Authentication confidence {self.overall_score:.0%} below "
                            f"alert threshold {self.policy.alert_threshold:.0%}"),
            'riskScore': 1.0 - self.overall_score,
        }


class CompositeRiskEngine:
    """Scores one user/device/TLS triple.

    The three history reads are independent and run concurrently on a pool
    owned by the call. A read that fails or exceeds ``fetch_timeout`` falls
    back to that signal's default score instead of blocking the assessment.
    """

    def __init__(self, data_source: RiskDataSource,
                 baseline_cache: Optional[BaselineCache] = None,
                 fetch_timeout: Optional[float] = 2.0,
                 max_workers: int = 3):
        self.data_source = data_source
        self.baseline_cache = baseline_cache
        self.fetch_timeout = fetch_timeout
        self.max_workers = max_workers

    def get_baseline(self, user_id: Any):
        samples = self.data_source.get_behavioral_samples_for_user(user_id)
        if self.baseline_cache is not None:
            return self.baseline_cache.get_or_build(user_id, samples)
        return build_baseline(samples)

    def score_behavior(self, user_id: Any, sample: BehavioralSample) -> AnomalyResult:
        return score_behavior(self.get_baseline(user_id), sample)

    def device_score(self, user_id: Any, device_id: Any) -> float:
        if device_id is None:
            return NO_DEVICE_SCORE
        return compute_device_score(self.data_source.get_device_history(user_id, device_id))

    def tls_score(self, tls_fingerprint: Optional[str]) -> float:
        if not tls_fingerprint:
            return NO_TLS_SCORE
        return compute_tls_score(self.data_source.get_tls_fingerprint_by_hash(tls_fingerprint))

    def compute_overall_risk(self, user_id: Any,
                             device_id: Any = None,
                             tls_fingerprint: Optional[str] = None,
                             sample: Optional[BehavioralSample] = None,
                             policy: Optional[DecisionPolicy] = None,
                             weights: Optional[ScoringWeights] = None) -> RiskAssessment:
        policy = policy or DecisionPolicy()
        if weights is not None:
            policy = policy.with_weights(weights)
        validate_weights(policy.weights, strict=False)

        sample = sample or BehavioralSample()
        deadline = time.monotonic() + self.fetch_timeout if self.fetch_timeout else None
        degraded = []

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='risk-fetch')
        try:
            behavior_future = executor.submit(self.score_behavior, user_id, sample)
            device_future = executor.submit(self.device_score, user_id, device_id)
            tls_future = executor.submit(self.tls_score, tls_fingerprint)

            anomaly_result = self._resolve(behavior_future, deadline, no_baseline_result, 'behavioral', user_id, degraded)
            device_score = self._resolve(device_future, deadline, lambda: UNKNOWN_DEVICE_SCORE, 'device', user_id, degraded)
            tls_score = self._resolve(tls_future, deadline, lambda: UNMATCHED_TLS_SCORE, 'tls', user_id, degraded)
        finally:
            # stalled reads finish in the background
            executor.shutdown(wait=False)

        overall = combine_scores(device_score, tls_score, anomaly_result.overall_score, policy.weights)
        recommendation = policy.recommend(overall)

        logger.debug(f"Risk for user {user_id}: overall={overall:.3f} device={device_score:.3f} "
                     f"tls={tls_score:.3f} behavioral={anomaly_result.overall_score:.3f} -> {recommendation.value}")

        return RiskAssessment(
            user_id=user_id,
            overall_score=overall,
            device_score=device_score,
            tls_score=tls_score,
            behavioral_score=anomaly_result.overall_score,
            anomaly_result=anomaly_result,
            recommendation=recommendation,
            policy=policy,
            degraded_signals=degraded,
        )

    def _resolve(self, future: Future, deadline: Optional[float], fallback: Callable[[], Any],
                 signal: str, user_id: Any, degraded: List[str]) -> Any:
        timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(f"{signal} lookup for user {user_id} timed out; using default score")
        except Exception as e:
            logger.error(f"{signal} lookup for user {user_id} failed: {e}")
        degraded.append(signal)
        return fallback()
