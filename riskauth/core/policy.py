# riskauth/core/policy.py
"""
Decision policy: composite weights, recommendation thresholds and
step-up/alert settings passed explicitly into every scoring call
"""
import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Any, Optional, Mapping

logger = logging.getLogger(__name__)

WEIGHT_SUM_TOLERANCE = 1e-6


class Recommendation(Enum):
    ALLOW = "allow"
    STEP_UP = "step_up"
    BLOCK = "block"


class WeightConfigurationError(ValueError):
    """Raised when strict validation rejects a weight configuration"""


@dataclass(frozen=True)
class ScoringWeights:
    """Relative weight of each signal in the composite score.

    Expected to sum to 1.0; the composite is still a well-defined
    weighted sum when it does not.
    """
    device: float = 0.35
    tls: float = 0.25
    behavioral: float = 0.40

    @property
    def total(self) -> float:
        return self.device + self.tls + self.behavioral

    def is_normalized(self) -> bool:
        return math.isclose(self.total, 1.0, abs_tol=WEIGHT_SUM_TOLERANCE)

    def to_dict(self) -> Dict[str, float]:
        return {'device': self.device, 'tls': self.tls, 'behavioral': self.behavioral}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]], default: Optional['ScoringWeights'] = None) -> 'ScoringWeights':
        base = default or cls()
        if not data:
            return base
        return cls(
            device=_fraction(data.get('device', base.device)),
            tls=_fraction(data.get('tls', base.tls)),
            behavioral=_fraction(data.get('behavioral', base.behavioral)),
        )


@dataclass(frozen=True)
class DecisionPolicy:
    """Per-request scoring configuration"""
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    allow_threshold: float = 0.75
    step_up_threshold: float = 0.45
    silent_auth_threshold: float = 0.75
    alert_threshold: float = 0.40
    step_up_method: str = "otp"

    # Admin setting key -> policy attribute
    SETTING_KEYS = {
        'silentAuthThreshold': 'silent_auth_threshold',
        'allowThreshold': 'allow_threshold',
        'stepUpThreshold': 'step_up_threshold',
        'alertThreshold': 'alert_threshold',
        'stepUpMethod': 'step_up_method',
    }
    WEIGHT_KEYS = {
        'deviceWeight': 'device',
        'tlsWeight': 'tls',
        'behavioralWeight': 'behavioral',
    }

    def recommend(self, score: float) -> Recommendation:
        return recommend(score, self.allow_threshold, self.step_up_threshold)

    def with_weights(self, weights: ScoringWeights) -> 'DecisionPolicy':
        return replace(self, weights=weights)

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any], default: Optional['DecisionPolicy'] = None) -> 'DecisionPolicy':
        """Overlay admin settings onto a default policy.

        Percent values (> 1) coming from the admin sliders are scaled to
        fractions. Unknown keys are ignored.
        """
        base = default or cls()
        updates = {}

        for key, attr in cls.SETTING_KEYS.items():
            if key not in settings or settings[key] is None:
                continue
            if attr == 'step_up_method':
                updates[attr] = str(settings[key])
            else:
                updates[attr] = _fraction(settings[key])

        weight_updates = {
            attr: settings[key] for key, attr in cls.WEIGHT_KEYS.items()
            if settings.get(key) is not None
        }
        if weight_updates:
            updates['weights'] = ScoringWeights.from_dict(weight_updates, default=base.weights)

        return replace(base, **updates)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'weights': self.weights.to_dict(),
            'allowThreshold': self.allow_threshold,
            'stepUpThreshold': self.step_up_threshold,
            'silentAuthThreshold': self.silent_auth_threshold,
            'alertThreshold': self.alert_threshold,
            'stepUpMethod': self.step_up_method,
        }


def recommend(score: float, allow_threshold: float, step_up_threshold: float) -> Recommendation:
    """Map a trust score to a decision; lower bounds are inclusive"""
    if score >= allow_threshold:
        return Recommendation.ALLOW
    if score >= step_up_threshold:
        return Recommendation.STEP_UP
    return Recommendation.BLOCK


def validate_weights(weights: ScoringWeights, strict: bool = False) -> bool:
    """Check the weights sum to 1.

    Lenient mode logs and returns False; strict mode raises
    WeightConfigurationError. Negative weights are always rejected in
    strict mode.
    """
    problems = []
    if any(w < 0 for w in (weights.device, weights.tls, weights.behavioral)):
        problems.append("weights must be non-negative")
    if not weights.is_normalized():
        problems.append(f"weights must sum to 1.0 (currently {weights.total:.4f})")

    if not problems:
        return True

    message = "; ".join(problems)
    if strict:
        raise WeightConfigurationError(message)

    logger.warning(f"Accepting non-normalized scoring weights: {message}")
    return False


def _fraction(value: Any) -> float:
    value = float(value)
    return value / 100.0 if value > 1.0 else value
