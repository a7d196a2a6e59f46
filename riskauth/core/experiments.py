# riskauth/core/experiments.py
"""
A/B testing harness: routes users between a control and a variant scoring
configuration and tests whether their silent-auth pass rates differ
"""
import hashlib
import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Any, Optional, Mapping

from scipy import stats

from riskauth.core.policy import DecisionPolicy, ScoringWeights
from riskauth.core.risk_engine import RiskAssessment, combine_scores

logger = logging.getLogger(__name__)

MIN_ARM_SAMPLES = 30
SIGNIFICANCE_LEVEL = 0.05
HASH_BUCKETS = 10000


class ExperimentArm(Enum):
    CONTROL = "control"
    VARIANT = "variant"


@dataclass(frozen=True)
class ExperimentConfig:
    experiment_id: Any
    control: DecisionPolicy
    variant: DecisionPolicy
    traffic_split: float = 0.5  # share of users routed to the variant

    def policy_for(self, arm: ExperimentArm) -> DecisionPolicy:
        return self.variant if arm == ExperimentArm.VARIANT else self.control

    @classmethod
    def from_configs(cls, experiment_id: Any, traffic_split: float,
                     control_config: Optional[Mapping[str, Any]],
                     variant_config: Optional[Mapping[str, Any]],
                     base_policy: Optional[DecisionPolicy] = None) -> 'ExperimentConfig':
        """Build from stored ``{threshold, weights}`` arm configurations"""
        base = base_policy or DecisionPolicy()
        return cls(
            experiment_id=experiment_id,
            control=arm_policy(control_config, base),
            variant=arm_policy(variant_config, base),
            traffic_split=float(traffic_split),
        )


@dataclass(frozen=True)
class ExperimentOutcome:
    arm: ExperimentArm
    control: RiskAssessment
    variant: RiskAssessment

    @property
    def served(self) -> RiskAssessment:
        return self.variant if self.arm == ExperimentArm.VARIANT else self.control


@dataclass(frozen=True)
class SignificanceResult:
    significant: bool
    p_value: float
    improvement: float  # relative change in pass rate, percent
    control_rate: float
    variant_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'significant': self.significant,
            'pValue': self.p_value,
            'improvement': self.improvement,
            'controlRate': self.control_rate,
            'variantRate': self.variant_rate,
        }


def arm_policy(config: Optional[Mapping[str, Any]], base: DecisionPolicy) -> DecisionPolicy:
    if not config:
        return base
    policy = base
    if config.get('weights'):
        policy = policy.with_weights(ScoringWeights.from_dict(config['weights'], default=base.weights))
    if config.get('threshold') is not None:
        policy = replace(policy, silent_auth_threshold=float(config['threshold']))
    return policy


def assign_variant(experiment_id: Any, user_id: Any, traffic_split: float) -> ExperimentArm:
    """Deterministic hash routing so a user always lands in the same arm"""
    digest = hashlib.md5(f"{experiment_id}:{user_id}".encode()).hexdigest()
    bucket = int(digest, 16) % HASH_BUCKETS
    if bucket < traffic_split * HASH_BUCKETS:
        return ExperimentArm.VARIANT
    return ExperimentArm.CONTROL


def apply_policy(assessment: RiskAssessment, policy: DecisionPolicy) -> RiskAssessment:
    """Re-evaluate already computed signals under another policy"""
    overall = combine_scores(assessment.device_score, assessment.tls_score,
                             assessment.behavioral_score, policy.weights)
    return replace(
        assessment,
        overall_score=overall,
        recommendation=policy.recommend(overall),
        policy=policy,
    )


def evaluate_experiment(assessment: RiskAssessment, experiment: ExperimentConfig) -> ExperimentOutcome:
    """Score one request under both arms; the user's arm decides which is served"""
    arm = assign_variant(experiment.experiment_id, assessment.user_id, experiment.traffic_split)
    outcome = ExperimentOutcome(
        arm=arm,
        control=apply_policy(assessment, experiment.control),
        variant=apply_policy(assessment, experiment.variant),
    )
    logger.debug(f"Experiment {experiment.experiment_id}: user {assessment.user_id} -> {arm.value}")
    return outcome


def significance(control_passed: int, control_total: int,
                 variant_passed: int, variant_total: int,
                 min_samples: int = MIN_ARM_SAMPLES,
                 alpha: float = SIGNIFICANCE_LEVEL) -> SignificanceResult:
    """Two-proportion z-test on silent-auth pass rates"""
    control_rate = control_passed / control_total if control_total else 0.0
    variant_rate = variant_passed / variant_total if variant_total else 0.0

    if control_total < min_samples or variant_total < min_samples:
        return SignificanceResult(False, 1.0, 0.0, control_rate, variant_rate)

    improvement = ((variant_rate - control_rate) / control_rate) * 100 if control_rate else 0.0

    pooled = (control_passed + variant_passed) / (control_total + variant_total)
    se = math.sqrt(pooled * (1 - pooled) * (1 / control_total + 1 / variant_total))
    if se == 0:
        return SignificanceResult(False, 1.0, improvement, control_rate, variant_rate)

    z = (variant_rate - control_rate) / se
    p_value = float(2 * stats.norm.sf(abs(z)))

    return SignificanceResult(p_value < alpha, p_value, improvement, control_rate, variant_rate)
