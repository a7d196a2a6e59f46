# ==========================================
# riskauth/services/scoring_service.py
"""
Risk scoring service: runs the composite engine for a request, persists the
assessment and fans out alerts and dashboard notifications
"""
import logging
from typing import Dict, List, Optional, Any

from flask import current_app
from sqlalchemy import desc

from riskauth import db
from riskauth.core.anomaly_detector import AnomalyResult, build_anomaly_alert
from riskauth.core.behavior import BehavioralSample
from riskauth.core.experiments import evaluate_experiment
from riskauth.core.policy import Recommendation, ScoringWeights
from riskauth.core.risk_engine import CompositeRiskEngine, RiskAssessment
from riskauth.models.database import RiskScore, AnomalyAlert
from riskauth.services.experiment_service import ExperimentService
from riskauth.services.notification_service import NotificationService, ActivityType
from riskauth.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

INSUFFICIENT_BASELINE_MESSAGE = "Insufficient data for baseline (need at least 3 behavioral patterns)"


class ScoringService:
    """Service for request-time risk scoring"""

    def __init__(self):
        self.settings_service = SettingsService()
        self.experiment_service = ExperimentService()
        self.notification_service = NotificationService()

    @property
    def engine(self) -> CompositeRiskEngine:
        return current_app.extensions['risk_engine']

    def score(self, user_id: str,
              device_id: Optional[str] = None,
              tls_fingerprint: Optional[str] = None,
              sample: Optional[BehavioralSample] = None,
              session_id: Optional[str] = None,
              weights: Optional[ScoringWeights] = None,
              experiment_id: Optional[str] = None) -> Dict[str, Any]:
        """Score one authentication attempt and persist the result.

        With a running experiment, both arms are evaluated on the same
        signals and the user's arm decides which result is served.
        Raises ExperimentNotFound for an unknown experiment id.
        """
        experiment = self.experiment_service.require_experiment(experiment_id) if experiment_id else None

        policy = self.settings_service.current_policy()
        assessment = self.engine.compute_overall_risk(
            user_id,
            device_id=device_id,
            tls_fingerprint=tls_fingerprint,
            sample=sample,
            policy=policy,
            weights=weights
        )

        outcome = None
        if experiment is not None:
            if experiment.is_running:
                outcome = evaluate_experiment(assessment, self.experiment_service.config_for(experiment, assessment.policy))
                assessment = outcome.served
                self.experiment_service.record_outcome(experiment, outcome)
            else:
                logger.info(f"Experiment {experiment.id} is {experiment.status}; serving active policy")

        record = self._store_assessment(assessment, session_id)
        if outcome is not None:
            record.experiment_id = experiment.id
            record.variant = outcome.arm.value

        alerts = self._raise_alerts(user_id, assessment.anomaly_result, assessment)
        db.session.commit()

        logger.info(f"Risk score for user {user_id}: {assessment.overall_score:.3f} "
                    f"-> {assessment.recommendation.value}")

        self.notification_service.send_confidence_update(assessment.confidence_update())
        self.notification_service.send_activity(
            ActivityType.RISK_CALCULATED,
            self._decision_message(assessment),
            user_id=user_id,
            risk_score=assessment.overall_score
        )
        for alert in alerts:
            self.notification_service.send_alert(alert.to_dict())

        response = assessment.to_dict()
        response['id'] = record.id
        if outcome is not None:
            response['experiment'] = {
                'id': experiment.id,
                'variant': outcome.arm.value,
                'controlScore': outcome.control.overall_score,
                'variantScore': outcome.variant.overall_score
            }
        return response

    def check_anomaly(self, user_id: str, sample: BehavioralSample) -> Dict[str, Any]:
        """Score behavior alone, raising a behavioral alert when anomalous"""
        result = self.engine.score_behavior(user_id, sample)

        alerts = self._raise_alerts(user_id, result)
        if alerts:
            db.session.commit()
            self.notification_service.send_activity(
                ActivityType.RISK_CALCULATED,
                f"Behavioral anomaly detected for user {user_id}",
                user_id=user_id,
                risk_score=1.0 - result.overall_score,
                confidence_level=result.confidence_level.value
            )
            for alert in alerts:
                self.notification_service.send_alert(alert.to_dict())

        return result.to_dict()

    def get_baseline(self, user_id: str) -> Dict[str, Any]:
        baseline = self.engine.get_baseline(user_id)
        if baseline is None:
            return {'hasBaseline': False, 'message': INSUFFICIENT_BASELINE_MESSAGE}
        return {'hasBaseline': True, 'baseline': baseline.to_dict()}

    def recent_scores(self, user_id: Optional[str] = None, limit: int = 100) -> List[RiskScore]:
        query = RiskScore.query
        if user_id:
            query = query.filter(RiskScore.user_id == user_id)
        return query.order_by(desc(RiskScore.created_at)).limit(limit).all()

    def _store_assessment(self, assessment: RiskAssessment, session_id: Optional[str]) -> RiskScore:
        values = assessment.to_record()
        factors = values.pop('factors')

        record = RiskScore(session_id=session_id, **values)
        record.factors_data = factors
        db.session.add(record)
        db.session.flush()
        return record

    def _raise_alerts(self, user_id: str, anomaly_result: AnomalyResult,
                      assessment: Optional[RiskAssessment] = None) -> List[AnomalyAlert]:
        payloads = [build_anomaly_alert(anomaly_result)]
        if assessment is not None:
            payloads.append(assessment.low_confidence_alert())

        alerts = []
        for payload in payloads:
            if payload is None:
                continue
            alert = AnomalyAlert(
                user_id=user_id,
                alert_type=payload['alertType'],
                severity=payload['severity'],
                description=payload['description'],
                risk_score=payload['riskScore']
            )
            alert.metadata_data = {
                'confidenceLevel': anomaly_result.confidence_level.value,
                'anomalousFactors': [f.factor for f in anomaly_result.anomalous_factors]
            }
            db.session.add(alert)
            alerts.append(alert)
            logger.warning(f"{payload['severity'].upper()} {payload['alertType']} alert for user {user_id}: "
                           f"{payload['description']}")

        if alerts:
            db.session.flush()
        return alerts

    def _decision_message(self, assessment: RiskAssessment) -> str:
        confidence = f"{assessment.overall_score:.0%} confidence"
        if assessment.recommendation == Recommendation.ALLOW:
            return f"Silent authentication approved ({confidence})"
        if assessment.recommendation == Recommendation.STEP_UP:
            return f"Step-up required via {assessment.policy.step_up_method} ({confidence})"
        return f"Authentication blocked ({confidence})"
