# riskauth/services/experiment_service.py
"""
A/B experiment lifecycle and results
"""
import logging
from typing import Dict, List, Optional, Any

from sqlalchemy import desc

from riskauth import db
from riskauth.core.experiments import ExperimentConfig, ExperimentOutcome, significance
from riskauth.core.policy import DecisionPolicy
from riskauth.models.database import AbExperiment
from riskauth.services.audit_service import AuditService

logger = logging.getLogger(__name__)


class ExperimentNotFound(LookupError):
    pass


class ExperimentService:
    """Creates experiments, records served outcomes and reports significance"""

    def __init__(self):
        self.audit_service = AuditService()

    def list_experiments(self, running_only: bool = False) -> List[AbExperiment]:
        query = AbExperiment.query
        if running_only:
            query = query.filter(AbExperiment.status == 'running')
        return query.order_by(desc(AbExperiment.created_at)).all()

    def get_experiment(self, experiment_id: str) -> Optional[AbExperiment]:
        return db.session.get(AbExperiment, experiment_id)

    def require_experiment(self, experiment_id: str) -> AbExperiment:
        experiment = self.get_experiment(experiment_id)
        if experiment is None:
            raise ExperimentNotFound(experiment_id)
        return experiment

    def create_experiment(self, name: str,
                          description: Optional[str] = None,
                          status: str = 'draft',
                          traffic_split: float = 0.5,
                          control_config: Optional[Dict[str, Any]] = None,
                          variant_config: Optional[Dict[str, Any]] = None,
                          actor_id: Optional[str] = None) -> AbExperiment:
        experiment = AbExperiment(
            name=name,
            description=description,
            status=status,
            traffic_split=traffic_split
        )
        experiment.control_config_data = control_config
        experiment.variant_config_data = variant_config
        db.session.add(experiment)
        db.session.flush()

        self.audit_service.record(
            event_type='experiment_created',
            action='create',
            actor_id=actor_id,
            actor_type='admin',
            target_id=experiment.id,
            target_type='ab_experiment',
            new_value=experiment.to_dict()
        )
        db.session.commit()

        logger.info(f"Experiment '{name}' created ({experiment.id}), split {traffic_split}")
        return experiment

    def update_experiment(self, experiment_id: str, changes: Dict[str, Any],
                          actor_id: Optional[str] = None) -> AbExperiment:
        experiment = self.require_experiment(experiment_id)
        old_value = experiment.to_dict()

        for attr in ('name', 'description', 'status', 'traffic_split'):
            if changes.get(attr) is not None:
                setattr(experiment, attr, changes[attr])
        if changes.get('control_config') is not None:
            experiment.control_config_data = changes['control_config']
        if changes.get('variant_config') is not None:
            experiment.variant_config_data = changes['variant_config']

        self.audit_service.record(
            event_type='experiment_updated',
            action='update',
            actor_id=actor_id,
            actor_type='admin',
            target_id=experiment.id,
            target_type='ab_experiment',
            old_value=old_value,
            new_value=experiment.to_dict()
        )
        db.session.commit()

        logger.info(f"Experiment {experiment.id} updated: {', '.join(k for k, v in changes.items() if v is not None)}")
        return experiment

    def config_for(self, experiment: AbExperiment, base_policy: DecisionPolicy) -> ExperimentConfig:
        return ExperimentConfig.from_configs(
            experiment.id,
            experiment.traffic_split,
            experiment.control_config_data,
            experiment.variant_config_data,
            base_policy=base_policy
        )

    def record_outcome(self, experiment: AbExperiment, outcome: ExperimentOutcome) -> None:
        """Count the served arm's decision; the caller commits"""
        experiment.record_outcome(outcome.arm.value, outcome.served.passed)

    def results(self, experiment_id: str) -> Dict[str, Any]:
        experiment = self.require_experiment(experiment_id)
        result = significance(
            experiment.control_passed, experiment.control_total,
            experiment.variant_passed, experiment.variant_total
        )
        return {
            'experiment': experiment.to_dict(),
            'control': {'total': experiment.control_total, 'passed': experiment.control_passed},
            'variant': {'total': experiment.variant_total, 'passed': experiment.variant_passed},
            'significance': result.to_dict()
        }
