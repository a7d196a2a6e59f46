# riskauth/models/database.py
"""
SQLAlchemy database models for signals, risk assessments and administration
"""
import json
import uuid
from datetime import datetime, timezone
from sqlalchemy.ext.hybrid import hybrid_property
from riskauth import db
from riskauth.core.behavior import BehavioralSample
from riskauth.core.risk_engine import DeviceHistory, TlsFingerprintRecord


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _isoformat(value):
    return value.isoformat() if value else None


class DeviceProfile(db.Model):
    """Browser/device fingerprint seen for a user"""
    __tablename__ = 'device_profiles'

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(64), nullable=True, index=True)
    fingerprint = db.Column(db.String(128), unique=True, nullable=False, index=True)

    # Client characteristics
    user_agent = db.Column(db.Text, nullable=True)
    platform = db.Column(db.String(64), nullable=True)
    screen_resolution = db.Column(db.String(32), nullable=True)
    timezone = db.Column(db.String(64), nullable=True)

    # Familiarity
    seen_count = db.Column(db.Integer, default=1, nullable=False)
    trust_score = db.Column(db.Float, default=0.5)
    first_seen = db.Column(db.DateTime(timezone=True), default=_utcnow)
    last_seen = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_history(self):
        return DeviceHistory(seen_count=self.seen_count, trust_score=self.trust_score)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'fingerprint': self.fingerprint,
            'userAgent': self.user_agent,
            'platform': self.platform,
            'screenResolution': self.screen_resolution,
            'timezone': self.timezone,
            'seenCount': self.seen_count,
            'trustScore': self.trust_score,
            'firstSeen': _isoformat(self.first_seen),
            'lastSeen': _isoformat(self.last_seen)
        }


class TlsFingerprint(db.Model):
    """Client TLS handshake signature (JA3/JA4)"""
    __tablename__ = 'tls_fingerprints'

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    ja3_hash = db.Column(db.String(64), unique=True, nullable=False, index=True)
    ja4_hash = db.Column(db.String(64), nullable=True, index=True)
    user_agent = db.Column(db.Text, nullable=True)
    trust_score = db.Column(db.Float, default=0.5)
    seen_count = db.Column(db.Integer, default=1, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_record(self):
        return TlsFingerprintRecord(trust_score=self.trust_score, ja3_hash=self.ja3_hash, ja4_hash=self.ja4_hash)

    def to_dict(self):
        return {
            'id': self.id,
            'ja3Hash': self.ja3_hash,
            'ja4Hash': self.ja4_hash,
            'userAgent': self.user_agent,
            'trustScore': self.trust_score,
            'seenCount': self.seen_count,
            'createdAt': _isoformat(self.created_at)
        }


class BehavioralPattern(db.Model):
    """Aggregated behavioral sample; immutable once stored"""
    __tablename__ = 'behavioral_patterns'

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(64), nullable=True, index=True)
    session_id = db.Column(db.String(64), nullable=True, index=True)
    pattern_type = db.Column(db.String(20), nullable=False, default='mixed')  # 'mouse', 'keystroke', 'scroll', 'touch', 'mixed'
    sample_count = db.Column(db.Integer, default=0)

    # Aggregated features
    mouse_velocity = db.Column(db.Float, nullable=True)
    mouse_acceleration = db.Column(db.Float, nullable=True)
    click_interval = db.Column(db.Float, nullable=True)
    dwell_time = db.Column(db.Float, nullable=True)
    flight_time = db.Column(db.Float, nullable=True)
    typing_speed = db.Column(db.Float, nullable=True)
    scroll_speed = db.Column(db.Float, nullable=True)
    scroll_frequency = db.Column(db.Float, nullable=True)
    straight_line_ratio = db.Column(db.Float, nullable=True)
    curve_complexity = db.Column(db.Float, nullable=True)

    confidence_score = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)

    def to_sample(self):
        return BehavioralSample(
            mouse_velocity=self.mouse_velocity,
            mouse_acceleration=self.mouse_acceleration,
            click_interval=self.click_interval,
            dwell_time=self.dwell_time,
            flight_time=self.flight_time,
            typing_speed=self.typing_speed,
            scroll_speed=self.scroll_speed,
            scroll_frequency=self.scroll_frequency,
            straight_line_ratio=self.straight_line_ratio,
            curve_complexity=self.curve_complexity
        )

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'sessionId': self.session_id,
            'patternType': self.pattern_type,
            'sampleCount': self.sample_count,
            'confidenceScore': self.confidence_score,
            'createdAt': _isoformat(self.created_at),
            **self.to_sample().to_dict()
        }


class RiskScore(db.Model):
    """Persisted composite assessment; never mutated"""
    __tablename__ = 'risk_scores'

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(64), nullable=True, index=True)
    session_id = db.Column(db.String(64), nullable=True, index=True)

    device_score = db.Column(db.Float, nullable=False)
    tls_score = db.Column(db.Float, nullable=False)
    behavioral_score = db.Column(db.Float, nullable=False)
    overall_score = db.Column(db.Float, nullable=False)
    factors = db.Column(db.Text, nullable=True)  # JSON breakdown

    threshold = db.Column(db.Float, nullable=True)
    passed = db.Column(db.Boolean, default=False)
    recommendation = db.Column(db.String(20), nullable=True)  # 'allow', 'step_up', 'block'

    # A/B experiment attribution
    experiment_id = db.Column(db.String(64), nullable=True, index=True)
    variant = db.Column(db.String(20), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)

    @hybrid_property
    def factors_data(self):
        """Parse factors JSON"""
        if self.factors:
            return json.loads(self.factors)
        return {}

    @factors_data.setter
    def factors_data(self, value):
        """Set factors as JSON"""
        self.factors = json.dumps(value) if value else None

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'sessionId': self.session_id,
            'deviceScore': self.device_score,
            'tlsScore': self.tls_score,
            'behavioralScore': self.behavioral_score,
            'overallScore': self.overall_score,
            'factors': self.factors_data,
            'threshold': self.threshold,
            'passed': self.passed,
            'recommendation': self.recommendation,
            'experimentId': self.experiment_id,
            'variant': self.variant,
            'createdAt': _isoformat(self.created_at)
        }


class AnomalyAlert(db.Model):
    """Security alert raised from scoring"""
    __tablename__ = 'anomaly_alerts'

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(64), nullable=True, index=True)
    alert_type = db.Column(db.String(50), nullable=False)  # 'behavioral', 'low_confidence'
    severity = db.Column(db.String(20), nullable=False)  # 'high', 'critical'
    description = db.Column(db.Text, nullable=True)
    risk_score = db.Column(db.Float, nullable=True)
    meta = db.Column('metadata', db.Text, nullable=True)  # JSON

    resolved = db.Column(db.Boolean, default=False, nullable=False, index=True)
    resolution = db.Column(db.Text, nullable=True)
    resolved_by = db.Column(db.String(80), nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)

    @hybrid_property
    def metadata_data(self):
        """Parse metadata JSON"""
        if self.meta:
            return json.loads(self.meta)
        return {}

    @metadata_data.setter
    def metadata_data(self, value):
        """Set metadata as JSON"""
        self.meta = json.dumps(value) if value else None

    def resolve(self, resolution, resolved_by):
        self.resolved = True
        self.resolution = resolution
        self.resolved_by = resolved_by
        self.resolved_at = _utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'alertType': self.alert_type,
            'severity': self.severity,
            'description': self.description,
            'riskScore': self.risk_score,
            'metadata': self.metadata_data,
            'resolved': self.resolved,
            'resolution': self.resolution,
            'resolvedBy': self.resolved_by,
            'resolvedAt': _isoformat(self.resolved_at),
            'createdAt': _isoformat(self.created_at)
        }


class AdminSetting(db.Model):
    """Admin-tunable scoring setting"""
    __tablename__ = 'admin_settings'

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    key = db.Column(db.String(80), unique=True, nullable=False, index=True)
    value = db.Column(db.Text, nullable=True)  # JSON
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(40), nullable=True)  # 'thresholds', 'weights', 'alerts'
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @hybrid_property
    def value_data(self):
        """Parse value JSON"""
        if self.value is not None:
            return json.loads(self.value)
        return None

    @value_data.setter
    def value_data(self, value):
        """Set value as JSON"""
        self.value = json.dumps(value)

    def to_dict(self):
        return {
            'id': self.id,
            'key': self.key,
            'value': self.value_data,
            'description': self.description,
            'category': self.category,
            'updatedAt': _isoformat(self.updated_at)
        }


class AbExperiment(db.Model):
    """A/B comparison of two scoring configurations"""
    __tablename__ = 'ab_experiments'

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), default='draft', nullable=False)  # 'draft', 'running', 'completed'
    traffic_split = db.Column(db.Float, default=0.5, nullable=False)

    control_config = db.Column(db.Text, nullable=True)  # JSON {threshold, weights}
    variant_config = db.Column(db.Text, nullable=True)  # JSON {threshold, weights}

    # Outcome counters
    control_total = db.Column(db.Integer, default=0, nullable=False)
    control_passed = db.Column(db.Integer, default=0, nullable=False)
    variant_total = db.Column(db.Integer, default=0, nullable=False)
    variant_passed = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    @hybrid_property
    def control_config_data(self):
        """Parse control config JSON"""
        if self.control_config:
            return json.loads(self.control_config)
        return {}

    @control_config_data.setter
    def control_config_data(self, value):
        """Set control config as JSON"""
        self.control_config = json.dumps(value) if value else None

    @hybrid_property
    def variant_config_data(self):
        """Parse variant config JSON"""
        if self.variant_config:
            return json.loads(self.variant_config)
        return {}

    @variant_config_data.setter
    def variant_config_data(self, value):
        """Set variant config as JSON"""
        self.variant_config = json.dumps(value) if value else None

    @property
    def is_running(self):
        return self.status == 'running'

    def record_outcome(self, arm, passed):
        """Count one served decision for the given arm"""
        if arm == 'variant':
            self.variant_total += 1
            self.variant_passed += int(bool(passed))
        else:
            self.control_total += 1
            self.control_passed += int(bool(passed))

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'status': self.status,
            'trafficSplit': self.traffic_split,
            'controlConfig': self.control_config_data,
            'variantConfig': self.variant_config_data,
            'controlTotal': self.control_total,
            'controlPassed': self.control_passed,
            'variantTotal': self.variant_total,
            'variantPassed': self.variant_passed,
            'createdAt': _isoformat(self.created_at)
        }


class AuditLog(db.Model):
    """Compliance trail of administrative and security events"""
    __tablename__ = 'audit_logs'

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    event_type = db.Column(db.String(50), nullable=False, index=True)  # 'threshold_change', 'experiment_created', 'risk_assessed', ...
    actor_id = db.Column(db.String(80), nullable=True, index=True)
    actor_type = db.Column(db.String(20), nullable=False, default='system')  # 'admin', 'system', 'user'
    target_id = db.Column(db.String(64), nullable=True, index=True)
    target_type = db.Column(db.String(40), nullable=True)
    action = db.Column(db.String(40), nullable=False)

    old_value = db.Column(db.Text, nullable=True)  # JSON
    new_value = db.Column(db.Text, nullable=True)  # JSON

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)

    @hybrid_property
    def old_value_data(self):
        """Parse old value JSON"""
        if self.old_value:
            return json.loads(self.old_value)
        return None

    @old_value_data.setter
    def old_value_data(self, value):
        """Set old value as JSON"""
        self.old_value = json.dumps(value, default=str) if value is not None else None

    @hybrid_property
    def new_value_data(self):
        """Parse new value JSON"""
        if self.new_value:
            return json.loads(self.new_value)
        return None

    @new_value_data.setter
    def new_value_data(self, value):
        """Set new value as JSON"""
        self.new_value = json.dumps(value, default=str) if value is not None else None

    def to_dict(self):
        return {
            'id': self.id,
            'eventType': self.event_type,
            'actorId': self.actor_id,
            'actorType': self.actor_type,
            'targetId': self.target_id,
            'targetType': self.target_type,
            'action': self.action,
            'oldValue': self.old_value_data,
            'newValue': self.new_value_data,
            'ipAddress': self.ip_address,
            'userAgent': self.user_agent,
            'createdAt': _isoformat(self.created_at)
        }


def init_db():
    """Initialize database tables"""
    db.create_all()
