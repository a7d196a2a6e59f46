"""
Pydantic schemas for API request validation
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Dict, Any, Union
from enum import Enum

from riskauth.core.behavior import BehavioralSample
from riskauth.core.policy import ScoringWeights


class PatternType(str, Enum):
    MOUSE = "mouse"
    KEYSTROKE = "keystroke"
    SCROLL = "scroll"
    TOUCH = "touch"
    MIXED = "mixed"


class ExperimentStatus(str, Enum):
    DRAFT = "draft"
    RUNNING = "running"
    COMPLETED = "completed"


def _feature(alias):
    return Field(default=None, alias=alias, allow_inf_nan=False)


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


# Request Schemas
class BehaviorSampleIn(BaseModel):
    """Aggregated behavioral features as sent by the browser trackers"""
    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    mouse_velocity: Optional[float] = _feature('mouseVelocity')
    mouse_acceleration: Optional[float] = _feature('mouseAcceleration')
    click_interval: Optional[float] = _feature('clickInterval')
    dwell_time: Optional[float] = _feature('dwellTime')
    flight_time: Optional[float] = _feature('flightTime')
    typing_speed: Optional[float] = _feature('typingSpeed')
    scroll_speed: Optional[float] = _feature('scrollSpeed')
    scroll_frequency: Optional[float] = _feature('scrollFrequency')
    straight_line_ratio: Optional[float] = _feature('straightLineRatio')
    curve_complexity: Optional[float] = _feature('curveComplexity')

    def to_sample(self) -> BehavioralSample:
        return BehavioralSample(**self.model_dump())


class WeightsIn(CamelModel):
    device: float = Field(..., ge=0, le=100)
    tls: float = Field(..., ge=0, le=100)
    behavioral: float = Field(..., ge=0, le=100)

    def to_weights(self) -> ScoringWeights:
        return ScoringWeights.from_dict(self.model_dump())


class ScoreRequest(CamelModel):
    user_id: str = Field(..., min_length=1, max_length=64, alias='userId')
    device_id: Optional[str] = Field(default=None, max_length=128, alias='deviceId')
    tls_fingerprint: Optional[str] = Field(default=None, max_length=128, alias='tlsFingerprint')
    session_id: Optional[str] = Field(default=None, max_length=64, alias='sessionId')
    current_behavior: Optional[BehaviorSampleIn] = Field(default=None, alias='currentBehavior')
    weights: Optional[WeightsIn] = None
    experiment_id: Optional[str] = Field(default=None, max_length=64, alias='experimentId')


class AnomalyCheckRequest(CamelModel):
    user_id: str = Field(..., min_length=1, max_length=64, alias='userId')
    current_behavior: BehaviorSampleIn = Field(..., alias='currentBehavior')


class BehavioralPatternIn(BehaviorSampleIn):
    user_id: Optional[str] = Field(default=None, max_length=64, alias='userId')
    session_id: Optional[str] = Field(default=None, max_length=64, alias='sessionId')
    pattern_type: PatternType = Field(default=PatternType.MIXED, alias='patternType')
    sample_count: int = Field(default=0, ge=0, alias='sampleCount')
    confidence_score: Optional[float] = Field(default=None, ge=0, le=1, alias='confidenceScore')

    def to_sample(self) -> BehavioralSample:
        return BehavioralSample(**self.model_dump(include=set(BehaviorSampleIn.model_fields)))


class DeviceProfileIn(CamelModel):
    fingerprint: str = Field(..., min_length=1, max_length=128)
    user_id: Optional[str] = Field(default=None, max_length=64, alias='userId')
    user_agent: Optional[str] = Field(default=None, max_length=1000, alias='userAgent')
    platform: Optional[str] = Field(default=None, max_length=64)
    screen_resolution: Optional[str] = Field(default=None, max_length=32, alias='screenResolution')
    timezone: Optional[str] = Field(default=None, max_length=64)
    trust_score: float = Field(default=0.5, ge=0, le=1, alias='trustScore')


class TlsFingerprintIn(CamelModel):
    ja3_hash: str = Field(..., min_length=1, max_length=64, alias='ja3Hash')
    ja4_hash: Optional[str] = Field(default=None, max_length=64, alias='ja4Hash')
    user_agent: Optional[str] = Field(default=None, max_length=1000, alias='userAgent')
    trust_score: float = Field(default=0.5, ge=0, le=1, alias='trustScore')


class SettingUpdateRequest(CamelModel):
    value: Union[float, str, bool, Dict[str, Any]]
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=40)

    @field_validator('value')
    @classmethod
    def validate_value(cls, v):
        if isinstance(v, float) and v < 0:
            raise ValueError('Setting values cannot be negative')
        return v


class ArmConfigIn(CamelModel):
    threshold: Optional[float] = Field(default=None, ge=0, le=1)
    weights: Optional[WeightsIn] = None


class ExperimentCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: ExperimentStatus = ExperimentStatus.DRAFT
    traffic_split: float = Field(default=0.5, ge=0, le=1, alias='trafficSplit')
    control_config: ArmConfigIn = Field(default_factory=ArmConfigIn, alias='controlConfig')
    variant_config: ArmConfigIn = Field(default_factory=ArmConfigIn, alias='variantConfig')


class ExperimentUpdateRequest(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: Optional[ExperimentStatus] = None
    traffic_split: Optional[float] = Field(default=None, ge=0, le=1, alias='trafficSplit')
    control_config: Optional[ArmConfigIn] = Field(default=None, alias='controlConfig')
    variant_config: Optional[ArmConfigIn] = Field(default=None, alias='variantConfig')


class ResolveAlertRequest(CamelModel):
    resolution: str = Field(..., min_length=1, max_length=2000)
    resolved_by: Optional[str] = Field(default=None, max_length=80, alias='resolvedBy')


class SettingsBulkUpdateRequest(CamelModel):
    settings: Dict[str, Union[float, str, bool]] = Field(..., min_length=1)
