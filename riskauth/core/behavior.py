# riskauth/core/behavior.py
"""
Behavioral sample record and the catalogue of tracked biometric features
"""
import logging
import math
from dataclasses import dataclass, fields, asdict
from typing import Dict, Any, Optional, Mapping, NamedTuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BehavioralSample:
    """One aggregated observation of a user's interaction dynamics"""
    mouse_velocity: Optional[float] = None
    mouse_acceleration: Optional[float] = None
    click_interval: Optional[float] = None
    dwell_time: Optional[float] = None        # key hold time (ms)
    flight_time: Optional[float] = None       # inter-key gap (ms)
    typing_speed: Optional[float] = None      # WPM
    scroll_speed: Optional[float] = None
    scroll_frequency: Optional[float] = None
    straight_line_ratio: Optional[float] = None
    curve_complexity: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'BehavioralSample':
        """Build a sample from a loosely-typed payload.

        Accepts camelCase (client/wire) or snake_case keys. Unrecognised keys
        are dropped and logged; values that are not finite numbers become None.
        """
        if not data:
            return cls()

        values = {}
        ignored = []
        for key, raw in data.items():
            name = FIELD_ALIASES.get(key, key)
            if name not in SAMPLE_FIELDS:
                ignored.append(key)
                continue
            values[name] = _coerce_feature(raw)

        if ignored:
            logger.debug(f"Ignoring unrecognised behavioral fields: {', '.join(sorted(ignored))}")

        return cls(**values)

    def get(self, name: str) -> Optional[float]:
        return getattr(self, name)

    def present_features(self) -> Dict[str, float]:
        """Features carrying a value in this sample"""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_dict(self) -> Dict[str, Optional[float]]:
        """camelCase representation used on the wire"""
        return {_camel(k): v for k, v in asdict(self).items()}


class TrackedFeature(NamedTuple):
    sample_field: str
    baseline_name: str
    weight: float


# Features that participate in the baseline and anomaly scoring. The
# baseline names match the keys the dashboard reads from /api/ml/baseline.
TRACKED_FEATURES = (
    TrackedFeature('mouse_velocity', 'avgMouseSpeed', 0.20),
    TrackedFeature('mouse_acceleration', 'avgMouseAcceleration', 0.15),
    TrackedFeature('dwell_time', 'avgKeyHoldTime', 0.20),
    TrackedFeature('flight_time', 'avgFlightTime', 0.15),
    TrackedFeature('typing_speed', 'typingSpeed', 0.20),
    TrackedFeature('straight_line_ratio', 'straightLineRatio', 0.05),
    TrackedFeature('curve_complexity', 'curveComplexity', 0.05),
)


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def _coerce_feature(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.debug(f"Dropping non-numeric behavioral value: {raw!r}")
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


SAMPLE_FIELDS = frozenset(f.name for f in fields(BehavioralSample))
FIELD_ALIASES = {_camel(name): name for name in SAMPLE_FIELDS}
