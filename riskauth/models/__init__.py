"""
Models package initialization
"""
from .database import (DeviceProfile, TlsFingerprint, BehavioralPattern, RiskScore,
                       AnomalyAlert, AdminSetting, AbExperiment, AuditLog)

__all__ = ['DeviceProfile', 'TlsFingerprint', 'BehavioralPattern', 'RiskScore',
           'AnomalyAlert', 'AdminSetting', 'AbExperiment', 'AuditLog']
