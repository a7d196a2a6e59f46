"""Shared pytest fixtures."""
from __future__ import annotations

import time
from pathlib import Path

import pytest
from flask_jwt_extended import create_access_token

from riskauth import create_app, db
from riskauth.core.behavior import BehavioralSample
from riskauth.core.risk_engine import CompositeRiskEngine, RiskDataSource, DeviceHistory, TlsFingerprintRecord


class InMemoryRiskDataSource(RiskDataSource):
    """Dictionary-backed history with optional per-signal latency."""

    def __init__(self):
        self.samples: dict = {}
        self.devices: dict = {}
        self.fingerprints: list = []
        self.delays: dict = {}
        self.failures: dict = {}

    def add_samples(self, user_id, *samples: BehavioralSample) -> None:
        self.samples.setdefault(user_id, []).extend(samples)

    def add_device(self, user_id, device_id, seen_count=None, trust_score=None) -> None:
        self.devices[(user_id, device_id)] = DeviceHistory(seen_count=seen_count, trust_score=trust_score)

    def add_fingerprint(self, ja3_hash, trust_score=None, ja4_hash=None) -> None:
        self.fingerprints.append(TlsFingerprintRecord(trust_score=trust_score, ja3_hash=ja3_hash, ja4_hash=ja4_hash))

    def _maybe_stall(self, signal: str) -> None:
        if signal in self.failures:
            raise self.failures[signal]
        if self.delays.get(signal):
            time.sleep(self.delays[signal])

    def get_behavioral_samples_for_user(self, user_id):
        self._maybe_stall("behavioral")
        return list(self.samples.get(user_id, []))

    def get_device_history(self, user_id, device_id):
        self._maybe_stall("device")
        return self.devices.get((user_id, device_id))

    def get_tls_fingerprint_by_hash(self, fingerprint_hash):
        self._maybe_stall("tls")
        for record in self.fingerprints:
            if fingerprint_hash in (record.ja3_hash, record.ja4_hash):
                return record
        return None


@pytest.fixture
def data_source() -> InMemoryRiskDataSource:
    return InMemoryRiskDataSource()


@pytest.fixture
def engine(data_source: InMemoryRiskDataSource):
    return CompositeRiskEngine(data_source, fetch_timeout=2.0)


@pytest.fixture
def app(tmp_path: Path):
    """Application on a throwaway SQLite file (engine reads run on worker threads)."""
    application = create_app("testing", {
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'riskauth_test.db'}",
    })
    with application.app_context():
        db.create_all()

    yield application

    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app) -> dict:
    with app.app_context():
        token = create_access_token(identity="admin-1")
    return {"Authorization": f"Bearer {token}"}
