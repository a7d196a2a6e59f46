import os
from datetime import timedelta


def _env_float(name, default):
    value = os.environ.get(name)
    return float(value) if value else default


class Config:
    """Base configuration class"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'a-very-secret-key'
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'a-super-secret-jwt-key-for-riskauth'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Composite scoring defaults; admin settings override these per request
    RISK_DEVICE_WEIGHT = _env_float('RISK_DEVICE_WEIGHT', 0.35)
    RISK_TLS_WEIGHT = _env_float('RISK_TLS_WEIGHT', 0.25)
    RISK_BEHAVIORAL_WEIGHT = _env_float('RISK_BEHAVIORAL_WEIGHT', 0.40)
    RISK_ALLOW_THRESHOLD = _env_float('RISK_ALLOW_THRESHOLD', 0.75)
    RISK_STEP_UP_THRESHOLD = _env_float('RISK_STEP_UP_THRESHOLD', 0.45)
    SILENT_AUTH_THRESHOLD = _env_float('SILENT_AUTH_THRESHOLD', 0.75)
    ALERT_THRESHOLD = _env_float('ALERT_THRESHOLD', 0.40)
    STEP_UP_METHOD = os.environ.get('STEP_UP_METHOD') or 'otp'

    # Reject weight settings that do not sum to 1 instead of only warning
    STRICT_WEIGHT_VALIDATION = os.environ.get('STRICT_WEIGHT_VALIDATION', '').lower() in ('1', 'true', 'yes')

    # History reads issued concurrently per assessment
    RISK_FETCH_TIMEOUT = _env_float('RISK_FETCH_TIMEOUT', 2.0)
    RISK_FETCH_WORKERS = 3
    BASELINE_CACHE_SIZE = 256

    @staticmethod
    def init_app(app):
        uri = app.config.get('SQLALCHEMY_DATABASE_URI', '')
        if uri.startswith('sqlite:///') and ':memory:' not in uri:
            os.makedirs(os.path.dirname(uri[len('sqlite:///'):]), exist_ok=True)


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or \
        'sqlite:///' + os.path.join(os.path.abspath(os.path.dirname(__file__)), 'database/riskauth_dev.db')


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('TEST_DATABASE_URL') or 'sqlite:///:memory:'
    RISK_FETCH_TIMEOUT = 5.0


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(os.path.abspath(os.path.dirname(__file__)), 'database/riskauth.db')


config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
