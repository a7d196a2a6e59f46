# riskauth/__init__.py
"""
Application factory and configuration
"""
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO
from flask_jwt_extended import JWTManager
from flask_cors import CORS

# Initialize extensions
db = SQLAlchemy()
socketio = SocketIO(cors_allowed_origins="*")
jwt = JWTManager()


def create_app(config_name='development', overrides=None):
    """Create and configure Flask application"""
    app = Flask(__name__)

    # Load configuration
    from riskauth.config import config
    config_class = config[config_name]
    app.config.from_object(config_class)
    if overrides:
        app.config.update(overrides)
    config_class.init_app(app)

    # Initialize extensions
    db.init_app(app)
    socketio.init_app(app)
    jwt.init_app(app)
    CORS(app)

    # Scoring engine shared by all requests of this app
    from riskauth.core.baseline import BaselineCache
    from riskauth.core.risk_engine import CompositeRiskEngine
    from riskauth.services.storage_service import SqlRiskDataSource

    app.extensions['risk_engine'] = CompositeRiskEngine(
        data_source=SqlRiskDataSource(app),
        baseline_cache=BaselineCache(max_size=app.config['BASELINE_CACHE_SIZE']),
        fetch_timeout=app.config['RISK_FETCH_TIMEOUT'],
        max_workers=app.config['RISK_FETCH_WORKERS'],
    )

    # Register blueprints
    from riskauth.api.ml import ml_bp
    from riskauth.api.signals import signals_bp
    from riskauth.api.admin import admin_bp
    from riskauth.api.experiments import experiments_bp
    from riskauth.api.alerts import alerts_bp, audit_bp
    from riskauth.api.websockets import register_websocket_handlers

    app.register_blueprint(ml_bp, url_prefix='/api/ml')
    app.register_blueprint(signals_bp, url_prefix='/api/signals')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(experiments_bp, url_prefix='/api/experiments')
    app.register_blueprint(alerts_bp, url_prefix='/api/alerts')
    app.register_blueprint(audit_bp, url_prefix='/api/audit-logs')

    # Register WebSocket handlers
    register_websocket_handlers(socketio)

    @app.route('/health')
    def health():
        return {'status': 'ok'}

    return app
