# run.py
"""
Main application entry point for the risk-based authentication service
"""
import os
import logging
from riskauth import create_app, socketio
from riskauth.models.database import init_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('riskauth.log'),
        logging.StreamHandler()
    ]
)

app = create_app(os.environ.get('RISKAUTH_CONFIG', 'development'))

if __name__ == '__main__':
    # Initialize database
    with app.app_context():
        init_db()

    # Run the application with SocketIO support
    socketio.run(
        app,
        debug=False,
        host=os.environ.get('RISKAUTH_HOST', '127.0.0.1'),
        port=int(os.environ.get('RISKAUTH_PORT', 5000)),
        allow_unsafe_werkzeug=True
    )
