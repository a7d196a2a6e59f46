# riskauth/api/websockets.py
"""
WebSocket handlers for the live dashboard feed
"""
from flask import request
from flask_socketio import emit, join_room, leave_room
import logging
from datetime import datetime, timezone

from riskauth.services.notification_service import DASHBOARD_ROOM

logger = logging.getLogger(__name__)

# Store active connections
active_connections = {}


def register_websocket_handlers(socketio_instance):
    """Register all WebSocket event handlers"""

    @socketio_instance.on('connect')
    def handle_connect(auth=None):
        """Handle client connection"""
        join_room(DASHBOARD_ROOM)
        active_connections[request.sid] = {
            'connected_at': datetime.now(timezone.utc),
            'last_activity': datetime.now(timezone.utc)
        }

        logger.info(f"Dashboard client connected ({len(active_connections)} active)")

        emit('connection_established', {
            'room': DASHBOARD_ROOM,
            'timestamp': datetime.now(timezone.utc).isoformat()
        })

    @socketio_instance.on('disconnect')
    def handle_disconnect(*args):
        """Handle client disconnection"""
        leave_room(DASHBOARD_ROOM)
        active_connections.pop(request.sid, None)
        logger.info(f"Dashboard client disconnected ({len(active_connections)} active)")

    @socketio_instance.on('ping')
    def handle_ping(data=None):
        """Keepalive"""
        if request.sid in active_connections:
            active_connections[request.sid]['last_activity'] = datetime.now(timezone.utc)
        emit('pong', {'timestamp': datetime.now(timezone.utc).isoformat()})
