# reagent_inventory/socket_events.py

from flask_socketio import emit, disconnect, join_room
from flask_login import current_user
from flask import current_app
import functools
from redis.exceptions import RedisError
from reagent_inventory.extensions import socketio

ADMIN_ROOM = 'admins'


def authenticated_only(f):
    @functools.wraps(f)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            disconnect()
            return False
        return f(*args, **kwargs)
    return wrapped


def best_effort(f):
    """Log and swallow delivery errors of live events."""
    @functools.wraps(f)
    def wrapped(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except RedisError as e:
            current_app.logger.error(f"Redis error in socket event: {str(e)}")
        except Exception as e:
            current_app.logger.error(f"Unexpected error in socket event: {str(e)}")
        return None
    return wrapped


@socketio.on('connect')
@authenticated_only
def handle_connect():
    """Client connection event; admins receive stock alerts."""
    if current_user.is_admin():
        join_room(ADMIN_ROOM)
    emit('status', {'msg': f'{current_user.full_name} connected'})
    current_app.logger.info(f'Client connected: {current_user.email}')
    return True


@socketio.on('disconnect')
def handle_disconnect():
    """Client disconnection event"""
    if current_user.is_authenticated:
        current_app.logger.info(f'Client disconnected: {current_user.email}')


@best_effort
def notify_stock_alert(reagent, level):
    """
    Push a live stock alert to connected admins
    Args:
        reagent: Reagent model instance
        level: 'low', 'out' or 'expiry'
    """
    payload = dict(reagent.snapshot(), level=level)
    socketio.emit('stock_alert', payload, to=ADMIN_ROOM)
    return payload
