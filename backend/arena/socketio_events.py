from flask import current_app, request
from flask_socketio import emit
from arena import socketio
from arena.errors import ArenaError
from arena.services import get_services
from arena.services.registry import normalize_code
from arena.services.relay import Delivery
from typing import Dict

_state: Dict[str, str] = {'namespace': '/'}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def send_delivery(delivery: Delivery) -> None:
    """Push one relay delivery to its target connection."""
    socketio.emit(delivery.event, delivery.payload, to=delivery.target, namespace=_state['namespace'])


def handle_connect(_auth=None):
    emit('connected', {'connectionId': _get_sid()})


def handle_disconnect(*_reason):
    departure = _leave(_get_sid())
    if departure:
        current_app.logger.info(f"[disconnect] conn={departure.connection_id} room={departure.room_id}")


def handle_join_video_room(data):
    data = data or {}
    room_id = normalize_code(data.get('roomId'))
    if not room_id:
        emit('error', {'error': 'roomId is required'})
        return
    username = (data.get('username') or '').strip() or 'Guest'
    is_host = bool(data.get('isHost'))
    sid = _get_sid()
    svc = get_services()
    while True:
        previous = svc.tracker.room_of(sid)
        with svc.locks.hold(room_id, previous):
            # Another handler may have moved this connection before the locks were taken
            if svc.tracker.room_of(sid) != previous:
                continue
            departure = svc.tracker.register_join(sid, room_id, username, is_host)
            if departure:
                _announce_departure(departure)
            svc.monitor.on_join(room_id, sid)
            peers = svc.tracker.list_participants(room_id, excluding=sid)
            break
    current_app.logger.info(f"[join-video] conn={sid} room={room_id} user={username} host={is_host} peers={len(peers)}")
    emit('room-users', {'roomId': room_id, 'users': [p.to_dict() for p in peers]})
    svc.relay.broadcast_to_room(room_id, sid, 'user-joined', {
        'roomId': room_id,
        'connectionId': sid,
        'username': username,
        'isHost': is_host,
    })


def handle_leave_video_room(_data=None):
    departure = _leave(_get_sid())
    emit('left', {'roomId': departure.room_id if departure else None})


def _relay_handler(kind):
    def handler(data):
        data = dict(data or {})
        target = data.pop('targetConnectionId', None)
        if not target:
            emit('error', {'error': 'targetConnectionId is required'})
            return
        get_services().relay.relay(kind, _get_sid(), target, data)
    handler.__name__ = f"handle_{kind.replace('-', '_')}"
    return handler


def handle_room_ping(data):
    sid = _get_sid()
    svc = get_services()
    room_id = svc.tracker.room_of(sid)
    if room_id is None:
        current_app.logger.info(f"[ping-drop] conn={sid} not in a room")
        return
    svc.relay.broadcast_to_room(room_id, sid, 'room-ping', dict(data or {}, roomId=room_id))


def handle_room_pong(data):
    data = dict(data or {})
    target = data.pop('targetConnectionId', None)
    sid = _get_sid()
    svc = get_services()
    if target:
        svc.relay.relay('pong', sid, target, data)
        return
    room_id = svc.tracker.room_of(sid)
    if room_id is not None:
        svc.relay.broadcast_to_room(room_id, sid, 'room-pong', data)


# ---- Leave helpers ----

def _announce_departure(departure) -> None:
    svc = get_services()
    svc.relay.broadcast_to_room(departure.room_id, departure.connection_id, 'user-left', {
        'roomId': departure.room_id,
        'connectionId': departure.connection_id,
        'username': departure.username,
    })
    svc.monitor.on_leave(departure.room_id, departure.connection_id)


def _leave(sid):
    """Remove `sid` from its room once, however many times leave is observed."""
    svc = get_services()
    while True:
        room_id = svc.tracker.room_of(sid)
        if room_id is None:
            return None
        with svc.locks.hold(room_id):
            if svc.tracker.room_of(sid) != room_id:
                continue
            departure = svc.tracker.unregister(sid)
            if departure:
                _announce_departure(departure)
            return departure


def handle_socket_error(exc):
    if isinstance(exc, ArenaError):
        emit('error', exc.to_dict())
        return
    current_app.logger.exception(f"[socket-error] event={getattr(request, 'event', None)}")
    emit('error', {'error': 'Internal error'})


RELAY_EVENT_KINDS = {
    'webrtc-offer': 'offer',
    'webrtc-answer': 'answer',
    'webrtc-ice-candidate': 'ice-candidate',
    'webrtc-signal': 'generic-signal',
}


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register Socket.IO event handlers on `namespace`."""
    _state['namespace'] = namespace
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('join-video-room', handle_join_video_room, namespace=namespace)
    socketio.on_event('leave-video-room', handle_leave_video_room, namespace=namespace)
    socketio.on_event('room-ping', handle_room_ping, namespace=namespace)
    socketio.on_event('room-pong', handle_room_pong, namespace=namespace)
    for event, kind in RELAY_EVENT_KINDS.items():
        socketio.on_event(event, _relay_handler(kind), namespace=namespace)
    socketio.on_error_default(handle_socket_error)
