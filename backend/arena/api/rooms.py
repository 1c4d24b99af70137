from datetime import timedelta
from flask import Blueprint, jsonify, request, current_app
from arena.errors import ValidationError
from arena.services import get_services
from arena.services.registry import normalize_code


rooms = Blueprint('rooms', __name__)


@rooms.route('', methods=['POST'])
def create_room():
    data = request.get_json(silent=True) or {}
    settings = data.get('gameSettings') or data.get('game_settings') or {}
    if not isinstance(settings, dict):
        raise ValidationError('gameSettings must be an object')
    room = get_services().registry.create_room(data.get('host'), settings)
    return jsonify(room.to_dict()), 201


@rooms.route('', methods=['GET'])
def list_rooms():
    max_age = timedelta(seconds=int(current_app.config.get('MAX_ROOM_AGE_SEC', 86400)))
    return jsonify([r.to_dict() for r in get_services().registry.list_active(max_age)])


@rooms.route('/end-call', methods=['POST'])
def end_call():
    data = request.get_json(silent=True) or {}
    code = normalize_code(data.get('roomCode'))
    if not code:
        raise ValidationError('roomCode is required')
    svc = get_services()
    with svc.locks.hold(code):
        notified = svc.monitor.on_explicit_end(code)
    current_app.logger.info(f"[end-call] room={code} notified={notified}")
    return jsonify({'message': f'Call ended for room {code}', 'notified': notified})


@rooms.route('/<string:code>', methods=['GET'])
def get_room(code):
    return jsonify(get_services().registry.get_room(code).to_dict())


@rooms.route('/<string:code>/join', methods=['POST'])
def join_room(code):
    data = request.get_json(silent=True) or {}
    svc = get_services()
    with svc.locks.hold(normalize_code(code)):
        room = svc.registry.join_room(code, data.get('username'))
    return jsonify(room.to_dict())


@rooms.route('/<string:code>/status', methods=['PUT'])
def update_status(code):
    data = request.get_json(silent=True) or {}
    svc = get_services()
    with svc.locks.hold(normalize_code(code)):
        room = svc.registry.update_status(code, data.get('status'))
    return jsonify(room.to_dict())


@rooms.route('/<string:code>', methods=['DELETE'])
def delete_room(code):
    get_services().registry.delete_room(code)
    return jsonify({'message': f'Room {normalize_code(code)} deleted'})
