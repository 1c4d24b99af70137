from flask import jsonify


class ArenaError(Exception):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message}


class ValidationError(ArenaError):
    """A required field is missing or malformed."""
    status_code = 400


class NotFoundError(ArenaError):
    status_code = 404


class ConflictError(ArenaError):
    """The room exists but cannot accept the request in its current state."""
    status_code = 400

    ROOM_FULL = 'room_full'
    SELF_JOIN = 'self_join'
    GAME_IN_PROGRESS = 'game_in_progress'

    def __init__(self, reason, message):
        super().__init__(message)
        self.reason = reason

    def to_dict(self):
        return {'error': self.message, 'reason': self.reason}


class PersistenceError(ArenaError):
    """The durable store failed and no fallback applies."""


class IceProviderError(ArenaError):
    status_code = 502


def register_error_handlers(flask_app):
    @flask_app.errorhandler(ArenaError)
    def handle_arena_error(exc):
        if exc.status_code >= 500:
            flask_app.logger.error(f"[request-error] {exc.message}")
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(404)
    def handle_not_found(_exc):
        return jsonify({'error': 'Not found'}), 404
