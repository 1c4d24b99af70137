import logging
import uuid
from datetime import timedelta
from typing import List, Optional

from arena.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from arena.models import Room, RoomStatus, generate_room_code, utcnow

logger = logging.getLogger(__name__)


def normalize_code(code) -> str:
    return (code or '').strip().upper()


class SessionRegistry:
    """Owns room records; every read and write goes through the persistence adapter."""

    def __init__(self, persistence, clock=utcnow):
        self.persistence = persistence
        self.clock = clock

    def _code_taken(self, code) -> bool:
        try:
            return self.persistence.get_by_code(code) is not None
        except PersistenceError:
            # Database down and the code is not in the fallback table
            return False

    def create_room(self, host, game_settings=None) -> Room:
        host = (host or '').strip() if isinstance(host, str) else host
        if not host:
            raise ValidationError('Host name is required')
        code = generate_room_code(self._code_taken)
        now = self.clock()
        room = Room(
            code=code,
            host=host,
            host_id=str(uuid.uuid4()),
            game_settings=dict(game_settings or {}),
            created_at=now,
            last_activity=now,
        )
        self.persistence.insert(room)
        logger.info(f"[room-create] code={code} host={host}")
        return room

    def get_room(self, code) -> Room:
        room = self.persistence.get_by_code(normalize_code(code))
        if room is None:
            raise NotFoundError('Room not found')
        return room

    def find_room(self, code) -> Optional[Room]:
        return self.persistence.get_by_code(normalize_code(code))

    def join_room(self, code, username) -> Room:
        username = (username or '').strip() if isinstance(username, str) else username
        if not username:
            raise ValidationError('Username is required')
        room = self.get_room(code)
        if room.opponent or room.players >= room.max_players:
            raise ConflictError(ConflictError.ROOM_FULL, 'Room is full')
        if username == room.host:
            raise ConflictError(ConflictError.SELF_JOIN, 'Cannot join your own room')
        if room.status == RoomStatus.PLAYING:
            raise ConflictError(ConflictError.GAME_IN_PROGRESS, 'Game already in progress')
        updated = self.persistence.update(room.code, {
            'opponent': username,
            'opponent_id': str(uuid.uuid4()),
            'players': 2,
            'status': RoomStatus.READY,
            'last_activity': self.clock(),
        })
        if updated is None:
            # Deleted between the read and the write
            raise NotFoundError('Room not found')
        logger.info(f"[room-join] code={room.code} opponent={username}")
        return updated

    def update_status(self, code, status) -> Room:
        # No transition guard: any known status may overwrite any other
        parsed = RoomStatus.parse(status) if status is not None else None
        if parsed is None:
            raise ValidationError(f"Unknown status: {status!r}")
        room = self.persistence.update(normalize_code(code), {
            'status': parsed,
            'last_activity': self.clock(),
        })
        if room is None:
            raise NotFoundError('Room not found')
        logger.info(f"[room-status] code={room.code} status={parsed.value}")
        return room

    def delete_room(self, code) -> None:
        if not self.persistence.delete(normalize_code(code)):
            raise NotFoundError('Room not found')
        logger.info(f"[room-delete] code={normalize_code(code)}")

    def discard_room(self, code) -> bool:
        """Delete without complaining when the room is already gone."""
        removed = self.persistence.delete(normalize_code(code))
        if removed:
            logger.info(f"[room-discard] code={normalize_code(code)}")
        return removed

    def refresh_presence(self, code, participants: int) -> Optional[Room]:
        try:
            room = self.find_room(code)
        except PersistenceError as exc:
            logger.warning(f"[presence-skip] code={normalize_code(code)} error={exc.message}")
            return None
        if room is None:
            return None
        # Video presence never lowers the count derived from host and opponent
        seated = 2 if room.opponent else 1
        return self.persistence.update(room.code, {
            'players': max(seated, min(participants, room.max_players)),
            'is_live': participants > 0,
            'last_activity': self.clock(),
        })

    def list_active(self, max_age: timedelta) -> List[Room]:
        cutoff = self.clock() - max_age
        rooms = [r for r in self.persistence.list_active() if r.created_at > cutoff]
        return sorted(rooms, key=lambda r: r.created_at, reverse=True)

    def list_all(self) -> List[Room]:
        return self.persistence.list_active(include_ended=True)
