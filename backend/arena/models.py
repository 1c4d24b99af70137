from arena import db
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
import random
import string

MAX_PLAYERS = 2
CODE_LENGTH = 5
CODE_ALPHABET = string.ascii_uppercase + string.digits


def utcnow() -> datetime:
    # Naive UTC so values compare equally before and after a round trip through SQLite
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_room_code(exists, length=CODE_LENGTH):
    """Generate a short room code that `exists(code)` does not report as taken."""
    while True:
        code = ''.join(random.choices(CODE_ALPHABET, k=length))
        if not exists(code):
            return code


class RoomStatus(str, Enum):
    WAITING = 'waiting'
    READY = 'ready'
    PLAYING = 'playing'
    LIVE = 'live'
    ABANDONED = 'abandoned'
    ENDED = 'ended'

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass
class Room:
    code: str
    host: str
    host_id: str
    opponent: Optional[str] = None
    opponent_id: Optional[str] = None
    players: int = 1
    max_players: int = MAX_PLAYERS
    status: RoomStatus = RoomStatus.WAITING
    game_settings: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)
    is_live: bool = False

    def apply(self, patch: Dict[str, Any]) -> 'Room':
        """Return a copy with the given attribute overrides."""
        return replace(self, **patch)

    def to_dict(self):
        return {
            'code': self.code,
            'host': self.host,
            'host_id': self.host_id,
            'opponent': self.opponent,
            'opponent_id': self.opponent_id,
            'players': self.players,
            'max_players': self.max_players,
            'status': self.status.value,
            'game_settings': self.game_settings,
            'created': self.created_at.isoformat(),
            'last_activity': self.last_activity.isoformat(),
            'is_live': self.is_live,
        }


class RoomRecord(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(CODE_LENGTH), unique=True, nullable=False, index=True)
    host = db.Column(db.String(64), nullable=False)
    host_id = db.Column(db.String(36), nullable=False)
    opponent = db.Column(db.String(64), nullable=True)
    opponent_id = db.Column(db.String(36), nullable=True)
    players = db.Column(db.Integer, nullable=False, default=1)
    max_players = db.Column(db.Integer, nullable=False, default=MAX_PLAYERS)
    status = db.Column(db.String(16), nullable=False, default=RoomStatus.WAITING.value, index=True)
    game_settings = db.Column(db.JSON, nullable=True)
    created = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    last_activity = db.Column(db.DateTime, nullable=False, default=utcnow)
    is_live = db.Column(db.Boolean, nullable=False, default=False)

    @classmethod
    def from_room(cls, room: Room) -> 'RoomRecord':
        record = cls(code=room.code)
        record.assign(room)
        return record

    def assign(self, room: Room) -> None:
        self.host = room.host
        self.host_id = room.host_id
        self.opponent = room.opponent
        self.opponent_id = room.opponent_id
        self.players = room.players
        self.max_players = room.max_players
        self.status = room.status.value
        self.game_settings = dict(room.game_settings or {})
        self.created = room.created_at
        self.last_activity = room.last_activity
        self.is_live = bool(room.is_live)

    def to_room(self) -> Room:
        return Room(
            code=self.code,
            host=self.host,
            host_id=self.host_id,
            opponent=self.opponent,
            opponent_id=self.opponent_id,
            players=self.players,
            max_players=self.max_players,
            status=RoomStatus.parse(self.status) or RoomStatus.WAITING,
            game_settings=dict(self.game_settings or {}),
            created_at=self.created,
            last_activity=self.last_activity,
            is_live=bool(self.is_live),
        )
