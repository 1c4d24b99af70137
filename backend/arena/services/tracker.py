import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional

from arena.models import utcnow

logger = logging.getLogger(__name__)


@dataclass
class Connection:
    connection_id: str
    room_id: str
    username: str
    is_host: bool = False
    joined_at: datetime = field(default_factory=utcnow)


class Participant(NamedTuple):
    connection_id: str
    username: str
    is_host: bool

    def to_dict(self):
        return {'connectionId': self.connection_id, 'username': self.username, 'isHost': self.is_host}


class Departure(NamedTuple):
    room_id: str
    connection_id: str
    username: str
    remaining_count: int


class ConnectionTracker:
    """Maps live transport connections to the video room they are in.

    A connection belongs to at most one room. Per-room participant maps are
    plain dicts so iteration follows join order.
    """

    def __init__(self, clock=utcnow):
        self.clock = clock
        self._connections: Dict[str, Connection] = {}
        self._rooms: Dict[str, Dict[str, None]] = {}
        self._lock = threading.RLock()

    def register_join(self, connection_id, room_id, username, is_host=False) -> Optional[Departure]:
        """Track `connection_id` in `room_id`.

        Returns the implicit departure from a previous, different room, if any.
        """
        with self._lock:
            departure = None
            current = self._connections.get(connection_id)
            if current is not None and current.room_id != room_id:
                departure = self._remove(connection_id)
            self._connections[connection_id] = Connection(
                connection_id=connection_id,
                room_id=room_id,
                username=username,
                is_host=bool(is_host),
                joined_at=current.joined_at if current and not departure else self.clock(),
            )
            self._rooms.setdefault(room_id, {})[connection_id] = None
        if departure:
            logger.info(f"[tracker-move] conn={connection_id} from={departure.room_id} to={room_id}")
        return departure

    def unregister(self, connection_id) -> Optional[Departure]:
        with self._lock:
            if connection_id not in self._connections:
                return None
            return self._remove(connection_id)

    def _remove(self, connection_id) -> Departure:
        conn = self._connections.pop(connection_id)
        members = self._rooms.get(conn.room_id, {})
        members.pop(connection_id, None)
        if not members:
            self._rooms.pop(conn.room_id, None)
        return Departure(conn.room_id, connection_id, conn.username, len(members))

    def get(self, connection_id) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(connection_id)

    def room_of(self, connection_id) -> Optional[str]:
        conn = self.get(connection_id)
        return conn.room_id if conn else None

    def list_participants(self, room_id, excluding=None) -> List[Participant]:
        with self._lock:
            return [
                Participant(cid, self._connections[cid].username, self._connections[cid].is_host)
                for cid in self._rooms.get(room_id, {})
                if cid != excluding
            ]

    def count_in(self, room_id) -> int:
        with self._lock:
            return len(self._rooms.get(room_id, {}))

    def clear_room(self, room_id) -> List[str]:
        """Forget every connection in `room_id` and return their ids."""
        with self._lock:
            ids = list(self._rooms.pop(room_id, {}))
            for cid in ids:
                self._connections.pop(cid, None)
        return ids

    def stats(self):
        with self._lock:
            return {'connections': len(self._connections), 'rooms': len(self._rooms)}
