"""Room storage behind a single facade.

`SqlRoomStore` keeps rooms in the database through Flask-SQLAlchemy and
`MemoryRoomStore` keeps them in a process-local table. `PersistenceAdapter`
fronts a primary store and, when configured with a fallback, re-applies any
operation the primary fails on to the fallback. The outage only surfaces
when a room is looked up that the database alone holds.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from arena import db
from arena.errors import PersistenceError
from arena.models import Room, RoomRecord, RoomStatus

logger = logging.getLogger(__name__)


def _newest_first(rooms):
    return sorted(rooms, key=lambda r: r.created_at, reverse=True)


class MemoryRoomStore:
    name = 'memory'

    def __init__(self):
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.RLock()

    def insert(self, room: Room) -> Room:
        with self._lock:
            self._rooms[room.code] = room
        return room

    def update(self, code: str, patch) -> Optional[Room]:
        with self._lock:
            room = self._rooms.get(code)
            if room is None:
                return None
            room = room.apply(patch)
            self._rooms[code] = room
            return room

    def delete(self, code: str) -> bool:
        with self._lock:
            return self._rooms.pop(code, None) is not None

    def get_by_code(self, code: str) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(code)

    def list_active(self, include_ended=False) -> List[Room]:
        with self._lock:
            rooms = list(self._rooms.values())
        if not include_ended:
            rooms = [r for r in rooms if r.status != RoomStatus.ENDED]
        return _newest_first(rooms)


class SqlRoomStore:
    name = 'sql'

    @contextmanager
    def _guard(self, op):
        try:
            yield
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(f"{op} failed: {exc}") from exc

    def insert(self, room: Room) -> Room:
        with self._guard('insert'):
            db.session.add(RoomRecord.from_room(room))
            db.session.commit()
        return room

    def update(self, code: str, patch) -> Optional[Room]:
        with self._guard('update'):
            record = RoomRecord.query.filter_by(code=code).first()
            if record is None:
                return None
            room = record.to_room().apply(patch)
            record.assign(room)
            db.session.add(record)
            db.session.commit()
            return room

    def delete(self, code: str) -> bool:
        with self._guard('delete'):
            deleted = RoomRecord.query.filter_by(code=code).delete()
            db.session.commit()
            return bool(deleted)

    def get_by_code(self, code: str) -> Optional[Room]:
        with self._guard('get_by_code'):
            record = RoomRecord.query.filter_by(code=code).first()
            return record.to_room() if record else None

    def list_active(self, include_ended=False) -> List[Room]:
        with self._guard('list_active'):
            query = RoomRecord.query
            if not include_ended:
                query = query.filter(RoomRecord.status != RoomStatus.ENDED.value)
            return [r.to_room() for r in query.order_by(RoomRecord.created.desc()).all()]


class PersistenceAdapter:
    def __init__(self, primary, fallback=None):
        self.primary = primary
        self.fallback = fallback

    def _call(self, op, *args):
        """Run `op` on the primary store; returns (result, degraded)."""
        try:
            return getattr(self.primary, op)(*args), False
        except PersistenceError as exc:
            if self.fallback is None:
                raise
            logger.warning(f"[persistence-degrade] op={op} backend={self.primary.name} error={exc.message}")
            return getattr(self.fallback, op)(*args), True

    def _require(self, room, degraded, code):
        # The room may only live in the unreachable database
        if room is None and degraded:
            raise PersistenceError(f"Room {code} is unavailable while the database is down")
        return room

    def insert(self, room: Room) -> Room:
        return self._call('insert', room)[0]

    def update(self, code: str, patch) -> Optional[Room]:
        room, degraded = self._call('update', code, patch)
        if room is None and self.fallback is not None and not degraded:
            room = self.fallback.update(code, patch)
        return self._require(room, degraded, code)

    def delete(self, code: str) -> bool:
        removed, _ = self._call('delete', code)
        if self.fallback is not None:
            removed = self.fallback.delete(code) or removed
        return removed

    def get_by_code(self, code: str) -> Optional[Room]:
        room, degraded = self._call('get_by_code', code)
        if room is None and self.fallback is not None and not degraded:
            room = self.fallback.get_by_code(code)
        return self._require(room, degraded, code)

    def list_active(self, include_ended=False) -> List[Room]:
        primary, _ = self._call('list_active', include_ended)
        rooms = {r.code: r for r in primary}
        if self.fallback is not None:
            for room in self.fallback.list_active(include_ended):
                rooms.setdefault(room.code, room)
        return _newest_first(rooms.values())


def build_persistence(backend):
    if backend == 'memory':
        return PersistenceAdapter(MemoryRoomStore())
    return PersistenceAdapter(SqlRoomStore(), fallback=MemoryRoomStore())
