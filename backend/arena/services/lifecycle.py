import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, NamedTuple, Optional

from arena import socketio
from arena.models import RoomStatus, utcnow
from arena.services.locks import RoomLocks

logger = logging.getLogger(__name__)

ACTIVE = 'active'
ENDED = 'ended'


@dataclass
class RoomLifecycle:
    room_id: str
    created_at: datetime
    last_activity: datetime
    status: str = ACTIVE
    # dict keys as an insertion-ordered set of connection ids
    participants: Dict[str, None] = field(default_factory=dict)

    def to_dict(self):
        return {
            'roomId': self.room_id,
            'status': self.status,
            'participants': len(self.participants),
            'createdAt': self.created_at.isoformat(),
            'lastActivity': self.last_activity.isoformat(),
        }


class SweepResult(NamedTuple):
    stale_sessions: int
    aged_rooms: int


class LifecycleMonitor:
    """Tracks live video sessions per room code and reclaims the abandoned ones.

    Lifecycle entries are separate from registry rooms: an entry can exist for
    a code that was never created through the registry, and a room can exist
    before anyone joins its video session.
    """

    def __init__(self, registry, tracker, relay, clock=utcnow, locks: Optional[RoomLocks] = None,
                 stale_timeout=timedelta(minutes=30), max_age=timedelta(hours=24)):
        self.registry = registry
        self.tracker = tracker
        self.relay = relay
        self.clock = clock
        self.locks = locks or RoomLocks()
        self.stale_timeout = stale_timeout
        self.max_age = max_age
        self._entries: Dict[str, RoomLifecycle] = {}
        self._lock = threading.RLock()

    def get(self, room_id) -> Optional[RoomLifecycle]:
        with self._lock:
            return self._entries.get(room_id)

    def on_join(self, room_id, connection_id) -> RoomLifecycle:
        now = self.clock()
        with self._lock:
            entry = self._entries.get(room_id)
            if entry is None:
                entry = RoomLifecycle(room_id=room_id, created_at=now, last_activity=now)
                self._entries[room_id] = entry
                logger.info(f"[lifecycle-start] room={room_id}")
            entry.last_activity = now
            entry.participants[connection_id] = None
            count = len(entry.participants)
        self.registry.refresh_presence(room_id, count)
        return entry

    def on_leave(self, room_id, connection_id) -> bool:
        """Drop a participant; returns True when the room was torn down."""
        with self._lock:
            entry = self._entries.get(room_id)
            if entry is None:
                return False
            entry.last_activity = self.clock()
            entry.participants.pop(connection_id, None)
            count = len(entry.participants)
        if count == 0:
            self._teardown(room_id, reason='empty')
            return True
        self.registry.refresh_presence(room_id, count)
        return False

    def on_explicit_end(self, room_id) -> int:
        """End a call for everyone still in it; returns how many connections were notified."""
        with self._lock:
            entry = self._entries.get(room_id)
            if entry is not None:
                entry.status = ENDED
        deliveries = self.relay.broadcast_to_room(room_id, None, 'room-ended', {
            'roomId': room_id,
            'reason': 'ended',
        })
        self.tracker.clear_room(room_id)
        self._teardown(room_id, reason='explicit-end')
        return len(deliveries)

    def _teardown(self, room_id, reason) -> None:
        with self._lock:
            entry = self._entries.pop(room_id, None)
            if entry is not None:
                entry.status = ENDED
        self.registry.discard_room(room_id)
        logger.info(f"[lifecycle-teardown] room={room_id} reason={reason}")

    def _is_stale(self, entry: RoomLifecycle, now) -> bool:
        if entry.status == ENDED:
            return True
        return not entry.participants and now - entry.last_activity > self.stale_timeout

    def sweep(self, now=None) -> SweepResult:
        now = now or self.clock()
        stale = 0
        with self._lock:
            candidates = [e.room_id for e in self._entries.values() if self._is_stale(e, now)]
        for room_id in candidates:
            with self.locks.hold(room_id):
                entry = self.get(room_id)
                # A join may have revived the room since the snapshot
                if entry is None or not self._is_stale(entry, now):
                    continue
                self._teardown(room_id, reason='stale')
                stale += 1

        aged = 0
        for room in self.registry.list_all():
            if self.get(room.code) is not None:
                continue
            if room.status == RoomStatus.ENDED or now - room.created_at > self.max_age:
                with self.locks.hold(room.code):
                    if self.get(room.code) is None and self.registry.discard_room(room.code):
                        aged += 1
        if stale or aged:
            logger.info(f"[sweep] stale_sessions={stale} aged_rooms={aged}")
        return SweepResult(stale, aged)

    def live_sessions(self):
        """Join live sessions with their registry rooms; orphaned sessions carry `room: None`."""
        with self._lock:
            entries = [e.to_dict() for e in self._entries.values() if e.status == ACTIVE]
        sessions = []
        for entry in entries:
            room = self.registry.find_room(entry['roomId'])
            entry['room'] = room.to_dict() if room else None
            sessions.append(entry)
        return sorted(sessions, key=lambda s: s['lastActivity'], reverse=True)

    def stats(self):
        with self._lock:
            return {
                'sessions': len(self._entries),
                'participants': sum(len(e.participants) for e in self._entries.values()),
            }


def start_sweeper(app, monitor):
    """Run `monitor.sweep` every CLEANUP_INTERVAL_SEC in a Socket.IO background task.

    - No-ops in TESTING mode unless ENABLE_SWEEPER_IN_TESTS is set
    - A failing pass is logged and the loop keeps going
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SWEEPER_IN_TESTS'):
        return None
    interval = int(app.config.get('CLEANUP_INTERVAL_SEC', 300))

    def _worker():
        while True:
            socketio.sleep(interval)
            with app.app_context():
                try:
                    monitor.sweep()
                except Exception:
                    app.logger.exception('[sweep-failed]')

    app.logger.info(f"[sweep-schedule] interval={interval}s stale={monitor.stale_timeout} max_age={monitor.max_age}")
    return socketio.start_background_task(_worker)
