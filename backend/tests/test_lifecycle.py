from datetime import timedelta

import pytest

from arena.errors import NotFoundError
from arena.services.lifecycle import RoomLifecycle, SweepResult


def _join(tracker, monitor, cid, room_id, username):
    tracker.register_join(cid, room_id, username)
    return monitor.on_join(room_id, cid)


def test_join_creates_entry_and_refreshes_room(registry, tracker, monitor):
    code = registry.create_room('alice').code
    entry = _join(tracker, monitor, 'c1', code, 'alice')
    assert entry.status == 'active'
    assert list(entry.participants) == ['c1']
    room = registry.get_room(code)
    assert room.players == 1
    assert room.is_live is True


def test_join_orphaned_session(tracker, monitor):
    entry = _join(tracker, monitor, 'c1', 'XIRSY', 'alice')
    assert entry.room_id == 'XIRSY'
    sessions = monitor.live_sessions()
    assert sessions[0]['roomId'] == 'XIRSY'
    assert sessions[0]['room'] is None


def test_last_leave_tears_down(registry, tracker, monitor):
    code = registry.create_room('alice').code
    registry.join_room(code, 'bob')
    _join(tracker, monitor, 'c1', code, 'alice')
    _join(tracker, monitor, 'c2', code, 'bob')
    assert registry.get_room(code).players == 2

    tracker.unregister('c1')
    assert monitor.on_leave(code, 'c1') is False
    # bob is still the seated opponent
    assert registry.get_room(code).players == 2

    tracker.unregister('c2')
    assert monitor.on_leave(code, 'c2') is True
    assert monitor.get(code) is None
    with pytest.raises(NotFoundError):
        registry.get_room(code)


def test_leave_unknown_room_is_noop(monitor):
    assert monitor.on_leave('NOPE1', 'c1') is False


def test_explicit_end_notifies_remaining_peers(registry, tracker, monitor, sent):
    code = registry.create_room('alice').code
    _join(tracker, monitor, 'c1', code, 'alice')
    _join(tracker, monitor, 'c2', code, 'bob')

    assert monitor.on_explicit_end(code) == 2
    assert [(d.target, d.event) for d in sent] == [('c1', 'room-ended'), ('c2', 'room-ended')]
    assert sent[0].payload['roomId'] == code
    assert tracker.count_in(code) == 0
    assert monitor.get(code) is None
    with pytest.raises(NotFoundError):
        registry.get_room(code)


def test_explicit_end_without_session_still_deletes_room(registry, monitor, sent):
    code = registry.create_room('alice').code
    assert monitor.on_explicit_end(code) == 0
    assert sent == []
    with pytest.raises(NotFoundError):
        registry.get_room(code)


def test_sweep_removes_stale_empty_session(registry, monitor, clock):
    code = registry.create_room('alice').code
    monitor._entries[code] = RoomLifecycle(room_id=code, created_at=clock(), last_activity=clock())

    clock.advance(minutes=29)
    assert monitor.sweep() == SweepResult(0, 0)
    assert monitor.get(code) is not None

    clock.advance(minutes=2)
    assert monitor.sweep() == SweepResult(1, 0)
    assert monitor.get(code) is None
    with pytest.raises(NotFoundError):
        registry.get_room(code)


def test_sweep_keeps_sessions_with_participants(tracker, monitor, clock):
    _join(tracker, monitor, 'c1', 'ROOMA', 'alice')
    assert monitor.sweep(clock() + timedelta(days=2)) == SweepResult(0, 0)
    assert monitor.get('ROOMA') is not None


def test_sweep_removes_ended_session(monitor, clock):
    monitor._entries['ROOMA'] = RoomLifecycle(
        room_id='ROOMA', created_at=clock(), last_activity=clock(), status='ended',
        participants={'c1': None},
    )
    assert monitor.sweep() == SweepResult(1, 0)


def test_sweep_removes_aged_rooms_without_session(registry, tracker, monitor, clock):
    aged = registry.create_room('alice').code
    live = registry.create_room('bob').code
    _join(tracker, monitor, 'c1', live, 'bob')

    clock.advance(hours=23)
    assert monitor.sweep() == SweepResult(0, 0)

    clock.advance(hours=2)
    fresh = registry.create_room('carol').code
    assert monitor.sweep() == SweepResult(0, 1)
    with pytest.raises(NotFoundError):
        registry.get_room(aged)
    assert registry.get_room(live)
    assert registry.get_room(fresh)


def test_sweep_removes_ended_rooms(registry, monitor):
    code = registry.create_room('alice').code
    registry.update_status(code, 'ended')
    assert monitor.sweep() == SweepResult(0, 1)
    assert registry.list_all() == []
