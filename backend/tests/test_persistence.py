import logging
from datetime import timedelta

import pytest

from arena.errors import PersistenceError
from arena.models import Room, RoomStatus, utcnow
from arena.persistence import MemoryRoomStore, PersistenceAdapter, SqlRoomStore, build_persistence


class FailingStore:
    name = 'broken'

    def __getattr__(self, op):
        def fail(*_args):
            raise PersistenceError(f"{op} failed: connection refused")
        return fail


def _room(code, host='alice', **kwargs):
    return Room(code=code, host=host, host_id=f'{host}-id', **kwargs)


def test_memory_store_round_trip():
    store = MemoryRoomStore()
    store.insert(_room('AAAAA'))
    updated = store.update('AAAAA', {'status': RoomStatus.READY, 'opponent': 'bob'})
    assert updated.status == RoomStatus.READY
    assert store.get_by_code('AAAAA').opponent == 'bob'
    assert store.update('ZZZZZ', {'players': 2}) is None
    assert store.delete('AAAAA') is True
    assert store.delete('AAAAA') is False


def test_list_active_excludes_ended_newest_first():
    store = MemoryRoomStore()
    now = utcnow()
    store.insert(_room('OLDER', created_at=now - timedelta(minutes=5)))
    store.insert(_room('NEWER', created_at=now))
    store.insert(_room('ENDED', status=RoomStatus.ENDED))
    assert [r.code for r in store.list_active()] == ['NEWER', 'OLDER']
    assert len(store.list_active(include_ended=True)) == 3


def test_adapter_degrades_to_fallback(caplog):
    caplog.set_level(logging.WARNING, logger='arena.persistence')
    fallback = MemoryRoomStore()
    adapter = PersistenceAdapter(FailingStore(), fallback=fallback)

    adapter.insert(_room('AAAAA'))
    assert adapter.get_by_code('AAAAA').host == 'alice'
    assert adapter.update('AAAAA', {'players': 2}).players == 2
    assert [r.code for r in adapter.list_active()] == ['AAAAA']
    assert adapter.delete('AAAAA') is True
    with pytest.raises(PersistenceError):
        adapter.get_by_code('AAAAA')
    assert any('[persistence-degrade]' in r.getMessage() for r in caplog.records)


def test_adapter_without_fallback_propagates():
    adapter = PersistenceAdapter(FailingStore())
    with pytest.raises(PersistenceError):
        adapter.get_by_code('AAAAA')


def test_sql_store_round_trip(flask_app):
    store = SqlRoomStore()
    store.insert(_room('AAAAA', game_settings={'startingScore': 301}))
    room = store.get_by_code('AAAAA')
    assert room.game_settings == {'startingScore': 301}
    assert room.status == RoomStatus.WAITING

    room = store.update('AAAAA', {'status': RoomStatus.ENDED, 'is_live': True})
    assert room.status == RoomStatus.ENDED
    assert store.get_by_code('AAAAA').is_live is True
    assert store.list_active() == []
    assert [r.code for r in store.list_active(include_ended=True)] == ['AAAAA']
    assert store.delete('AAAAA') is True
    assert store.get_by_code('AAAAA') is None


def test_sql_failure_surfaces_as_persistence_error(flask_app):
    from arena import db
    store = SqlRoomStore()
    db.drop_all()
    with pytest.raises(PersistenceError):
        store.get_by_code('AAAAA')
    db.create_all()


def test_adapter_reads_rooms_written_while_degraded(flask_app):
    from arena import db
    adapter = build_persistence('sql')
    db.drop_all()
    adapter.insert(_room('AAAAA'))
    db.create_all()
    adapter.insert(_room('BBBBB', host='bob'))
    assert adapter.get_by_code('AAAAA').host == 'alice'
    assert {r.code for r in adapter.list_active()} == {'AAAAA', 'BBBBB'}


def test_degraded_lookup_of_unknown_room_raises():
    adapter = PersistenceAdapter(FailingStore(), fallback=MemoryRoomStore())
    with pytest.raises(PersistenceError):
        adapter.get_by_code('AAAAA')
    with pytest.raises(PersistenceError):
        adapter.update('AAAAA', {'players': 2})


def test_registry_creates_rooms_while_degraded(clock):
    from arena.services.registry import SessionRegistry
    registry = SessionRegistry(PersistenceAdapter(FailingStore(), fallback=MemoryRoomStore()), clock=clock)
    code = registry.create_room('alice').code
    assert registry.get_room(code).host == 'alice'
    assert registry.refresh_presence('ZZZZZ', 1) is None


def test_room_held_only_in_database_is_500_while_down(client):
    from arena import db
    code = client.post('/api/rooms', json={'host': 'alice'}).get_json()['code']
    db.drop_all()
    res = client.get(f'/api/rooms/{code}')
    assert res.status_code == 500
    assert 'error' in res.get_json()
    db.create_all()
