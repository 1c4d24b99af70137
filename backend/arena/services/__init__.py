"""Room and signaling services.

Plain objects with no knowledge of HTTP or Socket.IO; routes and socket
handlers reach them through `get_services()`.
"""

from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from arena.persistence import build_persistence
from arena.services.ice import StaticIceServerProvider, build_ice_provider, static_servers_from_config
from arena.services.lifecycle import LifecycleMonitor
from arena.services.locks import RoomLocks
from arena.services.registry import SessionRegistry
from arena.services.relay import SignalingRelay
from arena.services.tracker import ConnectionTracker


@dataclass
class ArenaServices:
    registry: SessionRegistry
    tracker: ConnectionTracker
    relay: SignalingRelay
    monitor: LifecycleMonitor
    locks: RoomLocks
    ice: object
    ice_fallback: StaticIceServerProvider


def build_services(config, send) -> ArenaServices:
    persistence = build_persistence(config.get('PERSISTENCE_BACKEND', 'sql'))
    registry = SessionRegistry(persistence)
    tracker = ConnectionTracker()
    relay = SignalingRelay(tracker, send)
    locks = RoomLocks()
    monitor = LifecycleMonitor(
        registry,
        tracker,
        relay,
        locks=locks,
        stale_timeout=timedelta(seconds=int(config.get('STALE_ROOM_TIMEOUT_SEC', 1800))),
        max_age=timedelta(seconds=int(config.get('MAX_ROOM_AGE_SEC', 86400))),
    )
    return ArenaServices(
        registry=registry,
        tracker=tracker,
        relay=relay,
        monitor=monitor,
        locks=locks,
        ice=build_ice_provider(config),
        ice_fallback=StaticIceServerProvider(static_servers_from_config(config)),
    )


def get_services(app=None) -> ArenaServices:
    return (app or current_app).extensions['arena']
