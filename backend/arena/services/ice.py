import logging
import threading
import time

import requests

from arena.errors import IceProviderError

logger = logging.getLogger(__name__)

DEFAULT_ICE_SERVERS = [
    {'urls': 'stun:stun.l.google.com:19302'},
    {'urls': 'stun:stun1.l.google.com:19302'},
]


class StaticIceServerProvider:
    def __init__(self, servers=None):
        self.servers = list(servers or DEFAULT_ICE_SERVERS)

    def get_ice_servers(self):
        return [dict(s) for s in self.servers]


class XirsysIceServerProvider:
    """Fetch short-lived TURN credentials from Xirsys and cache them for `ttl` seconds."""

    def __init__(self, url, ident, secret, channel, ttl=3600, timeout=5, session=None, clock=time.monotonic):
        self.endpoint = f"{url.rstrip('/')}/{channel}"
        self.auth = (ident, secret)
        self.ttl = ttl
        self.timeout = timeout
        self.session = session or requests.Session()
        self.clock = clock
        self._cached = None
        self._expires = 0.0
        self._lock = threading.Lock()

    def get_ice_servers(self):
        with self._lock:
            if self._cached is not None and self.clock() < self._expires:
                return [dict(s) for s in self._cached]
        servers = self._fetch()
        with self._lock:
            self._cached = servers
            self._expires = self.clock() + self.ttl
        return [dict(s) for s in servers]

    def _fetch(self):
        try:
            res = self.session.put(self.endpoint, json={'format': 'urls'}, auth=self.auth, timeout=self.timeout)
            res.raise_for_status()
            body = res.json()
        except (requests.RequestException, ValueError) as exc:
            raise IceProviderError(f"Xirsys request failed: {exc}") from exc
        if body.get('s') != 'ok':
            raise IceProviderError(f"Xirsys error: {body.get('v')}")
        servers = (body.get('v') or {}).get('iceServers')
        if isinstance(servers, dict):
            servers = [servers]
        if not servers:
            raise IceProviderError('Xirsys returned no ICE servers')
        logger.info(f"[ice-refresh] servers={len(servers)} ttl={self.ttl}s")
        return servers


def static_servers_from_config(config):
    servers = list(DEFAULT_ICE_SERVERS)
    if config.get('TURN_URL'):
        servers.append({
            'urls': config['TURN_URL'],
            'username': config.get('TURN_USERNAME'),
            'credential': config.get('TURN_CREDENTIAL'),
        })
    return servers


def build_ice_provider(config):
    if config.get('XIRSYS_IDENT') and config.get('XIRSYS_SECRET'):
        return XirsysIceServerProvider(
            config.get('XIRSYS_URL', 'https://global.xirsys.net/_turn'),
            config['XIRSYS_IDENT'],
            config['XIRSYS_SECRET'],
            config.get('XIRSYS_CHANNEL', 'ddl-arena'),
            ttl=int(config.get('ICE_CACHE_TTL_SEC', 3600)),
        )
    return StaticIceServerProvider(static_servers_from_config(config))
