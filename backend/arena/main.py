from datetime import datetime, timezone
from flask import Blueprint, jsonify, current_app
from arena.errors import IceProviderError
from arena.services import get_services

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'DDL Arena backend server is running'})


@main.route('/api/health')
def health():
    svc = get_services()
    return jsonify({
        'status': 'healthy',
        'server': 'DDL Arena Backend',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'connections': svc.tracker.stats(),
        'sessions': svc.monitor.stats(),
    })


@main.route('/api/ice-servers')
def ice_servers():
    svc = get_services()
    try:
        servers = svc.ice.get_ice_servers()
    except IceProviderError as exc:
        current_app.logger.warning(f"[ice-fallback] {exc.message}")
        servers = svc.ice_fallback.get_ice_servers()
    return jsonify({'iceServers': servers})


@main.route('/api/live-matches')
def live_matches():
    return jsonify(get_services().monitor.live_sessions())
