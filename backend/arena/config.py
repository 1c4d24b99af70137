import os


def _split_origins(raw):
    return [origin.strip() for origin in raw.split(',') if origin.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///arena.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # 'sql' uses the database with an in-process fallback table; 'memory' skips the database
    PERSISTENCE_BACKEND = os.environ.get('PERSISTENCE_BACKEND', 'sql')
    ALLOWED_ORIGINS = _split_origins(os.environ.get(
        'ALLOWED_ORIGINS',
        'https://discorddartsleagues.netlify.app,http://localhost:5173,http://127.0.0.1:5173',
    ))
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Lifecycle sweep (seconds)
    STALE_ROOM_TIMEOUT_SEC = int(os.environ.get('STALE_ROOM_TIMEOUT_SEC', str(30 * 60)))
    MAX_ROOM_AGE_SEC = int(os.environ.get('MAX_ROOM_AGE_SEC', str(24 * 60 * 60)))
    CLEANUP_INTERVAL_SEC = int(os.environ.get('CLEANUP_INTERVAL_SEC', str(5 * 60)))
    # ICE servers. Xirsys is used when XIRSYS_IDENT is set, otherwise the static list.
    ICE_CACHE_TTL_SEC = int(os.environ.get('ICE_CACHE_TTL_SEC', '3600'))
    XIRSYS_URL = os.environ.get('XIRSYS_URL', 'https://global.xirsys.net/_turn')
    XIRSYS_IDENT = os.environ.get('XIRSYS_IDENT')
    XIRSYS_SECRET = os.environ.get('XIRSYS_SECRET')
    XIRSYS_CHANNEL = os.environ.get('XIRSYS_CHANNEL', 'ddl-arena')
    TURN_URL = os.environ.get('TURN_URL')
    TURN_USERNAME = os.environ.get('TURN_USERNAME')
    TURN_CREDENTIAL = os.environ.get('TURN_CREDENTIAL')
