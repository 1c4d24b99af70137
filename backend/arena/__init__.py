from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from sqlalchemy.exc import SQLAlchemyError
import click
from arena.config import Config

db = SQLAlchemy()
migrate = Migrate()
# Handlers run inline so each connection's events are processed in arrival order
socketio = SocketIO(async_mode=None, async_handlers=False)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))
    allowed_origins = flask_app.config.get('ALLOWED_ORIGINS') or '*'

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from arena.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Services are shared by HTTP routes, socket handlers and the sweeper
    from arena.services import build_services
    from arena.socketio_events import register_socketio_handlers, send_delivery
    services = build_services(flask_app.config, send_delivery)
    flask_app.extensions['arena'] = services

    from arena.main import main
    flask_app.register_blueprint(main)

    from arena.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    register_socketio_handlers(flask_app.config.get('SOCKETIO_NAMESPACE', '/'))

    with flask_app.app_context():
        # Ensure the room table exists for the durable store
        import arena.models  # noqa: F401
        try:
            db.create_all()
        except SQLAlchemyError as exc:
            # Room writes degrade to the in-process table until the database is back
            flask_app.logger.warning(f"[db-init] could not create tables: {exc}")

    from arena.services.lifecycle import start_sweeper
    start_sweeper(flask_app, services.monitor)

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the room table."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('sweep-rooms')
    def sweep_rooms_command():
        """Runs one lifecycle sweep and prints what it removed."""
        with flask_app.app_context():
            result = services.monitor.sweep()
            print(f"Removed {result.stale_sessions} stale sessions and {result.aged_rooms} aged rooms")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(sweep_rooms_command)

    return flask_app
