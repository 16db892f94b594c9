from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from timing_arena.main import main
    flask_app.register_blueprint(main)

    from timing_arena.api.leaderboard import leaderboard
    from timing_arena.api.rooms import rooms
    flask_app.register_blueprint(leaderboard, url_prefix='/api/leaderboard')
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    _init_game_services(flask_app)

    from timing_arena.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('leaderboard-reset')
    def leaderboard_reset_command():
        """Drops and recreates the leaderboard table."""
        from timing_arena.models import LeaderboardEntry
        with flask_app.app_context():
            LeaderboardEntry.__table__.drop(db.engine, checkfirst=True)
            LeaderboardEntry.__table__.create(db.engine)
            print('Leaderboard has been reset!')

    flask_app.cli.add_command(leaderboard_reset_command)

    return flask_app


def _init_game_services(flask_app):
    """Wire registry, coordinator, store and scheduler into one gateway."""
    from timing_arena.services.games.coordinator import RoundCoordinator
    from timing_arena.services.games.errors import PersistenceFailure
    from timing_arena.services.games.leaderboard import LeaderboardStore
    from timing_arena.services.games.rooms import RoomRegistry
    from timing_arena.services.games.scheduler import BackgroundScheduler, ManualScheduler
    from timing_arena.services.games.state import GameSettings
    from timing_arena.socketio_events import SessionGateway

    settings = GameSettings.from_config(flask_app.config)
    if flask_app.config.get('SCHEDULER') == 'manual':
        scheduler = ManualScheduler()
    else:
        scheduler = BackgroundScheduler(flask_app, socketio)

    store = LeaderboardStore(flask_app, socketio, cache_size=settings.leaderboard_size)
    try:
        store.warm(settings.leaderboard_size)
    except PersistenceFailure as exc:
        # table not migrated yet
        flask_app.logger.warning(f"Leaderboard cache not warmed: {exc}")

    registry = RoomRegistry(settings.max_room_size, logger=flask_app.logger)
    coordinator = RoundCoordinator(registry, store, scheduler, settings, logger=flask_app.logger)
    gateway = SessionGateway(registry, coordinator, store, scheduler, logger=flask_app.logger)
    flask_app.extensions['timing_arena'] = gateway
    flask_app.extensions['timing_arena.scheduler'] = scheduler
