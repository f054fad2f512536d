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


def _allowed_origins(raw):
    origins = [o.strip() for o in (raw or '').split(',') if o.strip()]
    if not origins or '*' in origins:
        return '*'
    return origins


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = _allowed_origins(flask_app.config.get('CORS_ORIGINS'))
    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)
    # Socket.IO serves the app and runs the cleanup timers as background tasks
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from dailyrank import dates
    from dailyrank.services.ranking import CleanupScheduler

    flask_app.extensions['rank_clock'] = dates.utc_now
    # One scheduler context per app; run.py arms its timers
    flask_app.extensions['cleanup_scheduler'] = CleanupScheduler(
        flask_app, clock=lambda: flask_app.extensions['rank_clock']()
    )

    # Import and register blueprints here
    from dailyrank.routes import main
    flask_app.register_blueprint(main)

    from dailyrank.api.rank import rank
    flask_app.register_blueprint(rank, url_prefix='/api/rank')

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the leaderboard tables."""
        import dailyrank.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('rank-cleanup')
    def rank_cleanup_command():
        """Purges stale days and trims today's leaderboard now."""
        scheduler = flask_app.extensions['cleanup_scheduler']
        result = scheduler.run_cleanup(reason='cli')
        if result is None:
            print('A cleanup pass is already running.')
            return
        print(f"[{result['date']}] purged {result['purged']} stale rows, trimmed {result['trimmed']} rows")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(rank_cleanup_command)

    return flask_app
