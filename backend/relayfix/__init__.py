from flask import Flask, current_app
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import atexit
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _engine_for(db_url: str, timeout: float):
    if db_url.startswith('sqlite'):
        connect_args = {"check_same_thread": False, "timeout": timeout}
        if db_url.endswith(':memory:'):
            # Ensure a single shared in-memory SQLite database across all sessions
            return create_engine(db_url, echo=False, future=True, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(db_url, echo=False, future=True, connect_args=connect_args)
    return create_engine(db_url, echo=False, future=True, pool_timeout=timeout, pool_pre_ping=True)


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['HANDOFF_SECRET_KEY'] = os.getenv('HANDOFF_SECRET_KEY')
    app.config['HANDOFF_KEY_SALT'] = os.getenv('HANDOFF_KEY_SALT')
    app.config['DB_TIMEOUT_SECONDS'] = float(os.getenv('DB_TIMEOUT_SECONDS', '5'))
    app.config['NOTIFICATION_WORKER'] = os.getenv('NOTIFICATION_WORKER', '1') not in ('0', 'false', 'False')
    app.config['NOTIFICATION_QUEUE_SIZE'] = int(os.getenv('NOTIFICATION_QUEUE_SIZE', '1000'))
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    if not app.config['HANDOFF_SECRET_KEY']:
        raise RuntimeError('HANDOFF_SECRET_KEY must be set; hand-off tokens cannot be issued or checked without it')

    app.logger.setLevel(app.config['LOG_LEVEL'])
    logging.getLogger('relayfix').setLevel(app.config['LOG_LEVEL'])

    # Database
    db_engine = _engine_for(app.config['DATABASE_URL'], app.config['DB_TIMEOUT_SECONDS'])
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .services.token_codec import HandoffTokenCodec
    from .services.notifications import NotificationDispatcher, DatabaseNotificationSink
    app.extensions['handoff_codec'] = HandoffTokenCodec(app.config['HANDOFF_SECRET_KEY'], app.config['HANDOFF_KEY_SALT'])
    dispatcher = NotificationDispatcher(DatabaseNotificationSink(SessionLocal), maxsize=app.config['NOTIFICATION_QUEUE_SIZE'])
    app.extensions['notifications'] = dispatcher
    if app.config['NOTIFICATION_WORKER']:
        dispatcher.start()
        # deliver what is still queued before the interpreter exits
        atexit.register(dispatcher.stop)

    from .routes.repairs import rpr_bp  # repair requests & staff transitions
    from .routes.handoffs import handoff_bp  # relay point hand-offs
    app.register_blueprint(rpr_bp, url_prefix='/repairs')
    app.register_blueprint(handoff_bp, url_prefix='/handoffs')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    from .errors import PersistenceError

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                }
            }
            return payload, e.code
        if isinstance(e, PersistenceError):
            app.logger.error('Store failure: %s', e)
            return {
                'error': {
                    'status': 503,
                    'title': 'Service Unavailable',
                    'detail': 'Storage temporarily unavailable, retry the operation'
                }
            }, 503
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error'
            }
        }, 500

    return app


def get_db():
    return SessionLocal()


def get_codec():
    return current_app.extensions['handoff_codec']


def get_dispatcher():
    return current_app.extensions['notifications']
