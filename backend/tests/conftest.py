import os, sys, pytest
# Ensure backend directory is on path so 'relayfix' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from relayfix import create_app, get_db
from relayfix.models.base import Base
from relayfix.services.statuses import ensure_repair_statuses
# Import all model modules to ensure tables are registered before create_all
import relayfix.models.repair_status  # noqa: F401
import relayfix.models.repair_request  # noqa: F401
import relayfix.models.handoff_code  # noqa: F401
import relayfix.models.notification  # noqa: F401
import relayfix.models.audit  # noqa: F401

TEST_SECRET = 'test-handoff-secret'

@pytest.fixture(scope='session', autouse=True)
def app_instance():
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': 'test-jwt-secret-key-with-enough-length',
        'HANDOFF_SECRET_KEY': TEST_SECRET,
        # Tests drain the notification queue explicitly
        'NOTIFICATION_WORKER': False,
    })
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        session = get_db()
        Base.metadata.create_all(session.get_bind())
        ensure_repair_statuses(session)
        session.commit()
    yield app

@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance

@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()

@pytest.fixture()
def db_session(app_context):
    session = get_db()
    yield session
    session.rollback()

@pytest.fixture()
def codec(app_instance):
    return app_instance.extensions['handoff_codec']

@pytest.fixture()
def dispatcher(app_instance):
    d = app_instance.extensions['notifications']
    d.drain()
    return d

@pytest.fixture()
def file_sessions(tmp_path, codec):
    """File-backed SQLite with one issued drop-off code; yields (session factory, relay id, IssuedCode).

    Each session gets its own connection, so concurrent redeemers really race.
    """
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from relayfix.services.code_issuer import issue_handoff_code
    from tests.test_utils_seed import HANDOFF_T0, create_repair, new_id
    engine = create_engine(f"sqlite:///{tmp_path / 'handoff.db'}", connect_args={'check_same_thread': False, 'timeout': 10})
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    setup = factory()
    ensure_repair_statuses(setup)
    setup.commit()
    relay = new_id('rp')
    repair = create_repair(drop_off_relay_id=relay, session=setup)
    issued = issue_handoff_code(repair.id, relay, repair.client_id, now=HANDOFF_T0, codec=codec, session=setup)
    setup.close()
    yield factory, relay, issued
    engine.dispose()
