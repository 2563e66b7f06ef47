from __future__ import annotations
from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context
from dotenv import load_dotenv
import os, sys

# Allow importing relayfix models when alembic runs from backend/
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from relayfix.models.base import Base  # noqa: E402
import relayfix.models.repair_status  # noqa: F401,E402
import relayfix.models.repair_request  # noqa: F401,E402
import relayfix.models.handoff_code  # noqa: F401,E402
import relayfix.models.notification  # noqa: F401,E402
import relayfix.models.audit  # noqa: F401,E402

load_dotenv()

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Same source and default as create_app
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
config.set_main_option('sqlalchemy.url', DATABASE_URL)

target_metadata = Base.metadata
# SQLite cannot ALTER most constraints in place
render_as_batch = DATABASE_URL.startswith('sqlite')


def run_migrations_offline():
    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=render_as_batch,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix='sqlalchemy.',
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=render_as_batch,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
