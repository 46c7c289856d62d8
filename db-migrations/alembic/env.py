from logging.config import fileConfig
from alembic import context
import logging
from dotenv import load_dotenv
import os
import sys
from sqlalchemy import create_engine
from sqlalchemy import pool

default_dotenv_path = '../.env'
dotenv_path = default_dotenv_path
database_url = None

# Use Alembic's x-arguments
for x_arg in context.get_x_argument(as_dictionary=False):
    if x_arg.lower().strip().startswith('database-url='):
        database_url = x_arg.split('=', 1)[1].strip()
    elif x_arg.lower().strip().startswith('dotenv-path='):
        dotenv_path = x_arg.split('=', 1)[1].strip()
    else:
        print(f"ERROR: Unrecognized Alembic -x argument: '{x_arg}' Valid arguments are: database-url, dotenv-path", file=sys.stderr)
        sys.exit(1)

load_dotenv(dotenv_path=dotenv_path)
database_url = database_url or os.getenv("DATABASE_URL")
if not database_url:
    print("ERROR: DATABASE_URL is not set; pass -x database-url=... or set it in the .env file", file=sys.stderr)
    sys.exit(1)

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Migrations are written by hand; autogenerate is not used
target_metadata = None

log = logging.getLogger('alembic.env')


def _redacted(url: str) -> str:
    if '@' not in url or '://' not in url:
        return url
    scheme, rest = url.split('://', 1)
    return f"{scheme}://***@{rest.split('@', 1)[1]}"


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL to the script output."""
    log.info(f"Offline migrations against {_redacted(database_url)}")
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection."""
    log.info(f"Online migrations against {_redacted(database_url)}")
    connectable = create_engine(database_url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        try:
            with context.begin_transaction():
                context.run_migrations()
            log.info("Migrations completed successfully - transaction committed")
        except Exception as e:
            log.error(f"Migration failed with error: {e}", exc_info=True)
            raise


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
