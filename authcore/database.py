"""SQLModel database engine and session management."""

import logging

from sqlalchemy import inspect
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from authcore.config import settings

logger = logging.getLogger(__name__)

# SQLite needs check_same_thread=False; PostgreSQL does not
engine_kwargs = {}
connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args["check_same_thread"] = False
    # In-memory databases live inside one connection; share it across threads
    if settings.database_url in ("sqlite://", "sqlite:///:memory:"):
        engine_kwargs["poolclass"] = StaticPool

engine = create_engine(
    settings.database_url,
    echo=False,
    connect_args=connect_args,
    **engine_kwargs,
)


def _run_migrations(bind=None):
    """Add columns introduced after a table was first created."""
    from sqlalchemy import text

    bind = bind if bind is not None else engine
    inspector = inspect(bind)

    if "passkey_credential" not in inspector.get_table_names():
        return

    columns = {col["name"] for col in inspector.get_columns("passkey_credential")}
    if "last_challenge" not in columns:
        logger.info("Migrating: adding passkey_credential.last_challenge")
        with bind.connect() as conn:
            conn.execute(text("ALTER TABLE passkey_credential ADD COLUMN last_challenge VARCHAR"))
            conn.commit()


def create_db_and_tables():
    """Create all tables. Called on startup."""
    import authcore.models  # noqa: F401  (registers tables on the metadata)

    SQLModel.metadata.create_all(engine)
    _run_migrations()


def get_session() -> Session:
    """Dependency that yields a database session."""
    with Session(engine) as session:
        yield session
