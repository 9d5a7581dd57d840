import logging

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_COMPETENCES = ("ticket sales", "lotteries", "roller coaster operation")

# Connection execution option marking a write unit of work (see begin_write).
WRITE_TRANSACTION = "hireflow_write"


def _normalize_database_url(url: str) -> str:
    # Allow simpler `.env` values like `postgres://...` and upgrade to the dialect name.
    return url.replace("postgres://", "postgresql://", 1) if url.startswith("postgres://") else url


def build_engine(database_url: str) -> Engine:
    db_url = _normalize_database_url((database_url or "").strip())
    engine_kwargs = {"pool_pre_ping": True}
    if db_url.startswith("sqlite"):
        # Needed for SQLite when used with FastAPI/uvicorn (multiple threads).
        # Also set a busy timeout to reduce "database is locked" errors under concurrent requests.
        engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}

    engine = create_engine(db_url, **engine_kwargs)

    if db_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):  # noqa: ANN001
            # Let SQLAlchemy drive BEGIN itself (see _begin).
            dbapi_connection.isolation_level = None
            try:
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA journal_mode=WAL;")
                cursor.execute("PRAGMA foreign_keys=ON;")
                cursor.execute("PRAGMA busy_timeout=30000;")
                cursor.close()
            except Exception as e:
                logger.warning("Failed to set SQLite pragmas: %s", e)

        @event.listens_for(engine, "begin")
        def _begin(conn):  # noqa: ANN001
            # Writers take the lock up front and queue on busy_timeout instead of
            # failing on a stale WAL snapshot. Reads stay deferred and never block writers.
            if conn.get_execution_options().get(WRITE_TRANSACTION):
                conn.exec_driver_sql("BEGIN IMMEDIATE")
            else:
                conn.exec_driver_sql("BEGIN")

    return engine


def begin_write(db: Session) -> None:
    """
    Start the session's next transaction as a write. Call before the first
    statement of a unit of work that reads and then writes.
    """
    if not db.in_transaction():
        db.connection(execution_options={WRITE_TRANSACTION: True})


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


def seed_competences(db: Session) -> int:
    from .models.competence import Competence

    begin_write(db)
    if db.execute(select(Competence.competence_id).limit(1)).first():
        return 0
    db.add_all([Competence(name=name) for name in DEFAULT_COMPETENCES])
    db.commit()
    logger.info("Seeded %d default competences", len(DEFAULT_COMPETENCES))
    return len(DEFAULT_COMPETENCES)


def init_db(engine: Engine) -> None:
    # Import models so they register with SQLAlchemy metadata before create_all.
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)

    with build_session_factory(engine)() as db:
        seed_competences(db)
