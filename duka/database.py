# duka/database.py

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from duka.core.config import settings


def build_engine(database_url: str, **kwargs):
    connect_args = {}
    pool_config = {}

    if database_url.startswith("sqlite"):
        # Busy timeout in seconds; SQLite serializes writers on a file lock
        connect_args = {
            "check_same_thread": False,
            "timeout": settings.DB_LOCK_TIMEOUT_MS / 1000,
        }
    else:
        connect_args = {
            "options": (
                f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS} "
                f"-c lock_timeout={settings.DB_LOCK_TIMEOUT_MS}"
            ),
        }
        pool_config = {
            "pool_size": 10,
            "max_overflow": 20,
            "pool_pre_ping": True,
            "pool_recycle": 1800,
        }

    pool_config.update(kwargs)

    engine = create_engine(
        database_url,
        connect_args=connect_args,
        echo=settings.DEBUG,
        **pool_config,
    )

    if database_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
