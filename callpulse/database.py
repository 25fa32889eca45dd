"""
Database engine + session factory.

Postgres in production, SQLite file for local dev. Sessions keep loaded
attributes after commit so store functions can serialize rows they just wrote.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from callpulse.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


def _engine_for(database_url):
    # SQLAlchemy 2.x rejects the legacy postgres:// scheme
    url = database_url.replace('postgres://', 'postgresql://', 1)

    if not url.startswith('sqlite'):
        return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)

    sqlite_engine = create_engine(url, connect_args={'check_same_thread': False})

    @event.listens_for(sqlite_engine, 'connect')
    def _enable_foreign_keys(dbapi_connection, connection_record):
        # ON DELETE CASCADE / SET NULL are off by default in SQLite
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

    return sqlite_engine


engine = _engine_for(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def get_session():
    """New session on the shared engine. Callers close it."""
    return SessionLocal()
