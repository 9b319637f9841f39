from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from motopos.core.config import settings


class Base(DeclarativeBase):
    pass


is_sqlite = settings.database_url.startswith("sqlite")
is_memory = is_sqlite and (settings.database_url in {"sqlite://", "sqlite:///:memory:"})

connect_args = (
    {"check_same_thread": False}
    if is_sqlite
    else {"sslmode": settings.database_sslmode}
)

engine_options = {
    "connect_args": connect_args,
    "echo": settings.sql_echo,
    "pool_pre_ping": not is_sqlite,
    "pool_recycle": 1800 if not is_sqlite else -1,
}
if is_memory:
    # one shared connection, otherwise every session sees an empty database
    engine_options["poolclass"] = StaticPool

engine = create_engine(settings.database_url, **engine_options)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
