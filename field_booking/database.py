from sqlalchemy import event
from sqlmodel import SQLModel, create_engine, Session

from . import config

DATABASE_URL = config.DATABASE_URL
if not DATABASE_URL or DATABASE_URL == "":
    raise ValueError("DATABASE URL not set")

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    DATABASE_URL, echo=config.SQL_ECHO, pool_pre_ping=True, connect_args=connect_args
)


if engine.dialect.name == "sqlite":

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def init_db():
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
