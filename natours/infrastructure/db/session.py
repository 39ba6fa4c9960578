from collections.abc import Iterator

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from natours.infrastructure.logging import get_logger

logger = get_logger(__name__)

IN_MEMORY_SQLITE_URLS = {"sqlite://", "sqlite:///:memory:"}


class Base(DeclarativeBase):
    pass


class Database:
    """Process-wide database handle.

    Built once at startup, reached by request handlers through ``app.state``,
    and closed exactly once during shutdown.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self.engine = create_engine(url, future=True, **self._engine_options(url))
        self.session_factory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False)
        self._closed = False

    @staticmethod
    def _engine_options(url: str) -> dict:
        if not url.startswith("sqlite"):
            return {"pool_pre_ping": True}
        options: dict = {"connect_args": {"check_same_thread": False}}
        if url in IN_MEMORY_SQLITE_URLS:
            options["poolclass"] = StaticPool
        return options

    @property
    def closed(self) -> bool:
        return self._closed

    def connect(self) -> None:
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.info("db_connection_successful", message="DB connection successful!")

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def session(self) -> Session:
        return self.session_factory()

    def close(self) -> None:
        if self._closed:
            return
        self.engine.dispose()
        self._closed = True
        logger.info("db_connection_closed")


def get_db(request: Request) -> Iterator[Session]:
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    finally:
        db.close()
