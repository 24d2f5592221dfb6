# storefront/data/database.py
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from storefront.utils.settings import DATABASE_URL, TRANSACTION_TIMEOUT_MS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    """
    Uchwyt do bazy: engine + fabryka sesji.
    Tworzony jawnie przy starcie aplikacji (init) i zamykany przy stopie (dispose),
    bez globalnych flag polaczenia.
    """

    def __init__(self, url: str | None = None, **engine_kwargs):
        self.url = url or DATABASE_URL
        self.engine = create_engine(self.url, **engine_kwargs)
        self.session_factory = sessionmaker(bind=self.engine)

    def init(self) -> None:
        #import modeli zeby byly w Base.metadata przed create_all
        import storefront.data.models  # noqa: F401

        logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database engine disposed")

    def session(self) -> Session:
        return self.session_factory()

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True


def apply_transaction_timeout(db: Session, timeout_ms: int = TRANSACTION_TIMEOUT_MS) -> None:
    """
    Ogranicza czas transakcji na postgresie, przekroczenie = abort transakcji.
    Inne dialekty (sqlite w testach) nie maja statement_timeout.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
