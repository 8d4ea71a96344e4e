# services/landslide_ingest/database.py

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from .config import settings

# Отдельная схема для данных мониторинга оползней
LANDSLIDE_SCHEMA = "landslide"

# Движок SQLAlchemy
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    future=True,
)

# Фабрика сессий
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Базовый класс моделей SQLAlchemy для landslide_ingest."""
    pass


def ensure_schema(bind=None) -> None:
    """Создаёт схему landslide, если она ещё не существует (только PostgreSQL)."""
    bind = bind or engine
    if bind.dialect.name != "postgresql":
        return
    with bind.begin() as conn:
        conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{LANDSLIDE_SCHEMA}"'))


def get_db():
    """Зависимость FastAPI для получения сессии БД."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
