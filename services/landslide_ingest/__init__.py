"""
landslide_ingest: микросервис приёма телеметрии датчиков мониторинга оползней.
Включает webhook для IoT-платформы, нормализацию, детекцию аномалий,
оценку риска, модели, базу данных, миграции и конфигурацию.
"""

from .config import settings
from .database import engine, Base, get_db, ensure_schema

__all__ = ["settings", "engine", "Base", "get_db", "ensure_schema"]
