# services/landslide_ingest/storage.py

"""
Доступ к БД для конвейера: маппинги устройств и запись показаний.

Методы синхронные; каждый открывает свою короткую сессию.
В асинхронный код они попадают через run_with_timeout.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .errors import PersistenceFailure
from .models import DeviceMapping, SensorReading
from .schemas import DeviceMappingOut, NormalizedRecord, RiskAssessment


class MappingConflict(Exception):
    """Нарушение уникальности при создании маппинга (кто-то успел раньше)."""


async def run_with_timeout(fn: Callable[..., Any], *args: Any, timeout: float, **kwargs: Any) -> Any:
    """Выполняет блокирующий вызов хранилища в пуле потоков с явным таймаутом."""
    return await asyncio.wait_for(asyncio.to_thread(fn, *args, **kwargs), timeout=timeout)


# ---------- Маппинги устройств ----------


class DeviceMappingStore:
    """Хранилище соответствий external_id → internal_id."""

    INTERNAL_ID_PREFIX = "device_"

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def load_all(self) -> List[DeviceMappingOut]:
        with self._session_factory() as db:
            rows = db.scalars(select(DeviceMapping).order_by(DeviceMapping.id)).all()
            return [DeviceMappingOut.model_validate(row) for row in rows]

    def find_by_external_id(self, external_id: str) -> Optional[DeviceMappingOut]:
        with self._session_factory() as db:
            row = db.scalars(
                select(DeviceMapping).where(DeviceMapping.external_id == external_id)
            ).first()
            return DeviceMappingOut.model_validate(row) if row else None

    def next_internal_id(self) -> str:
        with self._session_factory() as db:
            last_id = db.scalar(select(func.max(DeviceMapping.id))) or 0
        return f"{self.INTERNAL_ID_PREFIX}{last_id + 1}"

    def create(
        self,
        external_id: str,
        internal_id: str,
        display_name: str,
        location_name: str,
        device_type: Optional[str] = None,
        product_id: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> DeviceMappingOut:
        """
        Создаёт маппинг. При нарушении уникальности (external_id или internal_id)
        бросает MappingConflict: решение о повторном чтении принимает вызывающий.
        """
        with self._session_factory() as db:
            row = DeviceMapping(
                external_id=external_id,
                internal_id=internal_id,
                display_name=display_name,
                location_name=location_name,
                device_type=device_type,
                product_id=product_id,
                latitude=latitude,
                longitude=longitude,
            )
            db.add(row)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise MappingConflict(str(e.orig)) from e
            db.refresh(row)
            return DeviceMappingOut.model_validate(row)


# ---------- Запись показаний ----------


def reading_columns(record: NormalizedRecord, assessment: RiskAssessment) -> Dict[str, Any]:
    """Колонки строки sensor_readings: нормализованная запись плюс оценка риска."""
    columns: Dict[str, Any] = record.to_row()
    columns["calculated_risk"] = assessment.calculated_risk
    columns["risk_label"] = assessment.risk_label.value
    return columns


class SensorReadingSink:
    """
    Запись нормализованных показаний.
    Повтор с тем же (device_id, event_time) не создаёт дубликат: вставка игнорируется.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _exists(self, db: Session, device_id: str, event_time: datetime) -> bool:
        found = db.scalar(
            select(SensorReading.id).where(
                SensorReading.device_id == device_id,
                SensorReading.event_time == event_time,
            )
        )
        return found is not None

    def insert(self, record: NormalizedRecord, assessment: RiskAssessment) -> bool:
        """
        Возвращает True, если строка вставлена, и False для дубликата.
        Любая другая ошибка БД → PersistenceFailure.
        """
        columns = reading_columns(record, assessment)

        try:
            with self._session_factory() as db:
                db.add(SensorReading(**columns))
                try:
                    db.commit()
                    return True
                except IntegrityError as e:
                    db.rollback()
                    if self._exists(db, record.device_id, record.event_time):
                        logger.info(
                            f"♻️ Duplicate reading ignored: device={record.device_id}, "
                            f"event_time={record.event_time.isoformat()}"
                        )
                        return False
                    raise PersistenceFailure(f"reading rejected by database: {e.orig}", row=columns) from e
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"database unavailable: {e}", row=columns) from e
