# services/landslide_ingest/routers/devices.py

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..models import DeviceMapping, SensorReading
from ..schemas import DeviceMappingList, DeviceMappingOut, DeviceStatusList, DeviceStatusOut
from ..timestamps import utcnow

router = APIRouter(prefix="/devices", tags=["devices"])


def device_status(last_data_time: Optional[datetime], now: datetime, offline_after_sec: int) -> str:
    """online, если последние данные пришли не позже offline_after_sec назад."""
    if last_data_time is None:
        return "offline"
    return "offline" if (now - last_data_time).total_seconds() > offline_after_sec else "online"


@router.get("/list", response_model=DeviceStatusList)
async def list_devices(db: Session = Depends(get_db)):
    """
    Список устройств со статусом по времени последнего показания
    (max(event_time) по sensor_readings).
    """
    last_seen = dict(
        db.query(SensorReading.device_id, func.max(SensorReading.event_time))
        .group_by(SensorReading.device_id)
        .all()
    )
    now = utcnow()

    items = []
    for obj in db.query(DeviceMapping).order_by(DeviceMapping.id).all():
        last = last_seen.get(obj.internal_id)
        if last is not None and last.tzinfo is None:
            # SQLite не хранит зону
            last = last.replace(tzinfo=timezone.utc)
        items.append(
            DeviceStatusOut(
                **DeviceMappingOut.model_validate(obj).model_dump(),
                last_data_time=last,
                status=device_status(last, now, settings.DEVICE_OFFLINE_AFTER_SEC),
            )
        )
    return DeviceStatusList(items=items, count=len(items))


@router.get("/mappings", response_model=DeviceMappingList)
async def list_mappings(db: Session = Depends(get_db)):
    """
    Все известные соответствия внешних id устройств внутренним.
    Используется дашбордом для подписей и карты.
    """
    items = db.query(DeviceMapping).order_by(DeviceMapping.id).all()
    dto_items = [DeviceMappingOut.model_validate(obj) for obj in items]
    return DeviceMappingList(items=dto_items, count=len(dto_items))


@router.get("/info/{internal_id}", response_model=DeviceMappingOut)
async def device_info(internal_id: str, db: Session = Depends(get_db)):
    """Информация об одном устройстве по короткому id (device_1 и т.п.)."""
    obj = db.query(DeviceMapping).filter(DeviceMapping.internal_id == internal_id).first()
    if obj is None:
        raise HTTPException(status_code=404, detail="device not found")
    return DeviceMappingOut.model_validate(obj)
