# services/landslide_ingest/models.py

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base, LANDSLIDE_SCHEMA


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeviceMapping(Base):
    """
    Соответствие длинного идентификатора устройства на IoT-платформе
    (например, 6815a14f9314d118511807c6_rk2206) короткому внутреннему id (device_1).
    Создаётся один раз при первом появлении устройства и больше не меняется.
    """
    __tablename__ = "device_mappings"
    __table_args__ = {"schema": LANDSLIDE_SCHEMA}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Уникальность обоих идентификаторов обеспечивает сама БД
    external_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    internal_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    location_name: Mapped[str] = mapped_column(String(200), nullable=False)

    device_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    product_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )


class SensorReading(Base):
    """
    Нормализованное показание одного сервиса устройства
    вместе с рассчитанным риском. Ключ идемпотентности: (device_id, event_time).
    """
    __tablename__ = "sensor_readings"
    __table_args__ = (
        UniqueConstraint("device_id", "event_time", name="uq_sensor_readings_device_time"),
        {"schema": LANDSLIDE_SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    device_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    event_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    service_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    product_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # --- Скалярные метрики ---
    temperature: Mapped[float | None] = mapped_column(Float, nullable=True)
    humidity: Mapped[float | None] = mapped_column(Float, nullable=True)
    illumination: Mapped[float | None] = mapped_column(Float, nullable=True)
    mpu_temperature: Mapped[float | None] = mapped_column(Float, nullable=True)
    vibration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    risk_level: Mapped[float | None] = mapped_column(Float, nullable=True)
    alarm_active: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    uptime: Mapped[float | None] = mapped_column(Float, nullable=True)
    angle_x: Mapped[float | None] = mapped_column(Float, nullable=True)
    angle_y: Mapped[float | None] = mapped_column(Float, nullable=True)
    angle_z: Mapped[float | None] = mapped_column(Float, nullable=True)
    ultrasonic_distance: Mapped[float | None] = mapped_column(Float, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    # --- Акселерометр / гироскоп ---
    acceleration_x: Mapped[int | None] = mapped_column(Integer, nullable=True)
    acceleration_y: Mapped[int | None] = mapped_column(Integer, nullable=True)
    acceleration_z: Mapped[int | None] = mapped_column(Integer, nullable=True)
    acceleration_total: Mapped[float | None] = mapped_column(Float, nullable=True)
    gyroscope_x: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gyroscope_y: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gyroscope_z: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gyroscope_total: Mapped[float | None] = mapped_column(Float, nullable=True)

    # --- GPS-деформация ---
    deformation_distance_3d: Mapped[float | None] = mapped_column(Float, nullable=True)
    deformation_horizontal: Mapped[float | None] = mapped_column(Float, nullable=True)
    deformation_vertical: Mapped[float | None] = mapped_column(Float, nullable=True)
    deformation_velocity: Mapped[float | None] = mapped_column(Float, nullable=True)
    deformation_risk_level: Mapped[float | None] = mapped_column(Float, nullable=True)
    deformation_type: Mapped[int | None] = mapped_column(Integer, nullable=True)
    deformation_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    baseline_established: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # --- Серверная оценка риска ---
    calculated_risk: Mapped[float] = mapped_column(Float, nullable=False)
    risk_label: Mapped[str] = mapped_column(String(16), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
