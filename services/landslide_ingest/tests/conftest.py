"""
Фикстуры для тестов landslide_ingest.

Даёт:
- SQLite-базу (в памяти) со всеми таблицами
- хранилище маппингов, запись показаний и собранный конвейер
- тестовый клиент FastAPI с подменой зависимостей
- примеры пакетов IoT-платформы
"""

import os
import sys
from pathlib import Path

# Отдельная БД для тестов; выставляем до импорта конфигурации сервиса
os.environ.setdefault("DATABASE_URL", "sqlite://")

SERVICES_DIR = Path(__file__).resolve().parents[2]
if str(SERVICES_DIR) not in sys.path:
    sys.path.insert(0, str(SERVICES_DIR))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from landslide_ingest.anomaly import AnomalyThresholds
from landslide_ingest.database import Base, LANDSLIDE_SCHEMA, get_db
from landslide_ingest.gateway import IngestionGateway
from landslide_ingest.identity import DeviceIdentityResolver
from landslide_ingest.main import app
from landslide_ingest.risk import RiskScoringConfig
from landslide_ingest.routers.iot import get_gateway
from landslide_ingest.storage import DeviceMappingStore, SensorReadingSink

EXTERNAL_DEVICE_ID = "6815a14f9314d118511807c6_rk2206"


def make_engine(url: str = "sqlite://"):
    """SQLite без схем: landslide.* транслируется в таблицы основной БД."""
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url == "sqlite://":
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs).execution_options(
        schema_translate_map={LANDSLIDE_SCHEMA: None}
    )
    Base.metadata.create_all(bind=engine)
    return engine


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def session_factory():
    """Свежая БД в памяти на каждый тест."""
    engine = make_engine()
    yield make_session_factory(engine)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def mapping_store(session_factory):
    return DeviceMappingStore(session_factory)


@pytest.fixture
def sink(session_factory):
    return SensorReadingSink(session_factory)


@pytest.fixture
def thresholds():
    return AnomalyThresholds(
        temperature_min=-10,
        temperature_max=45,
        humidity_min=10,
        humidity_max=95,
        acceleration_total_max=1500,
        gyroscope_total_max=800,
        risk_level_critical=0.8,
        vibration_max=5,
    )


@pytest.fixture
def risk_config():
    return RiskScoringConfig()


@pytest.fixture
def gateway(mapping_store, sink, thresholds, risk_config):
    return IngestionGateway(
        resolver=DeviceIdentityResolver(mapping_store, timeout=2.0),
        sink=sink,
        thresholds=thresholds,
        risk_config=risk_config,
        store_timeout=2.0,
        default_device_name="龙门滑坡监测站",
        default_location_name="防城港华石镇龙门村",
    )


@pytest.fixture
def client(gateway, session_factory):
    """Тестовый клиент: без startup-событий, зависимости подменены."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_db] = override_get_db

    yield TestClient(app)

    app.dependency_overrides.clear()


# ============================================================
# Test Data Fixtures
# ============================================================

def make_envelope(services, device_id=EXTERNAL_DEVICE_ID, event_time="20250701T080000Z"):
    """Пакет в формате push-уведомления IoT-платформы."""
    return {
        "resource": "device.property",
        "event": "report",
        "event_time": event_time,
        "notify_data": {
            "header": {
                "device_id": device_id,
                "product_id": "6815a14f9314d118511807c6",
            },
            "body": {"services": services},
        },
    }


@pytest.fixture
def sensor_properties():
    """Типичный отчёт прошивки датчика."""
    return {
        "temperature": 32.5,
        "humidity": 42.9,
        "illumination": 120.0,
        "acceleration_x": 100,
        "acceleration_y": 200,
        "acceleration_z": 800,
        "gyroscope_x": 10,
        "gyroscope_y": -20,
        "gyroscope_z": 5,
        "mpu_temperature": 31.8,
        "latitude": 21.6847,
        "longitude": 108.3516,
        "vibration": 1,
        "risk_level": 0,
        "alarm_active": False,
        "uptime": 3600,
    }
