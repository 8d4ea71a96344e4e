# services/landslide_ingest/main.py

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from .utils.logging import setup_logging
from .database import SessionLocal, engine, ensure_schema
from .models import Base
from .config import settings
from .gateway import IngestionGateway
from .identity import DeviceIdentityResolver
from .storage import DeviceMappingStore, SensorReadingSink
from .routers import devices as devices_router
from .routers import iot as iot_router


# --- Логирование ---
logger = setup_logging()

# --- Приложение FastAPI ---
app = FastAPI(
    title=settings.SERVICE_NAME,
    version=settings.VERSION,
    description=(
        "Landslide Ingest Service: приём телеметрии датчиков оползней от IoT-платформы, "
        "нормализация, детекция аномалий и оценка риска."
    ),
)

# --- Метрики Prometheus ---
Instrumentator().instrument(app).expose(app, include_in_schema=False)


def build_gateway() -> IngestionGateway:
    """Собирает конвейер из хранилищ и порогов текущей конфигурации."""
    resolver = DeviceIdentityResolver(
        DeviceMappingStore(SessionLocal),
        timeout=settings.STORE_TIMEOUT_SEC,
    )
    return IngestionGateway(
        resolver=resolver,
        sink=SensorReadingSink(SessionLocal),
        thresholds=settings.anomaly_thresholds(),
        risk_config=settings.risk_scoring(),
        store_timeout=settings.STORE_TIMEOUT_SEC,
        default_device_name=settings.DEFAULT_DEVICE_NAME,
        default_location_name=settings.DEFAULT_LOCATION_NAME,
    )


# --- События приложения ---
@app.on_event("startup")
async def startup_event():
    """
    Создаёт схему и таблицы, собирает конвейер
    и прогревает кэш маппингов устройств из БД.
    """
    ensure_schema()
    Base.metadata.create_all(bind=engine)

    gateway = build_gateway()
    await gateway.resolver.warm()
    app.state.gateway = gateway

    logger.info("🏔️ landslide_ingest started and schema ensured.")


# --- Health & readiness ---
@app.get("/health", tags=["system"])
async def health():
    return {"status": "ok", "service": "landslide_ingest"}


@app.get("/ready", tags=["system"])
async def ready():
    return {"status": "ready" if hasattr(app.state, "gateway") else "starting"}


@app.get("/info", tags=["system"])
async def info():
    return {
        "name": settings.SERVICE_NAME,
        "version": settings.VERSION,
        "description": "Landslide monitoring IoT data ingestion service",
        "endpoints": {
            "health": "GET /health",
            "info": "GET /info",
            "iot_data": "POST /iot/huawei",
            "device_list": "GET /devices/list",
            "device_mappings": "GET /devices/mappings",
            "device_info": "GET /devices/info/{internal_id}",
        },
    }


@app.get("/", include_in_schema=False)
async def root():
    return {"message": "Landslide Ingest Service is operational"}


# --- Маршруты доменной логики ---
app.include_router(iot_router.router)
app.include_router(devices_router.router)
