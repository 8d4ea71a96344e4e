# services/landslide_ingest/routers/iot.py

import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from loguru import logger

from ..errors import EnvelopeValidationError
from ..gateway import IngestionGateway
from ..schemas import IngestAck, IngestRejection
from ..timestamps import format_instant, utcnow

router = APIRouter(prefix="/iot", tags=["iot"])


def get_gateway(request: Request) -> IngestionGateway:
    """Зависимость FastAPI: оркестратор создаётся при старте приложения."""
    return request.app.state.gateway


def _reject(status_code: int, code: str, message: str, started: float | None = None) -> JSONResponse:
    body = IngestRejection(
        error_code=code,
        message=message,
        timestamp=format_instant(utcnow()),
        processing_time_ms=int((time.perf_counter() - started) * 1000) if started is not None else None,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@router.post(
    "/huawei",
    response_model=IngestAck,
    responses={400: {"model": IngestRejection}, 500: {"model": IngestRejection}},
)
async def receive_push(request: Request, gateway: IngestionGateway = Depends(get_gateway)):
    """
    Приём push-уведомления IoT-платформы с телеметрией устройства.

    Платформе всегда отвечаем 200, если сам пакет корректен,
    даже если часть сервисов не удалось обработать.
    """
    started = time.perf_counter()

    try:
        payload = await request.json()
    except ValueError:
        # JSONDecodeError, UnicodeDecodeError и слишком длинные целые
        logger.warning("⚠️ IoT push rejected: body is not valid JSON")
        return _reject(400, "invalid_json", "request body is not valid JSON")

    try:
        return await gateway.process(payload)
    except EnvelopeValidationError as e:
        logger.warning(f"⚠️ IoT push rejected: {e.code} ({e.message})")
        return _reject(400, e.code, e.message)
    except Exception as e:
        logger.exception(f"❌ Unexpected error while processing IoT push: {e}")
        return _reject(500, "internal_error", str(e), started)
