# services/landslide_ingest/gateway.py

import asyncio
import json
import time
from typing import Any, Mapping, Optional

from loguru import logger
from pydantic import ValidationError

from .anomaly import AnomalyThresholds, detect_anomalies
from .errors import EnvelopeValidationError, PersistenceFailure
from .identity import DeviceIdentityResolver, build_hints
from .risk import RiskScoringConfig, score_risk
from .schemas import Envelope, IngestAck, ServiceOutcome, ServiceReport
from .storage import SensorReadingSink, reading_columns, run_with_timeout
from .telemetry import normalize_properties
from .timestamps import format_instant, normalize_event_time, utcnow


def validate_envelope(payload: Any) -> Envelope:
    """
    Проверяет форму пакета до запуска любых компонентов конвейера.
    Различает "нет notify_data" и "нет services".
    """
    if not isinstance(payload, Mapping) or not isinstance(payload.get("notify_data"), Mapping):
        raise EnvelopeValidationError("missing_notify_data", "notify_data field is missing")

    body = payload["notify_data"].get("body")
    services = body.get("services") if isinstance(body, Mapping) else None
    if not isinstance(services, list) or not services:
        raise EnvelopeValidationError("missing_services", "notify_data.body.services is missing or empty")

    try:
        return Envelope.model_validate(payload)
    except ValidationError as e:
        # header неверного типа: это тоже ошибка формы пакета
        raise EnvelopeValidationError("invalid_envelope", f"malformed envelope: {e.error_count()} error(s)") from e


class IngestionGateway:
    """
    Оркестратор: для каждого сервиса пакета последовательно
    устройство → время → нормализация → аномалии + риск → запись.

    Ошибка одного сервиса изолирована: логируется, считается неудачей,
    обработка продолжается со следующего сервиса.
    """

    def __init__(
        self,
        resolver: DeviceIdentityResolver,
        sink: SensorReadingSink,
        thresholds: AnomalyThresholds,
        risk_config: RiskScoringConfig,
        store_timeout: float = 5.0,
        default_device_name: str = "",
        default_location_name: str = "",
    ):
        self.resolver = resolver
        self.sink = sink
        self.thresholds = thresholds
        self.risk_config = risk_config
        self.store_timeout = store_timeout
        self.default_device_name = default_device_name
        self.default_location_name = default_location_name

    async def process(self, payload: Any) -> IngestAck:
        started = time.perf_counter()

        envelope = validate_envelope(payload)
        header = envelope.notify_data.header
        services = envelope.notify_data.body.services

        logger.info(
            f"📨 IoT push received: device={header.device_id}, product={header.product_id}, "
            f"services={len(services)}"
        )

        # Строго последовательно: порядок записи внутри пакета сохраняется
        results = []
        for raw_service in services:
            results.append(await self._process_service(raw_service, envelope))

        processed = sum(1 for outcome in results if outcome.success)
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        logger.info(
            f"✅ Processed {processed}/{len(services)} services for device={header.device_id} "
            f"in {elapsed_ms}ms"
        )

        return IngestAck(
            timestamp=format_instant(utcnow()),
            device_id=header.device_id,
            processed_services=processed,
            total_services=len(services),
            processing_time_ms=elapsed_ms,
            results=results,
        )

    async def _process_service(self, raw_service: Any, envelope: Envelope) -> ServiceOutcome:
        """Граница изоляции: любое исключение превращается в неуспешный ServiceOutcome."""
        service_id: Optional[str] = None
        try:
            report = ServiceReport.model_validate(raw_service)
            service_id = report.service_id
            return await self._handle_report(report, envelope)
        except Exception as e:
            if isinstance(e, PersistenceFailure):
                # Строка целиком в логе: по ней запись повторяется вручную
                logger.bind(replay_row=e.row).error(
                    f"❌ Persistence failed for device={envelope.notify_data.header.device_id}, "
                    f"service={service_id}, event_time={self._raw_event_time(raw_service, envelope)}: {e} "
                    f"row={json.dumps(e.row, default=str, ensure_ascii=False)}"
                )
            else:
                logger.exception(f"❌ Failed to process service {service_id}: {e}")
            return ServiceOutcome(service_id=service_id, success=False, error=f"{type(e).__name__}: {e}")

    async def _handle_report(self, report: ServiceReport, envelope: Envelope) -> ServiceOutcome:
        header = envelope.notify_data.header
        external_id = header.device_id
        if not external_id:
            raise ValueError("notify_data.header.device_id is missing")

        hints = build_hints(
            external_id,
            report.properties,
            header.product_id,
            self.default_device_name,
            self.default_location_name,
        )
        internal_id = await self.resolver.resolve(external_id, hints)

        event_time = normalize_event_time(report.event_time or envelope.event_time)

        record = normalize_properties(
            report.properties,
            device_id=internal_id,
            event_time=event_time,
            service_id=report.service_id,
            product_id=header.product_id,
        )

        anomalies = detect_anomalies(record, self.thresholds)
        assessment = score_risk(record, self.risk_config)

        for anomaly in anomalies:
            logger.warning(
                f"🚨 Anomaly {anomaly.anomaly_type.value} on {internal_id}: value={anomaly.value}"
            )

        try:
            inserted = await run_with_timeout(
                self.sink.insert, record, assessment, timeout=self.store_timeout
            )
        except asyncio.TimeoutError as e:
            raise PersistenceFailure(
                f"write timed out after {self.store_timeout}s", row=reading_columns(record, assessment)
            ) from e
        except PersistenceFailure as e:
            if e.row is None:
                e.row = reading_columns(record, assessment)
            raise

        logger.info(
            f"💾 Stored {report.service_id} for {internal_id} at {format_instant(event_time)} "
            f"(risk={assessment.calculated_risk:.2f} {assessment.risk_label.value}, "
            f"anomalies={len(anomalies)})"
        )

        return ServiceOutcome(
            service_id=report.service_id,
            success=True,
            internal_device_id=internal_id,
            event_time=format_instant(event_time),
            anomalies=anomalies,
            risk=assessment,
            duplicate=not inserted,
        )

    @staticmethod
    def _raw_event_time(raw_service: Any, envelope: Envelope) -> Any:
        if isinstance(raw_service, Mapping) and raw_service.get("event_time"):
            return raw_service.get("event_time")
        return envelope.event_time
