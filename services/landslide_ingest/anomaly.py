# services/landslide_ingest/anomaly.py

from typing import List

from pydantic import BaseModel, ConfigDict

from .schemas import AnomalyEvent, AnomalyType, NormalizedRecord


class AnomalyThresholds(BaseModel):
    """
    Пороги срабатывания детектора аномалий.
    Передаются явно при каждом вызове (без глобального изменяемого состояния).
    """
    model_config = ConfigDict(frozen=True)

    temperature_min: float = -10.0
    temperature_max: float = 45.0
    humidity_min: float = 10.0
    humidity_max: float = 95.0
    acceleration_total_max: float = 1500.0
    gyroscope_total_max: float = 800.0
    risk_level_critical: float = 0.8
    vibration_max: float = 5.0


def _outside(value: float, low: float, high: float) -> bool:
    return value < low or value > high


def detect_anomalies(record: NormalizedRecord, thresholds: AnomalyThresholds) -> List[AnomalyEvent]:
    """
    Проверяет запись по правилам в фиксированном порядке:
    температура, влажность, ускорение, гироскоп, риск устройства, вибрация.
    Отсутствующие поля не проверяются. Чистая функция.
    """
    checks = (
        (
            AnomalyType.TEMPERATURE_EXTREME,
            record.temperature,
            lambda v: _outside(v, thresholds.temperature_min, thresholds.temperature_max),
        ),
        (
            AnomalyType.HUMIDITY_SENSOR_ERROR,
            record.humidity,
            lambda v: _outside(v, thresholds.humidity_min, thresholds.humidity_max),
        ),
        (
            AnomalyType.ACCELERATION_HIGH,
            record.acceleration_total,
            lambda v: v > thresholds.acceleration_total_max,
        ),
        (
            AnomalyType.GYROSCOPE_HIGH,
            record.gyroscope_total,
            lambda v: v > thresholds.gyroscope_total_max,
        ),
        (
            AnomalyType.RISK_CRITICAL,
            record.risk_level,
            lambda v: v > thresholds.risk_level_critical,
        ),
        (
            AnomalyType.VIBRATION_HIGH,
            record.vibration,
            lambda v: v > thresholds.vibration_max,
        ),
    )

    anomalies: List[AnomalyEvent] = []
    for anomaly_type, value, triggered in checks:
        if value is None:
            continue
        if triggered(value):
            anomalies.append(
                AnomalyEvent(device_id=record.device_id, anomaly_type=anomaly_type, value=value)
            )
    return anomalies
