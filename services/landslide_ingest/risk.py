# services/landslide_ingest/risk.py

from pydantic import BaseModel, ConfigDict

from .schemas import NormalizedRecord, RiskAssessment, RiskLabel


class RiskScoringConfig(BaseModel):
    """
    Вторичные границы и веса аддитивной модели риска.
    Это отдельный набор, не совпадающий с порогами аномалий.
    """
    model_config = ConfigDict(frozen=True)

    acceleration_bound: float = 1500.0
    gyroscope_bound: float = 800.0
    vibration_bound: float = 3.0
    humidity_bound: float = 90.0

    acceleration_weight: float = 0.3
    gyroscope_weight: float = 0.2
    vibration_weight: float = 0.2
    humidity_weight: float = 0.1


def risk_label(value: float) -> RiskLabel:
    """Пороги строгие: ровно 0.8: это ещё high, а не critical."""
    if value > 0.8:
        return RiskLabel.CRITICAL
    if value > 0.6:
        return RiskLabel.HIGH
    if value > 0.3:
        return RiskLabel.MEDIUM
    return RiskLabel.LOW


def score_risk(record: NormalizedRecord, config: RiskScoringConfig) -> RiskAssessment:
    """
    Аддитивная оценка риска:
      - за каждую метрику выше своей границы добавляется её вес,
      - оценка устройства (risk_level): нижняя граница,
      - результат ограничивается диапазоном [0, 1].
    """
    contributions = (
        (record.acceleration_total, config.acceleration_bound, config.acceleration_weight),
        (record.gyroscope_total, config.gyroscope_bound, config.gyroscope_weight),
        (record.vibration, config.vibration_bound, config.vibration_weight),
        (record.humidity, config.humidity_bound, config.humidity_weight),
    )

    calculated = 0.0
    for value, bound, weight in contributions:
        if value is not None and value > bound:
            calculated += weight

    if record.risk_level is not None:
        calculated = max(calculated, record.risk_level)

    calculated = min(1.0, max(0.0, calculated))
    # 0.3 + 0.2 + 0.2 + 0.1 не должно превращаться в 0.7999999999999999
    calculated = round(calculated, 6)

    return RiskAssessment(calculated_risk=calculated, risk_label=risk_label(calculated))
