from datetime import datetime, timezone

import pytest

from landslide_ingest.risk import RiskScoringConfig, risk_label, score_risk
from landslide_ingest.schemas import NormalizedRecord, RiskLabel


def _record(**metrics) -> NormalizedRecord:
    return NormalizedRecord(
        device_id="device_1",
        event_time=datetime(2025, 7, 1, tzinfo=timezone.utc),
        **metrics,
    )


def test_all_contributions_sum_to_high_not_critical(risk_config) -> None:
    record = _record(
        acceleration_total=1800,
        gyroscope_total=900,
        vibration=4.0,
        humidity=95,
        risk_level=0.1,
    )

    assessment = score_risk(record, risk_config)

    assert assessment.calculated_risk == pytest.approx(0.8)
    assert assessment.risk_label == RiskLabel.HIGH


def test_device_risk_is_a_lower_bound(risk_config) -> None:
    assessment = score_risk(_record(acceleration_total=1600, risk_level=0.7), risk_config)

    assert assessment.calculated_risk == pytest.approx(0.7)
    assert assessment.risk_label == RiskLabel.HIGH


def test_result_is_capped_at_one(risk_config) -> None:
    # Прошивка шлёт уровень 0..4
    assessment = score_risk(_record(risk_level=3), risk_config)

    assert assessment.calculated_risk == 1.0
    assert assessment.risk_label == RiskLabel.CRITICAL


def test_no_metrics_means_low_risk(risk_config) -> None:
    assessment = score_risk(_record(), risk_config)

    assert assessment.calculated_risk == 0.0
    assert assessment.risk_label == RiskLabel.LOW


def test_risk_is_independent_of_anomaly_thresholds(risk_config) -> None:
    # Влажность 92: не аномалия (max 95), но вклад в риск есть
    assessment = score_risk(_record(humidity=92, vibration=4), risk_config)

    assert assessment.calculated_risk == pytest.approx(0.3)
    assert assessment.risk_label == RiskLabel.LOW


def test_custom_weights() -> None:
    config = RiskScoringConfig(acceleration_weight=0.65)

    assessment = score_risk(_record(acceleration_total=2000), config)

    assert assessment.calculated_risk == pytest.approx(0.65)
    assert assessment.risk_label == RiskLabel.HIGH


@pytest.mark.parametrize(
    "value, label",
    [
        (0.0, RiskLabel.LOW),
        (0.3, RiskLabel.LOW),
        (0.31, RiskLabel.MEDIUM),
        (0.6, RiskLabel.MEDIUM),
        (0.61, RiskLabel.HIGH),
        (0.8, RiskLabel.HIGH),
        (0.81, RiskLabel.CRITICAL),
    ],
)
def test_label_cut_points_are_strict(value, label) -> None:
    assert risk_label(value) == label
