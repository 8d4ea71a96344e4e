# services/landslide_ingest/config.py

import os
from pydantic_settings import BaseSettings

from .anomaly import AnomalyThresholds
from .risk import RiskScoringConfig


class Settings(BaseSettings):
    """
    Конфигурация landslide_ingest: приём телеметрии датчиков оползней
    (webhook облачной IoT-платформы), нормализация, аномалии и риск.
    """

    # --- Общая информация ---
    SERVICE_NAME: str = "Landslide Ingest Service"
    VERSION: str = "1.0.0"
    ENV: str = os.getenv("ENV", "dev")

    # --- Подключение к базе ---
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://postgres:postgres@db:5432/landslide"
    )

    # Таймаут на каждый вызов хранилища (маппинги устройств, запись показаний)
    STORE_TIMEOUT_SEC: float = 5.0

    # --- Подсказки для новых устройств ---
    DEFAULT_DEVICE_NAME: str = "龙门滑坡监测站"
    DEFAULT_LOCATION_NAME: str = "防城港华石镇龙门村"

    # Устройство считается offline, если данных не было дольше этого времени
    DEVICE_OFFLINE_AFTER_SEC: int = 300

    # --- Пороги детектора аномалий ---
    TEMPERATURE_MIN: float = -10.0
    TEMPERATURE_MAX: float = 45.0
    HUMIDITY_MIN: float = 10.0
    HUMIDITY_MAX: float = 95.0
    ACCELERATION_TOTAL_MAX: float = 1500.0   # mg
    GYROSCOPE_TOTAL_MAX: float = 800.0       # °/s
    RISK_LEVEL_CRITICAL: float = 0.8
    VIBRATION_MAX: float = 5.0

    # --- Вторичные границы и веса для расчёта риска ---
    # Намеренно отдельный набор, не связанный с порогами аномалий
    RISK_ACCELERATION_BOUND: float = 1500.0
    RISK_GYROSCOPE_BOUND: float = 800.0
    RISK_VIBRATION_BOUND: float = 3.0
    RISK_HUMIDITY_BOUND: float = 90.0

    RISK_ACCELERATION_WEIGHT: float = 0.3
    RISK_GYROSCOPE_WEIGHT: float = 0.2
    RISK_VIBRATION_WEIGHT: float = 0.2
    RISK_HUMIDITY_WEIGHT: float = 0.1

    # --- Логирование ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def anomaly_thresholds(self) -> AnomalyThresholds:
        """Собирает неизменяемый набор порогов для детектора аномалий."""
        return AnomalyThresholds(
            temperature_min=self.TEMPERATURE_MIN,
            temperature_max=self.TEMPERATURE_MAX,
            humidity_min=self.HUMIDITY_MIN,
            humidity_max=self.HUMIDITY_MAX,
            acceleration_total_max=self.ACCELERATION_TOTAL_MAX,
            gyroscope_total_max=self.GYROSCOPE_TOTAL_MAX,
            risk_level_critical=self.RISK_LEVEL_CRITICAL,
            vibration_max=self.VIBRATION_MAX,
        )

    def risk_scoring(self) -> RiskScoringConfig:
        """Собирает неизменяемые границы и веса для оценки риска."""
        return RiskScoringConfig(
            acceleration_bound=self.RISK_ACCELERATION_BOUND,
            gyroscope_bound=self.RISK_GYROSCOPE_BOUND,
            vibration_bound=self.RISK_VIBRATION_BOUND,
            humidity_bound=self.RISK_HUMIDITY_BOUND,
            acceleration_weight=self.RISK_ACCELERATION_WEIGHT,
            gyroscope_weight=self.RISK_GYROSCOPE_WEIGHT,
            vibration_weight=self.RISK_VIBRATION_WEIGHT,
            humidity_weight=self.RISK_HUMIDITY_WEIGHT,
        )


# Глобальный объект конфигурации
settings = Settings()
