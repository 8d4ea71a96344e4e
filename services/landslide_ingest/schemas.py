from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ------------------------------------------------------------
#  ВХОДЯЩИЙ ПАКЕТ ОТ IOT-ПЛАТФОРМЫ
#  Имена полей заданы платформой и не переименовываются.
# ------------------------------------------------------------

class ServiceReport(BaseModel):
    """Один сервис устройства и его свойства (открытый набор ключей)."""
    model_config = ConfigDict(extra="allow")

    service_id: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)
    # Тип не проверяется: неразборчивое время заменяется текущим при нормализации
    event_time: Optional[Any] = None


class EnvelopeHeader(BaseModel):
    model_config = ConfigDict(extra="allow")

    device_id: Optional[str] = None
    product_id: Optional[str] = None


class EnvelopeBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    # Элементы проверяются по одному внутри конвейера, чтобы битый сервис
    # не ронял весь пакет
    services: List[Any]


class NotifyData(BaseModel):
    model_config = ConfigDict(extra="allow")

    header: EnvelopeHeader = Field(default_factory=EnvelopeHeader)
    body: EnvelopeBody


class Envelope(BaseModel):
    """Верхний уровень push-уведомления IoT-платформы."""
    model_config = ConfigDict(extra="allow")

    resource: Optional[str] = None
    event: Optional[str] = None
    event_time: Optional[Any] = None
    notify_data: NotifyData


# ------------------------------------------------------------
#  НОРМАЛИЗОВАННАЯ ЗАПИСЬ
# ------------------------------------------------------------

class NormalizedRecord(BaseModel):
    """
    Каноническое показание датчика, готовое к записи.
    Отсутствующие поля остаются None и не попадают в to_row().
    """
    device_id: str
    event_time: datetime

    service_id: Optional[str] = None
    product_id: Optional[str] = None

    temperature: Optional[float] = None
    humidity: Optional[float] = None
    illumination: Optional[float] = None
    mpu_temperature: Optional[float] = None
    vibration: Optional[float] = None
    risk_level: Optional[float] = None
    alarm_active: Optional[bool] = None
    uptime: Optional[float] = None
    angle_x: Optional[float] = None
    angle_y: Optional[float] = None
    angle_z: Optional[float] = None
    ultrasonic_distance: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    acceleration_x: Optional[int] = None
    acceleration_y: Optional[int] = None
    acceleration_z: Optional[int] = None
    acceleration_total: Optional[float] = None
    gyroscope_x: Optional[int] = None
    gyroscope_y: Optional[int] = None
    gyroscope_z: Optional[int] = None
    gyroscope_total: Optional[float] = None

    deformation_distance_3d: Optional[float] = None
    deformation_horizontal: Optional[float] = None
    deformation_vertical: Optional[float] = None
    deformation_velocity: Optional[float] = None
    deformation_risk_level: Optional[float] = None
    deformation_type: Optional[int] = None
    deformation_confidence: Optional[float] = None
    baseline_established: Optional[bool] = None

    def to_row(self) -> Dict[str, Any]:
        """Колонки для вставки: только реально присутствующие значения."""
        return self.model_dump(exclude_none=True)


# ------------------------------------------------------------
#  АНОМАЛИИ И РИСК
# ------------------------------------------------------------

class AnomalyType(str, Enum):
    TEMPERATURE_EXTREME = "TEMPERATURE_EXTREME"
    HUMIDITY_SENSOR_ERROR = "HUMIDITY_SENSOR_ERROR"
    ACCELERATION_HIGH = "ACCELERATION_HIGH"
    GYROSCOPE_HIGH = "GYROSCOPE_HIGH"
    RISK_CRITICAL = "RISK_CRITICAL"
    VIBRATION_HIGH = "VIBRATION_HIGH"


class AnomalyEvent(BaseModel):
    device_id: str
    anomaly_type: AnomalyType
    value: float


class RiskLabel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskAssessment(BaseModel):
    """
    Серверная оценка риска для одной записи.
    calculated_risk ∈ [0;1], метка: по фиксированным порогам.
    """
    calculated_risk: float = Field(ge=0, le=1)
    risk_label: RiskLabel


# ------------------------------------------------------------
#  ОТВЕТЫ WEBHOOK
# ------------------------------------------------------------

class ServiceOutcome(BaseModel):
    """Результат обработки одного сервиса из пакета."""
    service_id: Optional[str] = None
    success: bool
    internal_device_id: Optional[str] = None
    event_time: Optional[str] = None
    anomalies: List[AnomalyEvent] = Field(default_factory=list)
    risk: Optional[RiskAssessment] = None
    duplicate: bool = False
    error: Optional[str] = None


class IngestAck(BaseModel):
    """Подтверждение приёма пакета (отдаётся даже при частичных ошибках)."""
    status: str = "ok"
    message: str = "data received"
    timestamp: str
    device_id: Optional[str] = None
    processed_services: int
    total_services: int
    processing_time_ms: int
    results: List[ServiceOutcome] = Field(default_factory=list)


class IngestRejection(BaseModel):
    """Отказ в приёме: машинный код ошибки + человекочитаемое сообщение."""
    status: str = "error"
    error_code: str
    message: str
    timestamp: str
    processing_time_ms: Optional[int] = None


# ------------------------------------------------------------
#  МАППИНГИ УСТРОЙСТВ
# ------------------------------------------------------------

class DeviceMappingOut(BaseModel):
    internal_id: str
    external_id: str
    display_name: str
    location_name: str
    device_type: Optional[str] = None
    product_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DeviceMappingList(BaseModel):
    items: List[DeviceMappingOut]
    count: int = Field(description="Количество маппингов")


class DeviceStatusOut(DeviceMappingOut):
    """Маппинг устройства + время последних данных и статус online/offline."""
    last_data_time: Optional[datetime] = None
    status: str


class DeviceStatusList(BaseModel):
    items: List[DeviceStatusOut]
    count: int = Field(description="Количество устройств")
