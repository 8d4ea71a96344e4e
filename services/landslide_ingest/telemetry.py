# services/landslide_ingest/telemetry.py

"""
Нормализация свойств сервиса (properties) в каноническую запись.

Ключи properties задаёт прошивка устройства, поэтому здесь явный
список разрешённых полей и таблица синонимов: всё неизвестное отбрасывается,
а неверные значения просто опускаются, без исключений.
"""

import math
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from .schemas import NormalizedRecord

_TRUE_STRINGS = {"true", "1", "yes"}
_FALSE_STRINGS = {"false", "0", "no"}


# ---------- Приведение типов ----------


def to_float(value: Any) -> Optional[float]:
    """Число или числовая строка → конечный float, иначе None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            result = float(value)
        except OverflowError:
            # целое за пределами double
            return None
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return result if math.isfinite(result) else None


def to_int(value: Any) -> Optional[int]:
    """Как parseInt: дробная часть отбрасывается, мусор → None."""
    number = to_float(value)
    if number is None:
        return None
    return int(number)


def to_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


# ---------- Разрешённые поля ----------

# Копируются по точному имени ключа
SCALAR_FIELDS: Dict[str, Callable[[Any], Any]] = {
    "temperature": to_float,
    "humidity": to_float,
    "illumination": to_float,
    "mpu_temperature": to_float,
    "vibration": to_int,
    "risk_level": to_float,
    "alarm_active": to_bool,
    "uptime": to_float,
    "angle_x": to_float,
    "angle_y": to_float,
    "angle_z": to_float,
    "ultrasonic_distance": to_float,
    "latitude": to_float,
    "longitude": to_float,
    "acceleration_x": to_int,
    "acceleration_y": to_int,
    "acceleration_z": to_int,
    "gyroscope_x": to_int,
    "gyroscope_y": to_int,
    "gyroscope_z": to_int,
}

# Производные модули векторов: итоговое поле → оси
VECTOR_FIELDS: Dict[str, tuple] = {
    "acceleration_total": ("acceleration_x", "acceleration_y", "acceleration_z"),
    "gyroscope_total": ("gyroscope_x", "gyroscope_y", "gyroscope_z"),
}

# Поля деформации и их исторические имена.
# Порядок значим: первый присутствующий синоним побеждает. Не сортировать!
DEFORMATION_ALIASES: Dict[str, tuple] = {
    "deformation_distance_3d": ("deformation_distance_3d", "deform_3d", "deformation_3d", "gps_distance_3d"),
    "deformation_horizontal": ("deformation_horizontal", "deform_h", "horizontal_displacement"),
    "deformation_vertical": ("deformation_vertical", "deform_v", "vertical_displacement"),
    "deformation_velocity": ("deformation_velocity", "deform_velocity", "deform_vel"),
    "deformation_risk_level": ("deformation_risk_level", "deform_risk", "deformation_risk"),
    "deformation_type": ("deformation_type", "deform_type"),
    "deformation_confidence": ("deformation_confidence", "deform_confidence", "deform_conf"),
    "baseline_established": ("baseline_established", "deform_baseline", "baseline_ok"),
}

DEFORMATION_TYPES: Dict[str, Callable[[Any], Any]] = {
    "deformation_distance_3d": to_float,
    "deformation_horizontal": to_float,
    "deformation_vertical": to_float,
    "deformation_velocity": to_float,
    "deformation_risk_level": to_float,
    "deformation_type": to_int,
    "deformation_confidence": to_float,
    "baseline_established": to_bool,
}


# ---------- Вычисления ----------


def vector_magnitude(x: Optional[float], y: Optional[float], z: Optional[float]) -> Optional[float]:
    """Евклидова норма; если хоть одной оси нет: None (без дополнения нулями)."""
    if x is None or y is None or z is None:
        return None
    return math.sqrt(x * x + y * y + z * z)


def resolve_alias(properties: Mapping[str, Any], aliases: tuple, convert: Callable[[Any], Any]) -> Any:
    for key in aliases:
        if key not in properties:
            continue
        value = convert(properties[key])
        if value is not None:
            return value
    return None


def normalize_properties(
    properties: Mapping[str, Any],
    device_id: str,
    event_time: datetime,
    service_id: Optional[str] = None,
    product_id: Optional[str] = None,
) -> NormalizedRecord:
    """
    Строит NormalizedRecord из сырого набора свойств сервиса.
    Не бросает исключений на неожиданные значения: такие поля опускаются.
    """
    if not isinstance(properties, Mapping):
        properties = {}

    values: Dict[str, Any] = {}

    for field, convert in SCALAR_FIELDS.items():
        if field in properties:
            values[field] = convert(properties[field])

    for total_field, axes in VECTOR_FIELDS.items():
        values[total_field] = vector_magnitude(*(values.get(axis) for axis in axes))

    for field, aliases in DEFORMATION_ALIASES.items():
        values[field] = resolve_alias(properties, aliases, DEFORMATION_TYPES[field])

    present = {key: value for key, value in values.items() if value is not None}

    return NormalizedRecord(
        device_id=device_id,
        event_time=event_time,
        service_id=service_id,
        product_id=product_id,
        **present,
    )
