# services/landslide_ingest/timestamps.py

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from loguru import logger

# Родной формат времени IoT-платформы: 20151212T121212Z
COMPACT_TIME_RE = re.compile(r"^\d{8}T\d{6}Z$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _expand_compact(raw: str) -> str:
    """20151212T121212Z -> 2015-12-12T12:12:12.000Z"""
    year, month, day = raw[0:4], raw[4:6], raw[6:8]
    hour, minute, second = raw[9:11], raw[11:13], raw[13:15]
    return f"{year}-{month}-{day}T{hour}:{minute}:{second}.000Z"


def _parse_iso(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        # Время без зоны считаем UTC
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_rfc2822(value: str) -> datetime | None:
    """Tue, 01 Jul 2025 08:00:00 GMT"""
    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_event_time(raw: Any) -> datetime:
    """
    Приводит время события к aware-datetime в UTC.

    - нет значения → текущее время;
    - компактный формат платформы (YYYYMMDDThhmmssZ) разбирается на части;
    - иначе пробуем обычный ISO-8601, затем RFC 2822 (формат HTTP-дат);
    - если ничего не получилось → текущее время и предупреждение в лог.

    Никогда не бросает исключений: время не должно блокировать приём данных.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return utcnow()

    if not isinstance(raw, str):
        logger.warning(f"⚠️ Unsupported event_time type {type(raw).__name__}, using current time")
        return utcnow()

    if COMPACT_TIME_RE.match(raw):
        parsed = _parse_iso(_expand_compact(raw))
        if parsed is not None:
            return parsed

    parsed = _parse_iso(raw) or _parse_rfc2822(raw)
    if parsed is not None:
        return parsed

    logger.warning(f"⚠️ Cannot parse event_time={raw!r}, using current time")
    return utcnow()


def format_instant(value: datetime) -> str:
    """Форматирует момент времени как 2015-12-12T12:12:12.000Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
