# services/landslide_ingest/errors.py

from typing import Any, Dict, Optional


class IngestError(Exception):
    """Базовое исключение конвейера приёма телеметрии."""


class EnvelopeValidationError(IngestError):
    """
    Входящий пакет от IoT-платформы не прошёл проверку формы.
    Фатально только для текущего запроса, автоматически не повторяется.
    """

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class MappingUnavailable(IngestError):
    """Хранилище маппингов устройств недоступно (или не ответило вовремя)."""


class PersistenceFailure(IngestError):
    """
    Запись нормализованного показания отклонена или хранилище недоступно.

    row: колонки несохранённой строки (с риском), чтобы запись можно было
    повторить вручную по логу.
    """

    def __init__(self, message: str, row: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.row = row
