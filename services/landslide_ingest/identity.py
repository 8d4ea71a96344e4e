# services/landslide_ingest/identity.py

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from .errors import MappingUnavailable
from .storage import DeviceMappingStore, MappingConflict, run_with_timeout
from .telemetry import to_float


@dataclass(frozen=True)
class DeviceHints:
    """Подсказки из первого пакета устройства для заполнения маппинга."""
    display_name: str
    location_name: str
    device_type: Optional[str] = None
    product_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


def build_hints(
    external_id: str,
    properties: Mapping[str, Any],
    product_id: Optional[str],
    default_name: str,
    default_location: str,
) -> DeviceHints:
    """
    Собирает подсказки: имя/локация из свойств (если прошивка их шлёт),
    тип устройства: суффикс после последнего "_" во внешнем id.
    """
    if not isinstance(properties, Mapping):
        properties = {}

    name = properties.get("device_name")
    location = properties.get("location_name")
    device_type = external_id.rsplit("_", 1)[-1] if "_" in external_id else None

    return DeviceHints(
        display_name=name if isinstance(name, str) and name.strip() else default_name,
        location_name=location if isinstance(location, str) and location.strip() else default_location,
        device_type=device_type or None,
        product_id=product_id,
        latitude=to_float(properties.get("latitude")),
        longitude=to_float(properties.get("longitude")),
    )


class DeviceIdentityResolver:
    """
    Преобразует длинный внешний id устройства в короткий внутренний.

    Кэш в памяти прогревается из БД при старте и дополняется новыми маппингами,
    так что в установившемся режиме БД не трогается. Гонка двух "первых появлений"
    решается уникальным ограничением в БД, а не блокировками в процессе:
    при конфликте перечитываем маппинг победителя.
    """

    MAX_CREATE_ATTEMPTS = 3

    def __init__(self, store: DeviceMappingStore, timeout: float = 5.0):
        self._store = store
        self._timeout = timeout
        self._cache: Dict[str, str] = {}

    @property
    def cached(self) -> Dict[str, str]:
        return dict(self._cache)

    def _remember(self, external_id: str, internal_id: str) -> None:
        # Новый словарь вместо изменения на месте: читатели видят либо старую,
        # либо новую версию целиком
        updated = dict(self._cache)
        updated[external_id] = internal_id
        self._cache = updated

    async def _call(self, fn, *args, **kwargs):
        try:
            return await run_with_timeout(fn, *args, timeout=self._timeout, **kwargs)
        except asyncio.TimeoutError as e:
            raise MappingUnavailable(f"device mapping store timed out after {self._timeout}s") from e
        except SQLAlchemyError as e:
            raise MappingUnavailable(f"device mapping store unavailable: {e}") from e

    async def warm(self) -> int:
        """Загружает все маппинги в кэш. Возвращает их количество."""
        mappings = await self._call(self._store.load_all)
        self._cache = {m.external_id: m.internal_id for m in mappings}
        logger.info(f"🗺️ Device mapping cache warmed with {len(self._cache)} entries")
        return len(self._cache)

    async def resolve(self, external_id: str, hints: DeviceHints) -> str:
        internal_id = self._cache.get(external_id)
        if internal_id is not None:
            return internal_id

        existing = await self._call(self._store.find_by_external_id, external_id)
        if existing is not None:
            self._remember(external_id, existing.internal_id)
            return existing.internal_id

        for attempt in range(1, self.MAX_CREATE_ATTEMPTS + 1):
            candidate = await self._call(self._store.next_internal_id)
            try:
                created = await self._call(
                    self._store.create,
                    external_id=external_id,
                    internal_id=candidate,
                    display_name=hints.display_name,
                    location_name=hints.location_name,
                    device_type=hints.device_type,
                    product_id=hints.product_id,
                    latitude=hints.latitude,
                    longitude=hints.longitude,
                )
            except MappingConflict:
                winner = await self._call(self._store.find_by_external_id, external_id)
                if winner is not None:
                    logger.info(
                        f"🤝 Device {external_id} was registered concurrently as {winner.internal_id}"
                    )
                    self._remember(external_id, winner.internal_id)
                    return winner.internal_id
                # Конфликт по internal_id: берём следующий номер
                logger.warning(
                    f"⚠️ internal id {candidate} already taken (attempt {attempt}), retrying"
                )
                continue

            logger.info(f"🆕 Registered device {external_id} as {created.internal_id}")
            self._remember(external_id, created.internal_id)
            return created.internal_id

        raise MappingUnavailable(
            f"could not allocate internal id for {external_id} after {self.MAX_CREATE_ATTEMPTS} attempts"
        )
