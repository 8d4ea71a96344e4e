import asyncio
import threading
import time

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from conftest import EXTERNAL_DEVICE_ID
from landslide_ingest.errors import MappingUnavailable
from landslide_ingest.identity import DeviceHints, DeviceIdentityResolver, build_hints
from landslide_ingest.models import DeviceMapping
from landslide_ingest.schemas import DeviceMappingOut
from landslide_ingest.storage import DeviceMappingStore, MappingConflict
from landslide_ingest.timestamps import utcnow

HINTS = DeviceHints(display_name="龙门滑坡监测站", location_name="防城港华石镇龙门村", device_type="rk2206")


def _count_rows(session_factory) -> int:
    with session_factory() as db:
        return db.scalar(select(func.count(DeviceMapping.id)))


class FakeMappingStore:
    """
    Хранилище в памяти с уникальностью как в БД.
    find_delay расширяет окно гонки между чтением и созданием.
    """

    def __init__(self, find_delay: float = 0.0):
        self.rows = {}
        self.calls = []
        self.find_delay = find_delay
        self._lock = threading.Lock()

    def load_all(self):
        self.calls.append("load_all")
        return list(self.rows.values())

    def find_by_external_id(self, external_id):
        self.calls.append("find")
        time.sleep(self.find_delay)
        return self.rows.get(external_id)

    def next_internal_id(self):
        return f"device_{len(self.rows) + 1}"

    def create(self, external_id, internal_id, display_name, location_name, **extra):
        self.calls.append("create")
        with self._lock:
            taken = {row.internal_id for row in self.rows.values()}
            if external_id in self.rows or internal_id in taken:
                raise MappingConflict("unique violation")
            row = DeviceMappingOut(
                external_id=external_id,
                internal_id=internal_id,
                display_name=display_name,
                location_name=location_name,
                created_at=utcnow(),
                **extra,
            )
            self.rows[external_id] = row
            return row


def test_first_sighting_creates_mapping_with_hints(mapping_store, session_factory) -> None:
    resolver = DeviceIdentityResolver(mapping_store)

    internal_id = asyncio.run(resolver.resolve(EXTERNAL_DEVICE_ID, HINTS))

    assert internal_id == "device_1"
    stored = mapping_store.find_by_external_id(EXTERNAL_DEVICE_ID)
    assert stored.display_name == "龙门滑坡监测站"
    assert stored.location_name == "防城港华石镇龙门村"
    assert stored.device_type == "rk2206"
    assert _count_rows(session_factory) == 1


def test_sequential_resolution_is_stable(mapping_store, session_factory) -> None:
    resolver = DeviceIdentityResolver(mapping_store)

    first = asyncio.run(resolver.resolve(EXTERNAL_DEVICE_ID, HINTS))
    second = asyncio.run(resolver.resolve(EXTERNAL_DEVICE_ID, HINTS))
    other = asyncio.run(resolver.resolve("aaaa_rk2206", HINTS))

    assert first == second == "device_1"
    assert other == "device_2"
    assert _count_rows(session_factory) == 2


def test_two_process_caches_agree_on_one_mapping(mapping_store, session_factory) -> None:
    # Два экземпляра сервиса с собственными кэшами поверх одной БД
    a = DeviceIdentityResolver(mapping_store)
    b = DeviceIdentityResolver(mapping_store)

    assert asyncio.run(a.resolve(EXTERNAL_DEVICE_ID, HINTS)) == asyncio.run(
        b.resolve(EXTERNAL_DEVICE_ID, HINTS)
    )
    assert _count_rows(session_factory) == 1


def test_losing_the_creation_race_returns_the_winner(session_factory) -> None:
    store = DeviceMappingStore(session_factory)

    class RacyStore(DeviceMappingStore):
        """Перед нашей вставкой другой экземпляр успевает создать маппинг."""

        def create(self, external_id, internal_id, **kwargs):
            store.create(external_id=external_id, internal_id="device_7", **kwargs)
            return super().create(external_id=external_id, internal_id=internal_id, **kwargs)

    resolver = DeviceIdentityResolver(RacyStore(session_factory))

    assert asyncio.run(resolver.resolve(EXTERNAL_DEVICE_ID, HINTS)) == "device_7"
    assert _count_rows(session_factory) == 1
    assert resolver.cached == {EXTERNAL_DEVICE_ID: "device_7"}


def test_concurrent_first_sightings_resolve_to_one_mapping() -> None:
    store = FakeMappingStore(find_delay=0.05)
    a = DeviceIdentityResolver(store)
    b = DeviceIdentityResolver(store)

    async def both():
        return await asyncio.gather(
            a.resolve(EXTERNAL_DEVICE_ID, HINTS),
            b.resolve(EXTERNAL_DEVICE_ID, HINTS),
        )

    first, second = asyncio.run(both())

    assert first == second
    assert len(store.rows) == 1


def test_internal_id_collision_is_retried() -> None:
    store = FakeMappingStore()
    store.rows["someone_else"] = DeviceMappingOut(
        external_id="someone_else",
        internal_id="device_2",
        display_name="x",
        location_name="y",
        created_at=utcnow(),
    )
    ids = iter(["device_2", "device_3"])
    store.next_internal_id = lambda: next(ids)

    resolver = DeviceIdentityResolver(store)

    assert asyncio.run(resolver.resolve(EXTERNAL_DEVICE_ID, HINTS)) == "device_3"


def test_warm_cache_avoids_store_lookups() -> None:
    store = FakeMappingStore()
    store.create(EXTERNAL_DEVICE_ID, "device_1", "n", "l")
    resolver = DeviceIdentityResolver(store)

    assert asyncio.run(resolver.warm()) == 1
    store.calls.clear()

    assert asyncio.run(resolver.resolve(EXTERNAL_DEVICE_ID, HINTS)) == "device_1"
    assert store.calls == []


def test_unreachable_store_raises_mapping_unavailable() -> None:
    class DownStore(FakeMappingStore):
        def find_by_external_id(self, external_id):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    resolver = DeviceIdentityResolver(DownStore())

    with pytest.raises(MappingUnavailable):
        asyncio.run(resolver.resolve(EXTERNAL_DEVICE_ID, HINTS))


def test_store_timeout_raises_mapping_unavailable() -> None:
    resolver = DeviceIdentityResolver(FakeMappingStore(find_delay=0.5), timeout=0.05)

    with pytest.raises(MappingUnavailable):
        asyncio.run(resolver.resolve(EXTERNAL_DEVICE_ID, HINTS))


def test_build_hints_from_first_payload() -> None:
    hints = build_hints(
        EXTERNAL_DEVICE_ID,
        {"latitude": 21.6847, "longitude": 108.3516, "location_name": "Slope B"},
        product_id="prod",
        default_name="Station",
        default_location="Village",
    )

    assert hints.display_name == "Station"
    assert hints.location_name == "Slope B"
    assert hints.device_type == "rk2206"
    assert hints.product_id == "prod"
    assert (hints.latitude, hints.longitude) == (21.6847, 108.3516)


def test_build_hints_without_suffix_or_coordinates() -> None:
    hints = build_hints("plainid", {"latitude": "n/a"}, None, "Station", "Village")

    assert hints.device_type is None
    assert hints.latitude is None


def test_build_hints_ignore_out_of_range_coordinates() -> None:
    hints = build_hints(EXTERNAL_DEVICE_ID, {"latitude": 10**400, "longitude": "108.35"}, None, "Station", "Village")

    assert hints.latitude is None
    assert hints.longitude == 108.35
