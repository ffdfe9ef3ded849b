from workplace.models import Building
from workplace.services.cache import TimezoneCache


class Ticker:
    def __init__(self) -> None:
        self.value = 0.0

    def __call__(self) -> float:
        return self.value


def test_timezone_is_cached_until_ttl(services, tenant, db_session):
    ticker = Ticker()
    cache = TimezoneCache(services.session_factory, ttl_seconds=60, clock=ticker)
    building_id = tenant.building.id

    assert cache.get(building_id) == "Europe/Amsterdam"
    assert building_id in cache

    db_session.get(Building, building_id).timezone = "Asia/Tokyo"
    db_session.commit()
    assert cache.get(building_id) == "Europe/Amsterdam"

    ticker.value = 61
    assert building_id not in cache
    assert cache.get(building_id) == "Asia/Tokyo"


def test_invalidate_forces_reload(services, tenant, db_session):
    cache = TimezoneCache(services.session_factory, ttl_seconds=3600)
    building_id = tenant.building.id
    cache.get(building_id)

    db_session.get(Building, building_id).timezone = "America/New_York"
    db_session.commit()
    cache.invalidate(building_id)

    assert building_id not in cache
    assert cache.get(building_id) == "America/New_York"


def test_deleted_building_is_not_cached(services, tenant):
    cache = TimezoneCache(services.session_factory, ttl_seconds=3600)
    result = services.buildings.delete(tenant.building.id, tenant.building.concurrency_key, None)
    assert result.ok

    assert cache.get(tenant.building.id) is None
    assert tenant.building.id not in cache


def test_building_service_invalidates_on_delete(services, tenant):
    building_id = tenant.building.id
    assert services.buildings.timezone_for(building_id) == "Europe/Amsterdam"
    assert building_id in services.timezones

    result = services.buildings.delete(building_id, tenant.building.concurrency_key, None)

    assert result.ok
    assert building_id not in services.timezones


def test_invalidation_during_load_is_not_overwritten(services, tenant, db_session):
    building_id = tenant.building.id

    class InvalidatingCache(TimezoneCache):
        def _load(self, key):
            value = super()._load(key)
            db_session.get(Building, key).timezone = "Asia/Tokyo"
            db_session.commit()
            self.invalidate(key)
            return value

    cache = InvalidatingCache(services.session_factory, ttl_seconds=3600)

    assert cache.get(building_id) == "Europe/Amsterdam"
    assert building_id not in cache


def test_expired_entries_are_pruned_on_write(services, make_tenant):
    ticker = Ticker()
    cache = TimezoneCache(services.session_factory, ttl_seconds=60, clock=ticker)
    first = make_tenant("Acme").building.id
    second = make_tenant("Globex").building.id

    cache.get(first)
    assert len(cache) == 1

    ticker.value = 61
    cache.get(second)

    assert len(cache) == 1
    assert second in cache
    assert first not in cache
