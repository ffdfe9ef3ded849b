from datetime import UTC, datetime, timedelta

import pytest

from workplace.schemas import RegionCreate, RegionUpdate
from workplace.services.history import HistorySplicer, is_contiguous
from workplace.models import RegionHistory
from workplace.utils.time import SENTINEL_END_OF_TIME


def _intervals(services, region_id, **kwargs):
    with services.session_factory() as session:
        return services.regions.history.intervals(session, region_id, **kwargs)


def _at(hour, minute):
    return datetime(2024, 3, 4, hour, minute, tzinfo=UTC)


def test_create_opens_interval_at_quantized_now(services, tenant):
    result = services.regions.create(tenant.organization.id, RegionCreate(name="South"))
    assert result.ok

    intervals = _intervals(services, result.entity.id)
    assert len(intervals) == 1
    assert intervals[0].start_at == _at(9, 0)
    assert intervals[0].end_at == SENTINEL_END_OF_TIME
    assert intervals[0].attributes == {"name": "South"}


def test_updates_keep_history_contiguous(services, tenant, clock):
    region = services.regions.create(tenant.organization.id, RegionCreate(name="South")).entity

    for minutes, name in ((18, "South 2"), (40, "South 3"), (95, "South 4")):
        clock.now = _at(9, 0) + timedelta(minutes=minutes)
        region = services.regions.update(
            tenant.organization.id, region.id, RegionUpdate(name=name, concurrency_key=region.concurrency_key)
        ).entity

    intervals = _intervals(services, region.id)
    assert is_contiguous(intervals)
    assert [interval.start_at for interval in intervals] == [_at(9, 0), _at(9, 15), _at(9, 30), _at(10, 30)]
    assert intervals[-1].is_open
    assert intervals[-1].attributes["name"] == "South 4"
    assert sum(interval.is_open for interval in intervals) == 1


def test_same_bucket_update_leaves_zero_length_interval(services, tenant, clock):
    region = services.regions.create(tenant.organization.id, RegionCreate(name="East")).entity
    clock.now = _at(9, 20)
    region = services.regions.update(
        tenant.organization.id, region.id, RegionUpdate(name="East 2", concurrency_key=region.concurrency_key)
    ).entity
    clock.now = _at(9, 25)
    region = services.regions.update(
        tenant.organization.id, region.id, RegionUpdate(name="East 3", concurrency_key=region.concurrency_key)
    ).entity

    intervals = _intervals(services, region.id)
    assert is_contiguous(intervals)
    assert [(i.start_at, i.end_at) for i in intervals] == [
        (_at(9, 0), _at(9, 15)),
        (_at(9, 15), _at(9, 15)),
        (_at(9, 15), SENTINEL_END_OF_TIME),
    ]

    visible = _intervals(services, region.id, include_empty=False)
    assert [i.attributes["name"] for i in visible] == ["East", "East 3"]


def test_delete_closes_the_open_interval(services, tenant, clock):
    region = services.regions.create(tenant.organization.id, RegionCreate(name="West")).entity
    clock.now = _at(10, 5)
    assert services.regions.delete(region.id, region.concurrency_key).ok

    intervals = _intervals(services, region.id)
    assert [(i.start_at, i.end_at) for i in intervals] == [(_at(9, 0), _at(10, 0))]
    assert not any(i.is_open for i in intervals)


def test_open_interval_requires_every_tracked_attribute(db_session, tenant):
    splicer = HistorySplicer(RegionHistory, "region_id", ("name",), granularity=timedelta(minutes=15))
    with pytest.raises(ValueError, match="name"):
        splicer.open_interval(db_session, tenant.region.id, {}, _at(9, 0), tenant.organization.id)
