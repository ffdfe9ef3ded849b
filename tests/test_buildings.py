import base64

from sqlalchemy import select

from workplace.models import Building, BuildingLog, Function, FunctionLog, StoredImage
from workplace.schemas import BuildingUpdate, RegionCreate
from workplace.services.outcomes import Outcome

from conftest import ACTOR, JPEG_BYTES, PNG_BYTES, building_payload


def _upload(data: bytes) -> dict:
    return {"content": base64.b64encode(data).decode("ascii"), "file_name": "image"}


def _update_payload(building, **overrides) -> BuildingUpdate:
    data = {
        "name": building.name,
        "region_id": building.region_id,
        "address": building.address,
        "latitude": building.latitude,
        "longitude": building.longitude,
        "timezone": building.timezone,
        "concurrency_key": building.concurrency_key,
    }
    data.update(overrides)
    return BuildingUpdate(**data)


def test_create_building_seeds_a_function(services, tenant, db_session):
    result = services.buildings.create(tenant.organization.id, building_payload(tenant.region.id), ACTOR)

    assert result.ok
    building = result.entity
    functions = db_session.execute(select(Function).where(Function.building_id == building.id)).scalars().all()
    assert [function.name for function in functions] == ["Facilities"]

    root = db_session.execute(select(BuildingLog).where(BuildingLog.building_id == building.id)).scalar_one()
    assert root.id == result.log_id
    assert root.cascade_log_id is None
    child = db_session.execute(select(FunctionLog).where(FunctionLog.function_id == functions[0].id)).scalar_one()
    assert child.cascade_from == "buildings"
    assert child.cascade_log_id == result.log_id

    history = services.functions.history
    intervals = history.intervals(db_session, functions[0].id)
    assert len(intervals) == 1 and intervals[0].is_open


def test_create_requires_region_in_same_organization(services, make_tenant):
    acme = make_tenant("Acme")
    globex = make_tenant("Globex")
    result = services.buildings.create(acme.organization.id, building_payload(globex.region.id))
    assert result.outcome is Outcome.SUB_RECORD_DID_NOT_EXIST


def test_create_with_images(services, tenant, images, db_session):
    payload = building_payload(
        tenant.region.id, feature_image=_upload(PNG_BYTES), map_image=_upload(JPEG_BYTES)
    )
    result = services.buildings.create(tenant.organization.id, payload)

    assert result.ok
    building = result.entity
    assert building.feature_image_url.endswith(".png")
    assert building.map_image_url.endswith(".jpg")
    stored = db_session.get(StoredImage, building.feature_image_storage_id)
    assert stored.related_object_id == building.id
    assert images.path_for(stored.relative_path).read_bytes() == PNG_BYTES


def test_invalid_image_aborts_without_leaving_files(services, tenant, image_root, db_session):
    payload = building_payload(
        tenant.region.id, feature_image=_upload(PNG_BYTES), map_image=_upload(b"GIF89a not allowed")
    )
    result = services.buildings.create(tenant.organization.id, payload)

    assert result.outcome is Outcome.SUB_RECORD_INVALID
    assert list(image_root.rglob("*.*")) == []
    assert db_session.execute(select(StoredImage)).first() is None
    assert db_session.execute(select(Building).where(Building.name == "Annex")).first() is None


def test_update_replaces_image_and_deletes_old_after_commit(services, tenant, images):
    created = services.buildings.create(
        tenant.organization.id, building_payload(tenant.region.id, feature_image=_upload(PNG_BYTES))
    ).entity
    old_path = images.path_for(created.feature_image_url.removeprefix("/images/"))
    assert old_path.exists()

    result = services.buildings.update(
        tenant.organization.id, created.id, _update_payload(created, feature_image=_upload(JPEG_BYTES))
    )

    assert result.ok
    assert result.entity.feature_image_storage_id != created.feature_image_storage_id
    assert not old_path.exists()
    with services.session_factory() as session:
        old = session.get(StoredImage, created.feature_image_storage_id)
        assert old.deleted is True


def test_update_can_clear_image(services, tenant, images):
    created = services.buildings.create(
        tenant.organization.id, building_payload(tenant.region.id, map_image=_upload(PNG_BYTES))
    ).entity
    result = services.buildings.update(
        tenant.organization.id, created.id, _update_payload(created, clear_map_image=True)
    )
    assert result.ok
    assert result.entity.map_image_storage_id is None
    assert result.entity.map_image_url is None


def test_update_moves_region_and_invalidates_timezone(services, tenant, db_session, clock):
    south = services.regions.create(tenant.organization.id, RegionCreate(name="South")).entity
    building = tenant.building
    assert services.timezones.get(building.id) == "Europe/Amsterdam"
    assert building.id in services.timezones

    clock.advance(minutes=20)
    result = services.buildings.update(
        tenant.organization.id,
        building.id,
        _update_payload(building, region_id=south.id, timezone="Europe/London"),
        ACTOR,
    )

    assert result.ok
    assert building.id not in services.timezones
    assert services.timezones.get(building.id) == "Europe/London"

    intervals = services.buildings.history.intervals(db_session, building.id)
    assert [interval.attributes["region_id"] for interval in intervals] == [tenant.region.id, south.id]

    log = db_session.execute(
        select(BuildingLog).where(BuildingLog.building_id == building.id, BuildingLog.log_action == "Update")
    ).scalar_one()
    assert log.old_region_id == tenant.region.id
    assert log.region_id == south.id
    assert log.old_timezone == "Europe/Amsterdam"


def test_update_requires_live_region(services, tenant):
    south = services.regions.create(tenant.organization.id, RegionCreate(name="South")).entity
    assert services.regions.delete(south.id, south.concurrency_key).ok
    result = services.buildings.update(
        tenant.organization.id, tenant.building.id, _update_payload(tenant.building, region_id=south.id)
    )
    assert result.outcome is Outcome.SUB_RECORD_DID_NOT_EXIST


def test_delete_cascades_functions_and_images(services, tenant, db_session, images):
    created = services.buildings.create(
        tenant.organization.id, building_payload(tenant.region.id, feature_image=_upload(PNG_BYTES))
    ).entity
    services.timezones.get(created.id)

    result = services.buildings.delete(created.id, created.concurrency_key, ACTOR)

    assert result.ok
    db_session.expire_all()
    functions = db_session.execute(select(Function).where(Function.building_id == created.id)).scalars().all()
    assert functions and all(function.deleted for function in functions)
    cascaded = db_session.execute(
        select(FunctionLog).where(FunctionLog.cascade_log_id == result.log_id)
    ).scalars().all()
    assert [log.log_action for log in cascaded] == ["Delete"]
    assert cascaded[0].cascade_from == "buildings"
    assert db_session.get(StoredImage, created.feature_image_storage_id).deleted is True
    assert created.id not in services.timezones
    intervals = services.functions.history.intervals(db_session, functions[0].id)
    assert not any(interval.is_open for interval in intervals)
