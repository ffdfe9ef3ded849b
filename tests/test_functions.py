from uuid import uuid4

from sqlalchemy import func, select

from workplace.models import (
    Desk,
    Floor,
    Function,
    FunctionAdjacency,
    FunctionAdjacencyLog,
    FunctionLog,
    User,
    UserBuildingAssignment,
)
from workplace.schemas import FunctionUpdate
from workplace.services.outcomes import Outcome

from conftest import ACTOR, building_payload


def _adjacent_ids(db_session, function_id):
    db_session.expire_all()
    rows = db_session.execute(
        select(FunctionAdjacency.adjacent_function_id).where(FunctionAdjacency.function_id == function_id)
    ).scalars()
    return set(rows)


def _log_counts(db_session):
    return tuple(
        db_session.execute(select(func.count()).select_from(model)).scalar_one()
        for model in (FunctionLog, FunctionAdjacencyLog)
    )


def _update(function, **overrides) -> FunctionUpdate:
    data = {
        "building_id": function.building_id,
        "name": function.name,
        "html_color": function.html_color,
        "adjacent_function_ids": [],
        "concurrency_key": function.concurrency_key,
    }
    data.update(overrides)
    return FunctionUpdate(**data)


def test_create_function_with_adjacencies(services, tenant, function_payload, db_session):
    result = services.functions.create(
        tenant.organization.id, function_payload(tenant.building.id, "Sales", [tenant.function.id]), ACTOR
    )

    assert result.ok
    assert _adjacent_ids(db_session, result.entity.id) == {tenant.function.id}
    assert [adjacency.adjacent_function_id for adjacency in result.entity.adjacencies] == [tenant.function.id]
    entry = db_session.execute(
        select(FunctionAdjacencyLog).where(FunctionAdjacencyLog.function_id == result.entity.id)
    ).scalar_one()
    assert entry.log_action == "Insert"
    assert entry.cascade_from == "functions"
    assert entry.cascade_log_id == result.log_id


def test_adjacent_function_must_share_the_building(services, tenant, function_payload):
    other = services.buildings.create(tenant.organization.id, building_payload(tenant.region.id)).entity
    with services.session_factory() as session:
        foreign = session.execute(select(Function).where(Function.building_id == other.id)).scalar_one()

    result = services.functions.create(
        tenant.organization.id, function_payload(tenant.building.id, "Sales", [foreign.id])
    )
    assert result.outcome is Outcome.SUB_RECORD_INVALID

    unknown = services.functions.create(
        tenant.organization.id, function_payload(tenant.building.id, "Sales", [uuid4()])
    )
    assert unknown.outcome is Outcome.SUB_RECORD_INVALID


def test_function_cannot_be_adjacent_to_itself(services, tenant):
    function = tenant.function
    result = services.functions.update(
        tenant.organization.id, function.id, _update(function, adjacent_function_ids=[function.id])
    )
    assert result.outcome is Outcome.SUB_RECORD_INVALID


def test_create_requires_live_building(services, tenant, function_payload):
    result = services.functions.create(tenant.organization.id, function_payload(uuid4(), "Sales"))
    assert result.outcome is Outcome.SUB_RECORD_DID_NOT_EXIST


def test_names_are_unique_per_building(services, tenant, function_payload):
    duplicate = services.functions.create(tenant.organization.id, function_payload(tenant.building.id, "engineering"))
    assert duplicate.outcome is Outcome.RECORD_ALREADY_EXISTS

    other = services.buildings.create(tenant.organization.id, building_payload(tenant.region.id)).entity
    assert services.functions.create(tenant.organization.id, function_payload(other.id, "Engineering")).ok


def test_update_diffs_adjacencies(services, tenant, function_payload, db_session):
    sales = services.functions.create(tenant.organization.id, function_payload(tenant.building.id, "Sales")).entity
    legal = services.functions.create(tenant.organization.id, function_payload(tenant.building.id, "Legal")).entity
    function = services.functions.create(
        tenant.organization.id, function_payload(tenant.building.id, "Design", [sales.id, tenant.function.id])
    ).entity

    result = services.functions.update(
        tenant.organization.id,
        function.id,
        _update(function, html_color="#abcdef", adjacent_function_ids=[tenant.function.id, legal.id]),
        ACTOR,
    )

    assert result.ok
    assert _adjacent_ids(db_session, function.id) == {tenant.function.id, legal.id}
    entries = db_session.execute(
        select(FunctionAdjacencyLog).where(FunctionAdjacencyLog.cascade_log_id == result.log_id)
    ).scalars().all()
    assert sorted((entry.log_action, entry.adjacent_function_id) for entry in entries) == sorted(
        [("Delete", sales.id), ("Insert", legal.id)]
    )
    root = db_session.get(FunctionLog, result.log_id)
    assert root.old_html_color == "#112233"
    assert root.html_color == "#abcdef"


def test_delete_blocked_by_desks_and_users(services, tenant, db_session):
    floor = Floor(organization_id=tenant.organization.id, building_id=tenant.building.id, name="Level 1")
    db_session.add(floor)
    db_session.flush()
    desks = [
        Desk(organization_id=tenant.organization.id, floor_id=floor.id, function_id=tenant.function.id, name=name)
        for name in ("D-01", "D-02")
    ]
    user = User(
        organization_id=tenant.organization.id,
        email="ada@acme.example.com",
        display_name="Ada Lovelace",
        avatar_thumbnail_url="/avatars/ada.png",
    )
    db_session.add_all([*desks, user])
    db_session.flush()
    db_session.add(
        UserBuildingAssignment(user_id=user.id, building_id=tenant.building.id, function_id=tenant.function.id)
    )
    db_session.commit()

    logs_before = _log_counts(db_session)

    result = services.functions.delete(tenant.function.id, tenant.function.concurrency_key, ACTOR)

    assert result.outcome is Outcome.RECORD_IS_IN_USE
    desk_dependents = [dependent for dependent in result.in_use if dependent.kind == "desk"]
    assert [(dependent.id, dependent.display_name) for dependent in desk_dependents] == [
        (desks[0].id, "D-01"),
        (desks[1].id, "D-02"),
    ]
    assert desk_dependents[0].details == {"floor_id": str(floor.id), "floor_name": "Level 1"}
    by_kind = {dependent.kind: dependent for dependent in result.in_use}
    assert by_kind["user"].display_name == "Ada Lovelace"
    assert by_kind["user"].details["email"] == "ada@acme.example.com"

    db_session.expire_all()
    row = db_session.get(Function, tenant.function.id)
    assert row.deleted is False
    assert row.deleted_at is None
    assert row.concurrency_key == tenant.function.concurrency_key
    assert _log_counts(db_session) == logs_before
    assert db_session.execute(select(FunctionLog).where(FunctionLog.log_action == "Delete")).first() is None


def test_deleted_desks_do_not_block(services, tenant, db_session):
    floor = Floor(organization_id=tenant.organization.id, building_id=tenant.building.id, name="Level 2")
    db_session.add(floor)
    db_session.flush()
    db_session.add(
        Desk(
            organization_id=tenant.organization.id,
            floor_id=floor.id,
            function_id=tenant.function.id,
            name="D-99",
            deleted=True,
        )
    )
    db_session.commit()

    assert services.functions.delete(tenant.function.id, tenant.function.concurrency_key).ok


def test_delete_removes_adjacencies_in_both_directions(services, tenant, function_payload, db_session):
    sales = services.functions.create(
        tenant.organization.id, function_payload(tenant.building.id, "Sales", [tenant.function.id])
    ).entity
    legal = services.functions.create(
        tenant.organization.id, function_payload(tenant.building.id, "Legal", [sales.id])
    ).entity

    result = services.functions.delete(sales.id, sales.concurrency_key, ACTOR)

    assert result.ok
    assert _adjacent_ids(db_session, sales.id) == set()
    assert _adjacent_ids(db_session, legal.id) == set()
    removed = db_session.execute(
        select(FunctionAdjacencyLog).where(
            FunctionAdjacencyLog.cascade_log_id == result.log_id, FunctionAdjacencyLog.log_action == "Delete"
        )
    ).scalars().all()
    assert len(removed) == 2
