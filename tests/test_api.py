import base64

import pytest

from workplace.utils.concurrency import TOKEN_BYTES

pytestmark = pytest.mark.anyio

HEADERS = {"X-User-Name": "API Admin"}


def _organization_json(name="Acme"):
    return {
        "name": name,
        "domains": [f"{name.lower()}.example.com"],
        "region_name": "North",
        "building": {
            "name": "HQ",
            "address": "1 Main Street",
            "latitude": 52.37,
            "longitude": 4.89,
            "timezone": "Europe/Amsterdam",
        },
        "function": {"name": "Engineering", "html_color": "#336699"},
    }


async def _create_organization(client, name="Acme"):
    resp = await client.post("/organizations", json=_organization_json(name), headers=HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_create_organization_returns_token(client):
    data = await _create_organization(client)

    assert data["name"] == "Acme"
    assert data["domains"] == ["acme.example.com"]
    assert len(base64.b64decode(data["concurrency_key"])) == TOKEN_BYTES

    resp = await client.get(f"/organizations/{data['id']}")
    assert resp.status_code == 200
    assert resp.json()["concurrency_key"] == data["concurrency_key"]


async def test_duplicate_organization_is_conflict(client):
    await _create_organization(client)

    resp = await client.post("/organizations", json=_organization_json("ACME"), headers=HEADERS)

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "RecordAlreadyExists"


async def test_invalid_payload_is_rejected(client):
    body = _organization_json()
    body["function"]["html_color"] = "blue"

    resp = await client.post("/organizations", json=body, headers=HEADERS)

    assert resp.status_code == 422


async def test_region_in_use_reports_dependents(client):
    organization = await _create_organization(client)
    org_id = organization["id"]
    regions = (await client.get(f"/organizations/{org_id}/regions")).json()
    region = regions["records"][0]

    resp = await client.delete(
        f"/organizations/{org_id}/regions/{region['id']}",
        headers={**HEADERS, "If-Match": f'"{region["concurrency_key"]}"'},
    )

    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "RecordIsInUse"
    assert [item["display_name"] for item in error["details"]["in_use"]] == ["HQ"]


async def test_delete_requires_if_match(client):
    organization = await _create_organization(client)
    url = f"/organizations/{organization['id']}"

    missing = await client.delete(url, headers=HEADERS)
    assert missing.status_code == 428
    assert missing.json()["error"]["code"] == "CONCURRENCY_KEY_REQUIRED"

    malformed = await client.delete(url, headers={**HEADERS, "If-Match": "not base64!"})
    assert malformed.status_code == 400

    deleted = await client.delete(url, headers={**HEADERS, "If-Match": organization["concurrency_key"]})
    assert deleted.status_code == 204
    assert (await client.get(url)).status_code == 404


async def test_stale_token_is_conflict(client):
    organization = await _create_organization(client)
    url = f"/organizations/{organization['id']}"
    update = {"name": "Acme Corp", "domains": organization["domains"], "concurrency_key": organization["concurrency_key"]}

    first = await client.put(url, json=update, headers=HEADERS)
    assert first.status_code == 200
    assert first.json()["concurrency_key"] != organization["concurrency_key"]

    second = await client.put(url, json={**update, "name": "Acme Inc"}, headers=HEADERS)
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "ConcurrencyKeyInvalid"


async def test_missing_records_are_404(client):
    organization = await _create_organization(client)
    missing = "00000000-0000-0000-0000-000000000000"

    resp = await client.get(f"/organizations/{missing}")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "RecordDidNotExist"

    resp = await client.get(f"/organizations/{organization['id']}/buildings/{missing}")
    assert resp.status_code == 404


async def test_list_pagination_and_sorting(client):
    for name in ("Gamma", "Alpha", "Beta"):
        await _create_organization(client, name)

    resp = await client.get("/organizations", params={"page_number": 2, "page_size": 2, "sort": "name"})
    assert resp.status_code == 200
    page = resp.json()
    assert page["total_count"] == 3
    assert [item["name"] for item in page["records"]] == ["Gamma"]

    resp = await client.get("/organizations/dropdown", params={"search": "a"})
    assert [item["name"] for item in resp.json()] == ["Alpha", "Beta", "Gamma"]


async def test_unknown_sort_field_is_422(client):
    resp = await client.get("/organizations", params={"sort": "password"})

    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "INVALID_SORT"


async def test_function_list_filters_by_building(client):
    organization = await _create_organization(client)
    org_id = organization["id"]
    building = (await client.get(f"/organizations/{org_id}/buildings")).json()["records"][0]

    resp = await client.get(f"/organizations/{org_id}/functions", params={"building_id": building["id"]})

    assert resp.status_code == 200
    assert [item["name"] for item in resp.json()["records"]] == ["Engineering"]


async def test_health_reports_configuration(client):
    resp = await client.get("/health")

    assert resp.status_code == 200
    data = resp.json()
    assert data["lock_backend"] == "local"
    assert data["cleanup_sweep_running"] is False
    assert {"db_ok", "migrations_status", "history_interval_minutes"} <= set(data)


async def test_health_degrades_on_db_failure(monkeypatch, client):
    class BrokenEngine:
        def connect(self):
            raise RuntimeError("DB down")

    monkeypatch.setattr("workplace.routers.health.get_engine", lambda: BrokenEngine())

    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["db_status"] == "error"
    assert data["migrations_status"] == "unknown"
