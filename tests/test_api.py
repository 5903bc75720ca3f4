from decimal import Decimal

import pytest

from tests.factories import KC, listing_fields

OWNER = {"X-User-Id": "owner-1"}


@pytest.fixture
def created(client):
    response = client.post("/listings", json=listing_fields(), headers=OWNER)
    assert response.status_code == 201
    return response.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_create_listing(client, created):
    assert created["status"] == "active"
    assert created["unit"] == "Tons"
    assert created["owner_id"] == "owner-1"
    assert created["contact_phone"] == "(816) 555-0142"
    assert Decimal(str(created["quantity"])) == Decimal("100")

    listed = client.get("/listings").json()
    assert [l["id"] for l in listed] == [created["id"]]


def test_create_listing_requires_user(client):
    response = client.post("/listings", json=listing_fields())
    assert response.status_code == 401


def test_create_listing_with_bad_quantity(client):
    response = client.post("/listings", json=listing_fields(quantity=0), headers=OWNER)
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_get_missing_listing(client):
    response = client.get("/listings/nope")
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_patch_listing(client, created):
    response = client.patch(f"/listings/{created['id']}", json={"material_type": "soil"}, headers=OWNER)
    assert response.status_code == 200
    assert response.json()["unit"] == "Cubic Yards"


def test_patch_protected_field_is_rejected(client, created):
    response = client.patch(f"/listings/{created['id']}", json={"status": "completed"}, headers=OWNER)
    assert response.status_code == 400
    assert "status" in response.json()["detail"]
    assert client.get(f"/listings/{created['id']}").json()["status"] == "active"


def test_delete_by_non_owner_is_forbidden(client, created):
    response = client.delete(f"/listings/{created['id']}", headers={"X-User-Id": "intruder"})
    assert response.status_code == 403
    assert response.json()["error"] == "authorization_error"
    assert client.get(f"/listings/{created['id']}").status_code == 200


def test_delete_listing(client, created):
    response = client.delete(f"/listings/{created['id']}", headers=OWNER)
    assert response.status_code == 200
    assert response.json()["listing_id"] == created["id"]
    assert response.json()["deleted_by"] == "owner-1"
    assert client.get(f"/listings/{created['id']}").status_code == 404


def test_partial_completion(client, company, created):
    response = client.post(
        f"/listings/{created['id']}/complete",
        json={"company_id": company.id, "quantity_moved": 40},
        headers=OWNER,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["completed"]["status"] == "completed"
    assert Decimal(str(body["completed"]["quantity"])) == Decimal("40")
    assert body["residual"]["status"] == "active"
    assert body["residual"]["parent_listing_id"] == created["id"]
    assert Decimal(str(body["residual"]["quantity"])) == Decimal("60")
    assert body["record"]["company_name"] == "Acme Hauling"

    mine = client.get("/listings/mine", params={"status": "completed"}, headers=OWNER).json()
    assert [l["id"] for l in mine] == [created["id"]]

    lineage = client.get(f"/listings/{body['residual']['id']}/lineage").json()
    assert [l["id"] for l in lineage["ancestors"]] == [created["id"]]

    completions = client.get(f"/listings/{created['id']}/completions").json()
    assert len(completions) == 1


def test_over_claim_is_rejected(client, company, created):
    response = client.post(
        f"/listings/{created['id']}/complete",
        json={"company_id": company.id, "quantity_moved": 150},
        headers=OWNER,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
    listing = client.get(f"/listings/{created['id']}").json()
    assert listing["status"] == "active"
    assert client.get(f"/listings/{created['id']}/completions").json() == []


def test_completing_twice_is_a_conflict(client, company, created):
    payload = {"company_id": company.id, "quantity_moved": 100}
    assert client.post(f"/listings/{created['id']}/complete", json=payload, headers=OWNER).status_code == 200

    response = client.post(f"/listings/{created['id']}/complete", json=payload, headers=OWNER)
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_state"


def test_idempotency_key_replays(client, company, created):
    headers = {**OWNER, "Idempotency-Key": "retry-1"}
    payload = {"company_id": company.id, "quantity_moved": 40}

    first = client.post(f"/listings/{created['id']}/complete", json=payload, headers=headers).json()
    second = client.post(f"/listings/{created['id']}/complete", json=payload, headers=headers).json()

    assert first["replayed"] is False
    assert second["replayed"] is True
    assert second["record"]["id"] == first["record"]["id"]
    assert len(client.get("/listings").json()) == 1


def test_feed(client):
    near = listing_fields(site_name="Near", latitude=KC[0] + 0.1447, listing_type="Import")
    far = listing_fields(site_name="Far", latitude=KC[0] + 1.1578, material_type="soil")
    for fields in (near, far):
        client.post("/listings", json=fields, headers=OWNER)

    params = {"lat": KC[0], "lng": KC[1], "radius_miles": 50}
    capped = client.get("/listings/feed", params=params, headers={"X-Subscriber": "true"}).json()
    assert [r["listing"]["site_name"] for r in capped["imports"]] == ["Near"]
    assert capped["exports"] == []
    assert capped["radius_miles"] == 50
    assert capped["imports"][0]["distance_miles"] == 10

    open_feed = client.get("/listings/feed", params=params).json()
    assert [r["listing"]["site_name"] for r in open_feed["exports"]] == ["Far"]
    assert open_feed["radius_miles"] is None

    soil_only = client.get("/listings/feed", params={"material_types": ["soil"]}).json()
    assert soil_only["imports"] == []
    assert [r["listing"]["site_name"] for r in soil_only["exports"]] == ["Far"]


def test_feed_rejects_unknown_radius_tier(client):
    response = client.get("/listings/feed", params={"lat": KC[0], "lng": KC[1], "radius_miles": 30})
    assert response.status_code == 400


def test_feed_requires_both_coordinates(client):
    assert client.get("/listings/feed", params={"lat": KC[0]}).status_code == 400


def test_contact_links(client, created):
    body = client.get(f"/listings/{created['id']}/contact", params={"sender_first_name": "Sam"}).json()
    assert body["tel"] == "tel:+18165550142"
    assert body["mailto"].startswith("mailto:dana@example.com")


def test_material_movement(client, companies, created):
    acme, _ = companies
    client.post(
        f"/listings/{created['id']}/complete",
        json={"company_id": acme.id, "quantity_moved": 25},
        headers=OWNER,
    )

    totals = client.get("/analytics/material-movement").json()
    assert totals["cubic_yards"] == []
    assert len(totals["tons"]) == 1
    assert totals["tons"][0]["company_name"] == "Acme Hauling"
    assert Decimal(str(totals["tons"][0]["total_quantity"])) == Decimal("25")

    assert client.get("/analytics/material-movement", params={"mine": True}).status_code == 401
    others = client.get("/analytics/material-movement", params={"mine": True}, headers={"X-User-Id": "x"}).json()
    assert others == {"tons": [], "cubic_yards": []}


def test_create_listing_with_oversized_quantity(client):
    fields = listing_fields(quantity="1234567890123456789012345678.123")
    response = client.post("/listings", json=fields, headers=OWNER)
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_idempotency_key_of_another_user_is_forbidden(client, company, created):
    payload = {"company_id": company.id, "quantity_moved": 40}
    client.post(f"/listings/{created['id']}/complete", json=payload, headers={**OWNER, "Idempotency-Key": "k"})

    response = client.post(
        f"/listings/{created['id']}/complete",
        json=payload,
        headers={"X-User-Id": "intruder", "Idempotency-Key": "k"},
    )
    assert response.status_code == 403
