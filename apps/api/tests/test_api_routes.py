"""
Tests for Carnival and Registration Endpoints
=============================================

Tests for:
- Acting-user header handling
- Error kind to HTTP status mapping
- The claim / register / approve flow over HTTP
- Roster endpoints
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import AsyncClient


def headers(user_id) -> dict:
    return {"X-User-Id": str(user_id)}


async def claim(client: AsyncClient, carnival_id, user_id):
    return await client.post(f"/api/v1/carnivals/{carnival_id}/claim", headers=headers(user_id))


# =============================================================================
# AUTH HEADER
# =============================================================================

@pytest.mark.asyncio
async def test_missing_user_header_is_401(client: AsyncClient, seeded_db):
    carnival_id = seeded_db.test_data["carnivals"]["c"]
    response = await client.post(f"/api/v1/carnivals/{carnival_id}/claim")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_malformed_user_header_is_401(client: AsyncClient, seeded_db):
    carnival_id = seeded_db.test_data["carnivals"]["c"]
    response = await client.post(
        f"/api/v1/carnivals/{carnival_id}/claim", headers={"X-User-Id": "not-a-uuid"}
    )
    assert response.status_code == 401


# =============================================================================
# CARNIVALS
# =============================================================================

@pytest.mark.asyncio
async def test_get_carnival(client: AsyncClient, seeded_db):
    carnival_id = seeded_db.test_data["carnivals"]["c"]
    response = await client.get(f"/api/v1/carnivals/{carnival_id}")
    assert response.status_code == 200

    data = response.json()
    assert data["title"] == "Mullumbimby Sevens"
    assert data["is_manually_entered"] is False
    assert data["host_club_id"] is None
    assert Decimal(str(data["team_registration_fee"])) == Decimal("50.00")


@pytest.mark.asyncio
async def test_get_carnival_not_found(client: AsyncClient, seeded_db):
    response = await client.get(f"/api/v1/carnivals/{uuid4()}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_claim_then_conflict(client: AsyncClient, seeded_db, notifier):
    data = seeded_db.test_data
    carnival_id = data["carnivals"]["c"]

    first = await claim(client, carnival_id, data["users"]["delegate_a"])
    assert first.status_code == 200
    body = first.json()
    assert body["success"] is True
    assert body["carnival"]["host_club_id"] == str(data["clubs"]["a"])
    assert body["claimed_by"]["club_name"] == "Northern Rivers Rugby League"
    assert notifier.sent[0][0] == "organiser@feed.example"

    second = await claim(client, carnival_id, data["users"]["delegate_b"])
    assert second.status_code == 409
    detail = second.json()["detail"]
    assert detail["success"] is False
    assert detail["error_kind"] == "invalid_state"
    assert detail["message"] == "This carnival already has an owner"


@pytest.mark.asyncio
async def test_claim_unknown_carnival_is_404(client: AsyncClient, seeded_db):
    response = await claim(client, uuid4(), seeded_db.test_data["users"]["delegate_a"])
    assert response.status_code == 404
    assert response.json()["detail"]["error_kind"] == "not_found"


@pytest.mark.asyncio
async def test_release_by_non_owner_is_403(client: AsyncClient, seeded_db):
    data = seeded_db.test_data
    carnival_id = data["carnivals"]["c"]
    await claim(client, carnival_id, data["users"]["delegate_a"])

    response = await client.post(
        f"/api/v1/carnivals/{carnival_id}/release", headers=headers(data["users"]["delegate_b"])
    )
    assert response.status_code == 403
    assert response.json()["detail"]["error_kind"] == "unauthorized"


@pytest.mark.asyncio
async def test_admin_claim_endpoint(client: AsyncClient, seeded_db):
    data = seeded_db.test_data
    response = await client.post(
        f"/api/v1/carnivals/{data['carnivals']['u']}/admin-claim",
        json={"target_club_id": str(data["clubs"]["d"])},
        headers=headers(data["users"]["admin"]),
    )
    assert response.status_code == 200

    body = response.json()
    assert body["carnival"]["owner_user_id"] == str(data["users"]["jane"])
    assert body["carnival"]["organiser_contact_name"] == "Jane Doe"
    assert body["claimed_by"]["user_name"] == "Jane Doe"


@pytest.mark.asyncio
async def test_update_fees_endpoint(client: AsyncClient, seeded_db):
    data = seeded_db.test_data
    response = await client.patch(
        f"/api/v1/carnivals/{data['carnivals']['m']}/fees",
        json={"per_player_fee": "12.50"},
        headers=headers(data["users"]["delegate_a"]),
    )
    assert response.status_code == 200
    assert Decimal(str(response.json()["carnival"]["per_player_fee"])) == Decimal("12.50")


# =============================================================================
# REGISTRATIONS
# =============================================================================

@pytest.mark.asyncio
async def test_register_approve_flow(client: AsyncClient, seeded_db):
    data = seeded_db.test_data
    carnival_id = data["carnivals"]["c"]
    await claim(client, carnival_id, data["users"]["delegate_a"])

    created = await client.post(
        f"/api/v1/carnivals/{carnival_id}/registrations/self",
        json={"number_of_teams": 2, "player_count": 15},
        headers=headers(data["users"]["delegate_b"]),
    )
    assert created.status_code == 201
    registration = created.json()["registration"]
    assert registration["approval_status"] == "pending"
    assert Decimal(str(registration["payment_amount"])) == Decimal("250.00")

    approved = await client.post(
        f"/api/v1/registrations/{registration['id']}/approve",
        headers=headers(data["users"]["delegate_a"]),
    )
    assert approved.status_code == 200
    assert approved.json()["current_registrations"] == 1

    counts = await client.get(f"/api/v1/carnivals/{carnival_id}/attendance")
    assert counts.status_code == 200
    assert counts.json()["approved"] == 1

    listed = await client.get(f"/api/v1/carnivals/{carnival_id}/registrations")
    assert [r["id"] for r in listed.json()] == [registration["id"]]


@pytest.mark.asyncio
async def test_organizer_adds_club(client: AsyncClient, seeded_db):
    data = seeded_db.test_data
    carnival_id = data["carnivals"]["m"]

    response = await client.post(
        f"/api/v1/carnivals/{carnival_id}/registrations",
        json={"club_id": str(data["clubs"]["b"]), "number_of_teams": 2},
        headers=headers(data["users"]["delegate_a"]),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["registration"]["approval_status"] == "approved"
    assert Decimal(str(body["registration"]["payment_amount"])) == Decimal("60.00")


@pytest.mark.asyncio
async def test_invalid_team_count_is_422(client: AsyncClient, seeded_db):
    data = seeded_db.test_data
    response = await client.post(
        f"/api/v1/carnivals/{data['carnivals']['m']}/registrations/self",
        json={"number_of_teams": 0},
        headers=headers(data["users"]["delegate_b"]),
    )
    assert response.status_code == 422
    assert response.json()["detail"]["error_kind"] == "validation_failure"


@pytest.mark.asyncio
async def test_reject_without_reason_is_422(client: AsyncClient, seeded_db):
    data = seeded_db.test_data
    created = await client.post(
        f"/api/v1/carnivals/{data['carnivals']['m']}/registrations/self",
        json={},
        headers=headers(data["users"]["delegate_b"]),
    )
    registration_id = created.json()["registration"]["id"]

    response = await client.post(
        f"/api/v1/registrations/{registration_id}/reject",
        json={"reason": ""},
        headers=headers(data["users"]["delegate_a"]),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_paid_withdrawal_is_409(client: AsyncClient, seeded_db):
    data = seeded_db.test_data
    created = await client.post(
        f"/api/v1/carnivals/{data['carnivals']['m']}/registrations",
        json={"club_id": str(data["clubs"]["b"]), "is_paid": True},
        headers=headers(data["users"]["delegate_a"]),
    )
    registration_id = created.json()["registration"]["id"]

    response = await client.delete(
        f"/api/v1/registrations/{registration_id}", headers=headers(data["users"]["delegate_b"])
    )
    assert response.status_code == 409
    assert response.json()["detail"]["message"].startswith("Cannot unregister from a carnival after payment")


@pytest.mark.asyncio
async def test_update_and_recalculate_endpoints(client: AsyncClient, seeded_db):
    data = seeded_db.test_data
    created = await client.post(
        f"/api/v1/carnivals/{data['carnivals']['m']}/registrations/self",
        json={},
        headers=headers(data["users"]["delegate_b"]),
    )
    registration_id = created.json()["registration"]["id"]

    updated = await client.patch(
        f"/api/v1/registrations/{registration_id}",
        json={"number_of_teams": 3, "payment_amount": "1.00"},
        headers=headers(data["users"]["delegate_b"]),
    )
    assert updated.status_code == 200
    assert Decimal(str(updated.json()["registration"]["payment_amount"])) == Decimal("90.00")

    recalculated = await client.post(
        f"/api/v1/registrations/{registration_id}/recalculate",
        headers=headers(data["users"]["delegate_b"]),
    )
    assert recalculated.status_code == 200
    assert recalculated.json()["message"] == "Fees are already up to date."


@pytest.mark.asyncio
async def test_update_cannot_self_approve(client: AsyncClient, seeded_db):
    data = seeded_db.test_data
    created = await client.post(
        f"/api/v1/carnivals/{data['carnivals']['m']}/registrations/self",
        json={},
        headers=headers(data["users"]["delegate_b"]),
    )
    registration_id = created.json()["registration"]["id"]

    response = await client.patch(
        f"/api/v1/registrations/{registration_id}",
        json={"approval_status": "approved"},
        headers=headers(data["users"]["delegate_b"]),
    )
    assert response.status_code == 422

    listed = await client.get(f"/api/v1/carnivals/{data['carnivals']['m']}/registrations")
    [registration] = [r for r in listed.json() if r["id"] == registration_id]
    assert registration["approval_status"] == "pending"


@pytest.mark.asyncio
async def test_roster_endpoints(client: AsyncClient, seeded_db):
    data = seeded_db.test_data
    created = await client.post(
        f"/api/v1/carnivals/{data['carnivals']['m']}/registrations/self",
        json={},
        headers=headers(data["users"]["delegate_b"]),
    )
    registration_id = created.json()["registration"]["id"]

    added = await client.post(
        f"/api/v1/registrations/{registration_id}/players",
        json={"club_player_ids": [str(p) for p in data["players_b"]]},
        headers=headers(data["users"]["delegate_b"]),
    )
    assert added.status_code == 200
    assignments = added.json()["assignments"]
    assert len(assignments) == 3

    status_change = await client.patch(
        f"/api/v1/registrations/players/{assignments[0]['id']}",
        json={"attendance_status": "declined"},
        headers=headers(data["users"]["delegate_b"]),
    )
    assert status_change.status_code == 200

    removed = await client.delete(
        f"/api/v1/registrations/players/{assignments[1]['id']}",
        headers=headers(data["users"]["delegate_b"]),
    )
    assert removed.status_code == 200

    listed = await client.get(f"/api/v1/registrations/{registration_id}/players")
    assert listed.status_code == 200
    assert len(listed.json()) == 2


@pytest.mark.asyncio
async def test_reorder_endpoint(client: AsyncClient, seeded_db):
    data = seeded_db.test_data
    carnival_id = data["carnivals"]["m"]
    ids = []
    for club in ("b", "d"):
        created = await client.post(
            f"/api/v1/carnivals/{carnival_id}/registrations",
            json={"club_id": str(data["clubs"][club])},
            headers=headers(data["users"]["delegate_a"]),
        )
        ids.append(created.json()["registration"]["id"])

    response = await client.put(
        f"/api/v1/carnivals/{carnival_id}/registrations/order",
        json={"registration_ids": list(reversed(ids))},
        headers=headers(data["users"]["delegate_a"]),
    )
    assert response.status_code == 200
    assert [r["id"] for r in response.json()["registrations"]] == list(reversed(ids))
