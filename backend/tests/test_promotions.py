"""Integration tests for promotion requests."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from httpx import AsyncClient

COMPANY_ID = uuid.uuid4()
BASE_URL = f"/companies/{COMPANY_ID}"


def _headers(role: str, employee_id: str | None = None, user_id: uuid.UUID | None = None) -> dict:
    headers = {
        "X-Company-Id": str(COMPANY_ID),
        "X-User-Id": str(user_id or uuid.uuid4()),
        "X-Role": role,
    }
    if employee_id is not None:
        headers["X-Employee-Id"] = employee_id
    return headers


HR_HEADERS = _headers("hr")
MANAGEMENT_HEADERS = _headers("management")


async def _create_employee(client: AsyncClient, staff_id: str, **extra: object) -> dict:
    resp = await client.post(
        f"{BASE_URL}/employees",
        json={"staff_id": staff_id, "first_name": "Promo", "last_name": staff_id, **extra},
        headers=HR_HEADERS,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _proposal(employee_id: str, **overrides: object) -> dict:
    payload = {
        "employee_id": employee_id,
        "proposed_position": "Senior Accountant",
        "proposed_salary": "95000",
        "effective_date": "2025-07-01",
        "reason": "Consistently exceeds targets",
    }
    payload.update(overrides)
    return payload


async def _team(client: AsyncClient) -> tuple[dict, dict]:
    """A line manager and a report with a salary structure."""
    manager = await _create_employee(client, "PR01")
    employee = await _create_employee(client, "PR02", manager_id=manager["id"], job_role="Accountant")
    resp = await client.post(
        f"{BASE_URL}/employees/{employee['id']}/salary-structures",
        json={"basic_salary": "80000", "housing_allowance": "10000", "effective_date": "2025-01-01"},
        headers=HR_HEADERS,
    )
    assert resp.status_code == 201
    return manager, employee


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


async def test_line_manager_proposes_with_current_defaults(async_client: AsyncClient) -> None:
    manager, employee = await _team(async_client)
    resp = await async_client.post(
        f"{BASE_URL}/promotions", json=_proposal(employee["id"]), headers=_headers("employee", manager["id"])
    )
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["current_position"] == "Accountant"
    assert Decimal(data["current_salary"]) == Decimal("80000")
    assert Decimal(data["proposed_salary"]) == Decimal("95000")
    assert data["status"] == "LINE_MANAGER_PENDING"


async def test_explicit_current_values_win(async_client: AsyncClient) -> None:
    _, employee = await _team(async_client)
    resp = await async_client.post(
        f"{BASE_URL}/promotions",
        json=_proposal(employee["id"], current_position="Acting Lead", current_salary="82000"),
        headers=HR_HEADERS,
    )
    assert resp.status_code == 201
    assert resp.json()["current_position"] == "Acting Lead"
    assert Decimal(resp.json()["current_salary"]) == Decimal("82000")


async def test_cannot_propose_own_promotion(async_client: AsyncClient) -> None:
    _, employee = await _team(async_client)
    resp = await async_client.post(
        f"{BASE_URL}/promotions", json=_proposal(employee["id"]), headers=_headers("hr", employee["id"])
    )
    assert resp.status_code == 403


async def test_peer_cannot_propose(async_client: AsyncClient) -> None:
    _, employee = await _team(async_client)
    peer = await _create_employee(async_client, "PR03")
    resp = await async_client.post(
        f"{BASE_URL}/promotions", json=_proposal(employee["id"]), headers=_headers("employee", peer["id"])
    )
    assert resp.status_code == 403


async def test_unknown_employee_404(async_client: AsyncClient) -> None:
    resp = await async_client.post(f"{BASE_URL}/promotions", json=_proposal(str(uuid.uuid4())), headers=HR_HEADERS)
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Approval
# ---------------------------------------------------------------------------


async def test_approved_promotion_updates_role_and_salary(async_client: AsyncClient) -> None:
    manager, employee = await _team(async_client)
    manager_headers = _headers("employee", manager["id"])
    promotion = (
        await async_client.post(f"{BASE_URL}/promotions", json=_proposal(employee["id"]), headers=manager_headers)
    ).json()
    approval_id = (
        await async_client.get(f"{BASE_URL}/approvals/entities/PROMOTION/{promotion['id']}", headers=HR_HEADERS)
    ).json()["request"]["id"]

    for headers in (manager_headers, HR_HEADERS, MANAGEMENT_HEADERS):
        resp = await async_client.post(
            f"{BASE_URL}/approvals/{approval_id}/process", json={"action": "APPROVED"}, headers=headers
        )
        assert resp.status_code == 200, resp.text

    current = (await async_client.get(f"{BASE_URL}/promotions/{promotion['id']}", headers=HR_HEADERS)).json()
    assert current["status"] == "APPROVED"

    updated = (await async_client.get(f"{BASE_URL}/employees/{employee['id']}", headers=HR_HEADERS)).json()
    assert updated["job_role"] == "Senior Accountant"

    structures = (
        await async_client.get(f"{BASE_URL}/employees/{employee['id']}/salary-structures", headers=HR_HEADERS)
    ).json()["items"]
    assert len(structures) == 2
    newest = structures[0]
    assert newest["effective_date"] == "2025-07-01"
    assert Decimal(newest["basic_salary"]) == Decimal("95000")
    assert Decimal(newest["housing_allowance"]) == Decimal("10000")


async def test_promoted_employee_cannot_approve(async_client: AsyncClient) -> None:
    _, employee = await _team(async_client)
    resp = await async_client.post(f"{BASE_URL}/promotions", json=_proposal(employee["id"]), headers=HR_HEADERS)
    promotion = resp.json()
    approval_id = (
        await async_client.get(f"{BASE_URL}/approvals/entities/PROMOTION/{promotion['id']}", headers=HR_HEADERS)
    ).json()["request"]["id"]

    resp = await async_client.post(
        f"{BASE_URL}/approvals/{approval_id}/process",
        json={"action": "APPROVED"},
        headers=_headers("management", employee["id"]),
    )
    assert resp.status_code == 403


async def test_rejected_promotion_leaves_employee_unchanged(async_client: AsyncClient) -> None:
    manager, employee = await _team(async_client)
    resp = await async_client.post(f"{BASE_URL}/promotions", json=_proposal(employee["id"]), headers=HR_HEADERS)
    promotion = resp.json()
    approval_id = (
        await async_client.get(f"{BASE_URL}/approvals/entities/PROMOTION/{promotion['id']}", headers=HR_HEADERS)
    ).json()["request"]["id"]
    await async_client.post(
        f"{BASE_URL}/approvals/{approval_id}/process",
        json={"action": "REJECTED", "comments": "Next cycle"},
        headers=_headers("employee", manager["id"]),
    )

    current = (await async_client.get(f"{BASE_URL}/promotions/{promotion['id']}", headers=HR_HEADERS)).json()
    assert current["status"] == "LINE_MANAGER_REJECTED"
    unchanged = (await async_client.get(f"{BASE_URL}/employees/{employee['id']}", headers=HR_HEADERS)).json()
    assert unchanged["job_role"] == "Accountant"


async def test_cancel_by_proposer(async_client: AsyncClient) -> None:
    _, employee = await _team(async_client)
    hr_user = uuid.uuid4()
    proposer = _headers("hr", user_id=hr_user)
    resp = await async_client.post(f"{BASE_URL}/promotions", json=_proposal(employee["id"]), headers=proposer)
    promotion = resp.json()

    resp = await async_client.post(f"{BASE_URL}/promotions/{promotion['id']}/cancel", headers=proposer)
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------


async def test_visibility_for_employees(async_client: AsyncClient) -> None:
    manager, employee = await _team(async_client)
    manager_user = uuid.uuid4()
    manager_headers = _headers("employee", manager["id"], user_id=manager_user)
    promotion = (
        await async_client.post(f"{BASE_URL}/promotions", json=_proposal(employee["id"]), headers=manager_headers)
    ).json()
    bystander = await _create_employee(async_client, "PR09")

    # The proposer sees it even though it is about someone else.
    resp = await async_client.get(f"{BASE_URL}/promotions/{promotion['id']}", headers=manager_headers)
    assert resp.status_code == 200
    listed = (await async_client.get(f"{BASE_URL}/promotions", headers=manager_headers)).json()
    assert listed["total"] == 1

    own = (await async_client.get(f"{BASE_URL}/promotions", headers=_headers("employee", employee["id"]))).json()
    assert own["total"] == 1

    resp = await async_client.get(
        f"{BASE_URL}/promotions/{promotion['id']}", headers=_headers("employee", bystander["id"])
    )
    assert resp.status_code == 403
    others = (await async_client.get(f"{BASE_URL}/promotions", headers=_headers("employee", bystander["id"]))).json()
    assert others["total"] == 0

    everyone = (await async_client.get(f"{BASE_URL}/promotions?status=LINE_MANAGER_PENDING", headers=HR_HEADERS)).json()
    assert everyone["total"] == 1


async def test_approval_details_hidden_from_bystanders(async_client: AsyncClient) -> None:
    _, employee = await _team(async_client)
    bystander = await _create_employee(async_client, "PR09")
    resp = await async_client.post(
        f"{BASE_URL}/promotions", json=_proposal(employee["id"], proposed_salary="99000"), headers=HR_HEADERS
    )
    promotion = resp.json()
    bystander_headers = _headers("employee", bystander["id"])

    resp = await async_client.get(f"{BASE_URL}/promotions/{promotion['id']}", headers=bystander_headers)
    assert resp.status_code == 403
    status_url = f"{BASE_URL}/approvals/entities/PROMOTION/{promotion['id']}"
    resp = await async_client.get(status_url, headers=bystander_headers)
    assert resp.status_code == 403
    assert "99000" not in resp.text
    assert (await async_client.get(f"{status_url}/history", headers=bystander_headers)).status_code == 403
