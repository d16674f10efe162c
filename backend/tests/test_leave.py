"""Integration tests for leave types, balances and leave requests."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from httpx import AsyncClient

COMPANY_ID = uuid.uuid4()
HR_USER_ID = uuid.uuid4()
BASE_URL = f"/companies/{COMPANY_ID}"
HR_HEADERS = {
    "X-Company-Id": str(COMPANY_ID),
    "X-User-Id": str(HR_USER_ID),
    "X-Role": "hr",
}
ADMIN_HEADERS = {
    "X-Company-Id": str(COMPANY_ID),
    "X-User-Id": str(uuid.uuid4()),
    "X-Role": "admin",
}

# 2025-03-03 is a Monday.
WEEK_START = "2025-03-03"
WEEK_END = "2025-03-07"


def _self_headers(employee_id: str) -> dict:
    return {
        "X-Company-Id": str(COMPANY_ID),
        "X-User-Id": str(uuid.uuid4()),
        "X-Role": "employee",
        "X-Employee-Id": employee_id,
    }


async def _create_employee(client: AsyncClient, staff_id: str, **extra: object) -> dict:
    resp = await client.post(
        f"{BASE_URL}/employees",
        json={"staff_id": staff_id, "first_name": "Leave", "last_name": staff_id, **extra},
        headers=HR_HEADERS,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _create_leave_type(client: AsyncClient, name: str = "Annual", days: str = "21", **extra: object) -> dict:
    resp = await client.post(
        f"{BASE_URL}/leave-types",
        json={"name": name, "days_per_year": days, **extra},
        headers=HR_HEADERS,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _request_leave(
    client: AsyncClient,
    headers: dict,
    leave_type_id: str,
    start: str = WEEK_START,
    end: str = WEEK_END,
    **extra: object,
):
    return await client.post(
        f"{BASE_URL}/leave-requests",
        json={"leave_type_id": leave_type_id, "start_date": start, "end_date": end, **extra},
        headers=headers,
    )


async def _balance(client: AsyncClient, employee_id: str, leave_type_id: str, year: int = 2025) -> dict:
    resp = await client.get(f"{BASE_URL}/employees/{employee_id}/leave-balances?year={year}", headers=HR_HEADERS)
    assert resp.status_code == 200
    return next(b for b in resp.json()["items"] if b["leave_type_id"] == leave_type_id)


# ---------------------------------------------------------------------------
# Leave types
# ---------------------------------------------------------------------------


async def test_create_and_list_leave_types(async_client: AsyncClient) -> None:
    await _create_leave_type(async_client, "Sick", "14", is_paid=True)
    unpaid = await _create_leave_type(async_client, "Unpaid", "30", is_paid=False, description="Without pay")
    assert unpaid["is_paid"] is False
    assert unpaid["description"] == "Without pay"

    resp = await async_client.get(f"{BASE_URL}/leave-types", headers=_self_headers(str(uuid.uuid4())))
    assert resp.status_code == 200
    assert [t["name"] for t in resp.json()["items"]] == ["Sick", "Unpaid"]


async def test_leave_type_name_is_unique_case_insensitive(async_client: AsyncClient) -> None:
    await _create_leave_type(async_client, "Annual")
    resp = await async_client.post(
        f"{BASE_URL}/leave-types", json={"name": "ANNUAL", "days_per_year": "10"}, headers=HR_HEADERS
    )
    assert resp.status_code == 409


async def test_leave_type_requires_hr(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        f"{BASE_URL}/leave-types",
        json={"name": "Annual", "days_per_year": "21"},
        headers=_self_headers(str(uuid.uuid4())),
    )
    assert resp.status_code == 403


async def test_deactivated_leave_type_hidden_by_default(async_client: AsyncClient) -> None:
    leave_type = await _create_leave_type(async_client, "Study")
    resp = await async_client.patch(
        f"{BASE_URL}/leave-types/{leave_type['id']}", json={"is_active": False}, headers=HR_HEADERS
    )
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    active = (await async_client.get(f"{BASE_URL}/leave-types", headers=HR_HEADERS)).json()
    assert active["total"] == 0
    everything = (await async_client.get(f"{BASE_URL}/leave-types?include_inactive=true", headers=HR_HEADERS)).json()
    assert everything["total"] == 1


async def test_delete_unused_leave_type(async_client: AsyncClient) -> None:
    leave_type = await _create_leave_type(async_client)
    resp = await async_client.delete(f"{BASE_URL}/leave-types/{leave_type['id']}", headers=HR_HEADERS)
    assert resp.status_code == 204


async def test_delete_leave_type_with_requests_conflicts(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "LV01")
    leave_type = await _create_leave_type(async_client)
    resp = await _request_leave(async_client, _self_headers(employee["id"]), leave_type["id"])
    assert resp.status_code == 201

    resp = await async_client.delete(f"{BASE_URL}/leave-types/{leave_type['id']}", headers=HR_HEADERS)
    assert resp.status_code == 409


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


async def test_balance_created_from_entitlement(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "LV02")
    leave_type = await _create_leave_type(async_client, days="21")

    balance = await _balance(async_client, employee["id"], leave_type["id"])
    assert balance["leave_type_name"] == "Annual"
    assert Decimal(balance["entitled_days"]) == Decimal("21")
    assert Decimal(balance["used_days"]) == 0
    assert Decimal(balance["available_days"]) == Decimal("21")


async def test_employee_cannot_read_other_balances(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "LV03")
    other = await _create_employee(async_client, "LV04")
    await _create_leave_type(async_client)

    resp = await async_client.get(
        f"{BASE_URL}/employees/{other['id']}/leave-balances?year=2025", headers=_self_headers(employee["id"])
    )
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


async def test_request_holds_pending_days(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "LV05")
    leave_type = await _create_leave_type(async_client)

    resp = await _request_leave(async_client, _self_headers(employee["id"]), leave_type["id"], reason="Family visit")
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["employee_id"] == employee["id"]
    assert Decimal(data["days_requested"]) == Decimal("5")
    assert data["status"] == "LINE_MANAGER_PENDING"

    balance = await _balance(async_client, employee["id"], leave_type["id"])
    assert Decimal(balance["pending_days"]) == Decimal("5")
    assert Decimal(balance["available_days"]) == Decimal("16")


async def test_request_skips_weekends_and_holidays(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "LV06")
    leave_type = await _create_leave_type(async_client)
    await async_client.post(
        f"{BASE_URL}/holidays", json={"name": "Company Day", "date": "2025-03-05"}, headers=HR_HEADERS
    )

    # Monday to the following Monday: six weekdays less one holiday.
    resp = await _request_leave(
        async_client, _self_headers(employee["id"]), leave_type["id"], start=WEEK_START, end="2025-03-10"
    )
    assert resp.status_code == 201
    assert Decimal(resp.json()["days_requested"]) == Decimal("5")


async def test_request_without_employee_is_rejected(async_client: AsyncClient) -> None:
    leave_type = await _create_leave_type(async_client)
    resp = await _request_leave(async_client, HR_HEADERS, leave_type["id"])
    assert resp.status_code == 400


async def test_only_hr_requests_on_behalf(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "LV07")
    colleague = await _create_employee(async_client, "LV08")
    leave_type = await _create_leave_type(async_client)

    resp = await _request_leave(
        async_client, _self_headers(employee["id"]), leave_type["id"], employee_id=colleague["id"]
    )
    assert resp.status_code == 403

    resp = await _request_leave(async_client, HR_HEADERS, leave_type["id"], employee_id=colleague["id"])
    assert resp.status_code == 201
    assert resp.json()["employee_id"] == colleague["id"]


async def test_request_inactive_leave_type(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "LV09")
    leave_type = await _create_leave_type(async_client)
    await async_client.patch(
        f"{BASE_URL}/leave-types/{leave_type['id']}", json={"is_active": False}, headers=HR_HEADERS
    )

    resp = await _request_leave(async_client, _self_headers(employee["id"]), leave_type["id"])
    assert resp.status_code == 400


async def test_request_inverted_dates(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "LV10")
    leave_type = await _create_leave_type(async_client)
    resp = await _request_leave(
        async_client, _self_headers(employee["id"]), leave_type["id"], start=WEEK_END, end=WEEK_START
    )
    assert resp.status_code == 400


async def test_request_weekend_only(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "LV11")
    leave_type = await _create_leave_type(async_client)
    resp = await _request_leave(
        async_client, _self_headers(employee["id"]), leave_type["id"], start="2025-03-08", end="2025-03-09"
    )
    assert resp.status_code == 400


async def test_overlapping_request_conflicts(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "LV12")
    leave_type = await _create_leave_type(async_client)
    headers = _self_headers(employee["id"])
    assert (await _request_leave(async_client, headers, leave_type["id"])).status_code == 201

    resp = await _request_leave(async_client, headers, leave_type["id"], start="2025-03-06", end="2025-03-11")
    assert resp.status_code == 409


async def test_insufficient_balance(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "LV13")
    leave_type = await _create_leave_type(async_client, days="3")
    resp = await _request_leave(async_client, _self_headers(employee["id"]), leave_type["id"])
    assert resp.status_code == 400
    assert "Insufficient leave balance" in resp.json()["detail"]


async def test_approval_moves_pending_to_used(async_client: AsyncClient) -> None:
    manager = await _create_employee(async_client, "LV14")
    employee = await _create_employee(async_client, "LV15", manager_id=manager["id"])
    leave_type = await _create_leave_type(async_client)
    leave = (await _request_leave(async_client, _self_headers(employee["id"]), leave_type["id"])).json()

    status_resp = await async_client.get(f"{BASE_URL}/approvals/entities/LEAVE/{leave['id']}", headers=HR_HEADERS)
    approval_id = status_resp.json()["request"]["id"]
    for headers in (_self_headers(manager["id"]), HR_HEADERS):
        resp = await async_client.post(
            f"{BASE_URL}/approvals/{approval_id}/process", json={"action": "APPROVED"}, headers=headers
        )
        assert resp.status_code == 200, resp.text

    balance = await _balance(async_client, employee["id"], leave_type["id"])
    assert Decimal(balance["used_days"]) == Decimal("5")
    assert Decimal(balance["pending_days"]) == 0
    assert Decimal(balance["available_days"]) == Decimal("16")


async def test_rejection_releases_pending_days(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "LV16")
    leave_type = await _create_leave_type(async_client)
    leave = (await _request_leave(async_client, _self_headers(employee["id"]), leave_type["id"])).json()

    status_resp = await async_client.get(f"{BASE_URL}/approvals/entities/LEAVE/{leave['id']}", headers=HR_HEADERS)
    approval_id = status_resp.json()["request"]["id"]
    resp = await async_client.post(
        f"{BASE_URL}/approvals/{approval_id}/process",
        json={"action": "REJECTED", "comments": "Peak season"},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 200

    balance = await _balance(async_client, employee["id"], leave_type["id"])
    assert Decimal(balance["pending_days"]) == 0
    assert Decimal(balance["used_days"]) == 0

    # Released days can be requested again.
    again = await _request_leave(async_client, _self_headers(employee["id"]), leave_type["id"])
    assert again.status_code == 201


async def test_cancel_releases_pending_days(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "LV17")
    leave_type = await _create_leave_type(async_client)
    headers = _self_headers(employee["id"])
    create = await async_client.post(
        f"{BASE_URL}/leave-requests",
        json={"leave_type_id": leave_type["id"], "start_date": WEEK_START, "end_date": WEEK_END},
        headers=headers,
    )
    leave = create.json()

    other = _self_headers(employee["id"])
    denied = await async_client.post(f"{BASE_URL}/leave-requests/{leave['id']}/cancel", headers=other)
    assert denied.status_code == 403

    resp = await async_client.post(f"{BASE_URL}/leave-requests/{leave['id']}/cancel", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"

    balance = await _balance(async_client, employee["id"], leave_type["id"])
    assert Decimal(balance["pending_days"]) == 0

    again = await async_client.post(f"{BASE_URL}/leave-requests/{leave['id']}/cancel", headers=headers)
    assert again.status_code == 400


async def test_employees_only_list_their_own_requests(async_client: AsyncClient) -> None:
    first = await _create_employee(async_client, "LV18")
    second = await _create_employee(async_client, "LV19")
    leave_type = await _create_leave_type(async_client)
    await _request_leave(async_client, _self_headers(first["id"]), leave_type["id"])
    await _request_leave(async_client, _self_headers(second["id"]), leave_type["id"])

    mine = (await async_client.get(f"{BASE_URL}/leave-requests", headers=_self_headers(first["id"]))).json()
    assert mine["total"] == 1
    assert mine["items"][0]["employee_id"] == first["id"]

    everyone = (await async_client.get(f"{BASE_URL}/leave-requests", headers=HR_HEADERS)).json()
    assert everyone["total"] == 2

    filtered = (
        await async_client.get(f"{BASE_URL}/leave-requests?status=LINE_MANAGER_PENDING", headers=HR_HEADERS)
    ).json()
    assert filtered["total"] == 2


async def test_employee_cannot_read_other_request(async_client: AsyncClient) -> None:
    first = await _create_employee(async_client, "LV20")
    second = await _create_employee(async_client, "LV21")
    leave_type = await _create_leave_type(async_client)
    leave = (await _request_leave(async_client, _self_headers(first["id"]), leave_type["id"])).json()

    resp = await async_client.get(f"{BASE_URL}/leave-requests/{leave['id']}", headers=_self_headers(second["id"]))
    assert resp.status_code == 403
    resp = await async_client.get(f"{BASE_URL}/leave-requests/{leave['id']}", headers=_self_headers(first["id"]))
    assert resp.status_code == 200
