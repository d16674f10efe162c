"""Integration tests for the leave and headcount reports."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from httpx import AsyncClient

COMPANY_ID = uuid.uuid4()
BASE_URL = f"/companies/{COMPANY_ID}"
HR_HEADERS = {
    "X-Company-Id": str(COMPANY_ID),
    "X-User-Id": str(uuid.uuid4()),
    "X-Role": "hr",
}
ADMIN_HEADERS = {
    "X-Company-Id": str(COMPANY_ID),
    "X-User-Id": str(uuid.uuid4()),
    "X-Role": "admin",
}


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
        json={"staff_id": staff_id, "first_name": "Report", "last_name": staff_id, **extra},
        headers=HR_HEADERS,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _create_department(client: AsyncClient, name: str) -> dict:
    resp = await client.post(f"{BASE_URL}/departments", json={"name": name}, headers=HR_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _create_leave_type(client: AsyncClient, name: str, days: str) -> dict:
    resp = await client.post(
        f"{BASE_URL}/leave-types", json={"name": name, "days_per_year": days}, headers=HR_HEADERS
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _request_leave(client: AsyncClient, employee_id: str, leave_type_id: str, start: str, end: str) -> dict:
    resp = await client.post(
        f"{BASE_URL}/leave-requests",
        json={"leave_type_id": leave_type_id, "start_date": start, "end_date": end},
        headers=_self_headers(employee_id),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _decide(client: AsyncClient, leave_id: str, action: str) -> None:
    """Drive every step of the leave's approval with the admin role."""
    status_resp = await client.get(f"{BASE_URL}/approvals/entities/LEAVE/{leave_id}", headers=ADMIN_HEADERS)
    approval_id = status_resp.json()["request"]["id"]
    while True:
        resp = await client.post(
            f"{BASE_URL}/approvals/{approval_id}/process", json={"action": action}, headers=ADMIN_HEADERS
        )
        assert resp.status_code == 200, resp.text
        if resp.json()["status"] != "PENDING":
            return


# ---------------------------------------------------------------------------
# Leave report
# ---------------------------------------------------------------------------


async def test_leave_report_counts_usage_and_low_balances(async_client: AsyncClient) -> None:
    first = await _create_employee(async_client, "RP01")
    second = await _create_employee(async_client, "RP02")
    annual = await _create_leave_type(async_client, "Annual", "21")
    sick = await _create_leave_type(async_client, "Sick", "6")

    # Weeks of 2025-03-03 and 2025-03-10 start on Mondays.
    annual_leave = await _request_leave(async_client, first["id"], annual["id"], "2025-03-03", "2025-03-07")
    await _decide(async_client, annual_leave["id"], "APPROVED")
    sick_leave = await _request_leave(async_client, first["id"], sick["id"], "2025-03-10", "2025-03-14")
    await _decide(async_client, sick_leave["id"], "APPROVED")
    rejected = await _request_leave(async_client, second["id"], annual["id"], "2025-03-10", "2025-03-11")
    await _decide(async_client, rejected["id"], "REJECTED")
    await _request_leave(async_client, second["id"], annual["id"], "2025-04-07", "2025-04-08")

    resp = await async_client.get(f"{BASE_URL}/reports/leave?year=2025", headers=HR_HEADERS)
    assert resp.status_code == 200, resp.text
    report = resp.json()

    assert report["year"] == 2025
    assert report["total_requests"] == 4
    assert report["requests_by_status"]["APPROVED"] == 2
    assert sum(report["requests_by_status"].values()) == 4
    assert any(status.endswith("_REJECTED") for status in report["requests_by_status"])
    assert any(status.endswith("_PENDING") for status in report["requests_by_status"])

    usage = {u["leave_type_name"]: u for u in report["usage_by_type"]}
    assert list(usage) == ["Annual", "Sick"]
    assert usage["Annual"]["approved_requests"] == 1
    assert Decimal(usage["Annual"]["approved_days"]) == Decimal("5")
    assert Decimal(usage["Sick"]["approved_days"]) == Decimal("5")

    assert Decimal(report["low_balance_threshold"]) == Decimal("5")
    assert len(report["low_balances"]) == 1
    low = report["low_balances"][0]
    assert low["staff_id"] == "RP01"
    assert low["leave_type_name"] == "Sick"
    assert Decimal(low["entitled_days"]) == Decimal("6")
    assert Decimal(low["available_days"]) == Decimal("1")


async def test_leave_report_threshold_is_configurable(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "RP03")
    annual = await _create_leave_type(async_client, "Annual", "21")
    leave = await _request_leave(async_client, employee["id"], annual["id"], "2025-03-03", "2025-03-07")
    await _decide(async_client, leave["id"], "APPROVED")

    default = (await async_client.get(f"{BASE_URL}/reports/leave?year=2025", headers=HR_HEADERS)).json()
    assert default["low_balances"] == []

    raised = (
        await async_client.get(f"{BASE_URL}/reports/leave?year=2025&low_balance_threshold=20", headers=HR_HEADERS)
    ).json()
    assert [b["staff_id"] for b in raised["low_balances"]] == ["RP03"]
    assert Decimal(raised["low_balances"][0]["available_days"]) == Decimal("16")


async def test_leave_report_only_covers_requested_year(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "RP04")
    annual = await _create_leave_type(async_client, "Annual", "21")
    # 2024-03-04 is a Monday.
    leave = await _request_leave(async_client, employee["id"], annual["id"], "2024-03-04", "2024-03-08")
    await _decide(async_client, leave["id"], "APPROVED")

    report = (await async_client.get(f"{BASE_URL}/reports/leave?year=2025", headers=HR_HEADERS)).json()
    assert report["total_requests"] == 0
    assert report["requests_by_status"] == {}
    assert report["usage_by_type"] == []

    previous = (await async_client.get(f"{BASE_URL}/reports/leave?year=2024", headers=HR_HEADERS)).json()
    assert previous["total_requests"] == 1
    assert previous["usage_by_type"][0]["approved_requests"] == 1


async def test_leave_report_requires_hr(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "RP05")
    resp = await async_client.get(f"{BASE_URL}/reports/leave", headers=_self_headers(employee["id"]))
    assert resp.status_code == 403


async def test_leave_report_rejects_negative_threshold(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"{BASE_URL}/reports/leave?low_balance_threshold=-1", headers=HR_HEADERS)
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Employee report
# ---------------------------------------------------------------------------


async def test_employee_report_headcount(async_client: AsyncClient) -> None:
    finance = await _create_department(async_client, "Finance")
    await _create_department(async_client, "Legal")
    operations = await _create_department(async_client, "Operations")

    await _create_employee(async_client, "RP10", department_id=finance["id"])
    await _create_employee(async_client, "RP11", department_id=finance["id"], status="SUSPENDED")
    await _create_employee(async_client, "RP12", department_id=operations["id"])
    await _create_employee(async_client, "RP13")

    resp = await async_client.get(f"{BASE_URL}/reports/employees", headers=HR_HEADERS)
    assert resp.status_code == 200, resp.text
    report = resp.json()

    assert report["total"] == 4
    assert report["by_status"] == {"ACTIVE": 3, "SUSPENDED": 1}
    assert [(d["department_name"], d["headcount"]) for d in report["by_department"]] == [
        ("Finance", 2),
        ("Legal", 0),
        ("Operations", 1),
        ("Unassigned", 1),
    ]
    assert report["by_department"][-1]["department_id"] is None


async def test_employee_report_filters_departments_by_status(async_client: AsyncClient) -> None:
    finance = await _create_department(async_client, "Finance")
    await _create_employee(async_client, "RP20", department_id=finance["id"])
    await _create_employee(async_client, "RP21", department_id=finance["id"], status="SUSPENDED")
    await _create_employee(async_client, "RP22", status="SUSPENDED")

    report = (await async_client.get(f"{BASE_URL}/reports/employees?status=ACTIVE", headers=HR_HEADERS)).json()

    # Status totals always cover the whole company.
    assert report["total"] == 3
    assert report["by_status"] == {"ACTIVE": 1, "SUSPENDED": 2}
    assert [(d["department_name"], d["headcount"]) for d in report["by_department"]] == [("Finance", 1)]


async def test_employee_report_requires_hr(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "RP30")
    resp = await async_client.get(f"{BASE_URL}/reports/employees", headers=_self_headers(employee["id"]))
    assert resp.status_code == 403

    finance = {**HR_HEADERS, "X-Role": "finance"}
    resp = await async_client.get(f"{BASE_URL}/reports/employees", headers=finance)
    assert resp.status_code == 403
