"""Integration tests for salary structures, deductions, payroll runs and reports."""

from __future__ import annotations

import csv
import io
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from app.models.notification import NotificationQueueItem

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

COMPANY_ID = uuid.uuid4()
BASE_URL = f"/companies/{COMPANY_ID}"
PAYROLL_URL = f"{BASE_URL}/payroll"


def _headers(role: str, employee_id: str | None = None) -> dict:
    headers = {
        "X-Company-Id": str(COMPANY_ID),
        "X-User-Id": str(uuid.uuid4()),
        "X-Role": role,
    }
    if employee_id is not None:
        headers["X-Employee-Id"] = employee_id
    return headers


HR_HEADERS = _headers("hr")
FINANCE_HEADERS = _headers("finance")
MANAGEMENT_HEADERS = _headers("management")


async def _create_employee(client: AsyncClient, staff_id: str, **extra: object) -> dict:
    payload = {
        "staff_id": staff_id,
        "first_name": "Pay",
        "last_name": staff_id,
        "email": f"{staff_id.lower()}@example.co.ke",
        "employment_date": "2024-01-01",
        **extra,
    }
    resp = await client.post(f"{BASE_URL}/employees", json=payload, headers=HR_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _create_structure(
    client: AsyncClient, employee_id: str, basic: str = "50000", effective: str = "2025-01-01", **extra: object
) -> dict:
    resp = await client.post(
        f"{BASE_URL}/employees/{employee_id}/salary-structures",
        json={"basic_salary": basic, "effective_date": effective, **extra},
        headers=HR_HEADERS,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _create_run(client: AsyncClient, month: int = 6, year: int = 2025) -> dict:
    resp = await client.post(f"{PAYROLL_URL}/runs", json={"month": month, "year": year}, headers=HR_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _process(client: AsyncClient, run_id: str) -> dict:
    resp = await client.post(f"{PAYROLL_URL}/runs/{run_id}/process", headers=HR_HEADERS)
    assert resp.status_code == 200, resp.text
    return resp.json()


async def _approve_run(client: AsyncClient, run_id: str) -> None:
    """Submit a processed run and walk it through finance and management."""
    resp = await client.post(f"{PAYROLL_URL}/runs/{run_id}/submit", headers=HR_HEADERS)
    assert resp.status_code == 200, resp.text
    approval_id = (await client.get(f"{BASE_URL}/approvals/entities/PAYROLL/{run_id}", headers=HR_HEADERS)).json()[
        "request"
    ]["id"]
    for headers in (FINANCE_HEADERS, MANAGEMENT_HEADERS):
        resp = await client.post(
            f"{BASE_URL}/approvals/{approval_id}/process", json={"action": "APPROVED"}, headers=headers
        )
        assert resp.status_code == 200, resp.text


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------


async def test_preview_reference_salary(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        f"{PAYROLL_URL}/preview", json={"basic_salary": "50000"}, headers=_headers("employee")
    )
    assert resp.status_code == 200
    data = resp.json()
    calc = data["calculation"]
    assert Decimal(calc["gross_pay"]) == Decimal("50000.00")
    assert Decimal(calc["nssf_employee"]) == Decimal("3000.00")
    assert Decimal(calc["shif_employee"]) == Decimal("1375.00")
    assert Decimal(calc["ahl_employee"]) == Decimal("750.00")
    assert Decimal(calc["taxable_pay"]) == Decimal("44875.00")
    assert Decimal(calc["paye"]) == Decimal("5845.85")
    assert Decimal(calc["net_pay"]) == Decimal("39029.15")
    assert Decimal(calc["cost_to_company"]) == Decimal("53800.00")
    assert [Decimal(b["amount"]) for b in data["tax_bands"]] == [
        Decimal("24000.00"),
        Decimal("8333.00"),
        Decimal("12542.00"),
    ]


async def test_preview_rejects_negative_salary(async_client: AsyncClient) -> None:
    resp = await async_client.post(f"{PAYROLL_URL}/preview", json={"basic_salary": "-1"}, headers=HR_HEADERS)
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Salary structures and deductions
# ---------------------------------------------------------------------------


async def test_salary_structure_history(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "PY01")
    await _create_structure(async_client, employee["id"], basic="40000", effective="2024-01-01")
    latest = await _create_structure(
        async_client,
        employee["id"],
        basic="45000",
        effective="2025-01-01",
        housing_allowance="5000",
        other_allowances={"Hardship": "1500"},
    )
    assert Decimal(latest["other_allowances"]["Hardship"]) == Decimal("1500")

    resp = await async_client.get(
        f"{BASE_URL}/employees/{employee['id']}/salary-structures", headers=_headers("employee", employee["id"])
    )
    assert resp.status_code == 200
    assert [Decimal(s["basic_salary"]) for s in resp.json()["items"]] == [Decimal("45000"), Decimal("40000")]


async def test_salary_structure_permissions(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "PY02")
    other = await _create_employee(async_client, "PY03")
    resp = await async_client.post(
        f"{BASE_URL}/employees/{employee['id']}/salary-structures",
        json={"basic_salary": "99999", "effective_date": "2025-01-01"},
        headers=_headers("employee", employee["id"]),
    )
    assert resp.status_code == 403

    resp = await async_client.get(
        f"{BASE_URL}/employees/{employee['id']}/salary-structures", headers=_headers("employee", other["id"])
    )
    assert resp.status_code == 403


async def test_recurring_deduction_lifecycle(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "PY04")
    resp = await async_client.post(
        f"{BASE_URL}/employees/{employee['id']}/deductions",
        json={"deduction_type": "SACCO", "label": "Sacco shares", "amount": "2500", "start_date": "2025-01-01"},
        headers=FINANCE_HEADERS,
    )
    assert resp.status_code == 201, resp.text
    deduction = resp.json()

    resp = await async_client.patch(
        f"{PAYROLL_URL}/deductions/{deduction['id']}", json={"amount": "3000"}, headers=FINANCE_HEADERS
    )
    assert resp.status_code == 200
    assert Decimal(resp.json()["amount"]) == Decimal("3000")

    resp = await async_client.patch(
        f"{PAYROLL_URL}/deductions/{deduction['id']}", json={"end_date": "2024-12-31"}, headers=FINANCE_HEADERS
    )
    assert resp.status_code == 400

    resp = await async_client.patch(
        f"{PAYROLL_URL}/deductions/{deduction['id']}", json={"is_active": False}, headers=FINANCE_HEADERS
    )
    assert resp.json()["is_active"] is False

    listed = (await async_client.get(f"{BASE_URL}/employees/{employee['id']}/deductions", headers=HR_HEADERS)).json()
    assert listed["total"] == 0
    listed = (
        await async_client.get(
            f"{BASE_URL}/employees/{employee['id']}/deductions?include_inactive=true", headers=HR_HEADERS
        )
    ).json()
    assert listed["total"] == 1


async def test_recurring_deduction_rejects_unknown_type(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "PY05")
    resp = await async_client.post(
        f"{BASE_URL}/employees/{employee['id']}/deductions",
        json={"deduction_type": "GYM", "amount": "500", "start_date": "2025-01-01"},
        headers=FINANCE_HEADERS,
    )
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


async def test_create_run_is_unique_per_month(async_client: AsyncClient) -> None:
    run = await _create_run(async_client)
    assert run["status"] == "DRAFT"
    resp = await async_client.post(f"{PAYROLL_URL}/runs", json={"month": 6, "year": 2025}, headers=FINANCE_HEADERS)
    assert resp.status_code == 409


async def test_runs_require_payroll_role(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        f"{PAYROLL_URL}/runs", json={"month": 6, "year": 2025}, headers=_headers("management")
    )
    assert resp.status_code == 403


async def test_process_run_computes_payslips(async_client: AsyncClient) -> None:
    full = await _create_employee(async_client, "PY10", kra_pin="A000000010Z")
    joiner = await _create_employee(async_client, "PY11", employment_date="2025-06-16")
    no_structure = await _create_employee(async_client, "PY12")
    future = await _create_employee(async_client, "PY13")
    await _create_employee(async_client, "PY14", status="SUSPENDED")
    await _create_structure(async_client, full["id"])
    await _create_structure(async_client, joiner["id"])
    await _create_structure(async_client, future["id"], effective="2025-07-01")

    run = await _create_run(async_client)
    result = await _process(async_client, run["id"])
    assert result["payslip_count"] == 2
    assert set(result["skipped_employee_ids"]) == {no_structure["id"], future["id"]}
    assert result["run"]["status"] == "PROCESSING"
    assert result["run"]["employee_count"] == 2
    assert Decimal(result["run"]["total_gross"]) == Decimal("75000.00")

    payslips = (await async_client.get(f"{PAYROLL_URL}/runs/{run['id']}/payslips", headers=HR_HEADERS)).json()
    by_employee = {p["employee_id"]: p for p in payslips["items"]}
    assert Decimal(by_employee[full["id"]]["net_pay"]) == Decimal("39029.15")
    prorated = by_employee[joiner["id"]]
    assert prorated["calendar_days"] == 30
    assert prorated["days_worked"] == 15
    assert Decimal(prorated["gross_pay"]) == Decimal("25000.00")
    assert Decimal(prorated["nssf_employee"]) == Decimal("1500.00")
    assert Decimal(prorated["paye"]) == 0


async def test_process_applies_deductions(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "PY20")
    await _create_structure(async_client, employee["id"])
    await async_client.post(
        f"{BASE_URL}/employees/{employee['id']}/deductions",
        json={"deduction_type": "HELB", "amount": "2000", "start_date": "2025-01-01"},
        headers=FINANCE_HEADERS,
    )
    # Ended before June, so it is ignored.
    await async_client.post(
        f"{BASE_URL}/employees/{employee['id']}/deductions",
        json={"deduction_type": "ADVANCE", "amount": "700", "start_date": "2025-01-01", "end_date": "2025-05-31"},
        headers=FINANCE_HEADERS,
    )
    run = await _create_run(async_client)
    resp = await async_client.put(
        f"{PAYROLL_URL}/runs/{run['id']}/deductions",
        json={
            "items": [
                {"employee_id": employee["id"], "deduction_type": "LOAN", "label": "Staff loan", "amount": "1000"}
            ]
        },
        headers=FINANCE_HEADERS,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["total"] == 1

    await _process(async_client, run["id"])
    payslip = (await async_client.get(f"{PAYROLL_URL}/runs/{run['id']}/payslips", headers=HR_HEADERS)).json()[
        "items"
    ][0]
    assert Decimal(payslip["helb"]) == Decimal("2000.00")
    assert {k: Decimal(v) for k, v in payslip["other_deductions"].items()} == {"Staff loan": Decimal("1000.00")}
    assert Decimal(payslip["total_deductions"]) == Decimal("13970.85")
    assert Decimal(payslip["net_pay"]) == Decimal("36029.15")


async def test_run_deductions_reject_unknown_employee(async_client: AsyncClient) -> None:
    run = await _create_run(async_client)
    resp = await async_client.put(
        f"{PAYROLL_URL}/runs/{run['id']}/deductions",
        json={"items": [{"employee_id": str(uuid.uuid4()), "deduction_type": "OTHER", "amount": "10"}]},
        headers=FINANCE_HEADERS,
    )
    assert resp.status_code == 400


async def test_submit_requires_payslips(async_client: AsyncClient) -> None:
    run = await _create_run(async_client)
    resp = await async_client.post(f"{PAYROLL_URL}/runs/{run['id']}/submit", headers=HR_HEADERS)
    assert resp.status_code == 400

    await _process(async_client, run["id"])
    resp = await async_client.post(f"{PAYROLL_URL}/runs/{run['id']}/submit", headers=HR_HEADERS)
    assert resp.status_code == 400
    assert "Process the payroll run" in resp.json()["detail"]


async def test_run_approval_and_payment(async_client: AsyncClient, db_session: AsyncSession) -> None:
    employee = await _create_employee(async_client, "PY30")
    await _create_structure(async_client, employee["id"])
    run = await _create_run(async_client)
    await _process(async_client, run["id"])

    resp = await async_client.post(f"{PAYROLL_URL}/runs/{run['id']}/submit", headers=HR_HEADERS)
    assert resp.json()["status"] == "FINANCE_PENDING"

    # Locked once submitted.
    locked = await async_client.post(f"{PAYROLL_URL}/runs/{run['id']}/process", headers=HR_HEADERS)
    assert locked.status_code == 400
    early = await async_client.post(f"{PAYROLL_URL}/runs/{run['id']}/mark-paid", headers=FINANCE_HEADERS)
    assert early.status_code == 400

    approval_id = (
        await async_client.get(f"{BASE_URL}/approvals/entities/PAYROLL/{run['id']}", headers=HR_HEADERS)
    ).json()["request"]["id"]
    for headers in (FINANCE_HEADERS, MANAGEMENT_HEADERS):
        await async_client.post(
            f"{BASE_URL}/approvals/{approval_id}/process", json={"action": "APPROVED"}, headers=headers
        )
    current = (await async_client.get(f"{PAYROLL_URL}/runs/{run['id']}", headers=HR_HEADERS)).json()
    assert current["status"] == "APPROVED"

    denied = await async_client.post(f"{PAYROLL_URL}/runs/{run['id']}/mark-paid", headers=HR_HEADERS)
    assert denied.status_code == 403

    resp = await async_client.post(f"{PAYROLL_URL}/runs/{run['id']}/mark-paid", headers=FINANCE_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["status"] == "PAID"
    assert resp.json()["paid_at"] is not None

    result = await db_session.execute(
        select(NotificationQueueItem).where(col(NotificationQueueItem.type) == "PAYSLIP_READY")
    )
    notifications = list(result.scalars().all())
    assert [n.recipient_id for n in notifications] == [uuid.UUID(employee["id"])]
    assert notifications[0].recipient_email == "py30@example.co.ke"


async def test_rejected_run_can_be_reprocessed(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "PY40")
    await _create_structure(async_client, employee["id"])
    run = await _create_run(async_client)
    await _process(async_client, run["id"])
    await async_client.post(f"{PAYROLL_URL}/runs/{run['id']}/submit", headers=HR_HEADERS)
    approval_id = (
        await async_client.get(f"{BASE_URL}/approvals/entities/PAYROLL/{run['id']}", headers=HR_HEADERS)
    ).json()["request"]["id"]
    await async_client.post(
        f"{BASE_URL}/approvals/{approval_id}/process",
        json={"action": "REJECTED", "comments": "Missing overtime"},
        headers=FINANCE_HEADERS,
    )
    current = (await async_client.get(f"{PAYROLL_URL}/runs/{run['id']}", headers=HR_HEADERS)).json()
    assert current["status"] == "FINANCE_REJECTED"
    assert current["rejection_reason"] == "Missing overtime"

    result = await _process(async_client, run["id"])
    assert result["run"]["status"] == "PROCESSING"
    assert result["run"]["rejection_reason"] is None
    resp = await async_client.post(f"{PAYROLL_URL}/runs/{run['id']}/submit", headers=HR_HEADERS)
    assert resp.json()["status"] == "FINANCE_PENDING"


async def test_list_runs_filters(async_client: AsyncClient) -> None:
    await _create_run(async_client, month=5)
    await _create_run(async_client, month=6)
    await _create_run(async_client, month=12, year=2024)

    runs = (await async_client.get(f"{PAYROLL_URL}/runs?year=2025", headers=FINANCE_HEADERS)).json()
    assert [r["month"] for r in runs["items"]] == [6, 5]
    drafts = (await async_client.get(f"{PAYROLL_URL}/runs?status=DRAFT", headers=FINANCE_HEADERS)).json()
    assert drafts["total"] == 3


# ---------------------------------------------------------------------------
# Payslip visibility and reports
# ---------------------------------------------------------------------------


async def test_employee_sees_payslips_only_after_approval(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "PY50")
    colleague = await _create_employee(async_client, "PY51")
    await _create_structure(async_client, employee["id"])
    run = await _create_run(async_client)
    await _process(async_client, run["id"])
    payslip_id = (await async_client.get(f"{PAYROLL_URL}/runs/{run['id']}/payslips", headers=HR_HEADERS)).json()[
        "items"
    ][0]["id"]
    own = _headers("employee", employee["id"])

    assert (await async_client.get(f"{PAYROLL_URL}/payslips/{payslip_id}", headers=own)).status_code == 404
    listed = (await async_client.get(f"{BASE_URL}/employees/{employee['id']}/payslips", headers=own)).json()
    assert listed["total"] == 0
    assert (await async_client.get(f"{PAYROLL_URL}/payslips/{payslip_id}", headers=HR_HEADERS)).status_code == 200

    await _approve_run(async_client, run["id"])

    resp = await async_client.get(f"{PAYROLL_URL}/payslips/{payslip_id}", headers=own)
    assert resp.status_code == 200
    assert Decimal(resp.json()["net_pay"]) == Decimal("39029.15")
    listed = (await async_client.get(f"{BASE_URL}/employees/{employee['id']}/payslips?year=2025", headers=own)).json()
    assert listed["total"] == 1

    other = await async_client.get(
        f"{PAYROLL_URL}/payslips/{payslip_id}", headers=_headers("employee", colleague["id"])
    )
    assert other.status_code == 403


async def test_export_run_csv(async_client: AsyncClient) -> None:
    employee = await _create_employee(
        async_client, "PY60", kra_pin="A000000060Z", bank_name="KCB", account_number="1234567890"
    )
    await _create_structure(async_client, employee["id"])
    run = await _create_run(async_client)
    await _process(async_client, run["id"])

    resp = await async_client.get(f"{PAYROLL_URL}/runs/{run['id']}/export", headers=FINANCE_HEADERS)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "attachment" in resp.headers["content-disposition"]

    rows = list(csv.DictReader(io.StringIO(resp.text)))
    assert len(rows) == 1
    row = rows[0]
    assert row["Staff ID"] == "PY60"
    assert row["Employee Name"] == "Pay PY60"
    assert row["KRA PIN"] == "A000000060Z"
    assert Decimal(row["Net Pay"]) == Decimal("39029.15")
    assert Decimal(row["PAYE"]) == Decimal("5845.85")
    assert row["Bank Name"] == "KCB"


async def test_statutory_summary(async_client: AsyncClient) -> None:
    full = await _create_employee(async_client, "PY70")
    joiner = await _create_employee(async_client, "PY71", employment_date="2025-06-16")
    await _create_structure(async_client, full["id"])
    await _create_structure(async_client, joiner["id"])
    run = await _create_run(async_client)
    await _process(async_client, run["id"])

    resp = await async_client.get(f"{PAYROLL_URL}/runs/{run['id']}/statutory-summary", headers=FINANCE_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["employee_count"] == 2
    assert Decimal(data["paye"]) == Decimal("5845.85")
    assert Decimal(data["nssf_employee"]) == Decimal("4500.00")
    assert Decimal(data["nssf_total"]) == Decimal("9000.00")
    assert Decimal(data["shif"]) == Decimal("2062.50")
    assert Decimal(data["ahl_total"]) == Decimal("2250.00")
    assert Decimal(data["nita"]) == Decimal("100.00")


async def test_p9_uses_finalized_runs(async_client: AsyncClient) -> None:
    employee = await _create_employee(async_client, "PY80", kra_pin="A000000080Z")
    await _create_structure(async_client, employee["id"])
    approved = await _create_run(async_client, month=5)
    await _process(async_client, approved["id"])
    await _approve_run(async_client, approved["id"])
    pending = await _create_run(async_client, month=6)
    await _process(async_client, pending["id"])

    resp = await async_client.get(
        f"{BASE_URL}/employees/{employee['id']}/p9?year=2025", headers=_headers("employee", employee["id"])
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["staff_id"] == "PY80"
    assert data["kra_pin"] == "A000000080Z"
    assert [m["month"] for m in data["months"]] == [5]
    assert data["totals"]["month"] is None
    assert Decimal(data["totals"]["paye"]) == Decimal("5845.85")
    assert Decimal(data["totals"]["personal_relief"]) == Decimal("2400.00")
