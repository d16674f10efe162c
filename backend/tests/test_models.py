from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from app.models import (
    ApprovalAction,
    ApprovalRequest,
    AuditLog,
    CompanyHoliday,
    Employee,
    LeaveBalance,
    LeaveRequest,
    NotificationQueueItem,
    PayrollRun,
    PerDiemRequest,
    SalaryStructure,
    SQLModel,
    Task,
    WorkflowDefinition,
)
from app.models.enums import (
    ApprovalStatus,
    ApproverRole,
    EmployeeStatus,
    EntityStatus,
    NotificationStatus,
    TaskPriority,
    TaskStatus,
    UserRole,
)

EXPECTED_TABLES = {
    "approval_action",
    "approval_request",
    "audit_log",
    "company_holiday",
    "department",
    "employee",
    "leave_balance",
    "leave_request",
    "leave_type",
    "notification_queue",
    "payroll_run",
    "payroll_run_deduction",
    "payslip",
    "per_diem_rate",
    "per_diem_request",
    "promotion_request",
    "recurring_deduction",
    "salary_structure",
    "task",
    "workflow_definition",
}


def test_all_tables_registered() -> None:
    table_names = set(SQLModel.metadata.tables.keys())
    assert EXPECTED_TABLES.issubset(table_names)


def test_employee_defaults() -> None:
    employee = Employee(company_id=uuid.uuid4(), staff_id="E001", first_name="Amina", last_name="Otieno")
    assert employee.role == UserRole.EMPLOYEE
    assert employee.status == EmployeeStatus.ACTIVE
    assert employee.manager_id is None
    assert employee.id is not None


def test_leave_balance_available_days() -> None:
    balance = LeaveBalance(
        company_id=uuid.uuid4(),
        employee_id=uuid.uuid4(),
        leave_type_id=uuid.uuid4(),
        year=2025,
        entitled_days=Decimal("21"),
        used_days=Decimal("4.5"),
        pending_days=Decimal("3"),
    )
    assert balance.available_days == Decimal("13.5")


def test_approvable_records_start_as_draft() -> None:
    leave = LeaveRequest(
        company_id=uuid.uuid4(),
        employee_id=uuid.uuid4(),
        leave_type_id=uuid.uuid4(),
        start_date=date(2025, 3, 3),
        end_date=date(2025, 3, 4),
        created_by=uuid.uuid4(),
    )
    run = PayrollRun(company_id=uuid.uuid4(), month=6, year=2025, created_by=uuid.uuid4())
    assert leave.status == EntityStatus.DRAFT
    assert leave.approved_by is None
    assert run.status == EntityStatus.DRAFT
    assert run.total_net == Decimal("0")


def test_per_diem_request_amounts_default_to_zero() -> None:
    request = PerDiemRequest(
        company_id=uuid.uuid4(),
        employee_id=uuid.uuid4(),
        destination="Mombasa",
        purpose="Client visit",
        start_date=date(2025, 6, 10),
        end_date=date(2025, 6, 12),
        days=3,
        created_by=uuid.uuid4(),
    )
    assert request.currency == "KES"
    assert request.accommodation_amount == Decimal("0")
    assert request.rate_id is None


def test_salary_structure_allowances_default() -> None:
    structure = SalaryStructure(
        company_id=uuid.uuid4(),
        employee_id=uuid.uuid4(),
        basic_salary=Decimal("50000"),
        effective_date=date(2025, 1, 1),
    )
    assert structure.housing_allowance == Decimal("0")
    assert structure.other_allowances_json is None


def test_entity_status_stage_helpers() -> None:
    assert EntityStatus.pending_for(ApproverRole.LINE_MANAGER) == EntityStatus.LINE_MANAGER_PENDING
    assert EntityStatus.pending_for(ApproverRole.FINANCE) == EntityStatus.FINANCE_PENDING
    assert EntityStatus.rejected_for(ApproverRole.MANAGEMENT) == EntityStatus.MANAGEMENT_REJECTED


def test_workflow_models() -> None:
    definition = WorkflowDefinition(company_id=uuid.uuid4(), entity_type="LEAVE", name="Leave approval")
    assert definition.steps_json == []
    assert definition.is_active is True

    request = ApprovalRequest(
        company_id=uuid.uuid4(),
        entity_type="LEAVE",
        entity_id=uuid.uuid4(),
        requester_id=uuid.uuid4(),
        submitted_by=uuid.uuid4(),
        steps_json=[{"order": 1, "role": "hr"}],
        current_step=1,
    )
    assert request.status == ApprovalStatus.PENDING

    action = ApprovalAction(
        request_id=request.id,
        step_number=1,
        step_role="hr",
        approver_id=uuid.uuid4(),
        action="APPROVED",
    )
    assert action.comments is None


def test_task_defaults() -> None:
    task = Task(company_id=uuid.uuid4(), title="Prepare budget", assigned_to=uuid.uuid4(), assigned_by=uuid.uuid4())
    assert task.priority == TaskPriority.MEDIUM
    assert task.status == TaskStatus.PENDING
    assert task.completed_at is None


def test_notification_defaults() -> None:
    item = NotificationQueueItem(
        company_id=uuid.uuid4(),
        type="TASK_ASSIGNED",
        recipient_email="jane@example.co.ke",
        subject="New task",
        body="You have a new task.",
    )
    assert item.status == NotificationStatus.PENDING
    assert item.retry_count == 0
    assert item.sent_at is None


def test_company_holiday_falls_in() -> None:
    fixed = CompanyHoliday(company_id=uuid.uuid4(), date=date(2025, 12, 12), name="Jamhuri Day")
    assert fixed.falls_in(2025) == date(2025, 12, 12)
    assert fixed.falls_in(2026) is None

    recurring = CompanyHoliday(company_id=uuid.uuid4(), date=date(2024, 10, 20), name="Mashujaa Day", recurring=True)
    assert recurring.falls_in(2026) == date(2026, 10, 20)

    leap = CompanyHoliday(company_id=uuid.uuid4(), date=date(2024, 2, 29), name="Leap day", recurring=True)
    assert leap.falls_in(2025) is None


def test_audit_log_instantiation() -> None:
    log = AuditLog(
        company_id=uuid.uuid4(),
        actor_id=uuid.uuid4(),
        entity_type="EMPLOYEE",
        entity_id=uuid.uuid4(),
        action="CREATE",
    )
    assert log.before_json is None
    assert log.after_json is None
    assert log.is_critical is False
