from __future__ import annotations

import enum


class UserRole(enum.StrEnum):
    """Role carried by the caller's auth context."""

    ADMIN = "admin"
    HR = "hr"
    FINANCE = "finance"
    MANAGEMENT = "management"
    EMPLOYEE = "employee"


class ApproverRole(enum.StrEnum):
    """Who must act on a workflow step."""

    LINE_MANAGER = "line_manager"
    HR = "hr"
    FINANCE = "finance"
    MANAGEMENT = "management"
    ADMIN = "admin"


class WorkflowEntityType(enum.StrEnum):
    """Kinds of records routed through the approval workflow."""

    LEAVE = "LEAVE"
    PER_DIEM = "PER_DIEM"
    PAYROLL = "PAYROLL"
    PROMOTION = "PROMOTION"


class ApprovalStatus(enum.StrEnum):
    """State of an approval request."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class ApprovalDecision(enum.StrEnum):
    """Action an approver takes on the current step."""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class EntityStatus(enum.StrEnum):
    """Status of an approvable record (leave, per diem, payroll run, promotion).

    Stage statuses are derived from the step role: ``<ROLE>_PENDING`` while a
    step waits on that role, ``<ROLE>_REJECTED`` when rejected there.
    """

    DRAFT = "DRAFT"
    PROCESSING = "PROCESSING"
    LINE_MANAGER_PENDING = "LINE_MANAGER_PENDING"
    HR_PENDING = "HR_PENDING"
    FINANCE_PENDING = "FINANCE_PENDING"
    MANAGEMENT_PENDING = "MANAGEMENT_PENDING"
    ADMIN_PENDING = "ADMIN_PENDING"
    LINE_MANAGER_REJECTED = "LINE_MANAGER_REJECTED"
    HR_REJECTED = "HR_REJECTED"
    FINANCE_REJECTED = "FINANCE_REJECTED"
    MANAGEMENT_REJECTED = "MANAGEMENT_REJECTED"
    ADMIN_REJECTED = "ADMIN_REJECTED"
    APPROVED = "APPROVED"
    CANCELLED = "CANCELLED"
    PAID = "PAID"

    @classmethod
    def pending_for(cls, role: ApproverRole) -> EntityStatus:
        return cls(f"{role.value.upper()}_PENDING")

    @classmethod
    def rejected_for(cls, role: ApproverRole) -> EntityStatus:
        return cls(f"{role.value.upper()}_REJECTED")

    @property
    def is_pending(self) -> bool:
        return self.value.endswith("_PENDING")

    @property
    def is_rejected(self) -> bool:
        return self.value.endswith("_REJECTED")


class EmployeeStatus(enum.StrEnum):
    """Employment status."""

    ACTIVE = "ACTIVE"
    TERMINATED = "TERMINATED"
    SUSPENDED = "SUSPENDED"
    ON_LEAVE = "ON_LEAVE"


class DeductionType(enum.StrEnum):
    """Payroll deduction categories outside statutory deductions."""

    HELB = "HELB"
    LOAN = "LOAN"
    SACCO = "SACCO"
    ADVANCE = "ADVANCE"
    OTHER = "OTHER"


class TaskPriority(enum.StrEnum):
    """Task urgency."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TaskStatus(enum.StrEnum):
    """Task progress."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class NotificationType(enum.StrEnum):
    """Kinds of queued notifications."""

    APPROVAL_PENDING = "APPROVAL_PENDING"
    REQUEST_APPROVED = "REQUEST_APPROVED"
    REQUEST_REJECTED = "REQUEST_REJECTED"
    PAYSLIP_READY = "PAYSLIP_READY"
    TASK_ASSIGNED = "TASK_ASSIGNED"


class NotificationStatus(enum.StrEnum):
    """Delivery state of a queued notification."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    EMPLOYEE = "EMPLOYEE"
    DEPARTMENT = "DEPARTMENT"
    HOLIDAY = "HOLIDAY"
    LEAVE_TYPE = "LEAVE_TYPE"
    LEAVE_REQUEST = "LEAVE_REQUEST"
    PER_DIEM_RATE = "PER_DIEM_RATE"
    PER_DIEM_REQUEST = "PER_DIEM_REQUEST"
    SALARY_STRUCTURE = "SALARY_STRUCTURE"
    DEDUCTION = "DEDUCTION"
    PAYROLL_RUN = "PAYROLL_RUN"
    PROMOTION_REQUEST = "PROMOTION_REQUEST"
    TASK = "TASK"
    WORKFLOW_DEFINITION = "WORKFLOW_DEFINITION"


# Changes to these entities move money and are flagged in the audit log.
CRITICAL_AUDIT_ENTITIES = frozenset(
    {
        AuditEntityType.SALARY_STRUCTURE,
        AuditEntityType.DEDUCTION,
        AuditEntityType.PAYROLL_RUN,
        AuditEntityType.PROMOTION_REQUEST,
    }
)


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    IMPORT = "IMPORT"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    PROCESS = "PROCESS"
    PAY = "PAY"
