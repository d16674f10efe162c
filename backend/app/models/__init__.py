from sqlmodel import SQLModel

from app.models.audit import AuditLog
from app.models.base import ApprovableMixin, TimestampMixin, UUIDBase
from app.models.employee import Department, Employee
from app.models.enums import (
    ApprovalDecision,
    ApprovalStatus,
    ApproverRole,
    AuditAction,
    AuditEntityType,
    DeductionType,
    EmployeeStatus,
    EntityStatus,
    NotificationStatus,
    NotificationType,
    TaskPriority,
    TaskStatus,
    UserRole,
    WorkflowEntityType,
)
from app.models.holiday import CompanyHoliday
from app.models.leave import LeaveBalance, LeaveRequest, LeaveType
from app.models.notification import NotificationQueueItem
from app.models.payroll import Payslip, PayrollRun, PayrollRunDeduction, RecurringDeduction, SalaryStructure
from app.models.per_diem import PerDiemRate, PerDiemRequest
from app.models.promotion import PromotionRequest
from app.models.task import Task
from app.models.workflow import ApprovalAction, ApprovalRequest, WorkflowDefinition

__all__ = [
    "ApprovableMixin",
    "ApprovalAction",
    "ApprovalDecision",
    "ApprovalRequest",
    "ApprovalStatus",
    "ApproverRole",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "CompanyHoliday",
    "DeductionType",
    "Department",
    "Employee",
    "EmployeeStatus",
    "EntityStatus",
    "LeaveBalance",
    "LeaveRequest",
    "LeaveType",
    "NotificationQueueItem",
    "NotificationStatus",
    "NotificationType",
    "PayrollRun",
    "PayrollRunDeduction",
    "Payslip",
    "PerDiemRate",
    "PerDiemRequest",
    "PromotionRequest",
    "RecurringDeduction",
    "SQLModel",
    "SalaryStructure",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "TimestampMixin",
    "UUIDBase",
    "UserRole",
    "WorkflowDefinition",
    "WorkflowEntityType",
]
