from fastapi import APIRouter

from app.api.audit import audit_router
from app.api.employees import departments_router, employees_router
from app.api.holidays import holidays_router
from app.api.leave import leave_balances_router, leave_requests_router, leave_types_router
from app.api.notifications import notifications_router
from app.api.payroll import employee_pay_router, payroll_router
from app.api.per_diem import per_diem_router
from app.api.promotions import promotions_router
from app.api.reports import reports_router
from app.api.tasks import tasks_router
from app.api.workflows import approvals_router, workflows_router

api_router = APIRouter()
api_router.include_router(employees_router)
api_router.include_router(departments_router)
api_router.include_router(workflows_router)
api_router.include_router(approvals_router)
api_router.include_router(leave_types_router)
api_router.include_router(leave_balances_router)
api_router.include_router(leave_requests_router)
api_router.include_router(holidays_router)
api_router.include_router(per_diem_router)
api_router.include_router(payroll_router)
api_router.include_router(employee_pay_router)
api_router.include_router(promotions_router)
api_router.include_router(tasks_router)
api_router.include_router(reports_router)
api_router.include_router(audit_router)
api_router.include_router(notifications_router)
