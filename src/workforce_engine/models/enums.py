"""Closed value sets shared by models and services."""

from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    """Profile roles."""

    WORKER = "worker"
    SITE_MANAGER = "site_manager"
    CUSTOMER_MANAGER = "customer_manager"
    ADMIN = "admin"
    SYSTEM_ADMIN = "system_admin"


class EmploymentType(str, Enum):
    """Employment classification driving deduction rates."""

    FREELANCER = "freelancer"
    DAILY_WORKER = "daily_worker"
    REGULAR_EMPLOYEE = "regular_employee"


class SiteStatus(str, Enum):
    """Site lifecycle values."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"


class AssignmentRole(str, Enum):
    """Role a worker holds at a site."""

    WORKER = "worker"
    SITE_MANAGER = "site_manager"
    SUPERVISOR = "supervisor"


def sql_values(enum_cls: type[Enum]) -> str:
    """Render enum values for an IN (...) check constraint."""
    return ", ".join(f"'{member.value}'" for member in enum_cls)
