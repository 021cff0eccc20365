from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.models import User, UserRole


@dataclass(frozen=True)
class EmployeeProfile:
    id: int
    name: str
    email: str | None = None
    avatar: str | None = None
    role: str | None = None


def eligible_user_filters(company_id: int, department_id: int | None = None) -> list[Any]:
    """Active, non-deleted, non-owner users of one company, optionally one department."""
    conditions: list[Any] = [
        User.company_id == company_id,
        User.deleted_at.is_(None),
        User.is_active.is_(True),
        User.role != UserRole.OWNER,
    ]
    if department_id is not None:
        conditions.append(User.department_id == department_id)
    return conditions


def profile_from_row(row: Any) -> EmployeeProfile:
    role = row.role.value if isinstance(row.role, UserRole) else row.role
    return EmployeeProfile(
        id=row.id,
        name=f"{row.first_name or ''} {row.last_name or ''}".strip(),
        email=row.email,
        avatar=row.avatar_url,
        role=role,
    )


PROFILE_COLUMNS = (
    User.id,
    User.first_name,
    User.last_name,
    User.email,
    User.avatar_url,
    User.role,
)
