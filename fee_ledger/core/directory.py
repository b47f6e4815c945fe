"""
Existence checks against records owned by other modules (students, classes, academic years).
Every lookup is tenant-scoped; a row in another tenant is reported as missing.
"""

from typing import Iterable, Optional, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.auth.models import User
from fee_ledger.core.models import AcademicYear, SchoolClass

STUDENT_ROLE = "STUDENT"


async def get_academic_year(
    db: AsyncSession,
    tenant_id: UUID,
    academic_year_id: UUID,
) -> Optional[AcademicYear]:
    ay = await db.get(AcademicYear, academic_year_id)
    if not ay or ay.tenant_id != tenant_id:
        return None
    return ay


async def class_exists(db: AsyncSession, tenant_id: UUID, class_id: UUID) -> bool:
    cl = await db.get(SchoolClass, class_id)
    return bool(cl and cl.tenant_id == tenant_id and cl.is_active)


async def student_exists(db: AsyncSession, tenant_id: UUID, student_id: UUID) -> bool:
    found = (
        await db.execute(
            select(User.id).where(
                User.id == student_id,
                User.tenant_id == tenant_id,
                User.role == STUDENT_ROLE,
            )
        )
    ).scalar_one_or_none()
    return found is not None


async def existing_student_ids(
    db: AsyncSession,
    tenant_id: UUID,
    student_ids: Iterable[UUID],
) -> Set[UUID]:
    ids = list(student_ids)
    if not ids:
        return set()
    rows = (
        await db.execute(
            select(User.id).where(
                User.id.in_(ids),
                User.tenant_id == tenant_id,
                User.role == STUDENT_ROLE,
            )
        )
    ).scalars().all()
    return set(rows)
