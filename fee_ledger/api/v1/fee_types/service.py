"""Fee type service layer (fee catalog)."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.exceptions import ConflictError, DependentRecordError, NotFoundError
from fee_ledger.core.models import FeeStructureItem, FeeType

from .schemas import FeeTypeCreate, FeeTypeResponse, FeeTypeUpdate

FEE_TYPE_NOT_FOUND = "Fee type not found"
DUPLICATE_FEE_TYPE = "Fee type with this name or code already exists"


def _normalize_code(code: Optional[str]) -> Optional[str]:
    code = (code or "").strip().upper()
    return code[:50] or None


def _to_response(ft: FeeType) -> FeeTypeResponse:
    return FeeTypeResponse(
        id=ft.id,
        tenant_id=ft.tenant_id,
        name=ft.name,
        code=ft.code,
        description=ft.description,
        is_active=ft.is_active,
        created_at=ft.created_at,
        updated_at=ft.updated_at,
    )


async def _get_fee_type(db: AsyncSession, tenant_id: UUID, fee_type_id: UUID) -> FeeType:
    ft = (
        await db.execute(
            select(FeeType).where(
                FeeType.id == fee_type_id,
                FeeType.tenant_id == tenant_id,
            )
        )
    ).scalar_one_or_none()
    if not ft:
        raise NotFoundError(FEE_TYPE_NOT_FOUND)
    return ft


async def _ensure_unique(
    db: AsyncSession,
    tenant_id: UUID,
    name: Optional[str],
    code: Optional[str],
    exclude_id: Optional[UUID] = None,
) -> None:
    clauses = []
    if name:
        clauses.append(FeeType.name == name)
    if code:
        clauses.append(FeeType.code == code)
    if not clauses:
        return
    stmt = select(FeeType.id).where(FeeType.tenant_id == tenant_id, or_(*clauses))
    if exclude_id is not None:
        stmt = stmt.where(FeeType.id != exclude_id)
    if (await db.execute(stmt.limit(1))).scalar_one_or_none():
        raise ConflictError(DUPLICATE_FEE_TYPE)


async def create_fee_type(
    db: AsyncSession,
    tenant_id: UUID,
    payload: FeeTypeCreate,
) -> FeeTypeResponse:
    name = payload.name.strip()
    code = _normalize_code(payload.code)
    await _ensure_unique(db, tenant_id, name, code)
    try:
        ft = FeeType(
            tenant_id=tenant_id,
            name=name,
            code=code,
            description=(payload.description or "").strip() or None,
            is_active=payload.is_active,
        )
        db.add(ft)
        await db.commit()
        await db.refresh(ft)
        return _to_response(ft)
    except IntegrityError:
        await db.rollback()
        raise ConflictError(DUPLICATE_FEE_TYPE)


async def list_fee_types(
    db: AsyncSession,
    tenant_id: UUID,
    active_only: bool = True,
) -> List[FeeTypeResponse]:
    stmt = select(FeeType).where(FeeType.tenant_id == tenant_id)
    if active_only:
        stmt = stmt.where(FeeType.is_active.is_(True))
    stmt = stmt.order_by(FeeType.name)
    result = await db.execute(stmt)
    return [_to_response(ft) for ft in result.scalars().all()]


async def get_fee_type(
    db: AsyncSession,
    tenant_id: UUID,
    fee_type_id: UUID,
) -> FeeTypeResponse:
    return _to_response(await _get_fee_type(db, tenant_id, fee_type_id))


async def update_fee_type(
    db: AsyncSession,
    tenant_id: UUID,
    fee_type_id: UUID,
    payload: FeeTypeUpdate,
) -> FeeTypeResponse:
    ft = await _get_fee_type(db, tenant_id, fee_type_id)
    name = payload.name.strip() if payload.name is not None else None
    code = _normalize_code(payload.code) if payload.code is not None else None
    await _ensure_unique(db, tenant_id, name, code, exclude_id=ft.id)
    if name is not None:
        ft.name = name
    if payload.code is not None:
        ft.code = code
    if payload.description is not None:
        ft.description = payload.description.strip() or None
    if payload.is_active is not None:
        ft.is_active = payload.is_active
    try:
        await db.commit()
        await db.refresh(ft)
        return _to_response(ft)
    except IntegrityError:
        await db.rollback()
        raise ConflictError(DUPLICATE_FEE_TYPE)


async def delete_fee_type(
    db: AsyncSession,
    tenant_id: UUID,
    fee_type_id: UUID,
) -> None:
    ft = await _get_fee_type(db, tenant_id, fee_type_id)
    usage = (
        await db.execute(
            select(func.count(FeeStructureItem.id)).where(FeeStructureItem.fee_type_id == ft.id)
        )
    ).scalar_one()
    if usage > 0:
        raise DependentRecordError(
            "Cannot delete fee type as it is being used in fee structures. Consider deactivating instead."
        )
    await db.delete(ft)
    await db.commit()
