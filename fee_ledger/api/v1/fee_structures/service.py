"""Fee structure service: structures with line items, generated installment plans, installment edits."""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fee_ledger.app_logger import get_logger
from fee_ledger.core import directory
from fee_ledger.core.enums import FeeAuditAction
from fee_ledger.core.exceptions import (
    ConflictError,
    DependentRecordError,
    InvariantViolationError,
    NotFoundError,
    ValidationFailedError,
)
from fee_ledger.core.models import (
    FeeInstallment,
    FeePayment,
    FeeStructure,
    FeeStructureItem,
    FeeType,
    StudentFee,
)
from fee_ledger.api.v1.fees.audit_service import log_fee_audit

from .installments import generate_installments
from .schemas import (
    FeeInstallmentCreate,
    FeeInstallmentResponse,
    FeeInstallmentUpdate,
    FeeStructureCreate,
    FeeStructureItemResponse,
    FeeStructureResponse,
    FeeStructureUpdate,
)

logger = get_logger(__name__)

FEE_STRUCTURE_NOT_FOUND = "Fee structure not found"
INSTALLMENT_NOT_FOUND = "Installment not found"


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def installment_to_response(inst: FeeInstallment) -> FeeInstallmentResponse:
    return FeeInstallmentResponse(
        id=inst.id,
        fee_structure_id=inst.fee_structure_id,
        installment_number=inst.installment_number,
        due_date=inst.due_date,
        amount=_to_decimal(inst.amount),
        description=inst.description,
    )


def _fs_to_response(fs: FeeStructure) -> FeeStructureResponse:
    return FeeStructureResponse(
        id=fs.id,
        tenant_id=fs.tenant_id,
        name=fs.name,
        description=fs.description,
        class_id=fs.class_id,
        academic_year_id=fs.academic_year_id,
        installment_type=fs.installment_type,
        total_amount=fs.total_amount,
        is_active=fs.is_active,
        items=[
            FeeStructureItemResponse(
                id=item.id,
                fee_type_id=item.fee_type_id,
                fee_type_name=item.fee_type.name if item.fee_type else None,
                amount=_to_decimal(item.amount),
                is_optional=item.is_optional,
            )
            for item in fs.items
        ],
        installments=[
            installment_to_response(i)
            for i in sorted(fs.installments, key=lambda i: i.installment_number)
        ],
        created_at=fs.created_at,
        updated_at=fs.updated_at,
    )


def _structure_query():
    return select(FeeStructure).options(
        selectinload(FeeStructure.items).selectinload(FeeStructureItem.fee_type),
        selectinload(FeeStructure.installments),
    )


async def load_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    fee_structure_id: UUID,
) -> FeeStructure:
    """Structure with items and installments loaded. Raises NotFoundError outside the tenant."""
    fs = (
        await db.execute(
            _structure_query()
            .where(
                FeeStructure.id == fee_structure_id,
                FeeStructure.tenant_id == tenant_id,
            )
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not fs:
        raise NotFoundError(FEE_STRUCTURE_NOT_FOUND)
    return fs


# --- Fee Structure ---
async def create_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    payload: FeeStructureCreate,
    changed_by: Optional[UUID] = None,
) -> FeeStructureResponse:
    """Create structure + items and generate its installment plan in one transaction."""
    ay = await directory.get_academic_year(db, tenant_id, payload.academic_year_id)
    if not ay:
        raise NotFoundError("Academic year not found")
    if ay.status != "ACTIVE":
        raise ValidationFailedError("Cannot create a fee structure for a CLOSED academic year")
    if payload.class_id is not None and not await directory.class_exists(db, tenant_id, payload.class_id):
        raise NotFoundError("Class not found")

    fee_type_ids = [item.fee_type_id for item in payload.items]
    found = (
        await db.execute(
            select(FeeType.id).where(
                FeeType.id.in_(fee_type_ids),
                FeeType.tenant_id == tenant_id,
                FeeType.is_active.is_(True),
            )
        )
    ).scalars().all()
    if len(set(found)) != len(set(fee_type_ids)):
        raise ValidationFailedError("One or more fee types not found")

    total = sum((_to_decimal(item.amount) for item in payload.items), Decimal("0"))
    plan = generate_installments(total, payload.installment_type, ay.start_date, ay.end_date)

    try:
        fs = FeeStructure(
            tenant_id=tenant_id,
            name=payload.name.strip(),
            description=(payload.description or "").strip() or None,
            class_id=payload.class_id,
            academic_year_id=payload.academic_year_id,
            installment_type=payload.installment_type.value,
            is_active=payload.is_active,
        )
        fs.items = [
            FeeStructureItem(
                fee_type_id=item.fee_type_id,
                amount=item.amount,
                is_optional=item.is_optional,
            )
            for item in payload.items
        ]
        fs.installments = [
            FeeInstallment(
                installment_number=p.installment_number,
                due_date=p.due_date,
                amount=p.amount,
            )
            for p in plan
        ]
        db.add(fs)
        await db.flush()
        await log_fee_audit(
            db, tenant_id, "fee_structures", fs.id,
            FeeAuditAction.CREATE,
            None,
            {
                "name": fs.name,
                "installment_type": fs.installment_type,
                "total_amount": str(total),
                "installments": len(plan),
            },
            changed_by,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Fee structure could not be created due to a conflicting record")

    logger.info(
        "Created fee structure %s (%s, total=%s, %d installments)",
        fs.id, fs.installment_type, total, len(plan),
    )
    return _fs_to_response(await load_fee_structure(db, tenant_id, fs.id))


async def list_fee_structures(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: Optional[UUID] = None,
    academic_year_id: Optional[UUID] = None,
    active_only: bool = True,
) -> List[FeeStructureResponse]:
    stmt = _structure_query().where(FeeStructure.tenant_id == tenant_id)
    if class_id is not None:
        stmt = stmt.where(FeeStructure.class_id == class_id)
    if academic_year_id is not None:
        stmt = stmt.where(FeeStructure.academic_year_id == academic_year_id)
    if active_only:
        stmt = stmt.where(FeeStructure.is_active.is_(True))
    stmt = stmt.order_by(FeeStructure.created_at.desc())
    result = await db.execute(stmt)
    return [_fs_to_response(fs) for fs in result.scalars().all()]


async def get_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    fee_structure_id: UUID,
) -> FeeStructureResponse:
    return _fs_to_response(await load_fee_structure(db, tenant_id, fee_structure_id))


async def update_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    fee_structure_id: UUID,
    payload: FeeStructureUpdate,
) -> FeeStructureResponse:
    fs = await load_fee_structure(db, tenant_id, fee_structure_id)
    if payload.class_id is not None and not await directory.class_exists(db, tenant_id, payload.class_id):
        raise NotFoundError("Class not found")
    if payload.name is not None:
        fs.name = payload.name.strip()
    if payload.description is not None:
        fs.description = payload.description.strip() or None
    if payload.class_id is not None:
        fs.class_id = payload.class_id
    if payload.is_active is not None:
        fs.is_active = payload.is_active
    await db.commit()
    return _fs_to_response(await load_fee_structure(db, tenant_id, fee_structure_id))


async def delete_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    fee_structure_id: UUID,
) -> None:
    fs = await load_fee_structure(db, tenant_id, fee_structure_id)
    assigned = (
        await db.execute(
            select(func.count(StudentFee.id)).where(StudentFee.fee_structure_id == fs.id)
        )
    ).scalar_one()
    if assigned > 0:
        raise DependentRecordError(
            "Cannot delete fee structure as it is assigned to students. Consider deactivating instead."
        )
    await db.delete(fs)
    await db.commit()


# --- Installments ---
async def _get_installment(
    db: AsyncSession,
    tenant_id: UUID,
    installment_id: UUID,
) -> FeeInstallment:
    inst = (
        await db.execute(
            select(FeeInstallment)
            .join(FeeStructure, FeeInstallment.fee_structure_id == FeeStructure.id)
            .where(
                FeeInstallment.id == installment_id,
                FeeStructure.tenant_id == tenant_id,
            )
        )
    ).scalar_one_or_none()
    if not inst:
        raise NotFoundError(INSTALLMENT_NOT_FOUND)
    return inst


async def _installment_has_payments(db: AsyncSession, installment_id: UUID) -> bool:
    count = (
        await db.execute(
            select(func.count(FeePayment.id)).where(FeePayment.installment_id == installment_id)
        )
    ).scalar_one()
    return count > 0


async def create_installment(
    db: AsyncSession,
    tenant_id: UUID,
    payload: FeeInstallmentCreate,
) -> FeeInstallmentResponse:
    fs = await load_fee_structure(db, tenant_id, payload.fee_structure_id)
    if any(i.installment_number == payload.installment_number for i in fs.installments):
        raise ConflictError("Installment number already exists for this fee structure")
    scheduled = sum((_to_decimal(i.amount) for i in fs.installments), Decimal("0"))
    if scheduled + payload.amount > fs.total_amount:
        raise ConflictError(
            f"Installments would total {scheduled + payload.amount}, "
            f"more than the fee structure total ({fs.total_amount})"
        )
    try:
        inst = FeeInstallment(
            fee_structure_id=fs.id,
            installment_number=payload.installment_number,
            due_date=payload.due_date,
            amount=payload.amount,
            description=(payload.description or "").strip() or None,
        )
        db.add(inst)
        await db.commit()
        await db.refresh(inst)
        return installment_to_response(inst)
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Installment number already exists for this fee structure")


async def update_installment(
    db: AsyncSession,
    tenant_id: UUID,
    installment_id: UUID,
    payload: FeeInstallmentUpdate,
) -> FeeInstallmentResponse:
    inst = await _get_installment(db, tenant_id, installment_id)
    if await _installment_has_payments(db, inst.id):
        raise InvariantViolationError("Installment cannot be changed after payments were made against it")
    if payload.due_date is not None:
        inst.due_date = payload.due_date
    if payload.description is not None:
        inst.description = payload.description.strip() or None
    await db.commit()
    await db.refresh(inst)
    return installment_to_response(inst)


async def delete_installment(
    db: AsyncSession,
    tenant_id: UUID,
    installment_id: UUID,
) -> None:
    inst = await _get_installment(db, tenant_id, installment_id)
    if await _installment_has_payments(db, inst.id):
        raise DependentRecordError("Cannot delete installment as payments have been made against it")
    await db.delete(inst)
    await db.commit()
