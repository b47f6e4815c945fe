"""Fees service: assignment, payments, receipts, discounts and ledger reads."""

import math
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fee_ledger.app_logger import get_logger
from fee_ledger.core import directory
from fee_ledger.core.config import settings
from fee_ledger.core.enums import FeeAuditAction, FeeStatus, PaymentMode
from fee_ledger.core.exceptions import (
    ConflictError,
    InvariantViolationError,
    NotFoundError,
    ValidationFailedError,
)
from fee_ledger.core.models import (
    FeeDiscount,
    FeeInstallment,
    FeePayment,
    FeeReceipt,
    FeeStructure,
    StudentFee,
)
from fee_ledger.api.v1.fee_structures.service import installment_to_response, load_fee_structure

from .audit_service import log_fee_audit
from .ledger import (
    CENT,
    STUDENT_FEE_NOT_FOUND,
    apply_balances,
    balance_snapshot,
    is_overdue,
    ledger_transaction,
    lock_student_fee,
    recompute,
    to_money,
)
from .receipts import next_receipt_number
from .schemas import (
    AssignFeeRequest,
    BulkAssignFeeRequest,
    BulkAssignResult,
    DiscountCreate,
    DiscountResponse,
    DiscountUpdate,
    Page,
    PaymentCreate,
    PaymentResponse,
    PaymentWithReceiptResponse,
    ReceiptResponse,
    StudentFeeDetail,
    StudentFeeResponse,
    VerifyPaymentRequest,
)

logger = get_logger(__name__)

PAYMENT_NOT_FOUND = "Payment not found"
RECEIPT_NOT_FOUND = "Receipt not found"
DISCOUNT_NOT_FOUND = "Discount not found"


def _page_params(page: int, limit: Optional[int]) -> tuple:
    page = max(page, 1)
    limit = limit or settings.default_page_size
    limit = max(1, min(limit, settings.max_page_size))
    return page, limit


async def _paginate(db: AsyncSession, stmt, page: int, limit: int):
    total = (await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))).scalar_one()
    rows = (await db.execute(stmt.offset((page - 1) * limit).limit(limit))).scalars().all()
    total_pages = math.ceil(total / limit) if total else 0
    return rows, total, total_pages


def _sf_to_response(sf: StudentFee) -> StudentFeeResponse:
    return StudentFeeResponse(
        id=sf.id,
        tenant_id=sf.tenant_id,
        student_id=sf.student_id,
        fee_structure_id=sf.fee_structure_id,
        total_amount=to_money(sf.total_amount),
        discount_amount=to_money(sf.discount_amount),
        net_amount=to_money(sf.net_amount),
        paid_amount=to_money(sf.paid_amount),
        outstanding_amount=to_money(sf.outstanding_amount),
        status=sf.status,
        version=sf.version,
        assigned_at=sf.assigned_at,
        updated_at=sf.updated_at,
    )


def _receipt_to_response(r: FeeReceipt) -> ReceiptResponse:
    return ReceiptResponse(
        id=r.id,
        tenant_id=r.tenant_id,
        payment_id=r.payment_id,
        receipt_number=r.receipt_number,
        amount=to_money(r.amount),
        payment_mode=r.payment_mode,
        is_cancelled=r.is_cancelled,
        cancelled_at=r.cancelled_at,
        cancel_reason=r.cancel_reason,
        cancelled_by=r.cancelled_by,
        created_at=r.created_at,
    )


def _payment_to_response(p: FeePayment, receipt: Optional[FeeReceipt] = None) -> PaymentResponse:
    return PaymentResponse(
        id=p.id,
        tenant_id=p.tenant_id,
        student_fee_id=p.student_fee_id,
        installment_id=p.installment_id,
        receipt_number=p.receipt_number,
        amount=to_money(p.amount),
        payment_mode=p.payment_mode,
        payment_date=p.payment_date,
        transaction_reference=p.transaction_reference,
        cheque_number=p.cheque_number,
        bank_name=p.bank_name,
        remarks=p.remarks,
        is_verified=p.is_verified,
        verified_by=p.verified_by,
        verified_at=p.verified_at,
        collected_by=p.collected_by,
        created_at=p.created_at,
        receipt=_receipt_to_response(receipt) if receipt else None,
    )


def _discount_to_response(d: FeeDiscount) -> DiscountResponse:
    return DiscountResponse(
        id=d.id,
        tenant_id=d.tenant_id,
        student_fee_id=d.student_fee_id,
        discount_type=d.discount_type,
        amount=to_money(d.amount),
        percentage=d.percentage,
        reason=d.reason,
        approved_by=d.approved_by,
        is_active=d.is_active,
        created_at=d.created_at,
        updated_at=d.updated_at,
    )


def _new_student_fee(
    tenant_id: UUID,
    student_id: UUID,
    fs: FeeStructure,
    discount_amount: Decimal,
) -> StudentFee:
    total = fs.total_amount
    discount = to_money(discount_amount)
    if discount > total:
        raise ValidationFailedError(f"Discount ({discount}) cannot exceed the fee total ({total})")
    balances = recompute(total, discount, Decimal("0"))
    return StudentFee(
        tenant_id=tenant_id,
        student_id=student_id,
        fee_structure_id=fs.id,
        total_amount=total,
        discount_amount=discount,
        net_amount=balances.net_amount,
        paid_amount=Decimal("0.00"),
        outstanding_amount=balances.outstanding_amount,
        status=balances.status.value,
    )


async def _assignable_structure(db: AsyncSession, tenant_id: UUID, fee_structure_id: UUID) -> FeeStructure:
    fs = await load_fee_structure(db, tenant_id, fee_structure_id)
    if not fs.is_active:
        raise ValidationFailedError("Fee structure is not active")
    return fs


# --- Assignment ---
async def assign_fee_to_student(
    db: AsyncSession,
    tenant_id: UUID,
    payload: AssignFeeRequest,
    changed_by: Optional[UUID] = None,
) -> StudentFeeResponse:
    if not await directory.student_exists(db, tenant_id, payload.student_id):
        raise NotFoundError("Student not found")
    fs = await _assignable_structure(db, tenant_id, payload.fee_structure_id)
    existing = (
        await db.execute(
            select(StudentFee.id).where(
                StudentFee.student_id == payload.student_id,
                StudentFee.fee_structure_id == fs.id,
            )
        )
    ).scalar_one_or_none()
    if existing:
        raise ConflictError("Fee structure already assigned to this student")

    async with ledger_transaction(db, "Fee assignment"):
        sf = _new_student_fee(tenant_id, payload.student_id, fs, payload.discount_amount)
        db.add(sf)
        await db.flush()
        await log_fee_audit(
            db, tenant_id, "student_fees", sf.id,
            FeeAuditAction.CREATE,
            None,
            balance_snapshot(sf),
            changed_by,
        )

    logger.info(
        "Assigned fee structure %s to student %s (student_fee=%s, net=%s)",
        fs.id, sf.student_id, sf.id, sf.net_amount,
    )
    return _sf_to_response(sf)


async def bulk_assign_fee(
    db: AsyncSession,
    tenant_id: UUID,
    payload: BulkAssignFeeRequest,
    changed_by: Optional[UUID] = None,
) -> BulkAssignResult:
    """Assign one structure to many students. Students already assigned are skipped, not failed."""
    student_ids = list(dict.fromkeys(payload.student_ids))
    found = await directory.existing_student_ids(db, tenant_id, student_ids)
    missing = [sid for sid in student_ids if sid not in found]
    if missing:
        raise NotFoundError(f"{len(missing)} student(s) not found")
    fs = await _assignable_structure(db, tenant_id, payload.fee_structure_id)

    already = set(
        (
            await db.execute(
                select(StudentFee.student_id).where(
                    StudentFee.fee_structure_id == fs.id,
                    StudentFee.student_id.in_(student_ids),
                )
            )
        ).scalars().all()
    )
    to_assign = [sid for sid in student_ids if sid not in already]

    async with ledger_transaction(db, "Bulk fee assignment"):
        for sid in to_assign:
            sf = _new_student_fee(tenant_id, sid, fs, payload.default_discount_amount)
            db.add(sf)
            await db.flush()
            await log_fee_audit(
                db, tenant_id, "student_fees", sf.id,
                FeeAuditAction.CREATE,
                None,
                balance_snapshot(sf),
                changed_by,
            )

    logger.info(
        "Bulk assigned fee structure %s: %d assigned, %d skipped",
        fs.id, len(to_assign), len(already),
    )
    return BulkAssignResult(assigned=len(to_assign), skipped=len(already), total=len(student_ids))


# --- Student Fee reads ---
async def list_student_fees(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: Optional[UUID] = None,
    status: Optional[FeeStatus] = None,
    has_outstanding: Optional[bool] = None,
    academic_year_id: Optional[UUID] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> Page[StudentFeeResponse]:
    page, limit = _page_params(page, limit)
    stmt = select(StudentFee).where(StudentFee.tenant_id == tenant_id)
    if student_id is not None:
        stmt = stmt.where(StudentFee.student_id == student_id)
    if status == FeeStatus.OVERDUE:
        due_so_far = (
            select(func.coalesce(func.sum(FeeInstallment.amount), 0))
            .where(
                FeeInstallment.fee_structure_id == StudentFee.fee_structure_id,
                FeeInstallment.due_date < date.today(),
            )
            .correlate(StudentFee)
            .scalar_subquery()
        )
        stmt = stmt.where(
            StudentFee.outstanding_amount > 0,
            due_so_far > StudentFee.paid_amount + StudentFee.discount_amount,
        )
    elif status is not None:
        stmt = stmt.where(StudentFee.status == status.value)
    if has_outstanding is True:
        stmt = stmt.where(StudentFee.outstanding_amount > 0)
    elif has_outstanding is False:
        stmt = stmt.where(StudentFee.outstanding_amount <= 0)
    if academic_year_id is not None:
        stmt = stmt.join(FeeStructure, StudentFee.fee_structure_id == FeeStructure.id).where(
            FeeStructure.academic_year_id == academic_year_id
        )
    stmt = stmt.order_by(StudentFee.assigned_at.desc())
    rows, total, total_pages = await _paginate(db, stmt, page, limit)
    return Page[StudentFeeResponse](
        data=[_sf_to_response(sf) for sf in rows],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
    )


async def get_student_fee(
    db: AsyncSession,
    tenant_id: UUID,
    student_fee_id: UUID,
    today: Optional[date] = None,
) -> StudentFeeDetail:
    sf = (
        await db.execute(
            select(StudentFee)
            .options(
                selectinload(StudentFee.payments).selectinload(FeePayment.receipt),
                selectinload(StudentFee.discounts),
                selectinload(StudentFee.fee_structure).selectinload(FeeStructure.installments),
            )
            .where(
                StudentFee.id == student_fee_id,
                StudentFee.tenant_id == tenant_id,
            )
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not sf:
        raise NotFoundError(STUDENT_FEE_NOT_FOUND)
    installments = sorted(sf.fee_structure.installments, key=lambda i: i.installment_number)
    return StudentFeeDetail(
        **_sf_to_response(sf).model_dump(),
        fee_structure_name=sf.fee_structure.name,
        is_overdue=is_overdue(sf, installments, today),
        payments=[_payment_to_response(p, p.receipt) for p in sf.payments],
        discounts=[_discount_to_response(d) for d in sf.discounts if d.is_active],
        installments=[installment_to_response(i) for i in installments],
    )


# --- Payment ---
async def record_payment(
    db: AsyncSession,
    tenant_id: UUID,
    payload: PaymentCreate,
    collected_by: Optional[UUID] = None,
) -> PaymentWithReceiptResponse:
    """
    Record money received: payment, receipt, receipt sequence, balance and audit rows
    commit together. An amount above the current outstanding balance is rejected, never clamped.
    """
    amount = to_money(payload.amount)
    if amount <= 0:
        raise ValidationFailedError("Payment amount must be greater than zero")

    async with ledger_transaction(db, "Payment"):
        sf = await lock_student_fee(db, tenant_id, payload.student_fee_id)
        outstanding = to_money(sf.outstanding_amount)
        if amount > outstanding:
            raise ConflictError(
                f"Payment amount ({amount}) exceeds outstanding balance ({outstanding})"
            )
        if payload.installment_id is not None:
            inst = await db.get(FeeInstallment, payload.installment_id)
            if not inst or inst.fee_structure_id != sf.fee_structure_id:
                raise NotFoundError("Installment not found for this fee")

        before = balance_snapshot(sf)
        receipt_number = await next_receipt_number(db, tenant_id)
        payment = FeePayment(
            tenant_id=tenant_id,
            student_fee_id=sf.id,
            installment_id=payload.installment_id,
            receipt_number=receipt_number,
            amount=amount,
            payment_mode=payload.payment_mode.value,
            payment_date=payload.payment_date or date.today(),
            transaction_reference=(payload.transaction_reference or "").strip() or None,
            cheque_number=(payload.cheque_number or "").strip() or None,
            bank_name=(payload.bank_name or "").strip() or None,
            remarks=(payload.remarks or "").strip() or None,
            is_verified=False,
            collected_by=collected_by,
        )
        db.add(payment)
        await db.flush()
        receipt = FeeReceipt(
            tenant_id=tenant_id,
            payment_id=payment.id,
            receipt_number=receipt_number,
            amount=amount,
            payment_mode=payment.payment_mode,
            is_cancelled=False,
        )
        db.add(receipt)
        apply_balances(sf, paid_amount=to_money(sf.paid_amount) + amount)
        await db.flush()
        await log_fee_audit(
            db, tenant_id, "fee_payments", payment.id,
            FeeAuditAction.CREATE,
            None,
            {
                "receipt_number": receipt_number,
                "amount": str(amount),
                "payment_mode": payment.payment_mode,
                "student_fee_id": str(sf.id),
            },
            collected_by,
        )
        await log_fee_audit(
            db, tenant_id, "student_fees", sf.id,
            FeeAuditAction.UPDATE,
            before,
            balance_snapshot(sf),
            collected_by,
        )

    logger.info(
        "Recorded payment %s (%s) of %s on student fee %s; outstanding %s, status %s",
        payment.id, receipt_number, amount, sf.id, sf.outstanding_amount, sf.status,
    )
    return PaymentWithReceiptResponse(
        payment=_payment_to_response(payment, receipt),
        receipt=_receipt_to_response(receipt),
        student_fee=_sf_to_response(sf),
    )


async def _load_payment(
    db: AsyncSession,
    tenant_id: UUID,
    payment_id: UUID,
    for_update: bool = False,
) -> FeePayment:
    stmt = (
        select(FeePayment)
        .options(selectinload(FeePayment.receipt))
        .where(
            FeePayment.id == payment_id,
            FeePayment.tenant_id == tenant_id,
        )
    )
    if for_update:
        stmt = stmt.with_for_update(of=FeePayment)
    payment = (await db.execute(stmt.execution_options(populate_existing=True))).scalar_one_or_none()
    if not payment:
        raise NotFoundError(PAYMENT_NOT_FOUND)
    return payment


async def verify_payment(
    db: AsyncSession,
    tenant_id: UUID,
    payment_id: UUID,
    payload: VerifyPaymentRequest,
    verified_by: Optional[UUID] = None,
) -> PaymentResponse:
    """Mark a payment verified. Balances are not touched."""
    async with ledger_transaction(db, "Payment verification"):
        payment = await _load_payment(db, tenant_id, payment_id, for_update=True)
        if payment.is_verified:
            raise InvariantViolationError("Payment is already verified")
        if payment.receipt is not None and payment.receipt.is_cancelled:
            raise InvariantViolationError("Cannot verify a payment whose receipt is cancelled")
        payment.is_verified = True
        payment.verified_by = verified_by
        payment.verified_at = datetime.now(timezone.utc)
        if payload.remarks is not None:
            payment.remarks = payload.remarks.strip() or payment.remarks
        await log_fee_audit(
            db, tenant_id, "fee_payments", payment.id,
            FeeAuditAction.VERIFY,
            {"is_verified": False},
            {"is_verified": True},
            verified_by,
        )

    logger.info("Verified payment %s (%s)", payment.id, payment.receipt_number)
    return _payment_to_response(payment, payment.receipt)


async def list_payments(
    db: AsyncSession,
    tenant_id: UUID,
    student_fee_id: Optional[UUID] = None,
    student_id: Optional[UUID] = None,
    payment_mode: Optional[PaymentMode] = None,
    is_verified: Optional[bool] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> Page[PaymentResponse]:
    page, limit = _page_params(page, limit)
    stmt = (
        select(FeePayment)
        .options(selectinload(FeePayment.receipt))
        .where(FeePayment.tenant_id == tenant_id)
    )
    if student_fee_id is not None:
        stmt = stmt.where(FeePayment.student_fee_id == student_fee_id)
    if student_id is not None:
        stmt = stmt.join(StudentFee, FeePayment.student_fee_id == StudentFee.id).where(
            StudentFee.student_id == student_id
        )
    if payment_mode is not None:
        stmt = stmt.where(FeePayment.payment_mode == payment_mode.value)
    if is_verified is not None:
        stmt = stmt.where(FeePayment.is_verified.is_(is_verified))
    if start_date is not None:
        stmt = stmt.where(FeePayment.payment_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(FeePayment.payment_date <= end_date)
    stmt = stmt.order_by(FeePayment.created_at.desc())
    rows, total, total_pages = await _paginate(db, stmt, page, limit)
    return Page[PaymentResponse](
        data=[_payment_to_response(p, p.receipt) for p in rows],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
    )


async def get_payment(db: AsyncSession, tenant_id: UUID, payment_id: UUID) -> PaymentResponse:
    payment = await _load_payment(db, tenant_id, payment_id)
    return _payment_to_response(payment, payment.receipt)


# --- Receipts ---
async def _lock_receipt(db: AsyncSession, tenant_id: UUID, receipt_id: UUID) -> FeeReceipt:
    receipt = (
        await db.execute(
            select(FeeReceipt)
            .where(
                FeeReceipt.id == receipt_id,
                FeeReceipt.tenant_id == tenant_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not receipt:
        raise NotFoundError(RECEIPT_NOT_FOUND)
    return receipt


async def cancel_receipt(
    db: AsyncSession,
    tenant_id: UUID,
    receipt_id: UUID,
    cancel_reason: str,
    cancelled_by: Optional[UUID] = None,
) -> ReceiptResponse:
    """Cancel a receipt and reverse its payment's effect on the ledger. Terminal."""
    reason = (cancel_reason or "").strip()
    if not reason:
        raise ValidationFailedError("Cancellation reason is required")

    async with ledger_transaction(db, "Receipt cancellation"):
        receipt = await _lock_receipt(db, tenant_id, receipt_id)
        if receipt.is_cancelled:
            raise InvariantViolationError("Receipt is already cancelled")
        payment = await db.get(FeePayment, receipt.payment_id)
        sf = await lock_student_fee(db, tenant_id, payment.student_fee_id)
        before = balance_snapshot(sf)

        receipt.is_cancelled = True
        receipt.cancelled_at = datetime.now(timezone.utc)
        receipt.cancel_reason = reason
        receipt.cancelled_by = cancelled_by
        apply_balances(sf, paid_amount=to_money(sf.paid_amount) - to_money(receipt.amount))

        await log_fee_audit(
            db, tenant_id, "fee_receipts", receipt.id,
            FeeAuditAction.CANCEL,
            {"is_cancelled": False},
            {"is_cancelled": True, "cancel_reason": reason, "amount": str(to_money(receipt.amount))},
            cancelled_by,
        )
        await log_fee_audit(
            db, tenant_id, "student_fees", sf.id,
            FeeAuditAction.UPDATE,
            before,
            balance_snapshot(sf),
            cancelled_by,
        )

    logger.info(
        "Cancelled receipt %s (%s); student fee %s outstanding %s, status %s",
        receipt.receipt_number, receipt.amount, sf.id, sf.outstanding_amount, sf.status,
    )
    return _receipt_to_response(receipt)


async def get_receipt(db: AsyncSession, tenant_id: UUID, receipt_id: UUID) -> ReceiptResponse:
    receipt = (
        await db.execute(
            select(FeeReceipt).where(
                FeeReceipt.id == receipt_id,
                FeeReceipt.tenant_id == tenant_id,
            )
        )
    ).scalar_one_or_none()
    if not receipt:
        raise NotFoundError(RECEIPT_NOT_FOUND)
    return _receipt_to_response(receipt)


async def get_receipt_by_number(db: AsyncSession, tenant_id: UUID, receipt_number: str) -> ReceiptResponse:
    receipt = (
        await db.execute(
            select(FeeReceipt).where(
                FeeReceipt.receipt_number == receipt_number.strip().upper(),
                FeeReceipt.tenant_id == tenant_id,
            )
        )
    ).scalar_one_or_none()
    if not receipt:
        raise NotFoundError(RECEIPT_NOT_FOUND)
    return _receipt_to_response(receipt)


# --- Discount ---
async def apply_discount(
    db: AsyncSession,
    tenant_id: UUID,
    payload: DiscountCreate,
    approved_by: Optional[UUID] = None,
) -> DiscountResponse:
    async with ledger_transaction(db, "Discount"):
        sf = await lock_student_fee(db, tenant_id, payload.student_fee_id)
        total = to_money(sf.total_amount)
        if payload.percentage is not None:
            amount = (total * payload.percentage / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)
        else:
            amount = to_money(payload.amount)
        if amount <= 0:
            raise ValidationFailedError("Discount amount must be greater than zero")

        new_discount = to_money(sf.discount_amount) + amount
        if new_discount > total:
            raise ConflictError(f"Total discount ({new_discount}) cannot exceed the fee total ({total})")
        if total - new_discount < to_money(sf.paid_amount):
            raise ConflictError(
                f"Discount would reduce the net amount below the amount already paid ({to_money(sf.paid_amount)})"
            )

        before = balance_snapshot(sf)
        discount = FeeDiscount(
            tenant_id=tenant_id,
            student_fee_id=sf.id,
            discount_type=payload.discount_type.value,
            amount=amount,
            percentage=payload.percentage,
            reason=payload.reason.strip(),
            approved_by=approved_by,
            is_active=True,
        )
        db.add(discount)
        apply_balances(sf, discount_amount=new_discount)
        await db.flush()
        await log_fee_audit(
            db, tenant_id, "fee_discounts", discount.id,
            FeeAuditAction.CREATE,
            None,
            {
                "discount_type": discount.discount_type,
                "amount": str(amount),
                "percentage": str(payload.percentage) if payload.percentage is not None else None,
            },
            approved_by,
        )
        await log_fee_audit(
            db, tenant_id, "student_fees", sf.id,
            FeeAuditAction.UPDATE,
            before,
            balance_snapshot(sf),
            approved_by,
        )

    logger.info(
        "Applied %s discount %s of %s to student fee %s; net %s",
        discount.discount_type, discount.id, amount, sf.id, sf.net_amount,
    )
    return _discount_to_response(discount)


async def _get_discount(
    db: AsyncSession,
    tenant_id: UUID,
    discount_id: UUID,
    for_update: bool = False,
) -> FeeDiscount:
    stmt = select(FeeDiscount).where(
        FeeDiscount.id == discount_id,
        FeeDiscount.tenant_id == tenant_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    discount = (await db.execute(stmt.execution_options(populate_existing=True))).scalar_one_or_none()
    if not discount:
        raise NotFoundError(DISCOUNT_NOT_FOUND)
    return discount


async def update_discount(
    db: AsyncSession,
    tenant_id: UUID,
    discount_id: UUID,
    payload: DiscountUpdate,
    changed_by: Optional[UUID] = None,
) -> DiscountResponse:
    """Only the reason is editable; the amount is frozen at creation."""
    async with ledger_transaction(db, "Discount update"):
        discount = await _get_discount(db, tenant_id, discount_id, for_update=True)
        old_reason = discount.reason
        discount.reason = payload.reason.strip()
        await log_fee_audit(
            db, tenant_id, "fee_discounts", discount.id,
            FeeAuditAction.UPDATE,
            {"reason": old_reason},
            {"reason": discount.reason},
            changed_by,
        )
    return _discount_to_response(discount)


async def remove_discount(
    db: AsyncSession,
    tenant_id: UUID,
    discount_id: UUID,
    changed_by: Optional[UUID] = None,
) -> DiscountResponse:
    """Deactivate a discount and give its amount back to the ledger row."""
    async with ledger_transaction(db, "Discount removal"):
        discount = await _get_discount(db, tenant_id, discount_id)
        sf = await lock_student_fee(db, tenant_id, discount.student_fee_id)
        # Re-read under the row lock: a removal that committed while we waited must be seen here
        discount = await _get_discount(db, tenant_id, discount_id, for_update=True)
        if not discount.is_active:
            raise InvariantViolationError("Discount is already removed")
        before = balance_snapshot(sf)
        discount.is_active = False
        apply_balances(sf, discount_amount=to_money(sf.discount_amount) - to_money(discount.amount))
        await log_fee_audit(
            db, tenant_id, "fee_discounts", discount.id,
            FeeAuditAction.DEACTIVATE,
            {"is_active": True, "amount": str(to_money(discount.amount))},
            {"is_active": False},
            changed_by,
        )
        await log_fee_audit(
            db, tenant_id, "student_fees", sf.id,
            FeeAuditAction.UPDATE,
            before,
            balance_snapshot(sf),
            changed_by,
        )

    logger.info(
        "Removed discount %s from student fee %s; net %s, status %s",
        discount.id, sf.id, sf.net_amount, sf.status,
    )
    return _discount_to_response(discount)
