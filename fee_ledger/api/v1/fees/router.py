"""Fees router: assignment, student fee ledger, payments, receipts, discounts."""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.auth.dependencies import get_current_user
from fee_ledger.auth.rbac import check_permission
from fee_ledger.auth.schemas import CurrentUser
from fee_ledger.core.enums import FeeStatus, PaymentMode
from fee_ledger.core.exceptions import ServiceError
from fee_ledger.db.session import get_db

from .schemas import (
    AssignFeeRequest,
    BulkAssignFeeRequest,
    BulkAssignResult,
    CancelReceiptRequest,
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
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


# --- Assignment ---
@router.post(
    "/assign",
    response_model=StudentFeeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def assign_fee(
    payload: AssignFeeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeResponse:
    try:
        return await service.assign_fee_to_student(
            db, current_user.tenant_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/assign/bulk",
    response_model=BulkAssignResult,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def bulk_assign_fee(
    payload: BulkAssignFeeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> BulkAssignResult:
    try:
        return await service.bulk_assign_fee(
            db, current_user.tenant_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Student Fees ---
@router.get(
    "/student-fees",
    response_model=Page[StudentFeeResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_student_fees(
    student_id: Optional[UUID] = Query(None),
    fee_status: Optional[FeeStatus] = Query(None, alias="status"),
    has_outstanding: Optional[bool] = Query(None),
    academic_year_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Page[StudentFeeResponse]:
    return await service.list_student_fees(
        db,
        current_user.tenant_id,
        student_id=student_id,
        status=fee_status,
        has_outstanding=has_outstanding,
        academic_year_id=academic_year_id,
        page=page,
        limit=limit,
    )


@router.get(
    "/student-fees/{student_fee_id}",
    response_model=StudentFeeDetail,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_student_fee(
    student_fee_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeDetail:
    try:
        return await service.get_student_fee(db, current_user.tenant_id, student_fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Payment ---
@router.post(
    "/payments",
    response_model=PaymentWithReceiptResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def record_payment(
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentWithReceiptResponse:
    try:
        return await service.record_payment(
            db, current_user.tenant_id, payload, collected_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/payments",
    response_model=Page[PaymentResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_payments(
    student_fee_id: Optional[UUID] = Query(None),
    student_id: Optional[UUID] = Query(None),
    payment_mode: Optional[PaymentMode] = Query(None),
    is_verified: Optional[bool] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Page[PaymentResponse]:
    return await service.list_payments(
        db,
        current_user.tenant_id,
        student_fee_id=student_fee_id,
        student_id=student_id,
        payment_mode=payment_mode,
        is_verified=is_verified,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


@router.get(
    "/payments/{payment_id}",
    response_model=PaymentResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_payment(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.get_payment(db, current_user.tenant_id, payment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/payments/{payment_id}/verify",
    response_model=PaymentResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def verify_payment(
    payment_id: UUID,
    payload: VerifyPaymentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.verify_payment(
            db, current_user.tenant_id, payment_id, payload, verified_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Receipts ---
@router.get(
    "/receipts/by-number/{receipt_number}",
    response_model=ReceiptResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_receipt_by_number(
    receipt_number: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ReceiptResponse:
    try:
        return await service.get_receipt_by_number(db, current_user.tenant_id, receipt_number)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/receipts/{receipt_id}",
    response_model=ReceiptResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_receipt(
    receipt_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ReceiptResponse:
    try:
        return await service.get_receipt(db, current_user.tenant_id, receipt_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/receipts/{receipt_id}/cancel",
    response_model=ReceiptResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def cancel_receipt(
    receipt_id: UUID,
    payload: CancelReceiptRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ReceiptResponse:
    try:
        return await service.cancel_receipt(
            db,
            current_user.tenant_id,
            receipt_id,
            payload.cancel_reason,
            cancelled_by=current_user.id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Discount ---
@router.post(
    "/discounts",
    response_model=DiscountResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def apply_discount(
    payload: DiscountCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DiscountResponse:
    try:
        return await service.apply_discount(
            db, current_user.tenant_id, payload, approved_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/discounts/{discount_id}",
    response_model=DiscountResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_discount(
    discount_id: UUID,
    payload: DiscountUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DiscountResponse:
    try:
        return await service.update_discount(
            db, current_user.tenant_id, discount_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/discounts/{discount_id}",
    response_model=DiscountResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def remove_discount(
    discount_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DiscountResponse:
    try:
        return await service.remove_discount(
            db, current_user.tenant_id, discount_id, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
