"""Fee reminders router."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.auth.dependencies import get_current_user
from fee_ledger.auth.rbac import check_permission
from fee_ledger.auth.schemas import CurrentUser
from fee_ledger.core.enums import ReminderType
from fee_ledger.core.exceptions import ServiceError
from fee_ledger.db.session import get_db

from .schemas import FeeReminderCreate, FeeReminderResponse, FeeReminderUpdate, ReminderRecipient
from . import service

router = APIRouter(prefix="/api/v1/fees/reminders", tags=["fee-reminders"])


@router.get(
    "/students",
    response_model=List[ReminderRecipient],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def students_for_reminder(
    reminder_type: ReminderType = Query(...),
    days_before: int = Query(0, ge=0, le=365),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ReminderRecipient]:
    try:
        return await service.students_for_reminder(db, current_user.tenant_id, reminder_type, days_before)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "",
    response_model=FeeReminderResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_reminder(
    payload: FeeReminderCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeReminderResponse:
    try:
        return await service.create_reminder(db, current_user.tenant_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[FeeReminderResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_reminders(
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeReminderResponse]:
    return await service.list_reminders(db, current_user.tenant_id, active_only=active_only)


@router.get(
    "/{reminder_id}",
    response_model=FeeReminderResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_reminder(
    reminder_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeReminderResponse:
    try:
        return await service.get_reminder(db, current_user.tenant_id, reminder_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{reminder_id}/students",
    response_model=List[ReminderRecipient],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def recipients_for_reminder(
    reminder_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ReminderRecipient]:
    try:
        return await service.recipients_for_reminder(db, current_user.tenant_id, reminder_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{reminder_id}",
    response_model=FeeReminderResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_reminder(
    reminder_id: UUID,
    payload: FeeReminderUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeReminderResponse:
    try:
        return await service.update_reminder(db, current_user.tenant_id, reminder_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{reminder_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("fees", "delete"))],
)
async def delete_reminder(
    reminder_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        await service.delete_reminder(db, current_user.tenant_id, reminder_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
