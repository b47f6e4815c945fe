"""Fee reminder rules and the ledger read that finds who to remind."""

from datetime import date, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.app_logger import get_logger
from fee_ledger.core.enums import ReminderType
from fee_ledger.core.exceptions import NotFoundError, ValidationFailedError
from fee_ledger.core.models import FeeInstallment, FeeReminder, StudentFee, User
from fee_ledger.api.v1.fees.ledger import to_money

from .schemas import FeeReminderCreate, FeeReminderResponse, FeeReminderUpdate, ReminderRecipient

logger = get_logger(__name__)

REMINDER_NOT_FOUND = "Reminder not found"


def _to_response(r: FeeReminder) -> FeeReminderResponse:
    return FeeReminderResponse(
        id=r.id,
        tenant_id=r.tenant_id,
        reminder_type=r.reminder_type,
        days_before=r.days_before,
        message=r.message,
        is_active=r.is_active,
        send_email=r.send_email,
        send_sms=r.send_sms,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


async def _get_reminder(db: AsyncSession, tenant_id: UUID, reminder_id: UUID) -> FeeReminder:
    reminder = (
        await db.execute(
            select(FeeReminder).where(
                FeeReminder.id == reminder_id,
                FeeReminder.tenant_id == tenant_id,
            )
        )
    ).scalar_one_or_none()
    if not reminder:
        raise NotFoundError(REMINDER_NOT_FOUND)
    return reminder


async def create_reminder(
    db: AsyncSession,
    tenant_id: UUID,
    payload: FeeReminderCreate,
) -> FeeReminderResponse:
    message = payload.message.strip()
    if not message:
        raise ValidationFailedError("Reminder message is required")
    reminder = FeeReminder(
        tenant_id=tenant_id,
        reminder_type=payload.reminder_type.value,
        days_before=payload.days_before,
        message=message,
        is_active=payload.is_active,
        send_email=payload.send_email,
        send_sms=payload.send_sms,
    )
    db.add(reminder)
    await db.commit()
    await db.refresh(reminder)
    logger.info(
        "Created %s fee reminder %s (%d days) for tenant %s",
        reminder.reminder_type, reminder.id, reminder.days_before, tenant_id,
    )
    return _to_response(reminder)


async def list_reminders(
    db: AsyncSession,
    tenant_id: UUID,
    active_only: bool = False,
) -> List[FeeReminderResponse]:
    stmt = select(FeeReminder).where(FeeReminder.tenant_id == tenant_id)
    if active_only:
        stmt = stmt.where(FeeReminder.is_active.is_(True))
    stmt = stmt.order_by(FeeReminder.created_at.desc())
    result = await db.execute(stmt)
    return [_to_response(r) for r in result.scalars().all()]


async def get_reminder(db: AsyncSession, tenant_id: UUID, reminder_id: UUID) -> FeeReminderResponse:
    return _to_response(await _get_reminder(db, tenant_id, reminder_id))


async def update_reminder(
    db: AsyncSession,
    tenant_id: UUID,
    reminder_id: UUID,
    payload: FeeReminderUpdate,
) -> FeeReminderResponse:
    reminder = await _get_reminder(db, tenant_id, reminder_id)
    if payload.message is not None:
        message = payload.message.strip()
        if not message:
            raise ValidationFailedError("Reminder message is required")
        reminder.message = message
    if payload.days_before is not None:
        reminder.days_before = payload.days_before
    if payload.is_active is not None:
        reminder.is_active = payload.is_active
    if payload.send_email is not None:
        reminder.send_email = payload.send_email
    if payload.send_sms is not None:
        reminder.send_sms = payload.send_sms
    await db.commit()
    await db.refresh(reminder)
    return _to_response(reminder)


async def delete_reminder(db: AsyncSession, tenant_id: UUID, reminder_id: UUID) -> None:
    reminder = await _get_reminder(db, tenant_id, reminder_id)
    await db.delete(reminder)
    await db.commit()
    logger.info("Deleted fee reminder %s for tenant %s", reminder_id, tenant_id)


def reminder_due_date(reminder_type: ReminderType, days: int, today: date) -> date:
    """The installment due date a reminder of this type and offset targets when run on `today`."""
    if reminder_type == ReminderType.BEFORE_DUE:
        return today + timedelta(days=days)
    if reminder_type == ReminderType.AFTER_DUE:
        return today - timedelta(days=days)
    return today


async def students_for_reminder(
    db: AsyncSession,
    tenant_id: UUID,
    reminder_type: ReminderType,
    days_before: int,
    today: Optional[date] = None,
) -> List[ReminderRecipient]:
    """
    Student fees with an outstanding balance whose structure has an installment due on the
    target date. One entry per (student fee, installment).
    """
    if days_before < 0:
        raise ValidationFailedError("days_before cannot be negative")
    target = reminder_due_date(reminder_type, days_before, today or date.today())
    rows = (
        await db.execute(
            select(StudentFee, FeeInstallment, User)
            .join(FeeInstallment, FeeInstallment.fee_structure_id == StudentFee.fee_structure_id)
            .join(User, User.id == StudentFee.student_id)
            .where(
                StudentFee.tenant_id == tenant_id,
                StudentFee.outstanding_amount > 0,
                FeeInstallment.due_date == target,
            )
            .order_by(User.full_name, FeeInstallment.installment_number)
        )
    ).all()
    return [
        ReminderRecipient(
            student_fee_id=sf.id,
            student_id=sf.student_id,
            student_name=student.full_name,
            student_email=student.email,
            installment_id=inst.id,
            installment_number=inst.installment_number,
            due_date=inst.due_date,
            installment_amount=to_money(inst.amount),
            outstanding_amount=to_money(sf.outstanding_amount),
        )
        for sf, inst, student in rows
    ]


async def recipients_for_reminder(
    db: AsyncSession,
    tenant_id: UUID,
    reminder_id: UUID,
    today: Optional[date] = None,
) -> List[ReminderRecipient]:
    reminder = await _get_reminder(db, tenant_id, reminder_id)
    if not reminder.is_active:
        raise ValidationFailedError("Reminder is not active")
    return await students_for_reminder(
        db, tenant_id, ReminderType(reminder.reminder_type), reminder.days_before, today
    )
