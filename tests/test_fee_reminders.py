from datetime import date
from decimal import Decimal

import pytest

from fee_ledger.api.v1.fee_reminders import service as reminder_service
from fee_ledger.api.v1.fee_reminders.schemas import FeeReminderCreate, FeeReminderUpdate
from fee_ledger.api.v1.fees import service as fee_service
from fee_ledger.api.v1.fees.schemas import PaymentCreate
from fee_ledger.core.enums import InstallmentType, PaymentMode, ReminderType
from fee_ledger.core.exceptions import NotFoundError, ValidationFailedError


async def _three_students_one_paid_up(db_session, school, make_structure, assign_fee):
    """Monthly 12000 plan (installments due on the 15th); the second student has paid in full."""
    fs = await make_structure({"tuition": "12000.00"}, InstallmentType.MONTHLY)
    fees = [await assign_fee(fs.id, student=s) for s in school.students]
    await fee_service.record_payment(
        db_session,
        school.tenant_id,
        PaymentCreate(student_fee_id=fees[1].id, amount=Decimal("12000"), payment_mode=PaymentMode.UPI),
    )
    return fs, fees


def test_reminder_due_date():
    today = date(2025, 5, 10)
    assert reminder_service.reminder_due_date(ReminderType.BEFORE_DUE, 5, today) == date(2025, 5, 15)
    assert reminder_service.reminder_due_date(ReminderType.ON_DUE, 5, today) == today
    assert reminder_service.reminder_due_date(ReminderType.AFTER_DUE, 10, today) == date(2025, 4, 30)


async def test_students_with_open_balance_on_upcoming_installment(
    db_session, school, other_school, make_structure, assign_fee
):
    fs, fees = await _three_students_one_paid_up(db_session, school, make_structure, assign_fee)

    recipients = await reminder_service.students_for_reminder(
        db_session, school.tenant_id, ReminderType.BEFORE_DUE, 5, today=date(2025, 5, 10)
    )
    assert [r.student_fee_id for r in recipients] == [fees[0].id, fees[2].id]
    assert [r.student_name for r in recipients] == ["Student 1", "Student 3"]
    first = recipients[0]
    assert (first.installment_number, first.due_date) == (2, date(2025, 5, 15))
    assert first.installment_amount == Decimal("1000.00")
    assert first.outstanding_amount == Decimal("12000.00")
    assert first.student_email == "student1@dps01.edu"

    on_due = await reminder_service.students_for_reminder(
        db_session, school.tenant_id, ReminderType.ON_DUE, 0, today=date(2025, 5, 15)
    )
    assert len(on_due) == 2
    overdue = await reminder_service.students_for_reminder(
        db_session, school.tenant_id, ReminderType.AFTER_DUE, 3, today=date(2025, 5, 18)
    )
    assert {r.installment_id for r in overdue} == {fs.installments[1].id}

    # nothing due on the 16th
    assert await reminder_service.students_for_reminder(
        db_session, school.tenant_id, ReminderType.BEFORE_DUE, 5, today=date(2025, 5, 11)
    ) == []
    assert await reminder_service.students_for_reminder(
        db_session, other_school.tenant_id, ReminderType.BEFORE_DUE, 5, today=date(2025, 5, 10)
    ) == []
    with pytest.raises(ValidationFailedError):
        await reminder_service.students_for_reminder(db_session, school.tenant_id, ReminderType.BEFORE_DUE, -1)


async def test_reminder_crud(db_session, school, other_school, make_structure, assign_fee):
    await _three_students_one_paid_up(db_session, school, make_structure, assign_fee)
    reminder = await reminder_service.create_reminder(
        db_session,
        school.tenant_id,
        FeeReminderCreate(reminder_type=ReminderType.BEFORE_DUE, days_before=7, message=" Fee due next week "),
    )
    assert reminder.message == "Fee due next week"
    assert (reminder.send_email, reminder.send_sms, reminder.is_active) == (True, False, True)

    listed = await reminder_service.list_reminders(db_session, school.tenant_id)
    assert [r.id for r in listed] == [reminder.id]
    assert await reminder_service.list_reminders(db_session, other_school.tenant_id) == []
    with pytest.raises(NotFoundError):
        await reminder_service.get_reminder(db_session, other_school.tenant_id, reminder.id)

    updated = await reminder_service.update_reminder(
        db_session, school.tenant_id, reminder.id, FeeReminderUpdate(days_before=5, send_sms=True)
    )
    assert (updated.days_before, updated.send_sms, updated.message) == (5, True, "Fee due next week")

    recipients = await reminder_service.recipients_for_reminder(
        db_session, school.tenant_id, reminder.id, today=date(2025, 6, 10)
    )
    assert [r.student_name for r in recipients] == ["Student 1", "Student 3"]
    assert all(r.due_date == date(2025, 6, 15) for r in recipients)

    await reminder_service.update_reminder(
        db_session, school.tenant_id, reminder.id, FeeReminderUpdate(is_active=False)
    )
    assert await reminder_service.list_reminders(db_session, school.tenant_id, active_only=True) == []
    with pytest.raises(ValidationFailedError):
        await reminder_service.recipients_for_reminder(db_session, school.tenant_id, reminder.id)

    await reminder_service.delete_reminder(db_session, school.tenant_id, reminder.id)
    with pytest.raises(NotFoundError):
        await reminder_service.get_reminder(db_session, school.tenant_id, reminder.id)
