"""
Installment plan generation. Pure: no database access.

The split never loses or invents a paisa: amounts are cut to 2 decimal places and the
remainder lands on installment #1, so sum(amounts) == total exactly.
"""

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_DOWN, Decimal
from typing import List, Union

from fee_ledger.core.enums import InstallmentType
from fee_ledger.core.exceptions import ValidationFailedError

CENT = Decimal("0.01")
DUE_DAY = 15

# Month offsets from the academic year start for the fixed-count plans
_OFFSETS = {
    InstallmentType.ANNUAL: (1,),
    InstallmentType.SEMI_ANNUAL: (1, 7),
    InstallmentType.QUARTERLY: (1, 4, 7, 10),
}


@dataclass(frozen=True)
class PlannedInstallment:
    installment_number: int
    due_date: date
    amount: Decimal


def _add_months(d: date, months: int) -> date:
    """First day of the month `months` after d's month."""
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_count(start_date: date, end_date: date) -> int:
    """Calendar months from start's month to end's month, inclusive."""
    return (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month) + 1


def split_amount(total: Decimal, parts: int) -> List[Decimal]:
    """Split total into `parts` cent amounts; the rounding remainder goes to the first part."""
    if parts < 1:
        raise ValidationFailedError("Installment count must be at least 1")
    share = (total / parts).quantize(CENT, rounding=ROUND_DOWN)
    amounts = [share] * parts
    amounts[0] = total - share * (parts - 1)
    return amounts


def _due_dates(installment_type: InstallmentType, start_date: date, end_date: date) -> List[date]:
    if installment_type == InstallmentType.MONTHLY:
        return [
            _add_months(start_date, i).replace(day=DUE_DAY)
            for i in range(month_count(start_date, end_date))
        ]
    return [_add_months(start_date, off).replace(day=DUE_DAY) for off in _OFFSETS[installment_type]]


def generate_installments(
    total_amount: Union[Decimal, int, str],
    installment_type: Union[InstallmentType, str],
    start_date: date,
    end_date: date,
) -> List[PlannedInstallment]:
    try:
        installment_type = InstallmentType(installment_type)
    except ValueError:
        raise ValidationFailedError(f"Unknown installment type: {installment_type}")

    total = Decimal(str(total_amount))
    if total <= 0:
        raise ValidationFailedError("Total amount must be greater than zero")
    if total != total.quantize(CENT):
        raise ValidationFailedError("Total amount cannot have more than 2 decimal places")
    if end_date < start_date:
        raise ValidationFailedError("Academic year end date is before its start date")

    due_dates = _due_dates(installment_type, start_date, end_date)
    amounts = split_amount(total, len(due_dates))
    return [
        PlannedInstallment(installment_number=n, due_date=due, amount=amt)
        for n, (due, amt) in enumerate(zip(due_dates, amounts), start=1)
    ]
