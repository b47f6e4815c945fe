from datetime import date
from decimal import Decimal

import pytest

from fee_ledger.api.v1.fee_structures.installments import (
    generate_installments,
    month_count,
    split_amount,
)
from fee_ledger.core.enums import InstallmentType
from fee_ledger.core.exceptions import ValidationFailedError

START = date(2025, 4, 1)
END = date(2026, 3, 31)


@pytest.mark.parametrize(
    "installment_type, expected_count",
    [
        (InstallmentType.ANNUAL, 1),
        (InstallmentType.SEMI_ANNUAL, 2),
        (InstallmentType.QUARTERLY, 4),
        (InstallmentType.MONTHLY, 12),
    ],
)
@pytest.mark.parametrize("total", ["12000.00", "10000.00", "9999.99", "0.05", "100"])
def test_installments_sum_to_total(installment_type, expected_count, total):
    plan = generate_installments(Decimal(total), installment_type, START, END)
    assert len(plan) == expected_count
    assert sum(p.amount for p in plan) == Decimal(total)
    assert [p.installment_number for p in plan] == list(range(1, expected_count + 1))
    assert all(p.amount == p.amount.quantize(Decimal("0.01")) for p in plan)


def test_monthly_due_dates_cover_every_month_on_the_15th():
    plan = generate_installments(Decimal("12000"), InstallmentType.MONTHLY, START, END)
    assert plan[0].due_date == date(2025, 4, 15)
    assert plan[-1].due_date == date(2026, 3, 15)
    assert all(p.due_date.day == 15 for p in plan)
    assert all(p.amount == Decimal("1000.00") for p in plan)


def test_fixed_plans_due_dates():
    quarterly = generate_installments(Decimal("10000"), InstallmentType.QUARTERLY, START, END)
    assert [p.due_date for p in quarterly] == [
        date(2025, 5, 15),
        date(2025, 8, 15),
        date(2025, 11, 15),
        date(2026, 2, 15),
    ]
    semi = generate_installments(Decimal("10000"), InstallmentType.SEMI_ANNUAL, START, END)
    assert [p.due_date for p in semi] == [date(2025, 5, 15), date(2025, 11, 15)]
    annual = generate_installments(Decimal("10000"), InstallmentType.ANNUAL, START, END)
    assert [p.due_date for p in annual] == [date(2025, 5, 15)]


def test_remainder_goes_to_first_installment():
    plan = generate_installments(Decimal("10000.00"), InstallmentType.MONTHLY, START, END)
    assert plan[0].amount == Decimal("833.37")
    assert all(p.amount == Decimal("833.33") for p in plan[1:])


def test_string_installment_type_is_accepted():
    plan = generate_installments("900", "QUARTERLY", START, END)
    assert [p.amount for p in plan] == [Decimal("225.00")] * 4


def test_monthly_short_year():
    plan = generate_installments(Decimal("300"), InstallmentType.MONTHLY, date(2025, 11, 20), date(2026, 1, 5))
    assert [p.due_date for p in plan] == [date(2025, 11, 15), date(2025, 12, 15), date(2026, 1, 15)]
    assert sum(p.amount for p in plan) == Decimal("300")


def test_month_count_inclusive():
    assert month_count(START, END) == 12
    assert month_count(date(2025, 6, 30), date(2025, 6, 1)) == 1


def test_split_amount():
    assert split_amount(Decimal("100.00"), 3) == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
    with pytest.raises(ValidationFailedError):
        split_amount(Decimal("100.00"), 0)


@pytest.mark.parametrize("total", ["0", "-10", "100.005"])
def test_rejects_bad_totals(total):
    with pytest.raises(ValidationFailedError):
        generate_installments(Decimal(total), InstallmentType.ANNUAL, START, END)


def test_rejects_unknown_type_and_reversed_dates():
    with pytest.raises(ValidationFailedError):
        generate_installments(Decimal("100"), "WEEKLY", START, END)
    with pytest.raises(ValidationFailedError):
        generate_installments(Decimal("100"), InstallmentType.ANNUAL, END, START)
