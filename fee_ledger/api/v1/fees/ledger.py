"""
Ledger engine primitives for StudentFee rows.

Balances are never patched field by field: every mutation passes the new
(discount, paid) pair through `recompute`, which derives net, outstanding and
status and rejects states that break the ledger invariants.

Every mutation runs inside `ledger_transaction`: the row is read with
SELECT ... FOR UPDATE (PostgreSQL) and written with a version check
(`StudentFee.version`), so two writers that read the same revision can never
both commit.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import AsyncIterator, Iterable, Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from fee_ledger.app_logger import get_logger
from fee_ledger.core.enums import FeeStatus
from fee_ledger.core.exceptions import ConflictError, InvariantViolationError, NotFoundError, ServiceError
from fee_ledger.core.models import FeeInstallment, StudentFee

logger = get_logger(__name__)

CENT = Decimal("0.01")
STUDENT_FEE_NOT_FOUND = "Student fee record not found"
CONCURRENT_MODIFICATION = "Student fee was modified by another request. Reload the balance and retry."

# SQLSTATEs for serialization failure, deadlock, lock not available
_PG_CONCURRENCY_CODES = {"40001", "40P01", "55P03"}

Money = Union[Decimal, int, str]


@dataclass(frozen=True)
class LedgerBalances:
    net_amount: Decimal
    outstanding_amount: Decimal
    status: FeeStatus


def to_money(val: Optional[Money]) -> Decimal:
    if val is None:
        return Decimal("0.00")
    d = val if isinstance(val, Decimal) else Decimal(str(val))
    return d.quantize(CENT)


def derive_status(paid_amount: Money, net_amount: Money) -> FeeStatus:
    paid = to_money(paid_amount)
    net = to_money(net_amount)
    if net - paid == 0:
        return FeeStatus.PAID
    if paid == 0:
        return FeeStatus.PENDING
    return FeeStatus.PARTIAL


def recompute(total_amount: Money, discount_amount: Money, paid_amount: Money) -> LedgerBalances:
    total = to_money(total_amount)
    discount = to_money(discount_amount)
    paid = to_money(paid_amount)
    net = total - discount
    if discount < 0:
        raise InvariantViolationError("Discount amount cannot be negative")
    if net < 0:
        raise InvariantViolationError(f"Discount ({discount}) exceeds total amount ({total})")
    if paid < 0:
        raise InvariantViolationError("Paid amount cannot be negative")
    if paid > net:
        raise InvariantViolationError(f"Paid amount ({paid}) exceeds net amount ({net})")
    return LedgerBalances(
        net_amount=net,
        outstanding_amount=net - paid,
        status=derive_status(paid, net),
    )


def apply_balances(
    sf: StudentFee,
    *,
    discount_amount: Optional[Money] = None,
    paid_amount: Optional[Money] = None,
) -> LedgerBalances:
    """Set the new discount/paid on the row and write every derived field from recompute()."""
    discount = to_money(sf.discount_amount if discount_amount is None else discount_amount)
    paid = to_money(sf.paid_amount if paid_amount is None else paid_amount)
    balances = recompute(sf.total_amount, discount, paid)
    sf.discount_amount = discount
    sf.paid_amount = paid
    sf.net_amount = balances.net_amount
    sf.outstanding_amount = balances.outstanding_amount
    sf.status = balances.status.value
    return balances


def balance_snapshot(sf: StudentFee) -> dict:
    return {
        "total_amount": str(to_money(sf.total_amount)),
        "discount_amount": str(to_money(sf.discount_amount)),
        "net_amount": str(to_money(sf.net_amount)),
        "paid_amount": str(to_money(sf.paid_amount)),
        "outstanding_amount": str(to_money(sf.outstanding_amount)),
        "status": sf.status,
    }


async def lock_student_fee(
    db: AsyncSession,
    tenant_id: UUID,
    student_fee_id: UUID,
) -> StudentFee:
    """Read the current row for update. Always hits the database, never the identity map."""
    sf = (
        await db.execute(
            select(StudentFee)
            .where(
                StudentFee.id == student_fee_id,
                StudentFee.tenant_id == tenant_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not sf:
        raise NotFoundError(STUDENT_FEE_NOT_FOUND)
    return sf


def _is_concurrency_failure(exc: DBAPIError) -> bool:
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in _PG_CONCURRENCY_CODES:
        return True
    # SQLite reports write contention as "database is locked"
    return "database is locked" in str(orig).lower()


@asynccontextmanager
async def ledger_transaction(db: AsyncSession, operation: str) -> AsyncIterator[None]:
    """Unit of work for one ledger mutation: commit everything or nothing."""
    try:
        yield
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except StaleDataError:
        await db.rollback()
        logger.warning("%s rejected: stale row version", operation)
        raise ConflictError(CONCURRENT_MODIFICATION)
    except IntegrityError as e:
        await db.rollback()
        logger.warning("%s rejected: integrity error %s", operation, e.orig)
        raise ConflictError(f"{operation} conflicts with an existing record")
    except DBAPIError as e:
        await db.rollback()
        if _is_concurrency_failure(e):
            logger.warning("%s rejected: concurrent write (%s)", operation, e.orig)
            raise ConflictError(CONCURRENT_MODIFICATION)
        raise


def is_overdue(
    sf: StudentFee,
    installments: Iterable[FeeInstallment],
    today: Optional[date] = None,
) -> bool:
    """Outstanding balance and more falls due before `today` than paid + discount covers."""
    if to_money(sf.outstanding_amount) <= 0:
        return False
    today = today or date.today()
    due = sum(
        (to_money(i.amount) for i in installments if i.due_date < today),
        Decimal("0.00"),
    )
    return due > to_money(sf.paid_amount) + to_money(sf.discount_amount)
