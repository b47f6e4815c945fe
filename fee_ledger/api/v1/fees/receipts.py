"""Receipt number allocation: <prefix><YY><MM><NNNN>, sequence per school per month."""

from datetime import date, datetime, timezone
from typing import Optional, Union
from uuid import UUID

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.config import settings
from fee_ledger.core.models import ReceiptSequence

_UPSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def receipt_period(at: Union[date, datetime]) -> str:
    return at.strftime("%y%m")


def format_receipt_number(period: str, sequence: int, prefix: Optional[str] = None) -> str:
    """Sequence is zero-padded to 4 digits and keeps growing past 9999."""
    return f"{prefix if prefix is not None else settings.receipt_prefix}{period}{sequence:04d}"


async def next_receipt_number(
    db: AsyncSession,
    tenant_id: UUID,
    at: Optional[Union[date, datetime]] = None,
) -> str:
    """
    Allocate the next receipt number for the tenant in the month of `at` (default: now, UTC).

    Runs an atomic INSERT ... ON CONFLICT DO UPDATE ... RETURNING in the caller's
    transaction, so concurrent payments never read the same counter value and a
    rolled-back payment releases nothing that another payment already saw.
    """
    period = receipt_period(at or datetime.now(timezone.utc))
    dialect = db.get_bind().dialect.name
    insert = _UPSERT_BY_DIALECT.get(dialect)
    if insert is None:
        raise RuntimeError(f"Receipt numbering is not supported on the {dialect} dialect")

    stmt = insert(ReceiptSequence).values(tenant_id=tenant_id, period=period, last_number=1)
    stmt = stmt.on_conflict_do_update(
        index_elements=[ReceiptSequence.tenant_id, ReceiptSequence.period],
        set_={"last_number": ReceiptSequence.last_number + 1},
    ).returning(ReceiptSequence.last_number)
    sequence = (await db.execute(stmt)).scalar_one()
    return format_receipt_number(period, sequence)
