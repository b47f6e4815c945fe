import uuid
from datetime import date
from decimal import Decimal

import pytest

from fee_ledger.api.v1.fee_structures import service as structure_service
from fee_ledger.api.v1.fee_structures.schemas import (
    FeeInstallmentCreate,
    FeeInstallmentUpdate,
    FeeStructureCreate,
    FeeStructureItemCreate,
    FeeStructureUpdate,
)
from fee_ledger.api.v1.fee_types import service as fee_type_service
from fee_ledger.api.v1.fee_types.schemas import FeeTypeCreate, FeeTypeUpdate
from fee_ledger.api.v1.fees import service as fee_service
from fee_ledger.api.v1.fees.schemas import PaymentCreate
from fee_ledger.core.enums import InstallmentType, PaymentMode
from fee_ledger.core.exceptions import (
    ConflictError,
    DependentRecordError,
    InvariantViolationError,
    NotFoundError,
    ValidationFailedError,
)


async def test_fee_type_crud(db_session, school, other_school):
    ft = await fee_type_service.create_fee_type(
        db_session, school.tenant_id, FeeTypeCreate(name="Library", code=" lib ")
    )
    assert ft.code == "LIB"

    with pytest.raises(ConflictError):
        await fee_type_service.create_fee_type(db_session, school.tenant_id, FeeTypeCreate(name="Library"))
    # names are unique per school only
    other = await fee_type_service.create_fee_type(db_session, other_school.tenant_id, FeeTypeCreate(name="Library"))
    assert other.tenant_id == other_school.tenant_id

    updated = await fee_type_service.update_fee_type(
        db_session, school.tenant_id, ft.id, FeeTypeUpdate(description="Books and reading room")
    )
    assert updated.description == "Books and reading room"

    with pytest.raises(NotFoundError):
        await fee_type_service.get_fee_type(db_session, other_school.tenant_id, ft.id)

    await fee_type_service.delete_fee_type(db_session, school.tenant_id, ft.id)
    with pytest.raises(NotFoundError):
        await fee_type_service.get_fee_type(db_session, school.tenant_id, ft.id)


async def test_fee_type_in_use_cannot_be_deleted(db_session, school, make_structure):
    await make_structure({"tuition": "1000.00"}, InstallmentType.ANNUAL)
    with pytest.raises(DependentRecordError):
        await fee_type_service.delete_fee_type(db_session, school.tenant_id, school.tuition.id)
    # unused type can go
    await fee_type_service.delete_fee_type(db_session, school.tenant_id, school.transport.id)


async def test_create_structure_generates_installments(db_session, school, make_structure):
    fs = await make_structure({"tuition": "9000.00", "transport": "1000.00"}, InstallmentType.QUARTERLY)
    assert fs.total_amount == Decimal("10000.00")
    assert {i.fee_type_name for i in fs.items} == {"Tuition", "Transport"}
    assert [i.amount for i in fs.installments] == [Decimal("2500.00")] * 4
    assert [i.installment_number for i in fs.installments] == [1, 2, 3, 4]
    assert sum(i.amount for i in fs.installments) == fs.total_amount

    listed = await structure_service.list_fee_structures(
        db_session, school.tenant_id, academic_year_id=school.academic_year.id
    )
    assert [s.id for s in listed] == [fs.id]


async def test_create_structure_validation(db_session, school, other_school):
    def payload(**overrides):
        data = dict(
            name="Fees",
            academic_year_id=school.academic_year.id,
            installment_type=InstallmentType.ANNUAL,
            items=[FeeStructureItemCreate(fee_type_id=school.tuition.id, amount=Decimal("100"))],
        )
        data.update(overrides)
        return FeeStructureCreate(**data)

    with pytest.raises(NotFoundError):
        await structure_service.create_fee_structure(
            db_session, school.tenant_id, payload(academic_year_id=other_school.academic_year.id)
        )
    with pytest.raises(ValidationFailedError):
        await structure_service.create_fee_structure(
            db_session,
            school.tenant_id,
            payload(items=[FeeStructureItemCreate(fee_type_id=other_school.tuition.id, amount=Decimal("100"))]),
        )
    with pytest.raises(NotFoundError):
        await structure_service.create_fee_structure(
            db_session, school.tenant_id, payload(class_id=other_school.school_class.id)
        )

    school.academic_year.status = "CLOSED"
    await db_session.commit()
    with pytest.raises(ValidationFailedError):
        await structure_service.create_fee_structure(db_session, school.tenant_id, payload())


def test_structure_rejects_duplicate_fee_types():
    fee_type_id = uuid.uuid4()
    with pytest.raises(ValueError):
        FeeStructureCreate(
            name="Dup",
            academic_year_id=uuid.uuid4(),
            installment_type=InstallmentType.ANNUAL,
            items=[
                FeeStructureItemCreate(fee_type_id=fee_type_id, amount=Decimal("10")),
                FeeStructureItemCreate(fee_type_id=fee_type_id, amount=Decimal("20")),
            ],
        )


async def test_update_and_delete_structure(db_session, school, make_structure, assign_fee):
    fs = await make_structure({"tuition": "1000.00"}, InstallmentType.ANNUAL)
    updated = await structure_service.update_fee_structure(
        db_session, school.tenant_id, fs.id, FeeStructureUpdate(name="Grade 5 (revised)", is_active=False)
    )
    assert updated.name == "Grade 5 (revised)"
    assert updated.is_active is False
    assert updated.total_amount == Decimal("1000.00")
    active = await structure_service.list_fee_structures(db_session, school.tenant_id)
    assert active == []

    # inactive structures cannot be assigned
    with pytest.raises(ValidationFailedError):
        await assign_fee(fs.id)

    await structure_service.update_fee_structure(
        db_session, school.tenant_id, fs.id, FeeStructureUpdate(is_active=True)
    )
    await assign_fee(fs.id)
    with pytest.raises(DependentRecordError):
        await structure_service.delete_fee_structure(db_session, school.tenant_id, fs.id)

    spare = await make_structure({"transport": "500.00"}, InstallmentType.SEMI_ANNUAL, name="Bus")
    await structure_service.delete_fee_structure(db_session, school.tenant_id, spare.id)
    with pytest.raises(NotFoundError):
        await structure_service.get_fee_structure(db_session, school.tenant_id, spare.id)


async def test_installment_management(db_session, school, make_structure):
    fs = await make_structure({"tuition": "1000.00"}, InstallmentType.SEMI_ANNUAL)
    first, second = fs.installments

    with pytest.raises(ConflictError):
        await structure_service.create_installment(
            db_session,
            school.tenant_id,
            FeeInstallmentCreate(
                fee_structure_id=fs.id, installment_number=3, due_date=date(2026, 1, 15), amount=Decimal("1")
            ),
        )

    await structure_service.delete_installment(db_session, school.tenant_id, second.id)
    with pytest.raises(ConflictError):
        await structure_service.create_installment(
            db_session,
            school.tenant_id,
            FeeInstallmentCreate(
                fee_structure_id=fs.id, installment_number=1, due_date=date(2026, 1, 15), amount=Decimal("500")
            ),
        )
    replacement = await structure_service.create_installment(
        db_session,
        school.tenant_id,
        FeeInstallmentCreate(
            fee_structure_id=fs.id,
            installment_number=2,
            due_date=date(2026, 1, 15),
            amount=Decimal("500"),
            description="Second term",
        ),
    )
    assert replacement.amount == Decimal("500.00")

    moved = await structure_service.update_installment(
        db_session, school.tenant_id, first.id, FeeInstallmentUpdate(due_date=date(2025, 6, 30))
    )
    assert moved.due_date == date(2025, 6, 30)
    assert moved.amount == first.amount

    reloaded = await structure_service.get_fee_structure(db_session, school.tenant_id, fs.id)
    assert sum(i.amount for i in reloaded.installments) == reloaded.total_amount


async def test_paid_installment_is_frozen(db_session, school, make_structure, assign_fee):
    fs = await make_structure({"tuition": "1000.00"}, InstallmentType.SEMI_ANNUAL)
    sf = await assign_fee(fs.id)
    inst = fs.installments[0]
    await fee_service.record_payment(
        db_session,
        school.tenant_id,
        PaymentCreate(
            student_fee_id=sf.id,
            installment_id=inst.id,
            amount=Decimal("500"),
            payment_mode=PaymentMode.UPI,
            transaction_reference="UPI-8812",
        ),
    )
    with pytest.raises(InvariantViolationError):
        await structure_service.update_installment(
            db_session, school.tenant_id, inst.id, FeeInstallmentUpdate(description="moved")
        )
    with pytest.raises(DependentRecordError):
        await structure_service.delete_installment(db_session, school.tenant_id, inst.id)
