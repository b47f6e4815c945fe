import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./fee_ledger_test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import uuid
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from typing import AsyncGenerator, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fee_ledger.api.v1.fee_structures import service as structure_service
from fee_ledger.api.v1.fee_structures.schemas import FeeStructureCreate, FeeStructureItemCreate
from fee_ledger.api.v1.fees import service as fee_service
from fee_ledger.api.v1.fees.schemas import AssignFeeRequest
from fee_ledger.core.config import settings
from fee_ledger.core.enums import InstallmentType
from fee_ledger.core.models import AcademicYear, FeeType, SchoolClass, Tenant, User
from fee_ledger.db.session import Base, engine_options, get_db
from fee_ledger.main import app

AY_START = date(2025, 4, 1)
AY_END = date(2026, 3, 31)


@pytest.fixture()
async def engine(tmp_path):
    """File-backed SQLite so several sessions (and the API) see the same data."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'fee_ledger.db'}"
    engine = create_async_engine(url, echo=False, **engine_options(url))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


async def _seed_school(db: AsyncSession, code: str, students: int = 3) -> SimpleNamespace:
    tenant = Tenant(organization_code=code, organization_name=f"School {code}")
    db.add(tenant)
    await db.flush()
    ay = AcademicYear(
        tenant_id=tenant.id,
        name="2025-2026",
        start_date=AY_START,
        end_date=AY_END,
        is_current=True,
        status="ACTIVE",
    )
    school_class = SchoolClass(tenant_id=tenant.id, name="Grade 5", display_order=5)
    db.add_all([ay, school_class])
    await db.flush()
    admin = User(tenant_id=tenant.id, full_name="Accounts Admin", email=f"admin@{code.lower()}.edu", role="ADMIN")
    pupils = [
        User(
            tenant_id=tenant.id,
            full_name=f"Student {i}",
            email=f"student{i}@{code.lower()}.edu",
            role="STUDENT",
            class_id=school_class.id,
        )
        for i in range(1, students + 1)
    ]
    tuition = FeeType(tenant_id=tenant.id, name="Tuition", code="TUITION")
    transport = FeeType(tenant_id=tenant.id, name="Transport", code="TRANSPORT")
    db.add_all([admin, *pupils, tuition, transport])
    await db.commit()
    return SimpleNamespace(
        tenant=tenant,
        tenant_id=tenant.id,
        academic_year=ay,
        school_class=school_class,
        admin=admin,
        students=pupils,
        tuition=tuition,
        transport=transport,
    )


@pytest.fixture()
async def school(db_session: AsyncSession) -> SimpleNamespace:
    return await _seed_school(db_session, "DPS01")


@pytest.fixture()
async def other_school(db_session: AsyncSession) -> SimpleNamespace:
    return await _seed_school(db_session, "KVS02", students=1)


@pytest.fixture()
def make_structure(db_session: AsyncSession, school: SimpleNamespace):
    """Create a fee structure for `school` through the service layer."""

    async def _make(
        amounts: Optional[Dict[str, str]] = None,
        installment_type: InstallmentType = InstallmentType.MONTHLY,
        name: str = "Grade 5 Fees",
    ):
        amounts = amounts or {"tuition": "12000.00"}
        items: List[FeeStructureItemCreate] = [
            FeeStructureItemCreate(fee_type_id=getattr(school, key).id, amount=Decimal(value))
            for key, value in amounts.items()
        ]
        payload = FeeStructureCreate(
            name=name,
            class_id=school.school_class.id,
            academic_year_id=school.academic_year.id,
            installment_type=installment_type,
            items=items,
        )
        return await structure_service.create_fee_structure(
            db_session, school.tenant_id, payload, changed_by=school.admin.id
        )

    return _make


@pytest.fixture()
def assign_fee(db_session: AsyncSession, school: SimpleNamespace):
    async def _assign(fee_structure_id: uuid.UUID, student: Optional[User] = None, discount: str = "0"):
        student = student or school.students[0]
        return await fee_service.assign_fee_to_student(
            db_session,
            school.tenant_id,
            AssignFeeRequest(
                student_id=student.id,
                fee_structure_id=fee_structure_id,
                discount_amount=Decimal(discount),
            ),
            changed_by=school.admin.id,
        )

    return _assign


def _encode_token(user_id: uuid.UUID, tenant_id: uuid.UUID, role: str = "ADMIN", permissions: Optional[dict] = None) -> str:
    claims = {
        "user_id": str(user_id),
        "tenant_id": str(tenant_id),
        "role": role,
        "permissions": permissions or {},
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture()
def make_token():
    """Signed access token as issued by the auth service."""
    return _encode_token


@pytest.fixture()
def auth_headers(school: SimpleNamespace) -> Dict[str, str]:
    return {"Authorization": f"Bearer {_encode_token(school.admin.id, school.tenant_id)}"}


@pytest.fixture()
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app, one session per request."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
