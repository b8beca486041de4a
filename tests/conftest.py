from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.academic_years import service as academic_years_service
from app.api.v1.academic_years.schemas import AcademicYearCreate
from app.api.v1.classes import service as classes_service
from app.api.v1.classes.schemas import ClassCreate
from app.api.v1.fee_templates import service as fee_templates_service
from app.api.v1.fee_templates.schemas import FeeTemplateCreate
from app.api.v1.scholarship_templates import service as scholarship_templates_service
from app.api.v1.scholarship_templates.schemas import ScholarshipTemplateCreate
from app.api.v1.students import service as students_service
from app.api.v1.students.schemas import StudentCreate
from app.core.enums import FeeCategory, ScholarshipType
from app.core.fees import FeeItemOptions, ScholarshipItemOptions, build_fee_structure, materialize, recalculate
from app.core.fees.documents import (
    AcademicYearSnapshot,
    ClassSnapshot,
    FeeStatus,
    FeeTemplateDoc,
    PaymentLine,
    PaymentRequest,
    ScholarshipTemplateDoc,
    StudentEnrollmentDoc,
    StudentSnapshot,
)
from app.db.session import Base, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"

ACTOR = "office@school"


# --- Engine documents ---
@pytest.fixture()
def year_snapshot() -> AcademicYearSnapshot:
    return AcademicYearSnapshot(
        year="2024-2025",
        start_date=date(2024, 4, 1),
        end_date=date(2025, 3, 31),
        is_active=True,
    )


@pytest.fixture()
def class_snapshot() -> ClassSnapshot:
    return ClassSnapshot(class_name="5th", is_active=True)


@pytest.fixture()
def student_snapshot() -> StudentSnapshot:
    return StudentSnapshot(admission_number="ADM001", name="Asha Rao", father_name="Vikram Rao")


@pytest.fixture()
def fee_templates():
    """School Fee (regular), Book Fee and Van Fee (optional)."""
    return [
        FeeTemplateDoc(id="tpl-school", name="School Fee", category=FeeCategory.REGULAR, order=1),
        FeeTemplateDoc(id="tpl-book", name="Book Fee", category=FeeCategory.OPTIONAL, order=2),
        FeeTemplateDoc(id="tpl-van", name="Van Fee", category=FeeCategory.OPTIONAL, order=3),
    ]


@pytest.fixture()
def scholarship_templates():
    return [
        ScholarshipTemplateDoc(id="sch-merit", name="Merit", type=ScholarshipType.MERIT, order=1),
        ScholarshipTemplateDoc(id="sch-sibling", name="Sibling", type=ScholarshipType.GENERAL, order=2),
    ]


@pytest.fixture()
def make_structure(year_snapshot, class_snapshot, fee_templates, scholarship_templates):
    def _make(fee_amounts=None, scholarship_amounts=None, fee_options=None, scholarship_options=None,
              fees=None, scholarships=None):
        return build_fee_structure(
            academic_year_id="ay-1",
            class_id="class-5",
            academic_year=year_snapshot,
            school_class=class_snapshot,
            fee_templates=fee_templates if fees is None else fees,
            scholarship_templates=scholarship_templates if scholarships is None else scholarships,
            default_amounts=fee_amounts,
            scholarship_amounts=scholarship_amounts,
            fee_options=fee_options,
            scholarship_options=scholarship_options,
        )

    return _make


@pytest.fixture()
def make_enrollment(year_snapshot, class_snapshot, student_snapshot):
    def _make(structure, **overrides) -> StudentEnrollmentDoc:
        m = materialize(structure, ACTOR, datetime(2024, 4, 1, 9, 0), **overrides)
        doc = StudentEnrollmentDoc(
            student_id="student-1",
            academic_year_id=structure.academic_year_id,
            class_id=structure.class_id,
            section="A",
            enrollment_date=date(2024, 4, 1),
            student=student_snapshot,
            academic_year=year_snapshot,
            school_class=class_snapshot,
            fees=m.fees,
            scholarships=m.scholarships,
            totals=m.totals,
            fee_status=FeeStatus(),
        )
        return recalculate(doc, [])

    return _make


def payment_request(*lines, when=datetime(2024, 6, 1, 10, 0), method="CASH"):
    return PaymentRequest(
        lines=[PaymentLine(fee_line_id=fee_line_id, amount=Decimal(str(amount))) for fee_line_id, amount in lines],
        payment_method=method,
        payment_date=when,
        created_by=ACTOR,
    )


@pytest.fixture()
def make_request():
    return payment_request


@pytest.fixture()
def fee_options():
    return FeeItemOptions


@pytest.fixture()
def scholarship_options():
    return ScholarshipItemOptions


# --- Database ---
@pytest.fixture()
async def engine():
    """In-memory SQLite shared by every connection of one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Actor": ACTOR},
    ) as ac:
        yield ac


@pytest.fixture()
async def seed(db_session: AsyncSession) -> SimpleNamespace:
    """Current academic year, one class, two students and the fee / scholarship catalog."""
    ay = await academic_years_service.create_academic_year(
        db_session,
        AcademicYearCreate(
            year="2024-2025",
            start_date=date(2024, 4, 1),
            end_date=date(2025, 3, 31),
            set_as_current=True,
        ),
    )
    cl = await classes_service.create_class(db_session, ClassCreate(class_name="5th", display_order=5))
    asha = await students_service.create_student(
        db_session,
        StudentCreate(admission_number="ADM001", name="Asha Rao", father_name="Vikram Rao", mobile_no="9000000001"),
    )
    ravi = await students_service.create_student(
        db_session,
        StudentCreate(admission_number="ADM002", name="Ravi Kumar", father_name="Suresh Kumar"),
    )
    school = await fee_templates_service.create_fee_template(
        db_session, FeeTemplateCreate(name="School Fee", category=FeeCategory.REGULAR, order=1)
    )
    book = await fee_templates_service.create_fee_template(
        db_session, FeeTemplateCreate(name="Book Fee", category=FeeCategory.OPTIONAL, order=2)
    )
    merit = await scholarship_templates_service.create_scholarship_template(
        db_session, ScholarshipTemplateCreate(name="Merit", type=ScholarshipType.MERIT, order=1)
    )
    sibling = await scholarship_templates_service.create_scholarship_template(
        db_session, ScholarshipTemplateCreate(name="Sibling", type=ScholarshipType.GENERAL, order=2)
    )
    return SimpleNamespace(
        academic_year=ay,
        school_class=cl,
        asha=asha,
        ravi=ravi,
        school_fee=school,
        book_fee=book,
        merit=merit,
        sibling=sibling,
    )


@pytest.fixture()
def structure_payload(seed):
    """School Fee 5000 (compulsory), Book Fee 1000 (editable), Merit 500 (auto), Sibling 300 (manual)."""

    def _payload(**overrides) -> dict:
        payload = {
            "academic_year_id": seed.academic_year.id,
            "class_id": seed.school_class.id,
            "default_amounts": {seed.school_fee.id: "5000", seed.book_fee.id: "1000"},
            "scholarship_amounts": {seed.merit.id: "500", seed.sibling.id: "300"},
            "fee_items": [{"template_id": seed.book_fee.id, "is_editable_during_enrollment": True}],
            "scholarship_items": [
                {"template_id": seed.merit.id, "is_auto_applied": True},
                {"template_id": seed.sibling.id, "is_editable_during_enrollment": True},
            ],
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture()
async def enroll(client: AsyncClient, seed: SimpleNamespace, structure_payload):
    """Create the class structure once, then enroll students through the API."""
    response = await client.post("/api/v1/fee-structures", json=structure_payload())
    assert response.status_code == 201

    async def _enroll(student, **extra) -> dict:
        payload = {
            "student_id": student.id,
            "academic_year_id": seed.academic_year.id,
            "class_id": seed.school_class.id,
            "enrollment_date": "2024-04-01",
        }
        payload.update(extra)
        r = await client.post("/api/v1/enrollments", json=payload)
        assert r.status_code == 201, r.text
        return r.json()

    return _enroll


@pytest.fixture()
def pay(client: AsyncClient):
    async def _pay(enrollment: dict, *lines, when: str = "2024-06-01T10:00:00", **extra):
        payload = {
            "lines": [{"fee_line_id": fee_line_id, "amount": str(amount)} for fee_line_id, amount in lines],
            "payment_date": when,
        }
        payload.update(extra)
        return await client.post(f"/api/v1/payments/enrollment/{enrollment['id']}", json=payload)

    return _pay
