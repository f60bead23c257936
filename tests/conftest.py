from dataclasses import dataclass
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import NullPool

from gradebook.core.cache import invalidate_threshold_cache
from gradebook.core.locks import scope_locks
from gradebook.dependencies.database import TestingDatabaseSessionManager, get_db_session
from gradebook.main import app
from gradebook.models import Course, Exam, SchoolClass, Student


@dataclass
class SeedData:
    exam_id: int
    other_exam_id: int
    math_id: int  # full 100, cutoffs 60/80/90
    art_id: int  # full 50, no cutoffs
    class_a_id: int
    class_b_id: int
    class_a_students: list[int]
    class_b_students: list[int]


@pytest.fixture(autouse=True)
def reset_shared_state():
    invalidate_threshold_cache()
    scope_locks.clear()
    yield
    invalidate_threshold_cache()
    scope_locks.clear()


@pytest.fixture
async def sessionmanager(tmp_path):
    manager = TestingDatabaseSessionManager(f"sqlite:///{tmp_path / 'gradebook.db'}", {"poolclass": NullPool})
    await manager.configure()
    yield manager
    await manager.close()


@pytest.fixture
async def session(sessionmanager):
    async with sessionmanager.session() as session:
        yield session


@pytest.fixture
async def seed(sessionmanager) -> SeedData:
    async with sessionmanager.session() as session:
        exam = Exam(code="2026-S1-MID", name="Midterm", school_year="2026-2027", semester=1)
        other_exam = Exam(code="2026-S1-FIN", name="Final", school_year="2026-2027", semester=1)
        math = Course(
            code="MATH",
            name="Mathematics",
            full_score=Decimal("100"),
            pass_score=Decimal("60"),
            good_score=Decimal("80"),
            excellent_score=Decimal("90"),
        )
        art = Course(code="ART", name="Art", full_score=Decimal("50"))
        class_a = SchoolClass(code="G7-1", name="Grade 7 Class 1", grade_level=7)
        class_b = SchoolClass(code="G7-2", name="Grade 7 Class 2", grade_level=7)
        session.add_all([exam, other_exam, math, art, class_a, class_b])
        await session.flush()

        class_a_students = [
            Student(code=f"A{number:03d}", name=f"Student A{number}", class_id=class_a.id) for number in range(1, 6)
        ]
        class_b_students = [
            Student(code=f"B{number:03d}", name=f"Student B{number}", class_id=class_b.id) for number in range(1, 6)
        ]
        session.add_all(class_a_students + class_b_students)
        await session.commit()

        return SeedData(
            exam_id=exam.id,
            other_exam_id=other_exam.id,
            math_id=math.id,
            art_id=art.id,
            class_a_id=class_a.id,
            class_b_id=class_b.id,
            class_a_students=[student.id for student in class_a_students],
            class_b_students=[student.id for student in class_b_students],
        )


@pytest.fixture
async def client(sessionmanager):
    async def override_get_db_session():
        async with sessionmanager.session() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
