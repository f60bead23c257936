"""Script to generate initial dummy data for manual testing."""

import asyncio
import random
from decimal import Decimal

from sqlalchemy import select

from gradebook.dependencies.database import get_sessionmanager, initialize_db
from gradebook.models import Course, Exam, SchoolClass, Student
from gradebook.schemas.score import ScoreCreate
from gradebook.services.exceptions import DuplicateScoreError
from gradebook.services.score_service import ScoreService

STUDENTS_PER_CLASS = 30


async def create_initial_data() -> None:
    """Create initial dummy data for testing."""
    sessionmanager = get_sessionmanager()
    async with initialize_db(sessionmanager):
        async with sessionmanager.session() as session:
            print("Starting initial data generation...")

            classes = await create_classes(session)
            print(f"Created {len(classes)} classes")

            students = await create_students(session, classes)
            print(f"Created {len(students)} students")

            courses = await create_courses(session)
            print(f"Created {len(courses)} courses")

            exam = await create_exam(session)
            print(f"Created exam {exam.code}")

            await session.commit()

            created = await create_scores(session, exam, courses, students)
            print(f"Created {created} scores")

            print("Initial data generation completed successfully!")


async def create_classes(session) -> list[SchoolClass]:
    """Create classes if they don't exist."""
    classes_data = [
        {"code": "G7-1", "name": "Grade 7 Class 1", "grade_level": 7},
        {"code": "G7-2", "name": "Grade 7 Class 2", "grade_level": 7},
        {"code": "G7-3", "name": "Grade 7 Class 3", "grade_level": 7},
    ]

    classes = []
    for class_data in classes_data:
        stmt = select(SchoolClass).where(SchoolClass.code == class_data["code"])
        result = await session.execute(stmt)
        existing = result.scalar_one_or_none()

        if not existing:
            school_class = SchoolClass(**class_data)
            session.add(school_class)
            classes.append(school_class)
        else:
            classes.append(existing)

    await session.flush()
    return classes


async def create_students(session, classes: list[SchoolClass]) -> list[Student]:
    """Create STUDENTS_PER_CLASS students in every class."""
    students = []
    for class_index, school_class in enumerate(classes, start=1):
        for number in range(1, STUDENTS_PER_CLASS + 1):
            code = f"S7{class_index:02d}{number:03d}"
            stmt = select(Student).where(Student.code == code)
            result = await session.execute(stmt)
            existing = result.scalar_one_or_none()

            if not existing:
                student = Student(code=code, name=f"Student {class_index}-{number}", class_id=school_class.id)
                session.add(student)
                students.append(student)
            else:
                students.append(existing)

    await session.flush()
    return students


async def create_courses(session) -> list[Course]:
    """Create courses with their threshold configuration."""
    courses_data = [
        {
            "code": "MATH",
            "name": "Mathematics",
            "full_score": Decimal("100"),
            "pass_score": Decimal("60"),
            "good_score": Decimal("75"),
            "excellent_score": Decimal("90"),
        },
        {
            "code": "LANG",
            "name": "Language",
            "full_score": Decimal("120"),
            "pass_score": Decimal("72"),
            "good_score": Decimal("90"),
            "excellent_score": Decimal("108"),
        },
        # No cutoffs: statistics report counts, range and mean only
        {"code": "ART", "name": "Art", "full_score": Decimal("50")},
    ]

    courses = []
    for course_data in courses_data:
        stmt = select(Course).where(Course.code == course_data["code"])
        result = await session.execute(stmt)
        existing = result.scalar_one_or_none()

        if not existing:
            course = Course(**course_data)
            session.add(course)
            courses.append(course)
        else:
            courses.append(existing)

    await session.flush()
    return courses


async def create_exam(session) -> Exam:
    stmt = select(Exam).where(Exam.code == "2026-S1-MID")
    result = await session.execute(stmt)
    existing = result.scalar_one_or_none()
    if existing:
        return existing

    exam = Exam(code="2026-S1-MID", name="Midterm Examination", school_year="2026-2027", semester=1)
    session.add(exam)
    await session.flush()
    return exam


async def create_scores(session, exam: Exam, courses: list[Course], students: list[Student]) -> int:
    """Enter random scores through the score service so ranks are computed."""
    rng = random.Random(42)
    service = ScoreService(session)
    created = 0
    for course in courses:
        entries = []
        for student in students:
            if rng.random() < 0.05:
                entries.append(
                    ScoreCreate(exam_id=exam.id, student_id=student.id, course_id=course.id, absent=True)
                )
                continue
            low = float(course.full_score) * 0.4
            value = Decimal(str(round(rng.uniform(low, float(course.full_score)) * 2) / 2))
            entries.append(ScoreCreate(exam_id=exam.id, student_id=student.id, course_id=course.id, score=value))
        try:
            rows = await service.batch_add_scores(entries)
        except DuplicateScoreError:
            print(f"Scores for course {course.code} already exist, skipping")
            continue
        created += len(rows)
    return created


if __name__ == "__main__":
    asyncio.run(create_initial_data())
