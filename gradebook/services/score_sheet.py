"""
Excel score sheets: entry templates for teachers, sheet import and class score exports.
"""

import io
import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import pandas as pd
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.models import Course, Exam, SchoolClass, Student
from gradebook.schemas.score import ScoreCreate
from gradebook.services.exceptions import ScoreNotFoundError
from gradebook.services.score_store import ScoreStore
from gradebook.utils.score_utils import is_absent_marker, parse_score_value

logger = logging.getLogger(__name__)

TEMPLATE_COLUMNS = ["student_code", "student_name", "score", "absent"]
REQUIRED_COLUMNS = {"student_code"}
TRUTHY_VALUES = {"1", "y", "yes", "true", "x"}


class ScoreSheetParseError(Exception):
    """Raised when an uploaded score sheet cannot be read or holds invalid rows."""

    pass


@dataclass
class ScoreSheetRow:
    row_number: int
    student_code: str
    score: Decimal | None
    absent: bool


def sanitize_filename_part(text: str) -> str:
    """
    Sanitize a string to be safe for use in filenames.
    Replaces spaces with underscores and removes invalid characters.
    """
    if not text:
        return ""
    text = text.replace(" ", "_")
    text = re.sub(r'[<>:"/\\|?*]', "", text)
    text = re.sub(r"_+", "_", text)
    return text.strip("_")


async def _get_live(session: AsyncSession, model: type, entity_id: int, label: str) -> Any:
    stmt = select(model).where(model.id == entity_id, model.deleted.is_(False))
    result = await session.execute(stmt)
    entity = result.scalar_one_or_none()
    if entity is None:
        raise ScoreNotFoundError(f"{label} {entity_id} not found")
    return entity


async def _class_students(session: AsyncSession, class_id: int) -> list[Student]:
    stmt = (
        select(Student)
        .where(Student.class_id == class_id, Student.deleted.is_(False))
        .order_by(Student.code)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


def _to_excel(df: pd.DataFrame, sheet_name: str) -> bytes:
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
    output.seek(0)
    return output.getvalue()


async def generate_score_entry_template(
    session: AsyncSession, exam_id: int, course_id: int, class_id: int
) -> tuple[bytes, str]:
    """
    Generate an Excel score entry sheet for one class.

    Lists the live students of the class with empty score and absent columns for the
    teacher to fill in.

    Returns:
        Tuple of (xlsx bytes, suggested filename)

    Raises:
        ScoreNotFoundError: If the exam, course or class does not exist
    """
    exam = await _get_live(session, Exam, exam_id, "Exam")
    course = await _get_live(session, Course, course_id, "Course")
    school_class = await _get_live(session, SchoolClass, class_id, "Class")
    students = await _class_students(session, class_id)

    df = pd.DataFrame(
        {
            "student_code": [student.code for student in students],
            "student_name": [student.name for student in students],
            "score": [""] * len(students),
            "absent": [""] * len(students),
        },
        columns=TEMPLATE_COLUMNS,
    )
    parts = [sanitize_filename_part(part) for part in (exam.code, school_class.name, course.name)]
    filename = "_".join(part for part in parts if part) + "_score_entry.xlsx"
    return _to_excel(df, "Scores"), filename


def parse_score_sheet(file_content: bytes, filename: str) -> list[ScoreSheetRow]:
    """
    Parse an uploaded score sheet (xlsx or csv) into score rows.

    A row needs a student_code. The student is absent when the absent column holds a yes
    value or the score cell holds an absence marker such as "ABS". Rows with neither a
    score nor an absence are skipped.

    Raises:
        ScoreSheetParseError: If the file cannot be read or a row is invalid
    """
    try:
        file_lower = filename.lower()
        if file_lower.endswith(".xlsx"):
            # dtype=str keeps leading zeros in student codes
            df = pd.read_excel(io.BytesIO(file_content), engine="openpyxl", dtype=str)
        elif file_lower.endswith(".csv"):
            df = pd.read_csv(io.BytesIO(file_content), dtype=str)
        else:
            raise ScoreSheetParseError(f"Unsupported file type. Expected .xlsx or .csv, got {filename}")
    except pd.errors.EmptyDataError:
        raise ScoreSheetParseError("File is empty or contains no data")
    except ScoreSheetParseError:
        raise
    except Exception as e:
        raise ScoreSheetParseError(f"Failed to parse file: {str(e)}")

    df = df.dropna(how="all")
    if df.empty:
        raise ScoreSheetParseError("File is empty or contains no data")

    df.columns = [str(col).lower().strip() for col in df.columns]
    missing_columns = REQUIRED_COLUMNS - set(df.columns)
    if missing_columns:
        raise ScoreSheetParseError(
            f"Missing required columns: {', '.join(sorted(missing_columns))}. "
            f"Found columns: {', '.join(sorted(df.columns))}"
        )

    rows: list[ScoreSheetRow] = []
    for idx, row in df.iterrows():
        row_number = int(idx) + 2  # header is row 1
        row_dict = {col: (None if pd.isna(val) else str(val).strip()) for col, val in row.items()}

        student_code = row_dict.get("student_code")
        if not student_code:
            raise ScoreSheetParseError(f"Row {row_number}: student_code is required")

        raw_score = row_dict.get("score")
        absent = (row_dict.get("absent") or "").lower() in TRUTHY_VALUES or is_absent_marker(raw_score)
        if absent:
            score = None
        else:
            try:
                score = parse_score_value(raw_score)
            except ValueError as e:
                raise ScoreSheetParseError(f"Row {row_number}: {str(e)}")
            if score is None:
                continue

        rows.append(ScoreSheetRow(row_number=row_number, student_code=student_code, score=score, absent=absent))

    if not rows:
        raise ScoreSheetParseError("File contains no scores to import")
    return rows


async def build_score_entries(
    session: AsyncSession,
    rows: list[ScoreSheetRow],
    exam_id: int,
    course_id: int,
    teacher_id: int | None = None,
) -> list[ScoreCreate]:
    """
    Turn parsed sheet rows into score entries by resolving student codes.

    Raises:
        ScoreSheetParseError: If a student code does not match a live student
    """
    codes = {row.student_code for row in rows}
    stmt = select(Student.code, Student.id).where(Student.code.in_(codes), Student.deleted.is_(False))
    result = await session.execute(stmt)
    student_ids = {code: student_id for code, student_id in result.all()}

    entries: list[ScoreCreate] = []
    for row in rows:
        student_id = student_ids.get(row.student_code)
        if student_id is None:
            raise ScoreSheetParseError(f"Row {row.row_number}: student '{row.student_code}' not found")
        entries.append(
            ScoreCreate(
                exam_id=exam_id,
                course_id=course_id,
                student_id=student_id,
                score=row.score,
                absent=row.absent,
                teacher_id=teacher_id,
            )
        )
    return entries


async def generate_class_score_export(session: AsyncSession, exam_id: int, class_id: int) -> tuple[bytes, str]:
    """
    Export every course score of one class for an exam, one row per student.

    Each course contributes a score, class rank and grade rank column. Absent students
    show "ABSENT" in the score column.

    Returns:
        Tuple of (xlsx bytes, suggested filename)

    Raises:
        ScoreNotFoundError: If the exam or class does not exist
    """
    exam = await _get_live(session, Exam, exam_id, "Exam")
    school_class = await _get_live(session, SchoolClass, class_id, "Class")
    students = await _class_students(session, class_id)
    rows = await ScoreStore(session).find_by_exam(exam_id, class_id)

    course_ids = sorted({row.score.course_id for row in rows})
    courses: dict[int, Course] = {}
    if course_ids:
        course_stmt = select(Course).where(Course.id.in_(course_ids)).order_by(Course.code)
        course_result = await session.execute(course_stmt)
        courses = {course.id: course for course in course_result.scalars().all()}

    by_student: dict[int, dict[int, Any]] = {}
    for row in rows:
        by_student.setdefault(row.score.student_id, {})[row.score.course_id] = row.score

    # Course names can repeat, so labels carry the unique course code
    labels = {course_id: f"{course.name} ({course.code})" for course_id, course in courses.items()}

    records = []
    for student in students:
        record: dict[str, Any] = {"Student Code": student.code, "Student Name": student.name}
        student_scores = by_student.get(student.id, {})
        for course in courses.values():
            label = labels[course.id]
            score = student_scores.get(course.id)
            if score is None:
                value = None
            elif score.absent:
                value = "ABSENT"
            else:
                value = float(score.score) if score.score is not None else None
            record[f"{label} Score"] = value
            record[f"{label} Class Rank"] = score.class_rank if score is not None else None
            record[f"{label} Grade Rank"] = score.grade_rank if score is not None else None
        records.append(record)

    columns = ["Student Code", "Student Name"]
    for course in courses.values():
        label = labels[course.id]
        columns.extend([f"{label} Score", f"{label} Class Rank", f"{label} Grade Rank"])
    df = pd.DataFrame(records, columns=columns)

    logger.info("Exported %d students of class %s for exam %s", len(records), class_id, exam_id)
    parts = [sanitize_filename_part(part) for part in (exam.code, school_class.name)]
    filename = "_".join(part for part in parts if part) + "_scores.xlsx"
    return _to_excel(df, "Scores"), filename
