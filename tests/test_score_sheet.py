import io
from decimal import Decimal

import pandas as pd
import pytest

from gradebook.models import Course
from gradebook.schemas.score import ScoreCreate
from gradebook.services.exceptions import ScoreNotFoundError
from gradebook.services.score_service import ScoreService
from gradebook.services.score_sheet import (
    ScoreSheetParseError,
    build_score_entries,
    generate_class_score_export,
    generate_score_entry_template,
    parse_score_sheet,
    sanitize_filename_part,
)


def to_xlsx(df: pd.DataFrame) -> bytes:
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Scores")
    return output.getvalue()


def test_parse_csv_sheet():
    content = b"student_code,student_name,score,absent\nA001,Ann,88.5,\nA002,Bob,,yes\nA003,Cid,ABS,\nA004,Dee,,\n"

    rows = parse_score_sheet(content, "scores.csv")

    assert [(row.student_code, row.score, row.absent) for row in rows] == [
        ("A001", Decimal("88.5"), False),
        ("A002", None, True),
        ("A003", None, True),
    ]
    assert [row.row_number for row in rows] == [2, 3, 4]


def test_parse_xlsx_sheet_keeps_leading_zeros():
    df = pd.DataFrame({"Student_Code": ["007", "008"], "Score": ["90", "75.5"]})

    rows = parse_score_sheet(to_xlsx(df), "scores.xlsx")

    assert [row.student_code for row in rows] == ["007", "008"]
    assert [row.score for row in rows] == [Decimal("90"), Decimal("75.5")]


def test_parse_rejects_invalid_score():
    content = b"student_code,score\nA001,80\nA002,eighty\n"

    with pytest.raises(ScoreSheetParseError, match="Row 3"):
        parse_score_sheet(content, "scores.csv")


def test_parse_rejects_missing_student_code_column():
    with pytest.raises(ScoreSheetParseError, match="Missing required columns: student_code"):
        parse_score_sheet(b"name,score\nAnn,80\n", "scores.csv")


def test_parse_rejects_unsupported_file_type():
    with pytest.raises(ScoreSheetParseError, match="Unsupported file type"):
        parse_score_sheet(b"whatever", "scores.pdf")


def test_parse_rejects_legacy_xls():
    with pytest.raises(ScoreSheetParseError, match="Expected .xlsx or .csv"):
        parse_score_sheet(b"\xd0\xcf\x11\xe0", "scores.xls")


def test_parse_rejects_sheet_without_scores():
    with pytest.raises(ScoreSheetParseError):
        parse_score_sheet(b"student_code,score\nA001,\n", "scores.csv")


def test_parse_rejects_empty_file():
    with pytest.raises(ScoreSheetParseError):
        parse_score_sheet(b"", "scores.csv")


def test_sanitize_filename_part():
    assert sanitize_filename_part("Grade 7 / Class 1") == "Grade_7_Class_1"
    assert sanitize_filename_part("") == ""


async def test_template_lists_class_students(session, seed):
    content, filename = await generate_score_entry_template(session, seed.exam_id, seed.math_id, seed.class_a_id)

    df = pd.read_excel(io.BytesIO(content), engine="openpyxl", dtype=str)
    assert list(df.columns) == ["student_code", "student_name", "score", "absent"]
    assert list(df["student_code"]) == ["A001", "A002", "A003", "A004", "A005"]
    assert filename == "2026-S1-MID_Grade_7_Class_1_Mathematics_score_entry.xlsx"


async def test_template_for_unknown_class(session, seed):
    with pytest.raises(ScoreNotFoundError):
        await generate_score_entry_template(session, seed.exam_id, seed.math_id, 9999)


async def test_build_score_entries(session, seed):
    rows = parse_score_sheet(b"student_code,score\nA001,80\nB002,ABSENT\n", "scores.csv")

    entries = await build_score_entries(session, rows, seed.exam_id, seed.math_id, teacher_id=3)

    assert entries == [
        ScoreCreate(
            exam_id=seed.exam_id, student_id=seed.class_a_students[0], course_id=seed.math_id, score="80", teacher_id=3
        ),
        ScoreCreate(
            exam_id=seed.exam_id, student_id=seed.class_b_students[1], course_id=seed.math_id, absent=True, teacher_id=3
        ),
    ]


async def test_build_score_entries_unknown_student(session, seed):
    rows = parse_score_sheet(b"student_code,score\nA001,80\nZ999,70\n", "scores.csv")

    with pytest.raises(ScoreSheetParseError, match="Row 3: student 'Z999' not found"):
        await build_score_entries(session, rows, seed.exam_id, seed.math_id)


async def test_class_export(session, seed):
    service = ScoreService(session)
    a = seed.class_a_students
    await service.batch_add_scores(
        [
            ScoreCreate(exam_id=seed.exam_id, student_id=a[0], course_id=seed.math_id, score="70"),
            ScoreCreate(exam_id=seed.exam_id, student_id=a[1], course_id=seed.math_id, score="85"),
            ScoreCreate(exam_id=seed.exam_id, student_id=a[1], course_id=seed.art_id, absent=True),
        ]
    )

    content, filename = await generate_class_score_export(session, seed.exam_id, seed.class_a_id)

    df = pd.read_excel(io.BytesIO(content), engine="openpyxl")
    assert filename == "2026-S1-MID_Grade_7_Class_1_scores.xlsx"
    assert len(df) == 5
    assert list(df.columns) == [
        "Student Code",
        "Student Name",
        "Art (ART) Score",
        "Art (ART) Class Rank",
        "Art (ART) Grade Rank",
        "Mathematics (MATH) Score",
        "Mathematics (MATH) Class Rank",
        "Mathematics (MATH) Grade Rank",
    ]
    first, second = df.iloc[0], df.iloc[1]
    assert first["Mathematics (MATH) Score"] == 70
    assert first["Mathematics (MATH) Class Rank"] == 2
    assert second["Mathematics (MATH) Class Rank"] == 1
    assert second["Art (ART) Score"] == "ABSENT"
    assert pd.isna(df.iloc[4]["Mathematics (MATH) Score"])


async def test_class_export_keeps_courses_with_the_same_name_apart(session, seed):
    algebra = Course(code="MATH2", name="Mathematics", full_score=Decimal("100"))
    session.add(algebra)
    await session.commit()
    student_id = seed.class_a_students[0]
    await ScoreService(session).batch_add_scores(
        [
            ScoreCreate(exam_id=seed.exam_id, student_id=student_id, course_id=seed.math_id, score="70"),
            ScoreCreate(exam_id=seed.exam_id, student_id=student_id, course_id=algebra.id, score="30"),
        ]
    )

    content, _ = await generate_class_score_export(session, seed.exam_id, seed.class_a_id)

    df = pd.read_excel(io.BytesIO(content), engine="openpyxl")
    assert list(df.columns[2:]) == [
        "Mathematics (MATH) Score",
        "Mathematics (MATH) Class Rank",
        "Mathematics (MATH) Grade Rank",
        "Mathematics (MATH2) Score",
        "Mathematics (MATH2) Class Rank",
        "Mathematics (MATH2) Grade Rank",
    ]
    assert df.iloc[0]["Mathematics (MATH) Score"] == 70
    assert df.iloc[0]["Mathematics (MATH2) Score"] == 30
