from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship

from gradebook.dependencies.database import Base

# Scores and thresholds are stored with one fractional digit, e.g. 87.5
SCORE_PRECISION = 5
SCORE_SCALE = 1


class SchoolClass(Base):
    __tablename__ = "school_classes"
    id = Column(Integer, primary_key=True)
    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(50), nullable=False)
    grade_level = Column(Integer, nullable=True)  # cohort the class belongs to, e.g. 7 for seventh grade
    deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    students = relationship("Student", back_populates="school_class")


class Student(Base):
    __tablename__ = "students"
    id = Column(Integer, primary_key=True)
    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(50), nullable=False)
    class_id = Column(Integer, ForeignKey("school_classes.id", ondelete="RESTRICT"), nullable=False, index=True)
    deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass", back_populates="students")
    scores = relationship("Score", back_populates="student")


class Course(Base):
    __tablename__ = "courses"
    id = Column(Integer, primary_key=True)
    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(50), nullable=False)
    full_score = Column(Numeric(SCORE_PRECISION, SCORE_SCALE), nullable=False)
    # Optional cutoffs; NULL means the corresponding rate is not reported
    pass_score = Column(Numeric(SCORE_PRECISION, SCORE_SCALE), nullable=True)
    good_score = Column(Numeric(SCORE_PRECISION, SCORE_SCALE), nullable=True)
    excellent_score = Column(Numeric(SCORE_PRECISION, SCORE_SCALE), nullable=True)
    deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    scores = relationship("Score", back_populates="course")
    __table_args__ = (
        CheckConstraint("full_score > 0", name="ck_course_full_score_positive"),
        CheckConstraint("pass_score IS NULL OR pass_score <= full_score", name="ck_course_pass_score"),
        CheckConstraint("good_score IS NULL OR good_score <= full_score", name="ck_course_good_score"),
        CheckConstraint("excellent_score IS NULL OR excellent_score <= full_score", name="ck_course_excellent_score"),
    )


class Exam(Base):
    __tablename__ = "exams"
    id = Column(Integer, primary_key=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    school_year = Column(String(20), nullable=False)
    semester = Column(Integer, nullable=False)
    deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    scores = relationship("Score", back_populates="exam")


class Score(Base):
    __tablename__ = "scores"
    id = Column(Integer, primary_key=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="RESTRICT"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False, index=True)
    score = Column(Numeric(SCORE_PRECISION, SCORE_SCALE), nullable=True)  # NULL when absent or not entered
    absent = Column(Boolean, default=False, nullable=False)
    class_rank = Column(Integer, nullable=True)
    grade_rank = Column(Integer, nullable=True)
    grade_level_label = Column(String(10), nullable=True)  # display-only letter grade
    teacher_id = Column(Integer, nullable=True)
    deleted = Column(Boolean, default=False, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    exam = relationship("Exam", back_populates="scores")
    student = relationship("Student", back_populates="scores")
    course = relationship("Course", back_populates="scores")

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        Index("ix_scores_exam_course", "exam_id", "course_id"),
        CheckConstraint("score IS NULL OR score >= 0", name="ck_score_non_negative"),
        CheckConstraint("class_rank IS NULL OR class_rank > 0", name="ck_score_class_rank_positive"),
        CheckConstraint("grade_rank IS NULL OR grade_rank > 0", name="ck_score_grade_rank_positive"),
    )


# One live score per (exam, student, course); soft-deleted rows do not block re-entry
Index(
    "uq_scores_exam_student_course_live",
    Score.exam_id,
    Score.student_id,
    Score.course_id,
    unique=True,
    postgresql_where=Score.deleted.is_(False),
    sqlite_where=Score.deleted.is_(False),
)
