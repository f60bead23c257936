"""Create gradebook tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create school_classes table
    op.create_table(
        'school_classes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('grade_level', sa.Integer(), nullable=True),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_school_classes_code'), 'school_classes', ['code'], unique=True)

    # Create students table
    op.create_table(
        'students',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('class_id', sa.Integer(), nullable=False),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['class_id'], ['school_classes.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_students_code'), 'students', ['code'], unique=True)
    op.create_index(op.f('ix_students_class_id'), 'students', ['class_id'], unique=False)

    # Create courses table
    op.create_table(
        'courses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('full_score', sa.Numeric(precision=5, scale=1), nullable=False),
        sa.Column('pass_score', sa.Numeric(precision=5, scale=1), nullable=True),
        sa.Column('good_score', sa.Numeric(precision=5, scale=1), nullable=True),
        sa.Column('excellent_score', sa.Numeric(precision=5, scale=1), nullable=True),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('full_score > 0', name='ck_course_full_score_positive'),
        sa.CheckConstraint('pass_score IS NULL OR pass_score <= full_score', name='ck_course_pass_score'),
        sa.CheckConstraint('good_score IS NULL OR good_score <= full_score', name='ck_course_good_score'),
        sa.CheckConstraint(
            'excellent_score IS NULL OR excellent_score <= full_score', name='ck_course_excellent_score'
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_courses_code'), 'courses', ['code'], unique=True)

    # Create exams table
    op.create_table(
        'exams',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('school_year', sa.String(length=20), nullable=False),
        sa.Column('semester', sa.Integer(), nullable=False),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_exams_code'), 'exams', ['code'], unique=True)

    # Create scores table
    op.create_table(
        'scores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('exam_id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('course_id', sa.Integer(), nullable=False),
        sa.Column('score', sa.Numeric(precision=5, scale=1), nullable=True),
        sa.Column('absent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('class_rank', sa.Integer(), nullable=True),
        sa.Column('grade_rank', sa.Integer(), nullable=True),
        sa.Column('grade_level_label', sa.String(length=10), nullable=True),
        sa.Column('teacher_id', sa.Integer(), nullable=True),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('score IS NULL OR score >= 0', name='ck_score_non_negative'),
        sa.CheckConstraint('class_rank IS NULL OR class_rank > 0', name='ck_score_class_rank_positive'),
        sa.CheckConstraint('grade_rank IS NULL OR grade_rank > 0', name='ck_score_grade_rank_positive'),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_scores_exam_id'), 'scores', ['exam_id'], unique=False)
    op.create_index(op.f('ix_scores_student_id'), 'scores', ['student_id'], unique=False)
    op.create_index(op.f('ix_scores_course_id'), 'scores', ['course_id'], unique=False)
    op.create_index('ix_scores_exam_course', 'scores', ['exam_id', 'course_id'], unique=False)
    op.create_index(
        'uq_scores_exam_student_course_live',
        'scores',
        ['exam_id', 'student_id', 'course_id'],
        unique=True,
        postgresql_where=sa.text('deleted = false'),
    )


def downgrade() -> None:
    op.drop_index('uq_scores_exam_student_course_live', table_name='scores')
    op.drop_index('ix_scores_exam_course', table_name='scores')
    op.drop_index(op.f('ix_scores_course_id'), table_name='scores')
    op.drop_index(op.f('ix_scores_student_id'), table_name='scores')
    op.drop_index(op.f('ix_scores_exam_id'), table_name='scores')
    op.drop_table('scores')
    op.drop_index(op.f('ix_exams_code'), table_name='exams')
    op.drop_table('exams')
    op.drop_index(op.f('ix_courses_code'), table_name='courses')
    op.drop_table('courses')
    op.drop_index(op.f('ix_students_class_id'), table_name='students')
    op.drop_index(op.f('ix_students_code'), table_name='students')
    op.drop_table('students')
    op.drop_index(op.f('ix_school_classes_code'), table_name='school_classes')
    op.drop_table('school_classes')
