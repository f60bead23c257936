"""Score write and read paths: validation, persistence, rank recomputation and statistics."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import NoReturn

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from gradebook.config import settings
from gradebook.core.locks import ScopeLockRegistry, scope_locks
from gradebook.models import Course, Exam, SchoolClass, Score, Student
from gradebook.schemas.score import ScoreBase, ScoreCreate, ScoreUpdate
from gradebook.schemas.statistics import StatisticsResponse
from gradebook.services.exceptions import (
    ConcurrencyConflictError,
    DuplicateScoreError,
    ScoreNotFoundError,
    ScoreValidationError,
)
from gradebook.services.ranking import ScopeRanks, compute_scope_ranks
from gradebook.services.score_store import ScoreRow, ScoreStore
from gradebook.services.statistics import summarize
from gradebook.services.thresholds import ThresholdResolver
from gradebook.utils.score_utils import validate_score_range

logger = logging.getLogger(__name__)


@dataclass
class _References:
    """Live exams, students (with their class) and courses referenced by a set of entries."""

    exam_ids: set[int] = field(default_factory=set)
    student_classes: dict[int, int] = field(default_factory=dict)
    courses: dict[int, Course] = field(default_factory=dict)


class ScoreService:
    """
    Entry point for every score mutation and score report.

    Each mutation takes the lock of the (exam, course) scopes it touches, commits the
    score change, then recomputes and commits the ranks of the whole scope.
    """

    def __init__(
        self,
        session: AsyncSession,
        locks: ScopeLockRegistry | None = None,
        resolver: ThresholdResolver | None = None,
    ):
        self.session = session
        self.store = ScoreStore(session)
        self.locks = locks or scope_locks
        self.resolver = resolver or ThresholdResolver(session)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def add_score(self, entry: ScoreCreate) -> ScoreRow:
        """
        Enter a single score and re-rank its scope.

        Raises:
            ScoreValidationError: Unknown exam/student/course or score out of range
            DuplicateScoreError: A live score already exists for the key
            ConcurrencyConflictError: The score was saved but ranks could not be refreshed
        """
        scope = (entry.exam_id, entry.course_id)
        async with self.locks.hold([scope]):
            await self._validate_new_entries([entry], batch=False)
            score = self._build_score(entry)
            await self._commit_new([score])
            # A failed rank write rolls back and expires the instance, so keep the id
            score_id = score.id
            logger.info(
                "Added score %s for exam %s, course %s, student %s",
                score_id,
                entry.exam_id,
                entry.course_id,
                entry.student_id,
            )
            await self._recompute_scope(*scope)
        return await self._reload(score_id)

    async def batch_add_scores(self, entries: Sequence[ScoreCreate]) -> list[ScoreRow]:
        """
        Enter several scores atomically.

        Every entry is validated before anything is written; the first offending entry
        aborts the whole batch and its index is reported on the raised error.
        """
        if not entries:
            raise ScoreValidationError("Score list cannot be empty")
        if len(entries) > settings.batch_max_size:
            raise ScoreValidationError(
                f"A batch can hold at most {settings.batch_max_size} scores, got {len(entries)}"
            )

        scopes = {(entry.exam_id, entry.course_id) for entry in entries}
        async with self.locks.hold(scopes) as ordered_scopes:
            await self._validate_new_entries(entries, batch=True)
            scores = [self._build_score(entry) for entry in entries]
            await self._commit_new(scores)
            score_ids = [score.id for score in scores]
            logger.info("Added batch of %d scores across %d scopes", len(scores), len(ordered_scopes))
            for exam_id, course_id in ordered_scopes:
                await self._recompute_scope(exam_id, course_id)
        return await self.store.find_by_ids(score_ids)

    async def update_score(self, score_id: int, entry: ScoreUpdate) -> ScoreRow:
        """
        Correct an existing score and re-rank its scope.

        The (exam, student, course) key of a score is fixed; only its value fields change.
        """
        row = await self._require_score(score_id)
        scope = (row.score.exam_id, row.score.course_id)
        async with self.locks.hold([scope]):
            # Re-read under the lock so the correction applies to the current row
            row = await self._require_score(score_id)
            course = await self._load_course(row.score.course_id)
            if course is None:
                raise ScoreValidationError(f"Course {row.score.course_id} not found")
            self._check_range(entry, course)

            score = row.score
            score.score = entry.score
            score.absent = entry.absent
            score.grade_level_label = entry.grade_level_label
            score.teacher_id = entry.teacher_id
            try:
                await self.session.commit()
            except StaleDataError:
                await self.session.rollback()
                logger.warning("Score %s changed while it was being corrected", score_id)
                raise ConcurrencyConflictError(f"Score {score_id} was modified concurrently; reload and retry")
            logger.info("Updated score %s", score_id)
            await self._recompute_scope(*scope)
        return await self._reload(score_id)

    async def delete_score(self, score_id: int) -> None:
        """Soft-delete a score and re-rank the remaining population of its scope."""
        row = await self._require_score(score_id)
        scope = (row.score.exam_id, row.score.course_id)
        async with self.locks.hold([scope]):
            row = await self._require_score(score_id)
            await self.store.soft_delete(row.score)
            try:
                await self.session.commit()
            except StaleDataError:
                await self.session.rollback()
                logger.warning("Score %s changed while it was being deleted", score_id)
                raise ConcurrencyConflictError(f"Score {score_id} was modified concurrently; reload and retry")
            logger.info("Deleted score %s", score_id)
            await self._recompute_scope(*scope)

    async def recompute_rankings(self, exam_id: int, course_id: int) -> dict[int, ScopeRanks]:
        """Recompute and persist the ranks of one (exam, course) scope on demand."""
        await self._require(Exam, exam_id, "Exam")
        await self._require(Course, course_id, "Course")
        async with self.locks.hold([(exam_id, course_id)]):
            return await self._recompute_scope(exam_id, course_id)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def get_score(self, score_id: int) -> ScoreRow:
        return await self._require_score(score_id)

    async def list_scores(
        self,
        page: int = 1,
        page_size: int = 20,
        exam_id: int | None = None,
        student_id: int | None = None,
        course_id: int | None = None,
        class_id: int | None = None,
    ) -> tuple[list[ScoreRow], int]:
        return await self.store.search(
            page, page_size, exam_id=exam_id, student_id=student_id, course_id=course_id, class_id=class_id
        )

    async def get_scores_by_scope(self, exam_id: int, course_id: int, class_id: int | None = None) -> list[ScoreRow]:
        """Scores of a scope ordered by class rank (class scope) or grade rank (cohort), unranked last."""
        rows = await self.store.find_by_scope(exam_id, course_id, class_id)

        def rank_of(row: ScoreRow) -> int | None:
            return row.score.class_rank if class_id is not None else row.score.grade_rank

        return sorted(rows, key=lambda row: (rank_of(row) is None, rank_of(row) or 0, row.score.id))

    async def get_student_scores(self, student_id: int, exam_id: int | None = None) -> list[ScoreRow]:
        await self._require(Student, student_id, "Student")
        if exam_id is not None:
            await self._require(Exam, exam_id, "Exam")
        return await self.store.find_by_student(student_id, exam_id)

    async def get_statistics(self, exam_id: int, course_id: int, class_id: int | None = None) -> StatisticsResponse:
        """
        Statistics for an exam and course, over one class or the whole cohort.

        Raises:
            ScoreNotFoundError: If the exam or class does not exist
            ConfigurationMissingError: If the course thresholds cannot be resolved
        """
        await self._require(Exam, exam_id, "Exam")
        if class_id is not None:
            await self._require(SchoolClass, class_id, "Class")
        thresholds = await self.resolver.resolve(course_id)
        rows = await self.store.find_by_scope(exam_id, course_id, class_id)
        statistics = summarize([row.score for row in rows], thresholds)
        return StatisticsResponse(exam_id=exam_id, course_id=course_id, class_id=class_id, statistics=statistics)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _recompute_scope(self, exam_id: int, course_id: int) -> dict[int, ScopeRanks]:
        """
        Re-derive and persist every rank of a cohort scope. The caller holds the scope lock.

        A stale row version means another process wrote to the scope after it was read; the
        read-compute-write cycle is then retried on a fresh snapshot. Nothing is committed
        unless the whole scope was written.
        """
        attempts = 1 + max(settings.rank_recompute_retries, 0)
        for attempt in range(1, attempts + 1):
            try:
                rows = await self.store.find_by_scope(exam_id, course_id)
                ranks = compute_scope_ranks([row.to_candidate() for row in rows])
                changed = await self.store.write_ranks(rows, ranks)
                await self.session.commit()
                logger.info(
                    "Ranked exam %s, course %s: %d scores, %d rank changes", exam_id, course_id, len(rows), changed
                )
                return ranks
            except StaleDataError:
                await self.session.rollback()
                logger.warning(
                    "Stale score version while ranking exam %s, course %s (attempt %d of %d)",
                    exam_id,
                    course_id,
                    attempt,
                    attempts,
                )

        logger.error("Giving up ranking exam %s, course %s after %d attempts", exam_id, course_id, attempts)
        raise ConcurrencyConflictError(
            f"Ranks for exam {exam_id}, course {course_id} could not be refreshed because the scores kept "
            "changing; the score change itself was saved. Retry the rank recomputation."
        )

    async def _load_references(self, entries: Sequence[ScoreCreate]) -> _References:
        refs = _References()

        exam_stmt = select(Exam.id).where(
            Exam.id.in_({entry.exam_id for entry in entries}), Exam.deleted.is_(False)
        )
        refs.exam_ids = set((await self.session.execute(exam_stmt)).scalars().all())

        student_stmt = select(Student.id, Student.class_id).where(
            Student.id.in_({entry.student_id for entry in entries}), Student.deleted.is_(False)
        )
        refs.student_classes = {
            student_id: class_id for student_id, class_id in (await self.session.execute(student_stmt)).all()
        }

        course_stmt = select(Course).where(
            Course.id.in_({entry.course_id for entry in entries}), Course.deleted.is_(False)
        )
        refs.courses = {course.id: course for course in (await self.session.execute(course_stmt)).scalars().all()}
        return refs

    async def _validate_new_entries(self, entries: Sequence[ScoreCreate], batch: bool) -> None:
        """Check references, value range and key uniqueness of every entry, in entry order."""
        refs = await self._load_references(entries)
        existing = await self.store.existing_keys(
            (entry.exam_id, entry.student_id, entry.course_id) for entry in entries
        )

        seen: set[tuple[int, int, int]] = set()
        for index, entry in enumerate(entries):
            position = index if batch else None

            def fail(message: str, error: type[ScoreValidationError] = ScoreValidationError) -> NoReturn:
                if batch:
                    message = f"Entry {index}: {message}"
                logger.warning("Rejected score entry: %s", message)
                raise error(message, position)

            if entry.exam_id not in refs.exam_ids:
                fail(f"Exam {entry.exam_id} not found")
            if entry.student_id not in refs.student_classes:
                fail(f"Student {entry.student_id} not found")
            course = refs.courses.get(entry.course_id)
            if course is None:
                fail(f"Course {entry.course_id} not found")

            is_valid, error_message = validate_score_range(entry.score, course.full_score, entry.absent)
            if not is_valid:
                fail(error_message)

            key = (entry.exam_id, entry.student_id, entry.course_id)
            if key in existing:
                fail(
                    f"Score for exam {key[0]}, student {key[1]}, course {key[2]} already exists",
                    DuplicateScoreError,
                )
            if key in seen:
                fail(
                    f"Score for exam {key[0]}, student {key[1]}, course {key[2]} appears more than once",
                    DuplicateScoreError,
                )
            seen.add(key)

    @staticmethod
    def _check_range(entry: ScoreBase, course: Course) -> None:
        is_valid, error_message = validate_score_range(entry.score, course.full_score, entry.absent)
        if not is_valid:
            logger.warning("Rejected score correction: %s", error_message)
            raise ScoreValidationError(error_message)

    @staticmethod
    def _build_score(entry: ScoreCreate) -> Score:
        return Score(
            exam_id=entry.exam_id,
            student_id=entry.student_id,
            course_id=entry.course_id,
            score=None if entry.absent else entry.score,
            absent=entry.absent,
            grade_level_label=entry.grade_level_label,
            teacher_id=entry.teacher_id,
        )

    async def _commit_new(self, scores: list[Score]) -> None:
        try:
            await self.store.upsert(scores)
            await self.session.commit()
        except IntegrityError:
            # Another writer inserted the same key between validation and commit
            await self.session.rollback()
            raise DuplicateScoreError("A score for the same exam, student and course was entered concurrently")

    async def _load_course(self, course_id: int) -> Course | None:
        stmt = select(Course).where(Course.id == course_id, Course.deleted.is_(False))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _require(self, model: type, entity_id: int, label: str) -> None:
        stmt = select(model.id).where(model.id == entity_id, model.deleted.is_(False))
        result = await self.session.execute(stmt)
        if result.scalar_one_or_none() is None:
            raise ScoreNotFoundError(f"{label} {entity_id} not found")

    async def _require_score(self, score_id: int) -> ScoreRow:
        row = await self.store.find_by_id(score_id)
        if row is None:
            raise ScoreNotFoundError(f"Score {score_id} not found")
        return row

    async def _reload(self, score_id: int) -> ScoreRow:
        return await self._require_score(score_id)

