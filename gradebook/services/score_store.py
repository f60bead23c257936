"""Repository over the scores table. Soft-deleted scores and students are invisible here."""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.models import Score, Student
from gradebook.services.exceptions import DuplicateScoreError
from gradebook.services.ranking import RankCandidate, ScopeRanks

logger = logging.getLogger(__name__)

ScoreKey = tuple[int, int, int]  # (exam_id, student_id, course_id)


@dataclass
class ScoreRow:
    """A live score together with the class of the student it belongs to."""

    score: Score
    class_id: int

    def to_candidate(self) -> RankCandidate:
        return RankCandidate(
            score_id=self.score.id,
            exam_id=self.score.exam_id,
            course_id=self.score.course_id,
            class_id=self.class_id,
            score=self.score.score,
            absent=self.score.absent,
        )


class ScoreStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _live_scores() -> Select:
        return (
            select(Score, Student.class_id)
            .join(Student, Score.student_id == Student.id)
            .where(Score.deleted.is_(False), Student.deleted.is_(False))
        )

    async def _fetch(self, stmt: Select) -> list[ScoreRow]:
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return [ScoreRow(score=score, class_id=class_id) for score, class_id in result.all()]

    async def find_by_scope(self, exam_id: int, course_id: int, class_id: int | None = None) -> list[ScoreRow]:
        """
        Scores of one ranking scope in storage order: score descending with unscored rows
        last, then id ascending. The id tie-break keeps rank assignment reproducible.
        """
        stmt = self._live_scores().where(Score.exam_id == exam_id, Score.course_id == course_id)
        if class_id is not None:
            stmt = stmt.where(Student.class_id == class_id)
        stmt = stmt.order_by(Score.score.is_(None), Score.score.desc(), Score.id)
        return await self._fetch(stmt)

    async def find_by_id(self, score_id: int) -> ScoreRow | None:
        rows = await self._fetch(self._live_scores().where(Score.id == score_id))
        return rows[0] if rows else None

    async def find_by_ids(self, score_ids: Sequence[int]) -> list[ScoreRow]:
        """Scores by id, returned in the order of score_ids."""
        if not score_ids:
            return []
        rows = await self._fetch(self._live_scores().where(Score.id.in_(score_ids)))
        by_id = {row.score.id: row for row in rows}
        return [by_id[score_id] for score_id in score_ids if score_id in by_id]

    async def find_by_exam(self, exam_id: int, class_id: int | None = None) -> list[ScoreRow]:
        stmt = self._live_scores().where(Score.exam_id == exam_id)
        if class_id is not None:
            stmt = stmt.where(Student.class_id == class_id)
        stmt = stmt.order_by(Score.student_id, Score.course_id)
        return await self._fetch(stmt)

    async def find_by_student(self, student_id: int, exam_id: int | None = None) -> list[ScoreRow]:
        stmt = self._live_scores().where(Score.student_id == student_id)
        if exam_id is not None:
            stmt = stmt.where(Score.exam_id == exam_id)
        stmt = stmt.order_by(Score.exam_id.desc(), Score.course_id)
        return await self._fetch(stmt)

    async def search(
        self,
        page: int,
        page_size: int,
        exam_id: int | None = None,
        student_id: int | None = None,
        course_id: int | None = None,
        class_id: int | None = None,
    ) -> tuple[list[ScoreRow], int]:
        """Paginated score listing, newest first. Returns (rows, total)."""
        filters = []
        if exam_id is not None:
            filters.append(Score.exam_id == exam_id)
        if student_id is not None:
            filters.append(Score.student_id == student_id)
        if course_id is not None:
            filters.append(Score.course_id == course_id)
        if class_id is not None:
            filters.append(Student.class_id == class_id)

        count_stmt = (
            select(func.count(Score.id))
            .join(Student, Score.student_id == Student.id)
            .where(Score.deleted.is_(False), Student.deleted.is_(False), *filters)
        )
        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar() or 0

        offset = (page - 1) * page_size
        stmt = (
            self._live_scores()
            .where(*filters)
            .order_by(Score.created_at.desc(), Score.id.desc())
            .offset(offset)
            .limit(page_size)
        )
        return await self._fetch(stmt), total

    async def existing_keys(self, keys: Iterable[ScoreKey]) -> set[ScoreKey]:
        """Return the subset of keys that already have a live score."""
        keys = list(keys)
        if not keys:
            return set()
        # Narrow by each key component, then match whole keys here
        stmt = select(Score.exam_id, Score.student_id, Score.course_id).where(
            Score.deleted.is_(False),
            Score.exam_id.in_({key[0] for key in keys}),
            Score.student_id.in_({key[1] for key in keys}),
            Score.course_id.in_({key[2] for key in keys}),
        )
        result = await self.session.execute(stmt)
        wanted = set(keys)
        return {key for key in (tuple(row) for row in result.all()) if key in wanted}

    async def upsert(self, scores: Sequence[Score]) -> list[Score]:
        """
        Insert new scores. A key that already has a live score is rejected, never merged.

        Raises:
            DuplicateScoreError: With the index of the first duplicate, before anything is written
        """
        keys = [(score.exam_id, score.student_id, score.course_id) for score in scores]
        seen: set[ScoreKey] = set()
        for index, key in enumerate(keys):
            if key in seen:
                raise DuplicateScoreError(
                    f"Score for exam {key[0]}, student {key[1]}, course {key[2]} appears twice", index
                )
            seen.add(key)

        existing = await self.existing_keys(keys)
        for index, key in enumerate(keys):
            if key in existing:
                raise DuplicateScoreError(
                    f"Score for exam {key[0]}, student {key[1]}, course {key[2]} already exists", index
                )

        self.session.add_all(scores)
        await self.session.flush()
        return list(scores)

    async def soft_delete(self, score: Score) -> None:
        score.deleted = True
        score.class_rank = None
        score.grade_rank = None
        await self.session.flush()

    async def write_ranks(self, rows: Sequence[ScoreRow], ranks: dict[int, ScopeRanks]) -> int:
        """Write recomputed ranks in place. Only rows whose ranks changed are updated; returns that count."""
        changed = 0
        for row in rows:
            scope_ranks = ranks[row.score.id]
            if row.score.class_rank != scope_ranks.class_rank or row.score.grade_rank != scope_ranks.grade_rank:
                row.score.class_rank = scope_ranks.class_rank
                row.score.grade_rank = scope_ranks.grade_rank
                changed += 1
        await self.session.flush()
        logger.debug("Updated ranks of %d out of %d scores", changed, len(rows))
        return changed
