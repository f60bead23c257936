"""Ranking engine: dense row-number ranks for a cohort (exam + course) and its class partitions."""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from gradebook.utils.score_utils import is_participating


class ScopeMismatchError(ValueError):
    """Raised when scores from more than one ranking scope are ranked together."""

    pass


@dataclass(frozen=True)
class ScopeKey:
    """Grouping key for a ranking scope. class_id is None for the cohort (grade) scope."""

    exam_id: int
    course_id: int
    class_id: int | None = None


@dataclass(frozen=True)
class RankCandidate:
    """The subset of a score row the ranking engine needs."""

    score_id: int
    exam_id: int
    course_id: int
    class_id: int | None
    score: Decimal | None
    absent: bool = False

    @property
    def participating(self) -> bool:
        return is_participating(self.score, self.absent)

    def scope(self, class_scoped: bool = False) -> ScopeKey:
        return ScopeKey(self.exam_id, self.course_id, self.class_id if class_scoped else None)


@dataclass(frozen=True)
class RankedScore:
    candidate: RankCandidate
    rank: int | None


@dataclass(frozen=True)
class ScopeRanks:
    class_rank: int | None
    grade_rank: int | None


def _ensure_single_scope(candidates: Sequence[RankCandidate], class_scoped: bool) -> ScopeKey:
    scopes = {candidate.scope(class_scoped) for candidate in candidates}
    if len(scopes) > 1:
        described = ", ".join(sorted(str(scope) for scope in scopes))
        raise ScopeMismatchError(f"Cannot rank scores from different scopes together: {described}")
    return scopes.pop()


def compute_ranks(candidates: Sequence[RankCandidate], class_scoped: bool = False) -> list[RankedScore]:
    """
    Rank the scores of a single scope.

    Participating scores (present and not absent) are ordered by score descending and
    numbered 1..N. Equal scores keep their input order and still get distinct ranks,
    so callers must pass candidates in a deterministic order (storage reads are ordered
    by id for that reason). Absent or unscored entries get rank None and take no slot.

    Args:
        candidates: Scores sharing exam_id and course_id (and class_id when class_scoped)
        class_scoped: Whether the scope also includes class_id

    Returns:
        Ranked participating scores in rank order, followed by the excluded ones in input order

    Raises:
        ScopeMismatchError: If the candidates belong to more than one scope
    """
    if not candidates:
        return []

    _ensure_single_scope(candidates, class_scoped)

    participating = [candidate for candidate in candidates if candidate.participating]
    excluded = [candidate for candidate in candidates if not candidate.participating]

    # sorted() is stable, so ties stay in input order
    ordered = sorted(participating, key=lambda candidate: -candidate.score)

    ranked = [RankedScore(candidate=candidate, rank=position) for position, candidate in enumerate(ordered, start=1)]
    ranked.extend(RankedScore(candidate=candidate, rank=None) for candidate in excluded)
    return ranked


def compute_scope_ranks(candidates: Sequence[RankCandidate]) -> dict[int, ScopeRanks]:
    """
    Compute grade and class ranks for a whole cohort population.

    The grade rank covers every candidate of the (exam, course) scope; the class rank
    is computed separately within each class partition of the same population.

    Returns:
        Mapping of score_id to its class and grade rank
    """
    if not candidates:
        return {}

    grade_ranks = {ranked.candidate.score_id: ranked.rank for ranked in compute_ranks(candidates)}

    partitions: dict[int | None, list[RankCandidate]] = {}
    for candidate in candidates:
        partitions.setdefault(candidate.class_id, []).append(candidate)

    class_ranks: dict[int, int | None] = {}
    for members in partitions.values():
        for ranked in compute_ranks(members, class_scoped=True):
            class_ranks[ranked.candidate.score_id] = ranked.rank

    return {
        score_id: ScopeRanks(class_rank=class_ranks[score_id], grade_rank=grade_rank)
        for score_id, grade_rank in grade_ranks.items()
    }
