"""Resolve a course's full score and pass/good/excellent cutoffs."""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.core.cache import get_cached_profile, set_cached_profile
from gradebook.models import Course
from gradebook.services.exceptions import ConfigurationMissingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdProfile:
    """
    Score cutoffs of one course.

    A cutoff left as None is "not configured": zero is a legitimate cutoff and is never
    used as a placeholder.
    """

    course_id: int
    full_score: Decimal
    pass_score: Decimal | None = None
    good_score: Decimal | None = None
    excellent_score: Decimal | None = None

    def __post_init__(self) -> None:
        if self.full_score <= 0:
            raise ValueError("full_score must be greater than 0")
        for name in ("pass_score", "good_score", "excellent_score"):
            cutoff = getattr(self, name)
            if cutoff is not None and not (0 <= cutoff <= self.full_score):
                raise ValueError(f"{name} must be between 0 and full_score")

    @classmethod
    def from_course(cls, course: Course) -> "ThresholdProfile":
        return cls(
            course_id=course.id,
            full_score=Decimal(course.full_score),
            pass_score=Decimal(course.pass_score) if course.pass_score is not None else None,
            good_score=Decimal(course.good_score) if course.good_score is not None else None,
            excellent_score=Decimal(course.excellent_score) if course.excellent_score is not None else None,
        )

    def cutoffs(self) -> dict[str, Decimal]:
        """Configured cutoffs keyed by band name (pass, good, excellent)."""
        configured = {
            "pass": self.pass_score,
            "good": self.good_score,
            "excellent": self.excellent_score,
        }
        return {band: cutoff for band, cutoff in configured.items() if cutoff is not None}


class ThresholdResolver:
    """Looks up live courses and turns them into threshold profiles, with a TTL cache in front."""

    def __init__(self, session: AsyncSession, use_cache: bool = True):
        self.session = session
        self.use_cache = use_cache

    async def resolve(self, course_id: int) -> ThresholdProfile:
        """
        Resolve the threshold profile of a course.

        Raises:
            ConfigurationMissingError: If the course does not exist or was deleted
        """
        if self.use_cache:
            profile = get_cached_profile(course_id)
            if profile is not None:
                return profile

        stmt = select(Course).where(Course.id == course_id, Course.deleted.is_(False))
        result = await self.session.execute(stmt)
        course = result.scalar_one_or_none()
        if course is None:
            logger.warning("No threshold configuration for course %s", course_id)
            raise ConfigurationMissingError(f"Course {course_id} not found; score thresholds are unavailable")

        profile = ThresholdProfile.from_course(course)
        if self.use_cache:
            set_cached_profile(profile)
        return profile
