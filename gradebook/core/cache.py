"""Caching utilities for course threshold profiles."""
from typing import TYPE_CHECKING

from cachetools import TTLCache

from gradebook.config import settings

if TYPE_CHECKING:
    from gradebook.services.thresholds import ThresholdProfile

# Threshold profiles by course id
threshold_cache: "TTLCache[int, ThresholdProfile]" = TTLCache(
    maxsize=settings.threshold_cache_size, ttl=settings.threshold_cache_ttl
)


def get_cached_profile(course_id: int) -> "ThresholdProfile | None":
    """Get a threshold profile from cache by course ID."""
    return threshold_cache.get(course_id)


def set_cached_profile(profile: "ThresholdProfile") -> None:
    """Cache a threshold profile by its course ID."""
    threshold_cache[profile.course_id] = profile


def invalidate_threshold_cache(course_id: int | None = None) -> None:
    """Drop one course's profile, or every cached profile when no course is given."""
    if course_id is None:
        threshold_cache.clear()
    else:
        threshold_cache.pop(course_id, None)
