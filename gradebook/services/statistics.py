"""Statistics aggregator: counts, score range, mean and threshold rates for a score population."""

from collections.abc import Sequence
from decimal import Decimal
from typing import Protocol

from gradebook.schemas.statistics import ScoreStatistics
from gradebook.services.exceptions import ConfigurationMissingError
from gradebook.services.thresholds import ThresholdProfile
from gradebook.utils.score_utils import is_participating
from gradebook.utils.statistics_utils import calculate_mean, calculate_rate, count_at_or_above


class ScoredEntry(Protocol):
    score: Decimal | None
    absent: bool


def summarize(scores: Sequence[ScoredEntry], thresholds: ThresholdProfile | None) -> ScoreStatistics:
    """
    Summarize a score population (one exam and course, optionally narrowed to a class).

    Thresholds are cumulative, not bands: a score above the excellent cutoff also counts
    towards good and pass when it clears those cutoffs. Rates are percentages of the valid
    count, rounded half-up to two places.

    Args:
        scores: Entries with `score` and `absent` attributes
        thresholds: Threshold profile of the course

    Returns:
        ScoreStatistics; only the three counts are set when no entry has a valid score

    Raises:
        ConfigurationMissingError: If no threshold profile is available
    """
    if thresholds is None:
        raise ConfigurationMissingError("Score thresholds are not configured for this course")

    valid_scores = [Decimal(entry.score) for entry in scores if is_participating(entry.score, bool(entry.absent))]
    stats = ScoreStatistics(
        total_count=len(scores),
        valid_count=len(valid_scores),
        absent_count=sum(1 for entry in scores if entry.absent),
    )
    if not valid_scores:
        return stats

    stats.max_score = max(valid_scores)
    stats.min_score = min(valid_scores)
    stats.mean_score = calculate_mean(valid_scores)

    for band, cutoff in thresholds.cutoffs().items():
        count = count_at_or_above(valid_scores, cutoff)
        setattr(stats, f"{band}_count", count)
        setattr(stats, f"{band}_rate", calculate_rate(count, len(valid_scores)))

    return stats
