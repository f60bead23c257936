from dataclasses import dataclass
from decimal import Decimal

import pytest

from gradebook.services.exceptions import ConfigurationMissingError
from gradebook.services.statistics import summarize
from gradebook.services.thresholds import ThresholdProfile
from gradebook.utils.statistics_utils import calculate_mean, calculate_rate, round_half_up


@dataclass
class Entry:
    score: Decimal | None
    absent: bool = False


def entries(*values):
    result = []
    for value in values:
        if value == "absent":
            result.append(Entry(None, absent=True))
        elif value is None:
            result.append(Entry(None))
        else:
            result.append(Entry(Decimal(value)))
    return result


@pytest.fixture
def profile():
    return ThresholdProfile(
        course_id=1,
        full_score=Decimal("100"),
        pass_score=Decimal("60"),
        good_score=Decimal("80"),
        excellent_score=Decimal("90"),
    )


def test_scenario_a_statistics(profile):
    stats = summarize(entries("90", "90", "75", "absent"), profile)

    assert stats.total_count == 4
    assert stats.valid_count == 3
    assert stats.absent_count == 1
    assert stats.max_score == Decimal("90")
    assert stats.min_score == Decimal("75")
    assert stats.mean_score == Decimal("85.00")
    assert stats.pass_count == 3
    assert stats.pass_rate == Decimal("100.00")
    assert stats.good_count == 2
    assert stats.good_rate == Decimal("66.67")
    assert stats.excellent_count == 2
    assert stats.excellent_rate == Decimal("66.67")


def test_scenario_b_empty_population(profile):
    stats = summarize([], profile)

    assert stats.total_count == 0
    assert stats.valid_count == 0
    assert stats.absent_count == 0
    assert stats.max_score is None
    assert stats.min_score is None
    assert stats.mean_score is None
    assert stats.pass_rate is None
    assert stats.excellent_count is None


def test_only_absent_entries_report_counts_only(profile):
    stats = summarize(entries("absent", "absent", None), profile)

    assert (stats.total_count, stats.valid_count, stats.absent_count) == (3, 0, 2)
    assert stats.mean_score is None
    assert stats.pass_count is None


def test_valid_count_equals_total_without_absentees(profile):
    stats = summarize(entries("10", "20", "30.5"), profile)
    assert stats.valid_count == stats.total_count == 3


def test_counts_are_consistent_with_unscored_entries(profile):
    stats = summarize(entries("70", None, "absent", "95"), profile)

    assert stats.valid_count + stats.absent_count <= stats.total_count
    assert stats.valid_count == 2


def test_rates_are_bounded_and_cumulative(profile):
    stats = summarize(entries("100", "95", "85", "79.5", "60", "59.9", "0"), profile)

    for rate in (stats.pass_rate, stats.good_rate, stats.excellent_rate):
        assert Decimal(0) <= rate <= Decimal(100)
    assert stats.pass_count >= stats.good_count >= stats.excellent_count
    assert (stats.pass_count, stats.good_count, stats.excellent_count) == (5, 3, 2)


def test_cutoff_is_inclusive(profile):
    stats = summarize(entries("60", "80", "90"), profile)
    assert (stats.pass_count, stats.good_count, stats.excellent_count) == (3, 2, 1)


def test_unconfigured_thresholds_are_omitted():
    profile = ThresholdProfile(course_id=2, full_score=Decimal("50"), pass_score=Decimal("30"))

    stats = summarize(entries("45", "20"), profile)

    assert stats.pass_count == 1
    assert stats.pass_rate == Decimal("50.00")
    assert stats.good_count is None
    assert stats.good_rate is None
    assert stats.excellent_count is None
    assert "good_rate" not in stats.model_dump(exclude_none=True)


def test_zero_cutoff_is_a_real_threshold():
    profile = ThresholdProfile(course_id=3, full_score=Decimal("10"), pass_score=Decimal("0"))

    stats = summarize(entries("0", "5"), profile)

    assert stats.pass_count == 2
    assert stats.pass_rate == Decimal("100.00")


def test_mean_rounds_half_up(profile):
    stats = summarize(entries("85.1", "85", "85", "85"), profile)
    # 340.1 / 4 = 85.025
    assert stats.mean_score == Decimal("85.03")


def test_missing_profile_raises():
    with pytest.raises(ConfigurationMissingError):
        summarize(entries("50"), None)


def test_round_half_up():
    assert round_half_up(Decimal("2.345")) == Decimal("2.35")
    assert round_half_up(Decimal("2.344")) == Decimal("2.34")
    assert round_half_up(Decimal("0.125")) == Decimal("0.13")


def test_calculate_rate():
    assert calculate_rate(2, 3) == Decimal("66.67")
    assert calculate_rate(1, 3) == Decimal("33.33")
    assert calculate_rate(0, 5) == Decimal("0.00")
    with pytest.raises(ValueError):
        calculate_rate(1, 0)


def test_calculate_mean_of_empty_dataset():
    assert calculate_mean([]) is None
