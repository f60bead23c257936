import random
from decimal import Decimal

import pytest

from gradebook.services.ranking import RankCandidate, ScopeMismatchError, compute_ranks, compute_scope_ranks


def candidate(score_id, score, absent=False, class_id=1, exam_id=1, course_id=1):
    return RankCandidate(
        score_id=score_id,
        exam_id=exam_id,
        course_id=course_id,
        class_id=class_id,
        score=Decimal(score) if score is not None else None,
        absent=absent,
    )


def ranks_by_id(ranked):
    return {item.candidate.score_id: item.rank for item in ranked}


def random_population(seed, size=40):
    rng = random.Random(seed)
    population = []
    for score_id in range(1, size + 1):
        roll = rng.random()
        if roll < 0.1:
            population.append(candidate(score_id, None, absent=True, class_id=rng.randint(1, 3)))
        elif roll < 0.15:
            population.append(candidate(score_id, None, class_id=rng.randint(1, 3)))
        else:
            # Coarse values so ties are common
            population.append(candidate(score_id, str(rng.randint(10, 20) * 5), class_id=rng.randint(1, 3)))
    return population


def test_scenario_a_class_ranks():
    scores = [candidate(1, "90"), candidate(2, "90"), candidate(3, "75"), candidate(4, None, absent=True)]

    ranks = ranks_by_id(compute_ranks(scores, class_scoped=True))

    assert ranks == {1: 1, 2: 2, 3: 3, 4: None}


def test_ties_keep_input_order():
    scores = [candidate(7, "80"), candidate(3, "80"), candidate(5, "80")]

    ranked = compute_ranks(scores)

    assert [item.candidate.score_id for item in ranked] == [7, 3, 5]
    assert [item.rank for item in ranked] == [1, 2, 3]


def test_empty_input_returns_empty_list():
    assert compute_ranks([]) == []
    assert compute_scope_ranks([]) == {}


def test_excluded_entries_follow_ranked_ones():
    scores = [candidate(1, None), candidate(2, "50"), candidate(3, "0", absent=True), candidate(4, "0")]

    ranked = compute_ranks(scores)

    assert [(item.candidate.score_id, item.rank) for item in ranked] == [(2, 1), (4, 2), (1, None), (3, None)]


def test_zero_score_is_ranked():
    ranks = ranks_by_id(compute_ranks([candidate(1, "0"), candidate(2, "12.5")]))
    assert ranks == {2: 1, 1: 2}


@pytest.mark.parametrize("seed", range(5))
def test_ranks_are_dense(seed):
    population = random_population(seed)
    participating = [item for item in population if item.participating]

    ranks = ranks_by_id(compute_ranks(population))

    assigned = sorted(rank for rank in ranks.values() if rank is not None)
    assert assigned == list(range(1, len(participating) + 1))


@pytest.mark.parametrize("seed", range(5))
def test_absent_and_unscored_are_never_ranked(seed):
    population = random_population(seed)

    scope_ranks = compute_scope_ranks(population)

    for item in population:
        if not item.participating:
            assert scope_ranks[item.score_id].class_rank is None
            assert scope_ranks[item.score_id].grade_rank is None


@pytest.mark.parametrize("seed", range(5))
def test_higher_score_ranks_first(seed):
    population = [item for item in random_population(seed) if item.participating]
    ranks = ranks_by_id(compute_ranks(population))

    for a in population:
        for b in population:
            if a.score > b.score:
                assert ranks[a.score_id] < ranks[b.score_id]


@pytest.mark.parametrize("seed", range(5))
def test_recomputing_is_idempotent(seed):
    population = random_population(seed)
    assert compute_scope_ranks(population) == compute_scope_ranks(population)


def test_class_ranks_are_computed_per_class():
    population = [
        candidate(1, "95", class_id=1),
        candidate(2, "85", class_id=2),
        candidate(3, "75", class_id=1),
        candidate(4, "65", class_id=2),
        candidate(5, None, absent=True, class_id=2),
    ]

    scope_ranks = compute_scope_ranks(population)

    assert {score_id: ranks.grade_rank for score_id, ranks in scope_ranks.items()} == {
        1: 1,
        2: 2,
        3: 3,
        4: 4,
        5: None,
    }
    assert {score_id: ranks.class_rank for score_id, ranks in scope_ranks.items()} == {
        1: 1,
        3: 2,
        2: 1,
        4: 2,
        5: None,
    }


def test_mixed_cohort_scopes_are_rejected():
    scores = [candidate(1, "90", course_id=1), candidate(2, "80", course_id=2)]

    with pytest.raises(ScopeMismatchError):
        compute_ranks(scores)


def test_mixed_classes_are_rejected_in_class_scope():
    scores = [candidate(1, "90", class_id=1), candidate(2, "80", class_id=2)]

    with pytest.raises(ScopeMismatchError):
        compute_ranks(scores, class_scoped=True)
    # The same population is a valid cohort scope
    assert len(compute_ranks(scores)) == 2
