import pytest
from datetime import datetime, timezone

from bookings.models import ServiceRequestInput
from dispatch.scoring import (
    ScoredNurse,
    price_component,
    rank_candidates,
    score_candidates,
    score_nurse,
)
from nurses.models import NurseProfile
from nurses.policy import multi_offer_policy, single_offer_policy
from patients.models import MatchingPreferences

KM = 1 / 111.19


@pytest.fixture
def patient_location():
    return (-17.8292, 31.0522)


@pytest.fixture
def request_input(patient_location):
    return ServiceRequestInput(
        service_type="general",
        scheduled_at=datetime(2026, 11, 2, 9, 0, tzinfo=timezone.utc),
        duration_hours=2,
        patient_location=patient_location,
    )


def test_score_weighted_sum(patient_location, request_input):
    """
    Same position (40) + rating 4/5 (24) + rate 40 in [20, 100] (15) + specialty (10) = 89
    """
    lat, lon = patient_location
    nurse = NurseProfile.new("n1", "A", lat=lat, lon=lon, hourly_rate=40, specialties={"general": 40}, rating=4)
    prefs = MatchingPreferences(max_distance_km=10, price_min=20, price_max=100)

    assert score_nurse(nurse, request_input, prefs, single_offer_policy()) == 89


def test_score_for_scenario_nurse_is_positive(patient_location, request_input):
    lat, lon = patient_location
    nurse = NurseProfile.new("n1", "A", lat=lat + 2 * KM, lon=lon, hourly_rate=50,
                             specialties={"general": 50}, rating=4.5)
    prefs = MatchingPreferences(max_distance_km=10, price_min=20, price_max=100)

    score = score_nurse(nurse, request_input, prefs)

    # 32 + 27 + 12.5 + 10, give or take float noise on the distance
    assert score in (81, 82)


def test_unknown_position_and_no_price_range_contribute_nothing(request_input):
    nurse = NurseProfile.new("n1", "A", hourly_rate=40, services=("general",), rating=5)

    # rating 30 + specialty 10
    assert score_nurse(nurse, request_input, None, single_offer_policy()) == 40


def test_multi_offer_policy_scores_responsiveness(request_input):
    instant = NurseProfile.new("n1", "A", services=("general",), rating=5, average_response_minutes=0)
    half_hour = NurseProfile.new("n2", "B", services=("general",), rating=5, average_response_minutes=30)
    slow = NurseProfile.new("n3", "C", services=("general",), rating=5, average_response_minutes=240)

    policy = multi_offer_policy()

    # rating 25 + responsiveness 5 + specialty 10
    assert score_nurse(instant, request_input, None, policy) == 40
    # 25 + 2.5 + 10 = 37.5, rounded half up
    assert score_nurse(half_hour, request_input, None, policy) == 38
    # responsiveness never goes negative
    assert score_nurse(slow, request_input, None, policy) == 35


def test_score_is_bounded_and_deterministic(patient_location, request_input):
    lat, lon = patient_location
    prefs = MatchingPreferences(max_distance_km=10, price_min=20, price_max=100)

    for i in range(20):
        nurse = NurseProfile.new(
            f"n{i}", "X",
            lat=lat + (i % 7) * 2 * KM, lon=lon,
            hourly_rate=10 * i,
            specialties={"general": 10 * i} if i % 2 else None,
            rating=(i % 6) * 1.0,
            average_response_minutes=i * 5,
        )
        for policy in (single_offer_policy(), multi_offer_policy()):
            first = score_nurse(nurse, request_input, prefs, policy)
            second = score_nurse(nurse, request_input, prefs, policy)
            assert 0 <= first <= 100
            assert first == second


def test_price_component_degenerate_range():
    prefs = MatchingPreferences(price_min=50, price_max=50)

    assert price_component(50, prefs, 20) == 20
    assert price_component(40, prefs, 20) == 20
    assert price_component(60, prefs, 20) == 0
    # no full range, no contribution
    assert price_component(10, MatchingPreferences(price_max=50), 20) == 0


def test_score_candidates_keeps_input_order(patient_location, request_input):
    lat, lon = patient_location
    nurses = [
        NurseProfile.new("low", "A", lat=lat, lon=lon, services=("general",), rating=1),
        NurseProfile.new("high", "B", lat=lat, lon=lon, services=("general",), rating=5),
    ]

    scored = score_candidates(nurses, request_input)

    assert [s.nurse.id for s in scored] == ["low", "high"]
    assert [s.index for s in scored] == [0, 1]


# -------------------------
# Ranking
# -------------------------

def _scored(nurse_id, score, distance_km, rating=4.0, index=0):
    nurse = NurseProfile.new(nurse_id, nurse_id, rating=rating)
    return ScoredNurse(nurse=nurse, score=score, distance_km=distance_km, rate=40.0, index=index)


def test_rank_top_four_breaks_score_ties_by_distance():
    """
    Six eligible candidates scored [90, 85, 85, 70, 60, 40], k=4.
    """
    candidates = [
        _scored("c90", 90, 3.0, index=0),
        _scored("c85_far", 85, 6.0, index=1),
        _scored("c85_near", 85, 1.5, index=2),
        _scored("c70", 70, 0.5, index=3),
        _scored("c60", 60, 0.2, index=4),
        _scored("c40", 40, 0.1, index=5),
    ]

    selected = rank_candidates(candidates, k=4)

    assert [c.nurse.id for c in selected] == ["c90", "c85_near", "c85_far", "c70"]


def test_rank_tie_breaks_rating_then_input_order():
    candidates = [
        _scored("a", 80, 2.0, rating=4.0, index=0),
        _scored("b", 80, 2.0, rating=4.8, index=1),
        _scored("c", 80, 2.0, rating=4.0, index=2),
        # unknown distance ranks after every known distance at the same score
        _scored("d", 80, None, rating=5.0, index=3),
    ]

    ranked = rank_candidates(candidates)

    assert [c.nurse.id for c in ranked] == ["b", "a", "c", "d"]


def test_rank_k_handling():
    candidates = [_scored(f"n{i}", 50 + i, 1.0, index=i) for i in range(3)]

    assert [c.nurse.id for c in rank_candidates(candidates, k=1)] == ["n2"]
    # k larger than the pool returns everything
    assert len(rank_candidates(candidates, k=10)) == 3
    assert rank_candidates([], k=4) == []

    with pytest.raises(ValueError):
        rank_candidates(candidates, k=0)
