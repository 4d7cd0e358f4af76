"""
Unit tests for the Matching Engine.
"""

from datetime import date, time

import pytest

from conftest import BOTOX, FILLER, make_entry, make_slot
from src.services.matching import MatchingEngine, find_candidates


class TestDurationFilter:
    """A slot shorter than the treatment is never a candidate."""

    def test_short_slot_excluded(self):
        entry = make_entry(treatment=FILLER)
        short = make_slot(duration_minutes=45)
        assert list(find_candidates(entry, [short])) == []

    def test_exact_and_longer_slots_included(self):
        entry = make_entry(treatment=FILLER)
        exact = make_slot(start=time(9, 0), duration_minutes=60)
        longer = make_slot(start=time(11, 0), duration_minutes=90)
        assert list(find_candidates(entry, [longer, exact])) == [exact, longer]

    @pytest.mark.parametrize("duration", [5, 15, 29])
    def test_any_shorter_duration_excluded(self, duration):
        entry = make_entry(treatment=BOTOX, flexible_timing=True)
        assert not find_candidates(entry, [make_slot(duration_minutes=duration)])


class TestFlexibleWindow:
    """Flexible entries accept 7 days before to 14 days after the preferred date."""

    @pytest.mark.parametrize(
        "slot_date,expected",
        [
            (date(2025, 3, 3), True),
            (date(2025, 2, 28), False),
            (date(2025, 3, 24), True),
            (date(2025, 3, 25), False),
            (date(2025, 3, 10), True),
        ],
    )
    def test_window_bounds(self, slot_date, expected):
        entry = make_entry(preferred_date=date(2025, 3, 10), flexible_timing=True)
        slot = make_slot(slot_date=slot_date)
        assert (slot in list(find_candidates(entry, [slot]))) is expected

    def test_alternative_dates_ignored_when_flexible(self):
        entry = make_entry(
            flexible_timing=True,
            alternative_dates=[date(2025, 4, 30)],
        )
        far = make_slot(slot_date=date(2025, 4, 30))
        assert list(find_candidates(entry, [far])) == []

    def test_configurable_window(self):
        engine = MatchingEngine(days_before=0, days_after=2)
        entry = make_entry(flexible_timing=True)
        before = make_slot(slot_date=date(2025, 3, 9))
        after = make_slot(slot_date=date(2025, 3, 12))
        assert engine.find_candidates(entry, [before, after]).to_list() == [after]

    def test_negative_window_rejected(self):
        with pytest.raises(ValueError):
            MatchingEngine(days_before=-1)


class TestExactDates:
    """Non-flexible entries only match the preferred or alternative dates."""

    def test_only_listed_dates_match(self):
        entry = make_entry(
            preferred_date=date(2025, 3, 10),
            alternative_dates=[date(2025, 3, 17)],
        )
        preferred = make_slot(slot_date=date(2025, 3, 10))
        alternative = make_slot(slot_date=date(2025, 3, 17))
        next_day = make_slot(slot_date=date(2025, 3, 11))
        day_before = make_slot(slot_date=date(2025, 3, 9))

        result = list(find_candidates(entry, [next_day, alternative, day_before, preferred]))
        assert result == [preferred, alternative]


class TestOrderingAndLaziness:
    """Candidates come out by date then time and can be iterated again."""

    def test_sorted_by_date_then_time(self):
        entry = make_entry(flexible_timing=True)
        late = make_slot(slot_date=date(2025, 3, 11), start=time(9, 0))
        early_pm = make_slot(slot_date=date(2025, 3, 10), start=time(14, 0))
        early_am = make_slot(slot_date=date(2025, 3, 10), start=time(9, 0))
        assert list(find_candidates(entry, [late, early_pm, early_am])) == [early_am, early_pm, late]

    def test_restartable(self):
        entry = make_entry(flexible_timing=True)
        candidates = find_candidates(entry, [make_slot(), make_slot(start=time(11, 0))])
        assert list(candidates) == list(candidates)
        assert candidates.first() == candidates.to_list()[0]

    def test_empty_catalog(self):
        candidates = find_candidates(make_entry(), [])
        assert list(candidates) == []
        assert candidates.first() is None
        assert not candidates

    def test_preferred_time_never_excludes(self):
        entry = make_entry(preferred_time=time(16, 0))
        morning = make_slot(start=time(9, 0))
        assert list(find_candidates(entry, [morning])) == [morning]

    def test_prefer_closest_time_orders_same_day(self):
        engine = MatchingEngine(prefer_closest_time=True)
        entry = make_entry(preferred_time=time(15, 0))
        morning = make_slot(start=time(9, 0))
        afternoon = make_slot(start=time(14, 30))
        assert engine.find_candidates(entry, [morning, afternoon]).to_list() == [afternoon, morning]

    def test_pure_function(self):
        entry = make_entry()
        catalog = [make_slot(), make_slot(duration_minutes=10)]
        find_candidates(entry, catalog).to_list()
        assert len(catalog) == 2
        assert entry.status.value == "waiting"
