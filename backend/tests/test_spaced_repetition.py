"""
Exam Review - Spaced Repetition Core Tests
"""
from datetime import datetime, timedelta, timezone

import pytest

from exam_review.services.spaced_repetition import (
    INTERVAL_MINUTES,
    ReviewItem,
    apply_answer,
    calculate_priority,
    days_since,
    ensure_utc,
    interval_for,
    is_active_for_level,
    next_correct_streak,
    next_mastery_level,
    next_review_date,
    next_review_interval,
    next_wrong_count,
    round_half_up,
    urgency_label,
)


LEVELS = range(0, 6)


class TestIntervalTable:
    def test_intervals_per_level(self):
        assert [interval_for(level) for level in LEVELS] == [1, 5, 30, 180, 1440, 4320]

    def test_intervals_never_shrink_as_level_rises(self):
        assert list(INTERVAL_MINUTES) == sorted(INTERVAL_MINUTES)

    @pytest.mark.parametrize("level", [-1, 6, 10, -100])
    def test_out_of_range_level_falls_back_to_level_zero(self, level):
        assert interval_for(level) == 1


class TestNextReviewInterval:
    def test_correct_answers_move_up_a_level(self):
        assert next_review_interval(0, True) == 5
        assert next_review_interval(1, True) == 30
        assert next_review_interval(2, True) == 180
        assert next_review_interval(3, True) == 1440
        assert next_review_interval(4, True) == 4320

    def test_incorrect_answers_move_down_a_level(self):
        assert next_review_interval(1, False) == 1
        assert next_review_interval(2, False) == 5
        assert next_review_interval(3, False) == 30
        assert next_review_interval(4, False) == 180
        assert next_review_interval(5, False) == 1440

    def test_stays_within_level_bounds(self):
        assert next_review_interval(0, False) == 1
        assert next_review_interval(5, True) == 4320

    def test_invalid_levels_get_the_shortest_interval(self):
        assert next_review_interval(-1, True) == 1
        assert next_review_interval(10, True) == 1


class TestMasteryTracking:
    def test_correct_answer_raises_level(self):
        assert next_mastery_level(2, True) == 3
        assert next_mastery_level(0, True) == 1

    def test_incorrect_answer_lowers_level(self):
        assert next_mastery_level(3, False) == 2
        assert next_mastery_level(1, False) == 0

    def test_level_is_clamped(self):
        assert next_mastery_level(5, True) == 5
        assert next_mastery_level(0, False) == 0

    def test_level_always_in_range(self):
        for level in LEVELS:
            for is_correct in (True, False):
                assert 0 <= next_mastery_level(level, is_correct) <= 5

    def test_correct_streak(self):
        assert next_correct_streak(2, True) == 3
        assert next_correct_streak(0, True) == 1
        assert next_correct_streak(5, False) == 0
        assert next_correct_streak(1, False) == 0

    def test_wrong_count(self):
        assert next_wrong_count(3, True) == 3
        assert next_wrong_count(0, True) == 0
        assert next_wrong_count(2, False) == 3
        assert next_wrong_count(0, False) == 1

    def test_active_below_top_level(self):
        assert is_active_for_level(0) is True
        assert is_active_for_level(3) is True
        assert is_active_for_level(4) is True
        assert is_active_for_level(5) is False

    def test_active_for_invalid_levels(self):
        assert is_active_for_level(-1) is True
        assert is_active_for_level(6) is False

    def test_apply_answer_reaching_mastery_retires_item(self, now):
        item = ReviewItem(question_id="q", next_review=now, mastery_level=4, correct_streak=3, wrong_count=2)

        update = apply_answer(item, True)

        assert update.mastery_level == 5
        assert update.correct_streak == 4
        assert update.wrong_count == 2
        assert update.is_active is False

    def test_apply_answer_wrong_on_mastered_item_reactivates(self, now):
        item = ReviewItem(question_id="q", next_review=now, mastery_level=5, correct_streak=6, is_active=False)

        update = apply_answer(item, False)

        assert update.mastery_level == 4
        assert update.correct_streak == 0
        assert update.wrong_count == 2
        assert update.is_active is True


class TestNextReviewDate:
    def test_adds_interval_in_minutes(self):
        base = datetime(2023, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert next_review_date(base, 60) == datetime(2023, 1, 1, 13, 0, tzinfo=timezone.utc)

    def test_different_intervals(self):
        base = datetime(2023, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert next_review_date(base, 5) == datetime(2023, 1, 1, 12, 5, tzinfo=timezone.utc)
        assert next_review_date(base, 1440) == datetime(2023, 1, 2, 12, 0, tzinfo=timezone.utc)


class TestPriority:
    def test_lower_mastery_is_more_urgent(self):
        assert calculate_priority(0, 1, 0) > calculate_priority(4, 1, 0)

    def test_more_wrong_answers_is_more_urgent(self):
        assert calculate_priority(4, 4, 0) > calculate_priority(4, 0, 0)

    def test_staleness_is_more_urgent(self):
        assert calculate_priority(4, 0, 30) > calculate_priority(4, 0, 1)
        assert calculate_priority(2, 1, 0) <= calculate_priority(2, 1, 30)

    def test_staleness_never_lowers_priority(self):
        scores = [calculate_priority(3, 1, days) for days in range(0, 40)]
        assert scores == sorted(scores)

    def test_caps_at_five(self):
        assert calculate_priority(0, 10, 100) == 5

    def test_floor_of_one(self):
        assert calculate_priority(5, 0, 0) == 1

    def test_wrong_count_bonus_capped_at_three(self):
        assert calculate_priority(5, 6, 0) == calculate_priority(5, 10, 0) == 4
        assert calculate_priority(2, 6, 0) == calculate_priority(2, 10, 0)

    def test_days_bonus_capped_at_two(self):
        assert calculate_priority(5, 0, 20) == calculate_priority(5, 0, 50) == 3
        assert calculate_priority(2, 1, 20) == calculate_priority(2, 1, 50)

    def test_halves_round_up(self):
        # 1 + 1 + 0.5
        assert calculate_priority(4, 1, 0) == 3

    def test_round_half_up_helper(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.4) == 2
        assert round_half_up(3.125, 2) == 3.13
        assert round_half_up(66.666, 2) == 66.67

    def test_negative_inputs_are_clamped(self):
        assert calculate_priority(5, -4, -10) == 1
        assert calculate_priority(3, -1, 0) == 3

    def test_always_within_range(self):
        for level in LEVELS:
            for wrong in range(0, 12):
                for days in (0, 1, 5, 19, 20, 50, 365):
                    assert 1 <= calculate_priority(level, wrong, days) <= 5

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_input_raises(self, bad):
        with pytest.raises(ValueError):
            calculate_priority(2, bad, 0)
        with pytest.raises(ValueError):
            calculate_priority(2, 1, bad)


class TestUrgency:
    def test_labels(self):
        assert urgency_label(5) == "urgent"
        assert urgency_label(4) == "high"
        assert urgency_label(3) == "medium"
        assert urgency_label(2) == "low"
        assert urgency_label(1) == "low"

    def test_out_of_range(self):
        assert urgency_label(0) == "low"
        assert urgency_label(6) == "urgent"

    def test_item_urgency_follows_priority(self, make_item):
        assert make_item(priority=4).urgency == "high"


class TestDaysSince:
    def test_never_reviewed(self, now):
        assert days_since(None, now) == 0

    def test_whole_days_are_floored(self, now):
        assert days_since(now - timedelta(hours=36), now) == 1
        assert days_since(now - timedelta(days=3), now) == 3

    def test_future_review_counts_as_zero(self, now):
        assert days_since(now + timedelta(days=2), now) == 0

    def test_naive_datetimes_are_utc(self, now):
        naive = datetime(2022, 12, 30, 12, 0)
        assert ensure_utc(naive).tzinfo is timezone.utc
        assert days_since(naive, now) == 2


def test_learning_progression():
    """Two correct answers then a regression, as a learner would go."""
    level, streak, wrong = 0, 0, 1

    interval = next_review_interval(level, True)
    level, streak = next_mastery_level(level, True), next_correct_streak(streak, True)
    assert (level, streak, interval) == (1, 1, 5)

    interval = next_review_interval(level, True)
    level, streak = next_mastery_level(level, True), next_correct_streak(streak, True)
    assert (level, streak, interval) == (2, 2, 30)

    interval = next_review_interval(level, False)
    level = next_mastery_level(level, False)
    streak = next_correct_streak(streak, False)
    wrong = next_wrong_count(wrong, False)
    assert (level, streak, wrong, interval) == (1, 0, 2, 5)
