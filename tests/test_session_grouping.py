# tests/test_session_grouping.py
from datetime import datetime, timedelta, timezone

import pytest

from ilaw.models.enums import QuizMode
from ilaw.models.quiz import QuizAttemptRecord
from ilaw.services.session_grouping import (
    attempt_percentage,
    attempt_timestamp,
    group_attempts,
    group_into_sessions,
    partition_attempts,
)
from ilaw.utils.scoring import round_half_away, safe_percentage

T0 = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)
T0_MS = int(T0.timestamp() * 1000)


def attempt(seconds=0, correct=3, total=5, book_id=1, user_id=7, mode="retry", **extra):
    data = {
        "user_id": user_id,
        "book_id": book_id,
        "score_correct": correct,
        "score_total": total,
        "mode": mode,
        "created_at": T0 + timedelta(seconds=seconds),
    }
    data.update(extra)
    return QuizAttemptRecord.model_validate(data)


@pytest.mark.grouping
class TestSessionGrouping:

    def test_two_close_attempts_form_one_session(self):
        sessions = group_attempts([attempt(0, 3, 5), attempt(30, 4, 5)])
        assert len(sessions) == 1
        session = sessions[0]
        assert session.book_id == 1
        assert session.total_correct == 7
        assert session.total_total == 10
        assert session.percentage == 70
        assert session.start_at == T0_MS
        assert session.end_at == T0_MS + 30_000

    def test_gap_just_under_threshold_merges(self):
        sessions = group_attempts([attempt(0), attempt(119)], gap_sec=120)
        assert len(sessions) == 1

    def test_gap_exactly_at_threshold_merges(self):
        sessions = group_attempts([attempt(0), attempt(120)], gap_sec=120)
        assert len(sessions) == 1

    def test_gap_over_threshold_splits(self):
        sessions = group_attempts([attempt(0, 1, 5), attempt(121, 5, 5)], gap_sec=120)
        assert len(sessions) == 2
        assert [s.percentage for s in sessions] == [20, 100]

    def test_gap_is_measured_from_last_activity(self):
        # Each attempt is 100s after the previous one, so the session keeps extending
        sessions = group_attempts([attempt(0), attempt(100), attempt(200), attempt(300)], gap_sec=120)
        assert len(sessions) == 1
        assert sessions[0].end_at - sessions[0].start_at == 300_000

    def test_custom_gap(self):
        records = [attempt(0), attempt(45)]
        assert len(group_attempts(records, gap_sec=30)) == 2
        assert len(group_attempts(records, gap_sec=60)) == 1

    def test_input_order_does_not_matter(self):
        records = [attempt(500, 2, 4), attempt(0, 3, 5), attempt(30, 4, 5)]
        sessions = group_attempts(records)
        assert [s.start_at for s in sessions] == [T0_MS, T0_MS + 500_000]
        assert sessions[0].percentage == 70
        assert sessions[1].percentage == 50

    def test_single_straight_attempt_taints_the_session(self):
        sessions = group_attempts([attempt(0, mode="retry"), attempt(10, mode="straight"), attempt(20, mode="retry")])
        assert len(sessions) == 1
        assert sessions[0].mode == QuizMode.STRAIGHT

    def test_all_retry_session_stays_retry(self):
        sessions = group_attempts([attempt(0), attempt(10)])
        assert sessions[0].mode == QuizMode.RETRY

    def test_straight_does_not_leak_into_the_next_session(self):
        sessions = group_attempts([attempt(0, mode="straight"), attempt(1000, mode="retry")])
        assert [s.mode for s in sessions] == [QuizMode.STRAIGHT, QuizMode.RETRY]

    def test_partitions_by_user_and_book(self):
        records = [
            attempt(0, book_id=1, user_id=7),
            attempt(5, book_id=2, user_id=7),
            attempt(10, book_id=1, user_id=8),
            attempt(15, book_id=1, user_id=7),
        ]
        sessions = group_attempts(records)
        assert len(sessions) == 3
        # Discovery order of the (user, book) keys is kept
        assert [s.book_id for s in sessions] == [1, 2, 1]
        assert sessions[0].total_total == 10

    def test_partition_keys_in_first_seen_order(self):
        records = [attempt(book_id=3), attempt(book_id=1), attempt(book_id=3)]
        assert list(partition_attempts(records).keys()) == [(7, 3), (7, 1)]

    def test_empty_input(self):
        assert group_attempts([]) == []
        assert group_into_sessions([]) == []

    def test_grouping_is_idempotent(self):
        records = [attempt(0), attempt(30, mode="straight"), attempt(400, book_id=2)]
        assert group_attempts(records) == group_attempts(records)

    def test_zero_total_is_guarded(self):
        sessions = group_attempts([attempt(0, correct=0, total=0)])
        assert sessions[0].total_total == 0
        assert sessions[0].percentage == 0

    def test_missing_timestamp_sorts_first_and_starts_its_own_session(self):
        undated = QuizAttemptRecord.model_validate({"user_id": 7, "book_id": 1, "score_correct": 1, "score_total": 1})
        sessions = group_attempts([attempt(0, 3, 5), undated])
        assert len(sessions) == 2
        assert sessions[0].start_at == 0
        assert sessions[0].percentage == 100
        assert sessions[1].percentage == 60

    def test_unparseable_timestamp_counts_as_epoch_zero(self):
        record = QuizAttemptRecord.model_validate({"user_id": 7, "book_id": 1, "created_at": "not a date"})
        assert record.created_at is None
        assert attempt_timestamp(record) == 0

    def test_iso_string_and_epoch_ms_timestamps(self):
        iso = QuizAttemptRecord.model_validate({"created_at": "2025-03-01T09:00:00Z"})
        millis = QuizAttemptRecord.model_validate({"created_at": T0_MS})
        assert attempt_timestamp(iso) == T0_MS
        assert attempt_timestamp(millis) == T0_MS


@pytest.mark.grouping
class TestLenientAttemptParsing:

    def test_malformed_numbers_become_none(self):
        record = QuizAttemptRecord.model_validate({
            "user_id": "7",
            "score_correct": "three",
            "score_total": None,
            "duration_sec": float("inf"),
        })
        assert record.user_id == 7
        assert record.score_correct is None
        assert record.score_total is None
        assert record.duration_sec is None

    def test_unknown_mode_is_retry(self):
        assert QuizAttemptRecord.model_validate({"mode": "STRAIGHT"}).mode == QuizMode.RETRY
        assert QuizAttemptRecord.model_validate({"mode": None}).mode == QuizMode.RETRY
        assert QuizAttemptRecord.model_validate({"mode": "straight"}).mode == QuizMode.STRAIGHT

    def test_stored_percentage_is_used_verbatim(self):
        record = QuizAttemptRecord.model_validate({"score_correct": 1, "score_total": 4, "percentage": 90})
        assert attempt_percentage(record) == 90

    def test_non_numeric_percentage_is_recomputed(self):
        record = QuizAttemptRecord.model_validate({"score_correct": 1, "score_total": 3, "percentage": "n/a"})
        assert record.percentage is None
        assert attempt_percentage(record) == 33

    def test_session_with_malformed_scores_still_builds(self):
        records = [
            attempt(0, correct=None, total=None),
            attempt(10, correct=2, total=4),
        ]
        sessions = group_attempts(records)
        assert sessions[0].total_correct == 2
        assert sessions[0].total_total == 4
        assert sessions[0].percentage == 50


def test_round_half_away_from_zero():
    assert round_half_away(2.5) == 3
    assert round_half_away(0.5) == 1
    assert round_half_away(-2.5) == -3
    assert round_half_away(66.4) == 66


def test_safe_percentage():
    assert safe_percentage(1, 8) == 13  # 12.5 rounds up
    assert safe_percentage(2, 3) == 67
    assert safe_percentage(5, 0) == 0
    assert safe_percentage(None, None) == 0
