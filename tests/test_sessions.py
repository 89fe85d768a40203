"""
Unit tests for session window segmentation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from usage_monitor.core.sessions import SessionSegmenter
from usage_monitor.storage.models import UsageRecord

T0 = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def make_record(timestamp, input_tokens=100, output_tokens=50, model="claude-3-5-sonnet", cost=0.001):
    return UsageRecord(
        timestamp=timestamp,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cost_usd=cost,
        model=model,
        message_id=f"msg-{timestamp.isoformat()}",
        request_id=f"req-{timestamp.isoformat()}",
    )


@pytest.fixture
def segmenter():
    return SessionSegmenter(5)


class TestWindowBoundaries:
    """Test window opening, closing and gap insertion."""

    def test_empty_input(self, segmenter):
        """Verify no records produce no windows."""
        assert segmenter.transform_to_windows([]) == []

    def test_records_within_width_share_window(self, segmenter):
        """Verify records three hours apart stay in one window."""
        windows = segmenter.transform_to_windows([make_record(T0), make_record(T0 + timedelta(hours=3))])

        assert len(windows) == 1
        assert not windows[0].is_gap
        assert len(windows[0].records) == 2

    def test_long_silence_inserts_gap(self, segmenter):
        """Verify a ten hour silence yields two windows with a gap between."""
        windows = segmenter.transform_to_windows([make_record(T0), make_record(T0 + timedelta(hours=10))])

        assert [w.is_gap for w in windows] == [False, True, False]
        gap = windows[1]
        assert gap.id == "gap-2024-01-15T10:00:00Z"
        assert gap.start_time == T0
        assert gap.end_time == T0 + timedelta(hours=10)
        assert gap.records == []
        assert not gap.is_active

    def test_start_truncated_to_hour(self, segmenter):
        """Verify windows are anchored at the start of the hour."""
        window = segmenter.transform_to_windows([make_record(T0 + timedelta(minutes=45))])[0]

        assert window.start_time == T0
        assert window.end_time == T0 + timedelta(hours=5)
        assert window.id == "2024-01-15T10:00:00Z"

    def test_record_past_nominal_end_opens_window(self, segmenter):
        """Verify a record at or after the nominal end starts a new window."""
        records = [
            make_record(T0),
            make_record(T0 + timedelta(hours=4)),
            make_record(T0 + timedelta(hours=6)),
        ]
        windows = segmenter.transform_to_windows(records)

        assert len(windows) == 2
        assert not any(w.is_gap for w in windows)
        assert windows[1].start_time == T0 + timedelta(hours=6)

    def test_gap_exactly_at_width(self, segmenter):
        """Verify a silence of exactly the window width is a gap."""
        records = [make_record(T0), make_record(T0 + timedelta(hours=4)), make_record(T0 + timedelta(hours=9))]
        windows = segmenter.transform_to_windows(records)

        assert sum(1 for w in windows if w.is_gap) == 1

    def test_no_gap_just_under_width(self, segmenter):
        """Verify a silence just under the window width is not a gap."""
        records = [
            make_record(T0),
            make_record(T0 + timedelta(hours=4)),
            make_record(T0 + timedelta(hours=8, minutes=59)),
        ]
        windows = segmenter.transform_to_windows(records)

        assert len(windows) == 2
        assert not any(w.is_gap for w in windows)

    def test_nominal_end_is_start_plus_width(self, segmenter):
        """Verify every real window spans exactly the configured width."""
        records = [make_record(T0 + timedelta(hours=h)) for h in (0, 2, 7, 8, 20, 21, 40)]
        windows = segmenter.transform_to_windows(records)

        for window in windows:
            if not window.is_gap:
                assert window.end_time - window.start_time == timedelta(hours=5)
                assert window.actual_end_time <= window.end_time

    def test_custom_width(self):
        """Verify the window width is configurable."""
        window = SessionSegmenter(2).transform_to_windows([make_record(T0)])[0]
        assert window.end_time == T0 + timedelta(hours=2)

    def test_record_without_representable_window_skipped(self, segmenter):
        """Verify records too close to the end of time are dropped."""
        far_future = datetime(9999, 12, 31, 22, 30, tzinfo=timezone.utc)

        windows = segmenter.transform_to_windows([make_record(T0), make_record(far_future)])

        assert len(windows) == 1
        assert windows[0].start_time == T0
        assert windows[0].sent_messages_count == 1


class TestWindowAggregates:
    """Test per-window aggregation."""

    def test_actual_end_and_message_count(self, segmenter):
        """Verify the actual end is the last record's timestamp."""
        records = [make_record(T0), make_record(T0 + timedelta(hours=2))]
        window = segmenter.transform_to_windows(records)[0]

        assert window.actual_end_time == T0 + timedelta(hours=2)
        assert window.sent_messages_count == 2

    def test_token_and_cost_totals(self, segmenter):
        """Verify token counts and costs are summed."""
        records = [make_record(T0, 100, 50, cost=0.5), make_record(T0 + timedelta(hours=1), 200, 100, cost=0.25)]
        window = segmenter.transform_to_windows(records)[0]

        assert window.token_counts.input_tokens == 300
        assert window.token_counts.output_tokens == 150
        assert window.total_tokens == 450
        assert window.cost_usd == pytest.approx(0.75)

    def test_per_model_breakdown(self, segmenter):
        """Verify per-model stats sum to the window totals."""
        records = [
            make_record(T0, model="claude-3-5-sonnet-20241022"),
            make_record(T0 + timedelta(minutes=10), model="claude-3-haiku-20240307"),
            make_record(T0 + timedelta(minutes=20), model="claude-3-5-sonnet-20241022"),
        ]
        window = segmenter.transform_to_windows(records)[0]

        assert window.models == ["claude-3-5-sonnet", "claude-3-haiku"]
        assert window.per_model_stats["claude-3-5-sonnet"].entries_count == 2
        assert window.per_model_stats["claude-3-haiku"].input_tokens == 100
        assert sum(s.total_tokens for s in window.per_model_stats.values()) == window.total_tokens

    def test_empty_model_grouped_as_unknown(self, segmenter):
        """Verify records without a model aggregate under unknown."""
        window = segmenter.transform_to_windows([make_record(T0, model="")])[0]
        assert window.models == ["unknown"]

    def test_tracker_projection(self, segmenter):
        """Verify the reduced tracker shape."""
        window = segmenter.transform_to_windows([make_record(T0)])[0]

        assert window.to_tracker_dict() == {
            "id": "2024-01-15T10:00:00Z",
            "isActive": False,
            "totalTokens": 150,
            "costUSD": 0.001,
            "startTime": "2024-01-15T10:00:00+00:00",
        }


class TestActivityMarking:
    """Test active window marking."""

    def test_window_ending_after_now_is_active(self, segmenter):
        """Verify a window whose end lies ahead of now is active."""
        windows = segmenter.transform_to_windows([make_record(T0)], now=T0 + timedelta(hours=1))
        assert windows[0].is_active

    def test_old_window_is_inactive(self, segmenter):
        """Verify windows in the past are not active."""
        windows = segmenter.transform_to_windows([make_record(T0)])
        assert not windows[0].is_active

    def test_gap_never_active(self, segmenter):
        """Verify gap windows stay inactive even when now falls inside them."""
        records = [make_record(T0), make_record(T0 + timedelta(hours=20))]
        windows = segmenter.transform_to_windows(records, now=T0 + timedelta(hours=10))

        assert [w.is_active for w in windows] == [False, False, True]

    def test_recent_records_make_active_window(self, segmenter):
        """Verify activity marking against the real clock."""
        recent = datetime.now(timezone.utc) - timedelta(minutes=30)
        windows = segmenter.transform_to_windows([make_record(recent)])
        assert windows[0].is_active
