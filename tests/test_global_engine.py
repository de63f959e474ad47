"""
Tests for the global metrics engine
"""

from datetime import datetime, timedelta, timezone

from conftest import TARGET_DATE, percentages_by_name, values_by_name
from daily_metrics.aggregator.global_engine import compute_global, day_bounds

UTC = timezone.utc


def _seed_mixed(seed):
    online = seed.event(workspace_id=10)
    draft = seed.event(state="draft", workspace_id=20)

    p1 = seed.participant(online, created_at=datetime(2026, 3, 14, 0, 0, tzinfo=UTC))
    p2 = seed.participant(online, created_at=datetime(2026, 3, 13, 23, 59, tzinfo=UTC))
    p3 = seed.participant(
        online, state="invited", created_at=datetime(2026, 3, 14, 23, 59, 59, tzinfo=UTC)
    )
    p4 = seed.participant(draft, created_at=datetime(2026, 3, 14, 12, 0, tzinfo=UTC))

    seed.booking(online, p1, p2, state="accepted")
    seed.booking(online, p2, p3, state="pending")
    seed.booking(online, p3, state=None)
    seed.booking(draft, p4, state="accepted")
    return online, draft


class TestParticipantMetrics:
    def test_counts_only_online_events(self, session, seed):
        _seed_mixed(seed)
        values = values_by_name(compute_global(session, TARGET_DATE))

        assert values["total_participants"] == 3
        assert values["registered_participants"] == 2

    def test_new_participants_created_on_target_date(self, session, seed):
        _seed_mixed(seed)
        values = values_by_name(compute_global(session, TARGET_DATE))

        # p1 at midnight and p3 at 23:59:59; p2 is the day before, p4 is offline
        assert values["new_participants"] == 2


class TestMeetingMetrics:
    def test_meetings_grouped_by_state(self, session, seed):
        _seed_mixed(seed)
        values = values_by_name(compute_global(session, TARGET_DATE))

        assert values["meetings_accepted"] == 1
        assert values["meetings_pending"] == 1
        assert values["meetings_unknown"] == 1
        assert values["total_meetings"] == 3

    def test_state_counts_sum_to_total(self, session, seed):
        _seed_mixed(seed)
        metrics = compute_global(session, TARGET_DATE)
        values = values_by_name(metrics)

        per_state = sum(
            m.metric_value for m in metrics if m.metric_name.startswith("meetings_")
        )
        assert per_state == values["total_meetings"]

    def test_meeting_rows_have_no_percentage(self, session, seed):
        _seed_mixed(seed)
        percentages = percentages_by_name(compute_global(session, TARGET_DATE))
        assert percentages["total_meetings"] is None
        assert percentages["meetings_accepted"] is None


class TestOptInMetrics:
    def test_newsletter_rates(self, session, seed):
        seed.users(10, opted_in=4)
        metrics = compute_global(session, TARGET_DATE)
        values = values_by_name(metrics)
        percentages = percentages_by_name(metrics)

        assert values["newsletter_opted_in"] == 4
        assert percentages["newsletter_opted_in"] == "40"
        assert values["newsletter_opted_out"] == 0
        assert percentages["newsletter_opted_out"] == "0"

    def test_newsletter_states_not_exclusive(self, session, seed):
        # Users may carry both timestamps; percentages are not corrected.
        seed.users(3, opted_in=3, opted_out=2)
        percentages = percentages_by_name(compute_global(session, TARGET_DATE))

        assert percentages["newsletter_opted_in"] == "100"
        assert percentages["newsletter_opted_out"] == "66.67"

    def test_dashboard_flags(self, session, seed):
        seed.admins("1", "0", "0", None, "x")
        metrics = compute_global(session, TARGET_DATE)
        values = values_by_name(metrics)
        percentages = percentages_by_name(metrics)

        assert values["dashboard_opted_in"] == 1
        assert percentages["dashboard_opted_in"] == "20"
        assert values["dashboard_opted_out"] == 2
        assert percentages["dashboard_opted_out"] == "40"

    def test_categories(self, session, seed):
        categories = {
            m.metric_name: m.metric_category
            for m in compute_global(session, TARGET_DATE)
        }
        assert categories["newsletter_opted_in"] == "newsletter"
        assert categories["dashboard_opted_out"] == "app_usage"
        assert categories["total_participants"] == "participants"


class TestNoOnlineEvents:
    def test_emits_zero_totals_and_opt_in_rows(self, session, seed):
        draft = seed.event(state="draft")
        seed.booking(draft, seed.participant(draft))

        metrics = compute_global(session, TARGET_DATE)
        values = values_by_name(metrics)
        percentages = percentages_by_name(metrics)

        assert values["total_participants"] == 0
        assert values["new_participants"] == 0
        assert values["registered_participants"] == 0
        assert values["total_meetings"] == 0
        assert not [n for n in values if n.startswith("meetings_")]
        for name in (
            "newsletter_opted_in",
            "newsletter_opted_out",
            "dashboard_opted_in",
            "dashboard_opted_out",
        ):
            assert values[name] == 0
            assert percentages[name] == "0"

    def test_rows_stamped_with_target_date(self, session):
        metrics = compute_global(session, TARGET_DATE)
        assert metrics
        assert {m.aggregation_date for m in metrics} == {TARGET_DATE}

    def test_empty_database(self, session):
        metrics = compute_global(session, TARGET_DATE)
        values = values_by_name(metrics)

        assert values["total_participants"] == 0
        assert values["new_participants"] == 0
        assert len(metrics) == 8


class TestDayBounds:
    def test_bounds_are_utc_aware(self):
        start, end = day_bounds(TARGET_DATE)

        assert start == datetime(2026, 3, 14, tzinfo=UTC)
        assert start.tzinfo is UTC
        assert end - start == timedelta(days=1)

    def test_new_participants_respect_utc_day(self, session, seed):
        online = seed.event()
        start, end = day_bounds(TARGET_DATE)
        seed.participant(online, created_at=start)
        seed.participant(online, created_at=end - timedelta(microseconds=1))
        seed.participant(online, created_at=end)

        values = values_by_name(compute_global(session, TARGET_DATE))

        assert values["new_participants"] == 2
        assert values["total_participants"] == 3
