"""
Tests for the per-event metrics engine
"""

from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel, Session, create_engine

from conftest import TARGET_DATE, Seeder, percentages_by_name, values_by_name
from daily_metrics.aggregator.event_engine import compute_events, online_events


def _by_event(metrics):
    grouped = {}
    for m in metrics:
        grouped.setdefault(m.event_id, []).append(m)
    return grouped


class TestEventMetrics:
    def test_acceptance_scenario(self, session, seed):
        event = seed.event(workspace_id=42)
        a, b, c = (seed.participant(event) for _ in range(3))
        seed.booking(event, a, b, state="accepted")
        seed.booking(event, b, c, state="accepted")
        seed.booking(event, c, a, state="pending")

        metrics = compute_events(session, TARGET_DATE)
        values = values_by_name(metrics)
        percentages = percentages_by_name(metrics)

        assert values["participant_count"] == 3
        assert values["meetings_accepted"] == 2
        assert values["meetings_pending"] == 1
        assert values["meeting_acceptance_rate"] == 2
        assert percentages["meeting_acceptance_rate"] == "66.67"
        assert {m.workspace_id for m in metrics} == {42}
        assert {m.snapshot_date for m in metrics} == {TARGET_DATE}

    def test_event_without_bookings(self, session, seed):
        seed.event()

        metrics = compute_events(session, TARGET_DATE)
        values = values_by_name(metrics)
        percentages = percentages_by_name(metrics)

        assert values == {"participant_count": 0, "meeting_acceptance_rate": 0}
        assert percentages["meeting_acceptance_rate"] == "0"

    def test_only_online_events(self, session, seed):
        online = seed.event()
        draft = seed.event(state="draft")
        seed.participant(draft)

        metrics = compute_events(session, TARGET_DATE)

        assert {m.event_id for m in metrics} == {online.id}
        assert [e.id for e in online_events(session)] == [online.id]

    def test_no_online_events_emits_nothing(self, session, seed):
        seed.event(state="archived")
        assert compute_events(session, TARGET_DATE) == []

    def test_state_counts_sum_to_event_total(self, session, seed):
        first = seed.event()
        second = seed.event(workspace_id=11)
        host = seed.participant(first)
        for state in ("accepted", "declined", None, "declined"):
            seed.booking(first, host, state=state)
        seed.booking(second, seed.participant(second), state="accepted")

        grouped = _by_event(compute_events(session, TARGET_DATE))

        first_values = values_by_name(grouped[first.id])
        assert first_values["meetings_unknown"] == 1
        assert (
            sum(v for n, v in first_values.items() if n.startswith("meetings_")) == 4
        )
        assert percentages_by_name(grouped[first.id])["meeting_acceptance_rate"] == "25"
        assert percentages_by_name(grouped[second.id])["meeting_acceptance_rate"] == "100"
        assert {m.workspace_id for m in grouped[second.id]} == {11}


class TestParallelEventMetrics:
    def test_worker_pool_matches_sequential(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'metrics.db'}",
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )
        SQLModel.metadata.create_all(engine)
        with Session(engine) as session:
            seed = Seeder(session)
            for workspace in range(4):
                event = seed.event(workspace_id=workspace)
                host = seed.participant(event)
                seed.booking(event, host, state="accepted")
                seed.booking(event, host, state="pending")

            def keyed(metrics):
                return sorted(
                    (m.event_id, m.metric_name, m.metric_value, str(m.metric_percentage))
                    for m in metrics
                )

            sequential = compute_events(session, TARGET_DATE, workers=1)
            parallel = compute_events(session, TARGET_DATE, workers=3)

        engine.dispose()
        assert keyed(parallel) == keyed(sequential)
        assert len(sequential) == 4 * 4
