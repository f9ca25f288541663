"""Tests for primary session selection and the secondary pool."""

import pytest

from agent_activity.arbiter import PRUNE_GONE, PRUNE_STALE, SessionOwnershipArbiter
from agent_activity.models import SessionSnapshot
from agent_activity.states import SemanticState, dwell_ms

S = SemanticState


@pytest.fixture
def arbiter():
    """An arbiter whose primary is session ``a``, last heard from at t=0."""
    arb = SessionOwnershipArbiter(now=0)
    arb.route("a", now=0)
    return arb


class TestAdoption:
    """Tests for who drives the primary display."""

    def test_first_session_becomes_primary(self):
        arb = SessionOwnershipArbiter(now=0)
        machine = arb.route("a", cwd="/work/api", now=0)
        assert arb.primary_session_id == "a"
        assert machine is arb.primary
        assert arb.primary_cwd == "/work/api"

    def test_other_session_goes_secondary(self, arbiter):
        machine = arbiter.route("b", now=1000)
        assert arbiter.primary_session_id == "a"
        assert machine is not arbiter.primary
        assert "b" in arbiter.records
        assert machine.presented == S.SPAWNING

    def test_secondary_never_overwrites_active_primary(self, arbiter):
        arbiter.primary.set_state(S.CODING, "editing a.py", 0)
        for t in range(1000, 120_000, 10_000):
            arbiter.route("a", now=t - 500)
            arbiter.route("b", now=t).set_state(S.ERROR, "boom", t)
        assert arbiter.primary_session_id == "a"
        assert arbiter.primary.presented == S.CODING

    def test_adopts_when_primary_stopped(self, arbiter):
        arbiter.route("a", stopped=True, now=1000)
        machine = arbiter.route("b", now=2000)
        assert arbiter.primary_session_id == "b"
        assert machine is arbiter.primary
        assert "a" in arbiter.records
        assert arbiter.records["a"].stopped

    def test_adopts_when_primary_stale(self, arbiter):
        arbiter.route("b", now=120_000)
        assert arbiter.primary_session_id == "a"
        arbiter.route("c", now=120_001)
        assert arbiter.primary_session_id == "c"

    def test_adopts_on_session_start(self, arbiter):
        arbiter.route("b", session_start=True, now=1000)
        assert arbiter.primary_session_id == "b"

    def test_same_session_refreshes(self, arbiter):
        arbiter.route("a", stopped=True, now=500)
        assert arbiter.primary_stopped
        arbiter.route("a", now=900)
        assert not arbiter.primary_stopped
        assert arbiter.last_primary_update_at == 900

    def test_incoming_state_migrates(self, arbiter):
        arbiter.route("b", cwd="/work/web", now=1000).set_state(S.TESTING, "npm test", 1000)
        arbiter.route("a", stopped=True, now=1500)
        arbiter.route("b", now=2000)
        assert arbiter.primary_session_id == "b"
        assert arbiter.primary.presented == S.TESTING
        assert arbiter.primary_cwd == "/work/web"
        assert "b" not in arbiter.records
        assert "b" not in arbiter.machines

    def test_outgoing_state_is_kept(self, arbiter):
        arbiter.primary.set_state(S.HAPPY, "all done!", 100)
        arbiter.route("a", stopped=True, now=100)
        arbiter.route("b", now=200)
        demoted = arbiter.machines["a"]
        assert demoted.presented == S.HAPPY
        assert demoted.detail == "all done!"
        assert demoted.stopped

    def test_handoff_leaves_outgoing_pending_behind(self, arbiter):
        """A buffered outcome belongs to the session that produced it."""
        arbiter.primary.set_state(S.CODING, "editing a.py", 0)
        arbiter.primary.set_state(S.HAPPY, "all done!", 500)
        arbiter.route("a", stopped=True, now=500)

        machine = arbiter.route("b", now=1000)
        assert machine is arbiter.primary
        assert arbiter.primary.pending is None
        assert arbiter.primary.set_state(S.READING, "reading b.py", 1000)

        demoted = arbiter.machines["a"]
        assert demoted.presented == S.CODING
        assert demoted.pending.state == S.HAPPY
        assert demoted.min_display_until == dwell_ms(S.CODING)
        demoted.tick(dwell_ms(S.CODING))
        assert demoted.presented == S.HAPPY

    def test_incoming_pending_carries_over(self, arbiter):
        secondary = arbiter.route("b", now=1000)
        secondary.set_state(S.CODING, "editing b.py", 1000)
        secondary.set_state(S.PROUD, "saved b.py", 1200)
        arbiter.route("a", stopped=True, now=1500)
        arbiter.route("b", now=2000)
        assert arbiter.primary.presented == S.CODING
        assert arbiter.primary.pending.state == S.PROUD
        assert arbiter.primary.min_display_until == 1000 + dwell_ms(S.CODING)


class TestReconcile:
    """Tests for merging the discovery feed."""

    def test_creates_records(self, arbiter):
        seen = arbiter.reconcile(
            [SessionSnapshot("b", S.CODING, "editing x.py", updated_at=900, cwd="/w/web")],
            now=1000,
        )
        assert seen == {"b"}
        assert arbiter.records["b"].last_update_at == 900
        assert arbiter.machines["b"].presented == S.CODING
        assert arbiter.records["b"].label == "web"

    def test_skips_primary(self, arbiter):
        arbiter.reconcile([SessionSnapshot("a", S.ERROR, "boom", updated_at=900)], now=1000)
        assert "a" not in arbiter.records
        assert arbiter.primary.presented != S.ERROR

    def test_old_snapshot_does_not_rewind(self, arbiter):
        arbiter.reconcile([SessionSnapshot("b", S.CODING, "", updated_at=900)], now=1000)
        arbiter.machines["b"].set_state(S.ERROR, "boom", 1100)
        arbiter.reconcile([SessionSnapshot("b", S.CODING, "", updated_at=900)], now=1200)
        assert arbiter.machines["b"].presented == S.ERROR

    def test_stopped_flag(self, arbiter):
        arbiter.reconcile([SessionSnapshot("b", S.HAPPY, "", updated_at=900, stopped=True)], now=1000)
        assert arbiter.records["b"].stopped
        assert arbiter.records["b"].stopped_at == 1000
        assert arbiter.machines["b"].stopped


class TestSweep:
    """Tests for garbage collection of secondary sessions."""

    def test_unobserved_feed_record_pruned(self, arbiter):
        arbiter.reconcile([SessionSnapshot("b", S.CODING, "", updated_at=900)], now=1000)
        arbiter.reconcile([], now=3000)
        assert arbiter.sweep(3000) == {"b": PRUNE_GONE}
        assert "b" not in arbiter.records

    def test_event_record_survives_reconcile(self, arbiter):
        """Sessions known only from events are not tied to the feed."""
        arbiter.route("b", now=1000)
        arbiter.reconcile([], now=2000)
        assert arbiter.sweep(2000) == {}
        assert "b" in arbiter.records

    def test_stopped_record_lingers(self, arbiter):
        arbiter.route("b", stopped=True, now=1000)
        assert arbiter.sweep(16_000) == {}
        assert arbiter.sweep(16_001) == {"b": PRUNE_STALE}

    def test_outcome_record_short_timeout(self, arbiter):
        arbiter.route("b", now=1000).set_state(S.PROUD, "saved", 1000)
        assert arbiter.sweep(31_000) == {}
        assert arbiter.sweep(31_001) == {"b": PRUNE_STALE}

    def test_active_record_survives_gaps(self, arbiter):
        arbiter.route("b", now=1000).set_state(S.CODING, "", 1000)
        assert arbiter.sweep(100_000) == {}
        assert "b" in arbiter.records

    def test_silent_active_record_pruned(self, arbiter):
        arbiter.route("b", now=1000).set_state(S.CODING, "", 1000)
        arbiter.route("a", now=125_000)
        assert arbiter.sweep(126_000) == {"b": PRUNE_STALE}

    def test_primary_never_pruned(self, arbiter):
        arbiter.route("a", stopped=True, now=0)
        arbiter.sweep(10_000_000)
        assert arbiter.primary_session_id == "a"


class TestLabels:
    """Tests for short secondary labels."""

    def test_unique_cwd_names(self, arbiter):
        arbiter.route("b", cwd="/x/api", now=1000)
        arbiter.route("c", cwd="/y/web", now=2000)
        assert arbiter.records["b"].label == "api"
        assert arbiter.records["c"].label == "web"

    def test_duplicate_cwd_names(self, arbiter):
        arbiter.route("b", cwd="/x/app", now=1000)
        arbiter.route("c", cwd="/y/app", now=2000)
        assert arbiter.records["b"].label == "sub-1"
        assert arbiter.records["c"].label == "sub-2"

    def test_single_record_without_cwd(self, arbiter):
        arbiter.route("b", model_name="codex", now=1000)
        assert arbiter.records["b"].label == "codex"


class TestTick:
    """Tests for advancing every machine."""

    def test_ticks_primary_and_secondaries(self, arbiter):
        arbiter.primary.set_state(S.STARTING, "", 0)
        arbiter.route("b", now=0).set_state(S.STARTING, "", 0)
        arbiter.tick(3001)
        assert arbiter.primary.presented == S.IDLE
        assert arbiter.machines["b"].presented == S.IDLE

    def test_secondaries_view(self, arbiter):
        arbiter.route("b", now=10)
        views = arbiter.secondaries()
        assert list(views) == ["b"]
        assert views["b"].presented == S.SPAWNING
