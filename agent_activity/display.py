"""Per-entity presentation state machine.

One machine drives each face on screen: the primary session's, and one per
secondary session. Requests come in through ``set_state``; ``tick`` runs every
frame to drain buffered requests and apply timeouts. Every timeout is a
comparison against ``now``, so ticking late or twice is harmless.

Transition rules, in order:

1. ``error`` and ``ratelimited`` always apply at once.
2. Work preempts an interruptible state (thinking, idle, sleeping, waiting,
   outcomes). An outcome face gets ``COMPLETION_MIN_SHOW_MS`` first.
3. An outcome arriving during work waits for the work's dwell to pass.
4. Anything else waits while the dwell lock holds. A buffered error, or a
   buffered outcome facing a mundane request, is not replaced.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from .config import (
    CAFFEINE_HISTORY,
    CAFFEINE_THRESHOLD,
    CAFFEINE_WINDOW_MS,
    COMPLETION_MIN_SHOW_MS,
    IDLE_TIMEOUT_MS,
    SLEEP_TIMEOUT_MS,
    STARTING_TIMEOUT_MS,
    STOPPED_THINKING_TIMEOUT_MS,
    THINKING_TIMEOUT_MS,
)
from .models import now_ms
from .states import (
    CAFFEINE_EXEMPT_STATES,
    CRITICAL_STATES,
    INTERRUPTIBLE_STATES,
    OUTCOME_LINGER_MS,
    OUTCOME_STATES,
    WORK_STATES,
    SemanticState,
    dwell_ms,
    is_mundane,
)
from .timeline import Timeline, TimelineEntry

logger = logging.getLogger(__name__)

S = SemanticState


@dataclass
class PendingState:
    state: SemanticState
    detail: str = ""


@dataclass
class DisplayState:
    """Read-only view of a machine, handed to the renderer."""

    presented: SemanticState
    detail: str
    pending: Optional[PendingState]
    last_change_at: int
    min_display_until: int
    stopped: bool
    timeline: list[TimelineEntry] = field(default_factory=list)


class DisplayStateMachine:
    """Turns a stream of requested states into a steady presented state."""

    def __init__(
        self,
        initial: SemanticState = S.IDLE,
        detail: str = "",
        now: Optional[int] = None,
        name: str = "",
    ):
        now = now_ms() if now is None else now
        self.name = name
        self._presented = initial
        self.prev_state = initial
        self.detail = detail
        self.pending: Optional[PendingState] = None
        self.last_change_at = now
        self.min_display_until = 0
        self.stopped = False
        self.last_activity_at = now
        self.timeline = Timeline()
        self.timeline.append(initial, now)
        self._change_times: deque[int] = deque(maxlen=CAFFEINE_HISTORY)

    @property
    def presented(self) -> SemanticState:
        return self._presented

    # -- Session signals -------------------------------------------------

    def touch(self, now: Optional[int] = None):
        """Note activity from the owning session."""
        self.last_activity_at = now_ms() if now is None else now

    def set_stopped(self, stopped: bool):
        self.stopped = stopped

    # -- Transitions -----------------------------------------------------

    def set_state(self, new_state: SemanticState, detail: str = "", now: Optional[int] = None) -> bool:
        """Request ``new_state``. Returns True if it is presented now."""
        return self._request(new_state, detail, now_ms() if now is None else now, draining=False)

    def _request(self, new_state: SemanticState, detail: str, now: int, draining: bool) -> bool:
        current = self._presented

        if new_state == current:
            self.detail = detail
            self.last_change_at = now
            return True

        if new_state in CRITICAL_STATES:
            self._apply(new_state, detail, now)
            return True

        shown_for = now - self.last_change_at
        if (
            new_state in WORK_STATES
            and current in INTERRUPTIBLE_STATES
            and (current not in OUTCOME_STATES or shown_for >= COMPLETION_MIN_SHOW_MS)
        ):
            self._apply(new_state, detail, now)
            return True

        if new_state in OUTCOME_STATES and current in WORK_STATES and not draining:
            self._buffer(new_state, detail)
            return False

        if now < self.min_display_until:
            self._buffer(new_state, detail)
            return False

        self._apply(new_state, detail, now)
        return True

    def _buffer(self, new_state: SemanticState, detail: str):
        held = self.pending
        if held is not None:
            if held.state is S.ERROR:
                return
            if held.state in OUTCOME_STATES and is_mundane(new_state):
                return
        self.pending = PendingState(new_state, detail)

    def _apply(self, new_state: SemanticState, detail: str, now: int):
        if self.name:
            logger.debug(f"{self.name}: {self._presented} -> {new_state} ({detail})")
        self.prev_state = self._presented
        self._presented = new_state
        self.detail = detail
        self.last_change_at = now
        self.min_display_until = now + dwell_ms(new_state)
        self.pending = None
        self.timeline.append(new_state, now)
        self._change_times.append(now)

    # -- Handoff ---------------------------------------------------------

    def copy(self, name: str = "") -> "DisplayStateMachine":
        """A detached machine in the same state, pending request and dwell lock included."""
        twin = DisplayStateMachine(self._presented, self.detail, self.last_change_at, name=name or self.name)
        twin.prev_state = self.prev_state
        twin.pending = PendingState(self.pending.state, self.pending.detail) if self.pending else None
        twin.min_display_until = self.min_display_until
        twin.stopped = self.stopped
        twin.last_activity_at = self.last_activity_at
        twin._change_times.extend(self._change_times)
        return twin

    def take_over(self, other: Optional["DisplayStateMachine"], now: Optional[int] = None):
        """Start presenting for a new owner.

        Whatever the previous owner left buffered or locked is dropped. With
        ``other`` given, its state, pending request and dwell lock carry over.
        """
        now = now_ms() if now is None else now
        self.pending = None
        self.min_display_until = 0
        self._change_times.clear()
        if other is None:
            return
        self._apply(other.presented, other.detail, now)
        self.prev_state = other.prev_state
        self.last_change_at = other.last_change_at
        self.min_display_until = other.min_display_until
        self.pending = PendingState(other.pending.state, other.pending.detail) if other.pending else None
        self._change_times.clear()
        self._change_times.extend(other._change_times)

    # -- Per-frame work --------------------------------------------------

    def tick(self, now: Optional[int] = None):
        """Drain buffered requests, then apply timeouts if the dwell lock allows."""
        now = now_ms() if now is None else now

        held = self.pending
        if held is not None and now >= self.min_display_until:
            self._request(held.state, held.detail, now, draining=True)
        elif (
            held is not None
            and held.state in WORK_STATES
            and self._presented in OUTCOME_STATES
            and now - self.last_change_at >= COMPLETION_MIN_SHOW_MS
        ):
            self._request(held.state, held.detail, now, draining=True)

        self._check_caffeine(now)

        if now < self.min_display_until:
            return

        self._degrade(now)

    def recent_changes(self, now: int) -> int:
        return sum(1 for t in self._change_times if now - t < CAFFEINE_WINDOW_MS)

    def _check_caffeine(self, now: int):
        # Never displaces a buffered request
        if self.pending is not None:
            return
        recent = self.recent_changes(now)
        if recent >= CAFFEINE_THRESHOLD and self._presented not in CAFFEINE_EXEMPT_STATES:
            self.set_state(S.CAFFEINATED, self.detail or "hyperdrive!", now)
        elif self._presented is S.CAFFEINATED and recent < CAFFEINE_THRESHOLD - 1:
            restore = self.prev_state if self.prev_state is not S.CAFFEINATED else S.IDLE
            self.set_state(restore, self.detail, now)

    def _degrade(self, now: int):
        state = self._presented
        shown_for = now - self.last_change_at
        settle = S.IDLE if self.stopped else S.THINKING

        if state is S.STARTING:
            if shown_for > STARTING_TIMEOUT_MS:
                self.set_state(S.IDLE, "", now)
        elif state is S.RESPONDING and self.stopped:
            # The dwell already passed, so the turn counts as visibly finished
            self._request(S.HAPPY, "all done!", now, draining=True)
        elif state in OUTCOME_STATES:
            if shown_for > OUTCOME_LINGER_MS[state]:
                self.set_state(settle, "", now)
        elif state is S.THINKING:
            if self.stopped:
                if shown_for > STOPPED_THINKING_TIMEOUT_MS:
                    self.set_state(S.IDLE, "", now)
            elif now - max(self.last_change_at, self.last_activity_at) > THINKING_TIMEOUT_MS:
                self.set_state(S.IDLE, "", now)
        elif state is S.IDLE:
            if shown_for > SLEEP_TIMEOUT_MS:
                self.set_state(S.SLEEPING, "", now)
        elif state in (S.SLEEPING, S.WAITING):
            return
        elif shown_for > IDLE_TIMEOUT_MS:
            self.set_state(settle, "", now)

    # -- Views -----------------------------------------------------------

    def snapshot(self) -> DisplayState:
        return DisplayState(
            presented=self._presented,
            detail=self.detail,
            pending=PendingState(self.pending.state, self.pending.detail) if self.pending else None,
            last_change_at=self.last_change_at,
            min_display_until=self.min_display_until,
            stopped=self.stopped,
            timeline=self.timeline.entries(),
        )
