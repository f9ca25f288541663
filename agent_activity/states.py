"""Semantic activity states and their timing tables."""

from enum import Enum


class SemanticState(str, Enum):
    """What the assistant is doing, reduced to one presentable value."""

    IDLE = "idle"
    THINKING = "thinking"
    CODING = "coding"
    READING = "reading"
    SEARCHING = "searching"
    EXECUTING = "executing"
    TESTING = "testing"
    INSTALLING = "installing"
    COMMITTING = "committing"
    REVIEWING = "reviewing"
    SUBAGENT = "subagent"
    RESPONDING = "responding"
    STARTING = "starting"
    SPAWNING = "spawning"
    WAITING = "waiting"
    SLEEPING = "sleeping"
    CAFFEINATED = "caffeinated"
    RATELIMITED = "ratelimited"

    # Outcomes
    HAPPY = "happy"
    SATISFIED = "satisfied"
    PROUD = "proud"
    RELIEVED = "relieved"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value, default: "SemanticState | None" = None) -> "SemanticState":
        """Coerce a string from a state file into a state, falling back to ``default``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default if default is not None else cls.THINKING


S = SemanticState

# Real work happening now. These preempt interruptible states.
WORK_STATES = frozenset({
    S.CODING, S.READING, S.SEARCHING, S.EXECUTING, S.TESTING,
    S.INSTALLING, S.COMMITTING, S.REVIEWING, S.SUBAGENT, S.RESPONDING,
})

# Positive outcomes of a finished tool call.
OUTCOME_STATES = frozenset({S.HAPPY, S.SATISFIED, S.PROUD, S.RELIEVED})

INTERRUPTIBLE_STATES = frozenset({S.THINKING, S.IDLE, S.SLEEPING, S.WAITING}) | OUTCOME_STATES

# Always shown immediately.
CRITICAL_STATES = frozenset({S.ERROR, S.RATELIMITED})

LOW_ACTIVITY_STATES = frozenset({S.IDLE, S.SLEEPING, S.WAITING})

# States the caffeinated detector never overrides.
CAFFEINE_EXEMPT_STATES = frozenset({
    S.IDLE, S.SLEEPING, S.ERROR, S.CAFFEINATED, S.COMMITTING,
    S.RESPONDING, S.RATELIMITED, S.WAITING,
}) | OUTCOME_STATES

DEFAULT_DWELL_MS = 1000

DWELL_MS = {
    S.HAPPY: 4000,
    S.PROUD: 4500,
    S.SATISFIED: 2500,
    S.RELIEVED: 2500,
    S.ERROR: 4000,
    S.CODING: 6000,
    S.THINKING: 2500,
    S.RESPONDING: 3000,
    S.READING: 4000,
    S.SEARCHING: 4000,
    S.EXECUTING: 4000,
    S.TESTING: 4000,
    S.INSTALLING: 4000,
    S.CAFFEINATED: 2500,
    S.SUBAGENT: 4000,
    S.WAITING: 1500,
    S.SLEEPING: 1000,
    S.STARTING: 1500,
    S.SPAWNING: 4000,
    S.COMMITTING: 3500,
    S.REVIEWING: 3500,
    S.RATELIMITED: 5000,
}

# How long an outcome face stays before degrading.
OUTCOME_LINGER_MS = {
    S.HAPPY: 8000,
    S.PROUD: 7000,
    S.SATISFIED: 5500,
    S.RELIEVED: 6000,
}


def dwell_ms(state: SemanticState) -> int:
    """Minimum time ``state`` stays presented before ordinary preemption."""
    return DWELL_MS.get(state, DEFAULT_DWELL_MS)


def is_mundane(state: SemanticState) -> bool:
    return state not in OUTCOME_STATES and state is not S.ERROR
