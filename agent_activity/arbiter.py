"""Decide which session drives the main display, and track all the others.

Exactly one session is primary. Every other session gets a ``SessionRecord``
and its own ``DisplayStateMachine``. A different session takes over the
primary display only when the current primary has stopped, has been silent
for ``PRIMARY_STALE_MS``, or the newcomer explicitly started a session.
"""

import logging
from pathlib import PurePath
from typing import Iterable, Optional

from .config import OUTCOME_STALE_MS, PRIMARY_STALE_MS, STALE_MS, STOPPED_LINGER_MS
from .display import DisplayState, DisplayStateMachine
from .models import SessionRecord, SessionSnapshot, now_ms
from .states import OUTCOME_STATES, SemanticState

logger = logging.getLogger(__name__)

PRUNE_GONE = "gone"
PRUNE_STALE = "stale"


class SessionOwnershipArbiter:
    """Primary selection, the secondary session pool and its garbage collection."""

    def __init__(self, primary: Optional[DisplayStateMachine] = None, now: Optional[int] = None):
        now = now_ms() if now is None else now
        self.primary = primary or DisplayStateMachine(now=now, name="primary")
        self.primary_session_id: Optional[str] = None
        self.last_primary_update_at = 0
        self.primary_stopped = False
        self.primary_stopped_at = 0
        self.primary_since = 0
        self.primary_cwd = ""
        self.primary_model_name = ""

        self.records: dict[str, SessionRecord] = {}
        self.machines: dict[str, DisplayStateMachine] = {}
        # Records backed by the discovery feed, and which of them the last pass saw
        self._feed_backed: set[str] = set()
        self._observed: set[str] = set()

    # -- Adoption ----------------------------------------------------------

    def is_primary(self, session_id: str) -> bool:
        return session_id == self.primary_session_id

    def should_adopt(self, session_id: str, session_start: bool = False, now: Optional[int] = None) -> bool:
        """Whether an event from ``session_id`` takes over the primary display."""
        now = now_ms() if now is None else now
        if self.primary_session_id is None:
            return True
        if session_id == self.primary_session_id:
            return False
        return (
            self.primary_stopped
            or now - self.last_primary_update_at > PRIMARY_STALE_MS
            or session_start
        )

    def route(
        self,
        session_id: str,
        *,
        stopped: bool = False,
        session_start: bool = False,
        cwd: str = "",
        model_name: str = "",
        now: Optional[int] = None,
    ) -> DisplayStateMachine:
        """Book an event for ``session_id`` and return the machine it should drive."""
        now = now_ms() if now is None else now

        if self.should_adopt(session_id, session_start, now):
            self._adopt(session_id, now)

        if self.is_primary(session_id):
            self.last_primary_update_at = now
            self._set_primary_stopped(stopped, now)
            if cwd:
                self.primary_cwd = cwd
            if model_name:
                self.primary_model_name = model_name
            self.primary.touch(now)
            return self.primary

        record, machine = self._ensure_secondary(session_id, now)
        record.last_update_at = now
        record.mark_stopped(stopped, now)
        if (cwd and cwd != record.cwd) or (model_name and model_name != record.model_name):
            record.cwd = cwd or record.cwd
            record.model_name = model_name or record.model_name
            self._assign_labels()
        machine.set_stopped(record.stopped)
        machine.touch(now)
        return machine

    def _set_primary_stopped(self, stopped: bool, now: int):
        if stopped and not self.primary_stopped:
            self.primary_stopped_at = now
        self.primary_stopped = stopped
        self.primary.set_stopped(stopped)

    def _adopt(self, session_id: str, now: int):
        outgoing = self.primary_session_id
        if outgoing is not None:
            logger.info(f"Primary session {outgoing} handed off to {session_id}")
            self._demote_primary(outgoing, now)
        else:
            logger.info(f"Adopted {session_id} as primary session")

        incoming = self.records.pop(session_id, None)
        incoming_machine = self.machines.pop(session_id, None)
        self._feed_backed.discard(session_id)
        self._observed.discard(session_id)

        self.primary_session_id = session_id
        self.primary_since = incoming.first_seen_at if incoming else now
        self.primary_cwd = incoming.cwd if incoming else ""
        self.primary_model_name = incoming.model_name if incoming else ""
        self.primary_stopped = False
        self.primary_stopped_at = 0
        self.primary.set_stopped(False)

        self.primary.take_over(incoming_machine, now)
        self._assign_labels()

    def _demote_primary(self, session_id: str, now: int):
        """Move the outgoing primary back into the secondary pool."""
        record = SessionRecord(
            id=session_id,
            cwd=self.primary_cwd,
            model_name=self.primary_model_name,
            first_seen_at=self.primary_since or now,
            last_update_at=self.last_primary_update_at or now,
            stopped=self.primary_stopped,
            stopped_at=self.primary_stopped_at,
            last_state=self.primary.presented,
            last_detail=self.primary.detail,
        )
        machine = self.primary.copy(name=session_id)
        machine.set_stopped(record.stopped)
        machine.touch(record.last_update_at)
        self.records[session_id] = record
        self.machines[session_id] = machine

    def _ensure_secondary(self, session_id: str, now: int) -> tuple[SessionRecord, DisplayStateMachine]:
        record = self.records.get(session_id)
        if record is None:
            logger.debug(f"New secondary session {session_id}")
            record = SessionRecord(id=session_id, first_seen_at=now, last_update_at=now)
            self.records[session_id] = record
            self.machines[session_id] = DisplayStateMachine(
                SemanticState.SPAWNING, "spawning", now, name=session_id
            )
            self._assign_labels()
        machine = self.machines.get(session_id)
        if machine is None:
            machine = DisplayStateMachine(record.last_state, record.last_detail, now, name=session_id)
            self.machines[session_id] = machine
        return record, machine

    # -- Discovery feed ----------------------------------------------------

    def reconcile(self, snapshots: Iterable[SessionSnapshot], now: Optional[int] = None) -> set[str]:
        """Merge a discovery pass into the pool. Returns the ids it observed."""
        now = now_ms() if now is None else now
        seen: set[str] = set()

        for snap in snapshots:
            if snap is None or not snap.session_id or self.is_primary(snap.session_id):
                continue
            sid = snap.session_id
            seen.add(sid)
            is_new = sid not in self.records
            record, machine = self._ensure_secondary(sid, now)
            self._feed_backed.add(sid)

            updated_at = snap.updated_at or now
            if is_new or updated_at > record.last_update_at:
                record.last_update_at = updated_at
                record.last_state = snap.state
                record.last_detail = snap.detail
                machine.set_state(snap.state, snap.detail, now)
                machine.touch(updated_at)
            if snap.cwd:
                record.cwd = snap.cwd
            if snap.model_name:
                record.model_name = snap.model_name
            record.mark_stopped(snap.stopped, now)
            machine.set_stopped(record.stopped)

        self._observed = seen
        self._assign_labels()
        return seen

    # -- Garbage collection ------------------------------------------------

    def is_stale(self, record: SessionRecord, now: Optional[int] = None) -> bool:
        now = now_ms() if now is None else now
        if record.stopped:
            return now - record.stopped_at > STOPPED_LINGER_MS
        machine = self.machines.get(record.id)
        state = machine.presented if machine else record.last_state
        timeout = OUTCOME_STALE_MS if state in OUTCOME_STATES else STALE_MS
        return now - record.last_update_at > timeout

    def sweep(self, now: Optional[int] = None) -> dict[str, str]:
        """Drop records whose source disappeared or that went stale.

        Returns ``{session_id: reason}`` for everything removed. Never touches
        the primary.
        """
        now = now_ms() if now is None else now
        pruned: dict[str, str] = {}
        for sid, record in list(self.records.items()):
            if self.is_primary(sid):
                continue
            if sid in self._feed_backed and sid not in self._observed:
                pruned[sid] = PRUNE_GONE
            elif self.is_stale(record, now):
                pruned[sid] = PRUNE_STALE

        for sid, reason in pruned.items():
            logger.info(f"Pruned session {sid} ({reason})")
            self.forget(sid)
        if pruned:
            self._assign_labels()
        return pruned

    def forget(self, session_id: str):
        self.records.pop(session_id, None)
        self.machines.pop(session_id, None)
        self._feed_backed.discard(session_id)
        self._observed.discard(session_id)

    # -- Per-frame work and views -------------------------------------------

    def tick(self, now: Optional[int] = None):
        now = now_ms() if now is None else now
        self.primary.tick(now)
        for machine in self.machines.values():
            machine.tick(now)

    def secondaries(self) -> dict[str, DisplayState]:
        return {sid: machine.snapshot() for sid, machine in self.machines.items()}

    def _assign_labels(self):
        """Short labels: the cwd name when unique, else ``sub-N`` by arrival."""
        ordered = sorted(self.records.values(), key=lambda r: (r.first_seen_at, r.id))
        if not ordered:
            return

        def base(record):
            return PurePath(record.cwd).name if record.cwd else ""

        counts: dict[str, int] = {}
        for record in ordered:
            counts[base(record)] = counts.get(base(record), 0) + 1

        for i, record in enumerate(ordered):
            name = base(record)
            if len(ordered) == 1:
                record.label = (name or record.model_name or "sub")[:8]
            elif name and counts[name] == 1:
                record.label = name[:8]
            else:
                record.label = f"sub-{i + 1}"
