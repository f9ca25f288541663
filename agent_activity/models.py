"""Event, classification and session models shared by every component."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .states import SemanticState


def now_ms() -> int:
    """Wall-clock time in milliseconds, the unit used for every timestamp."""
    return int(time.time() * 1000)


class EventKind(str, Enum):
    """Lifecycle event emitted by an assistant adapter."""

    TOOL_START = "tool_start"
    TOOL_END = "tool_end"
    TURN_END = "turn_end"
    ERROR = "error"
    WAITING = "waiting"
    SESSION_START = "session_start"
    SESSION_END = "session_end"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value) -> "EventKind":
        """Map an adapter's event name (hook names included) onto a kind."""
        if isinstance(value, cls):
            return value
        key = str(value or "").strip()
        if key in _KIND_ALIASES:
            return _KIND_ALIASES[key]
        try:
            return cls(key.lower())
        except ValueError:
            return cls.CUSTOM


# Hook and plugin event names used by the various assistants
_KIND_ALIASES = {
    "PreToolUse": EventKind.TOOL_START,
    "PostToolUse": EventKind.TOOL_END,
    "PostToolUseFailure": EventKind.TOOL_END,
    "Stop": EventKind.TURN_END,
    "SubagentStop": EventKind.TURN_END,
    "agent-turn-complete": EventKind.TURN_END,
    "Notification": EventKind.WAITING,
    "approval-requested": EventKind.WAITING,
    "SessionStart": EventKind.SESSION_START,
    "SessionEnd": EventKind.SESSION_END,
    "UserPromptSubmit": EventKind.CUSTOM,
}


@dataclass
class ToolOutput:
    """Captured result of a completed tool call."""

    stdout: str = ""
    stderr: str = ""
    is_error: bool = False
    interrupted: bool = False

    @classmethod
    def from_value(cls, value) -> "ToolOutput":
        """Accept a dict, a bare stdout string, or nothing."""
        if isinstance(value, ToolOutput):
            return value
        if isinstance(value, str):
            return cls(stdout=value)
        if not isinstance(value, dict):
            return cls()
        stdout = value.get("stdout", value.get("output", ""))
        return cls(
            stdout=stdout if isinstance(stdout, str) else str(stdout or ""),
            stderr=str(value.get("stderr") or ""),
            is_error=bool(value.get("is_error", value.get("isError", False))),
            interrupted=bool(value.get("interrupted", False)),
        )


@dataclass
class Event:
    """A normalized lifecycle event. Consumed once, never persisted."""

    kind: EventKind
    tool_name: str = ""
    tool_input: dict = field(default_factory=dict)
    tool_output: ToolOutput = field(default_factory=ToolOutput)
    session_id: str = ""
    model_name: str = ""
    timestamp_ms: int = 0

    # Optional context
    cwd: str = ""
    message: str = ""  # free text for error / turn_end / custom events
    state: Optional[SemanticState] = None  # explicit state for custom events
    detail: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        """Build an event from adapter JSON, tolerating missing or odd fields."""
        if not isinstance(data, dict):
            return cls(kind=EventKind.CUSTOM)

        kind = EventKind.parse(data.get("kind") or data.get("event") or data.get("hook_event_name"))

        tool_input = data.get("tool_input", data.get("toolInput"))
        if not isinstance(tool_input, dict):
            tool_input = {}

        output = data.get("tool_output", data.get("toolOutput", data.get("tool_response")))

        timestamp = data.get("timestamp_ms", data.get("timestamp", 0))
        try:
            timestamp = int(timestamp or 0)
        except (TypeError, ValueError):
            timestamp = 0

        state = data.get("state")
        return cls(
            kind=kind,
            tool_name=str(data.get("tool_name", data.get("toolName", "")) or ""),
            tool_input=tool_input,
            tool_output=ToolOutput.from_value(output),
            session_id=str(data.get("session_id", data.get("sessionId", "")) or ""),
            model_name=str(data.get("model_name", data.get("modelName", "")) or ""),
            timestamp_ms=timestamp,
            cwd=str(data.get("cwd") or ""),
            message=str(data.get("message") or data.get("reason") or ""),
            state=SemanticState.parse(state) if state else None,
            detail=str(data.get("detail") or ""),
        )

    def to_dict(self) -> dict:
        data = {
            "kind": self.kind.value,
            "tool_name": self.tool_name,
            "tool_input": self.tool_input,
            "tool_output": {
                "stdout": self.tool_output.stdout,
                "stderr": self.tool_output.stderr,
                "is_error": self.tool_output.is_error,
                "interrupted": self.tool_output.interrupted,
            },
            "session_id": self.session_id,
            "model_name": self.model_name,
            "timestamp_ms": self.timestamp_ms,
        }
        if self.cwd:
            data["cwd"] = self.cwd
        if self.message:
            data["message"] = self.message
        if self.state is not None:
            data["state"] = self.state.value
        if self.detail:
            data["detail"] = self.detail
        return data


@dataclass
class DiffInfo:
    added: int
    removed: int


@dataclass
class ClassificationResult:
    """Semantic reading of one tool event."""

    state: SemanticState
    detail: str = ""
    diff_info: Optional[DiffInfo] = None


@dataclass
class SessionSnapshot:
    """One entry of the session discovery feed."""

    session_id: str
    state: SemanticState = SemanticState.IDLE
    detail: str = ""
    updated_at: int = 0
    stopped: bool = False
    cwd: str = ""
    model_name: str = ""

    @classmethod
    def from_dict(cls, data: dict, fallback_id: str = "") -> Optional["SessionSnapshot"]:
        if not isinstance(data, dict):
            return None
        session_id = str(data.get("session_id") or fallback_id)
        if not session_id:
            return None
        try:
            updated_at = int(data.get("timestamp") or data.get("updated_at") or 0)
        except (TypeError, ValueError):
            updated_at = 0
        return cls(
            session_id=session_id,
            state=SemanticState.parse(data.get("state"), SemanticState.IDLE),
            detail=str(data.get("detail") or ""),
            updated_at=updated_at,
            stopped=bool(data.get("stopped", False)),
            cwd=str(data.get("cwd") or ""),
            model_name=str(data.get("model_name") or data.get("modelName") or ""),
        )

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "detail": self.detail,
            "timestamp": self.updated_at,
            "stopped": self.stopped,
            "cwd": self.cwd,
            "model_name": self.model_name,
        }


@dataclass
class SessionRecord:
    """A secondary session known to the arbiter."""

    id: str
    cwd: str = ""
    model_name: str = ""
    first_seen_at: int = 0
    last_update_at: int = 0
    stopped: bool = False
    stopped_at: int = 0

    # Display hints
    label: str = ""
    last_state: SemanticState = SemanticState.IDLE
    last_detail: str = ""

    def mark_stopped(self, stopped: bool, now: int):
        """Latch the stopped flag. The first stop time is kept."""
        if stopped and not self.stopped:
            self.stopped = True
            self.stopped_at = now
        elif not stopped and self.stopped:
            # A stopped session that reports activity again is alive
            self.stopped = False
            self.stopped_at = 0
