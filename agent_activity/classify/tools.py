"""Map a tool invocation onto the activity it represents."""

from pathlib import PurePath
from typing import Callable

from ..config import DETAIL_MAX
from ..models import ClassificationResult
from ..states import SemanticState
from . import patterns


def truncate(text: str, max_len: int = DETAIL_MAX) -> str:
    """Truncate text with ellipsis."""
    text = " ".join(str(text or "").split())
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + "..."


def basename(path) -> str:
    if not path or not isinstance(path, str):
        return ""
    return PurePath(path.replace("\\", "/")).name


def input_path(tool_input: dict) -> str:
    return basename(
        tool_input.get("file_path")
        or tool_input.get("path")
        or tool_input.get("target_file")
        or tool_input.get("notebook_path")
        or ""
    )


def input_command(tool_input: dict) -> str:
    cmd = tool_input.get("command") or tool_input.get("cmd") or tool_input.get("input") or ""
    if isinstance(cmd, list):
        # Codex passes argv lists, often ["bash", "-lc", "..."]
        cmd = " ".join(str(part) for part in cmd)
    return cmd if isinstance(cmd, str) else str(cmd)


def input_pattern(tool_input: dict) -> str:
    pattern = tool_input.get("pattern") or tool_input.get("query") or tool_input.get("search_term") or ""
    return pattern if isinstance(pattern, str) else str(pattern)


def first_words(text: str, count: int = 3) -> str:
    return " ".join(str(text or "").split()[:count])


def is_test_command(cmd: str) -> bool:
    return any(p.search(cmd) for p in patterns.TEST_COMMANDS)


def is_install_command(cmd: str) -> bool:
    return any(p.search(cmd) for p in patterns.INSTALL_COMMANDS)


def is_shell_tool(tool_name: str) -> bool:
    return bool(patterns.SHELL_TOOLS.match(tool_name or ""))


def is_edit_tool(tool_name: str) -> bool:
    return bool(patterns.EDIT_TOOLS.match(tool_name or ""))


def is_subagent_tool(tool_name: str) -> bool:
    return bool(patterns.SUBAGENT_TOOLS.match(tool_name or ""))


# -- Category handlers ------------------------------------------------

def _edit(tool_name: str, tool_input: dict) -> ClassificationResult:
    name = input_path(tool_input)
    return ClassificationResult(SemanticState.CODING, truncate(f"editing {name}" if name else "writing code"))


def _shell(tool_name: str, tool_input: dict) -> ClassificationResult:
    cmd = input_command(tool_input)
    short = truncate(cmd)

    if is_test_command(cmd):
        return ClassificationResult(SemanticState.TESTING, short or "running tests")
    if is_install_command(cmd):
        return ClassificationResult(SemanticState.INSTALLING, short or "installing")
    if patterns.GIT_PUSH.search(cmd):
        return ClassificationResult(SemanticState.COMMITTING, short or "pushing to remote")
    if patterns.GIT_TAG.search(cmd):
        return ClassificationResult(SemanticState.COMMITTING, short or "tagging release")
    if patterns.GIT_COMMIT.search(cmd):
        return ClassificationResult(SemanticState.COMMITTING, short or "committing changes")
    return ClassificationResult(SemanticState.EXECUTING, short or "running command")


def _review(tool_name: str, tool_input: dict) -> ClassificationResult:
    return ClassificationResult(SemanticState.REVIEWING, truncate(tool_name) or "reviewing")


def _read(tool_name: str, tool_input: dict) -> ClassificationResult:
    name = input_path(tool_input)
    return ClassificationResult(SemanticState.READING, truncate(f"reading {name}" if name else "reading"))


def _search(tool_name: str, tool_input: dict) -> ClassificationResult:
    pattern = input_pattern(tool_input)
    return ClassificationResult(
        SemanticState.SEARCHING,
        truncate(f'looking for "{pattern}"') if pattern else "searching",
    )


def _web(tool_name: str, tool_input: dict) -> ClassificationResult:
    query = tool_input.get("query") or tool_input.get("url") or ""
    if not isinstance(query, str):
        query = str(query)
    return ClassificationResult(
        SemanticState.SEARCHING,
        truncate(f'searching "{truncate(query, 30)}"') if query else "searching the web",
    )


def _subagent(tool_name: str, tool_input: dict) -> ClassificationResult:
    desc = tool_input.get("description") or tool_input.get("prompt") or ""
    if not isinstance(desc, str):
        desc = str(desc)
    return ClassificationResult(SemanticState.SUBAGENT, truncate(first_words(desc)) or "spawning subagent")


def _mcp(tool_name: str, tool_input: dict) -> ClassificationResult:
    parts = tool_name.split("__")
    server = parts[1] if len(parts) > 1 and parts[1] else "external"
    tool = parts[2] if len(parts) > 2 else ""
    return ClassificationResult(SemanticState.EXECUTING, truncate(f"{server}: {tool}"))


Handler = Callable[[str, dict], ClassificationResult]

# First match wins
START_CATEGORIES: list[tuple[object, Handler]] = [
    (patterns.EDIT_TOOLS, _edit),
    (patterns.SHELL_TOOLS, _shell),
    (patterns.REVIEW_TOOLS, _review),
    (patterns.READ_TOOLS, _read),
    (patterns.SEARCH_TOOLS, _search),
    (patterns.WEB_TOOLS, _web),
    (patterns.SUBAGENT_TOOLS, _subagent),
    (patterns.MCP_TOOL, _mcp),
]


def classify_start(tool_name: str, tool_input: dict | None = None) -> ClassificationResult:
    """Classify a tool call that is about to run.

    Unknown tools read as ``thinking`` with the raw tool name as detail.
    """
    tool_name = tool_name if isinstance(tool_name, str) else str(tool_name or "")
    tool_input = tool_input if isinstance(tool_input, dict) else {}

    for pattern, handler in START_CATEGORIES:
        if pattern.search(tool_name):
            return handler(tool_name, tool_input)

    return ClassificationResult(SemanticState.THINKING, truncate(tool_name))
