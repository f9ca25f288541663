"""Decide how a finished tool call went.

Error detection runs in a fixed order and stops at the first hit:

1. the explicit error flag, or an interrupted call
2. a non-zero exit code quoted in stdout
3. error signatures (stderr for every tool, stdout for shell tools only),
   overruled by the false-positive guards

An error verdict becomes ``ratelimited`` when the output also reads like a
usage or rate limit.
"""

from typing import Optional

from ..models import ClassificationResult, DiffInfo, ToolOutput
from ..states import SemanticState
from . import patterns
from .tools import (
    input_command,
    input_path,
    input_pattern,
    is_edit_tool,
    is_shell_tool,
    is_test_command,
    truncate,
)


def _any(text: str, table) -> bool:
    return any(p.search(text) for p in table)


def looks_like_error(text: str, signatures) -> bool:
    """True when ``text`` matches a signature and no false-positive guard."""
    if not text:
        return False
    if not _any(text, signatures):
        return False
    return not _any(text, patterns.FALSE_POSITIVES)


def extract_exit_code(stdout: str) -> Optional[int]:
    """Pull an exit code out of tool output like ``Exit code: 1``."""
    if not stdout:
        return None
    match = patterns.EXIT_CODE.search(stdout)
    return int(match.group(1)) if match else None


def looks_like_rate_limit(stdout: str, stderr: str) -> bool:
    combined = (stdout or "") + (stderr or "")
    if not _any(combined, patterns.RATE_LIMIT_PATTERNS):
        return False
    return not _any(combined, patterns.RATE_LIMIT_FALSE_POSITIVES)


def is_merge_conflict(stdout: str, stderr: str) -> bool:
    return _any((stdout or "") + (stderr or ""), patterns.MERGE_CONFLICT_PATTERNS)


def error_detail(stdout: str, stderr: str) -> str:
    """Short human phrase for what went wrong. Always returns something."""
    stdout = stdout or ""
    combined = stdout + (stderr or "")
    if is_merge_conflict(stdout, stderr):
        return "merge conflict!"
    for pattern, phrase, where in patterns.ERROR_PHRASES:
        text = stdout if where == "stdout" else combined
        if pattern.search(text):
            return phrase
    return patterns.GENERIC_ERROR_PHRASE


def detect_error(tool_name: str, output: ToolOutput, is_error: bool = False) -> Optional[str]:
    """Return an error detail when the call failed, None when it succeeded."""
    stdout, stderr = output.stdout, output.stderr

    if is_error or output.is_error:
        return error_detail(stdout, stderr)
    if output.interrupted:
        return "interrupted"

    exit_code = extract_exit_code(stdout)
    if exit_code is not None and exit_code != 0:
        detail = error_detail(stdout, stderr)
        return detail if detail != patterns.GENERIC_ERROR_PHRASE else f"exit {exit_code}"

    if looks_like_error(stderr, patterns.STDERR_ERROR_PATTERNS):
        return error_detail(stdout, stderr)
    if is_shell_tool(tool_name) and looks_like_error(stdout, patterns.STDOUT_ERROR_PATTERNS):
        return error_detail(stdout, stderr)
    return None


def _line_count(text) -> int:
    if not text or not isinstance(text, str):
        return 0
    return len(text.split("\n"))


def diff_info(tool_input: dict) -> Optional[DiffInfo]:
    """Line delta of an edit, from the before/after text in its input."""
    old = tool_input.get("old_string") or tool_input.get("old_str") or ""
    new = tool_input.get("new_string") or tool_input.get("new_str") or tool_input.get("content") or ""
    if not old and not new:
        return None
    return DiffInfo(added=_line_count(new), removed=_line_count(old))


def _shell_success(cmd: str, stdout: str, stderr: str) -> ClassificationResult:
    if is_test_command(cmd):
        for pattern in patterns.TEST_PASS_COUNTS:
            match = pattern.search(stdout)
            if match:
                return ClassificationResult(SemanticState.RELIEVED, f"{match.group(1)} tests passed")
        return ClassificationResult(SemanticState.RELIEVED, "tests passed")

    if patterns.GIT_ANY.search(cmd):
        if is_merge_conflict(stdout, stderr):
            return ClassificationResult(SemanticState.ERROR, "merge conflict!")
        if patterns.GIT_PUSH.search(cmd):
            return ClassificationResult(SemanticState.PROUD, "pushed!")
        if patterns.GIT_COMMIT.search(cmd):
            return ClassificationResult(SemanticState.PROUD, "committed")
        if patterns.GIT_MERGE.search(cmd):
            return ClassificationResult(SemanticState.SATISFIED, "merged clean")
        return ClassificationResult(SemanticState.RELIEVED, "git done")

    if patterns.BUILD_COMMAND.search(cmd):
        return ClassificationResult(SemanticState.RELIEVED, "build succeeded")
    if any(p.search(cmd) for p in patterns.INSTALL_COMMANDS):
        return ClassificationResult(SemanticState.RELIEVED, "installed")
    return ClassificationResult(SemanticState.RELIEVED, "command succeeded")


def classify_end(
    tool_name: str,
    tool_input: dict | None = None,
    tool_output: ToolOutput | dict | str | None = None,
    is_error: bool = False,
) -> ClassificationResult:
    """Classify a completed tool call into an outcome state."""
    tool_name = tool_name if isinstance(tool_name, str) else str(tool_name or "")
    tool_input = tool_input if isinstance(tool_input, dict) else {}
    output = ToolOutput.from_value(tool_output)

    failure = detect_error(tool_name, output, is_error)
    if failure is not None:
        if failure != "interrupted" and looks_like_rate_limit(output.stdout, output.stderr):
            return ClassificationResult(SemanticState.RATELIMITED, "usage limit")
        return ClassificationResult(SemanticState.ERROR, truncate(failure))

    if is_edit_tool(tool_name):
        name = input_path(tool_input)
        return ClassificationResult(
            SemanticState.PROUD,
            truncate(f"saved {name}" if name else "code written"),
            diff_info(tool_input),
        )

    if patterns.READ_TOOLS.match(tool_name):
        name = input_path(tool_input)
        return ClassificationResult(SemanticState.SATISFIED, truncate(f"read {name}" if name else "got it"))

    if patterns.SEARCH_TOOLS.match(tool_name):
        pattern = input_pattern(tool_input)
        if pattern:
            return ClassificationResult(SemanticState.SATISFIED, truncate(f'found "{truncate(pattern, 20)}"'))
        return ClassificationResult(SemanticState.SATISFIED, "got it")

    if patterns.WEB_TOOLS.match(tool_name):
        return ClassificationResult(SemanticState.SATISFIED, "search complete")

    if is_shell_tool(tool_name):
        return _shell_success(input_command(tool_input), output.stdout, output.stderr)

    return ClassificationResult(SemanticState.SATISFIED, "step complete")
