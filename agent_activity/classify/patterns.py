"""Pattern tables for tool names, shell commands and tool output.

Each table is an ordered list evaluated top to bottom. Supporting another
assistant's tool names means adding words, not branches.
"""

import re


def _words(*names: str) -> re.Pattern:
    """Whole-name, case-insensitive match against a synonym list."""
    return re.compile(r"^(?:%s)$" % "|".join(re.escape(n) for n in names), re.IGNORECASE)


# -- Tool categories (Claude Code, Codex CLI, OpenCode, OpenClaw/Pi) --

EDIT_TOOLS = _words(
    "edit", "multiedit", "write", "str_replace", "create_file", "file_edit",
    "write_file", "create_file_with_contents", "apply_diff", "apply_patch",
    "code_edit", "insert_text", "replace_text", "patch", "notebookedit",
)
SHELL_TOOLS = _words(
    "bash", "shell", "terminal", "execute", "run_command", "run", "exec",
    "process", "sh", "cmd", "powershell", "command", "cli", "local_shell",
)
READ_TOOLS = _words(
    "read", "view", "cat", "file_read", "read_file", "get_file_contents",
    "open_file", "notebookread",
)
SEARCH_TOOLS = _words(
    "grep", "glob", "search", "ripgrep", "find", "list", "ls", "search_files",
    "list_files", "list_dir", "find_files", "file_search", "codebase_search",
)
WEB_TOOLS = _words(
    "web_search", "websearch", "web_fetch", "webfetch", "fetch", "browser",
    "browse", "http_request", "curl", "canvas",
)
SUBAGENT_TOOLS = _words(
    "task", "agent", "subagent", "spawn_agent", "delegate", "codex_agent", "sessions",
)
REVIEW_TOOLS = re.compile(r"diff|review|compare", re.IGNORECASE)
MCP_TOOL = re.compile(r"^mcp__")

# -- Shell command sub-classification -------------------------------

TEST_COMMANDS = [
    re.compile(r"\b(jest|pytest|vitest|mocha|cypress|playwright|nosetests|tox)\b", re.IGNORECASE),
    re.compile(r"\.(test|spec)\.", re.IGNORECASE),
    re.compile(r"\b(npm|yarn|pnpm|bun|go|cargo|dotnet|deno)\s+(run\s+)?tests?\b", re.IGNORECASE),
    re.compile(r"\b(rake|npx|composer|mix)\s+test\b", re.IGNORECASE),
    re.compile(r"\bpython3?\s+-m\s+(pytest|unittest)\b", re.IGNORECASE),
    re.compile(r"\bnode\s+(--test|test)\b", re.IGNORECASE),
    re.compile(r"\b(make|gradle|mvn|php\s+artisan)\s+test\b", re.IGNORECASE),
]

INSTALL_COMMANDS = [
    re.compile(r"\b(npm|yarn|pnpm|bun)\s+(install|i|add|ci)\b", re.IGNORECASE),
    re.compile(r"\b(pip|pip3|uv\s+pip|pipx|poetry)\s+(install|add|-r)\b", re.IGNORECASE),
    re.compile(r"\buv\s+(add|sync)\b", re.IGNORECASE),
    re.compile(r"\bcargo\s+(build|add|install)\b", re.IGNORECASE),
    re.compile(r"\b(apt|apt-get|apk|dnf|yum)\s+(install|add)\b", re.IGNORECASE),
    re.compile(r"\bbrew\s+install\b", re.IGNORECASE),
    re.compile(r"\bgo\s+(get|install)\b", re.IGNORECASE),
    re.compile(r"\bcomposer\s+(require|install)\b", re.IGNORECASE),
    re.compile(r"\bdotnet\s+(add|restore)\b", re.IGNORECASE),
    re.compile(r"\bgem\s+install\b|\bbundle\s+install\b", re.IGNORECASE),
]

GIT_PUSH = re.compile(r"\bgit\s+push\b", re.IGNORECASE)
GIT_COMMIT = re.compile(r"\bgit\s+commit\b", re.IGNORECASE)
GIT_TAG = re.compile(r"\bgit\s+tag\b", re.IGNORECASE)
GIT_MERGE = re.compile(r"\bgit\s+(merge|pull|rebase)\b", re.IGNORECASE)
GIT_ANY = re.compile(r"\bgit\s", re.IGNORECASE)
BUILD_COMMAND = re.compile(r"\b(build|compile|tsc|webpack|vite|esbuild|rollup|make)\b", re.IGNORECASE)

# -- Output inspection ----------------------------------------------

EXIT_CODE = re.compile(r"(?:exit code|exited with|returned?)[:=\s]+(\d+)", re.IGNORECASE)

TEST_PASS_COUNTS = [
    re.compile(r"(\d+)\s+(?:tests?|specs?)\s+passed", re.IGNORECASE),
    re.compile(r"(\d+)\s+passed", re.IGNORECASE),
    re.compile(r"(\d+)\s+passing", re.IGNORECASE),
]

# Signatures that mean something broke, checked in shell stdout only
STDOUT_ERROR_PATTERNS = [
    re.compile(r"\bcommand not found\b", re.IGNORECASE),
    re.compile(r"\bno such file or directory\b", re.IGNORECASE),
    re.compile(r"\bpermission denied\b", re.IGNORECASE),
    re.compile(r"\bsegmentation fault\b", re.IGNORECASE),
    re.compile(r"\bsyntax error\b", re.IGNORECASE),
    re.compile(r"\bENOENT\b"),
    re.compile(r"\bENOTDIR\b"),
    re.compile(r"\bEACCES\b"),
    re.compile(r"\bEPERM\b"),
    re.compile(r"\bFATAL\b"),
    re.compile(r"\bpanic\b", re.IGNORECASE),
    re.compile(r"\bUnhandledPromiseRejection\b"),
    re.compile(r"\bTraceback \(most recent call last\)"),
    re.compile(r"\bat Object\.<anonymous>.*\n\s+at "),
    re.compile(r"\bCannot find module\b"),
    re.compile(r"\bModuleNotFoundError\b"),
    re.compile(r"\bImportError\b"),
    re.compile(r"\bcompilation failed\b", re.IGNORECASE),
    re.compile(r"\bbuild failed\b", re.IGNORECASE),
    re.compile(r"\btests? failed\b", re.IGNORECASE),
    re.compile(r"\bfailed with exit code\b", re.IGNORECASE),
    re.compile(r"\bnpm ERR!"),
    re.compile(r"\berror\[E\d+\]"),
    re.compile(r"\bCONFLICT\b"),
    re.compile(r"\bAutomatic merge failed\b", re.IGNORECASE),
    re.compile(r"\bfix conflicts and then commit\b", re.IGNORECASE),
]

# Signatures in stderr that mean trouble, checked for every tool
STDERR_ERROR_PATTERNS = [
    re.compile(r"\berror\b", re.IGNORECASE),
    re.compile(r"\bfatal\b", re.IGNORECASE),
    re.compile(r"\bfailed\b", re.IGNORECASE),
    re.compile(r"\bENOENT\b"),
    re.compile(r"\bEACCES\b"),
    re.compile(r"\bcommand not found\b", re.IGNORECASE),
    re.compile(r"\bpermission denied\b", re.IGNORECASE),
    re.compile(r"\bsegmentation fault\b", re.IGNORECASE),
    re.compile(r"\bpanic\b", re.IGNORECASE),
]

# Looks scary, isn't
FALSE_POSITIVES = [
    re.compile(r"\b0 errors?\b", re.IGNORECASE),
    re.compile(r"\bno errors?\b", re.IGNORECASE),
    re.compile(r"\berrors?:\s*0\b", re.IGNORECASE),
    re.compile(r"error handling", re.IGNORECASE),
    re.compile(r"error\.(js|ts|py)\b", re.IGNORECASE),
    re.compile(r"\bstderr\b", re.IGNORECASE),
    re.compile(r"\.error\s*[=(]"),
    re.compile(r"error_count\D*0\b", re.IGNORECASE),
    re.compile(r"warning", re.IGNORECASE),
    re.compile(r"\bno conflicts?\b", re.IGNORECASE),
]

MERGE_CONFLICT_PATTERNS = [
    re.compile(r"\bCONFLICT\s+\(.*\):"),
    re.compile(r"\bAutomatic merge failed\b", re.IGNORECASE),
    re.compile(r"\bfix conflicts and then commit\b", re.IGNORECASE),
]

RATE_LIMIT_PATTERNS = [
    re.compile(r"\brate.?limit", re.IGNORECASE),
    re.compile(r"\busage.?limit", re.IGNORECASE),
    re.compile(r"\btoo many requests\b", re.IGNORECASE),
    re.compile(r"\b429\b.*\b(error|status|rejected|failed)\b", re.IGNORECASE),
    re.compile(r"\b(error|status|http)\b.*\b429\b", re.IGNORECASE),
    re.compile(r"\bquota.?exceeded\b", re.IGNORECASE),
    re.compile(r"\b(at|over)\s+capacity\b", re.IGNORECASE),
    re.compile(r"\b(server|model|system)\s+(is\s+)?overloaded\b", re.IGNORECASE),
    re.compile(r"\bretry.?after\s+\d", re.IGNORECASE),
    re.compile(r"\bthrottled\b", re.IGNORECASE),
    re.compile(r"\bconcurrency.?limit", re.IGNORECASE),
]

RATE_LIMIT_FALSE_POSITIVES = [
    re.compile(r"\bthrottle\s*[=(]", re.IGNORECASE),
    re.compile(r"\bthrottle\.(js|ts|py)\b", re.IGNORECASE),
    re.compile(r"useThrottle", re.IGNORECASE),
    re.compile(r"import.*throttle", re.IGNORECASE),
    re.compile(r"require.*throttle", re.IGNORECASE),
    re.compile(r"\boverload(ed|ing)?\s+(function|method|operator)", re.IGNORECASE),
    re.compile(r"\boperator\s+overload", re.IGNORECASE),
    re.compile(r"\bcapacity\s*(plan|test|check|monitor|report)", re.IGNORECASE),
    re.compile(r"\b(disk|memory|storage)\s+capacity\b", re.IGNORECASE),
]

# Friendly error phrases: (pattern, phrase, where). First match wins.
# where: "any" searches stdout+stderr, "stdout" searches stdout only.
ERROR_PHRASES = [
    (re.compile(r"command not found", re.IGNORECASE), "command not found", "any"),
    (re.compile(r"permission denied", re.IGNORECASE), "permission denied", "any"),
    (re.compile(r"no such file or directory", re.IGNORECASE), "file not found", "any"),
    (re.compile(r"segmentation fault", re.IGNORECASE), "segfault!", "any"),
    (re.compile(r"ENOENT"), "missing file/path", "any"),
    (re.compile(r"syntax error", re.IGNORECASE), "syntax error", "any"),
    (re.compile(r"Traceback|at Object\.<anonymous>|Error:"), "exception thrown", "stdout"),
    (re.compile(r"Cannot find module|ModuleNotFound", re.IGNORECASE), "missing module", "any"),
    (re.compile(r"compilation (failed|error)|build failed", re.IGNORECASE), "build broke", "any"),
    (re.compile(r"tests? failed|\d+\s+failed", re.IGNORECASE), "tests failed", "any"),
    (re.compile(r"npm ERR!", re.IGNORECASE), "npm error", "any"),
]

GENERIC_ERROR_PHRASE = "something went wrong"
