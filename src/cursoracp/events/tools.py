"""Classification of cursor-agent tool invocations for ACP display.

Every function here is total: arguments and results come straight from the
agent's JSON and may be missing or oddly shaped, so lookups degrade to
defaults instead of raising.
"""

from __future__ import annotations

from typing import Any

from acp.helpers import text_block, tool_content, tool_diff_content
from acp.schema import ToolCallLocation

READ = "readToolCall"
WRITE = "writeToolCall"
GREP = "grepToolCall"
GLOB = "globToolCall"
BASH = "bashToolCall"
SHELL = "shellToolCall"

SHELL_KINDS = frozenset({BASH, SHELL})
SEARCH_KINDS = frozenset({GREP, GLOB})

READ_CONTENT_LIMIT = 20000

_CATEGORIES = {
    READ: "read",
    WRITE: "edit",
    GREP: "search",
    GLOB: "search",
    BASH: "execute",
    SHELL: "execute",
}


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _line(value: Any) -> int | None:
    # bool is an int subclass but never a line number
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def shell_command(args: Any) -> str | None:
    """The command text of a shell invocation, if any."""
    args = _mapping(args)
    for key in ("command", "cmd"):
        if args.get(key) is not None:
            return str(args[key])
    commands = args.get("commands")
    if isinstance(commands, list):
        return " && ".join(str(c) for c in commands)
    return None


def tool_title(kind: str, args: Any) -> str:
    """Short human-readable label for a tool call."""
    args = _mapping(args)
    path = args.get("path")
    pattern = args.get("pattern")

    if kind == READ:
        return f"Read {path}" if path else "Read"
    if kind == WRITE:
        return f"Write {path}" if path else "Write"
    if kind == GREP:
        if pattern and path:
            return f"Search {path} for {pattern}"
        if pattern:
            return f"Search for {pattern}"
        return "Search"
    if kind == GLOB:
        return f"Glob {pattern}" if pattern else "Glob"
    if kind in SHELL_KINDS:
        command = shell_command(args)
        return f"`{command}`" if command else "Terminal"
    return kind


def tool_category(kind: str) -> str:
    """ACP tool kind: read, edit, search, execute or other."""
    return _CATEGORIES.get(kind, "other")


def _location(entry: Any) -> ToolCallLocation | None:
    if isinstance(entry, str):
        return ToolCallLocation(path=entry)
    if isinstance(entry, dict) and isinstance(entry.get("path"), str):
        return ToolCallLocation(path=entry["path"], line=_line(entry.get("line")))
    return None


def _collect(entries: Any, into: list[ToolCallLocation]) -> None:
    if not isinstance(entries, list):
        return
    for entry in entries:
        loc = _location(entry)
        if loc is not None:
            into.append(loc)


def locations_from_args(args: Any) -> list[ToolCallLocation] | None:
    """Locations named by a call's arguments (``path`` and ``paths``)."""
    args = _mapping(args)
    locs: list[ToolCallLocation] = []
    if isinstance(args.get("path"), str):
        locs.append(ToolCallLocation(path=args["path"], line=_line(args.get("line"))))
    _collect(args.get("paths"), locs)
    return locs or None


def locations_from_result(result: Any) -> list[ToolCallLocation] | None:
    """Locations reported by a result (``matches``, ``files``, ``path``)."""
    result = _mapping(result)
    locs: list[ToolCallLocation] = []
    _collect(result.get("matches"), locs)
    _collect(result.get("files"), locs)
    if isinstance(result.get("path"), str):
        locs.append(ToolCallLocation(path=result["path"], line=_line(result.get("line"))))
    return locs or None


def tool_locations(args: Any, result: Any = None) -> list[ToolCallLocation] | None:
    """Result locations when present, otherwise argument locations."""
    return locations_from_result(result) or locations_from_args(args)


def search_summary(kind: str | None, args: Any, result: Any) -> str | None:
    """One-line count summary for grep/glob results, None for other kinds."""
    args = _mapping(args)
    result = _mapping(result)
    pattern = str(args["pattern"]) if args.get("pattern") else "pattern"

    if kind == GREP:
        count = result.get("count")
        if not isinstance(count, int) or isinstance(count, bool):
            matches = result.get("matches")
            count = len(matches) if isinstance(matches, list) else 0
        return f"Found {count} match(es) for {pattern}"
    if kind == GLOB:
        files = result.get("files")
        count = len(files) if isinstance(files, list) else 0
        return f"Found {count} file(s) matching {pattern}"
    return None


def shell_output_text(result: Any) -> str:
    """Fenced rendering of a shell result with an optional exit code line."""
    result = _mapping(result)
    output = result.get("output")
    if output is None:
        output = result.get("stdout")
    text = "" if output is None else str(output)
    if not text.strip():
        text = "(no output)"

    exit_code = result.get("exitCode")
    if isinstance(exit_code, (int, float)) and not isinstance(exit_code, bool):
        text = f"Exit code: {exit_code}\n{text}"

    return f"```\n{text}\n```"


def tool_result_content(kind: str | None, args: Any, result: Any) -> list[Any] | None:
    """ACP content blocks for a completed call, or None when there is nothing to show."""
    args = _mapping(args)
    result_map = _mapping(result)

    if kind == READ:
        body = _first_present(result_map.get("content"), args.get("content"))
        if not body:
            return None
        return [tool_content(text_block(str(body)[:READ_CONTENT_LIMIT]))]

    if kind == WRITE:
        new_text = _first_present(
            result_map.get("newText"), args.get("fileText"), args.get("newText")
        )
        new_text = "" if new_text is None else str(new_text)
        old_text = result_map.get("oldText")
        path = args.get("path")
        if path:
            return [
                tool_diff_content(
                    str(path), new_text, None if old_text is None else str(old_text)
                )
            ]
        return [tool_content(text_block(new_text))]

    if kind in SHELL_KINDS:
        return [tool_content(text_block(shell_output_text(result)))]

    if kind in SEARCH_KINDS:
        summary = search_summary(kind, args, result)
        if summary:
            return [tool_content(text_block(summary))]
        return None

    return None


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None
