"""Filesystem inspection inside the container: list, search, read, write, edit.

Each operation is one single-shot script. Paths and patterns are
``shlex``-quoted; file content travels base64-encoded in both directions,
so no value is ever spliced into a here-document. Editing is a read, an
in-process replacement, and a write.
"""

from __future__ import annotations

import base64
import binascii
import shlex
from dataclasses import dataclass
from fnmatch import fnmatch

from docker_mcp.config import get_settings
from docker_mcp.shell.framing import format_streams, status_echo
from docker_mcp.single_shot import ShotResult, run_single_shot


@dataclass(frozen=True)
class OpResult:
    text: str
    ok: bool = True


def _fail(marker: str, code: int = 1) -> str:
    """Print the failure status line and stop the script."""
    return f"{status_echo(marker, str(code))}; exit {code}"


def _shot_problem(shot: ShotResult, op: str) -> OpResult | None:
    """Spawn failures and timeouts read the same for every operation."""
    if shot.spawn_error is not None:
        return OpResult(f"Error spawning process: {shot.spawn_error}\nExit code: 1", ok=False)
    if shot.timed_out:
        return OpResult(f"Error: {op} operation timed out\nExit code: 1", ok=False)
    return None


def _failure(shot: ShotResult, op: str) -> OpResult:
    text = shot.stderr or shot.stdout or f"{op} operation failed"
    return OpResult(f"{text}\nExit code: {shot.exit_code}", ok=False)


# -- list ----------------------------------------------------------------------


def _entry_name(line: str) -> str:
    """File name column of an ``ls -la`` line (symlink targets dropped)."""
    parts = line.split(None, 8)
    if len(parts) < 9:
        return line.strip()
    name = parts[8]
    if line.startswith("l"):
        name = name.split(" -> ", 1)[0]
    return name


def filter_listing(raw: str, ignore: list[str], limit: int) -> str:
    entries = []
    for line in raw.splitlines():
        if not line.strip() or line.startswith("total "):
            continue
        name = _entry_name(line)
        if any(fnmatch(name, pattern) for pattern in ignore):
            continue
        entries.append(line)
    text = "\n".join(entries[:limit])
    if len(entries) > limit:
        text += f"\n\nNote: Showing first {limit} of {len(entries)} total entries"
    return text


async def list_directory(path: str = ".", ignore: list[str] | None = None) -> OpResult:
    s = get_settings().file_ops
    quoted = shlex.quote(path)

    def script(marker: str) -> str:
        return (
            f"if [ ! -d {quoted} ]; then\n"
            f"  printf 'Error: Directory %s not found\\n' {quoted}; {_fail(marker)}\n"
            "fi\n"
            f"cd -- {quoted} || {{ printf 'Error: Cannot access directory %s\\n' {quoted}; "
            f"{_fail(marker)}; }}\n"
            "ls -la\n"
            f"{status_echo(marker)}\n"
        )

    shot = await run_single_shot(script, "LS")
    if problem := _shot_problem(shot, "List"):
        return problem
    if shot.exit_code != 0:
        return _failure(shot, "List")
    listing = filter_listing(shot.stdout, [*s.ignore_patterns, *(ignore or [])], s.ls_max_entries)
    return OpResult(listing or "Directory is empty")


# -- grep ----------------------------------------------------------------------


async def grep(
    pattern: str,
    path: str = ".",
    include: str | None = None,
    case_insensitive: bool = False,
    max_results: int | None = None,
) -> OpResult:
    limit = max(1, max_results or get_settings().file_ops.grep_max_results)
    quoted = shlex.quote(path)
    flags = "-rni" if case_insensitive else "-rn"
    include_opt = f" --include={shlex.quote(include)}" if include else ""
    grep_cmd = f"grep {flags}{include_opt} -e {shlex.quote(pattern)} ."

    def script(marker: str) -> str:
        return (
            f"cd -- {quoted} || {{ printf 'Error: Directory %s not found\\n' {quoted}; "
            f"{_fail(marker, code=2)}; }}\n"
            f"matches=$({grep_cmd} 2>/dev/null)\n"
            "status=$?\n"
            'if [ -n "$matches" ]; then\n'
            f"  printf '%s\\n' \"$matches\" | head -n {limit}\n"
            "  total=$(printf '%s\\n' \"$matches\" | wc -l)\n"
            f'  if [ "$total" -gt {limit} ]; then\n'
            '    echo ""\n'
            f'    echo "Note: Showing first {limit} of $total total matches"\n'
            "  fi\n"
            "fi\n"
            f"{status_echo(marker, '$status')}\n"
        )

    shot = await run_single_shot(script, "GREP")
    if problem := _shot_problem(shot, "Grep"):
        return problem
    # grep: 0 = matches, 1 = no matches, >1 = real error
    if shot.exit_code > 1:
        return _failure(shot, "Grep")
    return OpResult(shot.stdout or "No matches found")


# -- read ----------------------------------------------------------------------


def _file_checks(quoted: str, marker: str) -> str:
    return (
        f"if [ ! -f {quoted} ]; then\n"
        f"  printf 'Error: File %s not found\\n' {quoted}; {_fail(marker)}\n"
        "fi\n"
        f"if [ ! -r {quoted} ]; then\n"
        f"  printf 'Error: File %s is not readable\\n' {quoted}; {_fail(marker)}\n"
        "fi\n"
    )


async def read_file(file_path: str, offset: int = 0, limit: int | None = None) -> OpResult:
    s = get_settings().file_ops
    offset = max(0, offset)
    limit = max(1, limit or s.read_limit)
    quoted = shlex.quote(file_path)
    awk_prog = shlex.quote(
        "NR > start + limit { exit } "
        'NR > start { printf "%6d\\t%s\\n", NR, substr($0, 1, width) }'
    )

    def script(marker: str) -> str:
        return (
            _file_checks(quoted, marker)
            + f'head_bytes=$(head -c 8192 {quoted} | wc -c)\n'
            f"text_bytes=$(head -c 8192 {quoted} | tr -d '\\000' | wc -c)\n"
            'if [ "$head_bytes" -ne "$text_bytes" ]; then\n'
            f"  printf 'Error: Cannot read binary file %s\\n' {quoted}; {_fail(marker)}\n"
            "fi\n"
            f"awk -v start={offset} -v limit={limit} -v width={s.max_line_length} "
            f"{awk_prog} {quoted}\n"
            f"{status_echo(marker)}\n"
        )

    shot = await run_single_shot(script, "READ")
    if problem := _shot_problem(shot, "Read"):
        return problem
    if shot.exit_code != 0:
        return _failure(shot, "Read")
    return OpResult(shot.stdout or f"File {file_path} has no lines after offset {offset}")


# -- write ---------------------------------------------------------------------


def _write_script(quoted: str, content: str, marker: str) -> str:
    payload = base64.b64encode(content.encode()).decode()
    return (
        f'mkdir -p -- "$(dirname -- {quoted})" || {{ '
        f"printf 'Error: Could not create directory for %s\\n' {quoted}; {_fail(marker)}; }}\n"
        f"if printf '%s' '{payload}' | base64 -d > {quoted}; then\n"
        f"  printf 'File written successfully: %s\\n' {quoted}\n"
        f'  echo "Content length: {len(content)} characters"\n'
        f"  {status_echo(marker, '0')}\n"
        "else\n"
        f"  printf 'Error: Failed to write file %s\\n' {quoted}; {status_echo(marker, '1')}\n"
        "fi\n"
    )


async def write_file(file_path: str, content: str) -> OpResult:
    quoted = shlex.quote(file_path)
    shot = await run_single_shot(lambda marker: _write_script(quoted, content, marker), "WRITE")
    if problem := _shot_problem(shot, "Write"):
        return problem
    if shot.exit_code != 0:
        return _failure(shot, "Write")
    return OpResult(shot.stdout or "File written successfully")


# -- edit ----------------------------------------------------------------------


def replace_text(content: str, old: str, new: str, replace_all: bool) -> tuple[str, int]:
    """Returns the new content and how many occurrences were replaced."""
    count = content.count(old)
    if count == 0:
        return content, 0
    if replace_all:
        return content.replace(old, new), count
    return content.replace(old, new, 1), 1


def _edit_failure(text: str, exit_code: int = 1) -> OpResult:
    return OpResult(f"{text}\nExit code: {exit_code}", ok=False)


async def edit_file(
    file_path: str,
    old_string: str,
    new_string: str,
    replace_all: bool = False,
) -> OpResult:
    if old_string == new_string:
        return OpResult("Error: old_string and new_string must be different", ok=False)
    quoted = shlex.quote(file_path)

    def read_script(marker: str) -> str:
        return _file_checks(quoted, marker) + f"base64 < {quoted}\n{status_echo(marker)}\n"

    shot = await run_single_shot(read_script, "EDIT")
    if problem := _shot_problem(shot, "Edit"):
        return problem
    if shot.exit_code != 0:
        return _edit_failure(
            format_streams(shot.stdout, shot.stderr) or "Edit operation failed", shot.exit_code
        )

    try:
        content = base64.b64decode(shot.stdout).decode()
    except (binascii.Error, UnicodeDecodeError):
        return _edit_failure(f"Error: File {file_path} is not valid UTF-8 text")

    updated, count = replace_text(content, old_string, new_string, replace_all)
    if count == 0:
        return _edit_failure("Error: String not found in file")

    shot = await run_single_shot(lambda marker: _write_script(quoted, updated, marker), "EDIT")
    if problem := _shot_problem(shot, "Edit"):
        return problem
    if shot.exit_code != 0:
        return _edit_failure(
            format_streams(shot.stdout, shot.stderr) or "Edit operation failed", shot.exit_code
        )
    noun = "occurrence" if count == 1 else "occurrences"
    return OpResult(
        f"File edited successfully: {file_path} ({count} {noun} replaced)\nExit code: 0"
    )
