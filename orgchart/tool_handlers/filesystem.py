"""File tool handlers: Read, Write, MultiEdit, LS, Grep, FileTree.

Relative paths resolve against the worker's working directory. Absolute
paths are used as given; there is no sandbox.
"""

from __future__ import annotations
import fnmatch
import os
import re
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

import config

if TYPE_CHECKING:
    from orgchart.event_bus import EventBus
    from orgchart.worker import Worker


MAX_GREP_RESULTS = 200
MAX_TREE_DEPTH = 15


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def resolve_path(worker: "Worker", path: str) -> Path:
    p = Path(path or ".")
    if not p.is_absolute():
        p = Path(worker.working_dir) / p
    return p


def _is_ignored(name: str) -> bool:
    return any(
        name == pattern or fnmatch.fnmatch(name, pattern)
        for pattern in config.IGNORE_PATTERNS
    )


def _expand_braces(pattern: str) -> list[str]:
    """``"*.{ts,tsx}"`` -> ``["*.ts", "*.tsx"]`` (one level of braces)."""
    m = re.search(r"\{([^{}]*)\}", pattern)
    if not m:
        return [pattern]
    head, tail = pattern[: m.start()], pattern[m.end():]
    return [head + alt + tail for alt in m.group(1).split(",")]


def _walk_files(root: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not _is_ignored(d))
        for name in sorted(filenames):
            if not _is_ignored(name):
                yield Path(dirpath) / name


def render_file_tree(root: Path, max_depth: int = MAX_TREE_DEPTH) -> str:
    """Render the directory tree under *root*, skipping ignored entries."""
    root = Path(root)
    lines = [f"{root}/"]

    def walk(directory: Path, prefix: str, depth: int) -> None:
        try:
            children = sorted(
                (c for c in directory.iterdir() if not _is_ignored(c.name)),
                key=lambda c: c.name,
            )
        except OSError as e:
            lines.append(f"{prefix}└── -> error: {e.strerror or e}")
            return
        for i, child in enumerate(children):
            last = i == len(children) - 1
            connector = "└── " if last else "├── "
            if child.is_dir() and not child.is_symlink():
                lines.append(f"{prefix}{connector}{child.name}/")
                extension = "    " if last else "│   "
                if depth < max_depth:
                    walk(child, prefix + extension, depth + 1)
                else:
                    lines.append(f"{prefix}{extension}└── ...<further folder depth truncated>")
            else:
                lines.append(f"{prefix}{connector}{child.name}")

    walk(root, "", 1)
    return "\n".join(lines)


_listing_cache: dict[Path, tuple[float, str]] = {}
_listing_generation = 0
_listing_lock = threading.Lock()


def cached_file_tree(root: Path) -> str:
    """``render_file_tree`` reused per directory for ``FILE_LISTING_TTL_SECONDS``.

    Write, MultiEdit and Bash call ``invalidate_file_listing()`` so a worker
    spawned after them still sees their changes.
    """
    key = Path(root).resolve()
    now = time.monotonic()
    with _listing_lock:
        hit = _listing_cache.get(key)
        if hit is not None and now - hit[0] < config.FILE_LISTING_TTL_SECONDS:
            return hit[1]
        generation = _listing_generation
    tree = render_file_tree(root)
    with _listing_lock:
        # Not stored if a tool changed files while the tree was rendering
        if generation == _listing_generation:
            _listing_cache[key] = (now, tree)
    return tree


def invalidate_file_listing() -> None:
    global _listing_generation
    with _listing_lock:
        _listing_generation += 1
        _listing_cache.clear()


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def handle_read(tool_args: dict, worker: "Worker", events: "EventBus") -> str:
    file_path = tool_args.get("file_path", "")
    path = resolve_path(worker, file_path)
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return f"No such file or directory: {file_path}"
    except OSError as e:
        raise OSError(f"Failed to read file {file_path}: {e.strerror or e}") from e


def handle_write(tool_args: dict, worker: "Worker", events: "EventBus") -> str:
    file_path = tool_args.get("file_path", "")
    if not file_path:
        raise ValueError("Missing required parameter: file_path")
    content = tool_args.get("content", "")
    path = resolve_path(worker, file_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise OSError(f"Failed to write file {file_path}: {e.strerror or e}") from e
    invalidate_file_listing()
    return f"Successfully wrote {len(content)} characters to {file_path}"


def handle_multi_edit(tool_args: dict, worker: "Worker", events: "EventBus") -> str:
    """Apply every edit in order, or none of them.

    Each ``old_string`` must match exactly one location in the file as it
    stands after the previous edits.
    """
    file_path = tool_args.get("file_path", "")
    edits = tool_args.get("edits") or []
    if not isinstance(edits, list) or not edits:
        raise ValueError("edits must be a non-empty array")
    path = resolve_path(worker, file_path)
    if not path.is_file():
        return f"No such file or directory: {file_path}"

    content = path.read_text(encoding="utf-8")
    for i, edit in enumerate(edits, 1):
        old = edit.get("old_string", "") if isinstance(edit, dict) else ""
        new = edit.get("new_string", "") if isinstance(edit, dict) else ""
        if not old:
            raise ValueError(f"Edit {i}: old_string must not be empty")
        count = content.count(old)
        if count == 0:
            raise ValueError(f"Edit {i}: old_string not found in {file_path}")
        if count > 1:
            raise ValueError(
                f"Edit {i}: old_string matches {count} locations in {file_path}; "
                "include more surrounding text to make it unique"
            )
        content = content.replace(old, new, 1)

    path.write_text(content, encoding="utf-8")
    invalidate_file_listing()
    return f"Applied {len(edits)} edit(s) to {file_path}"


def handle_ls(tool_args: dict, worker: "Worker", events: "EventBus") -> str:
    raw = tool_args.get("path", ".")
    path = resolve_path(worker, raw)
    if not path.is_dir():
        return f"No such file or directory: {raw}"
    entries = sorted(
        (c for c in path.iterdir() if not _is_ignored(c.name)),
        key=lambda c: (not c.is_dir(), c.name),
    )
    if not entries:
        return f"{raw} is empty"
    return "\n".join(f"{c.name}/" if c.is_dir() else c.name for c in entries)


def handle_grep(tool_args: dict, worker: "Worker", events: "EventBus") -> str:
    pattern = tool_args.get("pattern", "")
    try:
        regex = re.compile(pattern)
    except re.error as e:
        raise ValueError(f"Invalid regular expression {pattern!r}: {e}") from e
    root = resolve_path(worker, tool_args.get("path", "."))
    includes = _expand_braces(tool_args.get("include") or "*")

    results: list[str] = []
    overflow = 0
    for file in _walk_files(root):
        if not any(fnmatch.fnmatch(file.name, inc) for inc in includes):
            continue
        try:
            text = file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue  # binary or unreadable
        try:
            display = file.relative_to(worker.working_dir)
        except ValueError:
            display = file
        for lineno, line in enumerate(text.split("\n"), 1):
            if regex.search(line):
                if len(results) < MAX_GREP_RESULTS:
                    results.append(f"{display}:{lineno}: {line}")
                else:
                    overflow += 1

    if not results:
        return "No matches found"
    if overflow:
        results.append(f"... ({overflow} more matches not shown)")
    return "\n".join(results)


def handle_file_tree(tool_args: dict, worker: "Worker", events: "EventBus") -> str:
    raw = tool_args.get("path", ".")
    path = resolve_path(worker, raw)
    if not path.is_dir():
        return f"No such file or directory: {raw}"
    return render_file_tree(path)
