"""Unified diff parsing utilities."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import re
from typing import List, Optional, Tuple

from rulesbot.errors import DiffParseError


FILE_HEADER_PREFIX = "diff --git"
FILE_PATHS_RE = re.compile(r" a/(.*) b/(.*)")
DELETED_TARGET = "+++ /dev/null"


@dataclass(frozen=True)
class FileChange:
    """A modified file and its diff body, starting at the ``---`` line."""

    path: str
    diff_body: str


@dataclass(frozen=True)
class Hunk:
    """Old/new line ranges from a ``@@ -a,b +c,d @@`` header."""

    file: str
    old_start: int
    old_count: int
    new_start: int
    new_count: int


class _ScanState(Enum):
    SEEK_FILE_HEADER = "seek_file_header"
    SEEK_HUNK_HEADER = "seek_hunk_header"
    IN_HUNK_BODY = "in_hunk_body"


def _strip_path_prefix(path: str) -> str:
    # Only the leading git prefix; "src/data/x.py" must survive intact
    if path.startswith("a/") or path.startswith("b/"):
        return path[2:]
    return path


def _parse_range(token: str, sign: str, header: str) -> Tuple[int, int]:
    if not token.startswith(sign):
        raise DiffParseError(f"Malformed hunk header: {header!r}")
    start, _, count = token[1:].partition(",")
    try:
        return int(start), int(count) if count else 1
    except ValueError as exc:
        raise DiffParseError(f"Malformed hunk header: {header!r}") from exc


def parse_hunk_header(line: str) -> Tuple[int, int, int, int]:
    """Parse ``@@ -old_start,old_count +new_start,new_count @@``.

    An omitted count means 1, as in git's own output for single-line ranges.

    Raises:
        DiffParseError: If either range is missing or non-numeric.
    """
    tokens = line[2:].strip().split()
    if len(tokens) < 2:
        raise DiffParseError(f"Malformed hunk header: {line!r}")
    old_start, old_count = _parse_range(tokens[0], "-", line)
    new_start, new_count = _parse_range(tokens[1], "+", line)
    if min(old_start, old_count, new_start, new_count) < 0:
        raise DiffParseError(f"Malformed hunk header: {line!r}")
    return old_start, old_count, new_start, new_count


def parse_diff_to_files(diff_content: str) -> List[FileChange]:
    """Split a unified diff into one FileChange per surviving file.

    Segments are opened by ``diff --git`` lines. A segment is dropped when
    its header carries no ``a/<path> b/<path>`` pair, when it lacks a
    ``---`` or ``+++`` line, or when the file was deleted
    (``+++ /dev/null``).

    Args:
        diff_content: Git diff output string.

    Returns:
        FileChange records in diff order.
    """
    results: List[FileChange] = []

    state = _ScanState.SEEK_FILE_HEADER
    path: Optional[str] = None
    body: List[str] = []
    has_target = False
    deleted = False

    def flush() -> None:
        if path is not None and body and has_target and not deleted:
            results.append(FileChange(path=path, diff_body="".join(body)))

    for line in diff_content.splitlines(keepends=True):
        if line.startswith(FILE_HEADER_PREFIX):
            flush()
            match = FILE_PATHS_RE.search(line.rstrip("\r\n"))
            path = match.group(1) if match else None
            body = []
            has_target = False
            deleted = False
            state = _ScanState.SEEK_HUNK_HEADER if path is not None else _ScanState.SEEK_FILE_HEADER
            continue

        if state is _ScanState.SEEK_FILE_HEADER:
            continue

        if state is _ScanState.SEEK_HUNK_HEADER:
            if not body:
                if line.startswith("---"):
                    body.append(line)
                continue
            body.append(line)
            if line.startswith("+++"):
                has_target = True
                deleted = line.strip() == DELETED_TARGET
                state = _ScanState.IN_HUNK_BODY
            continue

        body.append(line)

    flush()
    return results


def parse_diff_to_hunks(diff_content: str) -> List[Hunk]:
    """Extract every hunk header from a unified diff.

    The most recent ``+++`` line names the file for the hunks that follow;
    hunks of deleted files (``+++ /dev/null``), or seen before any ``+++``
    line, are dropped rather than reported with an empty file, so the result
    can hold fewer hunks than the diff has ``@@`` headers.
    Hunk bodies are consumed using the header's line counts, so body lines
    that happen to look like ``+++``/``---`` headers are not misread.

    Args:
        diff_content: Git diff output string.

    Returns:
        Hunk records in diff order.

    Raises:
        DiffParseError: If a hunk header is malformed.
    """
    hunks: List[Hunk] = []

    state = _ScanState.SEEK_FILE_HEADER
    current_file: Optional[str] = None
    old_remaining = 0
    new_remaining = 0

    for line in diff_content.split("\n"):
        if state is _ScanState.IN_HUNK_BODY:
            prefix = line[:1]
            if prefix == " ":
                old_remaining -= 1
                new_remaining -= 1
            elif prefix == "-":
                old_remaining -= 1
            elif prefix == "+":
                new_remaining -= 1
            elif prefix == "\\":
                pass
            else:
                # Header lines end a body even if the counts were short
                state = _ScanState.SEEK_HUNK_HEADER
            if state is _ScanState.IN_HUNK_BODY:
                if old_remaining <= 0 and new_remaining <= 0:
                    state = _ScanState.SEEK_HUNK_HEADER
                continue

        if line.startswith(FILE_HEADER_PREFIX):
            current_file = None
            state = _ScanState.SEEK_FILE_HEADER
        elif line.startswith("+++ "):
            # Deleted files have no post-change content to window
            # git appends a TAB after paths containing spaces
            target = line[4:].split("\t", 1)[0]
            current_file = None if target.strip() == "/dev/null" else _strip_path_prefix(target)
            state = _ScanState.SEEK_HUNK_HEADER
        elif line.startswith("@@ "):
            old_start, old_count, new_start, new_count = parse_hunk_header(line)
            if current_file:
                hunks.append(
                    Hunk(
                        file=current_file,
                        old_start=old_start,
                        old_count=old_count,
                        new_start=new_start,
                        new_count=new_count,
                    )
                )
            old_remaining = old_count
            new_remaining = new_count
            if old_remaining > 0 or new_remaining > 0:
                state = _ScanState.IN_HUNK_BODY

    return hunks
