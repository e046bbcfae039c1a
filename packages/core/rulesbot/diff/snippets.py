"""Snippet extraction from the current working tree."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from rulesbot.diff.extractor import get_diff
from rulesbot.diff.parser import FileChange, Hunk, parse_diff_to_files, parse_diff_to_hunks

PADDING_BEFORE = 20
PADDING_AFTER = 20


@dataclass(frozen=True)
class Snippet:
    """A window of a file's post-change content."""

    file: str
    snippet: str

    def to_json(self) -> dict:
        """Serialize snippet to JSON-safe dict."""
        return asdict(self)


def _read_current(root: Path, path: str) -> str:
    # Missing files are an error: the diff said the file exists after the change
    # CRLF endings are kept verbatim; undecodable bytes become U+FFFD
    return (root / path).read_bytes().decode("utf-8", errors="replace")


def hunk_window(lines: Sequence[str], hunk: Hunk) -> Tuple[int, int]:
    """Return the ``[start, end)`` line slice covering a hunk plus padding."""
    start = max(0, hunk.new_start - PADDING_BEFORE)
    end = min(len(lines), hunk.new_start + hunk.new_count + PADDING_AFTER)
    return start, end


def iter_file_snippets(
    files: Iterable[FileChange], root: Union[str, Path] = "."
) -> Iterator[Snippet]:
    """Yield the full current content of each changed file."""
    root_path = Path(root)
    for file_change in files:
        yield Snippet(file=file_change.path, snippet=_read_current(root_path, file_change.path))


def iter_hunk_snippets(hunks: Iterable[Hunk], root: Union[str, Path] = ".") -> Iterator[Snippet]:
    """Yield the padded window of current content around each hunk."""
    root_path = Path(root)
    for hunk in hunks:
        lines: List[str] = _read_current(root_path, hunk.file).split("\n")
        start, end = hunk_window(lines, hunk)
        yield Snippet(file=hunk.file, snippet="\n".join(lines[start:end]))


def get_changes_as_files(
    diff: Optional[str] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Union[str, Path]] = None,
) -> Iterator[Snippet]:
    """Acquire the diff and yield one whole-file snippet per changed file.

    Nothing runs until the first item is requested; git is invoked once.

    Args:
        diff: Optional explicit ``git diff`` specifier.
        env: Environment mapping (default: os.environ).
        cwd: Repository directory (default: current directory).

    Raises:
        FileNotFoundError: If a changed file is missing from the working tree.
    """
    text = get_diff(diff, env=env, cwd=cwd)
    yield from iter_file_snippets(parse_diff_to_files(text), cwd or ".")


def get_changes_as_hunks(
    diff: Optional[str] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Union[str, Path]] = None,
) -> Iterator[Snippet]:
    """Acquire the diff and yield one padded snippet per hunk.

    Raises:
        FileNotFoundError: If a hunk's file is missing from the working tree.
    """
    text = get_diff(diff, env=env, cwd=cwd)
    yield from iter_hunk_snippets(parse_diff_to_hunks(text), cwd or ".")
