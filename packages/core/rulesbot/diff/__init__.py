"""Diff acquisition, parsing, and snippet helpers."""

from rulesbot.diff.parser import (
    FileChange,
    Hunk,
    parse_diff_to_files,
    parse_diff_to_hunks,
    parse_hunk_header,
)
from rulesbot.diff.extractor import (
    DiffStrategy,
    get_diff,
    get_diff_in_pull_request,
    get_diff_in_push,
    get_local_diff,
    get_specific_diff,
    git_fetch,
    run_git,
    select_diff_strategy,
)
from rulesbot.diff.snippets import (
    PADDING_AFTER,
    PADDING_BEFORE,
    Snippet,
    get_changes_as_files,
    get_changes_as_hunks,
    hunk_window,
    iter_file_snippets,
    iter_hunk_snippets,
)

__all__ = [
    "FileChange",
    "Hunk",
    "parse_diff_to_files",
    "parse_diff_to_hunks",
    "parse_hunk_header",
    "DiffStrategy",
    "get_diff",
    "get_diff_in_pull_request",
    "get_diff_in_push",
    "get_local_diff",
    "get_specific_diff",
    "git_fetch",
    "run_git",
    "select_diff_strategy",
    "PADDING_AFTER",
    "PADDING_BEFORE",
    "Snippet",
    "get_changes_as_files",
    "get_changes_as_hunks",
    "hunk_window",
    "iter_file_snippets",
    "iter_hunk_snippets",
]
