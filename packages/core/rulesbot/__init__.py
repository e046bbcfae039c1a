"""
rulesbot - Code review rules CLI: browser login and diff snippet extraction
"""

from rulesbot.auth.login import ChallengeLoginFlow, LoginResult
from rulesbot.diff.parser import FileChange, Hunk, parse_diff_to_files, parse_diff_to_hunks
from rulesbot.diff.snippets import Snippet, get_changes_as_files, get_changes_as_hunks

__version__ = "0.1.0"

__all__ = [
    "ChallengeLoginFlow",
    "LoginResult",
    "FileChange",
    "Hunk",
    "parse_diff_to_files",
    "parse_diff_to_hunks",
    "Snippet",
    "get_changes_as_files",
    "get_changes_as_hunks",
]
