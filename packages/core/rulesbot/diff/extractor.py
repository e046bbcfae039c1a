"""Diff extraction helpers."""

from enum import Enum
import logging
import os
from pathlib import Path
import subprocess
from typing import List, Mapping, Optional, Tuple, Union

from rulesbot.errors import ConfigurationError, GitCommandError

logger = logging.getLogger(__name__)

GITHUB_HEAD_REF = "GITHUB_HEAD_REF"
GITHUB_BASE_REF = "GITHUB_BASE_REF"
GITHUB_SHA = "GITHUB_SHA"
GITHUB_REF = "GITHUB_REF"

LOCAL_DIFF_TARGET = "HEAD^"

PathLike = Union[str, Path]


class DiffStrategy(str, Enum):
    """Where the diff text comes from"""

    EXPLICIT = "explicit"  # caller passed a diff specifier
    PULL_REQUEST = "pull_request"  # GitHub Actions pull_request event
    PUSH = "push"  # GitHub Actions push event
    LOCAL = "local"  # last commit of the working tree


def _environ(env: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return os.environ if env is None else env


def _require_env(env: Mapping[str, str], name: str) -> str:
    value = env.get(name)
    if not value:
        raise ConfigurationError(f"{name} is not defined")
    return value


def select_diff_strategy(
    diff: Optional[str] = None, env: Optional[Mapping[str, str]] = None
) -> DiffStrategy:
    """Pick the diff source in precedence order.

    An explicit specifier wins over any CI context. A pull request is
    recognised by GITHUB_HEAD_REF; a push by GITHUB_BASE_REF or GITHUB_REF.
    """
    environ = _environ(env)
    if diff:
        return DiffStrategy.EXPLICIT
    if environ.get(GITHUB_HEAD_REF):
        return DiffStrategy.PULL_REQUEST
    if environ.get(GITHUB_BASE_REF) or environ.get(GITHUB_REF):
        return DiffStrategy.PUSH
    return DiffStrategy.LOCAL


def run_git(args: List[str], cwd: Optional[PathLike] = None) -> str:
    """Run git and return its stdout.

    Args:
        args: Arguments after ``git``.
        cwd: Working directory (default: current directory).

    Returns:
        Decoded standard output.

    Raises:
        GitCommandError: If git exits non-zero. When stderr shows an
            ambiguous revision the error carries a shallow-checkout hint,
            which is also logged.
    """
    cmd = ["git", *args]
    logger.info("$ %s", " ".join(cmd))
    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=False,
    )
    if result.returncode != 0:
        error = GitCommandError(cmd, result.returncode, result.stderr or "")
        if error.hint:
            logger.warning(
                "git could not resolve a revision; the checkout fetch-depth may be too shallow"
            )
        raise error
    return result.stdout


def git_fetch(ref: str, cwd: Optional[PathLike] = None) -> None:
    """Fetch ``ref`` from origin into a local ref of the same name."""
    run_git(["fetch", "origin", f"{ref}:{ref}"], cwd=cwd)


def _fetch_and_diff(head: str, ref: str, cwd: Optional[PathLike]) -> str:
    git_fetch(head, cwd=cwd)
    git_fetch(ref, cwd=cwd)
    return run_git(["diff", f"{head}..{ref}^"], cwd=cwd)


def get_specific_diff(diff: str, cwd: Optional[PathLike] = None) -> str:
    """Get diff for an explicit specifier (e.g., main, abc123~1..abc123)."""
    return run_git(["diff", diff], cwd=cwd)


def pull_request_refs(env: Optional[Mapping[str, str]] = None) -> Tuple[str, str]:
    """Return (head, base) refs of a GitHub Actions pull request run."""
    environ = _environ(env)
    return _require_env(environ, GITHUB_HEAD_REF), _require_env(environ, GITHUB_BASE_REF)


def push_refs(env: Optional[Mapping[str, str]] = None) -> Tuple[str, str]:
    """Return (sha, ref) of a GitHub Actions push run."""
    environ = _environ(env)
    return _require_env(environ, GITHUB_SHA), _require_env(environ, GITHUB_REF)


def get_diff_in_pull_request(
    env: Optional[Mapping[str, str]] = None, cwd: Optional[PathLike] = None
) -> str:
    """Fetch head and base refs, then diff ``<head>..<base>^``."""
    head, base = pull_request_refs(env)
    return _fetch_and_diff(head, base, cwd)


def get_diff_in_push(
    env: Optional[Mapping[str, str]] = None, cwd: Optional[PathLike] = None
) -> str:
    """Fetch the pushed commit and ref, then diff ``<sha>..<ref>^``."""
    sha, ref = push_refs(env)
    return _fetch_and_diff(sha, ref, cwd)


def get_local_diff(cwd: Optional[PathLike] = None) -> str:
    """Get diff of the working tree against the previous commit."""
    return run_git(["diff", LOCAL_DIFF_TARGET], cwd=cwd)


def get_diff(
    diff: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[PathLike] = None,
) -> str:
    """Get the unified diff relevant to the current run.

    Args:
        diff: Optional explicit specifier passed to ``git diff``.
        env: Environment mapping (default: os.environ).
        cwd: Repository directory (default: current directory).

    Returns:
        Raw unified diff text.

    Raises:
        ConfigurationError: If a CI variable the strategy needs is missing.
        GitCommandError: If any git invocation fails.
    """
    strategy = select_diff_strategy(diff, env)
    logger.debug("Diff strategy: %s", strategy.value)

    if strategy is DiffStrategy.EXPLICIT:
        return get_specific_diff(diff, cwd=cwd)
    if strategy is DiffStrategy.PULL_REQUEST:
        return get_diff_in_pull_request(env, cwd=cwd)
    if strategy is DiffStrategy.PUSH:
        return get_diff_in_push(env, cwd=cwd)
    return get_local_diff(cwd=cwd)
