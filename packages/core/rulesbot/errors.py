"""Exception types raised by rulesbot."""

from typing import List, Optional


SHALLOW_CHECKOUT_MARKER = "fatal: ambiguous argument"

SHALLOW_CHECKOUT_HINT = """rulesbot can't find previous code to compare against. Try checking that your checkout step has 'fetch-depth' of 2 or higher. For example:

- uses: actions/checkout@v2
  with:
    fetch-depth: 2
"""


class RulesbotError(Exception):
    """Base class for all rulesbot errors"""


class ConfigurationError(RulesbotError, ValueError):
    """A required environment variable is missing"""


class ProtocolError(RulesbotError, RuntimeError):
    """The challenge API answered with an unexpected status or payload"""


class LoginTimeoutError(RulesbotError, RuntimeError):
    """Polling gave up before the challenge reached a terminal status"""


class ChallengeTerminalError(RulesbotError, RuntimeError):
    """The challenge ended in a state that cannot be retried"""

    error_type = ""
    user_message = "Login failed, please try again"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)


class ChallengeExpiredError(ChallengeTerminalError):
    error_type = "challenge_expired"
    user_message = "Login expired, please try again"


class ChallengeAccessedError(ChallengeTerminalError):
    error_type = "challenge_is_accessed"
    user_message = "Please try logging in again"


class ChallengeUnauthorizedError(ChallengeTerminalError):
    error_type = "challenge_unauthorized"
    user_message = "Challenge unauthorized, please try again hacker"


CHALLENGE_ERRORS = {
    cls.error_type: cls
    for cls in (ChallengeExpiredError, ChallengeAccessedError, ChallengeUnauthorizedError)
}


class GitCommandError(RulesbotError, RuntimeError):
    """A git subprocess exited with a non-zero status.

    ``hint`` is set when stderr shows the shallow-checkout failure that
    happens in CI jobs cloned with ``fetch-depth: 1``.
    """

    def __init__(self, args_list: List[str], returncode: int, stderr: str):
        self.args_list = list(args_list)
        self.returncode = returncode
        self.stderr = stderr
        self.hint: Optional[str] = (
            SHALLOW_CHECKOUT_HINT if SHALLOW_CHECKOUT_MARKER in stderr else None
        )
        detail = stderr.strip() or f"exit status {returncode}"
        super().__init__(f"{' '.join(self.args_list)} failed: {detail}")


class DiffParseError(RulesbotError, ValueError):
    """A hunk header could not be parsed"""
