"""Login against the rules API."""

from rulesbot.auth.login import (
    Challenge,
    ChallengeLoginFlow,
    ChallengeStatus,
    LoginResult,
    challenge_url,
    open_browser,
)

__all__ = [
    "Challenge",
    "ChallengeLoginFlow",
    "ChallengeStatus",
    "LoginResult",
    "challenge_url",
    "open_browser",
]
