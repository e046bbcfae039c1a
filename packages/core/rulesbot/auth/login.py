"""Browser-based challenge login."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import subprocess
import sys
import time
from typing import Any, Callable, Dict, Optional

import requests

from rulesbot.config import CliConfig, save_access_token
from rulesbot.errors import (
    CHALLENGE_ERRORS,
    ChallengeExpiredError,
    LoginTimeoutError,
    ProtocolError,
)

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


class ChallengeStatus(str, Enum):
    """Challenge lifecycle status reported by the API"""

    INCOMPLETE = "incomplete"
    COMPLETE = "complete"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Challenge:
    """One login attempt awaiting confirmation in the browser"""

    token: str
    status: ChallengeStatus
    access_token: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "Challenge":
        """Build a challenge from an API response body.

        Raises:
            ProtocolError: If the payload is not a challenge object.
        """
        if not isinstance(payload, dict) or payload.get("object") != "challenge":
            raise ProtocolError(f"Unexpected challenge payload: {payload!r}")
        token = payload.get("challenge")
        if not isinstance(token, str) or not token:
            raise ProtocolError("Challenge payload is missing its token")
        try:
            status = ChallengeStatus(payload.get("status"))
        except ValueError as exc:
            raise ProtocolError(f"Unexpected challenge status: {payload.get('status')}") from exc
        access_token = payload.get("access_token")
        return cls(
            token=token,
            status=status,
            access_token=access_token if isinstance(access_token, str) else None,
        )


@dataclass(frozen=True)
class LoginResult:
    """Successful end of the login flow"""

    access_token: str
    challenge_url: str
    attempts: int


def challenge_url(host: str, token: str) -> str:
    """URL the user opens to confirm the challenge."""
    return f"{host}/auth/cli?challenge={token}"


def _browser_command(url: str) -> Optional[list]:
    if sys.platform.startswith("win"):
        return ["cmd", "/c", "start", url]
    if sys.platform == "darwin":
        return ["open", url]
    if sys.platform.startswith("linux"):
        return ["xdg-open", url]
    return None


def open_browser(url: str) -> bool:
    """Open ``url`` with the OS launcher.

    Best-effort: unsupported platforms and missing launchers are skipped.

    Returns:
        True if a launcher was started.
    """
    cmd = _browser_command(url)
    if cmd is None:
        logger.debug("No browser launcher for platform %s", sys.platform)
        return False
    try:
        # Launchers may fork a browser that inherits our handles; never wait on pipes
        subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=False)
    except OSError as exc:
        logger.debug("Could not launch browser with %s: %s", cmd[0], exc)
        return False
    return True


def _decode_json(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise ProtocolError(
            f"Unexpected non-JSON response from {response.url}: {response.status_code}"
        ) from exc


class ChallengeLoginFlow:
    """
    Device-style login against the challenge API.

    ``initiate`` creates a challenge and hands its URL to the browser,
    ``poll`` waits for the user to confirm it, and ``run`` does both.
    Only the ``incomplete`` status is retried; every other outcome either
    returns a LoginResult or raises.
    """

    def __init__(
        self,
        host: str,
        *,
        session: Optional[requests.Session] = None,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
        browser: Callable[[str], bool] = open_browser,
        save_token: Callable[[str], None] = save_access_token,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.host = host.rstrip("/")
        self.session = session or requests.Session()
        self.poll_interval = (
            CliConfig.get_poll_interval() if poll_interval is None else poll_interval
        )
        self.max_attempts = max_attempts
        self.timeout = CliConfig.get_http_timeout() if timeout is None else timeout
        self.browser = browser
        self.save_token = save_token
        self.sleep = sleep

    def _post(self, path: str, body: Optional[Dict[str, str]] = None) -> requests.Response:
        return self.session.post(
            f"{self.host}{path}",
            headers=JSON_HEADERS,
            json=body,
            timeout=self.timeout,
        )

    def initiate(self) -> Challenge:
        """Create a challenge and open its URL in the browser.

        Raises:
            ProtocolError: On a non-2xx response or a status other than
                incomplete.
        """
        response = self._post("/api/challenges")
        if not response.ok:
            raise ProtocolError(
                f"Unexpected response from challenge request: {response.status_code}"
            )

        challenge = Challenge.from_payload(_decode_json(response))
        # A fresh challenge must still be waiting for the user
        if challenge.status is not ChallengeStatus.INCOMPLETE:
            raise ProtocolError(f"Unexpected challenge status: {challenge.status.value}")

        url = challenge_url(self.host, challenge.token)
        self.browser(url)
        return challenge

    def complete(self, token: str) -> Challenge:
        """Ask the API once whether the challenge has been confirmed.

        Raises:
            ChallengeTerminalError: On expired, accessed, or unauthorized
                challenges.
            ProtocolError: On any other unexpected answer.
        """
        response = self._post("/api/challenges/complete", {"challenge": token})
        payload = _decode_json(response)

        if isinstance(payload, dict) and payload.get("object") == "error":
            error_cls = CHALLENGE_ERRORS.get(payload.get("type"))
            if error_cls is None:
                raise ProtocolError(
                    f"Unexpected challenge error: {payload.get('type')}: {payload.get('message')}"
                )
            raise error_cls()

        if not response.ok:
            raise ProtocolError(
                f"Unexpected response from challenge completion: {response.status_code}"
            )

        return Challenge.from_payload(payload)

    def poll(self, token: str) -> LoginResult:
        """Poll until the challenge completes, then persist the access token.

        Raises:
            ChallengeTerminalError: If the challenge can no longer complete.
            LoginTimeoutError: If max_attempts polls all came back incomplete.
        """
        attempts = 0
        while self.max_attempts is None or attempts < self.max_attempts:
            attempts += 1
            challenge = self.complete(token)
            logger.debug("Challenge poll %d: %s", attempts, challenge.status.value)

            if challenge.status is ChallengeStatus.COMPLETE:
                if not challenge.access_token:
                    raise ProtocolError("Completed challenge did not include an access token")
                self.save_token(challenge.access_token)
                return LoginResult(
                    access_token=challenge.access_token,
                    challenge_url=challenge_url(self.host, token),
                    attempts=attempts,
                )
            if challenge.status is ChallengeStatus.EXPIRED:
                raise ChallengeExpiredError()

            self.sleep(self.poll_interval)

        raise LoginTimeoutError(f"Login not confirmed after {attempts} attempts")

    def run(self) -> LoginResult:
        """Create a challenge and wait for it to complete."""
        challenge = self.initiate()
        return self.poll(challenge.token)
