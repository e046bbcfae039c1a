"""Tests for the challenge login flow."""

import os
import sys
import time

import pytest

from rulesbot.auth import login as login_module
from rulesbot.auth.login import (
    Challenge,
    ChallengeLoginFlow,
    ChallengeStatus,
    challenge_url,
    open_browser,
)
from rulesbot.errors import (
    ChallengeAccessedError,
    ChallengeExpiredError,
    ChallengeTerminalError,
    ChallengeUnauthorizedError,
    LoginTimeoutError,
    ProtocolError,
)

HOST = "https://rules.example.test"


class FakeResponse:
    def __init__(self, payload, status_code=200, url=""):
        self._payload = payload
        self.status_code = status_code
        self.url = url

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Serves queued responses per endpoint and records requests."""

    def __init__(self, create, completions):
        self.create = create
        self.completions = list(completions)
        self.requests = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.requests.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if url.endswith("/api/challenges"):
            return self.create
        return self.completions.pop(0)

    def completion_requests(self):
        return [r for r in self.requests if r["url"].endswith("/complete")]


def _challenge(status, token="chal-1", access_token=None):
    payload = {"object": "challenge", "challenge": token, "status": status}
    if access_token is not None:
        payload["access_token"] = access_token
    return FakeResponse(payload)


def _error(error_type, status_code=400):
    return FakeResponse(
        {"object": "error", "type": error_type, "message": "nope"}, status_code=status_code
    )


def _flow(session, **kwargs):
    recorder = {"saved": [], "opened": [], "sleeps": []}
    flow = ChallengeLoginFlow(
        HOST,
        session=session,
        poll_interval=kwargs.pop("poll_interval", 0.2),
        browser=lambda url: recorder["opened"].append(url) or True,
        save_token=recorder["saved"].append,
        sleep=recorder["sleeps"].append,
        **kwargs,
    )
    return flow, recorder


def test_login_polls_until_complete_and_saves_token():
    session = FakeSession(
        create=_challenge("incomplete"),
        completions=[
            _challenge("incomplete"),
            _challenge("incomplete"),
            _challenge("complete", access_token="tok1"),
        ],
    )
    flow, recorder = _flow(session)

    result = flow.run()

    assert result.access_token == "tok1"
    assert result.attempts == 3
    assert result.challenge_url == f"{HOST}/auth/cli?challenge=chal-1"
    assert recorder["saved"] == ["tok1"]
    assert recorder["opened"] == [f"{HOST}/auth/cli?challenge=chal-1"]
    assert recorder["sleeps"] == [0.2, 0.2]
    assert len(session.completion_requests()) == 3


def test_completion_request_shape():
    session = FakeSession(
        create=_challenge("incomplete"),
        completions=[_challenge("complete", access_token="tok1")],
    )
    flow, _ = _flow(session, timeout=5)

    flow.run()

    create, complete = session.requests
    assert create["url"] == f"{HOST}/api/challenges"
    assert create["headers"] == {"Content-Type": "application/json"}
    assert complete["url"] == f"{HOST}/api/challenges/complete"
    assert complete["json"] == {"challenge": "chal-1"}
    assert complete["timeout"] == 5


def test_expired_challenge_aborts_without_saving():
    session = FakeSession(create=_challenge("incomplete"), completions=[_error("challenge_expired")])
    flow, recorder = _flow(session)

    with pytest.raises(ChallengeExpiredError, match="Login expired, please try again"):
        flow.run()

    assert recorder["saved"] == []
    assert recorder["sleeps"] == []


@pytest.mark.parametrize(
    "error_type, error_cls, message",
    [
        ("challenge_expired", ChallengeExpiredError, "Login expired, please try again"),
        ("challenge_is_accessed", ChallengeAccessedError, "Please try logging in again"),
        (
            "challenge_unauthorized",
            ChallengeUnauthorizedError,
            "Challenge unauthorized, please try again hacker",
        ),
    ],
)
def test_terminal_errors_have_distinct_messages(error_type, error_cls, message):
    session = FakeSession(create=_challenge("incomplete"), completions=[_error(error_type)])
    flow, _ = _flow(session)

    with pytest.raises(error_cls) as exc_info:
        flow.poll("chal-1")

    assert isinstance(exc_info.value, ChallengeTerminalError)
    assert str(exc_info.value) == message


def test_expired_status_payload_is_terminal():
    session = FakeSession(create=_challenge("incomplete"), completions=[_challenge("expired")])
    flow, recorder = _flow(session)

    with pytest.raises(ChallengeExpiredError):
        flow.poll("chal-1")
    assert recorder["saved"] == []


def test_unknown_error_type_is_protocol_error():
    session = FakeSession(create=_challenge("incomplete"), completions=[_error("rate_limited", 429)])
    flow, _ = _flow(session)

    with pytest.raises(ProtocolError, match="rate_limited"):
        flow.poll("chal-1")


def test_complete_without_access_token_is_protocol_error():
    session = FakeSession(create=_challenge("incomplete"), completions=[_challenge("complete")])
    flow, recorder = _flow(session)

    with pytest.raises(ProtocolError, match="access token"):
        flow.poll("chal-1")
    assert recorder["saved"] == []


def test_initiate_rejects_http_failure():
    session = FakeSession(create=FakeResponse({}, status_code=500), completions=[])
    flow, recorder = _flow(session)

    with pytest.raises(ProtocolError, match="Unexpected response from challenge request: 500"):
        flow.run()
    assert recorder["opened"] == []


def test_initiate_rejects_non_incomplete_status():
    session = FakeSession(create=_challenge("complete", access_token="x"), completions=[])
    flow, recorder = _flow(session)

    with pytest.raises(ProtocolError, match="Unexpected challenge status: complete"):
        flow.initiate()
    assert recorder["opened"] == []


def test_initiate_rejects_non_json_body():
    session = FakeSession(create=FakeResponse(ValueError("not json")), completions=[])
    flow, _ = _flow(session)

    with pytest.raises(ProtocolError, match="non-JSON"):
        flow.initiate()


def test_max_attempts_bounds_polling():
    session = FakeSession(
        create=_challenge("incomplete"),
        completions=[_challenge("incomplete") for _ in range(5)],
    )
    flow, recorder = _flow(session, max_attempts=2)

    with pytest.raises(LoginTimeoutError, match="2 attempts"):
        flow.poll("chal-1")
    assert len(session.completion_requests()) == 2
    assert recorder["saved"] == []


def test_flow_defaults_come_from_config(monkeypatch):
    monkeypatch.setenv("RULESBOT_POLL_INTERVAL", "1.5")
    monkeypatch.setenv("RULESBOT_HTTP_TIMEOUT", "12")

    flow = ChallengeLoginFlow(HOST + "/", session=FakeSession(None, []))

    assert flow.host == HOST
    assert flow.poll_interval == 1.5
    assert flow.timeout == 12.0
    assert flow.max_attempts is None


def test_challenge_from_payload_rejects_unknown_status():
    with pytest.raises(ProtocolError, match="Unexpected challenge status: pending"):
        Challenge.from_payload({"object": "challenge", "challenge": "c", "status": "pending"})


def test_challenge_from_payload():
    challenge = Challenge.from_payload(
        {"object": "challenge", "challenge": "c", "status": "complete", "access_token": "t"}
    )

    assert challenge == Challenge(token="c", status=ChallengeStatus.COMPLETE, access_token="t")


def test_challenge_url():
    assert challenge_url(HOST, "abc") == f"{HOST}/auth/cli?challenge=abc"


@pytest.mark.parametrize(
    "platform, expected",
    [
        ("linux", ["xdg-open", "https://x.test"]),
        ("darwin", ["open", "https://x.test"]),
        ("win32", ["cmd", "/c", "start", "https://x.test"]),
    ],
)
def test_open_browser_uses_platform_launcher(monkeypatch, platform, expected):
    calls = []
    monkeypatch.setattr(sys, "platform", platform)
    monkeypatch.setattr(login_module.subprocess, "run", lambda cmd, **_kwargs: calls.append(cmd))

    assert open_browser("https://x.test") is True
    assert calls == [expected]


def test_open_browser_skips_unsupported_platform(monkeypatch):
    calls = []
    monkeypatch.setattr(sys, "platform", "sunos5")
    monkeypatch.setattr(login_module.subprocess, "run", lambda cmd, **_kwargs: calls.append(cmd))

    assert open_browser("https://x.test") is False
    assert calls == []


def test_open_browser_missing_launcher(monkeypatch):
    def _raise(*_args, **_kwargs):
        raise FileNotFoundError("xdg-open")

    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setattr(login_module.subprocess, "run", _raise)

    assert open_browser("https://x.test") is False


def test_open_browser_discards_launcher_output(monkeypatch):
    calls = []
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setattr(
        login_module.subprocess, "run", lambda cmd, **kwargs: calls.append((cmd, kwargs))
    )

    assert open_browser("https://x.test") is True
    _cmd, kwargs = calls[0]
    assert kwargs["stdout"] is login_module.subprocess.DEVNULL
    assert kwargs["stderr"] is login_module.subprocess.DEVNULL
    assert "capture_output" not in kwargs


@pytest.mark.skipif(sys.platform.startswith("win"), reason="requires a POSIX shell launcher")
def test_open_browser_returns_while_launched_browser_keeps_running(monkeypatch, tmp_path):
    # xdg-open style launchers exit while the browser they started lives on
    launcher = tmp_path / "xdg-open"
    launcher.write_text("#!/bin/sh\nsleep 5 &\nexit 0\n", encoding="utf-8")
    os.chmod(launcher, 0o755)
    monkeypatch.setenv("PATH", f"{tmp_path}{os.pathsep}{os.environ.get('PATH', '')}")
    monkeypatch.setattr(sys, "platform", "linux")

    started = time.monotonic()
    assert open_browser("https://x.test") is True
    assert time.monotonic() - started < 3
