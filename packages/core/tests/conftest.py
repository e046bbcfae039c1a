"""Shared test fixtures."""

import pytest

from rulesbot.diff.extractor import GITHUB_BASE_REF, GITHUB_HEAD_REF, GITHUB_REF, GITHUB_SHA

_RULESBOT_ENV = (
    "RULESBOT_HOST",
    "RULESBOT_CONFIG_PATH",
    "RULESBOT_POLL_INTERVAL",
    "RULESBOT_MAX_POLL_ATTEMPTS",
    "RULESBOT_HTTP_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Keep CI and user settings out of tests; never touch the real config."""
    for name in (GITHUB_HEAD_REF, GITHUB_BASE_REF, GITHUB_SHA, GITHUB_REF, *_RULESBOT_ENV):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("RULESBOT_CONFIG_PATH", str(tmp_path / "rulesbot-config.json"))


class FakeGit:
    """Stand-in for subprocess.run that records git invocations."""

    def __init__(self, stdout="", returncode=0, stderr="", fail_on=None):
        self.stdout = stdout
        self.returncode = returncode
        self.stderr = stderr
        self.fail_on = fail_on
        self.calls = []
        self.kwargs = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        self.kwargs.append(kwargs)

        class DummyResult:
            returncode = 0
            stdout = ""
            stderr = ""

        result = DummyResult()
        failing = self.fail_on is None or (len(cmd) > 1 and cmd[1] == self.fail_on)
        if self.returncode != 0 and failing:
            result.returncode = self.returncode
            result.stderr = self.stderr
        elif cmd[1] == "diff":
            result.stdout = self.stdout
        return result


@pytest.fixture
def fake_git(monkeypatch):
    """Patch the extractor's subprocess.run with a recording fake."""

    def _install(**kwargs):
        fake = FakeGit(**kwargs)
        monkeypatch.setattr("rulesbot.diff.extractor.subprocess.run", fake)
        return fake

    return _install
