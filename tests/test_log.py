import pytest

from wavescopelib import log
from wavescopelib.log import dbg


@pytest.fixture
def debug_on():
    log.set_enabled(True)
    yield
    log.set_enabled(None)


class Reporter:
    def report(self):
        dbg("from a method")


def test_silent_by_default(monkeypatch, capsys):
    monkeypatch.delenv("WAVESCOPE_DEBUG", raising=False)
    log.set_enabled(None)
    dbg("hidden")
    assert capsys.readouterr().err == ""


def test_set_enabled_overrides_environment(monkeypatch):
    monkeypatch.setenv("WAVESCOPE_DEBUG", "1")
    log.set_enabled(False)
    assert not log.enabled()
    log.set_enabled(None)
    assert log.enabled()
    log.set_enabled(None)


def test_env_switch(monkeypatch, capsys):
    monkeypatch.setenv("WAVESCOPE_DEBUG", "True")
    log.set_enabled(None)
    dbg("visible")
    assert "visible" in capsys.readouterr().err
    log.set_enabled(None)


def test_caller_name(debug_on, capsys):
    Reporter().report()
    dbg("from module")
    err = capsys.readouterr().err.splitlines()
    assert err[0].endswith("Reporter] from a method")
    assert err[1].endswith("test_log] from module")
