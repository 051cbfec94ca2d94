"""Tests for the headless hotkey runner."""

import threading

import pytest

from conftest import require_module

require_module("sounddevice")
require_module("evdev")

from vkpanel import daemon as daemon_module
from vkpanel.config import Config
from vkpanel.daemon import DaemonProcess
from vkpanel.environment import API_KEY_VAR
from vkpanel.session import SessionState


class FakeListener:
    instances = []

    def __init__(self, on_trigger=None, key="F13"):
        self.on_trigger = on_trigger
        self.key = key
        self.started = False
        self.stopped = False
        FakeListener.instances.append(self)

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True


@pytest.fixture
def fake_runtime(monkeypatch):
    FakeListener.instances = []
    handlers = {}
    monkeypatch.setattr(daemon_module, "HotkeyListener", FakeListener)
    monkeypatch.setattr(daemon_module.signal, "signal", lambda sig, fn: handlers.__setitem__(sig, fn))
    return handlers


def test_invalid_config_is_rejected(monkeypatch, fake_runtime):
    monkeypatch.delenv(API_KEY_VAR, raising=False)
    with pytest.raises(RuntimeError, match="API key"):
        DaemonProcess(config=Config()).run()
    assert FakeListener.instances == []


def test_run_wires_hotkey_and_cleans_up(fake_runtime):
    daemon = DaemonProcess(config=Config(api_key="k", hotkey_code="F14"))
    timer = threading.Timer(0.3, daemon.stop)
    timer.start()

    daemon.run()
    timer.join()

    listener = FakeListener.instances[0]
    assert listener.key == "F14"
    assert listener.on_trigger == daemon.controller.toggle
    assert listener.started and listener.stopped
    assert daemon.controller.state is SessionState.IDLE
    assert len(fake_runtime) == 2


def test_signal_handler_stops_daemon(fake_runtime):
    daemon = DaemonProcess(config=Config(api_key="k"))

    def send_sigterm():
        while not fake_runtime:
            threading.Event().wait(0.01)
        handler = list(fake_runtime.values())[-1]
        handler(15, None)

    t = threading.Thread(target=send_sigterm)
    t.start()
    daemon.run()
    t.join(timeout=5)

    assert FakeListener.instances[0].stopped
