from vkpanel.environment import API_KEY_VAR, ENVIRONMENT_ALLOWLIST, snapshot


def test_allowlist_contents():
    assert set(ENVIRONMENT_ALLOWLIST) == {
        "DEEPGRAM_API_KEY",
        "PULSE_RUNTIME_PATH",
        "XDG_RUNTIME_DIR",
        "DISPLAY",
        "WAYLAND_DISPLAY",
        "HOME",
        "USER",
    }


def test_snapshot_filters_and_skips_unset():
    env = {
        API_KEY_VAR: "abc",
        "WAYLAND_DISPLAY": "wayland-0",
        "USER": "alice",
        "PATH": "/usr/bin",
        "LD_PRELOAD": "/tmp/evil.so",
    }
    assert snapshot(env) == {
        API_KEY_VAR: "abc",
        "WAYLAND_DISPLAY": "wayland-0",
        "USER": "alice",
    }


def test_snapshot_defaults_to_process_environment(monkeypatch):
    monkeypatch.setenv("DISPLAY", ":3")
    monkeypatch.delenv("PULSE_RUNTIME_PATH", raising=False)

    env = snapshot()

    assert env["DISPLAY"] == ":3"
    assert "PULSE_RUNTIME_PATH" not in env
    assert set(env) <= set(ENVIRONMENT_ALLOWLIST)


def test_snapshot_is_a_copy():
    source = {"HOME": "/home/a"}
    env = snapshot(source)
    source["HOME"] = "/home/b"
    assert env["HOME"] == "/home/a"
