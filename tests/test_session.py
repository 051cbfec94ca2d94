import threading

import pytest

from vkpanel.session import Session, SessionState


class DummyHandle:
    pid = 1


def test_new_session_is_idle():
    session = Session()
    with session.acquire() as s:
        assert s.state is SessionState.IDLE
        assert s.handle is None


def test_begin_and_release():
    session = Session()
    handle = DummyHandle()

    with session.acquire() as s:
        s.begin(handle)
        assert s.state is SessionState.RECORDING
        assert s.handle is handle

    with session.acquire() as s:
        assert s.release() is handle
        assert s.state is SessionState.IDLE
        assert s.handle is None
        assert s.release() is None


def test_second_begin_is_rejected():
    session = Session()
    with session.acquire() as s:
        s.begin(DummyHandle())
        with pytest.raises(RuntimeError):
            s.begin(DummyHandle())


def test_access_without_lock_is_rejected():
    session = Session()
    with pytest.raises(RuntimeError):
        session.state
    with pytest.raises(RuntimeError):
        session.begin(DummyHandle())
    assert session.peek_state() is SessionState.IDLE


def test_lock_released_on_error():
    session = Session()
    with pytest.raises(ValueError):
        with session.acquire():
            raise ValueError("oops")

    with session.acquire() as s:
        assert s.state is SessionState.IDLE


def test_other_thread_waits_for_guard():
    session = Session()
    observed = []

    def other():
        with session.acquire() as s:
            observed.append(s.state)

    with session.acquire() as s:
        s.begin(DummyHandle())
        t = threading.Thread(target=other)
        t.start()
        t.join(timeout=0.2)
        assert t.is_alive()

    t.join(timeout=5)
    assert observed == [SessionState.RECORDING]


def test_guard_is_not_usable_from_other_thread():
    session = Session()
    errors = []

    with session.acquire():
        def other():
            try:
                session.state
            except RuntimeError as e:
                errors.append(e)

        t = threading.Thread(target=other)
        t.start()
        t.join(timeout=5)

    assert len(errors) == 1
