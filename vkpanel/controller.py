"""
Dictation session controller for vkpanel.

Owns the worker lifecycle. Both trigger sources (the global hotkey thread
and the panel's button) go through ``toggle()``, which serializes on the
session lock:

    IDLE --toggle--> cue, launch worker --> RECORDING
    RECORDING --toggle--> cue, terminate worker --> IDLE
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

from loguru import logger

from vkpanel.audio import AudioCues
from vkpanel.config import Config
from vkpanel.environment import snapshot
from vkpanel.process import (
    SHUTDOWN_GRACE,
    SHUTDOWN_POLL,
    SPAWN_CHECK,
    STOP_GRACE,
    STOP_POLL,
    LaunchSpec,
    TerminationError,
    TerminationOutcome,
    VKPanelError,
    launch,
    terminate,
)
from vkpanel.session import Session, SessionState


STATUS_READY = "Ready"
STATUS_RECORDING = "Recording..."
STATUS_STOPPED = "Stopped"
STATUS_NO_API_KEY = "API key is not set"


@dataclass
class DictationController:
    """
    Starts and stops the privileged dictation worker.

    Usage:
        controller = DictationController(config=Config.load())
        controller.toggle()   # start
        controller.toggle()   # stop
        controller.shutdown() # on exit
    """

    config: Config = field(default_factory=Config.load)
    cues: Optional[AudioCues] = field(default_factory=AudioCues)
    environ: Optional[Mapping[str, str]] = None
    executable: Optional[Path] = None
    on_status_change: Optional[Callable[[str], None]] = None
    on_state_change: Optional[Callable[[SessionState], None]] = None

    stop_grace: float = STOP_GRACE
    stop_poll: float = STOP_POLL
    shutdown_grace: float = SHUTDOWN_GRACE
    shutdown_poll: float = SHUTDOWN_POLL
    spawn_check: float = SPAWN_CHECK

    # Internal state
    _session: Session = field(default_factory=Session, init=False)
    _env: Dict[str, str] = field(default_factory=dict, init=False)
    _status: str = field(default=STATUS_READY, init=False)
    _last_outcome: Optional[TerminationOutcome] = field(default=None, init=False)
    _closed: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self._env = snapshot(self.environ)

    # ---- Notifications ----
    def _set_status(self, status: str) -> None:
        self._status = status
        if self.on_status_change:
            try:
                self.on_status_change(status)
            except Exception:
                logger.exception("Status callback failed")

    def _notify_state(self, state: SessionState) -> None:
        logger.info(f"Dictation {state.value}")
        if self.on_state_change:
            try:
                self.on_state_change(state)
            except Exception:
                logger.exception("State callback failed")

    # ---- Transitions (session lock held) ----
    def _start_locked(self, session: Session) -> None:
        if self._closed:
            logger.warning("Ignoring start request: controller is shut down")
            return

        api_key = self.config.resolve_api_key(self._env)
        if not api_key:
            logger.warning("Refusing to start dictation: API key is not set")
            self._set_status(STATUS_NO_API_KEY)
            return

        if self.cues:
            self.cues.start_cue()

        try:
            spec = LaunchSpec.build(api_key, environ=self._env, executable=self.executable)
            child = launch(spec, helper=self.config.privilege_helper, spawn_check=self.spawn_check)
        except VKPanelError as e:
            logger.error(f"Failed to start worker: {e}")
            self._set_status(f"Failed to start: {e}")
            return

        session.begin(child)
        self._set_status(STATUS_RECORDING)
        self._notify_state(SessionState.RECORDING)

    def _stop_locked(self, session: Session, grace: float, poll: float, cue: bool = True) -> None:
        if cue and self.cues:
            self.cues.stop_cue()

        status = STATUS_STOPPED
        try:
            self._last_outcome = terminate(
                session.handle,
                grace=grace,
                poll_interval=poll,
                helper=self.config.privilege_helper,
            )
        except TerminationError as e:
            logger.error(f"{e}")
            self._last_outcome = None
            status = f"Stop failed: {e}"
        finally:
            session.release()

        self._set_status(status)
        self._notify_state(SessionState.IDLE)

    def _run(self, transition: Callable[[Session], None]) -> SessionState:
        with self._session.acquire() as session:
            try:
                transition(session)
            except Exception as e:
                logger.exception("Dictation transition failed")
                self._set_status(f"Error: {e}")
            return session.state

    # ---- Public API ----
    def toggle(self) -> SessionState:
        """
        Flip between IDLE and RECORDING. Safe to call from any thread.

        Returns:
            The session state after the transition
        """
        def _toggle(session: Session) -> None:
            if session.state is SessionState.RECORDING:
                self._stop_locked(session, self.stop_grace, self.stop_poll)
            else:
                self._start_locked(session)

        return self._run(_toggle)

    def start(self) -> SessionState:
        """Start dictation if idle; does nothing while recording."""
        def _start(session: Session) -> None:
            if session.state is SessionState.IDLE:
                self._start_locked(session)
            else:
                logger.debug("Start requested while already recording")

        return self._run(_start)

    def stop(self) -> SessionState:
        """Stop dictation if recording; does nothing while idle."""
        def _stop(session: Session) -> None:
            if session.state is SessionState.RECORDING:
                self._stop_locked(session, self.stop_grace, self.stop_poll)
            else:
                logger.debug("Stop requested while idle")

        return self._run(_stop)

    def shutdown(self) -> Optional[TerminationOutcome]:
        """
        Terminate any running worker and release the audio device.
        Later start requests are refused.

        Idempotent; never raises. Called on application exit.

        Returns:
            The termination outcome, or None if no worker was running
            or it could not be killed
        """
        outcome = None
        with self._session.acquire() as session:
            self._closed = True
            if session.handle is not None:
                logger.info("Shutting down: stopping worker")
                self._last_outcome = None
                try:
                    self._stop_locked(session, self.shutdown_grace, self.shutdown_poll, cue=False)
                except Exception:
                    logger.exception("Error while stopping worker during shutdown")
                    session.release()
                outcome = self._last_outcome

        if self.cues:
            self.cues.close()
        return outcome

    @property
    def status(self) -> str:
        """Human-readable status for the UI."""
        return self._status

    @property
    def state(self) -> SessionState:
        return self._session.peek_state()

    @property
    def is_recording(self) -> bool:
        return self.state is SessionState.RECORDING

    @property
    def last_outcome(self) -> Optional[TerminationOutcome]:
        """How the most recent worker ended."""
        return self._last_outcome

    @property
    def environment(self) -> Dict[str, str]:
        """The allow-listed environment captured at construction."""
        return dict(self._env)

    def __enter__(self) -> "DictationController":
        return self

    def __exit__(self, *args) -> None:
        self.shutdown()

    def __del__(self) -> None:
        if "_session" in self.__dict__:
            self.shutdown()
