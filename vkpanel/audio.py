"""
Audio cues for vkpanel.

Synthesizes short sine tones with numpy and plays them on a shared
sounddevice output stream fed by a background thread.
"""

import queue
import threading
from dataclasses import dataclass, field
from typing import Iterable, Optional

import numpy as np
import sounddevice as sd
from loguru import logger


class AudioUnavailable(Exception):
    """Exception raised when no output device can be opened."""
    pass


@dataclass(frozen=True)
class Tone:
    """A pure tone: frequency in Hz, duration in seconds, amplitude 0..1."""
    frequency: float
    duration: float
    amplitude: float = 0.3


# Two bright rising beeps for start, one low beep for stop
START_CUE = (Tone(1000.0, 0.08, 0.35), Tone(1200.0, 0.08, 0.35))
START_CUE_PAUSE = 0.05
STOP_CUE = (Tone(400.0, 0.1, 0.3),)

FADE_SECONDS = 0.005


def synthesize(tone: Tone, sample_rate: int = 44100) -> np.ndarray:
    """
    Render a tone as mono float32 samples.

    A short linear fade at both ends keeps the speaker from clicking.
    """
    frames = max(int(round(tone.duration * sample_rate)), 0)
    t = np.arange(frames, dtype=np.float32) / sample_rate
    samples = tone.amplitude * np.sin(2 * np.pi * tone.frequency * t)

    fade = min(int(FADE_SECONDS * sample_rate), frames // 2)
    if fade > 0:
        ramp = np.linspace(0.0, 1.0, fade, dtype=np.float32)
        samples[:fade] *= ramp
        samples[-fade:] *= ramp[::-1]

    return samples.astype(np.float32)


def silence(duration: float, sample_rate: int = 44100) -> np.ndarray:
    return np.zeros(max(int(round(duration * sample_rate)), 0), dtype=np.float32)


def render_sequence(tones: Iterable[Tone], pause: float = 0.0, sample_rate: int = 44100) -> np.ndarray:
    """Concatenate tones with ``pause`` seconds of silence between them."""
    parts = []
    for i, tone in enumerate(tones):
        if i and pause > 0:
            parts.append(silence(pause, sample_rate))
        parts.append(synthesize(tone, sample_rate))
    if not parts:
        return np.zeros(0, dtype=np.float32)
    return np.concatenate(parts)


@dataclass
class AudioCues:
    """
    Plays cue tones without blocking the caller.

    The output stream is opened lazily on first use. If it cannot be opened
    the cue is skipped and the next call tries again.

    Usage:
        cues = AudioCues()
        cues.start_cue()
        # ...
        cues.close()
    """
    sample_rate: int = 44100
    device: Optional[str] = None
    enabled: bool = True

    # Internal state
    _stream: Optional[sd.OutputStream] = field(default=None, init=False)
    _queue: "queue.Queue[Optional[np.ndarray]]" = field(default_factory=queue.Queue, init=False)
    _thread: Optional[threading.Thread] = field(default=None, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def _ensure_sink(self) -> None:
        """
        Open the output stream and start the playback thread.

        Raises:
            AudioUnavailable: If the device cannot be opened
        """
        if self._stream is not None:
            return

        try:
            stream = sd.OutputStream(
                samplerate=self.sample_rate,
                channels=1,
                device=self.device,
                dtype="float32",
            )
            stream.start()
        except sd.PortAudioError as e:
            raise AudioUnavailable(f"Failed to open output device: {e}") from e
        except Exception as e:
            raise AudioUnavailable(f"Audio error: {e}") from e

        self._stream = stream
        self._thread = threading.Thread(target=self._drain, name="vkpanel-audio", daemon=True)
        self._thread.start()

    def _drain(self) -> None:
        """Write queued buffers to the stream until a None sentinel arrives."""
        while True:
            samples = self._queue.get()
            if samples is None:
                break
            try:
                self._stream.write(samples.reshape(-1, 1))
            except Exception as e:
                logger.warning(f"Audio playback failed: {e}")

    def _enqueue(self, samples: np.ndarray) -> bool:
        if not self.enabled or samples.size == 0:
            return False

        with self._lock:
            try:
                self._ensure_sink()
            except AudioUnavailable as e:
                logger.warning(f"Skipping audio cue: {e}")
                return False
            self._queue.put(samples)
        return True

    def play(self, frequency: float, duration: float, amplitude: float = 0.3) -> bool:
        """
        Queue a single tone.

        Returns:
            True if the tone was queued, False if audio is unavailable
        """
        return self._enqueue(synthesize(Tone(frequency, duration, amplitude), self.sample_rate))

    def play_sequence(self, tones: Iterable[Tone], pause: float = 0.0) -> bool:
        """Queue tones back-to-back with ``pause`` seconds between them."""
        return self._enqueue(render_sequence(tones, pause, self.sample_rate))

    def start_cue(self) -> bool:
        return self.play_sequence(START_CUE, START_CUE_PAUSE)

    def stop_cue(self) -> bool:
        return self.play_sequence(STOP_CUE)

    def close(self) -> None:
        """Flush pending cues and release the output device."""
        with self._lock:
            if self._stream is None:
                return
            self._queue.put(None)
            if self._thread:
                self._thread.join(timeout=1)
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                logger.debug(f"Error closing audio stream: {e}")
            self._stream = None
            self._thread = None
