"""Scan session controller.

A session owns one camera, one classifier and a fresh :class:`DecisionGate`.
A producer thread captures frames on a fixed interval and offers them to a
bounded queue; a single consumer thread classifies them in order and feeds
the gate until it emits a verdict. Closing the queue ends the session.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable

from analysis.ai.types import Classifier, Verdict
from analysis.gate import DecisionGate
from analysis.labels import LabelVocabulary

from .capture import Camera, Frame

logger = logging.getLogger(__name__)

_CHANNEL_CLOSED = object()


@dataclass
class SessionConfig:
    frame_interval: float = 1.5
    queue_size: int = 2
    timeout: float | None = 30.0


class ScanSession:
    def __init__(
        self,
        camera: Camera,
        classifier: Classifier,
        gate: DecisionGate | None = None,
        vocabulary: LabelVocabulary | None = None,
        config: SessionConfig | None = None,
        on_verdict: Callable[[Verdict], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._camera = camera
        self._classifier = classifier
        if gate is not None and vocabulary is not None:
            raise ValueError("Pass either a gate or a vocabulary, not both")
        if gate is None:
            gate = DecisionGate(vocabulary=vocabulary) if vocabulary else DecisionGate()
        self._gate = gate
        self._config = config or SessionConfig()
        self._on_verdict = on_verdict
        self._clock = clock
        self._channel: "queue.Queue[object]" = queue.Queue(
            maxsize=max(1, self._config.queue_size)
        )
        self._stop_event = threading.Event()
        self._done = threading.Event()
        self._stopped = False
        self._lock = threading.Lock()
        self._verdict: Verdict | None = None
        self._frames_dropped = 0
        self._producer: threading.Thread | None = None
        self._consumer: threading.Thread | None = None

    @property
    def gate(self) -> DecisionGate:
        return self._gate

    @property
    def verdict(self) -> Verdict | None:
        return self._verdict

    @property
    def frames_dropped(self) -> int:
        with self._lock:
            return self._frames_dropped

    def process_frame(self, frame: Frame, timestamp: float) -> Verdict | None:
        """Classify one frame and hand the sample to the gate.

        A classifier failure drops the frame and leaves the gate untouched.
        """
        try:
            sample = self._classifier.classify(frame.data)
        except Exception as exc:
            logger.warning("Image classification failed; dropping frame: %s", exc)
            return None
        logger.debug(
            "Classification: %r, confidence: %.3f", sample.label, sample.confidence
        )
        return self._gate.submit(sample, timestamp)

    def start(self) -> None:
        if self._producer is not None:
            raise RuntimeError("Scan session already started")
        self._producer = threading.Thread(
            target=self._produce, name="scan-frame-producer", daemon=True
        )
        self._consumer = threading.Thread(
            target=self._consume, name="scan-frame-consumer", daemon=True
        )
        self._consumer.start()
        self._producer.start()
        logger.info(
            "Scan session started frame_interval=%.2fs queue_size=%d",
            self._config.frame_interval,
            self._channel.maxsize,
        )

    def wait(self, timeout: float | None = None) -> Verdict | None:
        self._done.wait(timeout)
        return self._verdict

    def run(self, timeout: float | None = None) -> Verdict | None:
        """Start the session, block until a verdict or timeout, then stop."""
        effective = timeout if timeout is not None else self._config.timeout
        self.start()
        try:
            self.wait(effective)
        finally:
            self.stop()
        verdict = self._verdict
        if verdict is None:
            logger.info("Scan session ended without a verdict")
        return verdict

    def stop(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            self._stop_event.set()
        self._close_channel()
        current = threading.current_thread()
        for thread in (self._producer, self._consumer):
            if thread is not None and thread is not current and thread.is_alive():
                thread.join(timeout=max(2.0, self._config.frame_interval * 2))
        self._done.set()
        logger.debug(
            "Scan session stopped frames_dropped=%d stats=%s",
            self.frames_dropped,
            self._gate.stats,
        )

    def _produce(self) -> None:
        next_capture = self._clock()
        while not self._stop_event.is_set():
            remaining = next_capture - self._clock()
            if remaining > 0:
                self._stop_event.wait(remaining)
                continue
            captured_at = self._clock()
            next_capture = captured_at + self._config.frame_interval
            try:
                frame = self._camera.capture()
            except RuntimeError as exc:
                logger.warning("Frame capture failed: %s", exc)
                continue
            self._offer((captured_at, frame))

    def _offer(self, item: tuple[float, Frame]) -> None:
        # Keep only the most recent frames when the consumer falls behind.
        while not self._stop_event.is_set():
            try:
                self._channel.put_nowait(item)
                return
            except queue.Full:
                pass
            try:
                dropped = self._channel.get_nowait()
            except queue.Empty:
                continue
            if dropped is _CHANNEL_CLOSED:
                self._channel.put_nowait(dropped)
                return
            with self._lock:
                self._frames_dropped += 1

    def _close_channel(self) -> None:
        while True:
            try:
                self._channel.put_nowait(_CHANNEL_CLOSED)
                return
            except queue.Full:
                try:
                    self._channel.get_nowait()
                except queue.Empty:
                    pass

    def _consume(self) -> None:
        while True:
            try:
                item = self._channel.get(timeout=0.2)
            except queue.Empty:
                if self._stop_event.is_set():
                    break
                continue
            if item is _CHANNEL_CLOSED or self._stop_event.is_set():
                break
            timestamp, frame = item  # type: ignore[misc]
            verdict = self.process_frame(frame, timestamp)
            if verdict is None:
                continue
            with self._lock:
                # A verdict that lands after stop() belongs to a cancelled session.
                cancelled = self._stop_event.is_set()
                if not cancelled:
                    self._verdict = verdict
                    self._stop_event.set()
            if cancelled:
                logger.info("Discarding verdict produced after the session was stopped")
                break
            if self._on_verdict is not None:
                try:
                    self._on_verdict(verdict)
                except Exception:
                    logger.exception("Verdict callback failed")
            break
        self._done.set()


__all__ = ["ScanSession", "SessionConfig"]
