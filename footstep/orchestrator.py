"""
Analysis orchestration.

Wires the decibel calculator, ambient tracker, event detector, spectrum
analyzer and classifier into a per-session pipeline and publishes the
resulting footstep events.

Buffers are processed either inline (default) or with the spectral and
classification stage handed to a single worker thread. In both modes the
cheap stage (decibels, ambient, detector) runs on the caller's thread and
events are emitted in buffer order.

Stopping a session discards work that has not been emitted yet: once
``stop()`` returns, no further events for that session are delivered.
"""
import queue
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, Callable, List, Iterable

import numpy as np

from logger import get_logger
from .audio import AudioBuffer
from .classifier import (
    Classifier,
    ClassificationStatus,
    EventMark,
    Classification,
    create_classifier,
)
from .decibels import DecibelCalculator
from .detector import EventDetector, CandidateEvent
from .settings import AnalysisContext, SensitivityConfig
from .spectrum import SpectrumAnalyzer

log = get_logger(__name__)

EventCallback = Callable[["FootstepEvent"], None]


class AnalysisState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"


class Disposition(str, Enum):
    """What happened to a buffer passed to ``process_buffer``."""
    IDLE = "idle"
    INVALID_BUFFER = "invalid_buffer"
    NO_CANDIDATE = "no_candidate"
    BELOW_THRESHOLD = "below_threshold"
    ECHO = "echo"
    UNKNOWN = "unknown"
    EMITTED = "emitted"
    QUEUED = "queued"
    DISCARDED = "discarded"


_STATUS_DISPOSITIONS = {
    ClassificationStatus.INVALID_BUFFER: Disposition.INVALID_BUFFER,
    ClassificationStatus.BELOW_THRESHOLD: Disposition.BELOW_THRESHOLD,
    ClassificationStatus.ECHO: Disposition.ECHO,
}


@dataclass(frozen=True)
class FootstepEvent:
    """A classified footstep, as handed to persistence and UI consumers."""
    session_id: str
    timestamp: float  # Seconds since session start
    classification: Classification
    buffer: Optional[AudioBuffer] = None


@dataclass(frozen=True)
class AnalysisOutcome:
    disposition: Disposition
    event: Optional[FootstepEvent] = None


@dataclass
class SessionAnalysisState:
    """Cross-buffer history for one session."""
    session_id: str
    last_confirmed_event: Optional[EventMark] = None
    last_loud_event: Optional[EventMark] = None


@dataclass(frozen=True)
class _ClassificationJob:
    generation: int
    candidate: CandidateEvent
    ambient_level: float
    sensitivity: SensitivityConfig


_STOP = object()


class EventStream:
    """
    Ordered iterator over the events of one session.

    Iteration blocks until the next event arrives and ends when the session
    stops or the stream is closed.
    """

    def __init__(self):
        self._queue = queue.Queue()
        self._closed = False

    def _put(self, event: FootstepEvent) -> None:
        if not self._closed:
            self._queue.put(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put(_STOP)

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self):
        return self

    def __next__(self) -> FootstepEvent:
        item = self._queue.get()
        if item is _STOP:
            # Keep the sentinel so later calls stop too
            self._queue.put(_STOP)
            raise StopIteration
        return item

    def drain(self) -> List[FootstepEvent]:
        """Return events already delivered, without blocking."""
        events = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return events
            if item is _STOP:
                self._queue.put(_STOP)
                return events
            events.append(item)


class AnalysisOrchestrator:
    """
    Runs buffers of one session through the detection pipeline.

    Single Responsibility: Session lifecycle, cross-buffer state and event
    delivery. The signal processing lives in the components it is given.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        context: Optional[AnalysisContext] = None,
        classifier: Optional[Classifier] = None,
        detector: Optional[EventDetector] = None,
        background: Optional[bool] = None,
        keep_clips: Optional[bool] = None
    ):
        """
        Initialize orchestrator.

        Args:
            config: Configuration dictionary (defaults used when None)
            context: Ambient tracker and sensitivity settings to use
            classifier: Classifier implementation (heuristic by default)
            detector: Event detector (built from config by default)
            background: Run classification on a worker thread
            keep_clips: Attach the originating buffer to emitted events
        """
        self.config = config or {}
        analysis_cfg = self.config.get("analysis", {})

        self.context = context or AnalysisContext.from_config(self.config)
        self.decibels = DecibelCalculator(self.config)
        self.classifier = classifier or create_classifier(self.config)
        self.detector = detector or EventDetector(
            self.config, self.context.sensitivity.detection_threshold
        )
        self.background = analysis_cfg.get("background", False) if background is None else background
        self.keep_clips = analysis_cfg.get("keep_clips", False) if keep_clips is None else keep_clips

        self._analyzers: Dict[float, SpectrumAnalyzer] = {}
        self._listeners: List[EventCallback] = []
        self._streams: List[EventStream] = []

        self._lock = threading.RLock()
        self._state = AnalysisState.IDLE
        self._generation = 0
        self._session: Optional[SessionAnalysisState] = None
        self._queue: Optional[queue.Queue] = None
        self._worker: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> AnalysisState:
        return self._state

    @property
    def is_analyzing(self) -> bool:
        return self._state is AnalysisState.ANALYZING

    @property
    def session_id(self) -> Optional[str]:
        session = self._session
        return session.session_id if session else None

    @property
    def session_state(self) -> Optional[SessionAnalysisState]:
        return self._session

    def start(self, session_id: Optional[str] = None, initial_ambient_level: Optional[float] = None) -> str:
        """
        Start analyzing a session.

        Calling start while a session is running does nothing and returns the
        running session's id.

        Args:
            session_id: Identifier attached to emitted events (generated if None)
            initial_ambient_level: Pre-calibrate the ambient tracker to this dB level
        """
        with self._lock:
            if self._state is AnalysisState.ANALYZING:
                return self._session.session_id

            self.detector.reset()
            self.context.reset_ambient()
            if initial_ambient_level is not None:
                self.context.ambient.prime(initial_ambient_level)

            self._generation += 1
            self._session = SessionAnalysisState(session_id or uuid.uuid4().hex)
            self._state = AnalysisState.ANALYZING

            if self.background:
                self._queue = queue.Queue()
                self._worker = threading.Thread(
                    target=self._worker_loop,
                    args=(self._queue,),
                    name=f"footstep-classifier-{self._session.session_id[:8]}",
                    daemon=True,
                )
                self._worker.start()

            log.info(f"Analysis started for session {self._session.session_id}")
            return self._session.session_id

    def stop(self) -> None:
        """
        Stop the running session.

        Safe to call at any time and from any thread. Queued buffers are
        dropped and a classification in progress is not emitted.
        """
        with self._lock:
            if self._state is AnalysisState.IDLE:
                return

            session_id = self._session.session_id
            self._state = AnalysisState.IDLE
            self._generation += 1
            self._session = None

            worker, work_queue = self._worker, self._queue
            self._worker = None
            self._queue = None

            streams = self._streams
            self._streams = []

        for stream in streams:
            stream.close()

        if worker is not None:
            dropped = 0
            while True:
                try:
                    work_queue.get_nowait()
                except queue.Empty:
                    break
                work_queue.task_done()
                dropped += 1
            if dropped:
                log.debug(f"Discarded {dropped} queued buffer(s) at stop")
            work_queue.put(_STOP)
            if worker is not threading.current_thread():
                worker.join()

        log.info(f"Analysis stopped for session {session_id}")

    def flush(self) -> None:
        """Block until every queued buffer has been classified (background mode)."""
        work_queue = self._queue
        if work_queue is not None:
            work_queue.join()

    # ------------------------------------------------------------------
    # Buffer processing
    # ------------------------------------------------------------------

    def process_buffer(self, buffer: AudioBuffer, timestamp: Optional[float] = None) -> AnalysisOutcome:
        """
        Feed one buffer through the pipeline.

        Args:
            buffer: Mono audio buffer
            timestamp: Seconds since session start (defaults to buffer.timestamp)

        Returns:
            AnalysisOutcome describing what happened to the buffer. In
            background mode candidates report QUEUED and their events arrive
            through subscribers and streams.
        """
        with self._lock:
            if self._state is not AnalysisState.ANALYZING:
                return AnalysisOutcome(Disposition.IDLE)
            generation = self._generation
            work_queue = self._queue

        if buffer is None or buffer.frame_count == 0:
            return AnalysisOutcome(Disposition.INVALID_BUFFER)
        if not (np.isfinite(buffer.sample_rate) and buffer.sample_rate > 0):
            return AnalysisOutcome(Disposition.INVALID_BUFFER)

        if timestamp is None:
            timestamp = buffer.timestamp

        sensitivity = self.context.sensitivity.snapshot()

        decibel_level = self.decibels.calculate_decibels_spl(buffer.samples, sensitivity.calibration_db)

        # Ambient and detector updates must belong to the generation read
        # above, otherwise a restart would inherit this buffer.
        with self._lock:
            if generation != self._generation:
                return AnalysisOutcome(Disposition.DISCARDED)
            self.context.ambient.add_reading(decibel_level)
            self.detector.set_detection_threshold(sensitivity.detection_threshold)
            candidate = self.detector.process_buffer(buffer, timestamp)
            ambient_level = self.context.ambient.ambient_level

        if candidate is None:
            return AnalysisOutcome(Disposition.NO_CANDIDATE)

        job = _ClassificationJob(
            generation=generation,
            candidate=candidate,
            ambient_level=ambient_level,
            sensitivity=sensitivity,
        )

        if work_queue is not None:
            work_queue.put(job)
            return AnalysisOutcome(Disposition.QUEUED)

        return self._run_job(job)

    def analyze(
        self,
        buffers: Iterable[AudioBuffer],
        session_id: Optional[str] = None,
        initial_ambient_level: Optional[float] = None
    ) -> List[FootstepEvent]:
        """
        Replay a finite sequence of buffers as one complete session.

        Returns:
            Emitted events in order
        """
        if self.is_analyzing:
            raise RuntimeError("A session is already being analyzed")

        events: List[FootstepEvent] = []
        unsubscribe = self.subscribe(events.append)
        try:
            self.start(session_id, initial_ambient_level=initial_ambient_level)
            for buffer in buffers:
                self.process_buffer(buffer)
            self.flush()
        finally:
            self.stop()
            unsubscribe()
        return events

    def _analyzer_for(self, sample_rate: float) -> SpectrumAnalyzer:
        analyzer = self._analyzers.get(sample_rate)
        if analyzer is None:
            analyzer = SpectrumAnalyzer.from_config(self.config, sample_rate=sample_rate)
            self._analyzers[sample_rate] = analyzer
        return analyzer

    def _run_job(self, job: _ClassificationJob) -> AnalysisOutcome:
        with self._lock:
            if job.generation != self._generation or self._session is None:
                return AnalysisOutcome(Disposition.DISCARDED)
            session = self._session
            last_confirmed = session.last_confirmed_event
            last_loud = session.last_loud_event

        candidate = job.candidate
        spectrum = self._analyzer_for(candidate.buffer.sample_rate).analyze(candidate.buffer)

        outcome = self.classifier.evaluate(
            candidate,
            spectrum,
            job.ambient_level,
            job.sensitivity,
            last_confirmed=last_confirmed,
            last_loud=last_loud,
            now=candidate.timestamp,
        )

        if outcome.status is not ClassificationStatus.CLASSIFIED or outcome.classification is None:
            return AnalysisOutcome(_STATUS_DISPOSITIONS.get(outcome.status, Disposition.INVALID_BUFFER))

        classification = outcome.classification
        if not classification.is_footstep:
            return AnalysisOutcome(Disposition.UNKNOWN)

        event = FootstepEvent(
            session_id=session.session_id,
            timestamp=candidate.timestamp,
            classification=classification,
            buffer=candidate.buffer if self.keep_clips else None,
        )

        with self._lock:
            if job.generation != self._generation:
                return AnalysisOutcome(Disposition.DISCARDED)
            mark = EventMark(candidate.timestamp, classification.decibel_level)
            session.last_confirmed_event = mark
            session.last_loud_event = mark
            self._emit_locked(event)

        log.debug(
            f"{classification.type.display_name} at {event.timestamp:.2f}s "
            f"({classification.decibel_level:.1f} dB, {classification.dominant_frequency:.0f} Hz, "
            f"conf {classification.confidence:.2f})"
        )
        return AnalysisOutcome(Disposition.EMITTED, event)

    def _worker_loop(self, work_queue: queue.Queue) -> None:
        while True:
            job = work_queue.get()
            try:
                if job is _STOP:
                    return
                self._run_job(job)
            except Exception:
                log.exception("Unexpected error while classifying buffer")
            finally:
                work_queue.task_done()

    # ------------------------------------------------------------------
    # Event delivery
    # ------------------------------------------------------------------

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """
        Register a callback for emitted events.

        Callbacks run on the thread that classifies (the caller's thread, or
        the worker in background mode) and must not block for long.

        Returns:
            Function that removes the callback
        """
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def open_stream(self) -> EventStream:
        """
        Open an iterator over the running session's events.

        Raises:
            RuntimeError: If no session is running
        """
        with self._lock:
            if self._state is not AnalysisState.ANALYZING:
                raise RuntimeError("Analysis not started")
            stream = EventStream()
            self._streams.append(stream)
            return stream

    def _emit_locked(self, event: FootstepEvent) -> None:
        for stream in self._streams:
            stream._put(event)
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception:
                log.exception("Event listener failed")

    # ------------------------------------------------------------------
    # Configuration surface
    # ------------------------------------------------------------------

    def set_sensitivity_offset(self, db: float) -> float:
        return self.context.sensitivity.set_sensitivity_offset(db)

    def set_calibration_offset(self, db: float) -> float:
        return self.context.sensitivity.set_calibration_offset(db)

    def set_sensitivity(self, sensitivity: float) -> float:
        return self.context.sensitivity.set_sensitivity(sensitivity)

    def reset_ambient(self) -> None:
        self.context.reset_ambient()

    def reset_sensitivity(self) -> None:
        self.context.reset_sensitivity()

    def reset_calibration(self) -> None:
        self.context.sensitivity.reset_calibration()

    def reset_all(self) -> None:
        """Restore sensitivity and calibration defaults and forget the ambient level."""
        self.context.sensitivity.reset_all()
        self.context.reset_ambient()

    @property
    def sensitivity_label(self) -> str:
        return self.context.sensitivity.sensitivity_label

    @property
    def ambient_state(self):
        return self.context.ambient.snapshot()
