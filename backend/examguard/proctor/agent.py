"""
Proctoring Agent - runs one proctored exam session on the client.

Independent asyncio loops feed the dispatcher:

- frame loop (~500 ms): camera read plus inference in a worker thread; a tick
  is skipped while the previous inference is still running
- audio loop (~20 ms): microphone RMS into the voice detector
- browser loop: drains the queue of browser signals
- clock loop: time-based rules such as the window blur grace
- autosave loop (~15 s): pushes pending deltas to the API

Evidence capture and reports run as background tasks; their failures are
logged and never reach the loops.
"""

import asyncio
import logging
import time
import uuid
from typing import Callable, Dict, List, Optional, Sequence, Set

import httpx

from .capabilities import (
    FaceLocator,
    FrameSource,
    MicrophoneSampler,
    ObjectClassifier,
    close_quietly,
    open_capability,
    select_face_locator,
)
from .config import ProctorSettings
from .dispatcher import SignalDispatcher
from .evidence import EvidenceCapture, annotate_frame, browser_violation_card
from .logging_utils import log_session_start, log_session_end, log_suppressed_failure, log_violation
from .reporter import BestEffortResult, ViolationReporter
from .signals import AudioSample, BrowserSignal, FrameObservation, Signal, Tick, ViolationEvent
from .voice import frame_rms

logger = logging.getLogger(__name__)

CLOCK_INTERVAL_SECONDS = 0.25


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class ProctoringAgent:
    def __init__(
        self,
        exam_id: str,
        email: str,
        username: str,
        settings: Optional[ProctorSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        camera_factory: Optional[Callable[[], FrameSource]] = None,
        object_classifier_factory: Optional[Callable[[], ObjectClassifier]] = None,
        face_model_factory: Optional[Callable[[], FaceLocator]] = None,
        microphone_factory: Optional[Callable[[], MicrophoneSampler]] = None,
        clock: Callable[[], float] = monotonic_ms,
        session_id: Optional[str] = None,
    ):
        self.id = session_id or f"EXM_{uuid.uuid4().hex[:6].upper()}"
        self.exam_id = exam_id
        self.email = email
        self.username = username
        self.settings = settings or ProctorSettings()
        self.clock = clock

        self._owns_client = client is None
        self.client = client or self._build_client()

        self._camera_factory = camera_factory
        self._object_classifier_factory = object_classifier_factory
        self._face_model_factory = face_model_factory
        self._microphone_factory = microphone_factory

        self.camera: Optional[FrameSource] = None
        self.object_classifier: Optional[ObjectClassifier] = None
        self.face_locator: Optional[FaceLocator] = None
        self.microphone: Optional[MicrophoneSampler] = None

        self.dispatcher = SignalDispatcher(self.settings)
        self.reporter = ViolationReporter(self.client, exam_id, email, username)
        self.evidence = EvidenceCapture(self.client, self.settings.upload_url, self.settings.jpeg_quality)

        self.browser_signals: asyncio.Queue = asyncio.Queue()
        self.results: List[BestEffortResult] = []

        self._stop_event = asyncio.Event()
        self._background: Set[asyncio.Task] = set()
        self._inference_in_flight = False
        self._last_frame = None
        self._last_observation: Optional[FrameObservation] = None

    def _build_client(self) -> httpx.AsyncClient:
        headers = {}
        if self.settings.access_token:
            headers["Authorization"] = f"Bearer {self.settings.access_token}"
        return httpx.AsyncClient(
            base_url=self.settings.api_base_url,
            headers=headers,
            timeout=self.settings.request_timeout_seconds,
        )

    # capabilities

    def open_capabilities(self):
        self.camera = open_capability("camera", self._camera_factory)
        self.object_classifier = open_capability("object classifier", self._object_classifier_factory)
        self.face_locator = select_face_locator(
            self._face_model_factory,
            object_classifier_available=self.object_classifier is not None,
        )
        self.microphone = open_capability("microphone", self._microphone_factory)

    def capability_status(self) -> Dict[str, str]:
        return {
            "camera": "ready" if self.camera else "unavailable",
            "objects": "ready" if self.object_classifier else "unavailable",
            "faces": self.face_locator.variant if self.face_locator else "unavailable",
            "microphone": "ready" if self.microphone else "unavailable",
        }

    def close_capabilities(self):
        for provider in (self.camera, self.object_classifier, self.face_locator, self.microphone):
            close_quietly(provider)

    # session lifecycle

    async def run(self):
        """Run until stop() is called or the task is cancelled"""
        loops: List[asyncio.Task] = []
        try:
            self.open_capabilities()
            log_session_start(self.id, self.exam_id, self.email, self.capability_status())

            if self.camera is not None and self.object_classifier is not None:
                loops.append(asyncio.create_task(self._frame_loop()))
            else:
                logger.warning("Object detection unavailable, camera checks disabled for this session")
            if self.microphone is not None:
                loops.append(asyncio.create_task(self._audio_loop()))
            loops.append(asyncio.create_task(self._browser_loop()))
            loops.append(asyncio.create_task(self._clock_loop()))
            loops.append(asyncio.create_task(self._autosave_loop()))

            await self._stop_event.wait()
        finally:
            for task in loops:
                task.cancel()
            await asyncio.gather(*loops, return_exceptions=True)
            try:
                await self._drain_background()
                if self.reporter.pending or self.reporter.pending_evidence:
                    self.results.append(await self.reporter.autosave())
            finally:
                self.close_capabilities()
                if self._owns_client:
                    await self.client.aclose()
                log_session_end(self.id, self.reporter.counts())

    def stop(self):
        self._stop_event.set()

    def submit_browser_signal(self, signal: BrowserSignal):
        self.browser_signals.put_nowait(signal)

    async def _drain_background(self):
        if not self._background:
            return
        pending = list(self._background)
        done, not_done = await asyncio.wait(pending, timeout=self.settings.request_timeout_seconds)
        for task in not_done:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # loops

    async def _frame_loop(self):
        while True:
            if self._inference_in_flight:
                logger.debug("Inference still running, frame tick skipped")
            else:
                self._inference_in_flight = True
                self._spawn(self._run_inference())
            await asyncio.sleep(self.settings.frame_interval_seconds)

    async def _run_inference(self):
        try:
            result = await asyncio.to_thread(self._observe_frame)
            if result is None:
                return
            frame, observation = result
            self._last_frame = frame
            self._last_observation = observation
            self._handle(observation)
        except Exception as e:
            logger.error(f"Error during detection, tick dropped: {e}")
        finally:
            self._inference_in_flight = False

    def _observe_frame(self):
        """Worker thread: camera read, object detection, face location"""
        frame = self.camera.read()
        if frame is None:
            return None
        objects = self.object_classifier.detect(frame)
        try:
            faces = self.face_locator.locate(frame, objects)
        except Exception as e:
            logger.error(f"Face detection error: {e}")
            faces = None
        height, width = frame.shape[:2]
        return frame, FrameObservation(
            width=width,
            height=height,
            at_ms=self.clock(),
            objects=tuple(objects),
            faces=None if faces is None else tuple(faces),
        )

    async def _audio_loop(self):
        while True:
            try:
                pcm = self.microphone.read()
                if pcm is not None:
                    self._handle(AudioSample(rms=frame_rms(pcm), at_ms=self.clock()))
            except Exception as e:
                logger.warning(f"Audio sample dropped: {e}")
            await asyncio.sleep(self.settings.audio_interval_seconds)

    async def _browser_loop(self):
        while True:
            signal = await self.browser_signals.get()
            try:
                self._handle(signal)
            finally:
                self.browser_signals.task_done()

    async def _clock_loop(self):
        while True:
            await asyncio.sleep(CLOCK_INTERVAL_SECONDS)
            self._handle(Tick(at_ms=self.clock()))

    async def _autosave_loop(self):
        while True:
            await asyncio.sleep(self.settings.autosave_interval_seconds)
            result = await self.reporter.autosave()
            self.results.append(result)
            if not result.ok:
                log_suppressed_failure(self.id, "autosave", result.error)

    # violations

    def _handle(self, signal: Signal) -> List[ViolationEvent]:
        events = self.dispatcher.dispatch(signal)
        for event in events:
            log_violation(self.id, event.type.value, event.confidence)
            self._spawn(self._report(event))
        return events

    async def _report(self, event: ViolationEvent) -> BestEffortResult:
        evidence = None
        try:
            image = await asyncio.to_thread(self._evidence_image, event)
            if image is not None:
                evidence = await self.evidence.capture(event, image)
        except Exception as e:
            log_suppressed_failure(self.id, "evidence", str(e))

        result = await self.reporter.report(event.type, evidence)
        self.results.append(result)
        if not result.ok:
            log_suppressed_failure(self.id, "report", result.error)
        return result

    def _evidence_image(self, event: ViolationEvent):
        if not event.type.is_camera_sourced:
            return browser_violation_card(event, self.username)
        if self._last_frame is None:
            return None
        observation = self._last_observation
        objects: Sequence = observation.objects if observation else ()
        face = None
        if observation and observation.faces and self.face_locator.variant == "precise":
            face = observation.faces[0]
        return annotate_frame(self._last_frame, event, objects, face)

    def status(self) -> Dict[str, object]:
        """Snapshot for an on-screen indicator"""
        now = self.clock()
        return {
            "sessionId": self.id,
            "capabilities": self.capability_status(),
            "counts": self.reporter.counts(),
            "driftCountdownMs": self.dispatcher.drift_countdown_ms(now),
            "micLevel": self.dispatcher.voice.level,
        }
