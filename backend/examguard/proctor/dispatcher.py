"""
Signal Dispatcher - routes session signals through the detection state machines
"""

import logging
from typing import List, Optional

from ..core.violations import ViolationType
from .capabilities import CELL_PHONE_LABEL, PROHIBITED_CLASSES
from .config import ProctorSettings
from .debouncer import ViolationDebouncer
from .drift import AttentionDriftEvaluator, DriftThresholds
from .signals import (
    AudioSample,
    BrowserEventKind,
    BrowserSignal,
    FrameObservation,
    Signal,
    Tick,
    ViolationEvent,
    classify_browser_signal,
)
from .voice import VoiceActivityDetector

logger = logging.getLogger(__name__)


class SignalDispatcher:
    """
    Single consumer of a session's signals.

    Raw detections from every source go through one shared debouncer, so each
    violation type yields at most one event per cooldown whatever its source.
    """

    def __init__(
        self,
        settings: Optional[ProctorSettings] = None,
        debouncer: Optional[ViolationDebouncer] = None,
    ):
        self.settings = settings or ProctorSettings()
        self.debouncer = debouncer or ViolationDebouncer(self.settings.cooldown_ms)
        self.drift = AttentionDriftEvaluator(DriftThresholds.from_settings(self.settings))
        self.voice = VoiceActivityDetector.from_settings(self.settings)
        self.blur_since_ms: Optional[float] = None

    def dispatch(self, signal: Signal) -> List[ViolationEvent]:
        events: List[ViolationEvent] = []

        if isinstance(signal, FrameObservation):
            self._on_frame(signal, events)
        elif isinstance(signal, AudioSample):
            if self.voice.update(signal.rms, signal.at_ms):
                self._raise(events, ViolationType.VOICE_DETECTED, signal.at_ms, confidence=1.0)
        elif isinstance(signal, BrowserSignal):
            self._on_browser(signal, events)
        elif not isinstance(signal, Tick):
            raise TypeError(f"Unsupported signal: {type(signal).__name__}")

        self._check_blur(signal.at_ms, events)
        return events

    def _on_frame(self, frame: FrameObservation, events: List[ViolationEvent]):
        for detection in frame.objects:
            if detection.label == CELL_PHONE_LABEL:
                if detection.score > self.settings.cell_phone_min_score:
                    self._raise(events, ViolationType.CELL_PHONE, frame.at_ms, detection.score, detection.label)
            elif detection.label in PROHIBITED_CLASSES and detection.score > self.settings.prohibited_object_min_score:
                self._raise(events, ViolationType.PROHIBITED_OBJECT, frame.at_ms, detection.score, detection.label)

        if frame.faces is None:
            self.drift.reset()
            return

        face_count = len(frame.faces)
        if face_count == 0:
            self._raise(events, ViolationType.NO_FACE, frame.at_ms, confidence=1.0)
        elif face_count > 1:
            self._raise(events, ViolationType.MULTIPLE_FACE, frame.at_ms, confidence=1.0)

        primary = frame.faces[0] if face_count else None
        if self.drift.update(primary, frame.width, frame.height, frame.at_ms):
            self._raise(events, ViolationType.ATTENTION_DRIFT, frame.at_ms, confidence=1.0)

    def _on_browser(self, signal: BrowserSignal, events: List[ViolationEvent]):
        if signal.kind == BrowserEventKind.WINDOW_BLUR:
            if self.blur_since_ms is None:
                self.blur_since_ms = signal.at_ms
            return
        if signal.kind == BrowserEventKind.WINDOW_FOCUS:
            self.blur_since_ms = None
            return

        violation_type = classify_browser_signal(signal)
        if violation_type is not None:
            self._raise(events, violation_type, signal.at_ms)

    def _check_blur(self, now_ms: float, events: List[ViolationEvent]):
        if self.blur_since_ms is None:
            return
        if now_ms - self.blur_since_ms >= self.settings.window_blur_grace_ms:
            # one event per blur, the next one needs a new blur
            self.blur_since_ms = None
            self._raise(events, ViolationType.WINDOW_BLUR, now_ms)

    def _raise(
        self,
        events: List[ViolationEvent],
        violation_type: ViolationType,
        at_ms: float,
        confidence: Optional[float] = None,
        label: Optional[str] = None,
    ):
        if self.debouncer.should_fire(violation_type, at_ms):
            events.append(ViolationEvent(type=violation_type, at_ms=at_ms, confidence=confidence, label=label))
        else:
            logger.debug(f"Suppressed {violation_type.value} within cooldown")

    def drift_countdown_ms(self, now_ms: float) -> Optional[float]:
        return self.drift.countdown_ms(now_ms)

    def reset(self):
        self.debouncer.reset()
        self.drift.reset()
        self.voice.reset()
        self.blur_since_ms = None
