"""
Proctoring agent - client-side violation detection for a single exam session.

Camera, microphone and browser signals go through the debouncer and the drift
and voice state machines; qualifying events are captured as evidence and
reported to the API on a best-effort basis.
"""

from .agent import ProctoringAgent
from .config import ProctorSettings
from .debouncer import ViolationDebouncer
from .dispatcher import SignalDispatcher
from .drift import AttentionDriftEvaluator, BoundingBox
from .reporter import BestEffortResult, ViolationReporter
from .voice import VoiceActivityDetector

__all__ = [
    "ProctoringAgent",
    "ProctorSettings",
    "ViolationDebouncer",
    "SignalDispatcher",
    "AttentionDriftEvaluator",
    "BoundingBox",
    "BestEffortResult",
    "ViolationReporter",
    "VoiceActivityDetector",
]
