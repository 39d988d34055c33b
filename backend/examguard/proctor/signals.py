"""
Inbound signals of a proctoring session.

Camera, microphone and browser producers all publish into one channel; the
dispatcher consumes these tagged records in arrival order.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Union

from ..core.violations import ViolationType
from .drift import BoundingBox


@dataclass(frozen=True)
class Detection:
    """One object classifier hit, labels use the COCO class names"""
    label: str
    score: float
    box: BoundingBox


@dataclass(frozen=True)
class FrameObservation:
    width: int
    height: int
    at_ms: float
    objects: Sequence[Detection] = ()
    # None when no face locator is available
    faces: Optional[Sequence[BoundingBox]] = None


@dataclass(frozen=True)
class AudioSample:
    rms: float
    at_ms: float


class BrowserEventKind(str, Enum):
    KEYDOWN = "keydown"
    COPY = "copy"
    CUT = "cut"
    PASTE = "paste"
    CONTEXT_MENU = "contextmenu"
    VISIBILITY_HIDDEN = "visibilityHidden"
    VISIBILITY_VISIBLE = "visibilityVisible"
    FULLSCREEN_EXIT = "fullscreenExit"
    WINDOW_BLUR = "blur"
    WINDOW_FOCUS = "focus"


@dataclass(frozen=True)
class BrowserSignal:
    kind: BrowserEventKind
    at_ms: float
    key: Optional[str] = None
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    alt: bool = False


@dataclass(frozen=True)
class Tick:
    """Clock pulse, lets time-based rules fire without new input"""
    at_ms: float


Signal = Union[FrameObservation, AudioSample, BrowserSignal, Tick]


@dataclass
class ViolationEvent:
    type: ViolationType
    at_ms: float
    confidence: Optional[float] = None
    label: Optional[str] = None
    evidence_ref: Optional[str] = field(default=None, compare=False)


# the keyboard shortcuts the exam page blocks
SCREENSHOT_KEYS = {"3", "4", "5"}
CLIPBOARD_KEYS = {"c", "v", "a", "x", "z", "s"}
OS_KEYS = {"Meta", "OS"}


def classify_key(signal: BrowserSignal) -> Optional[ViolationType]:
    key = signal.key or ""

    # screenshot shortcuts win over the Cmd+S clipboard rule
    if key == "PrintScreen":
        return ViolationType.PRINT_SCREEN
    if signal.meta and signal.shift and (key in SCREENSHOT_KEYS or key == "S"):
        return ViolationType.PRINT_SCREEN

    if signal.ctrl and key in CLIPBOARD_KEYS:
        return ViolationType.COPY_PASTE
    if signal.meta and not signal.shift and key.lower() in CLIPBOARD_KEYS and len(key) == 1:
        return ViolationType.COPY_PASTE

    if key == "F12":
        return ViolationType.DEV_TOOLS

    if signal.alt and key == "Tab":
        return ViolationType.APPLICATION_SWITCH
    if key in OS_KEYS:
        return ViolationType.APPLICATION_SWITCH
    return None


def classify_browser_signal(signal: BrowserSignal) -> Optional[ViolationType]:
    """
    Map an immediate browser event to a violation type.

    Window blur is not immediate; it only counts once the window has stayed
    unfocused for the grace period, which the dispatcher tracks.
    """
    if signal.kind == BrowserEventKind.KEYDOWN:
        return classify_key(signal)
    if signal.kind in (BrowserEventKind.COPY, BrowserEventKind.CUT, BrowserEventKind.PASTE):
        return ViolationType.COPY_PASTE
    if signal.kind == BrowserEventKind.CONTEXT_MENU:
        return ViolationType.RIGHT_CLICK
    if signal.kind == BrowserEventKind.VISIBILITY_HIDDEN:
        return ViolationType.TAB_SWITCH
    if signal.kind == BrowserEventKind.FULLSCREEN_EXIT:
        return ViolationType.FULL_SCREEN_EXIT
    return None
