"""
Capability providers - camera, object classifier, face locator, microphone.

Each provider is independently failable. Models and devices are supplied by the
host application through factories; a factory that raises is logged and the
next variant is used.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np

from .drift import BoundingBox
from .signals import Detection

logger = logging.getLogger(__name__)

PERSON_LABEL = "person"
CELL_PHONE_LABEL = "cell phone"

PROHIBITED_CLASSES = frozenset({
    "cell phone", "laptop", "mouse", "remote", "keyboard", "tv", "microwave",
    "oven", "toaster", "book", "scissors", "bottle", "cup", "apple", "banana",
    "orange", "sandwich", "pizza", "donut", "cake", "backpack", "handbag",
    "suitcase", "umbrella", "tie", "clock", "vase", "teddy bear", "hair drier",
    "toothbrush",
})


class CapabilityUnavailable(RuntimeError):
    """A device or model could not be opened"""


class CapabilityProvider(ABC):
    name = "capability"

    def close(self):
        """Release the device or model; safe to call more than once"""


class FrameSource(CapabilityProvider):
    name = "camera"

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Latest RGB frame (H x W x 3, uint8), None if not ready"""


class ObjectClassifier(CapabilityProvider):
    name = "object-classifier"

    @abstractmethod
    def detect(self, frame: np.ndarray) -> List[Detection]:
        ...


class MicrophoneSampler(CapabilityProvider):
    name = "microphone"

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Most recent PCM window, uint8 centered at 128 or float in [-1, 1]"""


class FaceLocator(CapabilityProvider):
    """
    Face location interface.

    ``locate`` returns the face boxes of a frame, or None when faces cannot be
    located at all. The object detections of the same frame are passed in so
    that coarse variants can reuse them.
    """
    name = "face-locator"
    variant = "abstract"

    @abstractmethod
    def locate(self, frame: np.ndarray, objects: Sequence[Detection]) -> Optional[List[BoundingBox]]:
        ...


class ModelFaceLocator(FaceLocator):
    """Precise face detector backed by a model callable"""
    variant = "precise"

    def __init__(self, model: Callable[[np.ndarray], Iterable[BoundingBox]], on_close: Optional[Callable[[], None]] = None):
        self.model = model
        self._on_close = on_close

    def locate(self, frame, objects):
        return list(self.model(frame))

    def close(self):
        if self._on_close is not None:
            on_close, self._on_close = self._on_close, None
            on_close()


class PersonFallbackLocator(FaceLocator):
    """Uses the classifier's person boxes as a coarse stand-in for faces"""
    variant = "coarse"

    def locate(self, frame, objects):
        return [d.box for d in objects if d.label == PERSON_LABEL]


class UnavailableFaceLocator(FaceLocator):
    variant = "unavailable"

    def locate(self, frame, objects):
        return None


def open_capability(name: str, factory: Optional[Callable[[], CapabilityProvider]]) -> Optional[CapabilityProvider]:
    """Run a provider factory, None if it is missing or fails"""
    if factory is None:
        return None
    try:
        return factory()
    except Exception as e:
        logger.warning(f"{name} unavailable: {e}")
        return None


def select_face_locator(
    model_factory: Optional[Callable[[], FaceLocator]] = None,
    object_classifier_available: bool = True,
) -> FaceLocator:
    """precise detector -> person fallback -> unavailable"""
    locator = open_capability("face detector", model_factory)
    if locator is not None:
        return locator
    if object_classifier_available:
        logger.info("Face detector unavailable, falling back to person counts")
        return PersonFallbackLocator()
    return UnavailableFaceLocator()


def close_quietly(provider: Optional[CapabilityProvider]):
    if provider is None:
        return
    try:
        provider.close()
    except Exception as e:
        logger.warning(f"Error closing {provider.name}: {e}")
