"""
Attention Drift Evaluator - geometric "looking away" check with a dwell timer
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class BoundingBox:
    """Pixel box, (x, y) is the top-left corner"""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class DriftThresholds:
    center_x: tuple = (0.28, 0.72)
    center_y: tuple = (0.22, 0.78)
    edge_x: tuple = (0.25, 0.75)
    edge_y: tuple = (0.20, 0.80)
    min_area_fraction: float = 0.035
    sideways_aspect_ratio: float = 0.7
    severe_dwell_ms: float = 400.0
    off_center_dwell_ms: float = 800.0

    @classmethod
    def from_settings(cls, settings) -> "DriftThresholds":
        return cls(
            center_x=(settings.center_x_min, settings.center_x_max),
            center_y=(settings.center_y_min, settings.center_y_max),
            edge_x=(settings.edge_x_min, settings.edge_x_max),
            edge_y=(settings.edge_y_min, settings.edge_y_max),
            min_area_fraction=settings.min_area_fraction,
            sideways_aspect_ratio=settings.sideways_aspect_ratio,
            severe_dwell_ms=settings.severe_drift_dwell_ms,
            off_center_dwell_ms=settings.off_center_dwell_ms,
        )


@dataclass(frozen=True)
class DriftGeometry:
    nx: float
    ny: float
    area_fraction: float
    in_center: bool
    near_edge: bool
    too_small: bool
    sideways: bool

    @property
    def drifting(self) -> bool:
        return not self.in_center or self.near_edge or self.too_small or self.sideways

    @property
    def severe(self) -> bool:
        return self.near_edge or self.too_small or self.sideways


def classify_box(
    box: BoundingBox,
    frame_width: float,
    frame_height: float,
    thresholds: DriftThresholds = DriftThresholds(),
) -> DriftGeometry:
    width = max(1.0, box.width)
    height = max(1.0, box.height)
    frame_width = max(1.0, frame_width)
    frame_height = max(1.0, frame_height)

    nx = (box.x + width / 2) / frame_width
    ny = (box.y + height / 2) / frame_height
    area_fraction = (width * height) / (frame_width * frame_height)

    in_center = (
        thresholds.center_x[0] < nx < thresholds.center_x[1]
        and thresholds.center_y[0] < ny < thresholds.center_y[1]
    )
    near_edge = (
        nx < thresholds.edge_x[0] or nx > thresholds.edge_x[1]
        or ny < thresholds.edge_y[0] or ny > thresholds.edge_y[1]
    )
    return DriftGeometry(
        nx=nx,
        ny=ny,
        area_fraction=area_fraction,
        in_center=in_center,
        near_edge=near_edge,
        too_small=area_fraction < thresholds.min_area_fraction,
        sideways=width / height < thresholds.sideways_aspect_ratio,
    )


class DriftState(str, Enum):
    CENTERED = "centered"
    DRIFTING = "drifting"


class AttentionDriftEvaluator:
    """
    CENTERED -> DRIFTING(since) state machine.

    ``update`` returns True exactly once per sustained drift: when the drift
    condition has held for the required dwell. A tick without a box counts as
    centered; missing and extra faces are reported by other rules.
    """

    def __init__(self, thresholds: Optional[DriftThresholds] = None):
        self.thresholds = thresholds or DriftThresholds()
        self.state = DriftState.CENTERED
        self.since_ms: Optional[float] = None
        self.required_dwell_ms: Optional[float] = None

    def update(
        self,
        box: Optional[BoundingBox],
        frame_width: float,
        frame_height: float,
        now_ms: float,
    ) -> bool:
        if box is None:
            self.reset()
            return False

        geometry = classify_box(box, frame_width, frame_height, self.thresholds)
        if not geometry.drifting:
            self.reset()
            return False

        if self.state == DriftState.CENTERED:
            self.state = DriftState.DRIFTING
            self.since_ms = now_ms

        # the dwell follows the current reason, a box can turn severe mid-drift
        self.required_dwell_ms = (
            self.thresholds.severe_dwell_ms if geometry.severe
            else self.thresholds.off_center_dwell_ms
        )

        if now_ms - self.since_ms >= self.required_dwell_ms:
            self.reset()
            return True
        return False

    def countdown_ms(self, now_ms: float) -> Optional[float]:
        """Remaining dwell before a drift fires, None while centered"""
        if self.state != DriftState.DRIFTING:
            return None
        return max(0.0, self.required_dwell_ms - (now_ms - self.since_ms))

    def reset(self):
        self.state = DriftState.CENTERED
        self.since_ms = None
        self.required_dwell_ms = None
