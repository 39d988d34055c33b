"""
Voice Activity Detector - adaptive baseline energy detector with a leaky integrator
"""

from typing import Optional

import numpy as np


def frame_rms(frame) -> float:
    """
    RMS energy of a PCM frame.

    Unsigned 8-bit samples are centered at 128 and scaled to [-1, 1]; float
    samples are taken as already normalized.
    """
    samples = np.asarray(frame)
    if samples.size == 0:
        return 0.0
    if samples.dtype == np.uint8:
        samples = (samples.astype(np.float64) - 128.0) / 128.0
    else:
        samples = samples.astype(np.float64)
    return float(np.sqrt(np.mean(samples * samples)))


def level_meter(rms: float) -> int:
    return min(100, int(round(rms * 400)))


class VoiceActivityDetector:
    def __init__(
        self,
        baseline_decay: float = 0.98,
        threshold_ratio: float = 1.2,
        threshold_floor: float = 0.006,
        decay_ratio: float = 0.6,
        sustain_ms: float = 800.0,
        max_tick_ms: float = 100.0,
    ):
        self.baseline_decay = baseline_decay
        self.threshold_ratio = threshold_ratio
        self.threshold_floor = threshold_floor
        self.decay_ratio = decay_ratio
        self.sustain_ms = sustain_ms
        self.max_tick_ms = max_tick_ms

        self.baseline: Optional[float] = None
        self.active_accum_ms = 0.0
        self.last_tick_ms: Optional[float] = None
        self.level = 0

    @classmethod
    def from_settings(cls, settings) -> "VoiceActivityDetector":
        return cls(
            baseline_decay=settings.voice_baseline_decay,
            threshold_ratio=settings.voice_threshold_ratio,
            threshold_floor=settings.voice_threshold_floor,
            decay_ratio=settings.voice_decay_ratio,
            sustain_ms=settings.voice_sustain_ms,
            max_tick_ms=settings.voice_max_tick_ms,
        )

    @property
    def threshold(self) -> float:
        baseline = self.baseline if self.baseline is not None else 0.0
        return max(self.threshold_ratio * baseline, self.threshold_floor)

    def update(self, rms: float, now_ms: float) -> bool:
        """Feed one sample; True when sustained speech has just been detected"""
        if self.last_tick_ms is None:
            dt = 0.0
        else:
            dt = min(self.max_tick_ms, max(0.0, now_ms - self.last_tick_ms))
        self.last_tick_ms = now_ms

        if self.baseline is None:
            self.baseline = rms
        else:
            self.baseline = self.baseline_decay * self.baseline + (1 - self.baseline_decay) * rms
        threshold = self.threshold
        self.level = level_meter(rms)

        if rms > threshold:
            self.active_accum_ms += dt
        else:
            self.active_accum_ms = max(0.0, self.active_accum_ms - self.decay_ratio * dt)

        if self.active_accum_ms > self.sustain_ms:
            self.active_accum_ms = 0.0
            return True
        return False

    def reset(self):
        self.baseline = None
        self.active_accum_ms = 0.0
        self.last_tick_ms = None
        self.level = 0
