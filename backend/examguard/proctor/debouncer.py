"""
Violation Debouncer - per-type cooldown over bursty raw detections
"""

import threading
from typing import Dict

from ..core.violations import ViolationType

DEFAULT_COOLDOWN_MS = 3000.0


class ViolationDebouncer:
    """
    Turns raw detections into at most one logical event per type per cooldown.

    One instance is shared by every producer of a session. The last-fired time
    of a type only moves when that type fires, so a steady stream of suppressed
    detections cannot keep pushing the window forward.
    """

    def __init__(self, cooldown_ms: float = DEFAULT_COOLDOWN_MS):
        self.cooldown_ms = cooldown_ms
        self._last_fired: Dict[ViolationType, float] = {}
        self._lock = threading.Lock()

    def should_fire(self, violation_type: ViolationType, now_ms: float) -> bool:
        with self._lock:
            last = self._last_fired.get(violation_type)
            if last is not None and now_ms - last < self.cooldown_ms:
                return False
            self._last_fired[violation_type] = now_ms
            return True

    def last_fired(self, violation_type: ViolationType):
        with self._lock:
            return self._last_fired.get(violation_type)

    def reset(self):
        with self._lock:
            self._last_fired.clear()
