"""
Tests for the client-side detection state machines

Debouncer, attention drift evaluator and voice activity detector.
"""

import threading

import numpy as np
import pytest

from examguard.core.violations import ViolationType
from examguard.proctor.debouncer import ViolationDebouncer
from examguard.proctor.drift import AttentionDriftEvaluator, BoundingBox, DriftState, classify_box
from examguard.proctor.voice import VoiceActivityDetector, frame_rms, level_meter

FRAME_W, FRAME_H = 640, 480

CENTERED_BOX = BoundingBox(x=240, y=160, width=160, height=180)
# center at nx ~0.09, well inside the left edge band
EDGE_BOX = BoundingBox(x=0, y=160, width=120, height=160)
# center at nx ~0.27: outside the center box but not near an edge, full size, upright
OFF_CENTER_BOX = BoundingBox(x=92, y=150, width=160, height=180)


class TestViolationDebouncer:

    def test_first_detection_fires(self):
        debouncer = ViolationDebouncer()
        assert debouncer.should_fire(ViolationType.TAB_SWITCH, 1000) is True

    def test_suppresses_within_cooldown(self):
        debouncer = ViolationDebouncer()
        assert debouncer.should_fire(ViolationType.TAB_SWITCH, 0)
        assert not debouncer.should_fire(ViolationType.TAB_SWITCH, 1500)
        assert not debouncer.should_fire(ViolationType.TAB_SWITCH, 2999)
        assert debouncer.should_fire(ViolationType.TAB_SWITCH, 3000)

    def test_suppression_does_not_extend_window(self):
        """A stream of suppressed detections must not push the next firing back"""
        debouncer = ViolationDebouncer()
        debouncer.should_fire(ViolationType.NO_FACE, 0)
        for t in range(500, 3000, 500):
            assert not debouncer.should_fire(ViolationType.NO_FACE, t)
        assert debouncer.last_fired(ViolationType.NO_FACE) == 0
        assert debouncer.should_fire(ViolationType.NO_FACE, 3000)

    def test_types_are_independent(self):
        debouncer = ViolationDebouncer()
        assert debouncer.should_fire(ViolationType.CELL_PHONE, 100)
        assert debouncer.should_fire(ViolationType.PROHIBITED_OBJECT, 100)
        assert not debouncer.should_fire(ViolationType.CELL_PHONE, 200)

    def test_at_most_one_event_per_window(self):
        debouncer = ViolationDebouncer()
        fired = [t for t in range(0, 10000, 100) if debouncer.should_fire(ViolationType.COPY_PASTE, t)]
        assert fired == [0, 3000, 6000, 9000]
        for earlier, later in zip(fired, fired[1:]):
            assert later - earlier >= 3000

    def test_reset_clears_state(self):
        debouncer = ViolationDebouncer()
        debouncer.should_fire(ViolationType.DEV_TOOLS, 0)
        debouncer.reset()
        assert debouncer.should_fire(ViolationType.DEV_TOOLS, 10)

    def test_concurrent_producers_fire_once(self):
        """Threads racing on the same type and instant yield a single firing"""
        debouncer = ViolationDebouncer()
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(debouncer.should_fire(ViolationType.MULTIPLE_FACE, 5000))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1


class TestDriftGeometry:

    def test_centered_box(self):
        geometry = classify_box(CENTERED_BOX, FRAME_W, FRAME_H)
        assert geometry.in_center
        assert not geometry.drifting

    def test_edge_box(self):
        geometry = classify_box(EDGE_BOX, FRAME_W, FRAME_H)
        assert geometry.near_edge
        assert geometry.severe

    def test_off_center_is_not_severe(self):
        geometry = classify_box(OFF_CENTER_BOX, FRAME_W, FRAME_H)
        assert not geometry.in_center
        assert geometry.drifting
        assert not geometry.severe

    def test_small_and_sideways(self):
        small = classify_box(BoundingBox(x=310, y=230, width=20, height=20), FRAME_W, FRAME_H)
        assert small.too_small
        sideways = classify_box(BoundingBox(x=280, y=140, width=80, height=200), FRAME_W, FRAME_H)
        assert sideways.sideways
        assert sideways.drifting

    def test_degenerate_box_is_clamped(self):
        geometry = classify_box(BoundingBox(x=320, y=240, width=0, height=0), FRAME_W, FRAME_H)
        assert geometry.area_fraction == pytest.approx(1 / (FRAME_W * FRAME_H))
        assert geometry.too_small


class TestAttentionDriftEvaluator:

    def test_edge_held_past_dwell_fires_once(self):
        evaluator = AttentionDriftEvaluator()
        assert not evaluator.update(EDGE_BOX, FRAME_W, FRAME_H, 0)
        assert evaluator.update(EDGE_BOX, FRAME_W, FRAME_H, 401)
        assert evaluator.state == DriftState.CENTERED

    def test_edge_released_before_dwell_does_not_fire(self):
        evaluator = AttentionDriftEvaluator()
        assert not evaluator.update(EDGE_BOX, FRAME_W, FRAME_H, 0)
        assert not evaluator.update(EDGE_BOX, FRAME_W, FRAME_H, 399)
        assert not evaluator.update(CENTERED_BOX, FRAME_W, FRAME_H, 450)
        assert not evaluator.update(EDGE_BOX, FRAME_W, FRAME_H, 500)
        assert evaluator.since_ms == 500

    def test_dwell_boundary_is_inclusive(self):
        evaluator = AttentionDriftEvaluator()
        evaluator.update(EDGE_BOX, FRAME_W, FRAME_H, 1000)
        assert evaluator.update(EDGE_BOX, FRAME_W, FRAME_H, 1400)

    def test_off_center_needs_longer_dwell(self):
        evaluator = AttentionDriftEvaluator()
        evaluator.update(OFF_CENTER_BOX, FRAME_W, FRAME_H, 0)
        assert not evaluator.update(OFF_CENTER_BOX, FRAME_W, FRAME_H, 500)
        assert evaluator.update(OFF_CENTER_BOX, FRAME_W, FRAME_H, 800)

    def test_missing_box_counts_as_centered(self):
        evaluator = AttentionDriftEvaluator()
        evaluator.update(EDGE_BOX, FRAME_W, FRAME_H, 0)
        assert not evaluator.update(None, FRAME_W, FRAME_H, 300)
        assert evaluator.state == DriftState.CENTERED
        assert not evaluator.update(EDGE_BOX, FRAME_W, FRAME_H, 500)

    def test_countdown(self):
        evaluator = AttentionDriftEvaluator()
        assert evaluator.countdown_ms(0) is None
        evaluator.update(OFF_CENTER_BOX, FRAME_W, FRAME_H, 0)
        assert evaluator.countdown_ms(300) == 500
        assert evaluator.countdown_ms(5000) == 0


class TestVoiceHelpers:

    def test_rms_of_unsigned_pcm(self):
        silence = np.full(256, 128, dtype=np.uint8)
        assert frame_rms(silence) == 0.0
        loud = np.array([0, 255] * 128, dtype=np.uint8)
        assert frame_rms(loud) == pytest.approx(1.0, abs=0.01)

    def test_rms_of_float_pcm(self):
        samples = np.array([0.5, -0.5, 0.5, -0.5], dtype=np.float32)
        assert frame_rms(samples) == pytest.approx(0.5)
        assert frame_rms(np.array([], dtype=np.float32)) == 0.0

    def test_level_meter(self):
        assert level_meter(0.1) == 40
        assert level_meter(0.9) == 100


def feed(detector, rms, start_ms, duration_ms, step_ms=20):
    fired = []
    t = start_ms
    while t < start_ms + duration_ms:
        if detector.update(rms, t):
            fired.append(t)
        t += step_ms
    return fired, t


class TestVoiceActivityDetector:

    def test_first_sample_sets_baseline(self):
        detector = VoiceActivityDetector()
        detector.update(0.01, 0)
        assert detector.baseline == 0.01
        assert detector.active_accum_ms == 0

    def test_quiet_room_never_fires(self):
        detector = VoiceActivityDetector()
        fired, _ = feed(detector, 0.002, 0, 5000)
        assert fired == []

    def test_sustained_speech_fires_once_and_resets(self):
        detector = VoiceActivityDetector()
        _, t = feed(detector, 0.001, 0, 200)
        fired, t = feed(detector, 0.2, t, 900)
        assert len(fired) == 1
        assert detector.active_accum_ms < 800

    def test_second_period_fires_again(self):
        detector = VoiceActivityDetector()
        _, t = feed(detector, 0.001, 0, 200)
        first, t = feed(detector, 0.3, t, 860)
        # long silence lets the integrator drain and the baseline settle
        _, t = feed(detector, 0.001, t, 20000)
        second, t = feed(detector, 0.3, t, 860)
        assert len(first) == 1
        assert len(second) == 1

    def test_stalled_loop_is_clamped(self):
        """A 5 s gap between samples adds at most one clamped tick"""
        detector = VoiceActivityDetector()
        detector.update(0.001, 0)
        assert not detector.update(0.5, 5000)
        assert detector.active_accum_ms == 100

    def test_silence_decays_accumulator(self):
        detector = VoiceActivityDetector()
        _, t = feed(detector, 0.001, 0, 100)
        feed(detector, 0.3, t, 400)
        accumulated = detector.active_accum_ms
        detector.update(0.0, t + 400)
        assert detector.active_accum_ms == pytest.approx(accumulated - 0.6 * 20)
