#!/usr/bin/env python3
"""
test_pose_stabilizer.py - PoseStabilizer unit tests

Author: AR Brochure Team
"""

import numpy as np
import pytest

from arbrochure.tracking.pose import Quaternion
from arbrochure.tracking.pose_stabilizer import (
    PoseStabilizer,
    PartialConfig,
    StabilizerConfig,
    StabilityMode,
    STABILITY_PRESETS,
    resolve_config,
)
from conftest import make_pose


# tiny alternating steps with zero smoothing keep the velocity average high
JITTER_CONFIG = PartialConfig(smoothing_factor=0.0, jitter_threshold=0.2, adaptive_smoothing=False)


def feed_alternating(stabilizer, count, amplitude=0.0008):
    for i in range(count):
        x = amplitude if i % 2 == 0 else -amplitude
        stabilizer.smooth_pose(make_pose(x, 0, 0))


class TestConfiguration:
    """Construction, presets and updates"""

    def test_default_config(self):
        config = PoseStabilizer().config
        assert config.smoothing_factor == 0.3
        assert config.jitter_threshold == 2.0
        assert config.stability_mode == StabilityMode.STABLE
        assert config.adaptive_smoothing is True

    def test_custom_config(self):
        stabilizer = PoseStabilizer(PartialConfig(
            smoothing_factor=0.5, jitter_threshold=3.0, adaptive_smoothing=False
        ))
        assert stabilizer.config.smoothing_factor == 0.5
        assert stabilizer.config.jitter_threshold == 3.0
        assert stabilizer.config.adaptive_smoothing is False

    def test_mapping_config(self):
        stabilizer = PoseStabilizer({'stability-mode': 'responsive'})
        assert stabilizer.config.smoothing_factor == 0.1
        assert stabilizer.config.jitter_threshold == 1.0

    def test_preset_ordering(self):
        """Responsive < stable < ultra-stable in both factor and threshold"""
        values = [
            STABILITY_PRESETS[StabilityMode.RESPONSIVE],
            STABILITY_PRESETS[StabilityMode.STABLE],
            STABILITY_PRESETS[StabilityMode.ULTRA_STABLE],
        ]
        assert values == sorted(values)
        for mode, (factor, threshold) in STABILITY_PRESETS.items():
            metrics = PoseStabilizer(PartialConfig(stability_mode=mode)).get_metrics()
            assert metrics.smoothing_factor == factor
            assert metrics.stability_mode == mode.value

    def test_mode_with_explicit_factor(self):
        """Explicit fields beat the preset in the same update"""
        stabilizer = PoseStabilizer()
        stabilizer.update_config(PartialConfig(stability_mode='ultra-stable', smoothing_factor=0.8))
        assert stabilizer.config.smoothing_factor == 0.8
        assert stabilizer.config.jitter_threshold == 4.0

    def test_mode_with_explicit_threshold(self):
        stabilizer = PoseStabilizer()
        stabilizer.update_config(stability_mode='ultra_stable', jitter_threshold=5.0)
        assert stabilizer.config.smoothing_factor == 0.6
        assert stabilizer.config.jitter_threshold == 5.0

    def test_factor_alone_keeps_mode(self):
        stabilizer = PoseStabilizer(PartialConfig(stability_mode='responsive'))
        stabilizer.update_config(smoothing_factor=0.8)
        assert stabilizer.config.smoothing_factor == 0.8
        assert stabilizer.config.jitter_threshold == 1.0
        assert stabilizer.config.stability_mode == StabilityMode.RESPONSIVE

    def test_rapid_updates(self):
        stabilizer = PoseStabilizer()
        stabilizer.update_config(stability_mode='responsive')
        stabilizer.update_config(stability_mode='stable')
        stabilizer.update_config(stability_mode='ultra-stable')
        stabilizer.update_config(smoothing_factor=0.8)
        assert stabilizer.config.smoothing_factor == 0.8
        assert stabilizer.config.stability_mode == StabilityMode.ULTRA_STABLE

    @pytest.mark.parametrize('update', [
        {'smoothing_factor': 1.5},
        {'smoothing_factor': -0.1},
        {'jitter_threshold': -1.0},
        {'jitter_threshold': float('inf')},
        {'stability_mode': 'wobbly'},
        {'smoothness': 0.3},
    ])
    def test_invalid_update_rejected(self, update):
        stabilizer = PoseStabilizer()
        before = stabilizer.config
        with pytest.raises(ValueError):
            stabilizer.update_config(update)
        assert stabilizer.config == before

    def test_resolve_config_without_preset(self):
        base = StabilizerConfig(smoothing_factor=0.45, jitter_threshold=2.5)
        merged = resolve_config(base, PartialConfig(adaptive_smoothing=False))
        assert merged.smoothing_factor == 0.45
        assert merged.jitter_threshold == 2.5
        assert merged.adaptive_smoothing is False

    def test_config_to_dict(self):
        d = StabilizerConfig(stability_mode='ultra-stable').to_dict()
        assert d['stability_mode'] == 'ultra-stable'


class TestSmoothing:
    """smooth_pose behaviour"""

    def test_first_pose_passthrough(self):
        stabilizer = PoseStabilizer()
        raw = make_pose(0.1, 0.2, -0.4, yaw_deg=15)
        assert stabilizer.smooth_pose(raw) is raw
        assert stabilizer.is_initialized
        assert stabilizer.last_stable_pose is raw

    def test_jitter_suppression(self):
        """1 mm noise is pulled toward the previous pose"""
        stabilizer = PoseStabilizer()
        stabilizer.smooth_pose(make_pose(0, 0, 0))
        raw = make_pose(0.001, 0.001, 0)

        stable = stabilizer.smooth_pose(raw)

        assert np.linalg.norm(stable.position) < np.linalg.norm(raw.position)
        assert np.linalg.norm(stable.position) > 0.0

    def test_large_motion_passes(self):
        """Intentional motion moves more than halfway"""
        stabilizer = PoseStabilizer()
        stabilizer.smooth_pose(make_pose(0, 0, 0))
        raw = make_pose(0.1, 0.1, 0)

        stable = stabilizer.smooth_pose(raw)

        assert np.linalg.norm(stable.position) > 0.5 * np.linalg.norm(raw.position)

    def test_intentional_halves_smoothing(self):
        stabilizer = PoseStabilizer(PartialConfig(adaptive_smoothing=False))
        stabilizer.smooth_pose(make_pose(0, 0, 0))
        stable = stabilizer.smooth_pose(make_pose(0.05, 0, 0))
        # movement 5.0 > threshold 2.0 -> effective 0.15
        assert stable.position[0] == pytest.approx(0.0425)
        assert stabilizer.movement_velocity == pytest.approx(1.0)

    def test_sub_threshold_uses_full_factor(self):
        stabilizer = PoseStabilizer(PartialConfig(adaptive_smoothing=False))
        stabilizer.smooth_pose(make_pose(0, 0, 0))
        stable = stabilizer.smooth_pose(make_pose(0.015, 0, 0))
        assert stable.position[0] == pytest.approx(0.0105)

    def test_adaptive_reduces_smoothing(self):
        adaptive = PoseStabilizer()
        fixed = PoseStabilizer(PartialConfig(adaptive_smoothing=False))
        for stabilizer in (adaptive, fixed):
            stabilizer.smooth_pose(make_pose(0, 0, 0))

        a = adaptive.smooth_pose(make_pose(0.01, 0, 0))
        f = fixed.smooth_pose(make_pose(0.01, 0, 0))

        # movement 1.0 -> ratio 1/6 -> effective 0.275
        assert a.position[0] == pytest.approx(0.00725)
        assert f.position[0] == pytest.approx(0.007)

    def test_rotation_smoothing(self):
        stabilizer = PoseStabilizer()
        stabilizer.smooth_pose(make_pose(0, 0, 0))
        raw = make_pose(0, 0, 0, yaw_deg=0.6)

        stable = stabilizer.smooth_pose(raw)

        identity = Quaternion.identity()
        assert stable.orientation.is_unit
        assert 0.0 < stable.orientation.angle_to(identity) < raw.orientation.angle_to(identity)

    def test_convergence(self):
        """Repeated identical input converges to it"""
        stabilizer = PoseStabilizer(PartialConfig(stability_mode='ultra-stable'))
        stabilizer.smooth_pose(make_pose(0, 0, 0))
        target = make_pose(0.05, 0.02, -0.03, yaw_deg=20)

        for _ in range(60):
            stable = stabilizer.smooth_pose(target)

        assert stable.distance_to(target) < 1e-6
        assert stable.orientation.angle_to(target.orientation) < 1e-3

    def test_zero_threshold(self):
        stabilizer = PoseStabilizer(PartialConfig(jitter_threshold=0.0))
        stabilizer.smooth_pose(make_pose(0, 0, 0))

        stable = stabilizer.smooth_pose(make_pose(0.01, 0, 0))
        # fully adaptive and intentional: 0.3 * 0.5 * 0.5
        assert stable.position[0] == pytest.approx(0.01 * 0.925)

        still = stabilizer.smooth_pose(stable)
        assert np.all(np.isfinite(still.position))
        assert still.is_close(stable)

    def test_output_timestamp(self):
        stabilizer = PoseStabilizer()
        stabilizer.smooth_pose(make_pose(0, 0, 0, timestamp=0.0))
        stable = stabilizer.smooth_pose(make_pose(0.001, 0, 0, timestamp=0.033))
        assert stable.timestamp == 0.033

    def test_history_holds_raw_poses(self):
        stabilizer = PoseStabilizer()
        stabilizer.smooth_pose(make_pose(0, 0, 0))
        raw = make_pose(0.002, 0, 0)
        stabilizer.smooth_pose(raw)
        assert stabilizer.history[-1] == raw

    def test_history_capacity(self):
        stabilizer = PoseStabilizer()
        for i in range(15):
            stabilizer.smooth_pose(make_pose(0.001 * i, 0, 0))
        assert stabilizer.get_metrics().history_length == 10


class TestJitterDetection:
    """detect_jitter heuristic"""

    def test_requires_three_poses(self):
        stabilizer = PoseStabilizer(JITTER_CONFIG)
        assert not stabilizer.detect_jitter()

        # velocity is pushed high enough that only the history length gates
        stabilizer._movement_velocity = 10.0
        for count, x in enumerate((0.0008, -0.0008), start=1):
            stabilizer.smooth_pose(make_pose(x, 0, 0))
            stabilizer._movement_velocity = 10.0
            assert len(stabilizer.history) == count
            assert not stabilizer.detect_jitter()

        stabilizer.smooth_pose(make_pose(0.0008, 0, 0))
        stabilizer._movement_velocity = 10.0
        assert len(stabilizer.history) == 3
        assert stabilizer.detect_jitter()

    def test_detects_alternating_noise(self):
        stabilizer = PoseStabilizer(JITTER_CONFIG)
        feed_alternating(stabilizer, 12)
        assert stabilizer.movement_velocity > 0.1
        assert stabilizer.detect_jitter()
        assert stabilizer.get_metrics().is_jittering

    def test_steady_motion_not_jitter(self):
        stabilizer = PoseStabilizer()
        for i in range(12):
            stabilizer.smooth_pose(make_pose(0.03 * i, 0, 0))
        assert not stabilizer.detect_jitter()

    def test_settled_not_jitter(self):
        stabilizer = PoseStabilizer(JITTER_CONFIG)
        for _ in range(12):
            stabilizer.smooth_pose(make_pose(0.1, 0, 0))
        assert not stabilizer.detect_jitter()


class TestReset:
    """reset and metrics"""

    def test_reset_clears_state(self):
        stabilizer = PoseStabilizer(PartialConfig(stability_mode='ultra-stable'))
        for i in range(5):
            stabilizer.smooth_pose(make_pose(0.01 * i, 0, 0))

        stabilizer.reset()

        metrics = stabilizer.get_metrics()
        assert metrics.history_length == 0
        assert metrics.movement_velocity == 0.0
        assert not metrics.is_jittering
        assert not stabilizer.is_initialized
        assert stabilizer.config.stability_mode == StabilityMode.ULTRA_STABLE

        raw = make_pose(1, 1, 1)
        assert stabilizer.smooth_pose(raw) is raw

    def test_reset_is_idempotent(self):
        fresh = PoseStabilizer()
        fresh.reset()
        assert fresh.get_metrics() == PoseStabilizer().get_metrics()

        stabilizer = PoseStabilizer()
        for i in range(4):
            stabilizer.smooth_pose(make_pose(0.01 * i, 0, 0))
        stabilizer.reset()
        once = stabilizer.get_metrics()
        stabilizer.reset()

        assert stabilizer.get_metrics() == once
        assert once.history_length == 0
        assert once.movement_velocity == 0.0
        raw = make_pose(0.2, 0, 0)
        assert stabilizer.smooth_pose(raw) is raw

    def test_metrics_to_dict(self):
        d = PoseStabilizer().get_metrics().to_dict()
        assert d == {
            'movement_velocity': 0.0,
            'history_length': 0,
            'is_jittering': False,
            'smoothing_factor': 0.3,
            'stability_mode': 'stable',
        }


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
