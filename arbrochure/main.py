"""
main.py - AR anchor tracking system

Binds the PoseStabilizer to the image-tracking engine's anchor contract:

Pipeline per frame:
1. Tracker reports target found / lost -> stabilizer reset
2. Raw anchor matrix (4x4) -> Pose (scale discarded)
3. PoseStabilizer.smooth_pose
4. Stabilized Pose -> 4x4 matrix (unit scale) for the renderer
5. Periodic stability_metrics events for telemetry sinks

Version: 1.0
Author: AR Brochure Team
"""

import numpy as np
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
from dataclasses import dataclass, field
from enum import Enum
import time
import uuid
import logging

from .config.system_config import SystemConfig
from .input.data_loader import TrackingFrame
from .tracking.pose import Pose, PoseConverter
from .tracking.pose_stabilizer import (
    PoseStabilizer, PartialConfig, StabilityMetrics, StabilityMode
)

logger = logging.getLogger(__name__)


class TrackingState(Enum):
    """Anchor tracking state"""
    INITIALIZING = "initializing"
    TRACKING = "tracking"
    LOST = "lost"
    ERROR = "error"


@dataclass(frozen=True)
class TrackingEvent:
    """Event handed to telemetry listeners"""
    # tracking_started | tracking_lost | tracking_error | stability_metrics | model_tapped
    event_type: str
    session_id: str
    timestamp: float
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event_type': self.event_type,
            'session_id': self.session_id,
            'timestamp': self.timestamp,
            **self.payload
        }


@dataclass
class FrameResult:
    """
    Result of one tracked frame
    """
    frame_idx: int
    timestamp: float

    raw_pose: Pose
    stable_pose: Pose
    raw_matrix: np.ndarray          # 4x4 as reported
    stable_matrix: np.ndarray       # 4x4 for the renderer

    metrics: StabilityMetrics
    processing_time_ms: float

    @property
    def position_offset(self) -> float:
        """Distance between raw and stabilized positions"""
        return self.raw_pose.distance_to(self.stable_pose)

    def to_dict(self) -> Dict[str, Any]:
        raw_p = self.raw_pose.position
        stable_p = self.stable_pose.position
        raw_q = self.raw_pose.orientation
        stable_q = self.stable_pose.orientation
        return {
            'frame_idx': self.frame_idx,
            'timestamp': self.timestamp,
            'raw_x': raw_p[0], 'raw_y': raw_p[1], 'raw_z': raw_p[2],
            'raw_qx': raw_q.x, 'raw_qy': raw_q.y, 'raw_qz': raw_q.z, 'raw_qw': raw_q.w,
            'stable_x': stable_p[0], 'stable_y': stable_p[1], 'stable_z': stable_p[2],
            'stable_qx': stable_q.x, 'stable_qy': stable_q.y,
            'stable_qz': stable_q.z, 'stable_qw': stable_q.w,
            'position_offset': self.position_offset,
            'rotation_offset_deg': raw_q.angle_to(stable_q),
            'movement_velocity': self.metrics.movement_velocity,
            'is_jittering': self.metrics.is_jittering,
            'smoothing_factor': self.metrics.smoothing_factor,
            'stability_mode': self.metrics.stability_mode,
            'processing_time_ms': self.processing_time_ms
        }


EventListener = Callable[[TrackingEvent], None]


class ARTrackingSystem:
    """
    Anchor tracking with pose stabilization

    Example:
        >>> system = ARTrackingSystem.from_config(load_config("configs/default.yaml"))
        >>> system.on_target_found()
        >>> result = system.process_frame(anchor_matrix)
        >>> renderer.apply(result.stable_matrix)
    """

    def __init__(
        self,
        stabilizer_config: Optional[PartialConfig] = None,
        fps: float = 30.0,
        metrics_interval: int = 30,
        history_size: int = 10,
        session_id: Optional[str] = None
    ):
        """
        Args:
            stabilizer_config: stabilizer overrides (mode preset fills the rest)
            fps: frame rate used for default timestamps
            metrics_interval: tracked frames between stability_metrics events
            history_size: stabilizer ring buffer capacity
            session_id: telemetry session id (random if omitted)
        """
        if fps <= 0:
            raise ValueError(f"fps must be > 0, got {fps}")
        if metrics_interval < 1:
            raise ValueError(f"metrics_interval must be >= 1, got {metrics_interval}")

        self.fps = fps
        self.metrics_interval = metrics_interval
        self.session_id = session_id or str(uuid.uuid4())

        self._stabilizer = PoseStabilizer(stabilizer_config, history_size=history_size)
        self._converter = PoseConverter()
        self._listeners: List[EventListener] = []

        self._state = TrackingState.INITIALIZING
        self._frame_count = 0
        self._tracked_frames = 0

        logger.info(f"ARTrackingSystem initialized: session={self.session_id}")

    def add_listener(self, listener: EventListener):
        self._listeners.append(listener)

    def _emit(self, event_type: str, timestamp: float, payload: Optional[Dict[str, Any]] = None):
        event = TrackingEvent(
            event_type=event_type,
            session_id=self.session_id,
            timestamp=timestamp,
            payload=payload or {}
        )
        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                # listener failures never interrupt the frame
                logger.warning(f"Event listener failed on {event_type}: {e}")

    def _default_timestamp(self) -> float:
        return self._frame_count / self.fps

    def on_target_found(self, timestamp: Optional[float] = None):
        """Target acquired: start a fresh stabilization session"""
        if timestamp is None:
            timestamp = self._default_timestamp()

        self._stabilizer.reset()
        self._state = TrackingState.TRACKING
        self._tracked_frames = 0

        logger.info(f"Target found at t={timestamp:.3f}")
        self._emit('tracking_started', timestamp)

    def on_target_lost(self, timestamp: Optional[float] = None):
        """Target lost: drop rolling state so re-acquisition starts clean"""
        if timestamp is None:
            timestamp = self._default_timestamp()

        self._stabilizer.reset()
        self._state = TrackingState.LOST

        logger.info(f"Target lost at t={timestamp:.3f}")
        self._emit('tracking_lost', timestamp)

    def process_frame(
        self,
        matrix: np.ndarray,
        timestamp: Optional[float] = None
    ) -> Optional[FrameResult]:
        """
        Stabilize one tracked frame

        Args:
            matrix: raw 4x4 anchor transform from the tracker
            timestamp: capture time (frame_idx / fps if omitted)

        Returns:
            FrameResult, or None when the target is not being tracked or
            the matrix cannot be decomposed (state becomes ERROR)
        """
        start_time = time.time()
        frame_idx = self._frame_count
        if timestamp is None:
            timestamp = self._default_timestamp()
        self._frame_count += 1

        if self._state != TrackingState.TRACKING:
            logger.debug(f"Frame {frame_idx}: not tracking ({self._state.value})")
            return None

        try:
            raw_pose = self._converter.matrix_to_pose(matrix, timestamp=timestamp)
        except ValueError as e:
            # bad frame: drop it and wait for the next found edge
            logger.warning(f"Frame {frame_idx}: invalid anchor matrix ({e})")
            self._stabilizer.reset()
            self._state = TrackingState.ERROR
            self._emit('tracking_error', timestamp, {'frame_idx': frame_idx, 'error': str(e)})
            return None

        stable_pose = self._stabilizer.smooth_pose(raw_pose)
        stable_matrix = self._converter.pose_to_matrix(stable_pose)
        metrics = self._stabilizer.get_metrics()

        self._tracked_frames += 1
        if self._tracked_frames % self.metrics_interval == 0:
            self._emit('stability_metrics', timestamp, metrics.to_dict())

        processing_time = (time.time() - start_time) * 1000

        return FrameResult(
            frame_idx=frame_idx,
            timestamp=timestamp,
            raw_pose=raw_pose,
            stable_pose=stable_pose,
            raw_matrix=np.asarray(matrix, dtype=np.float64).copy(),
            stable_matrix=stable_matrix,
            metrics=metrics,
            processing_time_ms=processing_time
        )

    def process_sequence(
        self,
        frames: Iterable[TrackingFrame]
    ) -> List[Optional[FrameResult]]:
        """
        Replay recorded tracker output

        found/lost transitions are raised on edges of the frame's found flag.

        Args:
            frames: TrackingFrame sequence

        Returns:
            one entry per frame (None for untracked frames)
        """
        results = []

        for frame in frames:
            tracked = frame.found and frame.matrix is not None
            if tracked and self._state != TrackingState.TRACKING:
                self.on_target_found(frame.timestamp)
            elif not tracked and self._state == TrackingState.TRACKING:
                self.on_target_lost(frame.timestamp)

            if tracked:
                results.append(self.process_frame(frame.matrix, timestamp=frame.timestamp))
            else:
                self._frame_count += 1
                results.append(None)

        return results

    def on_model_tapped(self, model_id: str, timestamp: Optional[float] = None):
        """User tapped the rendered model"""
        if timestamp is None:
            timestamp = self._default_timestamp()
        self._emit('model_tapped', timestamp, {'model_id': model_id})

    def set_stability_mode(self, mode: Union[StabilityMode, str]):
        """Switch preset at runtime (e.g. from a UI control)"""
        self._stabilizer.update_config(stability_mode=mode)

    def update_stabilizer_config(self, partial: Optional[PartialConfig] = None, **overrides):
        self._stabilizer.update_config(partial, **overrides)

    def get_metrics(self) -> StabilityMetrics:
        return self._stabilizer.get_metrics()

    def reset(self):
        """Full system reset"""
        self._stabilizer.reset()
        self._state = TrackingState.INITIALIZING
        self._frame_count = 0
        self._tracked_frames = 0

        logger.info("System reset")

    @property
    def stabilizer(self) -> PoseStabilizer:
        return self._stabilizer

    @property
    def state(self) -> TrackingState:
        return self._state

    @property
    def is_tracking(self) -> bool:
        return self._state == TrackingState.TRACKING

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @classmethod
    def from_config(cls, config: SystemConfig) -> 'ARTrackingSystem':
        """
        Build the system from a SystemConfig
        """
        return cls(
            stabilizer_config=config.stabilizer.to_partial(),
            fps=config.tracking.fps,
            metrics_interval=config.tracking.metrics_interval,
            history_size=config.tracking.history_size
        )
