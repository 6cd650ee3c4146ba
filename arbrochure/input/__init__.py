"""
input module - recorded and synthetic tracker output
"""

from .data_loader import TrackingFrame, TrackingLogLoader, save_tracking_log
from .scenario_generator import generate_scenario, SCENARIOS

__all__ = [
    'TrackingFrame',
    'TrackingLogLoader',
    'save_tracking_log',
    'generate_scenario',
    'SCENARIOS',
]
