"""
Utility functions and helpers for the Track Report engine.
"""

from .helpers import (
    load_config,
    setup_logging,
    calculate_bearing,
    format_clock_time,
    format_distance_km,
    format_duration,
    haversine_distance,
    point_bearing,
    point_distance,
    round_half_up,
)

__all__ = [
    "load_config",
    "setup_logging",
    "calculate_bearing",
    "format_clock_time",
    "format_distance_km",
    "format_duration",
    "haversine_distance",
    "point_bearing",
    "point_distance",
    "round_half_up",
]
